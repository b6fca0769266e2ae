from __future__ import annotations

import logging

from fastapi import APIRouter, Request
from fastapi.responses import PlainTextResponse
from sqlalchemy.exc import SQLAlchemyError

from app.metrics import metrics_registry
from app.metrics.exporters import PROMETHEUS_CONTENT_TYPE, PrometheusExporter

logger = logging.getLogger(__name__)

router = APIRouter(tags=["health"])


@router.get("/health", summary="Liveness and database probe")
async def health(request: Request) -> dict[str, str]:
    database = getattr(request.app.state, "database", None)
    if database is None:
        return {"status": "ok", "database": "unconfigured"}
    try:
        await database.test_connection()
    except (SQLAlchemyError, OSError):
        logger.exception("Database health probe failed")
        return {"status": "degraded", "database": "unavailable"}
    return {"status": "ok", "database": "ok"}


@router.get("/metrics", summary="Prometheus metrics", response_class=PlainTextResponse)
async def metrics(request: Request) -> PlainTextResponse:
    registry = getattr(request.app.state, "metrics_registry", None) or metrics_registry
    payload = PrometheusExporter(registry).build_payload()
    return PlainTextResponse(payload, media_type=PROMETHEUS_CONTENT_TYPE)
