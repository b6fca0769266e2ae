from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from app.api.routes import dispatches, gates, health, tickets
from app.core.config import Settings, get_settings, to_async_dsn
from app.core.logging import configure_logging, init_tracer, shutdown_tracer
from app.metrics import metrics_registry
from app.services.database import DatabaseHandle
from app.valet.dispatch import DispatchEngine, DispatchService
from app.valet.repository import ValetRepository
from app.valet.scoring import build_scorer
from app.valet.service import GateRegistry, SensorIngestService, TicketService


async def init_services(app: FastAPI, database: DatabaseHandle, settings: Settings) -> None:
    """Create the schema, seed gates and attach the valet services to ``app.state``."""

    repository = ValetRepository(database.session_factory, engine=database.engine)
    await repository.ensure_schema()

    gate_registry = GateRegistry(repository)
    await gate_registry.ensure_default_gates(settings.default_gates)

    app.state.database = database
    app.state.metrics_registry = metrics_registry
    app.state.gate_registry = gate_registry
    app.state.ticket_service = TicketService(repository)
    app.state.sensor_service = SensorIngestService(repository)
    app.state.dispatch_engine = DispatchEngine(
        repository,
        scorer=build_scorer(
            settings.scoring_strategy,
            seed=settings.scoring_seed,
            max_score=settings.max_gate_score,
        ),
        threshold=settings.dispatch_confidence_threshold,
        max_score=settings.max_gate_score,
        metrics=metrics_registry,
    )
    app.state.dispatch_service = DispatchService(repository, strict_status=settings.strict_dispatch_status)


@asynccontextmanager
async def lifespan(app: FastAPI):  # pragma: no cover - executed by framework
    settings = get_settings()
    logger = configure_logging(settings)
    tracer_provider = init_tracer(settings)
    app.state.logger = logger
    app.state.tracer_provider = tracer_provider

    database = DatabaseHandle.open(to_async_dsn(settings.database_url), echo=settings.database_echo)
    try:
        await init_services(app, database, settings)
        logger.info("%s started (%s)", settings.app_name, settings.environment)
        yield
    finally:
        await database.close()
        shutdown_tracer(tracer_provider)


def create_app(settings: Settings | None = None) -> FastAPI:
    settings = settings or get_settings()
    app = FastAPI(title=settings.app_name, lifespan=lifespan)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_allow_origins,
        allow_credentials=settings.cors_allow_credentials,
        allow_methods=settings.cors_allow_methods,
        allow_headers=settings.cors_allow_headers,
    )
    app.include_router(health.router)
    app.include_router(tickets.router)
    app.include_router(dispatches.router)
    app.include_router(gates.router)
    return app


app = create_app()
