from __future__ import annotations

from typing import Annotated, Any

from fastapi import Depends, HTTPException, Request

from app.valet.dispatch import DispatchEngine, DispatchService
from app.valet.service import GateRegistry, SensorIngestService, TicketService


def _service_from_state(request: Request, name: str, label: str) -> Any:
    service = getattr(request.app.state, name, None)
    if service is None:
        raise HTTPException(status_code=503, detail=f"{label} is not configured")
    return service


async def get_ticket_service(request: Request) -> TicketService:
    return _service_from_state(request, "ticket_service", "Ticket service")


async def get_sensor_service(request: Request) -> SensorIngestService:
    return _service_from_state(request, "sensor_service", "Sensor ingest service")


async def get_dispatch_engine(request: Request) -> DispatchEngine:
    return _service_from_state(request, "dispatch_engine", "Dispatch engine")


async def get_dispatch_service(request: Request) -> DispatchService:
    return _service_from_state(request, "dispatch_service", "Dispatch service")


async def get_gate_registry(request: Request) -> GateRegistry:
    return _service_from_state(request, "gate_registry", "Gate registry")


TicketServiceDep = Annotated[TicketService, Depends(get_ticket_service)]
SensorServiceDep = Annotated[SensorIngestService, Depends(get_sensor_service)]
DispatchEngineDep = Annotated[DispatchEngine, Depends(get_dispatch_engine)]
DispatchServiceDep = Annotated[DispatchService, Depends(get_dispatch_service)]
GateRegistryDep = Annotated[GateRegistry, Depends(get_gate_registry)]
