from __future__ import annotations

from fastapi import APIRouter, HTTPException, status

from app.dependencies.valet import DispatchEngineDep, SensorServiceDep, TicketServiceDep
from app.valet.errors import (
    ConfigurationError,
    InvalidTicketTransitionError,
    TicketNotFoundError,
    ValidationError,
)

from .schemas import (
    AckResponse,
    InferenceResponse,
    SensorObservationRequest,
    SensorObservationResponse,
    TicketAuditResponse,
    TicketCreateRequest,
    TicketResponse,
)

router = APIRouter(prefix="/api/tickets", tags=["tickets"])


@router.post("", response_model=TicketResponse, status_code=status.HTTP_201_CREATED)
async def create_ticket(payload: TicketCreateRequest, service: TicketServiceDep) -> TicketResponse:
    try:
        ticket = await service.create_ticket(user_id=payload.user_id, car_info=payload.car_info)
    except ValidationError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc
    return TicketResponse.model_validate(ticket)


@router.get("", response_model=list[TicketResponse])
async def list_tickets(service: TicketServiceDep) -> list[TicketResponse]:
    tickets = await service.list_tickets()
    return [TicketResponse.model_validate(ticket) for ticket in tickets]


@router.get("/{ticket_id}", response_model=TicketResponse)
async def get_ticket(ticket_id: int, service: TicketServiceDep) -> TicketResponse:
    try:
        ticket = await service.get_ticket(ticket_id)
    except TicketNotFoundError as exc:
        raise HTTPException(status_code=404, detail=str(exc)) from exc
    return TicketResponse.model_validate(ticket)


@router.post("/{ticket_id}/request", response_model=TicketResponse)
async def request_retrieval(ticket_id: int, service: TicketServiceDep) -> TicketResponse:
    try:
        ticket = await service.request_retrieval(ticket_id)
    except TicketNotFoundError as exc:
        raise HTTPException(status_code=404, detail=str(exc)) from exc
    except InvalidTicketTransitionError as exc:
        raise HTTPException(status_code=409, detail=str(exc)) from exc
    return TicketResponse.model_validate(ticket)


@router.post("/{ticket_id}/sensor", response_model=AckResponse)
async def record_observation(
    ticket_id: int,
    payload: SensorObservationRequest,
    service: SensorServiceDep,
) -> AckResponse:
    try:
        await service.record_observation(
            ticket_id,
            proximity=payload.proximity,
            wireless=payload.wireless,
            motion=payload.motion,
            location=payload.location,
            timestamp=payload.timestamp,
        )
    except TicketNotFoundError as exc:
        raise HTTPException(status_code=404, detail=str(exc)) from exc
    return AckResponse(success=True)


@router.get("/{ticket_id}/sensor", response_model=list[SensorObservationResponse])
async def list_observations(ticket_id: int, service: SensorServiceDep) -> list[SensorObservationResponse]:
    observations = await service.list_observations(ticket_id)
    return [SensorObservationResponse.model_validate(item) for item in observations]


@router.post("/{ticket_id}/infer", response_model=InferenceResponse)
async def run_inference(ticket_id: int, engine: DispatchEngineDep) -> InferenceResponse:
    try:
        result = await engine.run_inference(ticket_id)
    except TicketNotFoundError as exc:
        raise HTTPException(status_code=404, detail=str(exc)) from exc
    except ConfigurationError as exc:
        raise HTTPException(status_code=503, detail=str(exc)) from exc
    return InferenceResponse.from_result(result)


@router.get("/{ticket_id}/audit", response_model=list[TicketAuditResponse])
async def get_ticket_audit(ticket_id: int, service: TicketServiceDep) -> list[TicketAuditResponse]:
    try:
        entries = await service.get_audit_log(ticket_id)
    except TicketNotFoundError as exc:
        raise HTTPException(status_code=404, detail=str(exc)) from exc
    return [TicketAuditResponse.model_validate(entry) for entry in entries]
