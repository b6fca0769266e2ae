from __future__ import annotations

from fastapi import APIRouter, HTTPException

from app.dependencies.valet import DispatchServiceDep
from app.valet.errors import DispatchNotFoundError, ValidationError

from .schemas import DispatchResponse, DispatchStatusRequest

router = APIRouter(prefix="/api/dispatches", tags=["dispatches"])


@router.get("", response_model=list[DispatchResponse])
async def list_dispatches(service: DispatchServiceDep) -> list[DispatchResponse]:
    dispatches = await service.list_dispatches()
    return [DispatchResponse.model_validate(item) for item in dispatches]


@router.get("/{dispatch_id}", response_model=DispatchResponse)
async def get_dispatch(dispatch_id: int, service: DispatchServiceDep) -> DispatchResponse:
    try:
        dispatch = await service.get_dispatch(dispatch_id)
    except DispatchNotFoundError as exc:
        raise HTTPException(status_code=404, detail=str(exc)) from exc
    return DispatchResponse.model_validate(dispatch)


@router.post("/{dispatch_id}/status", response_model=DispatchResponse)
async def set_dispatch_status(
    dispatch_id: int,
    payload: DispatchStatusRequest,
    service: DispatchServiceDep,
) -> DispatchResponse:
    try:
        dispatch = await service.set_status(dispatch_id, payload.status)
    except DispatchNotFoundError as exc:
        raise HTTPException(status_code=404, detail=str(exc)) from exc
    except ValidationError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc
    return DispatchResponse.model_validate(dispatch)
