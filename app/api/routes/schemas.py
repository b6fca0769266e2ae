from __future__ import annotations

from datetime import datetime
from typing import Any

from pydantic import AliasChoices, BaseModel, ConfigDict, Field

from app.valet.models import InferenceResult
from app.valet.state import TicketStatus


class TicketCreateRequest(BaseModel):
    user_id: str | None = Field(default=None, validation_alias=AliasChoices("userId", "user_id"))
    car_info: str | None = Field(default=None, validation_alias=AliasChoices("carInfo", "car_info"))


class SensorObservationRequest(BaseModel):
    proximity: Any | None = Field(default=None, validation_alias=AliasChoices("ble", "proximity"))
    wireless: Any | None = Field(default=None, validation_alias=AliasChoices("wifi", "wireless"))
    motion: Any | None = Field(default=None, validation_alias=AliasChoices("imu", "motion"))
    location: Any | None = Field(default=None, validation_alias=AliasChoices("gps", "location"))
    timestamp: datetime | None = None


class DispatchStatusRequest(BaseModel):
    status: str | None = None


class TicketResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    user_id: str
    car_info: str
    status: TicketStatus
    created_at: datetime
    updated_at: datetime


class TicketAuditResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    ticket_id: int
    action: str
    from_status: TicketStatus | None
    to_status: TicketStatus | None
    metadata: dict[str, Any]
    created_at: datetime


class SensorObservationResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    ticket_id: int
    proximity: Any | None
    wireless: Any | None
    motion: Any | None
    location: Any | None
    timestamp: datetime


class AckResponse(BaseModel):
    success: bool = True


class GateResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    name: str


class DispatchResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    ticket_id: int
    gate: str
    score: float
    status: str
    dispatched_at: datetime
    updated_at: datetime


class GateScoreResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    gate: str
    score: float


class InferenceResponse(BaseModel):
    scores: list[GateScoreResponse]
    dispatched: bool
    dispatch: DispatchResponse | None = None

    @classmethod
    def from_result(cls, result: InferenceResult) -> "InferenceResponse":
        return cls(
            scores=[GateScoreResponse.model_validate(item) for item in result.scores],
            dispatched=result.dispatched,
            dispatch=DispatchResponse.model_validate(result.dispatch) if result.dispatch else None,
        )
