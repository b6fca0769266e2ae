from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Mapping, Sequence

from .state import TicketStatus


@dataclass(slots=True, frozen=True)
class Gate:
    """Named physical exit point a car may be routed to."""

    id: int
    name: str


@dataclass(slots=True)
class Ticket:
    """Aggregate representing one vehicle's valet session."""

    id: int
    user_id: str
    car_info: str
    status: TicketStatus
    created_at: datetime
    updated_at: datetime


@dataclass(slots=True)
class SensorObservation:
    """One timestamped bundle of positioning signals for a ticket."""

    id: int
    ticket_id: int
    proximity: Any | None
    wireless: Any | None
    motion: Any | None
    location: Any | None
    timestamp: datetime


@dataclass(slots=True)
class Dispatch:
    """Committed decision routing one ticket to one gate."""

    id: int
    ticket_id: int
    gate: str
    score: float
    status: str
    dispatched_at: datetime
    updated_at: datetime


@dataclass(slots=True)
class TicketAuditEntry:
    """History entry describing state changes for a ticket."""

    id: int
    ticket_id: int
    action: str
    from_status: TicketStatus | None
    to_status: TicketStatus | None
    created_at: datetime
    metadata: Mapping[str, Any] = field(default_factory=dict)


SIGNAL_FIELDS: tuple[str, ...] = ("proximity", "wireless", "motion", "location")


@dataclass(slots=True)
class SensorState:
    """Latest known value of each signal across a ticket's observations."""

    ticket_id: int
    proximity: Any | None = None
    wireless: Any | None = None
    motion: Any | None = None
    location: Any | None = None
    observed_at: datetime | None = None
    observation_count: int = 0

    @classmethod
    def from_observations(cls, ticket_id: int, observations: Sequence[SensorObservation]) -> "SensorState":
        state = cls(ticket_id=ticket_id)
        ordered = sorted(observations, key=lambda item: (item.timestamp, item.id))
        for observation in ordered:
            for name in SIGNAL_FIELDS:
                value = getattr(observation, name)
                if value is not None:
                    setattr(state, name, value)
            state.observed_at = observation.timestamp
        state.observation_count = len(ordered)
        return state

    def has_signals(self) -> bool:
        return any(getattr(self, name) is not None for name in SIGNAL_FIELDS)


@dataclass(slots=True, frozen=True)
class GateScore:
    """Fitness score computed for one gate."""

    gate: str
    score: float


@dataclass(slots=True)
class InferenceResult:
    """Outcome of a single inference run."""

    scores: list[GateScore]
    dispatched: bool
    dispatch: Dispatch | None = None
    created: bool = False
