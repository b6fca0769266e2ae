from __future__ import annotations

from enum import Enum


class TicketStatus(str, Enum):
    """Supported states for a valet ticket's lifecycle."""

    PARKED = "parked"
    REQUESTED = "requested"
    DISPATCHED = "dispatched"


class DispatchStatus(str, Enum):
    """Well-known dispatch statuses set by valet operators."""

    PENDING = "pending"
    ACKNOWLEDGED = "acknowledged"
    EN_ROUTE = "en_route"
    COMPLETED = "completed"
    CANCELLED = "cancelled"


class TicketStateMachine:
    """Validate ticket lifecycle transitions.

    The lifecycle is linear: ``parked -> requested -> dispatched``. Staying in the
    same state is allowed so callers can treat repeated requests as no-ops.
    """

    _TRANSITIONS: dict[TicketStatus, set[TicketStatus]] = {
        TicketStatus.PARKED: {TicketStatus.REQUESTED},
        TicketStatus.REQUESTED: {TicketStatus.DISPATCHED},
        TicketStatus.DISPATCHED: set(),
    }

    @classmethod
    def initial_state(cls) -> TicketStatus:
        return TicketStatus.PARKED

    @classmethod
    def can_transition(cls, current: TicketStatus, new: TicketStatus) -> bool:
        if current == new:
            return True
        return new in cls._TRANSITIONS.get(current, set())

    @classmethod
    def assert_transition(cls, current: TicketStatus, new: TicketStatus) -> None:
        if not cls.can_transition(current, new):
            raise ValueError(f"Invalid ticket status transition: {current.value} -> {new.value}")
