from __future__ import annotations

import logging
from collections.abc import Callable
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Sequence

from .errors import InvalidTicketTransitionError, TicketNotFoundError, ValidationError
from .models import Gate, SensorObservation, SensorState, Ticket, TicketAuditEntry
from .repository import ValetRepository
from .state import TicketStateMachine, TicketStatus

logger = logging.getLogger(__name__)


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _as_utc(value: datetime) -> datetime:
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


@dataclass(slots=True)
class GateRegistry:
    """Read access to the configured exit gates."""

    repository: ValetRepository

    async def ensure_default_gates(self, names: Sequence[str]) -> None:
        if await self.repository.seed_gates(list(names)):
            logger.info("Seeded default gates: %s", ", ".join(names))

    async def list_gates(self) -> list[Gate]:
        return await self.repository.list_gates()


@dataclass(slots=True)
class TicketService:
    """High level orchestration for ticket lifecycle operations."""

    repository: ValetRepository
    clock: Callable[[], datetime] = field(default=utcnow)

    async def create_ticket(self, *, user_id: str | None, car_info: str | None) -> Ticket:
        if not (user_id or "").strip() or not (car_info or "").strip():
            raise ValidationError("userId and carInfo required")

        ticket = await self.repository.create_ticket(
            user_id=user_id,
            car_info=car_info,
            status=TicketStateMachine.initial_state(),
            created_at=self.clock(),
        )
        logger.info("Created ticket %s for user %s", ticket.id, ticket.user_id)
        return ticket

    async def get_ticket(self, ticket_id: int) -> Ticket:
        ticket = await self.repository.get_ticket(ticket_id)
        if ticket is None:
            raise TicketNotFoundError(ticket_id)
        return ticket

    async def list_tickets(self) -> list[Ticket]:
        return await self.repository.list_tickets()

    async def request_retrieval(self, ticket_id: int) -> Ticket:
        """Move a parked ticket to ``requested``.

        Requesting an already requested ticket returns it unchanged. A
        dispatched ticket cannot go back to ``requested``.
        """

        ticket = await self.get_ticket(ticket_id)
        target = TicketStatus.REQUESTED
        try:
            TicketStateMachine.assert_transition(ticket.status, target)
        except ValueError as exc:
            raise InvalidTicketTransitionError(f"Cannot request retrieval of ticket {ticket_id}: {exc}") from exc
        if ticket.status == target:
            return ticket

        updated = await self.repository.change_ticket_status(
            ticket_id,
            from_status=ticket.status,
            to_status=target,
            updated_at=self.clock(),
            action="retrieval_requested",
        )
        if updated is None:
            # Lost a race with a concurrent transition; report the current state.
            current = await self.get_ticket(ticket_id)
            if current.status == target:
                return current
            raise InvalidTicketTransitionError(
                f"Cannot request retrieval of ticket {ticket_id} in status {current.status.value}"
            )
        logger.info("Retrieval requested for ticket %s", ticket_id)
        return updated

    async def get_audit_log(self, ticket_id: int) -> list[TicketAuditEntry]:
        await self.get_ticket(ticket_id)
        return await self.repository.get_audit_log(ticket_id)


@dataclass(slots=True)
class SensorIngestService:
    """Append-only intake of positioning observations."""

    repository: ValetRepository
    clock: Callable[[], datetime] = field(default=utcnow)

    async def record_observation(
        self,
        ticket_id: int,
        *,
        proximity: Any | None = None,
        wireless: Any | None = None,
        motion: Any | None = None,
        location: Any | None = None,
        timestamp: datetime | None = None,
    ) -> SensorObservation:
        now = self.clock()
        observation = await self.repository.add_observation(
            ticket_id,
            proximity=proximity,
            wireless=wireless,
            motion=motion,
            location=location,
            timestamp=_as_utc(timestamp) if timestamp is not None else now,
            received_at=now,
        )
        if observation is None:
            raise TicketNotFoundError(ticket_id)
        logger.debug("Recorded observation %s for ticket %s", observation.id, ticket_id)
        return observation

    async def list_observations(self, ticket_id: int) -> list[SensorObservation]:
        return await self.repository.list_observations(ticket_id)

    async def sensor_state(self, ticket_id: int) -> SensorState:
        observations = await self.repository.list_observations(ticket_id)
        return SensorState.from_observations(ticket_id, observations)
