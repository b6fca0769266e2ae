from __future__ import annotations

from datetime import datetime, timezone
from typing import Any, Mapping, Sequence

from sqlalchemy import func
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker
from sqlmodel import SQLModel, select

from packages.db.models import (
    DispatchTable,
    GateTable,
    SensorObservationTable,
    TicketAuditLogTable,
    ValetTicketTable,
)

from .models import Dispatch, Gate, SensorObservation, Ticket, TicketAuditEntry
from .state import DispatchStatus, TicketStatus


class ValetRepository:
    """Persistence helper wrapping gates, tickets, sensor data, dispatches and audit logs.

    Every mutating method runs inside a single transaction so a failure never
    leaves a half-written observation or an orphaned dispatch behind.
    """

    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        *,
        engine: AsyncEngine | None = None,
    ) -> None:
        self._session_factory = session_factory
        self._engine: AsyncEngine | None = engine

    async def ensure_schema(self) -> None:
        if self._engine is None:
            raise RuntimeError("Session factory is not bound to an async engine")
        async with self._engine.begin() as connection:
            await connection.run_sync(SQLModel.metadata.create_all)

    # Gates ---------------------------------------------------------------

    async def seed_gates(self, names: Sequence[str]) -> bool:
        """Insert ``names`` when the gate table is empty. Returns ``True`` if seeded."""

        async with self._session_factory() as session:
            async with session.begin():
                count = (await session.execute(select(func.count()).select_from(GateTable))).scalar_one()
                if count:
                    return False
                for name in names:
                    session.add(GateTable(name=name))
        return True

    async def list_gates(self) -> list[Gate]:
        async with self._session_factory() as session:
            result = await session.execute(select(GateTable).order_by(GateTable.id.asc()))
            return [Gate(id=row.id, name=row.name) for row in result.scalars().all()]

    # Tickets -------------------------------------------------------------

    async def create_ticket(
        self,
        *,
        user_id: str,
        car_info: str,
        status: TicketStatus,
        created_at: datetime,
    ) -> Ticket:
        async with self._session_factory() as session:
            async with session.begin():
                row = ValetTicketTable(
                    user_id=user_id,
                    car_info=car_info,
                    status=status.value,
                    created_at=created_at,
                    updated_at=created_at,
                )
                session.add(row)
                await session.flush()
                session.add(
                    self._audit_row(
                        ticket_id=row.id,
                        action="created",
                        from_status=None,
                        to_status=status,
                        created_at=created_at,
                    )
                )
                ticket = self._table_to_ticket(row)
        return ticket

    async def get_ticket(self, ticket_id: int) -> Ticket | None:
        async with self._session_factory() as session:
            row = await session.get(ValetTicketTable, ticket_id)
            if row is None:
                return None
            return self._table_to_ticket(row)

    async def list_tickets(self) -> list[Ticket]:
        async with self._session_factory() as session:
            result = await session.execute(select(ValetTicketTable).order_by(ValetTicketTable.id.asc()))
            return [self._table_to_ticket(row) for row in result.scalars().all()]

    async def change_ticket_status(
        self,
        ticket_id: int,
        *,
        from_status: TicketStatus,
        to_status: TicketStatus,
        updated_at: datetime,
        action: str,
    ) -> Ticket | None:
        """Move a ticket from ``from_status`` to ``to_status``.

        Returns ``None`` when the ticket is gone or no longer in ``from_status``.
        """

        async with self._session_factory() as session:
            async with session.begin():
                row = await session.get(ValetTicketTable, ticket_id, with_for_update=True)
                if row is None or row.status != from_status.value:
                    return None
                row.status = to_status.value
                row.updated_at = updated_at
                session.add(
                    self._audit_row(
                        ticket_id=ticket_id,
                        action=action,
                        from_status=from_status,
                        to_status=to_status,
                        created_at=updated_at,
                    )
                )
                ticket = self._table_to_ticket(row)
        return ticket

    async def get_audit_log(self, ticket_id: int) -> list[TicketAuditEntry]:
        async with self._session_factory() as session:
            result = await session.execute(
                select(TicketAuditLogTable)
                .where(TicketAuditLogTable.ticket_id == ticket_id)
                .order_by(TicketAuditLogTable.created_at.asc(), TicketAuditLogTable.id.asc())
            )
            return [self._table_to_audit(row) for row in result.scalars().all()]

    # Sensor data ---------------------------------------------------------

    async def add_observation(
        self,
        ticket_id: int,
        *,
        proximity: Any | None,
        wireless: Any | None,
        motion: Any | None,
        location: Any | None,
        timestamp: datetime,
        received_at: datetime,
    ) -> SensorObservation | None:
        """Append an observation and touch the ticket. ``None`` when the ticket is missing."""

        async with self._session_factory() as session:
            async with session.begin():
                ticket_row = await session.get(ValetTicketTable, ticket_id)
                if ticket_row is None:
                    return None
                row = SensorObservationTable(
                    ticket_id=ticket_id,
                    ble=proximity,
                    wifi=wireless,
                    imu=motion,
                    gps=location,
                    timestamp=timestamp,
                )
                session.add(row)
                ticket_row.updated_at = received_at
                await session.flush()
                observation = self._table_to_observation(row)
        return observation

    async def list_observations(self, ticket_id: int) -> list[SensorObservation]:
        async with self._session_factory() as session:
            result = await session.execute(
                select(SensorObservationTable)
                .where(SensorObservationTable.ticket_id == ticket_id)
                .order_by(SensorObservationTable.timestamp.asc(), SensorObservationTable.id.asc())
            )
            return [self._table_to_observation(row) for row in result.scalars().all()]

    # Dispatches ----------------------------------------------------------

    async def get_dispatch(self, dispatch_id: int) -> Dispatch | None:
        async with self._session_factory() as session:
            row = await session.get(DispatchTable, dispatch_id)
            if row is None:
                return None
            return self._table_to_dispatch(row)

    async def get_dispatch_for_ticket(self, ticket_id: int) -> Dispatch | None:
        async with self._session_factory() as session:
            result = await session.execute(select(DispatchTable).where(DispatchTable.ticket_id == ticket_id))
            row = result.scalars().first()
            if row is None:
                return None
            return self._table_to_dispatch(row)

    async def list_dispatches(self) -> list[Dispatch]:
        async with self._session_factory() as session:
            result = await session.execute(select(DispatchTable).order_by(DispatchTable.id.asc()))
            return [self._table_to_dispatch(row) for row in result.scalars().all()]

    async def commit_dispatch(
        self,
        ticket_id: int,
        *,
        gate: str,
        score: float,
        dispatched_at: datetime,
    ) -> tuple[Dispatch | None, bool]:
        """Atomically insert a dispatch and move the ticket to ``dispatched``.

        Returns ``(dispatch, created)``. When a dispatch already exists for the
        ticket (including one inserted concurrently by another process and
        rejected by the unique constraint) the existing row is returned with
        ``created=False``. ``(None, False)`` means the ticket is missing or not
        in the ``requested`` state.
        """

        try:
            async with self._session_factory() as session:
                async with session.begin():
                    existing = await session.execute(
                        select(DispatchTable).where(DispatchTable.ticket_id == ticket_id)
                    )
                    existing_row = existing.scalars().first()
                    if existing_row is not None:
                        return self._table_to_dispatch(existing_row), False

                    ticket_row = await session.get(ValetTicketTable, ticket_id, with_for_update=True)
                    if ticket_row is None or ticket_row.status != TicketStatus.REQUESTED.value:
                        return None, False

                    row = DispatchTable(
                        ticket_id=ticket_id,
                        gate=gate,
                        score=float(score),
                        status=DispatchStatus.PENDING.value,
                        dispatched_at=dispatched_at,
                        updated_at=dispatched_at,
                    )
                    session.add(row)
                    ticket_row.status = TicketStatus.DISPATCHED.value
                    ticket_row.updated_at = dispatched_at
                    session.add(
                        self._audit_row(
                            ticket_id=ticket_id,
                            action="dispatched",
                            from_status=TicketStatus.REQUESTED,
                            to_status=TicketStatus.DISPATCHED,
                            created_at=dispatched_at,
                            metadata={"gate": gate, "score": float(score)},
                        )
                    )
                    await session.flush()
                    dispatch = self._table_to_dispatch(row)
        except IntegrityError:
            current = await self.get_dispatch_for_ticket(ticket_id)
            if current is None:
                raise
            return current, False
        return dispatch, True

    async def update_dispatch_status(
        self,
        dispatch_id: int,
        status: str,
        updated_at: datetime,
    ) -> Dispatch | None:
        async with self._session_factory() as session:
            async with session.begin():
                row = await session.get(DispatchTable, dispatch_id, with_for_update=True)
                if row is None:
                    return None
                previous = row.status
                row.status = status
                row.updated_at = updated_at
                session.add(
                    self._audit_row(
                        ticket_id=row.ticket_id,
                        action="dispatch_status_changed",
                        from_status=None,
                        to_status=None,
                        created_at=updated_at,
                        metadata={"dispatch_id": dispatch_id, "from": previous, "to": status},
                    )
                )
                dispatch = self._table_to_dispatch(row)
        return dispatch

    # Mapping helpers -----------------------------------------------------

    @staticmethod
    def _audit_row(
        *,
        ticket_id: int,
        action: str,
        from_status: TicketStatus | None,
        to_status: TicketStatus | None,
        created_at: datetime,
        metadata: Mapping[str, Any] | None = None,
    ) -> TicketAuditLogTable:
        return TicketAuditLogTable(
            ticket_id=ticket_id,
            action=action,
            from_status=from_status.value if from_status else None,
            to_status=to_status.value if to_status else None,
            metadata_=dict(metadata or {}),
            created_at=created_at,
        )

    @staticmethod
    def _table_to_ticket(row: ValetTicketTable) -> Ticket:
        return Ticket(
            id=row.id,
            user_id=row.user_id,
            car_info=row.car_info,
            status=TicketStatus(row.status),
            created_at=_ensure_datetime(row.created_at),
            updated_at=_ensure_datetime(row.updated_at),
        )

    @staticmethod
    def _table_to_observation(row: SensorObservationTable) -> SensorObservation:
        return SensorObservation(
            id=row.id,
            ticket_id=row.ticket_id,
            proximity=row.ble,
            wireless=row.wifi,
            motion=row.imu,
            location=row.gps,
            timestamp=_ensure_datetime(row.timestamp),
        )

    @staticmethod
    def _table_to_dispatch(row: DispatchTable) -> Dispatch:
        return Dispatch(
            id=row.id,
            ticket_id=row.ticket_id,
            gate=row.gate,
            score=float(row.score),
            status=row.status,
            dispatched_at=_ensure_datetime(row.dispatched_at),
            updated_at=_ensure_datetime(row.updated_at),
        )

    @staticmethod
    def _table_to_audit(row: TicketAuditLogTable) -> TicketAuditEntry:
        from_status = row.from_status
        to_status = row.to_status
        return TicketAuditEntry(
            id=row.id,
            ticket_id=row.ticket_id,
            action=row.action,
            from_status=TicketStatus(from_status) if from_status else None,
            to_status=TicketStatus(to_status) if to_status else None,
            metadata=dict(row.metadata_ or {}),
            created_at=_ensure_datetime(row.created_at),
        )


def _ensure_datetime(value: datetime | None) -> datetime:
    if isinstance(value, datetime):
        if value.tzinfo is None:
            return value.replace(tzinfo=timezone.utc)
        return value
    raise TypeError("Expected datetime value from database")
