"""SQLModel table definitions for the valet data layer."""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Any

from sqlalchemy import Column, DateTime, Float, ForeignKey, Integer, JSON, String, Text
from sqlmodel import Field, SQLModel


def _utcnow() -> datetime:
    """Return a timezone aware UTC timestamp."""

    return datetime.now(timezone.utc)


class GateTable(SQLModel, table=True):
    """Exit gates a retrieved car can be routed to."""

    __tablename__ = "gates"

    id: int | None = Field(default=None, primary_key=True)
    name: str = Field(sa_column=Column(String(50), nullable=False, unique=True))


class ValetTicketTable(SQLModel, table=True):
    """One vehicle's valet session."""

    __tablename__ = "valet_tickets"

    id: int | None = Field(default=None, primary_key=True)
    user_id: str = Field(sa_column=Column(String(255), nullable=False))
    car_info: str = Field(sa_column=Column(String(500), nullable=False))
    status: str = Field(sa_column=Column(String(50), nullable=False))
    created_at: datetime = Field(default_factory=_utcnow, sa_column=Column(DateTime(timezone=True), nullable=False))
    updated_at: datetime = Field(default_factory=_utcnow, sa_column=Column(DateTime(timezone=True), nullable=False))


class SensorObservationTable(SQLModel, table=True):
    """Append-only positioning readings streamed for a ticket."""

    __tablename__ = "sensor_data"

    id: int | None = Field(default=None, primary_key=True)
    ticket_id: int = Field(
        sa_column=Column(Integer, ForeignKey("valet_tickets.id", ondelete="CASCADE"), nullable=False, index=True)
    )
    ble: Any | None = Field(default=None, sa_column=Column(JSON, nullable=True))
    wifi: Any | None = Field(default=None, sa_column=Column(JSON, nullable=True))
    imu: Any | None = Field(default=None, sa_column=Column(JSON, nullable=True))
    gps: Any | None = Field(default=None, sa_column=Column(JSON, nullable=True))
    timestamp: datetime = Field(default_factory=_utcnow, sa_column=Column(DateTime(timezone=True), nullable=False))


class DispatchTable(SQLModel, table=True):
    """Committed gate decision; the unique ticket_id keeps it to one per ticket."""

    __tablename__ = "dispatches"

    id: int | None = Field(default=None, primary_key=True)
    ticket_id: int = Field(
        sa_column=Column(
            Integer,
            ForeignKey("valet_tickets.id", ondelete="CASCADE"),
            nullable=False,
            unique=True,
        )
    )
    gate: str = Field(sa_column=Column(String(50), nullable=False))
    score: float = Field(sa_column=Column(Float, nullable=False))
    status: str = Field(sa_column=Column(Text, nullable=False))
    dispatched_at: datetime = Field(
        default_factory=_utcnow, sa_column=Column(DateTime(timezone=True), nullable=False)
    )
    updated_at: datetime = Field(default_factory=_utcnow, sa_column=Column(DateTime(timezone=True), nullable=False))


class TicketAuditLogTable(SQLModel, table=True):
    """Audit trail describing discrete ticket actions."""

    __tablename__ = "ticket_audit_logs"

    id: int | None = Field(default=None, primary_key=True)
    ticket_id: int = Field(
        sa_column=Column(Integer, ForeignKey("valet_tickets.id", ondelete="CASCADE"), nullable=False, index=True)
    )
    action: str = Field(sa_column=Column(String(100), nullable=False))
    from_status: str | None = Field(default=None, sa_column=Column(String(50), nullable=True))
    to_status: str | None = Field(default=None, sa_column=Column(String(50), nullable=True))
    metadata_: dict[str, Any] = Field(
        default_factory=dict, sa_column=Column("metadata", JSON, nullable=False)
    )
    created_at: datetime = Field(default_factory=_utcnow, sa_column=Column(DateTime(timezone=True), nullable=False))
