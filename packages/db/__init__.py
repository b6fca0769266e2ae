"""Database models and utilities."""

from .models import (
    DispatchTable,
    GateTable,
    SensorObservationTable,
    TicketAuditLogTable,
    ValetTicketTable,
)

__all__ = [
    "DispatchTable",
    "GateTable",
    "SensorObservationTable",
    "TicketAuditLogTable",
    "ValetTicketTable",
]
