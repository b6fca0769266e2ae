"""Valet ticket lifecycle, sensor ingest and gate dispatch."""

from .dispatch import DispatchEngine, DispatchService, select_best
from .errors import (
    ConfigurationError,
    DispatchNotFoundError,
    InvalidTicketTransitionError,
    NotFoundError,
    TicketNotFoundError,
    ValetError,
    ValidationError,
)
from .models import Dispatch, Gate, GateScore, InferenceResult, SensorObservation, SensorState, Ticket
from .repository import ValetRepository
from .scoring import GateScorer, RandomGateScorer, SignalStrengthScorer, build_scorer
from .service import GateRegistry, SensorIngestService, TicketService
from .state import DispatchStatus, TicketStateMachine, TicketStatus

__all__ = [
    "ConfigurationError",
    "Dispatch",
    "DispatchEngine",
    "DispatchNotFoundError",
    "DispatchService",
    "DispatchStatus",
    "Gate",
    "GateRegistry",
    "GateScore",
    "GateScorer",
    "InferenceResult",
    "InvalidTicketTransitionError",
    "NotFoundError",
    "RandomGateScorer",
    "SensorIngestService",
    "SensorObservation",
    "SensorState",
    "SignalStrengthScorer",
    "Ticket",
    "TicketNotFoundError",
    "TicketService",
    "TicketStateMachine",
    "TicketStatus",
    "ValetError",
    "ValetRepository",
    "ValidationError",
    "build_scorer",
    "select_best",
]
