"""Gate scoring, dispatch commit and operator-driven dispatch updates."""

from __future__ import annotations

import logging
from collections.abc import Callable
from datetime import datetime
from typing import Sequence

from opentelemetry import trace

from app.metrics import MetricsRegistry, metrics_registry, register_default_metrics
from app.metrics.definitions import (
    DISPATCHES_COMMITTED_TOTAL,
    INFERENCE_BELOW_THRESHOLD_TOTAL,
    INFERENCE_DURATION_SECONDS,
    INFERENCE_RUNS_TOTAL,
)

from .errors import ConfigurationError, DispatchNotFoundError, TicketNotFoundError, ValidationError
from .locks import KeyedLock
from .models import Dispatch, Gate, GateScore, InferenceResult, SensorState
from .repository import ValetRepository
from .scoring import MAX_GATE_SCORE, GateScorer, RandomGateScorer
from .service import utcnow
from .state import DispatchStatus, TicketStatus

logger = logging.getLogger(__name__)
tracer = trace.get_tracer(__name__)

DEFAULT_CONFIDENCE_THRESHOLD = 90.0


def select_best(scores: Sequence[GateScore]) -> GateScore:
    """Return the highest score, keeping the earliest gate on ties."""

    if not scores:
        raise ValueError("Cannot select a gate from an empty score list")
    best = scores[0]
    for candidate in scores[1:]:
        if candidate.score > best.score:
            best = candidate
    return best


class DispatchEngine:
    """Score every gate for a ticket and commit at most one dispatch."""

    def __init__(
        self,
        repository: ValetRepository,
        *,
        scorer: GateScorer | None = None,
        threshold: float = DEFAULT_CONFIDENCE_THRESHOLD,
        max_score: float = MAX_GATE_SCORE,
        clock: Callable[[], datetime] = utcnow,
        metrics: MetricsRegistry | None = None,
    ) -> None:
        self._repository = repository
        self._scorer = scorer or RandomGateScorer()
        self._threshold = threshold
        self._max_score = max_score
        self._clock = clock
        self._metrics = register_default_metrics(metrics or metrics_registry)
        self._locks = KeyedLock()

    async def run_inference(self, ticket_id: int) -> InferenceResult:
        with tracer.start_as_current_span("valet.run_inference") as span:
            span.set_attribute("valet.ticket_id", ticket_id)
            with self._metrics.time_distribution(INFERENCE_DURATION_SECONDS):
                result = await self._run_inference(ticket_id)
            span.set_attribute("valet.dispatched", result.dispatched)
        self._metrics.counter(INFERENCE_RUNS_TOTAL).inc()
        return result

    async def score_gates(self, gates: Sequence[Gate], state: SensorState) -> list[GateScore]:
        scores: list[GateScore] = []
        for gate in gates:
            raw = float(await self._scorer.score(gate, state))
            value = min(self._max_score, max(0.0, raw))
            if value != raw:
                logger.warning("Clamped out-of-range score %s for gate %s", raw, gate.name)
            scores.append(GateScore(gate=gate.name, score=value))
        return scores

    async def _run_inference(self, ticket_id: int) -> InferenceResult:
        ticket = await self._repository.get_ticket(ticket_id)
        if ticket is None:
            raise TicketNotFoundError(ticket_id)

        gates = await self._repository.list_gates()
        if not gates:
            raise ConfigurationError("No gates registered; cannot run inference")

        observations = await self._repository.list_observations(ticket_id)
        state = SensorState.from_observations(ticket_id, observations)
        if not state.has_signals():
            logger.debug("Ticket %s has no sensor signals; scoring with an empty state", ticket_id)
        scores = await self.score_gates(gates, state)
        best = select_best(scores)

        async with self._locks.acquire(ticket_id):
            existing = await self._repository.get_dispatch_for_ticket(ticket_id)
            if existing is not None:
                return InferenceResult(scores=scores, dispatched=True, dispatch=existing)

            if best.score <= self._threshold:
                logger.info(
                    "Ticket %s best gate %s scored %s, not above threshold %s",
                    ticket_id,
                    best.gate,
                    best.score,
                    self._threshold,
                )
                self._metrics.counter(INFERENCE_BELOW_THRESHOLD_TOTAL).inc()
                return InferenceResult(scores=scores, dispatched=False)

            current = await self._repository.get_ticket(ticket_id)
            if current is None:
                raise TicketNotFoundError(ticket_id)
            if current.status == TicketStatus.REQUESTED:
                dispatch, created = await self._repository.commit_dispatch(
                    ticket_id,
                    gate=best.gate,
                    score=best.score,
                    dispatched_at=self._clock(),
                )
            else:
                logger.warning(
                    "Ticket %s is %s; gate %s not dispatched", ticket_id, current.status.value, best.gate
                )
                dispatch, created = None, False

        if dispatch is None:
            # Another worker may have moved the ticket on between our reads.
            dispatch = await self._repository.get_dispatch_for_ticket(ticket_id)
            return InferenceResult(scores=scores, dispatched=dispatch is not None, dispatch=dispatch)
        if created:
            logger.info("Dispatched ticket %s to gate %s (score %s)", ticket_id, dispatch.gate, dispatch.score)
            self._metrics.counter(DISPATCHES_COMMITTED_TOTAL).inc(labels={"gate": dispatch.gate})
        return InferenceResult(scores=scores, dispatched=True, dispatch=dispatch, created=created)


class DispatchService:
    """Operator-facing access to committed dispatches."""

    def __init__(
        self,
        repository: ValetRepository,
        *,
        strict_status: bool = False,
        clock: Callable[[], datetime] = utcnow,
    ) -> None:
        self._repository = repository
        self._strict_status = strict_status
        self._clock = clock

    async def list_dispatches(self) -> list[Dispatch]:
        return await self._repository.list_dispatches()

    async def get_dispatch(self, dispatch_id: int) -> Dispatch:
        dispatch = await self._repository.get_dispatch(dispatch_id)
        if dispatch is None:
            raise DispatchNotFoundError(dispatch_id)
        return dispatch

    async def set_status(self, dispatch_id: int, status: str | None) -> Dispatch:
        """Store ``status`` exactly as given; only an all-blank value is rejected."""

        if status is None or not status.strip():
            raise ValidationError("status required")
        if self._strict_status and status not in {item.value for item in DispatchStatus}:
            raise ValidationError(f"Unsupported dispatch status: {status!r}")

        updated = await self._repository.update_dispatch_status(dispatch_id, status, self._clock())
        if updated is None:
            raise DispatchNotFoundError(dispatch_id)
        logger.info("Dispatch %s status set to %r", dispatch_id, status)
        return updated
