from __future__ import annotations

import logging
import random
from typing import Any, Iterable, Mapping, Protocol

from .models import Gate, SensorState

logger = logging.getLogger(__name__)

MAX_GATE_SCORE = 99.0


class GateScorer(Protocol):
    async def score(self, gate: Gate, state: SensorState) -> float:
        ...


class RandomGateScorer:
    """Placeholder scorer drawing a uniform integer score for each gate.

    Pass a seeded ``random.Random`` to make the draws reproducible.
    """

    def __init__(self, *, rng: random.Random | None = None, max_score: int = int(MAX_GATE_SCORE)) -> None:
        self._rng = rng or random.Random()
        self._max_score = max_score

    async def score(self, gate: Gate, state: SensorState) -> float:
        return float(self._rng.randint(0, self._max_score))


class SignalStrengthScorer:
    """Deterministic scorer ranking gates by the signal strength seen near them.

    Proximity (BLE beacon) and wireless (Wi-Fi) payloads carry per-gate RSSI
    readings, either as a ``{gate: rssi}`` mapping or as a list of
    ``{"gate": name, "rssi": value}`` entries. Each reading is mapped linearly
    from ``floor_dbm`` (score 0) to ``ceiling_dbm`` (``max_score``) and the two
    signals are blended with fixed weights. Motion and location are not used.
    """

    def __init__(
        self,
        *,
        proximity_weight: float = 0.7,
        wireless_weight: float = 0.3,
        floor_dbm: float = -100.0,
        ceiling_dbm: float = -30.0,
        max_score: float = MAX_GATE_SCORE,
    ) -> None:
        if ceiling_dbm <= floor_dbm:
            raise ValueError("ceiling_dbm must be greater than floor_dbm")
        self._proximity_weight = proximity_weight
        self._wireless_weight = wireless_weight
        self._floor = floor_dbm
        self._ceiling = ceiling_dbm
        self._max_score = max_score

    async def score(self, gate: Gate, state: SensorState) -> float:
        proximity = self._normalize(_rssi_for_gate(state.proximity, gate.name))
        wireless = self._normalize(_rssi_for_gate(state.wireless, gate.name))
        blended = self._proximity_weight * proximity + self._wireless_weight * wireless
        return round(blended * self._max_score, 2)

    def _normalize(self, rssi: float | None) -> float:
        if rssi is None:
            return 0.0
        ratio = (rssi - self._floor) / (self._ceiling - self._floor)
        return min(1.0, max(0.0, ratio))


def _rssi_for_gate(payload: Any, gate_name: str) -> float | None:
    if payload is None:
        return None
    if isinstance(payload, Mapping):
        readings = payload.get("readings", payload.get("beacons"))
        if readings is not None:
            return _rssi_for_gate(readings, gate_name)
        return _as_float(payload.get(gate_name))
    if isinstance(payload, Iterable) and not isinstance(payload, (str, bytes)):
        best: float | None = None
        for entry in payload:
            if not isinstance(entry, Mapping) or str(entry.get("gate")) != gate_name:
                continue
            value = _as_float(entry.get("rssi"))
            if value is not None and (best is None or value > best):
                best = value
        return best
    return None


def _as_float(value: Any) -> float | None:
    if isinstance(value, bool) or value is None:
        return None
    try:
        return float(value)
    except (TypeError, ValueError):
        logger.debug("Ignoring non-numeric RSSI reading: %r", value)
        return None


def build_scorer(strategy: str, *, seed: int | None = None, max_score: float = MAX_GATE_SCORE) -> GateScorer:
    """Return the scorer configured by ``strategy`` (``random`` or ``signal``)."""

    normalized = strategy.strip().lower()
    if normalized == "random":
        return RandomGateScorer(rng=random.Random(seed), max_score=int(max_score))
    if normalized == "signal":
        return SignalStrengthScorer(max_score=max_score)
    raise ValueError(f"Unknown scoring strategy: {strategy}")
