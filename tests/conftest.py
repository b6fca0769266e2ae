from __future__ import annotations

from datetime import datetime, timedelta, timezone

import pytest
import pytest_asyncio
from sqlalchemy.ext.asyncio import AsyncEngine, async_sessionmaker, create_async_engine

from app.valet.models import Gate, SensorState
from app.valet.repository import ValetRepository

DEFAULT_GATES = ("A", "B", "C", "D")


class FakeClock:
    """Manually advanced clock used to make timestamps predictable."""

    def __init__(self, start: datetime | None = None) -> None:
        self.now = start or datetime(2024, 5, 1, 12, 0, tzinfo=timezone.utc)

    def __call__(self) -> datetime:
        return self.now

    def advance(self, seconds: float = 1.0) -> datetime:
        self.now = self.now + timedelta(seconds=seconds)
        return self.now


class FixedScorer:
    """Scorer returning preconfigured scores per gate name."""

    def __init__(self, scores: dict[str, float] | None = None, *, default: float = 0.0) -> None:
        self.scores = dict(scores or {})
        self.default = default
        self.states: list[SensorState] = []

    async def score(self, gate: Gate, state: SensorState) -> float:
        self.states.append(state)
        return self.scores.get(gate.name, self.default)


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest_asyncio.fixture
async def engine(tmp_path) -> AsyncEngine:
    engine = create_async_engine(f"sqlite+aiosqlite:///{tmp_path / 'valet.db'}")
    try:
        yield engine
    finally:
        await engine.dispose()


@pytest_asyncio.fixture
async def session_factory(engine: AsyncEngine) -> async_sessionmaker:
    return async_sessionmaker(engine, expire_on_commit=False)


@pytest_asyncio.fixture
async def bare_repository(session_factory: async_sessionmaker, engine: AsyncEngine) -> ValetRepository:
    repository = ValetRepository(session_factory, engine=engine)
    await repository.ensure_schema()
    return repository


@pytest_asyncio.fixture
async def repository(bare_repository: ValetRepository) -> ValetRepository:
    await bare_repository.seed_gates(DEFAULT_GATES)
    return bare_repository
