from __future__ import annotations

from dataclasses import dataclass

from sqlalchemy import text
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker, create_async_engine


@dataclass(slots=True)
class DatabaseHandle:
    """Owns the async engine and session factory for the lifetime of the process."""

    engine: AsyncEngine
    session_factory: async_sessionmaker[AsyncSession]

    @classmethod
    def open(cls, url: str, *, echo: bool = False) -> "DatabaseHandle":
        engine = create_async_engine(url, echo=echo, pool_pre_ping=True)
        return cls(engine=engine, session_factory=async_sessionmaker(engine, expire_on_commit=False))

    async def test_connection(self) -> bool:
        async with self.engine.connect() as connection:
            await connection.execute(text("SELECT 1"))
        return True

    async def close(self) -> None:
        await self.engine.dispose()
