import asyncio

import pytest

from app.valet.locks import KeyedLock


@pytest.mark.asyncio
async def test_keyed_lock_serialises_same_key_and_drops_idle_entries():
    locks = KeyedLock()
    order: list[str] = []

    async def worker(key: int, name: str) -> None:
        async with locks.acquire(key):
            order.append(f"{name}-start")
            await asyncio.sleep(0.01)
            order.append(f"{name}-end")

    await asyncio.gather(worker(1, "first"), worker(1, "second"))

    assert order == ["first-start", "first-end", "second-start", "second-end"]
    assert len(locks) == 0


@pytest.mark.asyncio
async def test_keyed_lock_allows_different_keys_concurrently():
    locks = KeyedLock()
    inside = asyncio.Event()

    async def holder() -> None:
        async with locks.acquire("a"):
            await inside.wait()

    task = asyncio.create_task(holder())
    await asyncio.sleep(0)
    async with locks.acquire("b"):
        assert len(locks) == 2
        inside.set()
    await task

    assert len(locks) == 0
