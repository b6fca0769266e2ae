from __future__ import annotations

from unittest.mock import AsyncMock

import pytest

from app.valet.dispatch import DispatchService
from app.valet.errors import DispatchNotFoundError, NotFoundError, ValidationError
from app.valet.repository import ValetRepository
from app.valet.service import TicketService


async def _dispatch_id(repository: ValetRepository, clock) -> int:
    tickets = TicketService(repository, clock=clock)
    ticket = await tickets.create_ticket(user_id="u1", car_info="Red Civic")
    await tickets.request_retrieval(ticket.id)
    dispatch, _ = await repository.commit_dispatch(ticket.id, gate="C", score=93.5, dispatched_at=clock.now)
    assert dispatch is not None
    return dispatch.id


@pytest.mark.asyncio
async def test_set_status_updates_dispatch(repository: ValetRepository, clock):
    dispatch_id = await _dispatch_id(repository, clock)
    service = DispatchService(repository, clock=clock)
    clock.advance(30)

    updated = await service.set_status(dispatch_id, "en_route")

    assert updated.status == "en_route"
    assert updated.updated_at == clock.now
    assert updated.gate == "C"
    assert [item.status for item in await service.list_dispatches()] == ["en_route"]


@pytest.mark.asyncio
async def test_set_status_stores_padded_and_long_values_verbatim(repository: ValetRepository, clock):
    dispatch_id = await _dispatch_id(repository, clock)
    service = DispatchService(repository, clock=clock)
    padded = "  Acknowledged by valet #3 "
    long_note = "Car brought round to the north gate, keys with the front desk. " * 4

    assert (await service.set_status(dispatch_id, padded)).status == padded
    assert (await service.get_dispatch(dispatch_id)).status == padded

    assert (await service.set_status(dispatch_id, long_note)).status == long_note
    assert (await service.get_dispatch(dispatch_id)).status == long_note
    audit = await repository.get_audit_log((await service.get_dispatch(dispatch_id)).ticket_id)
    assert audit[-1].metadata["to"] == long_note


@pytest.mark.asyncio
async def test_set_status_accepts_free_text_by_default(repository: ValetRepository, clock):
    dispatch_id = await _dispatch_id(repository, clock)
    service = DispatchService(repository, clock=clock)

    updated = await service.set_status(dispatch_id, "waiting at curb")

    assert updated.status == "waiting at curb"


@pytest.mark.asyncio
async def test_strict_mode_rejects_unknown_status(repository: ValetRepository, clock):
    dispatch_id = await _dispatch_id(repository, clock)
    service = DispatchService(repository, strict_status=True, clock=clock)

    with pytest.raises(ValidationError):
        await service.set_status(dispatch_id, "teleported")
    with pytest.raises(ValidationError):
        await service.set_status(dispatch_id, " completed")

    assert (await service.get_dispatch(dispatch_id)).status == "pending"
    assert (await service.set_status(dispatch_id, "completed")).status == "completed"


@pytest.mark.asyncio
async def test_unknown_dispatch_is_not_found(repository: ValetRepository, clock):
    dispatch_id = await _dispatch_id(repository, clock)
    service = DispatchService(repository, clock=clock)

    with pytest.raises(DispatchNotFoundError) as excinfo:
        await service.set_status(dispatch_id + 100, "completed")

    assert isinstance(excinfo.value, NotFoundError)
    assert (await service.get_dispatch(dispatch_id)).status == "pending"
    with pytest.raises(DispatchNotFoundError):
        await service.get_dispatch(dispatch_id + 100)


@pytest.mark.asyncio
@pytest.mark.parametrize("status", [None, "", "   "])
async def test_blank_status_is_rejected_before_storage(status):
    repository = AsyncMock()
    service = DispatchService(repository)

    with pytest.raises(ValidationError):
        await service.set_status(1, status)

    repository.update_dispatch_status.assert_not_awaited()
