import time

import pytest

from aiguide.errors import NotFoundError, SessionBusyError
from aiguide.models import Session
from aiguide.storage import InMemorySessionStore


def _session(session_id: str) -> Session:
    now = time.time()
    return Session(session_id=session_id, user_task="写一首诗", created_at=now, updated_at=now)


@pytest.mark.asyncio
async def test_new_session_ids_are_unique_and_increasing():
    store = InMemorySessionStore()

    ids = []
    for _ in range(50):
        sid = await store.new_session_id()
        await store.create(_session(sid))
        ids.append(sid)

    assert len(set(ids)) == len(ids)
    assert [int(i) for i in ids] == sorted(int(i) for i in ids)
    assert all(i.isdigit() for i in ids)


@pytest.mark.asyncio
async def test_create_get_save_and_close():
    store = InMemorySessionStore()
    created = await store.create(_session("1"))

    assert await store.get("1") is created
    assert await store.get("missing") is None

    created.iteration_count = 2
    before = created.updated_at
    await store.save(created)
    loaded = await store.get("1")
    assert loaded is not None
    assert loaded.iteration_count == 2
    assert loaded.updated_at >= before

    with pytest.raises(ValueError):
        await store.create(_session("1"))

    await store.close()
    assert await store.get("1") is None
    assert len(store) == 0


@pytest.mark.asyncio
async def test_lock_is_single_flight_per_session():
    store = InMemorySessionStore()
    await store.create(_session("a"))
    await store.create(_session("b"))

    async with store.lock("a"):
        with pytest.raises(SessionBusyError):
            async with store.lock("a"):
                pass
        # Other sessions are unaffected.
        async with store.lock("b"):
            pass

    # Released after the first holder exits.
    async with store.lock("a"):
        pass


@pytest.mark.asyncio
async def test_lock_released_when_body_raises():
    store = InMemorySessionStore()
    await store.create(_session("x"))

    with pytest.raises(RuntimeError):
        async with store.lock("x"):
            raise RuntimeError("boom")

    async with store.lock("x"):
        pass


@pytest.mark.asyncio
async def test_lock_on_unknown_session_is_not_found():
    store = InMemorySessionStore()

    for session_id in ("missing", "also-missing"):
        with pytest.raises(NotFoundError):
            async with store.lock(session_id):
                pass

    assert store._locks == {}
