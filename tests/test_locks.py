"""Unit tests for key-scoped critical sections."""

import asyncio

import pytest

from app.adapters.rate_limit.locks import GlobalLock, KeyedLock, create_key_lock


@pytest.mark.asyncio
async def test_keyed_lock_excludes_same_key() -> None:
    lock = KeyedLock()
    order: list[str] = []

    async def worker(name: str) -> None:
        async with lock.hold("k"):
            order.append(f"{name}-in")
            await asyncio.sleep(0.01)
            order.append(f"{name}-out")

    await asyncio.gather(worker("a"), worker("b"))

    assert order in (
        ["a-in", "a-out", "b-in", "b-out"],
        ["b-in", "b-out", "a-in", "a-out"],
    )


@pytest.mark.asyncio
async def test_keyed_lock_drops_idle_entries() -> None:
    lock = KeyedLock()

    async with lock.hold("k1"):
        async with lock.hold("k2"):
            assert lock.active_keys == 2

    assert lock.active_keys == 0


@pytest.mark.asyncio
async def test_keyed_lock_released_on_exception() -> None:
    lock = KeyedLock()

    with pytest.raises(RuntimeError):
        async with lock.hold("k"):
            raise RuntimeError("boom")

    assert lock.active_keys == 0
    await asyncio.wait_for(_enter_and_exit(lock, "k"), timeout=1.0)


@pytest.mark.asyncio
async def test_keyed_lock_released_when_waiter_cancelled() -> None:
    lock = KeyedLock()
    holder_inside = asyncio.Event()
    release = asyncio.Event()

    async def holder() -> None:
        async with lock.hold("k"):
            holder_inside.set()
            await release.wait()

    holder_task = asyncio.create_task(holder())
    await holder_inside.wait()

    waiter = asyncio.create_task(_enter_and_exit(lock, "k"))
    await asyncio.sleep(0)
    waiter.cancel()
    with pytest.raises(asyncio.CancelledError):
        await waiter

    release.set()
    await holder_task
    assert lock.active_keys == 0


@pytest.mark.asyncio
async def test_global_lock_serializes_different_keys() -> None:
    lock = GlobalLock()
    inside = asyncio.Event()
    release = asyncio.Event()

    async def holder() -> None:
        async with lock.hold("a"):
            inside.set()
            await release.wait()

    task = asyncio.create_task(holder())
    await inside.wait()
    assert lock.locked

    with pytest.raises(asyncio.TimeoutError):
        await asyncio.wait_for(_enter_and_exit(lock, "b"), timeout=0.05)

    release.set()
    await task
    assert not lock.locked


def test_create_key_lock() -> None:
    assert isinstance(create_key_lock("per_key"), KeyedLock)
    assert isinstance(create_key_lock("global"), GlobalLock)
    with pytest.raises(ValueError):
        create_key_lock("sharded")


async def _enter_and_exit(lock, key: str) -> None:
    async with lock.hold(key):
        pass
