import asyncio

import pytest

from streamsink.core.concurrency import ConnectionLimiter
from streamsink.core.errors import BackpressureError


def test_limiter_rejects_invalid_bounds() -> None:
    with pytest.raises(ValueError, match="max_in_flight must be > 0"):
        ConnectionLimiter(max_in_flight=0, max_pending=1)
    with pytest.raises(ValueError, match="max_pending must be >= 0"):
        ConnectionLimiter(max_in_flight=1, max_pending=-1)


@pytest.mark.asyncio
async def test_slot_acquire_and_release() -> None:
    limiter = ConnectionLimiter(max_in_flight=2, max_pending=0)
    async with limiter.slot():
        async with limiter.slot():
            assert limiter.in_flight == 2
            # No pending capacity: the third caller is rejected immediately
            with pytest.raises(BackpressureError):
                await limiter.acquire()
    stats = limiter.stats()
    assert stats.in_flight == 0
    assert stats.peak_in_flight == 2
    assert stats.rejected == 1


@pytest.mark.asyncio
async def test_waiters_are_served_when_slots_free() -> None:
    limiter = ConnectionLimiter(max_in_flight=1, max_pending=2)
    await limiter.acquire()

    order: list[int] = []

    async def waiter(n: int) -> None:
        async with limiter.slot():
            order.append(n)

    tasks = [asyncio.create_task(waiter(i)) for i in range(2)]
    await asyncio.sleep(0)
    assert limiter.pending == 2

    with pytest.raises(BackpressureError):
        await limiter.acquire()

    limiter.release()
    await asyncio.gather(*tasks)
    assert order == [0, 1]
    assert limiter.pending == 0
    assert limiter.in_flight == 0


@pytest.mark.asyncio
@pytest.mark.critical
async def test_default_bounds_fail_fast_on_request_beyond_pending_queue() -> None:
    limiter = ConnectionLimiter()
    for _ in range(100):
        await limiter.acquire()
    assert limiter.in_flight == 100

    waiters = [asyncio.create_task(limiter.acquire()) for _ in range(10_000)]
    for _ in range(10):
        await asyncio.sleep(0)
        if limiter.pending == 10_000:
            break
    assert limiter.pending == 10_000
    assert limiter.in_flight == 100

    with pytest.raises(BackpressureError):
        await asyncio.wait_for(limiter.acquire(), timeout=0.1)

    for task in waiters:
        task.cancel()
    await asyncio.gather(*waiters, return_exceptions=True)
    assert limiter.pending == 0
    assert limiter.stats().peak_in_flight == 100
    assert limiter.stats().rejected == 1
