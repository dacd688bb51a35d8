"""
Connection-slot limiting for outbound stream writes.

``ConnectionLimiter`` mirrors the connection pool of the underlying client:

- at most ``max_in_flight`` callers hold a slot at once
- at most ``max_pending`` callers wait for a slot
- an acquisition that would exceed the pending bound raises
  ``BackpressureError`` immediately instead of queueing

A limiter is bound to the event loop it is first used on.
"""

from __future__ import annotations

import asyncio
from contextlib import asynccontextmanager
from dataclasses import dataclass
from typing import AsyncIterator

from .errors import BackpressureError

DEFAULT_MAX_CONCURRENCY = 100
DEFAULT_MAX_PENDING_ACQUIRES = 10_000


@dataclass(frozen=True)
class LimiterStats:
    max_in_flight: int
    max_pending: int
    in_flight: int
    pending: int
    peak_in_flight: int
    rejected: int


class ConnectionLimiter:
    """Bounded-concurrency gate with a bounded, fail-fast wait queue.

    Usage:
        limiter = ConnectionLimiter(max_in_flight=100, max_pending=10_000)
        async with limiter.slot():
            await do_request()
    """

    def __init__(
        self,
        *,
        max_in_flight: int = DEFAULT_MAX_CONCURRENCY,
        max_pending: int = DEFAULT_MAX_PENDING_ACQUIRES,
    ) -> None:
        if max_in_flight <= 0:
            raise ValueError("max_in_flight must be > 0")
        if max_pending < 0:
            raise ValueError("max_pending must be >= 0")
        self._max_in_flight = max_in_flight
        self._max_pending = max_pending
        self._semaphore = asyncio.Semaphore(max_in_flight)
        self._in_flight = 0
        self._pending = 0
        self._peak_in_flight = 0
        self._rejected = 0

    @property
    def in_flight(self) -> int:
        return self._in_flight

    @property
    def pending(self) -> int:
        return self._pending

    async def acquire(self) -> None:
        if self._semaphore.locked():
            if self._pending >= self._max_pending:
                self._rejected += 1
                raise BackpressureError(
                    "Pending connection-acquire queue is full; request rejected",
                    max_pending=self._max_pending,
                )
            self._pending += 1
            try:
                await self._semaphore.acquire()
            finally:
                self._pending -= 1
        else:
            await self._semaphore.acquire()
        self._in_flight += 1
        if self._in_flight > self._peak_in_flight:
            self._peak_in_flight = self._in_flight

    def release(self) -> None:
        self._in_flight -= 1
        self._semaphore.release()

    @asynccontextmanager
    async def slot(self) -> AsyncIterator[None]:
        await self.acquire()
        try:
            yield
        finally:
            self.release()

    def stats(self) -> LimiterStats:
        return LimiterStats(
            max_in_flight=self._max_in_flight,
            max_pending=self._max_pending,
            in_flight=self._in_flight,
            pending=self._pending,
            peak_in_flight=self._peak_in_flight,
            rejected=self._rejected,
        )


__all__ = [
    "ConnectionLimiter",
    "DEFAULT_MAX_CONCURRENCY",
    "DEFAULT_MAX_PENDING_ACQUIRES",
    "LimiterStats",
]
