"""
Dedicated event-loop thread used to run async client calls from sync code.

``BackgroundLoop.run`` submits a coroutine to the loop thread and blocks the
calling thread until it finishes or ``timeout`` elapses. The caller's thread
is occupied for the whole call.
"""

from __future__ import annotations

import asyncio
import concurrent.futures
import threading
from typing import Any, Coroutine, TypeVar

from .errors import ConnectivityError, IllegalStateError

T = TypeVar("T")


async def _cancel_pending() -> None:
    current = asyncio.current_task()
    tasks = [t for t in asyncio.all_tasks() if t is not current]
    for task in tasks:
        task.cancel()
    await asyncio.gather(*tasks, return_exceptions=True)


class BackgroundLoop:
    """Owns one asyncio loop running forever on a daemon thread."""

    def __init__(self, name: str = "streamsink-loop") -> None:
        self._name = name
        self._loop: asyncio.AbstractEventLoop | None = None
        self._thread: threading.Thread | None = None
        self._started = threading.Event()

    @property
    def loop(self) -> asyncio.AbstractEventLoop:
        if self._loop is None:
            raise IllegalStateError("Background loop is not running")
        return self._loop

    @property
    def is_running(self) -> bool:
        return self._thread is not None and self._thread.is_alive()

    def in_loop_thread(self) -> bool:
        return self._thread is not None and threading.current_thread() is self._thread

    def start(self) -> None:
        if self._thread is not None:
            raise IllegalStateError("Background loop already started")
        self._loop = asyncio.new_event_loop()
        self._thread = threading.Thread(
            target=self._run_forever, name=self._name, daemon=True
        )
        self._thread.start()
        self._started.wait()

    def _run_forever(self) -> None:
        loop = self.loop
        asyncio.set_event_loop(loop)
        loop.call_soon(self._started.set)
        loop.run_forever()

    def run(self, coro: Coroutine[Any, Any, T], *, timeout: float | None = None) -> T:
        """Run ``coro`` on the loop thread and wait for its result.

        Raises ``ConnectivityError`` when ``timeout`` elapses; the coroutine
        is cancelled in that case.
        """
        if self.in_loop_thread():
            coro.close()
            raise IllegalStateError("Blocking call issued from the loop thread")
        if not self.is_running:
            coro.close()
            raise IllegalStateError("Background loop is not running")
        future = asyncio.run_coroutine_threadsafe(coro, self.loop)
        try:
            return future.result(timeout=timeout)
        except concurrent.futures.CancelledError as exc:
            raise IllegalStateError("Background call cancelled by shutdown") from exc
        except concurrent.futures.TimeoutError as exc:
            future.cancel()
            raise ConnectivityError(
                "Timed out waiting for background call",
                reason="timeout",
                timeout=timeout,
                cause=exc,
            ) from exc

    def stop(self, *, timeout: float | None = 5.0) -> None:
        if self._loop is None or self._thread is None:
            return
        loop = self._loop
        if loop.is_running() and not self.in_loop_thread():
            try:
                asyncio.run_coroutine_threadsafe(_cancel_pending(), loop).result(
                    timeout=timeout
                )
            except concurrent.futures.TimeoutError:
                pass
            loop.call_soon_threadsafe(loop.stop)
        self._thread.join(timeout=timeout)
        if not self._thread.is_alive():
            loop.close()
        self._loop = None
        self._thread = None
        self._started.clear()


__all__ = ["BackgroundLoop"]
