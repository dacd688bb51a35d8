import asyncio

import pytest

from streamsink.core.errors import ConnectivityError, IllegalStateError
from streamsink.core.loop import BackgroundLoop


def test_run_returns_coroutine_result() -> None:
    loop = BackgroundLoop(name="test-loop")
    loop.start()
    try:

        async def add(a: int, b: int) -> int:
            await asyncio.sleep(0)
            return a + b

        assert loop.run(add(2, 3), timeout=1.0) == 5
    finally:
        loop.stop()
    assert loop.is_running is False


def test_run_propagates_coroutine_exception() -> None:
    loop = BackgroundLoop()
    loop.start()
    try:

        async def boom() -> None:
            raise ValueError("bad")

        with pytest.raises(ValueError, match="bad"):
            loop.run(boom(), timeout=1.0)
    finally:
        loop.stop()


def test_run_times_out_with_connectivity_error() -> None:
    loop = BackgroundLoop()
    loop.start()
    try:
        with pytest.raises(ConnectivityError) as exc_info:
            loop.run(asyncio.sleep(5), timeout=0.05)
        assert exc_info.value.context.fields["reason"] == "timeout"
    finally:
        loop.stop()


def test_run_before_start_raises() -> None:
    loop = BackgroundLoop()

    async def noop() -> None:
        return None

    with pytest.raises(IllegalStateError):
        loop.run(noop())


def test_run_from_loop_thread_is_rejected() -> None:
    loop = BackgroundLoop()
    loop.start()
    try:

        async def reenter() -> str:
            async def inner() -> None:
                return None

            try:
                loop.run(inner(), timeout=0.1)
            except IllegalStateError:
                return "rejected"
            return "ran"

        assert loop.run(reenter(), timeout=1.0) == "rejected"
    finally:
        loop.stop()


def test_start_twice_raises_and_stop_is_idempotent() -> None:
    loop = BackgroundLoop()
    loop.start()
    with pytest.raises(IllegalStateError):
        loop.start()
    loop.stop()
    loop.stop()
