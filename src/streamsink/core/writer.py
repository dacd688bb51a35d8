"""
Single-record writer for Kinesis Data Streams.

``KinesisStreamWriter`` owns the client handle, a worker pool sized to the
connection limit, and a ``ConnectionLimiter``. ``put`` issues exactly one
``PutRecord`` call, waits for it with a timeout, and converts every outcome
into a ``SendResult``. Delivery failures are logged and counted as drops and
never raised; only lifecycle misuse raises.

A timed-out call cannot be recalled from the worker thread. It is reported as
a ``timeout`` drop, yet the stream may still accept the record when the call
eventually returns. Its connection slot stays taken until then.
"""

from __future__ import annotations

import asyncio
import functools
import time
import uuid
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field
from typing import Any

from botocore.exceptions import (
    BotoCoreError,
    ClientError,
    HTTPClientError,
    NoCredentialsError,
    PartialCredentialsError,
)
from botocore.exceptions import ConnectionError as BotoConnectionError

from ..metrics.metrics import MetricsCollector
from .concurrency import (
    DEFAULT_MAX_CONCURRENCY,
    DEFAULT_MAX_PENDING_ACQUIRES,
    ConnectionLimiter,
    LimiterStats,
)
from .diagnostics import DiagnosticLogger
from .errors import (
    BackpressureError,
    ConfigurationError,
    ConnectivityError,
    IllegalStateError,
    RemoteServiceError,
    StreamSinkError,
)


def new_partition_key() -> str:
    """Random partition key; spreads records uniformly across shards."""
    return str(uuid.uuid4())


@dataclass(frozen=True)
class PutRecordRequest:
    stream_name: str
    data: bytes
    partition_key: str = field(default_factory=new_partition_key)

    @classmethod
    def for_line(cls, stream_name: str, log_line: str) -> PutRecordRequest:
        return cls(stream_name=stream_name, data=log_line.encode("utf-8"))

    def to_api_params(self) -> dict[str, Any]:
        return {
            "StreamName": self.stream_name,
            "Data": self.data,
            "PartitionKey": self.partition_key,
        }


@dataclass(frozen=True)
class SendResult:
    """Outcome of one write; consumed for logging and metrics only."""

    ok: bool
    partition_key: str | None = None
    shard_id: str | None = None
    sequence_number: str | None = None
    reason: str | None = None
    error_code: str | None = None
    error: str | None = None


def classify_failure(exc: BaseException) -> StreamSinkError:
    """Map a client-side exception onto the destination error taxonomy."""
    if isinstance(exc, StreamSinkError):
        return exc
    if isinstance(exc, ClientError):
        details = exc.response.get("Error", {})
        return RemoteServiceError(
            details.get("Message") or str(exc),
            error_code=details.get("Code"),
            operation=getattr(exc, "operation_name", None),
            cause=exc,
        )
    if isinstance(exc, (NoCredentialsError, PartialCredentialsError)):
        return ConfigurationError(str(exc), cause=exc)
    if isinstance(exc, (BotoConnectionError, HTTPClientError, BotoCoreError)):
        return ConnectivityError(str(exc), cause=exc)
    if isinstance(exc, (asyncio.TimeoutError, TimeoutError)):
        return ConnectivityError("PutRecord timed out", reason="timeout", cause=exc)
    return StreamSinkError(str(exc) or type(exc).__name__, cause=exc)


def drop_reason(error: StreamSinkError) -> str:
    explicit = error.context.fields.get("reason")
    if isinstance(explicit, str):
        return explicit
    if isinstance(error, BackpressureError):
        return "backpressure"
    if isinstance(error, RemoteServiceError):
        return "remote"
    if isinstance(error, ConnectivityError):
        return "connectivity"
    if isinstance(error, ConfigurationError):
        return "configuration"
    return "unexpected"


class KinesisStreamWriter:
    """Owns a Kinesis client and writes one record per call."""

    def __init__(
        self,
        client: Any,
        *,
        timeout_seconds: float,
        max_concurrency: int = DEFAULT_MAX_CONCURRENCY,
        max_pending_acquires: int = DEFAULT_MAX_PENDING_ACQUIRES,
        logger: DiagnosticLogger,
        metrics: MetricsCollector | None = None,
    ) -> None:
        self._client = client
        self._timeout = timeout_seconds
        self._logger = logger
        self._metrics = metrics
        self._limiter = ConnectionLimiter(
            max_in_flight=max_concurrency, max_pending=max_pending_acquires
        )
        self._executor = ThreadPoolExecutor(
            max_workers=max_concurrency, thread_name_prefix="streamsink-put"
        )
        self._closed = False
        self.last_result: SendResult | None = None

    @property
    def closed(self) -> bool:
        return self._closed

    def limiter_stats(self) -> LimiterStats:
        return self._limiter.stats()

    async def send_line(self, stream_name: str, log_line: str) -> SendResult:
        try:
            request = PutRecordRequest.for_line(stream_name, log_line)
        except UnicodeEncodeError as exc:
            error = StreamSinkError(
                "Log line is not encodable as UTF-8", reason="encoding", cause=exc
            )
            return self.record_drop(error, stream_name=stream_name)
        return await self.put(request)

    async def put(self, request: PutRecordRequest) -> SendResult:
        if self._closed:
            raise IllegalStateError("Writer is closed")
        self._logger.debug(
            "sending record",
            stream=request.stream_name,
            partition_key=request.partition_key,
            payload_bytes=len(request.data),
        )
        try:
            response, elapsed = await asyncio.wait_for(
                self._put_with_slot(request), timeout=self._timeout
            )
        except asyncio.TimeoutError as exc:
            error = ConnectivityError(
                "PutRecord timed out",
                reason="timeout",
                timeout_seconds=self._timeout,
                cause=exc,
            )
            return self.record_drop(
                error,
                stream_name=request.stream_name,
                partition_key=request.partition_key,
            )
        except IllegalStateError:
            raise
        except asyncio.CancelledError as exc:
            # Pending pool work is cancelled by close()
            if self._closed:
                raise IllegalStateError("Writer closed while sending") from exc
            raise
        except Exception as exc:
            error = classify_failure(exc)
            return self.record_drop(
                error,
                stream_name=request.stream_name,
                partition_key=request.partition_key,
            )

        result = SendResult(
            ok=True,
            partition_key=request.partition_key,
            shard_id=response.get("ShardId"),
            sequence_number=response.get("SequenceNumber"),
        )
        self.last_result = result
        self._logger.info(
            "record acknowledged",
            stream=request.stream_name,
            partition_key=request.partition_key,
            shard_id=result.shard_id,
            sequence_number=result.sequence_number,
            duration_seconds=round(elapsed, 6),
        )
        if self._metrics is not None:
            self._metrics.record_sent(duration_seconds=elapsed)
        return result

    def _timed_put(self, request: PutRecordRequest) -> tuple[dict[str, Any], float]:
        started = time.perf_counter()
        response = self._client.put_record(**request.to_api_params())
        return dict(response or {}), time.perf_counter() - started

    async def _put_with_slot(
        self, request: PutRecordRequest
    ) -> tuple[dict[str, Any], float]:
        """Run one call on the pool; the slot is held until the call returns.

        A caller that stops waiting (timeout, cancellation) does not free the
        slot early: the worker thread is still using a pooled connection.
        """
        loop = asyncio.get_running_loop()
        await self._limiter.acquire()
        try:
            future = loop.run_in_executor(
                self._executor, functools.partial(self._timed_put, request)
            )
        except RuntimeError as exc:
            self._limiter.release()
            if self._closed:
                raise IllegalStateError("Writer is closed") from exc
            raise
        except BaseException:
            self._limiter.release()
            raise
        future.add_done_callback(self._release_slot)
        return await asyncio.shield(future)

    def _release_slot(self, future: asyncio.Future[Any]) -> None:
        self._limiter.release()
        # Outcome of an abandoned call is already counted as a drop
        if not future.cancelled():
            future.exception()

    def record_drop(
        self,
        error: StreamSinkError,
        *,
        stream_name: str,
        partition_key: str | None = None,
    ) -> SendResult:
        """Log and count a record that will not be delivered."""
        reason = drop_reason(error)
        error_code = getattr(error, "error_code", None)
        result = SendResult(
            ok=False,
            partition_key=partition_key,
            reason=reason,
            error_code=error_code,
            error=error.message,
        )
        self.last_result = result
        self._logger.warn(
            "record dropped",
            dropped=True,
            stream=stream_name,
            partition_key=partition_key,
            reason=reason,
            error_type=type(error).__name__,
            error_code=error_code,
            error=error.message,
            error_id=error.context.error_id,
        )
        if self._metrics is not None:
            self._metrics.record_dropped(reason=reason)
        return result

    def close(self) -> None:
        """Release worker threads and the client's pooled connections."""
        if self._closed:
            return
        self._closed = True
        self._executor.shutdown(wait=True, cancel_futures=True)
        close = getattr(self._client, "close", None)
        if callable(close):
            close()


__all__ = [
    "KinesisStreamWriter",
    "PutRecordRequest",
    "SendResult",
    "classify_failure",
    "drop_reason",
    "new_partition_key",
]
