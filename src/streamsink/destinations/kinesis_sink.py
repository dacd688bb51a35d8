from __future__ import annotations

import asyncio
from typing import Any, Callable, Mapping

import orjson

from ..core.diagnostics import DiagnosticLogger, get_logger
from ..core.errors import IllegalStateError, StreamSinkError
from ..core.writer import KinesisStreamWriter
from ..metrics.metrics import MetricsCollector
from .kinesis import KinesisDestinationConfig, create_kinesis_client, resolve_region
from .utils import parse_destination_config

__all__ = ["KinesisSink"]


class KinesisSink:
    """Async sink that writes each structured entry as one Kinesis record.

    - ``write`` renders the entry as a single JSON line (sorted keys)
    - Awaits the acknowledgement on the caller's loop; no extra thread
    - Never raises upstream on delivery failure; drops are logged and counted
    """

    name = "kinesis"

    def __init__(
        self,
        config: KinesisDestinationConfig | Mapping[str, Any] | None = None,
        *,
        logger: DiagnosticLogger | None = None,
        metrics: MetricsCollector | None = None,
        client_factory: Callable[[KinesisDestinationConfig], Any] | None = None,
        **kwargs: Any,
    ) -> None:
        self._raw_config = dict(config) if isinstance(config, Mapping) else config
        self._overrides = kwargs
        self._config: KinesisDestinationConfig | None = None
        self._logger = logger or get_logger("kinesis-sink")
        self._metrics = metrics or MetricsCollector(enabled=False)
        self._client_factory = client_factory or create_kinesis_client
        self._writer: KinesisStreamWriter | None = None

    @property
    def config(self) -> KinesisDestinationConfig:
        """Validated configuration; raises ``ConfigurationError`` if malformed."""
        if self._config is None:
            self._config = parse_destination_config(
                KinesisDestinationConfig, self._raw_config, **self._overrides
            )
        return self._config

    @property
    def metrics(self) -> MetricsCollector:
        return self._metrics

    async def start(self) -> None:
        if self._writer is not None:
            return
        cfg = self.config
        # Region lookup and client construction read local SDK data files
        await asyncio.to_thread(resolve_region, cfg)
        client = await asyncio.to_thread(self._client_factory, cfg)
        self._writer = KinesisStreamWriter(
            client,
            timeout_seconds=cfg.send_timeout_seconds,
            max_concurrency=cfg.max_concurrency,
            max_pending_acquires=cfg.max_pending_connection_acquires,
            logger=self._logger,
            metrics=self._metrics,
        )

    async def stop(self) -> None:
        writer, self._writer = self._writer, None
        if writer is not None:
            await asyncio.to_thread(writer.close)

    async def write(self, entry: dict[str, Any]) -> None:
        writer = self._require_writer()
        try:
            line = orjson.dumps(entry, default=str, option=orjson.OPT_SORT_KEYS)
        except TypeError as exc:
            writer.record_drop(
                StreamSinkError(
                    "Entry is not JSON serializable", reason="serialization", cause=exc
                ),
                stream_name=self.config.stream_name,
            )
            return None
        await writer.send_line(self.config.stream_name, line.decode("utf-8"))

    async def write_line(self, log_line: str) -> None:
        """Send an already rendered line verbatim."""
        writer = self._require_writer()
        await writer.send_line(self.config.stream_name, log_line)

    async def health_check(self) -> bool:
        if self._writer is None:
            return False
        result = self._writer.last_result
        return result is None or result.ok

    def _require_writer(self) -> KinesisStreamWriter:
        if self._writer is None:
            raise IllegalStateError("KinesisSink is not started")
        return self._writer


PLUGIN_METADATA = {
    "name": "kinesis-sink",
    "version": "1.0.0",
    "plugin_type": "sink",
    "entry_point": "streamsink.destinations.kinesis_sink:KinesisSink",
    "description": "Async sink writing JSON entries to an AWS Kinesis data stream.",
    "author": "streamsink",
    "api_version": "1.0",
    "dependencies": ["boto3>=1.28.0"],
}
