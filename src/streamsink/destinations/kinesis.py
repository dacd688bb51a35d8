"""
Kinesis Data Streams log destination.

Forwards one pre-rendered log line per ``send`` as a single ``PutRecord``
with a random partition key. ``send`` blocks the caller until the stream
acknowledges, errors or the configured timeout elapses, and never raises on
delivery failure: drops are logged and counted instead.
"""

from __future__ import annotations

import re
import threading
from enum import Enum
from typing import Any, Callable, Mapping

import boto3
from botocore.config import Config as BotoConfig
from botocore.exceptions import BotoCoreError, InvalidRegionError
from pydantic import BaseModel, ConfigDict, Field, SecretStr, field_validator

from ..core.concurrency import DEFAULT_MAX_CONCURRENCY, DEFAULT_MAX_PENDING_ACQUIRES
from ..core.diagnostics import DiagnosticLogger, get_logger
from ..core.errors import (
    ConfigurationError,
    ConnectivityError,
    IllegalStateError,
    StreamSinkError,
)
from ..core.loop import BackgroundLoop
from ..core.writer import KinesisStreamWriter, SendResult
from ..metrics.metrics import MetricsCollector
from . import register_destination
from .utils import parse_destination_config

__all__ = [
    "DestinationState",
    "KinesisDestination",
    "KinesisDestinationConfig",
    "create_kinesis_client",
    "resolve_region",
]

_STREAM_NAME_RE = re.compile(r"^[a-zA-Z0-9_.-]{1,128}$")
_REGION_RE = re.compile(r"^[a-z]{2}(-[a-z0-9]+)+-\d+$")

# Slack on top of the writer timeout before the caller stops waiting
_WAIT_GRACE_SECONDS = 1.0


class KinesisDestinationConfig(BaseModel):
    model_config = ConfigDict(frozen=True, extra="forbid", validate_default=True)

    access_key: str
    secret_key: SecretStr
    session_token: SecretStr | None = None
    stream_name: str
    region: str = "eu-central-1"
    log_categories: list[str] = Field(default_factory=list)
    endpoint_url: str | None = None
    send_timeout_seconds: float = Field(
        default=10.0,
        gt=0.0,
        description=(
            "How long send waits for the acknowledgement. An expired call is "
            "counted as a timeout drop but may still be accepted by the stream."
        ),
    )
    connect_timeout_seconds: float = Field(default=5.0, gt=0.0)
    read_timeout_seconds: float = Field(default=10.0, gt=0.0)
    max_concurrency: int = Field(default=DEFAULT_MAX_CONCURRENCY, ge=1)
    max_pending_connection_acquires: int = Field(
        default=DEFAULT_MAX_PENDING_ACQUIRES, ge=0
    )

    @field_validator("access_key")
    @classmethod
    def _check_access_key(cls, value: str) -> str:
        value = value.strip()
        if not value or any(ch.isspace() for ch in value):
            raise ValueError("access_key must be a non-empty token without whitespace")
        return value

    @field_validator("secret_key")
    @classmethod
    def _check_secret_key(cls, value: SecretStr) -> SecretStr:
        raw = value.get_secret_value()
        if not raw or any(ch.isspace() for ch in raw):
            raise ValueError("secret_key must be a non-empty token without whitespace")
        return value

    @field_validator("stream_name")
    @classmethod
    def _check_stream_name(cls, value: str) -> str:
        if not _STREAM_NAME_RE.match(value):
            raise ValueError(
                "stream_name must be 1-128 characters of letters, digits, '_', '.' or '-'"
            )
        return value

    @field_validator("region")
    @classmethod
    def _check_region(cls, value: str) -> str:
        value = value.strip().lower()
        if not value:
            raise ValueError("region must not be empty")
        return value

    @field_validator("log_categories", mode="before")
    @classmethod
    def _coerce_categories(cls, value: Any) -> Any:
        if value is None:
            return []
        if isinstance(value, str):
            return [part.strip() for part in value.split(",") if part.strip()]
        return value


def resolve_region(config: KinesisDestinationConfig) -> str:
    """Return the region if the Kinesis service is known to exist there.

    Custom endpoints skip the lookup; only the region's shape is checked.
    """
    region = config.region
    if config.endpoint_url:
        return region
    session = boto3.session.Session()
    known: set[str] = set()
    for partition in session.get_available_partitions():
        known.update(session.get_available_regions("kinesis", partition_name=partition))
    if region not in known:
        raise ConnectivityError(
            f"Unresolvable region for Kinesis: {region}",
            region=region,
            well_formed=bool(_REGION_RE.match(region)),
        )
    return region


def create_kinesis_client(config: KinesisDestinationConfig) -> Any:
    """Build a boto3 Kinesis client sized to the configured connection pool."""
    token = config.session_token.get_secret_value() if config.session_token else None
    try:
        session = boto3.session.Session(
            aws_access_key_id=config.access_key,
            aws_secret_access_key=config.secret_key.get_secret_value(),
            aws_session_token=token,
            region_name=config.region,
        )
        return session.client(
            "kinesis",
            endpoint_url=config.endpoint_url,
            config=BotoConfig(
                max_pool_connections=config.max_concurrency,
                connect_timeout=config.connect_timeout_seconds,
                read_timeout=config.read_timeout_seconds,
                retries={"mode": "standard", "total_max_attempts": 1},
            ),
        )
    except InvalidRegionError as exc:
        raise ConnectivityError(
            f"Unresolvable region for Kinesis: {config.region}",
            region=config.region,
        ) from exc
    except (BotoCoreError, ValueError) as exc:
        raise ConfigurationError(f"Could not build Kinesis client: {exc}") from exc


class DestinationState(str, Enum):
    UNINITIALISED = "uninitialised"
    READY = "ready"
    DISPOSED = "disposed"


@register_destination("Kinesis")
class KinesisDestination:
    """Log destination writing each line as one Kinesis record.

    Args:
        config: ``KinesisDestinationConfig``, a mapping, or ``None`` with
            keyword overrides.
        logger: Structured diagnostics handle; built from settings if omitted.
        metrics: Delivery metrics; a disabled collector if omitted.
        client_factory: Builds the Kinesis client from the config. Defaults
            to ``create_kinesis_client``.
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
        # Validated on first use so malformed settings surface from initialise
        self._raw_config = dict(config) if isinstance(config, Mapping) else config
        self._overrides = kwargs
        self._config: KinesisDestinationConfig | None = None
        self._logger = logger or get_logger("kinesis-destination")
        self._metrics = metrics or MetricsCollector(enabled=False)
        self._client_factory = client_factory or create_kinesis_client
        self._state = DestinationState.UNINITIALISED
        self._state_lock = threading.Lock()
        self._loop: BackgroundLoop | None = None
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
    def state(self) -> DestinationState:
        return self._state

    @property
    def metrics(self) -> MetricsCollector:
        return self._metrics

    @property
    def last_result(self) -> SendResult | None:
        return self._writer.last_result if self._writer is not None else None

    def destination_type(self) -> str:
        return "Kinesis"

    def supported_categories(self) -> list[str]:
        return list(self.config.log_categories)

    def max_batch_size(self) -> int:
        return 1

    def initialise(self) -> None:
        with self._state_lock:
            if self._state is not DestinationState.UNINITIALISED:
                raise IllegalStateError(
                    f"initialise called while destination is {self._state.value}"
                )
            cfg = self.config
            resolve_region(cfg)
            client = self._client_factory(cfg)
            loop = BackgroundLoop(name=f"streamsink-kinesis-{cfg.stream_name}")
            loop.start()
            self._writer = KinesisStreamWriter(
                client,
                timeout_seconds=cfg.send_timeout_seconds,
                max_concurrency=cfg.max_concurrency,
                max_pending_acquires=cfg.max_pending_connection_acquires,
                logger=self._logger,
                metrics=self._metrics,
            )
            self._loop = loop
            self._state = DestinationState.READY
        self._logger.info(
            "destination initialised",
            stream=cfg.stream_name,
            region=cfg.region,
            max_concurrency=cfg.max_concurrency,
            max_pending_connection_acquires=cfg.max_pending_connection_acquires,
        )

    def send(self, log_line: str) -> None:
        """Deliver one line; a concurrent ``dispose`` turns it into a drop."""
        writer, loop = self._writer, self._loop
        if self._state is not DestinationState.READY or writer is None or loop is None:
            raise IllegalStateError(
                f"send called while destination is {self._state.value}"
            )
        stream = self.config.stream_name
        try:
            loop.run(
                writer.send_line(stream, log_line),
                timeout=self.config.send_timeout_seconds + _WAIT_GRACE_SECONDS,
            )
        except IllegalStateError as exc:
            if self._state is DestinationState.READY:
                raise
            # dispose() ran while this call was in flight
            writer.record_drop(
                StreamSinkError(
                    "Destination disposed during send", reason="disposed", cause=exc
                ),
                stream_name=stream,
            )
        except StreamSinkError as exc:
            writer.record_drop(exc, stream_name=stream)
        except Exception as exc:
            writer.record_drop(
                StreamSinkError(str(exc) or type(exc).__name__, cause=exc),
                stream_name=stream,
            )

    def dispose(self) -> None:
        with self._state_lock:
            if self._state is not DestinationState.READY:
                return
            self._state = DestinationState.DISPOSED
            writer, loop = self._writer, self._loop
            self._writer = None
            self._loop = None
        try:
            if writer is not None:
                writer.close()
        finally:
            if loop is not None:
                loop.stop()
        snapshot = self._metrics.snapshot()
        self._logger.info(
            "destination disposed",
            stream=self.config.stream_name,
            records_sent=snapshot.records_sent,
            records_dropped=snapshot.records_dropped,
        )

    def health_check(self) -> bool:
        result = self.last_result
        return self._state is DestinationState.READY and (result is None or result.ok)


PLUGIN_METADATA = {
    "name": "kinesis",
    "version": "1.0.0",
    "plugin_type": "destination",
    "entry_point": "streamsink.destinations.kinesis:KinesisDestination",
    "description": "Forwards each log line to an AWS Kinesis data stream.",
    "author": "streamsink",
    "api_version": "1.0",
    "dependencies": ["boto3>=1.28.0"],
}

# Mark Pydantic validators as used for vulture
_VULTURE_USED: tuple[object, ...] = (
    KinesisDestinationConfig._check_access_key,
    KinesisDestinationConfig._check_secret_key,
    KinesisDestinationConfig._check_stream_name,
    KinesisDestinationConfig._check_region,
    KinesisDestinationConfig._coerce_categories,
)
