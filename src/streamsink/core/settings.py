"""
Environment-driven configuration using Pydantic v2 Settings.

Variables use the ``STREAMSINK_`` prefix and ``__`` as the nested delimiter,
e.g. ``STREAMSINK_CORE__DIAGNOSTICS_LEVEL=DEBUG`` or
``STREAMSINK_KINESIS__STREAM_NAME=orders``.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Literal

from pydantic import BaseModel, Field
from pydantic_settings import BaseSettings, SettingsConfigDict

from ..destinations.kinesis import KinesisDestinationConfig
from .errors import ConfigurationError

if TYPE_CHECKING:
    from ..destinations.kinesis import KinesisDestination


class CoreSettings(BaseModel):
    """Ambient settings shared by every destination."""

    internal_logging_enabled: bool = Field(
        default=True,
        description="Emit structured diagnostics for sends and drops",
    )
    diagnostics_level: Literal["DEBUG", "INFO", "WARNING", "ERROR"] = Field(
        default="INFO",
        description="Minimum level for internal diagnostics",
    )
    enable_metrics: bool = Field(
        default=False,
        description="Enable Prometheus-compatible delivery metrics",
    )


class Settings(BaseSettings):
    """Top-level configuration model."""

    core: CoreSettings = Field(default_factory=CoreSettings)
    kinesis: KinesisDestinationConfig | None = Field(
        default=None,
        description="Kinesis destination configuration",
    )

    model_config = SettingsConfigDict(
        env_prefix="STREAMSINK_",
        env_nested_delimiter="__",
        extra="ignore",
        case_sensitive=False,
    )


def create_destination_from_settings(
    settings: Settings | None = None,
) -> KinesisDestination:
    """Build an uninitialised Kinesis destination wired from ``settings``."""
    from ..destinations.kinesis import KinesisDestination
    from ..metrics.metrics import MetricsCollector
    from .diagnostics import DiagnosticLogger

    settings = settings or Settings()
    if settings.kinesis is None:
        raise ConfigurationError(
            "No kinesis destination configured",
            hint="set STREAMSINK_KINESIS__STREAM_NAME and credentials",
        )
    logger = DiagnosticLogger(
        "kinesis-destination",
        enabled=settings.core.internal_logging_enabled,
        level=settings.core.diagnostics_level,
    )
    return KinesisDestination(
        settings.kinesis,
        logger=logger,
        metrics=MetricsCollector(enabled=settings.core.enable_metrics),
    )


__all__ = ["CoreSettings", "Settings", "create_destination_from_settings"]
