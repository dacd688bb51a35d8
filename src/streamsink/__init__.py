"""
Public entrypoints for streamsink.

Log destinations that forward rendered log lines to managed data streams.
"""

from __future__ import annotations

from ._version import __version__
from .core.diagnostics import DiagnosticLogger
from .core.errors import (
    BackpressureError,
    ConfigurationError,
    ConnectivityError,
    IllegalStateError,
    RemoteServiceError,
    StreamSinkError,
)
from .core.settings import Settings, create_destination_from_settings
from .destinations import (
    BaseSink,
    Destination,
    accepts_category,
    available_destinations,
    create_destination,
)
from .destinations.kinesis import KinesisDestination, KinesisDestinationConfig
from .destinations.kinesis_sink import KinesisSink
from .metrics.metrics import MetricsCollector

__all__ = [
    "BackpressureError",
    "BaseSink",
    "ConfigurationError",
    "ConnectivityError",
    "Destination",
    "DiagnosticLogger",
    "IllegalStateError",
    "KinesisDestination",
    "KinesisDestinationConfig",
    "KinesisSink",
    "MetricsCollector",
    "RemoteServiceError",
    "Settings",
    "StreamSinkError",
    "VERSION",
    "__version__",
    "accepts_category",
    "available_destinations",
    "create_destination",
    "create_destination_from_settings",
]

VERSION = __version__
