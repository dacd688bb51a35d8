"""
Error hierarchy for streamsink destinations.

Every error carries an ``ErrorContext`` with a category, severity, a unique
id and a timestamp so it can be logged as a structured payload. Only
lifecycle (``initialise``) failures and programming errors propagate to the
caller; delivery failures are classified into these types and then recorded
as drops.
"""

from __future__ import annotations

import uuid
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any


class ErrorCategory(str, Enum):
    CONFIGURATION = "configuration"
    NETWORK = "network"
    REMOTE = "remote"
    LIFECYCLE = "lifecycle"
    BACKPRESSURE = "backpressure"
    SYSTEM = "system"


class ErrorSeverity(str, Enum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    CRITICAL = "critical"


@dataclass
class ErrorContext:
    """Structured context attached to every ``StreamSinkError``."""

    category: ErrorCategory
    severity: ErrorSeverity
    error_id: str = field(default_factory=lambda: str(uuid.uuid4()))
    timestamp: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
    fields: dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        return {
            "category": self.category.value,
            "severity": self.severity.value,
            "error_id": self.error_id,
            "timestamp": self.timestamp.isoformat(),
            **self.fields,
        }


class StreamSinkError(Exception):
    """Base error for all streamsink failures."""

    default_category = ErrorCategory.SYSTEM
    default_severity = ErrorSeverity.MEDIUM

    def __init__(
        self,
        message: str,
        *,
        category: ErrorCategory | None = None,
        severity: ErrorSeverity | None = None,
        cause: BaseException | None = None,
        **fields: Any,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.context = ErrorContext(
            category=category or self.default_category,
            severity=severity or self.default_severity,
            fields=fields,
        )
        if cause is not None:
            self.__cause__ = cause

    def to_dict(self) -> dict[str, Any]:
        return {
            "error_type": type(self).__name__,
            "message": self.message,
            "context": self.context.to_dict(),
        }


class ConfigurationError(StreamSinkError):
    """Malformed credentials, stream name or other destination settings."""

    default_category = ErrorCategory.CONFIGURATION
    default_severity = ErrorSeverity.HIGH


class ConnectivityError(StreamSinkError):
    """Transport failure, unresolvable region or timed-out call."""

    default_category = ErrorCategory.NETWORK
    default_severity = ErrorSeverity.HIGH


class RemoteServiceError(StreamSinkError):
    """The streaming service rejected the write."""

    default_category = ErrorCategory.REMOTE

    def __init__(
        self,
        message: str,
        *,
        error_code: str | None = None,
        **kwargs: Any,
    ) -> None:
        super().__init__(message, error_code=error_code, **kwargs)
        self.error_code = error_code


class IllegalStateError(StreamSinkError):
    """Operation invoked in the wrong lifecycle state."""

    default_category = ErrorCategory.LIFECYCLE
    default_severity = ErrorSeverity.CRITICAL


class BackpressureError(StreamSinkError):
    """The pending connection-acquire queue is full."""

    default_category = ErrorCategory.BACKPRESSURE


__all__ = [
    "BackpressureError",
    "ConfigurationError",
    "ConnectivityError",
    "ErrorCategory",
    "ErrorContext",
    "ErrorSeverity",
    "IllegalStateError",
    "RemoteServiceError",
    "StreamSinkError",
]
