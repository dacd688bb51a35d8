from .errors import (
    BackpressureError,
    ConfigurationError,
    ConnectivityError,
    ErrorCategory,
    ErrorContext,
    ErrorSeverity,
    IllegalStateError,
    RemoteServiceError,
    StreamSinkError,
)

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
