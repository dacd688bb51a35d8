"""
Structured internal diagnostics.

Destinations never configure process-wide logging. Instead each one is handed
a ``DiagnosticLogger`` bound to a component name; the logger turns a message
plus keyword fields into a flat payload dict and passes it to a writer
callable. The default writer emits one JSON line per payload to stderr.

Writer failures are contained: diagnostics must never break delivery.
"""

from __future__ import annotations

import sys
import time
from typing import Any, Callable

import orjson

DiagnosticWriter = Callable[[dict[str, Any]], None]

_LEVELS: dict[str, int] = {"DEBUG": 10, "INFO": 20, "WARNING": 30, "ERROR": 40}


def _stderr_writer(payload: dict[str, Any]) -> None:
    line = orjson.dumps(payload, default=str, option=orjson.OPT_SORT_KEYS)
    buf = sys.stderr.buffer if hasattr(sys.stderr, "buffer") else None
    if buf is not None:
        buf.write(line + b"\n")
        buf.flush()
    else:  # pragma: no cover - text-only streams (e.g. captured stderr)
        sys.stderr.write(line.decode("utf-8") + "\n")
        sys.stderr.flush()


_writer: DiagnosticWriter = _stderr_writer


def set_writer_for_tests(writer: DiagnosticWriter) -> None:
    """Replace the module-level writer used by loggers without their own."""
    global _writer
    _writer = writer


def _reset_for_tests() -> None:
    global _writer
    _writer = _stderr_writer


class DiagnosticLogger:
    """Component-scoped structured logger handle.

    Args:
        component: Name stamped on every payload (e.g. ``"kinesis-destination"``).
        enabled: When False every call is a no-op.
        level: Minimum level emitted.
        writer: Payload sink; defaults to the module writer at call time.
    """

    def __init__(
        self,
        component: str,
        *,
        enabled: bool = True,
        level: str = "INFO",
        writer: DiagnosticWriter | None = None,
    ) -> None:
        level = level.upper()
        if level not in _LEVELS:
            raise ValueError(f"unknown diagnostics level: {level}")
        self.component = component
        self.enabled = bool(enabled)
        self.level = level
        self._writer = writer

    def is_enabled_for(self, level: str) -> bool:
        return self.enabled and _LEVELS[level] >= _LEVELS[self.level]

    def bind(self, component: str) -> DiagnosticLogger:
        """Return a logger sharing settings and writer under another component."""
        return DiagnosticLogger(
            component,
            enabled=self.enabled,
            level=self.level,
            writer=self._writer,
        )

    def log(self, level: str, message: str, **fields: Any) -> None:
        if not self.is_enabled_for(level):
            return
        payload: dict[str, Any] = {
            "timestamp": time.time(),
            "level": level,
            "component": self.component,
            "message": message,
        }
        payload.update(fields)
        writer = self._writer or _writer
        try:
            writer(payload)
        except Exception:
            return None

    def debug(self, message: str, **fields: Any) -> None:
        self.log("DEBUG", message, **fields)

    def info(self, message: str, **fields: Any) -> None:
        self.log("INFO", message, **fields)

    def warn(self, message: str, **fields: Any) -> None:
        self.log("WARNING", message, **fields)

    def error(self, message: str, **fields: Any) -> None:
        self.log("ERROR", message, **fields)


def get_logger(component: str) -> DiagnosticLogger:
    """Build a logger from environment-driven settings.

    Settings errors fall back to an enabled INFO logger.
    """
    try:
        from .settings import Settings

        core = Settings().core
        return DiagnosticLogger(
            component,
            enabled=core.internal_logging_enabled,
            level=core.diagnostics_level,
        )
    except Exception:
        return DiagnosticLogger(component)


__all__ = [
    "DiagnosticLogger",
    "DiagnosticWriter",
    "get_logger",
    "set_writer_for_tests",
]
