"""
Delivery metrics for stream destinations.

Counts acknowledged and dropped records so that data loss from the
non-raising ``send`` contract stays observable. Prometheus exporters are
created only when enabled and always use an isolated registry; the in-memory
``SinkMetrics`` counters are maintained either way.

Counters are updated from the destination's loop thread and may be read from
any thread, so state is guarded by a ``threading.Lock`` rather than an
asyncio lock.
"""

from __future__ import annotations

import threading
from dataclasses import dataclass, field
from typing import Any

from prometheus_client import CollectorRegistry, Counter, Histogram


@dataclass
class SinkMetrics:
    """Captured delivery metrics for quick assertions in tests."""

    records_sent: int = 0
    records_dropped: int = 0
    drops_by_reason: dict[str, int] = field(default_factory=dict)


class MetricsCollector:
    """Instance-scoped delivery metrics collector."""

    def __init__(self, *, enabled: bool = False) -> None:
        self._enabled = bool(enabled)
        self._lock = threading.Lock()
        self._state = SinkMetrics()

        self._c_sent: Any | None = None
        self._c_dropped: Any | None = None
        self._h_put_latency: Any | None = None
        self._registry: CollectorRegistry | None = None

        if self._enabled:
            self._registry = CollectorRegistry()
            self._c_sent = Counter(
                "streamsink_records_sent_total",
                "Total number of records acknowledged by the stream",
                registry=self._registry,
            )
            self._c_dropped = Counter(
                "streamsink_records_dropped_total",
                "Total number of records that were not delivered",
                ["reason"],
                registry=self._registry,
            )
            self._h_put_latency = Histogram(
                "streamsink_put_record_seconds",
                "Latency of a single PutRecord call, excluding connection-slot wait",
                buckets=(0.005, 0.01, 0.025, 0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0, 10.0),
                registry=self._registry,
            )

    @property
    def is_enabled(self) -> bool:
        return self._enabled

    @property
    def registry(self) -> CollectorRegistry | None:
        """Expose the isolated Prometheus registry when enabled."""
        return self._registry

    def record_sent(self, *, duration_seconds: float | None = None) -> None:
        with self._lock:
            self._state.records_sent += 1
        if not self._enabled:
            return
        if self._c_sent is not None:
            self._c_sent.inc()
        if duration_seconds is not None and self._h_put_latency is not None:
            self._h_put_latency.observe(duration_seconds)

    def record_dropped(self, *, reason: str) -> None:
        with self._lock:
            self._state.records_dropped += 1
            by_reason = self._state.drops_by_reason
            by_reason[reason] = by_reason.get(reason, 0) + 1
        if not self._enabled:
            return
        if self._c_dropped is not None:
            self._c_dropped.labels(reason=reason).inc()

    def snapshot(self) -> SinkMetrics:
        with self._lock:
            return SinkMetrics(
                records_sent=self._state.records_sent,
                records_dropped=self._state.records_dropped,
                drops_by_reason=dict(self._state.drops_by_reason),
            )


__all__ = ["MetricsCollector", "SinkMetrics"]
