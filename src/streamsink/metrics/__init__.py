from .metrics import MetricsCollector, SinkMetrics

__all__ = ["MetricsCollector", "SinkMetrics"]
