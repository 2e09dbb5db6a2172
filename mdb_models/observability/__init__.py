"""
Observability components.

Boot-scoped logging context and metrics for index reconciliation and
migrations.
"""

from .logging import (
    ContextualLoggerAdapter,
    current_context,
    end_boot,
    get_logger,
    model_context,
    start_boot,
)
from .metrics import (
    MetricsCollector,
    OperationStats,
    SeriesKey,
    get_metrics_collector,
    record_operation,
    timed_operation,
)

__all__ = [
    # Metrics
    "MetricsCollector",
    "OperationStats",
    "SeriesKey",
    "get_metrics_collector",
    "record_operation",
    "timed_operation",
    # Logging
    "start_boot",
    "end_boot",
    "model_context",
    "current_context",
    "ContextualLoggerAdapter",
    "get_logger",
]
