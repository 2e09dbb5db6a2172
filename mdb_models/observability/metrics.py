"""
Boot metrics for MDB_MODELS.

Durations and failure counts of what a boot does: index syncs, single index
creates and drops, migration applies, and model, connection and engine
initialization. Each series is keyed by the operation plus the collection,
index and migration it touched, so the cost of one migration on one
collection can be read back after a deploy.
"""

import threading
import time
from collections.abc import Callable
from dataclasses import dataclass
from typing import Any


@dataclass(frozen=True)
class SeriesKey:
    """Identity of one metric series."""

    operation: str
    collection_name: str | None = None
    index_name: str | None = None
    migration_name: str | None = None

    def __str__(self) -> str:
        target = "/".join(
            part
            for part in (self.collection_name, self.index_name, self.migration_name)
            if part
        )
        return f"{self.operation}[{target}]" if target else self.operation


@dataclass
class OperationStats:
    """Counts and timings of one series."""

    count: int = 0
    error_count: int = 0
    total_duration_ms: float = 0.0
    max_duration_ms: float = 0.0
    last_duration_ms: float = 0.0

    @property
    def avg_duration_ms(self) -> float:
        return self.total_duration_ms / self.count if self.count else 0.0

    def add(self, duration_ms: float, success: bool) -> None:
        self.count += 1
        if not success:
            self.error_count += 1
        self.total_duration_ms += duration_ms
        self.max_duration_ms = max(self.max_duration_ms, duration_ms)
        self.last_duration_ms = duration_ms

    def to_dict(self) -> dict[str, Any]:
        return {
            "count": self.count,
            "error_count": self.error_count,
            "avg_duration_ms": round(self.avg_duration_ms, 2),
            "max_duration_ms": round(self.max_duration_ms, 2),
            "last_duration_ms": round(self.last_duration_ms, 2),
        }


class MetricsCollector:
    """
    Thread-safe store of boot metric series.

    The number of series is bounded by the declared models: one per
    operation and collection, index or migration.
    """

    def __init__(self) -> None:
        self._series: dict[SeriesKey, OperationStats] = {}
        self._lock = threading.Lock()

    def record_operation(
        self,
        operation: str,
        duration_ms: float,
        success: bool = True,
        collection_name: str | None = None,
        index_name: str | None = None,
        migration_name: str | None = None,
    ) -> None:
        key = SeriesKey(operation, collection_name, index_name, migration_name)
        with self._lock:
            self._series.setdefault(key, OperationStats()).add(duration_ms, success)

    def _matching(self, operation: str, collection_name: str | None) -> list[OperationStats]:
        return [
            stats
            for key, stats in self._series.items()
            if key.operation == operation
            and (collection_name is None or key.collection_name == collection_name)
        ]

    def get_operation_count(self, operation: str, collection_name: str | None = None) -> int:
        """Executions of an operation, over every series or one collection's."""
        with self._lock:
            return sum(stats.count for stats in self._matching(operation, collection_name))

    def get_error_count(self, operation: str, collection_name: str | None = None) -> int:
        with self._lock:
            return sum(stats.error_count for stats in self._matching(operation, collection_name))

    def get_stats(self, key: SeriesKey) -> OperationStats | None:
        with self._lock:
            return self._series.get(key)

    def get_metrics(self, collection_name: str | None = None) -> dict[str, Any]:
        """
        Snapshot of every series, optionally limited to one collection.

        Returns:
            {"metrics": {"<operation>[<collection>/<index or migration>]": stats}}
        """
        with self._lock:
            metrics = {
                str(key): stats.to_dict()
                for key, stats in self._series.items()
                if collection_name is None or key.collection_name == collection_name
            }
        return {"metrics": metrics}

    def reset(self) -> None:
        with self._lock:
            self._series.clear()


_metrics_collector = MetricsCollector()


def get_metrics_collector() -> MetricsCollector:
    """Process-wide collector that record_operation writes to."""
    return _metrics_collector


def record_operation(
    operation: str,
    duration_ms: float,
    success: bool = True,
    collection_name: str | None = None,
    index_name: str | None = None,
    migration_name: str | None = None,
) -> None:
    _metrics_collector.record_operation(
        operation, duration_ms, success, collection_name, index_name, migration_name
    )


def timed_operation(operation: str) -> Callable:
    """
    Record the duration of every call of an async function.

    A raised exception counts as a failed execution and propagates.

    Usage:
        @timed_operation("engine.initialize")
        async def initialize(self):
            ...
    """

    def decorator(func: Callable) -> Callable:
        async def wrapper(*args: Any, **kwargs: Any) -> Any:
            start_time = time.time()
            success = False
            try:
                result = await func(*args, **kwargs)
                success = True
                return result
            finally:
                record_operation(operation, (time.time() - start_time) * 1000, success)

        wrapper.__name__ = func.__name__
        wrapper.__doc__ = func.__doc__
        return wrapper

    return decorator
