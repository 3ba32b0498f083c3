"""A bounded in-memory trace cache that evicts in insertion order."""

from __future__ import annotations

from datetime import datetime
from typing import Any, Protocol


DEFAULT_CAPACITY = 10000


class _Metrics(Protocol):
    def register(self, name: str, metric_type: str) -> None: ...

    def increment(self, name: str) -> None: ...

    def gauge(self, name: str, value: float) -> None: ...

    def histogram(self, name: str, value: float) -> None: ...


class InMemCache:
    """Keeps at most ``capacity`` traces, expunging the oldest insertion first.

    Not safe for concurrent use. Traces need ``trace_id``, ``sent`` and
    ``send_by`` attributes.
    """

    def __init__(self, capacity: int, metrics: _Metrics, logger: Any) -> None:
        logger.debug().logf("Starting DefaultInMemCache")
        if capacity < 0:
            raise ValueError(f"cache capacity must not be negative, got {capacity}")
        self.metrics = metrics
        self.logger = logger
        # buffer_overrun counts unsent traces pushed out of the ring
        metrics.register("collect_cache_buffer_overrun", "counter")
        metrics.register("collect_cache_capacity", "gauge")
        metrics.register("collect_cache_entries", "histogram")
        if capacity == 0:
            capacity = DEFAULT_CAPACITY
        self._traces: dict[str, Any] = {}
        self._ring: list[Any] = [None] * capacity
        self._insert_point = 0
        logger.debug().logf("Finished starting DefaultInMemCache")

    @property
    def cache_size(self) -> int:
        """The capacity of the ring."""
        return len(self._ring)

    def __len__(self) -> int:
        return len(self._traces)

    def set(self, trace: Any) -> Any:
        """Store ``trace``; return an evicted trace that was never sent, else None."""
        if trace is None:
            return None
        if self._insert_point >= len(self._ring):
            self._insert_point = 0

        self._traces[trace.trace_id] = trace

        evicted = None
        old = self._ring[self._insert_point]
        if old is not None:
            self._traces.pop(old.trace_id, None)
            if not old.sent:
                self.metrics.increment("collect_cache_buffer_overrun")
                evicted = old
        self._ring[self._insert_point] = trace
        self._insert_point += 1
        return evicted

    def get(self, trace_id: str) -> Any:
        return self._traces.get(trace_id)

    def get_all(self) -> list[Any]:
        """Every stored trace, in ring order."""
        return [t for t in self._ring if t is not None]

    def take_expired_traces(self, now: datetime) -> list[Any]:
        """Remove and return every trace whose ``send_by`` is before ``now``."""
        self.metrics.gauge("collect_cache_capacity", float(len(self._ring)))
        self.metrics.histogram("collect_cache_entries", float(len(self._traces)))

        expired = []
        for index, trace in enumerate(self._ring):
            if trace is not None and now > trace.send_by:
                expired.append(trace)
                self._ring[index] = None
                self._traces.pop(trace.trace_id, None)
        return expired