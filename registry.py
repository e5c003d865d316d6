"""
Metric registry: named counters and gauges shared by collectors and exporters.

Every metric guards its own value, so a reader always sees a whole value, but a
snapshot taken during a collection pass may mix values from two passes.
"""
from __future__ import annotations

import threading
import time
from typing import Any, Callable

COUNTER = "counter"
GAUGE = "gauge"

UINT64_MAX = 2**64 - 1


class Counter:
    """Monotonic value read from the server. Collectors set absolute values."""

    kind = COUNTER

    def __init__(self, name: str, clock: Callable[[], float] = time.monotonic) -> None:
        self.name = name
        self._clock = clock
        self._lock = threading.Lock()
        self._value = 0
        self._updated: float | None = None
        self._rate: float | None = None

    def set(self, value: int) -> None:
        value = min(int(value), UINT64_MAX)
        if value < 0:
            raise ValueError(f"counter {self.name} cannot hold {value}")
        now = self._clock()
        with self._lock:
            if self._updated is not None and now > self._updated and value >= self._value:
                self._rate = (value - self._value) / (now - self._updated)
            else:
                # first sample, or the server reset its counter
                self._rate = None
            self._value = value
            self._updated = now

    def get(self) -> int:
        with self._lock:
            return self._value

    @property
    def rate(self) -> float | None:
        """Per-second change between the last two sets, None until known."""
        with self._lock:
            return self._rate

    def to_dict(self) -> dict[str, Any]:
        with self._lock:
            return {"type": self.kind, "name": self.name, "value": self._value, "rate": self._rate}


class Gauge:
    """Point-in-time reading, overwritten on every collection."""

    kind = GAUGE

    def __init__(self, name: str) -> None:
        self.name = name
        self._lock = threading.Lock()
        self._value = 0.0

    def set(self, value: float) -> None:
        with self._lock:
            self._value = float(value)

    def get(self) -> float:
        with self._lock:
            return self._value

    def to_dict(self) -> dict[str, Any]:
        with self._lock:
            return {"type": self.kind, "name": self.name, "value": self._value}


Metric = Counter | Gauge


class MetricContext:
    """Process-wide registry, created once and handed to every component."""

    def __init__(self, prefix: str = "mysqlstat", clock: Callable[[], float] = time.monotonic) -> None:
        self.prefix = prefix
        self._clock = clock
        self._metrics: dict[str, Metric] = {}
        self._lock = threading.Lock()

    def qualify(self, *parts: str) -> str:
        return ".".join((self.prefix, *parts))

    def counter(self, name: str) -> Counter:
        return self._get_or_create(name, Counter)

    def gauge(self, name: str) -> Gauge:
        return self._get_or_create(name, Gauge)

    def _get_or_create(self, name: str, cls: type) -> Any:
        with self._lock:
            existing = self._metrics.get(name)
            if existing is not None:
                if not isinstance(existing, cls):
                    raise TypeError(f"metric {name} already registered as {existing.kind}")
                return existing
            metric = cls(name, self._clock) if cls is Counter else cls(name)
            self._metrics[name] = metric
            return metric

    def get(self, name: str) -> Metric | None:
        with self._lock:
            return self._metrics.get(name)

    def metrics(self) -> list[Metric]:
        """Registered metrics ordered by name."""
        with self._lock:
            return [self._metrics[k] for k in sorted(self._metrics)]

    def snapshot(self) -> list[dict[str, Any]]:
        """One entry per metric: type, fully-qualified name, value, and rate for counters."""
        return [m.to_dict() for m in self.metrics()]

    def __len__(self) -> int:
        with self._lock:
            return len(self._metrics)
