"""Tests for the metric registry."""
from __future__ import annotations

import sys
from pathlib import Path

import pytest

sys.path.insert(0, str(Path(__file__).resolve().parent.parent))

from registry import COUNTER, GAUGE, UINT64_MAX, Counter, Gauge, MetricContext


class FakeClock:
    def __init__(self, now: float = 1000.0) -> None:
        self.now = now

    def __call__(self) -> float:
        return self.now


def test_counter_rate() -> None:
    clock = FakeClock()
    c = Counter("mysqlstat.queries", clock)
    c.set(100)
    assert c.rate is None
    clock.now += 2
    c.set(160)
    assert c.get() == 160
    assert c.rate == pytest.approx(30.0)


def test_counter_reset_clears_rate() -> None:
    clock = FakeClock()
    c = Counter("mysqlstat.queries", clock)
    c.set(500)
    clock.now += 1
    c.set(10)
    assert c.get() == 10
    assert c.rate is None
    clock.now += 1
    c.set(20)
    assert c.rate == pytest.approx(10.0)


def test_counter_rejects_negative_and_saturates() -> None:
    c = Counter("mysqlstat.queries")
    with pytest.raises(ValueError):
        c.set(-1)
    c.set(UINT64_MAX + 10)
    assert c.get() == UINT64_MAX


def test_gauge() -> None:
    g = Gauge("mysqlstat.threads_running")
    assert g.get() == 0.0
    g.set(5)
    assert g.get() == 5.0
    g.set(2.5)
    assert g.to_dict() == {"type": GAUGE, "name": "mysqlstat.threads_running", "value": 2.5}


def test_registry_get_or_create() -> None:
    ctx = MetricContext()
    a = ctx.counter(ctx.qualify("queries"))
    assert a is ctx.counter("mysqlstat.queries")
    assert ctx.get("mysqlstat.queries") is a
    assert ctx.get("mysqlstat.missing") is None
    with pytest.raises(TypeError):
        ctx.gauge("mysqlstat.queries")


def test_qualify() -> None:
    ctx = MetricContext(prefix="db1")
    assert ctx.qualify("version") == "db1.version"
    assert ctx.qualify("shop", "orders", "rows") == "db1.shop.orders.rows"


def test_snapshot_sorted_with_types() -> None:
    clock = FakeClock()
    ctx = MetricContext(clock=clock)
    ctx.gauge("mysqlstat.version").set(5.7)
    ctx.counter("mysqlstat.bytes_sent").set(10)
    snap = ctx.snapshot()
    assert [e["name"] for e in snap] == ["mysqlstat.bytes_sent", "mysqlstat.version"]
    assert snap[0] == {"type": COUNTER, "name": "mysqlstat.bytes_sent", "value": 10, "rate": None}
    assert snap[1]["type"] == GAUGE
    assert "rate" not in snap[1]
    assert len(ctx) == 2
