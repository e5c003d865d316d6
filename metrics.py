"""
Collection loop and metric output: runs metric groups on a fixed period and
writes the registry as graphite lines, JSON, or a rich table.
"""
from __future__ import annotations

import json
import sys
import threading
import time
from typing import Any, Callable, TextIO

from rich.console import Console
from rich.table import Table

from collectors import CollectorResult, GroupDispatcher, UnknownGroupError, build_collectors
from executor import QueryExecutor
from models import LoopState
from registry import COUNTER, Gauge, MetricContext
from utils import BYTES_PER_MB, format_value, get_logger

logger = get_logger(__name__)

FORMS = ("graphite", "json", "table")

# byte-valued metrics outside the *size_bytes naming convention
_SIZE_METRICS = frozenset({
    "binlog_size",
    "innodb_log_file_size",
    "innodb_total_memory_allocated",
    "innodb_dictionary_memory_allocated",
})


class CollectionLoop:
    """
    Runs every group in catalog order (or one named group) once per step.

    A pass goes IDLE -> COLLECTING -> IDLE; one group failing is logged by its
    collector and never ends the pass. run() only returns after stop().
    """

    def __init__(
        self,
        dispatcher: GroupDispatcher,
        step_sec: float = 2.0,
        pass_gauge: Gauge | None = None,
        on_pass: Callable[[list[CollectorResult]], None] | None = None,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.dispatcher = dispatcher
        self.step_sec = step_sec
        self.pass_gauge = pass_gauge
        self.on_pass = on_pass
        self._clock = clock
        self._state = LoopState.IDLE
        self._stop = threading.Event()

    @property
    def state(self) -> LoopState:
        return self._state

    def run_once(self, group: str | None = None) -> list[CollectorResult]:
        """One pass over all groups, or only group. Unknown group raises before collecting."""
        if group is not None and group not in self.dispatcher:
            raise UnknownGroupError(group)
        started = self._clock()
        self._state = LoopState.COLLECTING
        try:
            if group is None:
                results = self.dispatcher.dispatch_all()
            else:
                results = [self.dispatcher.dispatch(group)]
        finally:
            self._state = LoopState.IDLE
        elapsed = self._clock() - started
        if self.pass_gauge is not None:
            self.pass_gauge.set(elapsed)
        failed = [r.group for r in results if not r.success]
        logger.debug("pass done in %.3fs, %d groups, failed: %s", elapsed, len(results), failed or "none")
        if self.on_pass is not None:
            self.on_pass(results)
        return results

    def run(self, group: str | None = None) -> None:
        """Collect every step_sec until stop()."""
        self._stop.clear()
        next_tick = self._clock()
        while not self._stop.is_set():
            self.run_once(group)
            next_tick += self.step_sec
            # skip ticks missed by a slow pass instead of bursting
            now = self._clock()
            if next_tick < now:
                next_tick = now
            self._stop.wait(next_tick - now)

    def stop(self) -> None:
        self._stop.set()


def create_loop(
    ctx: MetricContext,
    db: QueryExecutor,
    step_sec: float = 2.0,
    on_pass: Callable[[list[CollectorResult]], None] | None = None,
) -> CollectionLoop:
    """Wire collectors, dispatcher and loop for one target connection."""
    collectors = build_collectors(ctx, db)
    dispatcher = GroupDispatcher(collectors)
    pass_gauge = ctx.gauge(ctx.qualify("collection_pass_seconds"))
    return CollectionLoop(dispatcher, step_sec=step_sec, pass_gauge=pass_gauge, on_pass=on_pass)


# -----------------------------------------------------------------------------
# Output
# -----------------------------------------------------------------------------

def _is_size(name: str) -> bool:
    last = name.rsplit(".", 1)[-1]
    return last.endswith("size_bytes") or last in _SIZE_METRICS


def _humanize(name: str, value: float) -> tuple[str, float]:
    if not _is_size(name):
        return name, value
    if name.endswith("_bytes"):
        name = name[: -len("_bytes")]
    return f"{name}_mb", value / BYTES_PER_MB


def _entries(ctx: MetricContext, human: bool) -> list[tuple[str, Any, dict[str, Any]]]:
    out = []
    for entry in ctx.snapshot():
        name, value = entry["name"], entry["value"]
        if human:
            name, value = _humanize(name, value)
        out.append((name, value, entry))
    return out


def format_graphite(ctx: MetricContext, out: TextIO, human: bool = False, timestamp: int | None = None) -> None:
    """One '<name> <value> <unix time>' line per metric."""
    ts = int(time.time()) if timestamp is None else timestamp
    for name, value, _ in _entries(ctx, human):
        out.write(f"{name} {format_value(value)} {ts}\n")


def encode_json(ctx: MetricContext, out: TextIO, pretty: bool = False) -> None:
    json.dump(ctx.snapshot(), out, indent=2 if pretty else None)
    out.write("\n")


def render_table(ctx: MetricContext, console: Console | None = None, human: bool = False) -> None:
    console = console or Console()
    table = Table(title="MySQL metrics")
    table.add_column("Metric", style="cyan")
    table.add_column("Type", style="dim")
    table.add_column("Value", style="green", justify="right")
    table.add_column("Rate/s", style="yellow", justify="right")
    for name, value, entry in _entries(ctx, human):
        rate = entry.get("rate")
        rate_text = f"{rate:.2f}" if entry["type"] == COUNTER and rate is not None else ""
        table.add_row(name, entry["type"], format_value(value), rate_text)
    console.print(table)


def output_metrics(ctx: MetricContext, form: str = "graphite", human: bool = False, out: TextIO | None = None) -> None:
    out = out or sys.stdout
    if form == "json":
        encode_json(ctx, out)
    elif form == "table":
        render_table(ctx, Console(file=out), human=human)
    elif form == "graphite":
        format_graphite(ctx, out, human=human)
    else:
        raise ValueError(f"unknown output form: {form} (expected one of {', '.join(FORMS)})")
