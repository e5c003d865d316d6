"""
Base collector interface and the group dispatcher shared by all collectors.
"""
from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Callable, Iterable

from executor import QueryError, QueryExecutor
from registry import MetricContext
from utils import get_logger

logger = get_logger(__name__)

GroupFn = Callable[[], None]


class UnknownGroupError(LookupError):
    """Requested metrics group is not in the catalog."""

    def __init__(self, group: str) -> None:
        super().__init__(f"unknown metrics group: {group}")
        self.group = group


@dataclass
class CollectorResult:
    """Outcome of one group: failed queries are listed in error, metrics stay stale."""
    group: str
    success: bool = True
    error: str | None = None


class BaseCollector(ABC):
    """A set of named metric groups sharing one executor and one registry."""

    name: str = "base"

    def __init__(self, ctx: MetricContext, db: QueryExecutor) -> None:
        self.ctx = ctx
        self.db = db
        self._errors: list[str] = []

    @abstractmethod
    def groups(self) -> dict[str, GroupFn]:
        """Group name -> collection function, in collection order."""
        ...

    def query_columns(self, query: str) -> dict[str, list[str]] | None:
        """Run a column query; on failure log it and return None."""
        try:
            return self.db.query_columns(query)
        except QueryError as e:
            self._fail(e)
            return None

    def query_keyed(self, query: str) -> dict[str, list[str]] | None:
        """Run a keyed query; on failure log it and return None."""
        try:
            return self.db.query_keyed(query)
        except QueryError as e:
            self._fail(e)
            return None

    def _fail(self, e: Exception) -> None:
        self._errors.append(str(e))
        self.db.log(f"{self.name}: {e}")

    def run_group(self, group: str, fn: GroupFn) -> CollectorResult:
        """Run one group. Never raises; failures leave that group's metrics untouched."""
        self._errors = []
        try:
            fn()
        except Exception as e:
            logger.exception("%s: group %s failed", self.name, group)
            self._errors.append(str(e))
        if self._errors:
            return CollectorResult(group=group, success=False, error="; ".join(self._errors))
        return CollectorResult(group=group)

    def collect(self) -> list[CollectorResult]:
        return [self.run_group(g, fn) for g, fn in self.groups().items()]


class GroupDispatcher:
    """Closed name -> function table over one or more collectors, built once."""

    def __init__(self, collectors: Iterable[BaseCollector]) -> None:
        self._table: dict[str, tuple[BaseCollector, GroupFn]] = {}
        for collector in collectors:
            for group, fn in collector.groups().items():
                if group in self._table:
                    raise ValueError(f"group {group} declared by {self._table[group][0].name} and {collector.name}")
                self._table[group] = (collector, fn)

    @property
    def group_names(self) -> list[str]:
        return list(self._table)

    def __contains__(self, group: str) -> bool:
        return group in self._table

    def dispatch(self, group: str) -> CollectorResult:
        """Run exactly the named group. Raises UnknownGroupError before touching anything."""
        try:
            collector, fn = self._table[group]
        except KeyError:
            raise UnknownGroupError(group) from None
        result = collector.run_group(group, fn)
        if not result.success:
            logger.debug("group %s incomplete: %s", group, result.error)
        return result

    def dispatch_all(self) -> list[CollectorResult]:
        return [self.dispatch(g) for g in self._table]
