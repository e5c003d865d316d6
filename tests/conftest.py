"""Shared fixtures: a recorded-result executor and a fresh registry per test."""
from __future__ import annotations

import logging
import sys
from pathlib import Path

import pytest

sys.path.insert(0, str(Path(__file__).resolve().parent.parent))

from executor import QueryError, QueryExecutor
from registry import MetricContext

FIXTURES = Path(__file__).resolve().parent / "fixtures"


class FakeExecutor(QueryExecutor):
    """Answers queries from dicts instead of a server.

    Unknown queries return an empty result; queries in `failing` raise QueryError.
    """

    def __init__(self) -> None:
        self.columns: dict[str, dict[str, list[str]]] = {}
        self.keyed: dict[str, dict[str, list[str]]] = {}
        self.failing: set[str] = set()
        self.queries: list[str] = []
        self.logged: list[str] = []
        self.closed = False

    def _answer(self, table: dict[str, dict[str, list[str]]], query: str) -> dict[str, list[str]]:
        self.queries.append(query)
        if query in self.failing:
            raise QueryError(f"{query!r} failed: (2013, 'Lost connection to MySQL server during query')")
        return {k: list(v) for k, v in table.get(query, {}).items()}

    def query_columns(self, query: str) -> dict[str, list[str]]:
        return self._answer(self.columns, query)

    def query_keyed(self, query: str) -> dict[str, list[str]]:
        return self._answer(self.keyed, query)

    def log(self, message, level: int = logging.WARNING) -> None:
        self.logged.append(str(message))

    def close(self) -> None:
        self.closed = True


@pytest.fixture
def db() -> FakeExecutor:
    return FakeExecutor()


@pytest.fixture
def ctx() -> MetricContext:
    return MetricContext()


@pytest.fixture
def innodb_report() -> str:
    return (FIXTURES / "innodb_status.txt").read_text(encoding="utf-8")
