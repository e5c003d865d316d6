"""
Collectors package: named metric groups over one MySQL connection.
"""
from __future__ import annotations

from executor import QueryExecutor
from registry import MetricContext

from collectors.base import BaseCollector, CollectorResult, GroupDispatcher, UnknownGroupError
from collectors.dbstat import DbStatCollector
from collectors.tablestat import EntityTree, TableStatCollector


def build_collectors(ctx: MetricContext, db: QueryExecutor | None) -> list[BaseCollector]:
    """All collectors in catalog order."""
    return [DbStatCollector(ctx, db), TableStatCollector(ctx, db)]


def group_names() -> list[str]:
    """The public group catalog, in collection order. Needs no connection."""
    return GroupDispatcher(build_collectors(MetricContext(), None)).group_names


__all__ = [
    "BaseCollector",
    "CollectorResult",
    "DbStatCollector",
    "EntityTree",
    "GroupDispatcher",
    "TableStatCollector",
    "UnknownGroupError",
    "build_collectors",
    "group_names",
]
