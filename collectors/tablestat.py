"""
Per-schema and per-table metric groups, and the schema -> table tree they fill.
"""
from __future__ import annotations

from typing import Iterator

from executor import QueryExecutor
from models import SchemaMetrics, TableMetrics
from registry import MetricContext
from utils import to_float, to_uint

from collectors.base import BaseCollector, GroupFn

TABLE_SIZES_QUERY = """
SELECT table_schema AS db,
       table_name AS tbl,
       data_length + index_length AS tbl_size,
       table_rows AS tbl_rows
  FROM information_schema.tables
 WHERE table_type = 'BASE TABLE'
   AND table_schema NOT IN ('information_schema', 'performance_schema');"""
TABLE_STATISTICS_QUERY = """
SELECT table_schema AS db,
       table_name AS tbl,
       rows_read,
       rows_changed,
       rows_changed_x_indexes
  FROM information_schema.table_statistics;"""


class EntityTree:
    """
    schema -> table -> metrics, grown lazily from discovery queries.

    Entries are created the first time a schema or table is reported and are
    never removed, so a dropped table keeps its last values until restart.
    """

    def __init__(self, ctx: MetricContext) -> None:
        self.ctx = ctx
        self.schemas: dict[str, SchemaMetrics] = {}

    def schema(self, name: str) -> SchemaMetrics:
        entry = self.schemas.get(name)
        if entry is None:
            entry = SchemaMetrics.create(self.ctx, name)
            self.schemas[name] = entry
        return entry

    def upsert(self, schema: str, table: str) -> TableMetrics:
        """Return the metrics for schema.table, creating both levels if needed."""
        parent = self.schema(schema)
        entry = parent.tables.get(table)
        if entry is None:
            entry = TableMetrics.create(self.ctx, schema, table)
            parent.tables[table] = entry
        return entry

    def get(self, schema: str, table: str) -> TableMetrics | None:
        parent = self.schemas.get(schema)
        return parent.tables.get(table) if parent else None

    def tables(self) -> Iterator[TableMetrics]:
        for parent in self.schemas.values():
            yield from parent.tables.values()

    def __len__(self) -> int:
        return len(self.schemas) + sum(len(s.tables) for s in self.schemas.values())


def _rows(res: dict[str, list[str]], *columns: str) -> Iterator[tuple[str, ...]]:
    """Rows of res restricted to columns; a missing column reads as ''."""
    n = max((len(res.get(c, [])) for c in columns), default=0)
    cols = [res.get(c, []) for c in columns]
    for i in range(n):
        yield tuple(col[i] if i < len(col) else "" for col in cols)


class TableStatCollector(BaseCollector):
    name = "tablestat"

    def __init__(self, ctx: MetricContext, db: QueryExecutor, tree: EntityTree | None = None) -> None:
        super().__init__(ctx, db)
        self.tree = tree or EntityTree(ctx)

    def groups(self) -> dict[str, GroupFn]:
        return {
            "GetTableSizes": self.get_table_sizes,
            "GetTableStatistics": self.get_table_statistics,
        }

    def get_table_sizes(self) -> None:
        res = self.query_columns(TABLE_SIZES_QUERY)
        if not res:
            return
        totals: dict[str, float] = {}
        for db, tbl, size_raw, rows_raw in _rows(res, "db", "tbl", "tbl_size", "tbl_rows"):
            if not db or not tbl:
                continue
            entry = self.tree.upsert(db, tbl)
            size = to_float(size_raw)
            if size is not None:
                entry.size_bytes.set(size)
                totals[db] = totals.get(db, 0.0) + size
            rows = to_float(rows_raw)
            if rows is not None:
                entry.rows.set(rows)
        for db, total in totals.items():
            self.tree.schema(db).size_bytes.set(total)

    def get_table_statistics(self) -> None:
        res = self.query_columns(TABLE_STATISTICS_QUERY)
        if not res:
            return
        for db, tbl, read, changed, changed_x in _rows(
            res, "db", "tbl", "rows_read", "rows_changed", "rows_changed_x_indexes"
        ):
            if not db or not tbl:
                continue
            entry = self.tree.upsert(db, tbl)
            for counter, raw in (
                (entry.rows_read, read),
                (entry.rows_changed, changed),
                (entry.rows_changed_x_indexes, changed_x),
            ):
                value = to_uint(raw)
                if value is not None:
                    counter.set(value)
