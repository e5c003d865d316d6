"""
Metric catalogs for inspect-mysql: the server-wide metric set, per-schema and
per-table metric sets, and the collection loop state.
"""
from __future__ import annotations

from dataclasses import dataclass, field, fields
from enum import Enum
from typing import Any

from innodb import STATUS_FIELDS
from registry import Counter, Gauge, MetricContext


class LoopState(str, Enum):
    IDLE = "idle"
    COLLECTING = "collecting"


def _build(cls: type, ctx: MetricContext, *path: str, **extra: Any) -> Any:
    """Register one metric per Counter/Gauge field under prefix.path.field."""
    kwargs: dict[str, Any] = dict(extra)
    for f in fields(cls):
        if f.type == "Counter":
            kwargs[f.name] = ctx.counter(ctx.qualify(*path, f.name))
        elif f.type == "Gauge":
            kwargs[f.name] = ctx.gauge(ctx.qualify(*path, f.name))
    return cls(**kwargs)


@dataclass
class DbStatMetrics:
    """Server-wide metrics. Built once per target; values mutate in place."""

    # version / replication
    version: Gauge
    slave_seconds_behind_master: Gauge
    slave_seq_file: Gauge
    slave_position: Counter
    slave_io_running: Gauge
    slave_sql_running: Gauge
    read_only: Gauge

    # binlogs
    binlog_seq_file: Gauge
    binlog_position: Counter
    binlog_files: Gauge
    binlog_size: Gauge

    # SHOW GLOBAL STATUS counters
    aborted_clients: Counter
    aborted_connects: Counter
    binlog_cache_disk_use: Counter
    binlog_cache_use: Counter
    bytes_received: Counter
    bytes_sent: Counter
    com_alter_table: Counter
    com_begin: Counter
    com_commit: Counter
    com_create_table: Counter
    com_delete: Counter
    com_delete_multi: Counter
    com_drop_table: Counter
    com_insert: Counter
    com_insert_select: Counter
    com_replace: Counter
    com_replace_select: Counter
    com_rollback: Counter
    com_select: Counter
    com_update: Counter
    com_update_multi: Counter
    connections: Counter
    created_tmp_disk_tables: Counter
    created_tmp_files: Counter
    created_tmp_tables: Counter
    handler_read_first: Counter
    handler_read_key: Counter
    handler_read_next: Counter
    handler_read_rnd: Counter
    handler_read_rnd_next: Counter
    innodb_buffer_pool_read_requests: Counter
    innodb_buffer_pool_reads: Counter
    innodb_log_waits: Counter
    innodb_row_lock_time: Counter
    innodb_row_lock_waits: Counter
    opened_tables: Counter
    queries: Counter
    questions: Counter
    select_full_join: Counter
    select_scan: Counter
    slow_queries: Counter
    sort_merge_passes: Counter
    table_locks_waited: Counter
    threads_created: Counter
    uptime: Counter

    # SHOW GLOBAL STATUS gauges
    innodb_buffer_pool_pages_dirty: Gauge
    innodb_buffer_pool_pages_free: Gauge
    innodb_buffer_pool_pages_total: Gauge
    innodb_row_lock_current_waits: Gauge
    max_used_connections: Gauge
    open_files: Gauge
    open_tables: Gauge
    threads_cached: Gauge
    threads_connected: Gauge
    threads_running: Gauge

    # sessions
    max_connections: Gauge
    current_sessions: Gauge
    current_connections_pct: Gauge
    active_sessions: Gauge
    busy_session_pct: Gauge
    unauthenticated_sessions: Gauge
    locked_sessions: Gauge
    session_tables_locks: Gauge
    session_global_read_locks: Gauge
    sessions_copying_to_table: Gauge
    sessions_statistics: Gauge

    # long-running work
    identical_queries_stacked: Gauge
    identical_queries_max_age: Gauge
    active_long_run_queries: Gauge
    oldest_query_s: Gauge
    oldest_trx_s: Gauge
    blocked_queries: Gauge
    blocking_queries: Gauge
    max_lock_wait_s: Gauge
    backups_running: Gauge
    unsecure_users: Gauge

    # query_response_time histogram
    query_response_sec_0_000001: Counter
    query_response_sec_0_00001: Counter
    query_response_sec_0_0001: Counter
    query_response_sec_0_001: Counter
    query_response_sec_0_01: Counter
    query_response_sec_0_1: Counter
    query_response_sec_1: Counter
    query_response_sec_10: Counter
    query_response_sec_100: Counter
    query_response_sec_1000: Counter
    query_response_sec_10000: Counter
    query_response_sec_100000: Counter

    # InnoDB
    innodb_log_file_size: Gauge
    innodb_checkpoint_age_pct: Gauge
    innodb_bufpool_lru_mutex_os_wait: Counter
    innodb_bufpool_zip_mutex_os_wait: Counter

    # collection loop
    collection_pass_seconds: Gauge

    # status report field -> gauge, keyed by innodb.STATUS_FIELDS
    innodb_status: dict[str, Gauge] = field(default_factory=dict)

    @classmethod
    def create(cls, ctx: MetricContext) -> DbStatMetrics:
        innodb_status = {name: ctx.gauge(ctx.qualify(f"innodb_{name}")) for name in STATUS_FIELDS}
        return _build(cls, ctx, innodb_status=innodb_status)


@dataclass
class TableMetrics:
    """Metrics for one table, registered under prefix.schema.table."""

    schema: str
    table: str
    rows_read: Counter
    rows_changed: Counter
    rows_changed_x_indexes: Counter
    size_bytes: Gauge
    rows: Gauge

    @classmethod
    def create(cls, ctx: MetricContext, schema: str, table: str) -> TableMetrics:
        return _build(cls, ctx, schema, table, schema=schema, table=table)


@dataclass
class SchemaMetrics:
    """A schema's total size and its tables. Tables are never evicted."""

    name: str
    size_bytes: Gauge
    tables: dict[str, TableMetrics] = field(default_factory=dict)

    @classmethod
    def create(cls, ctx: MetricContext, name: str) -> SchemaMetrics:
        return _build(cls, ctx, name, name=name)
