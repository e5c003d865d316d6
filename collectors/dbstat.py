"""
Server-wide MySQL metric groups: replication, global status, sessions,
binlogs, InnoDB internals, and long-running or blocking work.
"""
from __future__ import annotations

from executor import QueryExecutor
from innodb import parse_innodb_status, parse_mutex_waits
from models import DbStatMetrics
from registry import Counter, Gauge, MetricContext
from utils import log_file_seq, parse_version, safe_percent, to_float, to_uint

from collectors.base import BaseCollector, GroupFn

VERSION_QUERY = "SELECT VERSION();"
SLAVE_QUERY = "SHOW SLAVE STATUS;"
GLOBAL_STATUS_QUERY = "SHOW GLOBAL STATUS;"
BINLOG_STATS_QUERY = "SHOW MASTER STATUS;"
BINLOG_FILES_QUERY = "SHOW MASTER LOGS;"
STACKED_QUERY = """
SELECT COUNT(*) AS identical_queries_stacked,
       MAX(time) AS max_age,
       GROUP_CONCAT(id SEPARATOR ' ') AS thread_ids,
       info AS query
  FROM information_schema.processlist
 WHERE user != 'system user'
   AND user NOT LIKE 'repl%'
   AND info IS NOT NULL
 GROUP BY 4
HAVING COUNT(*) > 1
 ORDER BY identical_queries_stacked DESC;"""
MAX_CONNECTIONS_QUERY = "SELECT @@GLOBAL.max_connections AS max_connections;"
SESSIONS_QUERY = "SELECT COMMAND, USER, STATE FROM information_schema.processlist;"
LONG_QUERY = """
SELECT ID FROM information_schema.processlist
 WHERE command NOT IN ('Sleep', 'Connect', 'Binlog Dump', 'Binlog Dump GTID')
   AND time > 30;"""
OLDEST_QUERY = """
SELECT time FROM information_schema.processlist
 WHERE command NOT IN ('Sleep', 'Connect', 'Binlog Dump', 'Binlog Dump GTID')
 ORDER BY time DESC LIMIT 1;"""
OLDEST_TRX_QUERY = """
SELECT UNIX_TIMESTAMP(NOW()) - UNIX_TIMESTAMP(trx_started) AS time
  FROM information_schema.innodb_trx
 ORDER BY trx_started ASC LIMIT 1;"""
RESPONSE_TIME_QUERY = "SELECT time, count FROM information_schema.query_response_time WHERE time != 'TOO LONG';"
INNODB_STATUS_QUERY = "SHOW ENGINE INNODB STATUS;"
INNODB_LOG_FILE_QUERY = "SHOW GLOBAL VARIABLES LIKE 'innodb_log_file%';"
MUTEX_QUERY = "SHOW ENGINE INNODB MUTEX;"
SECURITY_QUERY = "SELECT user FROM mysql.user WHERE authentication_string = '' AND ssl_type = '';"
BLOCKING_QUERY = """
SELECT r.trx_id AS waiting_trx_id,
       b.trx_id AS blocking_trx_id,
       TIMESTAMPDIFF(SECOND, r.trx_wait_started, NOW()) AS wait_s
  FROM information_schema.innodb_lock_waits w
  JOIN information_schema.innodb_trx b ON b.trx_id = w.blocking_trx_id
  JOIN information_schema.innodb_trx r ON r.trx_id = w.requesting_trx_id;"""
BACKUPS_QUERY = "SELECT ID FROM information_schema.processlist WHERE user LIKE '%backup%';"
READ_ONLY_QUERY = "SELECT @@GLOBAL.read_only AS read_only;"

# SHOW GLOBAL STATUS variables copied as-is; metric attribute is the lower-cased name
GLOBAL_STATUS_COUNTERS = (
    "Aborted_clients", "Aborted_connects", "Binlog_cache_disk_use", "Binlog_cache_use",
    "Bytes_received", "Bytes_sent", "Com_alter_table", "Com_begin", "Com_commit",
    "Com_create_table", "Com_delete", "Com_delete_multi", "Com_drop_table", "Com_insert",
    "Com_insert_select", "Com_replace", "Com_replace_select", "Com_rollback", "Com_select",
    "Com_update", "Com_update_multi", "Connections", "Created_tmp_disk_tables",
    "Created_tmp_files", "Created_tmp_tables", "Handler_read_first", "Handler_read_key",
    "Handler_read_next", "Handler_read_rnd", "Handler_read_rnd_next",
    "Innodb_buffer_pool_read_requests", "Innodb_buffer_pool_reads", "Innodb_log_waits",
    "Innodb_row_lock_time", "Innodb_row_lock_waits", "Opened_tables", "Queries", "Questions",
    "Select_full_join", "Select_scan", "Slow_queries", "Sort_merge_passes",
    "Table_locks_waited", "Threads_created", "Uptime",
)
GLOBAL_STATUS_GAUGES = (
    "Innodb_buffer_pool_pages_dirty", "Innodb_buffer_pool_pages_free",
    "Innodb_buffer_pool_pages_total", "Innodb_row_lock_current_waits",
    "Max_used_connections", "Open_files", "Open_tables", "Threads_cached",
    "Threads_connected", "Threads_running",
)

# query_response_time boundary (as the server prints it) -> counter attribute
RESPONSE_TIME_BUCKETS = {
    "0.000001": "query_response_sec_0_000001",
    "00.00001": "query_response_sec_0_00001",
    "000.0001": "query_response_sec_0_0001",
    "0000.001": "query_response_sec_0_001",
    "00000.01": "query_response_sec_0_01",
    "00000.1": "query_response_sec_0_1",
    "1.00000": "query_response_sec_1",
    "10.0000": "query_response_sec_10",
    "100.000": "query_response_sec_100",
    "1000.00": "query_response_sec_1000",
    "10000.0": "query_response_sec_10000",
    "100000.0": "query_response_sec_100000",
}

IDLE_COMMANDS = frozenset({"Sleep", "Connect", "Binlog Dump"})


def _first(result: dict[str, list[str]] | None, column: str) -> str | None:
    if not result:
        return None
    values = result.get(column)
    if not values:
        return None
    return values[0]


def _set_gauge(gauge: Gauge, raw: str | None) -> None:
    value = to_float(raw)
    if value is not None:
        gauge.set(value)


def _set_counter(counter: Counter, raw: str | None) -> None:
    value = to_uint(raw)
    if value is not None:
        counter.set(value)


def _yes_no(raw: str | None) -> float | None:
    if raw is None:
        return None
    return 1.0 if raw.strip().lower() in ("yes", "on", "1") else 0.0


class DbStatCollector(BaseCollector):
    """Server-wide metric groups. Group names are the public catalog."""

    name = "dbstat"

    def __init__(self, ctx: MetricContext, db: QueryExecutor, metrics: DbStatMetrics | None = None) -> None:
        super().__init__(ctx, db)
        self.metrics = metrics or DbStatMetrics.create(ctx)

    def groups(self) -> dict[str, GroupFn]:
        return {
            "GetVersion": self.get_version,
            "GetSlaveStats": self.get_slave_stats,
            "GetGlobalStatus": self.get_global_status,
            "GetBinlogStats": self.get_binlog_stats,
            "GetBinlogFiles": self.get_binlog_files,
            "GetStackedQueries": self.get_stacked_queries,
            "GetSessions": self.get_sessions,
            "GetNumLongRunQueries": self.get_num_long_run_queries,
            "GetOldestQuery": self.get_oldest_query,
            "GetOldestTrx": self.get_oldest_trx,
            "GetQueryResponseTime": self.get_query_response_time,
            "GetInnodbStats": self.get_innodb_stats,
            "GetInnodbBufferpoolMutexWaits": self.get_innodb_bufferpool_mutex_waits,
            "GetSecurity": self.get_security,
            "GetBlockingQuerys": self.get_blocking_queries,
            "GetBackups": self.get_backups,
            "GetReadOnly": self.get_read_only,
        }

    def get_version(self) -> None:
        res = self.query_columns(VERSION_QUERY)
        version = parse_version(_first(res, "VERSION()"))
        if version is not None:
            self.metrics.version.set(version)

    def get_slave_stats(self) -> None:
        res = self.query_columns(SLAVE_QUERY)
        if not res:
            return
        m = self.metrics
        _set_gauge(m.slave_seconds_behind_master, _first(res, "Seconds_Behind_Master"))
        seq = log_file_seq(_first(res, "Relay_Master_Log_File"))
        if seq is not None:
            m.slave_seq_file.set(seq)
        _set_counter(m.slave_position, _first(res, "Exec_Master_Log_Pos"))
        for gauge, column in ((m.slave_io_running, "Slave_IO_Running"), (m.slave_sql_running, "Slave_SQL_Running")):
            running = _yes_no(_first(res, column))
            if running is not None:
                gauge.set(running)

    def get_global_status(self) -> None:
        res = self.query_keyed(GLOBAL_STATUS_QUERY)
        if not res:
            return
        for var in GLOBAL_STATUS_COUNTERS:
            if var in res:
                _set_counter(getattr(self.metrics, var.lower()), _first(res, var))
        for var in GLOBAL_STATUS_GAUGES:
            if var in res:
                _set_gauge(getattr(self.metrics, var.lower()), _first(res, var))

    def get_binlog_stats(self) -> None:
        res = self.query_columns(BINLOG_STATS_QUERY)
        seq = log_file_seq(_first(res, "File"))
        if seq is not None:
            self.metrics.binlog_seq_file.set(seq)
        _set_counter(self.metrics.binlog_position, _first(res, "Position"))

    def get_binlog_files(self) -> None:
        res = self.query_columns(BINLOG_FILES_QUERY)
        if not res or "File_size" not in res:
            return
        sizes = [to_float(v) for v in res["File_size"]]
        self.metrics.binlog_files.set(len(sizes))
        self.metrics.binlog_size.set(sum(s for s in sizes if s is not None))

    def get_stacked_queries(self) -> None:
        res = self.query_columns(STACKED_QUERY)
        if res is None:
            return
        # rows are ordered by stack depth; an empty result means nothing is stacked
        _set_gauge(self.metrics.identical_queries_stacked, _first(res, "identical_queries_stacked") or "0")
        _set_gauge(self.metrics.identical_queries_max_age, _first(res, "max_age") or "0")

    def get_sessions(self) -> None:
        m = self.metrics
        res = self.query_columns(MAX_CONNECTIONS_QUERY)
        _set_gauge(m.max_connections, _first(res, "max_connections"))

        res = self.query_columns(SESSIONS_QUERY)
        if res is None:
            return
        commands = res.get("COMMAND", [])
        users = res.get("USER", [])
        states = res.get("STATE", [])
        current = max(len(commands), len(users), len(states))
        active = unauthenticated = locked = table_locks = global_read_locks = copying = statistics = 0
        for command in commands:
            if command not in IDLE_COMMANDS:
                active += 1
        for user in users:
            if "unauthenticated" in user:
                unauthenticated += 1
        for state in states:
            lowered = state.lower()
            if state == "statistics":
                statistics += 1
            if "copying" in lowered and "table" in lowered:
                copying += 1
            if state == "Table Lock":
                table_locks += 1
            if state == "Locked":
                locked += 1
            if state == "Waiting for global read lock":
                global_read_locks += 1

        m.current_sessions.set(current)
        m.active_sessions.set(active)
        m.unauthenticated_sessions.set(unauthenticated)
        m.locked_sessions.set(locked)
        m.session_tables_locks.set(table_locks)
        m.session_global_read_locks.set(global_read_locks)
        m.sessions_copying_to_table.set(copying)
        m.sessions_statistics.set(statistics)
        m.current_connections_pct.set(safe_percent(current, m.max_connections.get()))
        m.busy_session_pct.set(safe_percent(active, current))

    def get_num_long_run_queries(self) -> None:
        res = self.query_columns(LONG_QUERY)
        if res is None:
            return
        self.metrics.active_long_run_queries.set(len(res.get("ID", [])))

    def get_oldest_query(self) -> None:
        res = self.query_columns(OLDEST_QUERY)
        if res is None:
            return
        _set_gauge(self.metrics.oldest_query_s, _first(res, "time") or "0")

    def get_oldest_trx(self) -> None:
        res = self.query_columns(OLDEST_TRX_QUERY)
        if res is None:
            return
        _set_gauge(self.metrics.oldest_trx_s, _first(res, "time") or "0")

    def get_query_response_time(self) -> None:
        res = self.query_columns(RESPONSE_TIME_QUERY)
        if not res:
            return
        for boundary, count in zip(res.get("time", []), res.get("count", [])):
            attr = RESPONSE_TIME_BUCKETS.get(boundary.strip())
            if attr is None:
                continue
            _set_counter(getattr(self.metrics, attr), count)

    def get_innodb_stats(self) -> None:
        m = self.metrics
        capacity = 0.0
        res = self.query_keyed(INNODB_LOG_FILE_QUERY)
        size = to_float(_first(res, "innodb_log_file_size"))
        if size is not None:
            m.innodb_log_file_size.set(size)
            capacity = size * (to_float(_first(res, "innodb_log_files_in_group")) or 1.0)

        res = self.query_columns(INNODB_STATUS_QUERY)
        text = _first(res, "Status")
        if text is None:
            return
        fields = parse_innodb_status(text)
        for name, value in fields.items():
            gauge = m.innodb_status.get(name)
            if gauge is not None:
                gauge.set(value)
        age = fields.get("checkpoint_age")
        if age is not None and capacity > 0:
            m.innodb_checkpoint_age_pct.set(safe_percent(age, capacity))

    def get_innodb_bufferpool_mutex_waits(self) -> None:
        res = self.query_columns(MUTEX_QUERY)
        if not res:
            return
        waits = parse_mutex_waits(res.get("Name", []), res.get("Status", []))
        if "lru_list_mutex_os_waits" in waits:
            self.metrics.innodb_bufpool_lru_mutex_os_wait.set(waits["lru_list_mutex_os_waits"])
        if "zip_mutex_os_waits" in waits:
            self.metrics.innodb_bufpool_zip_mutex_os_wait.set(waits["zip_mutex_os_waits"])

    def get_security(self) -> None:
        res = self.query_columns(SECURITY_QUERY)
        if res is None:
            return
        self.metrics.unsecure_users.set(len(res.get("user", [])))

    def get_blocking_queries(self) -> None:
        res = self.query_columns(BLOCKING_QUERY)
        if res is None:
            return
        waiting = res.get("waiting_trx_id", [])
        waits = [w for w in (to_float(v) for v in res.get("wait_s", [])) if w is not None]
        self.metrics.blocked_queries.set(len(waiting))
        self.metrics.blocking_queries.set(len(set(res.get("blocking_trx_id", []))))
        self.metrics.max_lock_wait_s.set(max(waits, default=0.0))

    def get_backups(self) -> None:
        res = self.query_columns(BACKUPS_QUERY)
        if res is None:
            return
        self.metrics.backups_running.set(len(res.get("ID", [])))

    def get_read_only(self) -> None:
        res = self.query_columns(READ_ONLY_QUERY)
        flag = _yes_no(_first(res, "read_only"))
        if flag is not None:
            self.metrics.read_only.set(flag)
