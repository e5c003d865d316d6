"""
Parser for the free-text InnoDB monitor report (SHOW ENGINE INNODB STATUS)
and the SHOW ENGINE INNODB MUTEX listing.
"""
from __future__ import annotations

import re
from typing import Iterable

from utils import safe_percent, to_float

_RULE = re.compile(r"^[-=]{3,}\s*$")
_TITLE = re.compile(r"^[A-Z][A-Z /_]*[A-Z]$")

# any token; numeric conversion happens per field
_N = r"([^\s,;]+)"


def _p(pattern: str) -> re.Pattern[str]:
    return re.compile(pattern.replace("{n}", _N))


# section title -> [(line pattern, field per group)]
SECTION_PATTERNS: dict[str, list[tuple[re.Pattern[str], tuple[str, ...]]]] = {
    "BACKGROUND THREAD": [
        (_p(r"srv_master_thread loops: {n} srv_active, {n} srv_shutdown, {n} srv_idle"),
         ("srv_master_thread_loops_active", "srv_master_thread_loops_shutdown", "srv_master_thread_loops_idle")),
        (_p(r"srv_master_thread log flush and writes: {n}"),
         ("srv_master_thread_log_flush_and_writes",)),
    ],
    "SEMAPHORES": [
        (_p(r"OS WAIT ARRAY INFO: reservation count {n}"), ("os_wait_array_reservation_count",)),
        (_p(r"OS WAIT ARRAY INFO: signal count {n}"), ("os_wait_array_signal_count",)),
        (_p(r"Mutex spin waits {n}, rounds {n}, OS waits {n}"),
         ("mutex_spin_waits", "mutex_spin_rounds", "mutex_os_waits")),
        (_p(r"RW-shared spins {n}, rounds {n},? OS waits {n}"),
         ("rw_shared_spins", "rw_shared_rounds", "rw_shared_os_waits")),
        (_p(r"RW-excl spins {n}, rounds {n},? OS waits {n}"),
         ("rw_excl_spins", "rw_excl_rounds", "rw_excl_os_waits")),
        (_p(r"Spin rounds per wait: {n} mutex, {n} RW-shared, {n} RW-excl"),
         ("spin_rounds_per_wait_mutex", "spin_rounds_per_wait_rw_shared", "spin_rounds_per_wait_rw_excl")),
    ],
    "TRANSACTIONS": [
        (_p(r"Trx id counter {n}"), ("trx_id_counter",)),
        (_p(r"History list length {n}"), ("history_list_length",)),
    ],
    "FILE I/O": [
        # older servers print "reads: 0 [0, 0] ,", 5.7+ only the bracketed per-thread list
        (re.compile(r"Pending normal aio reads:\s*(\d+|\[[^\]]*\])(?:\s*\[[^\]]*\])?\s*,?\s*aio writes:\s*(\d+|\[[^\]]*\])"),
         ("pending_normal_aio_reads", "pending_normal_aio_writes")),
        (_p(r"ibuf aio reads: {n}, log i/o's: {n}, sync i/o's: {n}"),
         ("pending_ibuf_aio_reads", "pending_log_io", "pending_sync_io")),
        (_p(r"Pending flushes \(fsync\) log: {n}; buffer pool: {n}"),
         ("pending_fsync_log", "pending_fsync_buffer_pool")),
        (_p(r"{n} OS file reads, {n} OS file writes, {n} OS fsyncs"),
         ("os_file_reads", "os_file_writes", "os_fsyncs")),
        (_p(r"{n} reads/s, {n} avg bytes/read, {n} writes/s, {n} fsyncs/s"),
         ("reads_per_sec", "avg_bytes_per_read", "writes_per_sec", "fsyncs_per_sec")),
    ],
    "INSERT BUFFER AND ADAPTIVE HASH INDEX": [
        (_p(r"Ibuf: size {n}, free list len {n}, seg size {n}, {n} merges"),
         ("ibuf_size", "ibuf_free_list_len", "ibuf_seg_size", "ibuf_merges")),
        (_p(r"{n} hash searches/s, {n} non-hash searches/s"),
         ("hash_searches_per_sec", "non_hash_searches_per_sec")),
    ],
    "LOG": [
        (_p(r"Log sequence number\s+{n}"), ("log_sequence_number",)),
        (_p(r"Log flushed up to\s+{n}"), ("log_flushed_up_to",)),
        (_p(r"Pages flushed up to\s+{n}"), ("pages_flushed_up_to",)),
        (_p(r"Last checkpoint at\s+{n}"), ("last_checkpoint_at",)),
        (_p(r"{n} pending log (?:writes|flushes), {n} pending chkp writes"),
         ("pending_log_writes", "pending_chkp_writes")),
        (_p(r"{n} log i/o's done, {n} log i/o's/second"), ("log_io_done", "log_io_per_sec")),
    ],
    "BUFFER POOL AND MEMORY": [
        (_p(r"Total (?:large )?memory allocated {n}"), ("total_memory_allocated",)),
        (_p(r"Dictionary memory allocated {n}"), ("dictionary_memory_allocated",)),
        (_p(r"Buffer pool size\s+{n}"), ("buffer_pool_size",)),
        (_p(r"Free buffers\s+{n}"), ("free_buffers",)),
        (_p(r"^Database pages\s+{n}"), ("database_pages",)),
        (_p(r"Old database pages\s+{n}"), ("old_database_pages",)),
        (_p(r"Modified db pages\s+{n}"), ("modified_db_pages",)),
        (_p(r"Pending reads\s+{n}"), ("pending_reads",)),
        (_p(r"Pending writes: LRU {n}, flush list {n}, single page {n}"),
         ("pending_writes_lru", "pending_writes_flush_list", "pending_writes_single_page")),
        (_p(r"Pages made young {n}, not young {n}"), ("pages_made_young", "pages_not_young")),
        (_p(r"Pages read {n}, created {n}, written {n}"), ("pages_read", "pages_created", "pages_written")),
        (_p(r"Buffer pool hit rate {n} / {n}"), ("_hit_rate_num", "_hit_rate_den")),
    ],
    "ROW OPERATIONS": [
        (_p(r"{n} queries inside InnoDB, {n} queries in queue"), ("queries_inside_innodb", "queries_in_queue")),
        (_p(r"{n} read views open inside InnoDB"), ("read_views_open",)),
        (_p(r"Number of rows inserted {n}, updated {n}, deleted {n}, read {n}"),
         ("rows_inserted", "rows_updated", "rows_deleted", "rows_read")),
        (_p(r"{n} inserts/s, {n} updates/s, {n} deletes/s, {n} reads/s"),
         ("inserts_per_sec", "updates_per_sec", "deletes_per_sec", "row_reads_per_sec")),
    ],
}

DERIVED_FIELDS = ("checkpoint_age", "buffer_pool_hit_rate", "cache_hit_pct", "queries_per_sec")

# Every field parse_innodb_status can return.
STATUS_FIELDS: tuple[str, ...] = tuple(
    name
    for patterns in SECTION_PATTERNS.values()
    for _, names in patterns
    for name in names
    if not name.startswith("_")
) + DERIVED_FIELDS


def _to_number(raw: str) -> float | None:
    """A number, or the sum of a bracketed list such as "[1, 0, 2, 0]"."""
    if raw.startswith("["):
        parts = [to_float(p) for p in raw.strip("[]").split(",") if p.strip()]
        if not parts or any(p is None for p in parts):
            return None
        return sum(parts)
    return to_float(raw)


def _iter_sections(text: str) -> Iterable[tuple[str | None, str]]:
    """Yield (current section, line). A title counts only right after a rule."""
    section: str | None = None
    prev_rule = False
    for raw in text.splitlines():
        line = raw.strip()
        if _RULE.match(line):
            prev_rule = True
            continue
        if prev_rule and _TITLE.match(line):
            section = line if line in SECTION_PATTERNS else None
            prev_rule = False
            continue
        prev_rule = False
        if line:
            yield section, line


def parse_innodb_status(text: str | None) -> dict[str, float]:
    """
    Parse the InnoDB monitor report into field name -> value.

    Unknown sections and unmatched lines are skipped, and a number that fails
    to parse leaves only its own field out. A partial report gives partial output.
    When a field repeats within its section the first value is kept.
    """
    out: dict[str, float] = {}
    if not text:
        return out
    for section, line in _iter_sections(text):
        if section is None:
            continue
        for pattern, names in SECTION_PATTERNS[section]:
            m = pattern.search(line)
            if not m:
                continue
            for name, raw in zip(names, m.groups()):
                value = _to_number(raw)
                # first occurrence wins; later repeats are per-instance or system rows
                if value is not None and name not in out:
                    out[name] = value

    # derived
    if "log_sequence_number" in out and "last_checkpoint_at" in out:
        out["checkpoint_age"] = out["log_sequence_number"] - out["last_checkpoint_at"]
    num = out.pop("_hit_rate_num", None)
    den = out.pop("_hit_rate_den", None)
    if num is not None and den:
        out["buffer_pool_hit_rate"] = num / den
        out["cache_hit_pct"] = safe_percent(num, den)
    rates = [out.get(k) for k in ("inserts_per_sec", "updates_per_sec", "deletes_per_sec", "row_reads_per_sec")]
    if any(r is not None for r in rates):
        out["queries_per_sec"] = sum(r for r in rates if r is not None)
    return out


# -----------------------------------------------------------------------------
# SHOW ENGINE INNODB MUTEX
# -----------------------------------------------------------------------------

MUTEX_FIELDS = {
    "&buf_pool->LRU_list_mutex": "lru_list_mutex_os_waits",
    "&buf_pool->zip_mutex": "zip_mutex_os_waits",
}

_OS_WAITS = re.compile(r"os_waits=(\d+)")


def parse_mutex_waits(names: list[str], statuses: list[str]) -> dict[str, int]:
    """
    Pair each mutex Name with its Status and pull os_waits for the tracked mutexes.

    A tracked mutex listed more than once (one row per instance) is summed.
    """
    out: dict[str, int] = {}
    for name, status in zip(names, statuses):
        field = MUTEX_FIELDS.get(name.strip())
        if field is None:
            continue
        m = _OS_WAITS.search(status)
        if not m:
            continue
        out[field] = out.get(field, 0) + int(m.group(1))
    return out
