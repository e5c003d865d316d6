"""
Shared utilities: logging, env helpers, lenient numeric parsing of query output.
"""
from __future__ import annotations

import logging
import math
import os
import re
import string
from pathlib import Path
from typing import Any, Callable

# -----------------------------------------------------------------------------
# Logging
# -----------------------------------------------------------------------------

LOG_FORMAT = "%(asctime)s [%(levelname)s] %(name)s: %(message)s"

# third-party loggers that are chatty below WARNING
_QUIET_LOGGERS = ("uvicorn.access", "pymysql")


def setup_logging(level: str | int = "WARNING", log_file: str | Path | None = None) -> None:
    """Send all records to stderr, and to log_file when given."""
    if isinstance(level, str):
        level = logging.getLevelName(level.upper())
        if not isinstance(level, int):
            level = logging.WARNING
    formatter = logging.Formatter(LOG_FORMAT)
    root = logging.getLogger()
    for handler in list(root.handlers):
        root.removeHandler(handler)
    stream = logging.StreamHandler()
    stream.setFormatter(formatter)
    root.addHandler(stream)
    if log_file:
        path = Path(log_file).expanduser()
        path.parent.mkdir(parents=True, exist_ok=True)
        file_handler = logging.FileHandler(path, encoding="utf-8")
        file_handler.setFormatter(formatter)
        root.addHandler(file_handler)
    root.setLevel(level)
    for name in _QUIET_LOGGERS:
        logging.getLogger(name).setLevel(max(level, logging.WARNING))


def get_logger(name: str) -> logging.Logger:
    return logging.getLogger(name)


logger = get_logger(__name__)


# -----------------------------------------------------------------------------
# Formatting
# -----------------------------------------------------------------------------

BYTES_PER_MB = 1024 * 1024


def format_value(value: int | float) -> str:
    """Integers as-is, floats without trailing zeros."""
    if isinstance(value, int):
        return str(value)
    if value == int(value) and abs(value) < 1e15:
        return str(int(value))
    return f"{value:.6f}".rstrip("0").rstrip(".")


# -----------------------------------------------------------------------------
# Env helpers
# -----------------------------------------------------------------------------

def env_value(key: str, cast: Callable[[str], Any] = str, default: Any = None) -> Any:
    """os.environ[key] converted with cast; default when unset, blank or unparsable."""
    raw = os.environ.get(key, "").strip()
    if not raw:
        return default
    try:
        return cast(raw)
    except ValueError:
        logger.warning("ignoring %s=%r: not a valid %s", key, raw, getattr(cast, "__name__", cast))
        return default


# -----------------------------------------------------------------------------
# Safe math
# -----------------------------------------------------------------------------

def safe_percent(part: float, total: float) -> float:
    """Return (part/total)*100, or 0 if total <= 0."""
    if total <= 0:
        return 0.0
    return (part / total) * 100.0


# -----------------------------------------------------------------------------
# Numeric parsing (query results are always strings)
# -----------------------------------------------------------------------------

_LOG_SEQ_SEP = re.compile(r"[.\-]")


def to_float(raw: str | None) -> float | None:
    """Parse a finite float, or None when the value is missing or malformed."""
    if raw is None:
        return None
    try:
        value = float(str(raw).strip())
    except ValueError:
        return None
    if not math.isfinite(value):
        return None
    return value


def to_uint(raw: str | None) -> int | None:
    """Parse a non-negative integer; tolerates a trailing '.0'. None on failure."""
    if raw is None:
        return None
    text = str(raw).strip()
    try:
        value = int(text)
    except ValueError:
        f = to_float(text)
        if f is None:
            return None
        value = int(f)
    if value < 0:
        return None
    return value


def parse_version(raw: str | None) -> float | None:
    """
    Collapse a server version string into one float.

    Letters are dropped and every other non-digit acts as a separator. The
    first digit run is the integer part; all later runs are concatenated into
    the fraction. "5.6.21-log" -> 5.621, "abcdefg-123-456-qwerty" -> 0.123456.
    Returns None when the string holds no digits or overflows a float.
    """
    if not raw:
        return None
    text = "".join(ch for ch in str(raw) if not ch.isalpha())
    runs = "".join(ch if ch in string.digits else "." for ch in text).split(".")
    leading, rest = runs[0], "".join(runs[1:])
    if not leading and not rest:
        return None
    value = float(f"{leading or 0}.{rest}")
    if not math.isfinite(value):
        return None
    return value


def log_file_seq(raw: str | None) -> int | None:
    """Sequence number of a binlog/relay-log file name: 'mysql-bin.000123' -> 123."""
    if not raw:
        return None
    last = _LOG_SEQ_SEP.split(str(raw).strip())[-1]
    if not last.isdigit():
        return None
    return int(last)
