"""
Query executor: the only place that talks to the database. Collectors see
results as plain strings and do their own numeric parsing.
"""
from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Any

import pymysql

from utils import get_logger

logger = get_logger(__name__)


class QueryError(Exception):
    """A query could not be run or its result could not be read."""


class ConnectError(QueryError):
    """Cannot connect to the MySQL server."""


class QueryExecutor(ABC):
    """What collectors need from a database connection."""

    @abstractmethod
    def query_columns(self, query: str) -> dict[str, list[str]]:
        """Run query; return column name -> values in row order."""
        ...

    @abstractmethod
    def query_keyed(self, query: str) -> dict[str, list[str]]:
        """Run query; return first column value -> remaining values of that row."""
        ...

    def log(self, message: Any, level: int = logging.WARNING) -> None:
        logger.log(level, "%s", message)

    def close(self) -> None:
        return None


def _to_text(value: Any) -> str:
    if value is None:
        return ""
    if isinstance(value, (bytes, bytearray)):
        return value.decode("utf-8", errors="replace")
    return str(value)


class MysqlExecutor(QueryExecutor):
    """QueryExecutor over a single PyMySQL connection.

    Arguments given explicitly win over the [client] section of conf_file;
    anything left unset comes from that section, then from PyMySQL defaults.
    The connection is pinged (and re-established if needed) before each query,
    so a server restart only costs the queries issued while it is down.
    """

    def __init__(
        self,
        user: str | None = None,
        password: str | None = None,
        host: str | None = None,
        port: int | None = None,
        conf_file: str | Path | None = None,
        connect_timeout: float = 10,
        read_timeout: float | None = 30,
    ) -> None:
        kwargs: dict[str, Any] = {
            "connect_timeout": connect_timeout,
            "read_timeout": read_timeout,
            "autocommit": True,
            "charset": "utf8mb4",
        }
        if conf_file:
            path = Path(conf_file).expanduser()
            if path.exists():
                kwargs["read_default_file"] = str(path)
        if host:
            kwargs["host"] = host
        if port:
            kwargs["port"] = int(port)
        if user:
            kwargs["user"] = user
        if password:
            kwargs["password"] = password
        try:
            self._conn = pymysql.connect(**kwargs)
        except pymysql.MySQLError as e:
            raise ConnectError(f"cannot connect to mysql at {host or 'localhost'}:{port or 3306}: {e}") from e

    def _execute(self, query: str) -> tuple[list[str], list[tuple[Any, ...]]]:
        try:
            self._conn.ping(reconnect=True)
            with self._conn.cursor() as cur:
                cur.execute(query)
                columns = [d[0] for d in cur.description] if cur.description else []
                rows = list(cur.fetchall())
        except pymysql.MySQLError as e:
            raise QueryError(f"{query!r} failed: {e}") from e
        return columns, rows

    def query_columns(self, query: str) -> dict[str, list[str]]:
        columns, rows = self._execute(query)
        out: dict[str, list[str]] = {c: [] for c in columns}
        for row in rows:
            for col, value in zip(columns, row):
                out[col].append(_to_text(value))
        return out

    def query_keyed(self, query: str) -> dict[str, list[str]]:
        _, rows = self._execute(query)
        out: dict[str, list[str]] = {}
        for row in rows:
            if not row:
                continue
            out[_to_text(row[0])] = [_to_text(v) for v in row[1:]]
        return out

    def close(self) -> None:
        try:
            self._conn.close()
        except pymysql.Error as e:
            logger.debug("close: %s", e)
