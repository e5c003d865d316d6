"""Tests for the PyMySQL-backed executor, with the driver replaced by a fake connection."""
from __future__ import annotations

import sys
from pathlib import Path

import pymysql
import pytest

sys.path.insert(0, str(Path(__file__).resolve().parent.parent))

import executor
from executor import ConnectError, MysqlExecutor, QueryError


class FakeCursor:
    def __init__(self, conn) -> None:
        self.conn = conn
        self.description = None

    def __enter__(self):
        return self

    def __exit__(self, *exc) -> None:
        return None

    def execute(self, query: str) -> None:
        if self.conn.error:
            raise pymysql.OperationalError(2013, "Lost connection to MySQL server during query")
        self.description = [(name,) for name in self.conn.columns]

    def fetchall(self):
        return self.conn.rows


class FakeConnection:
    def __init__(self, columns, rows, error: bool = False) -> None:
        self.columns = columns
        self.rows = rows
        self.error = error
        self.pings = 0
        self.closed = False

    def ping(self, reconnect: bool = False) -> None:
        self.pings += 1

    def cursor(self) -> FakeCursor:
        return FakeCursor(self)

    def close(self) -> None:
        self.closed = True


def _executor(monkeypatch, conn, **kwargs) -> MysqlExecutor:
    seen = {}

    def connect(**kw):
        seen.update(kw)
        return conn

    monkeypatch.setattr(executor.pymysql, "connect", connect)
    db = MysqlExecutor(**kwargs)
    db.connect_kwargs = seen
    return db


def test_query_columns(monkeypatch) -> None:
    conn = FakeConnection(["Variable_name", "Value"], [("Queries", 8), ("Uptime", None), ("Ssl", b"ON")])
    db = _executor(monkeypatch, conn)
    assert db.query_columns("SHOW GLOBAL STATUS;") == {
        "Variable_name": ["Queries", "Uptime", "Ssl"],
        "Value": ["8", "", "ON"],
    }
    assert conn.pings == 1


def test_query_keyed(monkeypatch) -> None:
    conn = FakeConnection(["Variable_name", "Value"], [("Queries", 8), ("Uptime", 100)])
    db = _executor(monkeypatch, conn)
    assert db.query_keyed("SHOW GLOBAL STATUS;") == {"Queries": ["8"], "Uptime": ["100"]}


def test_query_error_wraps_driver_error(monkeypatch) -> None:
    db = _executor(monkeypatch, FakeConnection([], [], error=True))
    with pytest.raises(QueryError, match="Lost connection"):
        db.query_columns("SELECT 1;")


def test_connect_kwargs(monkeypatch, tmp_path) -> None:
    cnf = tmp_path / "my.cnf"
    cnf.write_text("[client]\nuser=monitor\n", encoding="utf-8")
    db = _executor(monkeypatch, FakeConnection([], []), host="db1", port="3307", conf_file=cnf, password="s3cret")
    kw = db.connect_kwargs
    assert kw["host"] == "db1"
    assert kw["port"] == 3307
    assert kw["read_default_file"] == str(cnf)
    assert kw["password"] == "s3cret"
    assert "user" not in kw


def test_missing_conf_file_is_skipped(monkeypatch, tmp_path) -> None:
    db = _executor(monkeypatch, FakeConnection([], []), conf_file=tmp_path / "absent.cnf")
    assert "read_default_file" not in db.connect_kwargs


def test_connect_error(monkeypatch) -> None:
    def refuse(**kw):
        raise pymysql.OperationalError(2003, "Can't connect to MySQL server")

    monkeypatch.setattr(executor.pymysql, "connect", refuse)
    with pytest.raises(ConnectError, match="localhost:3306"):
        MysqlExecutor()


def test_close(monkeypatch) -> None:
    conn = FakeConnection([], [])
    db = _executor(monkeypatch, conn)
    db.close()
    assert conn.closed


def test_unset_connection_values_are_left_to_conf_file(monkeypatch, tmp_path) -> None:
    cnf = tmp_path / "my.cnf"
    cnf.write_text("[client]\nuser=monitor\nhost=db1.internal\nport=3307\n", encoding="utf-8")
    db = _executor(monkeypatch, FakeConnection([], []), conf_file=cnf)
    kw = db.connect_kwargs
    assert kw["read_default_file"] == str(cnf)
    for key in ("user", "password", "host", "port"):
        assert key not in kw
