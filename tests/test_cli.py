"""Tests for the command-line interface."""
from __future__ import annotations

import argparse
import sys
from pathlib import Path

import pytest

sys.path.insert(0, str(Path(__file__).resolve().parent.parent))

import cli
from collectors import group_names


def test_parser_collect() -> None:
    args = cli.build_parser().parse_args(
        ["collect", "-u", "monitor", "--port", "3307", "--group", "GetSessions", "--form", "json", "--human"]
    )
    assert args.run is cli.cmd_collect
    assert args.user == "monitor"
    assert args.port == 3307
    assert args.group == "GetSessions"
    assert args.form == "json"
    assert args.human is True
    assert args.loop is False


def test_parser_serve() -> None:
    args = cli.build_parser().parse_args(["serve", "--address", ":9000", "--step", "5"])
    assert args.run is cli.cmd_serve
    assert args.address == ":9000"
    assert args.step == 5.0


def test_parser_rejects_unknown_form() -> None:
    with pytest.raises(SystemExit):
        cli.build_parser().parse_args(["collect", "--form", "xml"])


def test_parse_address() -> None:
    assert cli._parse_address(":12345") == ("0.0.0.0", 12345)
    assert cli._parse_address("127.0.0.1:8080") == ("127.0.0.1", 8080)
    with pytest.raises(argparse.ArgumentTypeError):
        cli._parse_address("localhost")


def test_groups_command(capsys) -> None:
    assert cli.main(["groups"]) == 0
    lines = capsys.readouterr().out.split()
    assert lines == group_names()
    assert lines[:3] == ["GetVersion", "GetSlaveStats", "GetGlobalStatus"]
    assert "GetBlockingQuerys" in lines
    assert len(lines) == 19


def test_unknown_group_exits_before_connecting(capsys, monkeypatch) -> None:
    def no_connect(args):
        raise AssertionError("should not connect")

    monkeypatch.setattr(cli, "_connect", no_connect)
    assert cli.main(["collect", "--group", "getslavestats"]) == 1
    assert "unknown metrics group: getslavestats" in capsys.readouterr().err


def test_collect_once_with_fake_db(capsys, monkeypatch, db) -> None:
    from collectors import dbstat as q

    db.columns[q.VERSION_QUERY] = {"VERSION()": ["8.0.36"]}
    monkeypatch.setattr(cli, "_connect", lambda args: db)
    assert cli.main(["collect", "--group", "GetVersion"]) == 0
    out = capsys.readouterr().out
    assert any(line.startswith("mysqlstat.version 8.036 ") for line in out.splitlines())
    assert db.closed


def test_connect_leaves_credentials_to_conf_file(monkeypatch, tmp_path) -> None:
    import config
    import executor

    for var in config.ENV_VARS:
        monkeypatch.delenv(var, raising=False)
    config.reset()
    cnf = tmp_path / "my.cnf"
    cnf.write_text("[client]\nuser=monitor\nhost=db1.internal\n", encoding="utf-8")
    seen = {}

    def connect(**kwargs):
        seen.update(kwargs)
        return object()

    monkeypatch.setattr(executor.pymysql, "connect", connect)
    args = cli.build_parser().parse_args(["collect", "--conf", str(cnf)])
    assert cli._connect(args) is not None
    assert seen["read_default_file"] == str(cnf)
    assert "user" not in seen
    assert "host" not in seen
    assert "port" not in seen

    seen.clear()
    args = cli.build_parser().parse_args(["collect", "--conf", str(cnf), "-u", "admin", "--port", "3307"])
    cli._connect(args)
    assert seen["user"] == "admin"
    assert seen["port"] == 3307


def test_explicit_zero_step_is_kept(monkeypatch, db) -> None:
    import metrics

    steps = []
    real_create_loop = metrics.create_loop

    def create_loop(ctx, executor, step_sec=2.0, on_pass=None):
        steps.append(step_sec)
        return real_create_loop(ctx, executor, step_sec=step_sec, on_pass=on_pass)

    monkeypatch.setattr(cli, "_connect", lambda args: db)
    monkeypatch.setattr(metrics, "create_loop", create_loop)
    assert cli.main(["collect", "--group", "GetVersion", "--form", "none", "--step", "0"]) == 0
    assert steps == [0.0]
