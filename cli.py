"""
Command-line interface for inspect-mysql: collect (once, per group, or looping),
serve (loop + HTTP JSON API), groups, validate-config.
"""
from __future__ import annotations

import argparse
import sys

import config
from utils import get_logger, setup_logging

logger = get_logger(__name__)


def _parse_address(address: str) -> tuple[str, int]:
    """'host:port' or ':port' -> (host, port)."""
    host, _, port = address.rpartition(":")
    if not port.isdigit():
        raise argparse.ArgumentTypeError(f"bad address {address!r}, expected [host]:port")
    return host or "0.0.0.0", int(port)


def _connect(args: argparse.Namespace):
    from executor import ConnectError, MysqlExecutor
    try:
        return MysqlExecutor(
            user=args.user or config.get("mysql.user"),
            password=args.password or config.get("mysql.password"),
            host=args.host or config.get("mysql.host"),
            port=args.port if args.port is not None else config.get("mysql.port"),
            conf_file=args.conf or config.get("mysql.conf"),
            connect_timeout=config.get("mysql.connect_timeout_sec", 10),
            read_timeout=config.get("mysql.read_timeout_sec", 30),
        )
    except ConnectError as e:
        print(e, file=sys.stderr)
        return None


def _run(args: argparse.Namespace, loop_forever: bool, address: str | None) -> int:
    from collectors import group_names
    from metrics import create_loop, output_metrics
    from registry import MetricContext

    group = getattr(args, "group", None)
    if group is not None and group not in group_names():
        print(f"unknown metrics group: {group}", file=sys.stderr)
        return 1
    form = args.form or config.get("output.form", "graphite")
    human = args.human or bool(config.get("output.human", False))
    step = args.step if args.step is not None else float(config.get("collect.step_sec", 2))

    db = _connect(args)
    if db is None:
        return 1
    ctx = MetricContext(prefix=config.get("collect.prefix", "mysqlstat"))
    if address is not None:
        from api import serve_in_background
        host, port = _parse_address(address)
        serve_in_background(ctx, host, port)
        logger.info("serving metrics on http://%s:%d/api/v1/metrics.json", host, port)

    def emit(_results) -> None:
        if form != "none":
            output_metrics(ctx, form=form, human=human)
            sys.stdout.flush()

    loop = create_loop(ctx, db, step_sec=step, on_pass=emit)
    try:
        if loop_forever:
            loop.run(group)
        else:
            loop.run_once(group)
    except KeyboardInterrupt:
        pass
    finally:
        loop.stop()
        db.close()
    return 0


def cmd_collect(args: argparse.Namespace) -> int:
    return _run(args, loop_forever=args.loop, address=None)


def cmd_serve(args: argparse.Namespace) -> int:
    address = args.address or f"{config.get('api.host')}:{config.get('api.port')}"
    return _run(args, loop_forever=True, address=address)


def cmd_groups(args: argparse.Namespace) -> int:
    from collectors import group_names
    for name in group_names():
        print(name)
    return 0


def cmd_validate_config(args: argparse.Namespace) -> int:
    print("Config file loaded:", args.config_loaded)
    for section, values in config.as_dict().items():
        print(f"{section}:")
        for key, value in values.items():
            if key == "password" and value:
                value = "********"
            print(f"  {key}: {value}")
    return 0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="inspect-mysql", description="MySQL diagnostics metric collector")
    parser.add_argument("--config", default=None, help="YAML config file")
    parser.add_argument("--log-level", default=None, help="DEBUG, INFO, WARNING, ...")
    parser.add_argument("--log-file", default=None, help="Also log to this file")
    sub = parser.add_subparsers(dest="command", required=True)

    conn = argparse.ArgumentParser(add_help=False)
    conn.add_argument("-u", "--user", default=None, help="Database user")
    conn.add_argument("-p", "--password", default=None, help="Database password")
    conn.add_argument("--host", default=None, help="Database host")
    conn.add_argument("--port", type=int, default=None, help="Database port")
    conn.add_argument("--conf", default=None, help="my.cnf style credentials file")
    conn.add_argument("--form", choices=("graphite", "json", "table", "none"), default=None,
                      help="Output format of metrics on stdout")
    conn.add_argument("--human", action="store_true", help="Byte sizes in MB")
    conn.add_argument("--step", type=float, default=None, help="Seconds between collections")

    p_collect = sub.add_parser("collect", parents=[conn], help="Collect metrics once, or on a loop")
    p_collect.add_argument("--group", default=None, help="Collect only this metrics group")
    p_collect.add_argument("--loop", action="store_true", help="Keep collecting every --step seconds")
    p_collect.set_defaults(run=cmd_collect)

    p_serve = sub.add_parser("serve", parents=[conn], help="Collect on a loop and serve JSON over HTTP")
    p_serve.add_argument("--group", default=None, help="Collect only this metrics group")
    p_serve.add_argument("--address", default=None, help="[host]:port to listen on")
    p_serve.set_defaults(run=cmd_serve)

    p_groups = sub.add_parser("groups", help="List metrics groups")
    p_groups.set_defaults(run=cmd_groups)

    p_validate = sub.add_parser("validate-config", help="Validate and show config")
    p_validate.set_defaults(run=cmd_validate_config)
    return parser


def main(argv: list[str] | None = None) -> int:
    args = build_parser().parse_args(argv)
    args.config_loaded = config.load_config_file(args.config)
    setup_logging(args.log_level or config.get("logging.level", "WARNING"), args.log_file or config.get("logging.file"))
    return args.run(args)


if __name__ == "__main__":
    sys.exit(main())
