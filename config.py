"""
Central configuration for inspect-mysql.

Values resolve from three layers, highest first: environment (INSPECT_*),
an optional YAML file, then DEFAULTS. CLI flags are applied on top by cli.py.
"""
from __future__ import annotations

import os
from pathlib import Path
from typing import Any, Callable

import yaml

from utils import env_value, get_logger

logger = get_logger(__name__)

# -----------------------------------------------------------------------------
# Defaults
# -----------------------------------------------------------------------------

DEFAULTS: dict[str, Any] = {
    "mysql": {
        # unset values fall through to the [client] section of conf
        "user": None,
        "password": None,
        "host": None,
        "port": None,
        "conf": "~/.my.cnf",
        "connect_timeout_sec": 10,
        "read_timeout_sec": 30,
    },
    "collect": {
        "step_sec": 2,
        "prefix": "mysqlstat",
    },
    "api": {
        "host": "0.0.0.0",
        "port": 12345,
    },
    "output": {
        "form": "graphite",
        "human": False,
    },
    "logging": {
        "level": "WARNING",
        "file": None,
    },
}

# environment variable -> (dot path, type)
ENV_VARS: dict[str, tuple[str, Callable[[str], Any]]] = {
    "INSPECT_MYSQL_USER": ("mysql.user", str),
    "INSPECT_MYSQL_PASSWORD": ("mysql.password", str),
    "INSPECT_MYSQL_HOST": ("mysql.host", str),
    "INSPECT_MYSQL_PORT": ("mysql.port", int),
    "INSPECT_MYSQL_CONF": ("mysql.conf", str),
    "INSPECT_STEP_SEC": ("collect.step_sec", float),
    "INSPECT_API_PORT": ("api.port", int),
    "INSPECT_LOG_LEVEL": ("logging.level", str),
}

SEARCH_PATHS = (
    Path("inspect_mysql.yaml"),
    Path("inspect_mysql.yml"),
    Path("~/.inspect_mysql/config.yaml"),
)

_file_values: dict[str, Any] = {}


def _lookup(tree: dict[str, Any], keys: list[str]) -> tuple[bool, Any]:
    node: Any = tree
    for k in keys:
        if not isinstance(node, dict) or k not in node:
            return False, None
        node = node[k]
    return True, node


def _env_values() -> dict[str, Any]:
    """Dot path -> value for every INSPECT_* variable that is set and parses."""
    out: dict[str, Any] = {}
    for var, (path, cast) in ENV_VARS.items():
        value = env_value(var, cast)
        if value is not None:
            out[path] = value
    return out


def load_config_file(path: str | Path | None = None) -> bool:
    """Load a YAML config file, or the first one found on SEARCH_PATHS. Returns True if loaded."""
    if path is None:
        path = next((p for p in SEARCH_PATHS if p.expanduser().exists()), None)
        if path is None:
            return False
    path = Path(path).expanduser()
    if not path.exists():
        return False
    try:
        data = yaml.safe_load(path.read_text(encoding="utf-8"))
    except (OSError, yaml.YAMLError) as e:
        logger.warning("Failed to load config %s: %s", path, e)
        return False
    if not isinstance(data, dict):
        logger.warning("Ignoring config %s: top level is not a mapping", path)
        return False
    _file_values.clear()
    _file_values.update(data)
    logger.debug("loaded config %s", path)
    return True


def get(key_path: str, default: Any = None) -> Any:
    """Get config value by dot path, e.g. 'mysql.port'."""
    env = _env_values()
    if key_path in env:
        return env[key_path]
    keys = key_path.split(".")
    for layer in (_file_values, DEFAULTS):
        found, value = _lookup(layer, keys)
        if found:
            return value
    return default


def reset() -> None:
    """Forget a loaded config file."""
    _file_values.clear()


def as_dict() -> dict[str, Any]:
    """Effective value of every key in DEFAULTS, for display."""
    return {
        section: {key: get(f"{section}.{key}") for key in values}
        for section, values in DEFAULTS.items()
    }
