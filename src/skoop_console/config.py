from __future__ import annotations

import argparse
import json
import os
import warnings
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, List, Optional, Tuple

import yaml

from .util.errors import ConfigError

# --------
# Defaults
# --------
DEFAULT_CONTROLLER_URL = "http://127.0.0.1:10264"
DEFAULT_REQUEST_TIMEOUT = 10.0
DEFAULT_TASK_POLL_INTERVAL = 3.0
DEFAULT_LIVE_POLL_INTERVAL = 2.0
WATCH_LISTS = ("captures", "diagnoses", "events")
ALLOWED_CONFIG_KEYS = {
    "controller_url",
    "request_timeout",
    "task_poll_interval",
    "live_poll_interval",
    "log_level",
    "json_logs",
    "log_file",
}
BOOL_CONFIG_KEYS = {"json_logs"}
FLOAT_CONFIG_KEYS = {"request_timeout", "task_poll_interval", "live_poll_interval"}
STR_CONFIG_KEYS = {"controller_url", "log_level", "log_file"}


@dataclass(frozen=True)
class ConsoleConfig:
    # Controller
    controller_url: str = DEFAULT_CONTROLLER_URL
    request_timeout: float = DEFAULT_REQUEST_TIMEOUT

    # Polling
    task_poll_interval: float = DEFAULT_TASK_POLL_INTERVAL
    live_poll_interval: float = DEFAULT_LIVE_POLL_INTERVAL

    # Logging
    log_level: str = "INFO"
    json_logs: bool = False
    log_file: Optional[Path] = None


def _parse_config_file(path: Path) -> Dict[str, Any]:
    if not path.exists():
        raise ConfigError(f"Config file not found: {path}")
    text = path.read_text(encoding="utf-8")
    try:
        if path.suffix.lower() == ".json":
            data = json.loads(text)
        else:
            # YAML is a superset of JSON for our purposes
            data = yaml.safe_load(text) or {}
    except (yaml.YAMLError, json.JSONDecodeError) as e:
        raise ConfigError(f"Failed to parse config file {path}: {e}") from e
    if not isinstance(data, dict):
        raise ConfigError("Top-level config must be an object")
    return data


def _env_str(name: str) -> Optional[str]:
    raw = os.getenv(name)
    if raw is None:
        return None
    raw = raw.strip()
    if not raw:
        return None
    return raw


def _env_bool(name: str) -> Optional[bool]:
    raw = os.getenv(name)
    if raw is None:
        return None
    raw = raw.strip().lower()
    if not raw:
        return None
    return raw in {"1", "true", "yes", "on"}


def _env_float(name: str) -> Optional[float]:
    raw = os.getenv(name)
    if raw is None:
        return None
    try:
        return float(raw)
    except ValueError:
        return None


def _coerce_bool(key: str, value: Any) -> bool:
    if isinstance(value, bool):
        return value
    if isinstance(value, str):
        raw = value.strip().lower()
        if raw in {"1", "true", "yes", "on"}:
            return True
        if raw in {"0", "false", "no", "off"}:
            return False
    raise ValueError(f"Config field '{key}' must be a boolean")


def _coerce_float(key: str, value: Any) -> float:
    if isinstance(value, (int, float)) and not isinstance(value, bool):
        result = float(value)
    elif isinstance(value, str) and value.strip():
        try:
            result = float(value)
        except ValueError:
            raise ValueError(f"Config field '{key}' must be a number") from None
    else:
        raise ValueError(f"Config field '{key}' must be a number")
    if result <= 0:
        raise ValueError(f"Config field '{key}' must be positive")
    return result


def _normalize_config_file(data: Dict[str, Any]) -> Dict[str, Any]:
    unknown = sorted(set(data.keys()) - ALLOWED_CONFIG_KEYS)
    if unknown:
        warnings.warn(f"Unknown config keys ignored: {', '.join(unknown)}")
    normalized: Dict[str, Any] = {}
    for key, value in data.items():
        if key not in ALLOWED_CONFIG_KEYS:
            continue
        if value is None:
            normalized[key] = None
            continue
        if key in BOOL_CONFIG_KEYS:
            normalized[key] = _coerce_bool(key, value)
        elif key in FLOAT_CONFIG_KEYS:
            normalized[key] = _coerce_float(key, value)
        elif key in STR_CONFIG_KEYS:
            if isinstance(value, str):
                normalized[key] = value
            else:
                raise ValueError(f"Config field '{key}' must be a string")
    return _compact_dict(normalized)


def _compact_dict(data: Dict[str, Any]) -> Dict[str, Any]:
    """
    Drop keys with None values so they don't override lower-precedence config.
    """
    return {k: v for k, v in data.items() if v is not None}


def _merge_dicts(a: Dict[str, Any], b: Dict[str, Any]) -> Dict[str, Any]:
    """
    Shallow merge: values in b override a.
    """
    merged = dict(a)
    merged.update(b)
    return merged


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="skoop-console", description="Network diagnostics console")
    subparsers = parser.add_subparsers(dest="command", required=True)

    # common flags builder
    def add_common(p: argparse.ArgumentParser) -> None:
        p.add_argument("--config", type=Path, help="Optional YAML/JSON config file")
        p.add_argument("--controller-url", default=None, help=f"Controller base URL (default {DEFAULT_CONTROLLER_URL})")
        p.add_argument("--timeout", dest="request_timeout", type=float, default=None, help="Request timeout in seconds")
        p.add_argument(
            "--json-logs",
            action=argparse.BooleanOptionalAction,
            default=None,
            help="Enable JSON logs",
        )
        p.add_argument("--log-level", default=None, help="Log level (INFO, DEBUG, ...)")
        p.add_argument("--log-file", type=Path, default=None, help="Also write logs to this file")

    # graph
    p_graph = subparsers.add_parser("graph", help="Build the topology graph for a flow snapshot")
    add_common(p_graph)
    p_graph.add_argument("--snapshot", type=Path, default=None, help="Saved flow snapshot (JSON/YAML)")
    p_graph.add_argument("--start", type=int, default=None, help="Flow window start (unix seconds)")
    p_graph.add_argument("--end", type=int, default=None, help="Flow window end (unix seconds)")
    p_graph.add_argument(
        "--expand",
        action="append",
        default=[],
        metavar="GROUP",
        help="Expand a workload group (repeatable)",
    )
    p_graph.add_argument("--json", dest="as_json", action="store_true", help="Print the graph as JSON")
    p_graph.add_argument("--no-anchors", dest="with_anchors", action="store_false", help="Skip virtual anchors")
    p_graph.add_argument("--mesh", action="store_true", help="Treat the input as a ping-mesh latency result")
    p_graph.add_argument("--window", type=int, default=900, help="Flow window in seconds when --start is omitted")

    # diagnosis
    p_diag = subparsers.add_parser("diagnosis", help="Show the severity of a diagnosis result")
    add_common(p_diag)
    src = p_diag.add_mutually_exclusive_group(required=True)
    src.add_argument("--id", dest="diagnosis_id", default=None, help="Diagnosis task id on the controller")
    src.add_argument("--result", type=Path, default=None, help="Saved diagnosis result (JSON/YAML)")

    # watch
    p_watch = subparsers.add_parser("watch", help="Poll a task or event list until nothing is running")
    add_common(p_watch)
    p_watch.add_argument("list_name", choices=WATCH_LISTS, help="List to watch")
    p_watch.add_argument("--live", action="store_true", help="Keep re-polling events")
    p_watch.add_argument("--poll-interval", dest="task_poll_interval", type=float, default=None, help="Task list re-poll delay")
    p_watch.add_argument("--live-interval", dest="live_poll_interval", type=float, default=None, help="Live event re-poll delay")
    p_watch.add_argument("--max-polls", type=int, default=None, help="Stop after this many settled polls")

    return parser


def load_config(
    args: Optional[argparse.Namespace] = None,
    argv: Optional[List[str]] = None,
) -> Tuple[str, ConsoleConfig, argparse.Namespace]:
    """
    Build ConsoleConfig by merging defaults, optional config file, env vars, and CLI args.
    Precedence (low -> high): defaults < config file < env < CLI.

    Returns:
      (command, ConsoleConfig, namespace) where command is graph|diagnosis|watch
    """
    ns = args if args is not None else build_parser().parse_args(argv)
    command = ns.command

    # defaults
    base: Dict[str, Any] = {
        "controller_url": DEFAULT_CONTROLLER_URL,
        "request_timeout": DEFAULT_REQUEST_TIMEOUT,
        "task_poll_interval": DEFAULT_TASK_POLL_INTERVAL,
        "live_poll_interval": DEFAULT_LIVE_POLL_INTERVAL,
        "log_level": "INFO",
        "json_logs": False,
        "log_file": None,
    }

    # config file
    file_cfg: Dict[str, Any] = {}
    if getattr(ns, "config", None):
        file_cfg = _normalize_config_file(_parse_config_file(Path(ns.config)))

    # env
    env_cfg: Dict[str, Any] = _compact_dict(
        {
            "controller_url": _env_str("SKOOP_CONSOLE_CONTROLLER_URL"),
            "request_timeout": _env_float("SKOOP_CONSOLE_REQUEST_TIMEOUT"),
            "task_poll_interval": _env_float("SKOOP_CONSOLE_TASK_POLL_INTERVAL"),
            "live_poll_interval": _env_float("SKOOP_CONSOLE_LIVE_POLL_INTERVAL"),
            "log_level": _env_str("SKOOP_CONSOLE_LOG_LEVEL"),
            "json_logs": _env_bool("SKOOP_CONSOLE_JSON_LOGS"),
            "log_file": _env_str("SKOOP_CONSOLE_LOG_FILE"),
        }
    )

    # CLI
    cli_cfg: Dict[str, Any] = _compact_dict(
        {
            "controller_url": getattr(ns, "controller_url", None),
            "request_timeout": getattr(ns, "request_timeout", None),
            "task_poll_interval": getattr(ns, "task_poll_interval", None),
            "live_poll_interval": getattr(ns, "live_poll_interval", None),
            "log_level": getattr(ns, "log_level", None),
            "json_logs": getattr(ns, "json_logs", None),
            "log_file": getattr(ns, "log_file", None),
        }
    )

    merged = _merge_dicts(base, _merge_dicts(file_cfg, _merge_dicts(env_cfg, cli_cfg)))

    controller_url = str(merged["controller_url"]).rstrip("/")
    if not controller_url.startswith(("http://", "https://")):
        raise ConfigError(f"Controller URL must be http(s): {controller_url}")
    for key in FLOAT_CONFIG_KEYS:
        if float(merged[key]) <= 0:
            raise ConfigError(f"'{key}' must be positive")
    log_file = merged.get("log_file")

    cfg = ConsoleConfig(
        controller_url=controller_url,
        request_timeout=float(merged["request_timeout"]),
        task_poll_interval=float(merged["task_poll_interval"]),
        live_poll_interval=float(merged["live_poll_interval"]),
        log_level=str(merged.get("log_level") or "INFO").upper(),
        json_logs=bool(merged["json_logs"]),
        log_file=Path(log_file) if log_file else None,
    )
    return command, cfg, ns


def dump_config(cfg: ConsoleConfig) -> Dict[str, Any]:
    return {
        "controller_url": cfg.controller_url,
        "request_timeout": cfg.request_timeout,
        "task_poll_interval": cfg.task_poll_interval,
        "live_poll_interval": cfg.live_poll_interval,
        "log_level": cfg.log_level,
        "json_logs": cfg.json_logs,
        "log_file": str(cfg.log_file) if cfg.log_file else None,
    }
