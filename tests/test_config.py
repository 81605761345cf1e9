from __future__ import annotations

from pathlib import Path

import pytest

from skoop_console.config import (
    DEFAULT_CONTROLLER_URL,
    DEFAULT_LIVE_POLL_INTERVAL,
    DEFAULT_TASK_POLL_INTERVAL,
    ConsoleConfig,
    dump_config,
    load_config,
)
from skoop_console.util.errors import ConfigError


@pytest.fixture(autouse=True)
def _clean_env(monkeypatch) -> None:
    for name in (
        "SKOOP_CONSOLE_CONTROLLER_URL",
        "SKOOP_CONSOLE_REQUEST_TIMEOUT",
        "SKOOP_CONSOLE_TASK_POLL_INTERVAL",
        "SKOOP_CONSOLE_LIVE_POLL_INTERVAL",
        "SKOOP_CONSOLE_LOG_LEVEL",
        "SKOOP_CONSOLE_JSON_LOGS",
        "SKOOP_CONSOLE_LOG_FILE",
    ):
        monkeypatch.delenv(name, raising=False)


def test_defaults_from_watch_command() -> None:
    command, cfg, ns = load_config(argv=["watch", "captures"])

    assert command == "watch"
    assert ns.list_name == "captures"
    assert isinstance(cfg, ConsoleConfig)
    assert cfg.controller_url == DEFAULT_CONTROLLER_URL
    assert cfg.task_poll_interval == DEFAULT_TASK_POLL_INTERVAL == 3.0
    assert cfg.live_poll_interval == DEFAULT_LIVE_POLL_INTERVAL == 2.0
    assert cfg.log_level == "INFO"
    assert not cfg.json_logs


def test_precedence_file_then_env_then_cli(tmp_path, monkeypatch) -> None:
    config_path = tmp_path / "console.yaml"
    config_path.write_text(
        "controller_url: http://file:10264/\nrequest_timeout: 4\nlog_level: warning\njson_logs: 'yes'\n",
        encoding="utf-8",
    )

    _, from_file, _ = load_config(argv=["graph", "--config", str(config_path)])
    assert from_file.controller_url == "http://file:10264"
    assert from_file.request_timeout == 4.0
    assert from_file.log_level == "WARNING"
    assert from_file.json_logs is True

    monkeypatch.setenv("SKOOP_CONSOLE_CONTROLLER_URL", "http://env:10264")
    _, from_env, _ = load_config(argv=["graph", "--config", str(config_path)])
    assert from_env.controller_url == "http://env:10264"
    assert from_env.request_timeout == 4.0

    _, from_cli, _ = load_config(
        argv=["graph", "--config", str(config_path), "--controller-url", "https://cli:443", "--no-json-logs"]
    )
    assert from_cli.controller_url == "https://cli:443"
    assert from_cli.json_logs is False


def test_json_config_file(tmp_path) -> None:
    config_path = tmp_path / "console.json"
    config_path.write_text('{"task_poll_interval": "1.5", "log_file": "logs/console.log"}', encoding="utf-8")

    _, cfg, _ = load_config(argv=["watch", "diagnoses", "--config", str(config_path)])

    assert cfg.task_poll_interval == 1.5
    assert cfg.log_file == Path("logs/console.log")


def test_unknown_config_keys_warn(tmp_path) -> None:
    config_path = tmp_path / "console.yaml"
    config_path.write_text("controller_url: http://a:1\nmystery: true\n", encoding="utf-8")

    with pytest.warns(UserWarning, match="mystery"):
        load_config(argv=["graph", "--config", str(config_path)])


def test_bad_config_values_raise(tmp_path) -> None:
    config_path = tmp_path / "console.yaml"
    config_path.write_text("request_timeout: soon\n", encoding="utf-8")

    with pytest.raises(ValueError, match="request_timeout"):
        load_config(argv=["graph", "--config", str(config_path)])

    config_path.write_text("- just\n- a list\n", encoding="utf-8")
    with pytest.raises(ConfigError):
        load_config(argv=["graph", "--config", str(config_path)])

    with pytest.raises(ConfigError):
        load_config(argv=["graph", "--config", str(tmp_path / "missing.yaml")])


def test_invalid_controller_url_and_intervals(monkeypatch) -> None:
    with pytest.raises(ConfigError):
        load_config(argv=["graph", "--controller-url", "ftp://nope"])

    monkeypatch.setenv("SKOOP_CONSOLE_LIVE_POLL_INTERVAL", "0")
    with pytest.raises(ConfigError):
        load_config(argv=["watch", "events"])


def test_watch_and_graph_flags() -> None:
    _, cfg, ns = load_config(argv=["watch", "events", "--live", "--live-interval", "0.5", "--max-polls", "4"])
    assert ns.live
    assert ns.max_polls == 4
    assert cfg.live_poll_interval == 0.5

    _, _, ns = load_config(argv=["graph", "--expand", "default/web", "--expand", "Node", "--json", "--no-anchors"])
    assert ns.expand == ["default/web", "Node"]
    assert ns.as_json
    assert ns.with_anchors is False


def test_dump_config_is_plain_data() -> None:
    dumped = dump_config(ConsoleConfig(log_file=Path("x.log")))

    assert dumped["log_file"] == "x.log"
    assert dumped["controller_url"] == DEFAULT_CONTROLLER_URL


def test_watch_help_describes_max_polls_as_settled_polls(capsys) -> None:
    with pytest.raises(SystemExit):
        load_config(argv=["watch", "--help"])
    assert "Stop after this many settled polls" in capsys.readouterr().out
