from __future__ import annotations

import logging
from pathlib import Path
from typing import Iterator

import pytest

from skoop_console.logging import JsonFormatter, LogConfig, PlainFormatter, add_log_file, setup_logging


@pytest.fixture
def fresh_root(monkeypatch: pytest.MonkeyPatch) -> Iterator[logging.Logger]:
    root = logging.getLogger()
    saved_handlers = list(root.handlers)
    saved_level = root.level
    monkeypatch.setattr(setup_logging, "_configured", False, raising=False)
    monkeypatch.delenv("SKOOP_CONSOLE_LOG_LEVEL", raising=False)
    monkeypatch.delenv("SKOOP_CONSOLE_JSON_LOGS", raising=False)
    yield root
    for handler in root.handlers:
        if handler not in saved_handlers:
            handler.close()
    root.handlers = saved_handlers
    root.setLevel(saved_level)


def test_setup_logging_configures_root_once(fresh_root: logging.Logger) -> None:
    setup_logging(LogConfig(level="debug", json_logs=True))
    assert fresh_root.level == logging.DEBUG
    assert len(fresh_root.handlers) == 1
    assert isinstance(fresh_root.handlers[0].formatter, JsonFormatter)

    setup_logging(LogConfig(level="ERROR"))
    assert fresh_root.level == logging.DEBUG


def test_setup_logging_env_override(fresh_root: logging.Logger, monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("SKOOP_CONSOLE_LOG_LEVEL", "warning")
    setup_logging()
    assert fresh_root.level == logging.WARNING
    assert isinstance(fresh_root.handlers[0].formatter, PlainFormatter)


def test_unknown_level_falls_back_to_info(fresh_root: logging.Logger) -> None:
    setup_logging(LogConfig(level="chatty"))
    assert fresh_root.level == logging.INFO


def test_add_log_file_is_idempotent(fresh_root: logging.Logger, tmp_path: Path) -> None:
    setup_logging(LogConfig())
    log_path = tmp_path / "logs" / "console.log"
    add_log_file(log_path)
    add_log_file(log_path)

    file_handlers = [h for h in fresh_root.handlers if isinstance(h, logging.FileHandler)]
    assert len(file_handlers) == 1
    logging.getLogger("skoop_console.test").info("hello", extra={"list": "events", "phase": "fetching"})
    file_handlers[0].flush()
    assert "[events:fetching] hello" in log_path.read_text(encoding="utf-8")
