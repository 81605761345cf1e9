from __future__ import annotations

import types

from skoop_console.util.errors import (
    ConfigError,
    ConsoleError,
    ControllerAPIError,
    ExitCode,
    SnapshotError,
    as_exit_code,
    error_message,
)


def test_exit_codes() -> None:
    assert as_exit_code(ConfigError("x")) == ExitCode.CONFIG_ERROR
    assert as_exit_code(ValueError("x")) == ExitCode.CONFIG_ERROR
    assert as_exit_code(ControllerAPIError("x", status_code=500)) == ExitCode.CONTROLLER_ERROR
    assert as_exit_code(SnapshotError("x")) == ExitCode.SNAPSHOT_ERROR
    assert as_exit_code(ConsoleError("x")) == ExitCode.RUNTIME_ERROR
    assert as_exit_code(RuntimeError("x")) == 1


def test_error_message_prefers_backend_error_field() -> None:
    exc = RuntimeError("HTTP 500")
    exc.response = types.SimpleNamespace(json=lambda: {"error": "diagnosis not found"})  # type: ignore[attr-defined]

    assert error_message(exc) == "diagnosis not found"


def test_error_message_falls_back_to_text() -> None:
    def _broken() -> dict:
        raise ValueError("not json")

    exc = RuntimeError("boom")
    exc.response = types.SimpleNamespace(json=_broken)  # type: ignore[attr-defined]

    assert error_message(exc) == "boom"
    assert error_message(KeyError()) == "KeyError"
