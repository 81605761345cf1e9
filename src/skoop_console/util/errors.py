from __future__ import annotations

from enum import IntEnum
from typing import Any


class ExitCode(IntEnum):
    OK = 0
    CONFIG_ERROR = 2
    CONTROLLER_ERROR = 3
    SNAPSHOT_ERROR = 4
    RUNTIME_ERROR = 5


class ConsoleError(Exception):
    """Base error for the diagnostics console core."""


class ConfigError(ConsoleError):
    """Raised for configuration or argument issues."""


class ControllerAPIError(ConsoleError):
    """Raised when the controller rejects a request or cannot be reached."""

    def __init__(self, message: str, *, status_code: int | None = None) -> None:
        super().__init__(message)
        self.status_code = status_code


class SnapshotError(ConsoleError):
    """Raised when a snapshot file cannot be read or decoded."""


def as_exit_code(exc: BaseException) -> int:
    if isinstance(exc, (ConfigError, ValueError)):
        return int(ExitCode.CONFIG_ERROR)
    if isinstance(exc, ControllerAPIError):
        return int(ExitCode.CONTROLLER_ERROR)
    if isinstance(exc, SnapshotError):
        return int(ExitCode.SNAPSHOT_ERROR)
    if isinstance(exc, ConsoleError):
        return int(ExitCode.RUNTIME_ERROR)
    return 1


def _response_error(exc: BaseException) -> str | None:
    response: Any = getattr(exc, "response", None)
    if response is None:
        return None
    try:
        body = response.json()
    except Exception:
        return None
    if isinstance(body, dict) and body.get("error"):
        return str(body["error"])
    return None


def error_message(exc: BaseException) -> str:
    """
    Human-readable message for an error surfaced to the user: the backend's
    ``error`` field when the response carries one, else the exception text.
    """
    return _response_error(exc) or str(exc) or exc.__class__.__name__
