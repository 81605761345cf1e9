from __future__ import annotations

import dataclasses
import json
from datetime import datetime
from enum import Enum
from pathlib import Path
from typing import Any, Dict

import yaml

from .errors import SnapshotError

REDACTED_VALUE = "<redacted>"
SENSITIVE_KEY_SUBSTRINGS = (
    "password",
    "secret",
    "token",
    "kubeconfig",
)


def _is_sensitive_key(key: Any) -> bool:
    if not isinstance(key, str):
        return False
    lowered = key.lower()
    return any(token in lowered for token in SENSITIVE_KEY_SUBSTRINGS)


def sanitize_for_json(value: Any) -> Any:
    """
    Convert common non-JSON types to serializable forms and redact sensitive fields.

    Sets become sorted lists so repeated dumps of the same value are identical.
    """
    if isinstance(value, Enum):
        return value.value
    if isinstance(value, datetime):
        return value.isoformat()
    if isinstance(value, Path):
        return str(value)
    if isinstance(value, bytes):
        return value.decode("utf-8", "replace")
    if dataclasses.is_dataclass(value) and not isinstance(value, type):
        return sanitize_for_json({f.name: getattr(value, f.name) for f in dataclasses.fields(value)})
    if isinstance(value, dict):
        out = {}
        for k, v in value.items():
            if _is_sensitive_key(k):
                out[k] = REDACTED_VALUE
            else:
                out[k] = sanitize_for_json(v)
        return out
    if isinstance(value, (set, frozenset)):
        return sorted((sanitize_for_json(v) for v in value), key=repr)
    if isinstance(value, (list, tuple)):
        return [sanitize_for_json(v) for v in value]
    return value


def stable_json_dumps(value: Any, *, indent: int | None = 2) -> str:
    return json.dumps(sanitize_for_json(value), sort_keys=True, indent=indent, ensure_ascii=False)


def load_document(path: Path) -> Dict[str, Any]:
    """
    Read a saved controller payload (snapshot, diagnosis result) from disk.
    JSON files are parsed strictly; anything else goes through YAML.
    """
    if not path.exists():
        raise SnapshotError(f"File not found: {path}")
    text = path.read_text(encoding="utf-8")
    try:
        if path.suffix.lower() == ".json":
            data = json.loads(text)
        else:
            data = yaml.safe_load(text)
    except (yaml.YAMLError, json.JSONDecodeError) as e:
        raise SnapshotError(f"Failed to parse {path}: {e}") from e
    if not isinstance(data, dict):
        raise SnapshotError(f"Top-level document in {path} must be an object")
    return data
