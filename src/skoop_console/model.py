from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, Iterable, List, Mapping, Optional, Tuple

from .logging import get_logger

LOG = get_logger(__name__)


class EndpointKind(str, Enum):
    POD = "pod"
    NODE = "node"
    EXTERNAL = "external"
    UNKNOWN = "unknown"


class TaskStatus(str, Enum):
    PENDING = "pending"
    RUNNING = "running"
    SUCCESS = "success"
    FAILED = "failed"


_KIND_ALIASES: Dict[str, EndpointKind] = {
    "pod": EndpointKind.POD,
    "node": EndpointKind.NODE,
    "external": EndpointKind.EXTERNAL,
}

_STATUS_ALIASES: Dict[str, TaskStatus] = {
    "pending": TaskStatus.PENDING,
    "queued": TaskStatus.PENDING,
    "waiting": TaskStatus.PENDING,
    "running": TaskStatus.RUNNING,
    "success": TaskStatus.SUCCESS,
    "succeed": TaskStatus.SUCCESS,
    "succeeded": TaskStatus.SUCCESS,
    "finished": TaskStatus.SUCCESS,
    "failed": TaskStatus.FAILED,
    "fail": TaskStatus.FAILED,
    "error": TaskStatus.FAILED,
}


@dataclass(frozen=True)
class Endpoint:
    id: str
    kind: EndpointKind
    namespace: str = ""
    name: str = ""
    node_name: str = ""
    ip: str = ""


@dataclass(frozen=True)
class RawEdge:
    """A single directed observation between two endpoints."""

    src: str
    dst: str
    id: str = ""
    protocol: str = ""
    sport: int = 0
    dport: int = 0
    bytes: int = 0
    packets: int = 0
    dropped: int = 0
    retransmitted: int = 0
    latency_avg: Optional[float] = None
    latency_max: Optional[float] = None
    latency_min: Optional[float] = None


@dataclass(frozen=True)
class Snapshot:
    nodes: Tuple[Endpoint, ...] = ()
    edges: Tuple[RawEdge, ...] = ()


@dataclass(frozen=True)
class TaskResult:
    id: str
    status: TaskStatus
    message: str = ""
    payload: Any = None
    config: Any = None
    start_time: Optional[str] = None
    finish_time: Optional[str] = None

    @property
    def running(self) -> bool:
        return self.status is TaskStatus.RUNNING


@dataclass(frozen=True)
class EventLabel:
    name: str
    value: str


@dataclass(frozen=True)
class Event:
    node: str
    timestamp: int
    type: str
    message: str = ""
    labels: Tuple[EventLabel, ...] = field(default_factory=tuple)

    @property
    def time(self) -> datetime:
        # backend timestamps are nanoseconds since epoch
        return datetime.fromtimestamp(self.timestamp / 1_000_000_000, timezone.utc)


def coerce_str(value: Any) -> str:
    if value is None:
        return ""
    return str(value).strip()


def coerce_int(value: Any) -> int:
    if isinstance(value, bool):
        return int(value)
    if isinstance(value, (int, float)):
        return int(value)
    if isinstance(value, str) and value.strip():
        try:
            return int(float(value))
        except ValueError:
            return 0
    return 0


def coerce_float(value: Any) -> Optional[float]:
    if isinstance(value, bool) or value is None:
        return None
    if isinstance(value, (int, float)):
        return float(value)
    if isinstance(value, str) and value.strip():
        try:
            return float(value)
        except ValueError:
            return None
    return None


def iter_entries(value: Any) -> Iterable[Any]:
    """Accept a list, a dict of entries (keyed by id) or nothing at all."""
    if value is None:
        return []
    if isinstance(value, Mapping):
        return list(value.values())
    if isinstance(value, (list, tuple)):
        return value
    return []


def endpoint_from_dict(data: Mapping[str, Any]) -> Optional[Endpoint]:
    endpoint_id = coerce_str(data.get("id"))
    if not endpoint_id:
        return None
    kind = _KIND_ALIASES.get(coerce_str(data.get("type")).lower(), EndpointKind.UNKNOWN)
    return Endpoint(
        id=endpoint_id,
        kind=kind,
        namespace=coerce_str(data.get("namespace")),
        name=coerce_str(data.get("name")),
        node_name=coerce_str(data.get("node_name") or data.get("nodeName") or data.get("nodename")),
        ip=coerce_str(data.get("ip")) or (endpoint_id if kind is EndpointKind.EXTERNAL else ""),
    )


def edge_from_dict(data: Mapping[str, Any]) -> Optional[RawEdge]:
    src = coerce_str(data.get("src") or data.get("source"))
    dst = coerce_str(data.get("dst") or data.get("target") or data.get("destination"))
    if not src or not dst:
        return None
    return RawEdge(
        src=src,
        dst=dst,
        id=coerce_str(data.get("id")),
        protocol=coerce_str(data.get("protocol")),
        sport=coerce_int(data.get("sport")),
        dport=coerce_int(data.get("dport")),
        bytes=coerce_int(data.get("bytes")),
        packets=coerce_int(data.get("packets")),
        dropped=coerce_int(data.get("dropped")),
        retransmitted=coerce_int(data.get("retrans", data.get("retransmitted"))),
        latency_avg=coerce_float(data.get("latency_avg", data.get("avg"))),
        latency_max=coerce_float(data.get("latency_max", data.get("max"))),
        latency_min=coerce_float(data.get("latency_min", data.get("min"))),
    )


def parse_snapshot(payload: Any) -> Snapshot:
    """
    Build a Snapshot from a controller flow payload.

    Missing or null node/edge lists are treated as empty. Malformed entries are
    skipped; duplicate endpoint ids keep the first occurrence.
    """
    if not isinstance(payload, Mapping):
        return Snapshot()

    nodes: List[Endpoint] = []
    seen: set[str] = set()
    for entry in iter_entries(payload.get("nodes")):
        endpoint = endpoint_from_dict(entry) if isinstance(entry, Mapping) else None
        if endpoint is None:
            LOG.warning("Skipping malformed endpoint entry", extra={"entry": repr(entry)[:200]})
            continue
        if endpoint.id in seen:
            continue
        seen.add(endpoint.id)
        nodes.append(endpoint)

    edges: List[RawEdge] = []
    for entry in iter_entries(payload.get("edges")):
        edge = edge_from_dict(entry) if isinstance(entry, Mapping) else None
        if edge is None:
            LOG.warning("Skipping malformed edge entry", extra={"entry": repr(entry)[:200]})
            continue
        edges.append(edge)

    return Snapshot(nodes=tuple(nodes), edges=tuple(edges))


def task_from_dict(data: Mapping[str, Any]) -> Optional[TaskResult]:
    task_id = coerce_str(data.get("task_id", data.get("id")))
    status = _STATUS_ALIASES.get(coerce_str(data.get("status")).lower())
    if not task_id or status is None:
        return None
    return TaskResult(
        id=task_id,
        status=status,
        message=coerce_str(data.get("message")),
        payload=data.get("result", data.get("payload")),
        config=data.get("task_config", data.get("spec")),
        start_time=coerce_str(data.get("start_time")) or None,
        finish_time=coerce_str(data.get("finish_time")) or None,
    )


def parse_task_list(payload: Any) -> List[TaskResult]:
    """
    Parse a task list payload. Capture listings arrive as a mapping of lists,
    diagnosis listings as a flat list; null means no tasks yet.
    """
    tasks: List[TaskResult] = []
    for entry in iter_entries(payload):
        group = entry if isinstance(entry, (list, tuple)) else [entry]
        for item in group:
            task = task_from_dict(item) if isinstance(item, Mapping) else None
            if task is None:
                LOG.warning("Skipping malformed task entry", extra={"entry": repr(item)[:200]})
                continue
            tasks.append(task)
    return tasks


def event_from_dict(data: Mapping[str, Any]) -> Optional[Event]:
    event_type = coerce_str(data.get("type"))
    if not event_type:
        return None
    labels: List[EventLabel] = []
    for label in iter_entries(data.get("labels")):
        if not isinstance(label, Mapping):
            continue
        name = coerce_str(label.get("name"))
        value = coerce_str(label.get("value"))
        if name and value:
            labels.append(EventLabel(name=name, value=value))
    return Event(
        node=coerce_str(data.get("node")),
        timestamp=coerce_int(data.get("timestamp")),
        type=event_type,
        message=coerce_str(data.get("msg", data.get("message"))),
        labels=tuple(labels),
    )


def parse_event_list(payload: Any) -> List[Event]:
    events: List[Event] = []
    for entry in iter_entries(payload):
        event = event_from_dict(entry) if isinstance(entry, Mapping) else None
        if event is None:
            LOG.warning("Skipping malformed event entry", extra={"entry": repr(entry)[:200]})
            continue
        events.append(event)
    return events


def any_running(items: Iterable[Any]) -> bool:
    return any(getattr(item, "status", None) is TaskStatus.RUNNING for item in items)
