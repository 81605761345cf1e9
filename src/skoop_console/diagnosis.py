from __future__ import annotations

import json
from dataclasses import dataclass, field
from enum import IntEnum
from typing import Any, Dict, Iterable, List, Mapping, Tuple, Union

from .logging import get_logger
from .model import coerce_int, coerce_str, iter_entries
from .util.errors import SnapshotError

LOG = get_logger(__name__)

LABEL_WRAP = 17


class SuspicionLevel(IntEnum):
    INFO = 0
    WARNING = 1
    CRITICAL = 2
    FATAL = 3


SUSPICION_COLORS: Dict[SuspicionLevel, str] = {
    SuspicionLevel.INFO: "#30BD61",
    SuspicionLevel.WARNING: "#FFB369",
    SuspicionLevel.CRITICAL: "#F76D76",
    SuspicionLevel.FATAL: "#F76D76",
}

NODE_TYPE_ICONS: Dict[str, str] = {
    "pod": "/img/pod.svg",
    "node": "/img/node.svg",
}
DEFAULT_ICON = "/img/default.svg"


@dataclass(frozen=True)
class Suspicion:
    level: SuspicionLevel
    message: str = ""


SuspicionLike = Union[Suspicion, Mapping[str, Any]]


def _level_of(item: SuspicionLike) -> SuspicionLevel:
    raw = item.level if isinstance(item, Suspicion) else item.get("level")
    value = coerce_int(raw)
    # clamp out-of-range levels instead of failing the whole result
    value = max(int(SuspicionLevel.INFO), min(int(SuspicionLevel.FATAL), value))
    return SuspicionLevel(value)


def rollup(suspicions: Iterable[SuspicionLike]) -> SuspicionLevel:
    """Worst level across the annotations; INFO (no issue) when there are none."""
    worst = SuspicionLevel.INFO
    for item in suspicions:
        level = _level_of(item)
        if level > worst:
            worst = level
    return worst


def severity_color(level: SuspicionLevel) -> str:
    return SUSPICION_COLORS[level]


def parse_suspicions(value: Any) -> Tuple[Suspicion, ...]:
    out: List[Suspicion] = []
    if isinstance(value, Mapping) and "level" in value:
        value = [value]
    for item in iter_entries(value):
        if not isinstance(item, Mapping):
            continue
        out.append(Suspicion(level=_level_of(item), message=coerce_str(item.get("message"))))
    return tuple(out)


def wrap_label(text: str, width: int = LABEL_WRAP) -> str:
    if width <= 0 or len(text) < width:
        return text
    return "\n".join(text[i : i + width] for i in range(0, len(text), width))


@dataclass(frozen=True)
class DiagnosisNode:
    id: str
    type: str
    label: str
    suspicions: Tuple[Suspicion, ...]
    severity: SuspicionLevel
    color: str
    icon: str

    @property
    def count(self) -> int:
        return len(self.suspicions)


@dataclass(frozen=True)
class DiagnosisLink:
    id: str
    type: str
    source: str
    target: str
    action: str
    suspicions: Tuple[Suspicion, ...]
    severity: SuspicionLevel
    packet: Mapping[str, Any] = field(default_factory=dict)


@dataclass(frozen=True)
class DiagnosisGraph:
    nodes: Tuple[DiagnosisNode, ...]
    links: Tuple[DiagnosisLink, ...]
    cluster_suspicions: Tuple[Suspicion, ...]
    cluster_severity: SuspicionLevel

    def node(self, node_id: str) -> DiagnosisNode | None:
        for node in self.nodes:
            if node.id == node_id:
                return node
        return None


def build_diagnosis_graph(result: Any) -> DiagnosisGraph:
    """
    Turn a diagnosis result payload into display-ready nodes and links.

    The cluster severity is the worst case over the cluster's own suspicions
    and every node and link suspicion.
    """
    data = result if isinstance(result, Mapping) else {}

    nodes: List[DiagnosisNode] = []
    for entry in iter_entries(data.get("nodes")):
        node_id = coerce_str(entry.get("id")) if isinstance(entry, Mapping) else ""
        if not node_id:
            LOG.warning("Skipping malformed diagnosis node", extra={"entry": repr(entry)[:200]})
            continue
        suspicions = parse_suspicions(entry.get("suspicions"))
        severity = rollup(suspicions)
        node_type = coerce_str(entry.get("type")).lower()
        nodes.append(
            DiagnosisNode(
                id=node_id,
                type=node_type,
                label=wrap_label(node_id),
                suspicions=suspicions,
                severity=severity,
                color=severity_color(severity),
                icon=NODE_TYPE_ICONS.get(node_type, DEFAULT_ICON),
            )
        )

    links: List[DiagnosisLink] = []
    for entry in iter_entries(data.get("links")):
        if not isinstance(entry, Mapping):
            LOG.warning("Skipping malformed diagnosis link", extra={"entry": repr(entry)[:200]})
            continue
        source = coerce_str(entry.get("source"))
        target = coerce_str(entry.get("destination") or entry.get("target"))
        if not source or not target:
            LOG.warning("Skipping diagnosis link without endpoints", extra={"entry": repr(entry)[:200]})
            continue
        suspicions = parse_suspicions(entry.get("suspicions"))
        packet = entry.get("packet")
        links.append(
            DiagnosisLink(
                id=coerce_str(entry.get("id")) or f"{source}-{target}",
                type=coerce_str(entry.get("type")),
                source=source,
                target=target,
                action=coerce_str(entry.get("action")),
                suspicions=suspicions,
                severity=rollup(suspicions),
                packet=packet if isinstance(packet, Mapping) else {},
            )
        )

    cluster = data.get("cluster")
    cluster_suspicions = parse_suspicions(cluster.get("suspicions")) if isinstance(cluster, Mapping) else ()
    everything: List[Suspicion] = list(cluster_suspicions)
    for node in nodes:
        everything.extend(node.suspicions)
    for link in links:
        everything.extend(link.suspicions)

    return DiagnosisGraph(
        nodes=tuple(nodes),
        links=tuple(links),
        cluster_suspicions=cluster_suspicions,
        cluster_severity=rollup(everything),
    )


def result_from_task(payload: Any) -> Dict[str, Any]:
    """
    Pull the result document out of a diagnosis task. The controller stores it
    as a JSON string under ``result``; saved results may already be decoded.
    """
    if not isinstance(payload, Mapping):
        raise SnapshotError("Diagnosis task payload must be an object")
    if "nodes" in payload or "links" in payload:
        return dict(payload)
    raw = payload.get("result")
    if raw is None or raw == "":
        raise SnapshotError(f"Diagnosis task has no result yet (status: {payload.get('status') or 'unknown'})")
    if isinstance(raw, Mapping):
        return dict(raw)
    try:
        decoded = json.loads(str(raw))
    except json.JSONDecodeError as e:
        raise SnapshotError(f"Diagnosis result is not valid JSON: {e}") from e
    if not isinstance(decoded, dict):
        raise SnapshotError("Diagnosis result must be an object")
    return decoded
