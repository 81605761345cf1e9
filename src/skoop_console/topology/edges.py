from __future__ import annotations

from dataclasses import dataclass, field
from typing import Dict, Iterable, List, Optional, Tuple

from ..model import RawEdge


def edge_key(a: str, b: str, *, directed: bool = False) -> str:
    if directed:
        return f"{a}-{b}"
    lo, hi = (a, b) if a <= b else (b, a)
    return f"{lo}-{hi}"


@dataclass
class NormalizedEdge:
    """
    One connection between two endpoints aggregating every raw observation
    seen for that pair. Metrics are reduced from ``edges`` on demand.

    Virtual edges (layout anchors) carry no observations.
    """

    id: str
    source: str
    target: str
    directed: bool = False
    edges: List[RawEdge] = field(default_factory=list)
    virtual: bool = False

    def total_bytes(self) -> int:
        return sum(e.bytes for e in self.edges)

    def total_packets(self) -> int:
        return sum(e.packets for e in self.edges)

    def total_dropped(self) -> int:
        return sum(e.dropped for e in self.edges)

    def total_retransmitted(self) -> int:
        return sum(e.retransmitted for e in self.edges)

    def latency_avg(self) -> Optional[float]:
        values = [e.latency_avg for e in self.edges if e.latency_avg is not None]
        if not values:
            return None
        return sum(values) / len(values)

    def latency_max(self) -> Optional[float]:
        values = [e.latency_max for e in self.edges if e.latency_max is not None]
        return max(values) if values else None

    def latency_min(self) -> Optional[float]:
        values = [e.latency_min for e in self.edges if e.latency_min is not None]
        return min(values) if values else None

    def sort_key(self) -> Tuple[str, str]:
        if self.directed:
            return (self.source, self.target)
        return (min(self.source, self.target), max(self.source, self.target))


def normalize(
    raw_edges: Iterable[RawEdge],
    *,
    directed: bool = False,
    keep_self_loops: bool = False,
) -> List[NormalizedEdge]:
    """
    Merge raw edges by endpoint pair.

    The topology view ignores direction, so a->b and b->a land on the same
    edge; the latency mesh passes ``directed=True`` to keep them apart.
    Self-loops are only kept for raw listings.
    """
    merged: Dict[str, NormalizedEdge] = {}
    for raw in raw_edges:
        if raw.src == raw.dst and not keep_self_loops:
            continue
        key = edge_key(raw.src, raw.dst, directed=directed)
        existing = merged.get(key)
        if existing is None:
            if directed:
                source, target = raw.src, raw.dst
            else:
                source, target = (raw.src, raw.dst) if raw.src <= raw.dst else (raw.dst, raw.src)
            existing = NormalizedEdge(id=key, source=source, target=target, directed=directed)
            merged[key] = existing
        existing.edges.append(raw)
    return sorted(merged.values(), key=lambda e: e.sort_key())
