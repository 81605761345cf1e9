from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Dict, List, Optional, Tuple

from ..model import Endpoint
from .edges import NormalizedEdge
from .naming import GroupKind

Position = Tuple[float, float]

VIRTUAL_PREFIX = "!"


class NodeKind(str, Enum):
    ENDPOINT = "endpoint"
    GROUP = "group"
    VIRTUAL = "virtual"


@dataclass
class GraphNode:
    id: str
    label: str
    kind: NodeKind
    group_key: str
    group_kind: GroupKind
    members: Tuple[str, ...] = ()
    endpoint: Optional[Endpoint] = None
    x: Optional[float] = None
    y: Optional[float] = None
    weight: float = 1.0

    @property
    def virtual(self) -> bool:
        return self.kind is NodeKind.VIRTUAL

    @property
    def position(self) -> Optional[Position]:
        if self.x is None or self.y is None:
            return None
        return (self.x, self.y)


@dataclass
class TopologyGraph:
    nodes: List[GraphNode] = field(default_factory=list)
    edges: List[NormalizedEdge] = field(default_factory=list)

    def node(self, node_id: str) -> Optional[GraphNode]:
        for node in self.nodes:
            if node.id == node_id:
                return node
        return None

    def node_map(self) -> Dict[str, GraphNode]:
        return {node.id: node for node in self.nodes}
