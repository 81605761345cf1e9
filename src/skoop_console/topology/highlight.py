from __future__ import annotations

from dataclasses import dataclass
from typing import FrozenSet, Optional, Set, Union

from .base import GraphNode, TopologyGraph
from .edges import NormalizedEdge

Focus = Union[GraphNode, NormalizedEdge, None]


@dataclass(frozen=True)
class Highlight:
    nodes: FrozenSet[str] = frozenset()
    edges: FrozenSet[str] = frozenset()

    @property
    def active(self) -> bool:
        return bool(self.nodes or self.edges)

    def is_dimmed(self, element_id: str) -> bool:
        # An empty highlight means nothing is focused: render everything at full opacity.
        if not self.active:
            return False
        return element_id not in self.nodes and element_id not in self.edges


NO_HIGHLIGHT = Highlight()


def highlight_for(focus: Focus, graph: TopologyGraph) -> Highlight:
    if focus is None:
        return NO_HIGHLIGHT
    if isinstance(focus, NormalizedEdge):
        if focus.virtual:
            return NO_HIGHLIGHT
        return Highlight(nodes=frozenset({focus.source, focus.target}), edges=frozenset({focus.id}))
    if focus.virtual:
        return NO_HIGHLIGHT

    nodes: Set[str] = {focus.id}
    edges: Set[str] = set()
    for edge in graph.edges:
        if edge.virtual:
            continue
        if edge.source == focus.id or edge.target == focus.id:
            nodes.add(edge.source)
            nodes.add(edge.target)
            edges.add(edge.id)
    return Highlight(nodes=frozenset(nodes), edges=frozenset(edges))


def highlight_by_id(element_id: Optional[str], graph: TopologyGraph) -> Highlight:
    """Resolve a renderer event id (node or edge) and highlight it."""
    if not element_id:
        return NO_HIGHLIGHT
    for node in graph.nodes:
        if node.id == element_id:
            return highlight_for(node, graph)
    for edge in graph.edges:
        if edge.id == element_id:
            return highlight_for(edge, graph)
    return NO_HIGHLIGHT
