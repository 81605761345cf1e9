from __future__ import annotations

from typing import Iterable, List

from .base import VIRTUAL_PREFIX, GraphNode, NodeKind, TopologyGraph
from .edges import NormalizedEdge


def anchor_id(group_key: str) -> str:
    return VIRTUAL_PREFIX + group_key


def add_anchors(graph: TopologyGraph, collapsed_group_keys: Iterable[str]) -> TopologyGraph:
    """
    Return a copy of ``graph`` with one weightless anchor node per collapsed
    group, tied by a virtual edge to every real node of that group.
    """
    nodes: List[GraphNode] = list(graph.nodes)
    edges: List[NormalizedEdge] = list(graph.edges)
    existing = {node.id for node in nodes}

    for key in sorted(set(collapsed_group_keys)):
        members = [n for n in graph.nodes if n.group_key == key and not n.virtual]
        if not members:
            continue
        virtual_id = anchor_id(key)
        if virtual_id in existing:
            continue
        existing.add(virtual_id)
        nodes.append(
            GraphNode(
                id=virtual_id,
                label="",
                kind=NodeKind.VIRTUAL,
                group_key=key,
                group_kind=members[0].group_kind,
                weight=0.0,
                x=members[0].x,
                y=members[0].y,
            )
        )
        for member in members:
            edges.append(
                NormalizedEdge(
                    id=f"{virtual_id}-{member.id}",
                    source=virtual_id,
                    target=member.id,
                    directed=True,
                    virtual=True,
                )
            )

    return TopologyGraph(nodes=nodes, edges=edges)


def strip_virtual(graph: TopologyGraph) -> TopologyGraph:
    """Drop anchor nodes and edges; what remains is what the user may select."""
    return TopologyGraph(
        nodes=[n for n in graph.nodes if not n.virtual],
        edges=[e for e in graph.edges if not e.virtual],
    )
