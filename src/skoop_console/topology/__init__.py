from __future__ import annotations

from .anchors import add_anchors, anchor_id, strip_virtual
from .base import GraphNode, NodeKind, Position, TopologyGraph
from .edges import NormalizedEdge, edge_key, normalize
from .graph import build_latency_mesh, build_topology, graph_stats, graph_to_dict, latency_color
from .grouping import (
    ExpansionState,
    GroupingResult,
    WorkloadGroup,
    build_groups,
    collapse_group,
    expand_group,
)
from .highlight import NO_HIGHLIGHT, Highlight, highlight_by_id, highlight_for
from .naming import GroupInfo, GroupKind, infer_group, name_of

__all__ = [
    "ExpansionState",
    "GraphNode",
    "GroupInfo",
    "GroupKind",
    "GroupingResult",
    "Highlight",
    "NO_HIGHLIGHT",
    "NodeKind",
    "NormalizedEdge",
    "Position",
    "TopologyGraph",
    "WorkloadGroup",
    "add_anchors",
    "anchor_id",
    "build_groups",
    "build_latency_mesh",
    "build_topology",
    "collapse_group",
    "edge_key",
    "expand_group",
    "graph_stats",
    "graph_to_dict",
    "highlight_by_id",
    "highlight_for",
    "infer_group",
    "latency_color",
    "name_of",
    "normalize",
    "strip_virtual",
]
