from __future__ import annotations

from typing import AbstractSet, Any, Dict, List, Mapping, Optional, Union

from ..logging import get_logger
from ..model import Endpoint, EndpointKind, RawEdge, Snapshot, coerce_float, coerce_str, iter_entries
from .anchors import add_anchors
from .base import GraphNode, NodeKind, TopologyGraph
from .edges import NormalizedEdge, edge_key, normalize
from .grouping import ExpansionState, build_groups
from .naming import infer_group, name_of

LOG = get_logger(__name__)

LATENCY_WARN_MS = 1.0
LATENCY_CRITICAL_MS = 100.0


def remap_edges(edges: List[NormalizedEdge], node_index: Mapping[str, str]) -> List[NormalizedEdge]:
    """
    Re-point endpoint edges at the graph nodes now standing in for them.

    Edges that fold into a single collapsed group are dropped, and parallel
    edges between the same pair of graph nodes are merged.
    """
    merged: Dict[str, NormalizedEdge] = {}
    dangling = 0
    for edge in edges:
        source = node_index.get(edge.source)
        target = node_index.get(edge.target)
        if source is None or target is None:
            dangling += 1
            continue
        if source == target:
            continue
        key = edge_key(source, target)
        existing = merged.get(key)
        if existing is None:
            lo, hi = (source, target) if source <= target else (target, source)
            existing = NormalizedEdge(id=key, source=lo, target=hi)
            merged[key] = existing
        existing.edges.extend(edge.edges)
    if dangling:
        LOG.debug("Dropped edges referencing unknown endpoints", extra={"dropped": dangling})
    return sorted(merged.values(), key=lambda e: e.sort_key())


def build_topology(
    snapshot: Snapshot,
    state: Union[ExpansionState, AbstractSet[str], None] = None,
    *,
    with_anchors: bool = True,
) -> TopologyGraph:
    """
    Build the clusterable topology graph for one snapshot.

    ``state`` is either an ExpansionState or a plain set of expanded group
    keys. Calling this twice with the same inputs yields equal graphs.
    """
    if isinstance(state, ExpansionState):
        expanded: AbstractSet[str] = state.expanded
        anchors: Mapping[str, Any] = state.anchors
    else:
        expanded = state or frozenset()
        anchors = {}

    grouping = build_groups(snapshot.nodes, expanded, anchors)
    edges = remap_edges(normalize(snapshot.edges), grouping.node_index)
    graph = TopologyGraph(nodes=list(grouping.grouped_nodes), edges=edges)
    if with_anchors:
        graph = add_anchors(graph, grouping.collapsed_keys())
    return graph


def graph_stats(graph: TopologyGraph) -> Dict[str, int]:
    real_nodes = [n for n in graph.nodes if not n.virtual]
    real_edges = [e for e in graph.edges if not e.virtual]
    return {
        "nodes": len(real_nodes),
        "edges": len(real_edges),
        "groups": len({n.group_key for n in real_nodes}),
        "collapsed": sum(1 for n in real_nodes if n.kind is NodeKind.GROUP),
        "endpoints": sum(len(n.members) for n in real_nodes),
        "bytes": sum(e.total_bytes() for e in real_edges),
        "packets": sum(e.total_packets() for e in real_edges),
    }


def latency_color(avg_ms: Optional[float]) -> str:
    if avg_ms is None:
        return "gray"
    if avg_ms > LATENCY_CRITICAL_MS:
        return "red"
    if avg_ms > LATENCY_WARN_MS:
        return "orange"
    return "green"


def _mesh_endpoint(info: Mapping[str, Any]) -> Optional[Endpoint]:
    kind = coerce_str(info.get("type")).lower()
    name = coerce_str(info.get("name"))
    if not name:
        return None
    if kind == "pod":
        namespace = coerce_str(info.get("namespace"))
        return Endpoint(
            id=f"Pod/{namespace}/{name}",
            kind=EndpointKind.POD,
            namespace=namespace,
            name=name,
            node_name=coerce_str(info.get("nodename")),
        )
    if kind == "node":
        return Endpoint(id=f"Node/{name}", kind=EndpointKind.NODE, node_name=name)
    return Endpoint(id=name, kind=EndpointKind.EXTERNAL, ip=name)


def build_latency_mesh(payload: Any) -> TopologyGraph:
    """
    Build the ping-mesh graph. Unlike the topology view, direction matters:
    a->b and b->a latencies are separate edges. Nothing is grouped.
    """
    if not isinstance(payload, Mapping):
        return TopologyGraph()

    endpoints: Dict[str, Endpoint] = {}

    def _add(info: Any) -> Optional[Endpoint]:
        if not isinstance(info, Mapping):
            return None
        endpoint = _mesh_endpoint(info)
        if endpoint is not None:
            endpoints.setdefault(endpoint.id, endpoint)
        return endpoint

    for info in iter_entries(payload.get("nodes")):
        _add(info)

    raw: List[RawEdge] = []
    for entry in iter_entries(payload.get("latencies")):
        if not isinstance(entry, Mapping):
            continue
        source = _add(entry.get("source"))
        target = _add(entry.get("destination"))
        if source is None or target is None:
            LOG.warning("Skipping latency entry without endpoints", extra={"entry": repr(entry)[:200]})
            continue
        raw.append(
            RawEdge(
                src=source.id,
                dst=target.id,
                latency_avg=coerce_float(entry.get("latency_avg")),
                latency_max=coerce_float(entry.get("latency_max")),
                latency_min=coerce_float(entry.get("latency_min")),
            )
        )

    nodes: List[GraphNode] = []
    for endpoint_id in sorted(endpoints):
        endpoint = endpoints[endpoint_id]
        info = infer_group(endpoint)
        nodes.append(
            GraphNode(
                id=endpoint.id,
                label=name_of(endpoint),
                kind=NodeKind.ENDPOINT,
                group_key=info.group_key,
                group_kind=info.group_kind,
                members=(endpoint.id,),
                endpoint=endpoint,
            )
        )
    return TopologyGraph(nodes=nodes, edges=normalize(raw, directed=True))


def graph_to_dict(graph: TopologyGraph) -> Dict[str, Any]:
    nodes: List[Dict[str, Any]] = []
    for node in graph.nodes:
        nodes.append(
            {
                "id": node.id,
                "label": node.label,
                "kind": node.kind.value,
                "groupKey": node.group_key,
                "groupKind": node.group_kind.value,
                "members": list(node.members),
                "x": node.x,
                "y": node.y,
                "weight": node.weight,
                "virtual": node.virtual,
            }
        )
    edges: List[Dict[str, Any]] = []
    for edge in graph.edges:
        item: Dict[str, Any] = {
            "id": edge.id,
            "source": edge.source,
            "target": edge.target,
            "virtual": edge.virtual,
            "count": len(edge.edges),
        }
        if edge.edges:
            item.update(
                {
                    "bytes": edge.total_bytes(),
                    "packets": edge.total_packets(),
                    "dropped": edge.total_dropped(),
                    "retrans": edge.total_retransmitted(),
                }
            )
            avg = edge.latency_avg()
            if avg is not None:
                item.update(
                    {
                        "latency_avg": avg,
                        "latency_max": edge.latency_max(),
                        "latency_min": edge.latency_min(),
                        "color": latency_color(avg),
                    }
                )
        edges.append(item)
    return {"nodes": nodes, "edges": edges}
