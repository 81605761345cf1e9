from __future__ import annotations

from skoop_console.model import Endpoint, EndpointKind
from skoop_console.topology.anchors import add_anchors, anchor_id, strip_virtual
from skoop_console.topology.base import TopologyGraph
from skoop_console.topology.grouping import build_groups


def _graph(expanded: set) -> tuple:
    endpoints = [
        Endpoint(id="p1", kind=EndpointKind.POD, namespace="default", name="web-6f9c8d7b4-x2k9p"),
        Endpoint(id="p2", kind=EndpointKind.POD, namespace="default", name="web-6f9c8d7b4-z8m1q"),
        Endpoint(id="n1", kind=EndpointKind.NODE, node_name="node-1"),
    ]
    result = build_groups(endpoints, expanded)
    return TopologyGraph(nodes=list(result.grouped_nodes)), result.collapsed_keys()


def test_each_collapsed_group_gets_one_weightless_anchor() -> None:
    graph, collapsed = _graph(set())

    anchored = add_anchors(graph, collapsed)

    virtual = [n for n in anchored.nodes if n.virtual]
    assert sorted(n.id for n in virtual) == [anchor_id("Node"), anchor_id("default/web")]
    assert all(n.weight == 0.0 for n in virtual)
    assert all(e.virtual for e in anchored.edges)
    assert {(e.source, e.target) for e in anchored.edges} == {
        ("!Node", "Node"),
        ("!default/web", "default/web"),
    }
    # input graph untouched
    assert not any(n.virtual for n in graph.nodes)


def test_anchor_skips_groups_without_members_and_duplicates() -> None:
    graph, _ = _graph(set())

    anchored = add_anchors(graph, ["missing", "Node", "Node"])

    assert [n.id for n in anchored.nodes if n.virtual] == ["!Node"]


def test_strip_virtual_restores_real_graph() -> None:
    graph, collapsed = _graph({"default/web"})

    anchored = add_anchors(graph, collapsed)
    stripped = strip_virtual(anchored)

    assert [n.id for n in stripped.nodes] == [n.id for n in graph.nodes]
    assert stripped.edges == []
