from __future__ import annotations

from skoop_console.model import Endpoint, EndpointKind, RawEdge, Snapshot
from skoop_console.topology.graph import build_topology
from skoop_console.topology.highlight import NO_HIGHLIGHT, highlight_by_id, highlight_for


def _graph():
    snapshot = Snapshot(
        nodes=(
            Endpoint(id="a", kind=EndpointKind.POD, namespace="ns", name="a"),
            Endpoint(id="b", kind=EndpointKind.POD, namespace="ns", name="b"),
            Endpoint(id="c", kind=EndpointKind.POD, namespace="ns", name="c"),
        ),
        edges=(RawEdge(src="a", dst="b"), RawEdge(src="b", dst="c")),
    )
    return build_topology(snapshot, {"ns/a", "ns/b", "ns/c"})


def test_no_focus_dims_nothing() -> None:
    graph = _graph()

    highlight = highlight_for(None, graph)

    assert highlight is NO_HIGHLIGHT
    assert not highlight.active
    assert not any(highlight.is_dimmed(n.id) for n in graph.nodes)


def test_node_focus_lights_neighbours_and_incident_edges() -> None:
    graph = _graph()

    highlight = highlight_for(graph.node("b"), graph)

    assert highlight.nodes == frozenset({"a", "b", "c"})
    assert highlight.edges == frozenset({"a-b", "b-c"})


def test_edge_focus_lights_its_endpoints_only() -> None:
    graph = _graph()
    edge = next(e for e in graph.edges if e.id == "a-b")

    highlight = highlight_for(edge, graph)

    assert highlight.nodes == frozenset({"a", "b"})
    assert highlight.is_dimmed("c")
    assert highlight.is_dimmed("b-c")
    assert not highlight.is_dimmed("a-b")


def test_virtual_elements_never_highlight() -> None:
    snapshot = Snapshot(
        nodes=(
            Endpoint(id="p1", kind=EndpointKind.POD, namespace="default", name="web-6f9c8d7b4-x2k9p"),
            Endpoint(id="p2", kind=EndpointKind.POD, namespace="default", name="web-6f9c8d7b4-z8m1q"),
        ),
        edges=(RawEdge(src="p1", dst="p2"),),
    )
    graph = build_topology(snapshot, None)

    assert highlight_by_id("!default/web", graph) == NO_HIGHLIGHT
    assert highlight_by_id("!default/web-default/web", graph) == NO_HIGHLIGHT
    assert highlight_by_id("default/web", graph).edges == frozenset()
    assert highlight_by_id(None, graph) == NO_HIGHLIGHT
    assert highlight_by_id("nope", graph) == NO_HIGHLIGHT
