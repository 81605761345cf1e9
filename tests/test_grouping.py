from __future__ import annotations

from skoop_console.model import Endpoint, EndpointKind
from skoop_console.topology.base import NodeKind
from skoop_console.topology.grouping import (
    EXPAND_RADIUS,
    ExpansionState,
    build_groups,
    collapse_group,
    expand_group,
)


def _endpoints() -> list:
    return [
        Endpoint(id="p2", kind=EndpointKind.POD, namespace="default", name="web-6f9c8d7b4-z8m1q"),
        Endpoint(id="p1", kind=EndpointKind.POD, namespace="default", name="web-6f9c8d7b4-x2k9p"),
        Endpoint(id="p3", kind=EndpointKind.POD, namespace="default", name="redis"),
        Endpoint(id="n1", kind=EndpointKind.NODE, node_name="node-1"),
    ]


def test_collapsed_groups_become_single_nodes() -> None:
    result = build_groups(_endpoints(), frozenset())

    assert [n.id for n in result.grouped_nodes] == ["Node", "default/redis", "default/web"]
    web = result.grouped_nodes[2]
    assert web.kind is NodeKind.GROUP
    assert web.members == ("p1", "p2")
    assert result.node_index == {"p1": "default/web", "p2": "default/web", "p3": "default/redis", "n1": "Node"}
    assert result.collapsed_keys() == ["Node", "default/redis", "default/web"]


def test_expanded_group_emits_member_nodes() -> None:
    result = build_groups(_endpoints(), {"default/web"})

    ids = [n.id for n in result.grouped_nodes]
    assert "default/web" not in ids
    assert ids[-2:] == ["p1", "p2"]
    assert result.node_index["p1"] == "p1"
    assert all(n.group_key == "default/web" for n in result.grouped_nodes if n.id in ("p1", "p2"))
    assert "default/web" not in result.collapsed_keys()


def test_build_groups_is_idempotent() -> None:
    first = build_groups(_endpoints(), {"Node"}, {"Node": (10.0, 20.0)})
    second = build_groups(list(reversed(_endpoints())), {"Node"}, {"Node": (10.0, 20.0)})

    assert first == second


def test_expanded_members_surround_anchor() -> None:
    result = build_groups(_endpoints(), {"default/web"}, {"default/web": (100.0, 50.0)})

    p1 = next(n for n in result.grouped_nodes if n.id == "p1")
    assert p1.position == (100.0 + EXPAND_RADIUS, 50.0)
    collapsed = build_groups(_endpoints(), frozenset(), {"default/web": (100.0, 50.0)})
    web = next(n for n in collapsed.grouped_nodes if n.id == "default/web")
    assert web.position == (100.0, 50.0)
    assert next(n for n in collapsed.grouped_nodes if n.id == "Node").position is None


def test_expand_and_collapse_helpers_do_not_mutate() -> None:
    keys = {"a"}

    assert expand_group(keys, "b") == frozenset({"a", "b"})
    assert collapse_group(keys, "a") == frozenset()
    assert keys == {"a"}


def test_collapse_reanchors_at_member_centroid() -> None:
    state = ExpansionState().expand("default/web", at=(0.0, 0.0))
    assert state.is_expanded("default/web")

    collapsed = state.collapse("default/web", [(10.0, 0.0), (30.0, 20.0)])

    assert not collapsed.is_expanded("default/web")
    assert collapsed.anchors["default/web"] == (20.0, 10.0)
    assert state.anchors["default/web"] == (0.0, 0.0)


def test_collapse_without_positions_keeps_previous_anchor() -> None:
    state = ExpansionState().expand("g", at=(5, 6)).collapse("g")

    assert state.anchors["g"] == (5.0, 6.0)
    assert state.toggle("g").is_expanded("g")
    assert not state.toggle("g").toggle("g").is_expanded("g")
