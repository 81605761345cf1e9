from __future__ import annotations

import math
from dataclasses import dataclass, field
from typing import AbstractSet, Dict, FrozenSet, Iterable, List, Mapping, Optional, Tuple

from ..model import Endpoint
from .base import GraphNode, NodeKind, Position
from .naming import GroupKind, infer_group, name_of

# Distance between an expanded member and its group's anchor.
EXPAND_RADIUS = 30.0


@dataclass(frozen=True)
class WorkloadGroup:
    group_key: str
    group_kind: GroupKind
    members: Tuple[Endpoint, ...]


@dataclass(frozen=True)
class GroupingResult:
    grouped_nodes: List[GraphNode]
    node_index: Dict[str, str]
    groups: Dict[str, WorkloadGroup]

    def collapsed_keys(self) -> List[str]:
        return [node.id for node in self.grouped_nodes if node.kind is NodeKind.GROUP]


def expand_group(expanded: AbstractSet[str], group_key: str) -> FrozenSet[str]:
    return frozenset(expanded) | {group_key}


def collapse_group(expanded: AbstractSet[str], group_key: str) -> FrozenSet[str]:
    return frozenset(expanded) - {group_key}


def _centroid(positions: Iterable[Position]) -> Optional[Position]:
    points = list(positions)
    if not points:
        return None
    return (
        sum(p[0] for p in points) / len(points),
        sum(p[1] for p in points) / len(points),
    )


@dataclass(frozen=True)
class ExpansionState:
    """
    Caller-owned UI session state: which groups are expanded and where each
    group was last anchored on screen. Every transition returns a new state.
    """

    expanded: FrozenSet[str] = frozenset()
    anchors: Mapping[str, Position] = field(default_factory=dict)

    def is_expanded(self, group_key: str) -> bool:
        return group_key in self.expanded

    def expand(self, group_key: str, *, at: Optional[Position] = None) -> ExpansionState:
        anchors = dict(self.anchors)
        if at is not None:
            anchors[group_key] = (float(at[0]), float(at[1]))
        return ExpansionState(expanded=expand_group(self.expanded, group_key), anchors=anchors)

    def collapse(
        self,
        group_key: str,
        member_positions: Optional[Iterable[Position]] = None,
    ) -> ExpansionState:
        """
        Collapse a group. The group is re-anchored at the centroid of the
        members' latest positions; without positions the previous anchor stays.
        """
        anchors = dict(self.anchors)
        center = _centroid(member_positions or ())
        if center is not None:
            anchors[group_key] = center
        return ExpansionState(expanded=collapse_group(self.expanded, group_key), anchors=anchors)

    def toggle(self, group_key: str, *, at: Optional[Position] = None) -> ExpansionState:
        if self.is_expanded(group_key):
            return self.collapse(group_key)
        return self.expand(group_key, at=at)


def partition(endpoints: Iterable[Endpoint]) -> Dict[str, WorkloadGroup]:
    buckets: Dict[str, List[Endpoint]] = {}
    kinds: Dict[str, GroupKind] = {}
    for endpoint in endpoints:
        info = infer_group(endpoint)
        buckets.setdefault(info.group_key, []).append(endpoint)
        kinds.setdefault(info.group_key, info.group_kind)
    return {
        key: WorkloadGroup(
            group_key=key,
            group_kind=kinds[key],
            members=tuple(sorted(buckets[key], key=lambda e: e.id)),
        )
        for key in sorted(buckets)
    }


def _member_position(anchor: Optional[Position], index: int, count: int) -> Optional[Position]:
    if anchor is None:
        return None
    angle = 2 * math.pi * index / max(count, 1)
    return (anchor[0] + EXPAND_RADIUS * math.cos(angle), anchor[1] + EXPAND_RADIUS * math.sin(angle))


def build_groups(
    endpoints: Iterable[Endpoint],
    expanded_group_keys: AbstractSet[str],
    anchors: Optional[Mapping[str, Position]] = None,
) -> GroupingResult:
    """
    Partition endpoints into workload groups and decide how each is shown.

    Collapsed groups become a single node whose id is the group key; expanded
    groups contribute one node per member, placed around the group's anchor.
    ``node_index`` maps every endpoint id to the node that represents it.
    """
    anchors = anchors or {}
    groups = partition(endpoints)
    nodes: List[GraphNode] = []
    node_index: Dict[str, str] = {}

    for key, group in groups.items():
        anchor = anchors.get(key)
        if key in expanded_group_keys:
            count = len(group.members)
            for i, member in enumerate(group.members):
                pos = _member_position(anchor, i, count)
                nodes.append(
                    GraphNode(
                        id=member.id,
                        label=name_of(member),
                        kind=NodeKind.ENDPOINT,
                        group_key=key,
                        group_kind=group.group_kind,
                        members=(member.id,),
                        endpoint=member,
                        x=pos[0] if pos else None,
                        y=pos[1] if pos else None,
                    )
                )
                node_index[member.id] = member.id
            continue

        nodes.append(
            GraphNode(
                id=key,
                label=key,
                kind=NodeKind.GROUP,
                group_key=key,
                group_kind=group.group_kind,
                members=tuple(m.id for m in group.members),
                x=anchor[0] if anchor else None,
                y=anchor[1] if anchor else None,
            )
        )
        for member in group.members:
            node_index[member.id] = key

    return GroupingResult(grouped_nodes=nodes, node_index=node_index, groups=groups)
