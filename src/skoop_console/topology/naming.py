from __future__ import annotations

import re
from dataclasses import dataclass
from enum import Enum

from ..model import Endpoint, EndpointKind

NODE_GROUP_KEY = "Node"
EXTERNAL_GROUP_KEY = "External"

_HASH = r"[a-z0-9]{5,10}"
# Pod names of ReplicaSet-owned pods look like <deployment>-<rs hash>-<pod hash>,
# DaemonSet/StatefulSet-like pods like <owner>-<hash>.
_DEPLOYMENT_RE = re.compile(rf"^(?P<base>.+)-{_HASH}-{_HASH}$")
_DAEMONSET_RE = re.compile(rf"^(?P<base>.+)-{_HASH}$")


class GroupKind(str, Enum):
    POD = "pod"
    DEPLOYMENT_LIKE = "deployment-like"
    DAEMONSET_LIKE = "daemonset-like"
    NODE = "node"
    EXTERNAL = "external"
    UNKNOWN = "unknown"


@dataclass(frozen=True)
class GroupInfo:
    group_key: str
    group_kind: GroupKind


def name_of(endpoint: Endpoint) -> str:
    if endpoint.kind is EndpointKind.POD and endpoint.name:
        if endpoint.namespace:
            return f"{endpoint.namespace}/{endpoint.name}"
        return endpoint.name
    if endpoint.kind is EndpointKind.NODE and endpoint.node_name:
        return endpoint.node_name
    if endpoint.kind is EndpointKind.EXTERNAL and endpoint.ip:
        return endpoint.ip
    return endpoint.id


def infer_group(endpoint: Endpoint) -> GroupInfo:
    """
    Guess the workload an endpoint belongs to from its kind and pod name.

    This is a naming heuristic, not an owner-reference lookup: a pod whose
    literal name happens to end in hash-like segments is grouped as well.
    """
    if endpoint.kind is EndpointKind.NODE:
        return GroupInfo(NODE_GROUP_KEY, GroupKind.NODE)
    if endpoint.kind is EndpointKind.EXTERNAL:
        return GroupInfo(EXTERNAL_GROUP_KEY, GroupKind.EXTERNAL)
    if endpoint.kind is not EndpointKind.POD or not endpoint.name:
        return GroupInfo(endpoint.id, GroupKind.UNKNOWN)

    name = endpoint.name
    prefix = f"{endpoint.namespace}/" if endpoint.namespace else ""
    match = _DEPLOYMENT_RE.match(name)
    if match:
        return GroupInfo(prefix + match.group("base"), GroupKind.DEPLOYMENT_LIKE)
    match = _DAEMONSET_RE.match(name)
    if match:
        return GroupInfo(prefix + match.group("base"), GroupKind.DAEMONSET_LIKE)
    return GroupInfo(prefix + name, GroupKind.POD)
