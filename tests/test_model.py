from __future__ import annotations

import logging
from datetime import datetime, timezone

from skoop_console.model import (
    EndpointKind,
    TaskStatus,
    any_running,
    iter_entries,
    parse_event_list,
    parse_snapshot,
    parse_task_list,
)


def test_parse_snapshot_tolerates_missing_lists() -> None:
    assert parse_snapshot(None).nodes == ()
    snapshot = parse_snapshot({"nodes": None, "edges": None})
    assert snapshot.nodes == ()
    assert snapshot.edges == ()


def test_parse_snapshot_skips_bad_entries_and_duplicates(caplog) -> None:
    payload = {
        "nodes": [
            {"id": "p1", "type": "pod", "namespace": "default", "name": "web", "nodeName": "node-1"},
            {"id": "p1", "type": "pod", "name": "shadow"},
            {"type": "pod"},
            "garbage",
            {"id": "1.2.3.4", "type": "external"},
            {"id": "x", "type": "service"},
        ],
        "edges": [
            {"src": "p1", "dst": "1.2.3.4", "bytes": "12", "retrans": 3, "latency_avg": "1.5"},
            {"src": "p1"},
        ],
    }

    with caplog.at_level(logging.WARNING):
        snapshot = parse_snapshot(payload)

    assert [e.id for e in snapshot.nodes] == ["p1", "1.2.3.4", "x"]
    assert snapshot.nodes[0].name == "web"
    assert snapshot.nodes[0].node_name == "node-1"
    assert snapshot.nodes[1].ip == "1.2.3.4"
    assert snapshot.nodes[2].kind is EndpointKind.UNKNOWN
    edge = snapshot.edges[0]
    assert (edge.bytes, edge.retransmitted, edge.latency_avg) == (12, 3, 1.5)
    assert len(snapshot.edges) == 1
    assert "Skipping malformed endpoint entry" in caplog.text
    assert "Skipping malformed edge entry" in caplog.text


def test_parse_task_list_accepts_list_mapping_or_null() -> None:
    assert parse_task_list(None) == []

    flat = parse_task_list(
        [
            {"task_id": "1", "status": "running", "task_config": {"protocol": "tcp"}, "start_time": "t0"},
            {"task_id": "2", "status": "Success", "result": "{}"},
        ]
    )
    assert [t.status for t in flat] == [TaskStatus.RUNNING, TaskStatus.SUCCESS]
    assert flat[0].config == {"protocol": "tcp"}
    assert flat[0].running
    assert flat[1].payload == "{}"

    grouped = parse_task_list({"a": [{"task_id": 1, "status": "failed"}], "b": [{"id": "3", "status": "queued"}]})
    assert [(t.id, t.status) for t in grouped] == [("1", TaskStatus.FAILED), ("3", TaskStatus.PENDING)]


def test_malformed_task_entries_are_skipped(caplog) -> None:
    with caplog.at_level(logging.WARNING):
        tasks = parse_task_list([{"task_id": "1", "status": "exploded"}, {"status": "running"}, {"task_id": "2", "status": "running"}])

    assert [t.id for t in tasks] == ["2"]
    assert caplog.text.count("Skipping malformed task entry") == 2


def test_any_running() -> None:
    tasks = parse_task_list([{"task_id": "1", "status": "success"}, {"task_id": "2", "status": "running"}])

    assert any_running(tasks)
    assert not any_running(tasks[:1])
    assert not any_running([])
    assert not any_running([object()])


def test_parse_event_list() -> None:
    events = parse_event_list(
        [
            {
                "node": "node-1",
                "timestamp": 1_700_000_000_000_000_000,
                "type": "PacketLoss",
                "msg": "dropped",
                "labels": [{"name": "pod", "value": "web"}, {"name": "netns", "value": ""}],
            },
            {"node": "node-2"},
        ]
    )

    assert len(events) == 1
    event = events[0]
    assert event.message == "dropped"
    assert [label.name for label in event.labels] == ["pod"]
    assert event.time == datetime.fromtimestamp(1_700_000_000, timezone.utc)


def test_iter_entries_shapes() -> None:
    assert iter_entries(None) == []
    assert iter_entries({"a": 1, "b": 2}) == [1, 2]
    assert iter_entries([1]) == [1]
    assert iter_entries("nope") == []
