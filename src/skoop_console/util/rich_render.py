from __future__ import annotations

from typing import Any, Dict, Optional, Sequence

from rich.console import Console
from rich.table import Table

from ..diagnosis import DiagnosisGraph, SuspicionLevel, rollup
from ..model import Event, TaskResult, TaskStatus
from ..polling import ListSnapshot
from ..topology.base import TopologyGraph
from ..topology.graph import latency_color

STATUS_STYLES: Dict[TaskStatus, str] = {
    TaskStatus.PENDING: "dim",
    TaskStatus.RUNNING: "yellow",
    TaskStatus.SUCCESS: "green",
    TaskStatus.FAILED: "red",
}

SEVERITY_STYLES: Dict[SuspicionLevel, str] = {
    SuspicionLevel.INFO: "green",
    SuspicionLevel.WARNING: "dark_orange",
    SuspicionLevel.CRITICAL: "red",
    SuspicionLevel.FATAL: "bold red",
}


def _format_labels(event: Event, *, max_labels: int = 4) -> str:
    if not event.labels:
        return ""
    shown = event.labels[:max_labels]
    tail = len(event.labels) - len(shown)
    rendered = ", ".join([f"{label.name}={label.value}" for label in shown])
    if tail > 0:
        rendered = f"{rendered} (+{tail} more)"
    return rendered


def _truncate(text: str, limit: int = 80) -> str:
    return text if len(text) <= limit else text[: limit - 3] + "..."


def render_graph_summary(
    graph: TopologyGraph,
    stats: Dict[str, int],
    *,
    console: Optional[Console] = None,
) -> None:
    table = Table(title="Topology Summary", show_header=True, header_style="bold")
    table.add_column("Metric", style="cyan")
    table.add_column("Value", style="white")
    table.add_row("Nodes", str(stats.get("nodes", 0)))
    table.add_row("Edges", str(stats.get("edges", 0)))
    table.add_row("Groups", str(stats.get("groups", 0)))
    table.add_row("Collapsed groups", str(stats.get("collapsed", 0)))
    table.add_row("Endpoints", str(stats.get("endpoints", 0)))
    table.add_row("Bytes", str(stats.get("bytes", 0)))
    table.add_row("Packets", str(stats.get("packets", 0)))

    nodes = Table(title="Nodes", show_header=True, header_style="bold")
    nodes.add_column("Id", style="cyan")
    nodes.add_column("Kind")
    nodes.add_column("Group")
    nodes.add_column("Members", justify="right")
    for node in graph.nodes:
        if node.virtual:
            continue
        nodes.add_row(node.id, node.kind.value, node.group_kind.value, str(len(node.members)))

    edges = Table(title="Edges", show_header=True, header_style="bold")
    edges.add_column("Source", style="cyan")
    edges.add_column("Target", style="cyan")
    edges.add_column("Flows", justify="right")
    edges.add_column("Bytes", justify="right")
    edges.add_column("Latency (ms)", justify="right")
    for edge in graph.edges:
        if edge.virtual:
            continue
        avg = edge.latency_avg()
        latency = "" if avg is None else f"[{latency_color(avg)}]{avg:.2f}[/]"
        edges.add_row(edge.source, edge.target, str(len(edge.edges)), str(edge.total_bytes()), latency)

    out = console or Console()
    out.print(table)
    out.print(nodes)
    out.print(edges)


def render_task_table(snapshot: ListSnapshot, *, console: Optional[Console] = None) -> None:
    title = f"{snapshot.name.capitalize()}"
    if snapshot.is_loading:
        title = f"{title} (loading)"
    table = Table(title=title, show_header=True, header_style="bold")
    table.add_column("Task", style="cyan")
    table.add_column("Status")
    table.add_column("Started")
    table.add_column("Finished")
    table.add_column("Message")
    for item in snapshot.items:
        if not isinstance(item, TaskResult):
            continue
        style = STATUS_STYLES.get(item.status, "white")
        table.add_row(
            item.id,
            f"[{style}]{item.status.value}[/]",
            item.start_time or "",
            item.finish_time or "",
            _truncate(item.message),
        )
    out = console or Console()
    out.print(table)
    if snapshot.error:
        out.print(f"[red]Error:[/] {snapshot.error}")


def render_event_table(snapshot: ListSnapshot, *, console: Optional[Console] = None) -> None:
    title = "Events (live)" if snapshot.is_live else "Events"
    table = Table(title=title, show_header=True, header_style="bold")
    table.add_column("Time", style="cyan")
    table.add_column("Node")
    table.add_column("Type")
    table.add_column("Labels")
    table.add_column("Message")
    for event in snapshot.items:
        if not isinstance(event, Event):
            continue
        table.add_row(
            event.time.isoformat(timespec="seconds"),
            event.node,
            event.type,
            _format_labels(event),
            _truncate(event.message),
        )
    out = console or Console()
    out.print(table)
    if snapshot.error:
        out.print(f"[red]Error:[/] {snapshot.error}")


def render_diagnosis_table(graph: DiagnosisGraph, *, console: Optional[Console] = None) -> None:
    overall = SEVERITY_STYLES[graph.cluster_severity]
    table = Table(
        title=f"Diagnosis: [{overall}]{graph.cluster_severity.name}[/]",
        show_header=True,
        header_style="bold",
    )
    table.add_column("Element", style="cyan")
    table.add_column("Type")
    table.add_column("Severity")
    table.add_column("Suspicions", justify="right")
    table.add_column("Messages")

    def _row(element: str, kind: str, level: SuspicionLevel, messages: Sequence[Any]) -> None:
        style = SEVERITY_STYLES[level]
        text = "; ".join(str(m.message) for m in messages if m.message)
        table.add_row(element, kind, f"[{style}]{level.name}[/]", str(len(messages)), _truncate(text, 120))

    if graph.cluster_suspicions:
        _row("cluster", "cluster", rollup(graph.cluster_suspicions), graph.cluster_suspicions)
    for node in graph.nodes:
        _row(node.id, node.type, node.severity, node.suspicions)
    for link in graph.links:
        _row(f"{link.source} -> {link.target}", link.type or "link", link.severity, link.suspicions)
    (console or Console()).print(table)
