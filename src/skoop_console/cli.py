from __future__ import annotations

import argparse
import asyncio
import sys
import time
from typing import Optional

from rich.console import Console

from .client import ControllerClient, poll_fetchers
from .config import ConsoleConfig, load_config
from .diagnosis import build_diagnosis_graph, result_from_task
from .logging import LogConfig, add_log_file, get_logger, setup_logging
from .model import parse_snapshot
from .polling import EVENTS, ConsolePoller, ListSnapshot, PollState
from .topology import build_latency_mesh, build_topology, graph_stats, graph_to_dict
from .util.errors import ConfigError, ExitCode, as_exit_code, error_message
from .util.rich_render import (
    render_diagnosis_table,
    render_event_table,
    render_graph_summary,
    render_task_table,
)
from .util.serialization import load_document, stable_json_dumps

LOG = get_logger(__name__)

WATCH_TICK = 0.1


def _client(cfg: ConsoleConfig) -> ControllerClient:
    return ControllerClient(cfg.controller_url, timeout=cfg.request_timeout)


def cmd_graph(cfg: ConsoleConfig, ns: argparse.Namespace, *, console: Optional[Console] = None) -> int:
    if ns.snapshot:
        payload = load_document(ns.snapshot)
    elif ns.mesh:
        raise ConfigError("--mesh needs a saved ping-mesh result via --snapshot")
    else:
        end = ns.end if ns.end is not None else int(time.time())
        start = ns.start if ns.start is not None else end - ns.window
        if start >= end:
            raise ConfigError(f"Flow window start must precede end: {start} >= {end}")
        with _client(cfg) as client:
            payload = client.get_flow(start, end)

    if ns.mesh:
        graph = build_latency_mesh(payload)
    else:
        snapshot = parse_snapshot(payload)
        graph = build_topology(snapshot, set(ns.expand or []), with_anchors=ns.with_anchors)
    stats = graph_stats(graph)
    LOG.info("Built graph", extra={"nodes": stats["nodes"], "edges": stats["edges"]})

    if ns.as_json:
        sys.stdout.write(stable_json_dumps(graph_to_dict(graph)) + "\n")
    else:
        render_graph_summary(graph, stats, console=console)
    return int(ExitCode.OK)


def cmd_diagnosis(cfg: ConsoleConfig, ns: argparse.Namespace, *, console: Optional[Console] = None) -> int:
    if ns.result:
        payload = load_document(ns.result)
    else:
        with _client(cfg) as client:
            payload = client.get_diagnosis(ns.diagnosis_id)
    graph = build_diagnosis_graph(result_from_task(payload))
    LOG.info(
        "Diagnosis severity",
        extra={"severity": graph.cluster_severity.name, "nodes": len(graph.nodes), "links": len(graph.links)},
    )
    render_diagnosis_table(graph, console=console)
    return int(ExitCode.OK)


async def watch_list(
    poller: ConsolePoller,
    name: str,
    *,
    live: bool = False,
    tick: float = WATCH_TICK,
) -> ListSnapshot:
    """
    Drive one list until it has nothing left to poll for: no running tasks,
    live mode off, or the poller was closed by the caller.
    """
    target = poller[name]
    try:
        if live:
            poller.set_live(True, names=[name])
        if not target.busy:
            poller.refresh(name)
        while target.busy:
            await asyncio.sleep(tick)
    finally:
        poller.close()
    return target.snapshot()


def cmd_watch(cfg: ConsoleConfig, ns: argparse.Namespace, *, console: Optional[Console] = None) -> int:
    if ns.live and ns.list_name != EVENTS:
        raise ConfigError("--live only applies to the events list")
    out = console or Console()
    settled = 0

    def _on_update(snapshot: ListSnapshot) -> None:
        nonlocal settled
        if snapshot.name != ns.list_name or snapshot.state is not PollState.SETTLED:
            return
        settled += 1
        if snapshot.name == EVENTS:
            render_event_table(snapshot, console=out)
        else:
            render_task_table(snapshot, console=out)
        if ns.max_polls and settled >= ns.max_polls:
            # closing here keeps the follow-up from being scheduled
            poller[ns.list_name].close()

    with _client(cfg) as client:
        poller = ConsolePoller(
            poll_fetchers(client),
            task_delay=cfg.task_poll_interval,
            live_delay=cfg.live_poll_interval,
            on_update=_on_update,
        )
        try:
            final = asyncio.run(watch_list(poller, ns.list_name, live=ns.live))
        except KeyboardInterrupt:
            LOG.info("Watch interrupted", extra={"list": ns.list_name, "phase": "cancelled"})
            return int(ExitCode.OK)

    if final.state is PollState.ERRORED:
        error = poller[ns.list_name].error
        out.print(f"[red]Error:[/] {final.error}")
        return as_exit_code(error) if error is not None else int(ExitCode.RUNTIME_ERROR)
    return int(ExitCode.OK)


def main() -> None:
    try:
        command, cfg, ns = load_config()
        setup_logging(LogConfig(level=cfg.log_level, json_logs=cfg.json_logs))
        if cfg.log_file:
            add_log_file(cfg.log_file)

        if command == "graph":
            code = cmd_graph(cfg, ns)
        elif command == "diagnosis":
            code = cmd_diagnosis(cfg, ns)
        elif command == "watch":
            code = cmd_watch(cfg, ns)
        else:
            raise ConfigError(f"Unknown command: {command}")

        sys.exit(code)
    except SystemExit:
        raise
    except BrokenPipeError:
        # Common when users pipe to `head` or similar tools.
        sys.exit(0)
    except Exception as e:
        setup_logging(LogConfig())
        LOG.error("Execution failed: %s", error_message(e), extra={"error": str(e)})
        sys.exit(as_exit_code(e))


if __name__ == "__main__":
    main()
