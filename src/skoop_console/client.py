from __future__ import annotations

import threading
import time
from typing import Any, Dict, Iterable, List, Mapping, Optional, Sequence

import requests

from .config import DEFAULT_REQUEST_TIMEOUT
from .logging import get_logger
from .polling import CAPTURES, DIAGNOSES, EVENTS, CancelToken, Fetcher
from .util.errors import ControllerAPIError

LOG = get_logger(__name__)


def _join(values: Optional[Iterable[str]]) -> Optional[str]:
    if not values:
        return None
    joined = ",".join(v for v in values if v)
    return joined or None


class ControllerClient:
    """
    Thin adapter over the diagnostics controller REST API.

    Every method returns the decoded JSON body. Transport failures and non-2xx
    responses raise ControllerAPIError carrying the backend's ``error`` field
    when it sends one.
    """

    def __init__(
        self,
        base_url: str,
        *,
        timeout: float = DEFAULT_REQUEST_TIMEOUT,
        session: Optional[requests.Session] = None,
    ) -> None:
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self._session = session or requests.Session()
        self._session.headers.setdefault("Accept", "application/json")
        # requests.Session is not thread-safe and pollers fetch from worker threads
        self._lock = threading.Lock()

    def close(self) -> None:
        self._session.close()

    def __enter__(self) -> ControllerClient:
        return self

    def __exit__(self, exc_type: Any, exc: Any, exc_tb: Any) -> None:
        self.close()

    def _request(
        self,
        method: str,
        path: str,
        *,
        params: Optional[Mapping[str, Any]] = None,
        json_body: Optional[Any] = None,
    ) -> Any:
        url = self.base_url + path
        clean_params = {k: v for k, v in (params or {}).items() if v is not None}
        LOG.debug("Controller request", extra={"method": method, "path": path})
        try:
            with self._lock:
                resp = self._session.request(
                    method,
                    url,
                    params=clean_params or None,
                    json=json_body,
                    timeout=self.timeout,
                )
        except requests.RequestException as e:
            raise ControllerAPIError(f"{method} {path} failed: {e}") from e

        body: Any = None
        if resp.content:
            try:
                body = resp.json()
            except ValueError:
                body = None
        if not 200 <= resp.status_code < 300:
            detail = body.get("error") if isinstance(body, dict) else None
            message = str(detail) if detail else f"{method} {path} returned HTTP {resp.status_code}"
            raise ControllerAPIError(message, status_code=resp.status_code)
        if body is None and resp.content:
            raise ControllerAPIError(f"{method} {path} returned a non-JSON body", status_code=resp.status_code)
        return body

    # Tasks
    def list_captures(self) -> Any:
        return self._request("GET", "/controller/captures")

    def create_capture(self, task: Mapping[str, Any]) -> Any:
        return self._request("POST", "/controller/capture", json_body=dict(task))

    def list_diagnoses(self) -> Any:
        return self._request("GET", "/diagnosis")

    def get_diagnosis(self, diagnosis_id: str) -> Any:
        return self._request("GET", f"/diagnosis/{diagnosis_id}")

    def create_diagnosis(self, task: Mapping[str, Any]) -> Any:
        return self._request("POST", "/diagnosis", json_body=dict(task))

    # Observability
    def list_events(
        self,
        *,
        start: Optional[int] = None,
        end: Optional[int] = None,
        types: Optional[Sequence[str]] = None,
        nodes: Optional[Sequence[str]] = None,
        namespaces: Optional[Sequence[str]] = None,
        pods: Optional[Sequence[str]] = None,
        limit: Optional[int] = None,
    ) -> Any:
        params: Dict[str, Any] = {
            "start": start,
            "end": end,
            "types": _join(types),
            "nodes": _join(nodes),
            "namespaces": _join(namespaces),
            "pods": _join(pods),
            "limit": limit,
        }
        return self._request("GET", "/controller/events", params=params)

    def get_flow(self, start: int, end: int) -> Any:
        return self._request("GET", "/controller/flow", params={"from": start, "to": end})

    def ping_mesh(self, targets: Sequence[Mapping[str, Any]]) -> Any:
        return self._request("POST", "/controller/pingmesh", json_body={"ping_mesh_list": [dict(t) for t in targets]})

    # Cluster metadata
    def list_pods(self) -> Any:
        return self._request("GET", "/controller/pods")

    def list_nodes(self) -> Any:
        return self._request("GET", "/controller/nodes")

    def list_namespaces(self) -> Any:
        return self._request("GET", "/controller/namespaces")


def poll_fetchers(
    client: ControllerClient,
    *,
    event_window: Optional[int] = None,
    event_limit: Optional[int] = None,
) -> Dict[str, Fetcher]:
    """
    Fetchers for the console's tracked lists. They share the client, whose
    requests are serialized on its session. A fetch whose token was cancelled
    before the request went out never hits the network.
    """

    def captures(token: CancelToken) -> Any:
        if token.cancelled:
            return None
        return client.list_captures()

    def diagnoses(token: CancelToken) -> Any:
        if token.cancelled:
            return None
        return client.list_diagnoses()

    def events(token: CancelToken) -> Any:
        if token.cancelled:
            return None
        start: Optional[int] = None
        end: Optional[int] = None
        if event_window:
            end = int(time.time())
            start = end - event_window
        return client.list_events(start=start, end=end, limit=event_limit)

    fetchers: Dict[str, Fetcher] = {CAPTURES: captures, DIAGNOSES: diagnoses, EVENTS: events}
    return fetchers


def ping_mesh_targets(items: Iterable[Mapping[str, Any]]) -> List[Dict[str, str]]:
    """Shape pod/node descriptions into the controller's ping-mesh target list."""
    targets: List[Dict[str, str]] = []
    for item in items:
        kind = str(item.get("type") or "").lower()
        name = str(item.get("name") or "")
        if kind not in ("pod", "node") or not name:
            continue
        targets.append(
            {
                "type": kind,
                "name": name,
                "namespace": str(item.get("namespace") or "") if kind == "pod" else "",
                "nodename": str(item.get("nodename") or item.get("node_name") or ""),
            }
        )
    return targets
