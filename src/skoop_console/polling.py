from __future__ import annotations

import asyncio
import inspect
from dataclasses import dataclass
from enum import Enum
from typing import Any, Callable, Dict, Iterable, List, Mapping, Optional, Sequence, Tuple

from .logging import get_logger
from .model import any_running, parse_event_list, parse_task_list
from .util.errors import error_message

LOG = get_logger(__name__)

DEFAULT_TASK_DELAY = 3.0
DEFAULT_LIVE_DELAY = 2.0

CAPTURES = "captures"
DIAGNOSES = "diagnoses"
EVENTS = "events"


class PollState(str, Enum):
    IDLE = "idle"
    FETCHING = "fetching"
    SETTLED = "settled"
    CANCELLED = "cancelled"
    ERRORED = "errored"


class CancelToken:
    """Cooperative cancellation flag handed to every fetch."""

    def __init__(self) -> None:
        self._cancelled = False

    @property
    def cancelled(self) -> bool:
        return self._cancelled

    def cancel(self) -> None:
        self._cancelled = True


Fetcher = Callable[[CancelToken], Any]
Parser = Callable[[Any], Sequence[Any]]


@dataclass(frozen=True)
class ListSnapshot:
    name: str
    items: Tuple[Any, ...]
    state: PollState
    is_loading: bool
    is_live: bool
    error: Optional[str] = None


class ListPoller:
    """
    Keeps one result list fresh.

    Every ``refresh()`` supersedes the previous one: the in-flight fetch is
    cancelled and whatever it eventually returns is discarded. After a
    successful fetch exactly one follow-up refresh is scheduled when
    ``should_repoll`` says work is still running (or on every settle in live
    mode). Failed fetches are not retried automatically.

    Must be driven from a running asyncio event loop.
    """

    def __init__(
        self,
        name: str,
        fetch: Fetcher,
        *,
        parse: Optional[Parser] = None,
        delay: float = DEFAULT_TASK_DELAY,
        live_delay: float = DEFAULT_LIVE_DELAY,
        should_repoll: Callable[[Sequence[Any]], bool] = any_running,
        on_update: Optional[Callable[[ListSnapshot], None]] = None,
        on_error: Optional[Callable[[str, BaseException], None]] = None,
    ) -> None:
        self.name = name
        self.delay = delay
        self.live_delay = live_delay
        self._fetch = fetch
        self._fetch_is_async = inspect.iscoroutinefunction(fetch)
        self._parse = parse or (lambda payload: list(payload or []))
        self._should_repoll = should_repoll
        self._on_update = on_update
        self._on_error = on_error

        self._items: Tuple[Any, ...] = ()
        self._state = PollState.IDLE
        self._error: Optional[BaseException] = None
        self._live = False
        self._closed = False
        self._token: Optional[CancelToken] = None
        self._task: Optional[asyncio.Task[None]] = None
        self._timer: Optional[asyncio.TimerHandle] = None
        self.fetch_count = 0

    @property
    def items(self) -> Tuple[Any, ...]:
        return self._items

    @property
    def state(self) -> PollState:
        return self._state

    @property
    def error(self) -> Optional[BaseException]:
        return self._error

    @property
    def is_loading(self) -> bool:
        return self._state is PollState.FETCHING

    @property
    def is_live(self) -> bool:
        return self._live

    @property
    def has_pending_refresh(self) -> bool:
        return self._timer is not None

    @property
    def busy(self) -> bool:
        inflight = self._task is not None and not self._task.done()
        return inflight or self._timer is not None

    def snapshot(self) -> ListSnapshot:
        return ListSnapshot(
            name=self.name,
            items=self._items,
            state=self._state,
            is_loading=self.is_loading,
            is_live=self._live,
            error=error_message(self._error) if self._error is not None else None,
        )

    def refresh(self) -> Optional[asyncio.Task[None]]:
        """Cancel whatever is in flight or scheduled and start a new fetch."""
        if self._closed:
            LOG.debug("Ignoring refresh on closed poller", extra={"list": self.name, "phase": "refresh"})
            return None
        loop = asyncio.get_running_loop()
        self._cancel_timer()
        self._cancel_inflight()

        token = CancelToken()
        self._token = token
        self._state = PollState.FETCHING
        self.fetch_count += 1
        LOG.debug("Fetching", extra={"list": self.name, "phase": "fetch", "fetch": self.fetch_count})
        self._task = loop.create_task(self._run(token))
        return self._task

    def set_live(self, enabled: bool) -> None:
        """Live mode re-polls on every successful settle using ``live_delay``."""
        if self._live == enabled:
            return
        self._live = enabled
        if self._closed:
            return
        if not enabled:
            # a pending live follow-up falls back to the running-task cadence
            if self._timer is not None:
                if self._should_repoll(self._items):
                    self._schedule(self.delay)
                else:
                    self._cancel_timer()
            return
        if not self.busy:
            self.refresh()

    def close(self) -> None:
        """Tear down: drop the pending timer and cancel the in-flight fetch."""
        self._closed = True
        self._cancel_timer()
        # closing from an update callback runs inside the fetch task itself
        if self._task is not None and not self._task.done() and self._task is not _current_task():
            if self._token is not None:
                self._token.cancel()
            self._task.cancel()

    async def _call_fetch(self, token: CancelToken) -> Any:
        if self._fetch_is_async:
            result = self._fetch(token)
        else:
            result = await asyncio.to_thread(self._fetch, token)
        if inspect.isawaitable(result):
            result = await result
        return result

    async def _run(self, token: CancelToken) -> None:
        try:
            payload = await self._call_fetch(token)
            if token.cancelled:
                LOG.debug("Discarding superseded result", extra={"list": self.name, "phase": "cancelled"})
                return
            items = tuple(self._parse(payload))
        except asyncio.CancelledError:
            if token is self._token:
                # torn down rather than superseded
                self._state = PollState.CANCELLED
            LOG.debug("Fetch cancelled", extra={"list": self.name, "phase": "cancelled"})
            raise
        except Exception as exc:
            if token.cancelled:
                LOG.debug("Discarding superseded error", extra={"list": self.name, "phase": "cancelled"})
                return
            self._settle_error(exc)
            return
        self._settle(token, items)

    def _settle(self, token: CancelToken, items: Tuple[Any, ...]) -> None:
        self._items = items
        self._error = None
        self._state = PollState.SETTLED
        LOG.debug("Settled", extra={"list": self.name, "phase": "settled", "count": len(items)})
        self._notify()
        # the update callback may have closed the poller or started a newer fetch
        if self._closed or token is not self._token:
            return
        if self._live:
            self._schedule(self.live_delay)
        elif self._should_repoll(items):
            self._schedule(self.delay)

    def _settle_error(self, exc: Exception) -> None:
        self._error = exc
        self._state = PollState.ERRORED
        LOG.warning(
            "Fetch failed: %s",
            error_message(exc),
            extra={"list": self.name, "phase": "errored"},
        )
        if self._on_error is not None:
            try:
                self._on_error(self.name, exc)
            except Exception:
                LOG.exception("Error callback failed", extra={"list": self.name, "phase": "errored"})
        self._notify()

    def _notify(self) -> None:
        if self._on_update is None:
            return
        try:
            self._on_update(self.snapshot())
        except Exception:
            LOG.exception("Update callback failed", extra={"list": self.name, "phase": self._state.value})

    def _schedule(self, delay: float) -> None:
        self._cancel_timer()
        loop = asyncio.get_running_loop()
        self._timer = loop.call_later(delay, self._on_timer)

    def _on_timer(self) -> None:
        self._timer = None
        self.refresh()

    def _cancel_timer(self) -> None:
        if self._timer is not None:
            self._timer.cancel()
            self._timer = None

    def _cancel_inflight(self) -> None:
        if self._token is not None:
            self._token.cancel()
        # a refresh from an update callback runs inside the settling task
        if self._task is not None and not self._task.done() and self._task is not _current_task():
            self._task.cancel()


class ConsolePoller:
    """
    The console's tracked lists (capture tasks, diagnosis tasks, events) with
    one ListPoller each. Events only re-poll while live mode is on.
    """

    def __init__(
        self,
        fetchers: Mapping[str, Fetcher],
        *,
        task_delay: float = DEFAULT_TASK_DELAY,
        live_delay: float = DEFAULT_LIVE_DELAY,
        on_update: Optional[Callable[[ListSnapshot], None]] = None,
        on_error: Optional[Callable[[str, BaseException], None]] = None,
    ) -> None:
        self.lists: Dict[str, ListPoller] = {}
        for name, fetch in fetchers.items():
            if name == EVENTS:
                poller = ListPoller(
                    name,
                    fetch,
                    parse=parse_event_list,
                    delay=live_delay,
                    live_delay=live_delay,
                    should_repoll=_never,
                    on_update=on_update,
                    on_error=on_error,
                )
            else:
                poller = ListPoller(
                    name,
                    fetch,
                    parse=parse_task_list,
                    delay=task_delay,
                    live_delay=live_delay,
                    on_update=on_update,
                    on_error=on_error,
                )
            self.lists[name] = poller

    def __getitem__(self, name: str) -> ListPoller:
        return self.lists[name]

    def refresh(self, name: str) -> Optional[asyncio.Task[None]]:
        return self.lists[name].refresh()

    def refresh_all(self) -> List[asyncio.Task[None]]:
        tasks: List[asyncio.Task[None]] = []
        for poller in self.lists.values():
            task = poller.refresh()
            if task is not None:
                tasks.append(task)
        return tasks

    def set_live(self, enabled: bool, names: Iterable[str] = (EVENTS,)) -> None:
        for name in names:
            if name in self.lists:
                self.lists[name].set_live(enabled)

    def snapshot(self, name: str) -> ListSnapshot:
        return self.lists[name].snapshot()

    @property
    def busy(self) -> bool:
        return any(p.busy for p in self.lists.values())

    def close(self) -> None:
        for poller in self.lists.values():
            poller.close()


def _current_task() -> Optional[asyncio.Task[Any]]:
    try:
        return asyncio.current_task()
    except RuntimeError:
        return None


def _never(_items: Sequence[Any]) -> bool:
    return False
