"""Watchman: one resilient streaming connection to one Kubernetes watch URI.

Lifecycle::

    IDLE -> CONNECTING -> STREAMING -> (closed | errored)
                 ^                            |
                 +------- BACKOFF <-----------+
    any state -> ENDED  (via end())

* A non-200 connect, a transport error or a malformed stream chunk is
  a connection error: the consecutive error counter is incremented and the
  next connect is delayed by ``errors * 1s`` (linear, uncapped).
* A clean close (stream ended by the server, or aborted on an ``ERROR``
  event) resets the counter and reconnects immediately when the rewatch
  policy is enabled.
* ``end()`` is the only cancellation primitive.  It cancels the connection
  task, including a pending backoff sleep, and records the rewatch policy
  consulted by the next close.

The body is decoded as a sequence of JSON values, whatever their framing,
and each event is handed to the object handler synchronously, in arrival
order.  ``ERROR`` events are never forwarded.
"""

from __future__ import annotations

import asyncio
import json
from collections.abc import AsyncIterator, Callable
from contextlib import aclosing
from datetime import UTC, datetime
from enum import StrEnum
from typing import Any

import httpx

from kubewatchman.errors import ConstructionError, WatchConnectionError
from kubewatchman.models.events import WatchEvent
from kubewatchman.models.options import RequestOptions, WatchOptions
from kubewatchman.observability.logging import get_logger

_BACKOFF_STEP_SECONDS = 1.0
_USER_AGENT = "kubewatchman"

# No read timeout: a watch legitimately stays silent for minutes.  The
# server-side timeoutSeconds and EventHandler preemption bound its lifetime.
_STREAM_TIMEOUT = httpx.Timeout(30.0, read=None)

_LOGGER_METHODS = ("debug", "info", "error")
_DECODER = json.JSONDecoder()

ObjectHandler = Callable[[WatchEvent], Any]


class WatchState(StrEnum):
    """Connection state of a Watchman session."""

    IDLE = "idle"
    CONNECTING = "connecting"
    STREAMING = "streaming"
    BACKOFF = "backoff"
    ENDED = "ended"


def backoff_delay(errors: int) -> float:
    """Return the reconnect delay in seconds after *errors* consecutive failures."""
    return max(errors, 0) * _BACKOFF_STEP_SECONDS


def _current_task() -> asyncio.Task[Any] | None:
    try:
        return asyncio.current_task()
    except RuntimeError:
        return None


def _is_watch_uri(options: RequestOptions) -> bool:
    if "watch" not in options.uri:
        return False
    try:
        url = httpx.URL(options.url)
    except (httpx.InvalidURL, TypeError):
        return False
    return url.scheme in ("http", "https") and bool(url.host)


async def iter_json_values(chunks: AsyncIterator[str]) -> AsyncIterator[Any]:
    """Yield each JSON value of a text stream, however it is framed.

    Values may share a line or span several lines and chunks.  A decode
    failure followed by a newline in the same buffer is malformed input;
    one without is an incomplete value waiting for more data.  Text left
    undecoded when the stream ends is malformed as well.
    """
    buffer = ""
    async for chunk in chunks:
        buffer += chunk
        while True:
            buffer = buffer.lstrip()
            if not buffer:
                break
            try:
                value, end = _DECODER.raw_decode(buffer)
            except json.JSONDecodeError as exc:
                if "\n" in buffer[exc.pos :]:
                    raise
                break
            buffer = buffer[end:]
            yield value
    if buffer.strip():
        # Raises the JSONDecodeError describing the truncated value.
        _DECODER.decode(buffer)


class Watchman:
    """Owns one watch stream and keeps it alive.

    Args:
        options:        Watch target and policy.  ``request_options.uri`` must
                        be a watch URI and ``base_url + uri`` an absolute URL.
        object_handler: Called with every non-ERROR ``WatchEvent``.  A
                        coroutine return value is scheduled, not awaited.

    Raises:
        ConstructionError: invalid handler, logger or watch URI.
    """

    def __init__(self, options: WatchOptions, object_handler: ObjectHandler) -> None:
        if not callable(object_handler):
            raise ConstructionError("Watchman object_handler must be callable")
        self._object_handler = object_handler

        logger = options.logger
        if logger is not None and not all(callable(getattr(logger, m, None)) for m in _LOGGER_METHODS):
            raise ConstructionError("Watchman logger must provide debug, info and error methods")

        self._request_options = RequestOptions(headers={"User-Agent": _USER_AGENT}).merge(
            options.request_options
        )
        if not _is_watch_uri(self._request_options):
            raise ConstructionError(f"uri '{self._request_options.url}' not valid watch uri")

        self._logger = logger if logger is not None else get_logger("watchman", self_link=self.self_link)
        self._rewatch_on_timeout = options.rewatch_on_timeout

        self._task: asyncio.Task[None] | None = None
        # Bumped by every end(); a connection only delivers events while its
        # session number is current.
        self._session = 0
        self._state = WatchState.IDLE
        self._errors = 0
        self._error = False
        self._watching = False
        self._watch_start: datetime | None = None
        self._pending: set[asyncio.Future[Any]] = set()

    # ------------------------------------------------------------------
    # Properties
    # ------------------------------------------------------------------

    @property
    def self_link(self) -> str:
        return self._request_options.uri

    @property
    def request_options(self) -> RequestOptions:
        return self._request_options

    @property
    def logger(self) -> Any:
        return self._logger

    @property
    def object_handler(self) -> ObjectHandler:
        return self._object_handler

    @property
    def watching(self) -> bool:
        return self._watching

    @property
    def watch_start(self) -> datetime | None:
        """UTC time of the last successful (HTTP 200) connect."""
        return self._watch_start

    @property
    def errors(self) -> int:
        return self._errors

    @property
    def rewatch_on_timeout(self) -> bool:
        return self._rewatch_on_timeout

    @property
    def state(self) -> WatchState:
        return self._state

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    def watch(self) -> asyncio.Task[None]:
        """(Re)start the watch.  Any previous connection is ended first.

        Must be called from within a running event loop.
        """
        self._logger.debug("watch_initializing")
        self.end(self._rewatch_on_timeout)
        self._state = WatchState.CONNECTING
        self._task = asyncio.create_task(
            self._watch_loop(self._session),
            name=f"watchman:{self.self_link}",
        )
        return self._task

    def end(self, rewatch_on_timeout: bool = False) -> None:
        """Tear down the active connection and any scheduled reconnect."""
        self._logger.debug("watch_ending", rewatch_on_timeout=rewatch_on_timeout)
        self._session += 1
        self._watching = False
        self._rewatch_on_timeout = rewatch_on_timeout
        self._state = WatchState.ENDED
        task, self._task = self._task, None
        # A handler ending its own session is stopped by the session check.
        if task is not None and not task.done() and task is not _current_task():
            task.cancel()

    # ------------------------------------------------------------------
    # Connection loop
    # ------------------------------------------------------------------

    async def _watch_loop(self, session: int) -> None:
        """Connect, stream, and reconnect until ended or rewatch is disabled."""
        while session == self._session:
            await self._run_watch(session)
            if session != self._session:
                return
            if not self._rewatch_on_timeout:
                self._state = WatchState.IDLE
                return
            if self._error:
                await self._backoff()
            self._state = WatchState.CONNECTING

    async def _run_watch(self, session: int) -> None:
        """Run one connection until it closes or fails."""
        options = self._request_options
        self._logger.debug("watch_connecting")
        try:
            async with options.build_client(_STREAM_TIMEOUT) as client:
                async with client.stream("GET", options.uri, params=options.params) as response:
                    if response.status_code != 200:
                        raise WatchConnectionError(
                            f"GET {self.self_link} returned {response.status_code}",
                            status_code=response.status_code,
                        )
                    self._watch_start = datetime.now(tz=UTC)
                    self._watching = True
                    self._error = False
                    self._state = WatchState.STREAMING
                    self._logger.debug("watch_started")
                    async with aclosing(iter_json_values(response.aiter_text())) as values:
                        async for raw in values:
                            if not self._dispatch(raw):
                                break
                            if session != self._session:
                                return
        except (httpx.HTTPError, OSError, WatchConnectionError, json.JSONDecodeError) as exc:
            if session == self._session:
                self._watch_error(exc)
            return
        except Exception as exc:  # noqa: BLE001
            if session == self._session:
                self._watch_error(exc, unexpected=True)
            return

        if session == self._session:
            self._watch_closed()

    def _dispatch(self, raw: Any) -> bool:
        """Deliver one decoded stream value.  Returns False to abort."""
        if not isinstance(raw, dict):
            raise WatchConnectionError(f"GET {self.self_link} stream value is not a JSON object")

        event = WatchEvent.from_raw(raw)
        if event.is_error:
            self._logger.error("watch_error_event_aborting", status=json.dumps(event.object))
            return False

        try:
            result = self._object_handler(event)
        except Exception as exc:  # noqa: BLE001
            self._logger.error("object_handler_failed", event_type=event.type, error=str(exc))
            return True
        if asyncio.iscoroutine(result):
            future = asyncio.ensure_future(result)
            self._pending.add(future)
            future.add_done_callback(self._pending.discard)
        return True

    def _watch_error(self, exc: Exception, unexpected: bool = False) -> None:
        self._errors += 1
        self._error = True
        self._watching = False
        self._state = WatchState.BACKOFF
        self._logger.error(
            "watch_connection_error",
            error=str(exc),
            error_type=type(exc).__name__,
            status_code=getattr(exc, "status_code", None),
            errors=self._errors,
            unexpected=unexpected,
            exc_info=unexpected,
        )

    def _watch_closed(self) -> None:
        self._watching = False
        if not self._error:
            self._errors = 0
        self._state = WatchState.IDLE
        self._logger.info(
            "watch_closed",
            rewatch_on_timeout=self._rewatch_on_timeout,
            errors=self._errors,
        )

    async def _backoff(self) -> None:
        delay = backoff_delay(self._errors)
        self._logger.info("watch_backoff", delay_seconds=delay, errors=self._errors)
        await asyncio.sleep(delay)
