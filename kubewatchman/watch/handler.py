"""EventHandler: binds one Watchman to controller dispatch and self-healing loops.

Three independently scheduled tasks run alongside the stream:

* liveness     -- touches a marker file while the watch is healthy so that
                  an external probe can restart a stuck process.
* preemption   -- forces a reconnect once the current connection has been up
                  longer than the watch timeout plus a 10 s grace, instead of
                  waiting for the server to drop it.
* enforcement  -- optional periodic full listing; every item is dispatched as
                  a POLLED event exactly like a streamed one.

All three and the Watchman are torn down together by ``stop()``.
"""

from __future__ import annotations

import asyncio
from collections.abc import Callable, Mapping
from datetime import UTC, datetime, timedelta
from pathlib import Path
from typing import Any

from kubewatchman.errors import ConstructionError, SweepError
from kubewatchman.models.events import EventType, WatchEvent
from kubewatchman.models.options import RequestOptions, WatchOptions
from kubewatchman.observability.logging import get_logger
from kubewatchman.watch.watchman import Watchman

_DEFAULT_LIVENESS_INTERVAL_MS = 60000
_DEFAULT_WATCH_TIMEOUT_SECONDS = 300
_DEFAULT_PAGE_SIZE = 500
_DEFAULT_LIVENESS_PATH = "/tmp/liveness"
_STALE_GRACE = timedelta(seconds=10)


def _liveness_interval_ms(value: int | bool | None) -> int:
    if value is True:
        return _DEFAULT_LIVENESS_INTERVAL_MS
    if isinstance(value, int) and value > 0:
        return value
    return 0


class EventHandler:
    """Watches one resource collection and runs a controller per event.

    Args:
        resource_meta:          Watchable resource; must support ``watch``.
        resource_access:        Used by controllers and the enforcement sweep.
        factory:                Controller factory (see kubewatchman.controller).
        namespace:              Restrict the watch to one namespace.
        finalizer_string:       Passed through to every controller.
        liveness_interval:      Milliseconds, or True for 60000. Falsy disables.
        liveness_path:          Marker file touched by the liveness loop.
        watch_timeout_seconds:  Used when request params carry no timeoutSeconds.
        enforcement_interval:   Seconds between sweeps; 0 disables.
        enforcement_page_size:  ``limit`` used while paging during a sweep.
        request_options:        Overrides merged over the resource's options.
        logger:                 Defaults to the ``event_handler`` component logger.
        start:                  Start watching immediately (needs a running loop).

    Raises:
        ConstructionError: missing collaborator or resource without ``watch``.
    """

    def __init__(
        self,
        resource_meta: Any,
        resource_access: Any,
        factory: Callable[..., Any],
        *,
        namespace: str | None = None,
        finalizer_string: str = "",
        liveness_interval: int | bool | None = None,
        liveness_path: str | Path = _DEFAULT_LIVENESS_PATH,
        watch_timeout_seconds: int = _DEFAULT_WATCH_TIMEOUT_SECONDS,
        enforcement_interval: int = 0,
        enforcement_page_size: int = _DEFAULT_PAGE_SIZE,
        request_options: RequestOptions | Mapping[str, Any] | None = None,
        logger: Any = None,
        start: bool = True,
    ) -> None:
        has_verb = getattr(resource_meta, "has_verb", None)
        if not callable(has_verb) or not has_verb("watch"):
            raise ConstructionError('Resource does not support verb "watch"')
        if resource_access is None:
            raise ConstructionError("Must pass in a ResourceAccess instance")
        if not callable(factory):
            raise ConstructionError("Must pass in a valid controller factory")

        self._resource_meta = resource_meta
        self._resource_access = resource_access
        self._factory = factory
        self._namespace = namespace
        self._finalizer_string = finalizer_string
        self._logger = logger if logger is not None else get_logger("event_handler")
        self._liveness_interval = _liveness_interval_ms(liveness_interval)
        self._liveness_path = Path(liveness_path)
        self._enforcement_interval = max(int(enforcement_interval or 0), 0)
        self._page_size = enforcement_page_size

        base_options: RequestOptions = getattr(resource_meta, "request_options", None) or RequestOptions()
        options = base_options.merge(request_options)
        timeout_seconds = int(options.params.get("timeoutSeconds") or watch_timeout_seconds)
        self._timeout_threshold = timedelta(seconds=timeout_seconds)
        self._watch_params = {**options.params, "timeoutSeconds": timeout_seconds}

        watch_uri = resource_meta.uri(watch=True, namespace=namespace)
        bind = getattr(self._logger, "bind", None)
        watch_options = WatchOptions(
            request_options=options.merge({"uri": watch_uri, "params": self._watch_params}),
            logger=bind(self_link=watch_uri) if callable(bind) else self._logger,
        )
        self._wm = Watchman(watch_options, self.event_handler)

        self._tasks: list[asyncio.Task[None]] = []
        self._inflight: set[asyncio.Task[Any]] = set()

        if start:
            self.start()

    # ------------------------------------------------------------------
    # Properties
    # ------------------------------------------------------------------

    @property
    def watchman(self) -> Watchman:
        return self._wm

    @property
    def timeout_threshold(self) -> timedelta:
        return self._timeout_threshold

    @property
    def liveness_interval(self) -> int:
        """Liveness interval in milliseconds; 0 when disabled."""
        return self._liveness_interval

    @property
    def enforcement_interval(self) -> int:
        return self._enforcement_interval

    @property
    def running(self) -> bool:
        return any(not task.done() for task in self._tasks)

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def start(self) -> None:
        """Start the watch and the self-healing loops."""
        if self.running:
            return
        # stop() clears the rewatch policy.
        self._wm.end(rewatch_on_timeout=True)
        self._wm.watch()
        self._tasks.append(asyncio.create_task(self._preemption_loop(), name="watch-preemption"))
        if self._liveness_interval:
            self._tasks.append(asyncio.create_task(self._liveness_loop(), name="liveness"))
        if self._enforcement_interval > 0:
            self._tasks.append(asyncio.create_task(self._enforcement_loop(), name="enforcement"))
        self._logger.info(
            "event_handler_started",
            self_link=self._wm.self_link,
            timeout_seconds=int(self._timeout_threshold.total_seconds()),
            liveness_interval_ms=self._liveness_interval,
            enforcement_interval=self._enforcement_interval,
        )

    async def stop(self) -> None:
        """Cancel every loop and end the watch.  Safe to call repeatedly."""
        self._wm.end()
        tasks, self._tasks = self._tasks, []
        for task in tasks:
            if not task.done():
                task.cancel()
        if tasks:
            await asyncio.gather(*tasks, return_exceptions=True)
        self._logger.info("event_handler_stopped", self_link=self._wm.self_link)

    # ------------------------------------------------------------------
    # Dispatch
    # ------------------------------------------------------------------

    def event_handler(self, event: WatchEvent) -> asyncio.Task[Any]:
        """Build a controller for *event* and schedule its ``execute()``.

        Fire-and-forget: executions are neither awaited nor bounded, and
        their failures are not observed here.
        """
        controller = self._factory(
            resource_meta=self._resource_meta.clone(),
            event_data=event,
            resource_access=self._resource_access,
            logger=self._logger,
            finalizer_string=self._finalizer_string,
        )
        task = asyncio.ensure_future(controller.execute())
        self._inflight.add(task)
        task.add_done_callback(self._inflight.discard)
        return task

    async def drain(self) -> None:
        """Wait for every scheduled controller execution to finish.

        Execution failures are swallowed here as they are at dispatch time.
        """
        while self._inflight:
            await asyncio.gather(*self._inflight, return_exceptions=True)

    # ------------------------------------------------------------------
    # Liveness
    # ------------------------------------------------------------------

    def _elapsed_since_watch_start(self) -> timedelta | None:
        watch_start = self._wm.watch_start
        if watch_start is None:
            return None
        return datetime.now(tz=UTC) - watch_start

    def _touch_liveness(self) -> None:
        try:
            self._liveness_path.touch()
        except OSError as exc:
            self._logger.error("liveness_touch_failed", path=str(self._liveness_path), error=str(exc))

    def _liveness_tick(self) -> bool:
        """Touch the marker if the watch is healthy.  Returns True when touched."""
        elapsed = self._elapsed_since_watch_start()
        if self._wm.watching and elapsed is not None and elapsed < self._timeout_threshold + _STALE_GRACE:
            self._touch_liveness()
            return True
        self._logger.warning(
            "liveness_touch_skipped",
            watching=self._wm.watching,
            elapsed_seconds=elapsed.total_seconds() if elapsed is not None else None,
        )
        return False

    async def _liveness_loop(self) -> None:
        # Healthy until proven otherwise.
        self._touch_liveness()
        interval = self._liveness_interval / 1000
        while True:
            await asyncio.sleep(interval)
            self._liveness_tick()

    # ------------------------------------------------------------------
    # Timeout preemption
    # ------------------------------------------------------------------

    def _preempt_tick(self) -> bool:
        """Force a reconnect when the connection outlived its timeout."""
        elapsed = self._elapsed_since_watch_start()
        if elapsed is None or elapsed <= self._timeout_threshold + _STALE_GRACE:
            return False
        self._logger.warning(
            "watch_timeout_preempted",
            self_link=self._wm.self_link,
            elapsed_seconds=elapsed.total_seconds(),
        )
        self._wm.watch()
        return True

    async def _preemption_loop(self) -> None:
        interval = self._timeout_threshold.total_seconds()
        while True:
            await asyncio.sleep(interval)
            self._preempt_tick()

    # ------------------------------------------------------------------
    # Enforcement sweep
    # ------------------------------------------------------------------

    async def enforce(self) -> int:
        """Page through the watched collection, dispatching POLLED events.

        Never raises; a failed page abandons the sweep.  Returns the number
        of events dispatched.
        """
        query_params: dict[str, Any] = {"limit": self._page_size}
        selector = self._watch_params.get("labelSelector")
        if selector:
            query_params["labelSelector"] = selector

        sweep_uri = self._resource_meta.uri(namespace=self._namespace)
        dispatched = 0
        pages = 0
        cursor = None
        try:
            while True:
                result = await self._resource_access.get_resources_paged(
                    [self._resource_meta], query_params, cursor, namespace=self._namespace
                )
                pages += 1
                for resource in result.resources:
                    if not resource.ok:
                        raise SweepError(
                            f"listing {sweep_uri} returned {resource.status_code}",
                            status_code=resource.status_code,
                        )
                    for item in resource.items:
                        self.event_handler(WatchEvent(type=EventType.POLLED, object=item))
                        dispatched += 1
                cursor = result.next
                if cursor is None:
                    break
        except Exception as exc:  # noqa: BLE001
            self._logger.error(
                "enforcement_sweep_failed",
                error=str(exc),
                error_type=type(exc).__name__,
                pages=pages,
                dispatched=dispatched,
            )
            return dispatched

        self._logger.info("enforcement_sweep_complete", pages=pages, dispatched=dispatched)
        return dispatched

    async def _enforcement_loop(self) -> None:
        while True:
            await asyncio.sleep(self._enforcement_interval)
            await self.enforce()
