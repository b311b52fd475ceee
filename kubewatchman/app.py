"""Application bootstrap for kubewatchman.

Wires all components in dependency order and manages the asyncio lifecycle.
Startup order: config → logging → API config → resource → access
              → controller factory → event handler

Shutdown is fully graceful: components are stopped in reverse startup order.
Each component's stop error is caught and logged independently so that a
single failure does not prevent the rest from shutting down cleanly.
"""

from __future__ import annotations

import asyncio
import signal
from collections.abc import Callable
from typing import TYPE_CHECKING, Any

from kubewatchman.config import load_config
from kubewatchman.models.config import KubeWatchmanConfig
from kubewatchman.observability.logging import get_logger, setup_logging

if TYPE_CHECKING:
    import structlog

    from kubewatchman.access import ResourceAccess
    from kubewatchman.models.options import RequestOptions
    from kubewatchman.resources import KubeResourceMeta
    from kubewatchman.watch import EventHandler

_SHUTDOWN_GRACE_SECONDS = 15


class _ComponentError(Exception):
    """Raised when a mandatory component fails to start."""

    def __init__(self, component: str, cause: Exception) -> None:
        super().__init__(f"Component '{component}' failed to start: {cause}")
        self.component = component
        self.cause = cause


class WatchmanApp:
    """Application root.  Owns every component and coordinates their lifecycle.

    ``stop()`` on an app that was never started (or already stopped) is safe.

    Args:
        config: Use this configuration instead of reading the environment.
    """

    def __init__(self, config: KubeWatchmanConfig | None = None) -> None:
        self.config: KubeWatchmanConfig | None = config

        self._request_options: RequestOptions | None = None
        self._resource_meta: KubeResourceMeta | None = None
        self._resource_access: ResourceAccess | None = None
        self._factory: Callable[..., Any] | None = None
        self._event_handler: EventHandler | None = None

        self._running = False
        self._log: structlog.stdlib.BoundLogger | None = None

    @property
    def running(self) -> bool:
        return self._running

    @property
    def event_handler(self) -> EventHandler | None:
        return self._event_handler

    # ------------------------------------------------------------------
    # Startup
    # ------------------------------------------------------------------

    async def start(self) -> None:
        """Start all components in dependency order.

        Raises _ComponentError if a mandatory component cannot start.
        The caller (main()) re-raises this as a non-zero exit.
        """
        # --- 1. Configuration -------------------------------------------
        if self.config is None:
            self.config = load_config()

        # --- 2. Logging -------------------------------------------------
        setup_logging(self.config.log.level, self.config.log.format)
        self._log = get_logger("app")
        self._log.info("kubewatchman starting", version=_kubewatchman_version())

        # --- 3. API server connection settings --------------------------
        await self._start_request_options()

        # --- 4. Resource descriptor and access --------------------------
        self._start_resource()

        # --- 5. Controller factory --------------------------------------
        self._start_factory()

        # --- 6. Event handler -------------------------------------------
        self._start_event_handler()

        self._running = True
        self._log.info("kubewatchman started", resource=self._resource_meta.uri() if self._resource_meta else "")

    async def _start_request_options(self) -> None:
        assert self._log is not None
        self._log.debug("loading api config")
        try:
            from kubewatchman.kube_config import load_request_options

            self._request_options = await load_request_options()
        except Exception as exc:
            raise _ComponentError("api_config", exc) from exc

    def _start_resource(self) -> None:
        assert self._log is not None
        assert self.config is not None
        assert self._request_options is not None
        try:
            from kubewatchman.access import ResourceAccess
            from kubewatchman.resources import KubeResourceMeta

            resource = self.config.resource
            self._resource_meta = KubeResourceMeta(
                resource.path,
                {
                    "name": resource.name,
                    "kind": resource.kind,
                    "namespaced": resource.namespaced,
                    "verbs": ["get", "list", "watch"],
                },
                self._request_options,
            )
            self._resource_access = ResourceAccess(self._request_options)
            self._log.info("resource configured", path=resource.path, name=resource.name)
        except Exception as exc:
            raise _ComponentError("resource", exc) from exc

    def _start_factory(self) -> None:
        assert self._log is not None
        assert self.config is not None
        try:
            from kubewatchman.controller import load_controller

            self._factory = load_controller(self.config.controller.factory)
            self._log.info("controller factory loaded", factory=self.config.controller.factory)
        except Exception as exc:
            raise _ComponentError("controller", exc) from exc

    def _start_event_handler(self) -> None:
        assert self._log is not None
        assert self.config is not None
        try:
            from kubewatchman.watch import EventHandler

            watch = self.config.watch
            params: dict[str, Any] = {}
            if self.config.resource.label_selector:
                params["labelSelector"] = self.config.resource.label_selector
            self._event_handler = EventHandler(
                self._resource_meta,
                self._resource_access,
                self._factory,  # type: ignore[arg-type]
                namespace=self.config.resource.namespace or None,
                finalizer_string=watch.finalizer_string,
                liveness_interval=watch.liveness_interval,
                liveness_path=watch.liveness_path,
                watch_timeout_seconds=watch.watch_timeout_seconds,
                enforcement_interval=watch.enforcement_interval,
                enforcement_page_size=watch.enforcement_page_size,
                request_options={"params": params},
            )
        except Exception as exc:
            raise _ComponentError("event_handler", exc) from exc

    # ------------------------------------------------------------------
    # Shutdown
    # ------------------------------------------------------------------

    async def stop(self) -> None:
        """Gracefully stop all components in reverse startup order."""
        if not self._running and self._log is None:
            return

        log = self._log or get_logger("app")
        log.info("kubewatchman shutting down")
        self._running = False

        await self._stop_component("event_handler", self._event_handler)
        self._event_handler = None
        await self._stop_component("resource_access", self._resource_access, method="close")
        self._resource_access = None

        log.info("kubewatchman stopped")

    async def _stop_component(self, name: str, component: object | None, method: str = "stop") -> None:
        """Call the component's stop method if it has one, catching all errors."""
        if component is None:
            return
        log = self._log or get_logger("app")
        stop_fn = getattr(component, method, None)
        if stop_fn is None:
            return
        try:
            result = stop_fn()
            if asyncio.iscoroutine(result):
                await asyncio.wait_for(result, timeout=_SHUTDOWN_GRACE_SECONDS)
        except TimeoutError:
            log.warning("component stop timed out", component=name, timeout=_SHUTDOWN_GRACE_SECONDS)
        except Exception as exc:
            log.error("component stop raised an error", component=name, error=str(exc))


def _kubewatchman_version() -> str:
    from kubewatchman import __version__

    return __version__


# ---------------------------------------------------------------------------
# Async entrypoint
# ---------------------------------------------------------------------------


async def main(config: KubeWatchmanConfig | None = None) -> None:
    """Create the app, register OS signals, run until shutdown is requested."""
    app = WatchmanApp(config)
    loop = asyncio.get_running_loop()
    stop_requested = asyncio.Event()

    for sig in (signal.SIGTERM, signal.SIGINT):
        loop.add_signal_handler(sig, stop_requested.set)

    try:
        await app.start()
        await stop_requested.wait()
    except _ComponentError as exc:
        log = get_logger("app")
        log.critical(
            "fatal startup error",
            component=exc.component,
            error=str(exc.cause),
        )
        await app.stop()
        raise SystemExit(1) from exc
    finally:
        if app.running:
            await app.stop()
