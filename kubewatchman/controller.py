"""Controller contract for dispatched watch events.

An EventHandler builds one controller per event through a factory called
with keyword arguments::

    factory(
        resource_meta=...,      # cloned KubeResourceMeta
        event_data=...,         # WatchEvent (stream or POLLED)
        resource_access=...,    # ResourceAccess
        logger=...,             # structlog logger
        finalizer_string=...,   # finalizer identifier, may be empty
    )

and schedules ``execute()``.  Controllers must be idempotent: the
enforcement sweep re-delivers objects the stream has already reported.
"""

from __future__ import annotations

import importlib
from abc import ABC, abstractmethod
from collections.abc import Callable
from typing import Any

from kubewatchman.models.events import WatchEvent
from kubewatchman.observability.logging import get_logger


class BaseController(ABC):
    """Base class holding the per-event context."""

    def __init__(
        self,
        resource_meta: Any,
        event_data: WatchEvent,
        resource_access: Any,
        logger: Any = None,
        finalizer_string: str = "",
    ) -> None:
        self.resource_meta = resource_meta
        self.event_data = event_data
        self.resource_access = resource_access
        self.logger = logger if logger is not None else get_logger("controller")
        self.finalizer_string = finalizer_string

    @abstractmethod
    async def execute(self) -> Any:
        """Reconcile ``event_data``.  Errors are the controller's own concern."""


class LoggingController(BaseController):
    """Logs every event it receives; the default controller."""

    async def execute(self) -> None:
        event = self.event_data
        self.logger.info(
            "event_received",
            event_type=event.type,
            kind=event.object.get("kind", self.resource_meta.kind),
            namespace=event.namespace,
            name=event.name,
        )


def load_controller(path: str) -> Callable[..., BaseController]:
    """Resolve a ``"package.module:ClassName"`` string to a controller factory."""
    module_name, sep, attr = path.partition(":")
    if not sep or not module_name or not attr:
        raise ValueError(f"Invalid controller path '{path}', expected 'module:Class'")
    module = importlib.import_module(module_name)
    factory = getattr(module, attr, None)
    if factory is None or not callable(factory):
        raise ValueError(f"Controller '{path}' is not callable")
    return factory  # type: ignore[no-any-return]
