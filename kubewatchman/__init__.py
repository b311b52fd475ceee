"""kubewatchman -- resilient Kubernetes watch client with controller dispatch."""

from kubewatchman.errors import (
    ConstructionError,
    SweepError,
    WatchConnectionError,
    WatchmanError,
)
from kubewatchman.watch import EventHandler, Watchman, WatchManager

__version__ = "0.3.0"

__all__ = [
    "ConstructionError",
    "EventHandler",
    "SweepError",
    "WatchConnectionError",
    "WatchManager",
    "Watchman",
    "WatchmanError",
    "__version__",
]
