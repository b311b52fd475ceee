"""Core data structures for kubewatchman."""

from kubewatchman.models.config import KubeWatchmanConfig
from kubewatchman.models.events import EventType, WatchEvent
from kubewatchman.models.options import RequestOptions, WatchOptions

__all__ = [
    "EventType",
    "KubeWatchmanConfig",
    "RequestOptions",
    "WatchEvent",
    "WatchOptions",
]
