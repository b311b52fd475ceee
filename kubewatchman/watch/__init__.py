"""Watch layer for kubewatchman.

Submodules
----------
watchman -- Watchman: one watch stream, linear back-off, rewatch on close.
manager  -- WatchManager: registry of Watchman sessions keyed by watch URI.
handler  -- EventHandler: controller dispatch, liveness, timeout preemption
            and the optional enforcement sweep.
"""

from kubewatchman.watch.handler import EventHandler
from kubewatchman.watch.manager import RegistryEntry, WatchManager, selector_fingerprint
from kubewatchman.watch.watchman import Watchman, WatchState, backoff_delay, iter_json_values

__all__ = [
    "EventHandler",
    "RegistryEntry",
    "WatchManager",
    "WatchState",
    "Watchman",
    "backoff_delay",
    "iter_json_values",
    "selector_fingerprint",
]
