"""Exception hierarchy for kubewatchman.

ConstructionError    -- invalid collaborator or watch target; fatal, raised
                        synchronously from constructors.
WatchConnectionError -- non-200 connect, transport failure or malformed
                        stream chunk; recovered by Watchman backoff.
SweepError           -- failed page during an enforcement sweep; logged and
                        retried on the next tick.
"""

from __future__ import annotations


class WatchmanError(Exception):
    """Base class for all kubewatchman errors."""


class ConstructionError(WatchmanError, ValueError):
    """Raised when a component is built with a missing or invalid collaborator."""


class WatchConnectionError(WatchmanError):
    """Raised inside a watch connection when the stream cannot be used."""

    def __init__(self, message: str, status_code: int | None = None) -> None:
        super().__init__(message)
        self.status_code = status_code


class SweepError(WatchmanError):
    """Raised when a paginated listing fails during an enforcement sweep."""

    def __init__(self, message: str, status_code: int | None = None) -> None:
        super().__init__(message)
        self.status_code = status_code
