"""WatchManager: an owned registry of Watchman sessions keyed by watch URI.

The registry holds at most one session per URI.  ``ensure_watch`` reuses an
existing session unless a global watch asks for a different query selector,
in which case the stale session is ended and replaced.

Mutation is synchronous and assumes a single event loop; concurrent callers
from other threads must serialise access themselves.
"""

from __future__ import annotations

import hashlib
import json
from collections.abc import Mapping
from dataclasses import dataclass
from typing import Any

from kubewatchman.models.options import WatchOptions
from kubewatchman.observability.logging import get_logger
from kubewatchman.watch.watchman import ObjectHandler, Watchman

_log = get_logger("watch_manager")


def selector_fingerprint(selector: Mapping[str, Any] | None) -> str:
    """Stable hash of a query selector; key order does not matter."""
    encoded = json.dumps(dict(selector or {}), sort_keys=True, default=str, separators=(",", ":"))
    return hashlib.sha256(encoded.encode()).hexdigest()


@dataclass
class RegistryEntry:
    """One registered watch session."""

    self_link: str
    watchman: Watchman
    selector_hash: str


class WatchManager:
    """Deduplicating registry of watch sessions with bulk lifecycle control."""

    def __init__(self) -> None:
        self._watches: dict[str, RegistryEntry] = {}

    def __len__(self) -> int:
        return len(self._watches)

    def __contains__(self, self_link: object) -> bool:
        return self_link in self._watches

    def ensure_watch(
        self,
        options: WatchOptions,
        object_handler: ObjectHandler,
        global_watch: bool = False,
        start: bool = True,
    ) -> RegistryEntry:
        """Return the session for the options' URI, creating it when needed.

        With ``global_watch`` the selector fingerprint is compared too and a
        changed selector replaces the existing session.
        """
        selector = options.request_options.params
        existing = self.get_watch(options.request_options.uri)
        if existing is not None and (
            not global_watch or existing.selector_hash == selector_fingerprint(selector)
        ):
            return existing
        watchman = Watchman(options, object_handler)
        return self.save_watch(watchman, selector, start=start)

    def save_watch(
        self,
        watchman: Watchman,
        selector: Mapping[str, Any] | None = None,
        start: bool = True,
    ) -> RegistryEntry:
        """Register *watchman*, replacing any session for the same URI."""
        self_link = watchman.self_link
        self.remove_watch(self_link)
        entry = RegistryEntry(
            self_link=self_link,
            watchman=watchman,
            selector_hash=selector_fingerprint(selector),
        )
        self._watches[self_link] = entry
        if start:
            watchman.watch()
        _log.info("watch_added", self_link=self_link, selector=dict(selector or {}), started=start)
        return entry

    def start_watch(self, self_link: str) -> Watchman | None:
        return self.re_watch(self_link)

    def remove_watch(self, self_link: str) -> None:
        """End and deregister the session for *self_link*; no-op when absent."""
        entry = self._watches.pop(self_link, None)
        if entry is None:
            return
        entry.watchman.end()
        _log.info("watch_removed", self_link=self_link)

    def remove_all_watches(self) -> None:
        for self_link in list(self._watches):
            self.remove_watch(self_link)

    def get_watch(self, self_link: str) -> RegistryEntry | None:
        return self._watches.get(self_link)

    def get_all_watches(self) -> dict[str, RegistryEntry]:
        return dict(self._watches)

    def re_watch(self, self_link: str) -> Watchman | None:
        """Restart the connection of a registered session."""
        entry = self._watches.get(self_link)
        if entry is None:
            return None
        entry.watchman.watch()
        return entry.watchman

    def re_watch_all(self) -> None:
        for self_link in list(self._watches):
            self.re_watch(self_link)
