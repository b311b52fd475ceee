"""Shared helpers for kubewatchman unit tests.

Watch traffic is served by ``httpx.MockTransport`` so tests exercise the
real request/stream code path without a cluster.
"""

from __future__ import annotations

import asyncio
import json
from collections.abc import AsyncIterator, Callable, Iterable
from typing import Any

import httpx
import pytest

from kubewatchman.controller import BaseController
from kubewatchman.models.events import WatchEvent
from kubewatchman.models.options import RequestOptions, WatchOptions
from kubewatchman.resources import KubeResourceMeta

BASE_URL = "https://kube.test:6443"
WATCH_URI = "/api/v1/watch/namespaces/default/services"


# ---------------------------------------------------------------------------
# Wire helpers
# ---------------------------------------------------------------------------


def ndjson(*events: dict[str, Any]) -> bytes:
    """Encode events the way the API server streams them."""
    return b"".join(json.dumps(e).encode() + b"\n" for e in events)


def make_raw_event(event_type: str = "ADDED", name: str = "svc-a", namespace: str = "default") -> dict[str, Any]:
    return {
        "type": event_type,
        "object": {
            "kind": "Service",
            "apiVersion": "v1",
            "metadata": {"name": name, "namespace": namespace, "resourceVersion": "14840391"},
        },
    }


async def hang_forever() -> AsyncIterator[bytes]:
    """Response body that never produces data and never ends."""
    await asyncio.Event().wait()
    yield b""  # pragma: no cover


class ScriptedTransport(httpx.MockTransport):
    """Serves one scripted response per request, repeating the last one.

    Each script item is either an ``httpx.Response``, a callable returning
    one, or an exception instance to raise.
    """

    def __init__(self, script: Iterable[Any]) -> None:
        self.script = list(script)
        self.requests: list[httpx.Request] = []
        super().__init__(self._handle)

    def _handle(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        idx = min(len(self.requests), len(self.script)) - 1
        item = self.script[idx]
        if isinstance(item, BaseException):
            raise item
        if callable(item):
            return item()
        return item


def make_watch_options(
    transport: httpx.AsyncBaseTransport | None = None,
    uri: str = WATCH_URI,
    rewatch_on_timeout: bool = True,
    params: dict[str, Any] | None = None,
    logger: Any = None,
) -> WatchOptions:
    return WatchOptions(
        request_options=RequestOptions(
            base_url=BASE_URL,
            uri=uri,
            params=params or {},
            transport=transport,
        ),
        rewatch_on_timeout=rewatch_on_timeout,
        logger=logger,
    )


def make_resource_meta(
    verbs: list[str] | None = None,
    transport: httpx.AsyncBaseTransport | None = None,
) -> KubeResourceMeta:
    return KubeResourceMeta(
        "/api/v1",
        {
            "name": "services",
            "singularName": "service",
            "namespaced": True,
            "kind": "Service",
            "verbs": verbs if verbs is not None else ["get", "list", "watch"],
        },
        RequestOptions(base_url=BASE_URL, transport=transport),
    )


# ---------------------------------------------------------------------------
# Controllers
# ---------------------------------------------------------------------------


class RecordingController(BaseController):
    """Records construction and execution for assertions."""

    instances: list[RecordingController] = []
    executed: list[WatchEvent] = []

    def __init__(self, **kwargs: Any) -> None:
        super().__init__(**kwargs)
        RecordingController.instances.append(self)

    async def execute(self) -> None:
        RecordingController.executed.append(self.event_data)


@pytest.fixture
def recording_controller() -> Callable[..., RecordingController]:
    RecordingController.instances = []
    RecordingController.executed = []
    return RecordingController
