"""Shared fixtures for kubewatchman integration tests.

Provides a fake API server (an ``httpx.MockTransport``) that serves a
paginated collection and watch streams, so full pipelines can be exercised
without touching a real cluster.
"""

from __future__ import annotations

import asyncio
import json
from collections.abc import AsyncIterator
from typing import Any

import httpx

from kubewatchman.controller import BaseController
from kubewatchman.models.events import WatchEvent
from kubewatchman.models.options import RequestOptions
from kubewatchman.resources import KubeResourceMeta

BASE_URL = "https://kube.test:6443"


async def _hang_forever() -> AsyncIterator[bytes]:
    await asyncio.Event().wait()
    yield b""  # pragma: no cover


def make_configmaps(count: int, namespace: str = "default") -> list[dict[str, Any]]:
    return [
        {
            "apiVersion": "v1",
            "kind": "ConfigMap",
            "metadata": {"name": f"cm-{i:05d}", "namespace": namespace, "resourceVersion": str(1000 + i)},
            "data": {"index": str(i)},
        }
        for i in range(count)
    ]


class FakeApiServer:
    """Serves ``/api/v1/configmaps`` with limit/continue pagination.

    Watch requests are answered from ``watch_bodies`` in order; once they
    run out the watch stays open without sending anything.
    """

    def __init__(self, items: list[dict[str, Any]]) -> None:
        self.items = items
        self.list_requests: list[httpx.Request] = []
        self.watch_requests: list[httpx.Request] = []
        self.watch_bodies: list[bytes] = []
        self.fail_list_at: int | None = None
        self.transport = httpx.MockTransport(self._handle)

    def _handle(self, request: httpx.Request) -> httpx.Response:
        if "/watch/" in request.url.path:
            self.watch_requests.append(request)
            if self.watch_bodies:
                return httpx.Response(200, content=self.watch_bodies.pop(0))
            return httpx.Response(200, content=_hang_forever())

        self.list_requests.append(request)
        if self.fail_list_at is not None and len(self.list_requests) == self.fail_list_at:
            return httpx.Response(500, json={"kind": "Status", "message": "etcdserver: request timed out"})

        limit = int(request.url.params.get("limit", len(self.items)))
        start = int(request.url.params.get("continue", "0") or 0)
        page = self.items[start : start + limit]
        next_start = start + limit
        metadata = {"resourceVersion": "99999"}
        if next_start < len(self.items):
            metadata["continue"] = str(next_start)
        body = {"kind": "ConfigMapList", "apiVersion": "v1", "metadata": metadata, "items": page}
        return httpx.Response(200, content=json.dumps(body).encode())


def make_configmap_meta(transport: httpx.AsyncBaseTransport) -> KubeResourceMeta:
    return KubeResourceMeta(
        "/api/v1",
        {"name": "configmaps", "kind": "ConfigMap", "namespaced": True, "verbs": ["get", "list", "watch"]},
        RequestOptions(base_url=BASE_URL, transport=transport),
    )


class CountingController(BaseController):
    """Counts executions per event type."""

    executed: list[WatchEvent] = []

    async def execute(self) -> None:
        CountingController.executed.append(self.event_data)
