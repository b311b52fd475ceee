"""ResourceAccess: list resource collections, optionally page by page.

Paging follows the Kubernetes list contract: a ``limit`` query parameter and
an opaque ``continue`` token returned in ``metadata.continue``.  A
``PageCursor`` walks a list of resource collections one page at a time.
"""

from __future__ import annotations

import asyncio
from collections.abc import Sequence
from dataclasses import dataclass, field
from typing import Any

import httpx

from kubewatchman.models.options import RequestOptions
from kubewatchman.observability.logging import get_logger
from kubewatchman.resources import KubeResourceMeta

_log = get_logger("resource_access")


@dataclass
class ResourceResult:
    """Outcome of listing one resource collection."""

    resource_meta: KubeResourceMeta
    status_code: int
    object: dict[str, Any] | None = None
    error: Any = None

    @property
    def ok(self) -> bool:
        return self.status_code == 200

    @property
    def items(self) -> list[dict[str, Any]]:
        if not self.ok or self.object is None:
            return []
        return list(self.object.get("items") or [])


@dataclass
class PageCursor:
    """Position of a paged listing: collection index plus continue token."""

    idx: int = 0
    continue_token: str | None = None


@dataclass
class PagedResult:
    resources: list[ResourceResult] = field(default_factory=list)
    next: PageCursor | None = None


def _inject_self_link(body: dict[str, Any], resource_meta: KubeResourceMeta) -> dict[str, Any]:
    """Record each item's URI under ``metadata.annotations.selfLink``."""
    for item in body.get("items") or []:
        metadata = item.setdefault("metadata", {})
        annotations = metadata.get("annotations")
        if not isinstance(annotations, dict):
            annotations = metadata["annotations"] = {}
        annotations["selfLink"] = resource_meta.uri(
            name=metadata.get("name"),
            namespace=metadata.get("namespace"),
        )
    return body


class ResourceAccess:
    """Read access to resource collections over one shared AsyncClient.

    Args:
        request_options: Base URL, credentials and default headers.
        timeout:         Per-request timeout in seconds. Defaults to 30.
    """

    def __init__(self, request_options: RequestOptions, timeout: float = 30.0) -> None:
        self._request_options = RequestOptions(headers={"Accept": "application/json"}).merge(request_options)
        self._timeout = timeout
        self._client: httpx.AsyncClient | None = None

    def _get_client(self) -> httpx.AsyncClient:
        if self._client is None:
            self._client = self._request_options.build_client(self._timeout)
        return self._client

    async def close(self) -> None:
        if self._client is not None:
            await self._client.aclose()
            self._client = None

    async def get_resource(
        self,
        resource_meta: KubeResourceMeta,
        query_params: dict[str, Any] | None = None,
        namespace: str | None = None,
    ) -> ResourceResult:
        """GET the collection of *resource_meta*, limited to *namespace* when given.

        Transport errors propagate; HTTP error statuses are returned in the
        result with the response body as ``error``.
        """
        params = {k: v for k, v in (query_params or {}).items() if v is not None}
        uri = resource_meta.uri(namespace=namespace)
        _log.debug("list_request", uri=uri, params=params)
        response = await self._get_client().get(uri, params=params)
        if response.status_code == 200:
            return ResourceResult(
                resource_meta=resource_meta,
                status_code=200,
                object=_inject_self_link(response.json(), resource_meta),
            )
        try:
            error: Any = response.json()
        except ValueError:
            error = response.text
        return ResourceResult(resource_meta=resource_meta, status_code=response.status_code, error=error)

    async def get_resources(
        self,
        resources_meta: Sequence[KubeResourceMeta],
        query_params: dict[str, Any] | None = None,
        namespace: str | None = None,
    ) -> list[ResourceResult]:
        return list(
            await asyncio.gather(
                *(self.get_resource(meta, query_params, namespace) for meta in resources_meta)
            )
        )

    async def get_resources_paged(
        self,
        resources_meta: Sequence[KubeResourceMeta],
        query_params: dict[str, Any] | None = None,
        next: PageCursor | None = None,  # noqa: A002
        namespace: str | None = None,
    ) -> PagedResult:
        """List one page of the collections in *resources_meta*.

        Without a ``limit`` and without a cursor every collection is listed
        in full.  Otherwise a single page is fetched and the returned
        ``next`` cursor (``None`` when done) resumes the walk.
        """
        query_params = dict(query_params or {})
        if query_params.get("limit") is None and next is None:
            return PagedResult(resources=await self.get_resources(resources_meta, query_params, namespace))

        cursor = PageCursor(next.idx, next.continue_token) if next is not None else PageCursor()
        if cursor.idx >= len(resources_meta):
            return PagedResult()
        query_params["continue"] = cursor.continue_token
        resource = await self.get_resource(resources_meta[cursor.idx], query_params, namespace)
        if resource.ok and resource.object is not None:
            cursor.continue_token = (resource.object.get("metadata") or {}).get("continue") or None
        if not cursor.continue_token:
            cursor.idx += 1
            cursor.continue_token = None
        return PagedResult(
            resources=[resource],
            next=cursor if cursor.idx < len(resources_meta) else None,
        )
