"""Unit tests for kubewatchman.access -- ResourceAccess listing and paging."""

from __future__ import annotations

import httpx

from kubewatchman.access import PageCursor, ResourceAccess
from kubewatchman.models.options import RequestOptions
from kubewatchman.resources import KubeResourceMeta

from .conftest import BASE_URL, ScriptedTransport


def _meta(name: str, transport: httpx.AsyncBaseTransport) -> KubeResourceMeta:
    return KubeResourceMeta(
        "/api/v1",
        {"name": name, "namespaced": True, "kind": name.title(), "verbs": ["list", "watch"]},
        RequestOptions(base_url=BASE_URL, transport=transport),
    )


def _list(items: list[dict], continue_token: str = "") -> httpx.Response:
    metadata = {"continue": continue_token} if continue_token else {}
    return httpx.Response(200, json={"kind": "List", "metadata": metadata, "items": items})


def _access(transport: httpx.AsyncBaseTransport) -> ResourceAccess:
    return ResourceAccess(RequestOptions(base_url=BASE_URL, transport=transport))


class TestGetResource:
    async def test_success_injects_self_links(self) -> None:
        transport = ScriptedTransport([_list([{"metadata": {"name": "a", "namespace": "ns1"}}])])
        access = _access(transport)

        result = await access.get_resource(_meta("pods", transport), {"labelSelector": "x=y"})
        await access.close()

        assert result.ok
        assert result.items[0]["metadata"]["annotations"]["selfLink"] == "/api/v1/namespaces/ns1/pods/a"
        assert transport.requests[0].url.params["labelSelector"] == "x=y"

    async def test_error_status_returned_not_raised(self) -> None:
        transport = ScriptedTransport([httpx.Response(403, json={"reason": "Forbidden"})])
        access = _access(transport)

        result = await access.get_resource(_meta("pods", transport))
        await access.close()

        assert result.status_code == 403
        assert result.error == {"reason": "Forbidden"}
        assert result.items == []

    async def test_none_params_are_dropped(self) -> None:
        transport = ScriptedTransport([_list([])])
        access = _access(transport)

        await access.get_resource(_meta("pods", transport), {"limit": 10, "continue": None})
        await access.close()

        assert "continue" not in transport.requests[0].url.params


    async def test_namespace_limits_listing(self) -> None:
        transport = ScriptedTransport([_list([{"metadata": {"name": "a", "namespace": "prod"}}])])
        access = _access(transport)

        result = await access.get_resource(_meta("pods", transport), namespace="prod")
        await access.close()

        assert transport.requests[0].url.path == "/api/v1/namespaces/prod/pods"
        assert result.items[0]["metadata"]["annotations"]["selfLink"] == "/api/v1/namespaces/prod/pods/a"


class TestGetResourcesPaged:
    async def test_without_limit_lists_everything_at_once(self) -> None:
        transport = ScriptedTransport([_list([{"metadata": {"name": "a"}}]), _list([])])
        access = _access(transport)
        metas = [_meta("pods", transport), _meta("services", transport)]

        result = await access.get_resources_paged(metas)
        await access.close()

        assert len(result.resources) == 2
        assert result.next is None
        assert len(transport.requests) == 2

    async def test_cursor_walks_pages_then_collections(self) -> None:
        transport = ScriptedTransport(
            [
                _list([{"metadata": {"name": "p1"}}], continue_token="tok"),
                _list([{"metadata": {"name": "p2"}}]),
                _list([{"metadata": {"name": "s1"}}]),
            ]
        )
        access = _access(transport)
        metas = [_meta("pods", transport), _meta("services", transport)]

        first = await access.get_resources_paged(metas, {"limit": 1})
        second = await access.get_resources_paged(metas, {"limit": 1}, first.next)
        third = await access.get_resources_paged(metas, {"limit": 1}, second.next)
        await access.close()

        assert first.next == PageCursor(idx=0, continue_token="tok")
        assert second.next == PageCursor(idx=1, continue_token=None)
        assert third.next is None
        assert [r.url.path for r in transport.requests] == [
            "/api/v1/pods",
            "/api/v1/pods",
            "/api/v1/services",
        ]
        assert transport.requests[1].url.params["continue"] == "tok"
        assert "continue" not in transport.requests[2].url.params

    async def test_paged_listing_passes_namespace_through(self) -> None:
        transport = ScriptedTransport([_list([], continue_token="tok"), _list([])])
        access = _access(transport)
        metas = [_meta("pods", transport)]

        first = await access.get_resources_paged(metas, {"limit": 1}, namespace="prod")
        await access.get_resources_paged(metas, {"limit": 1}, first.next, namespace="prod")
        await access.close()

        assert [r.url.path for r in transport.requests] == ["/api/v1/namespaces/prod/pods"] * 2

    async def test_cursor_is_not_mutated(self) -> None:
        transport = ScriptedTransport([_list([])])
        access = _access(transport)
        cursor = PageCursor(idx=0, continue_token="tok")

        await access.get_resources_paged([_meta("pods", transport)], {"limit": 5}, cursor)
        await access.close()

        assert cursor == PageCursor(idx=0, continue_token="tok")
