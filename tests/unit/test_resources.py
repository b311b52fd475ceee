"""Unit tests for kubewatchman.resources -- KubeResourceMeta."""

from __future__ import annotations

import pytest

from kubewatchman.models.options import RequestOptions
from kubewatchman.resources import KubeResourceMeta

_DEPLOYMENTS = {
    "name": "deployments",
    "singularName": "deployment",
    "namespaced": True,
    "kind": "Deployment",
    "verbs": ["create", "delete", "get", "list", "patch", "update", "watch"],
}
_NODES = {"name": "nodes", "namespaced": False, "kind": "Node", "verbs": ["get", "list"]}


class TestUri:
    @pytest.mark.parametrize(
        ("kwargs", "expected"),
        [
            ({}, "/apis/apps/v1/deployments"),
            ({"watch": True}, "/apis/apps/v1/watch/deployments"),
            ({"namespace": "prod"}, "/apis/apps/v1/namespaces/prod/deployments"),
            ({"watch": True, "namespace": "prod"}, "/apis/apps/v1/watch/namespaces/prod/deployments"),
            ({"namespace": "prod", "name": "web"}, "/apis/apps/v1/namespaces/prod/deployments/web"),
            ({"namespace": "prod", "name": "web", "status": True}, "/apis/apps/v1/namespaces/prod/deployments/web/status"),
            ({"namespace": "prod", "name": "web", "scale": True}, "/apis/apps/v1/namespaces/prod/deployments/web/scale"),
            ({"name": "web", "status": True, "scale": True}, "/apis/apps/v1/deployments/web/status"),
        ],
    )
    def test_modifiers(self, kwargs: dict, expected: str) -> None:
        assert KubeResourceMeta("/apis/apps/v1", _DEPLOYMENTS).uri(**kwargs) == expected

    def test_namespace_ignored_for_cluster_scoped_resource(self) -> None:
        meta = KubeResourceMeta("/api/v1", _NODES)

        assert meta.uri(namespace="default", name="node-1") == "/api/v1/nodes/node-1"


class TestMeta:
    def test_has_verb(self) -> None:
        meta = KubeResourceMeta("/apis/apps/v1", _DEPLOYMENTS)

        assert meta.has_verb("watch")
        assert not KubeResourceMeta("/api/v1", _NODES).has_verb("watch")

    def test_properties(self) -> None:
        meta = KubeResourceMeta("/apis/apps/v1", _DEPLOYMENTS)

        assert meta.path == "/apis/apps/v1"
        assert meta.name == "deployments"
        assert meta.singular_name == "deployment"
        assert meta.kind == "Deployment"
        assert meta.namespaced is True

    def test_clone_is_independent(self) -> None:
        options = RequestOptions(base_url="https://kube.test", headers={"Authorization": "Bearer t"})
        meta = KubeResourceMeta("/apis/apps/v1", {**_DEPLOYMENTS, "verbs": list(_DEPLOYMENTS["verbs"])}, options)

        clone = meta.clone()
        clone.resource_meta["verbs"].remove("watch")
        clone.request_options.headers["Authorization"] = "Bearer other"

        assert meta.has_verb("watch")
        assert meta.request_options.headers["Authorization"] == "Bearer t"
        assert clone.uri() == meta.uri()
