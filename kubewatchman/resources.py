"""KubeResourceMeta: descriptor of one API resource collection.

Built from one entry of an APIResourceList (``name``, ``kind``,
``namespaced``, ``verbs`` ...) plus the API path it was served under, e.g.
``/api/v1`` or ``/apis/apps/v1``.
"""

from __future__ import annotations

import copy
from typing import Any

from kubewatchman.models.options import RequestOptions


class KubeResourceMeta:
    """Builds URIs for a resource collection and answers verb queries."""

    def __init__(
        self,
        path: str,
        resource_meta: dict[str, Any],
        request_options: RequestOptions | None = None,
    ) -> None:
        self._path = path
        self._resource_meta = resource_meta
        self._request_options = request_options or RequestOptions()

    def __repr__(self) -> str:
        return f"KubeResourceMeta(path={self._path!r}, name={self.name!r})"

    def uri(
        self,
        watch: bool = False,
        namespace: str | None = None,
        name: str | None = None,
        status: bool = False,
        scale: bool = False,
    ) -> str:
        """Return the resource URI with the requested modifiers applied.

        The namespace segment is only added for namespaced resources.
        ``status`` wins over ``scale`` when both are set.
        """
        result = self._path
        if watch:
            result = f"{result}/watch"
        if namespace and self.namespaced:
            result = f"{result}/namespaces/{namespace}"
        result = f"{result}/{self.name}"
        if name:
            result = f"{result}/{name}"
        if status:
            result = f"{result}/status"
        elif scale:
            result = f"{result}/scale"
        return result

    def has_verb(self, verb: str) -> bool:
        return verb in self.verbs

    def clone(self) -> KubeResourceMeta:
        return KubeResourceMeta(
            self._path,
            copy.deepcopy(self._resource_meta),
            self._request_options.merge(None),
        )

    @property
    def path(self) -> str:
        return self._path

    @property
    def resource_meta(self) -> dict[str, Any]:
        return self._resource_meta

    @property
    def request_options(self) -> RequestOptions:
        return self._request_options

    @property
    def name(self) -> str:
        return str(self._resource_meta.get("name", ""))

    @property
    def singular_name(self) -> str:
        return str(self._resource_meta.get("singularName", ""))

    @property
    def namespaced(self) -> bool:
        return bool(self._resource_meta.get("namespaced", False))

    @property
    def kind(self) -> str:
        return str(self._resource_meta.get("kind", ""))

    @property
    def verbs(self) -> list[str]:
        return list(self._resource_meta.get("verbs", []))
