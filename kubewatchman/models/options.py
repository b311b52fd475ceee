"""HTTP request and watch option structures.

``RequestOptions`` carries everything needed to reach one API endpoint:
the server base URL, the resource URI, headers, the query selector
(``params``) and TLS material.  Options are layered with ``merge`` so that
credentials resolved at startup can be overridden per watch.
"""

from __future__ import annotations

import ssl
from collections.abc import Mapping
from dataclasses import dataclass, field, fields, replace
from typing import Any

import httpx


@dataclass
class RequestOptions:
    """HTTP options for one API endpoint."""

    uri: str = ""
    base_url: str = ""
    headers: dict[str, str] = field(default_factory=dict)
    params: dict[str, Any] = field(default_factory=dict)
    verify: bool | str = True
    cert: tuple[str, str] | None = None
    transport: httpx.AsyncBaseTransport | None = None

    @property
    def url(self) -> str:
        return f"{self.base_url}{self.uri}"

    def merge(self, overrides: RequestOptions | Mapping[str, Any] | None) -> RequestOptions:
        """Return a copy with *overrides* layered on top.

        ``headers`` and ``params`` are merged key by key; every other key
        replaces the current value.  Unknown keys raise ``TypeError``.
        """
        if overrides is None:
            return replace(self, headers=dict(self.headers), params=dict(self.params))
        if isinstance(overrides, RequestOptions):
            defaults = RequestOptions()
            items = {
                f.name: getattr(overrides, f.name)
                for f in fields(overrides)
                if getattr(overrides, f.name) != getattr(defaults, f.name)
            }
        else:
            items = dict(overrides)

        known = {f.name for f in fields(self)}
        unknown = set(items) - known
        if unknown:
            raise TypeError(f"Unknown request options: {sorted(unknown)}")

        headers = {**self.headers, **(items.pop("headers", None) or {})}
        params = {**self.params, **(items.pop("params", None) or {})}
        return replace(self, headers=headers, params=params, **items)

    def ssl_context(self) -> ssl.SSLContext | bool:
        """Build the TLS configuration handed to httpx.

        Returns ``False`` when verification is disabled and no client
        certificate is configured.
        """
        if self.verify is False and self.cert is None:
            return False
        if isinstance(self.verify, str):
            ctx = ssl.create_default_context(cafile=self.verify)
        else:
            ctx = ssl.create_default_context()
        if self.verify is False:
            ctx.check_hostname = False
            ctx.verify_mode = ssl.CERT_NONE
        if self.cert is not None:
            cert_file, key_file = self.cert
            ctx.load_cert_chain(cert_file, key_file)
        return ctx

    def build_client(self, timeout: httpx.Timeout | float | None = None) -> httpx.AsyncClient:
        """Create an AsyncClient bound to ``base_url`` with these options."""
        kwargs: dict[str, Any] = {
            "base_url": self.base_url,
            "headers": self.headers,
            "timeout": timeout if timeout is not None else httpx.Timeout(30.0),
        }
        if self.transport is not None:
            kwargs["transport"] = self.transport
        else:
            kwargs["verify"] = self.ssl_context()
        return httpx.AsyncClient(**kwargs)


@dataclass
class WatchOptions:
    """Options for one Watchman session."""

    request_options: RequestOptions = field(default_factory=RequestOptions)
    rewatch_on_timeout: bool = True
    logger: Any = None
