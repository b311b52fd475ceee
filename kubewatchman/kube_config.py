"""Resolve API server location and credentials into RequestOptions.

Uses kubernetes-asyncio's config loaders: the in-cluster service account
first, then the local kubeconfig.  Only the resolved values are kept; token
refresh is left to a process restart.
"""

from __future__ import annotations

import os

from kubewatchman.models.options import RequestOptions
from kubewatchman.observability.logging import get_logger

_log = get_logger("kube_config")


def _user_agent() -> str:
    from kubewatchman import __version__

    name = os.environ.get("USER_AGENT_NAME", "kubewatchman")
    version = os.environ.get("USER_AGENT_VERSION", __version__)
    return f"{name}/{version}"


async def load_request_options(kubeconfig_path: str | None = None) -> RequestOptions:
    """Load cluster connection settings.

    Args:
        kubeconfig_path: Explicit kubeconfig file; skips in-cluster detection.
    """
    # Imported lazily: some kubernetes-asyncio versions probe the cluster
    # environment at import time.
    from kubernetes_asyncio import client as k8s_client  # type: ignore[import-untyped]
    from kubernetes_asyncio import config as k8s_config  # type: ignore[import-untyped]

    configuration = k8s_client.Configuration()
    if kubeconfig_path:
        await k8s_config.load_kube_config(config_file=kubeconfig_path, client_configuration=configuration)
        _log.info("api config loaded from kubeconfig", path=kubeconfig_path)
    else:
        try:
            k8s_config.load_incluster_config(client_configuration=configuration)
            _log.info("api config loaded from in-cluster service account")
        except k8s_config.ConfigException:
            await k8s_config.load_kube_config(client_configuration=configuration)
            _log.info("api config loaded from kubeconfig")

    headers = {"User-Agent": _user_agent()}
    for setting in configuration.auth_settings().values():
        if setting.get("in") == "header" and setting.get("value"):
            headers[str(setting["key"])] = str(setting["value"])

    verify: bool | str = configuration.ssl_ca_cert or bool(configuration.verify_ssl)
    cert = None
    if configuration.cert_file and configuration.key_file:
        cert = (configuration.cert_file, configuration.key_file)

    return RequestOptions(
        base_url=configuration.host.rstrip("/"),
        headers=headers,
        verify=verify,
        cert=cert,
    )
