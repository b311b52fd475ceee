"""Configuration loading from environment variables."""

from __future__ import annotations

import os
import re

from kubewatchman.models.config import (
    ControllerConfig,
    KubeWatchmanConfig,
    LogConfig,
    ResourceConfig,
    WatchConfig,
)

_DEFAULT_LIVENESS_INTERVAL_MS = 60000


def _env(key: str, default: str = "") -> str:
    return os.environ.get(f"KUBEWATCHMAN_{key}", default)


def _env_bool(key: str, default: bool = False) -> bool:
    val = _env(key, str(default).lower())
    return val.lower() in ("true", "1", "yes")


def _env_int(key: str, default: int, min_val: int | None = None, max_val: int | None = None) -> int:
    val = int(_env(key, str(default)))
    if min_val is not None:
        val = max(val, min_val)
    if max_val is not None:
        val = min(val, max_val)
    return val


def _validate_log_level(value: str) -> str:
    valid = {"debug", "info", "warning", "error"}
    if value.lower() not in valid:
        raise ValueError(f"Invalid log level: {value}. Must be one of {valid}")
    return value.lower()


def _validate_log_format(value: str) -> str:
    if value.lower() not in ("json", "console"):
        raise ValueError(f"Invalid log format: {value}. Must be json or console")
    return value.lower()


def _validate_api_path(value: str) -> str:
    if not re.match(r"^/(api/v1|apis/[a-z0-9.-]+/[a-z0-9]+)$", value):
        raise ValueError(f"Invalid API path: {value}")
    return value


def parse_liveness_interval(value: str | int | bool | None) -> int:
    """Normalise a liveness interval setting to milliseconds.

    ``true`` maps to one minute; an integer is taken as milliseconds; an
    empty, ``false`` or zero value disables the liveness loop.
    """
    if value is None or value is False:
        return 0
    if value is True:
        return _DEFAULT_LIVENESS_INTERVAL_MS
    if isinstance(value, int):
        return max(value, 0)
    text = value.strip().lower()
    if text in ("", "false", "0", "no"):
        return 0
    if text in ("true", "yes"):
        return _DEFAULT_LIVENESS_INTERVAL_MS
    if not text.isdigit():
        raise ValueError(f"Invalid liveness interval: {value}")
    return int(text)


def load_config() -> KubeWatchmanConfig:
    """Load configuration from KUBEWATCHMAN_* environment variables."""
    return KubeWatchmanConfig(
        resource=ResourceConfig(
            path=_validate_api_path(_env("RESOURCE_PATH", "/api/v1")),
            name=_env("RESOURCE_NAME", "configmaps"),
            kind=_env("RESOURCE_KIND", "ConfigMap"),
            namespaced=_env_bool("NAMESPACED", True),
            namespace=_env("NAMESPACE", ""),
            label_selector=_env("LABEL_SELECTOR", ""),
        ),
        watch=WatchConfig(
            liveness_interval=parse_liveness_interval(_env("LIVENESS_INTERVAL", "")),
            liveness_path=_env("LIVENESS_PATH", "/tmp/liveness"),
            watch_timeout_seconds=_env_int("WATCH_TIMEOUT_SECONDS", 300, min_val=1),
            enforcement_interval=_env_int("ENFORCEMENT_INTERVAL", 0, min_val=0),
            enforcement_page_size=_env_int("ENFORCEMENT_PAGE_SIZE", 500, min_val=1, max_val=5000),
            finalizer_string=_env("FINALIZER_STRING", ""),
        ),
        controller=ControllerConfig(
            factory=_env("CONTROLLER", "kubewatchman.controller:LoggingController"),
        ),
        log=LogConfig(
            level=_validate_log_level(_env("LOG_LEVEL", "info")),
            format=_validate_log_format(_env("LOG_FORMAT", "json")),
        ),
    )
