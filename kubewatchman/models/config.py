"""Configuration data structures."""

from __future__ import annotations

from dataclasses import dataclass, field


@dataclass
class ResourceConfig:
    """The resource collection to watch."""

    path: str = "/api/v1"
    name: str = "configmaps"
    kind: str = "ConfigMap"
    namespaced: bool = True
    namespace: str = ""
    label_selector: str = ""


@dataclass
class WatchConfig:
    """Watch stream and self-healing loop configuration."""

    # Milliseconds; 0 disables the liveness loop.
    liveness_interval: int = 0
    liveness_path: str = "/tmp/liveness"
    watch_timeout_seconds: int = 300
    # Seconds; 0 disables the enforcement sweep.
    enforcement_interval: int = 0
    enforcement_page_size: int = 500
    finalizer_string: str = ""


@dataclass
class ControllerConfig:
    """Controller factory configuration."""

    factory: str = "kubewatchman.controller:LoggingController"


@dataclass
class LogConfig:
    """Logging configuration."""

    level: str = "info"
    format: str = "json"


@dataclass
class KubeWatchmanConfig:
    """Top-level kubewatchman configuration."""

    resource: ResourceConfig = field(default_factory=ResourceConfig)
    watch: WatchConfig = field(default_factory=WatchConfig)
    controller: ControllerConfig = field(default_factory=ControllerConfig)
    log: LogConfig = field(default_factory=LogConfig)
