"""Click commands for running a watch from the shell.

Options default to the KUBEWATCHMAN_* environment configuration; any flag
given on the command line overrides it.
"""

from __future__ import annotations

import asyncio
from dataclasses import replace

import click

from kubewatchman.config import load_config, parse_liveness_interval


@click.group()
def cli() -> None:
    """Resilient Kubernetes watch client."""


@cli.command()
def version() -> None:
    """Print the kubewatchman version."""
    from kubewatchman import __version__

    click.echo(__version__)


@cli.command()
@click.option("--path", "api_path", help="API path, e.g. /api/v1 or /apis/apps/v1.")
@click.option("--resource", "resource_name", help="Plural resource name, e.g. configmaps.")
@click.option("--kind", help="Resource kind, e.g. ConfigMap.")
@click.option("--namespace", "-n", help="Watch a single namespace.")
@click.option("--selector", "-l", "label_selector", help="Label selector for the watch.")
@click.option("--liveness-interval", help="Milliseconds between liveness touches, or 'true'.")
@click.option("--enforcement-interval", type=click.IntRange(min=0), help="Seconds between full sweeps.")
@click.option("--controller", help="Controller factory as module:Class.")
@click.option(
    "--log-level",
    type=click.Choice(["debug", "info", "warning", "error"], case_sensitive=False),
    help="Log level.",
)
@click.option("--log-format", type=click.Choice(["json", "console"]), help="Log output format.")
def run(
    api_path: str | None,
    resource_name: str | None,
    kind: str | None,
    namespace: str | None,
    label_selector: str | None,
    liveness_interval: str | None,
    enforcement_interval: int | None,
    controller: str | None,
    log_level: str | None,
    log_format: str | None,
) -> None:
    """Watch a resource collection and dispatch events to a controller."""
    from kubewatchman.app import main

    try:
        config = load_config()
    except ValueError as exc:
        raise click.UsageError(str(exc)) from exc

    resource = config.resource
    config.resource = replace(
        resource,
        path=api_path or resource.path,
        name=resource_name or resource.name,
        kind=kind or resource.kind,
        namespace=namespace if namespace is not None else resource.namespace,
        label_selector=label_selector if label_selector is not None else resource.label_selector,
    )
    watch = config.watch
    try:
        liveness = parse_liveness_interval(liveness_interval) if liveness_interval is not None else None
    except ValueError as exc:
        raise click.BadParameter(str(exc), param_hint="--liveness-interval") from exc
    config.watch = replace(
        watch,
        liveness_interval=liveness if liveness is not None else watch.liveness_interval,
        enforcement_interval=(
            enforcement_interval if enforcement_interval is not None else watch.enforcement_interval
        ),
    )
    if controller:
        config.controller = replace(config.controller, factory=controller)
    if log_level:
        config.log = replace(config.log, level=log_level.lower())
    if log_format:
        config.log = replace(config.log, format=log_format)

    asyncio.run(main(config))
