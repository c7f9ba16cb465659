"""Click commands for kubestats.

Flags override the matching ``KUBESTATS_*`` environment variables; anything
not given on the command line keeps its environment (or default) value.
"""

from __future__ import annotations

import asyncio
import dataclasses

import click

from kubestats.config import SINK_KINDS, load_config, parse_duration, split_address
from kubestats.models.config import KubeStatsConfig


def _duration(ctx: click.Context, param: click.Parameter, value: str | None) -> float | None:
    if value is None:
        return None
    try:
        return parse_duration(value)
    except ValueError as exc:
        raise click.BadParameter(str(exc)) from exc


def _address(ctx: click.Context, param: click.Parameter, value: str | None) -> str | None:
    if value is None:
        return None
    try:
        split_address(value)
    except ValueError as exc:
        raise click.BadParameter(str(exc)) from exc
    return value


def apply_overrides(
    config: KubeStatsConfig,
    *,
    debug: bool = False,
    kube_addr: str | None = None,
    interval: float | None = None,
    sink: str | None = None,
    statsd_addr: str | None = None,
    statsd_prefix: str | None = None,
    prometheus_port: int | None = None,
) -> KubeStatsConfig:
    """Return a copy of *config* with every non-None override applied."""
    kube = config.kube if kube_addr is None else dataclasses.replace(config.kube, address=kube_addr)
    poll = config.poll if interval is None else dataclasses.replace(config.poll, interval_seconds=interval)
    sink_overrides = {
        key: value
        for key, value in (
            ("kind", sink),
            ("address", statsd_addr),
            ("prefix", statsd_prefix),
            ("prometheus_port", prometheus_port),
        )
        if value is not None
    }
    log = dataclasses.replace(config.log, level="debug") if debug else config.log
    return dataclasses.replace(
        config,
        kube=kube,
        poll=poll,
        sink=dataclasses.replace(config.sink, **sink_overrides),
        log=log,
    )


@click.group()
def cli() -> None:
    """Export Kubernetes cluster state as statsd / Prometheus metrics."""


@cli.command()
@click.option("--debug", is_flag=True, default=False, help="Enable debug logging.")
@click.option("--kube-addr", default=None, help="Kubernetes API address (default: in-cluster, then kubeconfig).")
@click.option("--interval", default=None, callback=_duration, help="Poll interval, e.g. 60s or 2m.")
@click.option("--sink", type=click.Choice(sorted(SINK_KINDS)), default=None, help="Metrics backend.")
@click.option("--statsd-addr", default=None, callback=_address, help="statsd address as host:port.")
@click.option("--statsd-prefix", default=None, help="Prefix for every metric name.")
@click.option("--prometheus-port", type=click.IntRange(1024, 65535), default=None, help="Prometheus HTTP port.")
def run(
    debug: bool,
    kube_addr: str | None,
    interval: float | None,
    sink: str | None,
    statsd_addr: str | None,
    statsd_prefix: str | None,
    prometheus_port: int | None,
) -> None:
    """Run the exporter until SIGINT or SIGTERM."""
    from kubestats.app import main

    try:
        config = load_config()
    except ValueError as exc:
        raise click.ClickException(str(exc)) from exc

    config = apply_overrides(
        config,
        debug=debug,
        kube_addr=kube_addr,
        interval=interval,
        sink=sink,
        statsd_addr=statsd_addr,
        statsd_prefix=statsd_prefix,
        prometheus_port=prometheus_port,
    )
    asyncio.run(main(config))


@cli.command()
def version() -> None:
    """Print the kubestats version."""
    from kubestats import __version__

    click.echo(__version__)
