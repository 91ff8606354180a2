"""
Command-line interface for the DNS reliability monitor.

Runs the monitor against the servers listed in a YAML file and
prints reliability reports until interrupted.
"""

import asyncio
import logging
import sys
import time
from typing import Optional

import click
from rich import box
from rich.console import Console
from rich.table import Table

from . import __version__
from .config import (
    DEFAULT_CONFIG_PATH,
    ConfigError,
    format_duration,
    load_config,
    parse_duration,
    with_overrides,
)
from .runner import MonitorError, MonitorRunner, run_until_signalled

LOGGER = logging.getLogger(__name__)


def _setup_logging(verbosity: int) -> None:
    """Configure stderr logging from the -v count."""
    level = logging.WARNING
    if verbosity == 1:
        level = logging.INFO
    elif verbosity >= 2:
        level = logging.DEBUG

    logging.Formatter.converter = time.gmtime  # UTC timestamps
    logging.basicConfig(
        level=level,
        format="%(asctime)sZ [%(levelname)s] %(name)s: %(message)s",
    )


def _fail(message: str) -> None:
    LOGGER.error(message)
    click.echo(f"Error: {message}", err=True)
    sys.exit(1)


config_option = click.option(
    "--config", "-c",
    "config_path",
    type=click.Path(dir_okay=False),
    default=DEFAULT_CONFIG_PATH,
    show_default=True,
    help="YAML file listing the DNS servers to monitor",
)


@click.group()
@click.version_option(__version__)
def main():
    """
    DNS Reliability - lightweight availability and latency watchdog.

    Probes every configured DNS server on a fixed interval and prints
    success/failure reports until interrupted.
    """
    pass


@main.command()
@config_option
@click.option(
    "--interval", "-i",
    help="Poll interval, overrides the config (e.g. 500ms, 2s)",
)
@click.option(
    "--report-interval", "-r",
    help="Intermediate report interval, overrides the config (0 disables)",
)
@click.option(
    "--timeout",
    help="Per-attempt query timeout, overrides the config",
)
@click.option(
    "--transport", "-t",
    type=click.Choice(["udp", "tcp"]),
    help="Transport protocol, overrides the config",
)
@click.option(
    "--duration", "-d",
    help="Stop after this long instead of waiting for Ctrl+C",
)
@click.option(
    "--latency",
    is_flag=True,
    help="Include latency statistics in reports",
)
@click.option(
    "--verbose", "-v",
    count=True,
    help="Increase log verbosity (-v info, -vv debug)",
)
def run(
    config_path: str,
    interval: Optional[str],
    report_interval: Optional[str],
    timeout: Optional[str],
    transport: Optional[str],
    duration: Optional[str],
    latency: bool,
    verbose: int,
):
    """
    Monitor DNS servers until interrupted.

    Examples:

    \b
      # Use ./config.yaml
      dns-reliability run

    \b
      # Probe every 500ms, report every 30s, stop after 5 minutes
      dns-reliability run -c servers.yaml -i 500ms -r 30s -d 5m
    """
    _setup_logging(verbose)

    try:
        config = with_overrides(
            load_config(config_path),
            interval=interval,
            report_interval=report_interval,
            timeout=timeout,
            transport=transport,
        )
        run_for = parse_duration(duration, "duration") if duration else None
    except ConfigError as e:
        _fail(str(e))

    click.echo(
        f"Poll interval is {format_duration(config.interval)}, "
        f"report interval is {format_duration(config.report_interval)}"
    )

    runner = MonitorRunner(config, show_latency=latency)
    try:
        asyncio.run(run_until_signalled(runner, run_for))
    except MonitorError as e:
        _fail(str(e))
    except KeyboardInterrupt:
        # Signal handlers are unavailable on this platform
        LOGGER.warning("Interrupted before the final report")


@main.command()
@config_option
def targets(config_path: str):
    """List the configured DNS servers."""
    try:
        config = load_config(config_path)
    except ConfigError as e:
        _fail(str(e))

    console = Console()
    table = Table(
        title="Configured DNS Servers",
        box=box.ROUNDED,
        header_style="bold cyan",
    )

    table.add_column("Provider", style="dim")
    table.add_column("Name", style="green")
    table.add_column("IPv4", style="cyan")
    table.add_column("IPv6", style="magenta")
    table.add_column("Query")
    table.add_column("Polled", justify="center")

    for target in config.targets:
        table.add_row(
            target.provider,
            target.name,
            target.ipv4 or "-",
            target.ipv6 or "-",
            target.query,
            "yes" if target.is_pollable else "no",
        )

    console.print(table)
    console.print(
        f"[dim]Poll interval:[/dim] {format_duration(config.interval)} | "
        f"[dim]Report interval:[/dim] {format_duration(config.report_interval)} | "
        f"[dim]Transport:[/dim] {config.transport.value.upper()}"
    )


if __name__ == "__main__":
    main()
