"""
Monitor runner.

Coordinates the lifecycle of a monitoring run:
- one poller task per IPv4 target
- one aggregator task consuming their results
- ordered shutdown once the cancellation signal is set
"""

import asyncio
import logging
import signal
from typing import Optional

import click

from .aggregator import ResultAggregator
from .channel import RESULT_BUFFER_SIZE, ResultChannel
from .models import MonitorConfig, Report, Target
from .poller import TargetPoller
from .query_engine import DNSQueryEngine

LOGGER = logging.getLogger(__name__)


class MonitorError(Exception):
    """Raised when a run cannot be started."""


class MonitorRunner:
    """
    Runs pollers and the aggregator until cancelled.

    A target whose poller cannot be constructed is reported and
    skipped; the run fails only if no target could be constructed.
    A poller that dies is logged and the others keep running.
    """

    def __init__(
        self,
        config: MonitorConfig,
        engine: Optional[DNSQueryEngine] = None,
        show_latency: bool = False,
        channel_size: int = RESULT_BUFFER_SIZE,
    ):
        """
        Initialize the runner.

        Args:
            config: Validated monitor configuration
            engine: Resolution client (default: built from config)
            show_latency: Include latency statistics in reports
            channel_size: Capacity of the result channel
        """
        self.config = config
        self.engine = engine or DNSQueryEngine(
            timeout=config.timeout,
            transport=config.transport,
            record_type=config.record_type,
        )
        self.show_latency = show_latency
        self.channel_size = channel_size
        self.pollers: list[TargetPoller] = []
        self.skipped: list[tuple[Target, Exception]] = []
        self.aggregator: Optional[ResultAggregator] = None

    def _build_pollers(
        self,
        channel: ResultChannel,
        cancel: asyncio.Event,
    ) -> list[TargetPoller]:
        """Create one poller per IPv4 target."""
        pollers = []
        for target in self.config.targets:
            if not target.is_pollable:
                # IPv6 probing is not supported
                LOGGER.info("Not monitoring %s: no IPv4 address", target.name)
                continue
            try:
                poller = TargetPoller(
                    target,
                    self.config.interval,
                    self.engine,
                    channel,
                    cancel,
                )
            except ValueError as e:
                LOGGER.error("Cannot monitor %s: %s", target.name, e)
                click.echo(f"Skipping {target.name}: {e}", err=True)
                self.skipped.append((target, e))
                continue
            click.echo(f"Monitoring {target.name} [{target.ipv4}]: query {target.query}")
            pollers.append(poller)
        return pollers

    @staticmethod
    async def _close_channel(channel: ResultChannel, aggregator_task: asyncio.Task) -> None:
        """Close the channel unless the aggregator is already gone."""
        close_task = asyncio.ensure_future(channel.close())
        done, _ = await asyncio.wait(
            {close_task, aggregator_task},
            return_when=asyncio.FIRST_COMPLETED,
        )
        if close_task not in done:
            close_task.cancel()

    async def run(self, cancel: asyncio.Event) -> Report:
        """
        Monitor until `cancel` is set.

        Returns:
            The final Report

        Raises:
            MonitorError: If no target could be constructed
        """
        channel = ResultChannel(self.channel_size)
        self.pollers = self._build_pollers(channel, cancel)
        if not self.pollers and self.skipped:
            raise MonitorError(
                f"No target could be monitored ({len(self.skipped)} failed to start)"
            )

        self.aggregator = ResultAggregator(
            channel,
            self.config.report_interval,
            cancel,
            show_latency=self.show_latency,
        )
        aggregator_task = asyncio.ensure_future(self.aggregator.run())
        poller_tasks = [asyncio.ensure_future(p.run()) for p in self.pollers]
        LOGGER.info("Started %d poller(s)", len(poller_tasks))

        try:
            outcomes = await asyncio.gather(*poller_tasks, return_exceptions=True)
            for poller, outcome in zip(self.pollers, outcomes):
                if isinstance(outcome, Exception):
                    LOGGER.error(
                        "Poller for %s failed: %s",
                        poller.target.name,
                        outcome,
                        exc_info=outcome,
                    )
            LOGGER.debug("All pollers stopped, closing result channel")
            await self._close_channel(channel, aggregator_task)
            return await aggregator_task
        finally:
            for task in [*poller_tasks, aggregator_task]:
                if not task.done():
                    task.cancel()
            await self.close()

    async def close(self):
        """Clean up resources."""
        await self.engine.close()


async def run_until_signalled(
    runner: MonitorRunner,
    duration: Optional[float] = None,
) -> Report:
    """
    Run the monitor until SIGINT/SIGTERM, or until `duration` elapses.

    Returns:
        The final Report
    """
    cancel = asyncio.Event()
    loop = asyncio.get_running_loop()

    installed = []
    for sig in (signal.SIGINT, signal.SIGTERM):
        try:
            loop.add_signal_handler(sig, cancel.set)
        except (NotImplementedError, RuntimeError):
            LOGGER.debug("Cannot install handler for %s", sig.name)
            continue
        installed.append(sig)

    timer = loop.call_later(duration, cancel.set) if duration else None
    try:
        return await runner.run(cancel)
    finally:
        if timer is not None:
            timer.cancel()
        for sig in installed:
            loop.remove_signal_handler(sig)
