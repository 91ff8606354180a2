"""
Result aggregator.

The single consumer of the result channel. It is the only owner of
the report state: samples are appended, reports are rendered and
snapshots are answered from inside its own task.
"""

import asyncio
import logging
from typing import Optional

import click

from .channel import ChannelClosed, ResultChannel
from .models import ComponentState, ProbeResult, Report, ReportState, Sample
from .output import FINAL_HEADER, INTERMEDIATE_HEADER, render_report
from .statistics import StatisticsEngine

LOGGER = logging.getLogger(__name__)


class ResultAggregator:
    """
    Collects probe results and prints reliability reports.

    While running it reacts to whichever comes first: a result, a
    report tick, a snapshot request or the cancellation signal. Once
    cancelled it drains the channel until the coordinator closes it,
    prints the final report exactly once and returns.
    """

    def __init__(
        self,
        results: ResultChannel,
        report_interval: float,
        cancel: asyncio.Event,
        show_latency: bool = False,
    ):
        """
        Initialize the aggregator.

        Args:
            results: Channel fed by the pollers
            report_interval: Seconds between intermediate reports, 0 disables them
            cancel: Shared cancellation signal
            show_latency: Include latency statistics in reports
        """
        if report_interval < 0:
            raise ValueError("Report interval cannot be negative")
        self.results = results
        self.report_interval = report_interval
        self.cancel = cancel
        self.show_latency = show_latency
        self.state = ComponentState.IDLE
        self.received = 0
        self.intermediate_reports = 0
        self.final_reports = 0
        self._samples: ReportState = {}
        self._requests: asyncio.Queue = asyncio.Queue()
        self._final: Optional[Report] = None

    def _record(self, result: ProbeResult) -> None:
        self._samples.setdefault(result.target, []).append(Sample.from_result(result))
        self.received += 1
        click.echo(".", nl=False)

    def _print_report(self, final: bool) -> None:
        if final:
            click.echo()
            click.echo("\n" + FINAL_HEADER)
            self.final_reports += 1
        else:
            click.echo("\n" + INTERMEDIATE_HEADER)
            self.intermediate_reports += 1
        text = render_report(self._samples, self.show_latency)
        if text:
            click.echo(text)

    def _next_deadline(self, deadline: float, now: float) -> float:
        deadline += self.report_interval
        if deadline <= now:
            deadline += (int((now - deadline) // self.report_interval) + 1) * self.report_interval
        return deadline

    def _answer(self, future: asyncio.Future) -> None:
        if not future.done():
            future.set_result(StatisticsEngine.build_report(self._samples))

    async def snapshot(self) -> Report:
        """
        Ask the aggregator for a report of its current state.

        The report is built inside the aggregator's own task, so the
        state is never read concurrently with a write. After the
        aggregator stopped this returns the final report.
        """
        if self.state == ComponentState.STOPPED:
            return self._final
        future = asyncio.get_running_loop().create_future()
        self._requests.put_nowait(future)
        return await future

    async def _drain(self, get_task: Optional[asyncio.Task]) -> None:
        """Consume results until the channel is closed and empty."""
        while True:
            if get_task is None:
                get_task = asyncio.ensure_future(self.results.get())
            try:
                result = await get_task
            except ChannelClosed:
                return
            self._record(result)
            get_task = None

    async def run(self) -> Report:
        """
        Aggregate until cancelled.

        Returns:
            The final Report
        """
        self.state = ComponentState.RUNNING
        loop = asyncio.get_running_loop()
        next_report = None
        if self.report_interval > 0:
            next_report = loop.time() + self.report_interval

        cancel_task = asyncio.ensure_future(self.cancel.wait())
        get_task: Optional[asyncio.Task] = None
        request_task: Optional[asyncio.Task] = None
        channel_open = True
        try:
            while True:
                if get_task is None and channel_open:
                    get_task = asyncio.ensure_future(self.results.get())
                if request_task is None:
                    request_task = asyncio.ensure_future(self._requests.get())

                timeout = None
                if next_report is not None:
                    timeout = max(0.0, next_report - loop.time())
                waiting = {t for t in (cancel_task, get_task, request_task) if t is not None}
                done, _ = await asyncio.wait(
                    waiting,
                    timeout=timeout,
                    return_when=asyncio.FIRST_COMPLETED,
                )

                if get_task in done:
                    try:
                        self._record(get_task.result())
                    except ChannelClosed:
                        LOGGER.debug("Result channel closed before cancellation")
                        channel_open = False
                    get_task = None
                if request_task in done:
                    self._answer(request_task.result())
                    request_task = None
                if cancel_task in done:
                    break
                if next_report is not None and loop.time() >= next_report:
                    self._print_report(final=False)
                    next_report = self._next_deadline(next_report, loop.time())

            self.state = ComponentState.CANCELLING
            LOGGER.debug("Aggregator cancelled, draining result channel")
            if channel_open:
                pending, get_task = get_task, None
                await self._drain(pending)
        finally:
            for task in (cancel_task, get_task, request_task):
                if task is not None and not task.done():
                    task.cancel()

        self._print_report(final=True)
        self._final = StatisticsEngine.build_report(self._samples)
        self.state = ComponentState.STOPPED

        if request_task is not None and request_task.done() and not request_task.cancelled():
            self._answer(request_task.result())
        while not self._requests.empty():
            self._answer(self._requests.get_nowait())

        LOGGER.info("Aggregated %d result(s)", self.received)
        return self._final
