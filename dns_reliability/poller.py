"""
Target poller.

One poller per monitored target. It probes the target on a fixed
interval and sends every completed attempt to the result channel.
"""

import asyncio
import logging
from datetime import datetime
from typing import Optional

from .channel import ResultChannel
from .models import ComponentState, ProbeResult, QueryStatus, Target
from .query_engine import DNSQueryEngine

LOGGER = logging.getLogger(__name__)


class TargetPoller:
    """
    Probes one target until the cancellation signal is set.

    The first attempt happens one interval after start. Ticks missed
    while an attempt was running are dropped rather than queued.
    """

    def __init__(
        self,
        target: Target,
        interval: float,
        engine: DNSQueryEngine,
        results: ResultChannel,
        cancel: asyncio.Event,
    ):
        """
        Initialize the poller.

        Args:
            target: Target to probe, must have an IPv4 address
            interval: Seconds between attempts
            engine: Resolution client
            results: Channel receiving one result per attempt
            cancel: Shared cancellation signal

        Raises:
            ValueError: If the target cannot be probed
        """
        if not target.is_pollable:
            raise ValueError(f"Target {target.name} has no IPv4 address")
        if interval <= 0:
            raise ValueError("Poll interval must be a positive duration")
        engine.prepare(target.ipv4)

        self.target = target
        self.interval = interval
        self.engine = engine
        self.results = results
        self.cancel = cancel
        self._state = ComponentState.IDLE
        self.attempts = 0

    @property
    def state(self) -> ComponentState:
        """A running poller is cancelling once the signal is set."""
        if self._state == ComponentState.RUNNING and self.cancel.is_set():
            return ComponentState.CANCELLING
        return self._state

    async def _wait_for_tick(self, deadline: float) -> bool:
        """Sleep until `deadline`. Returns False if cancelled first."""
        delay = max(0.0, deadline - asyncio.get_running_loop().time())
        try:
            await asyncio.wait_for(self.cancel.wait(), timeout=delay)
        except asyncio.TimeoutError:
            return True
        return False

    def _next_deadline(self, deadline: float, now: float) -> float:
        deadline += self.interval
        if deadline <= now:
            missed = int((now - deadline) // self.interval) + 1
            LOGGER.debug("%s: dropping %d missed tick(s)", self.target.name, missed)
            deadline += missed * self.interval
        return deadline

    async def probe(self) -> Optional[ProbeResult]:
        """
        Run one attempt against the target.

        Returns None if the attempt was aborted by cancellation.
        """
        started_at = datetime.now()
        latency, error = await self.engine.resolve(
            self.target.ipv4,
            self.target.query,
            self.cancel,
        )
        if error is not None and error.status == QueryStatus.CANCELLED:
            return None
        return ProbeResult(
            target=self.target.name,
            started_at=started_at,
            duration=latency,
            error=error,
        )

    async def run(self) -> None:
        """Poll until cancelled."""
        self._state = ComponentState.RUNNING
        loop = asyncio.get_running_loop()
        deadline = loop.time() + self.interval
        try:
            while not self.cancel.is_set():
                if not await self._wait_for_tick(deadline):
                    break
                deadline = self._next_deadline(deadline, loop.time())

                result = await self.probe()
                if result is None:
                    break
                self.attempts += 1
                await self.results.put(result)
        finally:
            self._state = ComponentState.STOPPED
            LOGGER.debug(
                "Poller for %s stopped after %d attempt(s)",
                self.target.name,
                self.attempts,
            )
