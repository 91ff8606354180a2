import asyncio
from datetime import datetime, timedelta

from dns_reliability.models import (
    MonitorConfig,
    ProbeError,
    ProbeResult,
    ProviderGroup,
    QueryStatus,
    Sample,
    Target,
)
from dns_reliability.query_engine import DNSQueryEngine

BASE_TIME = datetime(2024, 1, 2, 3, 4, 5)


def nxdomain(query: str = "example.test", server: str = "192.0.2.1:53") -> ProbeError:
    return ProbeError(QueryStatus.NXDOMAIN, f"lookup {query} on {server}: no such host")


def timeout_error(query: str = "example.test", server: str = "192.0.2.1:53") -> ProbeError:
    return ProbeError(QueryStatus.TIMEOUT, f"lookup {query} on {server}: i/o timeout")


def make_target(name: str = "A", ipv4: str = "192.0.2.1", ipv6: str = "", query: str = "example.test") -> Target:
    return Target(name=name, query=query, ipv4=ipv4, ipv6=ipv6, provider="Test")


def make_config(*targets: Target, interval: float = 0.01, report_interval: float = 0.0) -> MonitorConfig:
    return MonitorConfig(
        interval=interval,
        report_interval=report_interval,
        providers=(ProviderGroup(provider="Test", servers=tuple(targets)),),
    )


def make_result(target: str = "A", offset: int = 0, error=None, duration: float = 0.01) -> ProbeResult:
    return ProbeResult(
        target=target,
        started_at=BASE_TIME + timedelta(seconds=offset),
        duration=duration,
        error=error,
    )


def make_sample(offset: int = 0, error=None, latency: float = 0.01) -> Sample:
    return Sample(timestamp=BASE_TIME + timedelta(seconds=offset), latency=latency, error=error)


class FakeEngine(DNSQueryEngine):
    """Resolution client answering from a per-server script.

    Once a server's script is used up every further attempt returns
    `default`, or, with `hang=True`, waits for cancellation.
    """

    def __init__(self, scripts=None, default=None, hang=False, latency=0.002):
        super().__init__(timeout=1.0)
        self.scripts = {server: list(outcomes) for server, outcomes in (scripts or {}).items()}
        self.default = default
        self.hang = hang
        self.latency = latency
        self.calls = []
        self.closed = False

    async def resolve(self, server, query, cancel=None):
        self.prepare(server)
        self.calls.append((server, query))
        script = self.scripts.get(server)
        if script:
            return self.latency, script.pop(0)
        if self.hang:
            await cancel.wait()
            return self.latency, ProbeError(QueryStatus.CANCELLED, "operation was canceled")
        return self.latency, self.default

    async def close(self):
        self.closed = True
        await super().close()


async def cancel_after(cancel: asyncio.Event, delay: float) -> None:
    await asyncio.sleep(delay)
    cancel.set()
