"""
Data models for the DNS reliability monitor.

Defines structured types for monitored targets, probe results,
retained samples and the derived report views.
"""

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Optional


class Transport(Enum):
    """DNS transport protocols used for probing."""
    UDP = "udp"
    TCP = "tcp"


class RecordType(Enum):
    """DNS record types a probe may ask for."""
    A = "A"
    AAAA = "AAAA"


class QueryStatus(Enum):
    """Classification of a probe outcome."""
    TIMEOUT = "timeout"
    NXDOMAIN = "nxdomain"
    SERVFAIL = "servfail"
    REFUSED = "refused"
    NODATA = "nodata"
    ERROR = "error"
    CANCELLED = "cancelled"


class ComponentState(Enum):
    """Lifecycle of a poller or of the aggregator."""
    IDLE = "idle"
    RUNNING = "running"
    CANCELLING = "cancelling"
    STOPPED = "stopped"


class ProbeError(Exception):
    """A single failed resolution attempt."""

    def __init__(self, status: QueryStatus, message: str):
        super().__init__(status, message)
        self.status = status
        self.message = message

    def __str__(self) -> str:
        return self.message

    def __eq__(self, other) -> bool:
        if not isinstance(other, ProbeError):
            return NotImplemented
        return (self.status, self.message) == (other.status, other.message)

    def __hash__(self) -> int:
        return hash((self.status, self.message))


@dataclass(frozen=True)
class Target:
    """One monitored DNS server and the query sent to it."""
    name: str
    query: str
    ipv4: str = ""
    ipv6: str = ""
    provider: str = ""

    @property
    def is_pollable(self) -> bool:
        """Only targets with an IPv4 address are probed."""
        return bool(self.ipv4)


@dataclass(frozen=True)
class ProviderGroup:
    """A named group of targets, usually one DNS provider."""
    provider: str
    servers: tuple[Target, ...] = ()


@dataclass(frozen=True)
class MonitorConfig:
    """Validated monitor configuration."""
    interval: float
    report_interval: float = 0.0
    timeout: float = 1.0
    transport: Transport = Transport.UDP
    record_type: RecordType = RecordType.A
    providers: tuple[ProviderGroup, ...] = ()

    @property
    def targets(self) -> list[Target]:
        """All configured targets in configuration order."""
        return [server for group in self.providers for server in group.servers]

    @property
    def pollable_targets(self) -> list[Target]:
        """Targets that get a poller."""
        return [target for target in self.targets if target.is_pollable]


@dataclass(frozen=True)
class ProbeResult:
    """Outcome of one probe, as emitted by a poller."""
    target: str
    started_at: datetime
    duration: float
    error: Optional[ProbeError] = None

    @property
    def is_success(self) -> bool:
        return self.error is None


@dataclass(frozen=True)
class Sample:
    """The aggregator's retained form of a probe result."""
    timestamp: datetime
    latency: float
    error: Optional[ProbeError] = None

    @property
    def is_success(self) -> bool:
        return self.error is None

    @property
    def latency_ms(self) -> float:
        """Latency in milliseconds."""
        return self.latency * 1000

    @classmethod
    def from_result(cls, result: ProbeResult) -> "Sample":
        return cls(
            timestamp=result.started_at,
            latency=result.duration,
            error=result.error,
        )


# Target name -> samples in arrival order
ReportState = dict[str, list[Sample]]


@dataclass(frozen=True)
class LatencyStats:
    """Latency summary over the successful samples of a target (ms)."""
    min_ms: float
    avg_ms: float
    median_ms: float
    p95_ms: float
    max_ms: float
    jitter_ms: float


@dataclass(frozen=True)
class TargetReport:
    """Derived report for one target."""
    name: str
    successes: int
    failures: int
    errors: list[tuple[datetime, ProbeError]] = field(default_factory=list)
    latency: Optional[LatencyStats] = None

    @property
    def total(self) -> int:
        return self.successes + self.failures

    @property
    def success_rate(self) -> float:
        """Percentage of successful probes."""
        if self.total == 0:
            return 0.0
        return (self.successes / self.total) * 100


@dataclass(frozen=True)
class Report:
    """Derived view over a whole ReportState."""
    targets: list[TargetReport] = field(default_factory=list)

    def get(self, name: str) -> Optional[TargetReport]:
        """Return the report for a target name, if it has samples."""
        for target in self.targets:
            if target.name == name:
                return target
        return None

    @property
    def names(self) -> list[str]:
        return [target.name for target in self.targets]
