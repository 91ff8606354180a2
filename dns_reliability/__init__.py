"""
DNS Reliability - DNS server availability and latency watchdog.

Probes a list of DNS servers on a fixed interval and reports
successes, failures and observed errors per server.
"""

__version__ = "1.0.0"

from .models import MonitorConfig, ProbeError, ProbeResult, Sample, Target
from .query_engine import DNSQueryEngine
from .runner import MonitorRunner

__all__ = [
    "__version__",
    "MonitorConfig",
    "ProbeError",
    "ProbeResult",
    "Sample",
    "Target",
    "DNSQueryEngine",
    "MonitorRunner",
]
