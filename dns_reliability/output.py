"""
Output formatting for reliability reports.

Renders aggregated report state as the plain text blocks printed
on every report tick and once more at shutdown:

    <target-name>: successes: <N>, failures: <M>
       - <timestamp>: <error-description>
"""

from datetime import datetime
from typing import Mapping, Sequence

from .models import Report, Sample, TargetReport
from .statistics import StatisticsEngine


INTERMEDIATE_HEADER = "======= Intermediate report ======="
FINAL_HEADER = "======= Final report ======="


def format_timestamp(ts: datetime) -> str:
    """Format a sample timestamp with millisecond precision."""
    return ts.isoformat(sep=" ", timespec="milliseconds")


class ConsoleOutput:
    """Plain text report formatter."""

    @staticmethod
    def format_target(target: TargetReport, show_latency: bool = False) -> list[str]:
        """Format the lines for one target."""
        lines = [
            f"{target.name}: successes: {target.successes}, failures: {target.failures}"
        ]
        if show_latency and target.latency:
            stats = target.latency
            lines.append(
                f"   latency: min={stats.min_ms:.1f}ms, avg={stats.avg_ms:.1f}ms, "
                f"median={stats.median_ms:.1f}ms, p95={stats.p95_ms:.1f}ms, "
                f"max={stats.max_ms:.1f}ms, jitter={stats.jitter_ms:.1f}ms, "
                f"success rate={target.success_rate:.1f}%"
            )
        for ts, error in target.errors:
            lines.append(f"   - {format_timestamp(ts)}: {error}")
        return lines

    @staticmethod
    def format(report: Report, show_latency: bool = False) -> str:
        """
        Format a report for console display.

        Args:
            report: Report to format
            show_latency: Add a latency summary line per target

        Returns:
            Report text, one target block after another
        """
        lines = []
        for target in report.targets:
            lines.extend(ConsoleOutput.format_target(target, show_latency))
        return "\n".join(lines)


def render_report(
    state: Mapping[str, Sequence[Sample]],
    show_latency: bool = False,
) -> str:
    """
    Render a ReportState as text.

    Pure: the state is only read, so rendering the same state twice
    yields the same text.
    """
    return ConsoleOutput.format(StatisticsEngine.build_report(state), show_latency)
