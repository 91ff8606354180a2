"""
Statistical analysis of retained probe samples.

Calculates per-target statistics including:
- Success and failure counts
- Failures in arrival order
- Latency: min, average, median, p95, max, jitter
"""

from typing import Mapping, Optional, Sequence

import numpy as np

from .models import LatencyStats, Report, Sample, TargetReport


class StatisticsEngine:
    """Calculates reports from aggregated samples."""

    @staticmethod
    def calculate_latency_stats(samples: Sequence[Sample]) -> Optional[LatencyStats]:
        """
        Calculate latency statistics over successful samples.

        Args:
            samples: Samples for one target, in arrival order

        Returns:
            LatencyStats, or None if no sample succeeded
        """
        successful = [s for s in samples if s.is_success]
        if not successful:
            return None

        latencies = np.array([s.latency_ms for s in successful])

        # Jitter is the mean difference between consecutive probes
        if len(latencies) > 1:
            jitter = float(np.mean(np.abs(np.diff(latencies))))
        else:
            jitter = 0.0

        return LatencyStats(
            min_ms=float(np.min(latencies)),
            avg_ms=float(np.mean(latencies)),
            median_ms=float(np.median(latencies)),
            p95_ms=float(np.percentile(latencies, 95)),
            max_ms=float(np.max(latencies)),
            jitter_ms=jitter,
        )

    @staticmethod
    def calculate_target_report(name: str, samples: Sequence[Sample]) -> TargetReport:
        """
        Summarize the samples of one target.

        Args:
            name: Target name
            samples: Samples for the target, in arrival order

        Returns:
            TargetReport with counts, ordered errors and latency stats
        """
        errors = [(s.timestamp, s.error) for s in samples if not s.is_success]
        return TargetReport(
            name=name,
            successes=len(samples) - len(errors),
            failures=len(errors),
            errors=errors,
            latency=StatisticsEngine.calculate_latency_stats(samples),
        )

    @staticmethod
    def build_report(state: Mapping[str, Sequence[Sample]]) -> Report:
        """
        Build a Report from a ReportState without modifying it.

        Targets keep the state's enumeration order.
        """
        return Report(targets=[
            StatisticsEngine.calculate_target_report(name, samples)
            for name, samples in state.items()
        ])
