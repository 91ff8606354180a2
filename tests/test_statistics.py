import pytest

from dns_reliability.statistics import StatisticsEngine
from tests.support import make_sample, nxdomain, timeout_error


def test_target_report_counts():
    samples = [make_sample(0), make_sample(1, error=nxdomain()), make_sample(2)]

    report = StatisticsEngine.calculate_target_report("A", samples)

    assert report.successes == 2
    assert report.failures == 1
    assert report.total == 3
    assert report.success_rate == pytest.approx(200 / 3)


def test_errors_keep_arrival_order():
    first, second = timeout_error(), nxdomain()
    samples = [make_sample(5, error=first), make_sample(1), make_sample(3, error=second)]

    report = StatisticsEngine.calculate_target_report("A", samples)

    assert [error for _, error in report.errors] == [first, second]
    assert [ts.second for ts, _ in report.errors] == [10, 8]


def test_latency_stats_use_successful_samples_only():
    samples = [
        make_sample(0, latency=0.010),
        make_sample(1, latency=5.0, error=timeout_error()),
        make_sample(2, latency=0.020),
        make_sample(3, latency=0.040),
    ]

    stats = StatisticsEngine.calculate_latency_stats(samples)

    assert stats.min_ms == pytest.approx(10.0)
    assert stats.max_ms == pytest.approx(40.0)
    assert stats.avg_ms == pytest.approx(70.0 / 3)
    assert stats.median_ms == pytest.approx(20.0)
    assert stats.jitter_ms == pytest.approx(15.0)


def test_latency_stats_without_successes():
    assert StatisticsEngine.calculate_latency_stats([make_sample(0, error=nxdomain())]) is None


def test_single_sample_has_no_jitter():
    stats = StatisticsEngine.calculate_latency_stats([make_sample(0)])

    assert stats.jitter_ms == 0.0


def test_build_report_keeps_state_order():
    state = {"B": [make_sample(0)], "A": [make_sample(1)]}

    report = StatisticsEngine.build_report(state)

    assert report.names == ["B", "A"]
    assert report.get("A").successes == 1
    assert report.get("missing") is None


def test_empty_target_report():
    report = StatisticsEngine.calculate_target_report("A", [])

    assert report.total == 0
    assert report.success_rate == 0.0
    assert report.latency is None
