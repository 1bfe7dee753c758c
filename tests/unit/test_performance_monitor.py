"""
Tests for the performance monitor and its snapshots.
"""

import json
from datetime import datetime, timedelta, timezone

import pytest
from tocminer.monitoring.performance import PerformanceMetrics, PerformanceMonitor


class Clock:
    def __init__(self) -> None:
        self.now = datetime(2024, 3, 1, 12, 0, tzinfo=timezone.utc)

    def __call__(self) -> datetime:
        return self.now


@pytest.fixture
def clock() -> Clock:
    return Clock()


@pytest.fixture
def populated(clock) -> PerformanceMonitor:
    monitor = PerformanceMonitor(clock=clock)
    for confidence in (0.9, 0.85, 0.95):
        monitor.record("json_ld", True, confidence, 100, label="책 A")
    monitor.record("direct_api", True, 0.6, 300, label="책 B")
    monitor.record("direct_api", False, 0.0, 500, label="책 B")
    monitor.record("direct_api", False, 0.0, 500, label="책 C")
    return monitor


@pytest.mark.unit
class TestRecording:
    def test_empty_monitor(self):
        monitor = PerformanceMonitor()
        assert monitor.success_rate() == 0.0
        assert monitor.average_response_time() == 0.0
        assert monitor.best_method() is None
        assert monitor.get_statistics() == PerformanceMetrics()

    def test_totals(self, populated):
        stats = populated.get_statistics()
        assert stats.total_attempts == 6
        assert stats.total_successes == 4
        assert stats.total_response_time_ms == 1600
        assert populated.success_rate() == pytest.approx(4 / 6)
        assert populated.average_response_time() == pytest.approx(1600 / 6)

    def test_per_method_means_cover_successes_only(self, populated):
        direct = populated.get_statistics().method_breakdown["direct_api"]
        assert direct.attempts == 3
        assert direct.successes == 1
        assert direct.avg_response_time_ms == 300
        assert direct.avg_confidence == 0.6

        json_ld = populated.get_statistics().method_breakdown["json_ld"]
        assert json_ld.avg_confidence == pytest.approx(0.9)

    def test_confidence_distribution(self, populated):
        populated.record("metadata", True, 0.3, 10)
        dist = populated.get_statistics().confidence_distribution
        assert (dist.high, dist.medium, dist.low) == (3, 1, 1)

    def test_boundaries(self):
        monitor = PerformanceMonitor()
        monitor.record("a", True, 0.8, 1)
        monitor.record("a", True, 0.5, 1)
        dist = monitor.get_statistics().confidence_distribution
        assert (dist.high, dist.medium, dist.low) == (1, 1, 0)

    def test_recent_results_are_bounded(self):
        monitor = PerformanceMonitor(recent_limit=3)
        for i in range(5):
            monitor.record("m", True, 0.9, i, label=f"book {i}")
        recent = monitor.get_statistics().recent_results
        assert [r.label for r in recent] == ["book 2", "book 3", "book 4"]
        assert monitor.get_statistics().total_attempts == 5

    def test_default_buffer_keeps_latest_hundred(self):
        monitor = PerformanceMonitor()
        for i in range(150):
            monitor.record("m", True, 0.9, i, label=f"book {i}")
        recent = monitor.get_statistics().recent_results
        assert len(recent) == 100
        assert (recent[0].label, recent[-1].label) == ("book 50", "book 149")

    def test_statistics_are_copies(self, populated):
        stats = populated.get_statistics()
        stats.method_breakdown["json_ld"].attempts = 99
        assert populated.get_statistics().method_breakdown["json_ld"].attempts == 3

    def test_reset(self, populated):
        populated.reset()
        assert populated.get_statistics().total_attempts == 0


@pytest.mark.unit
class TestRanking:
    def test_method_success_rates_sorted(self, populated):
        rates = populated.method_success_rates()
        assert [r.method for r in rates] == ["json_ld", "direct_api"]
        assert rates[1].success_rate == pytest.approx(1 / 3)

    def test_best_method_needs_three_attempts(self, clock):
        monitor = PerformanceMonitor(clock=clock)
        monitor.record("rare", True, 1.0, 10)
        monitor.record("rare", True, 1.0, 10)
        for _ in range(3):
            monitor.record("steady", True, 0.6, 10)
        assert monitor.best_method() == "steady"

    def test_best_method_none_below_threshold(self):
        monitor = PerformanceMonitor()
        monitor.record("rare", True, 1.0, 10)
        assert monitor.best_method() is None

    def test_best_method_uses_composite_score(self, populated):
        # json_ld: 0.7 * 1.0 + 0.3 * 0.9; direct_api: 0.7 * 0.33 + 0.3 * 0.6
        assert populated.best_method() == "json_ld"


@pytest.mark.unit
class TestRecommendations:
    def test_healthy(self, clock):
        monitor = PerformanceMonitor(clock=clock)
        for _ in range(3):
            monitor.record("json_ld", True, 0.9, 100)
        advice = monitor.recommendations()
        assert any("json_ld succeeds 100.0%" in line for line in advice)

    def test_low_success_rate(self, clock):
        monitor = PerformanceMonitor(clock=clock)
        monitor.record("a", False, 0.0, 100)
        monitor.record("b", False, 0.0, 100)
        assert any("below 50%" in line for line in monitor.recommendations())

    def test_slow_responses(self, clock):
        monitor = PerformanceMonitor(clock=clock)
        monitor.record("a", True, 0.9, 12_000)
        assert any("exceeds 10 seconds" in line for line in monitor.recommendations())

    def test_stale_methods(self, clock):
        monitor = PerformanceMonitor(clock=clock)
        monitor.record("old_a", True, 0.9, 10)
        monitor.record("old_b", True, 0.9, 10)
        clock.now += timedelta(hours=25)
        monitor.record("fresh", True, 0.9, 10)
        assert any("last 24 hours" in line for line in monitor.recommendations())

    def test_low_confidence(self, clock):
        monitor = PerformanceMonitor(clock=clock)
        for _ in range(4):
            monitor.record("a", True, 0.55, 10)
        assert any("high confidence" in line for line in monitor.recommendations())

    def test_nothing_to_say(self, clock):
        monitor = PerformanceMonitor(clock=clock)
        for success in (True, True, True, False):
            monitor.record("json_ld", success, 0.9, 100)
        assert monitor.recommendations() == ["Extraction is operating normally."]

    def test_empty_monitor_flags_low_success(self):
        assert any("below 50%" in line for line in PerformanceMonitor().recommendations())


@pytest.mark.unit
class TestReport:
    def test_sections(self, populated):
        report = populated.generate_report()
        assert report.startswith("Table of contents extraction report")
        assert "attempts:          6" in report
        assert "1. json_ld: 100.0% of 3 attempts" in report
        assert "Recommended method: json_ld" in report
        assert "[failed] 책 C (direct_api)" in report
        assert "Recommendations:" in report

    def test_latest_results_first(self, populated):
        report = populated.generate_report()
        assert report.index("책 C") < report.index("책 A")


@pytest.mark.unit
class TestSnapshots:
    def test_round_trip(self, populated):
        restored = PerformanceMonitor()
        assert restored.import_snapshot(populated.export_snapshot())
        assert restored.get_statistics() == populated.get_statistics()
        assert restored.best_method() == "json_ld"

    def test_import_respects_recent_limit(self, populated):
        restored = PerformanceMonitor(recent_limit=2)
        restored.import_snapshot(populated.export_snapshot())
        assert len(restored.get_statistics().recent_results) == 2

    @pytest.mark.parametrize("payload", [b"not json", b'{"total_attempts": -1}', b'{"unexpected": 1}'])
    def test_bad_snapshot_leaves_state(self, populated, payload):
        before = populated.get_statistics()
        assert populated.import_snapshot(payload) is False
        assert populated.get_statistics() == before

    @pytest.mark.parametrize("field", ["last_used", "timestamp"])
    def test_naive_timestamps_rejected(self, populated, field):
        data = json.loads(populated.export_snapshot())
        if field == "last_used":
            data["method_breakdown"]["json_ld"]["last_used"] = "2026-10-18T10:00:00"
        else:
            data["recent_results"][0]["timestamp"] = "2026-10-18T10:00:00"
        before = populated.get_statistics()

        assert populated.import_snapshot(json.dumps(data).encode("utf-8")) is False
        assert populated.get_statistics() == before
        assert populated.recommendations()

    def test_save_and_load(self, populated, tmp_path):
        path = tmp_path / "nested" / "snapshot.json"
        populated.save(path)

        restored = PerformanceMonitor()
        assert restored.load(path)
        assert restored.get_statistics().total_attempts == 6
        assert list(path.parent.glob("*.tmp")) == []

    def test_load_missing_file(self, tmp_path):
        assert PerformanceMonitor().load(tmp_path / "absent.json") is False
