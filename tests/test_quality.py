"""Tests for quality scoring, labels, alerts and advice."""

from datetime import datetime

import pytest

from netpulse.core import quality
from netpulse.core.models import RunMode, RunSummary, StatsSnapshot


def _snapshot(avg=20.0, jitter=5.0, loss=0.0, last=None, count=10):
    if avg is None:
        return StatsSnapshot(count=count, success_count=0, fail_count=count,
                             success_rate=0.0, packet_loss_percent=100.0)
    failed = round(count * loss / 100)
    return StatsSnapshot(
        count=count,
        success_count=count - failed,
        fail_count=failed,
        success_rate=100.0 - loss,
        packet_loss_percent=loss,
        avg=avg, min=avg, max=avg, median=avg, stddev=0.0,
        jitter=jitter, p95=avg, p99=avg,
        last=avg if last is None else last,
    )


class TestScore:
    def test_perfect_connection(self):
        assert quality.score(0, 0, 0) == 100
        assert quality.grade(100).grade == "A+"

    def test_ceilings_give_zero(self):
        assert quality.score(300, 100, 10) == 0
        assert quality.grade(0).grade == "F"

    def test_values_beyond_ceilings_are_clamped(self):
        assert quality.score(5000, 900, 100) == 0

    def test_latency_weight(self):
        # Ln = 0.5 -> 100 * (1 - 0.30)
        assert quality.score(150, 0, 0) == 70

    def test_loss_only(self):
        # Pn = 1 -> 100 * (1 - 0.15)
        assert quality.score(0, 0, 10) == 85

    def test_jitter_only(self):
        # Jn = 1 -> 100 * (1 - 0.25)
        assert quality.score(0, 100, 0) == 75

    def test_score_stays_in_range(self):
        for avg, jitter, loss in [(1, 1, 0), (80, 12, 2.5), (299, 99, 9.9), (10_000, 0, 0)]:
            assert 0 <= quality.score(avg, jitter, loss) <= 100

    def test_half_up_rounding(self):
        assert quality._round_half_up(98.5) == 99
        assert quality._round_half_up(97.5) == 98
        assert quality._round_half_up(97.49) == 97


class TestGrade:
    @pytest.mark.parametrize("value,letter,label", [
        (100, "A+", "Excellent"),
        (95, "A+", "Excellent"),
        (94, "A", "Very Good"),
        (90, "A", "Very Good"),
        (89, "B", "Good"),
        (75, "B", "Good"),
        (74, "C", "Fair"),
        (60, "C", "Fair"),
        (59, "D", "Poor"),
        (40, "D", "Poor"),
        (39, "F", "Very Poor"),
        (0, "F", "Very Poor"),
    ])
    def test_buckets(self, value, letter, label):
        result = quality.grade(value)
        assert result.score == value
        assert result.grade == letter
        assert result.label == label


class TestEvaluate:
    def test_no_score_without_data(self):
        assert quality.evaluate(_snapshot(avg=None)) is None

    def test_scores_snapshot(self):
        result = quality.evaluate(_snapshot(avg=150, jitter=0, loss=0))
        assert result.score == 70
        assert result.grade == "C"


class TestLabels:
    def test_latency_label(self):
        assert quality.latency_label(10) == "Excellent"
        assert quality.latency_label(49.9) == "Excellent"
        assert quality.latency_label(50) == "Good"
        assert quality.latency_label(149) == "Good"
        assert quality.latency_label(150) == "Poor"

    def test_gaming_status(self):
        assert quality.gaming_status(20, 5, 0) == "EXCELLENT"
        assert quality.gaming_status(40, 15, 0.5) == "GOOD"
        assert quality.gaming_status(90, 40, 2) == "PLAYABLE"
        assert quality.gaming_status(150, 5, 0) == "POOR"


class TestAlerts:
    def test_quiet_connection(self):
        assert quality.check_alerts(30, _snapshot()) == []

    def test_normal_thresholds(self):
        alerts = quality.check_alerts(250, _snapshot(jitter=120, loss=10))
        assert [a.kind for a in alerts] == ["latency", "jitter", "loss"]
        assert alerts[0].message == "High latency detected!"
        assert alerts[2].level == "error"

    def test_gaming_thresholds_are_stricter(self):
        snap = _snapshot(jitter=25, loss=10)
        assert quality.check_alerts(60, snap, gaming=False) == [
            quality.Alert("loss", "error", "Significant packet loss!")
        ]
        kinds = [a.kind for a in quality.check_alerts(60, snap, gaming=True)]
        assert kinds == ["latency", "jitter", "loss"]

    def test_gaming_flags_any_loss(self):
        alerts = quality.check_alerts(20, _snapshot(jitter=1, loss=10), gaming=True)
        assert [a.message for a in alerts] == ["Packet loss detected!"]

    def test_failed_sample_skips_latency_check(self):
        assert quality.check_alerts(None, _snapshot()) == []

    def test_custom_thresholds(self):
        limits = quality.AlertThresholds(latency_ms=10, jitter_ms=1000, loss_percent=100)
        alerts = quality.check_alerts(20, _snapshot(), thresholds=limits)
        assert [a.kind for a in alerts] == ["latency"]


class TestAdvice:
    def test_excellent_connection(self):
        tips = quality.smart_tips(_snapshot(avg=20, jitter=5, loss=0))
        assert [t.severity for t in tips] == ["success"]
        assert "Your connection is excellent!" in quality.recommendations(_snapshot(avg=20, jitter=5))

    def test_poor_connection(self):
        snap = _snapshot(avg=250, jitter=60, loss=10)
        severities = [t.severity for t in quality.smart_tips(snap, gaming=True)]
        assert severities == ["warning", "warning", "error", "info"]
        advice = quality.recommendations(snap)
        assert "Restart your router and modem" in advice
        assert "Use a wired connection instead of WiFi" in advice

    def test_no_data(self):
        snap = _snapshot(avg=None)
        assert quality.smart_tips(snap) == []
        assert len(quality.recommendations(snap)) == 1


class TestFormatSummary:
    def _summary(self, snap):
        now = datetime.now()
        return RunSummary(
            target="8.8.8.8",
            mode=RunMode.FIXED_COUNT,
            snapshot=snap,
            quality=quality.evaluate(snap),
            started_at=now,
            finished_at=now,
            methods={"icmp": 3} if snap.has_data else {},
        )

    def test_with_data(self):
        line = quality.format_summary(self._summary(_snapshot(avg=150, jitter=0)))
        assert "Avg: 150.00ms" in line
        assert "Score: 70/100 (C)" in line
        assert "Method: icmp" in line

    def test_without_data(self):
        summary = self._summary(_snapshot(avg=None))
        assert summary.grade == "N/A"
        assert "no valid results" in quality.format_summary(summary)
