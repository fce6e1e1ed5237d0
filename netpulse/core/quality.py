"""
Quality scoring and threshold checks.

The score formula is an external contract: reports produced elsewhere must
reproduce it exactly, so the weights, ceilings and half-up rounding are fixed.

    Ln = min(avg / 300, 1)
    Jn = min(jitter / 100, 1)
    Pn = min(loss / 10, 1)
    score = round(100 * (1 - (0.60*Ln + 0.25*Jn + 0.15*Pn)))

Normal/gaming modes only change alert thresholds, never the score.
"""

import math
from dataclasses import dataclass
from typing import List, Optional

from .models import QualityScore, RunSummary, StatsSnapshot

LATENCY_CEILING_MS = 300.0
JITTER_CEILING_MS = 100.0
LOSS_CEILING_PERCENT = 10.0

LATENCY_WEIGHT = 0.60
JITTER_WEIGHT = 0.25
LOSS_WEIGHT = 0.15

# (inclusive lower bound, grade, label), best first
GRADE_BUCKETS = (
    (95, "A+", "Excellent"),
    (90, "A", "Very Good"),
    (75, "B", "Good"),
    (60, "C", "Fair"),
    (40, "D", "Poor"),
)
FAILING_GRADE = ("F", "Very Poor")


def _round_half_up(value: float) -> int:
    return int(math.floor(value + 0.5))


def score(avg: float, jitter: float, loss_percent: float) -> int:
    """Weighted-linear quality score in [0, 100]."""
    ln = min(avg / LATENCY_CEILING_MS, 1)
    jn = min(jitter / JITTER_CEILING_MS, 1)
    pn = min(loss_percent / LOSS_CEILING_PERCENT, 1)
    raw = _round_half_up(100 * (1 - (LATENCY_WEIGHT * ln + JITTER_WEIGHT * jn + LOSS_WEIGHT * pn)))
    return max(0, min(raw, 100))


def grade(value: int) -> QualityScore:
    for lower, letter, label in GRADE_BUCKETS:
        if value >= lower:
            return QualityScore(score=value, grade=letter, label=label)
    return QualityScore(score=value, grade=FAILING_GRADE[0], label=FAILING_GRADE[1])


def evaluate(snapshot: StatsSnapshot) -> Optional[QualityScore]:
    """Score a snapshot; None when no probe succeeded (no score rather than a fake one)."""
    if not snapshot.has_data:
        return None
    return grade(score(snapshot.avg, snapshot.jitter, snapshot.packet_loss_percent))


# ──────────────────────────────────────────────────────────────────
# Labels
# ──────────────────────────────────────────────────────────────────

def latency_label(latency_ms: float) -> str:
    """Per-sample label used in logs."""
    if latency_ms < 50:
        return "Excellent"
    if latency_ms < 150:
        return "Good"
    return "Poor"


def gaming_status(current_ms: float, jitter_ms: float, loss_percent: float) -> str:
    if current_ms < 30 and jitter_ms < 10 and loss_percent == 0:
        return "EXCELLENT"
    if current_ms < 50 and jitter_ms < 20 and loss_percent < 1:
        return "GOOD"
    if current_ms < 100 and jitter_ms < 50 and loss_percent < 3:
        return "PLAYABLE"
    return "POOR"


# ──────────────────────────────────────────────────────────────────
# Alerts
# ──────────────────────────────────────────────────────────────────

@dataclass(frozen=True)
class AlertThresholds:
    latency_ms: float
    jitter_ms: float
    loss_percent: float


NORMAL_THRESHOLDS = AlertThresholds(latency_ms=200, jitter_ms=100, loss_percent=5)
# any loss at all is flagged in gaming mode
GAMING_THRESHOLDS = AlertThresholds(latency_ms=50, jitter_ms=20, loss_percent=0)


@dataclass(frozen=True)
class Alert:
    kind: str       # latency, jitter, loss
    level: str      # warning, error
    message: str


def thresholds_for(gaming: bool) -> AlertThresholds:
    return GAMING_THRESHOLDS if gaming else NORMAL_THRESHOLDS


def check_alerts(
    latency_ms: Optional[float],
    snapshot: StatsSnapshot,
    gaming: bool = False,
    thresholds: Optional[AlertThresholds] = None,
) -> List[Alert]:
    """Threshold checks after a probe; latency_ms is the newest sample (None if it failed)."""
    limits = thresholds or thresholds_for(gaming)
    alerts: List[Alert] = []

    if latency_ms is not None and latency_ms > limits.latency_ms:
        text = "High ping for gaming!" if gaming else "High latency detected!"
        alerts.append(Alert("latency", "warning", text))

    if snapshot.jitter is not None and snapshot.jitter > limits.jitter_ms:
        text = "Jitter too high for gaming!" if gaming else "Unstable connection!"
        alerts.append(Alert("jitter", "warning", text))

    if snapshot.packet_loss_percent > limits.loss_percent:
        text = "Packet loss detected!" if gaming else "Significant packet loss!"
        alerts.append(Alert("loss", "error", text))

    return alerts


# ──────────────────────────────────────────────────────────────────
# Advice
# ──────────────────────────────────────────────────────────────────

@dataclass(frozen=True)
class Tip:
    severity: str   # info, warning, error, success
    text: str


def smart_tips(snapshot: StatsSnapshot, gaming: bool = False) -> List[Tip]:
    if not snapshot.has_data:
        return []

    avg, jitter, loss = snapshot.avg, snapshot.jitter, snapshot.packet_loss_percent
    tips: List[Tip] = []

    if avg > NORMAL_THRESHOLDS.latency_ms:
        tips.append(Tip("warning", "High latency detected. Try switching to a closer DNS server "
                                   "or check your internet connection."))
    if jitter > 50:
        tips.append(Tip("warning", "High jitter detected. This may affect video calls and gaming. "
                                   "Try using a wired connection."))
    if loss > 0:
        tips.append(Tip("error", f"{loss:.1f}% packet loss detected. "
                                 "Check your network cables and router."))
    if gaming and avg > GAMING_THRESHOLDS.latency_ms:
        tips.append(Tip("info", "Ping is too high for competitive gaming. Consider upgrading "
                                "your connection or using a gaming VPN."))
    if avg < 50 and jitter < 20 and loss == 0:
        tips.append(Tip("success", "Excellent connection quality! Perfect for all online activities."))

    return tips


def recommendations(snapshot: StatsSnapshot) -> List[str]:
    if not snapshot.has_data:
        return ["No successful measurements; check that the target is reachable"]

    avg, jitter, loss = snapshot.avg, snapshot.jitter, snapshot.packet_loss_percent
    advice: List[str] = []

    if avg > NORMAL_THRESHOLDS.latency_ms:
        advice += [
            "Consider switching to a closer DNS server",
            "Check for network congestion",
            "Upgrade your internet plan if needed",
        ]
    if jitter > 50:
        advice += [
            "Use a wired connection instead of WiFi",
            "Close bandwidth-heavy applications",
            "Check for interference in WiFi channels",
        ]
    if loss > 0:
        advice += [
            "Check all network cables for damage",
            "Restart your router and modem",
            "Contact your ISP for line quality check",
        ]
    if avg < 50 and jitter < 20 and loss == 0:
        advice += [
            "Your connection is excellent!",
            "Suitable for all online activities including gaming",
        ]
    return advice


def format_summary(summary: RunSummary) -> str:
    """One-line run summary for logs and the CLI."""
    snap = summary.snapshot
    if not snap.has_data:
        return f"Summary: {summary.target} | no valid results | Loss: {snap.packet_loss_percent:.1f}%"

    methods = ", ".join(sorted(summary.methods)) or "unknown"
    return (
        f"Summary: {summary.target} | Avg: {snap.avg:.2f}ms | Min: {snap.min:.2f}ms | "
        f"Max: {snap.max:.2f}ms | Jitter: {snap.jitter:.2f}ms | "
        f"Loss: {snap.packet_loss_percent:.1f}% | Score: {summary.score}/100 ({summary.grade}) | "
        f"Method: {methods}"
    )
