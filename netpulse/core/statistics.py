"""
Statistics Engine
Pure functions over the successful latencies of a run, in arrival order.
Empty input yields None for every latency figure instead of raising.
"""

import math
import statistics
from typing import Optional, Sequence

from .models import StatsSnapshot
from .run_state import RunState


def mean(values: Sequence[float]) -> Optional[float]:
    if not values:
        return None
    return statistics.fmean(values)


def minimum(values: Sequence[float]) -> Optional[float]:
    return min(values) if values else None


def maximum(values: Sequence[float]) -> Optional[float]:
    return max(values) if values else None


def median(values: Sequence[float]) -> Optional[float]:
    """Middle value; mean of the two middle values for even length."""
    if not values:
        return None
    return float(statistics.median(values))


def stddev(values: Sequence[float]) -> Optional[float]:
    """Population standard deviation (divides by n)."""
    if not values:
        return None
    return statistics.pstdev(values)


def jitter(values: Sequence[float]) -> float:
    """
    Mean absolute difference between consecutive latencies in arrival order.

    Order matters: [10, 50, 10] gives 40 while its sorted form gives 20.
    Fewer than two values give 0.
    """
    if len(values) < 2:
        return 0.0
    diffs = [abs(values[i] - values[i - 1]) for i in range(1, len(values))]
    return sum(diffs) / len(diffs)


def percentile(values: Sequence[float], p: float) -> Optional[float]:
    """Linear interpolation between closest ranks; p in [0, 1]."""
    if not 0.0 <= p <= 1.0:
        raise ValueError(f"percentile fraction out of range: {p}")
    if not values:
        return None
    ordered = sorted(values)
    idx = (len(ordered) - 1) * p
    lo = math.floor(idx)
    hi = math.ceil(idx)
    if lo == hi:
        return float(ordered[lo])
    return ordered[lo] + (ordered[hi] - ordered[lo]) * (idx - lo)


def packet_loss(success_count: int, fail_count: int) -> float:
    """Loss percentage over cumulative counters; 0 before any attempt."""
    total = success_count + fail_count
    if total == 0:
        return 0.0
    return fail_count / total * 100


def success_rate(success_count: int, fail_count: int) -> float:
    total = success_count + fail_count
    if total == 0:
        return 0.0
    return success_count / total * 100


def compute_snapshot(state: RunState) -> StatsSnapshot:
    """Aggregate a run as of now."""
    latencies = state.latencies()
    has_data = bool(latencies)

    return StatsSnapshot(
        count=len(state.samples),
        success_count=state.success_count,
        fail_count=state.fail_count,
        success_rate=success_rate(state.success_count, state.fail_count),
        packet_loss_percent=packet_loss(state.success_count, state.fail_count),
        avg=mean(latencies),
        min=minimum(latencies),
        max=maximum(latencies),
        median=median(latencies),
        stddev=stddev(latencies),
        jitter=jitter(latencies) if has_data else None,
        p95=percentile(latencies, 0.95),
        p99=percentile(latencies, 0.99),
        last=latencies[-1] if has_data else None,
    )
