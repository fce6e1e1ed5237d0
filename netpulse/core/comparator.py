"""
Comparator: rank several targets by one fixed-count run each.
"""

import asyncio
from typing import Callable, Dict, List, Optional, Sequence

from loguru import logger

from .errors import InvalidArgument
from .models import ComparisonReport, ComparisonResult, RunMode, RunSummary
from .sampler import Sampler
from .targets import describe

DEFAULT_SORT_KEY = "avg"

# sort key -> (attribute, descending)
SORT_KEYS: Dict[str, tuple] = {
    "avg":         ("avg", False),
    "jitter":      ("jitter", False),
    "successRate": ("success_rate", True),
    "packetLoss":  ("packet_loss", False),
    "p95":         ("p95", False),
}


def _check_sort_key(sort_key: str):
    if sort_key not in SORT_KEYS:
        raise InvalidArgument(
            f"Unknown sort key '{sort_key}' (expected one of {', '.join(SORT_KEYS)})"
        )


def sort_results(results: Sequence[ComparisonResult], sort_key: str) -> List[ComparisonResult]:
    """Stable sort: equal values keep their input order."""
    _check_sort_key(sort_key)
    attribute, descending = SORT_KEYS[sort_key]
    if descending:
        return sorted(results, key=lambda r: -getattr(r, attribute))
    return sorted(results, key=lambda r: getattr(r, attribute))


def resort(report: ComparisonReport, sort_key: str) -> ComparisonReport:
    """Re-rank an existing report without probing again."""
    return ComparisonReport(
        results=sort_results(report.results, sort_key),
        sort_key=sort_key,
        excluded=list(report.excluded),
    )


def to_result(summary: RunSummary) -> Optional[ComparisonResult]:
    """Comparison entry for a finished run; None when nothing answered."""
    snap = summary.snapshot
    if not snap.has_data:
        return None
    method = max(summary.methods, key=summary.methods.get) if summary.methods else None
    return ComparisonResult(
        target=summary.target,
        name=describe(summary.target).name,
        avg=snap.avg,
        min=snap.min,
        max=snap.max,
        median=snap.median,
        jitter=snap.jitter,
        p95=snap.p95,
        p99=snap.p99,
        success_rate=snap.success_rate,
        packet_loss=snap.packet_loss_percent,
        samples=snap.count,
        quality=summary.quality,
        method=method,
    )


class Comparator:
    """Runs one isolated Sampler per target, bounded by a semaphore."""

    def __init__(
        self,
        sampler_factory: Callable[[], Sampler],
        max_concurrent: int = 5,
        interval_ms: int = 200,
    ):
        if max_concurrent < 1:
            raise InvalidArgument("max_concurrent must be at least 1")
        self.sampler_factory = sampler_factory
        self.max_concurrent = max_concurrent
        self.interval_ms = interval_ms

    async def compare_all(
        self,
        targets: Sequence[str],
        tests_per_target: int,
        sort_key: str = DEFAULT_SORT_KEY,
        concurrent: bool = True,
    ) -> ComparisonReport:
        _check_sort_key(sort_key)
        if tests_per_target < 1:
            raise InvalidArgument("tests_per_target must be at least 1")

        unique: List[str] = []
        for target in targets:
            target = (target or "").strip()
            if not target:
                raise InvalidArgument("targets cannot contain empty entries")
            if target not in unique:
                unique.append(target)
        if not unique:
            raise InvalidArgument("at least one target is required")

        logger.info(
            f"Comparing {len(unique)} targets, {tests_per_target} tests each "
            f"({'concurrent, limit ' + str(self.max_concurrent) if concurrent else 'sequential'})"
        )

        if concurrent:
            semaphore = asyncio.Semaphore(self.max_concurrent)
            summaries = await asyncio.gather(
                *(self._measure(t, tests_per_target, semaphore) for t in unique)
            )
        else:
            summaries = [await self._measure(t, tests_per_target) for t in unique]

        results: List[ComparisonResult] = []
        excluded: List[str] = []
        for summary in summaries:
            result = to_result(summary)
            if result is None:
                excluded.append(summary.target)
                logger.info(f"Excluded from ranking (no replies): {summary.target}")
            else:
                results.append(result)

        report = ComparisonReport(
            results=sort_results(results, sort_key),
            sort_key=sort_key,
            excluded=excluded,
        )
        if report.winner:
            logger.info(
                f"Comparison complete. Best by {sort_key}: {report.winner.name} "
                f"({report.winner.avg:.2f}ms)"
            )
        else:
            logger.warning("Comparison complete: no target answered")
        return report

    async def _measure(
        self,
        target: str,
        count: int,
        semaphore: Optional[asyncio.Semaphore] = None,
    ) -> RunSummary:
        sampler = self.sampler_factory()
        if semaphore is None:
            sampler.start(target, RunMode.FIXED_COUNT, self.interval_ms, count)
            return await sampler.wait()
        async with semaphore:
            sampler.start(target, RunMode.FIXED_COUNT, self.interval_ms, count)
            return await sampler.wait()
