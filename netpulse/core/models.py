"""
Shared data models for the measurement engine.
Value objects are frozen dataclasses; only RunState (see run_state.py) mutates.
"""

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Dict, List, Optional


class FailureKind(Enum):
    """Why a probe produced no latency."""
    TIMEOUT = "timeout"
    UNREACHABLE = "unreachable"


class RunMode(Enum):
    """Sampler operating mode, chosen at start time."""
    FIXED_COUNT = "fixed"
    CONTINUOUS = "continuous"
    PUSH_INTERVAL = "push"


class RunStatus(Enum):
    IDLE = "idle"
    RUNNING = "running"


@dataclass(frozen=True)
class ProbeResult:
    """Outcome of one Prober call, before it is numbered into a Sample."""
    target: str
    latency_ms: Optional[float] = None
    failure: Optional[FailureKind] = None
    cause: Optional[str] = None
    method: Optional[str] = None

    @property
    def ok(self) -> bool:
        return self.failure is None and self.latency_ms is not None


@dataclass(frozen=True)
class Sample:
    """One numbered probe outcome inside a run."""
    sequence: int
    ok: bool
    latency_ms: Optional[float] = None
    timestamp: datetime = field(default_factory=datetime.now)
    method: Optional[str] = None
    failure: Optional[FailureKind] = None
    cause: Optional[str] = None

    def __post_init__(self):
        if self.sequence < 1:
            raise ValueError("sequence starts at 1")
        if self.ok and self.latency_ms is None:
            raise ValueError("successful sample needs a latency")
        if not self.ok and self.latency_ms is not None:
            raise ValueError("failed sample cannot carry a latency")
        if self.latency_ms is not None and self.latency_ms < 0:
            raise ValueError("latency cannot be negative")

    def to_dict(self) -> Dict[str, Any]:
        return {
            "sequence": self.sequence,
            "alive": self.ok,
            "time": self.latency_ms,
            "method": self.method,
            "failure": self.failure.value if self.failure else None,
            "cause": self.cause,
            "timestamp": self.timestamp.isoformat(),
        }


@dataclass(frozen=True)
class StatsSnapshot:
    """Aggregate view of a run at one instant. Latency fields are None without data."""
    count: int
    success_count: int
    fail_count: int
    success_rate: float
    packet_loss_percent: float
    avg: Optional[float] = None
    min: Optional[float] = None
    max: Optional[float] = None
    median: Optional[float] = None
    stddev: Optional[float] = None
    jitter: Optional[float] = None
    p95: Optional[float] = None
    p99: Optional[float] = None
    last: Optional[float] = None

    @property
    def has_data(self) -> bool:
        return self.success_count > 0

    def to_dict(self) -> Dict[str, Any]:
        return {
            "count": self.count,
            "successCount": self.success_count,
            "failCount": self.fail_count,
            "successRate": self.success_rate,
            "packetLoss": self.packet_loss_percent,
            "avg": self.avg,
            "min": self.min,
            "max": self.max,
            "median": self.median,
            "stdDev": self.stddev,
            "jitter": self.jitter,
            "p95": self.p95,
            "p99": self.p99,
            "last": self.last,
        }


@dataclass(frozen=True)
class QualityScore:
    """Normalized connection quality."""
    score: int
    grade: str
    label: str

    def to_dict(self) -> Dict[str, Any]:
        return {"score": self.score, "grade": self.grade, "label": self.label}


@dataclass(frozen=True)
class RunSummary:
    """Final figures of one start-to-stop run."""
    target: str
    mode: RunMode
    snapshot: StatsSnapshot
    quality: Optional[QualityScore]
    started_at: datetime
    finished_at: datetime
    methods: Dict[str, int] = field(default_factory=dict)

    @property
    def success_count(self) -> int:
        return self.snapshot.success_count

    @property
    def fail_count(self) -> int:
        return self.snapshot.fail_count

    @property
    def avg(self) -> Optional[float]:
        return self.snapshot.avg

    @property
    def min(self) -> Optional[float]:
        return self.snapshot.min

    @property
    def max(self) -> Optional[float]:
        return self.snapshot.max

    @property
    def jitter(self) -> Optional[float]:
        return self.snapshot.jitter

    @property
    def packet_loss(self) -> float:
        return self.snapshot.packet_loss_percent

    @property
    def score(self) -> Optional[int]:
        return self.quality.score if self.quality else None

    @property
    def grade(self) -> str:
        return self.quality.grade if self.quality else "N/A"

    @property
    def duration_ms(self) -> float:
        return (self.finished_at - self.started_at).total_seconds() * 1000

    def to_dict(self) -> Dict[str, Any]:
        return {
            "target": self.target,
            "mode": self.mode.value,
            "stats": self.snapshot.to_dict(),
            "quality": self.quality.to_dict() if self.quality else None,
            "score": self.score,
            "grade": self.grade,
            "methods": dict(self.methods),
            "startedAt": self.started_at.isoformat(),
            "finishedAt": self.finished_at.isoformat(),
        }


@dataclass(frozen=True)
class ComparisonResult:
    """Per-target outcome of a comparison. Rank is positional, never stored."""
    target: str
    name: str
    avg: float
    min: float
    max: float
    median: float
    jitter: float
    p95: float
    p99: float
    success_rate: float
    packet_loss: float
    samples: int
    quality: Optional[QualityScore] = None
    method: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "server": self.target,
            "name": self.name,
            "avg": self.avg,
            "min": self.min,
            "max": self.max,
            "median": self.median,
            "jitter": self.jitter,
            "p95": self.p95,
            "p99": self.p99,
            "successRate": self.success_rate,
            "packetLoss": self.packet_loss,
            "samples": self.samples,
            "quality": self.quality.to_dict() if self.quality else None,
            "method": self.method,
        }


@dataclass(frozen=True)
class ComparisonReport:
    """Results ordered by `sort_key`, plus the targets that never answered."""
    results: List[ComparisonResult]
    sort_key: str
    excluded: List[str] = field(default_factory=list)

    @property
    def excluded_count(self) -> int:
        return len(self.excluded)

    @property
    def winner(self) -> Optional[ComparisonResult]:
        return self.results[0] if self.results else None

    def ranked(self):
        """Yield (rank, result) pairs, rank 1-based."""
        for index, result in enumerate(self.results, start=1):
            yield index, result

    def to_dict(self) -> Dict[str, Any]:
        return {
            "sortKey": self.sort_key,
            "results": [dict(r.to_dict(), rank=i) for i, r in self.ranked()],
            "winner": self.winner.target if self.winner else None,
            "excluded": list(self.excluded),
            "excludedCount": self.excluded_count,
        }


@dataclass(frozen=True)
class MonitoringSession:
    """Identity of one active push-mode run."""
    session_id: str
    target: str
    interval_ms: int
    started_at: datetime
    owner: Optional[Any] = None


@dataclass(frozen=True)
class SessionUpdate:
    """Pushed to session listeners on every probe completion."""
    session_id: str
    sample: Sample
    snapshot: StatsSnapshot

    def to_dict(self) -> Dict[str, Any]:
        return {
            "type": "monitoring-update",
            "sessionId": self.session_id,
            "data": dict(self.sample.to_dict(), stats=self.snapshot.to_dict()),
        }


@dataclass(frozen=True)
class SessionSummary:
    """Returned when a session stops."""
    session: MonitoringSession
    run: RunSummary
    duration_ms: float

    def to_dict(self) -> Dict[str, Any]:
        return {
            "type": "monitoring-stopped",
            "sessionId": self.session.session_id,
            "host": self.session.target,
            "duration": self.duration_ms,
            "summary": self.run.to_dict(),
        }
