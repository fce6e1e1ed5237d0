"""
Mutable record of one test run. Written by exactly one Sampler.
"""

from collections import Counter
from datetime import datetime
from typing import Dict, List, Optional

from .latency_window import DEFAULT_WINDOW_SIZE, LatencyWindow
from .models import ProbeResult, RunMode, Sample


class RunState:
    """Append-only sample history plus counters and the display window."""

    def __init__(
        self,
        target: str,
        mode: RunMode = RunMode.FIXED_COUNT,
        window_size: int = DEFAULT_WINDOW_SIZE,
    ):
        self.target = target
        self.mode = mode
        self.samples: List[Sample] = []
        self.success_count = 0
        self.fail_count = 0
        self.window = LatencyWindow(maxlen=window_size)
        self.started_at: datetime = datetime.now()
        self.finished_at: Optional[datetime] = None
        self._methods: Counter = Counter()

    @property
    def next_sequence(self) -> int:
        return len(self.samples) + 1

    def record(self, result: ProbeResult) -> Sample:
        """Number a probe outcome and append it."""
        sample = Sample(
            sequence=self.next_sequence,
            ok=result.ok,
            latency_ms=result.latency_ms if result.ok else None,
            method=result.method,
            failure=result.failure,
            cause=result.cause,
        )
        self.samples.append(sample)

        if sample.ok:
            self.success_count += 1
            self.window.add(sample.latency_ms)
            if sample.method:
                self._methods[sample.method] += 1
        else:
            self.fail_count += 1

        return sample

    def latencies(self) -> List[float]:
        """Successful latencies in arrival order."""
        return [s.latency_ms for s in self.samples if s.ok]

    def methods(self) -> Dict[str, int]:
        return dict(self._methods)

    def finish(self):
        if self.finished_at is None:
            self.finished_at = datetime.now()
