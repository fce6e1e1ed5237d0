"""
Sliding window of recent successful latencies, used for charting.
"""

from collections import deque
from typing import List, Optional

DEFAULT_WINDOW_SIZE = 50


class LatencyWindow:
    """Fixed-size FIFO of the most recent successful latencies."""

    def __init__(self, maxlen: int = DEFAULT_WINDOW_SIZE):
        if maxlen < 1:
            raise ValueError("maxlen must be positive")
        self.maxlen = maxlen
        self._values: deque = deque(maxlen=maxlen)

    def add(self, latency_ms: float):
        """Append a latency, evicting the oldest one at capacity."""
        self._values.append(latency_ms)

    def values(self) -> List[float]:
        return list(self._values)

    def get_average(self) -> Optional[float]:
        """Return average latency of the window, None when empty."""
        if not self._values:
            return None
        return sum(self._values) / len(self._values)

    def clear(self):
        self._values.clear()

    def __len__(self) -> int:
        return len(self._values)

    def __iter__(self):
        return iter(self._values)
