"""
Test doubles for the measurement engine.

    >>> from tests.doubles import ScriptedTransport, make_sampler
"""

import asyncio
import itertools
import time

from netpulse.core.errors import TransportError
from netpulse.core.prober import Prober
from netpulse.core.sampler import Sampler

TIMEOUT = "timeout"
UNREACHABLE = "unreachable"


class ScriptedTransport:
    """Replays a script of outcomes: a float latency, TIMEOUT, UNREACHABLE or an exception."""

    name = "scripted"

    def __init__(self, script, repeat=True, delay=0.0, name=None):
        self._script = itertools.cycle(script) if repeat else iter(script)
        self.delay = delay
        self.calls = []
        self.call_log = []      # (target, monotonic time) per measure call
        self.in_flight = 0
        self.max_in_flight = 0
        if name:
            self.name = name

    async def measure(self, target, timeout):
        self.calls.append(target)
        self.call_log.append((target, time.monotonic()))
        self.in_flight += 1
        self.max_in_flight = max(self.max_in_flight, self.in_flight)
        try:
            if self.delay:
                await asyncio.sleep(self.delay)
            outcome = next(self._script)
        finally:
            self.in_flight -= 1

        if outcome == TIMEOUT:
            raise asyncio.TimeoutError()
        if outcome == UNREACHABLE:
            raise TransportError("connection refused")
        if isinstance(outcome, BaseException):
            raise outcome
        return outcome


class PerTargetTransport:
    """Routes each target to its own ScriptedTransport and tracks overall concurrency."""

    name = "per-target"

    def __init__(self, scripts, delay=0.0):
        self.transports = {t: ScriptedTransport(s, delay=delay) for t, s in scripts.items()}
        self.in_flight = 0
        self.max_in_flight = 0

    async def measure(self, target, timeout):
        self.in_flight += 1
        self.max_in_flight = max(self.max_in_flight, self.in_flight)
        try:
            return await self.transports[target].measure(target, timeout)
        finally:
            self.in_flight -= 1


class HangingTransport:
    """Never answers within any sane timeout."""

    name = "hang"

    async def measure(self, target, timeout):
        await asyncio.sleep(10)
        return 1.0


def make_sampler(transport, timeout_ms=500, window_size=50, listener=None):
    """Sampler with a 1 ms interval floor so tests run quickly."""
    prober = Prober([transport], timeout_ms=timeout_ms)
    return Sampler(prober, window_size=window_size, min_interval_ms=1, listener=listener)
