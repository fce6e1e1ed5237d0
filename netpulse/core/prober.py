"""
Prober: one latency measurement with a hard timeout.

Transports are tried in order within a single timeout budget; the first
success wins. A failed probe never reports a latency, even when the
transport gave up before the timeout (e.g. connection refused).
"""

import asyncio
from typing import List, Optional, Protocol, Sequence

from loguru import logger

from .errors import InvalidArgument
from .models import FailureKind, ProbeResult


class Transport(Protocol):
    """Capability: measure one round trip to a target."""

    name: str

    async def measure(self, target: str, timeout: float) -> float:
        """Return latency in milliseconds or raise."""
        ...


class Prober:
    """Issues single probes through an ordered transport chain."""

    def __init__(self, transports: Sequence[Transport], timeout_ms: int = 2000):
        if not transports:
            raise InvalidArgument("Prober needs at least one transport")
        if timeout_ms <= 0:
            raise InvalidArgument("timeout_ms must be positive")
        self.transports: List[Transport] = list(transports)
        self.timeout_ms = timeout_ms

    async def probe(self, target: str, timeout_ms: Optional[int] = None) -> ProbeResult:
        timeout_ms = self.timeout_ms if timeout_ms is None else timeout_ms
        if not target or not target.strip():
            raise InvalidArgument("target cannot be empty")
        if timeout_ms <= 0:
            raise InvalidArgument("timeout_ms must be positive")

        loop = asyncio.get_running_loop()
        deadline = loop.time() + timeout_ms / 1000
        causes: List[str] = []
        all_timed_out = True

        for transport in self.transports:
            remaining = deadline - loop.time()
            if remaining <= 0:
                break

            try:
                latency = await asyncio.wait_for(
                    transport.measure(target, remaining),
                    timeout=remaining,
                )
            except asyncio.TimeoutError:
                causes.append(f"{transport.name}: timed out")
                continue
            except Exception as e:
                all_timed_out = False
                causes.append(f"{transport.name}: {str(e) or type(e).__name__}")
                logger.debug(f"{transport.name} probe to {target} failed: {e!r}")
                continue

            if latency is None or latency < 0:
                all_timed_out = False
                causes.append(f"{transport.name}: invalid latency {latency!r}")
                continue

            return ProbeResult(target=target, latency_ms=float(latency), method=transport.name)

        if all_timed_out or loop.time() >= deadline:
            return ProbeResult(
                target=target,
                failure=FailureKind.TIMEOUT,
                cause=f"no reply within {timeout_ms}ms",
            )
        return ProbeResult(
            target=target,
            failure=FailureKind.UNREACHABLE,
            cause="; ".join(causes),
        )
