"""
Round-trip transports.

Each transport measures one round trip and returns the latency in
milliseconds, or raises: asyncio.TimeoutError when it ran out of time,
anything else (TransportError, OSError, aiohttp.ClientError) when the target
could not be reached. The Prober owns timeout enforcement and classification.
"""

import asyncio
import platform
import random
import re
import time
from math import ceil
from typing import Awaitable, Callable, List, Optional, Sequence

import aiohttp
from loguru import logger

from .errors import InvalidArgument, TransportError

SessionProvider = Callable[[], Awaitable[aiohttp.ClientSession]]

_IPV4_RE = re.compile(r"^\d{1,3}\.\d{1,3}\.\d{1,3}\.\d{1,3}$")
_PING_LESS_THAN_RE = re.compile(r"time<(\d+(?:\.\d+)?)", re.IGNORECASE)
_PING_TIME_RE = re.compile(r"time\s*=\s*(\d+(?:\.\d+)?)\s*ms", re.IGNORECASE)


def extract_host(target: str) -> str:
    """Hostname part of a URL or bare host."""
    if "://" in target:
        target = target.split("://", 1)[1]
    return target.split("/")[0]


def normalize_url(target: str) -> str:
    """Bare IPv4 literals get http://, other bare hosts https://."""
    if target.startswith(("http://", "https://")):
        return target
    if _IPV4_RE.match(extract_host(target)):
        return f"http://{target}"
    return f"https://{target}"


def parse_ping_latency_ms(output: str) -> Optional[float]:
    """
    Latency from `ping` output, or None.

    Handles "time=12.3 ms" (Linux/macOS/Windows) and Windows "time<1ms",
    which is read as half the bound.
    """
    if not output:
        return None
    match = _PING_LESS_THAN_RE.search(output)
    if match:
        return float(match.group(1)) / 2.0
    match = _PING_TIME_RE.search(output)
    if match:
        return float(match.group(1))
    return None


class IcmpTransport:
    """ICMP echo through the system `ping` binary."""

    name = "icmp"

    def __init__(self, system: Optional[str] = None):
        self.system = system or platform.system()

    def build_command(self, host: str, timeout: float) -> List[str]:
        if self.system == "Windows":
            return ["ping", "-n", "1", "-w", str(int(timeout * 1000)), host]
        if self.system == "Linux":
            return ["ping", "-c", "1", "-W", str(max(1, ceil(timeout))), host]
        # macOS/BSD: -W differs, the Prober's deadline bounds the call
        return ["ping", "-c", "1", host]

    async def measure(self, target: str, timeout: float) -> float:
        host = extract_host(target)
        proc = await asyncio.create_subprocess_exec(
            *self.build_command(host, timeout),
            stdout=asyncio.subprocess.PIPE,
            stderr=asyncio.subprocess.STDOUT,
        )
        try:
            stdout, _ = await proc.communicate()
        except asyncio.CancelledError:
            proc.kill()
            raise

        output = stdout.decode(errors="replace")
        if proc.returncode != 0:
            raise TransportError(f"ping exited with {proc.returncode}")

        latency = parse_ping_latency_ms(output)
        if latency is None:
            logger.debug(f"Unparseable ping output for {host}: {output[:100]!r}")
            raise TransportError("could not parse ping output")
        return latency


class TcpConnectTransport:
    """Time to complete a TCP handshake."""

    name = "tcp"

    def __init__(self, port: int = 443):
        self.port = port

    async def measure(self, target: str, timeout: float) -> float:
        host = extract_host(target)
        start = time.monotonic()
        reader, writer = await asyncio.wait_for(
            asyncio.open_connection(host, self.port),
            timeout=timeout,
        )
        latency = (time.monotonic() - start) * 1000
        writer.close()
        try:
            await writer.wait_closed()
        except OSError:
            pass
        return latency


class HttpHeadTransport:
    """HTTP request round trip; any HTTP response counts as an answer."""

    name = "http"

    def __init__(self, session_provider: SessionProvider, method: str = "HEAD"):
        self._session_provider = session_provider
        self.method = method

    async def measure(self, target: str, timeout: float) -> float:
        session = await self._session_provider()
        url = normalize_url(target)
        client_timeout = aiohttp.ClientTimeout(
            total=timeout,
            connect=timeout / 2,
            sock_read=timeout,
        )
        start = time.monotonic()
        async with session.request(
            self.method,
            url,
            timeout=client_timeout,
            allow_redirects=False,
        ) as response:
            latency = (time.monotonic() - start) * 1000
            logger.debug(f"HTTP {self.method} {url} → {response.status} in {latency:.1f}ms")
        return latency


class FakeTransport:
    """Simulated latencies for offline use: gaussian noise, spikes and loss."""

    name = "fake"

    def __init__(self, seed: Optional[int] = None, realtime: bool = False):
        self._random = random.Random(seed)
        self.realtime = realtime

        self.base_latency = 25.0
        self.latency_variance = 5.0
        self.spike_probability = 0.05
        self.spike_multiplier = 3.0
        self.loss_probability = 0.02

    async def measure(self, target: str, timeout: float) -> float:
        if self._random.random() < self.loss_probability:
            raise TransportError("simulated packet loss")

        if self._random.random() < self.spike_probability:
            latency = self.base_latency * self.spike_multiplier
        else:
            latency = self.base_latency
        latency = round(max(0.1, latency + self._random.gauss(0, self.latency_variance)), 2)

        if self.realtime:
            await asyncio.sleep(latency / 1000)
        return latency


TRANSPORT_NAMES = ("icmp", "tcp", "http", "fake")


def build_transports(
    names: Sequence[str],
    session_provider: Optional[SessionProvider] = None,
    tcp_port: int = 443,
    http_method: str = "HEAD",
    seed: Optional[int] = None,
) -> list:
    """Ordered transport chain from configuration names."""
    if not names:
        raise InvalidArgument("at least one transport is required")

    chain = []
    for name in names:
        if name == "icmp":
            chain.append(IcmpTransport())
        elif name == "tcp":
            chain.append(TcpConnectTransport(port=tcp_port))
        elif name == "http":
            if session_provider is None:
                raise InvalidArgument("http transport needs an aiohttp session provider")
            chain.append(HttpHeadTransport(session_provider, method=http_method))
        elif name == "fake":
            chain.append(FakeTransport(seed=seed, realtime=True))
        else:
            raise InvalidArgument(
                f"Unknown transport '{name}' (expected one of {', '.join(TRANSPORT_NAMES)})"
            )
    return chain
