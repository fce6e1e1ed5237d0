"""
NetPulse engine - the facade the CLI and web surface talk to.

Owns the shared aiohttp session used by the HTTP transport, the Prober, the
Comparator and the Session Manager, and keeps a registry of run handles so
snapshots stay queryable after a run ends.
"""

import asyncio
import itertools
from dataclasses import dataclass
from typing import Dict, List, Optional, Sequence

import aiohttp
from loguru import logger

from .comparator import Comparator, DEFAULT_SORT_KEY, resort as resort_report
from .errors import InvalidArgument, UnknownRun
from .models import (
    ComparisonReport,
    MonitoringSession,
    ProbeResult,
    RunMode,
    RunSummary,
    SessionSummary,
    StatsSnapshot,
)
from .prober import Prober, Transport
from .sampler import Sampler, SampleListener
from .sessions import SessionListener, SessionManager
from .settings import Settings
from .targets import DNS_SERVERS
from .transports import build_transports


@dataclass(frozen=True)
class RunHandle:
    run_id: str
    target: str
    mode: RunMode


class NetPulseEngine:
    """Measurement engine: runs, comparisons and monitoring sessions."""

    def __init__(
        self,
        settings: Optional[Settings] = None,
        transports: Optional[Sequence[Transport]] = None,
        seed: Optional[int] = None,
    ):
        self.settings = settings or Settings()

        self._session: Optional[aiohttp.ClientSession] = None
        self._session_lock = asyncio.Lock()

        if transports is None:
            transports = build_transports(
                self.settings['transports'],
                session_provider=self._get_session,
                tcp_port=self.settings['tcp_port'],
                http_method=self.settings['http_method'],
                seed=seed,
            )
        self.prober = Prober(transports, timeout_ms=self.settings['timeout_ms'])
        self.comparator = Comparator(
            self.new_sampler,
            max_concurrent=self.settings['max_concurrent'],
            interval_ms=max(200, self.settings['min_interval_ms']),
        )
        self.sessions = SessionManager(self.new_sampler)

        self._runs: Dict[str, Sampler] = {}
        self._session_runs: Dict[str, str] = {}   # run_id -> session_id
        self._ids = itertools.count(1)

        logger.debug(
            f"Engine ready: transports={[t.name for t in self.prober.transports]} "
            f"timeout={self.prober.timeout_ms}ms"
        )

    def new_sampler(self) -> Sampler:
        return Sampler(
            self.prober,
            window_size=self.settings['window_size'],
            min_interval_ms=self.settings['min_interval_ms'],
        )

    # ──────────────────────────────────────────────────────────────────
    # HTTP session management
    # ──────────────────────────────────────────────────────────────────

    async def _get_session(self) -> aiohttp.ClientSession:
        async with self._session_lock:
            if self._session is None or self._session.closed:
                connector = aiohttp.TCPConnector(
                    limit=self.settings['max_concurrent'] * 2,
                    limit_per_host=2,
                    ttl_dns_cache=60,
                    force_close=True,
                )
                self._session = aiohttp.ClientSession(
                    connector=connector,
                    headers={"User-Agent": "NetPulse/1.0 (latency probe)"},
                )
            return self._session

    async def _close_session(self):
        async with self._session_lock:
            if self._session and not self._session.closed:
                await self._session.close()
            self._session = None

    async def __aenter__(self):
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        await self.shutdown()

    # ──────────────────────────────────────────────────────────────────
    # Runs
    # ──────────────────────────────────────────────────────────────────

    async def start_run(
        self,
        target: str,
        mode: RunMode = RunMode.FIXED_COUNT,
        count: Optional[int] = None,
        interval_ms: Optional[int] = None,
        listener: Optional[SampleListener] = None,
    ) -> RunHandle:
        interval_ms = self.settings['interval_ms'] if interval_ms is None else interval_ms
        run_id = f"run-{next(self._ids)}"

        if mode is RunMode.PUSH_INTERVAL:
            session_listener = None
            if listener is not None:
                def session_listener(update):
                    return listener(update.sample, update.snapshot)
            session = await self.sessions.start_session(
                run_id, target, interval_ms, listener=session_listener
            )
            self._runs[run_id] = self.sessions.sampler(run_id)
            self._session_runs[run_id] = run_id
            return RunHandle(run_id, session.target, mode)

        sampler = self.new_sampler()
        sampler.listener = listener
        sampler.start(target, mode, interval_ms, count)
        self._runs[run_id] = sampler
        return RunHandle(run_id, sampler.state.target, mode)

    def _sampler(self, handle: RunHandle) -> Sampler:
        try:
            return self._runs[handle.run_id]
        except KeyError:
            raise UnknownRun(handle.run_id) from None

    async def stop_run(self, handle: RunHandle) -> RunSummary:
        """Stop a run of any mode. The handle stays queryable until forget()."""
        sampler = self._sampler(handle)
        session_id = self._session_runs.pop(handle.run_id, None)
        if session_id is not None:
            await self.sessions.stop_session(session_id)
        return sampler.stop()

    async def wait_run(self, handle: RunHandle) -> RunSummary:
        """Wait for a fixed-count run to finish by itself."""
        if handle.mode is not RunMode.FIXED_COUNT:
            raise InvalidArgument("only fixed-count runs finish by themselves")
        return await self._sampler(handle).wait()

    def get_snapshot(self, handle: RunHandle) -> StatsSnapshot:
        return self._sampler(handle).snapshot()

    def forget(self, handle: RunHandle):
        """Drop a finished run from the registry."""
        sampler = self._runs.get(handle.run_id)
        if sampler is not None and sampler.is_running:
            raise InvalidArgument(f"{handle.run_id} is still running")
        self._runs.pop(handle.run_id, None)
        self._session_runs.pop(handle.run_id, None)

    async def ping_once(self, target: str) -> ProbeResult:
        return await self.prober.probe(target)

    # ──────────────────────────────────────────────────────────────────
    # Comparison
    # ──────────────────────────────────────────────────────────────────

    async def compare_all(
        self,
        targets: Optional[Sequence[str]] = None,
        tests_per_target: Optional[int] = None,
        sort_key: str = DEFAULT_SORT_KEY,
        concurrent: bool = True,
    ) -> ComparisonReport:
        return await self.comparator.compare_all(
            DNS_SERVERS if targets is None else targets,
            self.settings['tests_per_target'] if tests_per_target is None else tests_per_target,
            sort_key=sort_key,
            concurrent=concurrent,
        )

    @staticmethod
    def resort(report: ComparisonReport, sort_key: str) -> ComparisonReport:
        return resort_report(report, sort_key)

    # ──────────────────────────────────────────────────────────────────
    # Sessions
    # ──────────────────────────────────────────────────────────────────

    async def start_session(
        self,
        session_id: str,
        target: str,
        interval_ms: Optional[int] = None,
        owner=None,
        listener: Optional[SessionListener] = None,
    ) -> MonitoringSession:
        interval_ms = self.settings['interval_ms'] if interval_ms is None else interval_ms
        return await self.sessions.start_session(session_id, target, interval_ms, owner, listener)

    async def stop_session(self, session_id: str) -> Optional[SessionSummary]:
        return await self.sessions.stop_session(session_id)

    async def stop_owner(self, owner) -> List[SessionSummary]:
        return await self.sessions.stop_owner(owner)

    # ──────────────────────────────────────────────────────────────────
    # Shutdown
    # ──────────────────────────────────────────────────────────────────

    async def shutdown(self):
        """Stop every run and session, then release network resources."""
        stopped = await self.sessions.stop_all()
        samplers = list(self._runs.values())
        for sampler in samplers:
            sampler.stop()
        await asyncio.gather(*(s.join() for s in samplers), return_exceptions=True)
        await self._close_session()
        logger.info(f"Engine shut down ({len(stopped)} session(s), {len(samplers)} run(s))")
