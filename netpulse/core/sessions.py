"""
Session Manager: named push-interval monitoring loops.

The registry is shared by every connection handler. Start, stop and owner
cleanup all run under one asyncio.Lock, so "stop the existing session, then
insert the new one" is a single step nobody can observe half-done.
"""

import asyncio
from datetime import datetime
from typing import Any, Callable, Dict, List, Optional

from loguru import logger

from .errors import InvalidArgument
from .models import (
    MonitoringSession,
    RunMode,
    Sample,
    SessionSummary,
    SessionUpdate,
    StatsSnapshot,
)
from .sampler import Sampler

# listener(update); may be a coroutine function
SessionListener = Callable[[SessionUpdate], Any]


class _Entry:
    def __init__(self, session: MonitoringSession, sampler: Sampler):
        self.session = session
        self.sampler = sampler


class SessionManager:
    """Registry of active monitoring sessions keyed by caller-supplied id."""

    def __init__(self, sampler_factory: Callable[[], Sampler]):
        self.sampler_factory = sampler_factory
        self._sessions: Dict[str, _Entry] = {}
        self._lock = asyncio.Lock()

    # ──────────────────────────────────────────────────────────────────
    # Queries
    # ──────────────────────────────────────────────────────────────────

    def get(self, session_id: str) -> Optional[MonitoringSession]:
        entry = self._sessions.get(session_id)
        return entry.session if entry else None

    def sampler(self, session_id: str) -> Optional[Sampler]:
        entry = self._sessions.get(session_id)
        return entry.sampler if entry else None

    def active(self) -> List[MonitoringSession]:
        return [e.session for e in self._sessions.values()]

    def __len__(self) -> int:
        return len(self._sessions)

    def __contains__(self, session_id: str) -> bool:
        return session_id in self._sessions

    # ──────────────────────────────────────────────────────────────────
    # Control
    # ──────────────────────────────────────────────────────────────────

    async def start_session(
        self,
        session_id: str,
        target: str,
        interval_ms: int,
        owner: Optional[Any] = None,
        listener: Optional[SessionListener] = None,
    ) -> MonitoringSession:
        """Start (or restart) a session; an active session with the same id is stopped first."""
        if not session_id:
            raise InvalidArgument("sessionId is required")
        if not target or not target.strip():
            raise InvalidArgument("target cannot be empty")

        sampler = self.sampler_factory()
        if interval_ms < sampler.min_interval_ms:
            raise InvalidArgument(
                f"interval_ms must be at least {sampler.min_interval_ms}, got {interval_ms}"
            )
        if listener is not None:
            sampler.listener = self._forwarder(session_id, listener)

        async with self._lock:
            previous = self._sessions.pop(session_id, None)
            if previous is not None:
                logger.info(f"Session {session_id} already active, restarting")
                self._stop_entry(previous)

            sampler.start(target, RunMode.PUSH_INTERVAL, interval_ms)
            session = MonitoringSession(
                session_id=session_id,
                target=sampler.state.target,
                interval_ms=interval_ms,
                started_at=datetime.now(),
                owner=owner,
            )
            self._sessions[session_id] = _Entry(session, sampler)

        logger.info(f"Starting monitoring session {session_id} for {session.target}")
        return session

    async def stop_session(self, session_id: str) -> Optional[SessionSummary]:
        """Stop a session; unknown ids are a no-op returning None."""
        async with self._lock:
            entry = self._sessions.pop(session_id, None)
            if entry is None:
                logger.debug(f"stop_session: no active session {session_id}")
                return None
            return self._stop_entry(entry)

    async def stop_owner(self, owner: Any) -> List[SessionSummary]:
        """Stop every session started by a connection that went away."""
        async with self._lock:
            ids = [sid for sid, e in self._sessions.items() if e.session.owner is owner]
            summaries = [self._stop_entry(self._sessions.pop(sid)) for sid in ids]
        if summaries:
            logger.info(f"Connection closed: stopped {len(summaries)} session(s)")
        return summaries

    async def stop_all(self) -> List[SessionSummary]:
        async with self._lock:
            entries = list(self._sessions.values())
            self._sessions.clear()
            return [self._stop_entry(e) for e in entries]

    # ──────────────────────────────────────────────────────────────────
    # Helpers
    # ──────────────────────────────────────────────────────────────────

    @staticmethod
    def _stop_entry(entry: _Entry) -> SessionSummary:
        run = entry.sampler.stop()
        duration_ms = (datetime.now() - entry.session.started_at).total_seconds() * 1000
        logger.info(f"Stopped monitoring session {entry.session.session_id} after {duration_ms:.0f}ms")
        return SessionSummary(session=entry.session, run=run, duration_ms=duration_ms)

    @staticmethod
    def _forwarder(session_id: str, listener: SessionListener):
        def forward(sample: Sample, snapshot: StatsSnapshot):
            return listener(SessionUpdate(session_id=session_id, sample=sample, snapshot=snapshot))
        return forward
