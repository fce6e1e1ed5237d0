"""
Sampler: drives repeated probing of one target.

State machine IDLE -> RUNNING -> IDLE. Each run owns a fresh RunState and its
own stop event, so a late result from a previous run can never leak into the
next one. The inter-probe sleep waits on the stop event, so stop() takes
effect before the next dispatch rather than at the next tick.
"""

import asyncio
import inspect
from datetime import datetime
from typing import Any, Callable, Optional

from loguru import logger

from . import quality
from .errors import InvalidArgument
from .latency_window import DEFAULT_WINDOW_SIZE
from .models import RunMode, RunStatus, RunSummary, Sample, StatsSnapshot
from .prober import Prober
from .run_state import RunState
from .statistics import compute_snapshot

DEFAULT_MIN_INTERVAL_MS = 100

# listener(sample, snapshot); may be a coroutine function
SampleListener = Callable[[Sample, StatsSnapshot], Any]


class _Run:
    """Bookkeeping for one start-to-stop cycle."""

    def __init__(self, state: RunState):
        self.state = state
        self.stop_event = asyncio.Event()
        self.task: Optional[asyncio.Task] = None
        self.summary: Optional[RunSummary] = None


class Sampler:
    """Repeated probing of a single target in one of the RunMode modes."""

    def __init__(
        self,
        prober: Prober,
        window_size: int = DEFAULT_WINDOW_SIZE,
        min_interval_ms: int = DEFAULT_MIN_INTERVAL_MS,
        listener: Optional[SampleListener] = None,
    ):
        self.prober = prober
        self.window_size = window_size
        self.min_interval_ms = min_interval_ms
        self.listener = listener
        self._run: Optional[_Run] = None

    # ──────────────────────────────────────────────────────────────────
    # State
    # ──────────────────────────────────────────────────────────────────

    @property
    def status(self) -> RunStatus:
        if self._run is not None and self._run.summary is None:
            return RunStatus.RUNNING
        return RunStatus.IDLE

    @property
    def is_running(self) -> bool:
        return self.status is RunStatus.RUNNING

    @property
    def state(self) -> Optional[RunState]:
        return self._run.state if self._run else None

    @property
    def summary(self) -> Optional[RunSummary]:
        return self._run.summary if self._run else None

    def snapshot(self) -> StatsSnapshot:
        """Statistics of the current (or last) run as of now."""
        if self._run is None:
            return compute_snapshot(RunState(target="", window_size=self.window_size))
        return compute_snapshot(self._run.state)

    # ──────────────────────────────────────────────────────────────────
    # Control
    # ──────────────────────────────────────────────────────────────────

    def start(
        self,
        target: str,
        mode: RunMode = RunMode.FIXED_COUNT,
        interval_ms: int = 1000,
        count: Optional[int] = None,
    ):
        """Validate, reset the run state and launch the probe loop."""
        if not target or not target.strip():
            raise InvalidArgument("target cannot be empty")
        if interval_ms < self.min_interval_ms:
            raise InvalidArgument(
                f"interval_ms must be at least {self.min_interval_ms}, got {interval_ms}"
            )
        if mode is RunMode.FIXED_COUNT:
            if count is None or count < 1:
                raise InvalidArgument(f"count must be at least 1 for a fixed-count run, got {count}")
        else:
            count = None

        if self.is_running:
            logger.info(f"Restarting sampler: stopping run on {self._run.state.target}")
            self.stop()

        target = target.strip()
        run = _Run(RunState(target=target, mode=mode, window_size=self.window_size))
        self._run = run
        run.task = asyncio.get_running_loop().create_task(
            self._loop(run, interval_ms / 1000, count),
            name=f"sampler:{target}",
        )
        logger.info(
            f"Run started: {target} mode={mode.value} interval={interval_ms}ms"
            + (f" count={count}" if count else "")
        )

    def stop(self) -> Optional[RunSummary]:
        """
        End the current run and return its summary.

        Safe when idle: returns the finished run's summary (the same object on
        every call), or None if nothing ever ran. An in-flight probe is not
        aborted; its result is dropped when it arrives.
        """
        run = self._run
        if run is None:
            return None
        run.stop_event.set()
        return self._finalize(run)

    async def wait(self) -> Optional[RunSummary]:
        """Wait for the current run's loop to exit and return its summary."""
        run = self._run
        if run is None:
            return None
        if run.task is not None:
            await asyncio.shield(run.task)
        return self._finalize(run)

    async def join(self):
        """Wait until the loop task has fully exited (after stop())."""
        run = self._run
        if run is not None and run.task is not None:
            await asyncio.gather(run.task, return_exceptions=True)

    # ──────────────────────────────────────────────────────────────────
    # Loop
    # ──────────────────────────────────────────────────────────────────

    async def _loop(self, run: _Run, interval_s: float, count: Optional[int]):
        state = run.state
        done = 0
        try:
            while not run.stop_event.is_set():
                result = await self.prober.probe(state.target)

                if run.stop_event.is_set():
                    logger.debug(f"Dropping probe result for {state.target} received after stop")
                    break

                sample = state.record(result)
                done += 1
                self._log_sample(state.target, sample)
                await self._notify(sample, compute_snapshot(state))

                if count is not None and done >= count:
                    break
                if run.stop_event.is_set():
                    break

                try:
                    await asyncio.wait_for(run.stop_event.wait(), timeout=interval_s)
                except asyncio.TimeoutError:
                    pass
        except Exception as e:
            logger.error(f"Probe loop for {state.target} crashed: {e}", exc_info=True)
        finally:
            self._finalize(run)

    async def _notify(self, sample: Sample, snapshot: StatsSnapshot):
        if self.listener is None:
            return
        try:
            outcome = self.listener(sample, snapshot)
            if inspect.isawaitable(outcome):
                await outcome
        except Exception as e:
            logger.warning(f"Sample listener failed: {e!r}")

    def _finalize(self, run: _Run) -> RunSummary:
        if run.summary is None:
            state = run.state
            state.finish()
            snapshot = compute_snapshot(state)
            run.summary = RunSummary(
                target=state.target,
                mode=state.mode,
                snapshot=snapshot,
                quality=quality.evaluate(snapshot),
                started_at=state.started_at,
                finished_at=state.finished_at or datetime.now(),
                methods=state.methods(),
            )
            logger.info(quality.format_summary(run.summary))
        return run.summary

    @staticmethod
    def _log_sample(target: str, sample: Sample):
        if sample.ok:
            logger.debug(
                f"Test #{sample.sequence} {target}: {sample.latency_ms:.2f}ms - "
                f"{quality.latency_label(sample.latency_ms)} ({sample.method})"
            )
        else:
            logger.debug(
                f"Test #{sample.sequence} {target}: {sample.failure.value} ({sample.cause})"
            )
