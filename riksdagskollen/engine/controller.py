"""Resumable, cooperatively cancellable batch controller."""

from __future__ import annotations

import asyncio
import time
import uuid
from dataclasses import dataclass
from typing import Awaitable, Callable, Protocol, Sequence

import structlog

from ..state import (
    ErrorKind,
    JobState,
    JobStatus,
    ResumeState,
    UnitOutcome,
    WorkUnit,
    utcnow,
)
from .checkpoint import CheckpointConflict, CheckpointStore
from .projection import estimate_eta

Sleep = Callable[[float], Awaitable[None]]
ProgressCallback = Callable[[JobState], None]

SYSTEM_UNIT = "System"


class JobAlreadyRunning(RuntimeError):
    """Raised when ``start`` is called while a run is in progress."""


class UnitSource(Protocol):
    async def load_units(self, limit: int) -> list[WorkUnit]: ...


class UnitPipeline(Protocol):
    def begin_run(self) -> None: ...

    async def process(self, unit: WorkUnit) -> UnitOutcome: ...


@dataclass
class JobSignals:
    """Flags observed by the loop at unit boundaries."""

    paused: bool = False
    cancelled: bool = False


@dataclass
class StartOptions:
    max_units: int = 50
    delay_between_units: float = 3.0
    on_progress: ProgressCallback | None = None
    resume_from_index: int | None = None
    resume_state: ResumeState | None = None


class ResumableJobController:
    """Process units strictly one at a time, checkpointing as it goes."""

    def __init__(
        self,
        units: UnitSource,
        pipeline: UnitPipeline,
        checkpoints: CheckpointStore | None = None,
        *,
        checkpoint_every: int = 5,
        pause_poll_interval: float = 0.5,
        sleep: Sleep = asyncio.sleep,
        clock: Callable[[], float] = time.monotonic,
        logger: structlog.BoundLogger | None = None,
        job_name: str = "batch",
    ) -> None:
        self.units = units
        self.pipeline = pipeline
        self.checkpoints = checkpoints
        self.checkpoint_every = checkpoint_every
        self.pause_poll_interval = pause_poll_interval
        self.job_name = job_name
        self.state = JobState()
        self._sleep = sleep
        self._clock = clock
        self._signals: JobSignals | None = None
        self._checkpointing = True
        self.logger = logger or structlog.get_logger("riksdagskollen.controller")

    @property
    def running(self) -> bool:
        return self._signals is not None

    def pause(self) -> None:
        if self._signals is not None:
            self._signals.paused = True

    def resume(self) -> None:
        if self._signals is not None:
            self._signals.paused = False

    def stop(self) -> None:
        if self._signals is not None:
            self._signals.cancelled = True

    async def start(self, options: StartOptions) -> JobState:
        if self._signals is not None:
            raise JobAlreadyRunning(f"Job {self.job_name} is already running")
        signals = JobSignals()
        self._signals = signals
        try:
            return await self._run(options, signals)
        finally:
            self._signals = None

    # ------------------------------------------------------------------
    async def _run(self, options: StartOptions, signals: JobSignals) -> JobState:
        state = JobState(
            status=JobStatus.RUNNING,
            started_at=utcnow(),
            session_id=uuid.uuid4().hex,
        )
        self.state = state
        self._checkpointing = True
        self.pipeline.begin_run()
        self.logger.info("job_started", job=self.job_name, session=state.session_id)

        try:
            roster = await self.units.load_units(self._load_limit(options))
        except Exception as exc:  # noqa: BLE001
            state.status = JobStatus.ERROR
            state.record_error(SYSTEM_UNIT, str(exc) or exc.__class__.__name__, ErrorKind.SYSTEM)
            self.logger.error("unit_list_failed", job=self.job_name, error=str(exc))
            self._emit(options, state)
            return state

        units, start = self._plan(roster, options, state)
        unit_ids = [unit.id for unit in units]
        self._checkpoint(state, unit_ids, force=True)
        self._emit(options, state)

        run_started = self._clock()
        processed_this_run = 0
        for index in range(start, len(units)):
            unit = units[index]
            if signals.cancelled:
                return self._halt(options, state, unit_ids)
            if signals.paused:
                state.status = JobStatus.PAUSED
                self._checkpoint(state, unit_ids)
                self._emit(options, state)
                self.logger.info("job_paused", job=self.job_name, index=index)
                while signals.paused and not signals.cancelled:
                    await self._sleep(self.pause_poll_interval)
                if signals.cancelled:
                    return self._halt(options, state, unit_ids)
                state.status = JobStatus.RUNNING
                self.logger.info("job_resumed", job=self.job_name, index=index)

            state.current_unit_name = unit.display_name
            self._emit(options, state)
            try:
                outcome = await self.pipeline.process(unit)
            except Exception as exc:  # noqa: BLE001
                self.logger.exception("unit_crashed", job=self.job_name, unit=unit.id)
                outcome = UnitOutcome.failed(str(exc) or exc.__class__.__name__, ErrorKind.SYSTEM)
            self._apply(state, unit, outcome)

            state.processed_count += 1
            state.last_processed_index = index
            processed_this_run += 1
            remaining = len(units) - index - 1
            state.eta_seconds = estimate_eta(self._clock() - run_started, processed_this_run, remaining)
            self._emit(options, state)

            if (index + 1) % self.checkpoint_every == 0:
                self._checkpoint(state, unit_ids)
            if remaining > 0 and options.delay_between_units > 0:
                await self._sleep(options.delay_between_units)

        state.status = JobStatus.COMPLETED
        state.current_unit_name = ""
        state.eta_seconds = 0.0
        if self.checkpoints is not None:
            self.checkpoints.clear(state.session_id)
        self.logger.info(
            "job_completed",
            job=self.job_name,
            processed=state.processed_count,
            success=state.success_count,
            failure=state.failure_count,
            new_records=state.new_record_count,
        )
        self._emit(options, state)
        return state

    @staticmethod
    def _load_limit(options: StartOptions) -> int:
        # Saved ids may outnumber the current limit
        if options.resume_state is not None:
            return max(options.max_units, len(options.resume_state.unit_ids))
        return options.max_units

    def _plan(
        self, roster: Sequence[WorkUnit], options: StartOptions, state: JobState
    ) -> tuple[list[WorkUnit], int]:
        resume = options.resume_state
        if resume is not None:
            by_id = {unit.id: unit for unit in roster}
            units = [by_id.get(uid) or WorkUnit(id=uid, display_name=uid) for uid in resume.unit_ids]
            resume.cumulative_counts.seed(state)
            state.started_at = resume.started_at
            state.last_processed_index = resume.last_processed_index
            if resume.total_units:
                state.total_units = min(resume.total_units, len(units))
            else:
                state.total_units = len(units)
            start = min(resume.next_index, len(units))
            self.logger.info("job_resuming", job=self.job_name, start=start, total=len(units))
            return units, start

        units = list(roster)
        start = min(max(options.resume_from_index or 0, 0), len(units))
        state.total_units = len(units) - start
        state.last_processed_index = start - 1
        return units, start

    def _apply(self, state: JobState, unit: WorkUnit, outcome: UnitOutcome) -> None:
        if outcome.success:
            state.success_count += 1
            state.new_record_count += outcome.new_records
            if outcome.skipped:
                state.skipped_count += 1
            self.logger.info(
                "unit_processed",
                job=self.job_name,
                unit=unit.id,
                new_records=outcome.new_records,
                skipped=outcome.skipped,
            )
            return
        state.failure_count += 1
        state.record_error(unit.display_name, outcome.error or "unknown error", outcome.kind)
        self.logger.warning(
            "unit_failed",
            job=self.job_name,
            unit=unit.id,
            kind=outcome.kind.value,
            error=outcome.error,
        )

    def _halt(self, options: StartOptions, state: JobState, unit_ids: list[str]) -> JobState:
        state.status = JobStatus.PAUSED
        self._checkpoint(state, unit_ids)
        self.logger.info("job_stopped", job=self.job_name, last_index=state.last_processed_index)
        self._emit(options, state)
        return state

    def _checkpoint(self, state: JobState, unit_ids: list[str], force: bool = False) -> None:
        if self.checkpoints is None or not self._checkpointing:
            return
        try:
            self.checkpoints.save(ResumeState.from_job_state(state, unit_ids), force=force)
        except CheckpointConflict as exc:
            self._checkpointing = False
            self.logger.warning("checkpoint_conflict", job=self.job_name, error=str(exc))
            return
        except OSError as exc:
            self.logger.error("checkpoint_write_failed", job=self.job_name, error=str(exc))
            return
        self.logger.debug(
            "checkpoint_saved", job=self.job_name, last_index=state.last_processed_index
        )

    @staticmethod
    def _emit(options: StartOptions, state: JobState) -> None:
        if options.on_progress is not None:
            options.on_progress(state.model_copy(deep=True))


__all__ = [
    "JobAlreadyRunning",
    "JobSignals",
    "ResumableJobController",
    "StartOptions",
    "UnitPipeline",
    "UnitSource",
]
