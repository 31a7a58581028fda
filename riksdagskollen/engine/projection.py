"""Pure projections of a JobState for display."""

from __future__ import annotations

from dataclasses import dataclass

from ..state import JobState, JobStatus, UnitError

CALCULATING = "calculating"
DONE = "done"


@dataclass(frozen=True, slots=True)
class ProgressView:
    percent: float
    success_rate_percent: float
    formatted_eta: str


def estimate_eta(elapsed: float, processed: int, remaining: int) -> float | None:
    if processed <= 0:
        return None
    return elapsed / processed * max(remaining, 0)


def format_eta(seconds: float | None, completed: bool = False) -> str:
    if completed:
        return DONE
    if seconds is None:
        return CALCULATING
    total = int(round(seconds))
    if total < 60:
        return f"{total}s"
    minutes = total // 60
    if minutes < 60:
        return f"{minutes}min"
    return f"{minutes // 60}h {minutes % 60}min"


def project(state: JobState) -> ProgressView:
    percent = state.processed_count / state.total_units * 100 if state.total_units > 0 else 0.0
    success_rate = state.success_count / max(state.processed_count, 1) * 100
    eta = format_eta(state.eta_seconds, completed=state.status is JobStatus.COMPLETED)
    return ProgressView(
        percent=min(percent, 100.0),
        success_rate_percent=success_rate,
        formatted_eta=eta,
    )


def recent_errors(state: JobState, limit: int = 10) -> list[UnitError]:
    return state.errors[-limit:] if limit > 0 else []


__all__ = ["CALCULATING", "DONE", "ProgressView", "estimate_eta", "format_eta", "project", "recent_errors"]
