from __future__ import annotations

from io import StringIO

from rich.console import Console

from riksdagskollen.state import ErrorKind, JobState, JobStatus
from riksdagskollen.ui import BatchProgressDisplay, ProgressActivity, error_table, summary_table


def _render(renderable) -> str:
    console = Console(file=StringIO(), width=120, color_system=None)
    console.print(renderable)
    return console.file.getvalue()


def test_summary_table_rows() -> None:
    state = JobState(
        status=JobStatus.RUNNING,
        total_units=4,
        processed_count=2,
        success_count=1,
        failure_count=1,
        new_record_count=6,
        eta_seconds=90,
    )
    output = _render(summary_table(state, title="news summary"))
    assert "news summary" in output
    assert "2/4 (50%)" in output
    assert "50.0%" in output
    assert "1min" in output
    assert "running" in output


def test_error_table_shows_tail_only() -> None:
    state = JobState()
    assert error_table(state) is None
    for i in range(5):
        state.record_error(f"Ledamot {i}", f"fel {i}", ErrorKind.FETCH)
    output = _render(error_table(state, limit=2))
    assert "Last 2 errors" in output
    assert "Ledamot 4" in output
    assert "Ledamot 2" not in output
    assert "fetch" in output


def test_progress_display_disabled_off_terminal() -> None:
    console = Console(file=StringIO(), force_terminal=False)
    state = JobState(status=JobStatus.RUNNING, total_units=3, processed_count=1)
    with BatchProgressDisplay("news", enabled=True, console=console) as display:
        assert display.enabled is False
        display.update(state)
    assert display.last_state is state
    assert console.file.getvalue() == ""


def test_progress_display_tracks_terminal_updates() -> None:
    console = Console(file=StringIO(), force_terminal=True, width=120)
    with BatchProgressDisplay("news", console=console) as display:
        display.update(JobState(status=JobStatus.RUNNING, total_units=2, processed_count=1, success_count=1))
        display.update(JobState(status=JobStatus.COMPLETED, total_units=2, processed_count=2, success_count=2))
    assert display.last_state.processed_count == 2


def test_progress_activity_disabled_is_silent() -> None:
    console = Console(file=StringIO())
    activity = ProgressActivity(enabled=False, console=console)
    activity.start("Remote start...")
    activity.update("still going")
    activity.close()
    assert console.file.getvalue() == ""
