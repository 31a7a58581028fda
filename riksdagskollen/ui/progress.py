"""Rich rendering of job progress, summaries and error tails."""

from __future__ import annotations

from rich.console import Console
from rich.errors import LiveError
from rich.progress import (
    BarColumn,
    Progress,
    ProgressColumn,
    Task,
    TaskID,
    TaskProgressColumn,
    TextColumn,
    TimeElapsedColumn,
    SpinnerColumn,
)
from rich.status import Status
from rich.table import Table
from rich.text import Text

from ..engine.projection import project, recent_errors
from ..state import JobState, JobStatus

_STATUS_STYLE = {
    JobStatus.IDLE: "dim",
    JobStatus.RUNNING: "cyan",
    JobStatus.PAUSED: "yellow",
    JobStatus.COMPLETED: "green",
    JobStatus.ERROR: "red",
}


class RateColumn(ProgressColumn):
    """Units processed per minute."""

    def render(self, task: Task) -> Text:
        speed = task.finished_speed or task.speed
        if speed is None:
            return Text("", style="progress.percentage")
        return Text(f"{speed * 60:.1f}/min", style="progress.percentage")


class BatchProgressDisplay:
    """Drive a Rich progress bar from successive JobState snapshots."""

    def __init__(self, label: str, enabled: bool = True, console: Console | None = None) -> None:
        self.label = label
        self.enabled = enabled
        self.console = console or Console()
        self.last_state: JobState | None = None
        self._progress: Progress | None = None
        self._task_id: TaskID | None = None

    def __enter__(self) -> "BatchProgressDisplay":
        if not self.enabled or not self.console.is_terminal:
            self.enabled = False
            return self
        self._progress = Progress(
            SpinnerColumn(style="cyan"),
            TextColumn("[bold blue]{task.fields[label]:<10}", justify="left"),
            BarColumn(bar_width=None, complete_style="green", finished_style="green"),
            TaskProgressColumn(show_speed=False),
            TimeElapsedColumn(),
            RateColumn(),
            TextColumn("[green]✓{task.fields[success]:>3}", justify="right"),
            TextColumn("[red]✗{task.fields[failed]:>3}", justify="right"),
            TextColumn("[magenta]+{task.fields[new_records]:>4}", justify="right"),
            TextColumn("[dim]{task.fields[eta]:>10}"),
            TextColumn("[dim]{task.fields[current]}", justify="left"),
            console=self.console,
            transient=True,
            refresh_per_second=8,
            expand=True,
        )
        try:
            self._progress.__enter__()
        except LiveError:
            self.enabled = False
            self._progress = None
            return self
        self._task_id = self._progress.add_task(
            "batch",
            total=None,
            label=self.label,
            success=0,
            failed=0,
            new_records=0,
            eta="calculating",
            current="waiting…",
        )
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        if self._progress is not None:
            self._progress.__exit__(exc_type, exc, tb)
            self._progress = None
        self._task_id = None

    def update(self, state: JobState) -> None:
        self.last_state = state
        if self._progress is None or self._task_id is None:
            return
        view = project(state)
        current = state.current_unit_name or state.status.value
        if len(current) > 40:
            current = current[:37] + "..."
        self._progress.update(
            self._task_id,
            total=state.total_units or None,
            completed=state.processed_count,
            success=state.success_count,
            failed=state.failure_count,
            new_records=state.new_record_count,
            eta=view.formatted_eta,
            current=current,
        )


def summary_table(state: JobState, title: str = "Batch summary") -> Table:
    view = project(state)
    style = _STATUS_STYLE.get(state.status, "white")
    table = Table(title=title, show_header=False)
    table.add_column("Field", style="bold")
    table.add_column("Value")
    table.add_row("Status", f"[{style}]{state.status.value}[/{style}]")
    table.add_row("Processed", f"{state.processed_count}/{state.total_units} ({view.percent:.0f}%)")
    table.add_row("Succeeded", str(state.success_count))
    table.add_row("Failed", str(state.failure_count))
    table.add_row("Skipped", str(state.skipped_count))
    table.add_row("New records", str(state.new_record_count))
    table.add_row("Success rate", f"{view.success_rate_percent:.1f}%")
    table.add_row("ETA", view.formatted_eta)
    return table


def error_table(state: JobState, limit: int = 10) -> Table | None:
    errors = recent_errors(state, limit)
    if not errors:
        return None
    table = Table(title=f"Last {len(errors)} errors")
    table.add_column("Time", style="dim")
    table.add_column("Member")
    table.add_column("Kind")
    table.add_column("Error", overflow="fold")
    for entry in errors:
        table.add_row(
            entry.timestamp.strftime("%H:%M:%S"),
            entry.unit_name,
            entry.kind.value,
            entry.error,
        )
    return table


class ProgressActivity:
    """Indeterminate activity indicator using Rich Status spinner."""

    def __init__(self, enabled: bool = True, console: Console | None = None) -> None:
        self.enabled = enabled
        self.console = console or Console()
        self._status: Status | None = None

    def start(self, message: str) -> None:
        if not self.enabled or self._status is not None:
            return
        self._status = self.console.status(message)
        self._status.start()

    def update(self, message: str) -> None:
        if self._status is not None:
            self._status.update(message)

    def close(self) -> None:
        if self._status is not None:
            self._status.stop()
            self._status = None


__all__ = ["BatchProgressDisplay", "ProgressActivity", "RateColumn", "error_table", "summary_table"]
