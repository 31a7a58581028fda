"""Typer CLI entrypoint for Riksdagskollen batch jobs."""

from __future__ import annotations

import asyncio
import sys
from contextlib import nullcontext
from dataclasses import dataclass
from typing import Optional

import typer
from rich import box
from rich.console import Console
from rich.table import Table

from .config import ConfigRepository
from .engine.projection import project
from .infra import SQLiteManager
from .logging_conf import available_job_logs, configure_logging, log_path, tail_log
from .orchestrator import ANALYSIS_JOB, JOB_NAMES, NEWS_JOB, Orchestrator
from .state import JobState, JobStatus
from .ui import BatchProgressDisplay, ProgressActivity, error_table, summary_table

app = typer.Typer(help="Riksdagskollen batch tooling", no_args_is_help=True)
news_app = typer.Typer(name="news", help="Member news ingestion", no_args_is_help=True)
analysis_app = typer.Typer(name="analysis", help="Speech language analysis", no_args_is_help=True)
checkpoint_app = typer.Typer(name="checkpoint", help="Inspect or clear resume checkpoints", no_args_is_help=True)
remote_app = typer.Typer(name="remote", help="Drive the remote chunk processor", no_args_is_help=True)
log_app = typer.Typer(name="log", help="Log inspection", no_args_is_help=True)

console = Console()


@dataclass
class AppState:
    repository: ConfigRepository
    orchestrator: Orchestrator
    storage: SQLiteManager


def build_state(verbose: bool) -> AppState:
    configure_logging(verbose=verbose)
    repository = ConfigRepository()
    storage = SQLiteManager()
    orchestrator = Orchestrator(config_repository=repository, storage=storage)
    return AppState(repository=repository, orchestrator=orchestrator, storage=storage)


def _get_state(ctx: typer.Context) -> AppState:
    state = ctx.obj
    if state is None:
        state = build_state(verbose=False)
        ctx.obj = state
    return state


def _progress_default_enabled() -> bool:
    return bool(getattr(sys.stdout, "isatty", lambda: False)())


def _job_name(value: str) -> str:
    if value not in JOB_NAMES:
        raise typer.BadParameter(f"job must be one of: {', '.join(JOB_NAMES)}")
    return value


app.add_typer(news_app, name="news")
app.add_typer(analysis_app, name="analysis")
app.add_typer(checkpoint_app, name="checkpoint")
app.add_typer(remote_app, name="remote")
app.add_typer(log_app, name="log")


@app.callback()
def main(
    ctx: typer.Context, verbose: bool = typer.Option(False, "--verbose", help="Enable debug logging")
) -> None:
    ctx.obj = build_state(verbose)


def _report(state: JobState, label: str, quiet: bool, error_tail: int) -> None:
    view = project(state)
    if quiet:
        console.print(
            f"{label}: {state.status.value} · processed {state.processed_count}/{state.total_units}"
            f" · ok {state.success_count} · failed {state.failure_count}"
            f" · new {state.new_record_count} · {view.success_rate_percent:.0f}% success"
        )
    else:
        console.print(summary_table(state, title=f"{label} summary"))
        errors = error_table(state, limit=error_tail)
        if errors is not None:
            console.print(errors)
    if state.status is JobStatus.PAUSED:
        console.print("Stopped early; run again with --resume to continue.", style="yellow")
    if state.status is JobStatus.ERROR:
        message = state.errors[-1].error if state.errors else "unknown error"
        console.print(f"Job failed: {message}", style="red")
        raise typer.Exit(code=1)


def _run_job(
    ctx: typer.Context,
    job_name: str,
    max_units: Optional[int],
    delay: Optional[float],
    resume: bool,
    quiet: bool,
) -> None:
    state = _get_state(ctx)
    orchestrator = state.orchestrator
    if resume:
        pending = orchestrator.pending_checkpoint(job_name)
        if pending is not None:
            console.print(
                f"Resuming previous session from unit {pending.next_index + 1}"
                f" of {len(pending.unit_ids)} (started {pending.started_at:%Y-%m-%d %H:%M}).",
                style="cyan",
            )

    show_progress = _progress_default_enabled() and not quiet
    display = BatchProgressDisplay(job_name, enabled=show_progress, console=console)
    with display if show_progress else nullcontext(display):
        result = asyncio.run(
            orchestrator.run_job(
                job_name,
                max_units=max_units,
                delay=delay,
                resume=resume,
                on_progress=display.update,
            )
        )
    _report(result, job_name, quiet, orchestrator.global_config.batch.error_tail)


@news_app.command("run", help="Fetch and store news for each member.")
def news_run(
    ctx: typer.Context,
    max_units: Optional[int] = typer.Option(None, "--max-units", min=1, help="Number of members to process."),
    delay: Optional[float] = typer.Option(None, "--delay", min=0.0, help="Seconds between members."),
    resume: bool = typer.Option(True, "--resume/--fresh", help="Continue from a fresh checkpoint if present."),
    quiet: bool = typer.Option(False, "--quiet", help="Print a one-line result only."),
) -> None:
    _run_job(ctx, NEWS_JOB, max_units, delay, resume, quiet)


@analysis_app.command("run", help="Score recent speeches for each member.")
def analysis_run(
    ctx: typer.Context,
    max_units: Optional[int] = typer.Option(None, "--max-units", min=1, help="Number of members to process."),
    delay: Optional[float] = typer.Option(None, "--delay", min=0.0, help="Seconds between members."),
    resume: bool = typer.Option(True, "--resume/--fresh", help="Continue from a fresh checkpoint if present."),
    quiet: bool = typer.Option(False, "--quiet", help="Print a one-line result only."),
) -> None:
    _run_job(ctx, ANALYSIS_JOB, max_units, delay, resume, quiet)


@checkpoint_app.command("show", help="Show saved checkpoints.")
def checkpoint_show(
    ctx: typer.Context,
    job: Optional[str] = typer.Argument(None, help="Job name (news or analysis)."),
) -> None:
    state = _get_state(ctx)
    names = [_job_name(job)] if job else list(JOB_NAMES)
    table = Table(title="Checkpoints", box=box.SIMPLE_HEAD)
    table.add_column("Job", style="cyan")
    table.add_column("Next unit", justify="right")
    table.add_column("Processed", justify="right")
    table.add_column("New records", justify="right")
    table.add_column("Started", style="green")
    found = 0
    for name in names:
        pending = state.orchestrator.pending_checkpoint(name)
        if pending is None:
            continue
        found += 1
        counts = pending.cumulative_counts
        table.add_row(
            name,
            f"{pending.next_index + 1}/{len(pending.unit_ids)}",
            str(counts.processed),
            str(counts.new_records),
            pending.started_at.strftime("%Y-%m-%d %H:%M"),
        )
    if not found:
        console.print("No resumable checkpoints.", style="dim")
        return
    console.print(table)


@checkpoint_app.command("clear", help="Delete saved checkpoints.")
def checkpoint_clear(
    ctx: typer.Context,
    job: Optional[str] = typer.Argument(None, help="Job name (news or analysis)."),
) -> None:
    state = _get_state(ctx)
    names = [_job_name(job)] if job else list(JOB_NAMES)
    cleared = [name for name in names if state.orchestrator.clear_checkpoint(name)]
    if cleared:
        console.print(f"Cleared checkpoint(s): {', '.join(cleared)}", style="green")
    else:
        console.print("Nothing to clear.", style="dim")


def _remote(ctx: typer.Context, action: str) -> None:
    state = _get_state(ctx)
    activity = ProgressActivity(enabled=_progress_default_enabled(), console=console)
    activity.start(f"Remote {action}...")

    def _on_progress(progress: JobState) -> None:
        activity.update(f"Remote {action}: {progress.processed_count}/{progress.total_units} ({progress.status.value})")

    try:
        result = asyncio.run(state.orchestrator.run_remote(action, on_progress=_on_progress))
    finally:
        activity.close()
    if result is None:
        console.print("Remote endpoint did not report any progress.", style="yellow")
        raise typer.Exit(code=1)
    console.print(summary_table(result, title=f"Remote job ({action})"))
    errors = error_table(result, limit=state.orchestrator.global_config.batch.error_tail)
    if errors is not None:
        console.print(errors)
    if result.status is JobStatus.ERROR:
        raise typer.Exit(code=1)


@remote_app.command("start", help="Start the remote job and chain chunks until done.")
def remote_start(ctx: typer.Context) -> None:
    _remote(ctx, "start")


@remote_app.command("status", help="Fetch the remote job's latest progress.")
def remote_status(
    ctx: typer.Context,
    watch: bool = typer.Option(False, "--watch", help="Keep polling until the remote job stops running."),
) -> None:
    _remote(ctx, "watch" if watch else "status")


@remote_app.command("stop", help="Ask the remote job to pause.")
def remote_stop(ctx: typer.Context) -> None:
    _remote(ctx, "stop")


@app.command("history", help="Show stored news records for a member.")
def history(
    ctx: typer.Context,
    unit_id: str = typer.Argument(..., help="Member id (intressent_id)."),
    limit: int = typer.Option(20, "--limit", min=1, help="Number of records."),
) -> None:
    state = _get_state(ctx)
    rows = state.orchestrator.view_history(unit_id, limit=limit)
    if not rows:
        console.print("No stored records.", style="dim")
        return
    table = Table(title=f"{unit_id} · latest {len(rows)}", box=box.SIMPLE_HEAD)
    table.add_column("Stored", style="green")
    table.add_column("Title", overflow="fold")
    table.add_column("URL", overflow="fold", style="dim")
    for title, url, stored_at in rows:
        table.add_row(stored_at, title, url)
    console.print(table)


@log_app.command("list", help="List per-job log files.")
def log_list() -> None:
    logs = list(available_job_logs())
    if not logs:
        console.print("No job logs yet.", style="dim")
        return
    table = Table(box=box.SIMPLE_HEAD)
    table.add_column("File", style="green")
    for path in logs:
        table.add_row(path.name)
    console.print(table)


@log_app.command("show", help="Show the tail of a log file.")
def log_show(
    job: Optional[str] = typer.Option(None, "--job", help="Job name (empty for batch.log)."),
    tail: int = typer.Option(100, "--tail", min=1, help="Number of lines."),
) -> None:
    lines = tail_log(log_path(job), tail)
    if not lines:
        console.print("No log lines.", style="dim")
        return
    console.print(f"{job or 'batch'} · last {len(lines)} lines", style="cyan")
    console.print("".join(lines), markup=False, highlight=False)


def cli() -> None:
    app()


if __name__ == "__main__":  # pragma: no cover
    cli()
