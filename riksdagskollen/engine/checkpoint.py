"""Durable JSON checkpoint for resumable jobs."""

from __future__ import annotations

import os
from datetime import datetime, timedelta
from pathlib import Path
from typing import Callable

import structlog
from pydantic import ValidationError

from ..state import ResumeState, utcnow


class CheckpointConflict(RuntimeError):
    """Another session owns the fresh checkpoint."""


class CheckpointStore:
    """Read/write one checkpoint file, fenced by session id.

    A checkpoint older than ``max_age`` (measured from its start time) is
    treated as absent.
    """

    def __init__(
        self,
        path: Path,
        max_age: timedelta = timedelta(hours=24),
        now: Callable[[], datetime] = utcnow,
        logger: structlog.BoundLogger | None = None,
    ) -> None:
        self.path = path
        self.max_age = max_age
        self._now = now
        self.logger = logger or structlog.get_logger("riksdagskollen.checkpoint")

    def load(self) -> ResumeState | None:
        if not self.path.exists():
            return None
        try:
            state = ResumeState.from_json(self.path.read_text(encoding="utf-8"))
        except (OSError, ValueError, ValidationError) as exc:
            self.logger.warning("checkpoint_unreadable", path=str(self.path), error=str(exc))
            return None
        if self.is_stale(state):
            self.logger.info("checkpoint_stale", path=str(self.path), started_at=state.started_at.isoformat())
            return None
        return state

    def is_stale(self, state: ResumeState) -> bool:
        started = state.started_at
        now = self._now()
        if started.tzinfo is None and now.tzinfo is not None:
            now = now.replace(tzinfo=None)
        return now - started > self.max_age

    def save(self, state: ResumeState, force: bool = False) -> None:
        if not force:
            current = self.load()
            if (
                current is not None
                and current.session_id
                and state.session_id
                and current.session_id != state.session_id
            ):
                raise CheckpointConflict(
                    f"Checkpoint {self.path.name} is owned by session {current.session_id}"
                )
        self.path.parent.mkdir(parents=True, exist_ok=True)
        tmp = self.path.with_suffix(self.path.suffix + ".tmp")
        tmp.write_text(state.to_json(), encoding="utf-8")
        os.replace(tmp, self.path)

    def clear(self, session_id: str | None = None) -> bool:
        """Remove the checkpoint; with ``session_id`` only if that session owns it."""

        if not self.path.exists():
            return False
        if session_id is not None:
            current = self.load()
            if current is not None and current.session_id not in (None, session_id):
                return False
        self.path.unlink(missing_ok=True)
        return True


__all__ = ["CheckpointConflict", "CheckpointStore"]
