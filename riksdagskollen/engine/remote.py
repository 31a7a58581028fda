"""Client-driven chaining of a remote chunk processor."""

from __future__ import annotations

import asyncio
import uuid
from typing import Awaitable, Callable

import httpx
import structlog
from pydantic import BaseModel, ConfigDict, Field

from ..config import RemoteJobSettings
from ..state import ErrorKind, JobState, JobStatus

Sleep = Callable[[float], Awaitable[None]]
ProgressCallback = Callable[[JobState], None]

SYSTEM_UNIT = "System"


class RemoteJobError(RuntimeError):
    """The remote endpoint answered with an error or a non-2xx status."""


class RemoteResponse(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    progress: JobState | None = None
    has_more: bool = Field(default=False, alias="hasMore")
    is_completed: bool = Field(default=False, alias="isCompleted")
    error: str | None = None


class ChunkedRemoteJobProxy:
    """Drive a remote job chunk by chunk.

    A single owned task performs the ``continue`` chain; ``refresh_status``
    only reads and never touches local state.
    """

    def __init__(
        self,
        settings: RemoteJobSettings,
        client: httpx.AsyncClient,
        session_id: str | None = None,
        on_progress: ProgressCallback | None = None,
        sleep: Sleep = asyncio.sleep,
        logger: structlog.BoundLogger | None = None,
    ) -> None:
        self.settings = settings
        self.client = client
        self.session_id = session_id or uuid.uuid4().hex
        self.on_progress = on_progress
        self.state = JobState()
        self._sleep = sleep
        self._chain: asyncio.Task | None = None
        self._halted = False
        self.logger = logger or structlog.get_logger("riksdagskollen.remote")

    @property
    def chaining(self) -> bool:
        return self._chain is not None and not self._chain.done()

    async def start_batch_process(self) -> JobState:
        self._halted = False
        body = await self._invoke("start")
        if body is not None:
            self._maybe_chain(body)
        return self.state

    async def continue_processing(self) -> JobState:
        body = await self._invoke("continue")
        if body is not None:
            self._maybe_chain(body)
        return self.state

    async def stop_batch_process(self) -> JobState:
        self._halted = True
        await self._cancel_chain()
        await self._invoke("stop")
        return self.state

    async def refresh_status(self) -> JobState | None:
        try:
            body = await self._request("status")
        except (httpx.HTTPError, ValueError, RemoteJobError) as exc:
            self.logger.warning("remote_status_failed", error=str(exc))
            return None
        return body.progress

    async def watch_status(self, max_polls: int | None = None) -> JobState | None:
        """Poll ``status`` every ``poll_interval`` until the remote job leaves running.

        Observational like ``refresh_status``; returns the last progress seen.
        """

        latest: JobState | None = None
        polls = 0
        while True:
            progress = await self.refresh_status()
            polls += 1
            if progress is None:
                return latest
            latest = progress
            if self.on_progress is not None:
                self.on_progress(progress.model_copy(deep=True))
            if progress.status is not JobStatus.RUNNING or (max_polls and polls >= max_polls):
                return latest
            await self._sleep(self.settings.poll_interval)

    async def wait(self) -> JobState:
        """Block until the current chain (if any) finishes."""

        if self._chain is not None:
            await asyncio.gather(self._chain, return_exceptions=True)
        return self.state

    # ------------------------------------------------------------------
    def _should_continue(self, body: RemoteResponse) -> bool:
        return (
            not self._halted
            and body.has_more
            and not body.is_completed
            and self.state.status is JobStatus.RUNNING
        )

    def _maybe_chain(self, body: RemoteResponse) -> None:
        if self._should_continue(body) and not self.chaining:
            self._chain = asyncio.create_task(self._run_chain())

    async def _run_chain(self) -> None:
        while not self._halted:
            await self._sleep(self.settings.chain_delay)
            if self._halted:
                return
            body = await self._invoke("continue")
            if body is None or not self._should_continue(body):
                return

    async def _cancel_chain(self) -> None:
        task = self._chain
        if task is None or task is asyncio.current_task():
            return
        task.cancel()
        await asyncio.gather(task, return_exceptions=True)
        self._chain = None

    async def _invoke(self, action: str) -> RemoteResponse | None:
        try:
            body = await self._request(action)
        except (httpx.HTTPError, ValueError, RemoteJobError) as exc:
            self._fail(action, exc)
            return None
        if body.progress is not None:
            self.state = body.progress
        if body.is_completed and self.state.status is JobStatus.RUNNING:
            self.state.status = JobStatus.COMPLETED
        self.logger.info(
            "remote_progress",
            action=action,
            status=self.state.status.value,
            processed=self.state.processed_count,
            total=self.state.total_units,
            has_more=body.has_more,
        )
        self._emit()
        return body

    async def _request(self, action: str) -> RemoteResponse:
        response = await self.client.post(
            self.settings.endpoint,
            json={"action": action, "sessionId": self.session_id},
            headers=self._headers(),
            timeout=self.settings.request_timeout,
        )
        if response.status_code == 409:
            raise RemoteJobError("remote job is already running")
        if response.status_code >= 400:
            raise RemoteJobError(f"HTTP {response.status_code}: {response.text[:200]}")
        body = RemoteResponse.model_validate(response.json())
        if body.error:
            raise RemoteJobError(body.error)
        return body

    def _headers(self) -> dict[str, str]:
        if not self.settings.api_key:
            return {}
        return {"Authorization": f"Bearer {self.settings.api_key}", "apikey": self.settings.api_key}

    def _fail(self, action: str, exc: Exception) -> None:
        self._halted = True
        self.state.status = JobStatus.ERROR
        self.state.record_error(SYSTEM_UNIT, f"{action}: {exc}", ErrorKind.SYSTEM)
        self.logger.error("remote_call_failed", action=action, error=str(exc))
        self._emit()

    def _emit(self) -> None:
        if self.on_progress is not None:
            self.on_progress(self.state.model_copy(deep=True))


__all__ = ["ChunkedRemoteJobProxy", "RemoteJobError", "RemoteResponse"]
