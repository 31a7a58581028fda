"""Wire configuration, storage and engine parts into runnable jobs."""

from __future__ import annotations

import asyncio
import signal
import uuid
from contextlib import asynccontextmanager
from datetime import timedelta
from pathlib import Path
from typing import AsyncIterator, Awaitable, Callable

import httpx
import structlog

from .config import ConfigRepository, GlobalConfig
from .engine import (
    CheckpointStore,
    ChunkedRemoteJobProxy,
    DeduplicatingStore,
    FeedFetcher,
    ResumableJobController,
    StartOptions,
    StrategyBook,
)
from .engine.pipelines import LanguageAnalysisPipeline, NewsPipeline
from .infra import AnalysisRepository, ProxyPool, RecordRepository, SQLiteManager
from .logging_conf import configure_logging, job_logger
from .riksdag import RiksdagClient
from .state import JobState, ResumeState

NEWS_JOB = "news"
ANALYSIS_JOB = "analysis"
JOB_NAMES = (NEWS_JOB, ANALYSIS_JOB)

Sleep = Callable[[float], Awaitable[None]]
ProgressCallback = Callable[[JobState], None]
REMOTE_SESSION_FILE = "remote_session"


class Orchestrator:
    """Central coordinator owning the long-lived collaborators of a process."""

    def __init__(
        self,
        config_repository: ConfigRepository,
        storage: SQLiteManager,
        proxy_pool: ProxyPool | None = None,
        strategies: StrategyBook | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
        sleep: Sleep = asyncio.sleep,
    ) -> None:
        self.config_repository = config_repository
        self.global_config: GlobalConfig = config_repository.load_global_config()
        self.storage = storage
        fetch = self.global_config.fetch
        self.proxy_pool = proxy_pool or ProxyPool(
            fetch.proxies,
            max_failures=fetch.proxy_max_failures,
            retry_after=fetch.proxy_retry_after,
        )
        self.strategies = strategies or StrategyBook()
        self.transport = transport
        self._sleep = sleep
        self.logger = configure_logging().bind(component="orchestrator")

    # ------------------------------------------------------------------
    def checkpoint_store(self, job_name: str) -> CheckpointStore:
        return CheckpointStore(
            self.config_repository.locator.checkpoint_path(job_name),
            max_age=timedelta(hours=self.global_config.batch.checkpoint_max_age_hours),
        )

    def pending_checkpoint(self, job_name: str) -> ResumeState | None:
        return self.checkpoint_store(job_name).load()

    def clear_checkpoint(self, job_name: str) -> bool:
        return self.checkpoint_store(job_name).clear()

    def records(self) -> RecordRepository:
        return RecordRepository(self.storage, self.config_repository.records_db_path())

    def analyses(self) -> AnalysisRepository:
        return AnalysisRepository(self.storage, self.config_repository.records_db_path())

    def view_history(self, unit_id: str, limit: int = 20) -> list[tuple[str, str, str]]:
        return self.records().recent(unit_id, limit=limit)

    # ------------------------------------------------------------------
    async def run_news_batch(self, **kwargs) -> JobState:
        return await self.run_job(NEWS_JOB, **kwargs)

    async def run_analysis_batch(self, **kwargs) -> JobState:
        return await self.run_job(ANALYSIS_JOB, **kwargs)

    async def run_job(
        self,
        job_name: str,
        *,
        max_units: int | None = None,
        delay: float | None = None,
        resume: bool = True,
        on_progress: ProgressCallback | None = None,
        handle_interrupt: bool = True,
    ) -> JobState:
        if job_name not in JOB_NAMES:
            raise ValueError(f"Unknown job: {job_name}")
        batch = self.global_config.batch
        checkpoints = self.checkpoint_store(job_name)
        resume_state = checkpoints.load() if resume else None
        if not resume:
            checkpoints.clear()
        logger = job_logger(job_name)
        if resume_state is not None:
            logger.info("resume_checkpoint_found", next_index=resume_state.next_index)

        async with self._client() as client:
            riksdag = RiksdagClient(self.global_config.riksdag, client, sleep=self._sleep)
            pipeline = self._pipeline(job_name, client, riksdag, logger)
            controller = ResumableJobController(
                riksdag,
                pipeline,
                checkpoints,
                checkpoint_every=batch.checkpoint_every,
                pause_poll_interval=batch.pause_poll_interval,
                sleep=self._sleep,
                logger=logger,
                job_name=job_name,
            )
            options = StartOptions(
                max_units=max_units or batch.max_units,
                delay_between_units=batch.delay_between_units if delay is None else delay,
                on_progress=on_progress,
                resume_state=resume_state,
            )
            return await self._drive(controller, options, handle_interrupt)

    def _pipeline(
        self,
        job_name: str,
        client: httpx.AsyncClient,
        riksdag: RiksdagClient,
        logger: structlog.BoundLogger,
    ) -> NewsPipeline | LanguageAnalysisPipeline:
        if job_name == ANALYSIS_JOB:
            return LanguageAnalysisPipeline(
                riksdag, self.analyses(), self.global_config.analysis, logger=logger
            )
        fetcher = FeedFetcher(
            self.global_config.fetch,
            self.proxy_pool,
            self.strategies,
            client,
            sleep=self._sleep,
            logger=logger,
        )
        store = DeduplicatingStore(self.records(), self.global_config.store, logger=logger)
        return NewsPipeline(fetcher, store, logger=logger)

    async def _drive(
        self, controller: ResumableJobController, options: StartOptions, handle_interrupt: bool
    ) -> JobState:
        loop = asyncio.get_running_loop()
        installed = False
        if handle_interrupt:
            try:
                loop.add_signal_handler(signal.SIGINT, controller.stop)
                installed = True
            except (NotImplementedError, RuntimeError, ValueError):
                installed = False
        try:
            return await controller.start(options)
        finally:
            if installed:
                loop.remove_signal_handler(signal.SIGINT)

    # ------------------------------------------------------------------
    async def run_remote(self, action: str, on_progress: ProgressCallback | None = None) -> JobState | None:
        async with self._client() as client:
            proxy = ChunkedRemoteJobProxy(
                self.global_config.remote,
                client,
                session_id=self.remote_session_id(),
                on_progress=on_progress,
                sleep=self._sleep,
            )
            if action == "start":
                await proxy.start_batch_process()
                return await proxy.wait()
            if action == "stop":
                return await proxy.stop_batch_process()
            if action == "status":
                return await proxy.refresh_status()
            if action == "watch":
                return await proxy.watch_status()
        raise ValueError(f"Unknown remote action: {action}")

    def remote_session_id(self) -> str:
        path: Path = self.config_repository.locator.data_dir / REMOTE_SESSION_FILE
        if path.exists():
            value = path.read_text(encoding="utf-8").strip()
            if value:
                return value
        value = uuid.uuid4().hex
        path.write_text(value, encoding="utf-8")
        return value

    @asynccontextmanager
    async def _client(self) -> AsyncIterator[httpx.AsyncClient]:
        async with httpx.AsyncClient(
            transport=self.transport,
            follow_redirects=True,
            headers={"User-Agent": self.global_config.fetch.user_agent},
        ) as client:
            yield client


__all__ = ["ANALYSIS_JOB", "JOB_NAMES", "NEWS_JOB", "Orchestrator"]
