"""Per-unit work run by the controller: news ingestion and language analysis."""

from __future__ import annotations

from datetime import datetime
from typing import Callable

import structlog

from ..config import AnalysisSettings
from ..infra import AnalysisRepository, PersistenceError
from ..riksdag import RiksdagApiError, RiksdagClient
from ..state import ErrorKind, UnitOutcome, WorkUnit, utcnow
from .analysis import score_text, word_count
from .dedup import DeduplicatingStore
from .fetcher import ALL_ATTEMPTS_FAILED, FeedFetcher

NO_RELEVANT_ITEMS = "no relevant items found"
NO_SPEECHES = "no analysable speeches found"


class NewsPipeline:
    """Fetch news for a member and persist what is new."""

    def __init__(
        self,
        fetcher: FeedFetcher,
        store: DeduplicatingStore,
        logger: structlog.BoundLogger | None = None,
    ) -> None:
        self.fetcher = fetcher
        self.store = store
        self.logger = logger or structlog.get_logger("riksdagskollen.pipeline.news")

    def begin_run(self) -> None:
        self.store.reset_counters()

    async def process(self, unit: WorkUnit) -> UnitOutcome:
        result = await self.fetcher.fetch_items(unit.display_name)
        if not result.success:
            return UnitOutcome.failed(result.error or ALL_ATTEMPTS_FAILED, ErrorKind.FETCH)
        if not result.items:
            return UnitOutcome.failed(NO_RELEVANT_ITEMS, ErrorKind.FETCH)

        report = self.store.store_items(unit.id, result.items)
        if report.errors and not report.stored and not report.duplicates:
            return UnitOutcome.failed(
                self.store.counters.last_error or "all writes rejected", ErrorKind.DATABASE
            )
        self.logger.debug(
            "news_stored",
            unit=unit.id,
            strategy=result.strategy_used,
            proxy=result.proxy_used,
            attempts=result.total_attempts,
            stored=report.stored,
        )
        return UnitOutcome(success=True, new_records=report.stored)


class LanguageAnalysisPipeline:
    """Score a member's recent speeches unless analysed lately."""

    def __init__(
        self,
        riksdag: RiksdagClient,
        analyses: AnalysisRepository,
        settings: AnalysisSettings | None = None,
        now: Callable[[], datetime] = utcnow,
        logger: structlog.BoundLogger | None = None,
    ) -> None:
        self.riksdag = riksdag
        self.analyses = analyses
        self.settings = settings or AnalysisSettings()
        self._now = now
        self.logger = logger or structlog.get_logger("riksdagskollen.pipeline.analysis")

    def begin_run(self) -> None:
        return None

    async def process(self, unit: WorkUnit) -> UnitOutcome:
        now = self._now()
        try:
            if self.analyses.has_recent(unit.id, self.settings.recent_days, now=now):
                self.logger.info("analysis_skipped", unit=unit.id)
                return UnitOutcome(success=True, skipped=True)
        except PersistenceError as exc:
            return UnitOutcome.failed(str(exc), ErrorKind.DATABASE)

        try:
            speeches = await self.riksdag.fetch_speeches(unit.id, self.settings.max_speeches)
        except RiksdagApiError as exc:
            return UnitOutcome.failed(str(exc), ErrorKind.FETCH)

        stamp = now.isoformat(timespec="seconds")
        rows = []
        for speech in speeches:
            if word_count(speech.text) < self.settings.min_words:
                continue
            scores = score_text(speech.text)
            rows.append(
                {
                    "member_id": unit.id,
                    "member_name": unit.display_name,
                    "document_id": speech.document_id or speech.id,
                    "document_title": speech.title,
                    "word_count": scores.word_count,
                    "overall_score": scores.overall_score,
                    "complexity_score": scores.complexity_score,
                    "vocabulary_score": scores.vocabulary_score,
                    "rhetorical_score": scores.rhetorical_score,
                    "clarity_score": scores.clarity_score,
                    "analysis_date": stamp,
                }
            )
        if not rows:
            return UnitOutcome.failed(NO_SPEECHES, ErrorKind.FETCH)

        try:
            stored = self.analyses.insert_many(rows)
        except PersistenceError as exc:
            return UnitOutcome.failed(str(exc), ErrorKind.DATABASE)
        return UnitOutcome(success=True, new_records=stored)


__all__ = ["LanguageAnalysisPipeline", "NO_RELEVANT_ITEMS", "NO_SPEECHES", "NewsPipeline"]
