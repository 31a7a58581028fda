from __future__ import annotations

from datetime import datetime, timedelta, timezone

import pytest

from riksdagskollen.config import AnalysisSettings
from riksdagskollen.engine.analysis import score_text
from riksdagskollen.engine.dedup import DeduplicatingStore
from riksdagskollen.engine.pipelines import (
    NO_RELEVANT_ITEMS,
    NO_SPEECHES,
    LanguageAnalysisPipeline,
    NewsPipeline,
)
from riksdagskollen.infra import AnalysisRepository, PersistenceError
from riksdagskollen.riksdag import RiksdagApiError, Speech
from riksdagskollen.state import ErrorKind, FetchItem, FetchResult, StoredRecord, WorkUnit

UNIT = WorkUnit(id="m1", display_name="Anna Svensson", party_code="S")
NOW = datetime(2024, 5, 10, 12, 0, tzinfo=timezone.utc)
SPEECH_TEXT = (
    "Herr talman! Regeringens proposition om budgeten är emellertid otillräcklig. "
    "Vi i utskottet har granskat förslaget noga och funnit flera brister. "
    "Varför har regeringen inte lyssnat på kommunerna? Det är dags att agera nu. "
    "Sålunda yrkar jag bifall till reservationen i betänkandet från finansutskottet."
)


class FixedFetcher:
    def __init__(self, result: FetchResult) -> None:
        self.result = result

    async def fetch_items(self, subject: str, retries: int | None = None) -> FetchResult:
        return self.result


class RejectingRepository:
    def has_url(self, owner_id: str, url: str) -> bool:
        return False

    def has_title(self, owner_id: str, title: str) -> bool:
        return False

    def insert(self, record: StoredRecord) -> None:
        raise PersistenceError("read-only database")


def _items(count: int) -> list[FetchItem]:
    return [
        FetchItem(title=f"Anna Svensson {i}", url=f"https://n.example.se/{i}", published_at="2024")
        for i in range(count)
    ]


@pytest.mark.asyncio
async def test_news_pipeline_stores_new_items(record_repository) -> None:
    pipeline = NewsPipeline(FixedFetcher(FetchResult(success=True, items=_items(2))), DeduplicatingStore(record_repository))
    outcome = await pipeline.process(UNIT)
    assert outcome.success
    assert outcome.new_records == 2


@pytest.mark.asyncio
async def test_news_pipeline_all_duplicates_is_still_success(record_repository) -> None:
    pipeline = NewsPipeline(FixedFetcher(FetchResult(success=True, items=_items(2))), DeduplicatingStore(record_repository))
    await pipeline.process(UNIT)
    outcome = await pipeline.process(UNIT)
    assert outcome.success
    assert outcome.new_records == 0


@pytest.mark.asyncio
async def test_news_pipeline_fetch_failure(record_repository) -> None:
    failed = FetchResult(success=False, error="all attempts failed")
    pipeline = NewsPipeline(FixedFetcher(failed), DeduplicatingStore(record_repository))
    outcome = await pipeline.process(UNIT)
    assert not outcome.success
    assert outcome.kind is ErrorKind.FETCH
    assert outcome.error == "all attempts failed"


@pytest.mark.asyncio
async def test_news_pipeline_zero_items_is_fetch_failure(record_repository) -> None:
    pipeline = NewsPipeline(FixedFetcher(FetchResult(success=True, items=[])), DeduplicatingStore(record_repository))
    outcome = await pipeline.process(UNIT)
    assert outcome.kind is ErrorKind.FETCH
    assert outcome.error == NO_RELEVANT_ITEMS


@pytest.mark.asyncio
async def test_news_pipeline_all_writes_rejected_is_database_failure() -> None:
    store = DeduplicatingStore(RejectingRepository())  # type: ignore[arg-type]
    pipeline = NewsPipeline(FixedFetcher(FetchResult(success=True, items=_items(2))), store)
    outcome = await pipeline.process(UNIT)
    assert not outcome.success
    assert outcome.kind is ErrorKind.DATABASE
    assert "read-only database" in outcome.error


def test_news_pipeline_begin_run_resets_counters(record_repository) -> None:
    store = DeduplicatingStore(record_repository)
    store.counters.attempted = 9
    NewsPipeline(FixedFetcher(FetchResult(success=True)), store).begin_run()
    assert store.counters.attempted == 0


class FakeRiksdag:
    def __init__(self, speeches: list[Speech] | None = None, error: Exception | None = None) -> None:
        self.speeches = speeches or []
        self.error = error
        self.calls = 0

    async def fetch_speeches(self, member_id: str, limit: int = 20) -> list[Speech]:
        self.calls += 1
        if self.error is not None:
            raise self.error
        return self.speeches


def _speech(text: str = SPEECH_TEXT, sid: str = "a1") -> Speech:
    return Speech(id=sid, member_id="m1", document_id=f"doc-{sid}", title="Budget", date="2024-05-01", text=text)


@pytest.fixture
def analyses(tmp_path, sqlite_manager) -> AnalysisRepository:
    return AnalysisRepository(sqlite_manager, tmp_path / "records.db")


@pytest.mark.asyncio
async def test_analysis_pipeline_scores_and_stores(analyses) -> None:
    riksdag = FakeRiksdag([_speech(sid="a1"), _speech("för kort", sid="a2")])
    pipeline = LanguageAnalysisPipeline(riksdag, analyses, AnalysisSettings(min_words=20), now=lambda: NOW)
    outcome = await pipeline.process(UNIT)
    assert outcome.success
    assert outcome.new_records == 1
    assert analyses.has_recent("m1", days=7, now=NOW)


@pytest.mark.asyncio
async def test_analysis_pipeline_skips_recent_members(analyses) -> None:
    first = LanguageAnalysisPipeline(FakeRiksdag([_speech()]), analyses, AnalysisSettings(min_words=20), now=lambda: NOW)
    await first.process(UNIT)

    riksdag = FakeRiksdag([_speech()])
    later = LanguageAnalysisPipeline(
        riksdag, analyses, AnalysisSettings(min_words=20), now=lambda: NOW + timedelta(days=2)
    )
    outcome = await later.process(UNIT)
    assert outcome.success
    assert outcome.skipped
    assert riksdag.calls == 0


@pytest.mark.asyncio
async def test_analysis_pipeline_without_speeches_fails(analyses) -> None:
    pipeline = LanguageAnalysisPipeline(FakeRiksdag([]), analyses, now=lambda: NOW)
    outcome = await pipeline.process(UNIT)
    assert outcome.kind is ErrorKind.FETCH
    assert outcome.error == NO_SPEECHES


@pytest.mark.asyncio
async def test_analysis_pipeline_api_error_is_fetch_failure(analyses) -> None:
    pipeline = LanguageAnalysisPipeline(FakeRiksdag(error=RiksdagApiError("HTTP 500")), analyses, now=lambda: NOW)
    outcome = await pipeline.process(UNIT)
    assert not outcome.success
    assert outcome.kind is ErrorKind.FETCH


def test_score_text_is_bounded_and_deterministic() -> None:
    scores = score_text(SPEECH_TEXT)
    assert scores == score_text(SPEECH_TEXT)
    for value in (
        scores.overall_score,
        scores.complexity_score,
        scores.vocabulary_score,
        scores.rhetorical_score,
        scores.clarity_score,
    ):
        assert 10 <= value <= 100
    assert scores.word_count == len(SPEECH_TEXT.split())
    assert scores.sentence_count == 6


def test_score_text_handles_empty_input() -> None:
    scores = score_text("")
    assert scores.word_count == 0
    assert scores.overall_score >= 10
