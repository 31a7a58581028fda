from __future__ import annotations

from riksdagskollen.config import StoreSettings
from riksdagskollen.engine.dedup import DeduplicatingStore
from riksdagskollen.infra import PersistenceError, RecordRepository
from riksdagskollen.state import StoredRecord


def test_duplicate_url_is_skipped(record_repository: RecordRepository, make_item) -> None:
    store = DeduplicatingStore(record_repository)
    store.store_items("m1", [make_item(2)])

    batch = [make_item(1), make_item(2, title="Helt ny rubrik"), make_item(3)]
    report = store.store_items("m1", batch)
    assert (report.attempted, report.stored, report.duplicates, report.errors) == (3, 2, 1, 0)


def test_duplicate_title_is_skipped(record_repository: RecordRepository, make_item) -> None:
    store = DeduplicatingStore(record_repository)
    store.store_items("m1", [make_item(1)])
    report = store.store_items("m1", [make_item(1, url="https://other.example.se/x")])
    assert report.duplicates == 1
    assert report.stored == 0


def test_same_item_for_other_unit_is_not_duplicate(record_repository: RecordRepository, make_item) -> None:
    store = DeduplicatingStore(record_repository)
    store.store_items("m1", [make_item(1)])
    assert store.store_items("m2", [make_item(1)]).stored == 1


def test_storing_same_batch_twice_is_idempotent(record_repository: RecordRepository, make_item) -> None:
    store = DeduplicatingStore(record_repository)
    items = [make_item(i) for i in range(1, 5)]
    first = store.store_items("m1", items)
    second = store.store_items("m1", items)
    assert first.stored == 4
    assert second.stored == 0
    assert second.duplicates == len(items)
    assert record_repository.count("m1") == 4


def test_fields_are_cleaned_and_truncated(record_repository: RecordRepository, make_item) -> None:
    settings = StoreSettings(title_max_length=10, description_max_length=5, url_max_length=30)
    store = DeduplicatingStore(record_repository, settings)
    long_url = "https://news.example.se/" + "x" * 100
    report = store.store_items(
        "m1",
        [make_item(1, title="<b>Mycket</b>   lång rubrik", url=long_url, description="<p>Beskrivning</p>")],
    )
    assert report.stored == 1
    conn = record_repository.manager.connect(record_repository.db_path)
    row = conn.execute("SELECT title, url, description FROM member_news").fetchone()
    assert row["title"] == "Mycket lån"
    assert row["url"] == long_url[:30]
    assert row["description"] == "Beskr"


class FailingRepository:
    def __init__(self) -> None:
        self.inserted: list[StoredRecord] = []

    def has_url(self, owner_id: str, url: str) -> bool:
        return False

    def has_title(self, owner_id: str, title: str) -> bool:
        return False

    def insert(self, record: StoredRecord) -> None:
        if record.url.endswith("/2"):
            raise PersistenceError("disk full")
        self.inserted.append(record)


def test_write_failure_counts_error_and_continues(make_item) -> None:
    store = DeduplicatingStore(FailingRepository())  # type: ignore[arg-type]
    report = store.store_items("m1", [make_item(1), make_item(2), make_item(3)])
    assert (report.attempted, report.stored, report.duplicates, report.errors) == (3, 2, 0, 1)
    assert store.counters.errors == 1
    assert store.counters.last_error == "m1: disk full"


def test_cumulative_counters_reset(record_repository: RecordRepository, make_item) -> None:
    store = DeduplicatingStore(record_repository)
    store.store_items("m1", [make_item(1)])
    store.store_items("m2", [make_item(1)])
    assert store.counters.attempted == 2
    assert store.counters.stored == 2
    store.reset_counters()
    assert store.counters.attempted == 0
    assert store.counters.error_messages == []
