"""Deduplicating persistence of fetched items under a work-unit id."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Iterable

import structlog

from ..config import StoreSettings
from ..infra import PersistenceError, RecordRepository
from ..state import FetchItem, StoredRecord, StoreReport
from .feed import clean_text


@dataclass
class StoreCounters:
    """Totals accumulated over one orchestration run."""

    attempted: int = 0
    stored: int = 0
    duplicates: int = 0
    errors: int = 0
    error_messages: list[str] = field(default_factory=list)

    @property
    def last_error(self) -> str | None:
        return self.error_messages[-1] if self.error_messages else None


def _truncate(value: str | None, limit: int) -> str | None:
    if value is None:
        return None
    return value[:limit]


class DeduplicatingStore:
    """Skip items already stored for a unit (by url, then by title)."""

    def __init__(
        self,
        repository: RecordRepository,
        settings: StoreSettings | None = None,
        logger: structlog.BoundLogger | None = None,
    ) -> None:
        self.repository = repository
        self.settings = settings or StoreSettings()
        self.logger = logger or structlog.get_logger("riksdagskollen.dedup")
        self.counters = StoreCounters()

    def reset_counters(self) -> None:
        self.counters = StoreCounters()

    def sanitize(self, unit_id: str, item: FetchItem) -> StoredRecord:
        description = clean_text(item.description) or None
        return StoredRecord(
            owner_id=unit_id,
            title=_truncate(clean_text(item.title), self.settings.title_max_length) or "",
            url=_truncate(item.url.strip(), self.settings.url_max_length) or "",
            published_at=item.published_at,
            description=_truncate(description, self.settings.description_max_length),
            image_url=_truncate(item.image_url, self.settings.url_max_length),
        )

    def store_items(self, unit_id: str, items: Iterable[FetchItem]) -> StoreReport:
        report = StoreReport()
        for item in items:
            report.attempted += 1
            record = self.sanitize(unit_id, item)
            try:
                duplicate = self.repository.has_url(unit_id, record.url) or self.repository.has_title(
                    unit_id, record.title
                )
                if duplicate:
                    report.duplicates += 1
                    continue
                self.repository.insert(record)
            except PersistenceError as exc:
                report.errors += 1
                self.counters.error_messages.append(f"{unit_id}: {exc}")
                self.logger.error("store_failed", unit=unit_id, url=record.url, error=str(exc))
                continue
            report.stored += 1

        self.counters.attempted += report.attempted
        self.counters.stored += report.stored
        self.counters.duplicates += report.duplicates
        self.counters.errors += report.errors
        self.logger.info(
            "store_batch",
            unit=unit_id,
            attempted=report.attempted,
            stored=report.stored,
            duplicates=report.duplicates,
            errors=report.errors,
        )
        return report


__all__ = ["DeduplicatingStore", "StoreCounters"]
