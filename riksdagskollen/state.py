"""Data model shared by the fetch, store and job-control layers."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum

from pydantic import BaseModel, ConfigDict, Field


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


@dataclass(frozen=True, slots=True)
class WorkUnit:
    """One member to process in a batch."""

    id: str
    display_name: str
    party_code: str = ""


@dataclass(slots=True)
class FetchItem:
    """An externally discovered article, not yet deduplicated."""

    title: str
    url: str
    published_at: str
    description: str | None = None
    image_url: str | None = None


@dataclass(slots=True)
class StoredRecord:
    """A FetchItem persisted under its owning unit id."""

    owner_id: str
    title: str
    url: str
    published_at: str
    description: str | None = None
    image_url: str | None = None


@dataclass(slots=True)
class FetchResult:
    """Outcome of fetching items for one subject."""

    success: bool
    items: list[FetchItem] = field(default_factory=list)
    error: str | None = None
    strategy_used: str | None = None
    proxy_used: str | None = None
    strategies_attempted: int = 0
    proxies_attempted: int = 0
    total_attempts: int = 0
    elapsed: float = 0.0


@dataclass(slots=True)
class StoreReport:
    attempted: int = 0
    stored: int = 0
    duplicates: int = 0
    errors: int = 0


class ErrorKind(str, Enum):
    FETCH = "fetch"
    DATABASE = "database"
    SYSTEM = "system"


class JobStatus(str, Enum):
    IDLE = "idle"
    RUNNING = "running"
    PAUSED = "paused"
    COMPLETED = "completed"
    ERROR = "error"


@dataclass(slots=True)
class UnitOutcome:
    """What a pipeline reports back for a single unit."""

    success: bool
    new_records: int = 0
    skipped: bool = False
    error: str | None = None
    kind: ErrorKind = ErrorKind.FETCH

    @classmethod
    def failed(cls, error: str, kind: ErrorKind) -> "UnitOutcome":
        return cls(success=False, error=error, kind=kind)


class UnitError(BaseModel):
    """A failure recorded against one unit."""

    model_config = ConfigDict(populate_by_name=True)

    unit_name: str = Field(alias="unitName")
    error: str
    timestamp: datetime = Field(default_factory=utcnow)
    kind: ErrorKind = ErrorKind.SYSTEM


class JobState(BaseModel):
    """Mutable state of one orchestration run."""

    model_config = ConfigDict(populate_by_name=True)

    total_units: int = Field(default=0, alias="totalUnits")
    processed_count: int = Field(default=0, alias="processedCount")
    success_count: int = Field(default=0, alias="successCount")
    failure_count: int = Field(default=0, alias="failureCount")
    new_record_count: int = Field(default=0, alias="newRecordCount")
    skipped_count: int = Field(default=0, alias="skippedCount")
    current_unit_name: str = Field(default="", alias="currentUnitName")
    status: JobStatus = JobStatus.IDLE
    started_at: datetime | None = Field(default=None, alias="startedAt")
    errors: list[UnitError] = Field(default_factory=list)
    last_processed_index: int = Field(default=-1, alias="lastProcessedIndex")
    eta_seconds: float | None = Field(default=None, alias="etaSeconds")
    session_id: str | None = Field(default=None, alias="sessionId")

    def record_error(self, unit_name: str, error: str, kind: ErrorKind) -> UnitError:
        entry = UnitError(unit_name=unit_name, error=error, kind=kind)
        self.errors.append(entry)
        return entry

    @property
    def is_terminal(self) -> bool:
        return self.status in (JobStatus.COMPLETED, JobStatus.ERROR)


class CumulativeCounts(BaseModel):
    """Counters carried across a resume boundary."""

    processed: int = 0
    success: int = 0
    failure: int = 0
    new_records: int = Field(default=0, alias="newRecords")
    skipped: int = 0

    model_config = ConfigDict(populate_by_name=True)

    @classmethod
    def from_state(cls, state: JobState) -> "CumulativeCounts":
        return cls(
            processed=state.processed_count,
            success=state.success_count,
            failure=state.failure_count,
            new_records=state.new_record_count,
            skipped=state.skipped_count,
        )

    def seed(self, state: JobState) -> None:
        state.processed_count = self.processed
        state.success_count = self.success
        state.failure_count = self.failure
        state.new_record_count = self.new_records
        state.skipped_count = self.skipped


class ResumeState(BaseModel):
    """Checkpoint blob persisted so a later run can continue."""

    model_config = ConfigDict(populate_by_name=True)

    last_processed_index: int = Field(alias="lastProcessedIndex")
    unit_ids: list[str] = Field(default_factory=list, alias="unitIds")
    total_units: int | None = Field(default=None, alias="totalUnits")
    started_at: datetime = Field(alias="startTime")
    cumulative_counts: CumulativeCounts = Field(
        default_factory=CumulativeCounts, alias="statistics"
    )
    session_id: str | None = Field(default=None, alias="sessionId")
    saved_at: datetime = Field(default_factory=utcnow, alias="savedAt")

    @classmethod
    def from_job_state(cls, state: JobState, unit_ids: list[str]) -> "ResumeState":
        return cls(
            last_processed_index=state.last_processed_index,
            unit_ids=list(unit_ids),
            total_units=state.total_units or None,
            started_at=state.started_at or utcnow(),
            cumulative_counts=CumulativeCounts.from_state(state),
            session_id=state.session_id,
        )

    @property
    def next_index(self) -> int:
        return self.last_processed_index + 1

    def to_json(self) -> str:
        return self.model_dump_json(by_alias=True, indent=2)

    @classmethod
    def from_json(cls, payload: str) -> "ResumeState":
        return cls.model_validate_json(payload)


__all__ = [
    "CumulativeCounts",
    "ErrorKind",
    "FetchItem",
    "FetchResult",
    "JobState",
    "JobStatus",
    "ResumeState",
    "StoreReport",
    "StoredRecord",
    "UnitError",
    "UnitOutcome",
    "WorkUnit",
    "utcnow",
]
