"""Shared fixtures: isolated config home, SQLite stores and instant sleeps."""

from __future__ import annotations

from pathlib import Path
from typing import Callable, Iterable

import pytest

from riksdagskollen.config import (
    BatchSettings,
    ConfigLocator,
    ConfigRepository,
    FetchSettings,
    GlobalConfig,
    ProxyEndpoint,
)
from riksdagskollen.infra import RecordRepository, SQLiteManager
from riksdagskollen.state import FetchItem, WorkUnit


class SleepRecorder:
    """Awaitable stand-in for ``asyncio.sleep`` that records delays."""

    def __init__(self) -> None:
        self.calls: list[float] = []

    async def __call__(self, seconds: float) -> None:
        self.calls.append(seconds)


@pytest.fixture
def fast_sleep() -> SleepRecorder:
    return SleepRecorder()


@pytest.fixture
def sample_global_config() -> GlobalConfig:
    return GlobalConfig(
        fetch=FetchSettings(
            proxies=[ProxyEndpoint(prefix="")],
            retries_per_proxy=2,
            retry_backoff=1.0,
            proxy_delay=0.5,
        ),
        batch=BatchSettings(delay_between_units=0.0, max_units=10),
        enable_progress_bar=False,
    )


@pytest.fixture
def temp_config_repository(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> Iterable[ConfigRepository]:
    monkeypatch.setenv("RIKSDAGSKOLLEN_HOME", str(tmp_path))
    locator = ConfigLocator(project_root=tmp_path)
    repository = ConfigRepository(locator)
    yield repository


@pytest.fixture
def sqlite_manager() -> Iterable[SQLiteManager]:
    manager = SQLiteManager()
    yield manager
    manager.close_all()


@pytest.fixture
def record_repository(tmp_path: Path, sqlite_manager: SQLiteManager) -> RecordRepository:
    return RecordRepository(sqlite_manager, tmp_path / "records.db")


@pytest.fixture
def make_units() -> Callable[[int], list[WorkUnit]]:
    def _builder(count: int) -> list[WorkUnit]:
        return [WorkUnit(id=f"m{i}", display_name=f"Member {i}", party_code="S") for i in range(1, count + 1)]

    return _builder


@pytest.fixture
def make_item() -> Callable[..., FetchItem]:
    def _builder(index: int = 1, **overrides) -> FetchItem:
        base = {
            "title": f"Anna Svensson debatterar punkt {index}",
            "url": f"https://news.example.se/artikel/{index}",
            "published_at": "Mon, 06 May 2024 08:00:00 GMT",
            "description": "Riksdagsledamoten Anna Svensson kommenterar budgeten.",
        }
        base.update(overrides)
        return FetchItem(**base)

    return _builder
