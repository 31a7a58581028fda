"""Pydantic models used across the batch configuration flow."""

from __future__ import annotations

from pathlib import Path
from typing import Any

from pydantic import BaseModel, Field, field_validator, model_validator

DEFAULT_FEED_URL = "https://news.google.com/rss/search?q={query}&hl=sv&gl=SE&ceid=SE:sv"
DEFAULT_USER_AGENT = "Mozilla/5.0 (compatible; NewsBot/1.0)"


class ProxyEndpoint(BaseModel):
    """One outbound route; an empty prefix means a direct request."""

    prefix: str = ""
    json_envelope: bool = False

    @property
    def label(self) -> str:
        return self.prefix or "direct"


def _default_proxies() -> list[ProxyEndpoint]:
    return [
        ProxyEndpoint(prefix=""),
        ProxyEndpoint(prefix="https://corsproxy.io/?"),
        ProxyEndpoint(prefix="https://api.allorigins.win/get?url=", json_envelope=True),
        ProxyEndpoint(prefix="https://proxy.cors.sh/"),
        ProxyEndpoint(prefix="https://cors-anywhere.herokuapp.com/"),
    ]


class FetchSettings(BaseModel):
    """Knobs for the rate-limited feed fetcher."""

    feed_url: str = DEFAULT_FEED_URL
    request_timeout: float = 15.0
    retries_per_proxy: int = 2
    retry_backoff: float = 1.0
    proxy_delay: float = 0.5
    max_strategies: int = 4
    user_agent: str = DEFAULT_USER_AGENT
    proxies: list[ProxyEndpoint] = Field(default_factory=_default_proxies)
    proxy_max_failures: int = 3
    proxy_retry_after: float = 300.0

    @field_validator("feed_url")
    @classmethod
    def _require_query_slot(cls, value: str) -> str:
        if "{query}" not in value:
            raise ValueError("feed_url must contain a {query} placeholder")
        return value

    @field_validator("proxies", mode="before")
    @classmethod
    def _coerce_proxies(cls, value: Any) -> Any:
        # Plain strings are accepted as prefixes
        if isinstance(value, list):
            return [{"prefix": item} if isinstance(item, str) else item for item in value]
        return value

    @model_validator(mode="after")
    def _validate_limits(self) -> "FetchSettings":
        if self.request_timeout <= 0:
            raise ValueError("request_timeout must be > 0")
        if self.retries_per_proxy < 1:
            raise ValueError("retries_per_proxy must be >= 1")
        if self.max_strategies < 1:
            raise ValueError("max_strategies must be >= 1")
        if self.retry_backoff < 0 or self.proxy_delay < 0:
            raise ValueError("Delays must be non-negative")
        if not self.proxies:
            raise ValueError("At least one proxy endpoint is required (use '' for direct)")
        return self


class StoreSettings(BaseModel):
    """Where stored records live and how text fields are bounded."""

    db_path: Path = Field(default=Path("data/history/records.db"))
    title_max_length: int = 500
    description_max_length: int = 2000
    url_max_length: int = 1000

    @field_validator("db_path", mode="before")
    @classmethod
    def _coerce_path(cls, value: Any) -> Path:
        return Path(value)

    @model_validator(mode="after")
    def _validate_lengths(self) -> "StoreSettings":
        for name in ("title_max_length", "description_max_length", "url_max_length"):
            if getattr(self, name) < 1:
                raise ValueError(f"{name} must be >= 1")
        return self

    def resolved_db_path(self, base_dir: Path) -> Path:
        if not self.db_path.is_absolute():
            return (base_dir / self.db_path).resolve()
        return self.db_path


class BatchSettings(BaseModel):
    """Pacing and checkpoint cadence for resumable jobs."""

    max_units: int = 50
    delay_between_units: float = 3.0
    checkpoint_every: int = 5
    pause_poll_interval: float = 0.5
    checkpoint_max_age_hours: float = 24.0
    error_tail: int = 10

    @model_validator(mode="after")
    def _validate_batch(self) -> "BatchSettings":
        if self.max_units < 1:
            raise ValueError("max_units must be >= 1")
        if self.delay_between_units < 0:
            raise ValueError("delay_between_units must be non-negative")
        if self.checkpoint_every < 1:
            raise ValueError("checkpoint_every must be >= 1")
        if self.pause_poll_interval <= 0:
            raise ValueError("pause_poll_interval must be > 0")
        if self.checkpoint_max_age_hours <= 0:
            raise ValueError("checkpoint_max_age_hours must be > 0")
        return self


class RiksdagSettings(BaseModel):
    """Open-data API used to materialise the member roster."""

    base_url: str = "https://data.riksdagen.se"
    page_size: int = 50
    page_delay: float = 0.2
    request_timeout: float = 20.0

    @field_validator("base_url")
    @classmethod
    def _strip_slash(cls, value: str) -> str:
        return value.rstrip("/")


class AnalysisSettings(BaseModel):
    """Language-analysis job parameters."""

    recent_days: int = 7
    max_speeches: int = 20
    min_words: int = 40

    @model_validator(mode="after")
    def _validate_analysis(self) -> "AnalysisSettings":
        if self.recent_days < 0:
            raise ValueError("recent_days must be >= 0")
        if self.max_speeches < 1:
            raise ValueError("max_speeches must be >= 1")
        return self


class RemoteJobSettings(BaseModel):
    """Remote chunk-processor endpoint driven by the client."""

    endpoint: str = "http://localhost:54321/functions/v1/fetch-all-members-news"
    api_key: str | None = None
    chain_delay: float = 2.0
    poll_interval: float = 1.0
    request_timeout: float = 60.0

    @model_validator(mode="after")
    def _validate_remote(self) -> "RemoteJobSettings":
        if self.chain_delay < 0:
            raise ValueError("chain_delay must be non-negative")
        if self.poll_interval <= 0:
            raise ValueError("poll_interval must be > 0")
        return self


class GlobalConfig(BaseModel):
    """Global controls shared by every job."""

    fetch: FetchSettings = Field(default_factory=FetchSettings)
    store: StoreSettings = Field(default_factory=StoreSettings)
    batch: BatchSettings = Field(default_factory=BatchSettings)
    riksdag: RiksdagSettings = Field(default_factory=RiksdagSettings)
    analysis: AnalysisSettings = Field(default_factory=AnalysisSettings)
    remote: RemoteJobSettings = Field(default_factory=RemoteJobSettings)
    enable_progress_bar: bool = True


__all__ = [
    "AnalysisSettings",
    "BatchSettings",
    "FetchSettings",
    "GlobalConfig",
    "ProxyEndpoint",
    "RemoteJobSettings",
    "RiksdagSettings",
    "StoreSettings",
]
