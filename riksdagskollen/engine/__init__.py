"""Batch engine: fetching, deduplication, checkpointing and job control.

``pipelines`` is imported explicitly by callers since it depends on the
Riksdag client.
"""

from .analysis import TextScores, score_text
from .checkpoint import CheckpointConflict, CheckpointStore
from .controller import (
    JobAlreadyRunning,
    JobSignals,
    ResumableJobController,
    StartOptions,
    UnitPipeline,
    UnitSource,
)
from .dedup import DeduplicatingStore, StoreCounters
from .feed import clean_text, filter_relevant, is_relevant, parse_feed
from .fetcher import FeedFetcher
from .projection import ProgressView, estimate_eta, format_eta, project, recent_errors
from .remote import ChunkedRemoteJobProxy, RemoteJobError, RemoteResponse
from .strategies import SearchStrategy, StrategyBook, default_strategies

__all__ = [
    "CheckpointConflict",
    "CheckpointStore",
    "ChunkedRemoteJobProxy",
    "DeduplicatingStore",
    "FeedFetcher",
    "JobAlreadyRunning",
    "JobSignals",
    "ProgressView",
    "RemoteJobError",
    "RemoteResponse",
    "ResumableJobController",
    "SearchStrategy",
    "StartOptions",
    "StoreCounters",
    "StrategyBook",
    "TextScores",
    "UnitPipeline",
    "UnitSource",
    "clean_text",
    "default_strategies",
    "estimate_eta",
    "filter_relevant",
    "format_eta",
    "is_relevant",
    "parse_feed",
    "project",
    "recent_errors",
    "score_text",
]
