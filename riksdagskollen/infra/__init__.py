"""Infra layer utilities (storage, proxy pool)."""

from .proxy_pool import ProxyPool, ProxyRecord
from .storage import AnalysisRepository, PersistenceError, RecordRepository, SQLiteManager

__all__ = [
    "AnalysisRepository",
    "PersistenceError",
    "ProxyPool",
    "ProxyRecord",
    "RecordRepository",
    "SQLiteManager",
]
