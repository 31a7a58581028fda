"""SQLite storage for stored records and language analyses."""

from __future__ import annotations

import sqlite3
from datetime import datetime, timedelta, timezone
from pathlib import Path
from threading import Lock
from typing import Dict, Iterable

from ..state import StoredRecord


class PersistenceError(RuntimeError):
    """Raised when the persistence layer rejects a lookup or write."""


class SQLiteManager:
    """Manage SQLite connections with basic schema guarantees."""

    def __init__(self) -> None:
        self._connections: Dict[Path, sqlite3.Connection] = {}
        self._lock = Lock()

    def connect(self, path: Path) -> sqlite3.Connection:
        path.parent.mkdir(parents=True, exist_ok=True)
        with self._lock:
            if path not in self._connections:
                conn = sqlite3.connect(path, check_same_thread=False)
                conn.row_factory = sqlite3.Row
                self._connections[path] = conn
                self._ensure_schema(conn)
            return self._connections[path]

    def _ensure_schema(self, conn: sqlite3.Connection) -> None:
        conn.execute(
            """
            CREATE TABLE IF NOT EXISTS member_news (
                id INTEGER PRIMARY KEY AUTOINCREMENT,
                owner_id TEXT NOT NULL,
                title TEXT NOT NULL,
                url TEXT NOT NULL,
                published_at TEXT,
                description TEXT,
                image_url TEXT,
                stored_at TEXT NOT NULL,
                UNIQUE (owner_id, url),
                UNIQUE (owner_id, title)
            )
            """
        )
        conn.execute(
            """
            CREATE TABLE IF NOT EXISTS language_analysis (
                id INTEGER PRIMARY KEY AUTOINCREMENT,
                member_id TEXT NOT NULL,
                member_name TEXT NOT NULL,
                document_id TEXT,
                document_title TEXT,
                word_count INTEGER NOT NULL,
                overall_score REAL NOT NULL,
                complexity_score REAL NOT NULL,
                vocabulary_score REAL NOT NULL,
                rhetorical_score REAL NOT NULL,
                clarity_score REAL NOT NULL,
                analysis_date TEXT NOT NULL
            )
            """
        )
        conn.commit()

    def reset(self, path: Path) -> None:
        with self._lock:
            if path in self._connections:
                self._connections[path].close()
                del self._connections[path]
        if path.exists():
            path.unlink()

    def close_all(self) -> None:
        with self._lock:
            for conn in self._connections.values():
                conn.close()
            self._connections.clear()


class RecordRepository:
    """Point lookups and single-row inserts against ``member_news``."""

    def __init__(self, manager: SQLiteManager, db_path: Path) -> None:
        self.manager = manager
        self.db_path = db_path
        self._lock = Lock()
        self._conn = manager.connect(db_path)

    def has_url(self, owner_id: str, url: str) -> bool:
        return self._exists("SELECT 1 FROM member_news WHERE owner_id = ? AND url = ? LIMIT 1", (owner_id, url))

    def has_title(self, owner_id: str, title: str) -> bool:
        return self._exists(
            "SELECT 1 FROM member_news WHERE owner_id = ? AND title = ? LIMIT 1", (owner_id, title)
        )

    def insert(self, record: StoredRecord) -> None:
        try:
            with self._lock:
                self._conn.execute(
                    """
                    INSERT INTO member_news(owner_id, title, url, published_at, description, image_url, stored_at)
                    VALUES (?, ?, ?, ?, ?, ?, ?)
                    """,
                    (
                        record.owner_id,
                        record.title,
                        record.url,
                        record.published_at,
                        record.description,
                        record.image_url,
                        datetime.now(timezone.utc).isoformat(timespec="seconds"),
                    ),
                )
                self._conn.commit()
        except sqlite3.Error as exc:
            raise PersistenceError(str(exc)) from exc

    def recent(self, owner_id: str, limit: int = 20) -> list[tuple[str, str, str]]:
        with self._lock:
            rows = self._conn.execute(
                "SELECT title, url, stored_at FROM member_news WHERE owner_id = ? ORDER BY id DESC LIMIT ?",
                (owner_id, limit),
            ).fetchall()
        return [(row["title"], row["url"], row["stored_at"]) for row in rows]

    def count(self, owner_id: str | None = None) -> int:
        with self._lock:
            if owner_id is None:
                row = self._conn.execute("SELECT count(*) FROM member_news").fetchone()
            else:
                row = self._conn.execute(
                    "SELECT count(*) FROM member_news WHERE owner_id = ?", (owner_id,)
                ).fetchone()
        return int(row[0])

    def _exists(self, sql: str, params: tuple) -> bool:
        try:
            with self._lock:
                return self._conn.execute(sql, params).fetchone() is not None
        except sqlite3.Error as exc:
            raise PersistenceError(str(exc)) from exc


class AnalysisRepository:
    """Rows of ``language_analysis``; one per scored speech."""

    def __init__(self, manager: SQLiteManager, db_path: Path) -> None:
        self._lock = Lock()
        self._conn = manager.connect(db_path)

    def has_recent(self, member_id: str, days: int, now: datetime | None = None) -> bool:
        reference = now or datetime.now(timezone.utc)
        threshold = (reference - timedelta(days=days)).isoformat(timespec="seconds")
        try:
            with self._lock:
                row = self._conn.execute(
                    "SELECT 1 FROM language_analysis WHERE member_id = ? AND analysis_date >= ? LIMIT 1",
                    (member_id, threshold),
                ).fetchone()
        except sqlite3.Error as exc:
            raise PersistenceError(str(exc)) from exc
        return row is not None

    def insert_many(self, rows: Iterable[dict]) -> int:
        payload = [
            (
                row["member_id"],
                row["member_name"],
                row.get("document_id"),
                row.get("document_title"),
                row["word_count"],
                row["overall_score"],
                row["complexity_score"],
                row["vocabulary_score"],
                row["rhetorical_score"],
                row["clarity_score"],
                row["analysis_date"],
            )
            for row in rows
        ]
        try:
            with self._lock:
                self._conn.executemany(
                    """
                    INSERT INTO language_analysis(
                        member_id, member_name, document_id, document_title, word_count,
                        overall_score, complexity_score, vocabulary_score, rhetorical_score,
                        clarity_score, analysis_date
                    ) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
                    """,
                    payload,
                )
                self._conn.commit()
        except sqlite3.Error as exc:
            raise PersistenceError(str(exc)) from exc
        return len(payload)


__all__ = ["AnalysisRepository", "PersistenceError", "RecordRepository", "SQLiteManager"]
