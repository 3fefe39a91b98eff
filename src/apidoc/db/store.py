"""SQLite-backed session and batch cache store."""

from __future__ import annotations

import logging
import sqlite3
import threading
from collections.abc import Iterator
from contextlib import contextmanager
from datetime import datetime, timezone
from typing import Optional

from apidoc.db.connection import Database
from apidoc.models import CacheEntry, CacheStatus, Session, SessionStatus

logger = logging.getLogger(__name__)

_CACHE_COLUMNS = (
    "session_id, batch_index, batch_key, status, raw_output, model, error_message, created_at"
)


def _now() -> datetime:
    return datetime.now(timezone.utc)


class GenerationStore:
    """Sessions and per-batch LLM cache entries.

    Each (session_id, batch_index) pair has at most one cache entry; saving
    again replaces it. Writes are serialized with a lock so the store can be
    shared between threads.
    """

    def __init__(self, db: Database) -> None:
        """Initialize the store.

        Args:
            db: Database connection with migrations already applied.
        """
        self._db = db
        self._lock = threading.Lock()

    @contextmanager
    def _transaction(self) -> Iterator[None]:
        """Run one write under the lock; commit it, or roll back if it raises."""
        with self._lock:
            try:
                yield
            except Exception:
                self._db.rollback()
                raise
            self._db.commit()

    # ------------------------------------------------------------------
    # Sessions
    # ------------------------------------------------------------------

    def _next_session_id(self, now: datetime) -> str:
        prefix = f"sess_{now:%Y%m%d}_"
        rows = self._db.execute(
            "SELECT id FROM sessions WHERE id LIKE ?", (prefix + "%",)
        ).fetchall()
        highest = 0
        for row in rows:
            suffix = row["id"][len(prefix) :]
            if suffix.isdigit():
                highest = max(highest, int(suffix))
        return f"{prefix}{highest + 1:03d}"

    def create_session(
        self, scenario: str, source: str = "", host: str = "", record_count: int = 0
    ) -> Session:
        """Register a new session in the imported state."""
        with self._transaction():
            now = _now()
            session = Session(
                id=self._next_session_id(now),
                scenario=scenario,
                source=source,
                host=host,
                record_count=record_count,
                status=SessionStatus.IMPORTED,
                created_at=now,
                updated_at=now,
            )
            self._db.execute(
                """
                INSERT INTO sessions
                    (id, source, scenario, host, record_count, status, created_at, updated_at)
                VALUES (?, ?, ?, ?, ?, ?, ?, ?)
                """,
                (
                    session.id,
                    session.source,
                    session.scenario,
                    session.host,
                    session.record_count,
                    session.status.value,
                    now.isoformat(),
                    now.isoformat(),
                ),
            )
        return session

    def _row_to_session(self, row: sqlite3.Row) -> Session:
        return Session(
            id=row["id"],
            scenario=row["scenario"],
            source=row["source"],
            host=row["host"],
            record_count=row["record_count"],
            status=SessionStatus(row["status"]),
            created_at=datetime.fromisoformat(row["created_at"]),
            updated_at=datetime.fromisoformat(row["updated_at"]),
        )

    def get_session(self, session_id: str) -> Optional[Session]:
        """Get a session by id, or None if it does not exist."""
        row = self._db.execute("SELECT * FROM sessions WHERE id = ?", (session_id,)).fetchone()
        return self._row_to_session(row) if row else None

    def list_sessions(self) -> list[Session]:
        """List all sessions, newest first."""
        rows = self._db.execute(
            "SELECT * FROM sessions ORDER BY created_at DESC, id DESC"
        ).fetchall()
        return [self._row_to_session(row) for row in rows]

    def set_status(self, session_id: str, status: SessionStatus | str) -> None:
        """Update a session's status."""
        value = SessionStatus(status).value
        with self._transaction():
            cursor = self._db.execute(
                "UPDATE sessions SET status = ?, updated_at = ? WHERE id = ?",
                (value, _now().isoformat(), session_id),
            )
        if cursor.rowcount == 0:
            logger.warning(f"Status update to {value!r} for unknown session {session_id}")

    def delete_session(self, session_id: str) -> bool:
        """Delete a session and its cache entries.

        Returns:
            True if the session existed.
        """
        with self._transaction():
            self._db.execute("DELETE FROM llm_cache WHERE session_id = ?", (session_id,))
            cursor = self._db.execute("DELETE FROM sessions WHERE id = ?", (session_id,))
        return cursor.rowcount > 0

    # ------------------------------------------------------------------
    # Batch cache
    # ------------------------------------------------------------------

    def _row_to_entry(self, row: sqlite3.Row) -> CacheEntry:
        return CacheEntry(
            session_id=row["session_id"],
            batch_index=row["batch_index"],
            batch_key=row["batch_key"],
            status=CacheStatus(row["status"]),
            raw_output=row["raw_output"],
            model=row["model"],
            error_message=row["error_message"],
            created_at=datetime.fromisoformat(row["created_at"]),
        )

    def upsert(self, entry: CacheEntry) -> None:
        """Insert a cache entry, replacing any entry for the same batch."""
        with self._transaction():
            self._db.execute(
                f"""
                INSERT INTO llm_cache ({_CACHE_COLUMNS})
                VALUES (?, ?, ?, ?, ?, ?, ?, ?)
                ON CONFLICT(session_id, batch_index) DO UPDATE SET
                    batch_key = excluded.batch_key,
                    status = excluded.status,
                    raw_output = excluded.raw_output,
                    model = excluded.model,
                    error_message = excluded.error_message,
                    created_at = excluded.created_at
                """,
                (
                    entry.session_id,
                    entry.batch_index,
                    entry.batch_key,
                    CacheStatus(entry.status).value,
                    entry.raw_output,
                    entry.model,
                    entry.error_message,
                    entry.created_at.isoformat(),
                ),
            )

    def get_all(self, session_id: str) -> list[CacheEntry]:
        """All cache entries of a session, ordered by batch index."""
        rows = self._db.execute(
            f"SELECT {_CACHE_COLUMNS} FROM llm_cache WHERE session_id = ? ORDER BY batch_index",
            (session_id,),
        ).fetchall()
        return [self._row_to_entry(row) for row in rows]

    def get_failed(self, session_id: str) -> list[CacheEntry]:
        """Failed cache entries of a session, ordered by batch index."""
        rows = self._db.execute(
            f"""
            SELECT {_CACHE_COLUMNS} FROM llm_cache
            WHERE session_id = ? AND status = ?
            ORDER BY batch_index
            """,
            (session_id, CacheStatus.FAILED.value),
        ).fetchall()
        return [self._row_to_entry(row) for row in rows]

    def clear_all(self, session_id: str) -> None:
        """Delete every cache entry of a session."""
        with self._transaction():
            self._db.execute("DELETE FROM llm_cache WHERE session_id = ?", (session_id,))
