"""SQLite-backed storage for call summaries and entity associations."""

from __future__ import annotations

import logging
import sqlite3
import uuid
from collections.abc import Sequence
from datetime import UTC, datetime, timedelta
from pathlib import Path

from .entities import EntityRegistry
from .exceptions import PersistenceError
from .records import Association, CallSummary, EntityRef

logger = logging.getLogger("apilogs.store")

DEFAULT_DB_PATH = Path("./data/api_logs.db")


def _utcnow() -> datetime:
    return datetime.now(UTC)


def _iso(value: datetime | None) -> str | None:
    return value.isoformat() if value else None


def _parse(value: str | None) -> datetime | None:
    return datetime.fromisoformat(value) if value else None


class CallLogStore:
    """Persists one summary row per correlation id plus its associations.

    Usage:
        store = CallLogStore(Path("api_logs.db"), entities=registry)
        store.initialize()

        summary_id = store.upsert_call_summary(CallSummary.from_record(record))
        store.bulk_upsert_associations([Association(summary_id, "user", "1")])

    Every ``sqlite3.Error`` surfaces as ``PersistenceError``.
    """

    def __init__(self, db_path: Path | None = None, entities: EntityRegistry | None = None):
        """Initialize the store.

        Args:
            db_path: Path to the SQLite database. Defaults to ./data/api_logs.db
            entities: Registry used to check that tracked entities still exist
        """
        self.db_path = Path(db_path) if db_path else DEFAULT_DB_PATH
        self.entities = entities or EntityRegistry()
        self._initialized = False

    def _get_connection(self) -> sqlite3.Connection:
        """Get a database connection."""
        self.db_path.parent.mkdir(parents=True, exist_ok=True)

        conn = sqlite3.connect(str(self.db_path))
        conn.row_factory = sqlite3.Row
        conn.execute("PRAGMA foreign_keys = ON")
        return conn

    def initialize(self) -> None:
        """Create tables if needed. Safe to call multiple times."""
        if self._initialized:
            return

        try:
            conn = self._get_connection()
            try:
                conn.execute("""
                    CREATE TABLE IF NOT EXISTS call_summaries (
                        id TEXT PRIMARY KEY,
                        correlation_id TEXT NOT NULL UNIQUE,
                        path TEXT NOT NULL,
                        method TEXT NOT NULL,
                        api_version TEXT NOT NULL DEFAULT 'default',
                        request_at TEXT,
                        response_at TEXT,
                        response_status INTEGER,
                        is_error INTEGER NOT NULL DEFAULT 0,
                        created_at TEXT NOT NULL,
                        updated_at TEXT NOT NULL
                    )
                """)
                conn.execute("""
                    CREATE TABLE IF NOT EXISTS call_summary_entities (
                        id INTEGER PRIMARY KEY AUTOINCREMENT,
                        call_summary_id TEXT NOT NULL
                            REFERENCES call_summaries(id) ON DELETE CASCADE,
                        entity_type TEXT NOT NULL,
                        entity_id TEXT NOT NULL,
                        created_at TEXT NOT NULL,
                        updated_at TEXT NOT NULL,
                        UNIQUE (call_summary_id, entity_type, entity_id)
                    )
                """)
                conn.execute("""
                    CREATE INDEX IF NOT EXISTS idx_call_summaries_created_at
                    ON call_summaries(created_at)
                """)
                conn.execute("""
                    CREATE INDEX IF NOT EXISTS idx_call_summary_entities_entity
                    ON call_summary_entities(entity_type, entity_id)
                """)
                conn.commit()
                self._initialized = True
                logger.info(f"Call log store initialized at {self.db_path}")
            finally:
                conn.close()
        except sqlite3.Error as e:
            raise PersistenceError(f"cannot initialize {self.db_path}: {e}", cause=e) from e

    # --- Call summaries ---

    def upsert_call_summary(self, summary: CallSummary) -> str:
        """Insert or update the summary for ``summary.correlation_id``.

        An existing row keeps its response fields once ``response_at`` is
        set, so a late or duplicate completion cannot overwrite them.

        Returns:
            The summary id
        """
        self.initialize()
        now = _utcnow().isoformat()

        try:
            conn = self._get_connection()
            try:
                conn.execute(
                    """
                    INSERT INTO call_summaries (
                        id, correlation_id, path, method, api_version, request_at,
                        response_at, response_status, is_error, created_at, updated_at
                    ) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
                    ON CONFLICT(correlation_id) DO UPDATE SET
                        path = excluded.path,
                        method = excluded.method,
                        api_version = excluded.api_version,
                        response_at = COALESCE(call_summaries.response_at, excluded.response_at),
                        response_status = CASE WHEN call_summaries.response_at IS NULL
                            THEN excluded.response_status ELSE call_summaries.response_status END,
                        is_error = CASE WHEN call_summaries.response_at IS NULL
                            THEN excluded.is_error ELSE call_summaries.is_error END,
                        updated_at = excluded.updated_at
                    """,
                    (
                        str(uuid.uuid4()),
                        summary.correlation_id,
                        summary.path,
                        summary.method,
                        summary.api_version,
                        _iso(summary.request_at),
                        _iso(summary.response_at),
                        summary.response_status,
                        int(summary.is_error),
                        now,
                        now,
                    ),
                )
                row = conn.execute(
                    "SELECT id FROM call_summaries WHERE correlation_id = ?",
                    (summary.correlation_id,),
                ).fetchone()
                conn.commit()
            finally:
                conn.close()
        except sqlite3.Error as e:
            raise PersistenceError(str(e), summary.correlation_id, cause=e) from e

        return row["id"]

    def get_summary(self, correlation_id: str) -> CallSummary | None:
        """Get the summary stored for a correlation id."""
        self.initialize()
        try:
            conn = self._get_connection()
            try:
                row = conn.execute(
                    "SELECT * FROM call_summaries WHERE correlation_id = ?",
                    (correlation_id,),
                ).fetchone()
            finally:
                conn.close()
        except sqlite3.Error as e:
            raise PersistenceError(str(e), correlation_id, cause=e) from e

        return self._row_to_summary(row) if row else None

    # --- Associations ---

    def find_existing_entity_ids(self, entity_type: str, ids: Sequence[str]) -> set[str]:
        """Return which of ``ids`` still exist for ``entity_type``."""
        return self.entities.find_existing(entity_type, ids)

    def bulk_upsert_associations(self, rows: Sequence[Association]) -> int:
        """Write all associations in one transaction.

        Existing associations only get their ``updated_at`` refreshed.

        Returns:
            Number of rows submitted
        """
        if not rows:
            return 0

        self.initialize()
        now = _utcnow().isoformat()

        try:
            conn = self._get_connection()
            try:
                conn.executemany(
                    """
                    INSERT INTO call_summary_entities (
                        call_summary_id, entity_type, entity_id, created_at, updated_at
                    ) VALUES (?, ?, ?, ?, ?)
                    ON CONFLICT(call_summary_id, entity_type, entity_id)
                    DO UPDATE SET updated_at = excluded.updated_at
                    """,
                    [
                        (row.call_summary_id, row.entity_type, str(row.entity_id), row.created_at.isoformat(), now)
                        for row in rows
                    ],
                )
                conn.commit()
            finally:
                conn.close()
        except sqlite3.Error as e:
            raise PersistenceError(f"association write failed: {e}", cause=e) from e

        return len(rows)

    def get_associations(self, summary_id: str) -> list[EntityRef]:
        """Get the entities associated with a summary, oldest first."""
        self.initialize()
        try:
            conn = self._get_connection()
            try:
                rows = conn.execute(
                    """
                    SELECT entity_type, entity_id FROM call_summary_entities
                    WHERE call_summary_id = ?
                    ORDER BY id
                    """,
                    (summary_id,),
                ).fetchall()
            finally:
                conn.close()
        except sqlite3.Error as e:
            raise PersistenceError(str(e), cause=e) from e

        return [EntityRef(row["entity_type"], row["entity_id"]) for row in rows]

    def summaries_for_entity(self, entity_type: str, entity_id: str, limit: int = 50) -> list[CallSummary]:
        """Get the calls that touched an entity, most recent first."""
        self.initialize()
        try:
            conn = self._get_connection()
            try:
                rows = conn.execute(
                    """
                    SELECT s.* FROM call_summaries s
                    JOIN call_summary_entities e ON e.call_summary_id = s.id
                    WHERE e.entity_type = ? AND e.entity_id = ?
                    ORDER BY s.request_at DESC
                    LIMIT ?
                    """,
                    (entity_type, str(entity_id), limit),
                ).fetchall()
            finally:
                conn.close()
        except sqlite3.Error as e:
            raise PersistenceError(str(e), cause=e) from e

        return [self._row_to_summary(row) for row in rows]

    def latest_summary_for_entity(self, entity_type: str, entity_id: str) -> CallSummary | None:
        summaries = self.summaries_for_entity(entity_type, entity_id, limit=1)
        return summaries[0] if summaries else None

    # --- Retention ---

    def prune(self, ttl_hours: int, now: datetime | None = None) -> int:
        """Delete summaries created more than ``ttl_hours`` ago.

        Returns:
            Number of summaries deleted
        """
        self.initialize()
        cutoff = ((now or _utcnow()) - timedelta(hours=ttl_hours)).isoformat()

        try:
            conn = self._get_connection()
            try:
                conn.execute(
                    """
                    DELETE FROM call_summary_entities WHERE call_summary_id IN (
                        SELECT id FROM call_summaries WHERE created_at <= ?
                    )
                    """,
                    (cutoff,),
                )
                cursor = conn.execute("DELETE FROM call_summaries WHERE created_at <= ?", (cutoff,))
                conn.commit()
                deleted = cursor.rowcount
            finally:
                conn.close()
        except sqlite3.Error as e:
            raise PersistenceError(f"prune failed: {e}", cause=e) from e

        if deleted:
            logger.info(f"Pruned {deleted} call summaries older than {ttl_hours}h")
        return deleted

    def _row_to_summary(self, row: sqlite3.Row) -> CallSummary:
        return CallSummary(
            id=row["id"],
            correlation_id=row["correlation_id"],
            path=row["path"],
            method=row["method"],
            api_version=row["api_version"],
            request_at=_parse(row["request_at"]),
            response_at=_parse(row["response_at"]),
            response_status=row["response_status"],
            is_error=bool(row["is_error"]),
            created_at=_parse(row["created_at"]),
            updated_at=_parse(row["updated_at"]),
        )
