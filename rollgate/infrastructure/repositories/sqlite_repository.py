"""
SQLite Repository

Architectural Intent:
- Persistent storage backend using SQLite (stdlib, zero external deps)
- Stores one row per finished rollout with its cause chain
- Answers "what was the last known-good reference on this host?" so a
  failed probe can be rolled back without the caller supplying a reference
- Uses WAL mode for concurrent read/write support

Design Decisions:
- Single database file at configurable path (default: rollgate.db)
- Auto-creates tables on first use
- Thread-safe via sqlite3's check_same_thread=False
- Timestamps stored as ISO 8601 strings
"""

from __future__ import annotations
import sqlite3
import json
import logging
from datetime import datetime, UTC
from typing import Any, Optional

logger = logging.getLogger(__name__)


class SQLiteRepository:
    """Persistent rollout history using SQLite."""

    def __init__(self, db_path: str = "rollgate.db"):
        self._db_path = db_path
        self._conn: Optional[sqlite3.Connection] = None

    def connect(self) -> None:
        """Open database connection and create tables."""
        self._conn = sqlite3.connect(
            self._db_path,
            check_same_thread=False,
        )
        self._conn.execute("PRAGMA journal_mode=WAL")
        self._conn.row_factory = sqlite3.Row
        self._create_tables()
        logger.info("SQLite repository connected: %s", self._db_path)

    def close(self) -> None:
        """Close database connection."""
        if self._conn:
            self._conn.close()
            self._conn = None

    def _require_conn(self) -> sqlite3.Connection:
        if self._conn is None:
            raise RuntimeError("SQLiteRepository is not connected; call connect() first")
        return self._conn

    def _create_tables(self) -> None:
        """Create tables if they don't exist."""
        self._require_conn().executescript("""
            CREATE TABLE IF NOT EXISTS rollouts (
                id INTEGER PRIMARY KEY AUTOINCREMENT,
                rollout_id TEXT NOT NULL,
                host TEXT NOT NULL,
                reference TEXT NOT NULL,
                status TEXT NOT NULL,
                failed_stage TEXT,
                rollback_reference TEXT,
                causes TEXT DEFAULT '[]',
                started_at TEXT NOT NULL,
                finished_at TEXT NOT NULL
            );

            CREATE INDEX IF NOT EXISTS idx_rollouts_host ON rollouts(host);
            CREATE INDEX IF NOT EXISTS idx_rollouts_finished ON rollouts(finished_at);
        """)

    def record_rollout(self, record: dict[str, Any]) -> int:
        """Record a finished rollout. Returns the row ID."""
        conn = self._require_conn()
        cursor = conn.execute(
            """INSERT INTO rollouts
               (rollout_id, host, reference, status, failed_stage,
                rollback_reference, causes, started_at, finished_at)
               VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?)""",
            (
                record["rollout_id"],
                record["host"],
                record["reference"],
                record["status"],
                record.get("failed_stage"),
                record.get("rollback_reference"),
                json.dumps(record.get("causes", [])),
                record.get("started_at") or datetime.now(UTC).isoformat(),
                record.get("finished_at") or datetime.now(UTC).isoformat(),
            ),
        )
        conn.commit()
        return cursor.lastrowid

    def get_rollout_history(
        self,
        host: Optional[str] = None,
        limit: int = 50,
    ) -> list[dict[str, Any]]:
        """Get finished rollouts, newest first, optionally filtered by host."""
        conn = self._require_conn()
        if host:
            rows = conn.execute(
                "SELECT * FROM rollouts WHERE host = ? ORDER BY finished_at DESC, id DESC LIMIT ?",
                (host, limit),
            ).fetchall()
        else:
            rows = conn.execute(
                "SELECT * FROM rollouts ORDER BY finished_at DESC, id DESC LIMIT ?",
                (limit,),
            ).fetchall()
        history = []
        for row in rows:
            entry = dict(row)
            entry["causes"] = json.loads(entry["causes"] or "[]")
            history.append(entry)
        return history

    def last_good_reference(self, host: str) -> Optional[str]:
        """Reference running after the host's most recent healthy outcome.

        A SUCCEEDED rollout leaves its own reference running; a ROLLED_BACK
        one leaves the rollback reference running.
        """
        row = self._require_conn().execute(
            """SELECT status, reference, rollback_reference FROM rollouts
               WHERE host = ? AND status IN ('SUCCEEDED', 'ROLLED_BACK')
               ORDER BY finished_at DESC, id DESC LIMIT 1""",
            (host,),
        ).fetchone()
        if row is None:
            return None
        if row["status"] == "SUCCEEDED":
            return row["reference"]
        return row["rollback_reference"]

    def get_status_counts(self, host: Optional[str] = None) -> dict[str, int]:
        """Count finished rollouts per terminal status."""
        conn = self._require_conn()
        if host:
            rows = conn.execute(
                "SELECT status, COUNT(*) AS n FROM rollouts WHERE host = ? GROUP BY status",
                (host,),
            ).fetchall()
        else:
            rows = conn.execute(
                "SELECT status, COUNT(*) AS n FROM rollouts GROUP BY status"
            ).fetchall()
        return {row["status"]: row["n"] for row in rows}

    async def handle_rollout_finished(self, event) -> None:
        """Event bus handler persisting RolloutFinishedEvent records."""
        record = getattr(event, "record", None)
        if record:
            self.record_rollout(record)
