"""
Index of already written audit events, for the dedup delivery mode.
"""

import logging
import sqlite3
from datetime import datetime, timedelta, timezone
from pathlib import Path
from typing import Iterable

logger = logging.getLogger(__name__)


class DedupIndex:
    """
    Persistent set of event digests using SQLite.

    A digest is the SHA-256 of a logical event's raw ausearch text. Digests
    are remembered for ``retention_hours`` and pruned afterwards.
    """

    def __init__(self, db_path: str = "/var/lib/ssh-file-activity.dedup.db", retention_hours: int = 24):
        """
        Initialize dedup index.

        Args:
            db_path: Path to SQLite database file
            retention_hours: How long digests are kept
        """
        self.db_path = Path(db_path)
        self.retention_hours = retention_hours
        self.db_path.parent.mkdir(parents=True, exist_ok=True)
        self._init_db()

    def _init_db(self) -> None:
        """Initialize database schema."""
        with sqlite3.connect(self.db_path) as conn:
            conn.execute("""
                CREATE TABLE IF NOT EXISTS written_events (
                    digest TEXT PRIMARY KEY,
                    written_at TEXT NOT NULL
                )
            """)
            conn.execute(
                "CREATE INDEX IF NOT EXISTS idx_written_at ON written_events(written_at)"
            )
            conn.commit()

        logger.info(f"Initialized dedup index at {self.db_path}")

    def contains(self, digest: str) -> bool:
        """Whether an event with this digest was already written."""
        with sqlite3.connect(self.db_path) as conn:
            cursor = conn.execute(
                "SELECT 1 FROM written_events WHERE digest = ?", (digest,)
            )
            return cursor.fetchone() is not None

    def add_many(self, digests: Iterable[str]) -> None:
        """Record digests of events that have just been written."""
        now = datetime.now(timezone.utc).isoformat()
        with sqlite3.connect(self.db_path) as conn:
            conn.executemany(
                "INSERT OR IGNORE INTO written_events (digest, written_at) VALUES (?, ?)",
                [(digest, now) for digest in digests],
            )
            conn.commit()

    def prune(self) -> int:
        """
        Forget digests older than the retention window.

        Returns:
            Number of digests removed
        """
        cutoff = (datetime.now(timezone.utc) - timedelta(hours=self.retention_hours)).isoformat()
        with sqlite3.connect(self.db_path) as conn:
            cursor = conn.execute(
                "DELETE FROM written_events WHERE written_at < ?", (cutoff,)
            )
            conn.commit()
            removed = cursor.rowcount

        if removed:
            logger.debug(f"Pruned {removed} dedup digests")
        return removed

    def count(self) -> int:
        with sqlite3.connect(self.db_path) as conn:
            return conn.execute("SELECT COUNT(*) FROM written_events").fetchone()[0]
