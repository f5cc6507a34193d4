"""SQLiteStore — local file-based ledger for long-running or shared use.

Unlike the JSON file, an acknowledgement is a single UPSERT on
(subject, reviewer) and the sweep is one indexed DELETE; the ledger document
is never rewritten as a whole.

Schema:
  ledger — one row per (subject, reviewer) pair, acknowledged_at in epoch ms.
"""

from __future__ import annotations

import logging
import sqlite3

from prboard_store.base import BaseLedgerStore
from prboard_store.models import LedgerEntry

logger = logging.getLogger(__name__)

_SCHEMA = """
CREATE TABLE IF NOT EXISTS ledger (
    subject          TEXT NOT NULL,
    reviewer         TEXT NOT NULL,
    acknowledged_at  INTEGER NOT NULL,
    PRIMARY KEY (subject, reviewer)
);
CREATE INDEX IF NOT EXISTS idx_ledger_acknowledged ON ledger (acknowledged_at);
"""


class SQLiteStore(BaseLedgerStore):
    """Stores the notification ledger in a local SQLite database file.

    The database file path defaults to `.prboard.db` in the current working
    directory. Configure via .prboard.yml: `store_path: /path/to/prboard.db`.
    """

    def __init__(self, db_path: str = ".prboard.db"):
        # Enrichment runs fetches in worker threads; acknowledgements may come from any of them.
        self._conn = sqlite3.connect(db_path, check_same_thread=False)
        self._conn.row_factory = sqlite3.Row
        self._conn.executescript(_SCHEMA)
        self._conn.commit()

    def has_subject(self, subject: str) -> bool:
        row = self._conn.execute("SELECT 1 FROM ledger WHERE subject=? LIMIT 1", (subject,)).fetchone()
        return row is not None

    def get(self, subject: str, reviewer: str) -> int | None:
        row = self._conn.execute(
            "SELECT acknowledged_at FROM ledger WHERE subject=? AND reviewer=?",
            (subject, reviewer),
        ).fetchone()
        return row["acknowledged_at"] if row is not None else None

    def set(self, subject: str, reviewer: str, acknowledged_at: int) -> None:
        self._conn.execute(
            """
            INSERT INTO ledger (subject, reviewer, acknowledged_at)
            VALUES (?, ?, ?)
            ON CONFLICT (subject, reviewer) DO UPDATE SET acknowledged_at = excluded.acknowledged_at
            """,
            (subject, reviewer, acknowledged_at),
        )
        self._conn.commit()

    def sweep(self, cutoff: int) -> int:
        cursor = self._conn.execute("DELETE FROM ledger WHERE acknowledged_at < ?", (cutoff,))
        self._conn.commit()
        logger.debug("Swept %d ledger entries older than %d", cursor.rowcount, cutoff)
        return cursor.rowcount

    def entries(self) -> list[LedgerEntry]:
        rows = self._conn.execute("SELECT * FROM ledger ORDER BY subject, reviewer").fetchall()
        return [self._row_to_entry(r) for r in rows]

    def close(self) -> None:
        self._conn.close()

    @staticmethod
    def _row_to_entry(row: sqlite3.Row) -> LedgerEntry:
        return LedgerEntry(subject=row["subject"], reviewer=row["reviewer"], acknowledged_at=row["acknowledged_at"])
