"""JsonFileStore — the ledger as a single JSON document on disk.

The file holds exactly the persisted layout the dashboard has always used:

    {"owner/repo#123": {"alice": 1718000000000, "bob": 1718000500000}}

Every operation re-reads the file and every write rewrites it, so two
processes sharing the file see each other's acknowledgements (last writer
wins). A missing or corrupt file reads as an empty ledger; a failed write is
logged and otherwise ignored so a broken disk never breaks the board.
"""

from __future__ import annotations

import json
import logging
from pathlib import Path

from prboard_store.base import BaseLedgerStore
from prboard_store.models import LedgerEntry

logger = logging.getLogger(__name__)


class JsonFileStore(BaseLedgerStore):
    """Stores the notification ledger in a local JSON file.

    The path defaults to `.prboard-ledger.json` in the current working
    directory. Configure via .prboard.yml: `store_path: /path/to/ledger.json`.
    """

    def __init__(self, path: str = ".prboard-ledger.json"):
        self._path = Path(path)

    def _read(self) -> dict[str, dict[str, int]]:
        if not self._path.exists():
            return {}
        try:
            data = json.loads(self._path.read_text(encoding="utf-8")) or {}
        except (OSError, json.JSONDecodeError) as e:
            logger.warning("Could not read notification ledger %s; starting empty: %s", self._path, e)
            return {}
        if not isinstance(data, dict):
            logger.warning("Notification ledger %s has unexpected shape; starting empty.", self._path)
            return {}
        return {
            subject: {reviewer: int(ts) for reviewer, ts in reviewers.items() if isinstance(ts, (int, float))}
            for subject, reviewers in data.items()
            if isinstance(reviewers, dict)
        }

    def _write(self, data: dict[str, dict[str, int]]) -> None:
        try:
            self._path.write_text(json.dumps(data, indent=2, sort_keys=True), encoding="utf-8")
        except OSError as e:
            logger.warning("Could not save notification ledger %s (%s): %s", self._path, type(e).__name__, e)

    def has_subject(self, subject: str) -> bool:
        return bool(self._read().get(subject))

    def get(self, subject: str, reviewer: str) -> int | None:
        return self._read().get(subject, {}).get(reviewer)

    def set(self, subject: str, reviewer: str, acknowledged_at: int) -> None:
        data = self._read()
        data.setdefault(subject, {})[reviewer] = acknowledged_at
        self._write(data)

    def sweep(self, cutoff: int) -> int:
        data = self._read()
        removed = 0
        changed = False
        for subject in list(data):
            kept = {r: ts for r, ts in data[subject].items() if ts >= cutoff}
            removed += len(data[subject]) - len(kept)
            if kept:
                data[subject] = kept
            else:
                del data[subject]
                changed = True
        if removed or changed:
            self._write(data)
        return removed

    def entries(self) -> list[LedgerEntry]:
        return [
            LedgerEntry(subject=subject, reviewer=reviewer, acknowledged_at=ts)
            for subject, reviewers in self._read().items()
            for reviewer, ts in reviewers.items()
        ]
