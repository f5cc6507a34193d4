"""In-memory store — acknowledgements that last for one process only.

Selected with `store: memory`. Used by tests and by one-shot runs where
nothing needs to survive the session.
"""

from __future__ import annotations

from prboard_store.base import BaseLedgerStore
from prboard_store.models import LedgerEntry


class MemoryStore(BaseLedgerStore):
    def __init__(self, data: dict[str, dict[str, int]] | None = None):
        self._data: dict[str, dict[str, int]] = {s: dict(r) for s, r in (data or {}).items()}

    def has_subject(self, subject: str) -> bool:
        return bool(self._data.get(subject))

    def get(self, subject: str, reviewer: str) -> int | None:
        return self._data.get(subject, {}).get(reviewer)

    def set(self, subject: str, reviewer: str, acknowledged_at: int) -> None:
        self._data.setdefault(subject, {})[reviewer] = acknowledged_at

    def sweep(self, cutoff: int) -> int:
        removed = 0
        for subject in list(self._data):
            reviewers = self._data[subject]
            for reviewer in [r for r, ts in reviewers.items() if ts < cutoff]:
                del reviewers[reviewer]
                removed += 1
            if not reviewers:
                del self._data[subject]
        return removed

    def entries(self) -> list[LedgerEntry]:
        return [
            LedgerEntry(subject=subject, reviewer=reviewer, acknowledged_at=ts)
            for subject, reviewers in self._data.items()
            for reviewer, ts in reviewers.items()
        ]
