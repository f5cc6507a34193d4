"""Abstract ledger store interface.

The notification ledger is a two-level map: subject ("owner/repo#number")
-> reviewer login -> acknowledgement time in epoch milliseconds. Any backend
(in-memory, JSON file, SQLite) implements this interface; prboard_core
depends on BaseLedgerStore only, so backends are swappable without touching
the unread engine.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from prboard_store.models import LedgerEntry


class BaseLedgerStore(ABC):
    """Pluggable persistence for acknowledgement timestamps.

    Every write touches a single (subject, reviewer) key. There is no
    locking: concurrent writes to different keys never conflict and
    last-writer-wins is acceptable for the same key.
    """

    @abstractmethod
    def has_subject(self, subject: str) -> bool:
        """Return True if any reviewer has an entry for this subject."""

    @abstractmethod
    def get(self, subject: str, reviewer: str) -> int | None:
        """Return the acknowledgement time, or None if never recorded — never raises."""

    @abstractmethod
    def set(self, subject: str, reviewer: str, acknowledged_at: int) -> None:
        """Record an acknowledgement time for one (subject, reviewer) pair."""

    @abstractmethod
    def sweep(self, cutoff: int) -> int:
        """Remove entries acknowledged before ``cutoff`` and drop empty subjects.

        Returns the number of entries removed.
        """

    @abstractmethod
    def entries(self) -> list[LedgerEntry]:
        """Return every stored entry."""

    def close(self) -> None:
        """Release any resources held by the store (connections, file handles).

        Default is a no-op so callers can always call close() safely.
        """
