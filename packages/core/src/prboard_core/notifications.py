"""Per-reviewer unread activity and urgency.

The ledger remembers, per (PR, reviewer), when the viewer last opened that
reviewer's comments. A comment counts as unread when it was created after
that moment, or edited after it. Badges are coloured by the age of the newest
unread activity.

Fresh start: the first time a PR is observed, every reviewer on it is
recorded as acknowledged "now". Without this, opening the board on a PR with
a long history would light up every badge at once. A reviewer who joins
later has no entry and shows nothing until the viewer acknowledges them once.

The clock and the store are injected so seeding, counting and the sweep can
be tested without a wall clock or a disk.
"""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import TYPE_CHECKING, Callable, Iterable

from prboard_core.models import CommentRecord, SubjectKey, UnreadInfo, Urgency

if TYPE_CHECKING:
    from prboard_store.base import BaseLedgerStore

logger = logging.getLogger(__name__)

DEFAULT_IDLE_DAYS = 30
_DAY_SECONDS = 24 * 60 * 60
_WARNING_AGE_DAYS = 1.0
_URGENT_AGE_DAYS = 2.0


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def to_epoch_ms(value: datetime) -> int:
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return int(value.timestamp() * 1000)


def from_epoch_ms(value: int) -> datetime:
    return datetime.fromtimestamp(value / 1000, tz=timezone.utc)


def classify_urgency(age_days: float) -> Urgency:
    """Urgency for the newest unread item: <1 day normal, [1, 2) warning, >=2 urgent."""
    if age_days >= _URGENT_AGE_DAYS:
        return Urgency.URGENT
    if age_days >= _WARNING_AGE_DAYS:
        return Urgency.WARNING
    return Urgency.NORMAL


@dataclass
class LedgerStats:
    tracked_subjects: int
    tracked_reviewers: int
    storage_size: int


class NotificationLedger:
    """Service wrapping a ledger store with seeding, counting and expiry rules."""

    def __init__(
        self,
        store: BaseLedgerStore,
        clock: Callable[[], datetime] = utc_now,
        idle_days: int = DEFAULT_IDLE_DAYS,
    ):
        self._store = store
        self._clock = clock
        self._idle_days = idle_days

    def observe(self, subject: SubjectKey, reviewers: Iterable[str]) -> bool:
        """Seed every current reviewer as acknowledged now, on first sight of a subject only.

        Returns True if the subject was seeded by this call.
        """
        key = str(subject)
        if self._store.has_subject(key):
            logger.debug("%s already tracked; skipping seed", key)
            return False
        reviewers = list(dict.fromkeys(r for r in reviewers if r))
        if not reviewers:
            return False
        now_ms = to_epoch_ms(self._clock())
        for reviewer in reviewers:
            self._store.set(key, reviewer, now_ms)
        logger.info("Initialized notification ledger for %s with %d reviewer(s)", key, len(reviewers))
        return True

    def acknowledge(self, subject: SubjectKey, reviewer_id: str) -> None:
        """Mark everything by ``reviewer_id`` on ``subject`` as read. Idempotent."""
        self._store.set(str(subject), reviewer_id, to_epoch_ms(self._clock()))

    def last_acknowledged_at(self, subject: SubjectKey, reviewer_id: str) -> datetime | None:
        ts = self._store.get(str(subject), reviewer_id)
        return from_epoch_ms(ts) if ts is not None else None

    def get_unread_info(
        self, subject: SubjectKey, reviewer_id: str, all_comments: Iterable[CommentRecord]
    ) -> UnreadInfo:
        last_ms = self._store.get(str(subject), reviewer_id)
        if last_ms is None:
            return UnreadInfo()

        count = 0
        newest_ms = 0
        for comment in all_comments:
            if comment.author_id != reviewer_id:
                continue
            created_ms = to_epoch_ms(comment.created_at)
            updated_ms = to_epoch_ms(comment.updated_at) if comment.updated_at is not None else created_ms
            created_after = created_ms > last_ms
            edited_after = updated_ms > last_ms and updated_ms > created_ms
            if created_after or edited_after:
                count += 1
                newest_ms = max(newest_ms, created_ms, updated_ms)

        if count == 0:
            return UnreadInfo()

        age_days = (to_epoch_ms(self._clock()) - newest_ms) / 1000 / _DAY_SECONDS
        return UnreadInfo(count=count, urgency=classify_urgency(age_days), newest_unread_age_days=age_days)

    def badges(
        self, subject: SubjectKey, reviewer_ids: Iterable[str], all_comments: Iterable[CommentRecord]
    ) -> dict[str, UnreadInfo]:
        comments = list(all_comments)
        return {r: self.get_unread_info(subject, r, comments) for r in reviewer_ids}

    def sweep(self) -> int:
        """Drop entries not acknowledged within the idle window. Best-effort."""
        cutoff = self._clock() - timedelta(days=self._idle_days)
        removed = self._store.sweep(to_epoch_ms(cutoff))
        if removed:
            logger.info("Removed %d idle notification ledger entr%s", removed, "y" if removed == 1 else "ies")
        return removed

    def stats(self) -> LedgerStats:
        nested: dict[str, dict[str, int]] = {}
        for entry in self._store.entries():
            nested.setdefault(entry.subject, {})[entry.reviewer] = entry.acknowledged_at
        return LedgerStats(
            tracked_subjects=len(nested),
            tracked_reviewers=sum(len(r) for r in nested.values()),
            storage_size=len(json.dumps(nested)),
        )


def newest_activity_at(reviewer_id: str, comments: Iterable[CommentRecord]) -> datetime | None:
    """Newest creation or edit time of any comment by ``reviewer_id``."""
    times = [max(c.created_at, c.effective_updated_at) for c in comments if c.author_id == reviewer_id]
    return max(times) if times else None
