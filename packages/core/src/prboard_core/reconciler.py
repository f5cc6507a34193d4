"""Reviewer state reconciliation.

Folds requested reviewers, review submissions and general comments for one
pull request into a single ReviewerState per person. The result mirrors what
GitHub's PR page shows in its reviewer sidebar:

- an approval sticks until the person approves again or is re-requested;
- a change request survives later comments but yields to an approval;
- a fresh review request is authoritative and resets any earlier verdict,
  while the person's comment history (has_comments) is kept.

Reconciliation is a pure function of its inputs. Nothing here touches the
network or shared state, so PRs can be reconciled concurrently.
"""

from __future__ import annotations

import logging
from datetime import datetime
from typing import Iterable

from prboard_core.models import (
    CheckRun,
    CheckState,
    CommentRecord,
    MergeReadiness,
    RequestedReviewer,
    ReviewerState,
    ReviewEvent,
    ReviewState,
    StatusContext,
    Verdict,
)

logger = logging.getLogger(__name__)

_VERDICT_TO_STATE = {
    Verdict.APPROVED: ReviewState.APPROVED,
    Verdict.CHANGES_REQUESTED: ReviewState.CHANGES_REQUESTED,
    Verdict.COMMENTED: ReviewState.COMMENTED,
    Verdict.DISMISSED: ReviewState.DISMISSED,
    Verdict.PENDING: ReviewState.REVIEW_REQUESTED,
}

# (existing, incoming) -> may the incoming review event replace the existing state?
# Pairs not listed fall through to "the chronologically later event wins".
OVERRIDE_TABLE: dict[tuple[ReviewState, ReviewState], bool] = {
    (ReviewState.APPROVED, ReviewState.CHANGES_REQUESTED): False,
    (ReviewState.APPROVED, ReviewState.COMMENTED): False,
    (ReviewState.APPROVED, ReviewState.REVIEW_REQUESTED): False,
    (ReviewState.APPROVED, ReviewState.DISMISSED): False,
    (ReviewState.CHANGES_REQUESTED, ReviewState.COMMENTED): False,
    (ReviewState.CHANGES_REQUESTED, ReviewState.REVIEW_REQUESTED): False,
    (ReviewState.CHANGES_REQUESTED, ReviewState.DISMISSED): False,
}

# States a lagging requested-reviewer list must not overwrite while seeding.
_SEED_PROTECTED = frozenset({ReviewState.APPROVED, ReviewState.CHANGES_REQUESTED})

_NEEDS_REBASE_STATES = frozenset({"behind", "dirty"})
_SUMMARY_NAME_LIMIT = 3


def map_verdict(raw: str | None) -> ReviewState:
    """Translate a raw review state into the badge vocabulary.

    Unknown values are logged and treated as a plain comment; malformed data
    never fails reconciliation.
    """
    try:
        return _VERDICT_TO_STATE[Verdict((raw or "").upper())]
    except ValueError:
        logger.warning("Unknown review state %r from GitHub; treating it as 'commented'.", raw)
        return ReviewState.COMMENTED


def may_override(existing: ReviewerState, incoming: ReviewState, incoming_at: datetime | None) -> bool:
    allowed = OVERRIDE_TABLE.get((existing.state, incoming))
    if allowed is not None:
        return allowed
    if existing.last_activity_at is None:
        return True
    if incoming_at is None:
        return False
    return existing.last_activity_at < incoming_at


def _newest(a: datetime | None, b: datetime | None) -> datetime | None:
    if a is None:
        return b
    if b is None:
        return a
    return max(a, b)


def _chronological(events: Iterable[ReviewEvent]) -> list[ReviewEvent]:
    # Stable: events without a timestamp keep their relative order, oldest first.
    return sorted(events, key=lambda e: (e.submitted_at is not None, e.submitted_at or datetime.min))


def reconcile_reviewers(
    requested: Iterable[RequestedReviewer],
    reviews: Iterable[ReviewEvent],
    general_comments: Iterable[CommentRecord],
    viewer: str | None = None,
) -> list[ReviewerState]:
    """Return one ReviewerState per person, viewer first, others sorted by login."""
    requested = list(requested)
    states: dict[str, ReviewerState] = {}

    # 1. Seed from both requested-reviewer sources.
    for entry in requested:
        existing = states.get(entry.reviewer_id)
        if existing is None or existing.state not in _SEED_PROTECTED:
            states[entry.reviewer_id] = ReviewerState(reviewer_id=entry.reviewer_id, state=ReviewState.REVIEW_REQUESTED)

    # 2. Fold review submissions.
    for index, event in enumerate(_chronological(reviews)):
        login = event.reviewer_id
        if not login:
            logger.warning("Review %s (position %d) has no author; skipping.", event.id, index)
            continue
        incoming = map_verdict(event.verdict)
        existing = states.get(login)

        if existing is None:
            states[login] = ReviewerState(
                reviewer_id=login,
                state=incoming,
                has_comments=event.has_body,
                last_activity_at=event.submitted_at,
            )
            continue

        if may_override(existing, incoming, event.submitted_at):
            existing.is_stale = existing.state == ReviewState.APPROVED and incoming == ReviewState.APPROVED
            existing.state = incoming
        existing.has_comments = existing.has_comments or event.has_body
        existing.last_activity_at = _newest(existing.last_activity_at, event.submitted_at)

    # 3. Fold general discussion comments.
    for comment in general_comments:
        login = comment.author_id
        if not login:
            continue
        existing = states.get(login)
        if existing is None:
            states[login] = ReviewerState(
                reviewer_id=login,
                state=ReviewState.COMMENTED,
                has_comments=True,
                last_activity_at=comment.created_at,
            )
        else:
            existing.has_comments = True
            existing.last_activity_at = _newest(existing.last_activity_at, comment.created_at)

    # 4. Final normalization: whoever is currently requested is awaiting review,
    #    whatever they said before. The only rule that downgrades an approval.
    for login in dict.fromkeys(r.reviewer_id for r in requested):
        existing = states.get(login)
        if existing is None:
            states[login] = ReviewerState(reviewer_id=login, state=ReviewState.REVIEW_REQUESTED)
        else:
            existing.state = ReviewState.REVIEW_REQUESTED
            existing.is_stale = False

    # 5. Viewer first, then lexicographic.
    for entry in states.values():
        entry.is_current_viewer = bool(viewer) and entry.reviewer_id == viewer
    return sorted(states.values(), key=lambda r: (not r.is_current_viewer, r.reviewer_id))


def _summarize_names(names: list[str]) -> str:
    named = [n for n in names if n]
    if not named:
        return ""
    shown = ", ".join(named[:_SUMMARY_NAME_LIMIT])
    return ": " + shown + ("…" if len(named) > _SUMMARY_NAME_LIMIT else "")


def _check_summary(
    state: CheckState, raw_state: str, total: int, succeeded: int, failing: list[str], pending: list[str]
) -> str | None:
    if state == CheckState.SUCCESS:
        return "All checks have passed" + (f" ({total} successful checks)" if total else "")
    if state == CheckState.PENDING:
        if not total:
            return "Checks pending"
        return f"Checks pending ({len(pending)} pending of {total}{_summarize_names(pending)})"
    if state in (CheckState.FAILURE, CheckState.ERROR):
        if not total:
            return "Checks failed"
        return f"Checks failed ({len(failing)} failing of {total}{_summarize_names(failing)})"
    if total:
        return f"Checks status: {raw_state} ({succeeded}/{total} passed)"
    return None


def reduce_checks(combined_state: str | None, contexts: Iterable[StatusContext]) -> CheckRun:
    """Collapse the combined commit status into a CheckRun aggregate."""
    contexts = list(contexts)
    raw_state = (combined_state or "").lower()
    try:
        overall = CheckState(raw_state)
    except ValueError:
        overall = CheckState.UNKNOWN

    failing = [c.name for c in contexts if c.state in ("failure", "error")]
    pending = [c.name for c in contexts if c.state == "pending"]
    succeeded = sum(1 for c in contexts if c.state == "success")
    total = len(contexts)

    return CheckRun(
        overall_state=overall,
        total_count=total,
        succeeded_count=succeeded,
        failing_names=failing,
        pending_names=pending,
        summary=_check_summary(overall, raw_state or "unknown", total, succeeded, failing, pending),
    )


def needs_rebase(mergeable_state: str | None) -> bool:
    """Both 'behind' (out of date) and 'dirty' (conflicts) need an update before merging."""
    return (mergeable_state or "").lower() in _NEEDS_REBASE_STATES


def merge_readiness(
    reviewers: Iterable[ReviewerState],
    checks: CheckRun | None,
    mergeable_state: str | None,
    required_approvals: int = 3,
) -> MergeReadiness:
    approved = sum(1 for r in reviewers if r.state == ReviewState.APPROVED)
    rebase = needs_rebase(mergeable_state)
    passed = checks is not None and checks.overall_state == CheckState.SUCCESS
    return MergeReadiness(
        approved_count=approved,
        needs_rebase=rebase,
        checks_passed=passed,
        ready_to_merge=approved >= required_approvals and passed and not rebase,
    )
