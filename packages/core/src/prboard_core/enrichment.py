"""Enrichment: fetch, reconcile and summarize pull requests for the board."""

from __future__ import annotations

import asyncio
import logging
from typing import TYPE_CHECKING, Iterable

from prboard_core.conversation import unified_comments
from prboard_core.errors import PRBoardError, PullRequestUnavailable, classify_github_error
from prboard_core.gh.pull_request import as_utc, fetch_pull_request_data, login_of
from prboard_core.models import PullRequestSnapshot, RawPullRequestData, UnreadInfo
from prboard_core.reconciler import merge_readiness, reconcile_reviewers, reduce_checks

if TYPE_CHECKING:
    from prboard_core.notifications import NotificationLedger

logger = logging.getLogger(__name__)

DEFAULT_MAX_PARALLEL = 8


def build_snapshot(
    raw: RawPullRequestData, viewer: str | None = None, required_approvals: int = 3
) -> PullRequestSnapshot:
    """Turn raw fetch results into a snapshot. Pure: no I/O, no shared state."""
    reviewers = reconcile_reviewers(raw.requested_reviewers, raw.reviews, raw.general_comments, viewer=viewer)
    checks = reduce_checks(raw.combined_status, raw.status_contexts) if raw.combined_status is not None else None
    return PullRequestSnapshot(
        repo=raw.repo,
        number=raw.number,
        title=raw.title,
        author=raw.author,
        state=raw.state,
        html_url=raw.html_url,
        updated_at=raw.updated_at,
        draft=raw.draft,
        mergeable_state=raw.mergeable_state,
        reviewers=reviewers,
        comments=unified_comments(raw),
        checks=checks,
        readiness=merge_readiness(reviewers, checks, raw.mergeable_state, required_approvals),
        description=raw.body,
    )


def unavailable_snapshot(repo_name: str, pull, error: PRBoardError) -> PullRequestSnapshot:
    """A snapshot carrying only the base fields from a PR listing, flagged as failed."""
    return PullRequestSnapshot(
        repo=repo_name,
        number=pull.number,
        title=getattr(pull, "title", "") or "",
        author=login_of(getattr(pull, "user", None)),
        state=getattr(pull, "state", "") or "",
        html_url=getattr(pull, "html_url", None),
        updated_at=as_utc(getattr(pull, "updated_at", None)),
        draft=bool(getattr(pull, "draft", False)),
        error=str(error),
    )


async def enrich_pull_request(
    repo, pr_number: int, viewer: str | None = None, required_approvals: int = 3
) -> tuple[PullRequestSnapshot, RawPullRequestData]:
    """Fetch and reconcile one PR.

    Raises:
        PullRequestUnavailable: if the PR descriptor could not be fetched.
    """
    raw = await fetch_pull_request_data(repo, pr_number)
    return build_snapshot(raw, viewer=viewer, required_approvals=required_approvals), raw


async def enrich_pull_requests(
    repo,
    pulls: Iterable,
    viewer: str | None = None,
    required_approvals: int = 3,
    max_parallel: int = DEFAULT_MAX_PARALLEL,
) -> list[PullRequestSnapshot]:
    """Enrich a listing of PRs concurrently.

    Each PR is independent: a failure becomes a snapshot with ``error`` set
    and never aborts the rest of the batch. Results keep the listing order.
    Cancelling the awaiting task abandons the batch.
    """
    pulls = list(pulls)
    repo_name = repo.full_name
    semaphore = asyncio.Semaphore(max(1, max_parallel))

    async def limited(pull) -> PullRequestSnapshot:
        async with semaphore:
            snapshot, _ = await enrich_pull_request(repo, pull.number, viewer, required_approvals)
            return snapshot

    results = await asyncio.gather(*(limited(p) for p in pulls), return_exceptions=True)

    snapshots = []
    for pull, result in zip(pulls, results):
        if isinstance(result, Exception):
            error = result.cause if isinstance(result, PullRequestUnavailable) else classify_github_error(result)
            logger.error("Failed to enrich %s#%s: %s", repo_name, pull.number, error)
            snapshots.append(unavailable_snapshot(repo_name, pull, error))
        elif isinstance(result, BaseException):
            raise result
        else:
            snapshots.append(result)

    ok = sum(1 for s in snapshots if s.error is None)
    logger.info("Enriched %d/%d pull request(s) in %s", ok, len(snapshots), repo_name)
    return snapshots


def track_snapshot(ledger: NotificationLedger, snapshot: PullRequestSnapshot) -> dict[str, UnreadInfo]:
    """Seed the ledger on first sight of this PR and return per-reviewer badges."""
    if snapshot.reviewers_unavailable:
        return {}
    logins = [r.reviewer_id for r in snapshot.reviewers]
    ledger.observe(snapshot.subject_key, logins)
    return ledger.badges(snapshot.subject_key, logins, snapshot.comments)
