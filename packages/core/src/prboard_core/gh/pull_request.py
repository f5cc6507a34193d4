"""Raw fetch layer: PyGithub calls and conversion into domain records.

The PR descriptor is the only mandatory fetch. Everything else (reviews,
the dedicated requested-reviewers endpoint, general and inline comments,
combined status) is optional: a failure there is logged and degrades to an
empty collection, because the reconciler is built to tolerate partial input.
"""

from __future__ import annotations

import asyncio
import logging
from datetime import datetime, timezone

from github import Github

from prboard_core.errors import PullRequestUnavailable, classify_github_error
from prboard_core.models import (
    CommentKind,
    CommentRecord,
    RawPullRequestData,
    RequestedReviewer,
    RequestSource,
    ReviewEvent,
    StatusContext,
)

logger = logging.getLogger(__name__)


def get_repo(repo_name: str, token: str):
    return Github(token).get_repo(repo_name)


def get_pull(repo, pr_number: int):
    return repo.get_pull(pr_number)


def get_pull_requests(repo, state: str = "open"):
    return repo.get_pulls(state=state)


def login_of(user) -> str | None:
    return getattr(user, "login", None) if user is not None else None


def as_utc(value: datetime | None) -> datetime | None:
    """PyGithub < 2.0 returns naive UTC datetimes; newer versions are aware."""
    if value is None:
        return None
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def to_review_event(review) -> ReviewEvent:
    return ReviewEvent(
        id=review.id,
        reviewer_id=login_of(review.user),
        submitted_at=as_utc(review.submitted_at),
        verdict=review.state or "",
        body_text=review.body,
    )


def to_general_comment(comment) -> CommentRecord:
    created = as_utc(comment.created_at)
    return CommentRecord(
        id=str(comment.id),
        author_id=login_of(comment.user) or "",
        created_at=created,
        updated_at=as_utc(comment.updated_at) or created,
        body_text=comment.body or "",
        kind=CommentKind.GENERAL,
    )


def to_inline_comment(comment) -> CommentRecord:
    created = as_utc(comment.created_at)
    # line is None once the commented line leaves the current diff (force-push);
    # original_line still points at where the conversation started.
    reply_to = getattr(comment, "in_reply_to_id", None)
    return CommentRecord(
        id=str(comment.id),
        author_id=login_of(comment.user) or "",
        created_at=created,
        updated_at=as_utc(comment.updated_at) or created,
        body_text=comment.body or "",
        kind=CommentKind.INLINE,
        file_path=comment.path,
        line_number=getattr(comment, "line", None),
        original_line_number=getattr(comment, "original_line", None),
        side=getattr(comment, "side", None),
        in_reply_to_id=str(reply_to) if reply_to is not None else None,
    )


def get_requested_reviewers(pr) -> list[RequestedReviewer]:
    """Requested reviewers embedded in the PR descriptor (no extra request)."""
    return [
        RequestedReviewer(reviewer_id=login, source=RequestSource.PRIMARY)
        for login in (login_of(u) for u in (pr.requested_reviewers or []))
        if login
    ]


def get_review_requests(pr) -> list[RequestedReviewer]:
    """Requested reviewers from the dedicated endpoint; teams are not persons and are skipped."""
    users, teams = pr.get_review_requests()
    team_names = [getattr(t, "slug", None) or getattr(t, "name", "") for t in teams]
    if team_names:
        logger.debug("PR #%s has %d team reviewer(s): %s", pr.number, len(team_names), ", ".join(team_names))
    return [
        RequestedReviewer(reviewer_id=login, source=RequestSource.SECONDARY)
        for login in (login_of(u) for u in users)
        if login
    ]


def get_reviews(pr) -> list[ReviewEvent]:
    return [to_review_event(r) for r in pr.get_reviews()]


def get_general_comments(pr) -> list[CommentRecord]:
    return [to_general_comment(c) for c in pr.get_issue_comments() if login_of(c.user)]


def get_inline_comments(pr) -> list[CommentRecord]:
    return [to_inline_comment(c) for c in pr.get_review_comments() if login_of(c.user)]


def get_combined_status(repo, head_sha: str | None) -> tuple[str | None, list[StatusContext]]:
    """Return the combined state and its sub-statuses for the PR head commit."""
    if not head_sha:
        return None, []
    combined = repo.get_commit(head_sha).get_combined_status()
    contexts = [StatusContext(name=s.context or "", state=(s.state or "").lower()) for s in combined.statuses]
    return combined.state, contexts


async def _optional(label: str, pr_label: str, default, fn, *args):
    try:
        return await asyncio.to_thread(fn, *args)
    except Exception as e:
        logger.warning("Could not fetch %s for %s; treating as empty: %s", label, pr_label, classify_github_error(e))
        return default


async def fetch_pull_request_data(repo, pr_number: int) -> RawPullRequestData:
    """Fetch the descriptor, then the five optional collections concurrently.

    Raises:
        PullRequestUnavailable: if the descriptor itself cannot be fetched.
    """
    repo_name = repo.full_name
    pr_label = f"{repo_name}#{pr_number}"
    try:
        pr = await asyncio.to_thread(get_pull, repo, pr_number)
    except Exception as e:
        raise PullRequestUnavailable(repo_name, pr_number, classify_github_error(e)) from e

    head_sha = pr.head.sha if pr.head is not None else None
    secondary, reviews, general, inline, status = await asyncio.gather(
        _optional("requested reviewers", pr_label, [], get_review_requests, pr),
        _optional("reviews", pr_label, [], get_reviews, pr),
        _optional("general comments", pr_label, [], get_general_comments, pr),
        _optional("inline comments", pr_label, [], get_inline_comments, pr),
        _optional("combined status", pr_label, (None, []), get_combined_status, repo, head_sha),
    )
    combined_state, contexts = status

    return RawPullRequestData(
        repo=repo_name,
        number=pr.number,
        title=pr.title or "",
        author=login_of(pr.user),
        state=pr.state or "",
        html_url=pr.html_url,
        created_at=as_utc(pr.created_at),
        updated_at=as_utc(pr.updated_at),
        draft=bool(pr.draft),
        mergeable_state=pr.mergeable_state,
        head_sha=head_sha,
        body=pr.body or "",
        requested_reviewers=get_requested_reviewers(pr) + secondary,
        reviews=reviews,
        general_comments=general,
        inline_comments=inline,
        combined_status=combined_state,
        status_contexts=contexts,
    )
