"""Conversation threading and the two flattened timeline orderings.

Inline review comments are grouped by the location they were left on
(path, line, side), with replies following their parent's thread even if the
parent's line has since moved. General comments and review bodies form a
single synthetic "main-conversation" thread.

Two flattened views are offered:

- recent: newest first, no grouping.
- default: light threading. Each inline thread stays contiguous (oldest
  reply first) and threads/standalone items are ordered by their last
  activity, oldest first, so early conversations surface before newer ones
  without a late reply dragging an old thread to the top.

Bot-authored items are hidden from both views but still counted in the raw
total and kept in the threads.
"""

from __future__ import annotations

import logging
import re
from collections import OrderedDict
from datetime import datetime
from typing import Iterable

from prboard_core.models import (
    MAIN_CONVERSATION_ID,
    CommentKind,
    CommentRecord,
    Conversation,
    ConversationThread,
    RawPullRequestData,
    ReviewEvent,
    ThreadAnchor,
    ThreadKind,
)

logger = logging.getLogger(__name__)

DEFAULT_BOT_PATTERN = re.compile(r"\[bot\]$")


def is_bot(login: str | None, pattern: re.Pattern = DEFAULT_BOT_PATTERN) -> bool:
    return bool(login) and pattern.search(login) is not None


def review_body_comments(reviews: Iterable[ReviewEvent]) -> list[CommentRecord]:
    """Project body-bearing review submissions into comment records.

    Reviews have no separate edit time, so updated_at equals submitted_at.
    """
    results = []
    for review in reviews:
        if not review.has_body or not review.reviewer_id:
            continue
        if review.submitted_at is None:
            logger.debug("Skipping unsubmitted review %s by %s", review.id, review.reviewer_id)
            continue
        results.append(
            CommentRecord(
                id=f"review-{review.id}",
                author_id=review.reviewer_id,
                created_at=review.submitted_at,
                updated_at=review.submitted_at,
                body_text=review.body_text or "",
                kind=CommentKind.REVIEW,
                verdict=review.verdict,
            )
        )
    return results


def unified_comments(raw: RawPullRequestData) -> list[CommentRecord]:
    """Every attributable comment on the PR: review bodies, general and inline comments."""
    return review_body_comments(raw.reviews) + list(raw.general_comments) + list(raw.inline_comments)


def _location_anchor(comment: CommentRecord) -> ThreadAnchor:
    return ThreadAnchor(file_path=comment.file_path, line=comment.anchor_line, side=comment.side or "RIGHT")


def _resolve_roots(inline: list[CommentRecord]) -> dict[str, CommentRecord]:
    """Map every inline comment id to the root comment of its reply chain."""
    by_id = {c.id: c for c in inline}
    roots: dict[str, CommentRecord] = {}
    for comment in inline:
        chain = [comment]
        seen = {comment.id}
        current = comment
        while current.in_reply_to_id and current.in_reply_to_id in by_id and current.id not in roots:
            parent = by_id[current.in_reply_to_id]
            if parent.id in seen:
                logger.warning("Reply cycle detected at comment %s; breaking the chain.", parent.id)
                break
            seen.add(parent.id)
            chain.append(parent)
            current = parent
        root = roots.get(current.id, current)
        for member in chain:
            roots[member.id] = root
    return roots


def _by_created(comment: CommentRecord) -> datetime:
    return comment.created_at


def build_threads(
    general_comments: Iterable[CommentRecord],
    inline_comments: Iterable[CommentRecord],
    reviews: Iterable[ReviewEvent] = (),
) -> list[ConversationThread]:
    """Group comments into threads, most recently active thread first."""
    inline = list(inline_comments)
    roots = _resolve_roots(inline)

    review_threads: OrderedDict[str, ConversationThread] = OrderedDict()
    for comment in inline:
        anchor = _location_anchor(roots[comment.id])
        thread = review_threads.get(anchor.key)
        if thread is None:
            thread = ConversationThread(id=anchor.key, kind=ThreadKind.REVIEW_THREAD, anchor=anchor)
            review_threads[anchor.key] = thread
        thread.comments.append(comment)

    threads = list(review_threads.values())
    main = review_body_comments(reviews) + list(general_comments)
    if main:
        threads.append(ConversationThread(id=MAIN_CONVERSATION_ID, kind=ThreadKind.GENERAL_THREAD, comments=main))

    for thread in threads:
        thread.comments.sort(key=_by_created)
        thread.created_at = thread.comments[0].created_at
        thread.updated_at = max(c.effective_updated_at for c in thread.comments)

    threads.sort(key=lambda t: t.updated_at, reverse=True)
    return threads


def recent_order(items: Iterable[CommentRecord]) -> list[CommentRecord]:
    return sorted(items, key=_by_created, reverse=True)


def default_order(items: Iterable[CommentRecord], thread_of: dict[str, str] | None = None) -> list[CommentRecord]:
    """Light-threading order: contiguous inline groups, oldest last-activity first.

    ``thread_of`` maps inline comment ids to their thread id; without it inline
    comments are grouped by their own location.
    """
    groups: OrderedDict[str, list[CommentRecord]] = OrderedDict()
    blocks: list[tuple[datetime, list[CommentRecord]]] = []

    for item in items:
        if item.kind == CommentKind.INLINE and item.file_path is not None:
            key = (thread_of or {}).get(item.id) or _location_anchor(item).key
            groups.setdefault(key, []).append(item)
        else:
            blocks.append((item.created_at, [item]))

    for members in groups.values():
        members.sort(key=_by_created)
        blocks.append((max(m.created_at for m in members), members))

    blocks.sort(key=lambda block: block[0])
    return [comment for _, members in blocks for comment in members]


def build_conversation(raw: RawPullRequestData, bot_pattern: re.Pattern = DEFAULT_BOT_PATTERN) -> Conversation:
    threads = build_threads(raw.general_comments, raw.inline_comments, raw.reviews)
    thread_of = {c.id: t.id for t in threads if t.kind == ThreadKind.REVIEW_THREAD for c in t.comments}

    everything = unified_comments(raw)
    visible = [c for c in everything if not is_bot(c.author_id, bot_pattern)]
    hidden = len(everything) - len(visible)
    if hidden:
        logger.debug("Hiding %d bot comment(s) on %s#%s", hidden, raw.repo, raw.number)

    return Conversation(
        description=raw.body,
        threads=threads,
        default_order=default_order(visible, thread_of),
        recent_order=recent_order(visible),
        total_count=len(everything),
    )
