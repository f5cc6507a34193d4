"""Tests for conversation threading and timeline ordering."""

import re
from datetime import datetime, timedelta, timezone

from prboard_core.conversation import (
    build_conversation,
    build_threads,
    default_order,
    is_bot,
    recent_order,
    review_body_comments,
)
from prboard_core.models import (
    MAIN_CONVERSATION_ID,
    CommentKind,
    CommentRecord,
    RawPullRequestData,
    ReviewEvent,
    ThreadKind,
)

T0 = datetime(2024, 6, 1, 12, 0, tzinfo=timezone.utc)


def _t(hours: float) -> datetime:
    return T0 + timedelta(hours=hours)


def _inline(cid, path, line, hours, author="bob", reply_to=None, original_line=None, side=None, updated=None):
    return CommentRecord(
        id=cid,
        author_id=author,
        created_at=_t(hours),
        updated_at=_t(updated) if updated is not None else None,
        body_text=f"inline {cid}",
        kind=CommentKind.INLINE,
        file_path=path,
        line_number=line,
        original_line_number=original_line,
        side=side,
        in_reply_to_id=reply_to,
    )


def _general(cid, hours, author="carol"):
    return CommentRecord(id=cid, author_id=author, created_at=_t(hours), body_text=f"general {cid}")


def _raw(**kwargs):
    defaults = dict(repo="acme/api", number=7, title="Add caching", author="alice", state="open", body="Adds a cache.")
    defaults.update(kwargs)
    return RawPullRequestData(**defaults)


class TestBuildThreads:
    def test_threads_grouped_by_location(self):
        inline = [
            _inline("1", "a.py", 10, 1),
            _inline("2", "a.py", 10, 2),
            _inline("3", "b.py", 5, 3),
        ]
        threads = build_threads([], inline)

        review_threads = [t for t in threads if t.kind == ThreadKind.REVIEW_THREAD]
        assert len(review_threads) == 2
        by_path = {t.anchor.file_path: t for t in review_threads}
        assert [c.id for c in by_path["a.py"].comments] == ["1", "2"]
        assert [c.id for c in by_path["b.py"].comments] == ["3"]

    def test_thread_comments_sorted_oldest_first(self):
        inline = [_inline("late", "a.py", 10, 5), _inline("early", "a.py", 10, 1)]
        (thread,) = build_threads([], inline)
        assert [c.id for c in thread.comments] == ["early", "late"]
        assert thread.created_at == _t(1)
        assert thread.updated_at == _t(5)

    def test_different_sides_are_different_threads(self):
        inline = [_inline("1", "a.py", 10, 1, side="LEFT"), _inline("2", "a.py", 10, 2, side="RIGHT")]
        assert len(build_threads([], inline)) == 2

    def test_missing_side_defaults_to_right(self):
        inline = [_inline("1", "a.py", 10, 1), _inline("2", "a.py", 10, 2, side="RIGHT")]
        (thread,) = build_threads([], inline)
        assert thread.id == "a.py:10:RIGHT"

    def test_original_line_used_when_line_is_outdated(self):
        inline = [_inline("1", "a.py", None, 1, original_line=12)]
        (thread,) = build_threads([], inline)
        assert thread.anchor.line == 12

    def test_reply_follows_parent_thread(self):
        # The reply's own line moved after a force-push; it still belongs with its parent.
        inline = [
            _inline("1", "a.py", 10, 1),
            _inline("2", "a.py", 14, 2, reply_to="1"),
            _inline("3", "a.py", 20, 3, reply_to="2"),
        ]
        (thread,) = build_threads([], inline)
        assert [c.id for c in thread.comments] == ["1", "2", "3"]
        assert thread.id == "a.py:10:RIGHT"

    def test_reply_to_unknown_parent_uses_own_location(self):
        inline = [_inline("2", "a.py", 14, 2, reply_to="missing")]
        (thread,) = build_threads([], inline)
        assert thread.id == "a.py:14:RIGHT"

    def test_reply_cycle_does_not_hang(self):
        inline = [_inline("1", "a.py", 10, 1, reply_to="2"), _inline("2", "a.py", 10, 2, reply_to="1")]
        threads = build_threads([], inline)
        assert sum(len(t.comments) for t in threads) == 2

    def test_general_comments_and_review_bodies_share_main_thread(self):
        reviews = [ReviewEvent(reviewer_id="bob", submitted_at=_t(2), verdict="APPROVED", body_text="LGTM", id=11)]
        threads = build_threads([_general("g1", 1)], [], reviews)
        (main,) = threads
        assert main.id == MAIN_CONVERSATION_ID
        assert main.kind == ThreadKind.GENERAL_THREAD
        assert [c.id for c in main.comments] == ["g1", "review-11"]

    def test_no_comments_no_threads(self):
        assert build_threads([], [], []) == []

    def test_threads_sorted_by_latest_activity(self):
        inline = [_inline("1", "a.py", 10, 1), _inline("2", "b.py", 5, 2)]
        threads = build_threads([_general("g1", 3)], inline)
        assert [t.id for t in threads] == [MAIN_CONVERSATION_ID, "b.py:5:RIGHT", "a.py:10:RIGHT"]

    def test_edit_counts_as_thread_activity(self):
        inline = [_inline("1", "a.py", 10, 1, updated=9), _inline("2", "b.py", 5, 2)]
        threads = build_threads([], inline)
        assert threads[0].id == "a.py:10:RIGHT"
        assert threads[0].updated_at == _t(9)


class TestReviewBodies:
    def test_blank_and_unsubmitted_reviews_skipped(self):
        reviews = [
            ReviewEvent(reviewer_id="bob", submitted_at=_t(1), verdict="APPROVED", body_text="", id=1),
            ReviewEvent(reviewer_id="bob", submitted_at=None, verdict="PENDING", body_text="draft", id=2),
            ReviewEvent(reviewer_id="dan", submitted_at=_t(2), verdict="COMMENTED", body_text="Why?", id=3),
        ]
        (only,) = review_body_comments(reviews)
        assert only.id == "review-3"
        assert only.kind == CommentKind.REVIEW
        assert only.updated_at == only.created_at
        assert only.verdict == "COMMENTED"


class TestOrderings:
    def test_recent_order_newest_first(self):
        items = [_general("a", 1), _general("b", 3), _inline("c", "a.py", 1, 2)]
        assert [c.id for c in recent_order(items)] == ["b", "c", "a"]

    def test_default_order_keeps_inline_threads_contiguous(self):
        items = [
            _general("g1", 1),
            _inline("i1", "a.py", 10, 2),
            _general("g2", 3),
            _inline("i2", "a.py", 10, 4),
            _general("g3", 5),
        ]
        # The a.py thread's last activity is hour 4, so it sits between g2 and g3.
        assert [c.id for c in default_order(items)] == ["g1", "g2", "i1", "i2", "g3"]

    def test_default_order_uses_thread_mapping(self):
        items = [_inline("i1", "a.py", 10, 1), _inline("i2", "a.py", 30, 2, reply_to="i1"), _general("g1", 3)]
        thread_of = {"i1": "a.py:10:RIGHT", "i2": "a.py:10:RIGHT"}
        assert [c.id for c in default_order(items, thread_of)] == ["i1", "i2", "g1"]

    def test_default_order_without_mapping_groups_by_own_location(self):
        items = [_inline("i1", "a.py", 10, 1), _inline("i2", "a.py", 30, 2), _general("g1", 3)]
        assert [c.id for c in default_order(items)] == ["i1", "i2", "g1"]


class TestBots:
    def test_is_bot(self):
        assert is_bot("dependabot[bot]")
        assert not is_bot("bob")
        assert not is_bot(None)

    def test_custom_pattern(self):
        assert is_bot("ci-robot", re.compile(r"-robot$"))

    def test_bots_hidden_from_orderings_but_counted(self):
        raw = _raw(
            general_comments=[_general("g1", 1), _general("g2", 2, author="github-actions[bot]")],
            inline_comments=[_inline("i1", "a.py", 3, 3)],
        )
        conversation = build_conversation(raw)
        assert conversation.total_count == 3
        assert conversation.displayed_count == 2
        assert all(c.author_id != "github-actions[bot]" for c in conversation.recent_order)
        main = next(t for t in conversation.threads if t.id == MAIN_CONVERSATION_ID)
        assert len(main.comments) == 2


class TestBuildConversation:
    def test_description_and_review_bodies(self):
        reviews = [ReviewEvent(reviewer_id="bob", submitted_at=_t(2), verdict="APPROVED", body_text="Ship it", id=5)]
        raw = _raw(reviews=reviews, general_comments=[_general("g1", 1)])
        conversation = build_conversation(raw)
        assert conversation.description == "Adds a cache."
        assert [c.id for c in conversation.recent_order] == ["review-5", "g1"]
        assert [c.id for c in conversation.default_order] == ["g1", "review-5"]

    def test_replies_on_moved_lines_stay_grouped_in_default_order(self):
        raw = _raw(
            inline_comments=[
                _inline("i1", "a.py", 10, 1),
                _inline("i2", "a.py", 25, 4, reply_to="i1"),
            ],
            general_comments=[_general("g1", 2)],
        )
        assert [c.id for c in build_conversation(raw).default_order] == ["g1", "i1", "i2"]
