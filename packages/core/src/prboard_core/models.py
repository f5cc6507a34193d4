"""Domain records shared by the fetch layer, reconciler, threading and ledger.

Raw inputs (reviews, comments, requested reviewers, status contexts) are
frozen: they describe what GitHub returned at fetch time and are never
mutated. Derived records (ReviewerState, ConversationThread, snapshots) are
rebuilt from scratch on every fetch.

All timestamps are timezone-aware UTC datetimes.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum

MAIN_CONVERSATION_ID = "main-conversation"


class Verdict(str, Enum):
    """Raw review submission outcome as reported by the reviews endpoint."""

    APPROVED = "APPROVED"
    CHANGES_REQUESTED = "CHANGES_REQUESTED"
    COMMENTED = "COMMENTED"
    DISMISSED = "DISMISSED"
    PENDING = "PENDING"


class ReviewState(str, Enum):
    """Canonical per-person review status shown on a reviewer badge."""

    APPROVED = "approved"
    CHANGES_REQUESTED = "changes_requested"
    COMMENTED = "commented"
    REVIEW_REQUESTED = "review_requested"
    DISMISSED = "dismissed"


class RequestSource(str, Enum):
    PRIMARY = "primary-list"  # requested_reviewers embedded in the PR payload
    SECONDARY = "secondary-list"  # /pulls/{n}/requested_reviewers


class CommentKind(str, Enum):
    GENERAL = "general"
    INLINE = "inline"
    REVIEW = "review"


class ThreadKind(str, Enum):
    REVIEW_THREAD = "review_thread"
    GENERAL_THREAD = "general_thread"


class CheckState(str, Enum):
    SUCCESS = "success"
    PENDING = "pending"
    FAILURE = "failure"
    ERROR = "error"
    UNKNOWN = "unknown"


class Urgency(str, Enum):
    NONE = "none"
    NORMAL = "normal"
    WARNING = "warning"
    URGENT = "urgent"


@dataclass(frozen=True)
class SubjectKey:
    """Identifies one pull request across sessions: ``owner/repo#number``.

    GitHub resolves repository names case-insensitively, so the repo part is
    stored lower-cased and ``Acme/API#7`` keys the same ledger entries as
    ``acme/api#7``.
    """

    repo: str
    number: int

    def __post_init__(self):
        object.__setattr__(self, "repo", self.repo.lower())

    def __str__(self) -> str:
        return f"{self.repo}#{self.number}"

    @classmethod
    def parse(cls, value: str) -> SubjectKey:
        repo, sep, number = value.rpartition("#")
        if not sep or not repo or not number.isdigit():
            raise ValueError(f"Invalid subject key: {value!r}. Expected 'owner/repo#number'.")
        return cls(repo=repo, number=int(number))


@dataclass(frozen=True)
class ReviewEvent:
    """One review submission. ``verdict`` keeps the raw string so unknown values survive to the reconciler."""

    reviewer_id: str | None
    submitted_at: datetime | None
    verdict: str
    body_text: str | None = None
    id: int | None = None

    @property
    def has_body(self) -> bool:
        return bool(self.body_text and self.body_text.strip())


@dataclass(frozen=True)
class RequestedReviewer:
    reviewer_id: str
    source: RequestSource


@dataclass(frozen=True)
class CommentRecord:
    """A general, inline or review-body comment.

    ``updated_at`` falls back to ``created_at`` when GitHub does not report an
    edit time, so an untouched comment is never mistaken for an edited one.
    """

    id: str
    author_id: str
    created_at: datetime
    body_text: str = ""
    kind: CommentKind = CommentKind.GENERAL
    updated_at: datetime | None = None
    file_path: str | None = None
    line_number: int | None = None
    original_line_number: int | None = None
    side: str | None = None
    in_reply_to_id: str | None = None
    verdict: str | None = None

    @property
    def effective_updated_at(self) -> datetime:
        return self.updated_at or self.created_at

    @property
    def anchor_line(self) -> int | None:
        return self.line_number if self.line_number is not None else self.original_line_number


@dataclass(frozen=True)
class StatusContext:
    name: str
    state: str


@dataclass
class CheckRun:
    """Aggregate of the combined commit status for a PR head."""

    overall_state: CheckState = CheckState.UNKNOWN
    total_count: int = 0
    succeeded_count: int = 0
    failing_names: list[str] = field(default_factory=list)
    pending_names: list[str] = field(default_factory=list)
    summary: str | None = None


@dataclass
class ReviewerState:
    reviewer_id: str
    state: ReviewState
    has_comments: bool = False
    last_activity_at: datetime | None = None
    is_current_viewer: bool = False
    is_stale: bool = False


@dataclass(frozen=True)
class ThreadAnchor:
    file_path: str | None
    line: int | None
    side: str = "RIGHT"

    @property
    def key(self) -> str:
        return f"{self.file_path}:{self.line}:{self.side}"


@dataclass
class ConversationThread:
    id: str
    kind: ThreadKind
    comments: list[CommentRecord] = field(default_factory=list)
    anchor: ThreadAnchor | None = None
    created_at: datetime | None = None
    updated_at: datetime | None = None


@dataclass
class Conversation:
    """Threads plus the two flattened orderings offered by the conversation view."""

    description: str
    threads: list[ConversationThread] = field(default_factory=list)
    default_order: list[CommentRecord] = field(default_factory=list)
    recent_order: list[CommentRecord] = field(default_factory=list)
    total_count: int = 0

    @property
    def displayed_count(self) -> int:
        return len(self.default_order)


@dataclass
class UnreadInfo:
    count: int = 0
    urgency: Urgency = Urgency.NONE
    newest_unread_age_days: float = 0.0


@dataclass
class MergeReadiness:
    approved_count: int
    needs_rebase: bool
    checks_passed: bool
    ready_to_merge: bool


@dataclass
class RawPullRequestData:
    """Everything the fetch layer collected for one PR.

    Optional collections are empty when their endpoint failed; only the
    descriptor fields (number, title, ...) are guaranteed.
    """

    repo: str
    number: int
    title: str
    author: str | None
    state: str
    html_url: str | None = None
    created_at: datetime | None = None
    updated_at: datetime | None = None
    draft: bool = False
    mergeable_state: str | None = None
    head_sha: str | None = None
    body: str = ""
    requested_reviewers: list[RequestedReviewer] = field(default_factory=list)
    reviews: list[ReviewEvent] = field(default_factory=list)
    general_comments: list[CommentRecord] = field(default_factory=list)
    inline_comments: list[CommentRecord] = field(default_factory=list)
    combined_status: str | None = None
    status_contexts: list[StatusContext] = field(default_factory=list)


@dataclass
class PullRequestSnapshot:
    """An enriched pull request ready for rendering.

    When enrichment failed, ``error`` carries the reason and only the base
    fields are populated; the PR is still shown with a "reviewers
    unavailable" indicator instead of being hidden.
    """

    repo: str
    number: int
    title: str = ""
    author: str | None = None
    state: str = ""
    html_url: str | None = None
    updated_at: datetime | None = None
    draft: bool = False
    mergeable_state: str | None = None
    reviewers: list[ReviewerState] = field(default_factory=list)
    comments: list[CommentRecord] = field(default_factory=list)
    checks: CheckRun | None = None
    readiness: MergeReadiness | None = None
    description: str = ""
    error: str | None = None

    @property
    def subject_key(self) -> SubjectKey:
        return SubjectKey(self.repo, self.number)

    @property
    def reviewers_unavailable(self) -> bool:
        return self.error is not None
