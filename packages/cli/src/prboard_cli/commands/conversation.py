"""conversation command — print a PR conversation in either timeline order."""

from __future__ import annotations

import asyncio

import click
from github import GithubException
from rich.console import Console

from prboard_core.config import compile_bot_pattern
from prboard_core.conversation import build_conversation
from prboard_core.errors import PRBoardError, classify_github_error
from prboard_core.gh.pull_request import fetch_pull_request_data, get_repo
from prboard_core.models import CommentKind, CommentRecord, SubjectKey

console = Console()

_VERDICT_ICON = {"APPROVED": "✅", "CHANGES_REQUESTED": "❌", "COMMENTED": "💬"}


def _header(comment: CommentRecord, grouped: bool) -> str:
    when = comment.created_at.strftime("%Y-%m-%d %H:%M")
    parts = [f"[bold cyan]{comment.author_id}[/bold cyan]"]
    if comment.kind == CommentKind.REVIEW:
        parts.append(_VERDICT_ICON.get((comment.verdict or "").upper(), "📝"))
    if comment.kind == CommentKind.INLINE and not grouped:
        line = comment.anchor_line
        parts.append(f"📄 [dim]{comment.file_path}{f':{line}' if line is not None else ''}[/dim]")
    if comment.effective_updated_at > comment.created_at:
        parts.append("[dim](edited)[/dim]")
    parts.append(f"[dim]{when}[/dim]")
    return "  ".join(parts)


def print_timeline(comments: list[CommentRecord]) -> None:
    previous: CommentRecord | None = None
    for comment in comments:
        grouped = (
            previous is not None
            and comment.kind == CommentKind.INLINE
            and previous.kind == CommentKind.INLINE
            and previous.file_path == comment.file_path
            and previous.anchor_line == comment.anchor_line
        )
        indent = "    " if grouped else ""
        console.print(indent + _header(comment, grouped))
        for line in (comment.body_text or "").splitlines() or [""]:
            console.print(f"{indent}  {line}", markup=False, highlight=False)
        console.print()
        previous = comment


@click.command("conversation")
@click.option("--repo", required=True, help="GitHub repository (owner/name).")
@click.option("--pr", "pr_number", type=int, required=True, help="Pull request number.")
@click.option(
    "--order",
    type=click.Choice(["default", "recent"]),
    default="default",
    show_default=True,
    help="default: light threading, oldest conversation first. recent: newest first.",
)
@click.option("--reviewer", default=None, help="Only show this person's comments and mark them as read.")
@click.pass_context
def conversation_cmd(ctx, repo: str, pr_number: int, order: str, reviewer: str | None):
    """Show the conversation on a pull request.

    Bot comments are hidden. With --reviewer, opening the list acknowledges
    that reviewer's activity, clearing their unread badge.
    """
    from prboard_cli.auth import require_github_token

    config = ctx.obj["config"]
    ledger = ctx.obj["ledger"]
    token = require_github_token(config)

    try:
        bot_pattern = compile_bot_pattern(config)
    except ValueError as e:
        raise click.UsageError(str(e))

    try:
        this_repo = get_repo(repo, token=token)
        raw = asyncio.run(fetch_pull_request_data(this_repo, pr_number))
    except GithubException as e:
        raise click.ClickException(f"Could not load {repo}: {classify_github_error(e)}")
    except PRBoardError as e:
        raise click.ClickException(str(e))

    conversation = build_conversation(raw, bot_pattern)
    comments = conversation.default_order if order == "default" else conversation.recent_order
    if reviewer:
        comments = [c for c in comments if c.author_id == reviewer]

    label = "Default" if order == "default" else "Most recent"
    hidden = conversation.total_count - conversation.displayed_count
    console.print(
        f"\n[bold]{repo}#{pr_number}[/bold] {raw.title}\n"
        f"[dim]{label} order · {len(comments)} comment(s) · {len(conversation.threads)} thread(s)"
        + (f" · {hidden} bot comment(s) hidden" if hidden else "")
        + "[/dim]\n"
    )

    if not comments:
        console.print("[yellow]No comments yet.[/yellow]")
    else:
        print_timeline(comments)

    if reviewer:
        ledger.acknowledge(SubjectKey(raw.repo, raw.number), reviewer)
