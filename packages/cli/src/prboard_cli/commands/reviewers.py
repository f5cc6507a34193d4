"""reviewers command — reviewer status, unread badges and merge readiness."""

from __future__ import annotations

import asyncio

import click
from github import GithubException
from rich.console import Console
from rich.table import Table

from prboard_core.enrichment import enrich_pull_requests, track_snapshot
from prboard_core.errors import classify_github_error
from prboard_core.gh.pull_request import get_pull, get_pull_requests, get_repo
from prboard_core.models import PullRequestSnapshot, ReviewState, UnreadInfo, Urgency

console = Console()

_STATE_ICON = {
    ReviewState.APPROVED: "✅",
    ReviewState.CHANGES_REQUESTED: "❌",
    ReviewState.COMMENTED: "💬",
    ReviewState.REVIEW_REQUESTED: "⏳",
    ReviewState.DISMISSED: "🚫",
}

_URGENCY_STYLE = {
    Urgency.NORMAL: "white",
    Urgency.WARNING: "yellow",
    Urgency.URGENT: "red",
}

_CHECK_STYLE = {"success": "green", "pending": "yellow", "failure": "red", "error": "red"}


def _badge(reviewer, unread: UnreadInfo | None) -> str:
    name = f"[bold]{reviewer.reviewer_id}[/bold]" if reviewer.is_current_viewer else reviewer.reviewer_id
    text = f"{_STATE_ICON.get(reviewer.state, '?')} {name}"
    if reviewer.has_comments:
        text += " ✎"
    if unread is not None and unread.count:
        style = _URGENCY_STYLE.get(unread.urgency, "white")
        text += f" [{style}]●{unread.count}[/{style}]"
    return text


def _checks_cell(snapshot: PullRequestSnapshot) -> str:
    if snapshot.checks is None:
        return "[dim]n/a[/dim]"
    state = snapshot.checks.overall_state.value
    style = _CHECK_STYLE.get(state, "white")
    return f"[{style}]{snapshot.checks.summary or state}[/{style}]"


def render_snapshots(
    snapshots: list[PullRequestSnapshot], badges: dict[int, dict[str, UnreadInfo]], repo: str
) -> Table:
    table = Table(title=f"Pull Requests — {repo}", show_header=True, header_style="bold cyan")
    table.add_column("PR", style="bold", width=6)
    table.add_column("Title", max_width=40)
    table.add_column("Author", width=16)
    table.add_column("Reviewers")
    table.add_column("Checks", max_width=36)
    table.add_column("Status", width=16)

    for s in snapshots:
        if s.reviewers_unavailable:
            reviewers = f"[red]reviewers unavailable[/red] [dim]({s.error})[/dim]"
        elif not s.reviewers:
            reviewers = "[dim]no reviewers[/dim]"
        else:
            pr_badges = badges.get(s.number, {})
            reviewers = "\n".join(_badge(r, pr_badges.get(r.reviewer_id)) for r in s.reviewers)

        status = []
        if s.draft:
            status.append("[dim]draft[/dim]")
        if s.readiness is not None:
            if s.readiness.ready_to_merge:
                status.append("[green]Ready to Merge[/green]")
            if s.readiness.needs_rebase:
                status.append("[yellow]Needs rebase[/yellow]")

        table.add_row(
            f"#{s.number}",
            s.title[:40],
            s.author or "",
            reviewers,
            _checks_cell(s) if not s.reviewers_unavailable else "",
            "\n".join(status),
        )
    return table


@click.command("reviewers")
@click.option(
    "--repo", "repos", multiple=True, help="GitHub repository (owner/name). Repeatable; defaults to `repos` in config."
)
@click.option("--pr", "pr_number", type=int, default=None, help="Only show this pull request.")
@click.option("--state", default="open", show_default=True, type=click.Choice(["open", "closed", "all"]))
@click.pass_context
def reviewers_cmd(ctx, repos: tuple[str, ...], pr_number: int | None, state: str):
    """Show reviewer status, unread activity and merge readiness for pull requests.

    Reviewer badges: ✅ approved, ❌ changes requested, 💬 commented,
    ⏳ review requested, 🚫 dismissed. A coloured dot shows unread comments
    (white < 1 day, yellow < 2 days, red older). Run `prboard ack` to clear it.
    """
    from prboard_cli.auth import require_github_token

    config = ctx.obj["config"]
    ledger = ctx.obj["ledger"]
    token = require_github_token(config)
    repos = repos or tuple(config.get("repos") or ())
    if not repos:
        raise click.UsageError("No repository given. Pass --repo owner/name or set `repos` in .prboard.yml.")

    # Opportunistic cleanup, once per run.
    ledger.sweep()

    for repo_name in repos:
        try:
            this_repo = get_repo(repo_name, token=token)
            if pr_number is not None:
                pulls = [get_pull(this_repo, pr_number)]
            else:
                pulls = list(get_pull_requests(this_repo, state=state))
        except GithubException as e:
            raise click.ClickException(f"Could not load {repo_name}: {classify_github_error(e)}")

        if not pulls:
            console.print(f"[yellow]No {state} pull requests found in {repo_name}.[/yellow]")
            continue

        snapshots = asyncio.run(
            enrich_pull_requests(
                this_repo,
                pulls,
                viewer=config.get("viewer"),
                required_approvals=int(config.get("ready_approvals", 3)),
                max_parallel=int(config.get("max_parallel", 8)),
            )
        )
        badges = {s.number: track_snapshot(ledger, s) for s in snapshots}
        console.print(render_snapshots(snapshots, badges, repo_name))
