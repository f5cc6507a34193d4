"""ack command — acknowledge a reviewer's activity on a pull request."""

from __future__ import annotations

import click
from rich.console import Console

from prboard_core.models import SubjectKey

console = Console()


@click.command("ack")
@click.option("--repo", required=True, help="GitHub repository (owner/name).")
@click.option("--pr", "pr_number", type=int, required=True, help="Pull request number.")
@click.option("--reviewer", "reviewers", multiple=True, required=True, help="Reviewer login. Repeatable.")
@click.pass_context
def ack_cmd(ctx, repo: str, pr_number: int, reviewers: tuple[str, ...]):
    """Mark a reviewer's comments on a PR as read.

    Only the given (PR, reviewer) pairs are touched; running it twice is
    harmless.
    """
    ledger = ctx.obj["ledger"]
    subject = SubjectKey(repo, pr_number)
    for reviewer in reviewers:
        ledger.acknowledge(subject, reviewer)
        console.print(f"[green]Acknowledged {reviewer} on {subject}.[/green]")
