"""ledger commands — inspect and clean up the notification ledger."""

from __future__ import annotations

from collections import Counter

import click
from rich.console import Console
from rich.table import Table

from prboard_core.models import SubjectKey
from prboard_core.notifications import from_epoch_ms

console = Console()


@click.group("ledger")
def ledger_group():
    """Inspect or clean up the notification ledger."""


@ledger_group.command("stats")
@click.option("--top", default=10, show_default=True, help="Number of most-tracked PRs to list.")
@click.pass_context
def stats_cmd(ctx, top: int):
    """Show how many PRs and reviewers the ledger is tracking."""
    ledger = ctx.obj["ledger"]
    store = ctx.obj["store"]
    stats = ledger.stats()

    console.print("\n[bold]Notification ledger[/bold]")
    console.print(f"  Tracked PRs:       {stats.tracked_subjects}")
    console.print(f"  Tracked reviewers: {stats.tracked_reviewers}")
    console.print(f"  Storage size:      {stats.storage_size} bytes")

    entries = store.entries()
    if not entries:
        return

    per_subject: Counter[str] = Counter(e.subject for e in entries)
    latest: dict[str, int] = {}
    for e in entries:
        latest[e.subject] = max(latest.get(e.subject, 0), e.acknowledged_at)

    table = Table(title=f"Top {top} Tracked PRs", show_header=True)
    table.add_column("Repository")
    table.add_column("PR", justify="right")
    table.add_column("Reviewers", justify="right")
    table.add_column("Last Acknowledged", width=20)
    for subject, count in per_subject.most_common(top):
        try:
            key = SubjectKey.parse(subject)
            repo, number = key.repo, f"#{key.number}"
        except ValueError:
            repo, number = subject, "?"
        table.add_row(repo, number, str(count), from_epoch_ms(latest[subject]).strftime("%Y-%m-%d %H:%M:%S"))
    console.print(table)


@ledger_group.command("sweep")
@click.pass_context
def sweep_cmd(ctx):
    """Remove entries nobody has acknowledged within the idle window (default 30 days)."""
    removed = ctx.obj["ledger"].sweep()
    console.print(f"Removed {removed} idle entr{'y' if removed == 1 else 'ies'}.")
