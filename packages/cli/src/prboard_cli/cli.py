"""CLI entry point for prboard.

Commands:
  reviewers     — reviewer status, unread badges and merge readiness per PR
  conversation  — threaded PR conversation in default or most-recent order
  ack           — mark a reviewer's activity on a PR as read
  ledger        — inspect or sweep the notification ledger
"""

from __future__ import annotations

import importlib.metadata
import logging

import click
import yaml
from rich.console import Console
from rich.logging import RichHandler

from prboard_cli.commands.ack import ack_cmd
from prboard_cli.commands.conversation import conversation_cmd
from prboard_cli.commands.ledger import ledger_group
from prboard_cli.commands.reviewers import reviewers_cmd

console = Console()


def _build_store(config: dict):
    """Instantiate the configured ledger store from .prboard.yml settings.

    Store selection hierarchy:
      store: sqlite → SQLiteStore    (store_path or .prboard.db)
      store: memory → MemoryStore    (acknowledgements last for this run only)
      (default)     → JsonFileStore  (store_path or .prboard-ledger.json)

    This factory lives in cli.py so neither prboard_core nor prboard_store
    know about the CLI config format.
    """
    from prboard_store.json_file import JsonFileStore

    store_type = config.get("store") or "json"
    store_path = config.get("store_path")

    if store_type == "memory":
        from prboard_store.memory import MemoryStore

        return MemoryStore()

    if store_type == "sqlite":
        from prboard_store.sqlite import SQLiteStore

        return SQLiteStore(db_path=store_path or ".prboard.db")

    if store_type != "json":
        console.print(f"[yellow]Unknown store {store_type!r}. Falling back to the JSON ledger file.[/yellow]")
    return JsonFileStore(path=store_path or ".prboard-ledger.json")


def _configure_logging(verbose: bool) -> None:
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(message)s",
        handlers=[RichHandler(console=Console(stderr=True), show_path=False)],
    )


@click.group()
@click.version_option(
    version=importlib.metadata.version("prboard"),
    prog_name="prboard",
)
@click.option(
    "--config",
    "config_path",
    default=".prboard.yml",
    show_default=True,
    help="Path to the configuration file.",
    envvar="PRBOARD_CONFIG",
)
@click.option("--viewer", default=None, help="Your GitHub login; listed first on every PR. Overrides config file.")
@click.option("--verbose", "-v", is_flag=True, help="Enable debug logging.")
@click.pass_context
def main(ctx: click.Context, config_path: str, viewer: str | None, verbose: bool):
    """Reviewer status, conversations and unread badges for GitHub pull requests."""
    from prboard_core.config import load_config
    from prboard_core.notifications import NotificationLedger
    from prboard_cli.auth import resolve_github_token

    _configure_logging(verbose)
    ctx.ensure_object(dict)

    try:
        config = load_config(config_path, cli_overrides={"viewer": viewer})
    except (ValueError, yaml.YAMLError) as e:
        raise click.UsageError(f"Could not load {config_path}: {e}")

    # Resolve token early so all subcommands share the same resolution.
    token = resolve_github_token()
    if token:
        config["github_token"] = token

    store = _build_store(config)
    ctx.obj["store"] = store
    ctx.obj["config"] = config
    ctx.obj["ledger"] = NotificationLedger(store, idle_days=int(config.get("ledger_idle_days", 30)))
    ctx.call_on_close(store.close)


main.add_command(reviewers_cmd)
main.add_command(conversation_cmd)
main.add_command(ack_cmd)
main.add_command(ledger_group)
