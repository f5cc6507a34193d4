"""GitHub token resolution with gh CLI fallback.

Resolution order (stops at first success):
  1. GITHUB_TOKEN environment variable (CI / explicit override)
  2. `gh auth token` (GitHub CLI session — works after `gh auth login`)

prboard never stores or refreshes credentials itself; it only passes the
resolved token through to PyGithub.
"""

from __future__ import annotations

import logging
import os
import subprocess

import click

logger = logging.getLogger(__name__)

_MISSING_TOKEN_HELP = (
    "No GitHub token found. Set GITHUB_TOKEN or run `gh auth login` first.\n"
    "Create a token at https://github.com/settings/tokens"
)


def _token_from_gh_cli() -> str | None:
    try:
        result = subprocess.run(["gh", "auth", "token"], capture_output=True, text=True, timeout=5)
    except (FileNotFoundError, subprocess.TimeoutExpired):
        return None
    if result.returncode != 0:
        logger.debug("gh auth token exited with %d", result.returncode)
        return None
    return result.stdout.strip() or None


def resolve_github_token() -> str | None:
    """Return a GitHub token or None if no source is available. Never raises."""
    token = os.environ.get("GITHUB_TOKEN")
    if token:
        return token
    token = _token_from_gh_cli()
    if token:
        logger.debug("Resolved GitHub token via gh CLI session.")
    return token


def require_github_token(config: dict) -> str:
    """Return the token already resolved into ``config``, or fail with a usage error."""
    token = config.get("github_token") or resolve_github_token()
    if not token:
        raise click.UsageError(_MISSING_TOKEN_HELP)
    return token
