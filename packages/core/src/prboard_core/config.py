import logging
import os
import re
from pathlib import Path
from typing import Optional

import yaml

logger = logging.getLogger(__name__)

DEFAULT_CONFIG: dict = {
    "viewer": None,  # GitHub login of the person looking at the board; listed first
    "bot_pattern": r"\[bot\]$",  # authors matching this are hidden from conversation views
    "ready_approvals": 3,
    "ledger_idle_days": 30,
    "max_parallel": 8,
    "store": "json",  # json | sqlite | memory
    "store_path": None,  # None = backend default (.prboard-ledger.json / .prboard.db)
    "repos": [],  # default repositories for `prboard reviewers` when --repo is omitted
}


def _read_config_file(path: Path) -> dict:
    if not path.is_file():
        return {}
    data = yaml.safe_load(path.read_text(encoding="utf-8"))
    if data is None:
        return {}
    if not isinstance(data, dict):
        raise ValueError(f"{path} must contain a mapping of settings, got {type(data).__name__}.")
    unknown = sorted(set(data) - set(DEFAULT_CONFIG))
    if unknown:
        logger.warning("Ignoring unknown setting(s) in %s: %s", path, ", ".join(unknown))
    return {k: v for k, v in data.items() if k in DEFAULT_CONFIG}


def load_config(config_path: str = ".prboard.yml", cli_overrides: Optional[dict] = None) -> dict:
    """Build the effective configuration.

    Later sources win: built-in defaults, then the YAML file (if present),
    then CLI overrides whose value is not None. The GitHub token always comes
    from the environment, never from the file.
    """
    config = {key: list(value) if isinstance(value, list) else value for key, value in DEFAULT_CONFIG.items()}
    config.update(_read_config_file(Path(config_path)))
    config.update({k: v for k, v in (cli_overrides or {}).items() if v is not None})
    config["github_token"] = os.environ.get("GITHUB_TOKEN")
    return config


def compile_bot_pattern(config: dict) -> re.Pattern:
    """Return the compiled bot-author pattern, rejecting invalid expressions early."""
    pattern = config.get("bot_pattern") or DEFAULT_CONFIG["bot_pattern"]
    try:
        return re.compile(pattern)
    except re.error as e:
        raise ValueError(f"Invalid bot_pattern {pattern!r} in config: {e}") from e
