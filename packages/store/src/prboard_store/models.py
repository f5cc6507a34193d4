"""Notification ledger data models.

Decoupled from prboard_core so the store layer can be used independently
and prboard_core has no knowledge of how acknowledgements are persisted.
"""

from __future__ import annotations

from dataclasses import dataclass


@dataclass
class LedgerEntry:
    """When a viewer last acknowledged one reviewer's activity on one PR."""

    subject: str  # "owner/repo#number"
    reviewer: str
    acknowledged_at: int  # epoch milliseconds
