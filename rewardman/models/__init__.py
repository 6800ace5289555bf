"""Rewardman models.

LoyaltyAccount owns exactly one ledger. LedgerEntry rows are the ledger:
append-only, never updated or deleted.
"""

from rewardman.models.account import LoyaltyAccount
from rewardman.models.entry import EntryKind, LedgerEntry

__all__ = [
    "LoyaltyAccount",
    "LedgerEntry",
    "EntryKind",
]
