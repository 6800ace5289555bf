"""Expiration sweep: turns aged earn entries into expire entries.

Runs out of the request path (see the rewardman_expire_points command).
Each earn entry past expires_at is offset by one expire entry sharing its
source reference, for min(original points, current balance): spent points
are never expired twice and the balance never goes negative. When nothing
is left to expire a zero expire entry still marks the earn as processed.

The sweep walks accounts in primary-key order and reports a checkpoint
after each account, so it can stop between accounts and resume later.
"""

import logging
from dataclasses import dataclass
from datetime import datetime

from django.utils import timezone

from rewardman.exceptions import DuplicateEntry
from rewardman.models import EntryKind, LedgerEntry, LoyaltyAccount
from rewardman.services import ledger, projection
from rewardman.signals import points_expired

logger = logging.getLogger(__name__)


@dataclass
class SweepReport:
    """Result of one sweep run."""

    accounts_processed: int = 0
    entries_expired: int = 0
    points_expired: int = 0
    checkpoint: int | None = None  # pk of the last fully processed account
    completed: bool = True

    def as_dict(self) -> dict:
        return {
            "accounts_processed": self.accounts_processed,
            "entries_expired": self.entries_expired,
            "points_expired": self.points_expired,
            "checkpoint": self.checkpoint,
            "completed": self.completed,
        }


def sweep(
    now: datetime | None = None,
    after_id: int | None = None,
    limit: int | None = None,
    should_stop=None,
) -> SweepReport:
    """
    Expire due earn entries across all accounts.

    Args:
        now: Reference time (default: timezone.now())
        after_id: Resume after this account pk (a previous checkpoint)
        limit: Maximum accounts to process in this run
        should_stop: Callable checked between accounts; truthy stops the sweep

    Returns:
        SweepReport; completed is False if stopped by limit or should_stop
    """
    now = now or timezone.now()
    due_accounts = projection.pending_expiry().filter(expires_at__lte=now).values("account_id")
    accounts = LoyaltyAccount.objects.filter(is_active=True, pk__in=due_accounts).order_by("pk")
    if after_id is not None:
        accounts = accounts.filter(pk__gt=after_id)

    report = SweepReport(checkpoint=after_id)
    for account in list(accounts):
        if limit is not None and report.accounts_processed >= limit:
            report.completed = False
            break
        if should_stop is not None and should_stop():
            report.completed = False
            break

        entries = expire_account(account, now)
        report.accounts_processed += 1
        report.entries_expired += len(entries)
        report.points_expired += sum(-e.delta for e in entries)
        report.checkpoint = account.pk

    logger.info(
        "Expiration sweep: %d accounts, %d entries, %d points (checkpoint=%s, completed=%s)",
        report.accounts_processed,
        report.entries_expired,
        report.points_expired,
        report.checkpoint,
        report.completed,
    )
    return report


def expire_account(account: LoyaltyAccount, now: datetime | None = None) -> list[LedgerEntry]:
    """Expire every due earn entry of one account, oldest first."""
    now = now or timezone.now()
    due = projection.pending_expiry(account).filter(expires_at__lte=now).order_by("pk")
    expired = []
    for earn in list(due):
        entry = _expire(account, earn, now)
        if entry is not None:
            expired.append(entry)
    return expired


def _expire(account: LoyaltyAccount, earn: LedgerEntry, now: datetime) -> LedgerEntry | None:
    def attempt() -> LedgerEntry:
        version = LoyaltyAccount.objects.values_list("version", flat=True).get(pk=account.pk)
        balance = projection.current_balance(account.pk)
        amount = min(earn.delta, max(0, balance))
        return ledger.append(
            account,
            EntryKind.EXPIRE,
            -amount,
            earn.source_type,
            earn.source_id,
            expected_version=version,
            description=f"Expired points from {earn.source_ref}"[:200],
            metadata={"earn_entry": str(earn.uuid), "original_points": earn.delta},
            created_at=now,
        )

    try:
        entry = ledger.run_optimistic(attempt)
    except DuplicateEntry:
        logger.debug("Earn %s of %s already expired", earn.source_ref, account.code)
        return None

    ledger.announce(points_expired, account, entry)
    return entry
