"""Balance projection: folds an account's ledger into balance and totals."""

from dataclasses import dataclass
from datetime import datetime, timedelta

from django.db.models import Exists, OuterRef, Q, Sum
from django.db.models.functions import Coalesce

from rewardman.models import EntryKind, LedgerEntry, LoyaltyAccount


@dataclass(frozen=True)
class Projection:
    """Derived account totals. balance never exceeds lifetime_earned."""

    balance: int = 0
    lifetime_earned: int = 0
    lifetime_redeemed: int = 0
    lifetime_expired: int = 0

    def as_dict(self) -> dict:
        return {
            "balance": self.balance,
            "lifetime_earned": self.lifetime_earned,
            "lifetime_redeemed": self.lifetime_redeemed,
            "lifetime_expired": self.lifetime_expired,
        }


EMPTY = Projection()

# Positive adjustments are credits too, so balance <= lifetime_earned holds.
_CREDIT = Q(kind=EntryKind.EARN) | Q(kind=EntryKind.ADJUSTMENT, delta__gt=0)


def project(account: LoyaltyAccount | None) -> Projection:
    """Project balance and lifetime totals from the ledger (single aggregate)."""
    if account is None or account.pk is None:
        return EMPTY

    totals = LedgerEntry.objects.filter(account_id=account.pk).aggregate(
        balance=Coalesce(Sum("delta"), 0),
        earned=Coalesce(Sum("delta", filter=_CREDIT), 0),
        redeemed=Coalesce(Sum("delta", filter=Q(kind=EntryKind.REDEEM)), 0),
        expired=Coalesce(Sum("delta", filter=Q(kind=EntryKind.EXPIRE)), 0),
    )
    return Projection(
        balance=totals["balance"],
        lifetime_earned=totals["earned"],
        lifetime_redeemed=-totals["redeemed"],
        lifetime_expired=-totals["expired"],
    )


def fold(entries) -> Projection:
    """Fold an iterable of entries in memory. Order-independent."""
    balance = earned = redeemed = expired = 0
    for entry in entries:
        balance += entry.delta
        if entry.kind == EntryKind.EARN or (
            entry.kind == EntryKind.ADJUSTMENT and entry.delta > 0
        ):
            earned += entry.delta
        elif entry.kind == EntryKind.REDEEM:
            redeemed -= entry.delta
        elif entry.kind == EntryKind.EXPIRE:
            expired -= entry.delta
    return Projection(balance, earned, redeemed, expired)


def current_balance(account_id: int) -> int:
    """Balance only. Used inside the append transaction."""
    return LedgerEntry.objects.filter(account_id=account_id).aggregate(
        balance=Coalesce(Sum("delta"), 0)
    )["balance"]


def pending_expiry(account: LoyaltyAccount | None = None):
    """Earn entries (of account, or of every account) not yet offset by an expire entry."""
    expire_entries = LedgerEntry.objects.filter(
        account_id=OuterRef("account_id"),
        kind=EntryKind.EXPIRE,
        source_type=OuterRef("source_type"),
        source_id=OuterRef("source_id"),
    )
    qs = LedgerEntry.objects.filter(kind=EntryKind.EARN, expires_at__isnull=False)
    if account is not None:
        qs = qs.filter(account_id=account.pk)
    return qs.filter(~Exists(expire_entries))


def expiring_soon(account: LoyaltyAccount | None, now: datetime, days: int) -> int:
    """Points that will expire within `days`, capped by current balance."""
    if account is None or account.pk is None:
        return 0
    due = pending_expiry(account).filter(
        expires_at__gt=now,
        expires_at__lte=now + timedelta(days=days),
    ).aggregate(total=Coalesce(Sum("delta"), 0))["total"]
    return min(due, max(0, current_balance(account.pk)))
