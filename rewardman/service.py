"""
Rewardman public API.

CORE (presentation layer):
    LoyaltyService.get_summary(code)             - Balance, tier, progress
    LoyaltyService.get_history(code, cursor)     - Ledger, newest first
    LoyaltyService.list_redeemable_rewards(code) - Catalog with affordability
    LoyaltyService.redeem(code, reward_id)       - Spend points on a reward

PRODUCERS (upstream features):
    LoyaltyService.emit_earn_event(...)          - Idempotent earn
    LoyaltyService.earn_for_booking(...)         - Booking amount -> points

CONVENIENCE:
    LoyaltyService.get_balance(code)
    LoyaltyService.tiers()
    LoyaltyService.adjust(...)
"""

from dataclasses import dataclass
from datetime import datetime

from django.utils import timezone

from rewardman.conf import rewardman_settings
from rewardman.models import LedgerEntry
from rewardman.services import earning, ledger, projection, redemption
from rewardman.services.redemption import RedeemableReward, RedemptionResult
from rewardman.services.tiers import Tier, get_tier_table


@dataclass(frozen=True)
class LoyaltySummary:
    """Everything the membership screen header needs."""

    account_code: str
    balance: int
    lifetime_earned: int
    lifetime_redeemed: int
    lifetime_expired: int
    tier: Tier
    next_tier: Tier | None
    points_to_next: int
    progress_percent: int
    expiring_soon: int

    def as_dict(self) -> dict:
        return {
            "account": self.account_code,
            "balance": self.balance,
            "lifetime_earned": self.lifetime_earned,
            "lifetime_redeemed": self.lifetime_redeemed,
            "lifetime_expired": self.lifetime_expired,
            "tier": self.tier.as_dict(),
            "next_tier": self.next_tier.as_dict() if self.next_tier else None,
            "points_to_next": self.points_to_next,
            "progress_percent": self.progress_percent,
            "expiring_soon": self.expiring_soon,
        }


@dataclass(frozen=True)
class HistoryPage:
    """Ledger entries for display, newest first."""

    entries: list[LedgerEntry]
    next_cursor: str | None

    def as_dict(self) -> dict:
        return {
            "entries": [entry_as_dict(e) for e in self.entries],
            "next_cursor": self.next_cursor,
        }


def entry_as_dict(entry: LedgerEntry) -> dict:
    return {
        "entry_id": str(entry.uuid),
        "kind": entry.kind,
        "delta": entry.delta,
        "balance_after": entry.balance_after,
        "source_type": entry.source_type,
        "source_id": entry.source_id,
        "description": entry.description,
        "created_at": entry.created_at.isoformat(),
        "expires_at": entry.expires_at.isoformat() if entry.expires_at else None,
    }


class LoyaltyService:
    """
    Rewardman public API.

    Uses @classmethod for extensibility. Only earns create accounts;
    reads and redemptions treat a never-seen account as empty.
    """

    # ======================================================================
    # CORE API
    # ======================================================================

    @classmethod
    def get_summary(cls, account_code: str, now: datetime | None = None) -> LoyaltySummary:
        """
        Balance, lifetime totals, tier and progress for an account.

        A never-seen account reports a zero balance in the lowest tier.
        """
        account = ledger.get_account(account_code)
        totals = projection.project(account)
        standing = get_tier_table().classify(totals.balance)
        soon = projection.expiring_soon(
            account,
            now or timezone.now(),
            rewardman_settings.EXPIRING_SOON_DAYS,
        )
        return LoyaltySummary(
            account_code=account_code,
            balance=totals.balance,
            lifetime_earned=totals.lifetime_earned,
            lifetime_redeemed=totals.lifetime_redeemed,
            lifetime_expired=totals.lifetime_expired,
            tier=standing.tier,
            next_tier=standing.next_tier,
            points_to_next=standing.points_to_next,
            progress_percent=standing.progress_percent,
            expiring_soon=soon,
        )

    @classmethod
    def get_history(
        cls,
        account_code: str,
        cursor: str | None = None,
        page_size: int | None = None,
    ) -> HistoryPage:
        """
        Ledger entries newest first, paginated by cursor.

        Raises:
            InvalidCursor: If cursor is malformed
        """
        page = ledger.list_entries(account_code, cursor, page_size, newest_first=True)
        return HistoryPage(entries=page.entries, next_cursor=page.next_cursor)

    @classmethod
    def list_redeemable_rewards(cls, account_code: str) -> list[RedeemableReward]:
        """Available rewards with an affordable flag."""
        return redemption.list_redeemable_rewards(account_code)

    @classmethod
    def redeem(
        cls,
        account_code: str,
        reward_id: str,
        idempotency_key: str = "",
        created_by: str = "",
    ) -> RedemptionResult:
        """
        Redeem a reward.

        Raises:
            RewardUnavailable, InsufficientBalance, ConcurrentModification
        """
        return redemption.redeem(
            account_code,
            reward_id,
            idempotency_key,
            created_by=created_by,
        )

    # ======================================================================
    # PRODUCER API
    # ======================================================================

    @classmethod
    def emit_earn_event(
        cls,
        account_code: str,
        source_type: str,
        source_id: str,
        points: int | None = None,
        idempotency_key: str = "",
        **kwargs,
    ) -> tuple[LedgerEntry, bool]:
        """Record an earn event; duplicates return (original, False)."""
        return earning.emit_earn_event(
            account_code, source_type, source_id, points, idempotency_key, **kwargs
        )

    @classmethod
    def earn_for_booking(
        cls,
        account_code: str,
        booking_id: str,
        amount,
        idempotency_key: str = "",
    ) -> tuple[LedgerEntry | None, bool]:
        """Award tier-multiplied points for a completed booking."""
        return earning.earn_for_booking(account_code, booking_id, amount, idempotency_key)

    # ======================================================================
    # CONVENIENCE API
    # ======================================================================

    @classmethod
    def get_balance(cls, account_code: str) -> int:
        """Current balance. Returns 0 for unknown accounts."""
        return projection.project(ledger.get_account(account_code)).balance

    @classmethod
    def tiers(cls) -> list[Tier]:
        """Configured tiers, lowest first."""
        return list(get_tier_table())

    @classmethod
    def adjust(cls, account_code: str, delta: int, reason: str, created_by: str = "") -> LedgerEntry:
        """Manual staff correction."""
        return earning.adjust(account_code, delta, reason, created_by)
