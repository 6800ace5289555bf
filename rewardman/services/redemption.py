"""Redemption engine: converts a catalog reward into a redeem entry.

The read-check-append sequence is linearizable per account: the account
version is read before the balance is projected, and the redeem entry is
appended with expected_version. If anything was appended in between, the
append fails with ConcurrentModification and the whole sequence reruns
against fresh state (bounded, with exponential backoff).
"""

import logging
import uuid
from dataclasses import dataclass
from datetime import datetime

from django.utils import timezone

from rewardman.exceptions import AccountNotFound, DuplicateEntry, InsufficientBalance
from rewardman.models import EntryKind, LedgerEntry, LoyaltyAccount
from rewardman.protocols.catalog import RewardCatalogBackend, RewardCatalogItem
from rewardman.services import catalog as catalog_service
from rewardman.services import ledger, projection
from rewardman.signals import points_redeemed

logger = logging.getLogger(__name__)

REDEMPTION = "redemption"


@dataclass(frozen=True)
class RedemptionResult:
    """Outcome of a successful redemption."""

    entry: LedgerEntry
    reward_id: str
    cost: int
    balance: int
    replayed: bool = False

    @property
    def entry_id(self) -> str:
        return str(self.entry.uuid)

    def as_dict(self) -> dict:
        return {
            "entry_id": self.entry_id,
            "reward_id": self.reward_id,
            "cost": self.cost,
            "balance": self.balance,
            "replayed": self.replayed,
        }


@dataclass(frozen=True)
class RedeemableReward:
    reward: RewardCatalogItem
    affordable: bool

    def as_dict(self) -> dict:
        return {**self.reward.as_dict(), "affordable": self.affordable}


def redeem(
    account_code: str,
    reward_id: str,
    idempotency_key: str = "",
    *,
    catalog: RewardCatalogBackend | None = None,
    now: datetime | None = None,
    created_by: str = "",
) -> RedemptionResult:
    """
    Redeem a catalog reward against the account balance.

    A repeated call with the same non-empty idempotency_key returns the
    original result (replayed=True) without spending again.

    Raises:
        RewardUnavailable: Reward missing, not started, expired or out of stock
        InsufficientBalance: Balance below reward cost (nothing appended)
        AccountNotFound: The account was deactivated
        ConcurrentModification: Retries exhausted under contention
    """
    now = now or timezone.now()
    account = ledger.get_account(account_code)

    if account is not None and idempotency_key:
        previous = ledger.find_redemption(account, idempotency_key)
        if previous:
            return _replay(account, previous)

    reward = catalog_service.get_available_reward(reward_id, catalog, at=now)

    if account is None:
        if ledger.is_deactivated(account_code):
            raise AccountNotFound(account_code=account_code, reason="inactive")
        # A never-seen account has nothing to spend.
        raise InsufficientBalance(
            account_code=account_code,
            reward_id=reward.reward_id,
            available=0,
            requested=reward.cost,
        )

    source_id = uuid.uuid4().hex

    def attempt() -> LedgerEntry:
        version = LoyaltyAccount.objects.values_list("version", flat=True).get(pk=account.pk)
        balance = projection.project(account).balance
        if balance < reward.cost:
            raise InsufficientBalance(
                account_code=account_code,
                reward_id=reward.reward_id,
                available=balance,
                requested=reward.cost,
            )
        return ledger.append(
            account,
            EntryKind.REDEEM,
            -reward.cost,
            REDEMPTION,
            source_id,
            expected_version=version,
            idempotency_key=idempotency_key,
            description=f"Redeemed {reward.name}"[:200],
            metadata={
                "reward_id": reward.reward_id,
                "reward_kind": reward.kind,
                "catalog_version": reward.catalog_version,
            },
            created_at=now,
            created_by=created_by,
        )

    try:
        entry = ledger.run_optimistic(attempt)
    except DuplicateEntry as exc:
        # A concurrent call with the same idempotency key got there first.
        return _replay(account, exc.existing)

    ledger.announce(points_redeemed, account, entry, reward=reward)
    return RedemptionResult(
        entry=entry,
        reward_id=reward.reward_id,
        cost=reward.cost,
        balance=entry.balance_after,
    )


def list_redeemable_rewards(
    account_code: str,
    catalog: RewardCatalogBackend | None = None,
    now: datetime | None = None,
) -> list[RedeemableReward]:
    """Currently available rewards, flagged with whether the balance covers them."""
    now = now or timezone.now()
    balance = projection.project(ledger.get_account(account_code)).balance
    return [
        RedeemableReward(reward=reward, affordable=balance >= reward.cost)
        for reward in catalog_service.list_rewards(catalog)
        if reward.is_available(now)
    ]


def _replay(account: LoyaltyAccount, entry: LedgerEntry) -> RedemptionResult:
    logger.debug("Redemption %s for %s replayed", entry.idempotency_key, account.code)
    return RedemptionResult(
        entry=entry,
        reward_id=entry.metadata.get("reward_id", ""),
        cost=-entry.delta,
        balance=projection.project(account).balance,
        replayed=True,
    )
