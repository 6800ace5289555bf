"""Reward catalog protocol: read model consumed by the redemption engine."""

from dataclasses import dataclass, field
from datetime import datetime
from typing import Protocol, runtime_checkable


@dataclass(frozen=True)
class RewardCatalogItem:
    """
    Redeemable reward.

    Tagged variant: the engine only inspects kind and cost; payload is
    kind-specific data for the fulfilling system (discount amount,
    service code, subscription months).
    """

    reward_id: str
    name: str
    kind: str  # "discount" | "service" | "subscription" | ...
    cost: int
    payload: dict = field(default_factory=dict)
    description: str = ""
    available_from: datetime | None = None
    available_until: datetime | None = None
    stock: int | None = None  # None = unlimited
    catalog_version: str = ""

    def unavailable_reason(self, at: datetime) -> str | None:
        """Why the reward cannot be redeemed at `at` (None if it can)."""
        if self.available_from and at < self.available_from:
            return "not_started"
        if self.available_until and at >= self.available_until:
            return "expired"
        if self.stock is not None and self.stock <= 0:
            return "out_of_stock"
        return None

    def is_available(self, at: datetime) -> bool:
        return self.unavailable_reason(at) is None

    def as_dict(self) -> dict:
        return {
            "reward_id": self.reward_id,
            "name": self.name,
            "kind": self.kind,
            "cost": self.cost,
            "payload": self.payload,
            "description": self.description,
            "available_from": self.available_from.isoformat() if self.available_from else None,
            "available_until": self.available_until.isoformat() if self.available_until else None,
            "stock": self.stock,
        }


@runtime_checkable
class RewardCatalogBackend(Protocol):
    """
    Protocol for the reward catalog.

    Read-only from the ledger's perspective. Stock bookkeeping and
    fulfilment belong to the catalog owner.

    Configuration in settings.py:
        REWARDMAN = {
            "REWARD_CATALOG_BACKEND": "rewardman.adapters.settings_catalog.SettingsRewardCatalog",
        }
    """

    @property
    def version(self) -> str:
        """Catalog version identifier."""
        ...

    def list_rewards(self) -> list[RewardCatalogItem]:
        """Return all rewards, cheapest first."""
        ...

    def get_reward(self, reward_id: str) -> RewardCatalogItem | None:
        """Return reward by ID, or None if unknown."""
        ...
