"""
Rewardman configuration.

Usage in settings.py:
    REWARDMAN = {
        "POINTS_VALIDITY_DAYS": 365,
        "EARN_RULES": {"referral": 200, "review": 20, "share": 10},
        "REWARD_CATALOG_BACKEND": "rewardman.adapters.settings_catalog.SettingsRewardCatalog",
    }
"""

from dataclasses import dataclass, field
from typing import Any

from django.conf import settings


def _default_tiers() -> list[dict]:
    return [
        {
            "code": "bronze",
            "name": "Bronze",
            "min_points": 0,
            "max_points": 1000,
            "multiplier": "1",
            "benefits": ["1 point per ₹100 spent", "5% off on select services"],
        },
        {
            "code": "silver",
            "name": "Silver",
            "min_points": 1000,
            "max_points": 5000,
            "multiplier": "1.5",
            "benefits": [
                "1.5 points per ₹100 spent",
                "10% off on all services",
                "Priority booking",
            ],
        },
        {
            "code": "gold",
            "name": "Gold",
            "min_points": 5000,
            "max_points": 15000,
            "multiplier": "2",
            "benefits": [
                "2 points per ₹100 spent",
                "15% off on all services",
                "Priority booking",
                "Free rescheduling",
            ],
        },
        {
            "code": "platinum",
            "name": "Platinum",
            "min_points": 15000,
            "max_points": None,
            "multiplier": "3",
            "benefits": [
                "3 points per ₹100 spent",
                "20% off on all services",
                "Priority booking",
                "Free rescheduling",
                "Exclusive member events",
                "Dedicated support",
            ],
        },
    ]


def _default_rewards() -> list[dict]:
    return [
        {"id": "discount-100", "name": "₹100 Off", "kind": "discount", "cost": 500,
         "payload": {"amount": "100.00"}},
        {"id": "discount-250", "name": "₹250 Off", "kind": "discount", "cost": 1000,
         "payload": {"amount": "250.00"}},
        {"id": "discount-500", "name": "₹500 Off", "kind": "discount", "cost": 1800,
         "payload": {"amount": "500.00"}},
        {"id": "free-service", "name": "Free Service", "kind": "service", "cost": 3000,
         "payload": {}},
        {"id": "pro-month", "name": "1 Month Pro", "kind": "subscription", "cost": 5000,
         "payload": {"months": 1}},
    ]


def _default_earn_rules() -> dict[str, int]:
    return {"referral": 200, "review": 20, "share": 10}


@dataclass
class RewardmanSettings:
    """Rewardman configuration settings."""

    # Tier table (ordered, contiguous, last tier unbounded)
    TIERS: list[dict] = field(default_factory=_default_tiers)

    # Reward catalog
    REWARD_CATALOG_BACKEND: str = "rewardman.adapters.settings_catalog.SettingsRewardCatalog"
    REWARDS: list[dict] = field(default_factory=_default_rewards)
    REWARD_CATALOG_VERSION: str = "1"

    # Earning
    EARN_RULES: dict[str, int] = field(default_factory=_default_earn_rules)
    POINTS_PER_CURRENCY_UNIT: int = 1
    CURRENCY_UNIT: int = 100

    # Expiration (None disables expiry)
    POINTS_VALIDITY_DAYS: int | None = 365
    EXPIRING_SOON_DAYS: int = 30

    # Optimistic concurrency
    CONFLICT_MAX_RETRIES: int = 5
    CONFLICT_BACKOFF_SECONDS: float = 0.005

    # History pagination
    HISTORY_PAGE_SIZE: int = 20
    MAX_PAGE_SIZE: int = 100


def get_rewardman_settings() -> RewardmanSettings:
    """Load settings from Django settings."""
    user_settings: dict[str, Any] = getattr(settings, "REWARDMAN", {})
    return RewardmanSettings(**user_settings)


class _LazySettings:
    """Lazy proxy that re-reads settings on every attribute access."""

    def __getattr__(self, name):
        return getattr(get_rewardman_settings(), name)


rewardman_settings = _LazySettings()
