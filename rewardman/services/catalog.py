"""Reward catalog access: backend loading and availability checks."""

from datetime import datetime

from django.core.exceptions import ImproperlyConfigured
from django.utils import timezone
from django.utils.module_loading import import_string

from rewardman.conf import rewardman_settings
from rewardman.exceptions import RewardUnavailable
from rewardman.protocols.catalog import RewardCatalogBackend, RewardCatalogItem


def get_catalog_backend() -> RewardCatalogBackend:
    """Instantiate the configured RewardCatalogBackend."""
    backend_path = rewardman_settings.REWARD_CATALOG_BACKEND
    try:
        backend_class = import_string(backend_path)
    except ImportError as exc:
        raise ImproperlyConfigured(
            f"Cannot import REWARD_CATALOG_BACKEND {backend_path!r}: {exc}"
        ) from exc
    return backend_class()


def list_rewards(catalog: RewardCatalogBackend | None = None) -> list[RewardCatalogItem]:
    """All catalog rewards, available or not."""
    return list((catalog or get_catalog_backend()).list_rewards())


def get_available_reward(
    reward_id: str,
    catalog: RewardCatalogBackend | None = None,
    at: datetime | None = None,
) -> RewardCatalogItem:
    """
    Fetch a reward that can be redeemed now.

    Raises:
        RewardUnavailable: With reason not_found, not_started, expired or
            out_of_stock
    """
    catalog = catalog or get_catalog_backend()
    reward = catalog.get_reward(reward_id)
    if reward is None:
        raise RewardUnavailable(
            message=f"Reward '{reward_id}' not found",
            reward_id=reward_id,
            reason="not_found",
        )

    reason = reward.unavailable_reason(at or timezone.now())
    if reason:
        raise RewardUnavailable(reward_id=reward_id, reason=reason)
    return reward
