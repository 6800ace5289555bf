"""Reward catalog backed by REWARDMAN["REWARDS"]."""

from __future__ import annotations

from django.core.exceptions import ImproperlyConfigured
from django.utils import timezone
from django.utils.dateparse import parse_datetime

from rewardman.conf import rewardman_settings
from rewardman.protocols.catalog import RewardCatalogItem


class SettingsRewardCatalog:
    """Adapter: static reward list from settings implements RewardCatalogBackend."""

    def __init__(self, rewards: list[dict] | None = None, version: str | None = None):
        self._version = version if version is not None else rewardman_settings.REWARD_CATALOG_VERSION
        config = rewards if rewards is not None else rewardman_settings.REWARDS
        items = [self._to_item(r) for r in config]
        self._items = {item.reward_id: item for item in items}

    @property
    def version(self) -> str:
        return self._version

    def list_rewards(self) -> list[RewardCatalogItem]:
        return sorted(self._items.values(), key=lambda r: (r.cost, r.reward_id))

    def get_reward(self, reward_id: str) -> RewardCatalogItem | None:
        return self._items.get(reward_id)

    def _to_item(self, data: dict) -> RewardCatalogItem:
        try:
            cost = int(data["cost"])
            if cost <= 0:
                raise ValueError("cost must be positive")
            return RewardCatalogItem(
                reward_id=str(data["id"]),
                name=data.get("name", str(data["id"])),
                kind=data["kind"],
                cost=cost,
                payload=dict(data.get("payload", {})),
                description=data.get("description", ""),
                available_from=_parse(data.get("available_from")),
                available_until=_parse(data.get("available_until")),
                stock=int(data["stock"]) if data.get("stock") is not None else None,
                catalog_version=self._version,
            )
        except (KeyError, TypeError, ValueError) as exc:
            raise ImproperlyConfigured(f"Invalid REWARDMAN['REWARDS'] entry {data!r}: {exc}") from exc


def _parse(value):
    if value is None:
        return None
    parsed = parse_datetime(value) if isinstance(value, str) else value
    if parsed is None:
        raise ValueError(f"invalid datetime {value!r}")
    if timezone.is_naive(parsed):
        parsed = timezone.make_aware(parsed)
    return parsed
