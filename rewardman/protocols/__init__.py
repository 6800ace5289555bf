"""Rewardman protocols."""

from rewardman.protocols.catalog import (
    RewardCatalogBackend,
    RewardCatalogItem,
)

__all__ = [
    "RewardCatalogBackend",
    "RewardCatalogItem",
]
