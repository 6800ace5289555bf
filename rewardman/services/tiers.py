"""Tier classification: pure mapping from balance to membership tier.

Tiers are static configuration (REWARDMAN["TIERS"]) and partition the
non-negative integers: each tier covers [min_points, max_points), the
last one is unbounded. A balance equal to a tier's lower bound belongs
to that tier, never the one below.
"""

from dataclasses import dataclass, field
from decimal import Decimal

from django.core.exceptions import ImproperlyConfigured

from rewardman.conf import rewardman_settings
from rewardman.gates import GateError, Gates


@dataclass(frozen=True)
class Tier:
    """One membership band."""

    code: str
    name: str
    min_points: int
    max_points: int | None  # exclusive; None = unbounded
    multiplier: Decimal = Decimal("1")
    benefits: tuple[str, ...] = field(default_factory=tuple)

    def contains(self, balance: int) -> bool:
        if balance < self.min_points:
            return False
        return self.max_points is None or balance < self.max_points

    def as_dict(self) -> dict:
        return {
            "code": self.code,
            "name": self.name,
            "min_points": self.min_points,
            "max_points": self.max_points,
            "multiplier": str(self.multiplier),
            "benefits": list(self.benefits),
        }


@dataclass(frozen=True)
class TierStanding:
    """Result of classifying a balance."""

    tier: Tier
    next_tier: Tier | None
    points_to_next: int
    progress_percent: int

    def as_dict(self) -> dict:
        return {
            "tier": self.tier.as_dict(),
            "next_tier": self.next_tier.as_dict() if self.next_tier else None,
            "points_to_next": self.points_to_next,
            "progress_percent": self.progress_percent,
        }


class TierTable:
    """Ordered, validated sequence of tiers."""

    def __init__(self, tiers):
        self.tiers: tuple[Tier, ...] = tuple(sorted(tiers, key=lambda t: t.min_points))
        Gates.tier_table_integrity(self.tiers)

    @classmethod
    def from_config(cls, config: list[dict]) -> "TierTable":
        """
        Build a table from REWARDMAN["TIERS"]-style dicts.

        Raises:
            ImproperlyConfigured: If an entry is malformed or the tiers
                do not partition the non-negative integers.
        """
        try:
            tiers = [
                Tier(
                    code=item["code"],
                    name=item.get("name", item["code"].title()),
                    min_points=int(item["min_points"]),
                    max_points=(
                        int(item["max_points"]) if item.get("max_points") is not None else None
                    ),
                    multiplier=Decimal(str(item.get("multiplier", "1"))),
                    benefits=tuple(item.get("benefits", ())),
                )
                for item in config
            ]
            return cls(tiers)
        except (KeyError, TypeError, ValueError, ArithmeticError) as exc:
            raise ImproperlyConfigured(f"Invalid REWARDMAN['TIERS'] entry: {exc}") from exc
        except GateError as exc:
            raise ImproperlyConfigured(f"Invalid REWARDMAN['TIERS']: {exc.message}") from exc

    def __iter__(self):
        return iter(self.tiers)

    def __len__(self):
        return len(self.tiers)

    def rank(self, tier: Tier) -> int:
        """Position of tier in ascending order (0 = lowest)."""
        return self.tiers.index(tier)

    def get(self, code: str) -> Tier | None:
        for tier in self.tiers:
            if tier.code == code:
                return tier
        return None

    def tier_for(self, balance: int) -> Tier:
        # Negative balances cannot occur; clamp so the lowest tier applies.
        balance = max(0, balance)
        for tier in self.tiers:
            if tier.contains(balance):
                return tier
        return self.tiers[-1]

    def classify(self, balance: int) -> TierStanding:
        """
        Classify balance into a tier and progress toward the next one.

        progress_percent = 100 * (balance - tier.min) / (next.min - tier.min),
        floored and clamped to [0, 100]; 100 on the top tier.
        """
        balance = max(0, balance)
        tier = self.tier_for(balance)
        index = self.rank(tier)
        if index + 1 >= len(self.tiers):
            return TierStanding(tier=tier, next_tier=None, points_to_next=0, progress_percent=100)

        next_tier = self.tiers[index + 1]
        span = next_tier.min_points - tier.min_points
        progress = int(100 * (balance - tier.min_points) / span)
        return TierStanding(
            tier=tier,
            next_tier=next_tier,
            points_to_next=max(0, next_tier.min_points - balance),
            progress_percent=min(100, max(0, progress)),
        )


def get_tier_table() -> TierTable:
    """Tier table from current settings."""
    return TierTable.from_config(rewardman_settings.TIERS)


def classify(balance: int, table: TierTable | None = None) -> TierStanding:
    """Classify balance against table (default: configured tiers)."""
    return (table or get_tier_table()).classify(balance)
