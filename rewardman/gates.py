"""
Rewardman Gates - Validation rules.

T1: TierTableIntegrity - Tiers partition the non-negative integers
E1: EarnEventValidity - Earn event has a source reference and positive points
A1: AdjustmentValidity - Manual adjustment is non-zero and justified
"""

from dataclasses import dataclass

# Column widths of LedgerEntry.source_type / source_id
SOURCE_TYPE_MAX_LENGTH = 50
SOURCE_ID_MAX_LENGTH = 100


class GateError(Exception):
    """Gate validation error."""

    def __init__(self, gate_name: str, message: str, details: dict | None = None):
        self.gate_name = gate_name
        self.message = message
        self.details = details or {}
        super().__init__(f"[{gate_name}] {message}")


@dataclass
class GateResult:
    """Result of a gate check."""

    passed: bool
    gate_name: str
    message: str = ""


# =============================================================================
# Gates
# =============================================================================


class Gates:
    """Rewardman validation gates."""

    # =========================================================================
    # T1: Tier Table Integrity
    # =========================================================================

    @classmethod
    def tier_table_integrity(cls, tiers) -> GateResult:
        """
        T1: Tiers are contiguous [min, max) bands starting at 0.

        Args:
            tiers: Tier objects sorted by min_points

        Raises:
            GateError: On gaps, overlaps, a bounded top tier, an unbounded
                inner tier, or a non-positive multiplier
        """
        if not tiers:
            raise GateError("T1_TierTableIntegrity", "Tier table is empty.")

        if tiers[0].min_points != 0:
            raise GateError(
                "T1_TierTableIntegrity",
                "Lowest tier must start at 0.",
                {"tier": tiers[0].code, "min_points": tiers[0].min_points},
            )

        codes = [t.code for t in tiers]
        if len(set(codes)) != len(codes):
            raise GateError("T1_TierTableIntegrity", "Duplicate tier codes.", {"codes": codes})

        for current, following in zip(tiers, tiers[1:]):
            if current.max_points != following.min_points:
                raise GateError(
                    "T1_TierTableIntegrity",
                    f"Tier '{current.code}' must end where '{following.code}' starts.",
                    {"max_points": current.max_points, "next_min_points": following.min_points},
                )

        for tier in tiers:
            if tier.max_points is not None and tier.max_points <= tier.min_points:
                raise GateError(
                    "T1_TierTableIntegrity",
                    f"Tier '{tier.code}' is empty.",
                    {"min_points": tier.min_points, "max_points": tier.max_points},
                )
            if tier.multiplier <= 0:
                raise GateError(
                    "T1_TierTableIntegrity",
                    f"Tier '{tier.code}' multiplier must be positive.",
                )

        if tiers[-1].max_points is not None:
            raise GateError(
                "T1_TierTableIntegrity",
                "Highest tier must be unbounded.",
                {"tier": tiers[-1].code},
            )

        return GateResult(True, "T1_TierTableIntegrity")

    @classmethod
    def check_tier_table_integrity(cls, tiers) -> bool:
        """Check without raising (returns bool)."""
        try:
            cls.tier_table_integrity(tiers)
            return True
        except GateError:
            return False

    # =========================================================================
    # E1: Earn Event Validity
    # =========================================================================

    @classmethod
    def earn_event_validity(cls, source_type: str, source_id: str, points) -> GateResult:
        """
        E1: Earn events carry a source reference and positive integer points.

        Raises:
            GateError: If source is missing or too long, or points are not
                a positive int
        """
        if not source_type or not source_id:
            raise GateError(
                "E1_EarnEventValidity",
                "Source type and source ID are required.",
                {"source_type": source_type, "source_id": source_id},
            )

        if len(str(source_type)) > SOURCE_TYPE_MAX_LENGTH or len(str(source_id)) > SOURCE_ID_MAX_LENGTH:
            raise GateError(
                "E1_EarnEventValidity",
                f"Source type is limited to {SOURCE_TYPE_MAX_LENGTH} characters "
                f"and source ID to {SOURCE_ID_MAX_LENGTH}.",
                {"source_type_length": len(str(source_type)), "source_id_length": len(str(source_id))},
            )

        if isinstance(points, bool) or not isinstance(points, int) or points <= 0:
            raise GateError(
                "E1_EarnEventValidity",
                "Points must be a positive integer.",
                {"points": points},
            )

        return GateResult(True, "E1_EarnEventValidity")

    @classmethod
    def check_earn_event_validity(cls, *args, **kwargs) -> bool:
        """Check without raising (returns bool)."""
        try:
            cls.earn_event_validity(*args, **kwargs)
            return True
        except GateError:
            return False

    # =========================================================================
    # A1: Adjustment Validity
    # =========================================================================

    @classmethod
    def adjustment_validity(cls, delta, reason: str) -> GateResult:
        """
        A1: Adjustments are non-zero integers with a reason.

        Raises:
            GateError: If delta is zero/not an int or reason is blank
        """
        if isinstance(delta, bool) or not isinstance(delta, int) or delta == 0:
            raise GateError(
                "A1_AdjustmentValidity",
                "Adjustment must be a non-zero integer.",
                {"delta": delta},
            )

        if not reason or not reason.strip():
            raise GateError("A1_AdjustmentValidity", "Adjustment requires a reason.")

        return GateResult(True, "A1_AdjustmentValidity")
