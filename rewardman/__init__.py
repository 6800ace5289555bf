"""
Django Rewardman - Loyalty points, tiers and rewards.

Usage:
    from rewardman import LoyaltyService, LoyaltyError

    LoyaltyService.emit_earn_event("CUST-001", "booking", "B1", 150)
    summary = LoyaltyService.get_summary("CUST-001")
    result = LoyaltyService.redeem("CUST-001", "discount-100")
"""


def __getattr__(name):
    if name == "LoyaltyService":
        from rewardman.service import LoyaltyService

        return LoyaltyService
    if name == "LoyaltyError":
        from rewardman.exceptions import LoyaltyError

        return LoyaltyError
    if name == "Gates":
        from rewardman.gates import Gates

        return Gates
    if name == "GateError":
        from rewardman.gates import GateError

        return GateError
    raise AttributeError(f"module {__name__!r} has no attribute {name!r}")


__all__ = ["LoyaltyService", "LoyaltyError", "Gates", "GateError"]
__version__ = "0.1.0"
