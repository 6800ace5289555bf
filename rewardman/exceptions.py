"""Rewardman exceptions."""


class BaseError(Exception):
    """
    Structured exception with a stable code and free-form data.

    Usage:
        try:
            LoyaltyService.redeem("CUST-001", "discount-100")
        except LoyaltyError as e:
            if e.code == "INSUFFICIENT_BALANCE":
                show_message(e.message)
    """

    _default_messages: dict[str, str] = {}

    def __init__(self, code: str, message: str | None = None, **data):
        self.code = code
        self.message = message or self._default_messages.get(code, code)
        self.data = data
        super().__init__(f"[{code}] {self.message}")

    def as_dict(self) -> dict:
        return {"code": self.code, "message": self.message, "data": self.data}


class LoyaltyError(BaseError):
    """Error raised by loyalty ledger operations."""

    default_code = "LOYALTY_ERROR"

    _default_messages = {
        "LOYALTY_ERROR": "Loyalty operation failed",
        "DUPLICATE_ENTRY": "Entry already recorded for this source",
        "INSUFFICIENT_BALANCE": "Insufficient points for redemption",
        "REWARD_UNAVAILABLE": "Reward is not available",
        "CONCURRENT_MODIFICATION": "Account was modified concurrently",
        "ACCOUNT_NOT_FOUND": "Loyalty account not found",
        "INVALID_CURSOR": "Invalid history cursor",
        "INVALID_POINTS": "Points must be positive",
        "INVALID_EARN_EVENT": "Invalid earn event",
        "INVALID_AMOUNT": "Booking amount must be positive",
        "INVALID_ADJUSTMENT": "Invalid adjustment",
    }

    def __init__(self, code: str | None = None, message: str | None = None, **data):
        super().__init__(code or self.default_code, message, **data)


class DuplicateEntry(LoyaltyError):
    """An entry for the same (account, kind, source) already exists."""

    default_code = "DUPLICATE_ENTRY"

    def __init__(self, existing=None, message: str | None = None, **data):
        self.existing = existing
        super().__init__(message=message, **data)


class InsufficientBalance(LoyaltyError):
    default_code = "INSUFFICIENT_BALANCE"

    def __init__(self, message: str | None = None, **data):
        super().__init__(message=message, **data)


class RewardUnavailable(LoyaltyError):
    default_code = "REWARD_UNAVAILABLE"

    def __init__(self, message: str | None = None, **data):
        super().__init__(message=message, **data)


class ConcurrentModification(LoyaltyError):
    default_code = "CONCURRENT_MODIFICATION"

    def __init__(self, message: str | None = None, **data):
        super().__init__(message=message, **data)


class AccountNotFound(LoyaltyError):
    default_code = "ACCOUNT_NOT_FOUND"

    def __init__(self, message: str | None = None, **data):
        super().__init__(message=message, **data)


class InvalidCursor(LoyaltyError):
    default_code = "INVALID_CURSOR"

    def __init__(self, message: str | None = None, **data):
        super().__init__(message=message, **data)
