"""Earning: idempotent earn events from upstream producers, and adjustments.

Producers (booking completion, referral confirmation, review submission,
share confirmation) call emit_earn_event(). Retried calls for the same
(account, source_type, source_id) are no-ops returning the original entry.
"""

import logging
import uuid
from datetime import datetime, timedelta
from decimal import ROUND_FLOOR, Decimal, InvalidOperation

from django.utils import timezone

from rewardman.conf import rewardman_settings
from rewardman.exceptions import DuplicateEntry, LoyaltyError
from rewardman.gates import GateError, Gates
from rewardman.models import EntryKind, LedgerEntry
from rewardman.services import ledger, projection
from rewardman.services.tiers import get_tier_table
from rewardman.signals import points_adjusted, points_earned

logger = logging.getLogger(__name__)

BOOKING = "booking"
ADJUSTMENT_SOURCE = "adjustment"


def emit_earn_event(
    account_code: str,
    source_type: str,
    source_id: str,
    points: int | None = None,
    idempotency_key: str = "",
    *,
    description: str = "",
    expiry_days: int | None = None,
    metadata: dict | None = None,
    now: datetime | None = None,
    created_by: str = "",
) -> tuple[LedgerEntry, bool]:
    """
    Record points earned from an upstream event.

    Args:
        account_code: Member code (account created on first earn)
        source_type: booking, referral, review, share, ...
        source_id: ID of the event within its source
        points: Points to award; defaults to EARN_RULES[source_type]
        idempotency_key: Producer's retry key (stored for audit)
        expiry_days: Override POINTS_VALIDITY_DAYS for this event

    Returns:
        Tuple of (LedgerEntry, created: bool). created is False when the
        source was already recorded; the original entry is returned.

    Raises:
        LoyaltyError: INVALID_POINTS / INVALID_EARN_EVENT
        AccountNotFound: If the account was deactivated
    """
    if points is None:
        points = rewardman_settings.EARN_RULES.get(source_type)
        if points is None:
            raise LoyaltyError(
                "INVALID_POINTS",
                message=f"No default points for source type '{source_type}'",
                source_type=source_type,
            )

    try:
        Gates.earn_event_validity(source_type, source_id, points)
    except GateError as exc:
        raise LoyaltyError("INVALID_EARN_EVENT", message=exc.message, **exc.details) from exc

    now = now or timezone.now()
    account = ledger.get_or_create_account(account_code)

    try:
        entry = ledger.append(
            account,
            EntryKind.EARN,
            points,
            source_type,
            str(source_id),
            idempotency_key=idempotency_key,
            description=description,
            metadata=metadata,
            expires_at=_expires_at(now, expiry_days),
            created_at=now,
            created_by=created_by,
        )
    except DuplicateEntry as exc:
        original = exc.existing
        if original.delta != points:
            logger.warning(
                "Duplicate earn %s for %s with %d points (recorded %d); keeping original",
                original.source_ref,
                account_code,
                points,
                original.delta,
            )
        else:
            logger.debug("Duplicate earn %s for %s suppressed", original.source_ref, account_code)
        return original, False

    ledger.announce(points_earned, account, entry)
    return entry, True


def points_for_booking(account_code: str, amount) -> int:
    """
    Points a booking of `amount` earns at the account's current tier.

    POINTS_PER_CURRENCY_UNIT per CURRENCY_UNIT spent, times the tier
    multiplier, floored.
    """
    try:
        amount = Decimal(str(amount))
    except InvalidOperation as exc:
        raise LoyaltyError("INVALID_AMOUNT", amount=str(amount)) from exc
    if not amount.is_finite() or amount <= 0:
        raise LoyaltyError("INVALID_AMOUNT", amount=str(amount))

    balance = projection.project(ledger.get_account(account_code)).balance
    tier = get_tier_table().tier_for(balance)
    rate = Decimal(rewardman_settings.POINTS_PER_CURRENCY_UNIT) / Decimal(
        rewardman_settings.CURRENCY_UNIT
    )
    return int((amount * rate * tier.multiplier).to_integral_value(rounding=ROUND_FLOOR))


def earn_for_booking(
    account_code: str,
    booking_id: str,
    amount,
    idempotency_key: str = "",
    **kwargs,
) -> tuple[LedgerEntry | None, bool]:
    """
    Award points for a completed booking.

    Returns:
        Tuple of (LedgerEntry or None, created). None when the amount is
        too small to earn a single point and the booking was never recorded.
    """
    existing = ledger.get_entry_by_source(account_code, BOOKING, str(booking_id))
    if existing:
        return existing, False

    points = points_for_booking(account_code, amount)
    if points <= 0:
        logger.debug("Booking %s for %s earns no points", booking_id, account_code)
        return None, False

    metadata = {"amount": str(amount), **kwargs.pop("metadata", {})}
    return emit_earn_event(
        account_code,
        BOOKING,
        str(booking_id),
        points,
        idempotency_key,
        metadata=metadata,
        **kwargs,
    )


def adjust(
    account_code: str,
    delta: int,
    reason: str,
    created_by: str = "",
    now: datetime | None = None,
) -> LedgerEntry:
    """
    Manual correction by staff. Never deduplicated.

    Raises:
        LoyaltyError: INVALID_ADJUSTMENT
        AccountNotFound: If the account was never seen
        InsufficientBalance: If a negative adjustment exceeds the balance
    """
    try:
        Gates.adjustment_validity(delta, reason)
    except GateError as exc:
        raise LoyaltyError("INVALID_ADJUSTMENT", message=exc.message, **exc.details) from exc

    account = ledger.require_account(account_code)
    entry = ledger.append(
        account,
        EntryKind.ADJUSTMENT,
        delta,
        ADJUSTMENT_SOURCE,
        uuid.uuid4().hex,
        description=reason[:200],
        created_at=now,
        created_by=created_by,
    )
    ledger.announce(points_adjusted, account, entry)
    return entry


def _expires_at(now: datetime, expiry_days: int | None) -> datetime | None:
    days = expiry_days if expiry_days is not None else rewardman_settings.POINTS_VALIDITY_DAYS
    if days is None:
        return None
    return now + timedelta(days=days)
