"""Ledger store: append-only, per-account log of point entries.

append() is the only mutation primitive. Every append bumps the
account's version in the same transaction as the insert, so appends to
one account are serialized and a caller that read version N can
compare-and-set against it (expected_version).
"""

import logging
import time
from dataclasses import dataclass
from datetime import datetime

from django.db import IntegrityError, transaction
from django.db.models import F
from django.utils.http import urlsafe_base64_decode, urlsafe_base64_encode

from rewardman.conf import rewardman_settings
from rewardman.exceptions import (
    AccountNotFound,
    ConcurrentModification,
    DuplicateEntry,
    InsufficientBalance,
    InvalidCursor,
)
from rewardman.models import EntryKind, LedgerEntry, LoyaltyAccount
from rewardman.services import projection
from rewardman.services.tiers import get_tier_table
from rewardman.signals import tier_changed

logger = logging.getLogger(__name__)


@dataclass
class EntryPage:
    """One page of ledger entries plus the cursor for the next page."""

    entries: list[LedgerEntry]
    next_cursor: str | None = None


# ======================================================================
# Accounts
# ======================================================================


def get_account(code: str) -> LoyaltyAccount | None:
    """Get active account by code (None if never seen or deactivated)."""
    try:
        return LoyaltyAccount.objects.get(code=code, is_active=True)
    except LoyaltyAccount.DoesNotExist:
        return None


def require_account(code: str) -> LoyaltyAccount:
    """
    Get active account by code.

    Raises:
        AccountNotFound: If no active account has this code
    """
    account = get_account(code)
    if account is None:
        raise AccountNotFound(account_code=code)
    return account


def is_deactivated(code: str) -> bool:
    return LoyaltyAccount.objects.filter(code=code, is_active=False).exists()


def get_or_create_account(code: str) -> LoyaltyAccount:
    """
    Get active account, creating it on first interaction.

    Raises:
        AccountNotFound: If the account exists but was deactivated
    """
    account, created = LoyaltyAccount.objects.get_or_create(code=code)
    if created:
        logger.info("Loyalty account created: %s", code)
    elif not account.is_active:
        raise AccountNotFound(account_code=code, reason="inactive")
    return account


# ======================================================================
# Append
# ======================================================================


def append(
    account: LoyaltyAccount,
    kind: str,
    delta: int,
    source_type: str,
    source_id: str,
    *,
    expected_version: int | None = None,
    idempotency_key: str = "",
    description: str = "",
    metadata: dict | None = None,
    expires_at: datetime | None = None,
    created_at: datetime | None = None,
    created_by: str = "",
) -> LedgerEntry:
    """
    Append an entry to the account's ledger.

    Args:
        account: Target account
        kind: EntryKind value
        delta: Signed point change
        source_type: Producer of the event (booking, referral, ...)
        source_id: ID within the producer
        expected_version: If given, fail unless the account is still at
            this version (optimistic concurrency)
        idempotency_key: Caller-supplied retry key
        expires_at: Expiry of earned points (earn only)

    Returns:
        The appended LedgerEntry (account.version is refreshed)

    Raises:
        ConcurrentModification: expected_version is stale
        DuplicateEntry: (account, kind, source) already recorded for a
            non-adjustment kind; exc.existing holds the original
        InsufficientBalance: a debit would make the balance negative
    """
    with transaction.atomic():
        accounts = LoyaltyAccount.objects.filter(pk=account.pk)
        if expected_version is not None:
            accounts = accounts.filter(version=expected_version)
        if not accounts.update(version=F("version") + 1):
            raise ConcurrentModification(
                account_code=account.code,
                expected_version=expected_version,
            )

        if kind != EntryKind.ADJUSTMENT:
            existing = _find_by_source(account, kind, source_type, source_id)
            if existing:
                raise DuplicateEntry(
                    existing=existing,
                    account_code=account.code,
                    source=f"{source_type}:{source_id}",
                )

        balance_before = projection.current_balance(account.pk)
        balance_after = balance_before + delta
        if delta < 0 and balance_after < 0:
            raise InsufficientBalance(
                account_code=account.code,
                available=balance_before,
                requested=-delta,
            )

        fields = {
            "account": account,
            "kind": kind,
            "delta": delta,
            "balance_after": balance_after,
            "source_type": source_type,
            "source_id": source_id,
            "idempotency_key": idempotency_key,
            "description": description,
            "metadata": metadata or {},
            "expires_at": expires_at,
            "created_by": created_by,
        }
        if created_at is not None:
            fields["created_at"] = created_at

        try:
            with transaction.atomic():
                entry = LedgerEntry.objects.create(**fields)
        except IntegrityError:
            existing = _find_by_source(account, kind, source_type, source_id)
            if existing is None and kind == EntryKind.REDEEM and idempotency_key:
                existing = find_redemption(account, idempotency_key)
            if existing is None:
                raise
            raise DuplicateEntry(
                existing=existing,
                account_code=account.code,
                source=f"{source_type}:{source_id}",
            )

        account.version = (
            LoyaltyAccount.objects.filter(pk=account.pk).values_list("version", flat=True).get()
        )

    logger.info(
        "Ledger %s: %s %+d (%s:%s) balance=%d v%d",
        account.code,
        kind,
        delta,
        source_type,
        source_id,
        balance_after,
        account.version,
    )
    return entry


def run_optimistic(operation, *, max_retries: int | None = None, backoff: float | None = None):
    """
    Run operation, retrying on ConcurrentModification.

    operation must re-read whatever it checks on every call. Retries are
    bounded; delay doubles each attempt starting at `backoff` seconds.

    Raises:
        ConcurrentModification: After max_retries retries
    """
    if max_retries is None:
        max_retries = rewardman_settings.CONFLICT_MAX_RETRIES
    if backoff is None:
        backoff = rewardman_settings.CONFLICT_BACKOFF_SECONDS

    attempt = 0
    while True:
        try:
            return operation()
        except ConcurrentModification as exc:
            attempt += 1
            if attempt > max_retries:
                logger.warning(
                    "Giving up after %d conflicting attempts on %s",
                    attempt,
                    exc.data.get("account_code"),
                )
                raise
            delay = backoff * (2 ** (attempt - 1))
            logger.debug("Version conflict on %s, retry %d", exc.data.get("account_code"), attempt)
            if delay > 0:
                time.sleep(delay)


# ======================================================================
# Reads
# ======================================================================


def get_entry_by_source(
    account_code: str,
    source_type: str,
    source_id: str,
    kind: str = EntryKind.EARN,
) -> LedgerEntry | None:
    """Entry of `kind` recorded for (account, source), if any."""
    account = get_account(account_code)
    if account is None:
        return None
    return _find_by_source(account, kind, source_type, source_id)


def find_redemption(account: LoyaltyAccount, idempotency_key: str) -> LedgerEntry | None:
    """Redeem entry previously appended with this idempotency key."""
    return LedgerEntry.objects.filter(
        account_id=account.pk,
        kind=EntryKind.REDEEM,
        idempotency_key=idempotency_key,
    ).first()


def list_entries(
    account_code: str,
    cursor: str | None = None,
    page_size: int | None = None,
    newest_first: bool = False,
) -> EntryPage:
    """
    Page through an account's entries.

    Storage order is append order (oldest first); newest_first walks it
    backwards. An unknown account yields an empty page.

    Raises:
        InvalidCursor: If cursor cannot be decoded
    """
    page_size = _page_size(page_size)
    position = decode_cursor(cursor) if cursor else None

    account = get_account(account_code)
    if account is None:
        return EntryPage(entries=[])

    qs = LedgerEntry.objects.filter(account_id=account.pk)
    if newest_first:
        if position is not None:
            qs = qs.filter(pk__lt=position)
        qs = qs.order_by("-pk")
    else:
        if position is not None:
            qs = qs.filter(pk__gt=position)
        qs = qs.order_by("pk")

    rows = list(qs[: page_size + 1])
    entries = rows[:page_size]
    next_cursor = encode_cursor(entries[-1].pk) if len(rows) > page_size else None
    return EntryPage(entries=entries, next_cursor=next_cursor)


def encode_cursor(position: int) -> str:
    return urlsafe_base64_encode(f"e{position}".encode())


def decode_cursor(cursor: str) -> int:
    try:
        raw = urlsafe_base64_decode(cursor).decode()
        if not raw.startswith("e"):
            raise ValueError(raw)
        return int(raw[1:])
    except (ValueError, UnicodeDecodeError) as exc:
        raise InvalidCursor(cursor=cursor) from exc


def _page_size(page_size: int | None) -> int:
    if page_size is None:
        return rewardman_settings.HISTORY_PAGE_SIZE
    return max(1, min(int(page_size), rewardman_settings.MAX_PAGE_SIZE))


def _find_by_source(
    account: LoyaltyAccount,
    kind: str,
    source_type: str,
    source_id: str,
) -> LedgerEntry | None:
    return LedgerEntry.objects.filter(
        account_id=account.pk,
        kind=kind,
        source_type=source_type,
        source_id=source_id,
    ).first()


def announce(signal, account: LoyaltyAccount, entry: LedgerEntry, **kwargs) -> None:
    """Send `signal` for entry and tier_changed if the entry crossed a tier boundary."""
    signal.send(sender=LedgerEntry, entry=entry, account=account, balance=entry.balance_after, **kwargs)

    table = get_tier_table()
    previous = table.tier_for(entry.balance_after - entry.delta)
    current = table.tier_for(entry.balance_after)
    if previous != current:
        logger.info("Tier change %s: %s -> %s", account.code, previous.code, current.code)
        tier_changed.send(sender=LoyaltyAccount, account=account, previous=previous, current=current)
