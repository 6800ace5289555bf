"""Tests for the redemption engine."""

from unittest.mock import patch

import pytest
from django.core.exceptions import ImproperlyConfigured

from rewardman.adapters.settings_catalog import SettingsRewardCatalog
from rewardman.exceptions import (
    AccountNotFound,
    ConcurrentModification,
    InsufficientBalance,
    RewardUnavailable,
)
from rewardman.models import EntryKind, LedgerEntry, LoyaltyAccount
from rewardman.protocols import RewardCatalogBackend
from rewardman.services import catalog as catalog_service
from rewardman.services import earning, projection, redemption
from rewardman.signals import points_redeemed

from .conftest import ACCOUNT

pytestmark = pytest.mark.django_db


def _redeem_entries():
    return LedgerEntry.objects.filter(kind=EntryKind.REDEEM)


# ═══════════════════════════════════════════════════════════════════
# Redeem
# ═══════════════════════════════════════════════════════════════════


class TestRedeem:
    """Spending points on catalog rewards."""

    def test_success(self, funded, catalog, now):
        received = []

        def receiver(sender, entry, reward, **kwargs):
            received.append((entry, reward.reward_id))

        points_redeemed.connect(receiver)
        try:
            result = redemption.redeem(ACCOUNT, "discount-100", catalog=catalog, now=now)
        finally:
            points_redeemed.disconnect(receiver)

        assert result.cost == 500
        assert result.balance == 0
        assert result.replayed is False
        assert result.entry.delta == -500
        assert result.entry.source_type == "redemption"
        assert result.entry.metadata == {
            "reward_id": "discount-100",
            "reward_kind": "discount",
            "catalog_version": "test-1",
        }
        assert received == [(result.entry, "discount-100")]
        assert projection.project(funded).balance == 0

    def test_insufficient_balance(self, funded, catalog, now):
        with pytest.raises(InsufficientBalance) as exc:
            redemption.redeem(ACCOUNT, "free-service", catalog=catalog, now=now)

        assert exc.value.data["available"] == 500
        assert exc.value.data["requested"] == 3000
        assert not _redeem_entries().exists()
        assert projection.project(funded).balance == 500

    def test_unknown_account_has_nothing_to_spend(self, db, catalog, now):
        with pytest.raises(InsufficientBalance) as exc:
            redemption.redeem("NOBODY", "discount-100", catalog=catalog, now=now)

        assert exc.value.data["available"] == 0
        assert exc.value.data["requested"] == 500
        assert not LoyaltyAccount.objects.filter(code="NOBODY").exists()

    def test_failed_redeem_creates_no_account(self, db, catalog, now):
        with pytest.raises(RewardUnavailable):
            redemption.redeem("GHOST", "missing", catalog=catalog, now=now)

        assert not LoyaltyAccount.objects.filter(code="GHOST").exists()

    def test_deactivated_account_cannot_redeem(self, funded, catalog, now):
        LoyaltyAccount.objects.filter(pk=funded.pk).update(is_active=False)

        with pytest.raises(AccountNotFound) as exc:
            redemption.redeem(ACCOUNT, "discount-100", catalog=catalog, now=now)

        assert exc.value.data == {"account_code": ACCOUNT, "reason": "inactive"}
        assert not _redeem_entries().exists()

    @pytest.mark.parametrize(
        "reward_id,reason",
        [
            ("missing", "not_found"),
            ("future", "not_started"),
            ("retired", "expired"),
            ("sold-out", "out_of_stock"),
        ],
    )
    def test_unavailable(self, funded, catalog, now, reward_id, reason):
        with pytest.raises(RewardUnavailable) as exc:
            redemption.redeem(ACCOUNT, reward_id, catalog=catalog, now=now)

        assert exc.value.data == {"reward_id": reward_id, "reason": reason}
        assert not _redeem_entries().exists()

    def test_each_call_is_a_separate_redemption(self, account, catalog, now):
        earning.emit_earn_event(ACCOUNT, "booking", "B1", 1000)

        first = redemption.redeem(ACCOUNT, "discount-100", catalog=catalog, now=now)
        second = redemption.redeem(ACCOUNT, "discount-100", catalog=catalog, now=now)

        assert first.entry.pk != second.entry.pk
        assert second.balance == 0


class TestIdempotentRedeem:
    """Same idempotency key spends once."""

    def test_replay_returns_original(self, funded, catalog, now):
        first = redemption.redeem(ACCOUNT, "discount-100", "key-1", catalog=catalog, now=now)
        second = redemption.redeem(ACCOUNT, "discount-100", "key-1", catalog=catalog, now=now)

        assert second.replayed is True
        assert second.entry.pk == first.entry.pk
        assert second.reward_id == "discount-100"
        assert second.cost == 500
        assert second.balance == 0
        assert _redeem_entries().count() == 1

    def test_concurrent_same_key_replays(self, funded, catalog, now):
        """A same-key redemption landing between lookup and append is replayed."""
        earning.emit_earn_event(ACCOUNT, "booking", "B2", 500)
        real_find = redemption.ledger.find_redemption
        calls = []

        def late_lookup(account, key):
            calls.append(key)
            if len(calls) == 1:
                redemption.redeem(ACCOUNT, "discount-100", key, catalog=catalog, now=now)
                return None
            return real_find(account, key)

        with patch("rewardman.services.redemption.ledger.find_redemption", side_effect=late_lookup):
            result = redemption.redeem(ACCOUNT, "discount-100", "key-1", catalog=catalog, now=now)

        assert result.replayed is True
        assert _redeem_entries().count() == 1
        assert projection.project(funded).balance == 500


class TestConcurrentRedeem:
    """The balance check and the append behave as one atomic step."""

    def test_retry_after_concurrent_earn(self, funded, catalog, now):
        real_project = projection.project
        calls = []

        def earn_in_between(account):
            calls.append(account.pk)
            stale = real_project(account)
            if len(calls) == 1:
                earning.emit_earn_event(ACCOUNT, "review", "V1")
            return stale

        with patch("rewardman.services.redemption.projection.project", side_effect=earn_in_between):
            result = redemption.redeem(ACCOUNT, "discount-100", catalog=catalog, now=now)

        assert len(calls) >= 2
        assert result.balance == 20
        assert LoyaltyAccount.objects.get(pk=funded.pk).version == 3

    def test_racing_redemptions_spend_once(self, funded, catalog, now):
        real_project = projection.project
        racers = []

        def race(account):
            stale = real_project(account)
            if not racers:
                racers.append("started")
                for _ in range(3):
                    try:
                        redemption.redeem(ACCOUNT, "discount-100", catalog=catalog, now=now)
                        racers.append("ok")
                    except InsufficientBalance:
                        racers.append("insufficient")
            return stale

        with patch("rewardman.services.redemption.projection.project", side_effect=race):
            with pytest.raises(InsufficientBalance):
                redemption.redeem(ACCOUNT, "discount-100", catalog=catalog, now=now)

        assert racers == ["started", "ok", "insufficient", "insufficient"]
        assert _redeem_entries().count() == 1
        assert projection.project(funded).balance == 0

    def test_retries_exhausted(self, funded, catalog, now):
        with patch(
            "rewardman.services.redemption.ledger.append",
            side_effect=ConcurrentModification(account_code=ACCOUNT),
        ) as append:
            with pytest.raises(ConcurrentModification):
                redemption.redeem(ACCOUNT, "discount-100", catalog=catalog, now=now)

        assert append.call_count == 6
        assert not _redeem_entries().exists()


# ═══════════════════════════════════════════════════════════════════
# Catalog
# ═══════════════════════════════════════════════════════════════════


class TestRedeemableRewards:
    def test_available_rewards_with_affordability(self, funded, catalog, now):
        rewards = redemption.list_redeemable_rewards(ACCOUNT, catalog=catalog, now=now)

        assert [(r.reward.reward_id, r.affordable) for r in rewards] == [
            ("discount-100", True),
            ("free-service", False),
        ]
        assert rewards[0].as_dict()["affordable"] is True

    def test_unknown_account(self, db, catalog, now):
        rewards = redemption.list_redeemable_rewards("NOBODY", catalog=catalog, now=now)

        assert all(not r.affordable for r in rewards)
        assert not LoyaltyAccount.objects.filter(code="NOBODY").exists()


class TestCatalogBackend:
    def test_default_backend(self):
        backend = catalog_service.get_catalog_backend()

        assert isinstance(backend, SettingsRewardCatalog)
        assert isinstance(backend, RewardCatalogBackend)
        assert [r.reward_id for r in backend.list_rewards()][:2] == ["discount-100", "discount-250"]

    def test_bad_backend_path(self, settings):
        settings.REWARDMAN = {"REWARD_CATALOG_BACKEND": "rewardman.nowhere.Catalog"}

        with pytest.raises(ImproperlyConfigured):
            catalog_service.get_catalog_backend()

    def test_invalid_reward_config(self):
        with pytest.raises(ImproperlyConfigured):
            SettingsRewardCatalog(rewards=[{"id": "x", "kind": "discount", "cost": 0}])

    def test_iso_dates_parsed(self):
        backend = SettingsRewardCatalog(
            rewards=[
                {
                    "id": "promo",
                    "kind": "discount",
                    "cost": 10,
                    "available_from": "2026-01-01T00:00:00",
                }
            ]
        )

        assert backend.get_reward("promo").available_from.tzinfo is not None
