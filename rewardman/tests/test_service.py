"""Tests for the LoyaltyService facade."""

import pytest
from django.contrib import admin
from django.urls import reverse

from rewardman import GateError, Gates, LoyaltyError, LoyaltyService
from rewardman.exceptions import BaseError, InsufficientBalance, InvalidCursor
from rewardman.models import LedgerEntry, LoyaltyAccount
from rewardman.signals import tier_changed

from .conftest import ACCOUNT

pytestmark = pytest.mark.django_db


# ═══════════════════════════════════════════════════════════════════
# End-to-end scenario
# ═══════════════════════════════════════════════════════════════════


class TestMembershipScenario:
    """Earn, duplicate, redeem, overspend, and climb a tier."""

    def test_walkthrough(self, db):
        LoyaltyService.emit_earn_event(ACCOUNT, "booking", "B1", 500)
        summary = LoyaltyService.get_summary(ACCOUNT)
        assert summary.balance == 500
        assert summary.tier.code == "bronze"

        _, created = LoyaltyService.emit_earn_event(ACCOUNT, "booking", "B1", 500)
        assert created is False
        assert LoyaltyService.get_balance(ACCOUNT) == 500

        result = LoyaltyService.redeem(ACCOUNT, "discount-100")
        assert result.cost == 500
        assert result.balance == 0

        with pytest.raises(InsufficientBalance):
            LoyaltyService.redeem(ACCOUNT, "discount-100")
        assert LoyaltyService.get_balance(ACCOUNT) == 0

        LoyaltyService.emit_earn_event(ACCOUNT, "referral", "R1", 1200)
        summary = LoyaltyService.get_summary(ACCOUNT)
        assert summary.balance == 1200
        assert summary.tier.code == "silver"
        assert summary.next_tier.code == "gold"
        assert summary.points_to_next == 3800
        assert summary.progress_percent == 5
        assert summary.lifetime_earned == 1700
        assert summary.lifetime_redeemed == 500


# ═══════════════════════════════════════════════════════════════════
# Reads
# ═══════════════════════════════════════════════════════════════════


class TestSummary:
    def test_unknown_account(self, db):
        summary = LoyaltyService.get_summary("NOBODY")

        assert summary.balance == 0
        assert summary.lifetime_earned == 0
        assert summary.tier.code == "bronze"
        assert summary.progress_percent == 0
        assert summary.expiring_soon == 0
        assert not LoyaltyAccount.objects.filter(code="NOBODY").exists()

    def test_expiring_soon(self, account, now):
        LoyaltyService.emit_earn_event(ACCOUNT, "booking", "B1", 300, expiry_days=5)
        LoyaltyService.emit_earn_event(ACCOUNT, "booking", "B2", 200)

        assert LoyaltyService.get_summary(ACCOUNT, now=now).expiring_soon == 300

    def test_as_dict(self, funded):
        data = LoyaltyService.get_summary(ACCOUNT).as_dict()

        assert data["account"] == ACCOUNT
        assert data["balance"] == 500
        assert data["tier"]["code"] == "bronze"
        assert data["next_tier"]["code"] == "silver"
        assert data["tier"]["multiplier"] == "1"


class TestHistory:
    def test_newest_first(self, funded):
        LoyaltyService.emit_earn_event(ACCOUNT, "review", "V1")
        LoyaltyService.adjust(ACCOUNT, -20, "Correction")

        page = LoyaltyService.get_history(ACCOUNT)

        assert [e.kind for e in page.entries] == ["adjustment", "earn", "earn"]
        assert page.next_cursor is None

    def test_paginated(self, funded):
        for i in range(4):
            LoyaltyService.emit_earn_event(ACCOUNT, "share", f"S{i}")

        first = LoyaltyService.get_history(ACCOUNT, page_size=3)
        second = LoyaltyService.get_history(ACCOUNT, cursor=first.next_cursor, page_size=3)

        assert [e.source_id for e in first.entries] == ["S3", "S2", "S1"]
        assert [e.source_id for e in second.entries] == ["S0", "B1"]
        assert second.as_dict()["entries"][-1]["delta"] == 500

    def test_unknown_account_is_empty(self, db):
        page = LoyaltyService.get_history("NOBODY")

        assert page.entries == []
        assert page.next_cursor is None

    def test_bad_cursor(self, funded):
        with pytest.raises(InvalidCursor):
            LoyaltyService.get_history(ACCOUNT, cursor="not-a-cursor")


class TestRewardsAndTiers:
    def test_list_redeemable_rewards(self, funded):
        rewards = LoyaltyService.list_redeemable_rewards(ACCOUNT)

        assert [r.reward.reward_id for r in rewards] == [
            "discount-100",
            "discount-250",
            "discount-500",
            "free-service",
            "pro-month",
        ]
        assert [r.affordable for r in rewards] == [True, False, False, False, False]

    def test_tiers(self):
        assert [t.code for t in LoyaltyService.tiers()] == ["bronze", "silver", "gold", "platinum"]


# ═══════════════════════════════════════════════════════════════════
# Producers
# ═══════════════════════════════════════════════════════════════════


class TestProducers:
    def test_earn_for_booking(self, account):
        entry, created = LoyaltyService.earn_for_booking(ACCOUNT, "BK-9", 2500)

        assert created is True
        assert entry.delta == 25

    def test_tier_changed_on_earn(self, funded):
        changes = []

        def receiver(sender, account, previous, current, **kwargs):
            changes.append((account.code, previous.code, current.code))

        tier_changed.connect(receiver)
        try:
            LoyaltyService.emit_earn_event(ACCOUNT, "referral", "R1", 600)
            LoyaltyService.emit_earn_event(ACCOUNT, "referral", "R2", 100)
        finally:
            tier_changed.disconnect(receiver)

        assert changes == [(ACCOUNT, "bronze", "silver")]

    def test_adjust(self, funded):
        entry = LoyaltyService.adjust(ACCOUNT, 50, "Goodwill", created_by="staff")

        assert entry.created_by == "staff"
        assert LoyaltyService.get_balance(ACCOUNT) == 550


# ═══════════════════════════════════════════════════════════════════
# Package surface
# ═══════════════════════════════════════════════════════════════════


class TestPackage:
    def test_lazy_exports(self):
        assert issubclass(LoyaltyError, BaseError)
        assert issubclass(GateError, Exception)
        assert hasattr(Gates, "tier_table_integrity")

    def test_error_format(self):
        err = InsufficientBalance(available=10, requested=500)

        assert err.code == "INSUFFICIENT_BALANCE"
        assert str(err) == "[INSUFFICIENT_BALANCE] Insufficient points for redemption"
        assert err.as_dict()["data"] == {"available": 10, "requested": 500}

    def test_admin_registered(self):
        assert admin.site.is_registered(LoyaltyAccount)
        assert admin.site.is_registered(LedgerEntry)

    def test_admin_changelists(self, admin_client, funded):
        account_list = admin_client.get(reverse("admin:rewardman_loyaltyaccount_changelist"))
        entry_list = admin_client.get(reverse("admin:rewardman_ledgerentry_changelist"))

        assert account_list.status_code == 200
        assert entry_list.status_code == 200
        assert b"Bronze" in account_list.content

    def test_admin_ledger_is_read_only(self, admin_client, funded):
        response = admin_client.get(reverse("admin:rewardman_ledgerentry_add"))

        assert response.status_code == 403
