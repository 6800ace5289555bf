"""Pytest fixtures for Rewardman tests."""

from datetime import timedelta

import pytest
from django.utils import timezone

from rewardman.adapters.settings_catalog import SettingsRewardCatalog
from rewardman.services import earning, ledger


ACCOUNT = "CUST-001"


@pytest.fixture
def account(db):
    """An empty loyalty account."""
    return ledger.get_or_create_account(ACCOUNT)


@pytest.fixture
def funded(account):
    """Account holding 500 points from one booking."""
    earning.emit_earn_event(ACCOUNT, "booking", "B1", 500)
    account.refresh_from_db()
    return account


@pytest.fixture
def now():
    return timezone.now()


@pytest.fixture
def catalog(now):
    """Catalog with available, scheduled, retired and sold-out rewards."""
    return SettingsRewardCatalog(
        rewards=[
            {"id": "discount-100", "name": "₹100 Off", "kind": "discount", "cost": 500},
            {"id": "free-service", "name": "Free Service", "kind": "service", "cost": 3000},
            {
                "id": "future",
                "name": "Launching soon",
                "kind": "discount",
                "cost": 100,
                "available_from": now + timedelta(days=7),
            },
            {
                "id": "retired",
                "name": "Old promo",
                "kind": "discount",
                "cost": 100,
                "available_until": now - timedelta(days=1),
            },
            {"id": "sold-out", "name": "Spa", "kind": "experience", "cost": 100, "stock": 0},
        ],
        version="test-1",
    )
