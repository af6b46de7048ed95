"""Pytest fixtures for Rewardman tests."""

from datetime import datetime
from decimal import Decimal
from zoneinfo import ZoneInfo

import pytest

from rewardman.models import Challenge, Customer, Merchant, RewardAccount

TZ = ZoneInfo("America/Guayaquil")


def local(*args) -> datetime:
    """Aware datetime in the test merchant's timezone."""
    return datetime(*args, tzinfo=TZ)


@pytest.fixture
def merchant(db):
    """Cafe: 1 point per unit, 5.00 card every 100 points, 30-day expiry."""
    return Merchant.objects.create(
        code="cafe",
        name="Cafe Quito",
        timezone="America/Guayaquil",
        points_per_unit=Decimal("1"),
        gift_card_threshold=100,
        gift_card_value=Decimal("5"),
        gift_card_expiry_days=30,
    )


@pytest.fixture
def other_merchant(db):
    return Merchant.objects.create(
        code="bakery",
        name="Panaderia",
        timezone="America/Guayaquil",
    )


@pytest.fixture
def customer(db):
    """Create a test customer."""
    return Customer.objects.create(
        code="CUST-001",
        first_name="Maria",
        last_name="Lopez",
        phone="+593991234567",
    )


@pytest.fixture
def account(customer, merchant):
    return RewardAccount.objects.create(customer=customer, merchant=merchant)


@pytest.fixture
def weekly_challenge(merchant):
    """3 visits in a week -> +20."""
    return Challenge.objects.create(
        merchant=merchant,
        name="Regular",
        challenge_type="frequency",
        config={"visits_required": 3, "period": "weekly"},
        points=20,
    )


@pytest.fixture
def big_ticket_challenge(merchant):
    """Purchases of 20.00 or more -> +10."""
    return Challenge.objects.create(
        merchant=merchant,
        name="Big ticket",
        challenge_type="amount_min",
        config={"min_amount": "20.00"},
        points=10,
    )
