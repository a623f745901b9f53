"""
Unit Tests for Loyalty Points

Tests cover:
1. Points per action, floored
2. Deposit accrual and action awards
3. Redemption into wallet credit
"""

import pytest
from decimal import Decimal

from deposits.errors import NotFoundError, ValidationError
from deposits.loyalty import LoyaltyProgram
from deposits.models import LoyaltyAction
from deposits.storage import LOYALTY_REDEMPTIONS, LOYALTY_TRANSACTIONS, USERS

from conftest import add_user


@pytest.fixture
def program(storage, settings):
    return LoyaltyProgram(storage, settings)


class TestPoints:
    """Tests for the points formula."""

    @pytest.mark.parametrize("net, points", [
        (Decimal("95.00"), 9),
        (Decimal("9.99"), 0),
        (Decimal("10"), 1),
        (Decimal("980"), 98),
        (Decimal("1209.81"), 120),
    ])
    def test_deposit_points_are_floored(self, program, net, points):
        assert program.points_for(LoyaltyAction.DEPOSIT, net) == points

    def test_purchase_and_rental(self, program):
        assert program.points_for(LoyaltyAction.PURCHASE, Decimal("3")) == 6
        assert program.points_for(LoyaltyAction.RENTAL, Decimal("2")) == 10


class TestAccrual:
    """Tests for crediting points."""

    def test_accrue_deposit(self, storage, program):
        add_user(storage, "user-1")

        assert program.accrue_deposit("user-1", Decimal("95.00")) == 9

        user = storage.get(USERS, "user-1")
        assert user["loyaltyPoints"] == 9
        assert user["totalLoyaltyPoints"] == 9
        [(_, entry)] = storage.query(LOYALTY_TRANSACTIONS)
        assert entry["userId"] == "user-1"
        assert entry["action"] == "deposit"
        assert entry["points"] == 9
        assert entry["amount"] == Decimal("95.00")

    def test_zero_points_is_a_noop(self, storage, program):
        add_user(storage, "user-1")
        writes = storage.write_count

        assert program.accrue_deposit("user-1", Decimal("9.99")) == 0
        assert storage.write_count == writes

    def test_award_accumulates(self, storage, program):
        add_user(storage, "user-1")

        program.award("user-1", LoyaltyAction.DEPOSIT, Decimal("100"))
        program.award("user-1", LoyaltyAction.RENTAL, Decimal("1"))

        assert storage.get(USERS, "user-1")["totalLoyaltyPoints"] == 15
        assert storage.count(LOYALTY_TRANSACTIONS) == 2


class TestRedemption:
    """Tests for converting points to wallet credit."""

    def test_redeem(self, storage, program):
        add_user(storage, "user-1", loyalty_points=500, balance=Decimal("10"))

        result = program.redeem("user-1", 200)

        assert result.cash_value == Decimal("2")
        assert result.remaining_points == 300
        user = storage.get(USERS, "user-1")
        assert user["loyaltyPoints"] == 300
        assert user["totalLoyaltyPoints"] == 500
        assert user["walletBalanceNGN"] == Decimal("12")
        assert storage.count(LOYALTY_REDEMPTIONS) == 1

    def test_insufficient_points(self, storage, program):
        add_user(storage, "user-1", loyalty_points=50)

        with pytest.raises(ValidationError, match="Insufficient"):
            program.redeem("user-1", 51)
        assert storage.get(USERS, "user-1")["loyaltyPoints"] == 50

    @pytest.mark.parametrize("points", [0, -5])
    def test_non_positive_points(self, program, points):
        with pytest.raises(ValidationError):
            program.redeem("user-1", points)

    def test_unknown_user(self, program):
        with pytest.raises(NotFoundError):
            program.redeem("ghost", 10)

    def test_redeem_endpoint(self, client, storage):
        add_user(storage, "user-1", loyalty_points=150)

        response = client.post("/users/user-1/loyalty/redeem", json={"points": 100})
        assert response.status_code == 200
        assert Decimal(response.json()["cash_value"]) == Decimal("1")

        assert client.post("/users/user-1/loyalty/redeem", json={"points": 100}).status_code == 400
        assert client.post("/users/user-1/loyalty/redeem", json={"points": 0}).status_code == 422
