"""Tests for the cashback state machine and amount calculation."""

from decimal import Decimal

import pytest

from settlement.models.cashback import Cashback
from settlement.models.enums import (
    CASHBACK_TRANSITIONS,
    TERMINAL_CASHBACK_STATUSES,
    CashbackStatus,
    can_transition,
)


class TestCashbackTransitions:
    """Test allowed status transitions."""

    @pytest.mark.parametrize(
        ("current", "target"),
        [
            (CashbackStatus.PENDING, CashbackStatus.PROCESSING),
            (CashbackStatus.PENDING, CashbackStatus.CANCELLED),
            (CashbackStatus.PROCESSING, CashbackStatus.COMPLETED),
            (CashbackStatus.PROCESSING, CashbackStatus.FAILED),
            (CashbackStatus.FAILED, CashbackStatus.PROCESSING),
            (CashbackStatus.FAILED, CashbackStatus.COMPLETED),
        ],
    )
    def test_allowed(self, current, target):
        assert can_transition(current, target) is True

    @pytest.mark.parametrize(
        ("current", "target"),
        [
            (CashbackStatus.PENDING, CashbackStatus.COMPLETED),
            (CashbackStatus.PENDING, CashbackStatus.FAILED),
            (CashbackStatus.PROCESSING, CashbackStatus.PENDING),
            (CashbackStatus.PROCESSING, CashbackStatus.CANCELLED),
            (CashbackStatus.FAILED, CashbackStatus.CANCELLED),
            (CashbackStatus.COMPLETED, CashbackStatus.FAILED),
            (CashbackStatus.CANCELLED, CashbackStatus.PENDING),
        ],
    )
    def test_forbidden(self, current, target):
        assert can_transition(current, target) is False

    def test_accepts_stored_string_values(self):
        """Statuses come back from the database as plain strings."""
        assert can_transition("pending", "processing") is True
        assert can_transition("completed", "processing") is False

    def test_terminal_statuses_have_no_exits(self):
        for status in TERMINAL_CASHBACK_STATUSES:
            assert CASHBACK_TRANSITIONS[status] == frozenset()

    def test_every_status_has_an_entry(self):
        assert set(CASHBACK_TRANSITIONS) == set(CashbackStatus)


class TestCashbackAmountCalculation:
    """Test Cashback.calculate_amount."""

    def test_simple_percentage(self):
        """Test 5% of 100."""
        assert Cashback.calculate_amount(Decimal("100"), Decimal("5")) == Decimal("5.00000000")

    def test_fractional_percentage(self):
        """Test 2.5% of 123.45."""
        assert Cashback.calculate_amount(Decimal("123.45"), Decimal("2.5")) == Decimal("3.08625000")

    def test_rounds_down_to_eight_places(self):
        """Test amount is truncated, never rounded up."""
        assert Cashback.calculate_amount(Decimal("0.00000001"), Decimal("50")) == Decimal("0E-8")
        assert Cashback.calculate_amount(Decimal("1"), Decimal("33.33")) == Decimal("0.33330000")

    def test_accepts_non_decimal_input(self):
        assert Cashback.calculate_amount(200, 10) == Decimal("20.00000000")

    def test_is_terminal(self):
        cashback = Cashback(status=CashbackStatus.COMPLETED.value)
        assert cashback.is_terminal is True
        cashback.status = CashbackStatus.FAILED.value
        assert cashback.is_terminal is False
