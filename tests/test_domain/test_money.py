"""Tests for decimal money parsing and the release fee split."""

from __future__ import annotations

from decimal import Decimal

import pytest
from hypothesis import given
from hypothesis import strategies as st

from milestone_escrow.domain.exceptions import InvalidAmountError
from milestone_escrow.domain.money import (
    MAX_AMOUNT,
    format_amount,
    parse_amount,
    split_release_amount,
)

cents = st.integers(min_value=1, max_value=10**12).map(lambda c: Decimal(c) / 100)
rates = st.integers(min_value=0, max_value=9999).map(lambda r: Decimal(r) / 10000)


class TestParseAmount:
    @pytest.mark.parametrize(
        ("raw", "expected"),
        [
            ("40", Decimal("40.00")),
            ("40.5", Decimal("40.50")),
            (" 0.01 ", Decimal("0.01")),
            (7, Decimal("7.00")),
            (Decimal("100.00"), Decimal("100.00")),
        ],
    )
    def test_valid(self, raw, expected) -> None:
        assert parse_amount(raw) == expected

    @pytest.mark.parametrize(
        "raw",
        ["0", "-1.00", "abc", "", "NaN", "Infinity", "1.001", 0.1, True, None],
    )
    def test_invalid(self, raw) -> None:
        with pytest.raises(InvalidAmountError):
            parse_amount(raw)

    def test_above_column_capacity(self) -> None:
        assert parse_amount(MAX_AMOUNT) == MAX_AMOUNT
        with pytest.raises(InvalidAmountError):
            parse_amount(MAX_AMOUNT + Decimal("0.01"))

    def test_error_carries_value(self) -> None:
        with pytest.raises(InvalidAmountError) as exc_info:
            parse_amount("1.001")
        assert exc_info.value.value == "1.001"
        assert exc_info.value.code == "INVALID_AMOUNT"


class TestFormatAmount:
    def test_two_fraction_digits(self) -> None:
        assert format_amount(Decimal("5")) == "5.00"
        assert format_amount(Decimal("95.5")) == "95.50"


class TestSplitReleaseAmount:
    def test_five_percent_of_hundred(self) -> None:
        split = split_release_amount(Decimal("100.00"), Decimal("0.05"))
        assert split.fee_amount == Decimal("5.00")
        assert split.worker_amount == Decimal("95.00")

    def test_fee_rounds_down_to_the_cent(self) -> None:
        split = split_release_amount(Decimal("33.33"), Decimal("0.05"))
        # 33.33 * 0.05 = 1.6665
        assert split.fee_amount == Decimal("1.66")
        assert split.worker_amount == Decimal("31.67")

    def test_smallest_amount_has_no_fee(self) -> None:
        split = split_release_amount(Decimal("0.01"), Decimal("0.05"))
        assert split.fee_amount == Decimal("0.00")
        assert split.worker_amount == Decimal("0.01")

    def test_zero_rate(self) -> None:
        split = split_release_amount(Decimal("12.34"), Decimal("0"))
        assert split.fee_amount == 0
        assert split.worker_amount == Decimal("12.34")

    @pytest.mark.parametrize("rate", ["1", "1.5", "-0.01"])
    def test_rate_out_of_range(self, rate: str) -> None:
        with pytest.raises(InvalidAmountError):
            split_release_amount(Decimal("10.00"), Decimal(rate))

    @given(amount=cents, rate=rates)
    def test_split_always_reconciles(self, amount: Decimal, rate: Decimal) -> None:
        split = split_release_amount(amount, rate)
        assert split.fee_amount + split.worker_amount == split.amount == amount
        assert split.fee_amount >= 0
        assert split.worker_amount > 0
        assert split.fee_amount <= amount * rate
