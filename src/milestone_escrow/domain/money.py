"""Exact decimal money handling.

Amounts are decimal.Decimal with at most two fractional digits (cents).
Binary floats are rejected outright: they cannot represent most cent values.

Fee split policy: the platform fee is amount x rate rounded DOWN to the cent,
and the worker receives the remainder, so fee + worker_amount == amount always.
"""

from __future__ import annotations

from dataclasses import dataclass
from decimal import ROUND_DOWN, Decimal, InvalidOperation

from milestone_escrow.domain.exceptions import InvalidAmountError, InvariantViolationError

CENT = Decimal("0.01")
ZERO = Decimal("0.00")
# NUMERIC(18, 2) holds sixteen integer digits.
MAX_AMOUNT = Decimal("9999999999999999.99")


def parse_amount(value: Decimal | int | str) -> Decimal:
    """Validate and normalize a positive monetary amount.

    Raises:
        InvalidAmountError: For floats, malformed strings, NaN/Infinity,
            non-positive values, or sub-cent precision.
    """
    if isinstance(value, bool) or isinstance(value, float):
        raise InvalidAmountError(value, "use a decimal string, not a float")

    try:
        amount = Decimal(value.strip() if isinstance(value, str) else value)
    except (InvalidOperation, TypeError, ValueError) as err:
        raise InvalidAmountError(value, "not a decimal number") from err

    if not amount.is_finite():
        raise InvalidAmountError(value, "must be finite")
    if amount <= 0:
        raise InvalidAmountError(value, "must be greater than zero")
    if amount > MAX_AMOUNT:
        raise InvalidAmountError(value, f"must not exceed {MAX_AMOUNT}")
    if amount != amount.quantize(CENT):
        raise InvalidAmountError(value, "at most two decimal places are allowed")
    return amount.quantize(CENT)


def format_amount(amount: Decimal) -> str:
    """Render an amount as a decimal string with exactly two fractional digits."""
    return str(Decimal(amount).quantize(CENT))


@dataclass(frozen=True)
class ReleaseSplit:
    """How a released milestone amount is divided between worker and platform."""

    amount: Decimal
    fee_amount: Decimal
    worker_amount: Decimal


def split_release_amount(amount: Decimal, fee_rate: Decimal) -> ReleaseSplit:
    """Split a released amount into platform fee and worker payout.

    fee = amount x fee_rate, truncated to the cent; worker = amount - fee.
    """
    if not Decimal(0) <= fee_rate < Decimal(1):
        raise InvalidAmountError(fee_rate, "fee rate must be in [0, 1)")

    amount = Decimal(amount).quantize(CENT)
    fee_amount = (amount * fee_rate).quantize(CENT, rounding=ROUND_DOWN)
    worker_amount = amount - fee_amount

    if fee_amount + worker_amount != amount or worker_amount < 0:
        raise InvariantViolationError(
            "Release split does not reconcile",
            details={
                "amount": str(amount),
                "fee_amount": str(fee_amount),
                "worker_amount": str(worker_amount),
            },
        )
    return ReleaseSplit(amount=amount, fee_amount=fee_amount, worker_amount=worker_amount)
