"""Currency helpers for order totals and gateway amounts."""

from __future__ import annotations

from decimal import ROUND_HALF_UP, Decimal
from typing import Iterable, Tuple

CENT = Decimal("0.01")
DEFAULT_PLATFORM_FEE_PERCENT = Decimal("1.0")


def to_decimal(value) -> Decimal:
    """Return ``value`` as a :class:`Decimal` without float artefacts."""

    if isinstance(value, Decimal):
        return value
    return Decimal(str(value))


def quantize(value) -> Decimal:
    """Round ``value`` to two decimal places."""

    return to_decimal(value).quantize(CENT, rounding=ROUND_HALF_UP)


def to_minor_units(amount) -> int:
    """Convert a major-unit amount into integer cents."""

    return int((to_decimal(amount) * 100).quantize(Decimal(1), rounding=ROUND_HALF_UP))


def platform_fee_minor(total, percent=None) -> int:
    """Return the platform fee for ``total`` at ``percent`` in cents.

    ``percent`` defaults to :data:`DEFAULT_PLATFORM_FEE_PERCENT` when unset.
    """

    if percent is None:
        percent = DEFAULT_PLATFORM_FEE_PERCENT
    cents = to_decimal(total) * 100
    fee = cents * to_decimal(percent) / 100
    return int(fee.quantize(Decimal(1), rounding=ROUND_HALF_UP))


def from_minor_units(cents: int) -> Decimal:
    return (Decimal(cents) / 100).quantize(CENT)


def order_total(lines: Iterable[Tuple[object, int]]) -> Decimal:
    """Sum ``(price, quantity)`` pairs into a two-decimal total."""

    total = sum((to_decimal(price) * qty for price, qty in lines), Decimal(0))
    return quantize(total)
