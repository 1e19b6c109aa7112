# Overview: Line and header money math in integer cents, rounded half-up at each step.

from __future__ import annotations

from dataclasses import dataclass
from typing import Iterable

from ..errors import ValidationError


BPS_SCALE = 10_000
DISCOUNT_FIXED = "fixed"
DISCOUNT_PERCENTAGE = "percentage"
DISCOUNT_TYPES = {DISCOUNT_FIXED, DISCOUNT_PERCENTAGE}


def div_round_half_up(numerator: int, denominator: int) -> int:
    """Integer division rounding halves away from zero."""
    if denominator <= 0:
        raise ValueError("denominator must be positive")
    sign = -1 if numerator < 0 else 1
    return sign * ((2 * abs(numerator) + denominator) // (2 * denominator))


@dataclass(frozen=True)
class LinePricing:
    actual_unit_price_cents: int
    tax_cents: int
    total_price_cents: int

    @property
    def net_cents(self) -> int:
        return self.total_price_cents - self.tax_cents


@dataclass(frozen=True)
class DocumentTotals:
    subtotal_cents: int
    tax_cents: int
    discount_cents: int
    shipping_cents: int
    total_cents: int


def price_line(quantity: int, unit_price_cents: int, tax_rate_bps: int) -> LinePricing:
    """
    unit_price is tax inclusive:

        actual_unit_price = unit_price / (1 + rate)
        tax               = actual_unit_price * rate * quantity
        total             = quantity * unit_price
    """
    actual = div_round_half_up(unit_price_cents * BPS_SCALE, BPS_SCALE + tax_rate_bps)
    tax = div_round_half_up(actual * tax_rate_bps * quantity, BPS_SCALE)
    return LinePricing(
        actual_unit_price_cents=actual,
        tax_cents=tax,
        total_price_cents=quantity * unit_price_cents,
    )


def split_gross(gross_cents: int, tax_rate_bps: int) -> tuple[int, int]:
    """Split a tax-inclusive amount into (net, tax)."""
    net = div_round_half_up(gross_cents * BPS_SCALE, BPS_SCALE + tax_rate_bps)
    return net, gross_cents - net


def discount_amount(discount_type: str, discount_value: int, gross_cents: int) -> int:
    if discount_type not in DISCOUNT_TYPES:
        raise ValidationError(f"discount_type must be one of: {', '.join(sorted(DISCOUNT_TYPES))}")
    if discount_value < 0:
        raise ValidationError("discount_value cannot be negative")
    if discount_type == DISCOUNT_PERCENTAGE:
        if discount_value > BPS_SCALE:
            raise ValidationError("percentage discount cannot exceed 100%")
        return div_round_half_up(gross_cents * discount_value, BPS_SCALE)
    return min(discount_value, gross_cents)


def document_totals(
    lines: Iterable[tuple[int, int]],
    *,
    discount_type: str = DISCOUNT_FIXED,
    discount_value: int = 0,
    shipping_cents: int = 0,
) -> DocumentTotals:
    """
    Header totals from (total_price_cents, tax_cents) pairs.

    subtotal is net of tax; total = items gross - discount + shipping.
    """
    gross = 0
    tax = 0
    for total_price, line_tax in lines:
        gross += total_price
        tax += line_tax
    discount = discount_amount(discount_type, discount_value, gross)
    return DocumentTotals(
        subtotal_cents=gross - tax,
        tax_cents=tax,
        discount_cents=discount,
        shipping_cents=shipping_cents,
        total_cents=gross - discount + shipping_cents,
    )
