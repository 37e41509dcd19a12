"""Booking price calculation.

All amounts are integers in minor currency units (pence).  The only rounding
step is the discount, which rounds half up to the nearest penny.
"""

from __future__ import annotations

from dataclasses import dataclass

from holiday_club.services.selection import OptionType, Selection


@dataclass(frozen=True)
class Discount:
    discount_amount: int
    total: int


@dataclass(frozen=True)
class PriceBreakdown:
    """Subtotal, discount and payable total for a selection."""

    subtotal: int
    discount_percent: int
    discount_amount: int
    total: int


def compute_subtotal(
    option_type: OptionType,
    price_per_child: int,
    selected_date_count: int,
    child_count: int,
) -> int:
    """Return the undiscounted price.

    ``full_week`` and ``single_day`` charge a flat price per child; ``multi_day``
    charges per child per selected day.

    Raises:
        ValueError: On negative inputs, or a single-day price asked for anything
            other than exactly one date.
    """
    if price_per_child < 0 or selected_date_count < 0 or child_count < 0:
        raise ValueError("Price, date count and child count must be non-negative")

    if option_type is OptionType.MULTI_DAY:
        return price_per_child * selected_date_count * child_count
    if option_type is OptionType.SINGLE_DAY and selected_date_count != 1:
        raise ValueError(f"A single-day booking covers exactly one date, got {selected_date_count}")
    return price_per_child * child_count


def apply_discount(subtotal: int, discount_percent: int) -> Discount:
    """Take *discount_percent* off *subtotal*, rounding the discount half up."""
    if subtotal < 0:
        raise ValueError("Subtotal must be non-negative")
    if not 0 <= discount_percent <= 100:
        raise ValueError(f"Discount percent must be between 0 and 100, got {discount_percent}")

    discount_amount = (subtotal * discount_percent + 50) // 100
    return Discount(discount_amount=discount_amount, total=subtotal - discount_amount)


def price_selection(selection: Selection, price_per_child: int, discount_percent: int = 0) -> PriceBreakdown:
    subtotal = compute_subtotal(selection.option_type, price_per_child, selection.count, selection.child_count)
    discount = apply_discount(subtotal, discount_percent)
    return PriceBreakdown(
        subtotal=subtotal,
        discount_percent=discount_percent,
        discount_amount=discount.discount_amount,
        total=discount.total,
    )


def format_price(pence: int) -> str:
    """Format pence as pounds, e.g. ``3500`` -> ``"£35.00"``."""
    return f"£{pence // 100}.{pence % 100:02d}"
