"""
Invoice totals.

    subtotal        = sum(quantity * rate)
    tax_amount      = subtotal * tax_rate / 100
    discount_amount = subtotal * discount_rate / 100
    total           = subtotal + tax_amount - discount_amount

Each of the four is rounded to cents independently, from the unrounded
intermediates. `total` is therefore not necessarily equal to the sum of the
rounded components, and it is not clamped at zero.
"""

from decimal import Decimal, ROUND_HALF_UP
from typing import Iterable, Protocol

from core.models import InvoiceTotals, LineItem

CENTS = Decimal("0.01")
HUNDRED = Decimal("100")


class PricedItem(Protocol):
    quantity: Decimal
    rate: Decimal


def round_money(value: Decimal) -> Decimal:
    """Round to two places, halves away from zero."""
    return value.quantize(CENTS, rounding=ROUND_HALF_UP)


def line_amount(item: PricedItem) -> Decimal:
    return Decimal(item.quantity) * Decimal(item.rate)


def normalize_items(items: Iterable) -> list[LineItem]:
    """
    Rebuild items with `amount` recomputed from quantity and rate.

    Whatever amount the caller sent is discarded.
    """
    return [
        LineItem(
            description=item.description,
            quantity=item.quantity,
            rate=item.rate,
            amount=line_amount(item),
        )
        for item in items
    ]


def compute_totals(
    items: Iterable[PricedItem],
    tax_rate: Decimal = Decimal("0"),
    discount_rate: Decimal = Decimal("0"),
) -> InvoiceTotals:
    """
    Compute invoice totals from line items and rates.

    Rates are percentages and are not range-checked here; request models
    validate them before this is called.
    """
    tax_rate = Decimal(tax_rate)
    discount_rate = Decimal(discount_rate)

    subtotal = sum((line_amount(item) for item in items), Decimal("0"))
    tax_amount = subtotal * tax_rate / HUNDRED
    discount_amount = subtotal * discount_rate / HUNDRED
    total = subtotal + tax_amount - discount_amount

    return InvoiceTotals(
        subtotal=round_money(subtotal),
        tax_rate=tax_rate,
        tax_amount=round_money(tax_amount),
        discount_rate=discount_rate,
        discount_amount=round_money(discount_amount),
        total=round_money(total),
    )
