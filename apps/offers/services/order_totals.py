"""Order totals with manual admin adjustments."""

from decimal import Decimal

from .exceptions import InvalidAdjustmentError
from .offer_pricing import merge_line_items
from .types import OrderTotal, to_decimal

ZERO = Decimal('0')


def calculate_order_total(items, *, manual_discount=None, total_override=None) -> OrderTotal:
    """
    Total an order from its lines as priced, then apply admin adjustments.

    Lines are taken at the price recorded on them, which may already be
    an offer-discounted or hand-edited price. A ``total_override`` wins
    over ``manual_discount``.

    Args:
        items: Order lines.
        manual_discount: Amount taken off the subtotal (optional).
        total_override: Replaces the computed total outright (optional).

    Returns:
        OrderTotal with the total floored at zero.

    Raises:
        InvalidAdjustmentError: If either adjustment is negative.
    """
    lines = merge_line_items(items)
    subtotal = sum((line.line_total for line in lines), ZERO)

    discount = ZERO
    if manual_discount is not None:
        discount = to_decimal(manual_discount, InvalidAdjustmentError, "Manual discount")
        if discount < 0:
            raise InvalidAdjustmentError(f"Manual discount cannot be negative ({discount})")

    if total_override is not None:
        override = to_decimal(total_override, InvalidAdjustmentError, "Total override")
        if override < 0:
            raise InvalidAdjustmentError(f"Total override cannot be negative ({override})")
        return OrderTotal(
            subtotal=subtotal,
            manual_discount=discount,
            total=override,
            overridden=True,
        )

    return OrderTotal(
        subtotal=subtotal,
        manual_discount=discount,
        total=max(ZERO, subtotal - discount),
    )
