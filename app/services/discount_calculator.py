"""
Discount arithmetic for vouchers and promotions.

All functions work on ``Decimal`` and keep full precision; amounts are rounded to
cents only by :func:`quantize_amount`, which callers apply when persisting.
"""
from decimal import Decimal, ROUND_DOWN, ROUND_HALF_UP
from typing import Iterable, Protocol

from ..enums import DiscountType
from ..exceptions import DiscountCapReachedException


CENTS = Decimal("0.01")
HUNDRED = Decimal("100")
DEFAULT_CAP_RATIO = Decimal("0.5")


class DiscountRule(Protocol):
    discount_type: DiscountType
    discount_value: Decimal


class PricedItem(Protocol):
    unit_price: Decimal
    quantity: int


def quantize_amount(amount: Decimal) -> Decimal:
    """Round a monetary amount half-up to 2 decimal places."""
    return Decimal(amount).quantize(CENTS, rounding=ROUND_HALF_UP)


def calculate_voucher_discount(voucher: DiscountRule, subtotal: Decimal) -> Decimal:
    """
    Raw voucher discount on an order subtotal.

    PERCENTAGE takes ``subtotal * value / 100``; FIXED takes the value but never more
    than the subtotal.
    """
    value = Decimal(voucher.discount_value)
    subtotal = Decimal(subtotal)

    if voucher.discount_type == DiscountType.PERCENTAGE:
        return subtotal * value / HUNDRED

    return min(value, subtotal)


def calculate_promotion_discount(promotion: DiscountRule, eligible_items: Iterable[PricedItem]) -> Decimal:
    """
    Raw promotion discount on the eligible items of an order.

    PERCENTAGE applies to the eligible items' combined value. FIXED is a per-unit amount,
    capped at each item's own line value, summed across the items.
    """
    value = Decimal(promotion.discount_value)
    items = list(eligible_items)

    if promotion.discount_type == DiscountType.PERCENTAGE:
        eligible_total = sum((Decimal(item.unit_price) * item.quantity for item in items), Decimal("0"))
        return eligible_total * value / HUNDRED

    return sum(
        (min(value * item.quantity, Decimal(item.unit_price) * item.quantity) for item in items),
        Decimal("0"),
    )


def enforce_discount_cap(
    subtotal: Decimal,
    current_total_discount: Decimal,
    proposed_discount: Decimal,
    cap_ratio: Decimal = DEFAULT_CAP_RATIO,
) -> Decimal:
    """
    Limit a new discount so the order's cumulative discount stays within ``cap_ratio`` of its subtotal.

    Returns the proposed discount when it fits, otherwise the remaining headroom. The
    ceiling is rounded down to the cent so a capped amount never pushes the persisted
    total past it.

    Raises:
        DiscountCapReachedException: When no headroom is left.
    """
    subtotal = Decimal(subtotal)
    current_total_discount = Decimal(current_total_discount)
    proposed_discount = Decimal(proposed_discount)

    max_allowed = (subtotal * Decimal(cap_ratio)).quantize(CENTS, rounding=ROUND_DOWN)

    if current_total_discount + proposed_discount <= max_allowed:
        return proposed_discount

    capped = max_allowed - current_total_discount
    if capped <= 0:
        raise DiscountCapReachedException(
            f"Cannot apply discount: maximum discount cap of {cap_ratio * HUNDRED:.0f}% has been reached. "
            f"Current discount: {quantize_amount(current_total_discount)}, order subtotal: {quantize_amount(subtotal)}"
        )

    return capped
