"""Discount price calculation.

Discounts stack onto whatever markdown a variant already carries instead of
discounting off the current price. The higher of price and compare-at price
is the *anchor*; the gap between anchor and current price is the existing
discount, and the merchant's percentage is added on top of it:

    anchor=100, current=80, discount=10  ->  existing 20% + 10% = 30%  ->  70.00

The compare-at price is pinned to the anchor so the storefront's "% off"
badge matches the total discount.
"""

from dataclasses import dataclass
from decimal import ROUND_HALF_UP, Decimal, InvalidOperation

CENT = Decimal("0.01")
HUNDRED = Decimal(100)
ZERO = Decimal(0)


@dataclass(frozen=True)
class PriceChange:
    """Price and compare-at price to write when a discount starts."""

    price: str
    compare_at_price: str


def to_decimal(value: str | float | int | Decimal) -> Decimal:
    """Parse a price value, rejecting NaN/infinity and junk strings.

    Raises:
        ValueError: If the value is not a finite number
    """
    try:
        parsed = value if isinstance(value, Decimal) else Decimal(str(value).strip())
    except InvalidOperation as e:
        raise ValueError(f"Invalid price value: {value!r}") from e
    if not parsed.is_finite():
        raise ValueError(f"Invalid price value: {value!r}")
    return parsed


def format_price(value: Decimal) -> str:
    """Round half-up to cents and render as a plain decimal string."""
    return str(value.quantize(CENT, rounding=ROUND_HALF_UP))


def anchor_price(current: Decimal, reference: Decimal | None) -> Decimal:
    """The price the discount is measured from."""
    if reference is not None and reference > current:
        return reference
    return current


def existing_discount_percent(anchor: Decimal, current: Decimal) -> Decimal:
    """Markdown already applied relative to the anchor, in percent."""
    if current < anchor:
        return (anchor - current) / anchor * HUNDRED
    return ZERO


def discounted_price(
    current_price: str,
    compare_at_price: str | None,
    discount_percent: float,
) -> PriceChange:
    """
    Compute the price to write when a discount window opens.

    Args:
        current_price: Price as read from the catalog
        compare_at_price: Compare-at price as read, or None
        discount_percent: Merchant discount to add on top of any existing markdown

    Returns:
        PriceChange with the new price (clamped at 0.00) and the anchor as compare-at

    Raises:
        ValueError: If a price or the discount is not a finite number
    """
    current = to_decimal(current_price)
    reference = to_decimal(compare_at_price) if compare_at_price not in (None, "") else None
    requested = to_decimal(discount_percent)

    anchor = anchor_price(current, reference)
    total = existing_discount_percent(anchor, current) + requested

    new_price = anchor * (HUNDRED - total) / HUNDRED
    if new_price < ZERO:
        new_price = ZERO

    return PriceChange(price=format_price(new_price), compare_at_price=format_price(anchor))
