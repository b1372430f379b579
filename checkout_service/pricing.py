"""
pricing.py — Cart Pricing

Pure arithmetic over a cart: subtotal, shipping, discount and payable total.
Nothing is rounded until the final total, which is rounded half-up so the
server arrives at the same figure the storefront shows.
"""

from decimal import Decimal, ROUND_HALF_UP
from typing import Iterable

from .models import CartLine, Totals

# Payment providers reject zero-amount intents
MINIMUM_PAYABLE = 1


def round_half_up(amount) -> int:
    return int(Decimal(str(amount)).quantize(Decimal("1"), rounding=ROUND_HALF_UP))


def cart_subtotal(cart: Iterable[CartLine]) -> float:
    return sum(line.unitPrice * line.quantity for line in cart)


def compute_totals(cart, shipping_threshold, shipping_fee, discount=0) -> Totals:
    """
    Prices a cart.

    Args:
        cart (list[CartLine]): Lines to price. May be empty.
        shipping_threshold (float): Subtotals strictly above this ship for free.
        shipping_fee (float): Fee charged otherwise. Pass 0 for free-shipping coupons.
        discount (float): Requested deduction, capped so the total never drops below the floor.

    Returns:
        Totals: subtotal, shipping, the applied (capped) discount and the integer total.
    """
    subtotal = cart_subtotal(cart)
    shipping = 0 if subtotal > shipping_threshold else shipping_fee

    ceiling = max(0, subtotal + shipping - MINIMUM_PAYABLE)
    applied_discount = min(max(0, discount), ceiling)

    total = max(MINIMUM_PAYABLE, round_half_up(subtotal + shipping - applied_discount))
    return Totals(subtotal=subtotal, shipping=shipping, discount=applied_discount, total=total)


def to_minor_units(amount) -> int:
    """Converts a major-unit amount (e.g. 350 INR) to minor units (35000 paise)."""
    return round_half_up(Decimal(str(amount)) * 100)
