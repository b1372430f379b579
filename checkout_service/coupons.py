"""
coupons.py — Coupon Resolution

Looks up a coupon code, checks whether it may be applied to a cart and
reports the discount. A coupon that fails any check is reported as
inapplicable with a reason; it never aborts checkout.

Usage counting:
    Placing an order does not increment `usedCount` unless usage tracking is
    switched on (`TRACK_COUPON_USAGE`). With tracking off, concurrent
    redemptions of a limited coupon can exceed `usageLimit`.
"""

import logging
from datetime import date
from typing import Optional

from pydantic import ValidationError as ModelValidationError

from .models import Coupon, CouponKind, CouponResolution, CouponScope, CouponStatus, CustomerContext
from .pricing import cart_subtotal

log = logging.getLogger(__name__)

COUPONS = "coupons"


def normalize_code(code: Optional[str]) -> str:
    return (code or "").strip().upper()


def _in_scope(coupon: Coupon, cart) -> bool:
    if coupon.scope == CouponScope.ALL:
        return True
    targets = set(coupon.targets)
    if coupon.scope == CouponScope.CATEGORIES:
        return any(line.category in targets for line in cart)
    if coupon.scope == CouponScope.PRODUCTS:
        return any(line.productId in targets for line in cart)
    raise ValueError(f"Unknown coupon scope: {coupon.scope}")


def _rejected(coupon: Optional[Coupon], reason: str) -> CouponResolution:
    return CouponResolution(applicable=False, reason=reason, code=coupon.code if coupon else None)


def resolve_coupon(coupon: Optional[Coupon], cart, customer: CustomerContext,
                   today: Optional[date] = None) -> CouponResolution:
    """
    Evaluates a coupon against a cart.

    Args:
        coupon (Coupon | None): The stored coupon, or None when the code was not found.
        cart (list[CartLine]): Lines being purchased.
        customer (CustomerContext): Prior-order facts supplied by the caller.
        today (date | None): Evaluation date, defaults to the current date.

    Returns:
        CouponResolution: `applicable` with the discount, or a rejection reason.
            Free-shipping coupons report `freeShipping=True` and no discount amount.
    """
    if coupon is None or coupon.status != CouponStatus.ACTIVE:
        return _rejected(coupon, "Invalid coupon code")

    today = today or date.today()
    if today < coupon.activeFrom:
        return _rejected(coupon, "Coupon is not active yet")
    if coupon.activeUntil is not None and today > coupon.activeUntil:
        return _rejected(coupon, "Coupon has expired")

    subtotal = cart_subtotal(cart)
    if subtotal < coupon.minOrderValue:
        return _rejected(coupon, f"Minimum order value of {coupon.minOrderValue:g} not reached")

    if not _in_scope(coupon, cart):
        return _rejected(coupon, "Coupon does not apply to the items in your cart")

    if coupon.restrictToNewCustomers and not customer.isNewCustomer:
        return _rejected(coupon, "Coupon is only valid on your first order")

    if coupon.usageLimit > 0 and coupon.usedCount >= coupon.usageLimit:
        return _rejected(coupon, "Coupon usage limit reached")

    if coupon.oneUsePerCustomer and customer.hasRedeemedCoupon:
        return _rejected(coupon, "Coupon already used")

    if coupon.kind == CouponKind.PERCENTAGE:
        return CouponResolution(applicable=True, code=coupon.code,
                                discountAmount=subtotal * coupon.value / 100)
    if coupon.kind == CouponKind.FIXED:
        return CouponResolution(applicable=True, code=coupon.code, discountAmount=coupon.value)
    if coupon.kind == CouponKind.FREE_SHIPPING:
        return CouponResolution(applicable=True, code=coupon.code, freeShipping=True)
    raise ValueError(f"Unknown coupon kind: {coupon.kind}")


class CouponResolver:
    """Resolves coupon codes against the `coupons` collection."""

    def __init__(self, store):
        self.store = store

    def lookup(self, code: str) -> Optional[Coupon]:
        matches = self.store.find(COUPONS, code=normalize_code(code), status="active")
        if not matches:
            return None
        doc_id, data = matches[0]
        try:
            return Coupon(**{**data, "id": doc_id})
        except ModelValidationError as e:
            log.error(f"[Coupon: {normalize_code(code)}] Stored coupon is malformed: {e}")
            return None

    def resolve(self, code: str, cart, customer: CustomerContext,
                today: Optional[date] = None) -> CouponResolution:
        coupon = self.lookup(code)
        resolution = resolve_coupon(coupon, cart, customer, today)
        if resolution.applicable:
            log.info(f"[Coupon: {resolution.code}] Applied (discount {resolution.discountAmount:g}, "
                     f"free shipping {resolution.freeShipping}).")
        else:
            log.info(f"[Coupon: {normalize_code(code)}] Not applied: {resolution.reason}")
        return resolution

    def record_redemption(self, code: str) -> bool:
        """
        Increments the coupon's `usedCount` unless its usage limit is reached.

        Only called when usage tracking is enabled.

        Returns:
            bool: True if the redemption was counted.
        """
        coupon = self.lookup(code)
        if coupon is None or coupon.id is None:
            return False
        counted = self.store.increment_if_below(COUPONS, coupon.id, "usedCount", "usageLimit")
        if not counted:
            log.warning(f"[Coupon: {coupon.code}] Redemption not counted, usage limit reached.")
        return counted
