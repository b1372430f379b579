from datetime import date, datetime, timedelta

import pytest

from checkout_service.coupons import CouponResolver, resolve_coupon
from checkout_service.models import Coupon, CustomerContext

from conftest import line, seed_coupon

TODAY = date(2026, 10, 19)
NEW = CustomerContext()
RETURNING = CustomerContext(isNewCustomer=False, hasRedeemedCoupon=True)


def coupon(**fields):
    data = {"code": "save20", "kind": "percentage", "value": 20, "activeFrom": date(2026, 1, 1)}
    data.update(fields)
    return Coupon(**data)


def test_code_is_stored_uppercase():
    assert coupon(code="  welcome10 ").code == "WELCOME10"


def test_timestamps_reduce_to_dates():
    c = coupon(activeFrom=datetime(2026, 1, 1, 15, 30))
    assert c.activeFrom == date(2026, 1, 1)


def test_percentage_discount():
    result = resolve_coupon(coupon(), [line(500, 2)], NEW, TODAY)
    assert result.applicable
    assert result.discountAmount == 200
    assert not result.freeShipping


def test_fixed_discount_is_not_capped_by_resolver():
    result = resolve_coupon(coupon(kind="fixed", value=600), [line(500)], NEW, TODAY)
    assert result.applicable
    assert result.discountAmount == 600


def test_free_shipping_signals_separately():
    result = resolve_coupon(coupon(kind="free_shipping", value=0), [line(300)], NEW, TODAY)
    assert result.applicable
    assert result.freeShipping
    assert result.discountAmount == 0


def test_unknown_code():
    result = resolve_coupon(None, [line(300)], NEW, TODAY)
    assert not result.applicable
    assert result.reason == "Invalid coupon code"


def test_disabled_coupon():
    assert not resolve_coupon(coupon(status="disabled"), [line(300)], NEW, TODAY).applicable


def test_expired_coupon_rejected():
    result = resolve_coupon(coupon(activeUntil=TODAY - timedelta(days=1)), [line(300)], NEW, TODAY)
    assert not result.applicable
    assert "expired" in result.reason


def test_last_day_still_valid():
    assert resolve_coupon(coupon(activeUntil=TODAY), [line(300)], NEW, TODAY).applicable


def test_not_yet_active():
    result = resolve_coupon(coupon(activeFrom=TODAY + timedelta(days=1)), [line(300)], NEW, TODAY)
    assert not result.applicable


@pytest.mark.parametrize("subtotal, applicable", [(900, False), (1000, True)])
def test_minimum_order_value(subtotal, applicable):
    result = resolve_coupon(coupon(minOrderValue=1000), [line(subtotal)], NEW, TODAY)
    assert result.applicable is applicable


def test_category_scope():
    c = coupon(scope="categories", targets=["shoes"])
    assert resolve_coupon(c, [line(300, category="shoes"), line(100, product_id="p2")], NEW, TODAY).applicable
    assert not resolve_coupon(c, [line(300, category="bags")], NEW, TODAY).applicable


def test_product_scope():
    c = coupon(scope="products", targets=["p9"])
    assert resolve_coupon(c, [line(300, product_id="p9")], NEW, TODAY).applicable
    result = resolve_coupon(c, [line(300, product_id="p1")], NEW, TODAY)
    assert not result.applicable
    assert result.reason == "Coupon does not apply to the items in your cart"


def test_new_customer_restriction():
    c = coupon(restrictToNewCustomers=True)
    assert resolve_coupon(c, [line(300)], NEW, TODAY).applicable
    assert not resolve_coupon(c, [line(300)], CustomerContext(isNewCustomer=False), TODAY).applicable


def test_usage_limit():
    assert resolve_coupon(coupon(usageLimit=5, usedCount=4), [line(300)], NEW, TODAY).applicable
    result = resolve_coupon(coupon(usageLimit=5, usedCount=5), [line(300)], NEW, TODAY)
    assert not result.applicable
    assert result.reason == "Coupon usage limit reached"


def test_zero_usage_limit_is_unlimited():
    assert resolve_coupon(coupon(usageLimit=0, usedCount=10_000), [line(300)], NEW, TODAY).applicable


def test_one_use_per_customer():
    c = coupon(oneUsePerCustomer=True)
    assert resolve_coupon(c, [line(300)], NEW, TODAY).applicable
    assert not resolve_coupon(c, [line(300)], RETURNING, TODAY).applicable


def test_resolver_lookup_is_case_insensitive(store):
    seed_coupon(store, code="SAVE20")
    result = CouponResolver(store).resolve(" save20 ", [line(500, 2)], NEW)
    assert result.applicable
    assert result.code == "SAVE20"
    assert result.discountAmount == 200


def test_resolver_ignores_disabled_coupons(store):
    seed_coupon(store, status="disabled")
    assert not CouponResolver(store).resolve("SAVE20", [line(500)], NEW).applicable


def test_resolver_skips_malformed_coupon(store):
    store.put("coupons", "bad", {"code": "BROKEN", "status": "active", "kind": "mystery"})
    assert CouponResolver(store).lookup("broken") is None


def test_record_redemption_stops_at_limit(store):
    seed_coupon(store, usageLimit=1)
    resolver = CouponResolver(store)
    assert resolver.record_redemption("SAVE20") is True
    assert resolver.record_redemption("SAVE20") is False
    assert store.get("coupons", "c1")["usedCount"] == 1
