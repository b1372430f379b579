"""
Shared fixtures: settings, the in-memory document store, a scripted payment
client and a TestClient wired to them through dependency overrides.
"""

from datetime import date

import pytest
from fastapi.testclient import TestClient

from checkout_service import main
from checkout_service.config import Settings
from checkout_service.errors import UpstreamError
from checkout_service.models import CartLine, Coupon, PaymentIntent, ShippingAddress
from checkout_service.store import InMemoryStore
from checkout_service.workflow import CheckoutWorkflow

SECRET = "test_secret"


class FakePaymentClient:
    """Records intent requests; raises UpstreamError when `fail` is set."""

    def __init__(self, fail=False):
        self.fail = fail
        self.calls = []

    def create_intent(self, amount_minor_units, currency, idempotency_receipt):
        self.calls.append((amount_minor_units, currency, idempotency_receipt))
        if self.fail:
            raise UpstreamError("Error creating order")
        return PaymentIntent(providerIntentId=f"order_{len(self.calls)}",
                             amountMinorUnits=amount_minor_units, currency=currency)


def line(price, quantity=1, product_id="p1", **extra):
    return CartLine(productId=product_id, name=f"Product {product_id}", unitPrice=price,
                    quantity=quantity, **extra)


def seed_coupon(store, key="c1", **fields):
    data = {"code": "SAVE20", "kind": "percentage", "value": 20, "activeFrom": date(2020, 1, 1)}
    data.update(fields)
    coupon = Coupon(**data)
    store.put("coupons", key, coupon.model_dump(mode="json", exclude={"id"}))
    return coupon


@pytest.fixture
def settings():
    return Settings(
        payment_key_id="rzp_test_key",
        payment_key_secret=SECRET,
        payment_api_url="http://provider.test",
        shipping_threshold=999,
        shipping_fee=50,
    )


@pytest.fixture
def store():
    return InMemoryStore()


@pytest.fixture
def payment_client():
    return FakePaymentClient()


@pytest.fixture
def address():
    return ShippingAddress(name="Asha Rao", phone="9800000000", line1="12 MG Road",
                           city="Bengaluru", state="KA", zip="560001")


@pytest.fixture
def workflow(store, payment_client, settings):
    return CheckoutWorkflow(store, payment_client, settings)


@pytest.fixture
def api(store, payment_client, settings):
    main.app.dependency_overrides[main.get_settings] = lambda: settings
    main.app.dependency_overrides[main.get_store] = lambda: store
    main.app.dependency_overrides[main.get_payment_client] = lambda: payment_client
    yield TestClient(main.app)
    main.app.dependency_overrides.clear()
