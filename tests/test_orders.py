from datetime import datetime, timedelta, timezone

import pytest

from checkout_service.errors import PersistenceError
from checkout_service.models import OrderDraft, PaymentInfo, PendingCheckout, Totals
from checkout_service.orders import (
    OrderWriter, get_order, list_orders_for_user, load_pending, mark_pending_placed, save_pending, saved_address,
)
from checkout_service.store import InMemoryStore

from conftest import line


def draft(address, user_id="u1", total=350):
    return OrderDraft(
        userId=user_id,
        items=[line(150, 2, variantLabel="M", imageRef="https://img/p1.jpg")],
        address=address,
        amounts=Totals(subtotal=300, shipping=50, discount=0, total=total),
        payment=PaymentInfo(method="cod"),
    )


def test_write_keeps_persisted_layout(store, address):
    order_id = OrderWriter(store).write(draft(address))
    record = store.get("orders", order_id)

    assert set(record) == {"userId", "items", "address", "amounts", "appliedCouponCode",
                           "status", "payment", "createdAt"}
    assert set(record["amounts"]) == {"subtotal", "shipping", "discount", "total"}
    assert set(record["payment"]) == {"method", "providerIntentId", "providerPaymentId", "isVerified"}
    assert record["items"][0]["variantLabel"] == "M"
    assert isinstance(record["createdAt"], datetime)


def test_each_write_creates_a_new_document(store, address):
    writer = OrderWriter(store)
    assert writer.write(draft(address)) != writer.write(draft(address))
    assert len(store.find("orders")) == 2


def test_store_failure_becomes_persistence_error(address):
    class BrokenStore(InMemoryStore):
        def add(self, collection, data):
            raise ConnectionError("deadline exceeded")

    with pytest.raises(PersistenceError):
        OrderWriter(BrokenStore()).write(draft(address))


def test_get_order(store, address):
    order_id = OrderWriter(store).write(draft(address))
    order = get_order(store, order_id)
    assert order.id == order_id
    assert order.amounts.total == 350
    assert get_order(store, "missing") is None


def test_orders_for_user_newest_first(store, address):
    writer = OrderWriter(store)
    old_id = writer.write(draft(address, total=100))
    new_id = writer.write(draft(address, total=200))
    writer.write(draft(address, user_id="someone-else"))
    store.collections["orders"][old_id]["createdAt"] = datetime.now(timezone.utc) - timedelta(days=3)

    assert [o.id for o in list_orders_for_user(store, "u1")] == [new_id, old_id]


def test_saved_address_round_trip(store, address):
    assert saved_address(store, "u1") is None
    OrderWriter(store).save_address("u1", address)
    assert saved_address(store, "u1") == address


def test_merge_updates_nested_fields_only(store, address):
    OrderWriter(store).save_address("u1", address)
    store.merge("users", "u1", {"address": {"zip": "560002"}, "phone": "9811111111"})

    profile = store.get("users", "u1")
    assert profile["address"] == {"line1": address.line1, "city": address.city,
                                  "state": address.state, "zip": "560002"}
    assert profile["phone"] == "9811111111"
    assert profile["displayName"] == address.name


def test_pending_checkout_round_trip(store, address):
    assert load_pending(store, "order_1") is None
    pending = PendingCheckout(providerIntentId="order_1", amountMinorUnits=35000, currency="INR",
                              userId="u1", items=[line(150, 2)], address=address,
                              amounts=Totals(subtotal=300, shipping=50, discount=0, total=350))
    save_pending(store, pending)
    mark_pending_placed(store, "order_1", "abc123")

    loaded = load_pending(store, "order_1")
    assert loaded.orderId == "abc123"
    assert loaded.amounts == pending.amounts
    assert loaded.items == pending.items
