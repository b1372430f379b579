"""
orders.py — Order Persistence

Writes finalized orders into the `orders` collection and reads them back for
the order-success and order-history screens. Each checkout appends a new
document; nothing here updates an existing order.

Online checkouts also keep a `pending_checkouts` record per payment intent,
holding the cart, address and amounts the intent was created for.

Not done on placement: product stock is not decremented and coupon usage is
only counted when usage tracking is enabled (see coupons.py).
"""

import logging
from datetime import datetime, timezone
from typing import List, Optional

from .errors import PersistenceError
from .models import Order, OrderDraft, PendingCheckout, ShippingAddress

log = logging.getLogger(__name__)

ORDERS = "orders"
USERS = "users"
PENDING_CHECKOUTS = "pending_checkouts"


class OrderWriter:
    """Appends orders to the document store."""

    def __init__(self, store):
        self.store = store

    def write(self, draft: OrderDraft) -> str:
        """
        Persists an order as a single document write.

        Args:
            draft (OrderDraft): Complete order; `createdAt` is stamped here.

        Returns:
            str: The generated order id.

        Raises:
            PersistenceError: If the store rejects the write.
        """
        record = draft.model_dump(mode="json")
        record["createdAt"] = datetime.now(timezone.utc)
        try:
            order_id = self.store.add(ORDERS, record)
        except Exception as e:
            log.critical(f"[Intent: {draft.payment.providerIntentId}] Order write failed for user "
                         f"{draft.userId}: {e}", exc_info=True)
            raise PersistenceError() from e
        log.info(f"[Order: {order_id}] Order stored ({draft.payment.method.value}, total {draft.amounts.total}).")
        return order_id

    def save_address(self, user_id: str, address: ShippingAddress):
        """Remembers the shipping address on the user's profile document."""
        self.store.merge(USERS, user_id, {
            "displayName": address.name,
            "phone": address.phone,
            "address": {
                "line1": address.line1,
                "city": address.city,
                "state": address.state,
                "zip": address.zip,
            },
        })


def saved_address(store, user_id: str) -> Optional[ShippingAddress]:
    """Returns the address remembered on the user's profile, if any."""
    profile = store.get(USERS, user_id)
    if not profile or not profile.get("address"):
        return None
    return ShippingAddress(
        name=profile.get("displayName", ""),
        phone=profile.get("phone", ""),
        **profile["address"],
    )


def get_order(store, order_id: str) -> Optional[Order]:
    data = store.get(ORDERS, order_id)
    if data is None:
        return None
    return Order(id=order_id, **data)


def list_orders_for_user(store, user_id: str) -> List[Order]:
    orders = [Order(id=key, **data) for key, data in store.find(ORDERS, userId=user_id)]
    return sorted(orders, key=lambda order: order.createdAt, reverse=True)


def save_pending(store, pending: PendingCheckout):
    record = pending.model_dump(mode="json")
    record["createdAt"] = datetime.now(timezone.utc)
    store.put(PENDING_CHECKOUTS, pending.providerIntentId, record)


def load_pending(store, provider_intent_id: str) -> Optional[PendingCheckout]:
    data = store.get(PENDING_CHECKOUTS, provider_intent_id)
    if data is None:
        return None
    return PendingCheckout(**data)


def mark_pending_placed(store, provider_intent_id: str, order_id: str):
    store.merge(PENDING_CHECKOUTS, provider_intent_id, {"orderId": order_id})
