"""
workflow.py — Core Orchestration Logic for Checkout

This module contains the main workflow logic for placing an order.
It coordinates pricing, coupon resolution, the payment provider and order
persistence in the correct sequence.

Workflow Overview:
    Cash on delivery:
        1. Validate cart and address
        2. Price the cart (coupon included)
        3. Write the order
    Online payment:
        1. Validate cart and address (the profile address when none is given)
        2. Price the cart, create a payment intent with the provider and
           remember what it was priced for under the intent id
        3. -- the shopper pays in the provider's widget; no message comes back if they abandon --
        4. Verify the callback signature
        5. Write the order recorded for that intent

Every attempt walks the states of `CheckoutState`. Failures end in `failed`
without any order written; validation errors send the attempt back to `idle`
so the shopper can correct the form and resubmit. Once a payment is verified
every failure is a `PersistenceError`: the money is captured and support has
to reconcile it.
"""

import logging
from enum import Enum
from typing import List, Optional

from .clients import make_receipt
from .coupons import CouponResolver, normalize_code
from .errors import CheckoutError, InvalidSignature, PersistenceError, UpstreamError, ValidationError
from .models import (
    CouponResolution, CustomerContext, OrderDraft, PaymentInfo, PaymentIntent, PaymentMethod,
    PendingCheckout, ShippingAddress, Totals,
)
from .orders import ORDERS, OrderWriter, load_pending, mark_pending_placed, save_pending, saved_address
from .pricing import compute_totals, to_minor_units
from .signature import verify_or_raise

log = logging.getLogger(__name__)


class CheckoutState(str, Enum):
    IDLE = "idle"
    VALIDATING = "validating"
    AWAITING_INTENT = "awaiting_intent"
    AWAITING_PROVIDER_CALLBACK = "awaiting_provider_callback"
    VERIFYING = "verifying"
    PLACING = "placing"
    PLACED = "placed"
    FAILED = "failed"


TRANSITIONS = {
    CheckoutState.IDLE: {CheckoutState.VALIDATING, CheckoutState.AWAITING_PROVIDER_CALLBACK},
    CheckoutState.VALIDATING: {CheckoutState.IDLE, CheckoutState.PLACING, CheckoutState.AWAITING_INTENT,
                               CheckoutState.FAILED},
    CheckoutState.AWAITING_INTENT: {CheckoutState.AWAITING_PROVIDER_CALLBACK, CheckoutState.FAILED},
    CheckoutState.AWAITING_PROVIDER_CALLBACK: {CheckoutState.VERIFYING},
    CheckoutState.VERIFYING: {CheckoutState.PLACING, CheckoutState.FAILED},
    CheckoutState.PLACING: {CheckoutState.PLACED, CheckoutState.FAILED},
    CheckoutState.PLACED: set(),
    CheckoutState.FAILED: set(),
}


class CheckoutAttempt:
    """
    One pass through the checkout flow.

    Attributes:
        state (CheckoutState): Current state.
        history (list[CheckoutState]): Every state visited, in order.
        totals (Totals | None): Priced amounts once known.
        coupon (CouponResolution | None): Coupon outcome, if a code was given.
        intent (PaymentIntent | None): Provider intent on the online path.
        order_id (str | None): Id of the written order once placed.
        error (CheckoutError | None): Failure that ended the attempt.
    """

    def __init__(self, label: str = "new"):
        self.label = label
        self.state = CheckoutState.IDLE
        self.history: List[CheckoutState] = [CheckoutState.IDLE]
        self.totals: Optional[Totals] = None
        self.coupon: Optional[CouponResolution] = None
        self.intent: Optional[PaymentIntent] = None
        self.order_id: Optional[str] = None
        self.error: Optional[CheckoutError] = None

    @property
    def log_prefix(self):
        return f"[Checkout: {self.label}]"

    def advance(self, state: CheckoutState):
        if state not in TRANSITIONS[self.state]:
            raise RuntimeError(f"Illegal checkout transition {self.state.value} -> {state.value}")
        self.state = state
        self.history.append(state)

    def fail(self, error: CheckoutError):
        self.error = error
        self.advance(CheckoutState.FAILED)
        return error


class CheckoutWorkflow:
    """
    Sequences the checkout steps for one shopper action.

    Args:
        store: Document store (FirestoreStore or InMemoryStore).
        payment_client (PaymentClient): Creates payment intents.
        settings (Settings): Shipping rule, currency, shared secret, usage tracking.
    """

    def __init__(self, store, payment_client, settings):
        self.store = store
        self.payment_client = payment_client
        self.settings = settings
        self.coupons = CouponResolver(store)
        self.writer = OrderWriter(store)

    # --- pricing ---

    def customer_context(self, user_id: Optional[str], coupon_code: Optional[str]) -> CustomerContext:
        """
        Derives the coupon's customer checks from the user's order history.

        Anonymous shoppers count as new customers without prior redemptions.
        """
        if not user_id:
            return CustomerContext()
        previous = self.store.find(ORDERS, userId=user_id)
        code = normalize_code(coupon_code)
        return CustomerContext(
            isNewCustomer=not previous,
            hasRedeemedCoupon=any(normalize_code(data.get("appliedCouponCode")) == code for _, data in previous),
        )

    def quote(self, cart, coupon_code: Optional[str] = None, user_id: Optional[str] = None):
        """
        Prices a cart with an optional coupon.

        Returns:
            tuple[Totals, CouponResolution | None]: The amounts and the coupon outcome.
                An inapplicable coupon prices as zero discount.
        """
        resolution = None
        discount = 0
        shipping_fee = self.settings.shipping_fee
        if normalize_code(coupon_code):
            resolution = self.coupons.resolve(coupon_code, cart, self.customer_context(user_id, coupon_code))
            if resolution.applicable:
                discount = resolution.discountAmount
                if resolution.freeShipping:
                    shipping_fee = 0
        totals = compute_totals(cart, self.settings.shipping_threshold, shipping_fee, discount)
        return totals, resolution

    # --- validation ---

    @staticmethod
    def _validate(attempt: CheckoutAttempt, cart, address: Optional[ShippingAddress]):
        attempt.advance(CheckoutState.VALIDATING)
        problem = None
        if not cart:
            problem = "Your cart is empty"
        elif address is None:
            problem = "Please fill in all shipping details"
        elif address.missing_fields():
            problem = f"Missing shipping details: {', '.join(address.missing_fields())}"
        if problem:
            log.warning(f"{attempt.log_prefix} Validation failed: {problem}")
            attempt.advance(CheckoutState.IDLE)
            raise ValidationError(problem)

    def _draft(self, cart, address, user_id, attempt: CheckoutAttempt, payment: PaymentInfo) -> OrderDraft:
        applied = attempt.coupon.code if attempt.coupon and attempt.coupon.applicable else None
        return OrderDraft(
            userId=user_id,
            items=cart,
            address=address,
            amounts=attempt.totals,
            appliedCouponCode=applied,
            payment=payment,
        )

    def _place(self, attempt: CheckoutAttempt, draft: OrderDraft, save_address: bool):
        attempt.advance(CheckoutState.PLACING)
        try:
            attempt.order_id = self.writer.write(draft)
        except PersistenceError as e:
            raise attempt.fail(e)
        attempt.advance(CheckoutState.PLACED)
        log.info(f"{attempt.log_prefix} Order {attempt.order_id} placed.")

        if draft.appliedCouponCode and self.settings.track_coupon_usage:
            try:
                self.coupons.record_redemption(draft.appliedCouponCode)
            except Exception as e:
                log.error(f"{attempt.log_prefix} Coupon usage for {draft.appliedCouponCode} not recorded: {e}")

        if save_address and draft.userId:
            try:
                self.writer.save_address(draft.userId, draft.address)
            except Exception as e:
                log.error(f"{attempt.log_prefix} Address for user {draft.userId} not saved: {e}")

    # --- cash on delivery ---

    def place_cod_order(self, cart, address: ShippingAddress, user_id: Optional[str] = None,
                        coupon_code: Optional[str] = None, save_address: bool = False) -> CheckoutAttempt:
        """
        Places a cash-on-delivery order: Validating -> Placing -> Placed.

        Raises:
            ValidationError: Empty cart, missing address fields or items not payable on delivery.
            PersistenceError: The order could not be written.
        """
        attempt = CheckoutAttempt(label=f"cod-{user_id or 'guest'}")
        log.info(f"{attempt.log_prefix} Starting cash-on-delivery checkout.")
        self._validate(attempt, cart, address)

        blocked = [line.name for line in cart if not line.codAvailable]
        if blocked:
            log.warning(f"{attempt.log_prefix} COD not available for: {blocked}")
            attempt.advance(CheckoutState.IDLE)
            raise ValidationError("Cash on delivery is not available for items in your cart")

        attempt.totals, attempt.coupon = self.quote(cart, coupon_code, user_id)
        draft = self._draft(cart, address, user_id, attempt, PaymentInfo(method=PaymentMethod.COD))
        self._place(attempt, draft, save_address)
        return attempt

    # --- online payment ---

    def start_online_checkout(self, cart, coupon_code: Optional[str] = None, user_id: Optional[str] = None,
                              address: Optional[ShippingAddress] = None) -> CheckoutAttempt:
        """
        Prices the cart and requests a payment intent from the provider.

        Without an address in the request the address saved on the user's
        profile is used. The cart, address and amounts are stored under the
        intent id so the paid order can be recorded exactly as priced. The
        returned attempt waits in `awaiting_provider_callback`; the shopper
        completes payment in the provider's widget and the callback is handled
        by `complete_online_checkout`.

        Raises:
            ValidationError: Empty cart or incomplete address.
            UpstreamError: The provider call failed or the checkout could not be
                stored; no order exists and nothing was paid.
        """
        attempt = CheckoutAttempt(label=f"online-{user_id or 'guest'}")
        log.info(f"{attempt.log_prefix} Starting online checkout.")
        if address is None and user_id:
            address = saved_address(self.store, user_id)
        self._validate(attempt, cart, address)

        attempt.totals, attempt.coupon = self.quote(cart, coupon_code, user_id)
        attempt.advance(CheckoutState.AWAITING_INTENT)
        try:
            attempt.intent = self.payment_client.create_intent(
                to_minor_units(attempt.totals.total), self.settings.currency, make_receipt())
        except UpstreamError as e:
            log.error(f"{attempt.log_prefix} Payment intent could not be created. Checkout stopped.")
            raise attempt.fail(e)

        attempt.label = attempt.intent.providerIntentId
        pending = PendingCheckout(
            providerIntentId=attempt.intent.providerIntentId,
            amountMinorUnits=attempt.intent.amountMinorUnits,
            currency=attempt.intent.currency,
            userId=user_id,
            items=cart,
            address=address,
            amounts=attempt.totals,
            appliedCouponCode=attempt.coupon.code if attempt.coupon and attempt.coupon.applicable else None,
        )
        try:
            save_pending(self.store, pending)
        except Exception as e:
            log.error(f"{attempt.log_prefix} Checkout could not be stored, intent abandoned: {e}")
            raise attempt.fail(UpstreamError("Error creating order"))

        attempt.advance(CheckoutState.AWAITING_PROVIDER_CALLBACK)
        log.info(f"{attempt.log_prefix} Waiting for provider callback.")
        return attempt

    def _unrecorded(self, attempt: CheckoutAttempt, provider_payment_id: str, reason: str) -> PersistenceError:
        log.critical(f"{attempt.log_prefix} Payment {provider_payment_id} verified but no order written: "
                     f"{reason}. Needs manual reconciliation.")
        return attempt.fail(PersistenceError())

    def complete_online_checkout(self, provider_intent_id: str, provider_payment_id: str,
                                 supplied_signature: str, cart=None, user_id: Optional[str] = None,
                                 coupon_code: Optional[str] = None,
                                 client_discount: Optional[float] = None,
                                 save_address: bool = False) -> CheckoutAttempt:
        """
        Handles the provider callback: Verifying -> Placing -> Placed.

        The order is recorded from the checkout stored for the intent, so it
        holds the cart, address, coupon and amounts the shopper actually paid
        for. What the browser sends back (cart, user, coupon, discount) is only
        compared and logged. A repeated callback for an intent that already has
        an order returns that order.

        Raises:
            InvalidSignature: The callback signature does not match; no order written.
            PersistenceError: Payment verified but the order could not be recorded.
        """
        attempt = CheckoutAttempt(label=provider_intent_id)
        attempt.advance(CheckoutState.AWAITING_PROVIDER_CALLBACK)
        attempt.advance(CheckoutState.VERIFYING)

        try:
            verify_or_raise(provider_intent_id, provider_payment_id, supplied_signature,
                            self.settings.payment_key_secret)
        except InvalidSignature as e:
            log.critical(f"{attempt.log_prefix} Signature mismatch for payment {provider_payment_id}. "
                         f"No order written; payment may be captured and needs reconciliation.")
            raise attempt.fail(e)
        log.info(f"{attempt.log_prefix} Payment {provider_payment_id} verified.")

        try:
            pending = load_pending(self.store, provider_intent_id)
        except Exception as e:
            raise self._unrecorded(attempt, provider_payment_id, f"checkout lookup failed ({e})")
        if pending is None:
            raise self._unrecorded(attempt, provider_payment_id, "no checkout stored for this intent")
        if to_minor_units(pending.amounts.total) != pending.amountMinorUnits:
            raise self._unrecorded(attempt, provider_payment_id,
                                   f"intent amount {pending.amountMinorUnits} does not match "
                                   f"order total {pending.amounts.total}")

        if pending.orderId:
            attempt.totals = pending.amounts
            attempt.order_id = pending.orderId
            attempt.advance(CheckoutState.PLACING)
            attempt.advance(CheckoutState.PLACED)
            log.info(f"{attempt.log_prefix} Already recorded as order {pending.orderId}.")
            return attempt

        self._compare_callback(attempt, pending, cart, user_id, coupon_code, client_discount)

        attempt.totals = pending.amounts
        payment = PaymentInfo(
            method=PaymentMethod.ONLINE,
            providerIntentId=provider_intent_id,
            providerPaymentId=provider_payment_id,
            isVerified=True,
        )
        draft = OrderDraft(
            userId=pending.userId,
            items=pending.items,
            address=pending.address,
            amounts=pending.amounts,
            appliedCouponCode=pending.appliedCouponCode,
            payment=payment,
        )
        self._place(attempt, draft, save_address)

        try:
            mark_pending_placed(self.store, provider_intent_id, attempt.order_id)
        except Exception as e:
            log.error(f"{attempt.log_prefix} Order {attempt.order_id} not linked to its checkout: {e}")
        return attempt

    @staticmethod
    def _compare_callback(attempt, pending: PendingCheckout, cart, user_id, coupon_code, client_discount):
        paid_cart = [line.model_dump() for line in pending.items]
        if cart is not None and [line.model_dump() for line in cart] != paid_cart:
            log.critical(f"{attempt.log_prefix} Cart sent with the callback differs from the cart that was "
                         f"paid for; recording the paid cart.")
        if user_id and pending.userId and user_id != pending.userId:
            log.critical(f"{attempt.log_prefix} Callback user {user_id} differs from checkout user "
                         f"{pending.userId}; recording the checkout user.")
        if coupon_code and normalize_code(coupon_code) != normalize_code(pending.appliedCouponCode):
            log.warning(f"{attempt.log_prefix} Callback coupon {normalize_code(coupon_code)} was not applied "
                        f"when the intent was priced.")
        if client_discount is not None and abs(client_discount - pending.amounts.discount) > 0.005:
            log.warning(f"{attempt.log_prefix} Client discount {client_discount} differs from "
                        f"server discount {pending.amounts.discount}; using server amount.")
