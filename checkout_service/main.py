"""
main.py — FastAPI Entry Point for the Checkout Service

This module provides the REST API used by the storefront checkout page.
It is the server boundary between the browser, the payment provider and the
order database.

Responsibilities:
    • Quote cart totals with coupons, identical to what the server charges
    • Create payment intents for online checkout
    • Verify provider callbacks and record paid orders
    • Record cash-on-delivery orders
    • Serve placed orders to the order-success and order-history pages
    • Provide system health information
"""

from functools import lru_cache
from typing import List

from fastapi import Depends, FastAPI, HTTPException, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

from . import errors
from .clients import PaymentClient
from .config import Settings, load_settings
from .logging_config import get_logger, setup_logging
from .models import (
    CheckoutRequest, CheckoutResponse, CodOrderRequest, Order, QuoteRequest, QuoteResponse,
    VerifyPaymentRequest, VerifyPaymentResponse,
)
from .orders import get_order, list_orders_for_user
from .store import FirestoreStore, init_firebase
from .workflow import CheckoutWorkflow

# Initialization
# Configure logging and initialize FastAPI app
setup_logging(load_settings().log_file)
log = get_logger(__name__)
app = FastAPI(title="Storefront Checkout Service")


# Dependencies (overridden in tests)
@lru_cache
def get_settings() -> Settings:
    return load_settings()


@lru_cache
def get_store():
    settings = get_settings()
    init_firebase(settings.firebase_cred_path)
    return FirestoreStore()


@lru_cache
def get_payment_client():
    return PaymentClient(get_settings())


def get_workflow(
        settings: Settings = Depends(get_settings),
        store=Depends(get_store),
        payment_client=Depends(get_payment_client),
) -> CheckoutWorkflow:
    return CheckoutWorkflow(store, payment_client, settings)


# Error translation: every checkout failure becomes {"error": message}
@app.exception_handler(errors.CheckoutError)
async def checkout_error_handler(request: Request, exc: errors.CheckoutError):
    return JSONResponse(status_code=exc.status_code, content={"error": exc.message})


@app.exception_handler(RequestValidationError)
async def request_validation_handler(request: Request, exc: RequestValidationError):
    problems = exc.errors()
    first = problems[0] if problems else {}
    field = ".".join(str(part) for part in first.get("loc", ()) if part != "body")
    message = f"Invalid request: {field}: {first.get('msg', 'malformed body')}" if field else "Invalid request"
    log.warning(f"Rejected request to {request.url.path}: {len(problems)} invalid field(s), first {field or '-'}.")
    return JSONResponse(status_code=400, content={"error": message})


@app.exception_handler(Exception)
async def unexpected_error_handler(request: Request, exc: Exception):
    log.critical(f"Unexpected error on {request.url.path}: {exc}", exc_info=True)
    return JSONResponse(status_code=500, content={"error": "Internal Server Error"})


@app.post("/api/checkout/quote", response_model=QuoteResponse)
def quote(body: QuoteRequest, workflow: CheckoutWorkflow = Depends(get_workflow)):
    """
    Prices the cart the same way checkout will charge it.

    Used by the checkout page when a coupon is applied so the shopper sees the
    discount the server will honour. An inapplicable coupon is reported with
    its reason and priced as zero discount.
    """
    totals, resolution = workflow.quote(body.cartItems, body.couponCode, body.userId)
    return QuoteResponse(amounts=totals, coupon=resolution)


# API Endpoint: checkout page → payment intent
@app.post("/api/checkout", response_model=CheckoutResponse)
def create_checkout(body: CheckoutRequest, workflow: CheckoutWorkflow = Depends(get_workflow)):
    """
    Creates a payment intent for the priced cart.

    Returns:
        dict: JSON response containing:
            - orderId (str): Provider intent id handed to the payment widget.
            - amount (int): Amount in minor units.
            - currency (str): Intent currency.
            - discountAmount (float): Discount included in the amount.

    Raises:
        ValidationError(400): If the cart is empty or the address incomplete.
        UpstreamError(500): If the provider call failed or keys are missing.
    """
    attempt = workflow.start_online_checkout(body.cartItems, body.couponCode, body.userId, body.address)
    return CheckoutResponse(
        orderId=attempt.intent.providerIntentId,
        amount=attempt.intent.amountMinorUnits,
        currency=attempt.intent.currency,
        discountAmount=attempt.totals.discount,
    )


# API Endpoint: payment widget callback → order
@app.post("/api/payment/verify", response_model=VerifyPaymentResponse)
def verify_payment(body: VerifyPaymentRequest, workflow: CheckoutWorkflow = Depends(get_workflow)):
    """
    Verifies the provider's payment signature and records the order.

    Raises:
        InvalidSignature(400): If the signature does not match.
        PersistenceError(500): If the payment was verified but the order could not be stored.
    """
    attempt = workflow.complete_online_checkout(
        provider_intent_id=body.providerIntentId,
        provider_payment_id=body.providerPaymentId,
        supplied_signature=body.suppliedSignature,
        cart=body.cartItems,
        user_id=body.userId,
        coupon_code=body.couponCode,
        client_discount=body.discountAmount,
        save_address=body.saveAddress,
    )
    return VerifyPaymentResponse(success=True, message="Order Placed", orderId=attempt.order_id)


@app.post("/api/orders/cod", response_model=VerifyPaymentResponse)
def place_cod_order(body: CodOrderRequest, workflow: CheckoutWorkflow = Depends(get_workflow)):
    """Records a cash-on-delivery order."""
    attempt = workflow.place_cod_order(body.cartItems, body.address, body.userId, body.couponCode,
                                       body.saveAddress)
    return VerifyPaymentResponse(success=True, message="Order Placed", orderId=attempt.order_id)


@app.get("/api/orders/{order_id}", response_model=Order)
def read_order(order_id: str, store=Depends(get_store)):
    order = get_order(store, order_id)
    if order is None:
        raise HTTPException(status_code=404, detail="Order not found")
    return order


@app.get("/api/users/{user_id}/orders", response_model=List[Order])
def read_user_orders(user_id: str, store=Depends(get_store)):
    return list_orders_for_user(store, user_id)


# Health Check Endpoint
@app.get("/health")
def health_check():
    """
    Simple health check endpoint.

    Can be used by monitoring systems or container orchestrators
    (e.g., Docker, Kubernetes) to verify that the service is running.

    Returns:
        dict: A basic JSON object indicating service availability.
    """
    return {"status": "ok"}
