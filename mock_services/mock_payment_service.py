"""
mock_payment_service.py — Mock Implementation of the Payment Provider (REST API)

This module provides a simulated payment provider for testing the checkout workflow.
It exposes a simple FastAPI application that mimics the provider's order (intent)
API and the callback its client-side widget produces once a shopper has paid.

Simulation Scenarios:
    • Successful intent creation
    • Rejected intent (HTTP 400) for receipts starting with "receipt_reject"
    • Missing credentials (HTTP 401)
    • Widget callback with a valid signature for a created intent

Endpoints:
    POST /v1/orders — Creates a payment intent.
    POST /v1/orders/{intent_id}/pay — Simulates the shopper paying in the widget.

Port:
    Default: 8001 (HTTP)
"""

import hashlib
import hmac
import logging
import os
import secrets
import time

from fastapi import Depends, FastAPI, HTTPException
from fastapi.security import HTTPBasic, HTTPBasicCredentials
from pydantic import BaseModel, Field

KEY_ID = os.environ.get("PAYMENT_KEY_ID", "rzp_test_key")
KEY_SECRET = os.environ.get("PAYMENT_KEY_SECRET", "test_secret")

app = FastAPI(title="Mock Payment Provider")
security = HTTPBasic(auto_error=False)
logging.basicConfig(level=logging.INFO)

intents = {}


class IntentRequest(BaseModel):
    """
    Represents a payment intent request payload.

    Attributes:
        amount (int): Amount in the smallest currency unit (e.g., paise).
        currency (str): ISO 4217 currency code (e.g., 'INR').
        receipt (str): Caller's receipt id for the checkout attempt.
    """
    amount: int = Field(..., gt=0)
    currency: str
    receipt: str


def check_credentials(credentials: HTTPBasicCredentials = Depends(security)):
    if credentials is None or credentials.username != KEY_ID or credentials.password != KEY_SECRET:
        raise HTTPException(status_code=401, detail={"error": {"code": "BAD_REQUEST_ERROR",
                                                               "description": "Authentication failed"}})


@app.post("/v1/orders", dependencies=[Depends(check_credentials)])
def create_intent(request: IntentRequest):
    """
    Creates a payment intent.

    Returns:
        dict: Intent record with `id`, `amount`, `currency`, `receipt`, `status` and `created_at`.

    Raises:
        HTTPException(400): If the receipt asks for a rejection.
        HTTPException(401): If the basic auth credentials are wrong.
    """
    logging.info(f"[PS] Intent request for {request.receipt} ({request.amount} {request.currency})")

    if request.receipt.startswith("receipt_reject"):
        logging.warning(f"[PS] Intent for {request.receipt} rejected.")
        raise HTTPException(status_code=400, detail={"error": {"code": "BAD_REQUEST_ERROR",
                                                               "description": "Order rejected"}})

    intent = {
        "id": f"order_{secrets.token_hex(7)}",
        "entity": "order",
        "amount": request.amount,
        "currency": request.currency,
        "receipt": request.receipt,
        "status": "created",
        "created_at": int(time.time()),
    }
    intents[intent["id"]] = intent
    return intent


@app.post("/v1/orders/{intent_id}/pay")
def pay(intent_id: str):
    """
    Simulates a completed widget payment and returns the signed callback data
    the storefront forwards to the checkout service.
    """
    intent = intents.get(intent_id)
    if intent is None:
        raise HTTPException(status_code=404, detail="Unknown order")
    payment_id = f"pay_{secrets.token_hex(7)}"
    signature = hmac.new(KEY_SECRET.encode(), f"{intent_id}|{payment_id}".encode(), hashlib.sha256).hexdigest()
    intent["status"] = "paid"
    logging.info(f"[PS] Payment {payment_id} captured for {intent_id}.")
    return {
        "razorpay_order_id": intent_id,
        "razorpay_payment_id": payment_id,
        "razorpay_signature": signature,
    }


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(app, host="0.0.0.0", port=8001)
