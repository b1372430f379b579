"""
This module provides the communication client for the payment provider used by checkout:
- Payment Service (REST API): creation of payment intents ("orders" in the provider's API)
The class encapsulates its protocol logic, error handling, and connection management.
"""

import logging
import time

import httpx

from .errors import UpstreamError
from .models import PaymentIntent

log = logging.getLogger(__name__)


def make_receipt() -> str:
    """Opaque receipt id attached to an intent, derived from the current time."""
    return f"receipt_{int(time.time() * 1000)}"


# --- Payment Client (REST) ---
class PaymentClient:
    """
    Client for the payment provider REST API.
    Handles the creation of payment intents and error responses.
    """
    def __init__(self, settings, http_client: httpx.Client = None):
        """
        Initializes the HTTP client with proper timeout configuration.

        Args:
            settings (Settings): Provider URL, credentials and timeouts.
            http_client (httpx.Client | None): Pre-built client, used by tests and the mock provider.
        """
        self.key_id = settings.payment_key_id
        self.key_secret = settings.payment_key_secret
        if http_client is None:
            timeout_config = httpx.Timeout(settings.payment_connect_timeout,
                                           read=settings.payment_read_timeout)
            http_client = httpx.Client(base_url=settings.payment_api_url, timeout=timeout_config)
        self.client = http_client

    def close(self):
        """Closes the HTTP client session."""
        self.client.close()

    def create_intent(self, amount_minor_units: int, currency: str, idempotency_receipt: str) -> PaymentIntent:
        """
        Creates a new payment intent via the provider REST API.

        Every call creates a fresh intent; the provider does not deduplicate on
        the receipt, so a retried checkout leaves the earlier intent abandoned.

        Args:
            amount_minor_units (int): Amount in minor units (e.g. paise).
            currency (str): ISO currency code (e.g. 'INR').
            idempotency_receipt (str): Caller-supplied receipt id.
        Returns:
            PaymentIntent: Provider intent id, amount and currency.
        Raises:
            UpstreamError: If credentials are missing, the provider times out,
                cannot be reached or answers with a non-success status.
        """
        if not (self.key_id and self.key_secret):
            log.error("Payment provider keys are missing.")
            raise UpstreamError("Error creating order")

        payload = {
            "amount": amount_minor_units,
            "currency": currency,
            "receipt": idempotency_receipt,
        }

        try:
            response = self.client.post("/v1/orders", json=payload, auth=(self.key_id, self.key_secret))
            response.raise_for_status()
            data = response.json()
        except httpx.TimeoutException:
            log.error(f"[Receipt: {idempotency_receipt}] Payment provider timeout. Intent status unknown.")
            raise UpstreamError("Payment provider timed out")
        except httpx.HTTPStatusError as e:
            log.error(f"[Receipt: {idempotency_receipt}] Payment provider rejected intent "
                      f"(HTTP {e.response.status_code}).")
            raise UpstreamError("Error creating order")
        except (httpx.RequestError, ValueError) as e:
            log.error(f"[Receipt: {idempotency_receipt}] Payment provider unreachable or invalid reply: {e}")
            raise UpstreamError("Error creating order")

        try:
            intent = PaymentIntent(
                providerIntentId=data["id"],
                amountMinorUnits=data.get("amount", amount_minor_units),
                currency=data.get("currency", currency),
            )
        except (KeyError, TypeError) as e:
            log.error(f"[Receipt: {idempotency_receipt}] Provider reply without intent id: {e}")
            raise UpstreamError("Error creating order")

        log.info(f"[Receipt: {idempotency_receipt}] Payment intent {intent.providerIntentId} created "
                 f"for {intent.amountMinorUnits} {intent.currency}.")
        return intent
