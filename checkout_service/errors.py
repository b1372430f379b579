"""
errors.py — Checkout Error Taxonomy

Every failure the checkout flow can surface is one of these exceptions. Each
carries the message shown to the shopper and the HTTP status the API answers
with; internal details (provider responses, secrets) stay in the log.
"""


class CheckoutError(Exception):
    """Base class for all checkout failures."""
    status_code = 500
    public_message = "Checkout failed"

    def __init__(self, message=None):
        super().__init__(message or self.public_message)
        self.message = message or self.public_message


class ValidationError(CheckoutError):
    """Cart or address input is incomplete. The shopper corrects and resubmits."""
    status_code = 400
    public_message = "Please fill in all shipping details"


class CouponInapplicable(CheckoutError):
    """A coupon failed one of its checks. Callers degrade to zero discount."""
    status_code = 400
    public_message = "Invalid coupon code"


class UpstreamError(CheckoutError):
    """The payment provider is unreachable, misconfigured or rejected the call."""
    status_code = 500
    public_message = "Error creating order"


class InvalidSignature(CheckoutError):
    """The provider callback signature does not match."""
    status_code = 400
    public_message = "Invalid Signature"


class PersistenceError(CheckoutError):
    """The order could not be written. Payment may already have been captured."""
    status_code = 500
    public_message = "Payment succeeded but order recording failed, contact support"
