"""
signature.py — Payment Callback Signature Verification

The provider signs `<intent id>|<payment id>` with the shared key secret
(HMAC-SHA256, hex). A callback is trusted only if the supplied signature
matches; comparison is constant time.
"""

import hashlib
import hmac

from .errors import InvalidSignature


def sign(provider_intent_id: str, provider_payment_id: str, shared_secret: str) -> str:
    message = f"{provider_intent_id}|{provider_payment_id}".encode()
    return hmac.new(shared_secret.encode(), message, hashlib.sha256).hexdigest()


def verify(provider_intent_id: str, provider_payment_id: str, supplied_signature: str,
           shared_secret: str) -> bool:
    if not (shared_secret and supplied_signature):
        return False
    expected = sign(provider_intent_id, provider_payment_id, shared_secret)
    return hmac.compare_digest(expected.encode(), supplied_signature.encode())


def verify_or_raise(provider_intent_id, provider_payment_id, supplied_signature, shared_secret):
    if not verify(provider_intent_id, provider_payment_id, supplied_signature, shared_secret):
        raise InvalidSignature()
