import hashlib
import hmac

import pytest

from checkout_service.errors import InvalidSignature
from checkout_service.signature import sign, verify, verify_or_raise

SECRET = "s3cr3t"


def test_signature_matches_hmac_sha256_of_joined_ids():
    expected = hmac.new(SECRET.encode(), b"order_abc|pay_123", hashlib.sha256).hexdigest()
    assert sign("order_abc", "pay_123", SECRET) == expected


def test_valid_signature_verifies():
    signature = sign("order_abc", "pay_123", SECRET)
    assert verify("order_abc", "pay_123", signature, SECRET)


def test_any_flipped_character_fails():
    signature = sign("order_abc", "pay_123", SECRET)
    for i in range(len(signature)):
        flipped = "0" if signature[i] != "0" else "1"
        tampered = signature[:i] + flipped + signature[i + 1:]
        assert not verify("order_abc", "pay_123", tampered, SECRET)


def test_swapped_ids_fail():
    signature = sign("order_abc", "pay_123", SECRET)
    assert not verify("order_abc", "pay_999", signature, SECRET)
    assert not verify("order_xyz", "pay_123", signature, SECRET)


def test_wrong_secret_fails():
    assert not verify("order_abc", "pay_123", sign("order_abc", "pay_123", "other"), SECRET)


def test_missing_secret_or_signature_fails():
    assert not verify("order_abc", "pay_123", "", SECRET)
    assert not verify("order_abc", "pay_123", sign("order_abc", "pay_123", SECRET), None)


def test_verify_or_raise():
    verify_or_raise("order_abc", "pay_123", sign("order_abc", "pay_123", SECRET), SECRET)
    with pytest.raises(InvalidSignature):
        verify_or_raise("order_abc", "pay_123", "deadbeef", SECRET)
