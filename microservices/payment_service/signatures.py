"""
Razorpay Signature Verification

HMAC-SHA256 checks for the checkout callback and for webhook deliveries.
Both compare in constant time and treat malformed input as a failed check.
"""

import hashlib
import hmac
from typing import Optional, Union


def _hmac_sha256_hex(secret: str, payload: bytes) -> str:
    return hmac.new(secret.encode(), payload, hashlib.sha256).hexdigest()


def _matches(expected_hex: str, received: Optional[str]) -> bool:
    if not received or not isinstance(received, str):
        return False
    try:
        received_bytes = bytes.fromhex(received.strip())
    except ValueError:
        return False
    return hmac.compare_digest(bytes.fromhex(expected_hex), received_bytes)


def payment_signature(gateway_order_id: str, gateway_payment_id: str, key_secret: str) -> str:
    """Signature the gateway attaches to a checkout callback"""
    body = f"{gateway_order_id}|{gateway_payment_id}".encode()
    return _hmac_sha256_hex(key_secret, body)


def verify_payment_signature(
    gateway_order_id: str,
    gateway_payment_id: str,
    signature: Optional[str],
    key_secret: str,
) -> bool:
    """HMAC_SHA256(order_id + "|" + payment_id, key_secret) == signature"""
    return _matches(payment_signature(gateway_order_id, gateway_payment_id, key_secret), signature)


def webhook_signature(raw_body: Union[bytes, str], webhook_secret: str) -> str:
    """Signature the gateway sends in X-Razorpay-Signature"""
    if isinstance(raw_body, str):
        raw_body = raw_body.encode()
    return _hmac_sha256_hex(webhook_secret, raw_body)


def verify_webhook_signature(
    raw_body: Union[bytes, str],
    signature: Optional[str],
    webhook_secret: str,
) -> bool:
    """Signature is computed over the raw body bytes, never re-serialized JSON"""
    return _matches(webhook_signature(raw_body, webhook_secret), signature)
