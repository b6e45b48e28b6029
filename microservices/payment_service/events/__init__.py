"""
Payment Service Events Module

Exports all event-related functionality for payment service
"""

from .models import (
    PaymentCapturedEvent,
    PaymentFailedEvent,
    PaymentRefundedEvent,
    RefundConfirmedEvent,
    CodPaymentConfirmedEvent,
)

from .publishers import (
    publish_payment_captured,
    publish_payment_failed,
    publish_payment_refunded,
    publish_refund_confirmed,
    publish_cod_payment_confirmed,
)

__all__ = [
    # Event Models
    "PaymentCapturedEvent",
    "PaymentFailedEvent",
    "PaymentRefundedEvent",
    "RefundConfirmedEvent",
    "CodPaymentConfirmedEvent",
    # Publishers
    "publish_payment_captured",
    "publish_payment_failed",
    "publish_payment_refunded",
    "publish_refund_confirmed",
    "publish_cod_payment_confirmed",
]
