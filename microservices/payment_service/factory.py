"""
Payment Service Factory

Factory for creating the payment components with real dependencies.
This is the ONLY module that imports concrete implementations.
"""

import logging
from typing import Optional

from core.config import PaymentConfig

from .payment_reconciler import PaymentReconciler
from .refund_coordinator import RefundCoordinator

logger = logging.getLogger(__name__)


def create_gateway_client(config: Optional[PaymentConfig] = None):
    """
    Create the Razorpay client, or None when credentials are missing

    Without a gateway, COD orders still work; online operations fail with
    a Configuration error when they need the gateway.
    """
    if config is None:
        config = PaymentConfig.from_env()

    if not config.gateway_configured:
        logger.warning("Razorpay credentials not configured, online payments disabled")
        return None

    from .clients import RazorpayClient

    return RazorpayClient(config=config)


def create_refund_coordinator(
    repository,
    gateway,
    event_bus=None,
) -> RefundCoordinator:
    """Create RefundCoordinator over the shared order store and gateway"""
    return RefundCoordinator(repository=repository, gateway=gateway, event_bus=event_bus)


def create_payment_reconciler(
    repository,
    gateway,
    config: Optional[PaymentConfig] = None,
    event_bus=None,
) -> PaymentReconciler:
    """
    Create PaymentReconciler with secrets taken from PaymentConfig

    Args:
        repository: Order store shared with the order service
        gateway: Gateway client from create_gateway_client (may be None)
        config: Payment config (loaded from environment if omitted)
        event_bus: Optional event bus for event publishing
    """
    if config is None:
        config = PaymentConfig.from_env()

    if not config.webhook_secret:
        logger.warning("RAZORPAY_WEBHOOK_SECRET not set, webhooks will be rejected")

    return PaymentReconciler(
        repository=repository,
        gateway=gateway,
        key_secret=config.key_secret,
        webhook_secret=config.webhook_secret,
        event_bus=event_bus,
    )
