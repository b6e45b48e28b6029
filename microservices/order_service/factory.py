"""
Order Service Factory

Factory functions for creating service instances with real dependencies.
This is the ONLY place that imports I/O-dependent modules.

Usage:
    from .factory import create_services
    services = create_services(settings, event_bus)
"""
from dataclasses import dataclass
from typing import Optional

from core.config import AppConfig, get_settings

from .order_service import OrderService


@dataclass
class ServiceBundle:
    """Services sharing one repository and gateway client"""
    order_service: OrderService
    payment_reconciler: object
    repository: object
    gateway: object = None


def create_order_service(
    repository,
    gateway=None,
    refund_coordinator=None,
    event_bus=None,
    default_currency: str = "INR",
) -> OrderService:
    """Create OrderService over injected collaborators"""
    return OrderService(
        repository=repository,
        gateway=gateway,
        refund_coordinator=refund_coordinator,
        event_bus=event_bus,
        default_currency=default_currency,
    )


def create_services(
    config: Optional[AppConfig] = None,
    event_bus=None,
) -> ServiceBundle:
    """
    Create OrderService and PaymentReconciler with real dependencies.

    This function imports the real repository and gateway client (which
    have I/O dependencies). Use this in production, NOT in tests.

    Args:
        config: Application config (global settings if omitted)
        event_bus: Event bus for publishing events

    Returns:
        ServiceBundle holding the wired services
    """
    # Import real implementations here (not at module level)
    from microservices.payment_service.factory import (
        create_gateway_client,
        create_payment_reconciler,
        create_refund_coordinator,
    )
    from .order_repository import OrderRepository

    config = config or get_settings()

    repository = OrderRepository(
        config=config.infrastructure,
        schema=config.service.order_schema,
    )
    gateway = create_gateway_client(config.payment)
    refund_coordinator = (
        create_refund_coordinator(repository, gateway, event_bus) if gateway else None
    )

    order_service = create_order_service(
        repository=repository,
        gateway=gateway,
        refund_coordinator=refund_coordinator,
        event_bus=event_bus,
        default_currency=config.payment.default_currency,
    )
    payment_reconciler = create_payment_reconciler(
        repository=repository,
        gateway=gateway,
        config=config.payment,
        event_bus=event_bus,
    )

    return ServiceBundle(
        order_service=order_service,
        payment_reconciler=payment_reconciler,
        repository=repository,
        gateway=gateway,
    )
