"""
Order Service Events Module

Exports all event-related functionality for order service
"""

from .models import (
    OrderCreatedEvent,
    OrderStatusChangedEvent,
    OrderCanceledEvent,
)

from .publishers import (
    publish_order_created,
    publish_order_status_changed,
    publish_order_canceled,
)

__all__ = [
    # Event Models
    "OrderCreatedEvent",
    "OrderStatusChangedEvent",
    "OrderCanceledEvent",
    # Publishers
    "publish_order_created",
    "publish_order_status_changed",
    "publish_order_canceled",
]
