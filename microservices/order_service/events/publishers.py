"""
Order Service Event Publishers

Functions to publish events from order service. Every publisher is
best-effort: it logs and returns False on failure, never raises.
"""

import logging
from typing import Optional

from core.nats_client import Event, EventType, ServiceSource
from ..models import Order, OrderStatus
from .models import (
    OrderCreatedEvent,
    OrderStatusChangedEvent,
    OrderCanceledEvent,
)

logger = logging.getLogger(__name__)


async def publish_order_created(event_bus, order: Order) -> bool:
    """Publish order.created event"""
    if not event_bus:
        logger.debug("Event bus not available, skipping order.created event")
        return False

    try:
        event_data = OrderCreatedEvent(
            order_id=order.order_id,
            user_id=order.user_id,
            order_type=order.order_type.value,
            payment_method=order.payment.method.value,
            total_amount=str(order.pricing.total_amount),
            currency=order.payment.currency,
            gateway_order_id=order.payment.gateway_order_id,
            items=[item.model_dump(mode='json') for item in order.items],
        )

        event = Event(
            event_type=EventType.ORDER_CREATED,
            source=ServiceSource.ORDER_SERVICE,
            data=event_data.model_dump(mode='json')
        )

        await event_bus.publish_event(event)
        logger.info(f"Published order.created event for order {order.order_id}")
        return True

    except Exception as e:
        logger.error(f"Failed to publish order.created event: {e}")
        return False


async def publish_order_status_changed(
    event_bus,
    order: Order,
    old_status: OrderStatus
) -> bool:
    """Publish order.status_changed event"""
    if not event_bus:
        logger.debug("Event bus not available, skipping order.status_changed event")
        return False

    try:
        event_data = OrderStatusChangedEvent(
            order_id=order.order_id,
            user_id=order.user_id,
            old_status=old_status.value,
            new_status=order.status.value,
        )

        event = Event(
            event_type=EventType.ORDER_STATUS_CHANGED,
            source=ServiceSource.ORDER_SERVICE,
            data=event_data.model_dump(mode='json')
        )

        await event_bus.publish_event(event)
        logger.info(f"Published order.status_changed event for order {order.order_id}")
        return True

    except Exception as e:
        logger.error(f"Failed to publish order.status_changed event: {e}")
        return False


async def publish_order_canceled(
    event_bus,
    order: Order,
    refunded: bool = False,
    reason: Optional[str] = None
) -> bool:
    """Publish order.cancelled event"""
    if not event_bus:
        logger.debug("Event bus not available, skipping order.cancelled event")
        return False

    try:
        event_data = OrderCanceledEvent(
            order_id=order.order_id,
            user_id=order.user_id,
            order_type=order.order_type.value,
            total_amount=str(order.pricing.total_amount),
            currency=order.payment.currency,
            cancellation_reason=reason or order.cancellation_reason,
            payment_status=order.payment.payment_status.value,
            refunded=refunded,
        )

        event = Event(
            event_type=EventType.ORDER_CANCELED,
            source=ServiceSource.ORDER_SERVICE,
            data=event_data.model_dump(mode='json')
        )

        await event_bus.publish_event(event)
        logger.info(f"Published order.cancelled event for order {order.order_id}")
        return True

    except Exception as e:
        logger.error(f"Failed to publish order.cancelled event: {e}")
        return False
