"""
Payment Service Event Publishers

Functions to publish events from payment service. Notifications are
best-effort: failures are logged and never undo a persisted transition.
"""

import logging
from typing import Any, Dict, Optional

from core.nats_client import Event, EventType, ServiceSource
from microservices.order_service.models import Order
from .models import (
    PaymentCapturedEvent,
    PaymentFailedEvent,
    PaymentRefundedEvent,
    RefundConfirmedEvent,
    CodPaymentConfirmedEvent,
)

logger = logging.getLogger(__name__)


async def _publish(event_bus, event_type: EventType, data: Dict[str, Any], order_id: str) -> bool:
    if not event_bus:
        logger.debug(f"Event bus not available, skipping {event_type.value} event")
        return False

    try:
        event = Event(
            event_type=event_type,
            source=ServiceSource.PAYMENT_SERVICE,
            data=data,
        )
        await event_bus.publish_event(event)
        logger.info(f"Published {event_type.value} event for order {order_id}")
        return True

    except Exception as e:
        logger.error(f"Failed to publish {event_type.value} event: {e}")
        return False


async def publish_payment_captured(event_bus, order: Order, source: str) -> bool:
    """Publish payment.captured event"""
    event_data = PaymentCapturedEvent(
        order_id=order.order_id,
        user_id=order.user_id,
        amount=str(order.payment.amount),
        currency=order.payment.currency,
        transaction_id=order.payment.transaction_id or "",
        gateway_order_id=order.payment.gateway_order_id,
        source=source,
        paid_at=order.payment.paid_at,
    )
    return await _publish(
        event_bus, EventType.PAYMENT_CAPTURED, event_data.model_dump(mode='json'), order.order_id
    )


async def publish_payment_failed(
    event_bus,
    order: Order,
    error_code: str,
    error_message: Optional[str] = None
) -> bool:
    """Publish payment.failed event"""
    event_data = PaymentFailedEvent(
        order_id=order.order_id,
        user_id=order.user_id,
        amount=str(order.payment.amount),
        currency=order.payment.currency,
        gateway_order_id=order.payment.gateway_order_id,
        error_code=error_code,
        error_message=error_message,
    )
    return await _publish(
        event_bus, EventType.PAYMENT_FAILED, event_data.model_dump(mode='json'), order.order_id
    )


async def publish_payment_refunded(
    event_bus,
    order: Order,
    refund: Optional[Dict[str, Any]] = None,
    reason: Optional[str] = None
) -> bool:
    """Publish payment.refunded event"""
    event_data = PaymentRefundedEvent(
        order_id=order.order_id,
        user_id=order.user_id,
        amount=str(order.payment.amount),
        currency=order.payment.currency,
        transaction_id=order.payment.transaction_id or "",
        refund_id=(refund or {}).get("id"),
        reason=reason,
    )
    return await _publish(
        event_bus, EventType.PAYMENT_REFUNDED, event_data.model_dump(mode='json'), order.order_id
    )


async def publish_refund_confirmed(event_bus, order: Order, refund: Dict[str, Any]) -> bool:
    """Publish payment.refund_confirmed event"""
    event_data = RefundConfirmedEvent(
        order_id=order.order_id,
        user_id=order.user_id,
        transaction_id=order.payment.transaction_id or "",
        refund_id=refund.get("id"),
        refund=refund,
    )
    return await _publish(
        event_bus, EventType.PAYMENT_REFUND_CONFIRMED, event_data.model_dump(mode='json'), order.order_id
    )


async def publish_cod_payment_confirmed(event_bus, order: Order) -> bool:
    """Publish payment.cod_confirmed event"""
    event_data = CodPaymentConfirmedEvent(
        order_id=order.order_id,
        user_id=order.user_id,
        amount=str(order.payment.amount),
        currency=order.payment.currency,
    )
    return await _publish(
        event_bus, EventType.COD_PAYMENT_CONFIRMED, event_data.model_dump(mode='json'), order.order_id
    )
