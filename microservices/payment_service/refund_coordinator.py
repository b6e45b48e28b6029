"""
Refund Coordinator

Issues gateway refunds for captured online payments. The local record is
marked refunded as soon as the gateway accepts the refund; the later
refund.processed webhook only confirms it.
"""

import logging
from typing import Optional

from microservices.order_service.models import Order, PaymentStatus, RefundResult
from microservices.order_service.pricing import to_minor_units
from microservices.order_service.protocols import (
    EventBusProtocol,
    OrderConflictError,
    OrderRepositoryProtocol,
    RefundNotPossibleError,
)
from .events.publishers import publish_payment_refunded
from .protocols import GatewayClientProtocol

logger = logging.getLogger(__name__)

DEFAULT_REFUND_REASON = "Order cancelled by customer"


class RefundCoordinator:
    """Refund initiation with an idempotency gate on payment status"""

    def __init__(
        self,
        repository: OrderRepositoryProtocol,
        gateway: GatewayClientProtocol,
        event_bus: Optional[EventBusProtocol] = None,
    ):
        self.repository = repository
        self.gateway = gateway
        self.event_bus = event_bus

    async def initiate_refund(
        self,
        order: Order,
        reason: Optional[str] = None,
        persist: bool = True,
    ) -> RefundResult:
        """
        Refund the full captured amount of an order.

        Args:
            order: Order as last read from the store
            reason: Forwarded to the gateway refund notes
            persist: Save the refunded order. Cancellation passes False and
                saves once together with the status change.

        Returns:
            RefundResult with the updated order and the gateway refund

        Raises:
            RefundNotPossibleError: no captured transaction to refund
            OrderConflictError: payment is not in paid state
            PaymentGatewayError: gateway refused or timed out; order untouched
        """
        payment = order.payment
        if payment.payment_status == PaymentStatus.REFUNDED:
            logger.info(f"Order {order.order_id} already refunded, skipping gateway call")
            return RefundResult(order=order, already_refunded=True)

        if not payment.transaction_id:
            raise RefundNotPossibleError(
                f"Order {order.order_id} has no captured payment to refund"
            )

        if payment.payment_status != PaymentStatus.PAID:
            raise OrderConflictError(
                f"Cannot refund order {order.order_id} with payment status "
                f"{payment.payment_status.value}"
            )

        reason = (reason or "").strip() or DEFAULT_REFUND_REASON
        refund = await self.gateway.refund_payment(
            payment.transaction_id,
            to_minor_units(payment.amount),
            notes={"orderId": order.order_id, "reason": reason},
        )
        logger.info(
            f"Refund {refund.get('id')} issued for order {order.order_id} "
            f"amount={payment.amount} {payment.currency}"
        )

        updated = order.model_copy(deep=True)
        updated.payment.payment_status = PaymentStatus.REFUNDED
        if persist:
            updated = await self.repository.save_order(updated)

        await publish_payment_refunded(self.event_bus, updated, refund=refund, reason=reason)
        return RefundResult(order=updated, refund=refund)
