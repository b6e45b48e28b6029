"""
Order Service Business Logic

Order lifecycle: creation with pricing and gateway order, status
transitions, cancellation with refund of captured online payments, and
owner-scoped reads.
"""

import logging
import math
import uuid
from datetime import datetime, timezone
from typing import Any, Callable, Dict, Optional

from .models import (
    Order,
    OrderCreateRequest,
    OrderCreateResponse,
    OrderListResponse,
    OrderStatus,
    OrderType,
    Pagination,
    PaymentInfo,
    PaymentMethod,
    PaymentStatus,
)
from .pricing import PricingCalculator, to_minor_units
from .protocols import (
    ConcurrentUpdateError,
    ConfigurationError,
    EventBusProtocol,
    InvalidOrderStateError,
    OrderConflictError,
    OrderNotFoundError,
    OrderRepositoryProtocol,
    OrderValidationError,
)
from .state_machine import CANCELLABLE_STATUSES, allowed_next, ensure_transition_allowed, is_terminal
from .events.publishers import (
    publish_order_created,
    publish_order_status_changed,
    publish_order_canceled,
)

logger = logging.getLogger(__name__)

GATEWAY_PROVIDER = "razorpay"
# Gateway limit on the receipt field
MAX_RECEIPT_LENGTH = 40


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _apply_cancellation(order: Order, reason: str, cancelled_at: datetime) -> None:
    order.status = OrderStatus.CANCELLED
    order.cancelled_at = cancelled_at
    order.cancellation_reason = reason


class OrderService:
    """
    Order management business logic service

    Handles the order lifecycle. Payment capture lives in the payment
    service; refunds are delegated to the injected refund coordinator.
    """

    def __init__(
        self,
        repository: OrderRepositoryProtocol,
        gateway=None,
        refund_coordinator=None,
        event_bus: Optional[EventBusProtocol] = None,
        clock: Optional[Callable[[], datetime]] = None,
        receipt_factory: Optional[Callable[[], str]] = None,
        default_currency: str = "INR",
    ):
        """
        Initialize Order Service

        Args:
            repository: Order store (OrderRepositoryProtocol)
            gateway: Payment gateway client, required for online orders
            refund_coordinator: Refunds captured payments on cancellation
            event_bus: NATS event bus instance (optional)
            clock: Returns the current UTC time
            receipt_factory: Returns a fresh gateway receipt id
            default_currency: Currency used when the request names none
        """
        self.repository = repository
        self.gateway = gateway
        self.refund_coordinator = refund_coordinator
        self.event_bus = event_bus
        self.clock = clock or _utcnow
        self.receipt_factory = receipt_factory or self._default_receipt
        self.default_currency = default_currency.upper()

        logger.info("OrderService initialized")

    # Order Lifecycle Operations

    async def create_order(self, request: OrderCreateRequest) -> OrderCreateResponse:
        """
        Create a new order

        COD orders are stored directly. Online orders first get a gateway
        order so the client can open checkout; nothing is stored if that
        call fails.

        Returns:
            The stored order and, for online orders, the raw gateway order
        """
        self._validate_order_create_request(request)

        items, pricing = PricingCalculator.compute(request.items, request.discount)
        currency = request.currency or self.default_currency
        now = self.clock()

        payment = PaymentInfo(
            amount=pricing.total_amount,
            currency=currency,
            method=request.payment_method,
        )

        gateway_order: Optional[Dict[str, Any]] = None
        if request.payment_method == PaymentMethod.ONLINE:
            if self.gateway is None:
                raise ConfigurationError("Payment gateway is not configured")
            if pricing.total_amount <= 0:
                raise OrderValidationError("Online payment requires a positive total amount")

            receipt = self.receipt_factory()[:MAX_RECEIPT_LENGTH]
            gateway_order = await self.gateway.create_order(
                to_minor_units(pricing.total_amount), currency, receipt
            )
            payment.provider = GATEWAY_PROVIDER
            payment.gateway_order_id = gateway_order.get("id")
            logger.info(f"Gateway order {payment.gateway_order_id} created with receipt {receipt}")

        order = Order(
            order_id=f"order_{uuid.uuid4().hex[:12]}",
            user_id=request.user_id.strip(),
            order_type=request.order_type,
            items=items,
            pricing=pricing,
            address=request.address.strip() if request.order_type == OrderType.DELIVERY else None,
            dine_in_table=(
                request.dine_in_table.strip() if request.order_type == OrderType.DINE_IN else None
            ),
            status=OrderStatus.PLACED,
            payment=payment,
            created_at=now,
            updated_at=now,
        )

        order = await self.repository.create_order(order)
        logger.info(
            f"Order created: {order.order_id} for user {order.user_id} "
            f"({order.payment.method.value}, {order.pricing.total_amount} {currency})"
        )

        await publish_order_created(self.event_bus, order)
        return OrderCreateResponse(order=order, gateway_order=gateway_order)

    async def transition_order(self, order_id: str, new_status: OrderStatus) -> Order:
        """
        Move an order to new_status along the transition table

        Raises:
            OrderNotFoundError, OrderConflictError (terminal),
            InvalidOrderStateError (carries the legal next statuses)
        """
        order = await self._require_order(order_id)
        ensure_transition_allowed(order.status, new_status)

        old_status = order.status
        updated = order.model_copy(deep=True)
        updated.status = new_status
        saved = await self.repository.save_order(updated)
        logger.info(f"Order {order_id} status {old_status.value} -> {new_status.value}")

        await publish_order_status_changed(self.event_bus, saved, old_status)
        return saved

    async def cancel_order(
        self,
        order_id: str,
        reason: str,
        scoped_user_id: Optional[str] = None,
    ) -> Order:
        """
        Cancel an order that the kitchen has not started

        A captured online payment is refunded before the cancellation is
        stored. If the refund fails the order is left as it was. If the order
        changes between the refund and the write, the refund is recorded on a
        fresh copy so a retried cancel does not refund twice.
        """
        reason = (reason or "").strip()
        if not reason:
            raise OrderValidationError("Cancellation reason is required")

        order = await self._require_order(order_id, scoped_user_id)

        if is_terminal(order.status):
            raise OrderConflictError(
                f"Order is already {order.status.value}. No further updates are allowed."
            )
        if order.status not in CANCELLABLE_STATUSES:
            raise InvalidOrderStateError(
                f'Order in "{order.status.value}" status can no longer be cancelled.',
                allowed_next=allowed_next(order.status),
            )

        updated = order.model_copy(deep=True)
        refunded = False
        if (
            updated.payment.method == PaymentMethod.ONLINE
            and updated.payment.payment_status == PaymentStatus.PAID
        ):
            if self.refund_coordinator is None:
                raise ConfigurationError("Refunds are not configured")
            result = await self.refund_coordinator.initiate_refund(updated, reason, persist=False)
            updated = result.order
            refunded = True

        cancelled_at = self.clock()
        _apply_cancellation(updated, reason, cancelled_at)
        try:
            saved = await self.repository.save_order(updated)
        except ConcurrentUpdateError:
            if not refunded:
                raise
            # The gateway has already refunded; record it on the current copy
            saved = await self._persist_refund_after_conflict(order_id, reason, cancelled_at)
        logger.info(f"Order {order_id} cancelled (refunded={refunded})")

        await publish_order_canceled(self.event_bus, saved, refunded=refunded, reason=reason)
        return saved

    # Order Queries

    async def get_order(self, order_id: str, scoped_user_id: Optional[str] = None) -> Order:
        """Get one order, optionally scoped to its owner"""
        return await self._require_order(order_id, scoped_user_id)

    async def get_user_orders(
        self,
        user_id: str,
        page: int = 1,
        limit: int = 10,
        status: Optional[OrderStatus] = None,
    ) -> OrderListResponse:
        """Newest-first page of a user's orders"""
        if not user_id or not user_id.strip():
            raise OrderValidationError("user_id is required")
        return await self._page(user_id.strip(), status, page, limit)

    async def list_orders(
        self,
        status: Optional[OrderStatus] = None,
        page: int = 1,
        limit: int = 10,
    ) -> OrderListResponse:
        """Newest-first page of all orders"""
        return await self._page(None, status, page, limit)

    # Private Helper Methods

    async def _require_order(self, order_id: str, scoped_user_id: Optional[str] = None) -> Order:
        if not order_id:
            raise OrderValidationError("order_id is required")
        order = await self.repository.get_order(order_id, user_id=scoped_user_id)
        if not order:
            raise OrderNotFoundError(f"Order not found: {order_id}")
        return order

    async def _persist_refund_after_conflict(
        self,
        order_id: str,
        reason: str,
        cancelled_at: datetime,
    ) -> Order:
        fresh = (await self._require_order(order_id)).model_copy(deep=True)
        fresh.payment.payment_status = PaymentStatus.REFUNDED
        cancellable = fresh.status in CANCELLABLE_STATUSES
        if cancellable:
            _apply_cancellation(fresh, reason, cancelled_at)

        saved = await self.repository.save_order(fresh)
        logger.warning(f"Order {order_id} changed during cancellation; refund recorded on re-read copy")
        if not cancellable:
            raise OrderConflictError(
                f"Payment for order {order_id} was refunded but the order moved to "
                f"{saved.status.value} and was not cancelled"
            )
        return saved

    async def _page(
        self,
        user_id: Optional[str],
        status: Optional[OrderStatus],
        page: int,
        limit: int,
    ) -> OrderListResponse:
        if page < 1 or limit < 1:
            raise OrderValidationError("page and limit must be positive")

        total = await self.repository.count_orders(user_id=user_id, status=status)
        orders = await self.repository.list_orders(
            user_id=user_id, status=status, limit=limit, offset=(page - 1) * limit
        )
        total_pages = math.ceil(total / limit) if total else 0
        return OrderListResponse(
            orders=orders,
            pagination=Pagination(
                total=total,
                page=page,
                limit=limit,
                total_pages=total_pages,
                has_next_page=page < total_pages,
                has_previous_page=page > 1,
            ),
        )

    def _validate_order_create_request(self, request: OrderCreateRequest):
        """Validate order creation request"""
        if not request.user_id or not request.user_id.strip():
            raise OrderValidationError("user_id is required")

        if not request.items:
            raise OrderValidationError("Order must contain at least one item")

        if request.order_type == OrderType.DELIVERY:
            if not request.address or not request.address.strip():
                raise OrderValidationError("Delivery address is required for delivery orders")
        elif request.order_type == OrderType.DINE_IN:
            if not request.dine_in_table or not request.dine_in_table.strip():
                raise OrderValidationError("Table number is required for dine-in orders")

    def _default_receipt(self) -> str:
        return f"rcpt_{int(self.clock().timestamp() * 1000)}"
