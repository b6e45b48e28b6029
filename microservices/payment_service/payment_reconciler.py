"""
Payment Reconciler

Brings the locally stored payment state in line with the gateway. Two entry
paths reach the same end state: the checkout callback forwarded by the
client, and the gateway webhook that arrives even when the client never
calls back. Both pass the same idempotency gates, so either may run first
or both may run.
"""

import json
import logging
from datetime import datetime, timezone
from typing import Any, Callable, Dict, Optional, Union

from microservices.order_service.models import (
    Order,
    OrderStatus,
    PaymentMethod,
    PaymentStatus,
    PaymentStatusResponse,
    PaymentVerificationRequest,
    PaymentVerificationResult,
    WebhookResult,
)
from microservices.order_service.pricing import to_minor_units
from microservices.order_service.state_machine import ensure_transition_allowed, is_terminal
from microservices.order_service.protocols import (
    AmountMismatchError,
    ConcurrentUpdateError,
    ConfigurationError,
    CurrencyMismatchError,
    EventBusProtocol,
    OrderConflictError,
    OrderNotFoundError,
    OrderRepositoryProtocol,
    OrderUnprocessableError,
    OrderValidationError,
    PaymentNotCapturedError,
    SignatureInvalidError,
)
from .events.publishers import (
    publish_cod_payment_confirmed,
    publish_payment_captured,
    publish_payment_failed,
    publish_refund_confirmed,
)
from .protocols import GatewayClientProtocol
from .signatures import verify_payment_signature, verify_webhook_signature

logger = logging.getLogger(__name__)

CAPTURED = "captured"


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class PaymentReconciler:
    """
    Payment verification and settlement

    Secrets are passed in by the factory; a missing secret only fails the
    operation that needs it.
    """

    def __init__(
        self,
        repository: OrderRepositoryProtocol,
        gateway: Optional[GatewayClientProtocol] = None,
        key_secret: Optional[str] = None,
        webhook_secret: Optional[str] = None,
        event_bus: Optional[EventBusProtocol] = None,
        clock: Optional[Callable[[], datetime]] = None,
    ):
        self.repository = repository
        self.gateway = gateway
        self.key_secret = key_secret
        self.webhook_secret = webhook_secret
        self.event_bus = event_bus
        self.clock = clock or _utcnow

    # =========================================================================
    # Checkout Callback
    # =========================================================================

    async def verify_and_capture(
        self,
        request: PaymentVerificationRequest,
        scoped_user_id: Optional[str] = None,
    ) -> PaymentVerificationResult:
        """
        Verify a checkout callback and capture the payment locally.

        Raises:
            OrderValidationError: an identifier is missing
            OrderNotFoundError: no order carries this gateway order id
            OrderConflictError: not an online order, or payment already failed
            SignatureInvalidError: HMAC mismatch; the payment is marked failed
            AmountMismatchError / CurrencyMismatchError: gateway disagrees;
                the payment is marked failed
            PaymentNotCapturedError: gateway has not captured yet; no change
            PaymentGatewayError: fetching the payment failed; no change
        """
        gateway_order_id = (request.gateway_order_id or "").strip()
        gateway_payment_id = (request.gateway_payment_id or "").strip()
        signature = (request.gateway_signature or "").strip()
        if not gateway_order_id or not gateway_payment_id or not signature:
            raise OrderValidationError(
                "gateway_order_id, gateway_payment_id and gateway_signature are all required"
            )

        order = await self.repository.get_order_by_gateway_order_id(
            gateway_order_id, user_id=scoped_user_id
        )
        if not order:
            raise OrderNotFoundError(f"No order found for gateway order {gateway_order_id}")

        if order.payment.payment_status == PaymentStatus.PAID:
            logger.info(f"Order {order.order_id} already paid, callback ignored")
            return PaymentVerificationResult(order=order, already_paid=True)

        if order.payment.method != PaymentMethod.ONLINE:
            raise OrderConflictError(f"Order {order.order_id} is not an online payment order")
        if order.payment.payment_status == PaymentStatus.FAILED:
            raise OrderConflictError(
                f"Payment for order {order.order_id} has already failed. Please create a new order."
            )
        if order.payment.payment_status != PaymentStatus.PENDING:
            raise OrderConflictError(
                f"Payment for order {order.order_id} is already {order.payment.payment_status.value}"
            )
        if is_terminal(order.status):
            raise OrderConflictError(
                f"Order {order.order_id} is {order.status.value}; its payment can no longer be captured"
            )

        if not self.key_secret:
            raise ConfigurationError("Gateway key secret is not configured")

        if not verify_payment_signature(gateway_order_id, gateway_payment_id, signature, self.key_secret):
            logger.warning(f"Signature verification failed for order {order.order_id}")
            await self._mark_failed(order, SignatureInvalidError.kind.value, "signature mismatch")
            raise SignatureInvalidError(
                "Payment signature verification failed. Possible tampering detected."
            )

        if self.gateway is None:
            raise ConfigurationError("Payment gateway is not configured")
        gateway_payment = await self.gateway.fetch_payment(gateway_payment_id)

        expected_amount = to_minor_units(order.payment.amount)
        reported_amount = gateway_payment.get("amount")
        if reported_amount != expected_amount:
            message = (
                f"Amount mismatch: expected {expected_amount}, gateway reports {reported_amount}"
            )
            logger.warning(f"Order {order.order_id}: {message}")
            await self._mark_failed(order, AmountMismatchError.kind.value, message)
            raise AmountMismatchError(message)

        reported_currency = gateway_payment.get("currency")
        if reported_currency != order.payment.currency:
            message = (
                f"Currency mismatch: expected {order.payment.currency}, got {reported_currency}"
            )
            logger.warning(f"Order {order.order_id}: {message}")
            await self._mark_failed(order, CurrencyMismatchError.kind.value, message)
            raise CurrencyMismatchError(message)

        gateway_status = gateway_payment.get("status")
        if gateway_status != CAPTURED:
            raise PaymentNotCapturedError(
                f'Payment is in "{gateway_status}" state. Expected "{CAPTURED}".'
            )

        updated = order.model_copy(deep=True)
        updated.payment.payment_status = PaymentStatus.PAID
        updated.payment.transaction_id = gateway_payment_id
        updated.payment.gateway_signature = signature
        updated.payment.paid_at = self.clock()
        _advance_on_capture(updated)

        try:
            saved = await self.repository.save_order(updated)
        except ConcurrentUpdateError:
            current = await self.repository.get_order(order.order_id)
            if current and current.payment.payment_status == PaymentStatus.PAID:
                logger.info(f"Order {order.order_id} was captured concurrently, callback ignored")
                return PaymentVerificationResult(order=current, already_paid=True)
            raise
        logger.info(f"Payment {gateway_payment_id} captured for order {saved.order_id} via callback")

        await publish_payment_captured(self.event_bus, saved, source="callback")
        return PaymentVerificationResult(order=saved)

    # =========================================================================
    # Webhook
    # =========================================================================

    async def handle_webhook(
        self,
        raw_body: Union[bytes, str],
        signature: Optional[str],
    ) -> WebhookResult:
        """
        Verify and apply a gateway webhook delivery.

        The signature is checked against the raw body exactly as received.
        Unknown or unusable events are reported with processed=False.
        """
        if not self.webhook_secret:
            raise ConfigurationError("Webhook secret is not configured")

        if not verify_webhook_signature(raw_body, signature, self.webhook_secret):
            logger.warning("Rejected webhook with invalid signature")
            raise SignatureInvalidError("Invalid webhook signature")

        try:
            envelope = json.loads(raw_body)
        except (TypeError, ValueError) as e:
            logger.warning(f"Webhook body is not valid JSON: {e}")
            return WebhookResult(processed=False, reason="Malformed payload")
        if not isinstance(envelope, dict):
            return WebhookResult(processed=False, reason="Malformed payload")

        event_type = envelope.get("event")
        handlers = {
            "payment.captured": self._on_payment_captured,
            "payment.failed": self._on_payment_failed,
            "refund.processed": self._on_refund_processed,
        }
        handler = handlers.get(event_type)
        if handler is None:
            logger.info(f"Ignoring unhandled webhook event {event_type}")
            return WebhookResult(processed=False, event=event_type, reason="Unhandled event type")

        entity = _entity(envelope, "refund" if event_type == "refund.processed" else "payment")
        if entity is None:
            logger.warning(f"Webhook {event_type} carries no entity")
            return WebhookResult(processed=False, event=event_type, reason="Malformed payload")

        logger.info(f"Processing webhook {event_type}")
        return await handler(event_type, entity)

    async def _on_payment_captured(self, event_type: str, entity: Dict[str, Any]) -> WebhookResult:
        order = await self.repository.get_order_by_gateway_order_id(entity.get("order_id") or "")
        if not order:
            return WebhookResult(processed=False, event=event_type, reason="Order not found")

        if order.payment.payment_status == PaymentStatus.PAID:
            return WebhookResult(processed=True, event=event_type, already_paid=True)
        if order.payment.payment_status == PaymentStatus.REFUNDED:
            logger.warning(f"Capture webhook for refunded order {order.order_id} ignored")
            return WebhookResult(processed=False, event=event_type, reason="Payment already refunded")
        if is_terminal(order.status):
            logger.warning(f"Capture webhook for {order.status.value} order {order.order_id} ignored")
            return WebhookResult(
                processed=False, event=event_type, reason=f"Order is {order.status.value}"
            )

        updated = order.model_copy(deep=True)
        updated.payment.payment_status = PaymentStatus.PAID
        updated.payment.transaction_id = entity.get("id")
        updated.payment.paid_at = self._timestamp(entity.get("created_at"))
        _advance_on_capture(updated)

        try:
            saved = await self.repository.save_order(updated)
        except ConcurrentUpdateError:
            current = await self.repository.get_order(order.order_id)
            if current and current.payment.payment_status == PaymentStatus.PAID:
                return WebhookResult(processed=True, event=event_type, already_paid=True)
            raise
        logger.info(f"Payment {entity.get('id')} captured for order {saved.order_id} via webhook")

        await publish_payment_captured(self.event_bus, saved, source="webhook")
        return WebhookResult(processed=True, event=event_type)

    async def _on_payment_failed(self, event_type: str, entity: Dict[str, Any]) -> WebhookResult:
        order = await self.repository.get_order_by_gateway_order_id(entity.get("order_id") or "")
        # Only a pending payment can fail; paid and refunded never move back
        if not order or order.payment.payment_status != PaymentStatus.PENDING:
            return WebhookResult(
                processed=False, event=event_type, reason="Order not found or payment not pending"
            )

        description = entity.get("error_description")
        await self._mark_failed(order, entity.get("error_code") or "PAYMENT_FAILED", description)
        return WebhookResult(processed=True, event=event_type)

    async def _on_refund_processed(self, event_type: str, entity: Dict[str, Any]) -> WebhookResult:
        order = await self.repository.get_order_by_transaction_id(entity.get("payment_id") or "")
        if not order:
            return WebhookResult(processed=False, event=event_type, reason="Order not found")

        if order.payment.payment_status == PaymentStatus.REFUNDED:
            await publish_refund_confirmed(self.event_bus, order, entity)
            return WebhookResult(processed=True, event=event_type, already_refunded=True)

        updated = order.model_copy(deep=True)
        updated.payment.payment_status = PaymentStatus.REFUNDED
        saved = await self.repository.save_order(updated)
        logger.info(f"Refund {entity.get('id')} confirmed for order {saved.order_id}")

        await publish_refund_confirmed(self.event_bus, saved, entity)
        return WebhookResult(processed=True, event=event_type)

    # =========================================================================
    # Cash On Delivery And Reads
    # =========================================================================

    async def confirm_cod_payment(self, order_id: str) -> Order:
        """Record cash collected for a completed COD order"""
        order = await self.repository.get_order(order_id)
        if not order:
            raise OrderNotFoundError(f"Order not found: {order_id}")

        if order.payment.method != PaymentMethod.COD:
            raise OrderConflictError(f"Order {order_id} is not a COD order")

        if order.payment.payment_status == PaymentStatus.PAID:
            return order

        if order.status != OrderStatus.COMPLETED:
            raise OrderUnprocessableError(
                "COD payment can only be confirmed after the order is completed"
            )

        updated = order.model_copy(deep=True)
        updated.payment.payment_status = PaymentStatus.PAID
        updated.payment.paid_at = self.clock()
        saved = await self.repository.save_order(updated)
        logger.info(f"COD payment confirmed for order {order_id}")

        await publish_cod_payment_confirmed(self.event_bus, saved)
        return saved

    async def get_payment_status(
        self,
        order_id: str,
        scoped_user_id: Optional[str] = None,
    ) -> PaymentStatusResponse:
        order = await self.repository.get_order(order_id, user_id=scoped_user_id)
        if not order:
            raise OrderNotFoundError(f"Order not found: {order_id}")
        return PaymentStatusResponse(
            order_id=order.order_id,
            order_status=order.status,
            payment=order.payment,
        )

    # Private Helper Methods

    async def _mark_failed(self, order: Order, error_code: str, error_message: Optional[str]) -> Order:
        updated = order.model_copy(deep=True)
        updated.payment.payment_status = PaymentStatus.FAILED
        saved = await self.repository.save_order(updated)
        logger.info(f"Payment for order {order.order_id} marked failed ({error_code})")

        await publish_payment_failed(self.event_bus, saved, error_code, error_message)
        return saved

    def _timestamp(self, unix_seconds: Any) -> datetime:
        if isinstance(unix_seconds, (int, float)) and not isinstance(unix_seconds, bool):
            return datetime.fromtimestamp(unix_seconds, tz=timezone.utc)
        return self.clock()


def _advance_on_capture(order: Order) -> None:
    # placed -> confirmed is the only move a capture makes; later states stay put
    if order.status == OrderStatus.PLACED:
        ensure_transition_allowed(order.status, OrderStatus.CONFIRMED)
        order.status = OrderStatus.CONFIRMED
    elif is_terminal(order.status):
        raise OrderConflictError(
            f"Order {order.order_id} is {order.status.value}; its payment can no longer be captured"
        )


def _entity(envelope: Dict[str, Any], kind: str) -> Optional[Dict[str, Any]]:
    payload = envelope.get("payload")
    if not isinstance(payload, dict):
        return None
    wrapper = payload.get(kind)
    if not isinstance(wrapper, dict):
        return None
    entity = wrapper.get("entity")
    return entity if isinstance(entity, dict) else None
