"""
Refund Coordinator Component Tests

Usage:
    pytest tests/component/payment_service/test_refund_coordinator.py -v
"""
import pytest
from decimal import Decimal

from microservices.order_service.models import PaymentMethod, PaymentStatus
from microservices.order_service.protocols import (
    ErrorKind,
    OrderConflictError,
    PaymentGatewayError,
    RefundNotPossibleError,
)
from microservices.payment_service.refund_coordinator import (
    DEFAULT_REFUND_REASON,
    RefundCoordinator,
)

from .mocks import MockEventBus, MockGatewayClient, MockOrderRepository, make_order

pytestmark = [pytest.mark.component, pytest.mark.asyncio]


@pytest.fixture
def mock_repo():
    return MockOrderRepository()


@pytest.fixture
def mock_gateway():
    return MockGatewayClient()


@pytest.fixture
def mock_event_bus():
    return MockEventBus()


@pytest.fixture
def coordinator(mock_repo, mock_gateway, mock_event_bus):
    return RefundCoordinator(mock_repo, mock_gateway, mock_event_bus)


def paid_order(**overrides):
    data = dict(
        method=PaymentMethod.ONLINE,
        payment_status=PaymentStatus.PAID,
        gateway_order_id="order_abc",
        transaction_id="pay_123",
        amount=Decimal("499.50"),
    )
    data.update(overrides)
    return make_order(**data)


class TestInitiateRefund:

    async def test_refunds_full_amount(self, coordinator, mock_repo, mock_gateway, mock_event_bus):
        mock_repo.set_order(paid_order())
        order = await mock_repo.get_order("order_test_001")

        result = await coordinator.initiate_refund(order, "duplicate order")

        calls = mock_gateway.get_calls("refund_payment")
        assert calls == [{
            "payment_id": "pay_123",
            "amount": 49950,
            "notes": {"orderId": "order_test_001", "reason": "duplicate order"},
        }]
        assert result.already_refunded is False
        assert result.refund["id"] == "rfnd_0001"
        assert result.order.payment.payment_status == PaymentStatus.REFUNDED
        assert mock_repo.get_stored("order_test_001").payment.payment_status == PaymentStatus.REFUNDED
        mock_event_bus.assert_published("payment.refunded")

    async def test_default_reason(self, coordinator, mock_repo, mock_gateway):
        mock_repo.set_order(paid_order())
        order = await mock_repo.get_order("order_test_001")

        await coordinator.initiate_refund(order)

        assert mock_gateway.get_calls("refund_payment")[0]["notes"]["reason"] == DEFAULT_REFUND_REASON

    async def test_second_refund_makes_no_gateway_call(self, coordinator, mock_repo, mock_gateway):
        mock_repo.set_order(paid_order())
        order = await mock_repo.get_order("order_test_001")
        first = await coordinator.initiate_refund(order)

        second = await coordinator.initiate_refund(first.order)

        assert second.already_refunded is True
        assert second.refund is None
        assert mock_gateway.get_call_count("refund_payment") == 1
        assert mock_repo.get_call_count("save_order") == 1

    async def test_without_transaction_is_unprocessable(self, coordinator, mock_gateway):
        order = make_order(method=PaymentMethod.ONLINE, gateway_order_id="order_abc")

        with pytest.raises(RefundNotPossibleError) as exc_info:
            await coordinator.initiate_refund(order)

        assert exc_info.value.kind == ErrorKind.UNPROCESSABLE
        assert mock_gateway.get_call_count("refund_payment") == 0

    async def test_failed_payment_conflicts(self, coordinator, mock_gateway):
        order = paid_order(payment_status=PaymentStatus.FAILED)

        with pytest.raises(OrderConflictError):
            await coordinator.initiate_refund(order)

        assert mock_gateway.get_call_count("refund_payment") == 0

    async def test_gateway_failure_leaves_order_paid(self, coordinator, mock_repo, mock_gateway):
        mock_repo.set_order(paid_order())
        mock_gateway.set_error("refund_payment", PaymentGatewayError("gateway down"))
        order = await mock_repo.get_order("order_test_001")

        with pytest.raises(PaymentGatewayError):
            await coordinator.initiate_refund(order)

        assert mock_repo.get_stored("order_test_001").payment.payment_status == PaymentStatus.PAID
        mock_repo.assert_not_called("save_order")

    async def test_persist_false_defers_write(self, coordinator, mock_repo):
        mock_repo.set_order(paid_order())
        order = await mock_repo.get_order("order_test_001")

        result = await coordinator.initiate_refund(order, persist=False)

        assert result.order.payment.payment_status == PaymentStatus.REFUNDED
        assert result.order.version == order.version
        assert mock_repo.get_stored("order_test_001").payment.payment_status == PaymentStatus.PAID
        mock_repo.assert_not_called("save_order")

    async def test_notification_failure_is_swallowed(self, mock_repo, mock_gateway):
        coordinator = RefundCoordinator(mock_repo, mock_gateway, MockEventBus(fail=True))
        mock_repo.set_order(paid_order())
        order = await mock_repo.get_order("order_test_001")

        result = await coordinator.initiate_refund(order)

        assert result.order.payment.payment_status == PaymentStatus.REFUNDED
