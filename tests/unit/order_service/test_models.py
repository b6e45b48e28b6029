"""
Order Models Unit Tests

Usage:
    pytest tests/unit/order_service/test_models.py -v
"""
import pytest
from datetime import datetime, timezone
from decimal import Decimal
from pydantic import ValidationError

from microservices.order_service.models import (
    Order,
    OrderCreateRequest,
    OrderItem,
    OrderStatus,
    OrderType,
    PaymentInfo,
    PaymentMethod,
    PaymentStatus,
    PaymentVerificationRequest,
    Pricing,
)
from microservices.order_service.protocols import (
    ErrorKind,
    InvalidOrderStateError,
    OrderNotFoundError,
    PaymentGatewayError,
    RefundNotPossibleError,
)

pytestmark = [pytest.mark.unit]

NOW = datetime(2024, 5, 1, tzinfo=timezone.utc)


def _order_kwargs(**overrides):
    amount = Decimal("50.00")
    kwargs = dict(
        order_id="order_abc",
        user_id="usr_1",
        order_type=OrderType.TAKE_AWAY,
        items=[OrderItem(item_id="x", name="Vada", price=amount, quantity=1, total=amount)],
        pricing=Pricing(sub_total=amount, total_amount=amount),
        payment=PaymentInfo(amount=amount, method=PaymentMethod.COD),
        created_at=NOW,
        updated_at=NOW,
    )
    kwargs.update(overrides)
    return kwargs


class TestOrderModel:

    def test_defaults(self):
        order = Order(**_order_kwargs())
        assert order.status == OrderStatus.PLACED
        assert order.payment.payment_status == PaymentStatus.PENDING
        assert order.payment.currency == "INR"
        assert order.version == 1

    def test_requires_items(self):
        with pytest.raises(ValidationError):
            Order(**_order_kwargs(items=[]))

    def test_delivery_requires_address(self):
        with pytest.raises(ValidationError):
            Order(**_order_kwargs(order_type=OrderType.DELIVERY))
        order = Order(**_order_kwargs(order_type=OrderType.DELIVERY, address="221B Baker St"))
        assert order.address == "221B Baker St"

    def test_dine_in_requires_table_and_no_address(self):
        with pytest.raises(ValidationError):
            Order(**_order_kwargs(order_type=OrderType.DINE_IN))
        with pytest.raises(ValidationError):
            Order(**_order_kwargs(order_type=OrderType.DINE_IN, dine_in_table="T1", address="x"))

    def test_take_away_carries_neither(self):
        with pytest.raises(ValidationError):
            Order(**_order_kwargs(address="somewhere"))

    def test_payment_amount_must_match_total(self):
        with pytest.raises(ValidationError):
            Order(**_order_kwargs(payment=PaymentInfo(amount=Decimal("49.99"), method=PaymentMethod.COD)))

    def test_json_round_trip_keeps_decimals(self):
        order = Order(**_order_kwargs())
        restored = Order.model_validate(order.model_dump(mode="json"))
        assert restored == order
        assert isinstance(restored.pricing.total_amount, Decimal)


class TestRequestModels:

    def test_create_request_coerces_float_through_str(self):
        request = OrderCreateRequest(
            user_id="usr_1",
            order_type="take_away",
            payment_method="cod",
            items=[{"item_id": "x", "name": "Samosa", "price": 10.005, "quantity": 3}],
            discount=0.1,
            currency="inr",
        )
        assert request.items[0].price == Decimal("10.005")
        assert request.discount == Decimal("0.1")
        assert request.currency == "INR"

    def test_create_request_currency_optional(self):
        request = OrderCreateRequest(user_id="u", order_type="take_away", payment_method="cod")
        assert request.currency is None
        assert request.items == []

    def test_create_request_rejects_unknown_payment_method(self):
        with pytest.raises(ValidationError):
            OrderCreateRequest(user_id="u", order_type="take_away", payment_method="crypto")

    def test_verification_request_accepts_gateway_field_names(self):
        request = PaymentVerificationRequest(
            razorpay_order_id="order_abc",
            razorpay_payment_id="pay_1",
            razorpay_signature="ff",
        )
        assert request.gateway_order_id == "order_abc"
        assert request.gateway_payment_id == "pay_1"
        assert request.gateway_signature == "ff"

    def test_verification_request_accepts_field_names(self):
        request = PaymentVerificationRequest(gateway_order_id="order_abc")
        assert request.gateway_order_id == "order_abc"
        assert request.gateway_payment_id == ""


class TestErrors:

    def test_error_body(self):
        err = OrderNotFoundError("Order not found: x")
        assert err.status_code == 404
        assert err.to_dict() == {
            "success": False,
            "error_code": "NOT_FOUND",
            "message": "Order not found: x",
        }

    def test_transition_error_carries_allowed_next(self):
        err = InvalidOrderStateError("nope", allowed_next=["completed"])
        assert err.to_dict()["details"] == {"allowed_next": ["completed"]}
        assert err.status_code == 422

    def test_kinds_and_statuses(self):
        assert RefundNotPossibleError("x").kind == ErrorKind.UNPROCESSABLE
        assert PaymentGatewayError("x").status_code == 502
