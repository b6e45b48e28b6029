"""
Order Service HTTP Boundary Component Tests

FastAPI TestClient against the app with dependencies overridden by
in-memory services. The lifespan (database, NATS) is not started.

Usage:
    pytest tests/component/order_service/test_order_api.py -v
"""
import json

import pytest
from datetime import datetime, timezone
from decimal import Decimal
from fastapi.testclient import TestClient

from microservices.order_service import main
from microservices.order_service.models import OrderStatus, PaymentMethod, PaymentStatus
from microservices.order_service.order_service import OrderService
from microservices.payment_service.payment_reconciler import PaymentReconciler
from microservices.payment_service.refund_coordinator import RefundCoordinator
from microservices.payment_service.signatures import payment_signature, webhook_signature

from .mocks import MockEventBus, MockGatewayClient, MockOrderRepository, make_order

pytestmark = [pytest.mark.component]

KEY_SECRET = "key_secret_test"
WEBHOOK_SECRET = "webhook_secret_test"
NOW = datetime(2024, 5, 1, 12, 0, tzinfo=timezone.utc)


@pytest.fixture
def mock_repo():
    return MockOrderRepository()


@pytest.fixture
def mock_gateway():
    return MockGatewayClient()


@pytest.fixture
def client(mock_repo, mock_gateway):
    event_bus = MockEventBus()
    order_service = OrderService(
        repository=mock_repo,
        gateway=mock_gateway,
        refund_coordinator=RefundCoordinator(mock_repo, mock_gateway, event_bus),
        event_bus=event_bus,
        clock=lambda: NOW,
    )
    reconciler = PaymentReconciler(
        repository=mock_repo,
        gateway=mock_gateway,
        key_secret=KEY_SECRET,
        webhook_secret=WEBHOOK_SECRET,
        event_bus=event_bus,
        clock=lambda: NOW,
    )
    main.app.dependency_overrides[main.get_order_service] = lambda: order_service
    main.app.dependency_overrides[main.get_payment_reconciler] = lambda: reconciler
    yield TestClient(main.app)
    main.app.dependency_overrides.clear()


class TestOrderRoutes:

    def test_health(self, client):
        response = client.get("/health")
        assert response.status_code == 200
        assert response.json()["status"] == "healthy"

    def test_create_order(self, client):
        response = client.post("/api/v1/orders", json={
            "user_id": "usr_1",
            "order_type": "delivery",
            "address": "221B Baker St",
            "payment_method": "cod",
            "discount": 1,
            "items": [{"item_id": "x", "name": "Pizza", "price": 9.99, "quantity": 2}],
        })

        assert response.status_code == 201
        body = response.json()
        assert Decimal(body["order"]["pricing"]["total_amount"]) == Decimal("18.98")
        assert body["order"]["status"] == "placed"
        assert body["gateway_order"] is None

    def test_unknown_payment_method_is_validation_error(self, client):
        response = client.post("/api/v1/orders", json={
            "user_id": "usr_1",
            "order_type": "take_away",
            "payment_method": "barter",
            "items": [{"item_id": "x", "name": "Tea", "price": 10, "quantity": 1}],
        })

        assert response.status_code == 400
        assert response.json()["error_code"] == "VALIDATION_ERROR"

    def test_missing_order_is_404(self, client):
        response = client.get("/api/v1/orders/order_nope")

        assert response.status_code == 404
        assert response.json() == {
            "success": False,
            "error_code": "NOT_FOUND",
            "message": "Order not found: order_nope",
        }

    def test_owner_scope_header(self, client, mock_repo):
        mock_repo.set_order(make_order(user_id="usr_owner"))

        assert client.get("/api/v1/orders/order_test_001", headers={"X-User-Id": "usr_owner"}).status_code == 200
        assert client.get("/api/v1/orders/order_test_001", headers={"X-User-Id": "usr_other"}).status_code == 404

    def test_illegal_transition_is_422_with_allowed_next(self, client, mock_repo):
        mock_repo.set_order(make_order())

        response = client.put("/api/v1/orders/order_test_001/status", json={"status": "completed"})

        assert response.status_code == 422
        body = response.json()
        assert body["error_code"] == "UNPROCESSABLE_TRANSITION"
        assert body["details"]["allowed_next"] == ["confirmed", "cancelled"]

    def test_terminal_transition_is_409(self, client, mock_repo):
        mock_repo.set_order(make_order(status=OrderStatus.COMPLETED))

        response = client.put("/api/v1/orders/order_test_001/status", json={"status": "cancelled"})

        assert response.status_code == 409
        assert response.json()["error_code"] == "CONFLICT"

    def test_cancel(self, client, mock_repo):
        mock_repo.set_order(make_order())

        response = client.post("/api/v1/orders/order_test_001/cancel", json={"reason": "changed mind"})

        assert response.status_code == 200
        assert response.json()["status"] == "cancelled"

    def test_user_orders(self, client, mock_repo):
        mock_repo.set_order(make_order(user_id="usr_a"))

        response = client.get("/api/v1/users/usr_a/orders", params={"limit": 5})

        assert response.status_code == 200
        assert response.json()["pagination"]["total"] == 1
        assert response.json()["pagination"]["limit"] == 5


class TestPaymentRoutes:

    def _pending_online(self, mock_repo, mock_gateway):
        mock_repo.set_order(make_order(
            method=PaymentMethod.ONLINE,
            gateway_order_id="order_abc",
            amount=Decimal("280.00"),
        ))
        mock_gateway.set_payment("pay_1", amount=28000, order_id="order_abc")

    def test_verify_payment(self, client, mock_repo, mock_gateway):
        self._pending_online(mock_repo, mock_gateway)

        response = client.post("/api/v1/payments/verify", json={
            "razorpay_order_id": "order_abc",
            "razorpay_payment_id": "pay_1",
            "razorpay_signature": payment_signature("order_abc", "pay_1", KEY_SECRET),
        })

        assert response.status_code == 200
        body = response.json()
        assert body["already_paid"] is False
        assert body["order"]["payment"]["payment_status"] == "paid"
        assert body["order"]["status"] == "confirmed"

    def test_forged_signature_is_400(self, client, mock_repo, mock_gateway):
        self._pending_online(mock_repo, mock_gateway)

        response = client.post("/api/v1/payments/verify", json={
            "razorpay_order_id": "order_abc",
            "razorpay_payment_id": "pay_1",
            "razorpay_signature": "00" * 32,
        })

        assert response.status_code == 400
        assert response.json()["error_code"] == "SIGNATURE_INVALID"
        assert mock_repo.get_stored("order_test_001").payment.payment_status == PaymentStatus.FAILED

    def test_webhook_uses_raw_body(self, client, mock_repo, mock_gateway):
        self._pending_online(mock_repo, mock_gateway)
        body = json.dumps({
            "event": "payment.captured",
            "payload": {"payment": {"entity": {
                "id": "pay_1", "order_id": "order_abc", "created_at": 1714564800,
            }}},
        }, indent=2).encode()

        response = client.post(
            "/api/v1/payments/webhook",
            content=body,
            headers={
                "Content-Type": "application/json",
                "X-Razorpay-Signature": webhook_signature(body, WEBHOOK_SECRET),
            },
        )

        assert response.status_code == 200
        assert response.json()["processed"] is True
        assert mock_repo.get_stored("order_test_001").payment.payment_status == PaymentStatus.PAID

    def test_webhook_bad_signature_is_400(self, client):
        response = client.post(
            "/api/v1/payments/webhook",
            content=b'{"event":"payment.captured"}',
            headers={"X-Razorpay-Signature": "deadbeef"},
        )

        assert response.status_code == 400
        assert response.json()["error_code"] == "SIGNATURE_INVALID"

    def test_payment_status(self, client, mock_repo):
        mock_repo.set_order(make_order())

        response = client.get("/api/v1/orders/order_test_001/payment")

        assert response.status_code == 200
        assert response.json()["order_status"] == "placed"
        assert response.json()["payment"]["method"] == "cod"

    def test_cod_payment_before_completion_is_422(self, client, mock_repo):
        mock_repo.set_order(make_order())

        response = client.post("/api/v1/orders/order_test_001/cod-payment")

        assert response.status_code == 422
        assert response.json()["error_code"] == "UNPROCESSABLE"
