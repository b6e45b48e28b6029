"""
Order Service Protocols (Interfaces)

These interfaces define contracts for dependency injection.
NO import-time I/O dependencies - safe to import anywhere.
"""
from enum import Enum
from typing import Any, Dict, List, Optional, Protocol, runtime_checkable

# Import only models (no I/O dependencies)
from .models import Order, OrderStatus


# ============================================================================
# Custom Exceptions - defined here to avoid importing repository
# ============================================================================

class ErrorKind(str, Enum):
    """Machine-readable error kinds surfaced to callers"""
    VALIDATION_ERROR = "VALIDATION_ERROR"
    NOT_FOUND = "NOT_FOUND"
    CONFLICT = "CONFLICT"
    UNPROCESSABLE_TRANSITION = "UNPROCESSABLE_TRANSITION"
    UNPROCESSABLE = "UNPROCESSABLE"
    SIGNATURE_INVALID = "SIGNATURE_INVALID"
    AMOUNT_MISMATCH = "AMOUNT_MISMATCH"
    CURRENCY_MISMATCH = "CURRENCY_MISMATCH"
    NOT_CAPTURED = "NOT_CAPTURED"
    CONFIGURATION = "CONFIGURATION"
    GATEWAY_ERROR = "GATEWAY_ERROR"


class OrderServiceError(Exception):
    """Base exception for order and payment errors"""
    kind: ErrorKind = ErrorKind.CONFLICT
    status_code: int = 500

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        super().__init__(message)
        self.message = message
        self.details = details or {}

    def to_dict(self) -> Dict[str, Any]:
        body: Dict[str, Any] = {
            "success": False,
            "error_code": self.kind.value,
            "message": self.message,
        }
        if self.details:
            body["details"] = self.details
        return body


class OrderValidationError(OrderServiceError):
    """Malformed or missing input"""
    kind = ErrorKind.VALIDATION_ERROR
    status_code = 400


class OrderNotFoundError(OrderServiceError):
    """Order absent or outside the caller's scope"""
    kind = ErrorKind.NOT_FOUND
    status_code = 404


class OrderConflictError(OrderServiceError):
    """Terminal state or already-processed guard tripped"""
    kind = ErrorKind.CONFLICT
    status_code = 409


class DuplicateOrderError(OrderConflictError):
    """Unique constraint violated on insert"""


class ConcurrentUpdateError(OrderConflictError):
    """Order changed between read and write"""


class InvalidOrderStateError(OrderServiceError):
    """Status transition not in the allowed table"""
    kind = ErrorKind.UNPROCESSABLE_TRANSITION
    status_code = 422

    def __init__(self, message: str, allowed_next: Optional[List[str]] = None):
        super().__init__(message, {"allowed_next": list(allowed_next or [])})
        self.allowed_next = list(allowed_next or [])


class OrderUnprocessableError(OrderServiceError):
    """Request is well-formed but the order is not in a state to honour it"""
    kind = ErrorKind.UNPROCESSABLE
    status_code = 422


class RefundNotPossibleError(OrderUnprocessableError):
    """Refund requested for a payment that was never captured"""


class SignatureInvalidError(OrderServiceError):
    """HMAC verification failed"""
    kind = ErrorKind.SIGNATURE_INVALID
    status_code = 400


class AmountMismatchError(OrderServiceError):
    kind = ErrorKind.AMOUNT_MISMATCH
    status_code = 422


class CurrencyMismatchError(OrderServiceError):
    kind = ErrorKind.CURRENCY_MISMATCH
    status_code = 422


class PaymentNotCapturedError(OrderServiceError):
    """Gateway has not captured the payment yet; retry later"""
    kind = ErrorKind.NOT_CAPTURED
    status_code = 422


class ConfigurationError(OrderServiceError):
    """Missing secret or credential"""
    kind = ErrorKind.CONFIGURATION
    status_code = 500


class PaymentGatewayError(OrderServiceError):
    """Gateway transport, timeout or HTTP failure"""
    kind = ErrorKind.GATEWAY_ERROR
    status_code = 502


# ============================================================================
# Repository Protocol
# ============================================================================

@runtime_checkable
class OrderRepositoryProtocol(Protocol):
    """
    Interface for Order Repository.

    Implementations must provide these methods.
    Used for dependency injection to enable testing.
    """

    async def create_order(self, order: Order) -> Order:
        """Insert a new order; raises DuplicateOrderError on unique violation"""
        ...

    async def get_order(self, order_id: str, user_id: Optional[str] = None) -> Optional[Order]:
        """Get order by ID, optionally scoped to its owner"""
        ...

    async def get_order_by_gateway_order_id(
        self,
        gateway_order_id: str,
        user_id: Optional[str] = None
    ) -> Optional[Order]:
        """Get order by payment.gateway_order_id"""
        ...

    async def get_order_by_transaction_id(self, transaction_id: str) -> Optional[Order]:
        """Get order by payment.transaction_id"""
        ...

    async def save_order(self, order: Order) -> Order:
        """
        Overwrite the whole document if its version is unchanged.

        Returns the stored order with version and updated_at bumped;
        raises ConcurrentUpdateError when the stored version differs.
        """
        ...

    async def list_orders(
        self,
        user_id: Optional[str] = None,
        status: Optional[OrderStatus] = None,
        limit: int = 10,
        offset: int = 0
    ) -> List[Order]:
        """List orders newest first"""
        ...

    async def count_orders(
        self,
        user_id: Optional[str] = None,
        status: Optional[OrderStatus] = None
    ) -> int:
        """Count orders matching the filter"""
        ...


# ============================================================================
# Event Bus Protocol
# ============================================================================

@runtime_checkable
class EventBusProtocol(Protocol):
    """Interface for Event Bus - no I/O imports"""

    async def publish_event(self, event: Any) -> Any:
        """Publish an event"""
        ...
