"""
Payment Service Protocols

Defines interfaces for dependency injection and testing.
Following the protocol-based architecture pattern.
"""

from typing import Any, Dict, Optional, Protocol, runtime_checkable


# ====================
# Gateway Protocol
# ====================


@runtime_checkable
class GatewayClientProtocol(Protocol):
    """
    Protocol for the payment gateway.

    Amounts are integers in the smallest currency unit. Implementations
    raise PaymentGatewayError on transport, timeout or HTTP failure.
    """

    async def create_order(
        self,
        amount: int,
        currency: str,
        receipt: str,
        notes: Optional[Dict[str, str]] = None,
    ) -> Dict[str, Any]:
        """Create a gateway order; the result carries at least "id" """
        ...

    async def fetch_payment(self, payment_id: str) -> Dict[str, Any]:
        """Fetch the authoritative payment: amount, currency, status, created_at"""
        ...

    async def refund_payment(
        self,
        payment_id: str,
        amount: int,
        notes: Optional[Dict[str, str]] = None,
    ) -> Dict[str, Any]:
        """Refund a captured payment"""
        ...
