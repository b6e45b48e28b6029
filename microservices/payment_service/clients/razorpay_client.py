"""
Razorpay Gateway Client

Async REST client for the Razorpay orders, payments and refunds APIs.
Amounts are integers in paise (smallest currency unit).
"""

import logging
from typing import Any, Dict, Optional

import httpx

from core.config import PaymentConfig
from microservices.order_service.protocols import ConfigurationError, PaymentGatewayError

logger = logging.getLogger(__name__)


class RazorpayClient:
    """Razorpay HTTP client authenticated with key id / key secret"""

    def __init__(
        self,
        config: Optional[PaymentConfig] = None,
        http_client: Optional[httpx.AsyncClient] = None,
    ):
        """
        Initialize Razorpay client

        Args:
            config: Gateway settings, loaded from environment if omitted
            http_client: Pre-built client, mainly for tests (httpx.MockTransport)
        """
        self.config = config or PaymentConfig.from_env()
        if not self.config.gateway_configured:
            raise ConfigurationError("Razorpay key id and key secret are required")

        self.base_url = self.config.api_url.rstrip('/')
        self.client = http_client or httpx.AsyncClient(
            base_url=self.base_url,
            auth=(self.config.key_id, self.config.key_secret),
            timeout=self.config.timeout_seconds,
        )

    async def close(self):
        """Close HTTP client"""
        await self.client.aclose()

    async def __aenter__(self):
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        await self.close()

    # =============================================================================
    # Orders
    # =============================================================================

    async def create_order(
        self,
        amount: int,
        currency: str,
        receipt: str,
        notes: Optional[Dict[str, str]] = None,
    ) -> Dict[str, Any]:
        """
        Create gateway order with automatic capture

        Args:
            amount: Amount in paise
            currency: ISO currency code
            receipt: Merchant receipt id (max 40 chars)
            notes: Optional key/value notes

        Returns:
            Gateway order (id, amount, currency, receipt, status)
        """
        payload: Dict[str, Any] = {
            "amount": amount,
            "currency": currency,
            "receipt": receipt,
            "payment_capture": 1,
        }
        if notes:
            payload["notes"] = notes
        return await self._request("POST", "/orders", json=payload)

    # =============================================================================
    # Payments
    # =============================================================================

    async def fetch_payment(self, payment_id: str) -> Dict[str, Any]:
        """Fetch payment details (amount, currency, status, created_at)"""
        return await self._request("GET", f"/payments/{payment_id}")

    async def refund_payment(
        self,
        payment_id: str,
        amount: int,
        notes: Optional[Dict[str, str]] = None,
    ) -> Dict[str, Any]:
        """Refund a captured payment for the given amount in paise"""
        payload: Dict[str, Any] = {"amount": amount}
        if notes:
            payload["notes"] = notes
        return await self._request("POST", f"/payments/{payment_id}/refund", json=payload)

    # =============================================================================
    # Internals
    # =============================================================================

    async def _request(self, method: str, path: str, **kwargs) -> Dict[str, Any]:
        try:
            response = await self.client.request(method, path, **kwargs)
            response.raise_for_status()
            return response.json()
        except httpx.TimeoutException as e:
            logger.error(f"Razorpay {method} {path} timed out: {e}")
            raise PaymentGatewayError(f"Payment gateway timed out on {method} {path}")
        except httpx.HTTPStatusError as e:
            description = _error_description(e.response)
            logger.error(f"Razorpay {method} {path} failed: {e.response.status_code} - {description}")
            raise PaymentGatewayError(
                f"Payment gateway rejected {method} {path}: {description}",
                {"status_code": e.response.status_code},
            )
        except httpx.HTTPError as e:
            logger.error(f"Razorpay {method} {path} transport error: {e}")
            raise PaymentGatewayError(f"Payment gateway unreachable: {e}")
        except ValueError as e:
            logger.error(f"Razorpay {method} {path} returned invalid JSON: {e}")
            raise PaymentGatewayError("Payment gateway returned an invalid response")


def _error_description(response: httpx.Response) -> str:
    try:
        body = response.json()
    except ValueError:
        return response.text
    error = body.get("error") if isinstance(body, dict) else None
    if isinstance(error, dict) and error.get("description"):
        return str(error["description"])
    return response.text
