"""
Payment Service Event Models

Pydantic models for events published by payment service
"""

from pydantic import BaseModel, Field
from typing import Optional, Dict, Any
from datetime import datetime, timezone


def _now() -> datetime:
    return datetime.now(timezone.utc)


class PaymentCapturedEvent(BaseModel):
    """Event published when an online payment is captured"""
    order_id: str
    user_id: str
    amount: str
    currency: str
    transaction_id: str
    gateway_order_id: Optional[str] = None
    source: str = Field(..., description="callback or webhook")
    paid_at: Optional[datetime] = None
    timestamp: datetime = Field(default_factory=_now)


class PaymentFailedEvent(BaseModel):
    """Event published when a payment is marked failed"""
    order_id: str
    user_id: str
    amount: str
    currency: str
    gateway_order_id: Optional[str] = None
    error_code: str
    error_message: Optional[str] = None
    timestamp: datetime = Field(default_factory=_now)


class PaymentRefundedEvent(BaseModel):
    """Event published when a refund is issued at the gateway"""
    order_id: str
    user_id: str
    amount: str
    currency: str
    transaction_id: str
    refund_id: Optional[str] = None
    reason: Optional[str] = None
    timestamp: datetime = Field(default_factory=_now)


class RefundConfirmedEvent(BaseModel):
    """Event published when the gateway reports a refund as processed"""
    order_id: str
    user_id: str
    transaction_id: str
    refund_id: Optional[str] = None
    refund: Dict[str, Any] = {}
    timestamp: datetime = Field(default_factory=_now)


class CodPaymentConfirmedEvent(BaseModel):
    """Event published when cash is collected for a COD order"""
    order_id: str
    user_id: str
    amount: str
    currency: str
    timestamp: datetime = Field(default_factory=_now)
