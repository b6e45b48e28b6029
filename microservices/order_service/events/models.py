"""
Order Service Event Models

Pydantic models for events published by order service
"""

from pydantic import BaseModel, Field
from typing import Optional, Dict, Any, List
from datetime import datetime, timezone


def _now() -> datetime:
    return datetime.now(timezone.utc)


class OrderCreatedEvent(BaseModel):
    """Event published when order is placed"""
    order_id: str
    user_id: str
    order_type: str
    payment_method: str
    total_amount: str
    currency: str = "INR"
    gateway_order_id: Optional[str] = None
    items: List[Dict[str, Any]] = []
    timestamp: datetime = Field(default_factory=_now)


class OrderStatusChangedEvent(BaseModel):
    """Event published when order status advances"""
    order_id: str
    user_id: str
    old_status: str
    new_status: str
    timestamp: datetime = Field(default_factory=_now)


class OrderCanceledEvent(BaseModel):
    """Event published when order is cancelled"""
    order_id: str
    user_id: str
    order_type: str
    total_amount: str
    currency: str = "INR"
    cancellation_reason: Optional[str] = None
    payment_status: str
    refunded: bool = False
    timestamp: datetime = Field(default_factory=_now)
