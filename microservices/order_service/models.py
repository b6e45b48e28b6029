"""
Order Service Data Models

Pydantic models for food orders, their embedded payment record, and the
request/response shapes of the order and payment endpoints.
"""

from pydantic import BaseModel, Field, field_validator, model_validator
from typing import Optional, List, Dict, Any
from datetime import datetime
from decimal import Decimal
from enum import Enum


class OrderStatus(str, Enum):
    """Order status enumeration"""
    PLACED = "placed"
    CONFIRMED = "confirmed"
    PREPARING = "preparing"
    READY_FOR_PICKUP = "ready_for_pickup"
    OUT_FOR_DELIVERY = "out_for_delivery"
    COMPLETED = "completed"
    CANCELLED = "cancelled"


class OrderType(str, Enum):
    """Order type enumeration"""
    DINE_IN = "dine_in"
    TAKE_AWAY = "take_away"
    DELIVERY = "delivery"


class PaymentMethod(str, Enum):
    """Payment method enumeration"""
    ONLINE = "online"
    COD = "cod"


class PaymentStatus(str, Enum):
    """Payment status enumeration"""
    PENDING = "pending"
    PAID = "paid"
    FAILED = "failed"
    REFUNDED = "refunded"


# Core Order Models

class OrderItem(BaseModel):
    """Line snapshot taken at order creation"""
    item_id: str
    name: str
    price: Decimal = Field(..., ge=0)
    quantity: int = Field(..., ge=1)
    total: Decimal = Field(..., ge=0)


class Pricing(BaseModel):
    """Order pricing summary"""
    sub_total: Decimal = Field(..., ge=0)
    discount: Decimal = Field(default=Decimal("0.00"), ge=0)
    total_amount: Decimal = Field(..., ge=0)


class PaymentInfo(BaseModel):
    """Payment sub-record embedded in an order"""
    amount: Decimal = Field(..., ge=0)
    currency: str = "INR"
    method: PaymentMethod
    provider: Optional[str] = None
    transaction_id: Optional[str] = None
    payment_status: PaymentStatus = PaymentStatus.PENDING
    paid_at: Optional[datetime] = None
    gateway_order_id: Optional[str] = None
    gateway_signature: Optional[str] = None


class Order(BaseModel):
    """Core order model"""
    order_id: str
    user_id: str
    order_type: OrderType
    items: List[OrderItem]
    pricing: Pricing
    address: Optional[str] = None
    dine_in_table: Optional[str] = None
    status: OrderStatus = OrderStatus.PLACED
    cancelled_at: Optional[datetime] = None
    cancellation_reason: Optional[str] = None
    payment: PaymentInfo
    created_at: datetime
    updated_at: datetime
    version: int = 1

    @model_validator(mode="after")
    def check_invariants(self) -> "Order":
        if not self.items:
            raise ValueError("Order must have at least one item")
        if self.order_type == OrderType.DELIVERY:
            if not self.address or self.dine_in_table:
                raise ValueError("Delivery orders carry an address and no table")
        elif self.order_type == OrderType.DINE_IN:
            if not self.dine_in_table or self.address:
                raise ValueError("Dine-in orders carry a table and no address")
        elif self.address or self.dine_in_table:
            raise ValueError("Take-away orders carry neither address nor table")
        if self.pricing.total_amount != self.payment.amount:
            raise ValueError("payment.amount must equal pricing.total_amount")
        return self


# Request Models

class OrderItemInput(BaseModel):
    """Raw cart line with catalog snapshot"""
    item_id: str = Field(..., min_length=1, description="Menu item reference")
    name: str = Field(..., min_length=1, description="Item name at order time")
    price: Decimal = Field(..., ge=0, description="Unit price at order time")
    quantity: int = Field(..., ge=1, description="Units ordered")

    @field_validator("price", mode="before")
    @classmethod
    def coerce_price(cls, v):
        # Floats go through str() so 10.005 is not read as 10.00499...
        if isinstance(v, float):
            return Decimal(str(v))
        return v


class OrderCreateRequest(BaseModel):
    """Create order request"""
    user_id: str = Field(..., description="User ID placing the order")
    order_type: OrderType = Field(..., description="dine_in, take_away or delivery")
    items: List[OrderItemInput] = Field(default_factory=list, description="Cart lines")
    discount: Optional[Decimal] = Field(None, ge=0, description="Discount amount")
    address: Optional[str] = Field(None, description="Required for delivery")
    dine_in_table: Optional[str] = Field(None, description="Required for dine_in")
    payment_method: PaymentMethod = Field(..., description="online or cod")
    currency: Optional[str] = Field(None, min_length=3, max_length=3, description="Defaults to the configured currency")

    @field_validator("discount", mode="before")
    @classmethod
    def coerce_discount(cls, v):
        if isinstance(v, float):
            return Decimal(str(v))
        return v

    @field_validator("currency")
    @classmethod
    def upper_currency(cls, v: Optional[str]) -> Optional[str]:
        return v.upper() if v else v


class OrderStatusUpdateRequest(BaseModel):
    """Status transition request"""
    status: OrderStatus


class OrderCancelRequest(BaseModel):
    """Cancel order request"""
    reason: str = Field(..., description="Cancellation reason")


class PaymentVerificationRequest(BaseModel):
    """Checkout callback forwarded by the client"""
    gateway_order_id: str = Field(default="", alias="razorpay_order_id")
    gateway_payment_id: str = Field(default="", alias="razorpay_payment_id")
    gateway_signature: str = Field(default="", alias="razorpay_signature")

    model_config = {"populate_by_name": True}


# Response Models

class OrderCreateResponse(BaseModel):
    """Created order plus the raw gateway order for online checkout"""
    order: Order
    gateway_order: Optional[Dict[str, Any]] = None


class Pagination(BaseModel):
    """Pagination metadata"""
    total: int
    page: int
    limit: int
    total_pages: int
    has_next_page: bool
    has_previous_page: bool


class OrderListResponse(BaseModel):
    """Order list response"""
    orders: List[Order]
    pagination: Pagination


class PaymentVerificationResult(BaseModel):
    """Outcome of callback verification"""
    order: Order
    already_paid: bool = False


class RefundResult(BaseModel):
    """Outcome of a refund request"""
    order: Order
    refund: Optional[Dict[str, Any]] = None
    already_refunded: bool = False


class WebhookResult(BaseModel):
    """Outcome of a webhook delivery"""
    processed: bool
    event: Optional[str] = None
    reason: Optional[str] = None
    already_paid: bool = False
    already_refunded: bool = False


class PaymentStatusResponse(BaseModel):
    """Payment state read model"""
    order_id: str
    order_status: OrderStatus
    payment: PaymentInfo
