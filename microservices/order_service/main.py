"""
Order Microservice

Responsibilities:
- Order creation, status lifecycle and cancellation
- Online payment verification (checkout callback and gateway webhook)
- COD payment confirmation
- Order and payment status queries
"""

from fastapi import FastAPI, HTTPException, Depends, status, Query, Path, Body, Header, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
import uvicorn
import logging
from contextlib import asynccontextmanager
from datetime import datetime, timezone
from typing import Optional

from core.config import get_settings
from core.logger import setup_service_logger
from core.nats_client import get_event_bus
from microservices.payment_service.payment_reconciler import PaymentReconciler
from .order_service import OrderService
from .protocols import ErrorKind, OrderServiceError
from .models import (
    Order,
    OrderCancelRequest,
    OrderCreateRequest,
    OrderCreateResponse,
    OrderListResponse,
    OrderStatus,
    OrderStatusUpdateRequest,
    PaymentStatusResponse,
    PaymentVerificationRequest,
    PaymentVerificationResult,
    WebhookResult,
)

# Initialize configuration
settings = get_settings()
config = settings.service

# Setup loggers (use actual service name)
app_logger = setup_service_logger(config.service_name, settings.logging)
logger = app_logger


class OrderMicroservice:
    """Order microservice core class"""

    def __init__(self):
        self.order_service: Optional[OrderService] = None
        self.payment_reconciler: Optional[PaymentReconciler] = None
        self.repository = None
        self.gateway = None
        self.event_bus = None

    async def initialize(self, event_bus=None):
        """Initialize the microservice"""
        from .factory import create_services

        try:
            self.event_bus = event_bus
            bundle = create_services(settings, event_bus=event_bus)
            self.repository = bundle.repository
            self.gateway = bundle.gateway
            await self.repository.initialize()

            self.order_service = bundle.order_service
            self.payment_reconciler = bundle.payment_reconciler
            logger.info("Order microservice initialized successfully")
        except Exception as e:
            logger.error(f"Failed to initialize order microservice: {e}")
            raise

    async def shutdown(self):
        """Shutdown the microservice"""
        try:
            if self.gateway:
                await self.gateway.close()
            if self.repository:
                await self.repository.close()
            if self.event_bus:
                await self.event_bus.close()
                logger.info("Event bus closed")
            logger.info("Order microservice shutdown completed")
        except Exception as e:
            logger.error(f"Error during shutdown: {e}")


# Global microservice instance
order_microservice = OrderMicroservice()


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan management"""
    # Initialize event bus
    event_bus = None
    try:
        event_bus = await get_event_bus(config.service_name, settings.infrastructure.nats_servers)
        logger.info("Event bus initialized successfully")
    except Exception as e:
        logger.warning(f"Failed to initialize event bus: {e}. Continuing without event publishing.")
        event_bus = None

    await order_microservice.initialize(event_bus=event_bus)

    yield

    await order_microservice.shutdown()


# Create FastAPI application
app = FastAPI(
    title="Order Service",
    description="Food order lifecycle and payment settlement microservice",
    version="1.0.0",
    lifespan=lifespan
)


# Error mapping

@app.exception_handler(OrderServiceError)
async def order_service_error_handler(request: Request, exc: OrderServiceError):
    return JSONResponse(status_code=exc.status_code, content=exc.to_dict())


@app.exception_handler(RequestValidationError)
async def request_validation_error_handler(request: Request, exc: RequestValidationError):
    errors = [
        {"loc": list(err.get("loc", [])), "msg": err.get("msg"), "type": err.get("type")}
        for err in exc.errors()
    ]
    return JSONResponse(
        status_code=status.HTTP_400_BAD_REQUEST,
        content={
            "success": False,
            "error_code": ErrorKind.VALIDATION_ERROR.value,
            "message": "Request validation failed",
            "details": {"errors": errors},
        },
    )


@app.exception_handler(Exception)
async def unexpected_error_handler(request: Request, exc: Exception):
    logger.error(f"Unhandled error on {request.method} {request.url.path}: {type(exc).__name__}: {exc}")
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content={"success": False, "error_code": "INTERNAL_ERROR", "message": "Internal server error"},
    )


# Dependency injection
def get_order_service() -> OrderService:
    """Get order service instance"""
    if not order_microservice.order_service:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Order service not initialized"
        )
    return order_microservice.order_service


def get_payment_reconciler() -> PaymentReconciler:
    """Get payment reconciler instance"""
    if not order_microservice.payment_reconciler:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Payment reconciler not initialized"
        )
    return order_microservice.payment_reconciler


# Health check endpoints
@app.get("/health")
async def health_check():
    """Service health check"""
    return {
        "status": "healthy",
        "service": config.service_name,
        "port": config.service_port,
        "version": "1.0.0",
        "timestamp": datetime.now(timezone.utc).isoformat()
    }


# Core order management endpoints

@app.post("/api/v1/orders", response_model=OrderCreateResponse, status_code=status.HTTP_201_CREATED)
async def create_order(
    request: OrderCreateRequest,
    order_service: OrderService = Depends(get_order_service)
):
    """Create a new order"""
    return await order_service.create_order(request)


@app.get("/api/v1/orders", response_model=OrderListResponse)
async def list_orders(
    page: int = Query(1, ge=1, description="Page number"),
    limit: int = Query(10, ge=1, le=100, description="Items per page"),
    status: Optional[OrderStatus] = Query(None, description="Filter by status"),
    order_service: OrderService = Depends(get_order_service)
):
    """List all orders, newest first"""
    return await order_service.list_orders(status=status, page=page, limit=limit)


@app.get("/api/v1/orders/{order_id}", response_model=Order)
async def get_order(
    order_id: str = Path(..., description="Order ID"),
    x_user_id: Optional[str] = Header(None, alias="X-User-Id"),
    order_service: OrderService = Depends(get_order_service)
):
    """Get order details"""
    return await order_service.get_order(order_id, scoped_user_id=x_user_id)


@app.get("/api/v1/users/{user_id}/orders", response_model=OrderListResponse)
async def get_user_orders(
    user_id: str = Path(..., description="User ID"),
    page: int = Query(1, ge=1),
    limit: int = Query(10, ge=1, le=100),
    status: Optional[OrderStatus] = Query(None, description="Filter by status"),
    order_service: OrderService = Depends(get_order_service)
):
    """Get orders for a specific user"""
    return await order_service.get_user_orders(user_id, page=page, limit=limit, status=status)


@app.put("/api/v1/orders/{order_id}/status", response_model=Order)
async def update_order_status(
    order_id: str = Path(..., description="Order ID"),
    request: OrderStatusUpdateRequest = Body(...),
    order_service: OrderService = Depends(get_order_service)
):
    """Advance order status"""
    return await order_service.transition_order(order_id, request.status)


@app.post("/api/v1/orders/{order_id}/cancel", response_model=Order)
async def cancel_order(
    order_id: str = Path(..., description="Order ID"),
    request: OrderCancelRequest = Body(...),
    x_user_id: Optional[str] = Header(None, alias="X-User-Id"),
    order_service: OrderService = Depends(get_order_service)
):
    """Cancel an order, refunding a captured online payment"""
    return await order_service.cancel_order(order_id, request.reason, scoped_user_id=x_user_id)


# Payment endpoints

@app.post("/api/v1/payments/verify", response_model=PaymentVerificationResult)
async def verify_payment(
    request: PaymentVerificationRequest,
    x_user_id: Optional[str] = Header(None, alias="X-User-Id"),
    reconciler: PaymentReconciler = Depends(get_payment_reconciler)
):
    """Verify the checkout callback and capture the payment"""
    return await reconciler.verify_and_capture(request, scoped_user_id=x_user_id)


@app.post("/api/v1/payments/webhook", response_model=WebhookResult)
async def payment_webhook(
    request: Request,
    x_razorpay_signature: Optional[str] = Header(None, alias="X-Razorpay-Signature"),
    reconciler: PaymentReconciler = Depends(get_payment_reconciler)
):
    """Gateway webhook; the signature covers the raw body"""
    raw_body = await request.body()
    return await reconciler.handle_webhook(raw_body, x_razorpay_signature)


@app.post("/api/v1/orders/{order_id}/cod-payment", response_model=Order)
async def confirm_cod_payment(
    order_id: str = Path(..., description="Order ID"),
    reconciler: PaymentReconciler = Depends(get_payment_reconciler)
):
    """Record cash collected for a completed COD order"""
    return await reconciler.confirm_cod_payment(order_id)


@app.get("/api/v1/orders/{order_id}/payment", response_model=PaymentStatusResponse)
async def get_payment_status(
    order_id: str = Path(..., description="Order ID"),
    x_user_id: Optional[str] = Header(None, alias="X-User-Id"),
    reconciler: PaymentReconciler = Depends(get_payment_reconciler)
):
    """Get payment state of an order"""
    return await reconciler.get_payment_status(order_id, scoped_user_id=x_user_id)


if __name__ == "__main__":
    uvicorn.run(
        "microservices.order_service.main:app",
        host=config.service_host,
        port=config.service_port,
        reload=False,
        log_level=settings.logging.log_level.lower()
    )
