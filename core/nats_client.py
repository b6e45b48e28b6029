"""
NATS JetStream Client for Python Microservices
Provides event-driven notification publishing for the order platform

Wraps nats-py with the Event envelope shared by the order and payment
services. Publishing is best-effort: failures are logged and reported as
False, never raised into business code.
"""

import json
import logging
import uuid
from datetime import datetime, timezone
from decimal import Decimal
from enum import Enum
from typing import Any, Dict, List, Optional

import nats
from nats.aio.client import Client as NATS
from nats.js import JetStreamContext


class DecimalEncoder(json.JSONEncoder):
    """Custom JSON encoder that handles Decimal types"""
    def default(self, obj):
        if isinstance(obj, Decimal):
            return str(obj)
        if isinstance(obj, datetime):
            return obj.isoformat()
        return super().default(obj)

logger = logging.getLogger(__name__)


class EventType(Enum):
    """Event types published by the order platform"""

    # Order Events
    ORDER_CREATED = "order.created"
    ORDER_STATUS_CHANGED = "order.status_changed"
    ORDER_CANCELED = "order.cancelled"

    # Payment Events
    PAYMENT_CAPTURED = "payment.captured"
    PAYMENT_FAILED = "payment.failed"
    PAYMENT_REFUNDED = "payment.refunded"
    PAYMENT_REFUND_CONFIRMED = "payment.refund_confirmed"
    COD_PAYMENT_CONFIRMED = "payment.cod_confirmed"


class ServiceSource(Enum):
    """Service sources"""

    ORDER_SERVICE = "order_service"
    PAYMENT_SERVICE = "payment_service"


class Event:
    """Event model"""

    def __init__(
        self,
        event_type: EventType,
        source: ServiceSource,
        data: Dict[str, Any],
        subject: Optional[str] = None,
        metadata: Optional[Dict[str, str]] = None,
    ):
        self.id = str(uuid.uuid4())
        self.type = event_type.value
        self.source = source.value
        self.data = data
        self.subject = subject
        self.timestamp = datetime.now(timezone.utc).isoformat()
        self.metadata = metadata or {}
        self.version = "1.0.0"

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "type": self.type,
            "source": self.source,
            "subject": self.subject,
            "timestamp": self.timestamp,
            "data": self.data,
            "metadata": self.metadata,
            "version": self.version,
        }


class NATSEventBus:
    """
    NATS JetStream event bus.

    Streams are derived from the event type prefix (order.* -> orders,
    payment.* -> payments) and created on first use.
    """

    STREAMS = {
        "order": "orders",
        "payment": "payments",
    }

    def __init__(self, service_name: str, servers: str = "nats://localhost:4222"):
        """
        Initialize NATS Event Bus.

        Args:
            service_name: Name of the service (used as the connection name)
            servers: Comma separated NATS server URLs
        """
        self.service_name = service_name
        self.servers: List[str] = [s.strip() for s in servers.split(",") if s.strip()]

        self._nc: Optional[NATS] = None
        self._js: Optional[JetStreamContext] = None
        self._streams_ready: Dict[str, bool] = {}
        self._is_connected = False

        logger.info(f"NATS EventBus initialized: {', '.join(self.servers)}")

    async def connect(self):
        """Connect to NATS and open a JetStream context"""
        try:
            self._nc = await nats.connect(servers=self.servers, name=self.service_name)
            self._js = self._nc.jetstream()
            self._is_connected = True
            logger.info(f"Connected to NATS as {self.service_name}")
        except Exception as e:
            logger.error(f"Failed to connect to NATS: {e}")
            raise

    async def publish_event(self, event: Event) -> bool:
        """
        Publish an event to NATS JetStream.

        Returns:
            True when the broker acknowledged the message
        """
        if not self._is_connected or not self._js:
            logger.error("Not connected to NATS")
            return False

        try:
            subject = event.type
            data = json.dumps(event.to_dict(), cls=DecimalEncoder).encode()

            stream_name = self._get_stream_name_for_event(event.type)
            await self._ensure_stream(stream_name, event.type.split('.')[0])

            ack = await self._js.publish(subject, data, stream=stream_name)
            logger.info(f"Published event {event.type} [{event.id}] to stream {stream_name}, seq={ack.seq}")
            return True

        except Exception as e:
            logger.error(f"Error publishing event {event.id}: {e}")
            return False

    def _get_stream_name_for_event(self, event_type: str) -> str:
        """Determine the JetStream stream name based on event type prefix"""
        prefix = event_type.split('.')[0]
        return self.STREAMS.get(prefix, f"{prefix}-stream")

    async def _ensure_stream(self, stream_name: str, subject_prefix: str):
        if self._streams_ready.get(stream_name):
            return
        try:
            await self._js.add_stream(name=stream_name, subjects=[f"{subject_prefix}.>"])
        except Exception as e:
            # Existing stream with the same subjects is fine
            logger.debug(f"Stream creation note: {e}")
        self._streams_ready[stream_name] = True

    async def close(self):
        """Close NATS connection"""
        if self._nc:
            await self._nc.drain()
            self._nc = None
            self._js = None

        self._is_connected = False
        logger.info("Disconnected from NATS")

    @property
    def is_connected(self) -> bool:
        """Check if connected to NATS"""
        return self._is_connected


# Singleton instance
_event_bus: Optional[NATSEventBus] = None


async def get_event_bus(service_name: str, servers: Optional[str] = None) -> NATSEventBus:
    """
    Get or create event bus instance.

    Args:
        service_name: Name of the service using the event bus
        servers: NATS server URLs (defaults to InfraConfig)

    Returns:
        Connected NATSEventBus instance
    """
    global _event_bus

    if _event_bus is None:
        if servers is None:
            from core.config import get_settings
            servers = get_settings().infrastructure.nats_servers
        bus = NATSEventBus(service_name=service_name, servers=servers)
        await bus.connect()
        _event_bus = bus

    return _event_bus
