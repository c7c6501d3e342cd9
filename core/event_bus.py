"""
Event Bus Primitives for Commerce Microservices

Provides the event envelope shared by all services, the event bus protocol
they publish through, and a retrying wrapper for unreliable transports.

The transport itself (NATS, Kafka, ...) is supplied by the deployment; any
object with an async ``publish_event(event)`` method can be used.
"""

import json
import logging
import uuid
from datetime import datetime, timezone
from decimal import Decimal
from enum import Enum
from typing import Any, Dict, Optional, Protocol, Tuple, Type, Union, runtime_checkable

from tenacity import retry, stop_after_attempt, wait_exponential, retry_if_exception_type

logger = logging.getLogger(__name__)


class DecimalEncoder(json.JSONEncoder):
    """Custom JSON encoder that handles Decimal types"""
    def default(self, obj):
        if isinstance(obj, Decimal):
            return str(obj)
        if isinstance(obj, datetime):
            return obj.isoformat()
        return super().default(obj)


class EventType(Enum):
    """Event types published or consumed by commerce services"""

    # Promotion Events
    PROMOTION_CREATED = "promotion.created"
    PROMOTION_ACTIVATED = "promotion.activated"
    PROMOTION_DEACTIVATED = "promotion.deactivated"
    PROMOTION_USED = "promotion.used"
    PROMOTION_LIMIT_REACHED = "promotion.limit_reached"
    PROMOTION_BEST_SELECTED = "promotion.best_selected"

    # Warehouse Events
    WAREHOUSE_CREATED = "warehouse.created"
    WAREHOUSE_ACTIVATED = "warehouse.activated"
    WAREHOUSE_DEACTIVATED = "warehouse.deactivated"

    # Inventory Events
    INVENTORY_ITEM_CREATED = "inventory.item_created"
    STOCK_ADJUSTED = "inventory.adjusted"
    STOCK_RESTOCKED = "inventory.restocked"
    STOCK_RESERVED = "inventory.reserved"
    STOCK_RELEASED = "inventory.released"
    STOCK_FULFILLED = "inventory.fulfilled"
    LOW_STOCK_ALERT = "inventory.low_stock"

    # Transfer Events
    TRANSFER_REQUESTED = "transfer.requested"
    TRANSFER_APPROVED = "transfer.approved"
    TRANSFER_COMPLETED = "transfer.completed"
    TRANSFER_CANCELLED = "transfer.cancelled"

    # Order Events (consumed)
    ORDER_CREATED = "order.created"
    ORDER_CANCELED = "order.canceled"
    ORDER_FULFILLED = "order.fulfilled"


class ServiceSource(Enum):
    """Service sources"""

    PROMOTION_SERVICE = "promotion_service"
    INVENTORY_SERVICE = "inventory_service"
    ORDER_SERVICE = "order_service"
    PAYMENT_SERVICE = "payment_service"


class Event:
    """Event model"""

    def __init__(
        self,
        event_type: Union[EventType, str],
        source: Union[ServiceSource, str],
        data: Dict[str, Any],
        subject: Optional[str] = None,
        metadata: Optional[Dict[str, str]] = None,
    ):
        self.id = str(uuid.uuid4())
        self.type = event_type.value if isinstance(event_type, Enum) else str(event_type)
        self.source = source.value if isinstance(source, Enum) else str(source)
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

    def to_json(self) -> str:
        return json.dumps(self.to_dict(), cls=DecimalEncoder)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Event":
        event = cls.__new__(cls)
        event.id = data.get("id")
        event.type = data.get("type")
        event.source = data.get("source")
        event.subject = data.get("subject")
        event.timestamp = data.get("timestamp")
        event.data = data.get("data", {})
        event.metadata = data.get("metadata", {})
        event.version = data.get("version", "1.0.0")
        return event

    def __repr__(self) -> str:
        return f"Event(type={self.type!r}, source={self.source!r}, subject={self.subject!r})"


@runtime_checkable
class EventBusProtocol(Protocol):
    """Interface for Event Bus - no I/O imports"""

    async def publish_event(self, event: Event) -> None:
        """Publish an event. Delivery is at-least-once."""
        ...


class RetryingEventBus:
    """
    Wraps an event bus with exponential-backoff retries on transient errors.

    Errors other than the configured transient types propagate immediately.
    """

    def __init__(
        self,
        inner: EventBusProtocol,
        max_attempts: int = 3,
        backoff_seconds: float = 0.5,
        retry_on: Tuple[Type[BaseException], ...] = (ConnectionError, TimeoutError),
    ):
        self.inner = inner
        self.max_attempts = max_attempts
        self.backoff_seconds = backoff_seconds
        self.retry_on = retry_on

    async def publish_event(self, event: Event) -> None:
        @retry(
            stop=stop_after_attempt(self.max_attempts),
            wait=wait_exponential(
                multiplier=self.backoff_seconds,
                min=self.backoff_seconds,
                max=self.backoff_seconds * 20,
            ),
            retry=retry_if_exception_type(self.retry_on),
            reraise=True,
        )
        async def _retry_wrapper():
            await self.inner.publish_event(event)

        try:
            await _retry_wrapper()
        except self.retry_on as e:
            logger.error(f"Publishing {event.type} failed after {self.max_attempts} attempts: {e}")
            raise

    async def close(self):
        close = getattr(self.inner, "close", None)
        if close is not None:
            await close()


__all__ = [
    "DecimalEncoder",
    "EventType",
    "ServiceSource",
    "Event",
    "EventBusProtocol",
    "RetryingEventBus",
]
