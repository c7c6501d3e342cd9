"""
Inventory Service Event Models

Pydantic models for events published by inventory service
"""

from pydantic import BaseModel, Field
from enum import Enum
from typing import Annotated, Optional, Literal, Union
from datetime import datetime, timezone


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


# =============================================================================
# Event Type Definitions (Service-Specific)
# =============================================================================

class InventoryEventType(str, Enum):
    """
    Events published by inventory_service.

    Stream: inventory-events
    Subjects: inventory.>, warehouse.>, transfer.>
    """
    WAREHOUSE_CREATED = "warehouse.created"
    WAREHOUSE_ACTIVATED = "warehouse.activated"
    WAREHOUSE_DEACTIVATED = "warehouse.deactivated"
    ITEM_CREATED = "inventory.item_created"
    STOCK_ADJUSTED = "inventory.adjusted"
    STOCK_RESTOCKED = "inventory.restocked"
    STOCK_RESERVED = "inventory.reserved"
    STOCK_RELEASED = "inventory.released"
    STOCK_FULFILLED = "inventory.fulfilled"
    LOW_STOCK_ALERT = "inventory.low_stock"
    TRANSFER_REQUESTED = "transfer.requested"
    TRANSFER_APPROVED = "transfer.approved"
    TRANSFER_COMPLETED = "transfer.completed"
    TRANSFER_CANCELLED = "transfer.cancelled"


class InventorySubscribedEventType(str, Enum):
    """Events that inventory_service subscribes to from other services."""
    ORDER_CANCELED = "order.canceled"
    ORDER_FULFILLED = "order.fulfilled"


class InventoryStreamConfig:
    """Stream configuration for inventory_service"""
    STREAM_NAME = "inventory-events"
    SUBJECTS = ["inventory.>", "warehouse.>", "transfer.>"]
    MAX_MESSAGES = 100000
    CONSUMER_PREFIX = "inventory"


# =============================================================================
# Event Data Models
# =============================================================================

class WarehouseCreatedEvent(BaseModel):
    """Event published when a warehouse is created"""
    event_type: Literal["warehouse.created"] = "warehouse.created"
    warehouse_id: str
    code: str
    name: str
    city: Optional[str] = None
    timestamp: datetime = Field(default_factory=_utcnow)


class WarehouseActivatedEvent(BaseModel):
    """Event published when a warehouse is activated"""
    event_type: Literal["warehouse.activated"] = "warehouse.activated"
    warehouse_id: str
    code: str
    timestamp: datetime = Field(default_factory=_utcnow)


class WarehouseDeactivatedEvent(BaseModel):
    """Event published when a warehouse is deactivated"""
    event_type: Literal["warehouse.deactivated"] = "warehouse.deactivated"
    warehouse_id: str
    code: str
    timestamp: datetime = Field(default_factory=_utcnow)


class StockEventBase(BaseModel):
    """Fields shared by events about one inventory item"""
    inventory_item_id: str
    warehouse_id: str
    product_id: str
    timestamp: datetime = Field(default_factory=_utcnow)


class InventoryItemCreatedEvent(StockEventBase):
    """Event published when a product is stocked in a warehouse for the first time"""
    event_type: Literal["inventory.item_created"] = "inventory.item_created"
    quantity_on_hand: int


class StockAdjustedEvent(StockEventBase):
    """Event published when on-hand stock is adjusted"""
    event_type: Literal["inventory.adjusted"] = "inventory.adjusted"
    quantity_change: int
    previous_quantity: int
    new_quantity: int
    reason: str
    adjusted_by: Optional[str] = None


class StockRestockedEvent(StockEventBase):
    """Event published when stock is received"""
    event_type: Literal["inventory.restocked"] = "inventory.restocked"
    quantity: int
    new_quantity: int


class StockReservedEvent(StockEventBase):
    """Event published when stock is reserved for an order"""
    event_type: Literal["inventory.reserved"] = "inventory.reserved"
    order_id: str
    quantity: int
    quantity_available: int


class StockReservationReleasedEvent(StockEventBase):
    """Event published when a reservation is released (order canceled)"""
    event_type: Literal["inventory.released"] = "inventory.released"
    order_id: str
    quantity: int
    quantity_available: int


class StockFulfilledEvent(StockEventBase):
    """Event published when reserved stock leaves the warehouse"""
    event_type: Literal["inventory.fulfilled"] = "inventory.fulfilled"
    order_id: str
    quantity: int
    quantity_on_hand: int


class LowStockAlertEvent(StockEventBase):
    """Event published when available stock is at or below the reorder point"""
    event_type: Literal["inventory.low_stock"] = "inventory.low_stock"
    quantity_available: int
    reorder_point: int
    reorder_quantity: int


class StockTransferRequestedEvent(BaseModel):
    """Event published when a transfer between warehouses is requested"""
    event_type: Literal["transfer.requested"] = "transfer.requested"
    transfer_id: str
    product_id: str
    from_warehouse_id: str
    to_warehouse_id: str
    quantity: int
    requested_by: Optional[str] = None
    timestamp: datetime = Field(default_factory=_utcnow)


class StockTransferApprovedEvent(BaseModel):
    """Event published when a transfer is approved"""
    event_type: Literal["transfer.approved"] = "transfer.approved"
    transfer_id: str
    approved_by: Optional[str] = None
    timestamp: datetime = Field(default_factory=_utcnow)


class StockTransferCompletedEvent(BaseModel):
    """Event published when transferred stock arrives"""
    event_type: Literal["transfer.completed"] = "transfer.completed"
    transfer_id: str
    product_id: str
    from_warehouse_id: str
    to_warehouse_id: str
    quantity: int
    timestamp: datetime = Field(default_factory=_utcnow)


class StockTransferCancelledEvent(BaseModel):
    """Event published when a transfer is cancelled"""
    event_type: Literal["transfer.cancelled"] = "transfer.cancelled"
    transfer_id: str
    reason: Optional[str] = None
    timestamp: datetime = Field(default_factory=_utcnow)


InventoryDomainEvent = Annotated[
    Union[
        WarehouseCreatedEvent,
        WarehouseActivatedEvent,
        WarehouseDeactivatedEvent,
        InventoryItemCreatedEvent,
        StockAdjustedEvent,
        StockRestockedEvent,
        StockReservedEvent,
        StockReservationReleasedEvent,
        StockFulfilledEvent,
        LowStockAlertEvent,
        StockTransferRequestedEvent,
        StockTransferApprovedEvent,
        StockTransferCompletedEvent,
        StockTransferCancelledEvent,
    ],
    Field(discriminator="event_type"),
]
