"""
Inventory Service Events Module

Exports all event-related functionality for inventory service
"""

from .models import (
    InventoryEventType,
    InventorySubscribedEventType,
    InventoryStreamConfig,
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
    InventoryDomainEvent,
)

from .publishers import (
    publish_inventory_event,
    publish_inventory_events,
)

from .handlers import get_event_handlers

__all__ = [
    # Event Types
    "InventoryEventType",
    "InventorySubscribedEventType",
    "InventoryStreamConfig",
    # Event Models
    "WarehouseCreatedEvent",
    "WarehouseActivatedEvent",
    "WarehouseDeactivatedEvent",
    "InventoryItemCreatedEvent",
    "StockAdjustedEvent",
    "StockRestockedEvent",
    "StockReservedEvent",
    "StockReservationReleasedEvent",
    "StockFulfilledEvent",
    "LowStockAlertEvent",
    "StockTransferRequestedEvent",
    "StockTransferApprovedEvent",
    "StockTransferCompletedEvent",
    "StockTransferCancelledEvent",
    "InventoryDomainEvent",
    # Publishers
    "publish_inventory_event",
    "publish_inventory_events",
    # Handlers
    "get_event_handlers",
]
