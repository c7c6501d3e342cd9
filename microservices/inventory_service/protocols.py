"""
Inventory Service Protocols (Interfaces)

These interfaces define contracts for dependency injection.
NO import-time I/O dependencies - safe to import anywhere.
"""
from typing import TYPE_CHECKING, List, Optional, Protocol, runtime_checkable

from core.event_bus import EventBusProtocol

if TYPE_CHECKING:
    from .models import (
        InventoryAudit,
        InventoryItem,
        StockAllocation,
        StockReservation,
        StockTransfer,
        TransferStatus,
        Warehouse,
    )


# ============================================================================
# Custom Exceptions - defined here to avoid importing repository
# ============================================================================

class InventoryServiceError(Exception):
    """Base exception for inventory service errors"""
    pass


class WarehouseNotFoundError(InventoryServiceError):
    """Raised when a warehouse does not exist"""
    pass


class InventoryItemNotFoundError(InventoryServiceError):
    """Raised when an inventory item does not exist"""
    pass


class StockTransferNotFoundError(InventoryServiceError):
    """Raised when a stock transfer does not exist"""
    pass


class InvalidQuantityError(InventoryServiceError):
    """Raised when a quantity is zero or negative where a positive one is required"""
    pass


class InvalidTransferStateError(InventoryServiceError):
    """Raised on an illegal stock transfer transition"""
    pass


class StockConflictError(InventoryServiceError):
    """Raised when a stock mutation would break an inventory invariant"""

    def __init__(
        self,
        message: str,
        requested: Optional[int] = None,
        available: Optional[int] = None,
    ):
        super().__init__(message)
        self.requested = requested
        self.available = available


class InsufficientStockError(InventoryServiceError):
    """
    Raised when allocation cannot cover a line even after splitting.

    ``allocations`` holds the plan already computed for earlier lines of the
    same call; allocation is not transactional across lines.
    """

    def __init__(
        self,
        message: str,
        product_id: str,
        product_name: Optional[str] = None,
        requested: int = 0,
        available: int = 0,
        allocations: Optional[List["StockAllocation"]] = None,
    ):
        super().__init__(message)
        self.product_id = product_id
        self.product_name = product_name
        self.requested = requested
        self.available = available
        self.allocations = list(allocations or [])


# ============================================================================
# Repository Protocol
# ============================================================================

@runtime_checkable
class StockStoreProtocol(Protocol):
    """
    Storage contract for warehouses, stock levels, reservations, transfers
    and audits.

    Implementations must allow at most one concurrent mutator per
    (warehouse_id, product_id) key.
    """

    # Warehouses

    async def active_warehouses(self) -> List["Warehouse"]:
        ...

    async def get_warehouse(self, warehouse_id: str) -> Optional["Warehouse"]:
        ...

    async def get_warehouse_by_code(self, code: str) -> Optional["Warehouse"]:
        ...

    async def all_warehouses(self) -> List["Warehouse"]:
        ...

    async def add_warehouse(self, warehouse: "Warehouse") -> "Warehouse":
        ...

    async def update_warehouse(self, warehouse: "Warehouse") -> "Warehouse":
        ...

    # Inventory items

    async def inventory_for_product(self, product_id: str) -> List["InventoryItem"]:
        """Stock rows for a product across every warehouse, in store order"""
        ...

    async def inventory_for_warehouse(self, warehouse_id: str) -> List["InventoryItem"]:
        ...

    async def all_inventory(self) -> List["InventoryItem"]:
        ...

    async def get_inventory_item(self, inventory_item_id: str) -> Optional["InventoryItem"]:
        ...

    async def find_inventory_item(self, warehouse_id: str, product_id: str) -> Optional["InventoryItem"]:
        ...

    async def add_inventory_item(self, item: "InventoryItem") -> "InventoryItem":
        ...

    async def update_inventory_item(self, item: "InventoryItem") -> "InventoryItem":
        ...

    # Reservations

    async def reserve(self, inventory_item_id: str, quantity: int, order_id: str) -> "StockReservation":
        """Persist the reservation and the item's reserved quantity together"""
        ...

    async def release(self, reservation_id: str) -> "StockReservation":
        ...

    async def fulfill(self, reservation_id: str) -> "StockReservation":
        ...

    async def reservations_for_order(self, order_id: str) -> List["StockReservation"]:
        ...

    # Transfers

    async def add_transfer(self, transfer: "StockTransfer") -> "StockTransfer":
        ...

    async def get_transfer(self, transfer_id: str) -> Optional["StockTransfer"]:
        ...

    async def update_transfer(self, transfer: "StockTransfer") -> "StockTransfer":
        ...

    async def transfers_by_status(self, status: "TransferStatus") -> List["StockTransfer"]:
        ...

    # Audits

    async def add_audit(self, audit: "InventoryAudit") -> "InventoryAudit":
        ...

    async def audits_for(self, warehouse_id: Optional[str] = None, product_id: Optional[str] = None) -> List["InventoryAudit"]:
        ...


__all__ = [
    # Exceptions
    "InventoryServiceError",
    "WarehouseNotFoundError",
    "InventoryItemNotFoundError",
    "StockTransferNotFoundError",
    "InvalidQuantityError",
    "InvalidTransferStateError",
    "StockConflictError",
    "InsufficientStockError",
    # Protocols
    "StockStoreProtocol",
    "EventBusProtocol",
]
