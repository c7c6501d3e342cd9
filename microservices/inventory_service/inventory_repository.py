"""
Inventory Repository

In-process implementation of StockStoreProtocol.
Tables mirrored in memory: warehouses, stock levels, reservations,
transfers and audits. Stock mutations are serialized per
(warehouse_id, product_id) with an asyncio lock.
"""

import asyncio
import logging
from collections import defaultdict
from datetime import datetime, timezone
from typing import Dict, List, Optional, Tuple

from .models import (
    InventoryAudit,
    InventoryItem,
    ReservationStatus,
    StockReservation,
    StockTransfer,
    TransferStatus,
    Warehouse,
)
from .protocols import (
    InventoryItemNotFoundError,
    StockConflictError,
    StockTransferNotFoundError,
    WarehouseNotFoundError,
)

logger = logging.getLogger(__name__)


class ReservationNotFoundException(Exception):
    """Reservation not found exception"""
    pass


class InventoryRepository:
    """
    Repository for inventory data operations.

    Returns deep copies; callers persist changes through the update methods.
    """

    def __init__(self):
        self._warehouses: Dict[str, Warehouse] = {}
        self._items: Dict[str, InventoryItem] = {}
        self._item_index: Dict[Tuple[str, str], str] = {}  # (warehouse_id, product_id) -> item id
        self._reservations: Dict[str, StockReservation] = {}
        self._transfers: Dict[str, StockTransfer] = {}
        self._audits: List[InventoryAudit] = []
        self._locks: Dict[Tuple[str, str], asyncio.Lock] = defaultdict(asyncio.Lock)

        logger.info("InventoryRepository initialized in memory")

    def _lock_for(self, item: InventoryItem) -> asyncio.Lock:
        return self._locks[(item.warehouse_id, item.product_id)]

    def _stored_item(self, inventory_item_id: str) -> InventoryItem:
        item = self._items.get(inventory_item_id)
        if item is None:
            raise InventoryItemNotFoundError(f"Inventory item {inventory_item_id} not found")
        return item

    def _stored_reservation(self, reservation_id: str) -> StockReservation:
        reservation = self._reservations.get(reservation_id)
        if reservation is None:
            raise ReservationNotFoundException(f"Reservation {reservation_id} not found")
        return reservation

    # Warehouses

    async def active_warehouses(self) -> List[Warehouse]:
        return [w.model_copy(deep=True) for w in self._warehouses.values() if w.is_active]

    async def get_warehouse(self, warehouse_id: str) -> Optional[Warehouse]:
        warehouse = self._warehouses.get(warehouse_id)
        return warehouse.model_copy(deep=True) if warehouse else None

    async def get_warehouse_by_code(self, code: str) -> Optional[Warehouse]:
        code = code.strip().upper()
        for warehouse in self._warehouses.values():
            if warehouse.code == code:
                return warehouse.model_copy(deep=True)
        return None

    async def all_warehouses(self) -> List[Warehouse]:
        return [w.model_copy(deep=True) for w in self._warehouses.values()]

    async def add_warehouse(self, warehouse: Warehouse) -> Warehouse:
        if await self.get_warehouse_by_code(warehouse.code) is not None:
            raise StockConflictError(f"Warehouse code {warehouse.code} already exists")
        self._warehouses[warehouse.warehouse_id] = warehouse.model_copy(deep=True)
        return warehouse

    async def update_warehouse(self, warehouse: Warehouse) -> Warehouse:
        if warehouse.warehouse_id not in self._warehouses:
            raise WarehouseNotFoundError(f"Warehouse {warehouse.warehouse_id} not found")
        self._warehouses[warehouse.warehouse_id] = warehouse.model_copy(deep=True)
        return warehouse

    # Inventory items

    async def inventory_for_product(self, product_id: str) -> List[InventoryItem]:
        return [i.model_copy(deep=True) for i in self._items.values() if i.product_id == product_id]

    async def inventory_for_warehouse(self, warehouse_id: str) -> List[InventoryItem]:
        return [i.model_copy(deep=True) for i in self._items.values() if i.warehouse_id == warehouse_id]

    async def all_inventory(self) -> List[InventoryItem]:
        return [i.model_copy(deep=True) for i in self._items.values()]

    async def get_inventory_item(self, inventory_item_id: str) -> Optional[InventoryItem]:
        item = self._items.get(inventory_item_id)
        return item.model_copy(deep=True) if item else None

    async def find_inventory_item(self, warehouse_id: str, product_id: str) -> Optional[InventoryItem]:
        item_id = self._item_index.get((warehouse_id, product_id))
        return await self.get_inventory_item(item_id) if item_id else None

    async def add_inventory_item(self, item: InventoryItem) -> InventoryItem:
        key = (item.warehouse_id, item.product_id)
        if key in self._item_index:
            raise StockConflictError(
                f"Product {item.product_id} is already stocked in warehouse {item.warehouse_id}"
            )
        self._items[item.inventory_item_id] = item.model_copy(deep=True)
        self._item_index[key] = item.inventory_item_id
        return item

    async def update_inventory_item(self, item: InventoryItem) -> InventoryItem:
        stored = self._stored_item(item.inventory_item_id)
        async with self._lock_for(stored):
            self._items[item.inventory_item_id] = item.model_copy(deep=True)
        return item

    # Reservations

    async def reserve(self, inventory_item_id: str, quantity: int, order_id: str) -> StockReservation:
        stored = self._stored_item(inventory_item_id)
        async with self._lock_for(stored):
            stored.reserve(quantity, order_id)
            reservation = StockReservation(
                order_id=order_id,
                inventory_item_id=inventory_item_id,
                warehouse_id=stored.warehouse_id,
                product_id=stored.product_id,
                quantity=quantity,
            )
            self._reservations[reservation.reservation_id] = reservation
        return reservation.model_copy()

    async def release(self, reservation_id: str) -> StockReservation:
        reservation = self._stored_reservation(reservation_id)
        stored = self._stored_item(reservation.inventory_item_id)
        async with self._lock_for(stored):
            stored.release_reservation(reservation.quantity, reservation.order_id)
            reservation.status = ReservationStatus.RELEASED
            reservation.updated_at = datetime.now(timezone.utc)
        return reservation.model_copy()

    async def fulfill(self, reservation_id: str) -> StockReservation:
        reservation = self._stored_reservation(reservation_id)
        stored = self._stored_item(reservation.inventory_item_id)
        async with self._lock_for(stored):
            stored.fulfill_reservation(reservation.quantity, reservation.order_id)
            reservation.status = ReservationStatus.FULFILLED
            reservation.updated_at = datetime.now(timezone.utc)
        return reservation.model_copy()

    async def reservations_for_order(self, order_id: str) -> List[StockReservation]:
        return [r.model_copy() for r in self._reservations.values() if r.order_id == order_id]

    # Transfers

    async def add_transfer(self, transfer: StockTransfer) -> StockTransfer:
        self._transfers[transfer.transfer_id] = transfer.model_copy()
        return transfer

    async def get_transfer(self, transfer_id: str) -> Optional[StockTransfer]:
        transfer = self._transfers.get(transfer_id)
        return transfer.model_copy() if transfer else None

    async def update_transfer(self, transfer: StockTransfer) -> StockTransfer:
        if transfer.transfer_id not in self._transfers:
            raise StockTransferNotFoundError(f"Transfer {transfer.transfer_id} not found")
        self._transfers[transfer.transfer_id] = transfer.model_copy()
        return transfer

    async def transfers_by_status(self, status: TransferStatus) -> List[StockTransfer]:
        return [t.model_copy() for t in self._transfers.values() if t.status == status]

    # Audits

    async def add_audit(self, audit: InventoryAudit) -> InventoryAudit:
        self._audits.append(audit)
        return audit

    async def audits_for(
        self,
        warehouse_id: Optional[str] = None,
        product_id: Optional[str] = None,
    ) -> List[InventoryAudit]:
        return [
            a for a in self._audits
            if (warehouse_id is None or a.warehouse_id == warehouse_id)
            and (product_id is None or a.product_id == product_id)
        ]
