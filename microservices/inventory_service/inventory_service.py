"""
Inventory Service - Business Logic Layer

Warehouse and stock management around the allocation engine:
- Warehouse lifecycle and inventory item setup
- Stock adjustments, restocking and reorder settings
- Advisory multi-warehouse allocation for an order
- Reservation, release and fulfillment by order
- Transfers between warehouses and physical audits
- Health and low-stock reporting
"""

import logging
from typing import Dict, List, Optional

from core.config import CommerceConfig, get_settings

from . import allocation_engine
from .events.publishers import publish_inventory_events
from .models import (
    AllocationRequest,
    InventoryAudit,
    InventoryHealthReport,
    InventoryItem,
    InventoryItemCreateRequest,
    LowStockItem,
    ReservationStatus,
    StockAllocation,
    StockReservation,
    StockTransfer,
    TransferStatus,
    Warehouse,
    WarehouseCreateRequest,
)
from .protocols import (
    StockStoreProtocol,
    EventBusProtocol,
    InsufficientStockError,
    InventoryItemNotFoundError,
    StockConflictError,
    StockTransferNotFoundError,
    WarehouseNotFoundError,
)

logger = logging.getLogger(__name__)


class InventoryService:
    """
    Inventory Service - Core business logic

    Allocation only reads stock. Reservations are the stock-mutating step
    and are made through reserve_stock with an allocation plan.
    """

    def __init__(
        self,
        repository: StockStoreProtocol,
        event_bus: Optional[EventBusProtocol] = None,
        config: Optional[CommerceConfig] = None,
    ):
        """
        Initialize inventory service with dependencies.

        Args:
            repository: Stock store for warehouses and inventory
            event_bus: Event bus for publishing events (optional)
            config: Commerce settings (defaults to global settings)
        """
        self.repository = repository
        self.event_bus = event_bus
        self.config = config or get_settings()

    @property
    def topic(self) -> str:
        return self.config.inventory_events_topic

    async def _publish(self, events) -> None:
        await publish_inventory_events(self.event_bus, events, topic=self.topic)

    async def _warehouse_or_raise(self, warehouse_id: str) -> Warehouse:
        warehouse = await self.repository.get_warehouse(warehouse_id)
        if warehouse is None:
            raise WarehouseNotFoundError(f"Warehouse {warehouse_id} not found")
        return warehouse

    async def _item_or_raise(self, inventory_item_id: str) -> InventoryItem:
        item = await self.repository.get_inventory_item(inventory_item_id)
        if item is None:
            raise InventoryItemNotFoundError(f"Inventory item {inventory_item_id} not found")
        return item

    # ====================
    # Warehouses
    # ====================

    async def create_warehouse(self, request: WarehouseCreateRequest) -> Warehouse:
        if await self.repository.get_warehouse_by_code(request.code) is not None:
            raise StockConflictError(f"Warehouse code {request.code.strip().upper()} already exists")

        warehouse, events = Warehouse.create(request, default_priority=self.config.default_warehouse_priority)
        warehouse = await self.repository.add_warehouse(warehouse)
        logger.info(f"Created warehouse {warehouse.code} ({warehouse.warehouse_id})")

        await self._publish(events)
        return warehouse

    async def get_warehouse(self, warehouse_id: str) -> Optional[Warehouse]:
        return await self.repository.get_warehouse(warehouse_id)

    async def get_warehouse_by_code(self, code: str) -> Optional[Warehouse]:
        return await self.repository.get_warehouse_by_code(code)

    async def get_all_warehouses(self) -> List[Warehouse]:
        return await self.repository.all_warehouses()

    async def activate_warehouse(self, warehouse_id: str) -> Warehouse:
        warehouse = await self._warehouse_or_raise(warehouse_id)
        events = warehouse.activate()
        warehouse = await self.repository.update_warehouse(warehouse)
        logger.info(f"Activated warehouse {warehouse.code}")

        await self._publish(events)
        return warehouse

    async def deactivate_warehouse(self, warehouse_id: str) -> Warehouse:
        warehouse = await self._warehouse_or_raise(warehouse_id)
        events = warehouse.deactivate()
        warehouse = await self.repository.update_warehouse(warehouse)
        logger.info(f"Deactivated warehouse {warehouse.code}")

        await self._publish(events)
        return warehouse

    # ====================
    # Inventory Items
    # ====================

    async def create_inventory_item(self, request: InventoryItemCreateRequest) -> InventoryItem:
        """
        Start stocking a product in a warehouse.

        Raises:
            WarehouseNotFoundError: If the warehouse does not exist
            StockConflictError: If the product is already stocked there
        """
        await self._warehouse_or_raise(request.warehouse_id)
        existing = await self.repository.find_inventory_item(request.warehouse_id, request.product_id)
        if existing is not None:
            raise StockConflictError(
                f"Product {request.product_id} is already stocked in warehouse {request.warehouse_id}"
            )

        item, events = InventoryItem.create(
            warehouse_id=request.warehouse_id,
            product_id=request.product_id,
            initial_quantity=request.initial_quantity,
            reorder_point=(
                request.reorder_point if request.reorder_point is not None
                else self.config.default_reorder_point
            ),
            reorder_quantity=(
                request.reorder_quantity if request.reorder_quantity is not None
                else self.config.default_reorder_quantity
            ),
        )
        item = await self.repository.add_inventory_item(item)
        logger.info(f"Created inventory item {item.inventory_item_id} for product {item.product_id}")

        await self._publish(events)
        return item

    async def get_inventory_item(self, inventory_item_id: str) -> Optional[InventoryItem]:
        return await self.repository.get_inventory_item(inventory_item_id)

    async def get_inventory_by_product(self, product_id: str) -> List[InventoryItem]:
        return await self.repository.inventory_for_product(product_id)

    async def get_inventory_by_warehouse(self, warehouse_id: str) -> List[InventoryItem]:
        return await self.repository.inventory_for_warehouse(warehouse_id)

    async def get_total_available_stock(self, product_id: str) -> int:
        """Available stock for a product across active warehouses"""
        sources = allocation_engine.join_active_sources(
            await self.repository.inventory_for_product(product_id),
            await self.repository.active_warehouses(),
        )
        return sum(max(s.available, 0) for s in sources)

    # ====================
    # Stock Operations
    # ====================

    async def adjust_stock(
        self,
        inventory_item_id: str,
        quantity_change: int,
        reason: str,
        adjusted_by: Optional[str] = None,
    ) -> InventoryItem:
        item = await self._item_or_raise(inventory_item_id)
        events = item.adjust_stock(quantity_change, reason, adjusted_by)
        item = await self.repository.update_inventory_item(item)
        logger.info(
            f"Adjusted stock of {item.product_id} in {item.warehouse_id} by {quantity_change}: {reason}"
        )

        await self._publish(events)
        return item

    async def restock(self, inventory_item_id: str, quantity: int) -> InventoryItem:
        item = await self._item_or_raise(inventory_item_id)
        events = item.restock(quantity)
        item = await self.repository.update_inventory_item(item)
        logger.info(f"Restocked {quantity} of {item.product_id} in {item.warehouse_id}")

        await self._publish(events)
        return item

    async def update_reorder_settings(
        self,
        inventory_item_id: str,
        reorder_point: int,
        reorder_quantity: int,
    ) -> InventoryItem:
        item = await self._item_or_raise(inventory_item_id)
        item.update_reorder_settings(reorder_point, reorder_quantity)
        return await self.repository.update_inventory_item(item)

    # ====================
    # Allocation
    # ====================

    async def allocate_stock_for_order(self, request: AllocationRequest) -> List[StockAllocation]:
        """
        Compute an advisory allocation plan. Does not reserve stock.

        Raises:
            InsufficientStockError: On the first line that cannot be covered;
                ``allocations`` holds the plan for earlier lines
        """
        warehouses = await self.repository.active_warehouses()
        inventory_by_product: Dict[str, List[InventoryItem]] = {}
        for line in request.items:
            if line.product_id not in inventory_by_product:
                inventory_by_product[line.product_id] = await self.repository.inventory_for_product(
                    line.product_id
                )

        try:
            plan = allocation_engine.allocate_order(
                request.items,
                inventory_by_product,
                warehouses,
                request.customer_city,
            )
        except InsufficientStockError as e:
            logger.warning(
                f"Allocation failed for {e.product_id}: requested {e.requested}, available {e.available}"
            )
            raise

        logger.info(f"Allocated {len(request.items)} line(s) into {len(plan)} shipment part(s)")
        return plan

    # ====================
    # Reservations
    # ====================

    async def reserve_stock(self, order_id: str, allocations: List[StockAllocation]) -> List[StockReservation]:
        """
        Reserve stock for an order from an allocation plan.

        Every allocation is validated before any stock is reserved.

        Raises:
            InventoryItemNotFoundError: If an allocation names an unstocked pair
            StockConflictError: On a double reserve or insufficient available stock
        """
        active_items = {
            r.inventory_item_id
            for r in await self.repository.reservations_for_order(order_id)
            if r.status == ReservationStatus.ACTIVE
        }

        staged = []
        for allocation in allocations:
            item = await self.repository.find_inventory_item(allocation.warehouse_id, allocation.product_id)
            if item is None:
                raise InventoryItemNotFoundError(
                    f"Product {allocation.product_id} is not stocked in warehouse {allocation.warehouse_id}"
                )
            if item.inventory_item_id in active_items:
                raise StockConflictError(
                    f"Order {order_id} already holds a reservation on {allocation.product_id} "
                    f"in warehouse {allocation.warehouse_code}",
                    requested=allocation.quantity,
                    available=item.quantity_available,
                )
            events = item.reserve(allocation.quantity, order_id)
            active_items.add(item.inventory_item_id)
            staged.append((item, allocation, events))

        reservations: List[StockReservation] = []
        for item, allocation, events in staged:
            reservation = await self.repository.reserve(item.inventory_item_id, allocation.quantity, order_id)
            reservations.append(reservation)
            await self._publish(events)

        logger.info(f"Reserved stock for order {order_id}: {len(reservations)} reservation(s)")
        return reservations

    async def _active_reservations(self, order_id: str) -> List[StockReservation]:
        return [
            r for r in await self.repository.reservations_for_order(order_id)
            if r.status == ReservationStatus.ACTIVE
        ]

    async def release_reservation(self, order_id: str) -> List[StockReservation]:
        """Release every active reservation of an order. No-op if none remain."""
        released: List[StockReservation] = []
        for reservation in await self._active_reservations(order_id):
            item = await self._item_or_raise(reservation.inventory_item_id)
            events = item.release_reservation(reservation.quantity, order_id)
            released.append(await self.repository.release(reservation.reservation_id))
            await self._publish(events)

        if released:
            logger.info(f"Released {len(released)} reservation(s) for order {order_id}")
        else:
            logger.info(f"No active reservation found for order {order_id} (may already be released)")
        return released

    async def fulfill_reservation(self, order_id: str) -> List[StockReservation]:
        """Ship every active reservation of an order. No-op if none remain."""
        fulfilled: List[StockReservation] = []
        for reservation in await self._active_reservations(order_id):
            item = await self._item_or_raise(reservation.inventory_item_id)
            events = item.fulfill_reservation(reservation.quantity, order_id)
            fulfilled.append(await self.repository.fulfill(reservation.reservation_id))
            await self._publish(events)

        if fulfilled:
            logger.info(f"Fulfilled {len(fulfilled)} reservation(s) for order {order_id}")
        else:
            logger.info(f"No active reservation found for order {order_id} (may already be fulfilled)")
        return fulfilled

    # ====================
    # Transfers
    # ====================

    async def _transfer_or_raise(self, transfer_id: str) -> StockTransfer:
        transfer = await self.repository.get_transfer(transfer_id)
        if transfer is None:
            raise StockTransferNotFoundError(f"Transfer {transfer_id} not found")
        return transfer

    async def request_transfer(
        self,
        product_id: str,
        from_warehouse_id: str,
        to_warehouse_id: str,
        quantity: int,
        requested_by: Optional[str] = None,
        notes: Optional[str] = None,
    ) -> StockTransfer:
        """
        Request a stock movement between warehouses.

        Raises:
            WarehouseNotFoundError: If either warehouse does not exist
            InsufficientStockError: If the source lacks available stock
        """
        await self._warehouse_or_raise(from_warehouse_id)
        await self._warehouse_or_raise(to_warehouse_id)

        source = await self.repository.find_inventory_item(from_warehouse_id, product_id)
        available = source.quantity_available if source else 0
        if available < quantity:
            raise InsufficientStockError(
                f"Insufficient stock in warehouse {from_warehouse_id} for transfer of {product_id}: "
                f"requested {quantity}, available {available}",
                product_id=product_id,
                requested=quantity,
                available=available,
            )

        transfer, events = StockTransfer.request(
            product_id, from_warehouse_id, to_warehouse_id, quantity, requested_by, notes
        )
        transfer = await self.repository.add_transfer(transfer)
        logger.info(f"Requested transfer {transfer.transfer_id} of {quantity} {product_id}")

        await self._publish(events)
        return transfer

    async def approve_transfer(self, transfer_id: str, approved_by: Optional[str] = None) -> StockTransfer:
        transfer = await self._transfer_or_raise(transfer_id)
        events = transfer.approve(approved_by)
        transfer = await self.repository.update_transfer(transfer)

        await self._publish(events)
        return transfer

    async def complete_transfer(self, transfer_id: str) -> StockTransfer:
        """Move the stock: adjust the source down, then restock or create the destination item"""
        transfer = await self._transfer_or_raise(transfer_id)
        events = transfer.complete()

        source = await self.repository.find_inventory_item(transfer.from_warehouse_id, transfer.product_id)
        if source is None:
            raise InventoryItemNotFoundError(
                f"Product {transfer.product_id} is not stocked in warehouse {transfer.from_warehouse_id}"
            )
        events.extend(
            source.adjust_stock(-transfer.quantity, f"Transfer {transfer.transfer_id} out")
        )
        await self.repository.update_inventory_item(source)

        destination = await self.repository.find_inventory_item(transfer.to_warehouse_id, transfer.product_id)
        if destination is None:
            destination, created = InventoryItem.create(
                warehouse_id=transfer.to_warehouse_id,
                product_id=transfer.product_id,
                initial_quantity=transfer.quantity,
                reorder_point=self.config.default_reorder_point,
                reorder_quantity=self.config.default_reorder_quantity,
            )
            events.extend(created)
            await self.repository.add_inventory_item(destination)
        else:
            events.extend(destination.restock(transfer.quantity))
            await self.repository.update_inventory_item(destination)

        transfer = await self.repository.update_transfer(transfer)
        logger.info(f"Completed transfer {transfer.transfer_id}")

        await self._publish(events)
        return transfer

    async def cancel_transfer(self, transfer_id: str, reason: Optional[str] = None) -> StockTransfer:
        transfer = await self._transfer_or_raise(transfer_id)
        events = transfer.cancel(reason)
        transfer = await self.repository.update_transfer(transfer)

        await self._publish(events)
        return transfer

    async def get_pending_transfers(self) -> List[StockTransfer]:
        return await self.repository.transfers_by_status(TransferStatus.PENDING)

    # ====================
    # Audits
    # ====================

    async def perform_audit(
        self,
        warehouse_id: str,
        product_id: str,
        actual_quantity: int,
        audited_by: Optional[str] = None,
        notes: Optional[str] = None,
    ) -> InventoryAudit:
        """
        Record a physical count and correct stock by the variance.

        The audit is stored only once the correction is accepted.

        Raises:
            InventoryItemNotFoundError: If the product is not stocked there
            StockConflictError: If the count is below the reserved quantity
        """
        item = await self.repository.find_inventory_item(warehouse_id, product_id)
        if item is None:
            raise InventoryItemNotFoundError(
                f"Product {product_id} is not stocked in warehouse {warehouse_id}"
            )

        audit = InventoryAudit(
            warehouse_id=warehouse_id,
            product_id=product_id,
            expected_quantity=item.quantity_on_hand,
            actual_quantity=actual_quantity,
            audited_by=audited_by,
            notes=notes,
        )

        events = []
        if audit.variance != 0:
            events = item.adjust_stock(audit.variance, f"Audit {audit.audit_id}", audited_by)

        await self.repository.add_audit(audit)
        if events:
            await self.repository.update_inventory_item(item)
            await self._publish(events)

        logger.info(f"Audited {product_id} in {warehouse_id}: variance {audit.variance}")
        return audit

    async def get_audit_history(
        self,
        warehouse_id: Optional[str] = None,
        product_id: Optional[str] = None,
    ) -> List[InventoryAudit]:
        return await self.repository.audits_for(warehouse_id, product_id)

    # ====================
    # Reporting
    # ====================

    async def get_inventory_health_report(self) -> InventoryHealthReport:
        items = await self.repository.all_inventory()
        return InventoryHealthReport(
            total_items=len(items),
            low_stock_items=sum(1 for i in items if i.is_low_stock),
            out_of_stock_items=sum(1 for i in items if i.is_out_of_stock),
        )

    async def get_low_stock_items(self) -> List[LowStockItem]:
        warehouses = {w.warehouse_id: w for w in await self.repository.all_warehouses()}
        low: List[LowStockItem] = []
        for item in await self.repository.all_inventory():
            if not item.is_low_stock:
                continue
            warehouse = warehouses.get(item.warehouse_id)
            low.append(
                LowStockItem(
                    inventory_item_id=item.inventory_item_id,
                    product_id=item.product_id,
                    warehouse_id=item.warehouse_id,
                    warehouse_code=warehouse.code if warehouse else None,
                    quantity_available=item.quantity_available,
                    reorder_point=item.reorder_point,
                    reorder_quantity=item.reorder_quantity,
                )
            )
        low.sort(key=lambda i: i.quantity_available)
        return low
