"""
Inventory Service Data Models

Warehouses, per-warehouse stock records and the reservation, transfer,
audit and allocation models built on them. Mutators validate, change state
and return the domain events they produced; callers dispatch them.
"""

import uuid
from pydantic import BaseModel, Field, computed_field, field_validator, model_validator
from typing import List, Optional, Tuple
from datetime import datetime, timezone
from enum import Enum

from .events.models import (
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
)
from .protocols import (
    InvalidQuantityError,
    InvalidTransferStateError,
    StockConflictError,
)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _new_id(prefix: str) -> str:
    return f"{prefix}_{uuid.uuid4().hex}"


def _require_positive(quantity: int, what: str = "Quantity") -> None:
    if quantity <= 0:
        raise InvalidQuantityError(f"{what} must be positive, got {quantity}")


class ReservationStatus(str, Enum):
    """Stock reservation status enumeration"""
    ACTIVE = "active"
    RELEASED = "released"
    FULFILLED = "fulfilled"


class TransferStatus(str, Enum):
    """Stock transfer status enumeration"""
    PENDING = "pending"
    APPROVED = "approved"
    COMPLETED = "completed"
    CANCELLED = "cancelled"


# Core Inventory Models

class Warehouse(BaseModel):
    """Fulfillment location"""
    warehouse_id: str = Field(default_factory=lambda: _new_id("wh"))
    code: str
    name: str
    address: Optional[str] = None
    city: Optional[str] = None
    state: Optional[str] = None
    zip_code: Optional[str] = None
    contact_person: Optional[str] = None
    phone: Optional[str] = None
    is_active: bool = True
    priority: int = Field(99, ge=1, description="1 is the most preferred")
    created_at: datetime = Field(default_factory=_utcnow)
    updated_at: Optional[datetime] = None

    @field_validator('code', mode='before')
    @classmethod
    def normalize_code(cls, v):
        if not isinstance(v, str) or not v.strip():
            raise ValueError('Warehouse code is required')
        return v.strip().upper()

    def matches_city(self, city: Optional[str]) -> bool:
        if not city or not self.city:
            return False
        return self.city.strip().lower() == city.strip().lower()

    def activate(self) -> List[WarehouseActivatedEvent]:
        self.is_active = True
        self.updated_at = _utcnow()
        return [WarehouseActivatedEvent(warehouse_id=self.warehouse_id, code=self.code)]

    def deactivate(self) -> List[WarehouseDeactivatedEvent]:
        self.is_active = False
        self.updated_at = _utcnow()
        return [WarehouseDeactivatedEvent(warehouse_id=self.warehouse_id, code=self.code)]

    @classmethod
    def create(cls, request: "WarehouseCreateRequest", default_priority: int = 99) -> Tuple["Warehouse", List[WarehouseCreatedEvent]]:
        warehouse = cls(
            code=request.code,
            name=request.name,
            address=request.address,
            city=request.city,
            state=request.state,
            zip_code=request.zip_code,
            contact_person=request.contact_person,
            phone=request.phone,
            priority=request.priority if request.priority is not None else default_priority,
        )
        event = WarehouseCreatedEvent(
            warehouse_id=warehouse.warehouse_id,
            code=warehouse.code,
            name=warehouse.name,
            city=warehouse.city,
        )
        return warehouse, [event]


class InventoryItem(BaseModel):
    """Stock record for one (warehouse, product) pair"""
    inventory_item_id: str = Field(default_factory=lambda: _new_id("inv"))
    warehouse_id: str
    product_id: str
    quantity_on_hand: int = Field(0, ge=0)
    quantity_reserved: int = Field(0, ge=0)
    reorder_point: int = Field(10, ge=0)
    reorder_quantity: int = Field(50, ge=0)
    last_restocked_at: Optional[datetime] = None
    created_at: datetime = Field(default_factory=_utcnow)
    updated_at: Optional[datetime] = None

    @model_validator(mode='after')
    def validate_reserved(self):
        if self.quantity_reserved > self.quantity_on_hand:
            raise ValueError('Reserved quantity cannot exceed quantity on hand')
        return self

    @computed_field
    @property
    def quantity_available(self) -> int:
        return self.quantity_on_hand - self.quantity_reserved

    @property
    def is_low_stock(self) -> bool:
        return self.quantity_available <= self.reorder_point

    @property
    def is_out_of_stock(self) -> bool:
        return self.quantity_available <= 0

    def _low_stock_alert(self) -> LowStockAlertEvent:
        return LowStockAlertEvent(
            inventory_item_id=self.inventory_item_id,
            warehouse_id=self.warehouse_id,
            product_id=self.product_id,
            quantity_available=self.quantity_available,
            reorder_point=self.reorder_point,
            reorder_quantity=self.reorder_quantity,
        )

    def _touch(self) -> None:
        self.updated_at = _utcnow()

    def adjust_stock(self, quantity_change: int, reason: str, adjusted_by: Optional[str] = None) -> List[BaseModel]:
        """Apply a signed correction to on-hand stock"""
        if quantity_change == 0:
            raise InvalidQuantityError("Quantity change cannot be zero")

        previous = self.quantity_on_hand
        new_quantity = previous + quantity_change
        if new_quantity < 0:
            raise StockConflictError(
                f"Adjustment of {quantity_change} would make stock negative for product {self.product_id}",
                requested=-quantity_change,
                available=previous,
            )
        if new_quantity < self.quantity_reserved:
            raise StockConflictError(
                f"Adjustment of {quantity_change} would leave less stock than is reserved "
                f"for product {self.product_id}",
                requested=-quantity_change,
                available=self.quantity_available,
            )

        self.quantity_on_hand = new_quantity
        self._touch()

        events: List[BaseModel] = [
            StockAdjustedEvent(
                inventory_item_id=self.inventory_item_id,
                warehouse_id=self.warehouse_id,
                product_id=self.product_id,
                quantity_change=quantity_change,
                previous_quantity=previous,
                new_quantity=new_quantity,
                reason=reason,
                adjusted_by=adjusted_by,
            )
        ]
        if self.is_low_stock:
            events.append(self._low_stock_alert())
        return events

    def restock(self, quantity: int) -> List[BaseModel]:
        _require_positive(quantity, "Restock quantity")

        self.quantity_on_hand += quantity
        self.last_restocked_at = _utcnow()
        self._touch()
        return [
            StockRestockedEvent(
                inventory_item_id=self.inventory_item_id,
                warehouse_id=self.warehouse_id,
                product_id=self.product_id,
                quantity=quantity,
                new_quantity=self.quantity_on_hand,
            )
        ]

    def reserve(self, quantity: int, order_id: str) -> List[BaseModel]:
        """Hold available stock for an order. Alerts when this crosses the reorder point."""
        _require_positive(quantity, "Reservation quantity")
        if quantity > self.quantity_available:
            raise StockConflictError(
                f"Cannot reserve {quantity} of product {self.product_id}, "
                f"only {self.quantity_available} available",
                requested=quantity,
                available=self.quantity_available,
            )

        was_low = self.is_low_stock
        self.quantity_reserved += quantity
        self._touch()

        events: List[BaseModel] = [
            StockReservedEvent(
                inventory_item_id=self.inventory_item_id,
                warehouse_id=self.warehouse_id,
                product_id=self.product_id,
                order_id=order_id,
                quantity=quantity,
                quantity_available=self.quantity_available,
            )
        ]
        if not was_low and self.is_low_stock:
            events.append(self._low_stock_alert())
        return events

    def release_reservation(self, quantity: int, order_id: str) -> List[BaseModel]:
        _require_positive(quantity, "Release quantity")
        if quantity > self.quantity_reserved:
            raise StockConflictError(
                f"Cannot release {quantity} of product {self.product_id}, "
                f"only {self.quantity_reserved} reserved",
                requested=quantity,
                available=self.quantity_reserved,
            )

        self.quantity_reserved -= quantity
        self._touch()
        return [
            StockReservationReleasedEvent(
                inventory_item_id=self.inventory_item_id,
                warehouse_id=self.warehouse_id,
                product_id=self.product_id,
                order_id=order_id,
                quantity=quantity,
                quantity_available=self.quantity_available,
            )
        ]

    def fulfill_reservation(self, quantity: int, order_id: str) -> List[BaseModel]:
        """Ship reserved stock: reserved and on-hand both drop, available is unchanged"""
        _require_positive(quantity, "Fulfillment quantity")
        if quantity > self.quantity_reserved:
            raise StockConflictError(
                f"Cannot fulfill {quantity} of product {self.product_id}, "
                f"only {self.quantity_reserved} reserved",
                requested=quantity,
                available=self.quantity_reserved,
            )

        self.quantity_reserved -= quantity
        self.quantity_on_hand -= quantity
        self._touch()
        return [
            StockFulfilledEvent(
                inventory_item_id=self.inventory_item_id,
                warehouse_id=self.warehouse_id,
                product_id=self.product_id,
                order_id=order_id,
                quantity=quantity,
                quantity_on_hand=self.quantity_on_hand,
            )
        ]

    def update_reorder_settings(self, reorder_point: int, reorder_quantity: int) -> None:
        if reorder_point < 0 or reorder_quantity < 0:
            raise InvalidQuantityError("Reorder settings cannot be negative")
        self.reorder_point = reorder_point
        self.reorder_quantity = reorder_quantity
        self._touch()

    @classmethod
    def create(
        cls,
        warehouse_id: str,
        product_id: str,
        initial_quantity: int = 0,
        reorder_point: int = 10,
        reorder_quantity: int = 50,
    ) -> Tuple["InventoryItem", List[InventoryItemCreatedEvent]]:
        if initial_quantity < 0:
            raise InvalidQuantityError("Initial quantity cannot be negative")
        item = cls(
            warehouse_id=warehouse_id,
            product_id=product_id,
            quantity_on_hand=initial_quantity,
            reorder_point=reorder_point,
            reorder_quantity=reorder_quantity,
            last_restocked_at=_utcnow() if initial_quantity else None,
        )
        event = InventoryItemCreatedEvent(
            inventory_item_id=item.inventory_item_id,
            warehouse_id=warehouse_id,
            product_id=product_id,
            quantity_on_hand=initial_quantity,
        )
        return item, [event]


class StockReservation(BaseModel):
    """Stock held for one order from one inventory item"""
    reservation_id: str = Field(default_factory=lambda: _new_id("res"))
    order_id: str
    inventory_item_id: str
    warehouse_id: str
    product_id: str
    quantity: int = Field(..., gt=0)
    status: ReservationStatus = ReservationStatus.ACTIVE
    created_at: datetime = Field(default_factory=_utcnow)
    updated_at: Optional[datetime] = None


class StockTransfer(BaseModel):
    """Movement of stock between two warehouses"""
    transfer_id: str = Field(default_factory=lambda: _new_id("trf"))
    product_id: str
    from_warehouse_id: str
    to_warehouse_id: str
    quantity: int = Field(..., gt=0)
    status: TransferStatus = TransferStatus.PENDING
    requested_by: Optional[str] = None
    approved_by: Optional[str] = None
    notes: Optional[str] = None
    cancellation_reason: Optional[str] = None
    requested_at: datetime = Field(default_factory=_utcnow)
    approved_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None

    @model_validator(mode='after')
    def validate_route(self):
        if self.from_warehouse_id == self.to_warehouse_id:
            raise ValueError('Cannot transfer to the same warehouse')
        return self

    def approve(self, approved_by: Optional[str] = None) -> List[StockTransferApprovedEvent]:
        if self.status != TransferStatus.PENDING:
            raise InvalidTransferStateError(
                f"Only pending transfers can be approved, transfer {self.transfer_id} is {self.status.value}"
            )
        self.status = TransferStatus.APPROVED
        self.approved_by = approved_by
        self.approved_at = _utcnow()
        return [StockTransferApprovedEvent(transfer_id=self.transfer_id, approved_by=approved_by)]

    def complete(self) -> List[StockTransferCompletedEvent]:
        if self.status != TransferStatus.APPROVED:
            raise InvalidTransferStateError(
                f"Only approved transfers can be completed, transfer {self.transfer_id} is {self.status.value}"
            )
        self.status = TransferStatus.COMPLETED
        self.completed_at = _utcnow()
        return [
            StockTransferCompletedEvent(
                transfer_id=self.transfer_id,
                product_id=self.product_id,
                from_warehouse_id=self.from_warehouse_id,
                to_warehouse_id=self.to_warehouse_id,
                quantity=self.quantity,
            )
        ]

    def cancel(self, reason: Optional[str] = None) -> List[StockTransferCancelledEvent]:
        if self.status in (TransferStatus.COMPLETED, TransferStatus.CANCELLED):
            raise InvalidTransferStateError(
                f"Transfer {self.transfer_id} is {self.status.value} and cannot be cancelled"
            )
        self.status = TransferStatus.CANCELLED
        self.cancellation_reason = reason
        return [StockTransferCancelledEvent(transfer_id=self.transfer_id, reason=reason)]

    @classmethod
    def request(
        cls,
        product_id: str,
        from_warehouse_id: str,
        to_warehouse_id: str,
        quantity: int,
        requested_by: Optional[str] = None,
        notes: Optional[str] = None,
    ) -> Tuple["StockTransfer", List[StockTransferRequestedEvent]]:
        _require_positive(quantity, "Transfer quantity")
        if from_warehouse_id == to_warehouse_id:
            raise InvalidTransferStateError("Cannot transfer to the same warehouse")
        transfer = cls(
            product_id=product_id,
            from_warehouse_id=from_warehouse_id,
            to_warehouse_id=to_warehouse_id,
            quantity=quantity,
            requested_by=requested_by,
            notes=notes,
        )
        event = StockTransferRequestedEvent(
            transfer_id=transfer.transfer_id,
            product_id=product_id,
            from_warehouse_id=from_warehouse_id,
            to_warehouse_id=to_warehouse_id,
            quantity=quantity,
            requested_by=requested_by,
        )
        return transfer, [event]


class InventoryAudit(BaseModel):
    """Physical count of one (warehouse, product) pair"""
    audit_id: str = Field(default_factory=lambda: _new_id("aud"))
    warehouse_id: str
    product_id: str
    expected_quantity: int = Field(..., ge=0)
    actual_quantity: int = Field(..., ge=0)
    audited_by: Optional[str] = None
    notes: Optional[str] = None
    audited_at: datetime = Field(default_factory=_utcnow)

    @computed_field
    @property
    def variance(self) -> int:
        return self.actual_quantity - self.expected_quantity


# Allocation Models

class AllocationRequestItem(BaseModel):
    """One requested order line"""
    product_id: str
    product_name: str = ""
    quantity: int = Field(..., gt=0)


class AllocationRequest(BaseModel):
    """Lines to allocate plus the customer's city for proximity matching"""
    items: List[AllocationRequestItem] = Field(..., min_length=1)
    customer_city: Optional[str] = None


class StockAllocation(BaseModel):
    """Quantity of one product to ship from one warehouse"""
    product_id: str
    warehouse_id: str
    warehouse_code: str
    quantity: int = Field(..., gt=0)


# Request Models

class WarehouseCreateRequest(BaseModel):
    """Create warehouse request"""
    code: str = Field(..., min_length=1)
    name: str = Field(..., min_length=1)
    address: Optional[str] = None
    city: Optional[str] = None
    state: Optional[str] = None
    zip_code: Optional[str] = None
    contact_person: Optional[str] = None
    phone: Optional[str] = None
    priority: Optional[int] = Field(None, ge=1)


class InventoryItemCreateRequest(BaseModel):
    """Create inventory item request"""
    warehouse_id: str
    product_id: str
    initial_quantity: int = Field(0, ge=0)
    reorder_point: Optional[int] = Field(None, ge=0)
    reorder_quantity: Optional[int] = Field(None, ge=0)


# Report Models

class LowStockItem(BaseModel):
    """Inventory item at or below its reorder point"""
    inventory_item_id: str
    product_id: str
    warehouse_id: str
    warehouse_code: Optional[str] = None
    quantity_available: int
    reorder_point: int
    reorder_quantity: int


class InventoryHealthReport(BaseModel):
    """Stock health across all warehouses"""
    total_items: int
    low_stock_items: int
    out_of_stock_items: int
    generated_at: datetime = Field(default_factory=_utcnow)
