"""
Inventory Service - Data Contract

Test data factory for inventory_service.
All test data generated through factory methods.
"""

import uuid
from typing import List, Optional, Tuple

from microservices.inventory_service.models import (
    AllocationRequest,
    AllocationRequestItem,
    InventoryItem,
    Warehouse,
    WarehouseCreateRequest,
)


class InventoryTestDataFactory:
    """Generate test data for inventory tests"""

    @staticmethod
    def make_product_id() -> str:
        return f"prod_{uuid.uuid4().hex[:12]}"

    @staticmethod
    def make_order_id() -> str:
        return f"order_{uuid.uuid4().hex[:12]}"

    @staticmethod
    def make_warehouse(
        code: str,
        city: Optional[str] = None,
        priority: int = 99,
        is_active: bool = True,
        **overrides,
    ) -> Warehouse:
        return Warehouse(
            warehouse_id=f"wh_{code.lower()}",
            code=code,
            name=f"Warehouse {code}",
            city=city,
            priority=priority,
            is_active=is_active,
            **overrides,
        )

    @staticmethod
    def make_item(
        warehouse: Warehouse,
        product_id: str,
        on_hand: int,
        reserved: int = 0,
        **overrides,
    ) -> InventoryItem:
        return InventoryItem(
            warehouse_id=warehouse.warehouse_id,
            product_id=product_id,
            quantity_on_hand=on_hand,
            quantity_reserved=reserved,
            **overrides,
        )

    @staticmethod
    def make_warehouse_request(code: str, city: Optional[str] = None, priority: Optional[int] = None) -> WarehouseCreateRequest:
        return WarehouseCreateRequest(code=code, name=f"Warehouse {code}", city=city, priority=priority)

    @staticmethod
    def make_allocation_request(
        lines: List[Tuple[str, int]],
        customer_city: Optional[str] = None,
    ) -> AllocationRequest:
        """Build a request from (product_id, quantity) pairs"""
        return AllocationRequest(
            items=[
                AllocationRequestItem(product_id=product_id, product_name=f"Product {product_id}", quantity=quantity)
                for product_id, quantity in lines
            ],
            customer_city=customer_city,
        )
