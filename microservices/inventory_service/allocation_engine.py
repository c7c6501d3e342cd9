"""
Allocation Engine

Pure decision functions that choose source warehouses for order lines.

Per line: prefer one warehouse that can ship the whole quantity, ranked by
city match, then warehouse priority, then available stock. Only when no
single warehouse suffices, split greedily across warehouses, largest stock
first. The plan is advisory; nothing here reserves stock.
"""

import logging
from typing import Dict, Iterable, List, Mapping, NamedTuple, Optional, Sequence

from .models import AllocationRequestItem, InventoryItem, StockAllocation, Warehouse
from .protocols import InsufficientStockError

logger = logging.getLogger(__name__)


class StockSource(NamedTuple):
    """An inventory row joined to its active warehouse"""
    item: InventoryItem
    warehouse: Warehouse

    @property
    def available(self) -> int:
        return self.item.quantity_available


def join_active_sources(
    inventory: Iterable[InventoryItem],
    warehouses: Iterable[Warehouse],
) -> List[StockSource]:
    """Pair inventory rows with their warehouse, dropping inactive or unknown ones"""
    active: Dict[str, Warehouse] = {w.warehouse_id: w for w in warehouses if w.is_active}
    return [
        StockSource(item, active[item.warehouse_id])
        for item in inventory
        if item.warehouse_id in active
    ]


def rank_single_sources(sources: Sequence[StockSource], customer_city: Optional[str]) -> List[StockSource]:
    """City match first, then lower priority number, then more stock; stable otherwise"""
    return sorted(
        sources,
        key=lambda s: (
            0 if s.warehouse.matches_city(customer_city) else 1,
            s.warehouse.priority,
            -s.available,
        ),
    )


def _allocation(source: StockSource, quantity: int) -> StockAllocation:
    return StockAllocation(
        product_id=source.item.product_id,
        warehouse_id=source.warehouse.warehouse_id,
        warehouse_code=source.warehouse.code,
        quantity=quantity,
    )


def allocate_line(
    item: AllocationRequestItem,
    inventory: Iterable[InventoryItem],
    warehouses: Iterable[Warehouse],
    customer_city: Optional[str] = None,
) -> List[StockAllocation]:
    """
    Allocate one requested line.

    Raises:
        InsufficientStockError: If active warehouses cannot cover the
            requested quantity. The reported available figure is the
            product's total across every warehouse, inactive ones included.
    """
    rows = list(inventory)
    sources = join_active_sources(rows, warehouses)

    single = [s for s in sources if s.available >= item.quantity]
    if single:
        chosen = rank_single_sources(single, customer_city)[0]
        logger.debug(
            f"Allocating {item.quantity} of {item.product_id} from {chosen.warehouse.code}"
        )
        return [_allocation(chosen, item.quantity)]

    in_stock = [s for s in sources if s.available > 0]
    if sum(s.available for s in in_stock) < item.quantity:
        total_available = sum(row.quantity_available for row in rows)
        raise InsufficientStockError(
            f"Insufficient stock for {item.product_name or item.product_id}: "
            f"requested {item.quantity}, available {total_available}",
            product_id=item.product_id,
            product_name=item.product_name,
            requested=item.quantity,
            available=total_available,
        )

    allocations: List[StockAllocation] = []
    remaining = item.quantity
    for source in sorted(in_stock, key=lambda s: -s.available):
        if remaining <= 0:
            break
        take = min(source.available, remaining)
        allocations.append(_allocation(source, take))
        remaining -= take

    logger.debug(
        f"Split {item.quantity} of {item.product_id} across "
        f"{', '.join(a.warehouse_code for a in allocations)}"
    )
    return allocations


def allocate_order(
    items: Sequence[AllocationRequestItem],
    inventory_by_product: Mapping[str, Iterable[InventoryItem]],
    warehouses: Sequence[Warehouse],
    customer_city: Optional[str] = None,
) -> List[StockAllocation]:
    """
    Allocate every line in request order, stopping at the first shortfall.

    The raised InsufficientStockError carries the allocations computed for
    earlier lines so callers can compensate.
    """
    plan: List[StockAllocation] = []
    for item in items:
        try:
            plan.extend(
                allocate_line(
                    item,
                    inventory_by_product.get(item.product_id, []),
                    warehouses,
                    customer_city,
                )
            )
        except InsufficientStockError as e:
            e.allocations = list(plan)
            raise
    return plan


__all__ = [
    "StockSource",
    "join_active_sources",
    "rank_single_sources",
    "allocate_line",
    "allocate_order",
]
