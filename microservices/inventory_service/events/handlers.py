"""
Inventory Service Event Handlers

Handlers for events from other services
"""

import logging
from typing import Any, Callable, Dict

logger = logging.getLogger(__name__)


async def handle_order_canceled(
    event_data: Dict[str, Any],
    inventory_service,
) -> None:
    """
    Handle order.canceled event

    Release the inventory reservation
    """
    try:
        order_id = event_data.get("order_id")

        if not order_id:
            logger.warning("order.canceled event missing order_id")
            return

        logger.info(f"Processing order.canceled event for order {order_id}")
        await inventory_service.release_reservation(order_id)

    except Exception as e:
        logger.error(f"Error handling order.canceled event: {e}")


async def handle_order_fulfilled(
    event_data: Dict[str, Any],
    inventory_service,
) -> None:
    """
    Handle order.fulfilled event

    Ship the reserved stock
    """
    try:
        order_id = event_data.get("order_id")

        if not order_id:
            logger.warning("order.fulfilled event missing order_id")
            return

        logger.info(f"Processing order.fulfilled event for order {order_id}")
        await inventory_service.fulfill_reservation(order_id)

    except Exception as e:
        logger.error(f"Error handling order.fulfilled event: {e}")


def get_event_handlers(inventory_service) -> Dict[str, Callable]:
    """
    Return a mapping of event patterns to handler functions

    Event patterns include the service prefix for proper event routing.

    Args:
        inventory_service: InventoryService instance that owns reservations

    Returns:
        Dict mapping event patterns to handler functions
    """
    return {
        "order_service.order.canceled": lambda event: handle_order_canceled(
            event.data, inventory_service
        ),
        "order_service.order.fulfilled": lambda event: handle_order_fulfilled(
            event.data, inventory_service
        ),
    }
