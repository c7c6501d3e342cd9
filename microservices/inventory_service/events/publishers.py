"""
Inventory Service Event Publishers

Functions to publish events from inventory service
"""

import logging
from typing import Iterable

from core.event_bus import Event, ServiceSource
from .models import InventoryStreamConfig

logger = logging.getLogger(__name__)


async def publish_inventory_event(
    event_bus,
    event_data,
    topic: str = InventoryStreamConfig.STREAM_NAME,
) -> bool:
    """Publish a single inventory domain event"""
    if not event_bus:
        logger.warning(f"Event bus not available, skipping {event_data.event_type} event")
        return False

    try:
        event = Event(
            event_type=event_data.event_type,
            source=ServiceSource.INVENTORY_SERVICE,
            data=event_data.model_dump(mode='json'),
            subject=topic,
        )

        await event_bus.publish_event(event)
        logger.info(f"Published {event_data.event_type} event to {topic}")
        return True

    except Exception as e:
        logger.error(f"Failed to publish {event_data.event_type} event: {e}")
        return False


async def publish_inventory_events(
    event_bus,
    events: Iterable,
    topic: str = InventoryStreamConfig.STREAM_NAME,
) -> int:
    """Publish events returned by an inventory mutator, in order. Returns the count published."""
    published = 0
    for event_data in events:
        if await publish_inventory_event(event_bus, event_data, topic=topic):
            published += 1
    return published
