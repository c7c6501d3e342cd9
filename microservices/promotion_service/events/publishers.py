"""
Promotion Service Event Publishers

Functions to publish events from promotion service
"""

import logging
from typing import Iterable, List, Optional

from core.event_bus import Event, ServiceSource
from .models import (
    PromotionStreamConfig,
    BestPromotionSelectedEvent,
)

logger = logging.getLogger(__name__)


async def publish_promotion_event(
    event_bus,
    event_data,
    topic: str = PromotionStreamConfig.STREAM_NAME,
) -> bool:
    """Publish a single promotion domain event"""
    if not event_bus:
        logger.warning(f"Event bus not available, skipping {event_data.event_type} event")
        return False

    try:
        event = Event(
            event_type=event_data.event_type,
            source=ServiceSource.PROMOTION_SERVICE,
            data=event_data.model_dump(mode='json'),
            subject=topic,
        )

        await event_bus.publish_event(event)
        logger.info(f"Published {event_data.event_type} event to {topic}")
        return True

    except Exception as e:
        logger.error(f"Failed to publish {event_data.event_type} event: {e}")
        return False


async def publish_promotion_events(
    event_bus,
    events: Iterable,
    topic: str = PromotionStreamConfig.STREAM_NAME,
) -> int:
    """Publish events returned by a promotion mutator, in order. Returns the count published."""
    published = 0
    for event_data in events:
        if await publish_promotion_event(event_bus, event_data, topic=topic):
            published += 1
    return published


async def publish_best_promotion_selected(
    event_bus,
    plan,
    order_id: Optional[str] = None,
    customer_email: Optional[str] = None,
    topic: str = PromotionStreamConfig.STREAM_NAME,
) -> bool:
    """Publish promotion.best_selected event for a calculated discount plan"""
    applied: List = plan.applied_promotions
    event_data = BestPromotionSelectedEvent(
        order_id=order_id,
        customer_email=customer_email,
        strategy=plan.strategy.value,
        original_amount=plan.original_amount,
        final_amount=plan.final_amount,
        total_discount=plan.total_discount,
        promotion_ids=[p.promotion_id for p in applied],
        promotion_codes=[p.code for p in applied],
    )
    return await publish_promotion_event(event_bus, event_data, topic=topic)
