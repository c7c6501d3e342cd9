"""
Promotion Service Events Module

Exports all event-related functionality for promotion service
"""

from .models import (
    PromotionEventType,
    PromotionStreamConfig,
    PromotionCreatedEvent,
    PromotionActivatedEvent,
    PromotionDeactivatedEvent,
    PromotionUsedEvent,
    PromotionLimitReachedEvent,
    BestPromotionSelectedEvent,
    PromotionDomainEvent,
)

from .publishers import (
    publish_promotion_event,
    publish_promotion_events,
    publish_best_promotion_selected,
)

__all__ = [
    # Event Types
    "PromotionEventType",
    "PromotionStreamConfig",
    # Event Models
    "PromotionCreatedEvent",
    "PromotionActivatedEvent",
    "PromotionDeactivatedEvent",
    "PromotionUsedEvent",
    "PromotionLimitReachedEvent",
    "BestPromotionSelectedEvent",
    "PromotionDomainEvent",
    # Publishers
    "publish_promotion_event",
    "publish_promotion_events",
    "publish_best_promotion_selected",
]
