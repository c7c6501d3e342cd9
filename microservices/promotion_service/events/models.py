"""
Promotion Service Event Models

Pydantic models for events published by promotion service
"""

from pydantic import BaseModel, Field
from enum import Enum
from typing import Annotated, Optional, List, Literal, Union
from datetime import datetime, timezone
from decimal import Decimal


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


# =============================================================================
# Event Type Definitions (Service-Specific)
# =============================================================================

class PromotionEventType(str, Enum):
    """
    Events published by promotion_service.

    Stream: promotion-events
    Subjects: promotion.>
    """
    PROMOTION_CREATED = "promotion.created"
    PROMOTION_ACTIVATED = "promotion.activated"
    PROMOTION_DEACTIVATED = "promotion.deactivated"
    PROMOTION_USED = "promotion.used"
    PROMOTION_LIMIT_REACHED = "promotion.limit_reached"
    PROMOTION_BEST_SELECTED = "promotion.best_selected"


class PromotionStreamConfig:
    """Stream configuration for promotion_service"""
    STREAM_NAME = "promotion-events"
    SUBJECTS = ["promotion.>"]
    MAX_MESSAGES = 100000
    CONSUMER_PREFIX = "promotion"


# =============================================================================
# Event Data Models
# =============================================================================

class PromotionCreatedEvent(BaseModel):
    """Event published when a promotion is created"""
    event_type: Literal["promotion.created"] = "promotion.created"
    promotion_id: str
    code: str
    name: str
    discount_type: str
    discount_value: Decimal
    timestamp: datetime = Field(default_factory=_utcnow)


class PromotionActivatedEvent(BaseModel):
    """Event published when a promotion is activated"""
    event_type: Literal["promotion.activated"] = "promotion.activated"
    promotion_id: str
    code: str
    timestamp: datetime = Field(default_factory=_utcnow)


class PromotionDeactivatedEvent(BaseModel):
    """Event published when a promotion is deactivated"""
    event_type: Literal["promotion.deactivated"] = "promotion.deactivated"
    promotion_id: str
    code: str
    timestamp: datetime = Field(default_factory=_utcnow)


class PromotionUsedEvent(BaseModel):
    """Event published each time a promotion is applied to an order"""
    event_type: Literal["promotion.used"] = "promotion.used"
    promotion_id: str
    code: str
    usage_count: int
    customer_email: Optional[str] = None
    order_id: Optional[str] = None
    discount_amount: Optional[Decimal] = None
    timestamp: datetime = Field(default_factory=_utcnow)


class PromotionLimitReachedEvent(BaseModel):
    """Event published when a promotion reaches its global usage cap"""
    event_type: Literal["promotion.limit_reached"] = "promotion.limit_reached"
    promotion_id: str
    code: str
    max_usage_count: int
    timestamp: datetime = Field(default_factory=_utcnow)


class BestPromotionSelectedEvent(BaseModel):
    """Event published when a discount plan is calculated for an order"""
    event_type: Literal["promotion.best_selected"] = "promotion.best_selected"
    order_id: Optional[str] = None
    customer_email: Optional[str] = None
    strategy: str
    original_amount: Decimal
    final_amount: Decimal
    total_discount: Decimal
    promotion_ids: List[str] = Field(default_factory=list)
    promotion_codes: List[str] = Field(default_factory=list)
    timestamp: datetime = Field(default_factory=_utcnow)


PromotionDomainEvent = Annotated[
    Union[
        PromotionCreatedEvent,
        PromotionActivatedEvent,
        PromotionDeactivatedEvent,
        PromotionUsedEvent,
        PromotionLimitReachedEvent,
        BestPromotionSelectedEvent,
    ],
    Field(discriminator="event_type"),
]
