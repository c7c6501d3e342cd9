#!/usr/bin/env python3
"""Commerce platform main configuration

Settings shared by the promotion and inventory services: money precision,
stock defaults, event topics and publish retry policy.
"""
import os
from dataclasses import dataclass, field
from decimal import Decimal, InvalidOperation

from .logging_config import LoggingConfig


def _int(val: str, default: int) -> int:
    try:
        return int(val) if val else default
    except ValueError:
        return default

def _float(val: str, default: float) -> float:
    try:
        return float(val) if val else default
    except ValueError:
        return default

def _decimal(val: str, default: str) -> Decimal:
    try:
        return Decimal(val) if val else Decimal(default)
    except InvalidOperation:
        return Decimal(default)


@dataclass
class CommerceConfig:
    """Main commerce configuration with sub-configs"""

    environment: str = "development"

    # Money
    currency_precision: Decimal = Decimal("0.01")
    # Approximation: a BOGO discount is a fixed fraction of the order total
    bogo_discount_fraction: Decimal = Decimal("0.25")

    # Inventory defaults
    default_reorder_point: int = 10
    default_reorder_quantity: int = 50
    default_warehouse_priority: int = 99

    # Event topics
    promotion_events_topic: str = "promotion-events"
    inventory_events_topic: str = "inventory-events"

    # Event publish retry
    event_publish_max_attempts: int = 3
    event_publish_backoff_seconds: float = 0.5

    logging: LoggingConfig = field(default_factory=LoggingConfig)

    @classmethod
    def from_env(cls) -> 'CommerceConfig':
        """Load complete configuration from environment"""
        env = os.getenv("ENV") or os.getenv("ENVIRONMENT", "development")
        return cls(
            environment=env,
            currency_precision=_decimal(os.getenv("CURRENCY_PRECISION", ""), "0.01"),
            bogo_discount_fraction=_decimal(os.getenv("BOGO_DISCOUNT_FRACTION", ""), "0.25"),
            default_reorder_point=_int(os.getenv("DEFAULT_REORDER_POINT", "10"), 10),
            default_reorder_quantity=_int(os.getenv("DEFAULT_REORDER_QUANTITY", "50"), 50),
            default_warehouse_priority=_int(os.getenv("DEFAULT_WAREHOUSE_PRIORITY", "99"), 99),
            promotion_events_topic=os.getenv("PROMOTION_EVENTS_TOPIC", "promotion-events"),
            inventory_events_topic=os.getenv("INVENTORY_EVENTS_TOPIC", "inventory-events"),
            event_publish_max_attempts=_int(os.getenv("EVENT_PUBLISH_MAX_ATTEMPTS", "3"), 3),
            event_publish_backoff_seconds=_float(os.getenv("EVENT_PUBLISH_BACKOFF_SECONDS", "0.5"), 0.5),
            logging=LoggingConfig.from_env(),
        )
