"""
Promotion Service Factory

Factory functions for creating service instances with real dependencies.
This is the ONLY place that imports I/O-dependent modules.

Usage:
    from .factory import create_promotion_service
    service = create_promotion_service(config, event_bus)
"""
import logging
from typing import Optional

from core.config import CommerceConfig, get_settings
from core.event_bus import RetryingEventBus

from .promotion_service import PromotionService

logger = logging.getLogger(__name__)


def create_promotion_service(
    config: Optional[CommerceConfig] = None,
    event_bus=None,
    repository=None,
) -> PromotionService:
    """
    Create PromotionService with real dependencies.

    Args:
        config: Commerce settings (defaults to global settings)
        event_bus: Transport event bus, wrapped with publish retries
        repository: Policy store (defaults to the in-process repository)

    Returns:
        Configured PromotionService instance
    """
    config = config or get_settings()

    if repository is None:
        # Import real repository here (not at module level)
        from .promotion_repository import PromotionRepository

        repository = PromotionRepository()

    if event_bus is not None:
        event_bus = RetryingEventBus(
            event_bus,
            max_attempts=config.event_publish_max_attempts,
            backoff_seconds=config.event_publish_backoff_seconds,
        )
    else:
        logger.warning("Promotion service created without an event bus, events will be skipped")

    return PromotionService(
        repository=repository,
        event_bus=event_bus,
        config=config,
    )


__all__ = ["create_promotion_service"]
