#!/usr/bin/env python3
"""
Core Module for Commerce Microservices

Shared components for the promotion and inventory services.

COMPONENTS:
    - config/: Environment-driven settings (CommerceConfig, LoggingConfig)
    - event_bus.py: Event envelope, event bus protocol and retrying wrapper

USAGE:
    from core.config import get_settings, setup_logging
    from core.event_bus import Event, RetryingEventBus

    settings = get_settings()
    setup_logging(settings.logging)
"""

from .config import CommerceConfig, LoggingConfig, get_settings, reload_settings, setup_logging
from .event_bus import Event, EventBusProtocol, EventType, RetryingEventBus, ServiceSource

__all__ = [
    "CommerceConfig",
    "LoggingConfig",
    "get_settings",
    "reload_settings",
    "setup_logging",
    "Event",
    "EventBusProtocol",
    "EventType",
    "RetryingEventBus",
    "ServiceSource",
]
