"""
Component Test Mocks

Shared mock implementations for component testing.
These mocks replace real I/O dependencies (event transport).
"""

from .nats_mock import MockEventBus

# Service-specific mocks live in tests/component/{service}/mocks.py

__all__ = [
    'MockEventBus',
]
