"""
Root conftest.py - Global fixtures and configuration for all test layers.

Test Layers:
    - component/: Component tests (services with mocked dependencies)
    - unit/     : Unit tests (pure engines and models, no I/O)
    - contracts/: Test data factories and request builders
"""
import os
import sys
from datetime import datetime, timezone
from decimal import Decimal

import pytest

# Set testing environment BEFORE any imports
os.environ.setdefault("ENV", "testing")

# Add project root to path
PROJECT_ROOT = os.path.dirname(os.path.dirname(os.path.abspath(__file__)))
sys.path.insert(0, PROJECT_ROOT)

from core.config import CommerceConfig


# =============================================================================
# Shared Fixtures
# =============================================================================

@pytest.fixture
def now() -> datetime:
    """Fixed clock for deterministic validity-window checks"""
    return datetime(2025, 6, 15, 12, 0, tzinfo=timezone.utc)


@pytest.fixture
def commerce_config() -> CommerceConfig:
    """Default settings with publish retries that do not sleep"""
    return CommerceConfig(
        environment="testing",
        currency_precision=Decimal("0.01"),
        bogo_discount_fraction=Decimal("0.25"),
        event_publish_max_attempts=3,
        event_publish_backoff_seconds=0,
    )
