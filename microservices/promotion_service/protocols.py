"""
Promotion Service Protocols (Interfaces)

These interfaces define contracts for dependency injection.
NO import-time I/O dependencies - safe to import anywhere.
"""
from typing import TYPE_CHECKING, List, Optional, Protocol, runtime_checkable

from core.event_bus import EventBusProtocol

if TYPE_CHECKING:
    from .models import Promotion, PromotionUsage, RuleType


# ============================================================================
# Custom Exceptions - defined here to avoid importing repository
# ============================================================================

class PromotionServiceError(Exception):
    """Base exception for promotion service errors"""
    pass


class PromotionNotFoundError(PromotionServiceError):
    """Raised when a promotion code or id does not exist"""
    pass


class PromotionAlreadyExistsError(PromotionServiceError):
    """Raised when a promotion code is already taken"""
    pass


class PromotionNotEligibleError(PromotionServiceError):
    """Raised when a promotion cannot be applied to an order"""

    def __init__(
        self,
        message: str,
        reason: Optional[str] = None,
        failed_rule: Optional["RuleType"] = None,
    ):
        super().__init__(message)
        self.reason = reason
        self.failed_rule = failed_rule


class PromotionUsageLimitReachedError(PromotionServiceError):
    """Raised when a promotion has no remaining uses"""

    def __init__(
        self,
        message: str,
        promotion_id: Optional[str] = None,
        max_usage_count: Optional[int] = None,
    ):
        super().__init__(message)
        self.promotion_id = promotion_id
        self.max_usage_count = max_usage_count


# ============================================================================
# Repository Protocol
# ============================================================================

@runtime_checkable
class PolicyStoreProtocol(Protocol):
    """
    Storage contract for promotion definitions and usage history.

    Implementations must serialize mutations per promotion id
    (row lock, version check or single writer).
    """

    async def find_active_promotions(self) -> List["Promotion"]:
        """Promotions flagged active, in a stable store order"""
        ...

    async def find_by_code(self, code: str) -> Optional["Promotion"]:
        """Case-insensitive code lookup"""
        ...

    async def find_by_id(self, promotion_id: str) -> Optional["Promotion"]:
        ...

    async def find_all(self) -> List["Promotion"]:
        ...

    async def add_promotion(self, promotion: "Promotion") -> "Promotion":
        ...

    async def update_promotion(self, promotion: "Promotion") -> "Promotion":
        ...

    async def customer_usage_count(self, promotion_id: str, email: str) -> int:
        """Number of recorded usages of a promotion by one customer"""
        ...

    async def record_usage(self, usage: "PromotionUsage") -> None:
        """Persist an immutable usage record"""
        ...

    async def increment_usage(self, promotion_id: str) -> None:
        """Atomically add one to the promotion's usage counter"""
        ...

    async def find_usages(self, promotion_id: str) -> List["PromotionUsage"]:
        """Usage records for a promotion, oldest first"""
        ...


__all__ = [
    # Exceptions
    "PromotionServiceError",
    "PromotionNotFoundError",
    "PromotionAlreadyExistsError",
    "PromotionNotEligibleError",
    "PromotionUsageLimitReachedError",
    # Protocols
    "PolicyStoreProtocol",
    "EventBusProtocol",
]
