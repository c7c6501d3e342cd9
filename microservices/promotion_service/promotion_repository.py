"""
Promotion Repository

In-process implementation of PolicyStoreProtocol. Stores deep copies so
callers never share mutable aggregates with the store, and serializes
mutations per promotion id with an asyncio lock.
"""

import asyncio
import logging
from collections import defaultdict
from typing import Dict, List, Optional

from .models import Promotion, PromotionUsage
from .protocols import (
    PromotionAlreadyExistsError,
    PromotionNotFoundError,
    PromotionUsageLimitReachedError,
)

logger = logging.getLogger(__name__)


class PromotionRepository:
    """
    Repository for promotion definitions and usage records

    Suitable for a single process; a database-backed store must provide the
    same per-promotion serialization with row locks or version checks.
    """

    def __init__(self):
        self._promotions: Dict[str, Promotion] = {}
        self._code_index: Dict[str, str] = {}  # code -> promotion_id
        self._usages: Dict[str, List[PromotionUsage]] = defaultdict(list)
        self._locks: Dict[str, asyncio.Lock] = defaultdict(asyncio.Lock)

    async def find_active_promotions(self) -> List[Promotion]:
        return [p.model_copy(deep=True) for p in self._promotions.values() if p.is_active]

    async def find_by_code(self, code: str) -> Optional[Promotion]:
        promotion_id = self._code_index.get(code.strip().upper())
        if promotion_id is None:
            return None
        return self._promotions[promotion_id].model_copy(deep=True)

    async def find_by_id(self, promotion_id: str) -> Optional[Promotion]:
        promotion = self._promotions.get(promotion_id)
        return promotion.model_copy(deep=True) if promotion else None

    async def find_all(self) -> List[Promotion]:
        return [p.model_copy(deep=True) for p in self._promotions.values()]

    async def add_promotion(self, promotion: Promotion) -> Promotion:
        if promotion.code in self._code_index:
            raise PromotionAlreadyExistsError(f"Promotion code {promotion.code} already exists")
        self._promotions[promotion.promotion_id] = promotion.model_copy(deep=True)
        self._code_index[promotion.code] = promotion.promotion_id
        logger.debug(f"Stored promotion {promotion.code}")
        return promotion

    async def update_promotion(self, promotion: Promotion) -> Promotion:
        async with self._locks[promotion.promotion_id]:
            if promotion.promotion_id not in self._promotions:
                raise PromotionNotFoundError(f"Promotion {promotion.promotion_id} not found")
            self._promotions[promotion.promotion_id] = promotion.model_copy(deep=True)
        return promotion

    async def customer_usage_count(self, promotion_id: str, email: str) -> int:
        target = email.strip().lower()
        return sum(
            1 for u in self._usages.get(promotion_id, [])
            if u.customer_email and u.customer_email.strip().lower() == target
        )

    async def record_usage(self, usage: PromotionUsage) -> None:
        self._usages[usage.promotion_id].append(usage)

    async def increment_usage(self, promotion_id: str) -> None:
        async with self._locks[promotion_id]:
            promotion = self._promotions.get(promotion_id)
            if promotion is None:
                raise PromotionNotFoundError(f"Promotion {promotion_id} not found")
            if promotion.usage_limit_reached:
                raise PromotionUsageLimitReachedError(
                    f"Promotion {promotion.code} has reached its usage limit",
                    promotion_id=promotion_id,
                    max_usage_count=promotion.max_usage_count,
                )
            promotion.current_usage_count += 1

    async def find_usages(self, promotion_id: str) -> List[PromotionUsage]:
        return list(self._usages.get(promotion_id, []))
