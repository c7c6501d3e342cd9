"""
Promotion Service - Business Logic Layer

Orchestrates the promotion engine:
- Promotion lifecycle (create, activate, deactivate)
- Best discount plan calculation (read-only)
- Coupon validation with the failing reason
- Application to a persisted order (the only path that mutates usage)
- Usage history, analytics and effectiveness reporting
"""

import logging
from datetime import datetime
from decimal import Decimal
from typing import Dict, List, Optional

from core.config import CommerceConfig, get_settings

from . import promotion_engine
from .events.publishers import (
    publish_promotion_events,
    publish_best_promotion_selected,
)
from .models import (
    DiscountPlan,
    OrderContext,
    Promotion,
    PromotionAnalytics,
    PromotionApplicationResult,
    PromotionCreateRequest,
    PromotionEffectiveness,
    PromotionUsage,
    PromotionValidationResult,
)
from .protocols import (
    PolicyStoreProtocol,
    EventBusProtocol,
    PromotionAlreadyExistsError,
    PromotionNotEligibleError,
    PromotionNotFoundError,
)

logger = logging.getLogger(__name__)


class PromotionService:
    """
    Promotion Service - Core business logic

    Calculation never touches usage counters. Only apply_promotion_to_order
    records a PromotionUsage and increments the counter, once per order.
    """

    def __init__(
        self,
        repository: PolicyStoreProtocol,
        event_bus: Optional[EventBusProtocol] = None,
        config: Optional[CommerceConfig] = None,
    ):
        """
        Initialize promotion service with dependencies.

        Args:
            repository: Policy store for promotion definitions and usage
            event_bus: Event bus for publishing events (optional)
            config: Commerce settings (defaults to global settings)
        """
        self.repository = repository
        self.event_bus = event_bus
        self.config = config or get_settings()

    @property
    def topic(self) -> str:
        return self.config.promotion_events_topic

    async def _get_or_raise(self, promotion_id: str) -> Promotion:
        promotion = await self.repository.find_by_id(promotion_id)
        if promotion is None:
            raise PromotionNotFoundError(f"Promotion {promotion_id} not found")
        return promotion

    # ====================
    # Lifecycle
    # ====================

    async def create_promotion(self, request: PromotionCreateRequest) -> Promotion:
        """
        Create a new promotion.

        Raises:
            PromotionAlreadyExistsError: If the code is already taken
        """
        existing = await self.repository.find_by_code(request.code)
        if existing is not None:
            raise PromotionAlreadyExistsError(f"Promotion code {existing.code} already exists")

        promotion, events = Promotion.create(request)
        promotion = await self.repository.add_promotion(promotion)
        logger.info(f"Created promotion {promotion.code} ({promotion.promotion_id})")

        await publish_promotion_events(self.event_bus, events, topic=self.topic)
        return promotion

    async def get_promotion(self, promotion_id: str) -> Optional[Promotion]:
        return await self.repository.find_by_id(promotion_id)

    async def get_promotion_by_code(self, code: str) -> Optional[Promotion]:
        return await self.repository.find_by_code(code)

    async def get_active_promotions(self, now: Optional[datetime] = None) -> List[Promotion]:
        promotions = await self.repository.find_active_promotions()
        return promotion_engine.filter_active(promotions, now)

    async def activate_promotion(self, promotion_id: str) -> Promotion:
        promotion = await self._get_or_raise(promotion_id)
        events = promotion.activate()
        promotion = await self.repository.update_promotion(promotion)
        logger.info(f"Activated promotion {promotion.code}")

        await publish_promotion_events(self.event_bus, events, topic=self.topic)
        return promotion

    async def deactivate_promotion(self, promotion_id: str) -> Promotion:
        promotion = await self._get_or_raise(promotion_id)
        events = promotion.deactivate()
        promotion = await self.repository.update_promotion(promotion)
        logger.info(f"Deactivated promotion {promotion.code}")

        await publish_promotion_events(self.event_bus, events, topic=self.topic)
        return promotion

    # ====================
    # Calculation
    # ====================

    async def _usage_counts(self, context: OrderContext, promotions: List[Promotion]) -> Dict[str, int]:
        counts: Dict[str, int] = {}
        for promotion_id in promotion_engine.usage_counts_needed(context, promotions):
            counts[promotion_id] = await self.repository.customer_usage_count(
                promotion_id, context.customer_email
            )
        return counts

    async def calculate_best_promotions(
        self,
        context: OrderContext,
        order_id: Optional[str] = None,
        now: Optional[datetime] = None,
    ) -> DiscountPlan:
        """
        Calculate the best discount plan for an order.

        Never raises for "nothing eligible" and never mutates usage state.
        """
        promotions = promotion_engine.filter_active(
            await self.repository.find_active_promotions(), now
        )
        usage_counts = await self._usage_counts(context, promotions)

        candidates = promotion_engine.collect_candidates(context, promotions, usage_counts, now)
        plan = promotion_engine.select_best_plan(
            context,
            candidates,
            bogo_fraction=self.config.bogo_discount_fraction,
            precision=self.config.currency_precision,
        )

        if plan.has_discount:
            logger.info(
                f"Best plan for order {order_id or '-'}: {plan.strategy.value}, "
                f"discount {plan.total_discount} on {plan.original_amount}"
            )
            await publish_best_promotion_selected(
                self.event_bus,
                plan,
                order_id=order_id,
                customer_email=context.customer_email,
                topic=self.topic,
            )
        else:
            logger.debug(f"No eligible promotions for order {order_id or '-'}")

        return plan

    async def validate_promotion_code(
        self,
        code: str,
        context: OrderContext,
        now: Optional[datetime] = None,
    ) -> PromotionValidationResult:
        """Check one code against an order and report the failing reason"""
        promotion = await self.repository.find_by_code(code)
        if promotion is None:
            return PromotionValidationResult(
                code=code.strip().upper(),
                valid=False,
                reason=f"Promotion code {code} not found",
            )

        usage_count = 0
        if promotion.max_usage_per_customer is not None and context.customer_email:
            usage_count = await self.repository.customer_usage_count(
                promotion.promotion_id, context.customer_email
            )

        result = promotion_engine.check_eligibility(promotion, context, usage_count, now)
        if not result.eligible:
            return PromotionValidationResult(
                code=promotion.code,
                valid=False,
                reason=result.reason,
                failed_rule=result.failed_rule,
            )

        return PromotionValidationResult(
            code=promotion.code,
            valid=True,
            discount_amount=promotion_engine.calculate_discount(
                promotion,
                context.order_total,
                self.config.bogo_discount_fraction,
                self.config.currency_precision,
            ),
        )

    # ====================
    # Application
    # ====================

    async def apply_promotion_to_order(
        self,
        order_id: str,
        code: str,
        context: OrderContext,
        now: Optional[datetime] = None,
    ) -> PromotionApplicationResult:
        """
        Apply a promotion to a persisted order.

        Raises:
            PromotionNotFoundError: If the code does not exist
            PromotionNotEligibleError: If any eligibility check fails, or the
                promotion was already applied to this order
            PromotionUsageLimitReachedError: If the global cap was reached concurrently
        """
        promotion = await self.repository.find_by_code(code)
        if promotion is None:
            raise PromotionNotFoundError(f"Promotion code {code} not found")

        usages = await self.repository.find_usages(promotion.promotion_id)
        if any(u.order_id == order_id for u in usages):
            logger.warning(f"Promotion {promotion.code} already applied to order {order_id}")
            raise PromotionNotEligibleError(
                f"Promotion {promotion.code} cannot be applied to order {order_id}",
                reason=f"already applied to order {order_id}",
            )

        usage_count = 0
        if promotion.max_usage_per_customer is not None and context.customer_email:
            usage_count = await self.repository.customer_usage_count(
                promotion.promotion_id, context.customer_email
            )

        result = promotion_engine.check_eligibility(promotion, context, usage_count, now)
        if not result.eligible:
            logger.warning(f"Promotion {promotion.code} rejected for order {order_id}: {result.reason}")
            raise PromotionNotEligibleError(
                f"Promotion {promotion.code} cannot be applied to order {order_id}",
                reason=result.reason,
                failed_rule=result.failed_rule,
            )

        discount = promotion_engine.calculate_discount(
            promotion,
            context.order_total,
            self.config.bogo_discount_fraction,
            self.config.currency_precision,
        )

        events = promotion.increment_usage(
            customer_email=context.customer_email,
            order_id=order_id,
            discount_amount=discount,
        )
        usage = PromotionUsage(
            promotion_id=promotion.promotion_id,
            order_id=order_id,
            customer_email=context.customer_email,
            order_total=context.order_total,
            discount_amount=discount,
        )
        await self.repository.increment_usage(promotion.promotion_id)
        await self.repository.record_usage(usage)
        logger.info(f"Applied promotion {promotion.code} to order {order_id}: discount {discount}")

        await publish_promotion_events(self.event_bus, events, topic=self.topic)

        return PromotionApplicationResult(
            promotion_id=promotion.promotion_id,
            code=promotion.code,
            order_id=order_id,
            discount_amount=discount,
            final_amount=context.order_total - discount,
            usage=usage,
        )

    # ====================
    # Usage & Analytics
    # ====================

    async def get_customer_usage_count(self, promotion_id: str, customer_email: Optional[str]) -> int:
        if not customer_email:
            return 0
        return await self.repository.customer_usage_count(promotion_id, customer_email)

    async def get_promotion_usage_history(self, promotion_id: str) -> List[PromotionUsage]:
        return await self.repository.find_usages(promotion_id)

    async def get_promotion_analytics(self, promotion_id: str) -> PromotionAnalytics:
        promotion = await self._get_or_raise(promotion_id)
        usages = await self.repository.find_usages(promotion_id)

        total_discount = sum((u.discount_amount for u in usages), Decimal("0"))
        total_value = sum((u.order_total for u in usages), Decimal("0"))
        customers = {u.customer_email for u in usages if u.customer_email}
        average = (
            promotion_engine.quantize(total_discount / len(usages), self.config.currency_precision)
            if usages else Decimal("0")
        )

        return PromotionAnalytics(
            promotion_id=promotion.promotion_id,
            code=promotion.code,
            name=promotion.name,
            total_usage_count=len(usages),
            total_discount_given=total_discount,
            total_order_value=total_value,
            unique_customers=len(customers),
            average_discount=average,
            start_date=promotion.start_date,
            end_date=promotion.end_date,
            is_active=promotion.is_active,
        )

    async def get_promotion_effectiveness_report(self) -> List[PromotionEffectiveness]:
        """Per-promotion effectiveness, highest revenue first"""
        report: List[PromotionEffectiveness] = []
        for promotion in await self.repository.find_all():
            usages = await self.repository.find_usages(promotion.promotion_id)
            conversion = Decimal("0")
            if promotion.max_usage_count:
                conversion = promotion_engine.quantize(
                    Decimal(len(usages)) / Decimal(promotion.max_usage_count) * Decimal("100")
                )
            report.append(
                PromotionEffectiveness(
                    promotion_id=promotion.promotion_id,
                    code=promotion.code,
                    name=promotion.name,
                    total_usage=len(usages),
                    total_discount=sum((u.discount_amount for u in usages), Decimal("0")),
                    total_revenue=sum((u.order_total for u in usages), Decimal("0")),
                    conversion_rate=conversion,
                )
            )

        report.sort(key=lambda r: r.total_revenue, reverse=True)
        return report
