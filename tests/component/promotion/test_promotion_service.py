"""
Promotion Service Component Tests

Tests PromotionService with a mocked policy store and event bus.
Calculation must stay read-only; application is the only path that
records usage.
"""

from decimal import Decimal

import pytest

from microservices.promotion_service.models import DiscountType, PlanStrategy, RuleType
from microservices.promotion_service.promotion_service import PromotionService
from microservices.promotion_service.protocols import (
    PromotionAlreadyExistsError,
    PromotionNotEligibleError,
    PromotionNotFoundError,
)
from tests.contracts.promotion.data_contract import (
    PromotionCreateRequestBuilder,
    PromotionTestDataFactory as F,
)

from .mocks import MockPolicyStore

pytestmark = [pytest.mark.component, pytest.mark.asyncio]


# =============================================================================
# Fixtures
# =============================================================================

@pytest.fixture
def mock_store():
    return MockPolicyStore()


@pytest.fixture
def service(mock_store, mock_event_bus, commerce_config):
    return PromotionService(
        repository=mock_store,
        event_bus=mock_event_bus,
        config=commerce_config,
    )


@pytest.fixture
def mega20(mock_store, now):
    return mock_store.set_promotion(
        F.make_coupon(
            "MEGA20",
            discount_type=DiscountType.PERCENTAGE,
            discount_value=Decimal("20"),
            max_discount_amount=Decimal("50"),
            minimum_purchase_amount=Decimal("100"),
            max_usage_count=3,
            now=now,
        )
    )


# =============================================================================
# Lifecycle
# =============================================================================

class TestPromotionLifecycle:

    async def test_create_publishes_created_event(self, service, mock_store, mock_event_bus, now):
        request = PromotionCreateRequestBuilder(now).with_code("spring15").build()

        promotion = await service.create_promotion(request)

        assert promotion.code == "SPRING15"
        assert mock_store.stored(promotion.promotion_id).code == "SPRING15"
        mock_event_bus.assert_event_published("promotion.created", {"code": "SPRING15"})

    async def test_duplicate_code_rejected(self, service, mega20, mock_event_bus, now):
        request = PromotionCreateRequestBuilder(now).with_code("mega20").build()

        with pytest.raises(PromotionAlreadyExistsError):
            await service.create_promotion(request)
        mock_event_bus.assert_no_events_published()

    async def test_deactivate_and_activate(self, service, mega20, mock_event_bus, now):
        await service.deactivate_promotion(mega20.promotion_id)
        assert await service.get_active_promotions(now) == []

        await service.activate_promotion(mega20.promotion_id)
        active = await service.get_active_promotions(now)

        assert [p.code for p in active] == ["MEGA20"]
        assert mock_event_bus.get_published_types() == ["promotion.deactivated", "promotion.activated"]

    async def test_unknown_promotion_raises(self, service):
        with pytest.raises(PromotionNotFoundError):
            await service.activate_promotion("promo_missing")

    async def test_get_by_code_is_case_insensitive(self, service, mega20):
        promotion = await service.get_promotion_by_code("  mega20 ")
        assert promotion.promotion_id == mega20.promotion_id


# =============================================================================
# Calculation
# =============================================================================

class TestCalculateBestPromotions:

    async def test_coupon_plan_is_read_only(self, service, mega20, mock_store, mock_event_bus, now):
        context = F.make_order_context(Decimal("150"), coupon_code="MEGA20")

        plan = await service.calculate_best_promotions(context, order_id="order_1", now=now)

        assert plan.total_discount == Decimal("30.00")
        assert plan.final_amount == Decimal("120.00")
        assert plan.strategy == PlanStrategy.SINGLE
        mock_store.assert_not_called("increment_usage")
        mock_store.assert_not_called("record_usage")
        assert mock_store.stored(mega20.promotion_id).current_usage_count == 0
        mock_event_bus.assert_event_published(
            "promotion.best_selected",
            {"order_id": "order_1", "promotion_codes": ["MEGA20"]},
        )

    async def test_nothing_eligible_returns_empty_plan(self, service, mega20, mock_event_bus, now):
        context = F.make_order_context(Decimal("80"), coupon_code="MEGA20")

        plan = await service.calculate_best_promotions(context, now=now)

        assert plan.total_discount == Decimal("0")
        assert plan.final_amount == Decimal("80")
        assert plan.applied_promotions == []
        mock_event_bus.assert_no_events_published()

    async def test_repeated_calculation_leaves_counters_alone(self, service, mega20, mock_store, now):
        context = F.make_order_context(Decimal("150"), coupon_code="MEGA20")

        plans = [await service.calculate_best_promotions(context, now=now) for _ in range(5)]

        assert all(p == plans[0] for p in plans)
        assert mock_store.stored(mega20.promotion_id).current_usage_count == 0

    async def test_per_customer_cap_uses_recorded_usage(self, service, mock_store, now):
        promotion = mock_store.set_promotion(
            F.make_promotion("ONCE", DiscountType.FIXED_AMOUNT, Decimal("5"), now=now, max_usage_per_customer=1)
        )
        mock_store.set_usage(F.make_usage(promotion.promotion_id, customer_email="repeat@example.com"))

        repeat = await service.calculate_best_promotions(
            F.make_order_context(customer_email="Repeat@Example.com"), now=now
        )
        fresh = await service.calculate_best_promotions(
            F.make_order_context(customer_email="new@example.com"), now=now
        )

        assert repeat.applied_promotions == []
        assert [a.code for a in fresh.applied_promotions] == ["ONCE"]
        mock_store.assert_called("customer_usage_count")

    async def test_expired_promotions_ignored(self, service, mock_store, now):
        mock_store.set_promotion(
            F.make_promotion("OLD", now=now, start_date=now.replace(year=2024), end_date=now.replace(month=1))
        )

        plan = await service.calculate_best_promotions(F.make_order_context(), now=now)

        assert plan.applied_promotions == []

    async def test_expired_promotions_skip_usage_lookup(self, service, mock_store, now):
        mock_store.set_promotion(
            F.make_promotion(
                "OLD",
                now=now,
                start_date=now.replace(year=2024),
                end_date=now.replace(month=1),
                max_usage_per_customer=1,
            )
        )

        plan = await service.calculate_best_promotions(
            F.make_order_context(customer_email="a@example.com"), now=now
        )

        assert plan.applied_promotions == []
        mock_store.assert_not_called("customer_usage_count")

    async def test_configured_bogo_fraction(self, mock_store, mock_event_bus, commerce_config, now):
        commerce_config.bogo_discount_fraction = Decimal("0.5")
        service = PromotionService(mock_store, mock_event_bus, commerce_config)
        mock_store.set_promotion(F.make_promotion("BOGO", DiscountType.BUY_ONE_GET_ONE, Decimal("1"), now=now))

        plan = await service.calculate_best_promotions(F.make_order_context(Decimal("60")), now=now)

        assert plan.total_discount == Decimal("30.00")

    async def test_works_without_event_bus(self, mock_store, commerce_config, mega20, now):
        service = PromotionService(mock_store, config=commerce_config)

        plan = await service.calculate_best_promotions(
            F.make_order_context(Decimal("150"), coupon_code="MEGA20"), now=now
        )

        assert plan.total_discount == Decimal("30.00")


# =============================================================================
# Validation
# =============================================================================

class TestValidatePromotionCode:

    async def test_unknown_code(self, service):
        result = await service.validate_promotion_code("nope", F.make_order_context())

        assert result.valid is False
        assert result.code == "NOPE"
        assert "not found" in result.reason

    async def test_below_minimum_reports_reason(self, service, mega20, now):
        result = await service.validate_promotion_code("mega20", F.make_order_context(Decimal("80")), now=now)

        assert result.valid is False
        assert "minimum purchase" in result.reason

    async def test_failed_rule_reported(self, service, mock_store, now):
        mock_store.set_promotion(
            F.make_coupon(
                "SHOES",
                now=now,
                rules=[F.make_rule(RuleType.SPECIFIC_PRODUCTS, target_product_ids=["shoe"])],
            )
        )

        result = await service.validate_promotion_code(
            "SHOES", F.make_order_context(product_ids=["hat"]), now=now
        )

        assert result.valid is False
        assert result.failed_rule == RuleType.SPECIFIC_PRODUCTS

    async def test_valid_code_reports_discount(self, service, mega20, mock_store, now):
        result = await service.validate_promotion_code("MEGA20", F.make_order_context(Decimal("400")), now=now)

        assert result.valid is True
        assert result.discount_amount == Decimal("50.00")
        mock_store.assert_not_called("increment_usage")


# =============================================================================
# Application
# =============================================================================

class TestApplyPromotionToOrder:

    async def test_apply_records_usage_once(self, service, mega20, mock_store, mock_event_bus, now):
        context = F.make_order_context(Decimal("150"), customer_email="a@example.com", coupon_code="MEGA20")

        result = await service.apply_promotion_to_order("order_1", "MEGA20", context, now=now)

        assert result.discount_amount == Decimal("30.00")
        assert result.final_amount == Decimal("120.00")
        assert result.usage.order_id == "order_1"
        assert len(mock_store.get_calls("increment_usage")) == 1
        assert len(mock_store.get_calls("record_usage")) == 1
        assert mock_store.stored(mega20.promotion_id).current_usage_count == 1
        mock_event_bus.assert_event_published("promotion.used", {"order_id": "order_1", "usage_count": 1})

    async def test_last_use_publishes_limit_reached(self, service, mock_store, mock_event_bus, now):
        promotion = mock_store.set_promotion(
            F.make_promotion("LAST", now=now, max_usage_count=1)
        )

        await service.apply_promotion_to_order("order_1", "LAST", F.make_order_context(), now=now)

        assert mock_event_bus.get_published_types() == ["promotion.used", "promotion.limit_reached"]
        assert mock_store.stored(promotion.promotion_id).usage_limit_reached

    async def test_exhausted_promotion_rejected(self, service, mock_store, now):
        mock_store.set_promotion(F.make_promotion("GONE", now=now, max_usage_count=2, current_usage_count=2))

        with pytest.raises(PromotionNotEligibleError) as exc_info:
            await service.apply_promotion_to_order("order_1", "GONE", F.make_order_context(), now=now)

        assert "usage limit" in exc_info.value.reason
        mock_store.assert_not_called("increment_usage")

    async def test_ineligible_order_mutates_nothing(self, service, mega20, mock_store, mock_event_bus, now):
        with pytest.raises(PromotionNotEligibleError) as exc_info:
            await service.apply_promotion_to_order(
                "order_1", "MEGA20", F.make_order_context(Decimal("80")), now=now
            )

        assert "minimum purchase" in exc_info.value.reason
        mock_store.assert_not_called("increment_usage")
        mock_store.assert_not_called("record_usage")
        mock_event_bus.assert_no_events_published()

    async def test_unknown_code_raises(self, service):
        with pytest.raises(PromotionNotFoundError):
            await service.apply_promotion_to_order("order_1", "NOPE", F.make_order_context())

    async def test_per_customer_cap_enforced(self, service, mock_store, now):
        mock_store.set_promotion(F.make_promotion("ONCE", now=now, max_usage_per_customer=1))
        context = F.make_order_context(customer_email="a@example.com")

        await service.apply_promotion_to_order("order_1", "ONCE", context, now=now)
        with pytest.raises(PromotionNotEligibleError):
            await service.apply_promotion_to_order("order_2", "ONCE", context, now=now)

    async def test_same_order_cannot_apply_twice(self, service, mega20, mock_store, mock_event_bus, now):
        context = F.make_order_context(Decimal("150"), customer_email="a@example.com", coupon_code="MEGA20")
        await service.apply_promotion_to_order("order_1", "MEGA20", context, now=now)
        mock_event_bus.clear()

        with pytest.raises(PromotionNotEligibleError) as exc_info:
            await service.apply_promotion_to_order("order_1", "MEGA20", context, now=now)

        assert "already applied" in exc_info.value.reason
        assert mock_store.stored(mega20.promotion_id).current_usage_count == 1
        assert len(mock_store.get_calls("increment_usage")) == 1
        assert len(mock_store.get_calls("record_usage")) == 1
        mock_event_bus.assert_no_events_published()

    async def test_publish_failure_does_not_undo_application(self, service, mega20, mock_store, mock_event_bus, now):
        mock_event_bus.set_error(ConnectionError("bus down"))

        result = await service.apply_promotion_to_order(
            "order_1", "MEGA20", F.make_order_context(Decimal("150")), now=now
        )

        assert result.discount_amount == Decimal("30.00")
        assert mock_store.stored(mega20.promotion_id).current_usage_count == 1
        mock_event_bus.assert_no_events_published()


# =============================================================================
# Usage & Analytics
# =============================================================================

class TestPromotionAnalytics:

    async def test_analytics_aggregate_usage(self, service, mega20, now):
        await service.apply_promotion_to_order(
            "order_1", "MEGA20", F.make_order_context(Decimal("150"), customer_email="a@example.com"), now=now
        )
        await service.apply_promotion_to_order(
            "order_2", "MEGA20", F.make_order_context(Decimal("200"), customer_email="b@example.com"), now=now
        )

        analytics = await service.get_promotion_analytics(mega20.promotion_id)
        history = await service.get_promotion_usage_history(mega20.promotion_id)

        assert analytics.total_usage_count == 2
        assert analytics.total_discount_given == Decimal("70.00")
        assert analytics.total_order_value == Decimal("350")
        assert analytics.unique_customers == 2
        assert analytics.average_discount == Decimal("35.00")
        assert [u.order_id for u in history] == ["order_1", "order_2"]

    async def test_analytics_for_unused_promotion(self, service, mega20):
        analytics = await service.get_promotion_analytics(mega20.promotion_id)

        assert analytics.total_usage_count == 0
        assert analytics.average_discount == Decimal("0")

    async def test_customer_usage_count(self, service, mega20, now):
        context = F.make_order_context(Decimal("150"), customer_email="a@example.com")
        await service.apply_promotion_to_order("order_1", "MEGA20", context, now=now)

        assert await service.get_customer_usage_count(mega20.promotion_id, "a@example.com") == 1
        assert await service.get_customer_usage_count(mega20.promotion_id, None) == 0

    async def test_effectiveness_sorted_by_revenue(self, service, mega20, mock_store, now):
        small = mock_store.set_promotion(F.make_promotion("SMALL", now=now))
        mock_store.set_usage(F.make_usage(small.promotion_id, order_total=Decimal("20")))
        mock_store.set_usage(F.make_usage(mega20.promotion_id, order_total=Decimal("500")))

        report = await service.get_promotion_effectiveness_report()

        assert [r.code for r in report] == ["MEGA20", "SMALL"]
        assert report[0].conversion_rate == Decimal("33.33")
        assert report[1].conversion_rate == Decimal("0")
