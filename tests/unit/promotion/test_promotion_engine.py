"""
Promotion Engine Unit Tests

Tests the pure selection functions: eligibility, discount computation,
single-vs-stacked choice and determinism.
"""

from datetime import timedelta
from decimal import Decimal

import pytest

from microservices.promotion_service import promotion_engine
from microservices.promotion_service.models import (
    DiscountType,
    PlanStrategy,
    RuleType,
)
from tests.contracts.promotion.data_contract import PromotionTestDataFactory as F

pytestmark = pytest.mark.unit


# =============================================================================
# Concrete scenarios
# =============================================================================

class TestCouponScenarios:
    """Percentage coupon with cap and minimum purchase"""

    @pytest.fixture
    def mega20(self, now):
        return F.make_coupon(
            "MEGA20",
            discount_type=DiscountType.PERCENTAGE,
            discount_value=Decimal("20"),
            max_discount_amount=Decimal("50"),
            minimum_purchase_amount=Decimal("100"),
            now=now,
        )

    def test_eligible_coupon_applies_percentage(self, mega20, now):
        context = F.make_order_context(Decimal("150"), coupon_code="mega20")

        plan = promotion_engine.calculate_best_plan(context, [mega20], now=now)

        assert plan.total_discount == Decimal("30.00")
        assert plan.final_amount == Decimal("120.00")
        assert [a.code for a in plan.applied_promotions] == ["MEGA20"]
        assert plan.strategy == PlanStrategy.SINGLE

    def test_coupon_below_minimum_purchase_gives_empty_plan(self, mega20, now):
        context = F.make_order_context(Decimal("80"), coupon_code="MEGA20")

        plan = promotion_engine.calculate_best_plan(context, [mega20], now=now)

        assert plan.total_discount == Decimal("0")
        assert plan.final_amount == Decimal("80")
        assert plan.applied_promotions == []
        assert plan.strategy == PlanStrategy.NONE

    def test_cap_limits_large_orders(self, mega20, now):
        context = F.make_order_context(Decimal("1000"), coupon_code="MEGA20")

        plan = promotion_engine.calculate_best_plan(context, [mega20], now=now)

        assert plan.total_discount == Decimal("50.00")

    def test_coupon_promotion_ignored_without_code(self, mega20, now):
        context = F.make_order_context(Decimal("150"))

        plan = promotion_engine.calculate_best_plan(context, [mega20], now=now)

        assert plan.applied_promotions == []


class TestStackingScenarios:
    """Single best vs stacked set"""

    def test_tie_between_strategies_favors_single(self, now):
        save10 = F.make_promotion(
            "SAVE10", DiscountType.FIXED_AMOUNT, Decimal("10"), now=now,
            is_stackable=True, priority=10,
        )
        freeship = F.make_promotion(
            "FREESHIP99", DiscountType.FREE_SHIPPING, Decimal("1"), now=now,
            is_stackable=True, priority=5,
        )
        context = F.make_order_context(Decimal("120"))

        plan = promotion_engine.calculate_best_plan(context, [freeship, save10], now=now)

        assert plan.strategy == PlanStrategy.SINGLE
        assert [a.code for a in plan.applied_promotions] == ["SAVE10"]
        assert plan.total_discount == Decimal("10.00")
        assert plan.final_amount == Decimal("110.00")

    def test_stacking_wins_when_strictly_larger(self, now):
        first = F.make_promotion("FIRST", DiscountType.PERCENTAGE, Decimal("10"), now=now, is_stackable=True, priority=5)
        second = F.make_promotion("SECOND", DiscountType.PERCENTAGE, Decimal("10"), now=now, is_stackable=True, priority=3)
        context = F.make_order_context(Decimal("100"))

        plan = promotion_engine.select_best_plan(context, [second, first])

        assert plan.strategy == PlanStrategy.STACKED
        assert [(a.code, a.discount_amount) for a in plan.applied_promotions] == [
            ("FIRST", Decimal("10.00")),
            ("SECOND", Decimal("9.00")),
        ]
        assert plan.total_discount == Decimal("19.00")
        assert plan.final_amount == Decimal("81.00")

    def test_stacking_applies_higher_priority_first_on_running_remainder(self, now):
        flat = F.make_promotion("FLAT20", DiscountType.FIXED_AMOUNT, Decimal("20"), now=now, is_stackable=True, priority=1)
        half = F.make_promotion("HALF", DiscountType.PERCENTAGE, Decimal("50"), now=now, is_stackable=True, priority=9)
        context = F.make_order_context(Decimal("100"))

        plan = promotion_engine.select_best_plan(context, [flat, half])

        assert [a.code for a in plan.applied_promotions] == ["HALF", "FLAT20"]
        assert plan.total_discount == Decimal("70.00")

    def test_stacking_stops_when_remainder_reaches_zero(self, now):
        everything = F.make_promotion("ALL", DiscountType.FIXED_AMOUNT, Decimal("100"), now=now, is_stackable=True, priority=10)
        extra = F.make_promotion("EXTRA", DiscountType.FIXED_AMOUNT, Decimal("10"), now=now, is_stackable=True, priority=5)
        context = F.make_order_context(Decimal("100"))

        plan = promotion_engine.select_best_plan(context, [everything, extra])

        assert plan.strategy == PlanStrategy.SINGLE
        assert [a.code for a in plan.applied_promotions] == ["ALL"]
        assert plan.final_amount == Decimal("0.00")

    def test_non_stackable_promotions_never_stack(self, now):
        big = F.make_promotion("BIG30", DiscountType.PERCENTAGE, Decimal("30"), now=now)
        a = F.make_promotion("A10", DiscountType.FIXED_AMOUNT, Decimal("10"), now=now, is_stackable=True)
        b = F.make_promotion("B10", DiscountType.FIXED_AMOUNT, Decimal("10"), now=now, is_stackable=True)
        context = F.make_order_context(Decimal("100"))

        plan = promotion_engine.select_best_plan(context, [a, big, b])

        assert [a.code for a in plan.applied_promotions] == ["BIG30"]
        assert plan.total_discount == Decimal("30.00")

    def test_single_best_tie_goes_to_first_candidate(self, now):
        first = F.make_promotion("FIRST", DiscountType.FIXED_AMOUNT, Decimal("10"), now=now)
        second = F.make_promotion("SECOND", DiscountType.FIXED_AMOUNT, Decimal("10"), now=now)
        context = F.make_order_context(Decimal("100"))

        plan = promotion_engine.select_best_plan(context, [first, second])

        assert [a.code for a in plan.applied_promotions] == ["FIRST"]

    def test_higher_priority_wins_single_tie(self, now):
        low = F.make_promotion("LOW", DiscountType.FIXED_AMOUNT, Decimal("10"), now=now, priority=1)
        high = F.make_promotion("HIGH", DiscountType.FIXED_AMOUNT, Decimal("10"), now=now, priority=7)
        context = F.make_order_context(Decimal("100"))

        plan = promotion_engine.select_best_plan(context, [low, high])

        assert [a.code for a in plan.applied_promotions] == ["HIGH"]

    def test_free_shipping_only_plan_keeps_entry(self, now):
        freeship = F.make_promotion("SHIP", DiscountType.FREE_SHIPPING, Decimal("1"), now=now)
        context = F.make_order_context(Decimal("40"))

        plan = promotion_engine.select_best_plan(context, [freeship])

        assert plan.free_shipping is True
        assert plan.total_discount == Decimal("0.00")
        assert plan.final_amount == Decimal("40.00")
        assert [a.code for a in plan.applied_promotions] == ["SHIP"]

    def test_repeated_calls_are_identical(self, now):
        promotions = [
            F.make_promotion(f"P{i}", DiscountType.FIXED_AMOUNT, Decimal(5 + i % 3), now=now,
                             is_stackable=i % 2 == 0, priority=i % 4)
            for i in range(8)
        ]
        context = F.make_order_context(Decimal("60"))

        first = promotion_engine.calculate_best_plan(context, promotions, now=now)
        second = promotion_engine.calculate_best_plan(context, promotions, now=now)

        assert first == second


# =============================================================================
# Discount computation
# =============================================================================

class TestCalculateDiscount:
    """Per-kind discount amounts"""

    def test_percentage(self, now):
        promotion = F.make_promotion(discount_type=DiscountType.PERCENTAGE, discount_value=Decimal("15"), now=now)
        assert promotion_engine.calculate_discount(promotion, Decimal("200")) == Decimal("30.00")

    def test_percentage_rounds_half_up(self, now):
        promotion = F.make_promotion(discount_type=DiscountType.PERCENTAGE, discount_value=Decimal("15"), now=now)
        assert promotion_engine.calculate_discount(promotion, Decimal("33.33")) == Decimal("5.00")

    def test_percentage_capped_at_max_discount(self, now):
        promotion = F.make_promotion(
            discount_type=DiscountType.PERCENTAGE, discount_value=Decimal("50"),
            max_discount_amount=Decimal("20"), now=now,
        )
        assert promotion_engine.calculate_discount(promotion, Decimal("1000")) == Decimal("20.00")

    def test_fixed_amount_capped_at_base(self, now):
        promotion = F.make_promotion(discount_type=DiscountType.FIXED_AMOUNT, discount_value=Decimal("50"), now=now)
        assert promotion_engine.calculate_discount(promotion, Decimal("30")) == Decimal("30.00")

    def test_free_shipping_is_zero(self, now):
        promotion = F.make_promotion(discount_type=DiscountType.FREE_SHIPPING, discount_value=Decimal("5"), now=now)
        assert promotion_engine.calculate_discount(promotion, Decimal("100")) == Decimal("0.00")

    def test_buy_one_get_one_uses_fraction(self, now):
        promotion = F.make_promotion(discount_type=DiscountType.BUY_ONE_GET_ONE, discount_value=Decimal("1"), now=now)
        assert promotion_engine.calculate_discount(promotion, Decimal("200")) == Decimal("50.00")
        assert promotion_engine.calculate_discount(
            promotion, Decimal("200"), bogo_fraction=Decimal("0.5")
        ) == Decimal("100.00")

    def test_zero_base_gives_zero(self, now):
        promotion = F.make_promotion(discount_type=DiscountType.FIXED_AMOUNT, discount_value=Decimal("10"), now=now)
        assert promotion_engine.calculate_discount(promotion, Decimal("0")) == Decimal("0")


# =============================================================================
# Eligibility
# =============================================================================

class TestCheckEligibility:
    """Eligibility checks and their reasons"""

    def test_usage_cap_reached_is_filtered_out(self, now):
        capped = F.make_promotion(now=now, max_usage_count=5, current_usage_count=5)

        assert promotion_engine.filter_active([capped], now) == []
        plan = promotion_engine.calculate_best_plan(F.make_order_context(), [capped], now=now)
        assert plan.applied_promotions == []

    def test_window_is_half_open(self, now):
        starts_now = F.make_promotion(now=now, start_date=now, end_date=now + timedelta(days=1))
        ends_now = F.make_promotion(now=now, start_date=now - timedelta(days=1), end_date=now)

        assert promotion_engine.filter_active([starts_now, ends_now], now) == [starts_now]

    def test_inactive_promotion_reason(self, now):
        promotion = F.make_promotion(now=now, is_active=False)

        result = promotion_engine.check_eligibility(promotion, F.make_order_context(), now=now)

        assert result.eligible is False
        assert "not active" in result.reason

    def test_per_customer_cap_requires_known_email(self, now):
        promotion = F.make_promotion(now=now, max_usage_per_customer=1)

        with_email = F.make_order_context(customer_email="a@example.com")
        anonymous = F.make_order_context()

        assert not promotion_engine.check_eligibility(promotion, with_email, 1, now).eligible
        assert promotion_engine.check_eligibility(promotion, with_email, 0, now).eligible
        assert promotion_engine.check_eligibility(promotion, anonymous, 1, now).eligible

    def test_per_customer_cap_excludes_candidate(self, now):
        promotion = F.make_promotion(now=now, max_usage_per_customer=2)
        context = F.make_order_context(customer_email="a@example.com")

        candidates = promotion_engine.collect_candidates(
            context, [promotion], usage_counts={promotion.promotion_id: 2}, now=now
        )

        assert candidates == []

    def test_segment_must_match_exactly(self, now):
        promotion = F.make_promotion(now=now, target_customer_segment="VIP")

        assert promotion_engine.check_eligibility(
            promotion, F.make_order_context(customer_segment="VIP"), now=now
        ).eligible
        assert not promotion_engine.check_eligibility(
            promotion, F.make_order_context(customer_segment="vip"), now=now
        ).eligible
        assert not promotion_engine.check_eligibility(promotion, F.make_order_context(), now=now).eligible

    def test_failing_rule_is_reported(self, now):
        promotion = F.make_promotion(
            now=now,
            rules=[
                F.make_rule(RuleType.MINIMUM_QUANTITY, min_quantity=1),
                F.make_rule(RuleType.EXCLUDE_PRODUCTS, target_product_ids=["gift_card"]),
            ],
        )
        context = F.make_order_context(product_ids=["shoe", "gift_card"])

        result = promotion_engine.check_eligibility(promotion, context, now=now)

        assert result.eligible is False
        assert result.failed_rule == RuleType.EXCLUDE_PRODUCTS
        assert "gift_card" in result.reason

    def test_minimum_purchase_checked_before_rules(self, now):
        promotion = F.make_promotion(
            now=now,
            minimum_purchase_amount=Decimal("500"),
            rules=[F.make_rule(RuleType.SPECIFIC_PRODUCTS, target_product_ids=["other"])],
        )

        result = promotion_engine.check_eligibility(promotion, F.make_order_context(), now=now)

        assert result.failed_rule is None
        assert "minimum purchase" in result.reason


# =============================================================================
# Plan invariants
# =============================================================================

@pytest.mark.parametrize("total", ["0.01", "0.99", "9.99", "33.33", "120", "999.99", "10000"])
def test_plan_invariants_hold_for_any_total(total, now):
    promotions = [
        F.make_promotion("PCT", DiscountType.PERCENTAGE, Decimal("35"), now=now, is_stackable=True, priority=3),
        F.make_promotion("FIX", DiscountType.FIXED_AMOUNT, Decimal("25"), now=now, is_stackable=True, priority=2),
        F.make_promotion("BOGO", DiscountType.BUY_ONE_GET_ONE, Decimal("1"), now=now, is_stackable=True, priority=1),
        F.make_promotion("CAP", DiscountType.PERCENTAGE, Decimal("90"), now=now, max_discount_amount=Decimal("15")),
    ]
    context = F.make_order_context(Decimal(total))

    plan = promotion_engine.calculate_best_plan(context, promotions, now=now)
    single_best = max(promotion_engine.calculate_discount(p, context.order_total) for p in promotions)

    assert Decimal("0") <= plan.total_discount <= plan.original_amount
    assert plan.final_amount == plan.original_amount - plan.total_discount
    assert plan.total_discount >= single_best
    assert sum(a.discount_amount for a in plan.applied_promotions) == plan.total_discount
