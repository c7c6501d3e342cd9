"""
Promotion Engine

Pure decision functions that pick the best discount plan for an order.
All inputs are materialised by the caller; nothing here performs I/O or
mutates usage state.
"""

from datetime import datetime
from decimal import Decimal, ROUND_HALF_UP
from typing import List, Mapping, Optional, Sequence

from .models import (
    AppliedPromotion,
    DiscountPlan,
    DiscountType,
    EligibilityResult,
    OrderContext,
    PlanStrategy,
    Promotion,
)

DEFAULT_PRECISION = Decimal("0.01")
DEFAULT_BOGO_FRACTION = Decimal("0.25")

ZERO = Decimal("0")


def quantize(amount: Decimal, precision: Decimal = DEFAULT_PRECISION) -> Decimal:
    return amount.quantize(precision, rounding=ROUND_HALF_UP)


def filter_active(promotions: Sequence[Promotion], now: Optional[datetime] = None) -> List[Promotion]:
    """Keep promotions that are active, in their window and below the usage cap"""
    return [p for p in promotions if p.is_valid(now)]


def check_eligibility(
    promotion: Promotion,
    context: OrderContext,
    customer_usage_count: int = 0,
    now: Optional[datetime] = None,
) -> EligibilityResult:
    """
    Check a promotion against an order context.

    Checks run in a fixed order and the first failure is reported:
    validity, minimum purchase, per-customer cap, segment, then rules.
    """
    if not promotion.is_valid(now):
        if not promotion.is_active:
            reason = f"Promotion {promotion.code} is not active"
        elif promotion.usage_limit_reached:
            reason = f"Promotion {promotion.code} has reached its usage limit"
        else:
            reason = f"Promotion {promotion.code} is outside its validity period"
        return EligibilityResult(eligible=False, reason=reason)

    if (
        promotion.minimum_purchase_amount is not None
        and context.order_total < promotion.minimum_purchase_amount
    ):
        return EligibilityResult(
            eligible=False,
            reason=(
                f"Order total {context.order_total} is below the minimum purchase "
                f"of {promotion.minimum_purchase_amount}"
            ),
        )

    if (
        promotion.max_usage_per_customer is not None
        and context.customer_email
        and customer_usage_count >= promotion.max_usage_per_customer
    ):
        return EligibilityResult(
            eligible=False,
            reason=(
                f"Customer has already used promotion {promotion.code} "
                f"{customer_usage_count} time(s)"
            ),
        )

    if (
        promotion.target_customer_segment
        and context.customer_segment != promotion.target_customer_segment
    ):
        return EligibilityResult(
            eligible=False,
            reason=f"Promotion {promotion.code} is limited to the {promotion.target_customer_segment} segment",
        )

    for rule in promotion.rules:
        if not rule.evaluate(context.order_total, context.product_ids):
            return EligibilityResult(
                eligible=False,
                reason=f"Rule not satisfied: {rule.describe()}",
                failed_rule=rule.rule_type,
            )

    return EligibilityResult(eligible=True)


def calculate_discount(
    promotion: Promotion,
    base_amount: Decimal,
    bogo_fraction: Decimal = DEFAULT_BOGO_FRACTION,
    precision: Decimal = DEFAULT_PRECISION,
) -> Decimal:
    """Monetary discount of one promotion against a base amount, never above the base"""
    if base_amount <= 0:
        return quantize(ZERO, precision)

    if promotion.discount_type == DiscountType.PERCENTAGE:
        discount = base_amount * promotion.discount_value / Decimal("100")
        if promotion.max_discount_amount is not None:
            discount = min(discount, promotion.max_discount_amount)
    elif promotion.discount_type == DiscountType.FIXED_AMOUNT:
        discount = promotion.discount_value
    elif promotion.discount_type == DiscountType.BUY_ONE_GET_ONE:
        # Approximation until per-line unit prices are available
        discount = base_amount * bogo_fraction
    else:
        discount = ZERO

    discount = quantize(min(discount, base_amount), precision)
    return min(discount, base_amount)


def collect_candidates(
    context: OrderContext,
    active_promotions: Sequence[Promotion],
    usage_counts: Optional[Mapping[str, int]] = None,
    now: Optional[datetime] = None,
) -> List[Promotion]:
    """
    Eligible candidates for an order: the coupon promotion (if the code matches
    a coupon-only promotion) followed by auto-apply promotions, in store order.
    """
    usage_counts = usage_counts or {}
    candidates: List[Promotion] = []

    if context.coupon_code:
        code = context.coupon_code.strip().upper()
        coupon = next(
            (p for p in active_promotions if p.requires_coupon_code and p.code == code),
            None,
        )
        if coupon is not None:
            result = check_eligibility(coupon, context, usage_counts.get(coupon.promotion_id, 0), now)
            if result.eligible:
                candidates.append(coupon)

    for promotion in active_promotions:
        if promotion.requires_coupon_code:
            continue
        result = check_eligibility(promotion, context, usage_counts.get(promotion.promotion_id, 0), now)
        if result.eligible:
            candidates.append(promotion)

    return candidates


def _applied(promotion: Promotion, amount: Decimal) -> AppliedPromotion:
    return AppliedPromotion(
        promotion_id=promotion.promotion_id,
        code=promotion.code,
        name=promotion.name,
        discount_type=promotion.discount_type,
        discount_amount=amount,
    )


def _order_by_priority(candidates: Sequence[Promotion]) -> List[Promotion]:
    # sorted() is stable, so equal priorities keep their input order
    return sorted(candidates, key=lambda p: -p.priority)


def select_best_plan(
    context: OrderContext,
    candidates: Sequence[Promotion],
    bogo_fraction: Decimal = DEFAULT_BOGO_FRACTION,
    precision: Decimal = DEFAULT_PRECISION,
) -> DiscountPlan:
    """
    Choose between the best single promotion and the stacked set.

    Stacking wins only with a strictly larger total discount.
    """
    total = context.order_total
    if not candidates:
        return DiscountPlan.empty(total)

    ordered = _order_by_priority(candidates)

    best: Optional[Promotion] = None
    best_amount = ZERO
    for promotion in ordered:
        amount = calculate_discount(promotion, total, bogo_fraction, precision)
        if best is None or amount > best_amount:
            best, best_amount = promotion, amount

    stacked: List[AppliedPromotion] = []
    stacked_total = ZERO
    remaining = total
    for promotion in ordered:
        if not promotion.is_stackable:
            continue
        if remaining <= 0:
            break
        amount = calculate_discount(promotion, remaining, bogo_fraction, precision)
        if amount > 0:
            stacked.append(_applied(promotion, amount))
            stacked_total += amount
            remaining -= amount

    if stacked_total > best_amount:
        applied = stacked
        total_discount = stacked_total
        strategy = PlanStrategy.STACKED
    else:
        applied = [_applied(best, best_amount)]
        total_discount = best_amount
        strategy = PlanStrategy.SINGLE

    return DiscountPlan(
        original_amount=total,
        final_amount=total - total_discount,
        total_discount=total_discount,
        applied_promotions=applied,
        strategy=strategy,
        free_shipping=any(a.discount_type == DiscountType.FREE_SHIPPING for a in applied),
    )


def calculate_best_plan(
    context: OrderContext,
    promotions: Sequence[Promotion],
    usage_counts: Optional[Mapping[str, int]] = None,
    now: Optional[datetime] = None,
    bogo_fraction: Decimal = DEFAULT_BOGO_FRACTION,
    precision: Decimal = DEFAULT_PRECISION,
) -> DiscountPlan:
    """Filter, collect eligible candidates and select the best plan in one call"""
    active = filter_active(promotions, now)
    candidates = collect_candidates(context, active, usage_counts, now)
    return select_best_plan(context, candidates, bogo_fraction, precision)


def usage_counts_needed(context: OrderContext, promotions: Sequence[Promotion]) -> List[str]:
    """Promotion ids whose per-customer cap needs a usage lookup for this order"""
    if not context.customer_email:
        return []
    return [p.promotion_id for p in promotions if p.max_usage_per_customer is not None]


__all__ = [
    "DEFAULT_PRECISION",
    "DEFAULT_BOGO_FRACTION",
    "quantize",
    "filter_active",
    "check_eligibility",
    "calculate_discount",
    "collect_candidates",
    "select_best_plan",
    "calculate_best_plan",
    "usage_counts_needed",
]
