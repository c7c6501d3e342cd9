"""
Promotion Service Data Models

Pydantic models for discount policies, their rules, usage records and the
discount plans produced for an order.
"""

import uuid
from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator
from typing import Any, Dict, Iterable, List, Optional, Tuple
from datetime import datetime, timezone
from decimal import Decimal
from enum import Enum

from .events.models import (
    PromotionCreatedEvent,
    PromotionActivatedEvent,
    PromotionDeactivatedEvent,
    PromotionUsedEvent,
    PromotionLimitReachedEvent,
)
from .protocols import PromotionUsageLimitReachedError


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _new_id(prefix: str) -> str:
    return f"{prefix}_{uuid.uuid4().hex}"


def _ensure_aware(value: datetime) -> datetime:
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


class DiscountType(str, Enum):
    """Discount kind enumeration"""
    PERCENTAGE = "percentage"
    FIXED_AMOUNT = "fixed_amount"
    FREE_SHIPPING = "free_shipping"
    BUY_ONE_GET_ONE = "buy_one_get_one"


class RuleType(str, Enum):
    """Promotion rule enumeration"""
    MINIMUM_PURCHASE = "minimum_purchase"
    SPECIFIC_PRODUCTS = "specific_products"
    MINIMUM_QUANTITY = "minimum_quantity"
    EXCLUDE_PRODUCTS = "exclude_products"


class PlanStrategy(str, Enum):
    """How a discount plan was assembled"""
    NONE = "none"
    SINGLE = "single"
    STACKED = "stacked"


# Core Promotion Models

class PromotionRule(BaseModel):
    """A predicate that must hold for its promotion to apply"""
    rule_id: str = Field(default_factory=lambda: _new_id("rule"))
    promotion_id: Optional[str] = None
    rule_type: RuleType
    target_product_ids: List[str] = Field(default_factory=list)
    min_quantity: Optional[int] = Field(None, ge=0)
    min_amount: Optional[Decimal] = Field(None, ge=0)

    def evaluate(self, order_total: Decimal, product_ids: List[str]) -> bool:
        """Evaluate the rule against an order total and its product ids"""
        if self.rule_type == RuleType.MINIMUM_PURCHASE:
            return self.min_amount is not None and order_total >= self.min_amount

        if self.rule_type == RuleType.SPECIFIC_PRODUCTS:
            if not self.target_product_ids:
                return True
            return any(p in self.target_product_ids for p in product_ids)

        if self.rule_type == RuleType.MINIMUM_QUANTITY:
            return self.min_quantity is not None and len(product_ids) >= self.min_quantity

        if self.rule_type == RuleType.EXCLUDE_PRODUCTS:
            if not self.target_product_ids:
                return True
            return not any(p in self.target_product_ids for p in product_ids)

        return False

    def describe(self) -> str:
        if self.rule_type == RuleType.MINIMUM_PURCHASE:
            return f"order total must be at least {self.min_amount}"
        if self.rule_type == RuleType.SPECIFIC_PRODUCTS:
            return f"order must contain one of {', '.join(self.target_product_ids)}"
        if self.rule_type == RuleType.MINIMUM_QUANTITY:
            return f"order must contain at least {self.min_quantity} products"
        return f"order must not contain any of {', '.join(self.target_product_ids)}"


class Promotion(BaseModel):
    """Core promotion model"""
    promotion_id: str = Field(default_factory=lambda: _new_id("promo"))
    code: str
    name: str
    description: Optional[str] = None
    discount_type: DiscountType
    discount_value: Decimal = Field(..., gt=0)
    max_discount_amount: Optional[Decimal] = Field(None, gt=0)
    minimum_purchase_amount: Optional[Decimal] = Field(None, ge=0)
    is_active: bool = True
    is_stackable: bool = False
    priority: int = 0
    start_date: datetime
    end_date: datetime
    max_usage_count: Optional[int] = Field(None, gt=0)
    current_usage_count: int = Field(0, ge=0)
    max_usage_per_customer: Optional[int] = Field(None, gt=0)
    requires_coupon_code: bool = False
    target_customer_segment: Optional[str] = None
    rules: List[PromotionRule] = Field(default_factory=list)
    created_at: datetime = Field(default_factory=_utcnow)
    updated_at: Optional[datetime] = None

    @field_validator('code', mode='before')
    @classmethod
    def normalize_code(cls, v):
        if not isinstance(v, str) or not v.strip():
            raise ValueError('Promotion code is required')
        return v.strip().upper()

    @field_validator('start_date', 'end_date', 'created_at')
    @classmethod
    def ensure_timezone(cls, v):
        return _ensure_aware(v)

    @model_validator(mode='after')
    def validate_policy(self):
        if self.discount_type == DiscountType.PERCENTAGE and self.discount_value > 100:
            raise ValueError('Percentage discount cannot exceed 100')
        if self.end_date <= self.start_date:
            raise ValueError('End date must be after start date')
        if self.max_usage_count is not None and self.current_usage_count > self.max_usage_count:
            raise ValueError('Usage count cannot exceed the maximum usage count')
        for rule in self.rules:
            if rule.promotion_id is None:
                rule.promotion_id = self.promotion_id
        return self

    @property
    def usage_limit_reached(self) -> bool:
        return self.max_usage_count is not None and self.current_usage_count >= self.max_usage_count

    def is_valid(self, at: Optional[datetime] = None) -> bool:
        """Active, inside [start_date, end_date) and below the global usage cap"""
        now = _ensure_aware(at) if at else _utcnow()
        return (
            self.is_active
            and self.start_date <= now < self.end_date
            and not self.usage_limit_reached
        )

    def activate(self) -> List[PromotionActivatedEvent]:
        self.is_active = True
        self.updated_at = _utcnow()
        return [PromotionActivatedEvent(promotion_id=self.promotion_id, code=self.code)]

    def deactivate(self) -> List[PromotionDeactivatedEvent]:
        self.is_active = False
        self.updated_at = _utcnow()
        return [PromotionDeactivatedEvent(promotion_id=self.promotion_id, code=self.code)]

    def increment_usage(
        self,
        customer_email: Optional[str] = None,
        order_id: Optional[str] = None,
        discount_amount: Optional[Decimal] = None,
    ) -> List[BaseModel]:
        """Count one successful application. Raises once the global cap is reached."""
        if self.usage_limit_reached:
            raise PromotionUsageLimitReachedError(
                f"Promotion {self.code} has reached its usage limit",
                promotion_id=self.promotion_id,
                max_usage_count=self.max_usage_count,
            )

        self.current_usage_count += 1
        self.updated_at = _utcnow()

        events: List[BaseModel] = [
            PromotionUsedEvent(
                promotion_id=self.promotion_id,
                code=self.code,
                usage_count=self.current_usage_count,
                customer_email=customer_email,
                order_id=order_id,
                discount_amount=discount_amount,
            )
        ]
        if self.usage_limit_reached:
            events.append(
                PromotionLimitReachedEvent(
                    promotion_id=self.promotion_id,
                    code=self.code,
                    max_usage_count=self.max_usage_count,
                )
            )
        return events

    @classmethod
    def create(cls, request: "PromotionCreateRequest") -> Tuple["Promotion", List[PromotionCreatedEvent]]:
        """Build a new promotion from a create request"""
        promotion_id = _new_id("promo")
        promotion = cls(
            promotion_id=promotion_id,
            code=request.code,
            name=request.name,
            description=request.description,
            discount_type=request.discount_type,
            discount_value=request.discount_value,
            max_discount_amount=request.max_discount_amount,
            minimum_purchase_amount=request.minimum_purchase_amount,
            is_stackable=request.is_stackable,
            priority=request.priority,
            start_date=request.start_date,
            end_date=request.end_date,
            max_usage_count=request.max_usage_count,
            max_usage_per_customer=request.max_usage_per_customer,
            requires_coupon_code=request.requires_coupon_code,
            target_customer_segment=request.target_customer_segment,
            rules=[
                PromotionRule(promotion_id=promotion_id, **rule.model_dump())
                for rule in request.rules
            ],
        )
        event = PromotionCreatedEvent(
            promotion_id=promotion.promotion_id,
            code=promotion.code,
            name=promotion.name,
            discount_type=promotion.discount_type.value,
            discount_value=promotion.discount_value,
        )
        return promotion, [event]

    @classmethod
    def from_rows(cls, row: Dict[str, Any], rule_rows: Iterable[Dict[str, Any]] = ()) -> "Promotion":
        """Build the full aggregate from its stored row and pre-fetched rule rows"""
        data = dict(row)
        data["rules"] = [PromotionRule.model_validate(r) for r in rule_rows]
        return cls.model_validate(data)


class PromotionUsage(BaseModel):
    """Immutable record of one successful promotion application"""
    model_config = ConfigDict(frozen=True)

    usage_id: str = Field(default_factory=lambda: _new_id("usage"))
    promotion_id: str
    order_id: str
    customer_email: Optional[str] = None
    order_total: Decimal
    discount_amount: Decimal
    used_at: datetime = Field(default_factory=_utcnow)


# Calculation Models

class OrderContext(BaseModel):
    """The projection of an order the promotion engine needs"""
    order_total: Decimal = Field(..., gt=0, description="Order total before discounts")
    product_ids: List[str] = Field(default_factory=list, description="Distinct product ids")
    customer_email: Optional[str] = None
    customer_segment: Optional[str] = None
    coupon_code: Optional[str] = None

    @field_validator('product_ids')
    @classmethod
    def distinct_products(cls, v):
        return list(dict.fromkeys(v))


class AppliedPromotion(BaseModel):
    """One entry of a discount plan"""
    promotion_id: str
    code: str
    name: str
    discount_type: DiscountType
    discount_amount: Decimal


class DiscountPlan(BaseModel):
    """Discount breakdown for an order"""
    original_amount: Decimal
    final_amount: Decimal
    total_discount: Decimal
    applied_promotions: List[AppliedPromotion] = Field(default_factory=list)
    strategy: PlanStrategy = PlanStrategy.NONE
    free_shipping: bool = False

    @model_validator(mode='after')
    def validate_totals(self):
        if self.total_discount < 0 or self.total_discount > self.original_amount:
            raise ValueError('Total discount must be between 0 and the original amount')
        if self.final_amount != self.original_amount - self.total_discount:
            raise ValueError('Final amount must equal original amount minus total discount')
        return self

    @classmethod
    def empty(cls, order_total: Decimal) -> "DiscountPlan":
        return cls(
            original_amount=order_total,
            final_amount=order_total,
            total_discount=Decimal("0"),
        )

    @property
    def has_discount(self) -> bool:
        return bool(self.applied_promotions)


class EligibilityResult(BaseModel):
    """Outcome of checking a promotion against an order"""
    eligible: bool
    reason: Optional[str] = None
    failed_rule: Optional[RuleType] = None


# Request Models

class PromotionRuleCreate(BaseModel):
    """Rule definition inside a create request"""
    rule_type: RuleType
    target_product_ids: List[str] = Field(default_factory=list)
    min_quantity: Optional[int] = Field(None, ge=0)
    min_amount: Optional[Decimal] = Field(None, ge=0)


class PromotionCreateRequest(BaseModel):
    """Create promotion request"""
    code: str = Field(..., min_length=1, description="Coupon code, case-insensitive")
    name: str = Field(..., min_length=1)
    description: Optional[str] = None
    discount_type: DiscountType
    discount_value: Decimal = Field(..., gt=0)
    max_discount_amount: Optional[Decimal] = Field(None, gt=0)
    minimum_purchase_amount: Optional[Decimal] = Field(None, ge=0)
    is_stackable: bool = False
    priority: int = 0
    start_date: datetime
    end_date: datetime
    max_usage_count: Optional[int] = Field(None, gt=0)
    max_usage_per_customer: Optional[int] = Field(None, gt=0)
    requires_coupon_code: bool = False
    target_customer_segment: Optional[str] = None
    rules: List[PromotionRuleCreate] = Field(default_factory=list)


# Response Models

class PromotionValidationResult(BaseModel):
    """Result of validating a coupon code against an order"""
    code: str
    valid: bool
    reason: Optional[str] = None
    failed_rule: Optional[RuleType] = None
    discount_amount: Decimal = Decimal("0")


class PromotionApplicationResult(BaseModel):
    """Result of applying a promotion to a persisted order"""
    promotion_id: str
    code: str
    order_id: str
    discount_amount: Decimal
    final_amount: Decimal
    usage: PromotionUsage


class PromotionAnalytics(BaseModel):
    """Aggregate usage figures for one promotion"""
    promotion_id: str
    code: str
    name: str
    total_usage_count: int
    total_discount_given: Decimal
    total_order_value: Decimal
    unique_customers: int
    average_discount: Decimal
    start_date: datetime
    end_date: datetime
    is_active: bool


class PromotionEffectiveness(BaseModel):
    """Effectiveness row for one promotion"""
    promotion_id: str
    code: str
    name: str
    total_usage: int
    total_discount: Decimal
    total_revenue: Decimal
    conversion_rate: Decimal
