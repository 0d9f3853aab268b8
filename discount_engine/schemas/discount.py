from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator
from typing import Optional, List
from datetime import datetime
from decimal import Decimal
from discount_engine.models.discount import (
    DiscountStatusEnum,
    DiscountKindEnum,
    DiscountScopeEnum,
    DiscountSourceEnum,
)


class TierRule(BaseModel):
    """One (threshold, percentage) step of a tiered discount."""
    model_config = ConfigDict(frozen=True)

    threshold: Decimal = Field(ge=0)
    percentage: Decimal = Field(ge=0, le=100)


class Discount(BaseModel):
    """
    A candidate discount as the engine sees it: an already-fetched,
    read-only record. Product coupons and promo codes share this shape and
    differ only by `source` and their identifying fields.
    """
    model_config = ConfigDict(frozen=True)

    id: int
    source: DiscountSourceEnum = DiscountSourceEnum.CODE
    description: str = ""
    code: Optional[str] = None
    product_id: Optional[str] = None
    product_name: Optional[str] = None
    automatic_type: Optional[str] = None
    scope: DiscountScopeEnum = DiscountScopeEnum.GLOBAL
    kind: DiscountKindEnum = DiscountKindEnum.FIXED_AMOUNT
    amount: Decimal = Field(default=Decimal("0"), ge=0)
    percentage: Optional[Decimal] = Field(default=None, ge=0, le=100)
    tier_rules: List[TierRule] = Field(default_factory=list)
    minimum_purchase_amount: Decimal = Field(default=Decimal("0"), ge=0)
    applicable_categories: List[str] = Field(default_factory=list)
    start_date: Optional[datetime] = None
    end_date: Optional[datetime] = None
    status: DiscountStatusEnum = DiscountStatusEnum.ACTIVE
    is_stackable: bool = True
    max_stackable_percentage: Optional[Decimal] = Field(default=None, ge=0, le=100)
    remaining_uses: int = Field(default=-1, ge=-1)  # -1 = unlimited
    is_automatic: bool = False

    @field_validator("source")
    @classmethod
    def source_is_coupon_or_code(cls, v: DiscountSourceEnum) -> DiscountSourceEnum:
        if v == DiscountSourceEnum.AUTOMATIC:
            raise ValueError("source must be Coupon or Code; automatic is a flag, not a shape")
        return v

    @field_validator("status", mode="before")
    @classmethod
    def status_normalize(cls, v):
        return DiscountStatusEnum.normalize(v)

    @field_validator("applicable_categories", mode="before")
    @classmethod
    def categories_default(cls, v):
        return [] if v is None else v

    @model_validator(mode="after")
    def dates_in_order(self):
        if self.start_date and self.end_date and self.start_date > self.end_date:
            raise ValueError("start_date must be before end_date")
        return self

    @property
    def label(self) -> str:
        return self.code or self.product_name or self.description or f"#{self.id}"

    def with_status(self, status: DiscountStatusEnum) -> "Discount":
        return self.model_copy(update={"status": status})


class ValidationResult(BaseModel):
    is_valid: bool
    reason: Optional[str] = None  # set on failure only

    @classmethod
    def ok(cls) -> "ValidationResult":
        return cls(is_valid=True)

    @classmethod
    def fail(cls, reason: str) -> "ValidationResult":
        return cls(is_valid=False, reason=reason)


class StatusChange(BaseModel):
    """A derived status that differs from the stored one; persisted by the caller."""
    source: DiscountSourceEnum
    discount_id: int
    previous: DiscountStatusEnum
    current: DiscountStatusEnum


class StackedDiscount(BaseModel):
    discount: Discount
    amount: Decimal
    percentage_equivalent: Decimal
    clamped: bool = False


class StackingResult(BaseModel):
    total_discount: Decimal
    final_amount: Decimal
    effective_cap: Decimal
    applied: List[StackedDiscount] = Field(default_factory=list)

    @property
    def applied_discounts(self) -> List[Discount]:
        return [s.discount for s in self.applied]

    @property
    def total_percentage(self) -> Decimal:
        return sum((s.percentage_equivalent for s in self.applied), Decimal("0"))
