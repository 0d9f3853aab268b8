from discount_engine.models.discount import (
    Coupon,
    DiscountCode,
    DiscountStatusEnum,
    DiscountKindEnum,
    DiscountScopeEnum,
    DiscountSourceEnum,
)

__all__ = [
    "Coupon",
    "DiscountCode",
    "DiscountStatusEnum",
    "DiscountKindEnum",
    "DiscountScopeEnum",
    "DiscountSourceEnum",
]
