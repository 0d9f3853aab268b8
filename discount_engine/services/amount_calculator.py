"""
Monetary value of one discount against a base amount.

Results are unrounded and always within [0, base]; rounding to the
currency's minor unit happens where user-facing totals are produced.
"""
from decimal import Decimal
from typing import Optional, Sequence

from discount_engine.core.money import ZERO, HUNDRED, MoneyLike, clamp, percent_of, to_decimal
from discount_engine.models.discount import DiscountKindEnum
from discount_engine.schemas.discount import Discount, TierRule


def _checked_base(base_amount: MoneyLike) -> Decimal:
    base = to_decimal(base_amount)
    if base < 0:
        raise ValueError(f"base amount must be non-negative, got {base}")
    return base


def select_tier(tier_rules: Sequence[TierRule], base_amount: MoneyLike) -> Optional[TierRule]:
    """
    Pick the rule with the largest threshold not above `base_amount`.
    Duplicate thresholds resolve to the higher percentage; None when no
    rule qualifies.
    """
    base = _checked_base(base_amount)
    best = None
    for rule in tier_rules:
        if rule.threshold > base:
            continue
        if best is None or (rule.threshold, rule.percentage) > (best.threshold, best.percentage):
            best = rule
    return best


def tier_percentage(tier_rules: Sequence[TierRule], base_amount: MoneyLike) -> Decimal:
    rule = select_tier(tier_rules, base_amount)
    return rule.percentage if rule is not None else ZERO


def tiered_amount(tier_rules: Sequence[TierRule], base_amount: MoneyLike) -> Decimal:
    base = _checked_base(base_amount)
    return clamp(percent_of(base, tier_percentage(tier_rules, base)), ZERO, base)


def calculate_amount(discount: Discount, base_amount: MoneyLike) -> Decimal:
    """
    Value of `discount` applied to `base_amount`:

    - FIXED_AMOUNT: the amount, capped at base
    - PERCENTAGE: base * percentage / 100
    - FIXED_AMOUNT_WITH_CODE: amount + base * percentage / 100, capped at base
    - TIERED: base * percentage of the selected tier / 100, zero with no tier

    Raises:
        ValueError: if base_amount is negative
    """
    base = _checked_base(base_amount)
    percentage = discount.percentage or ZERO

    if discount.kind == DiscountKindEnum.FIXED_AMOUNT:
        value = discount.amount
    elif discount.kind == DiscountKindEnum.PERCENTAGE:
        value = percent_of(base, percentage)
    elif discount.kind == DiscountKindEnum.FIXED_AMOUNT_WITH_CODE:
        value = discount.amount + percent_of(base, percentage)
    elif discount.kind == DiscountKindEnum.TIERED:
        value = percent_of(base, tier_percentage(discount.tier_rules, base))
    else:
        value = ZERO

    return clamp(value, ZERO, base)


def percentage_equivalent(discount: Discount, amount: Decimal, base_amount: MoneyLike) -> Decimal:
    """
    Share of the base a discount takes, in percent. Percentage discounts
    report their own rate; everything else is amount / base * 100.
    """
    base = _checked_base(base_amount)
    if discount.kind == DiscountKindEnum.PERCENTAGE:
        return discount.percentage or ZERO
    if base == 0:
        return ZERO
    return amount / base * HUNDRED
