"""
Combination of several individually-eligible discounts on one base amount.

Policy: fixed amounts first, then everything else, each computed against
the original base. A running percentage-equivalent is kept against the
effective cap; a discount that would overshoot is clamped to land exactly
on the cap. Non-stackable discounts never share the base with another one.
"""
from decimal import Decimal
from typing import Iterable, Optional

from discount_engine.core.logging_config import get_logger
from discount_engine.core.money import ZERO, HUNDRED, MoneyLike, percent_of, to_decimal
from discount_engine.models.discount import DiscountKindEnum
from discount_engine.schemas.discount import Discount, StackedDiscount, StackingResult
from discount_engine.services.amount_calculator import calculate_amount, percentage_equivalent

logger = get_logger("stacking")


def _application_order(discount: Discount):
    # Input order must not matter, so ties inside a group fall back to identity
    return (
        0 if discount.kind == DiscountKindEnum.FIXED_AMOUNT else 1,
        discount.source.value,
        discount.id,
    )


def effective_cap(discounts: Iterable[Discount], override_cap: Optional[MoneyLike] = None) -> Decimal:
    """
    The override when given, else the lowest max_stackable_percentage among
    the candidates (a candidate without one tolerates 100).
    """
    if override_cap is not None:
        cap = to_decimal(override_cap)
        if cap < 0 or cap > HUNDRED:
            raise ValueError(f"override cap must be within [0, 100], got {cap}")
        return cap
    caps = [
        d.max_stackable_percentage if d.max_stackable_percentage is not None else HUNDRED
        for d in discounts
    ]
    return min(caps, default=HUNDRED)


def resolve_stacking(
    discounts: Iterable[Discount],
    base_amount: MoneyLike,
    override_cap: Optional[MoneyLike] = None,
) -> StackingResult:
    """
    Stack `discounts` on `base_amount`.

    Args:
        discounts: candidates that already passed eligibility for this base
        base_amount: the amount every discount is computed against
        override_cap: cumulative percentage ceiling replacing the candidates' own caps

    Returns:
        StackingResult with the total, the remaining amount and the applied
        discounts in application order (clamped ones flagged)

    Raises:
        ValueError: if base_amount is negative or override_cap is outside [0, 100]
    """
    base = to_decimal(base_amount)
    if base < 0:
        raise ValueError(f"base amount must be non-negative, got {base}")

    candidates = list(discounts)
    cap = effective_cap(candidates, override_cap)
    ordered = sorted(candidates, key=_application_order)

    applied = []
    total_percentage = ZERO
    total_amount = ZERO

    for discount in ordered:
        if total_percentage >= cap:
            break
        if applied and not discount.is_stackable:
            logger.debug(
                f"Skipping non-stackable discount {discount.label}: another discount already applies",
                extra={"discount_id": discount.id, "source": discount.source.value},
            )
            continue

        amount = calculate_amount(discount, base)
        share = percentage_equivalent(discount, amount, base)
        clamped = False
        if total_percentage + share > cap:
            share = max(ZERO, cap - total_percentage)
            amount = percent_of(base, share)
            clamped = True

        applied.append(StackedDiscount(
            discount=discount,
            amount=amount,
            percentage_equivalent=share,
            clamped=clamped,
        ))
        total_percentage += share
        total_amount += amount

        if not discount.is_stackable:
            # exclusive: nothing else may join it
            break

    final_amount = max(ZERO, base - total_amount)
    return StackingResult(
        total_discount=total_amount,
        final_amount=final_amount,
        effective_cap=cap,
        applied=applied,
    )
