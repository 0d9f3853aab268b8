"""
Eligibility of a single discount for a cart or a cart line.

Failures are returned as ValidationResult data, never raised: the
orchestrator uses them to decide which discounts to leave out.
"""
from datetime import datetime
from typing import Iterable, Optional

from discount_engine.core.money import MoneyLike, to_decimal
from discount_engine.models.discount import DiscountStatusEnum
from discount_engine.schemas.discount import Discount, ValidationResult
from discount_engine.services.status_resolver import ensure_utc, utc_now

_STATUS_REASONS = {
    DiscountStatusEnum.EXPIRED: "Discount {label} has expired",
    DiscountStatusEnum.DISABLED: "Discount {label} has been disabled",
    DiscountStatusEnum.UPCOMING: "Discount {label} is not active yet",
}


def categories_match(applicable: Iterable[str], present: Iterable[str]) -> bool:
    """True when no restriction is set or at least one label matches, ignoring case."""
    wanted = {c.casefold() for c in applicable}
    if not wanted:
        return True
    return any(c.casefold() in wanted for c in present)


def validate_eligibility(
    discount: Discount,
    subtotal: MoneyLike,
    categories: Optional[Iterable[str]] = None,
    now: Optional[datetime] = None,
) -> ValidationResult:
    """
    Decide whether `discount` may apply to a subtotal whose items carry
    `categories`. Checks short-circuit in this order: stored status, date
    window (catches a stale stored status), minimum purchase, categories,
    remaining uses.

    Raises:
        ValueError: if subtotal is negative
    """
    subtotal = to_decimal(subtotal)
    if subtotal < 0:
        raise ValueError(f"subtotal must be non-negative, got {subtotal}")
    categories = list(categories or [])
    label = discount.label

    if discount.status != DiscountStatusEnum.ACTIVE:
        return ValidationResult.fail(_STATUS_REASONS[discount.status].format(label=label))

    now = ensure_utc(now) or utc_now()
    start_date = ensure_utc(discount.start_date)
    end_date = ensure_utc(discount.end_date)
    if start_date is not None and now < start_date:
        return ValidationResult.fail(
            f"Discount {label} is valid from {start_date:%d/%m/%Y}"
        )
    if end_date is not None and now > end_date:
        return ValidationResult.fail(
            f"Discount {label} expired on {end_date:%d/%m/%Y}"
        )

    if subtotal < discount.minimum_purchase_amount:
        return ValidationResult.fail(
            f"Minimum purchase amount of {discount.minimum_purchase_amount:.2f} not reached "
            f"(subtotal {subtotal:.2f})"
        )

    if discount.applicable_categories and not categories_match(discount.applicable_categories, categories):
        return ValidationResult.fail(
            f"Discount {label} does not apply to categories: {', '.join(categories) or 'none'}"
        )

    if discount.remaining_uses != -1 and discount.remaining_uses <= 0:
        return ValidationResult.fail(f"Discount {label} has no remaining uses")

    return ValidationResult.ok()
