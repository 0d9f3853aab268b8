"""
Lifecycle status of a discount, derived from its date window.

Pure functions: callers decide whether a changed status gets persisted.
"""
from datetime import datetime, timezone
from typing import Optional, Tuple

from discount_engine.models.discount import DiscountStatusEnum
from discount_engine.schemas.discount import Discount, StatusChange


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def ensure_utc(value: Optional[datetime]) -> Optional[datetime]:
    """Naive datetimes (SQLite drops tzinfo) are taken to be UTC."""
    if value is None:
        return None
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def resolve_status(discount: Discount, now: Optional[datetime] = None) -> DiscountStatusEnum:
    """
    Derive the status of a discount at `now` (UTC, defaults to the wall clock).

    Disabled is a manual override and is returned unchanged. Otherwise the
    end date wins over the start date: a window that is already over is
    Expired even if it never started.
    """
    if discount.status == DiscountStatusEnum.DISABLED:
        return DiscountStatusEnum.DISABLED

    now = ensure_utc(now) or utc_now()
    end_date = ensure_utc(discount.end_date)
    start_date = ensure_utc(discount.start_date)

    if end_date is not None and now > end_date:
        return DiscountStatusEnum.EXPIRED
    if start_date is not None and now < start_date:
        return DiscountStatusEnum.UPCOMING
    return DiscountStatusEnum.ACTIVE


def refresh_status(
    discount: Discount,
    now: Optional[datetime] = None,
) -> Tuple[Discount, Optional[StatusChange]]:
    """
    Return the discount carrying its derived status, plus a StatusChange
    when that differs from the stored one (None otherwise).
    """
    current = resolve_status(discount, now)
    if current == discount.status:
        return discount, None
    change = StatusChange(
        source=discount.source,
        discount_id=discount.id,
        previous=discount.status,
        current=current,
    )
    return discount.with_status(current), change
