from datetime import datetime, timedelta

from discount_engine.models.discount import DiscountStatusEnum, DiscountSourceEnum
from discount_engine.services.status_resolver import resolve_status, refresh_status


def test_no_dates_is_active(make_discount, now):
    assert resolve_status(make_discount(), now) == DiscountStatusEnum.ACTIVE


def test_past_end_date_is_expired(make_discount, now):
    d = make_discount(end_date=now - timedelta(days=1))
    assert resolve_status(d, now) == DiscountStatusEnum.EXPIRED


def test_future_start_date_is_upcoming(make_discount, now):
    d = make_discount(start_date=now + timedelta(hours=1))
    assert resolve_status(d, now) == DiscountStatusEnum.UPCOMING


def test_window_bounds_are_inclusive(make_discount, now):
    d = make_discount(start_date=now, end_date=now)
    assert resolve_status(d, now) == DiscountStatusEnum.ACTIVE


def test_window_in_the_past_is_expired_not_upcoming(make_discount, now):
    d = make_discount(start_date=now - timedelta(days=10), end_date=now - timedelta(days=5))
    assert resolve_status(d, now) == DiscountStatusEnum.EXPIRED


def test_stored_status_is_recomputed_from_dates(make_discount, now):
    d = make_discount(status=DiscountStatusEnum.EXPIRED, end_date=now + timedelta(days=3))
    assert resolve_status(d, now) == DiscountStatusEnum.ACTIVE


def test_disabled_is_sticky_whatever_the_dates(make_discount, now):
    for start, end in [
        (None, None),
        (now - timedelta(days=1), now + timedelta(days=1)),
        (None, now - timedelta(days=1)),
        (now + timedelta(days=1), None),
    ]:
        d = make_discount(status=DiscountStatusEnum.DISABLED, start_date=start, end_date=end)
        assert resolve_status(d, now) == DiscountStatusEnum.DISABLED


def test_naive_dates_are_read_as_utc(make_discount, now):
    naive_end = datetime(2025, 6, 15, 11, 0)  # one hour before NOW, no tzinfo
    d = make_discount(end_date=naive_end)
    assert resolve_status(d, now) == DiscountStatusEnum.EXPIRED


def test_resolution_is_pure(make_discount, now):
    d = make_discount(start_date=now + timedelta(days=2))
    first = resolve_status(d, now)
    second = resolve_status(d, now)
    assert first == second == DiscountStatusEnum.UPCOMING
    assert d.status == DiscountStatusEnum.ACTIVE  # input untouched


def test_defaults_to_wall_clock(make_discount):
    d = make_discount(end_date=datetime(2999, 1, 1))
    assert resolve_status(d) == DiscountStatusEnum.ACTIVE


def test_refresh_reports_a_change(make_discount, now):
    d = make_discount(id=7, source=DiscountSourceEnum.COUPON, end_date=now - timedelta(minutes=1))
    refreshed, change = refresh_status(d, now)
    assert refreshed.status == DiscountStatusEnum.EXPIRED
    assert change.discount_id == 7
    assert change.source == DiscountSourceEnum.COUPON
    assert change.previous == DiscountStatusEnum.ACTIVE
    assert change.current == DiscountStatusEnum.EXPIRED


def test_refresh_without_change(make_discount, now):
    d = make_discount()
    refreshed, change = refresh_status(d, now)
    assert change is None
    assert refreshed is d
