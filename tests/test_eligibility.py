from datetime import timedelta
from decimal import Decimal

import pytest

from discount_engine.models.discount import DiscountStatusEnum
from discount_engine.services.eligibility import validate_eligibility, categories_match


def test_active_discount_passes(make_discount, now):
    result = validate_eligibility(make_discount(), Decimal("100"), ["books"], now)
    assert result.is_valid
    assert result.reason is None


@pytest.mark.parametrize("status, fragment", [
    (DiscountStatusEnum.EXPIRED, "expired"),
    (DiscountStatusEnum.DISABLED, "disabled"),
    (DiscountStatusEnum.UPCOMING, "not active yet"),
])
def test_non_active_status_fails_with_its_own_reason(make_discount, now, status, fragment):
    result = validate_eligibility(make_discount(status=status, code="SAVE10"), Decimal("100"), [], now)
    assert not result.is_valid
    assert fragment in result.reason
    assert "SAVE10" in result.reason


def test_stale_active_status_is_caught_by_end_date(make_discount, now):
    d = make_discount(end_date=now - timedelta(days=1))
    result = validate_eligibility(d, Decimal("100"), [], now)
    assert not result.is_valid
    assert "expired on" in result.reason


def test_stale_active_status_is_caught_by_start_date(make_discount, now):
    d = make_discount(start_date=now + timedelta(days=1))
    result = validate_eligibility(d, Decimal("100"), [], now)
    assert not result.is_valid
    assert "valid from" in result.reason


def test_below_minimum_purchase_fails(make_discount, now):
    d = make_discount(minimum_purchase_amount=Decimal("250"))
    result = validate_eligibility(d, Decimal("200"), [], now)
    assert not result.is_valid
    assert "Minimum purchase" in result.reason
    assert "250.00" in result.reason


def test_exact_minimum_purchase_passes(make_discount, now):
    d = make_discount(minimum_purchase_amount=Decimal("250"))
    assert validate_eligibility(d, Decimal("250"), [], now).is_valid


def test_categories_match_ignoring_case(make_discount, now):
    d = make_discount(applicable_categories=["Electronics", "Games"])
    assert validate_eligibility(d, Decimal("10"), ["books", "ELECTRONICS"], now).is_valid


def test_category_mismatch_fails(make_discount, now):
    d = make_discount(applicable_categories=["Electronics"])
    result = validate_eligibility(d, Decimal("10"), ["books"], now)
    assert not result.is_valid
    assert "categories" in result.reason


def test_restricted_discount_fails_without_any_category(make_discount, now):
    d = make_discount(applicable_categories=["Electronics"])
    assert not validate_eligibility(d, Decimal("10"), [], now).is_valid


def test_unrestricted_discount_applies_to_any_category(make_discount, now):
    assert validate_eligibility(make_discount(), Decimal("10"), [], now).is_valid
    assert categories_match([], ["anything"])


@pytest.mark.parametrize("remaining, valid", [(-1, True), (3, True), (1, True), (0, False)])
def test_remaining_uses(make_discount, now, remaining, valid):
    d = make_discount(remaining_uses=remaining)
    result = validate_eligibility(d, Decimal("10"), [], now)
    assert result.is_valid is valid
    if not valid:
        assert "remaining uses" in result.reason


def test_checks_short_circuit_in_order(make_discount, now):
    d = make_discount(
        status=DiscountStatusEnum.DISABLED,
        minimum_purchase_amount=Decimal("1000"),
        remaining_uses=0,
    )
    result = validate_eligibility(d, Decimal("1"), [], now)
    assert "disabled" in result.reason


def test_negative_subtotal_is_a_programming_error(make_discount, now):
    with pytest.raises(ValueError):
        validate_eligibility(make_discount(), Decimal("-1"), [], now)
