from decimal import Decimal

import pytest

from discount_engine.models.discount import DiscountKindEnum
from discount_engine.schemas.discount import TierRule
from discount_engine.services.amount_calculator import (
    calculate_amount,
    percentage_equivalent,
    select_tier,
    tiered_amount,
)

TIERS = [
    TierRule(threshold=Decimal("100"), percentage=Decimal("5")),
    TierRule(threshold=Decimal("200"), percentage=Decimal("10")),
]


def test_fixed_amount(make_discount):
    d = make_discount(kind=DiscountKindEnum.FIXED_AMOUNT, amount=Decimal("50"))
    assert calculate_amount(d, Decimal("200")) == Decimal("50")


def test_fixed_amount_is_capped_at_base(make_discount):
    d = make_discount(kind=DiscountKindEnum.FIXED_AMOUNT, amount=Decimal("300"))
    assert calculate_amount(d, Decimal("200")) == Decimal("200")


def test_percentage(make_discount):
    d = make_discount(kind=DiscountKindEnum.PERCENTAGE, percentage=Decimal("30"))
    assert calculate_amount(d, Decimal("1000")) == Decimal("300")


def test_percentage_without_rate_is_zero(make_discount):
    d = make_discount(kind=DiscountKindEnum.PERCENTAGE)
    assert calculate_amount(d, Decimal("1000")) == 0


def test_fixed_amount_with_code_adds_both_parts(make_discount):
    d = make_discount(
        kind=DiscountKindEnum.FIXED_AMOUNT_WITH_CODE,
        amount=Decimal("10"),
        percentage=Decimal("10"),
    )
    assert calculate_amount(d, Decimal("200")) == Decimal("30")


def test_fixed_amount_with_code_is_capped_at_base(make_discount):
    d = make_discount(
        kind=DiscountKindEnum.FIXED_AMOUNT_WITH_CODE,
        amount=Decimal("15"),
        percentage=Decimal("50"),
    )
    assert calculate_amount(d, Decimal("20")) == Decimal("20")


@pytest.mark.parametrize("base, expected", [
    ("99.99", "0"),
    ("100", "5"),
    ("150", "7.50"),
    ("200", "20"),
    ("1000", "100"),
])
def test_tiered_picks_largest_qualifying_threshold(make_discount, base, expected):
    d = make_discount(kind=DiscountKindEnum.TIERED, tier_rules=TIERS)
    assert calculate_amount(d, Decimal(base)) == Decimal(expected)


def test_tiered_without_rules_is_zero(make_discount):
    d = make_discount(kind=DiscountKindEnum.TIERED)
    assert calculate_amount(d, Decimal("500")) == 0


def test_tier_rules_are_ignored_for_other_kinds(make_discount):
    d = make_discount(kind=DiscountKindEnum.PERCENTAGE, percentage=Decimal("20"), tier_rules=TIERS)
    assert calculate_amount(d, Decimal("150")) == Decimal("30")


def test_select_tier_prefers_higher_percentage_on_duplicate_threshold():
    rules = [
        TierRule(threshold=Decimal("100"), percentage=Decimal("5")),
        TierRule(threshold=Decimal("100"), percentage=Decimal("8")),
    ]
    assert select_tier(rules, Decimal("120")).percentage == Decimal("8")
    assert select_tier(list(reversed(rules)), Decimal("120")).percentage == Decimal("8")


def test_select_tier_ignores_rule_order():
    assert select_tier(list(reversed(TIERS)), Decimal("250")).threshold == Decimal("200")
    assert select_tier(TIERS, Decimal("10")) is None


def test_tiered_amount_is_monotonic():
    bases = [Decimal(b) for b in ("0", "50", "100", "150", "199.99", "200", "400")]
    amounts = [tiered_amount(TIERS, b) for b in bases]
    assert amounts == sorted(amounts)


@pytest.mark.parametrize("kind", list(DiscountKindEnum))
@pytest.mark.parametrize("base", ["0", "0.01", "7.5", "100", "12345.67"])
def test_amount_always_within_base(make_discount, kind, base):
    d = make_discount(
        kind=kind,
        amount=Decimal("40"),
        percentage=Decimal("75"),
        tier_rules=TIERS,
    )
    amount = calculate_amount(d, Decimal(base))
    assert Decimal("0") <= amount <= Decimal(base)


def test_negative_base_raises(make_discount):
    with pytest.raises(ValueError):
        calculate_amount(make_discount(), Decimal("-0.01"))


def test_percentage_equivalent(make_discount):
    fixed = make_discount(kind=DiscountKindEnum.FIXED_AMOUNT, amount=Decimal("25"))
    pct = make_discount(kind=DiscountKindEnum.PERCENTAGE, percentage=Decimal("15"))
    assert percentage_equivalent(fixed, Decimal("25"), Decimal("200")) == Decimal("12.5")
    assert percentage_equivalent(pct, Decimal("30"), Decimal("200")) == Decimal("15")
    assert percentage_equivalent(fixed, Decimal("0"), Decimal("0")) == 0
