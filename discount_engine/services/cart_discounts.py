"""
Cart Discount Service

Top-level pricing entry points. Every function here is a pure computation
over already-fetched discount records; lookups are injected as callables
and status write-backs are returned to the caller as StatusChange entries.

- apply_cart_discounts: automatic discounts + promo code + product coupons for a cart
- apply_product_discount: stacked discounts on a single product price
- calculate_total_discount: per-item stacking across a cart
- validate_code: check a promo code without pricing a cart
- get_product_discounts: discounts currently advertised for a product
"""
from datetime import datetime
from decimal import Decimal
from typing import Callable, Dict, Iterable, List, Optional, Tuple

from discount_engine.core.config import settings
from discount_engine.core.logging_config import get_logger
from discount_engine.core.money import ZERO, HUNDRED, MoneyLike, percent_of, quantize_money, to_decimal
from discount_engine.models.discount import DiscountSourceEnum, DiscountStatusEnum
from discount_engine.schemas.cart import (
    CartDiscountResult,
    CartItem,
    CartRequest,
    DiscountDetail,
    ProductDiscountResult,
    TotalDiscountResult,
)
from discount_engine.schemas.discount import Discount, StatusChange
from discount_engine.schemas.discount_info import (
    AutomaticDiscountInfo,
    CodeInfo,
    CouponInfo,
    ProductDiscountResponse,
    ValidateCodeResponse,
)
from discount_engine.services.amount_calculator import calculate_amount, tier_percentage, tiered_amount
from discount_engine.services.eligibility import categories_match, validate_eligibility
from discount_engine.services.stacking import resolve_stacking
from discount_engine.services.status_resolver import ensure_utc, refresh_status, utc_now

logger = get_logger("cart_discounts")

CodeLookup = Callable[[str], Optional[Discount]]
CouponLookup = Callable[[Optional[str], str], Optional[Discount]]

_NOT_STACKABLE = "not stackable with the discounts already applied"


class _StatusTracker:
    """Refreshes statuses at a fixed `now` and remembers each change once."""

    def __init__(self, now: datetime):
        self.now = now
        self._changes: Dict[Tuple[DiscountSourceEnum, int], StatusChange] = {}

    def refresh(self, discount: Discount) -> Discount:
        discount, change = refresh_status(discount, self.now)
        if change is not None:
            self._changes.setdefault((change.source, change.discount_id), change)
        return discount

    @property
    def changes(self) -> List[StatusChange]:
        return list(self._changes.values())


class _Exclusivity:
    """A non-stackable contribution never shares the cart with another one."""

    def __init__(self):
        self.accepted = 0
        self.closed = False

    def blocks(self, discount: Discount) -> bool:
        return self.closed or (self.accepted > 0 and not discount.is_stackable)

    def accept(self, discount: Discount) -> None:
        self.accepted += 1
        if not discount.is_stackable:
            self.closed = True


def _detail_source(discount: Discount) -> DiscountSourceEnum:
    return DiscountSourceEnum.AUTOMATIC if discount.is_automatic else discount.source


def _automatic_amount(discount: Discount, base: Decimal) -> Tuple[Decimal, Optional[Decimal]]:
    """Amount and reported percentage of an automatic discount; tier rules win when present."""
    if discount.tier_rules:
        return tiered_amount(discount.tier_rules, base), tier_percentage(discount.tier_rules, base)
    return calculate_amount(discount, base), discount.percentage


def _reject(discount: Discount, reason: str, context: str) -> None:
    logger.debug(
        f"Excluding {context} {discount.label}: {reason}",
        extra={"discount_id": discount.id, "source": discount.source.value},
    )


def apply_cart_discounts(
    cart: CartRequest,
    automatic_discounts: Iterable[Discount],
    code_lookup: Optional[CodeLookup] = None,
    coupon_lookup: Optional[CouponLookup] = None,
    now: Optional[datetime] = None,
    max_cumulative_percentage: Optional[MoneyLike] = None,
) -> CartDiscountResult:
    """
    Price a cart with every discount it qualifies for.

    Automatic discounts are computed on the full cart total. The promo code
    is validated and computed on what the automatic discounts leave. Product
    coupons are computed per line on unit price x quantity. The combined
    discount is capped at max_cumulative_percentage of the cart total
    (lowered further by any participating code's max_stackable_percentage)
    and never exceeds the total itself.

    A non-stackable discount is left out once anything else has been
    accepted, and once accepted it keeps every later one out.

    An unknown or ineligible code is ignored; pricing always completes.

    Args:
        cart: cart total, line items and optional promo code
        automatic_discounts: candidate automatic discounts
        code_lookup: code value -> Discount or None
        coupon_lookup: (product_id, product_name) -> Discount or None
        now: evaluation instant, UTC wall clock by default
        max_cumulative_percentage: cart ceiling, defaults to settings.MAX_CUMULATIVE_DISCOUNT_PERCENTAGE

    Raises:
        ValueError: if the cart total is negative or max_cumulative_percentage
            is outside [0, 100]
    """
    now = ensure_utc(now) or utc_now()
    total = to_decimal(cart.total)
    if total < 0:
        raise ValueError(f"cart total must be non-negative, got {total}")
    ceiling_percentage = (
        to_decimal(max_cumulative_percentage)
        if max_cumulative_percentage is not None
        else settings.MAX_CUMULATIVE_DISCOUNT_PERCENTAGE
    )
    if ceiling_percentage < 0 or ceiling_percentage > HUNDRED:
        raise ValueError(f"cart ceiling must be within [0, 100], got {ceiling_percentage}")
    categories = cart.categories
    tracker = _StatusTracker(now)
    exclusivity = _Exclusivity()
    details: List[DiscountDetail] = []
    code_caps: List[Decimal] = []

    # Automatic discounts, against the full cart total
    automatic_total = ZERO
    for discount in automatic_discounts:
        discount = tracker.refresh(discount)
        if not discount.is_automatic:
            _reject(discount, "not an automatic discount", "automatic discount")
            continue
        validation = validate_eligibility(discount, total, categories, now)
        if not validation.is_valid:
            _reject(discount, validation.reason, "automatic discount")
            continue
        if exclusivity.blocks(discount):
            _reject(discount, _NOT_STACKABLE, "automatic discount")
            continue
        exclusivity.accept(discount)
        amount, percentage = _automatic_amount(discount, total)
        automatic_total += amount
        details.append(DiscountDetail(
            source_kind=DiscountSourceEnum.AUTOMATIC,
            description=discount.description or discount.label,
            amount=quantize_money(amount),
            percentage=percentage,
        ))
        if discount.source == DiscountSourceEnum.CODE and discount.max_stackable_percentage is not None:
            code_caps.append(discount.max_stackable_percentage)

    # Promo code, against what the automatic discounts leave
    applied_code = None
    code_total = ZERO
    if cart.code and code_lookup is not None:
        code = code_lookup(cart.code)
        if code is None:
            logger.info(f"Ignoring unknown promo code {cart.code}")
        else:
            code = tracker.refresh(code)
            code_base = max(ZERO, total - automatic_total)
            validation = validate_eligibility(code, code_base, categories, now)
            if validation.is_valid and exclusivity.blocks(code):
                logger.info(f"Ignoring promo code {cart.code}: {_NOT_STACKABLE}")
            elif validation.is_valid:
                exclusivity.accept(code)
                code_total = calculate_amount(code, code_base)
                applied_code = code.code or cart.code
                details.append(DiscountDetail(
                    source_kind=DiscountSourceEnum.CODE,
                    description=code.description or code.label,
                    amount=quantize_money(code_total),
                    percentage=code.percentage,
                ))
                if code.max_stackable_percentage is not None:
                    code_caps.append(code.max_stackable_percentage)
            else:
                logger.info(f"Ignoring promo code {cart.code}: {validation.reason}")

    # Product coupons, per line
    coupon_total = ZERO
    if coupon_lookup is not None:
        for item in cart.items:
            coupon = coupon_lookup(item.product_id, item.name)
            if coupon is None:
                continue
            coupon = tracker.refresh(coupon)
            subtotal = item.subtotal
            validation = validate_eligibility(coupon, subtotal, item.categories, now)
            if not validation.is_valid:
                _reject(coupon, validation.reason, "coupon")
                continue
            if exclusivity.blocks(coupon):
                _reject(coupon, _NOT_STACKABLE, "coupon")
                continue
            exclusivity.accept(coupon)
            amount = calculate_amount(coupon, subtotal)
            coupon_total += amount
            details.append(DiscountDetail(
                source_kind=DiscountSourceEnum.COUPON,
                description=f"{coupon.description or coupon.label} - {item.name}",
                amount=quantize_money(amount),
                percentage=coupon.percentage,
            ))

    if code_caps:
        ceiling_percentage = min(ceiling_percentage, min(code_caps))
    ceiling = min(percent_of(total, ceiling_percentage), total)

    combined = automatic_total + code_total + coupon_total
    discount_total = min(combined, ceiling)

    original_total = quantize_money(total)
    discount_amount = quantize_money(discount_total)
    result = CartDiscountResult(
        original_total=original_total,
        discount_amount=discount_amount,
        final_total=original_total - discount_amount,
        applied_code=applied_code,
        applied_discounts=details,
        ceiling_applied=combined > ceiling,
        status_changes=tracker.changes,
    )

    logger.info(
        f"Applied discounts: original={result.original_total}, discount={result.discount_amount}, "
        f"final={result.final_total}",
        extra={
            "applied_code": applied_code,
            "discount_count": len(details),
            "ceiling_percentage": str(ceiling_percentage),
        },
    )
    return result


def apply_product_discount(
    product_name: str,
    original_price: MoneyLike,
    cart_total: MoneyLike,
    candidates: Iterable[Discount],
    product_categories: Optional[Iterable[str]] = None,
    code: Optional[str] = None,
    code_lookup: Optional[CodeLookup] = None,
    now: Optional[datetime] = None,
    max_stacking_percentage: Optional[MoneyLike] = None,
) -> ProductDiscountResult:
    """
    Stack the automatic discounts of one product, plus an optional promo
    code, on its price. Eligibility is judged against the cart total; the
    stack is capped at max_stacking_percentage (default
    settings.MAX_PRODUCT_STACKING_PERCENTAGE).
    """
    now = ensure_utc(now) or utc_now()
    price = to_decimal(original_price)
    if price < 0:
        raise ValueError(f"price must be non-negative, got {price}")
    cart_total = to_decimal(cart_total)
    product_categories = list(product_categories or [])
    tracker = _StatusTracker(now)

    eligible = []
    for discount in candidates:
        discount = tracker.refresh(discount)
        validation = validate_eligibility(discount, cart_total, product_categories, now)
        if validation.is_valid:
            eligible.append(discount)
        else:
            _reject(discount, validation.reason, f"discount on {product_name}")

    code = code.strip() if code else None
    if code and code_lookup is not None:
        code_discount = code_lookup(code)
        if code_discount is None:
            logger.info(f"Ignoring unknown promo code {code}")
        else:
            code_discount = tracker.refresh(code_discount)
            validation = validate_eligibility(code_discount, cart_total, product_categories, now)
            if validation.is_valid:
                eligible.append(code_discount)
            else:
                logger.info(f"Ignoring promo code {code}: {validation.reason}")

    cap = (
        max_stacking_percentage
        if max_stacking_percentage is not None
        else settings.MAX_PRODUCT_STACKING_PERCENTAGE
    )
    stacking = resolve_stacking(eligible, price, override_cap=cap)

    discount_amount = quantize_money(stacking.total_discount)
    original = quantize_money(price)
    percentage = stacking.total_discount / price * HUNDRED if price else ZERO
    return ProductDiscountResult(
        original_price=original,
        discount_amount=discount_amount,
        discounted_price=max(ZERO, original - discount_amount),
        discount_percentage=quantize_money(percentage),
        applied_discounts=[
            DiscountDetail(
                source_kind=_detail_source(s.discount),
                description=s.discount.description or s.discount.label,
                amount=quantize_money(s.amount),
                percentage=s.percentage_equivalent,
            )
            for s in stacking.applied
        ],
        status_changes=tracker.changes,
    )


def _matches_item(discount: Discount, item: CartItem) -> bool:
    if discount.product_name:
        return discount.product_name.casefold() == item.name.casefold()
    if discount.applicable_categories:
        return categories_match(discount.applicable_categories, item.categories)
    return True


def calculate_total_discount(
    cart: CartRequest,
    candidates: Iterable[Discount],
    code_lookup: Optional[CodeLookup] = None,
    now: Optional[datetime] = None,
    max_stacking_percentage: Optional[MoneyLike] = None,
) -> TotalDiscountResult:
    """
    Per-item variant of cart pricing: for each line, the candidates bound
    to it (global, same product name, or a shared category) are stacked on
    the unit price and the per-unit discount is multiplied by quantity.
    """
    now = ensure_utc(now) or utc_now()
    total = to_decimal(cart.total)
    if total < 0:
        raise ValueError(f"cart total must be non-negative, got {total}")
    tracker = _StatusTracker(now)
    available = [tracker.refresh(d) for d in candidates]

    if cart.code and code_lookup is not None:
        code_discount = code_lookup(cart.code)
        if code_discount is None:
            logger.info(f"Ignoring unknown promo code {cart.code}")
        else:
            available.append(tracker.refresh(code_discount))

    cap = (
        max_stacking_percentage
        if max_stacking_percentage is not None
        else settings.MAX_PRODUCT_STACKING_PERCENTAGE
    )

    total_discount = ZERO
    per_discount: Dict[Tuple[DiscountSourceEnum, int], Decimal] = {}
    first_seen: Dict[Tuple[DiscountSourceEnum, int], Discount] = {}
    for item in cart.items:
        item_candidates = []
        for discount in available:
            if not _matches_item(discount, item):
                continue
            validation = validate_eligibility(discount, total, item.categories, now)
            if validation.is_valid:
                item_candidates.append(discount)
            else:
                _reject(discount, validation.reason, f"discount on {item.name}")
        if not item_candidates:
            continue

        stacking = resolve_stacking(item_candidates, item.price, override_cap=cap)
        total_discount += stacking.total_discount * item.quantity
        for stacked in stacking.applied:
            key = (stacked.discount.source, stacked.discount.id)
            first_seen.setdefault(key, stacked.discount)
            per_discount[key] = per_discount.get(key, ZERO) + stacked.amount * item.quantity

    total_discount = min(total_discount, total)
    original_total = quantize_money(total)
    discount_amount = quantize_money(total_discount)
    return TotalDiscountResult(
        original_total=original_total,
        total_discount=discount_amount,
        final_total=max(ZERO, original_total - discount_amount),
        applied_discounts=[
            DiscountDetail(
                source_kind=_detail_source(discount),
                description=discount.description or discount.label,
                amount=quantize_money(per_discount[key]),
                percentage=discount.percentage,
            )
            for key, discount in first_seen.items()
        ],
        status_changes=tracker.changes,
    )


def validate_code(
    code: str,
    code_lookup: CodeLookup,
    cart_total: MoneyLike = 0,
    now: Optional[datetime] = None,
) -> ValidateCodeResponse:
    """
    Check a promo code on its own. No category restriction is applied since
    there is no cart to compare against.

    Raises:
        ValueError: if code is blank
    """
    if not code or not code.strip():
        raise ValueError("Promo code must not be empty")
    code = code.strip()

    discount = code_lookup(code)
    if discount is None:
        return ValidateCodeResponse(is_valid=False, found=False, reason="Promo code not found")

    tracker = _StatusTracker(ensure_utc(now) or utc_now())
    discount = tracker.refresh(discount)
    unrestricted = discount.model_copy(update={"applicable_categories": []})
    validation = validate_eligibility(unrestricted, cart_total, None, tracker.now)

    code_info = None
    if validation.is_valid:
        code_info = CodeInfo(
            code=discount.code,
            description=discount.description,
            kind=discount.kind,
            amount=discount.amount,
            percentage=discount.percentage,
            minimum_purchase_amount=discount.minimum_purchase_amount,
            start_date=discount.start_date,
            end_date=discount.end_date,
            status=discount.status,
            is_stackable=discount.is_stackable,
            max_stackable_percentage=discount.max_stackable_percentage,
        )
    return ValidateCodeResponse(
        is_valid=validation.is_valid,
        reason=validation.reason,
        code_info=code_info,
        status_changes=tracker.changes,
    )


def get_product_discounts(
    product_id: str,
    coupon: Optional[Discount],
    automatic_discounts: Iterable[Discount],
    now: Optional[datetime] = None,
) -> ProductDiscountResponse:
    """Coupon and automatic discounts currently advertised for a product."""
    tracker = _StatusTracker(ensure_utc(now) or utc_now())
    response = ProductDiscountResponse(product_id=product_id)

    category_filter = None
    if coupon is not None:
        coupon = tracker.refresh(coupon)
        response.product_name = coupon.product_name
        if coupon.status == DiscountStatusEnum.ACTIVE:
            response.coupon = CouponInfo(
                id=coupon.id,
                description=coupon.description,
                amount=coupon.amount,
                percentage=coupon.percentage,
                start_date=coupon.start_date,
                end_date=coupon.end_date,
                status=coupon.status,
            )
        if coupon.applicable_categories:
            category_filter = coupon.applicable_categories[0]

    for discount in automatic_discounts:
        discount = tracker.refresh(discount)
        if discount.status != DiscountStatusEnum.ACTIVE:
            continue
        if category_filter is not None and not categories_match(discount.applicable_categories, [category_filter]):
            continue
        response.automatic_discounts.append(AutomaticDiscountInfo(
            automatic_type=discount.automatic_type or "General",
            description=discount.description,
            amount=discount.amount,
            percentage=discount.percentage,
            start_date=discount.start_date,
            end_date=discount.end_date,
        ))

    response.status_changes = tracker.changes
    return response
