"""
Discounts: price a cart (checkout), price a single product, compute the
per-item cart discount, validate a promo code, list the discounts
advertised for a product. Business rules live in
services.cart_discounts; this module only wires the repository in.
"""
from decimal import Decimal
from typing import Dict, Iterable, List, Optional, Tuple
from fastapi import APIRouter, Depends, Query, status
from fastapi.responses import JSONResponse
from sqlalchemy.orm import Session

from discount_engine.core.database import get_db
from discount_engine.core.logging_config import get_logger
from discount_engine.schemas.cart import (
    CartRequest,
    CartDiscountResult,
    ProductPriceRequest,
    ProductDiscountResult,
    TotalDiscountResult,
)
from discount_engine.schemas.discount import Discount
from discount_engine.schemas.discount_info import ValidateCodeResponse, ProductDiscountResponse
from discount_engine.services.cart_discounts import (
    apply_cart_discounts,
    apply_product_discount,
    calculate_total_discount,
    validate_code,
    get_product_discounts,
)
from discount_engine.services.discount_repository import DiscountRepository

router = APIRouter()
logger = get_logger("discounts_api")


@router.post("/apply", response_model=CartDiscountResult)
def apply_discounts(body: CartRequest, db: Session = Depends(get_db)):
    """
    Apply automatic discounts, the optional promo code and product coupons
    to a cart. A bad code never blocks checkout: the cart is priced without it.
    """
    repo = DiscountRepository(db)
    result = apply_cart_discounts(
        body,
        automatic_discounts=repo.get_automatic_discounts_for_cart_total(body.total),
        code_lookup=repo.find_code,
        coupon_lookup=repo.find_coupon,
    )
    repo.persist_status_changes(result.status_changes)
    return result


@router.get("/validate/{code}", response_model=ValidateCodeResponse)
def validate_discount_code(
    code: str,
    cart_total: Optional[Decimal] = Query(None, ge=0),
    db: Session = Depends(get_db),
):
    """Validate a promo code; 404 when it does not exist."""
    repo = DiscountRepository(db)
    response = validate_code(code, repo.find_code, cart_total if cart_total is not None else Decimal("0"))
    repo.persist_status_changes(response.status_changes)
    if not response.found:
        return JSONResponse(
            status_code=status.HTTP_404_NOT_FOUND,
            content=response.model_dump(mode="json"),
        )
    return response


@router.get("/product/{product_id}", response_model=ProductDiscountResponse)
def product_discounts(product_id: str, db: Session = Depends(get_db)):
    """Coupon and automatic discounts currently available for a product."""
    repo = DiscountRepository(db)
    coupon = repo.find_coupon(product_id, None)
    automatic = repo.get_active_automatic_discounts()
    response = get_product_discounts(product_id, coupon, automatic)
    repo.persist_status_changes(response.status_changes)
    return response


def _distinct(*groups: Iterable[Discount]) -> List[Discount]:
    seen: Dict[Tuple[str, int], Discount] = {}
    for group in groups:
        for discount in group:
            seen.setdefault((discount.source.value, discount.id), discount)
    return list(seen.values())


@router.post("/product/price", response_model=ProductDiscountResult)
def price_product(body: ProductPriceRequest, db: Session = Depends(get_db)):
    """Stack the automatic coupons and codes of one product, plus an optional promo code."""
    repo = DiscountRepository(db)
    if body.categories:
        automatic_codes = [
            d for category in body.categories
            for d in repo.get_automatic_discounts_for_category(category)
        ]
    else:
        automatic_codes = [d for d in repo.get_active_automatic_discounts() if not d.applicable_categories]
    candidates = _distinct(
        repo.get_automatic_coupons([body.product_name], body.categories),
        automatic_codes,
    )
    result = apply_product_discount(
        body.product_name,
        body.price,
        body.cart_total,
        candidates,
        product_categories=body.categories,
        code=body.code,
        code_lookup=repo.find_code,
    )
    repo.persist_status_changes(result.status_changes)
    return result


@router.post("/total", response_model=TotalDiscountResult)
def total_discount(body: CartRequest, db: Session = Depends(get_db)):
    """Per-item variant of /apply: discounts stack on each line's unit price."""
    repo = DiscountRepository(db)
    candidates = _distinct(
        repo.get_automatic_coupons([item.name for item in body.items], body.categories),
        repo.get_automatic_discounts_for_cart_total(body.total),
    )
    result = calculate_total_discount(body, candidates, code_lookup=repo.find_code)
    repo.persist_status_changes(result.status_changes)
    return result
