"""
Discount Repository

Data-access boundary between the discount tables and the engine. Rows are
converted into immutable Discount records here, and this is the only place
where stored tier rules and category lists are decoded. Status changes
reported by the engine are written back through persist_status_changes.
"""
import json
from datetime import datetime
from decimal import Decimal, InvalidOperation
from typing import Iterable, List, Optional, Union

from pydantic import ValidationError
from sqlalchemy.orm import Session

from discount_engine.core.db_transaction import db_transaction
from discount_engine.core.logging_config import get_logger
from discount_engine.models.discount import (
    Coupon,
    DiscountCode,
    DiscountSourceEnum,
    DiscountStatusEnum,
)
from discount_engine.schemas.discount import Discount, StatusChange, TierRule
from discount_engine.services.eligibility import categories_match
from discount_engine.services.status_resolver import ensure_utc, utc_now

logger = get_logger("discount_repository")

DiscountRow = Union[Coupon, DiscountCode]


def decode_tier_rules(raw: Optional[list], discount_label: str = "") -> List[TierRule]:
    """
    Build the tier table from the stored JSON column, e.g.
    [{"threshold": 100, "percentage": 5}, {"threshold": 200, "percentage": 10}].
    Malformed data yields an empty table, so the discount contributes zero.
    """
    if not raw:
        return []
    try:
        if not isinstance(raw, list):
            raise ValueError("tier rules must be a list")
        rules = [
            TierRule(
                threshold=Decimal(str(entry["threshold"])),
                percentage=Decimal(str(entry["percentage"])),
            )
            for entry in raw
        ]
    except (ValueError, TypeError, KeyError, InvalidOperation, ValidationError) as e:
        logger.warning(
            f"Ignoring malformed tier rules for {discount_label}: {e}",
            extra={"tier_rules": raw},
        )
        return []
    return sorted(rules, key=lambda r: r.threshold)


def decode_categories(raw, discount_label: str = "") -> List[str]:
    if not raw:
        return []
    if isinstance(raw, str):
        # legacy rows may hold a serialized list
        try:
            raw = json.loads(raw)
        except ValueError:
            raw = [c.strip() for c in raw.split(",")]
    if not isinstance(raw, list):
        logger.warning(f"Ignoring malformed categories for {discount_label}: {raw!r}")
        return []
    return [str(c) for c in raw if str(c).strip()]


def to_discount(row: DiscountRow) -> Discount:
    """Convert a coupon or code row into the engine's Discount record."""
    is_coupon = isinstance(row, Coupon)
    label = (row.product_name if is_coupon else row.code) or f"#{row.id}"
    return Discount(
        id=row.id,
        source=DiscountSourceEnum.COUPON if is_coupon else DiscountSourceEnum.CODE,
        description=row.description or "",
        code=None if is_coupon else row.code,
        product_id=row.product_id if is_coupon else None,
        product_name=row.product_name if is_coupon else None,
        automatic_type=None if is_coupon else row.automatic_type,
        scope=row.scope,
        kind=row.kind,
        amount=row.amount or Decimal("0"),
        percentage=row.percentage,
        tier_rules=decode_tier_rules(row.tier_rules, label),
        minimum_purchase_amount=row.minimum_purchase_amount or Decimal("0"),
        applicable_categories=decode_categories(row.applicable_categories, label),
        start_date=ensure_utc(row.start_date),
        end_date=ensure_utc(row.end_date),
        status=row.status,
        is_stackable=row.is_stackable,
        max_stackable_percentage=row.max_stackable_percentage,
        remaining_uses=row.remaining_uses,
        is_automatic=row.is_automatic,
    )


class DiscountRepository:
    """Read discounts for the engine and persist the statuses it derives."""

    def __init__(self, db: Session):
        self.db = db

    def find_code(self, code_value: str) -> Optional[Discount]:
        if not code_value or not code_value.strip():
            return None
        row = self.db.query(DiscountCode).filter(DiscountCode.code == code_value.strip()).first()
        return to_discount(row) if row else None

    def find_coupon(self, product_id: Optional[str], product_name: Optional[str]) -> Optional[Discount]:
        """Coupon bound to a product, by identifier first, then by name."""
        row = None
        if product_id:
            row = self.db.query(Coupon).filter(Coupon.product_id == str(product_id)).first()
        if row is None and product_name and product_name.strip():
            row = self.db.query(Coupon).filter(Coupon.product_name == product_name).first()
        return to_discount(row) if row else None

    def get_active_automatic_discounts(
        self,
        automatic_type: Optional[str] = None,
        now: Optional[datetime] = None,
    ) -> List[Discount]:
        """
        Automatic codes whose date window contains now. Rows stored as
        Upcoming are included so a passed start date can promote them.
        """
        now = ensure_utc(now) or utc_now()
        query = self.db.query(DiscountCode).filter(
            DiscountCode.is_automatic == True,  # noqa: E712
            DiscountCode.status.in_([DiscountStatusEnum.ACTIVE, DiscountStatusEnum.UPCOMING]),
        )
        if automatic_type and automatic_type.strip():
            query = query.filter(DiscountCode.automatic_type == automatic_type.strip())

        discounts = []
        for row in query.order_by(DiscountCode.id).all():
            discount = to_discount(row)
            if discount.start_date is not None and discount.start_date > now:
                continue
            if discount.end_date is not None and discount.end_date < now:
                continue
            discounts.append(discount)
        return discounts

    def get_automatic_discounts_for_category(
        self,
        category: str,
        automatic_type: Optional[str] = None,
        now: Optional[datetime] = None,
    ) -> List[Discount]:
        return [
            d for d in self.get_active_automatic_discounts(automatic_type, now)
            if categories_match(d.applicable_categories, [category])
        ]

    def get_automatic_discounts_for_cart_total(
        self,
        cart_total: Decimal,
        now: Optional[datetime] = None,
    ) -> List[Discount]:
        return [
            d for d in self.get_active_automatic_discounts(now=now)
            if d.minimum_purchase_amount <= cart_total
        ]

    def get_automatic_coupons(
        self,
        product_names: Optional[Iterable[str]] = None,
        categories: Optional[Iterable[str]] = None,
    ) -> List[Discount]:
        """
        Automatic coupons stored as Active or Upcoming that are global or
        bound to one of the product names or categories.
        """
        wanted_names = {n.casefold() for n in (product_names or []) if n}
        categories = list(categories or [])
        rows = (
            self.db.query(Coupon)
            .filter(
                Coupon.is_automatic == True,  # noqa: E712
                Coupon.status.in_([DiscountStatusEnum.ACTIVE, DiscountStatusEnum.UPCOMING]),
            )
            .order_by(Coupon.id)
            .all()
        )

        discounts = []
        for row in rows:
            discount = to_discount(row)
            if discount.product_name:
                matched = discount.product_name.casefold() in wanted_names
            else:
                matched = True
            if discount.applicable_categories and categories_match(discount.applicable_categories, categories):
                matched = True
            elif discount.applicable_categories and not discount.product_name:
                matched = False
            if matched:
                discounts.append(discount)
        return discounts

    def persist_status_changes(self, changes: Iterable[StatusChange]) -> int:
        """Write derived statuses back. Returns the number of rows updated."""
        changes = list(changes)
        if not changes:
            return 0
        updated = 0
        with db_transaction(self.db, "status write-back") as db:
            for change in changes:
                model = Coupon if change.source == DiscountSourceEnum.COUPON else DiscountCode
                row = db.query(model).filter(model.id == change.discount_id).first()
                if row is None:
                    logger.warning(
                        f"Status change for missing {change.source.value} #{change.discount_id} skipped"
                    )
                    continue
                if row.status == DiscountStatusEnum.DISABLED:
                    continue
                row.status = change.current
                updated += 1
        logger.info(
            f"Persisted {updated} discount status change(s)",
            extra={"changes": [c.model_dump(mode="json") for c in changes]},
        )
        return updated
