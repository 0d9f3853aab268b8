from sqlalchemy import Column, Integer, String, DateTime, Boolean, Numeric, JSON, Enum as SQLEnum
from sqlalchemy.sql import func
import enum
from discount_engine.core.database import Base


class DiscountStatusEnum(str, enum.Enum):
    ACTIVE = "active"
    UPCOMING = "upcoming"    # start date in the future
    EXPIRED = "expired"      # end date in the past
    DISABLED = "disabled"    # manual override, never recomputed from dates

    @classmethod
    def normalize(cls, value):
        if value is None:
            return None
        if isinstance(value, cls):
            return value
        if isinstance(value, str):
            value_lower = value.strip().lower()
            mapping = {
                'active': cls.ACTIVE, 'upcoming': cls.UPCOMING,
                'expired': cls.EXPIRED, 'disabled': cls.DISABLED,
            }
            if value_lower in mapping:
                return mapping[value_lower]
        raise ValueError(f"Invalid discount status: {value}")


class DiscountKindEnum(str, enum.Enum):
    FIXED_AMOUNT = "fixed_amount"
    PERCENTAGE = "percentage"
    FIXED_AMOUNT_WITH_CODE = "fixed_amount_with_code"  # fixed amount + percentage, additive
    TIERED = "tiered"                                  # percentage picked from tier rules


class DiscountScopeEnum(str, enum.Enum):
    PRODUCT = "product"
    CATEGORY = "category"
    CODE = "code"
    GLOBAL = "global"


class DiscountSourceEnum(str, enum.Enum):
    AUTOMATIC = "Automatic"
    CODE = "Code"
    COUPON = "Coupon"


def _enum_column(enum_cls, **kw):
    return Column(
        SQLEnum(enum_cls, values_callable=lambda x: [e.value for e in x], native_enum=False),
        **kw,
    )


class DiscountColumnsMixin:
    """Columns shared by product coupons and promo codes."""

    id = Column(Integer, primary_key=True, index=True)
    description = Column(String(500), nullable=False, default="")
    scope = _enum_column(DiscountScopeEnum, nullable=False, default=DiscountScopeEnum.GLOBAL)
    kind = _enum_column(DiscountKindEnum, nullable=False, default=DiscountKindEnum.FIXED_AMOUNT)
    amount = Column(Numeric(12, 2), nullable=False, default=0)
    percentage = Column(Numeric(5, 2), nullable=True)  # 0-100
    tier_rules = Column(JSON, nullable=True)  # [{"threshold": 100, "percentage": 5}, ...]
    minimum_purchase_amount = Column(Numeric(12, 2), nullable=False, default=0)
    applicable_categories = Column(JSON, nullable=True)  # None / [] = all categories
    start_date = Column(DateTime(timezone=True), nullable=True)  # None = no lower bound
    end_date = Column(DateTime(timezone=True), nullable=True)  # None = no expiry
    status = _enum_column(DiscountStatusEnum, nullable=False, default=DiscountStatusEnum.ACTIVE)
    is_stackable = Column(Boolean, default=True, nullable=False)
    max_stackable_percentage = Column(Numeric(5, 2), nullable=True)
    remaining_uses = Column(Integer, default=-1, nullable=False)  # -1 = unlimited
    is_automatic = Column(Boolean, default=False, nullable=False)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), onupdate=func.now())


class Coupon(DiscountColumnsMixin, Base):
    __tablename__ = "coupons"

    product_id = Column(String(64), nullable=True, index=True)  # catalog product id
    product_name = Column(String(255), nullable=True, index=True)  # None = global coupon


class DiscountCode(DiscountColumnsMixin, Base):
    __tablename__ = "discount_codes"

    code = Column(String(64), unique=True, nullable=False, index=True)  # e.g. SAVE10, BLACKFRIDAY
    automatic_type = Column(String(64), nullable=True)  # e.g. BlackFriday, SummerSale
