from pydantic import BaseModel, Field
from typing import Optional, List
from datetime import datetime
from decimal import Decimal
from discount_engine.models.discount import DiscountStatusEnum, DiscountKindEnum
from discount_engine.schemas.discount import StatusChange


class CodeInfo(BaseModel):
    code: Optional[str] = None
    description: str
    kind: DiscountKindEnum
    amount: Decimal
    percentage: Optional[Decimal] = None
    minimum_purchase_amount: Decimal
    start_date: Optional[datetime] = None
    end_date: Optional[datetime] = None
    status: DiscountStatusEnum
    is_stackable: bool
    max_stackable_percentage: Optional[Decimal] = None


class ValidateCodeResponse(BaseModel):
    is_valid: bool
    found: bool = True
    reason: Optional[str] = None
    code_info: Optional[CodeInfo] = None  # only when valid
    status_changes: List[StatusChange] = Field(default_factory=list)


class CouponInfo(BaseModel):
    id: int
    description: str
    amount: Decimal
    percentage: Optional[Decimal] = None
    start_date: Optional[datetime] = None
    end_date: Optional[datetime] = None
    status: DiscountStatusEnum


class AutomaticDiscountInfo(BaseModel):
    automatic_type: str = "General"
    description: str
    amount: Decimal
    percentage: Optional[Decimal] = None
    start_date: Optional[datetime] = None
    end_date: Optional[datetime] = None


class ProductDiscountResponse(BaseModel):
    product_id: str
    product_name: Optional[str] = None
    coupon: Optional[CouponInfo] = None
    automatic_discounts: List[AutomaticDiscountInfo] = Field(default_factory=list)
    status_changes: List[StatusChange] = Field(default_factory=list)
