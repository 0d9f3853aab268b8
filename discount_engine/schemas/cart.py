from pydantic import BaseModel, Field, field_validator, model_validator
from typing import Optional, List
from decimal import Decimal
from discount_engine.models.discount import DiscountSourceEnum
from discount_engine.schemas.discount import StatusChange


class CartItem(BaseModel):
    product_id: Optional[str] = None
    name: str
    categories: List[str] = Field(default_factory=list)
    price: Decimal = Field(ge=0)  # unit price
    quantity: int = Field(default=1, ge=1)

    @property
    def subtotal(self) -> Decimal:
        return self.price * self.quantity


class CartRequest(BaseModel):
    total: Optional[Decimal] = Field(default=None, ge=0)  # None = sum of item subtotals
    items: List[CartItem] = Field(default_factory=list)
    code: Optional[str] = None

    @field_validator("code")
    @classmethod
    def code_trim(cls, v: Optional[str]) -> Optional[str]:
        return (v.strip() or None) if v else None

    @model_validator(mode="after")
    def default_total(self):
        if self.total is None:
            self.total = sum((item.subtotal for item in self.items), Decimal("0"))
        return self

    @property
    def categories(self) -> List[str]:
        """Distinct category labels across all items, case-insensitively, in first-seen order."""
        seen = set()
        result = []
        for item in self.items:
            for category in item.categories:
                key = category.casefold()
                if key not in seen:
                    seen.add(key)
                    result.append(category)
        return result


class DiscountDetail(BaseModel):
    source_kind: DiscountSourceEnum
    description: str
    amount: Decimal
    percentage: Optional[Decimal] = None


class CartDiscountResult(BaseModel):
    original_total: Decimal
    discount_amount: Decimal
    final_total: Decimal
    applied_code: Optional[str] = None
    applied_discounts: List[DiscountDetail] = Field(default_factory=list)
    ceiling_applied: bool = False  # combined discount was cut down to the cart ceiling
    status_changes: List[StatusChange] = Field(default_factory=list)


class ProductDiscountResult(BaseModel):
    original_price: Decimal
    discount_amount: Decimal
    discounted_price: Decimal
    discount_percentage: Decimal
    applied_discounts: List[DiscountDetail] = Field(default_factory=list)
    status_changes: List[StatusChange] = Field(default_factory=list)


class TotalDiscountResult(BaseModel):
    original_total: Decimal
    total_discount: Decimal
    final_total: Decimal
    applied_discounts: List[DiscountDetail] = Field(default_factory=list)
    status_changes: List[StatusChange] = Field(default_factory=list)


class ProductPriceRequest(BaseModel):
    product_id: Optional[str] = None
    product_name: str
    categories: List[str] = Field(default_factory=list)
    price: Decimal = Field(ge=0)  # unit price
    cart_total: Decimal = Field(ge=0)
    code: Optional[str] = None

    @field_validator("code")
    @classmethod
    def code_trim(cls, v: Optional[str]) -> Optional[str]:
        return (v.strip() or None) if v else None
