from __future__ import annotations

from datetime import datetime
from decimal import Decimal
from uuid import UUID

from pydantic import BaseModel, ConfigDict, EmailStr, Field, field_validator

from app.models.coupon import DiscountType
from app.schemas.common import PaginationMeta

CODE_PATTERN = r"^[A-Z0-9-]+$"
SCOPE_FIELDS = (
    "applicable_categories",
    "exclude_categories",
    "applicable_products",
    "exclude_products",
    "applicable_customers",
)


def _clean_ids(value: list | None) -> list[str] | None:
    if value is None:
        return None
    return [str(item).strip() for item in value if str(item).strip()]


class CouponScopeFields(BaseModel):
    applicable_categories: list[str] = Field(default_factory=list)
    exclude_categories: list[str] = Field(default_factory=list)
    applicable_products: list[str] = Field(default_factory=list)
    exclude_products: list[str] = Field(default_factory=list)
    applicable_customers: list[str] = Field(default_factory=list)


class CouponCreate(CouponScopeFields):
    code: str = Field(min_length=3, max_length=40, pattern=CODE_PATTERN)
    description: str | None = Field(default=None, max_length=500)
    discount_type: DiscountType = DiscountType.percentage
    discount_value: Decimal = Field(ge=0)
    max_discount_amount: Decimal | None = Field(default=None, ge=0)
    min_order_amount: Decimal = Field(default=Decimal("0"), ge=0)
    usage_limit: int | None = Field(default=None, ge=1)
    usage_per_customer: int = Field(default=1, ge=1)
    start_date: datetime
    end_date: datetime
    is_active: bool = True
    restrict_to_new_customers: bool = False

    @field_validator("code", mode="before")
    @classmethod
    def _normalize_code(cls, value: object) -> object:
        return value.strip().upper() if isinstance(value, str) else value

    @field_validator(*SCOPE_FIELDS, mode="before")
    @classmethod
    def _normalize_scope_ids(cls, value: list | None) -> list[str] | None:
        return _clean_ids(value)


class CouponUpdate(BaseModel):
    code: str | None = Field(default=None, min_length=3, max_length=40, pattern=CODE_PATTERN)
    description: str | None = Field(default=None, max_length=500)
    discount_type: DiscountType | None = None
    discount_value: Decimal | None = Field(default=None, ge=0)
    max_discount_amount: Decimal | None = Field(default=None, ge=0)
    min_order_amount: Decimal | None = Field(default=None, ge=0)
    usage_limit: int | None = Field(default=None, ge=1)
    usage_per_customer: int | None = Field(default=None, ge=1)
    start_date: datetime | None = None
    end_date: datetime | None = None
    is_active: bool | None = None
    restrict_to_new_customers: bool | None = None
    applicable_categories: list[str] | None = None
    exclude_categories: list[str] | None = None
    applicable_products: list[str] | None = None
    exclude_products: list[str] | None = None
    applicable_customers: list[str] | None = None

    @field_validator("code", mode="before")
    @classmethod
    def _normalize_code(cls, value: object) -> object:
        return value.strip().upper() if isinstance(value, str) else value

    @field_validator(*SCOPE_FIELDS, mode="before")
    @classmethod
    def _normalize_scope_ids(cls, value: list | None) -> list[str] | None:
        return _clean_ids(value)


class CouponRead(CouponScopeFields):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    code: str
    description: str | None = None
    discount_type: DiscountType
    discount_value: Decimal
    max_discount_amount: Decimal | None = None
    min_order_amount: Decimal
    usage_limit: int | None = None
    usage_per_customer: int
    current_usage: int
    remaining_usage: int | None = None
    start_date: datetime
    end_date: datetime
    is_active: bool
    restrict_to_new_customers: bool
    is_deleted: bool
    deleted_at: datetime | None = None
    created_at: datetime
    updated_at: datetime


class CouponListResponse(BaseModel):
    items: list[CouponRead]
    meta: PaginationMeta


class CouponMessageResponse(BaseModel):
    message: str
    coupon: CouponRead


class CouponUsageRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    order_id: UUID | None = None
    customer_email: str | None = None
    discount_applied: Decimal
    used_at: datetime


class CouponOrderItem(BaseModel):
    product_id: str | None = None
    category_id: str | None = None
    price: Decimal = Field(default=Decimal("0"), ge=0)
    quantity: int = Field(default=1, ge=1)


class CouponValidateRequest(BaseModel):
    code: str | None = None
    order_subtotal: Decimal = Field(default=Decimal("0"), ge=0)
    items: list[CouponOrderItem] | None = None
    customer_email: EmailStr | None = None


class CouponSummary(BaseModel):
    id: UUID
    code: str
    description: str | None = None
    discount_type: DiscountType
    discount_value: Decimal
    discount: Decimal


class CouponValidateResponse(BaseModel):
    valid: bool
    coupon: CouponSummary | None = None
    error: str | None = None
    reason: str | None = None
