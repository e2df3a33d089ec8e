from __future__ import annotations

from datetime import datetime
from decimal import Decimal
from typing import Literal
from uuid import UUID

from pydantic import BaseModel, ConfigDict, EmailStr, Field, field_validator

from app.models.order import OrderStatus, PaymentMethod, PaymentStatus
from app.schemas.common import PaginationMeta
from app.schemas.order_note import OrderNoteRead

# Older dashboard builds post "paid" for a settled payment.
PAYMENT_STATUS_ALIASES = {"paid": PaymentStatus.completed.value}


class CustomerInfo(BaseModel):
    first_name: str = Field(min_length=1, max_length=120)
    last_name: str = Field(min_length=1, max_length=120)
    email: EmailStr
    phone: str | None = Field(default=None, max_length=40)


class ShippingInfo(BaseModel):
    first_name: str | None = None
    last_name: str | None = None
    address: str | None = None
    city: str | None = None
    state: str | None = None
    zip_code: str | None = None
    country: str | None = None


class TrackingInfo(BaseModel):
    carrier: str | None = Field(default=None, max_length=120)
    number: str | None = Field(default=None, max_length=120)
    url: str | None = Field(default=None, max_length=500)
    expected_delivery: datetime | None = None
    shipped_at: datetime | None = None


class OrderItemCreate(BaseModel):
    product_id: str | None = None
    category_id: str | None = None
    name: str = Field(min_length=1, max_length=255)
    sku: str | None = Field(default=None, max_length=64)
    price: Decimal = Field(ge=0)
    quantity: int = Field(default=1, ge=1)
    image: str | None = Field(default=None, max_length=500)


class OrderCreate(BaseModel):
    customer_info: CustomerInfo
    shipping_info: ShippingInfo | None = None
    items: list[OrderItemCreate] = Field(min_length=1)
    tax: Decimal = Field(default=Decimal("0"), ge=0)
    shipping_cost: Decimal = Field(default=Decimal("0"), ge=0)
    payment_method: PaymentMethod = PaymentMethod.whatsapp
    coupon_code: str | None = Field(default=None, max_length=40)


class OrderItemRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    product_id: str | None = None
    category_id: str | None = None
    name: str
    sku: str | None = None
    price: Decimal
    quantity: int
    image: str | None = None


class OrderRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    order_number: str
    customer_first_name: str
    customer_last_name: str
    customer_email: str
    customer_phone: str | None = None
    shipping_info: dict | None = None
    items: list[OrderItemRead] = Field(default_factory=list)
    subtotal: Decimal
    tax: Decimal
    shipping_cost: Decimal
    discount: Decimal
    total_amount: Decimal
    coupon_code: str | None = None
    status: OrderStatus
    payment_status: PaymentStatus
    payment_method: PaymentMethod
    tracking_info: dict | None = None
    refund_amount: Decimal | None = None
    refund_reason: str | None = None
    refunded_at: datetime | None = None
    admin_notes: list[OrderNoteRead] = Field(default_factory=list)
    customer_notes: list[OrderNoteRead] = Field(default_factory=list)
    created_at: datetime
    updated_at: datetime


class OrderCreateResponse(BaseModel):
    order: OrderRead
    order_number: str
    message: str


class OrderListResponse(BaseModel):
    items: list[OrderRead]
    meta: PaginationMeta


class OrderAdminUpdate(BaseModel):
    status: OrderStatus | None = None
    payment_status: PaymentStatus | None = None
    tracking_info: TrackingInfo | None = None
    admin_note: str | None = Field(default=None, max_length=5000)
    notify_customer: bool = True

    @field_validator("payment_status", mode="before")
    @classmethod
    def _map_legacy_payment_status(cls, value: object) -> object:
        if isinstance(value, str):
            return PAYMENT_STATUS_ALIASES.get(value.strip().lower(), value.strip().lower())
        return value

    @field_validator("admin_note")
    @classmethod
    def _blank_note_is_none(cls, value: str | None) -> str | None:
        if value is None:
            return None
        return value.strip() or None


class OrderChangesRead(BaseModel):
    order_status_changed: bool
    payment_status_changed: bool
    tracking_info_added: bool
    tracking_info_updated: bool
    admin_note_added: bool
    previous_order_status: OrderStatus
    previous_payment_status: PaymentStatus


class OrderUpdateResponse(BaseModel):
    order: OrderRead
    changes: OrderChangesRead
    message: str


class OrderCancelRequest(BaseModel):
    reason: str = Field(min_length=1, max_length=500)


class OrderRefundRequest(BaseModel):
    amount: Decimal | None = Field(default=None, gt=0)
    reason: str = Field(min_length=1, max_length=500)


class OrderEmailRequest(BaseModel):
    template_type: Literal["confirmation", "status_update", "shipped", "delivered", "cancelled"]


class OrderEmailResponse(BaseModel):
    success: bool
    message: str
