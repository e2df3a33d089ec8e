from __future__ import annotations

from datetime import datetime
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field, field_validator

from app.models.order import OrderNoteType


class OrderNoteRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    type: OrderNoteType
    text: str
    created_by: str
    created_at: datetime


class OrderNoteCreate(BaseModel):
    text: str = Field(max_length=5000)
    type: OrderNoteType = OrderNoteType.internal
    created_by: str | None = Field(default=None, max_length=120)

    @field_validator("type", mode="before")
    @classmethod
    def _anything_but_customer_is_internal(cls, value: object) -> OrderNoteType:
        if isinstance(value, str) and value.strip().lower() == OrderNoteType.customer.value:
            return OrderNoteType.customer
        return OrderNoteType.internal


class OrderNoteResponse(BaseModel):
    note: OrderNoteRead


class OrderNoteListResponse(BaseModel):
    notes: list[OrderNoteRead]
