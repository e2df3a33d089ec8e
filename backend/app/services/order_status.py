from __future__ import annotations

import logging
from dataclasses import asdict, dataclass
from datetime import datetime, timezone
from typing import Any

from fastapi import HTTPException, status
from sqlalchemy.ext.asyncio import AsyncSession

from app.core import metrics
from app.core.config import settings
from app.core.dependencies import ADMIN_ACTOR
from app.models.order import Order, OrderNoteType, OrderStatus, PaymentStatus
from app.schemas.order import OrderAdminUpdate
from app.services.order_notes import build_note

logger = logging.getLogger(__name__)


ORDER_STATUS_TRANSITIONS: dict[OrderStatus, set[OrderStatus]] = {
    OrderStatus.pending: {OrderStatus.confirmed, OrderStatus.processing, OrderStatus.cancelled},
    OrderStatus.confirmed: {OrderStatus.processing, OrderStatus.shipped, OrderStatus.cancelled},
    OrderStatus.processing: {OrderStatus.shipped, OrderStatus.cancelled},
    OrderStatus.shipped: {OrderStatus.delivered, OrderStatus.refunded},
    OrderStatus.delivered: {OrderStatus.refunded},
    OrderStatus.cancelled: set(),
    OrderStatus.refunded: set(),
}


@dataclass(frozen=True)
class OrderChanges:
    order_status_changed: bool
    payment_status_changed: bool
    tracking_info_added: bool
    tracking_info_updated: bool
    admin_note_added: bool
    previous_order_status: OrderStatus
    previous_payment_status: PaymentStatus

    @property
    def any_change(self) -> bool:
        return (
            self.order_status_changed
            or self.payment_status_changed
            or self.tracking_info_added
            or self.tracking_info_updated
            or self.admin_note_added
        )

    def as_dict(self) -> dict[str, Any]:
        return asdict(self)


def _now() -> datetime:
    return datetime.now(timezone.utc)


def can_transition(current: OrderStatus, target: OrderStatus) -> bool:
    return current == target or target in ORDER_STATUS_TRANSITIONS.get(current, set())


def apply_order_patch(
    order: Order,
    patch: OrderAdminUpdate,
    *,
    strict: bool = False,
    actor: str = ADMIN_ACTOR,
) -> OrderChanges:
    """Apply an admin patch to ``order`` in memory and describe what actually changed.

    A field only counts as changed when the new value differs from the stored
    one. Tracking info is shallow-merged into whatever is already recorded.
    With ``strict`` the transition table is enforced; otherwise any status may
    replace any other. Nothing is committed here.
    """
    previous_status = OrderStatus(order.status)
    previous_payment = PaymentStatus(order.payment_status)

    order_status_changed = False
    if patch.status is not None and patch.status != previous_status:
        if strict and not can_transition(previous_status, patch.status):
            raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Invalid status transition")
        order.status = patch.status
        order_status_changed = True

    payment_status_changed = False
    if patch.payment_status is not None and patch.payment_status != previous_payment:
        order.payment_status = patch.payment_status
        payment_status_changed = True

    tracking_info_added = False
    tracking_info_updated = False
    incoming = patch.tracking_info.model_dump(mode="json", exclude_none=True) if patch.tracking_info else {}
    if incoming:
        existing = dict(order.tracking_info or {})
        merged = {**existing, **incoming}
        if not existing:
            tracking_info_added = True
        elif merged != existing:
            tracking_info_updated = True
        # A fresh dict so the JSON column is flagged dirty.
        order.tracking_info = merged

    if order_status_changed and order.status == OrderStatus.shipped and order.tracking_info:
        if not order.tracking_info.get("shipped_at"):
            order.tracking_info = {**order.tracking_info, "shipped_at": _now().isoformat()}

    admin_note_added = False
    if patch.admin_note:
        build_note(order, patch.admin_note, note_type=OrderNoteType.internal, created_by=actor)
        admin_note_added = True

    return OrderChanges(
        order_status_changed=order_status_changed,
        payment_status_changed=payment_status_changed,
        tracking_info_added=tracking_info_added,
        tracking_info_updated=tracking_info_updated,
        admin_note_added=admin_note_added,
        previous_order_status=previous_status,
        previous_payment_status=previous_payment,
    )


async def update_order(
    session: AsyncSession,
    order: Order,
    patch: OrderAdminUpdate,
    *,
    actor: str = ADMIN_ACTOR,
    strict: bool | None = None,
) -> OrderChanges:
    changes = apply_order_patch(
        order,
        patch,
        strict=settings.order_strict_transitions if strict is None else strict,
        actor=actor,
    )
    session.add(order)
    await session.commit()
    await session.refresh(order)
    await session.refresh(order, attribute_names=["items", "notes"])
    if changes.any_change:
        metrics.record_order_updated()
    logger.info(
        "order_updated",
        extra={
            "order_number": order.order_number,
            "status": order.status.value,
            "payment_status": order.payment_status.value,
            "status_changed": changes.order_status_changed,
        },
    )
    return changes
