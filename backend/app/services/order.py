from __future__ import annotations

import logging
import math
from datetime import date, datetime, time, timedelta, timezone
from decimal import Decimal
from uuid import UUID

from fastapi import HTTPException, status
from sqlalchemy import func, or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from app.core import metrics
from app.core.config import settings
from app.models.order import Order, OrderItem, OrderNoteType, OrderStatus, PaymentStatus
from app.schemas.order import OrderCreate
from app.services import coupons as coupons_service
from app.services.order_notes import build_note
from app.services.pricing import compute_order_totals, format_amount, items_subtotal, quantize_money

logger = logging.getLogger(__name__)

SYSTEM_ACTOR = "System"
CANCELLABLE_STATUSES = {OrderStatus.pending, OrderStatus.confirmed}
SORTABLE_FIELDS = {
    "created_at": Order.created_at,
    "updated_at": Order.updated_at,
    "total_amount": Order.total_amount,
    "order_number": Order.order_number,
    "status": Order.status,
}


def _now() -> datetime:
    return datetime.now(timezone.utc)


async def _next_order_number(session: AsyncSession) -> str:
    prefix = settings.order_number_prefix
    result = await session.execute(
        select(Order.order_number)
        .where(Order.order_number.like(f"{prefix}%"))
        .order_by(func.length(Order.order_number).desc(), Order.order_number.desc())
        .limit(1)
    )
    last = result.scalar_one_or_none()
    if last is None:
        return f"{prefix}{settings.order_number_start}"
    digits = last[len(prefix):]
    if not digits.isdigit():
        return f"{prefix}{settings.order_number_start}"
    return f"{prefix}{max(int(digits) + 1, settings.order_number_start)}"


async def create_order(session: AsyncSession, payload: OrderCreate) -> Order:
    """Place a checkout order, applying and claiming the coupon when one is given.

    The coupon is re-validated against the server-side subtotal; the usage
    claim and the order insert share one transaction.
    """
    customer = payload.customer_info
    email = str(customer.email).strip().lower()
    subtotal = items_subtotal((item.price, item.quantity) for item in payload.items)

    coupon = None
    discount = Decimal("0.00")
    coupon_code = coupons_service.normalize_code(payload.coupon_code) or None
    if coupon_code:
        result = await coupons_service.validate_coupon(
            session, coupon_code, subtotal, items=payload.items, customer_email=email
        )
        if isinstance(result, coupons_service.CouponRejected):
            code = (
                status.HTTP_404_NOT_FOUND
                if result.reason == coupons_service.CouponRejectionReason.not_found
                else status.HTTP_400_BAD_REQUEST
            )
            raise HTTPException(status_code=code, detail=result.message)
        coupon = result.coupon
        discount = result.discount

    totals = compute_order_totals(
        subtotal=subtotal, discount=discount, tax=payload.tax, shipping=payload.shipping_cost
    )
    order = Order(
        order_number=await _next_order_number(session),
        customer_first_name=customer.first_name.strip(),
        customer_last_name=customer.last_name.strip(),
        customer_email=email,
        customer_phone=customer.phone,
        shipping_info=payload.shipping_info.model_dump(exclude_none=True) if payload.shipping_info else None,
        subtotal=totals.subtotal,
        tax=totals.tax,
        shipping_cost=totals.shipping,
        discount=totals.discount,
        total_amount=totals.total,
        coupon_code=coupon.code if coupon else None,
        status=OrderStatus.pending,
        payment_status=PaymentStatus.pending,
        payment_method=payload.payment_method,
        items=[
            OrderItem(
                product_id=item.product_id,
                category_id=item.category_id,
                name=item.name,
                sku=item.sku,
                price=quantize_money(item.price),
                quantity=item.quantity,
                image=item.image,
            )
            for item in payload.items
        ],
        notes=[],
    )
    session.add(order)
    await session.flush()
    if coupon is not None:
        try:
            await coupons_service.claim_coupon_usage(
                session, coupon, discount=totals.discount, order_id=order.id, customer_email=email
            )
        except HTTPException:
            await session.rollback()
            raise
    await session.commit()
    await session.refresh(order)
    await session.refresh(order, attribute_names=["items", "notes"])
    metrics.record_order_created()
    logger.info(
        "order_created",
        extra={"order_number": order.order_number, "coupon_code": order.coupon_code, "total": str(order.total_amount)},
    )
    return order


async def get_order_by_id(session: AsyncSession, order_id: UUID) -> Order:
    order = await session.get(Order, order_id)
    if order is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Order not found")
    return order


async def track_order(session: AsyncSession, order_number: str, email: str) -> Order:
    result = await session.execute(
        select(Order).where(
            Order.order_number == (order_number or "").strip().upper(),
            Order.customer_email == (email or "").strip().lower(),
        )
    )
    order = result.scalar_one_or_none()
    if order is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Order not found")
    return order


async def list_orders(
    session: AsyncSession,
    *,
    search: str | None = None,
    status_filter: OrderStatus | None = None,
    payment_status: PaymentStatus | None = None,
    date_from: date | None = None,
    date_to: date | None = None,
    sort_by: str = "created_at",
    sort_order: str = "desc",
    page: int = 1,
    limit: int = 10,
) -> tuple[list[Order], int, int]:
    filters = []
    if search:
        pattern = f"%{search.strip()}%"
        filters.append(
            or_(
                Order.order_number.ilike(pattern),
                Order.customer_first_name.ilike(pattern),
                Order.customer_last_name.ilike(pattern),
                Order.customer_email.ilike(pattern),
            )
        )
    if status_filter:
        filters.append(Order.status == status_filter)
    if payment_status:
        filters.append(Order.payment_status == payment_status)
    if date_from:
        filters.append(Order.created_at >= datetime.combine(date_from, time.min, tzinfo=timezone.utc))
    if date_to:
        # The whole end day is included.
        filters.append(Order.created_at < datetime.combine(date_to + timedelta(days=1), time.min, tzinfo=timezone.utc))

    column = SORTABLE_FIELDS.get(sort_by, Order.created_at)
    ordering = column.asc() if sort_order == "asc" else column.desc()

    total = int((await session.execute(select(func.count()).select_from(Order).where(*filters))).scalar_one())
    result = await session.execute(
        select(Order).where(*filters).order_by(ordering, Order.order_number.desc()).offset((page - 1) * limit).limit(limit)
    )
    pages = math.ceil(total / limit) if limit else 0
    return list(result.scalars().all()), total, pages


async def cancel_order(session: AsyncSession, order: Order, reason: str) -> Order:
    if order.status not in CANCELLABLE_STATUSES:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Cannot cancel order in current status")
    order.status = OrderStatus.cancelled
    build_note(order, f"Order cancelled: {reason.strip()}", note_type=OrderNoteType.internal, created_by=SYSTEM_ACTOR)
    session.add(order)
    await session.commit()
    await session.refresh(order)
    await session.refresh(order, attribute_names=["items", "notes"])
    metrics.record_order_updated()
    logger.info("order_cancelled", extra={"order_number": order.order_number})
    return order


async def refund_order(session: AsyncSession, order: Order, *, reason: str, amount: Decimal | None = None) -> Order:
    if order.payment_status != PaymentStatus.completed:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Cannot refund uncompleted payment")
    refund_amount = quantize_money(amount if amount is not None else order.total_amount)
    if refund_amount > Decimal(order.total_amount):
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Refund amount cannot exceed order total")
    order.payment_status = PaymentStatus.refunded
    order.refund_amount = refund_amount
    order.refund_reason = reason.strip()
    order.refunded_at = _now()
    build_note(
        order,
        f"Refund processed: {settings.currency_symbol}{format_amount(refund_amount)} ({order.refund_reason})",
        note_type=OrderNoteType.internal,
        created_by=SYSTEM_ACTOR,
    )
    session.add(order)
    await session.commit()
    await session.refresh(order)
    await session.refresh(order, attribute_names=["items", "notes"])
    metrics.record_order_updated()
    logger.info("order_refunded", extra={"order_number": order.order_number, "amount": str(refund_amount)})
    return order
