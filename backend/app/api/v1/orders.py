from datetime import date
from typing import Literal
from uuid import UUID

from fastapi import APIRouter, BackgroundTasks, Depends, HTTPException, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.config import settings
from app.core.dependencies import require_admin
from app.db.session import get_session
from app.models.order import OrderStatus, PaymentStatus
from app.schemas.common import PaginationMeta
from app.schemas.order import (
    OrderAdminUpdate,
    OrderCancelRequest,
    OrderChangesRead,
    OrderCreate,
    OrderCreateResponse,
    OrderEmailRequest,
    OrderEmailResponse,
    OrderListResponse,
    OrderRead,
    OrderRefundRequest,
    OrderUpdateResponse,
)
from app.schemas.order_note import OrderNoteCreate, OrderNoteListResponse, OrderNoteRead, OrderNoteResponse
from app.services import order as order_service
from app.services import order_notes as notes_service
from app.services import order_notifications
from app.services import order_status as order_status_service

router = APIRouter(prefix="/orders", tags=["orders"])


@router.post("", response_model=OrderCreateResponse, status_code=status.HTTP_201_CREATED)
async def create_order(
    background_tasks: BackgroundTasks,
    payload: OrderCreate,
    session: AsyncSession = Depends(get_session),
) -> OrderCreateResponse:
    order = await order_service.create_order(session, payload)
    snapshot = OrderRead.model_validate(order)
    background_tasks.add_task(order_notifications.notify_order_created, snapshot)
    return OrderCreateResponse(order=snapshot, order_number=snapshot.order_number, message="Order created successfully")


@router.get("/track", response_model=OrderRead)
async def track_order(
    order_number: str = Query(min_length=1, max_length=20),
    email: str = Query(min_length=3, max_length=255),
    session: AsyncSession = Depends(get_session),
) -> OrderRead:
    order = await order_service.track_order(session, order_number, email)
    snapshot = OrderRead.model_validate(order)
    # Internal notes stay internal.
    return snapshot.model_copy(update={"admin_notes": []})


@router.get("/admin", response_model=OrderListResponse)
async def admin_list_orders(
    search: str | None = Query(default=None, max_length=100),
    status_filter: OrderStatus | None = Query(default=None, alias="status"),
    payment_status: PaymentStatus | None = Query(default=None),
    date_from: date | None = Query(default=None),
    date_to: date | None = Query(default=None),
    sort_by: Literal["created_at", "updated_at", "total_amount", "order_number", "status"] = Query(default="created_at"),
    sort_order: Literal["asc", "desc"] = Query(default="desc"),
    page: int = Query(default=1, ge=1),
    limit: int = Query(default=10, ge=1, le=100),
    session: AsyncSession = Depends(get_session),
    _: str = Depends(require_admin),
) -> OrderListResponse:
    rows, total, pages = await order_service.list_orders(
        session,
        search=search,
        status_filter=status_filter,
        payment_status=payment_status,
        date_from=date_from,
        date_to=date_to,
        sort_by=sort_by,
        sort_order=sort_order,
        page=page,
        limit=limit,
    )
    return OrderListResponse(
        items=[OrderRead.model_validate(o) for o in rows],
        meta=PaginationMeta(total_items=total, total_pages=pages, page=page, limit=limit),
    )


@router.get("/admin/{order_id}", response_model=OrderRead)
async def admin_get_order(
    order_id: UUID,
    session: AsyncSession = Depends(get_session),
    _: str = Depends(require_admin),
) -> OrderRead:
    order = await order_service.get_order_by_id(session, order_id)
    return OrderRead.model_validate(order)


@router.patch("/admin/{order_id}", response_model=OrderUpdateResponse)
async def admin_update_order(
    order_id: UUID,
    payload: OrderAdminUpdate,
    background_tasks: BackgroundTasks,
    session: AsyncSession = Depends(get_session),
    admin: str = Depends(require_admin),
) -> OrderUpdateResponse:
    order = await order_service.get_order_by_id(session, order_id)
    changes = await order_status_service.update_order(session, order, payload, actor=admin)
    snapshot = OrderRead.model_validate(order)
    background_tasks.add_task(
        order_notifications.notify_order_updated, snapshot, changes, notify_customer=payload.notify_customer
    )
    return OrderUpdateResponse(
        order=snapshot,
        changes=OrderChangesRead(**changes.as_dict()),
        message="Order updated successfully",
    )


@router.get("/admin/{order_id}/notes", response_model=OrderNoteListResponse)
async def admin_list_order_notes(
    order_id: UUID,
    session: AsyncSession = Depends(get_session),
    _: str = Depends(require_admin),
) -> OrderNoteListResponse:
    order = await order_service.get_order_by_id(session, order_id)
    return OrderNoteListResponse(notes=[OrderNoteRead.model_validate(n) for n in notes_service.list_notes(order)])


@router.post("/admin/{order_id}/notes", response_model=OrderNoteResponse, status_code=status.HTTP_201_CREATED)
async def admin_add_order_note(
    order_id: UUID,
    payload: OrderNoteCreate,
    session: AsyncSession = Depends(get_session),
    admin: str = Depends(require_admin),
) -> OrderNoteResponse:
    order = await order_service.get_order_by_id(session, order_id)
    note = await notes_service.add_note(
        session, order, payload.text, note_type=payload.type, created_by=payload.created_by or admin
    )
    return OrderNoteResponse(note=OrderNoteRead.model_validate(note))


@router.post("/admin/{order_id}/cancel", response_model=OrderRead)
async def admin_cancel_order(
    order_id: UUID,
    payload: OrderCancelRequest,
    background_tasks: BackgroundTasks,
    session: AsyncSession = Depends(get_session),
    _: str = Depends(require_admin),
) -> OrderRead:
    order = await order_service.get_order_by_id(session, order_id)
    order = await order_service.cancel_order(session, order, payload.reason)
    snapshot = OrderRead.model_validate(order)
    background_tasks.add_task(order_notifications.notify_order_cancelled, snapshot)
    return snapshot


@router.post("/admin/{order_id}/refund", response_model=OrderRead)
async def admin_refund_order(
    order_id: UUID,
    payload: OrderRefundRequest,
    session: AsyncSession = Depends(get_session),
    _: str = Depends(require_admin),
) -> OrderRead:
    order = await order_service.get_order_by_id(session, order_id)
    order = await order_service.refund_order(session, order, reason=payload.reason, amount=payload.amount)
    return OrderRead.model_validate(order)


@router.post("/admin/{order_id}/email", response_model=OrderEmailResponse)
async def admin_send_order_email(
    order_id: UUID,
    payload: OrderEmailRequest,
    session: AsyncSession = Depends(get_session),
    _: str = Depends(require_admin),
) -> OrderEmailResponse:
    order = await order_service.get_order_by_id(session, order_id)
    snapshot = OrderRead.model_validate(order)
    if not settings.smtp_enabled:
        return OrderEmailResponse(success=False, message="Email delivery is disabled")
    sent = await order_notifications.send_order_email(snapshot, payload.template_type)
    if not sent:
        raise HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail="Failed to send email")
    return OrderEmailResponse(success=True, message=f"{payload.template_type} email sent successfully")
