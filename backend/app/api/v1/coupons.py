from __future__ import annotations

from typing import Annotated
from uuid import UUID

from fastapi import APIRouter, Depends, Query, status
from fastapi.responses import JSONResponse
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.dependencies import require_admin
from app.db.session import get_session
from app.schemas.common import PaginationMeta
from app.schemas.coupon import (
    CouponCreate,
    CouponListResponse,
    CouponMessageResponse,
    CouponRead,
    CouponSummary,
    CouponUpdate,
    CouponUsageRead,
    CouponValidateRequest,
    CouponValidateResponse,
)
from app.services import coupons as coupons_service

router = APIRouter(prefix="/coupons", tags=["coupons"])

SessionDep = Annotated[AsyncSession, Depends(get_session)]
AdminDep = Annotated[str, Depends(require_admin)]
SearchQuery = Annotated[str | None, Query(max_length=100)]
ActiveQuery = Annotated[bool | None, Query()]
PageQuery = Annotated[int, Query(ge=1)]
LimitQuery = Annotated[int, Query(ge=1, le=100)]


def _rejection(status_code: int, error: str, reason: str | None = None) -> JSONResponse:
    body = CouponValidateResponse(valid=False, error=error, reason=reason)
    return JSONResponse(status_code=status_code, content=body.model_dump(mode="json"))


@router.post("/validate", response_model=CouponValidateResponse, responses={400: {}, 404: {}})
async def validate_coupon(payload: CouponValidateRequest, session: SessionDep) -> CouponValidateResponse | JSONResponse:
    if not coupons_service.normalize_code(payload.code):
        return _rejection(status.HTTP_400_BAD_REQUEST, "Coupon code is required")

    result = await coupons_service.validate_coupon(
        session,
        payload.code or "",
        payload.order_subtotal,
        items=payload.items,
        customer_email=str(payload.customer_email) if payload.customer_email else None,
    )
    if isinstance(result, coupons_service.CouponRejected):
        code = (
            status.HTTP_404_NOT_FOUND
            if result.reason == coupons_service.CouponRejectionReason.not_found
            else status.HTTP_400_BAD_REQUEST
        )
        return _rejection(code, result.message, result.reason.value)

    coupon = result.coupon
    return CouponValidateResponse(
        valid=True,
        coupon=CouponSummary(
            id=coupon.id,
            code=coupon.code,
            description=coupon.description,
            discount_type=coupon.discount_type,
            discount_value=coupon.discount_value,
            discount=result.discount,
        ),
    )


@router.get("/admin", response_model=CouponListResponse)
async def admin_list_coupons(
    session: SessionDep,
    _: AdminDep,
    search: SearchQuery = None,
    is_active: ActiveQuery = None,
    page: PageQuery = 1,
    limit: LimitQuery = 20,
) -> CouponListResponse:
    rows, total, pages = await coupons_service.list_coupons(
        session, search=search, is_active=is_active, page=page, limit=limit
    )
    return CouponListResponse(
        items=[CouponRead.model_validate(c) for c in rows],
        meta=PaginationMeta(total_items=total, total_pages=pages, page=page, limit=limit),
    )


@router.post("/admin", response_model=CouponRead, status_code=status.HTTP_201_CREATED)
async def admin_create_coupon(payload: CouponCreate, session: SessionDep, _: AdminDep) -> CouponRead:
    coupon = await coupons_service.create_coupon(session, payload)
    return CouponRead.model_validate(coupon)


@router.get("/admin/{coupon_id}", response_model=CouponRead)
async def admin_get_coupon(coupon_id: UUID, session: SessionDep, _: AdminDep) -> CouponRead:
    coupon = await coupons_service.get_coupon(session, coupon_id)
    return CouponRead.model_validate(coupon)


@router.patch("/admin/{coupon_id}", response_model=CouponRead)
async def admin_update_coupon(coupon_id: UUID, payload: CouponUpdate, session: SessionDep, _: AdminDep) -> CouponRead:
    coupon = await coupons_service.get_coupon(session, coupon_id)
    coupon = await coupons_service.update_coupon(session, coupon, payload)
    return CouponRead.model_validate(coupon)


@router.delete("/admin/{coupon_id}", response_model=CouponMessageResponse)
async def admin_delete_coupon(coupon_id: UUID, session: SessionDep, _: AdminDep) -> CouponMessageResponse:
    coupon = await coupons_service.get_coupon(session, coupon_id)
    coupon = await coupons_service.soft_delete_coupon(session, coupon)
    return CouponMessageResponse(message="Coupon deleted successfully", coupon=CouponRead.model_validate(coupon))


@router.post("/admin/{coupon_id}/restore", response_model=CouponMessageResponse)
async def admin_restore_coupon(coupon_id: UUID, session: SessionDep, _: AdminDep) -> CouponMessageResponse:
    coupon = await coupons_service.get_coupon(session, coupon_id, include_deleted=True)
    coupon = await coupons_service.restore_coupon(session, coupon)
    return CouponMessageResponse(message="Coupon restored successfully", coupon=CouponRead.model_validate(coupon))


@router.get("/admin/{coupon_id}/usage", response_model=list[CouponUsageRead])
async def admin_coupon_usage(coupon_id: UUID, session: SessionDep, _: AdminDep) -> list[CouponUsageRead]:
    coupon = await coupons_service.get_coupon(session, coupon_id, include_deleted=True)
    rows = await coupons_service.list_coupon_usage(session, coupon)
    return [CouponUsageRead.model_validate(u) for u in rows]
