from __future__ import annotations

import enum
import logging
import math
from dataclasses import dataclass
from datetime import datetime, timezone
from decimal import Decimal
from typing import Iterable, Literal, Protocol, Sequence
from uuid import UUID

from fastapi import HTTPException, status
from sqlalchemy import func, or_, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from app.core import metrics
from app.core.config import settings
from app.models.coupon import Coupon, CouponScope, CouponScopeEntityType, CouponScopeMode, CouponUsage, DiscountType
from app.models.order import Order
from app.schemas.coupon import CouponCreate, CouponUpdate
from app.services.pricing import compute_coupon_discount, format_amount

logger = logging.getLogger(__name__)


class CouponRejectionReason(str, enum.Enum):
    not_found = "not_found"
    inactive = "inactive"
    not_started = "not_started"
    expired = "expired"
    usage_limit_reached = "usage_limit_reached"
    below_minimum = "below_minimum"
    not_applicable = "not_applicable"
    customer_not_eligible = "customer_not_eligible"
    new_customers_only = "new_customers_only"
    per_customer_limit_reached = "per_customer_limit_reached"


_REJECTION_MESSAGES: dict[CouponRejectionReason, str] = {
    CouponRejectionReason.not_found: "Coupon not found",
    CouponRejectionReason.inactive: "Coupon is inactive",
    CouponRejectionReason.not_started: "Coupon is not yet valid",
    CouponRejectionReason.expired: "Coupon has expired",
    CouponRejectionReason.usage_limit_reached: "Coupon usage limit reached",
    CouponRejectionReason.not_applicable: "Coupon is not applicable to this order",
    CouponRejectionReason.customer_not_eligible: "Coupon is not available for this customer",
    CouponRejectionReason.new_customers_only: "Coupon is only available to new customers",
    CouponRejectionReason.per_customer_limit_reached: "Coupon usage limit reached for this customer",
}


@dataclass(frozen=True)
class CouponAccepted:
    coupon: Coupon
    discount: Decimal
    kind: Literal["accepted"] = "accepted"


@dataclass(frozen=True)
class CouponRejected:
    reason: CouponRejectionReason
    message: str
    kind: Literal["rejected"] = "rejected"


CouponValidation = CouponAccepted | CouponRejected


class CouponLine(Protocol):
    product_id: str | None
    category_id: str | None


def _now() -> datetime:
    return datetime.now(timezone.utc)


def _as_utc(value: datetime) -> datetime:
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def normalize_code(code: str | None) -> str:
    return (code or "").strip().upper()


def _reject(reason: CouponRejectionReason, message: str | None = None) -> CouponRejected:
    return CouponRejected(reason=reason, message=message or _REJECTION_MESSAGES[reason])


def _scope_conflict(coupon: Coupon, items: Sequence[CouponLine]) -> bool:
    category_ids = {str(item.category_id) for item in items if item.category_id}
    product_ids = {str(item.product_id) for item in items if item.product_id}

    applicable_categories = set(coupon.applicable_categories)
    if applicable_categories and not (category_ids & applicable_categories):
        return True
    if category_ids & set(coupon.exclude_categories):
        return True
    applicable_products = set(coupon.applicable_products)
    if applicable_products and not (product_ids & applicable_products):
        return True
    if product_ids & set(coupon.exclude_products):
        return True
    return False


def evaluate_coupon(
    coupon: Coupon | None,
    subtotal: Decimal,
    *,
    now: datetime | None = None,
    items: Sequence[CouponLine] | None = None,
) -> CouponValidation:
    """Run the coupon rules against an order subtotal; the first failing rule wins.

    Validity bounds are inclusive on both ends. Scope rules only run when the
    caller knows the order lines.
    """
    if coupon is None or coupon.is_deleted:
        return _reject(CouponRejectionReason.not_found)
    now = _as_utc(now or _now())
    if not coupon.is_active:
        return _reject(CouponRejectionReason.inactive)
    if _as_utc(coupon.start_date) > now:
        return _reject(CouponRejectionReason.not_started)
    if _as_utc(coupon.end_date) < now:
        return _reject(CouponRejectionReason.expired)
    if coupon.usage_limit and int(coupon.current_usage or 0) >= int(coupon.usage_limit):
        return _reject(CouponRejectionReason.usage_limit_reached)
    minimum = Decimal(coupon.min_order_amount or 0)
    if Decimal(subtotal) < minimum:
        return _reject(
            CouponRejectionReason.below_minimum,
            f"Minimum order amount {settings.currency_symbol}{format_amount(minimum)} required",
        )
    if items is not None and _scope_conflict(coupon, items):
        return _reject(CouponRejectionReason.not_applicable)

    discount = compute_coupon_discount(
        coupon.discount_type,
        coupon.discount_value,
        subtotal,
        max_discount_amount=coupon.max_discount_amount,
    )
    return CouponAccepted(coupon=coupon, discount=discount)


async def get_coupon_by_code(session: AsyncSession, code: str, *, include_deleted: bool = False) -> Coupon | None:
    cleaned = normalize_code(code)
    if not cleaned:
        return None
    query = select(Coupon).where(Coupon.code == cleaned)
    if not include_deleted:
        query = query.where(Coupon.is_deleted.is_(False))
    return (await session.execute(query)).scalar_one_or_none()


async def _customer_rejection(session: AsyncSession, coupon: Coupon, customer_email: str) -> CouponRejected | None:
    email = customer_email.strip().lower()
    allowed = {value.lower() for value in coupon.applicable_customers}
    if allowed and email not in allowed:
        return _reject(CouponRejectionReason.customer_not_eligible)

    if coupon.restrict_to_new_customers:
        previous_orders = (
            await session.execute(select(func.count()).select_from(Order).where(Order.customer_email == email))
        ).scalar_one()
        if int(previous_orders) > 0:
            return _reject(CouponRejectionReason.new_customers_only)

    if coupon.usage_per_customer:
        used = (
            await session.execute(
                select(func.count())
                .select_from(CouponUsage)
                .where(CouponUsage.coupon_id == coupon.id, CouponUsage.customer_email == email)
            )
        ).scalar_one()
        if int(used) >= int(coupon.usage_per_customer):
            return _reject(CouponRejectionReason.per_customer_limit_reached)
    return None


async def validate_coupon(
    session: AsyncSession,
    code: str,
    subtotal: Decimal,
    *,
    items: Sequence[CouponLine] | None = None,
    customer_email: str | None = None,
    now: datetime | None = None,
) -> CouponValidation:
    """Look a code up and evaluate it; shared by the public validate endpoint and checkout."""
    coupon = await get_coupon_by_code(session, code)
    result = evaluate_coupon(coupon, subtotal, now=now, items=items)
    if isinstance(result, CouponAccepted) and customer_email:
        result = await _customer_rejection(session, result.coupon, customer_email) or result

    if isinstance(result, CouponRejected):
        metrics.record_coupon_rejected(result.reason.value)
        logger.info(
            "coupon_rejected",
            extra={"coupon_code": normalize_code(code), "reason": result.reason.value},
        )
    else:
        metrics.record_coupon_accepted()
    return result


async def claim_coupon_usage(
    session: AsyncSession,
    coupon: Coupon,
    *,
    discount: Decimal,
    order_id: UUID | None = None,
    customer_email: str | None = None,
) -> None:
    """Count one use of ``coupon`` without overshooting its usage limit.

    The limit check and the increment are a single conditional UPDATE so two
    concurrent checkouts cannot both take the last use. The caller commits.
    """
    result = await session.execute(
        update(Coupon)
        .where(
            Coupon.id == coupon.id,
            Coupon.is_deleted.is_(False),
            or_(Coupon.usage_limit.is_(None), Coupon.current_usage < Coupon.usage_limit),
        )
        .values(current_usage=Coupon.current_usage + 1)
        .execution_options(synchronize_session=False)
    )
    if result.rowcount != 1:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail="Coupon usage limit reached")
    session.add(
        CouponUsage(
            coupon_id=coupon.id,
            order_id=order_id,
            customer_email=(customer_email or "").strip().lower() or None,
            discount_applied=discount,
        )
    )
    metrics.record_coupon_usage_claimed()


def _validate_window(start_date: datetime, end_date: datetime) -> tuple[datetime, datetime]:
    start = _as_utc(start_date)
    end = _as_utc(end_date)
    if end <= start:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="End date must be after start date")
    return start, end


def _validate_discount(discount_type: DiscountType, discount_value: Decimal) -> None:
    if discount_type == DiscountType.percentage and Decimal(discount_value) > Decimal("100"):
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Percentage discount cannot exceed 100")


_SCOPE_FIELDS: dict[str, tuple[CouponScopeEntityType, CouponScopeMode]] = {
    "applicable_categories": (CouponScopeEntityType.category, CouponScopeMode.include),
    "exclude_categories": (CouponScopeEntityType.category, CouponScopeMode.exclude),
    "applicable_products": (CouponScopeEntityType.product, CouponScopeMode.include),
    "exclude_products": (CouponScopeEntityType.product, CouponScopeMode.exclude),
    "applicable_customers": (CouponScopeEntityType.customer, CouponScopeMode.include),
}


def _replace_scopes(
    coupon: Coupon, entity_type: CouponScopeEntityType, mode: CouponScopeMode, entity_ids: Iterable[str]
) -> None:
    current = {
        scope.entity_id: scope
        for scope in coupon.scopes
        if scope.entity_type == entity_type and scope.mode == mode
    }
    kept = [scope for scope in coupon.scopes if not (scope.entity_type == entity_type and scope.mode == mode)]
    seen: set[str] = set()
    for raw in entity_ids:
        entity_id = raw.lower() if entity_type == CouponScopeEntityType.customer else raw
        if entity_id in seen:
            continue
        seen.add(entity_id)
        # Reuse existing rows; a delete+insert of the same id would trip the unique constraint.
        kept.append(current.get(entity_id) or CouponScope(entity_type=entity_type, mode=mode, entity_id=entity_id))
    coupon.scopes = kept


async def _ensure_code_available(session: AsyncSession, code: str, *, exclude_id: UUID | None = None) -> None:
    query = select(Coupon).where(Coupon.code == code)
    if exclude_id is not None:
        query = query.where(Coupon.id != exclude_id)
    existing = (await session.execute(query)).scalar_one_or_none()
    if existing is None:
        return
    if existing.is_deleted:
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail="Coupon code was previously deleted. Please use a different code.",
        )
    raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=f'Coupon code "{code}" already exists')


async def create_coupon(session: AsyncSession, payload: CouponCreate) -> Coupon:
    start, end = _validate_window(payload.start_date, payload.end_date)
    _validate_discount(payload.discount_type, payload.discount_value)
    await _ensure_code_available(session, payload.code)

    coupon = Coupon(
        code=payload.code,
        description=payload.description,
        discount_type=payload.discount_type,
        discount_value=payload.discount_value,
        max_discount_amount=payload.max_discount_amount,
        min_order_amount=payload.min_order_amount,
        usage_limit=payload.usage_limit,
        usage_per_customer=payload.usage_per_customer,
        current_usage=0,
        start_date=start,
        end_date=end,
        is_active=payload.is_active,
        restrict_to_new_customers=payload.restrict_to_new_customers,
        is_deleted=False,
        scopes=[],
    )
    for field, (entity_type, mode) in _SCOPE_FIELDS.items():
        _replace_scopes(coupon, entity_type, mode, getattr(payload, field))
    session.add(coupon)
    await session.commit()
    await session.refresh(coupon)
    await session.refresh(coupon, attribute_names=["scopes"])
    logger.info("coupon_created", extra={"coupon_code": coupon.code})
    return coupon


async def get_coupon(session: AsyncSession, coupon_id: UUID, *, include_deleted: bool = False) -> Coupon:
    coupon = await session.get(Coupon, coupon_id)
    if coupon is None or (coupon.is_deleted and not include_deleted):
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Coupon not found")
    return coupon


async def update_coupon(session: AsyncSession, coupon: Coupon, payload: CouponUpdate) -> Coupon:
    data = payload.model_dump(exclude_unset=True)

    code = data.pop("code", None)
    if code and code != coupon.code:
        await _ensure_code_available(session, code, exclude_id=coupon.id)
        coupon.code = code

    start = data.pop("start_date", None)
    end = data.pop("end_date", None)
    if start is not None or end is not None:
        coupon.start_date, coupon.end_date = _validate_window(start or coupon.start_date, end or coupon.end_date)

    for field, (entity_type, mode) in _SCOPE_FIELDS.items():
        entity_ids = data.pop(field, None)
        if entity_ids is not None:
            _replace_scopes(coupon, entity_type, mode, entity_ids)

    # These columns are NOT NULL; an explicit null means "leave as is".
    for field in ("discount_type", "discount_value", "min_order_amount", "usage_per_customer", "is_active", "restrict_to_new_customers"):
        if field in data and data[field] is None:
            data.pop(field)
    for field, value in data.items():
        setattr(coupon, field, value)
    _validate_discount(coupon.discount_type, coupon.discount_value)

    session.add(coupon)
    await session.commit()
    await session.refresh(coupon)
    await session.refresh(coupon, attribute_names=["scopes"])
    logger.info("coupon_updated", extra={"coupon_code": coupon.code})
    return coupon


async def soft_delete_coupon(session: AsyncSession, coupon: Coupon) -> Coupon:
    coupon.is_deleted = True
    coupon.deleted_at = _now()
    session.add(coupon)
    await session.commit()
    await session.refresh(coupon)
    await session.refresh(coupon, attribute_names=["scopes"])
    logger.info("coupon_deleted", extra={"coupon_code": coupon.code})
    return coupon


async def restore_coupon(session: AsyncSession, coupon: Coupon) -> Coupon:
    coupon.is_deleted = False
    coupon.deleted_at = None
    session.add(coupon)
    await session.commit()
    await session.refresh(coupon)
    await session.refresh(coupon, attribute_names=["scopes"])
    logger.info("coupon_restored", extra={"coupon_code": coupon.code})
    return coupon


async def list_coupons(
    session: AsyncSession,
    *,
    search: str | None = None,
    is_active: bool | None = None,
    page: int = 1,
    limit: int = 20,
) -> tuple[list[Coupon], int, int]:
    filters = [Coupon.is_deleted.is_(False)]
    if search:
        pattern = f"%{search.strip()}%"
        filters.append(or_(Coupon.code.ilike(pattern), Coupon.description.ilike(pattern)))
    if is_active is not None:
        filters.append(Coupon.is_active.is_(is_active))

    total = int((await session.execute(select(func.count()).select_from(Coupon).where(*filters))).scalar_one())
    result = await session.execute(
        select(Coupon)
        .where(*filters)
        .order_by(Coupon.created_at.desc(), Coupon.code)
        .offset((page - 1) * limit)
        .limit(limit)
    )
    pages = math.ceil(total / limit) if limit else 0
    return list(result.scalars().all()), total, pages


async def list_coupon_usage(session: AsyncSession, coupon: Coupon) -> list[CouponUsage]:
    result = await session.execute(
        select(CouponUsage).where(CouponUsage.coupon_id == coupon.id).order_by(CouponUsage.used_at.desc())
    )
    return list(result.scalars().all())


async def deactivate_expired_coupons(session: AsyncSession, *, now: datetime | None = None) -> int:
    now = now or _now()
    result = await session.execute(
        update(Coupon)
        .where(Coupon.is_active.is_(True), Coupon.is_deleted.is_(False), Coupon.end_date < now)
        .values(is_active=False)
        .execution_options(synchronize_session=False)
    )
    await session.commit()
    return int(result.rowcount or 0)
