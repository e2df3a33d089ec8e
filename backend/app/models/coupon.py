import enum
import uuid
from datetime import datetime
from decimal import Decimal

from sqlalchemy import Boolean, DateTime, Enum, ForeignKey, Integer, Numeric, String, UniqueConstraint, func
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import Mapped, mapped_column, relationship

from app.db.base import Base


class DiscountType(str, enum.Enum):
    percentage = "percentage"
    fixed = "fixed"


class CouponScopeEntityType(str, enum.Enum):
    product = "product"
    category = "category"
    customer = "customer"


class CouponScopeMode(str, enum.Enum):
    include = "include"
    exclude = "exclude"


class Coupon(Base):
    __tablename__ = "coupons"

    id: Mapped[uuid.UUID] = mapped_column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    # Unique across soft-deleted rows too, so a deleted code can never come back.
    code: Mapped[str] = mapped_column(String(40), unique=True, nullable=False, index=True)
    description: Mapped[str | None] = mapped_column(String(500), nullable=True)
    discount_type: Mapped[DiscountType] = mapped_column(
        Enum(DiscountType, native_enum=False),
        nullable=False,
        default=DiscountType.percentage,
    )
    discount_value: Mapped[Decimal] = mapped_column(Numeric(10, 2), nullable=False)
    max_discount_amount: Mapped[Decimal | None] = mapped_column(Numeric(10, 2), nullable=True)
    min_order_amount: Mapped[Decimal] = mapped_column(Numeric(10, 2), nullable=False, default=Decimal("0.00"))
    usage_limit: Mapped[int | None] = mapped_column(Integer, nullable=True)
    usage_per_customer: Mapped[int] = mapped_column(Integer, nullable=False, default=1)
    current_usage: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    start_date: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    end_date: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True, index=True)
    restrict_to_new_customers: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    is_deleted: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False, index=True)
    deleted_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), onupdate=func.now(), nullable=False
    )

    scopes: Mapped[list["CouponScope"]] = relationship(
        "CouponScope", back_populates="coupon", cascade="all, delete-orphan", lazy="selectin"
    )

    def _scope_ids(self, entity_type: CouponScopeEntityType, mode: CouponScopeMode) -> list[str]:
        return [scope.entity_id for scope in self.scopes if scope.entity_type == entity_type and scope.mode == mode]

    @property
    def applicable_categories(self) -> list[str]:
        return self._scope_ids(CouponScopeEntityType.category, CouponScopeMode.include)

    @property
    def exclude_categories(self) -> list[str]:
        return self._scope_ids(CouponScopeEntityType.category, CouponScopeMode.exclude)

    @property
    def applicable_products(self) -> list[str]:
        return self._scope_ids(CouponScopeEntityType.product, CouponScopeMode.include)

    @property
    def exclude_products(self) -> list[str]:
        return self._scope_ids(CouponScopeEntityType.product, CouponScopeMode.exclude)

    @property
    def applicable_customers(self) -> list[str]:
        return self._scope_ids(CouponScopeEntityType.customer, CouponScopeMode.include)

    @property
    def remaining_usage(self) -> int | None:
        if not self.usage_limit:
            return None
        return max(0, int(self.usage_limit) - int(self.current_usage or 0))


class CouponScope(Base):
    __tablename__ = "coupon_scopes"
    __table_args__ = (
        UniqueConstraint("coupon_id", "entity_type", "mode", "entity_id", name="uq_coupon_scopes_coupon_type_mode_entity"),
    )

    id: Mapped[uuid.UUID] = mapped_column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    coupon_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), ForeignKey("coupons.id", ondelete="CASCADE"), nullable=False, index=True
    )
    entity_type: Mapped[CouponScopeEntityType] = mapped_column(
        Enum(CouponScopeEntityType, native_enum=False), nullable=False
    )
    mode: Mapped[CouponScopeMode] = mapped_column(
        Enum(CouponScopeMode, native_enum=False),
        nullable=False,
        default=CouponScopeMode.include,
    )
    # Product/category ids, or lowercased customer emails for customer scopes.
    entity_id: Mapped[str] = mapped_column(String(255), nullable=False)

    coupon: Mapped[Coupon] = relationship("Coupon", back_populates="scopes")


class CouponUsage(Base):
    __tablename__ = "coupon_usages"

    id: Mapped[uuid.UUID] = mapped_column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    coupon_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), ForeignKey("coupons.id", ondelete="CASCADE"), nullable=False, index=True
    )
    order_id: Mapped[uuid.UUID | None] = mapped_column(UUID(as_uuid=True), ForeignKey("orders.id"), nullable=True)
    customer_email: Mapped[str | None] = mapped_column(String(255), nullable=True, index=True)
    discount_applied: Mapped[Decimal] = mapped_column(Numeric(10, 2), nullable=False, default=Decimal("0.00"))
    used_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now(), nullable=False)
