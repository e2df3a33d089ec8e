from app.db.base import Base  # noqa: F401
from app.models.order import (  # noqa: F401
    Order,
    OrderItem,
    OrderNote,
    OrderNoteType,
    OrderStatus,
    PaymentMethod,
    PaymentStatus,
)
from app.models.coupon import (  # noqa: F401
    Coupon,
    CouponScope,
    CouponScopeEntityType,
    CouponScopeMode,
    CouponUsage,
    DiscountType,
)

__all__ = [
    "Base",
    "Order",
    "OrderItem",
    "OrderNote",
    "OrderNoteType",
    "OrderStatus",
    "PaymentMethod",
    "PaymentStatus",
    "Coupon",
    "CouponScope",
    "CouponScopeEntityType",
    "CouponScopeMode",
    "CouponUsage",
    "DiscountType",
]
