from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal, ROUND_HALF_UP
from typing import Iterable

from app.models.coupon import DiscountType


MONEY_QUANT = Decimal("0.01")
ZERO = Decimal("0.00")


def quantize_money(value: Decimal | int | float | str) -> Decimal:
    return Decimal(str(value)).quantize(MONEY_QUANT, rounding=ROUND_HALF_UP)


def format_amount(value: Decimal | int | float) -> str:
    """Render an amount the way shoppers see it: whole amounts without decimals."""
    amount = Decimal(str(value))
    if amount == amount.to_integral_value():
        return str(int(amount))
    return str(quantize_money(amount))


def compute_coupon_discount(
    discount_type: DiscountType | str,
    discount_value: Decimal | int | float,
    subtotal: Decimal | int | float,
    max_discount_amount: Decimal | int | float | None = None,
) -> Decimal:
    """Discount granted by a coupon on a pre-tax, pre-shipping subtotal.

    Percentage coupons take ``discount_value`` percent of the subtotal, capped by
    ``max_discount_amount`` when one is set (a zero cap counts as unset). Fixed
    coupons never give back more than the subtotal itself.
    """
    value = Decimal(str(discount_value))
    base = Decimal(str(subtotal))
    if DiscountType(discount_type) == DiscountType.percentage:
        discount = base * value / Decimal("100")
        if max_discount_amount:
            discount = min(discount, Decimal(str(max_discount_amount)))
    else:
        discount = min(value, base)
    return quantize_money(discount)


@dataclass(frozen=True)
class OrderTotals:
    subtotal: Decimal
    discount: Decimal
    tax: Decimal
    shipping: Decimal
    total: Decimal


def items_subtotal(lines: Iterable[tuple[Decimal, int]]) -> Decimal:
    return quantize_money(sum((Decimal(str(price)) * int(quantity) for price, quantity in lines), start=ZERO))


def compute_order_totals(
    *,
    subtotal: Decimal,
    discount: Decimal = ZERO,
    tax: Decimal = ZERO,
    shipping: Decimal = ZERO,
) -> OrderTotals:
    subtotal_q = quantize_money(subtotal)
    discount_q = min(quantize_money(discount), subtotal_q)
    tax_q = quantize_money(tax)
    shipping_q = quantize_money(shipping)
    total = quantize_money(subtotal_q - discount_q + tax_q + shipping_q)
    return OrderTotals(subtotal=subtotal_q, discount=discount_q, tax=tax_q, shipping=shipping_q, total=total)
