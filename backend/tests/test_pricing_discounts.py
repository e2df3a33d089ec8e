from decimal import Decimal

from app.models.coupon import DiscountType
from app.services import pricing


def test_percentage_discount_takes_share_of_subtotal() -> None:
    assert pricing.compute_coupon_discount(DiscountType.percentage, 10, Decimal("25000")) == Decimal("2500.00")


def test_percentage_discount_respects_cap() -> None:
    discount = pricing.compute_coupon_discount(
        DiscountType.percentage, 20, Decimal("100000"), max_discount_amount=Decimal("5000")
    )
    assert discount == Decimal("5000.00")


def test_zero_cap_means_uncapped() -> None:
    discount = pricing.compute_coupon_discount("percentage", 20, Decimal("100000"), max_discount_amount=0)
    assert discount == Decimal("20000.00")


def test_fixed_discount_never_exceeds_subtotal() -> None:
    assert pricing.compute_coupon_discount(DiscountType.fixed, 500, Decimal("1200")) == Decimal("500.00")
    assert pricing.compute_coupon_discount(DiscountType.fixed, 500, Decimal("300")) == Decimal("300.00")


def test_fixed_discount_ignores_cap() -> None:
    discount = pricing.compute_coupon_discount(DiscountType.fixed, 500, Decimal("1200"), max_discount_amount=100)
    assert discount == Decimal("500.00")


def test_discount_rounds_half_up_to_cents() -> None:
    assert pricing.compute_coupon_discount(DiscountType.percentage, 15, Decimal("0.10")) == Decimal("0.02")
    assert pricing.compute_coupon_discount(DiscountType.percentage, Decimal("33.333"), Decimal("10")) == Decimal("3.33")


def test_zero_subtotal_gives_zero_discount() -> None:
    assert pricing.compute_coupon_discount(DiscountType.percentage, 50, 0) == Decimal("0.00")
    assert pricing.compute_coupon_discount(DiscountType.fixed, 50, 0) == Decimal("0.00")


def test_order_totals_subtract_discount_before_tax_and_shipping() -> None:
    totals = pricing.compute_order_totals(
        subtotal=Decimal("10000"), discount=Decimal("1000"), tax=Decimal("750"), shipping=Decimal("2500")
    )
    assert totals.subtotal == Decimal("10000.00")
    assert totals.discount == Decimal("1000.00")
    assert totals.total == Decimal("12250.00")


def test_order_totals_cap_discount_at_subtotal() -> None:
    totals = pricing.compute_order_totals(subtotal=Decimal("100"), discount=Decimal("150"), shipping=Decimal("20"))
    assert totals.discount == Decimal("100.00")
    assert totals.total == Decimal("20.00")


def test_items_subtotal_multiplies_quantities() -> None:
    assert pricing.items_subtotal([(Decimal("2500"), 2), (Decimal("99.99"), 3)]) == Decimal("5299.97")


def test_format_amount_drops_zero_decimals() -> None:
    assert pricing.format_amount(Decimal("5000.00")) == "5000"
    assert pricing.format_amount(Decimal("49.5")) == "49.50"
