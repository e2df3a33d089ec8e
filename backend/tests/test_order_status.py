from decimal import Decimal

import pytest
from fastapi import HTTPException

from app.models.order import Order, OrderNoteType, OrderStatus, PaymentStatus
from app.schemas.order import OrderAdminUpdate
from app.services.order_status import ORDER_STATUS_TRANSITIONS, apply_order_patch, can_transition


def make_order(**overrides) -> Order:
    values = dict(
        order_number="RS1140231",
        customer_first_name="Ada",
        customer_last_name="Obi",
        customer_email="ada@example.com",
        subtotal=Decimal("10000"),
        total_amount=Decimal("10000"),
        status=OrderStatus.pending,
        payment_status=PaymentStatus.pending,
        tracking_info=None,
        notes=[],
    )
    values.update(overrides)
    return Order(**values)


def test_pending_to_shipped_with_tracking_sets_both_flags() -> None:
    order = make_order()
    changes = apply_order_patch(
        order,
        OrderAdminUpdate(status="shipped", tracking_info={"carrier": "GIG", "number": "TRK-1"}),
    )
    assert changes.order_status_changed is True
    assert changes.tracking_info_added is True
    assert changes.tracking_info_updated is False
    assert changes.payment_status_changed is False
    assert changes.previous_order_status == OrderStatus.pending
    assert order.status == OrderStatus.shipped
    assert order.tracking_info["carrier"] == "GIG"
    assert order.tracking_info["shipped_at"]


def test_repeating_the_same_status_is_not_a_change() -> None:
    order = make_order(status=OrderStatus.shipped)
    changes = apply_order_patch(order, OrderAdminUpdate(status="shipped"))
    assert changes.order_status_changed is False
    assert changes.any_change is False


def test_tracking_is_shallow_merged_and_flagged_as_update() -> None:
    order = make_order(status=OrderStatus.shipped, tracking_info={"carrier": "GIG", "number": "TRK-1"})
    changes = apply_order_patch(order, OrderAdminUpdate(tracking_info={"number": "TRK-2"}))
    assert changes.tracking_info_added is False
    assert changes.tracking_info_updated is True
    assert order.tracking_info == {"carrier": "GIG", "number": "TRK-2"}


def test_identical_tracking_is_not_an_update() -> None:
    order = make_order(tracking_info={"carrier": "GIG"})
    changes = apply_order_patch(order, OrderAdminUpdate(tracking_info={"carrier": "GIG"}))
    assert changes.tracking_info_updated is False
    assert changes.tracking_info_added is False


def test_existing_shipped_at_is_kept() -> None:
    order = make_order(status=OrderStatus.processing, tracking_info={"shipped_at": "2026-01-01T00:00:00+00:00"})
    apply_order_patch(order, OrderAdminUpdate(status="shipped"))
    assert order.tracking_info["shipped_at"] == "2026-01-01T00:00:00+00:00"


def test_legacy_paid_payment_status_maps_to_completed() -> None:
    order = make_order()
    changes = apply_order_patch(order, OrderAdminUpdate(payment_status="paid"))
    assert changes.payment_status_changed is True
    assert changes.previous_payment_status == PaymentStatus.pending
    assert order.payment_status == PaymentStatus.completed


def test_admin_note_is_appended_as_internal() -> None:
    order = make_order()
    changes = apply_order_patch(order, OrderAdminUpdate(admin_note="  Called customer  "), actor="Ops")
    assert changes.admin_note_added is True
    assert len(order.notes) == 1
    assert order.notes[0].type == OrderNoteType.internal
    assert order.notes[0].text == "Called customer"
    assert order.notes[0].created_by == "Ops"


def test_blank_admin_note_is_ignored() -> None:
    order = make_order()
    changes = apply_order_patch(order, OrderAdminUpdate(admin_note="   "))
    assert changes.admin_note_added is False
    assert order.notes == []


def test_any_transition_is_allowed_by_default() -> None:
    order = make_order(status=OrderStatus.delivered)
    changes = apply_order_patch(order, OrderAdminUpdate(status="pending"))
    assert changes.order_status_changed is True
    assert order.status == OrderStatus.pending


def test_strict_mode_rejects_disallowed_transition() -> None:
    order = make_order(status=OrderStatus.delivered)
    with pytest.raises(HTTPException) as exc:
        apply_order_patch(order, OrderAdminUpdate(status="pending"), strict=True)
    assert exc.value.status_code == 400
    assert exc.value.detail == "Invalid status transition"
    assert order.status == OrderStatus.delivered


def test_strict_mode_allows_table_transitions() -> None:
    order = make_order(status=OrderStatus.confirmed)
    changes = apply_order_patch(order, OrderAdminUpdate(status="shipped"), strict=True)
    assert changes.order_status_changed is True


def test_transition_table_covers_every_status() -> None:
    assert set(ORDER_STATUS_TRANSITIONS) == set(OrderStatus)
    assert can_transition(OrderStatus.cancelled, OrderStatus.cancelled)
    assert not can_transition(OrderStatus.refunded, OrderStatus.pending)
