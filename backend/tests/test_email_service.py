import asyncio
from datetime import datetime, timezone
from decimal import Decimal
from uuid import uuid4

import pytest

from app.core import metrics
from app.core.config import settings
from app.schemas.order import OrderRead
from app.services import email as email_service
from app.services import order_notifications
from app.services.order_status import OrderChanges
from app.models.order import OrderStatus, PaymentStatus


def make_order(**overrides) -> OrderRead:
    now = datetime(2026, 5, 1, tzinfo=timezone.utc)
    values = dict(
        id=uuid4(),
        order_number="RS1140231",
        customer_first_name="Ada",
        customer_last_name="Obi",
        customer_email="ada@example.com",
        items=[
            {"id": uuid4(), "name": "Resin <Tray>", "price": Decimal("7500"), "quantity": 2},
        ],
        subtotal=Decimal("15000"),
        tax=Decimal("0"),
        shipping_cost=Decimal("2500"),
        discount=Decimal("1500"),
        total_amount=Decimal("16000"),
        coupon_code="SAVE10",
        status="shipped",
        payment_status="completed",
        payment_method="bank",
        tracking_info={"carrier": "GIG Logistics", "number": "GIG-42"},
        created_at=now,
        updated_at=now,
    )
    values.update(overrides)
    return OrderRead(**values)


def test_confirmation_renders_totals_with_currency() -> None:
    text_body, html_body = email_service.render_template("order_confirmation.txt.j2", {"order": make_order()})
    assert "RS1140231" in text_body
    assert "Resin <Tray> x 2: ₦15000" in text_body
    assert "Discount (SAVE10): -₦1500" in text_body
    assert "Total: ₦16000" in text_body
    assert settings.store_name in text_body
    assert "Resin &lt;Tray&gt;" in html_body


def test_shipped_email_falls_back_to_defaults() -> None:
    order = make_order(tracking_info={"carrier": "GIG Logistics"})
    sent: dict[str, str] = {}

    async def fake_send(to_email, subject, text_body, html_body=None):
        sent.update(to=to_email, subject=subject, text=text_body)
        return True

    original = email_service.send_email
    email_service.send_email = fake_send  # type: ignore[assignment]
    try:
        assert asyncio.run(email_service.send_order_shipped("ada@example.com", order)) is True
    finally:
        email_service.send_email = original  # type: ignore[assignment]
    assert sent["subject"] == "Your order RS1140231 has shipped"
    assert "Carrier: GIG Logistics" in sent["text"]
    assert "Tracking number: N/A" in sent["text"]


def test_admin_update_lists_change_descriptor() -> None:
    changes = OrderChanges(
        order_status_changed=True,
        payment_status_changed=False,
        tracking_info_added=True,
        tracking_info_updated=False,
        admin_note_added=False,
        previous_order_status=OrderStatus.processing,
        previous_payment_status=PaymentStatus.completed,
    )
    text_body, _ = email_service.render_template(
        "admin_order_update.txt.j2", {"order": make_order(), "changes": changes.as_dict()}
    )
    assert "Status: processing -> shipped (changed)" in text_body
    assert "Tracking info added." in text_body


def test_send_email_is_noop_when_disabled() -> None:
    assert asyncio.run(email_service.send_email("ada@example.com", "Hi", "Body")) is False


def test_smtp_failure_is_counted(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setattr(settings, "smtp_enabled", True)

    def broken_smtp(*args, **kwargs):
        raise OSError("connection refused")

    monkeypatch.setattr(email_service.smtplib, "SMTP", broken_smtp)
    assert asyncio.run(email_service.send_email("ada@example.com", "Hi", "Body")) is False
    assert metrics.snapshot()["notification_failures"] == 1


def test_manual_email_rejects_unknown_template() -> None:
    with pytest.raises(ValueError):
        asyncio.run(order_notifications.send_order_email(make_order(), "birthday"))
