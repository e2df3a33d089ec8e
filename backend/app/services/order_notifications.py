"""Best-effort order emails.

Everything here runs after the response has been produced (FastAPI background
tasks) and works on ``OrderRead`` snapshots, never on live ORM objects. A
failed notification is logged and counted; it never fails the order change
that triggered it and it is not retried.
"""

from __future__ import annotations

import logging
from typing import Any, Awaitable, Callable

from app.core import metrics
from app.core.config import settings
from app.schemas.order import OrderRead
from app.services import email as email_service
from app.services.order_status import OrderChanges

logger = logging.getLogger(__name__)


async def _deliver(kind: str, order: OrderRead, send: Callable[[], Awaitable[bool]]) -> bool:
    try:
        return await send()
    except Exception:
        metrics.record_notification_failure()
        logger.exception("order_notification_failed", extra={"order_number": order.order_number, "notification": kind})
        return False


async def notify_order_created(order: OrderRead) -> None:
    await _deliver(
        "confirmation",
        order,
        lambda: email_service.send_order_confirmation(order.customer_email, order),
    )
    for admin_email in settings.admin_emails:
        await _deliver(
            "admin_new_order",
            order,
            lambda admin_email=admin_email: email_service.send_admin_new_order(admin_email, order),
        )


async def notify_order_updated(order: OrderRead, changes: OrderChanges, *, notify_customer: bool = True) -> None:
    """Send the emails a status/tracking change calls for.

    The customer hears about a status change (when the admin asked for it) and
    about tracking info the first time it appears. Admins get a summary of any
    change at all.
    """
    if changes.order_status_changed and notify_customer:
        await _deliver(
            "status_update",
            order,
            lambda: email_service.send_order_status_update(order.customer_email, order),
        )
    if changes.tracking_info_added:
        await _deliver("shipped", order, lambda: email_service.send_order_shipped(order.customer_email, order))
    if changes.any_change:
        descriptor: dict[str, Any] = changes.as_dict()
        for admin_email in settings.admin_emails:
            await _deliver(
                "admin_order_update",
                order,
                lambda admin_email=admin_email: email_service.send_admin_order_update(admin_email, order, descriptor),
            )


async def notify_order_cancelled(order: OrderRead) -> None:
    await _deliver(
        "cancelled",
        order,
        lambda: email_service.send_order_status_update(order.customer_email, order, "cancelled"),
    )


async def send_order_email(order: OrderRead, template_type: str) -> bool:
    """Manually (re)send one customer email from the admin dashboard."""
    to_email = order.customer_email
    if template_type == "confirmation":
        return await email_service.send_order_confirmation(to_email, order)
    if template_type == "status_update":
        return await email_service.send_order_status_update(to_email, order)
    if template_type == "shipped":
        return await email_service.send_order_shipped(to_email, order)
    if template_type in {"delivered", "cancelled"}:
        return await email_service.send_order_status_update(to_email, order, template_type)
    raise ValueError(f"Unknown email template: {template_type}")
