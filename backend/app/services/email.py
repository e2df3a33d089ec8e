import logging
import smtplib
from decimal import Decimal
from email.message import EmailMessage
from pathlib import Path
from typing import Any

from jinja2 import Environment, FileSystemLoader, select_autoescape

from app.core import metrics
from app.core.config import settings
from app.schemas.order import OrderRead
from app.services.pricing import format_amount

logger = logging.getLogger(__name__)

TEMPLATE_PATH = Path(__file__).parent.parent / "templates" / "emails"
env = Environment(loader=FileSystemLoader(TEMPLATE_PATH), autoescape=select_autoescape(["html", "xml", "html.j2"]))


def _money(value: Decimal | int | float | None) -> str:
    return f"{settings.currency_symbol}{format_amount(value or 0)}"


env.filters["money"] = _money

STATUS_HEADLINES = {
    "pending": "We have received your order",
    "confirmed": "Your order has been confirmed",
    "processing": "Your order is being prepared",
    "shipped": "Your order is on its way",
    "delivered": "Your order has been delivered",
    "cancelled": "Your order has been cancelled",
    "refunded": "Your order has been refunded",
}

SHIPPING_DEFAULTS = {
    "carrier": "Standard Shipping",
    "number": "N/A",
    "url": "#",
    "expected_delivery": "Coming soon",
}


def _build_message(to_email: str, subject: str, text_body: str, html_body: str | None = None) -> EmailMessage:
    msg = EmailMessage()
    msg["Subject"] = subject
    msg["From"] = settings.smtp_from_email or "no-reply@resinbysaidat.local"
    msg["To"] = to_email
    msg.set_content(text_body)
    if html_body:
        msg.add_alternative(html_body, subtype="html")
    return msg


async def send_email(to_email: str, subject: str, text_body: str, html_body: str | None = None) -> bool:
    if not settings.smtp_enabled:
        logger.info("Email delivery disabled; skipped %r to %s", subject, to_email)
        return False
    msg = _build_message(to_email, subject, text_body, html_body)
    try:
        with smtplib.SMTP(settings.smtp_host, settings.smtp_port, timeout=10) as smtp:
            if settings.smtp_use_tls:
                smtp.starttls()
            if settings.smtp_username and settings.smtp_password:
                smtp.login(settings.smtp_username, settings.smtp_password)
            smtp.send_message(msg)
        return True
    except (smtplib.SMTPException, OSError) as exc:
        metrics.record_notification_failure()
        logger.warning("Email send failed: %s", exc)
        return False


def render_template(template_name: str, context: dict[str, Any]) -> tuple[str, str]:
    context = {"store_name": settings.store_name, **context}
    base_text = env.get_template("base.txt.j2")
    base_html = env.get_template("base.html.j2")
    body_text = env.get_template(template_name).render(**context)
    body_html = env.get_template(template_name.replace(".txt.j2", ".html.j2")).render(**context)
    return base_text.render(body=body_text, **context), base_html.render(body=body_html, **context)


async def send_order_confirmation(to_email: str, order: OrderRead) -> bool:
    subject = f"Order confirmation {order.order_number}"
    text_body, html_body = render_template("order_confirmation.txt.j2", {"order": order})
    return await send_email(to_email, subject, text_body, html_body)


async def send_order_status_update(to_email: str, order: OrderRead, status: str | None = None) -> bool:
    status = status or order.status.value
    headline = STATUS_HEADLINES.get(status, "Your order has been updated")
    subject = f"Order {order.order_number}: {headline}"
    text_body, html_body = render_template(
        "order_status_update.txt.j2", {"order": order, "status": status, "headline": headline}
    )
    return await send_email(to_email, subject, text_body, html_body)


async def send_order_shipped(to_email: str, order: OrderRead) -> bool:
    tracking = {**SHIPPING_DEFAULTS, **{k: v for k, v in (order.tracking_info or {}).items() if v}}
    subject = f"Your order {order.order_number} has shipped"
    text_body, html_body = render_template("order_shipped.txt.j2", {"order": order, "tracking": tracking})
    return await send_email(to_email, subject, text_body, html_body)


async def send_admin_new_order(to_email: str, order: OrderRead) -> bool:
    subject = f"New order {order.order_number}"
    text_body, html_body = render_template("admin_new_order.txt.j2", {"order": order})
    return await send_email(to_email, subject, text_body, html_body)


async def send_admin_order_update(to_email: str, order: OrderRead, changes: dict[str, Any]) -> bool:
    subject = f"Order {order.order_number} updated"
    text_body, html_body = render_template("admin_order_update.txt.j2", {"order": order, "changes": changes})
    return await send_email(to_email, subject, text_body, html_body)
