"""Append-only note ledger attached to orders.

Notes are never edited or removed. Customer-facing notes and internal admin
notes share one table and are told apart by ``OrderNote.type``.
"""

from __future__ import annotations

import logging
from datetime import datetime, timezone

from fastapi import HTTPException, status
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.dependencies import ADMIN_ACTOR
from app.models.order import Order, OrderNote, OrderNoteType

logger = logging.getLogger(__name__)


def _now() -> datetime:
    return datetime.now(timezone.utc)


def _as_utc(value: datetime) -> datetime:
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def build_note(
    order: Order,
    text: str,
    *,
    note_type: OrderNoteType | str = OrderNoteType.internal,
    created_by: str | None = None,
) -> OrderNote:
    """Attach a note to ``order`` without committing; the caller owns the transaction."""
    cleaned = (text or "").strip()
    if not cleaned:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Note text is required")
    kind = OrderNoteType.customer if str(getattr(note_type, "value", note_type)) == "customer" else OrderNoteType.internal
    note = OrderNote(type=kind, text=cleaned, created_by=(created_by or "").strip() or ADMIN_ACTOR, created_at=_now())
    order.notes.append(note)
    return note


async def add_note(
    session: AsyncSession,
    order: Order,
    text: str,
    *,
    note_type: OrderNoteType | str = OrderNoteType.internal,
    created_by: str | None = None,
) -> OrderNote:
    note = build_note(order, text, note_type=note_type, created_by=created_by)
    session.add(order)
    await session.commit()
    await session.refresh(note)
    logger.info("order_note_added", extra={"order_number": order.order_number, "note_type": note.type.value})
    return note


def list_notes(order: Order) -> list[OrderNote]:
    """Both note kinds merged, newest first."""
    return sorted(order.notes, key=lambda note: _as_utc(note.created_at), reverse=True)
