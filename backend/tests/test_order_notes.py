import asyncio
from datetime import datetime, timedelta, timezone
from decimal import Decimal

import pytest
from fastapi import HTTPException
from sqlalchemy.ext.asyncio import async_sessionmaker, create_async_engine

from app.db.base import Base
from app.models.order import Order, OrderNote, OrderNoteType
from app.services import order_notes


def make_session_factory() -> async_sessionmaker:
    engine = create_async_engine("sqlite+aiosqlite:///:memory:", future=True)
    SessionLocal = async_sessionmaker(engine, expire_on_commit=False)

    async def init_models() -> None:
        async with engine.begin() as conn:
            await conn.run_sync(Base.metadata.create_all)

    asyncio.run(init_models())
    return SessionLocal


def make_order() -> Order:
    return Order(
        order_number="RS1140231",
        customer_first_name="Ada",
        customer_last_name="Obi",
        customer_email="ada@example.com",
        subtotal=Decimal("5000"),
        total_amount=Decimal("5000"),
        notes=[],
    )


def test_note_type_routes_to_customer_or_internal() -> None:
    order = make_order()
    order_notes.build_note(order, "Your order is being packed", note_type="customer")
    order_notes.build_note(order, "Check stock", note_type="something-else")
    assert [n.text for n in order.customer_notes] == ["Your order is being packed"]
    assert [n.text for n in order.admin_notes] == ["Check stock"]
    assert all(n.created_by == "Admin" for n in order.notes)


def test_blank_note_is_rejected() -> None:
    with pytest.raises(HTTPException) as exc:
        order_notes.build_note(make_order(), "   ")
    assert exc.value.status_code == 400


def test_listing_merges_both_kinds_newest_first() -> None:
    base = datetime(2026, 1, 1, tzinfo=timezone.utc)
    order = make_order()
    order.notes = [
        OrderNote(type=OrderNoteType.internal, text="first", created_by="Admin", created_at=base),
        OrderNote(type=OrderNoteType.customer, text="second", created_by="Admin", created_at=base + timedelta(hours=1)),
        OrderNote(type=OrderNoteType.internal, text="third", created_by="Admin", created_at=base + timedelta(hours=2)),
    ]
    listed = order_notes.list_notes(order)
    assert [n.text for n in listed] == ["third", "second", "first"]
    assert [n.type for n in listed] == [OrderNoteType.internal, OrderNoteType.customer, OrderNoteType.internal]


def test_add_note_persists_and_appends_only() -> None:
    SessionLocal = make_session_factory()

    async def flow():
        async with SessionLocal() as session:
            order = make_order()
            session.add(order)
            await session.commit()
            await order_notes.add_note(session, order, "Packed", created_by="Tola")
            await order_notes.add_note(session, order, "Shipped today", note_type=OrderNoteType.customer)
            order_id = order.id

        async with SessionLocal() as session:
            stored = await session.get(Order, order_id)
            return [(n.type, n.text, n.created_by) for n in order_notes.list_notes(stored)]

    notes = asyncio.run(flow())
    assert notes == [
        (OrderNoteType.customer, "Shipped today", "Admin"),
        (OrderNoteType.internal, "Packed", "Tola"),
    ]
