import asyncio
from datetime import datetime, timedelta, timezone
from decimal import Decimal

from sqlalchemy import select
from sqlalchemy.ext.asyncio import async_sessionmaker, create_async_engine

from app import cli
from app.db.base import Base
from app.models.coupon import Coupon, DiscountType


def make_session_factory() -> async_sessionmaker:
    engine = create_async_engine("sqlite+aiosqlite:///:memory:", future=True)
    SessionLocal = async_sessionmaker(engine, expire_on_commit=False)

    async def init_models() -> None:
        async with engine.begin() as conn:
            await conn.run_sync(Base.metadata.create_all)

    asyncio.run(init_models())
    return SessionLocal


def test_seed_coupons_is_idempotent() -> None:
    SessionLocal = make_session_factory()
    assert asyncio.run(cli.seed_coupons(SessionLocal)) == ["SAVE10", "FLAT50"]
    assert asyncio.run(cli.seed_coupons(SessionLocal)) == []

    async def codes():
        async with SessionLocal() as session:
            return sorted((await session.execute(select(Coupon.code))).scalars().all())

    assert asyncio.run(codes()) == ["FLAT50", "SAVE10"]


def test_expire_coupons_deactivates_only_past_end_dates() -> None:
    SessionLocal = make_session_factory()
    now = datetime.now(timezone.utc)

    async def seed_and_expire():
        async with SessionLocal() as session:
            for code, end in (("OLD", now - timedelta(days=1)), ("CURRENT", now + timedelta(days=1))):
                session.add(
                    Coupon(
                        code=code,
                        discount_type=DiscountType.fixed,
                        discount_value=Decimal("100"),
                        start_date=now - timedelta(days=10),
                        end_date=end,
                        is_active=True,
                    )
                )
            await session.commit()
        count = await cli.expire_coupons(SessionLocal)
        async with SessionLocal() as session:
            rows = (await session.execute(select(Coupon.code, Coupon.is_active).order_by(Coupon.code))).all()
        return count, [tuple(r) for r in rows]

    count, rows = asyncio.run(seed_and_expire())
    assert count == 1
    assert rows == [("CURRENT", True), ("OLD", False)]


def test_unknown_command_prints_help(capsys) -> None:
    cli.main([])
    assert "seed-coupons" in capsys.readouterr().out
