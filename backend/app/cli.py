import argparse
import asyncio
from datetime import datetime, timedelta, timezone
from decimal import Decimal
from typing import Any

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from app.db.session import SessionLocal
from app.models.coupon import DiscountType
from app.schemas.coupon import CouponCreate
from app.services import coupons as coupons_service

DEMO_COUPONS: list[dict[str, Any]] = [
    {
        "code": "SAVE10",
        "description": "10% off any order",
        "discount_type": DiscountType.percentage,
        "discount_value": Decimal("10"),
        "max_discount_amount": Decimal("5000"),
    },
    {
        "code": "FLAT50",
        "description": "50 off orders of 500 or more",
        "discount_type": DiscountType.fixed,
        "discount_value": Decimal("50"),
        "min_order_amount": Decimal("500"),
    },
]


async def seed_coupons(session_factory: async_sessionmaker[AsyncSession] = SessionLocal) -> list[str]:
    """Create the demo coupons that are missing; existing (even deleted) codes are left alone."""
    created: list[str] = []
    now = datetime.now(timezone.utc)
    async with session_factory() as session:
        for values in DEMO_COUPONS:
            if await coupons_service.get_coupon_by_code(session, values["code"], include_deleted=True):
                continue
            payload = CouponCreate(start_date=now, end_date=now + timedelta(days=365), **values)
            coupon = await coupons_service.create_coupon(session, payload)
            created.append(coupon.code)
    return created


async def expire_coupons(session_factory: async_sessionmaker[AsyncSession] = SessionLocal) -> int:
    async with session_factory() as session:
        return await coupons_service.deactivate_expired_coupons(session)


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Store maintenance utilities")
    subparsers = parser.add_subparsers(dest="command")
    subparsers.add_parser("seed-coupons", help="Create the demo coupons if they are missing")
    subparsers.add_parser("expire-coupons", help="Deactivate coupons whose end date has passed")
    return parser


def _run_cli_command(args: argparse.Namespace) -> bool:
    if args.command == "seed-coupons":
        created = asyncio.run(seed_coupons())
        print(f"Created coupons: {', '.join(created)}" if created else "All demo coupons already exist")
        return True

    if args.command == "expire-coupons":
        count = asyncio.run(expire_coupons())
        print(f"Deactivated {count} expired coupon(s)")
        return True

    return False


def main(argv: list[str] | None = None) -> None:
    parser = _build_parser()
    args = parser.parse_args(argv)
    if not _run_cli_command(args):
        parser.print_help()


if __name__ == "__main__":
    main()
