import asyncio
from collections.abc import Generator

import pytest
from sqlalchemy.ext import asyncio as sa_asyncio

import app.models  # noqa: F401  # every table must be on Base.metadata before create_all
from app.core import metrics
from app.core.config import settings


_TRACKED_ENGINES: list[sa_asyncio.AsyncEngine] = []
_ORIGINAL_CREATE_ASYNC_ENGINE = sa_asyncio.create_async_engine


def _tracked_create_async_engine(*args, **kwargs):  # type: ignore[no-untyped-def]
    engine = _ORIGINAL_CREATE_ASYNC_ENGINE(*args, **kwargs)
    _TRACKED_ENGINES.append(engine)
    return engine


sa_asyncio.create_async_engine = _tracked_create_async_engine  # type: ignore[assignment]


@pytest.fixture(scope="module")
def anyio_backend() -> str:
    return "asyncio"


@pytest.fixture(autouse=True)
def _dispose_tracked_async_engines() -> Generator[None, None, None]:
    start_index = len(_TRACKED_ENGINES)
    yield
    pending = _TRACKED_ENGINES[start_index:]
    if not pending:
        return

    async def _dispose_all() -> None:
        for engine in pending:
            try:
                await engine.dispose()
            except Exception:
                continue

    try:
        asyncio.run(_dispose_all())
    except RuntimeError:
        loop = asyncio.new_event_loop()
        try:
            loop.run_until_complete(_dispose_all())
        finally:
            loop.close()

    del _TRACKED_ENGINES[start_index:]


@pytest.fixture(autouse=True)
def _isolated_counters_and_mail(monkeypatch: pytest.MonkeyPatch) -> Generator[None, None, None]:
    # Counters are process-global; outbound mail stays off unless a test opts in.
    metrics.reset()
    monkeypatch.setattr(settings, "smtp_enabled", False)
    monkeypatch.setattr(settings, "admin_notification_emails", "")
    monkeypatch.setattr(settings, "order_strict_transitions", False)
    yield
    metrics.reset()
