import asyncio

import pytest
from fastapi.testclient import TestClient
from sqlalchemy.ext.asyncio import async_sessionmaker, create_async_engine

from app.core import metrics
from app.core.config import settings
from app.db.base import Base
from app.db.session import get_session
from app.main import app


@pytest.fixture
def client() -> TestClient:
    engine = create_async_engine("sqlite+aiosqlite:///:memory:", future=True)
    SessionLocal = async_sessionmaker(engine, expire_on_commit=False)

    async def init_models() -> None:
        async with engine.begin() as conn:
            await conn.run_sync(Base.metadata.create_all)

    asyncio.run(init_models())

    async def override_get_session():
        async with SessionLocal() as session:
            yield session

    app.dependency_overrides[get_session] = override_get_session
    test_client = TestClient(app)
    yield test_client
    test_client.close()
    app.dependency_overrides.clear()


def test_healthcheck(client: TestClient) -> None:
    response = client.get("/api/v1/health")
    assert response.status_code == 200
    assert response.json() == {"status": "ok", "version": settings.app_version}


def test_readiness(client: TestClient) -> None:
    response = client.get("/api/v1/health/ready")
    assert response.status_code == 200
    assert response.json() == {"status": "ready"}


def test_request_id_header(client: TestClient) -> None:
    response = client.get("/api/v1/health")
    assert response.headers.get("X-Request-ID")

    echoed = client.get("/api/v1/health", headers={"X-Request-ID": "edge-1234"})
    assert echoed.headers["X-Request-ID"] == "edge-1234"


def test_metrics_snapshot(client: TestClient) -> None:
    metrics.record_coupon_rejected("expired")
    response = client.get("/api/v1/metrics")
    assert response.status_code == 200
    assert response.json()["coupon_validations_rejected"] == 1
    assert response.json()["coupon_rejected_expired"] == 1
