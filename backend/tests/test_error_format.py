from fastapi import APIRouter
from fastapi.testclient import TestClient

from app.main import app

client = TestClient(app)


def test_http_error_shape():
    res = client.get("/api/v1/does-not-exist")
    assert res.status_code == 404
    body = res.json()
    assert set(body.keys()) == {"detail", "code"}
    assert body["detail"] == "Not Found"
    assert body["code"] == "not_found"


def test_validation_error_shape():
    res = client.post("/api/v1/coupons/validate", json={"order_subtotal": "-5"})
    assert res.status_code == 422
    body = res.json()
    assert body["code"] == "validation_error"
    assert isinstance(body["detail"], list)


def test_unexpected_error_is_internal_error():
    router = APIRouter()

    @router.get("/__boom")
    async def boom():
        raise RuntimeError("database on fire")

    app.include_router(router)
    try:
        with TestClient(app, raise_server_exceptions=False) as local_client:
            res = local_client.get("/__boom")
    finally:
        app.router.routes[:] = [r for r in app.router.routes if getattr(r, "path", None) != "/__boom"]
    assert res.status_code == 500
    assert res.json() == {"detail": "database on fire", "code": "internal_error"}
