import pytest
from httpx import ASGITransport, AsyncClient

from server.core.config import get_settings
from server.main import app


@pytest.mark.asyncio
async def test_health_endpoint_returns_ok() -> None:
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        response = await ac.get("/health")

    assert response.status_code == 200
    data = response.json()
    assert {"status", "version", "time", "model", "provider_configured"} <= data.keys()
    assert data["status"] == "ok"
    assert data["model"] == get_settings().chat_model


@pytest.mark.asyncio
async def test_checkout_session_without_url_returns_empty(monkeypatch) -> None:
    monkeypatch.setattr(get_settings(), "checkout_url", None)
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        response = await ac.post("/api/checkout-session")
    assert response.status_code == 200
    assert response.json() == {}


@pytest.mark.asyncio
async def test_checkout_session_returns_configured_url(monkeypatch) -> None:
    monkeypatch.setattr(get_settings(), "checkout_url", "https://checkout.example/session/1")
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        response = await ac.post("/api/checkout-session")
    assert response.status_code == 200
    assert response.json() == {"url": "https://checkout.example/session/1"}
