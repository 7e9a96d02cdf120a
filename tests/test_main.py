"""Smoke tests for the application wiring (without the lifespan)."""
import pytest
from httpx import ASGITransport, AsyncClient

from ticket_routing.main import app


@pytest.fixture
async def client():
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac


async def test_root_lists_routing_endpoints(client):
    response = await client.get("/")

    assert response.status_code == 200
    assert response.json()["modules"]["routing"]["prefix"] == "/routing"


async def test_health_before_startup(client):
    response = await client.get("/health", headers={"X-Correlation-ID": "abc-123"})

    assert response.status_code == 200
    assert response.headers["X-Correlation-ID"] == "abc-123"
    checks = response.json()["checks"]
    assert checks["embedding_queue"] == "stopped"
    assert checks["routing_config"] == "not_loaded"
