"""Tests for the routing API routes."""
import pytest
from fastapi import FastAPI
from httpx import ASGITransport, AsyncClient

from ticket_routing.config import EntityKind
from ticket_routing.core import ApplicationException
from ticket_routing.routing.application import RoutingScorer, RoutingService
from ticket_routing.routing.domain import build_reason, utcnow
from ticket_routing.routing.interfaces import routing_router
from ticket_routing.routing.interfaces.controllers import SUGGEST_RESPONSE_EXAMPLE
from ticket_routing.shared.api.middleware import (
    CorrelationIDMiddleware,
    application_exception_handler,
)


@pytest.fixture
async def app(store, provider, hierarchy, queue):
    now = utcnow()
    store.add_document("d1", "VPN setup guide", "How to connect")
    store.add_ticket("t1", "VPN drops", department_id="it", assigned_to="u1")
    store.add_ticket("t2", "VPN slow", department_id="it", assigned_to="u2")
    store.add_ticket("t3", "New laptop")
    await store.set_vector(EntityKind.DOCUMENT, "d1", [1.0, 0.0, 0.0], now)
    await store.set_vector(EntityKind.TICKET, "t1", [1.0, 0.0, 0.0], now)
    await store.set_vector(EntityKind.TICKET, "t2", [0.9, 0.1, 0.0], now)

    application = FastAPI()
    application.add_middleware(CorrelationIDMiddleware)
    application.add_exception_handler(ApplicationException, application_exception_handler)
    application.include_router(routing_router)
    application.state.embedding_queue = queue
    application.state.routing_service = RoutingService(store, provider, RoutingScorer(hierarchy), queue)
    return application


@pytest.fixture
async def client(app):
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac


class TestRelated:
    async def test_related_for_ticket(self, client):
        response = await client.get("/routing/tickets/t1/related")

        assert response.status_code == 200
        data = response.json()
        assert data["configured"] is True
        assert [d["id"] for d in data["documents"]] == ["d1"]
        assert [t["id"] for t in data["tickets"]] == ["t2"]
        assert data["tickets"][0]["department_id"] == "it"

    async def test_unknown_ticket_is_404(self, client):
        response = await client.get("/routing/tickets/missing/related")

        assert response.status_code == 404
        assert "correlation_id" in response.json()

    async def test_not_configured_returns_empty(self, client, provider):
        provider.configured = False

        response = await client.get("/routing/tickets/t3/related")

        assert response.status_code == 200
        data = response.json()
        assert data["configured"] is False
        assert data["documents"] == []
        assert data["tickets"] == []


class TestSuggest:
    async def test_suggestion(self, client):
        response = await client.post(
            "/routing/suggest",
            json={"title": "VPN", "description": "The VPN disconnects"}
        )

        assert response.status_code == 200
        data = response.json()
        assert data["department_id"] == "it"
        assert data["sub_department_id"] == "it-network"
        assert data["assignee_id"] == "u1"
        assert data["confidence"] == pytest.approx(0.8)
        assert [t["id"] for t in data["related_tickets"]] == ["t1", "t2"]

    async def test_not_configured_is_neutral(self, client, provider):
        provider.configured = False

        response = await client.post("/routing/suggest", json={"description": "VPN down"})

        assert response.status_code == 200
        data = response.json()
        assert data["configured"] is False
        assert data["department_id"] is None
        assert data["confidence"] == 0

    async def test_description_too_long(self, client):
        response = await client.post("/routing/suggest", json={"description": "x" * 20001})

        assert response.status_code == 422

    def test_documented_example_reason_matches_real_output(self):
        assert SUGGEST_RESPONSE_EXAMPLE["reason"] == build_reason(3, 1)


class TestQueueAdmin:
    async def test_queue_status(self, client, queue):
        queue.enqueue(EntityKind.TICKET, "t3")

        response = await client.get("/routing/embeddings/queue-status")

        assert response.status_code == 200
        data = response.json()
        assert data["queue_length"] == 1
        assert data["in_flight"] == 1
        assert data["processing"] is False

    async def test_queue_clear(self, client, queue):
        queue.enqueue(EntityKind.TICKET, "t3")
        queue.enqueue(EntityKind.DOCUMENT, "d1")

        response = await client.post("/routing/embeddings/queue-clear")

        assert response.status_code == 200
        data = response.json()
        assert data["success"] is True
        assert data["dropped"] == 2
        assert queue.get_status().in_flight == 0

    async def test_indexing_stats(self, client):
        response = await client.get("/routing/indexing-stats")

        assert response.status_code == 200
        data = response.json()
        assert data["kinds"]["ticket"] == {"total": 3, "indexed": 2, "pending": 1}
        assert data["kinds"]["document"] == {"total": 1, "indexed": 1, "pending": 0}
        assert data["total_indexed"] == 3
        assert data["total_pending"] == 1


class TestServiceUnavailable:
    async def test_missing_service_is_503(self):
        application = FastAPI()
        application.include_router(routing_router)
        transport = ASGITransport(app=application)

        async with AsyncClient(transport=transport, base_url="http://test") as ac:
            response = await ac.get("/routing/indexing-stats")

        assert response.status_code == 503
