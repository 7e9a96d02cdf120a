"""Tests for routing application services."""
from datetime import timedelta

import pytest

from ticket_routing.config import EntityKind, JobState
from ticket_routing.core import EmbeddingNotConfiguredException, ResourceNotFoundException
from ticket_routing.routing.application import EmbeddingTrigger, RoutingScorer, RoutingService
from ticket_routing.routing.domain import NO_EVIDENCE_REASON, utcnow


async def _seed(store):
    now = utcnow()
    store.add_document("d-vpn", "VPN setup guide", "How to connect from home")
    store.add_document("d-printer", "Printer drivers", "Install the office printer")
    store.add_document("d-new", "Unindexed page", "Not embedded yet")
    store.add_ticket("t-1", "VPN drops", department_id="it", assigned_to="u1")
    store.add_ticket("t-2", "VPN slow", department_id="it", assigned_to="u1")
    store.add_ticket("t-3", "Payslip missing", department_id="hr", assigned_to="u9")
    store.add_ticket("t-4", "Laptop broken")

    await store.set_vector(EntityKind.DOCUMENT, "d-vpn", [0.9, 0.1, 0.0], now)
    await store.set_vector(EntityKind.DOCUMENT, "d-printer", [0.0, 1.0, 0.0], now)
    await store.set_vector(EntityKind.TICKET, "t-1", [1.0, 0.0, 0.0], now)
    await store.set_vector(EntityKind.TICKET, "t-2", [0.8, 0.2, 0.0], now - timedelta(hours=1))
    await store.set_vector(EntityKind.TICKET, "t-3", [0.0, 0.0, 1.0], now)


@pytest.fixture
async def service(store, provider, hierarchy, queue):
    await _seed(store)
    return RoutingService(store, provider, RoutingScorer(hierarchy), queue)


class TestFindRelated:
    async def test_returns_similar_documents_and_tickets(self, service, provider):
        related = await service.find_related("t-1")

        assert [d.entity_id for d in related.documents] == ["d-vpn"]
        assert [t.entity_id for t in related.tickets] == ["t-2"]
        assert provider.calls == []

    async def test_excludes_the_ticket_itself(self, service):
        related = await service.find_related("t-2")

        assert "t-2" not in [t.entity_id for t in related.tickets]
        assert [t.entity_id for t in related.tickets] == ["t-1"]

    async def test_unknown_ticket(self, service):
        with pytest.raises(ResourceNotFoundException):
            await service.find_related("missing")

    async def test_unembedded_ticket_is_embedded_on_demand(self, service, provider, queue, store):
        related = await service.find_related("t-4")

        # "Laptop broken" has no keyword, so the fake returns the payroll axis
        assert provider.calls == ["Laptop broken\n\n"]
        assert [t.entity_id for t in related.tickets] == ["t-3"]
        assert queue.state_of(EntityKind.TICKET, "t-4") == JobState.PENDING
        assert await store.get_vector(EntityKind.TICKET, "t-4") is None

    async def test_unembedded_ticket_without_provider(self, service, provider):
        provider.configured = False

        with pytest.raises(EmbeddingNotConfiguredException):
            await service.find_related("t-4")

    async def test_embedded_ticket_needs_no_provider(self, service, provider):
        provider.configured = False

        related = await service.find_related("t-1")

        assert [d.entity_id for d in related.documents] == ["d-vpn"]


class TestSuggestRouting:
    async def test_routes_to_department_of_similar_tickets(self, service, provider):
        suggestion = await service.suggest_routing("My VPN connection keeps failing", title="VPN")

        assert provider.calls == ["VPN\n\nMy VPN connection keeps failing"]
        assert suggestion.department_id == "it"
        assert suggestion.sub_department_id == "it-network"
        assert suggestion.assignee_id == "u1"
        assert [t.entity_id for t in suggestion.related_tickets] == ["t-1", "t-2"]
        assert [d.entity_id for d in suggestion.related_docs] == ["d-vpn"]
        assert 0 < suggestion.confidence <= 0.95
        assert suggestion.reason == "Suggested based on 2 similar tickets and 1 related document"

    async def test_description_without_title(self, service, provider):
        suggestion = await service.suggest_routing("payroll question")

        assert provider.calls == ["payroll question"]
        assert suggestion.department_id == "hr"
        assert suggestion.sub_department_id == "hr-payroll"

    async def test_empty_description_is_neutral(self, service, provider):
        suggestion = await service.suggest_routing("   ")

        assert provider.calls == []
        assert suggestion.department_id is None
        assert suggestion.confidence == 0
        assert suggestion.reason == NO_EVIDENCE_REASON

    async def test_not_configured_is_surfaced(self, service, provider):
        provider.configured = False

        with pytest.raises(EmbeddingNotConfiguredException):
            await service.suggest_routing("VPN down")


class TestReindex:
    async def test_schedules_every_entity_once(self, service, queue):
        queue.enqueue(EntityKind.DOCUMENT, "d-vpn")

        result = await service.reindex_all(EntityKind.DOCUMENT)

        assert result.total == 3
        assert result.scheduled == 2
        assert result.coalesced == 1
        assert queue.get_status().in_flight == 3

    async def test_rejects_unknown_kind(self, service):
        with pytest.raises(ValueError):
            await service.reindex_all("user")

    async def test_reindex_fills_missing_vectors(self, service, queue, store):
        await service.reindex_all(EntityKind.DOCUMENT)
        await queue.start()
        await queue.join()

        stats = await service.indexing_stats()
        assert stats[EntityKind.DOCUMENT].indexed == 3
        assert stats[EntityKind.DOCUMENT].pending == 0


class TestIndexingStats:
    async def test_counts_per_kind(self, service):
        stats = await service.indexing_stats()

        assert stats[EntityKind.DOCUMENT].total == 3
        assert stats[EntityKind.DOCUMENT].indexed == 2
        assert stats[EntityKind.TICKET].total == 4
        assert stats[EntityKind.TICKET].pending == 1


class TestEmbeddingTrigger:
    async def test_created_entity_is_enqueued(self, queue):
        trigger = EmbeddingTrigger(queue)

        assert trigger.entity_created(EntityKind.TICKET, "t-9") is True
        assert queue.state_of(EntityKind.TICKET, "t-9") == JobState.PENDING

    async def test_update_of_text_field_is_enqueued(self, queue):
        trigger = EmbeddingTrigger(queue)

        assert trigger.entity_updated(EntityKind.DOCUMENT, "d-1", ["content", "updated_at"]) is True

    async def test_update_of_other_fields_is_ignored(self, queue):
        trigger = EmbeddingTrigger(queue)

        assert trigger.entity_updated(EntityKind.TICKET, "t-1", ["status", "assigned_to"]) is False
        assert queue.state_of(EntityKind.TICKET, "t-1") is None
