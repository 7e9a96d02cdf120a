"""
Routing Application Services
============================

Application services for embedding maintenance, related-entity search and
routing suggestions.

Orchestrates business logic between domain functions, the vector store
adapter, the department hierarchy and the embedding provider.
"""

import time
from abc import ABC, abstractmethod
from dataclasses import dataclass
from datetime import datetime
from typing import TYPE_CHECKING, Callable, Dict, FrozenSet, Iterable, List, Optional, Sequence

from ticket_routing.config import EntityKind, ENTITY_KINDS
from ticket_routing.core import ResourceNotFoundException
from ticket_routing.infrastructure.embeddings import IEmbeddingProvider
from ticket_routing.routing.domain import (
    CorpusEntry,
    IndexStats,
    RelatedEntities,
    RoutingSuggestion,
    RoutingWeights,
    SimilarityResult,
    NO_EVIDENCE_REASON,
    aggregate_departments,
    build_reason,
    compose_ticket_text,
    compute_confidence,
    search,
    select_assignee,
    select_department,
    top_by_similarity,
    validate_kind,
)
from ticket_routing.shared.infrastructure.logging import get_logger, log_latency

if TYPE_CHECKING:
    from ticket_routing.routing.application.queue import EmbeddingQueue

logger = get_logger(__name__)


# ========== Repository Interfaces ==========

class IVectorStoreAdapter(ABC):
    """
    Interface to the vector and timestamp stored on documents and tickets.

    Owned by the persistence layer. The embedding queue is its only writer.
    """

    @abstractmethod
    async def get_text(self, kind: str, entity_id: str) -> Optional[str]:
        """Current text to embed, or None if the entity no longer exists."""

    @abstractmethod
    async def get_vector(self, kind: str, entity_id: str) -> Optional[List[float]]:
        """Stored vector, or None if never embedded."""

    @abstractmethod
    async def set_vector(
        self,
        kind: str,
        entity_id: str,
        vector: Sequence[float],
        updated_at: datetime
    ) -> None:
        """Write vector and timestamp together."""

    @abstractmethod
    async def get_entity(self, kind: str, entity_id: str) -> Optional[CorpusEntry]:
        """Entity with its search metadata, embedded or not."""

    @abstractmethod
    async def list_embeddable(self, kind: str) -> List[CorpusEntry]:
        """Entities of a kind that currently have a vector."""

    @abstractmethod
    async def list_ids(self, kind: str) -> List[str]:
        """Ids of every entity of a kind."""

    @abstractmethod
    async def count_indexed(self, kind: str) -> IndexStats:
        """Total and embedded entity counts for a kind."""


class IDepartmentHierarchy(ABC):
    """Interface for reading parent/child department edges."""

    @abstractmethod
    async def child_of(self, parent_department_id: str) -> Optional[str]:
        """A child department of the given parent, if any."""


# ========== Application Services ==========

class RoutingScorer:
    """
    Turns similar tickets and documents into one routing suggestion.

    Pure apart from the single hierarchy lookup for the sub-department, so
    repeated calls with the same inputs give the same suggestion.
    """

    def __init__(
        self,
        hierarchy: IDepartmentHierarchy,
        weights_provider: Callable[[], RoutingWeights] = RoutingWeights
    ):
        self._hierarchy = hierarchy
        self._weights_provider = weights_provider

    async def suggest_routing(
        self,
        description: str,
        similar_tickets: Sequence[SimilarityResult],
        similar_docs: Sequence[SimilarityResult]
    ) -> RoutingSuggestion:
        """
        Suggest department, sub-department and assignee for a new ticket.

        Args:
            description: Free-text description of the new ticket
            similar_tickets: Similar tickets, best first
            similar_docs: Similar documents, best first

        Returns:
            RoutingSuggestion (confidence 0 and no identifiers when there is
            no evidence at all)
        """
        weights = self._weights_provider()

        if not similar_tickets and not similar_docs:
            return RoutingSuggestion.neutral(
                NO_EVIDENCE_REASON,
                related_docs=top_by_similarity(similar_docs, weights.max_related_docs)
            )

        winner = select_department(aggregate_departments(similar_tickets))

        department_id = winner.department_id if winner else None
        assignee_id = select_assignee(winner) if winner else None
        sub_department_id = None
        if department_id is not None:
            sub_department_id = await self._hierarchy.child_of(department_id)

        suggestion = RoutingSuggestion(
            department_id=department_id,
            sub_department_id=sub_department_id,
            assignee_id=assignee_id,
            confidence=compute_confidence(similar_tickets, similar_docs, weights),
            reason=build_reason(len(similar_tickets), len(similar_docs)),
            related_tickets=top_by_similarity(similar_tickets, weights.max_related_tickets),
            related_docs=top_by_similarity(similar_docs, weights.max_related_docs),
        )

        logger.debug(
            "Routing suggestion computed",
            extra={
                "description_length": len(description or ""),
                "department_id": department_id,
                "assignee_id": assignee_id,
                "confidence": suggestion.confidence,
            }
        )
        return suggestion


@dataclass(frozen=True)
class ReindexResult:
    """Outcome of scheduling a full reindex of one kind."""
    kind: str
    total: int
    scheduled: int

    @property
    def coalesced(self) -> int:
        return self.total - self.scheduled


class RoutingService:
    """
    Consumer-facing routing operations.

    Searches run against the vectors currently stored; a vector that is being
    recomputed is seen in its previous state until the queue writes it.
    """

    def __init__(
        self,
        store: IVectorStoreAdapter,
        provider: IEmbeddingProvider,
        scorer: RoutingScorer,
        queue: "EmbeddingQueue",
        related_limit: int = 5,
        related_min_similarity: float = 0.25,
        routing_ticket_limit: int = 10,
        routing_min_similarity: float = 0.3
    ):
        self._store = store
        self._provider = provider
        self._scorer = scorer
        self._queue = queue
        self._related_limit = related_limit
        self._related_min_similarity = related_min_similarity
        self._routing_ticket_limit = routing_ticket_limit
        self._routing_min_similarity = routing_min_similarity

    @property
    def provider_configured(self) -> bool:
        return self._provider.is_configured()

    async def _ticket_query_vector(self, ticket: CorpusEntry) -> Sequence[float]:
        if ticket.vector is not None:
            return ticket.vector

        # Embed on demand for this query only. The queue stays the sole
        # writer of stored vectors, so persisting is left to it.
        text = await self._store.get_text(EntityKind.TICKET, ticket.entity_id)
        vector = await self._provider.embed(text or ticket.title)
        self._queue.enqueue(EntityKind.TICKET, ticket.entity_id)
        return vector

    async def find_related(self, ticket_id: str) -> RelatedEntities:
        """
        Find documents and tickets similar to an existing ticket.

        Raises:
            ResourceNotFoundException: If the ticket does not exist
            EmbeddingNotConfiguredException: If the ticket has no vector yet
                and no provider is configured
        """
        ticket = await self._store.get_entity(EntityKind.TICKET, ticket_id)
        if ticket is None:
            raise ResourceNotFoundException("Ticket", ticket_id)

        start_time = time.perf_counter()
        query = await self._ticket_query_vector(ticket)

        document_corpus = await self._store.list_embeddable(EntityKind.DOCUMENT)
        ticket_corpus = [
            entry for entry in await self._store.list_embeddable(EntityKind.TICKET)
            if entry.entity_id != ticket_id
        ]

        documents = search(query, document_corpus, self._related_limit, self._related_min_similarity)
        tickets = search(query, ticket_corpus, self._related_limit, self._related_min_similarity)

        logger.info(
            "Related entities found",
            extra={
                "ticket_id": ticket_id,
                "documents": len(documents),
                "tickets": len(tickets),
                "latency_ms": int((time.perf_counter() - start_time) * 1000),
            }
        )
        return RelatedEntities(ticket_id=ticket_id, documents=documents, tickets=tickets)

    async def suggest_routing(
        self,
        description: str,
        title: Optional[str] = None
    ) -> RoutingSuggestion:
        """
        Suggest routing for a ticket that has not been created yet.

        Raises:
            EmbeddingNotConfiguredException: If no provider is configured
        """
        if not (description or "").strip() and not (title or "").strip():
            return RoutingSuggestion.neutral(NO_EVIDENCE_REASON)

        text = compose_ticket_text(title, description) if title else description
        query = await self._provider.embed(text)

        ticket_corpus = await self._store.list_embeddable(EntityKind.TICKET)
        document_corpus = await self._store.list_embeddable(EntityKind.DOCUMENT)

        with log_latency(logger, "routing_search", tickets=len(ticket_corpus), documents=len(document_corpus)):
            similar_tickets = search(query, ticket_corpus, self._routing_ticket_limit, self._routing_min_similarity)
            similar_docs = search(query, document_corpus, self._related_limit, self._routing_min_similarity)

        return await self._scorer.suggest_routing(description, similar_tickets, similar_docs)

    async def reindex_all(self, kind: str) -> ReindexResult:
        """Schedule an embedding job for every entity of a kind."""
        validate_kind(kind)
        entity_ids = await self._store.list_ids(kind)
        scheduled = sum(1 for entity_id in entity_ids if self._queue.enqueue(kind, entity_id))

        logger.info(
            "Reindex scheduled",
            extra={"kind": kind, "total": len(entity_ids), "scheduled": scheduled}
        )
        return ReindexResult(kind=kind, total=len(entity_ids), scheduled=scheduled)

    async def indexing_stats(self) -> Dict[str, IndexStats]:
        """Embedding coverage per entity kind."""
        return {kind: await self._store.count_indexed(kind) for kind in ENTITY_KINDS}


class EmbeddingTrigger:
    """
    Hook for the platform's create/update handlers.

    Handlers call it synchronously and return without waiting: ``enqueue``
    only records the job.
    """

    TEXT_FIELDS: Dict[str, FrozenSet[str]] = {
        EntityKind.DOCUMENT: frozenset({"title", "content"}),
        EntityKind.TICKET: frozenset({"title", "description"}),
    }

    def __init__(self, queue: "EmbeddingQueue"):
        self._queue = queue

    def entity_created(self, kind: str, entity_id: str) -> bool:
        return self._queue.enqueue(kind, entity_id)

    def entity_updated(self, kind: str, entity_id: str, changed_fields: Iterable[str]) -> bool:
        """Re-embed only when a field that feeds the embedding text changed."""
        validate_kind(kind)
        if self.TEXT_FIELDS[kind].isdisjoint(changed_fields):
            return False
        return self._queue.enqueue(kind, entity_id)
