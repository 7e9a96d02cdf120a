"""
Routing Application Layer
=========================

Application layer for similarity-driven routing.

Contains:
- Services: RoutingScorer, RoutingService, EmbeddingTrigger
- Queue: EmbeddingQueue worker pool
- DTOs: data transfer objects for API serialization
- Interfaces: vector store adapter and department hierarchy
"""

from ticket_routing.routing.application.services import (
    IVectorStoreAdapter,
    IDepartmentHierarchy,
    RoutingScorer,
    RoutingService,
    ReindexResult,
    EmbeddingTrigger,
)
from ticket_routing.routing.application.queue import EmbeddingQueue, QueueStatus
from ticket_routing.routing.application.dto import (
    SuggestRoutingRequest,
    SimilarityResultInfo,
    RoutingSuggestionResponse,
    RelatedEntitiesResponse,
    QueueStatusResponse,
    QueueClearResponse,
    KindIndexStats,
    IndexingStatsResponse,
)

__all__ = [
    # Interfaces
    "IVectorStoreAdapter",
    "IDepartmentHierarchy",
    # Services
    "RoutingScorer",
    "RoutingService",
    "ReindexResult",
    "EmbeddingTrigger",
    "EmbeddingQueue",
    "QueueStatus",
    # DTOs
    "SuggestRoutingRequest",
    "SimilarityResultInfo",
    "RoutingSuggestionResponse",
    "RelatedEntitiesResponse",
    "QueueStatusResponse",
    "QueueClearResponse",
    "KindIndexStats",
    "IndexingStatsResponse",
]
