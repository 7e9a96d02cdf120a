"""
Routing Domain Layer
====================

Domain layer for similarity-driven ticket routing.

Contains:
- Entities: EntityKey, EmbeddingJob, CorpusEntry, SimilarityResult,
  RoutingSuggestion and friends
- Value Objects: RoutingWeights
- Similarity: cosine similarity and top-K search
- Scoring: department/assignee selection and confidence

This layer is framework-agnostic and contains pure business logic.
"""

from ticket_routing.routing.domain.entities import (
    EntityKey,
    EmbeddingJob,
    CorpusEntry,
    SimilarityResult,
    DepartmentEvidence,
    RoutingSuggestion,
    RelatedEntities,
    IndexStats,
    compose_document_text,
    compose_ticket_text,
    validate_kind,
    utcnow,
)
from ticket_routing.routing.domain.value_objects import RoutingWeights
from ticket_routing.routing.domain.similarity import cosine_similarity, search
from ticket_routing.routing.domain.scoring import (
    NO_EVIDENCE_REASON,
    aggregate_departments,
    department_score,
    select_department,
    select_assignee,
    compute_confidence,
    build_reason,
    top_by_similarity,
)

__all__ = [
    "EntityKey",
    "EmbeddingJob",
    "CorpusEntry",
    "SimilarityResult",
    "DepartmentEvidence",
    "RoutingSuggestion",
    "RelatedEntities",
    "IndexStats",
    "compose_document_text",
    "compose_ticket_text",
    "validate_kind",
    "utcnow",
    "RoutingWeights",
    "cosine_similarity",
    "search",
    "NO_EVIDENCE_REASON",
    "aggregate_departments",
    "department_score",
    "select_department",
    "select_assignee",
    "compute_confidence",
    "build_reason",
    "top_by_similarity",
]
