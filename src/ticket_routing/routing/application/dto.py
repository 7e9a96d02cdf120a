"""
Routing Application DTOs
========================

Data Transfer Objects for the routing API layer.

Pydantic models for request/response validation.
"""

from pydantic import BaseModel, Field, field_validator
from typing import Dict, List, Literal, Optional

from ticket_routing.routing.domain import IndexStats, RelatedEntities, RoutingSuggestion, SimilarityResult


EntityKindStr = Literal["document", "ticket"]


# ========== Request DTOs ==========

class SuggestRoutingRequest(BaseModel):
    """Request model for routing a ticket that is being created."""
    title: Optional[str] = Field(None, max_length=500, description="Ticket title")
    description: str = Field(..., description="Ticket description")

    @field_validator("description")
    @classmethod
    def validate_description_length(cls, v: str) -> str:
        """Ensure description fits the embedding input budget."""
        if len(v) > 20000:
            raise ValueError("Description too long (max 20000 characters)")
        return v


# ========== Response DTOs ==========

class SimilarityResultInfo(BaseModel):
    """One similar document or ticket."""
    kind: EntityKindStr
    id: str
    title: str
    similarity: float = Field(..., ge=0.0, le=1.0)
    department_id: Optional[str] = None
    assigned_to: Optional[str] = None

    @classmethod
    def from_domain(cls, result: SimilarityResult) -> "SimilarityResultInfo":
        return cls(
            kind=result.kind,
            id=result.entity_id,
            title=result.title,
            similarity=result.similarity,
            department_id=result.department_id,
            assigned_to=result.assigned_to,
        )


class RoutingSuggestionResponse(BaseModel):
    """Response model for a routing suggestion."""
    configured: bool = Field(True, description="False when no embedding provider is configured")
    department_id: Optional[str] = None
    sub_department_id: Optional[str] = None
    assignee_id: Optional[str] = None
    confidence: float = Field(0.0, ge=0.0, le=1.0)
    reason: str
    related_tickets: List[SimilarityResultInfo] = Field(default_factory=list)
    related_docs: List[SimilarityResultInfo] = Field(default_factory=list)
    processing_time_ms: int = 0

    @classmethod
    def from_domain(
        cls,
        suggestion: RoutingSuggestion,
        processing_time_ms: int = 0
    ) -> "RoutingSuggestionResponse":
        return cls(
            department_id=suggestion.department_id,
            sub_department_id=suggestion.sub_department_id,
            assignee_id=suggestion.assignee_id,
            confidence=suggestion.confidence,
            reason=suggestion.reason,
            related_tickets=[SimilarityResultInfo.from_domain(t) for t in suggestion.related_tickets],
            related_docs=[SimilarityResultInfo.from_domain(d) for d in suggestion.related_docs],
            processing_time_ms=processing_time_ms,
        )


class RelatedEntitiesResponse(BaseModel):
    """Response model for related documents and tickets of a ticket."""
    ticket_id: str
    configured: bool = True
    documents: List[SimilarityResultInfo] = Field(default_factory=list)
    tickets: List[SimilarityResultInfo] = Field(default_factory=list)

    @classmethod
    def from_domain(cls, related: RelatedEntities) -> "RelatedEntitiesResponse":
        return cls(
            ticket_id=related.ticket_id,
            documents=[SimilarityResultInfo.from_domain(d) for d in related.documents],
            tickets=[SimilarityResultInfo.from_domain(t) for t in related.tickets],
        )


class QueueStatusResponse(BaseModel):
    """Response model for the embedding queue status."""
    queue_length: int
    in_flight: int
    running: int
    retrying: int
    workers: int
    processing: bool
    succeeded: int
    failed: int
    coalesced: int


class QueueClearResponse(BaseModel):
    """Response model for clearing the embedding queue."""
    success: bool
    dropped: int
    message: str


class KindIndexStats(BaseModel):
    """Embedding coverage of one entity kind."""
    total: int
    indexed: int
    pending: int

    @classmethod
    def from_domain(cls, stats: IndexStats) -> "KindIndexStats":
        return cls(total=stats.total, indexed=stats.indexed, pending=stats.pending)


class IndexingStatsResponse(BaseModel):
    """Response model for embedding coverage statistics."""
    kinds: Dict[str, KindIndexStats]
    total_indexed: int
    total_pending: int

    @classmethod
    def from_domain(cls, stats: Dict[str, IndexStats]) -> "IndexingStatsResponse":
        return cls(
            kinds={kind: KindIndexStats.from_domain(s) for kind, s in stats.items()},
            total_indexed=sum(s.indexed for s in stats.values()),
            total_pending=sum(s.pending for s in stats.values()),
        )
