"""
Routing Domain Entities
=======================

Domain entities for the similarity-driven routing module.

Contains pure Python business objects passed between the embedding queue,
the similarity search and the routing scorer.
"""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Dict, Optional, List, Tuple

from ticket_routing.config import EntityKind, ENTITY_KINDS


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def validate_kind(kind: str) -> str:
    """Reject entity kinds the routing core does not embed."""
    if kind not in ENTITY_KINDS:
        raise ValueError(f"kind must be one of {ENTITY_KINDS}, got {kind!r}")
    return kind


def compose_document_text(title: str, content: Optional[str]) -> str:
    """Text embedded for a document: title, blank line, body."""
    return f"{title}\n\n{content or ''}"


def compose_ticket_text(title: str, description: Optional[str]) -> str:
    """Text embedded for a ticket: title, blank line, description."""
    return f"{title}\n\n{description or ''}"


@dataclass(frozen=True)
class EntityKey:
    """Identity of an embeddable entity, and the dedup key of its job."""
    kind: str
    entity_id: str

    def __post_init__(self):
        validate_kind(self.kind)

    def __str__(self) -> str:
        return f"{self.kind}:{self.entity_id}"


@dataclass
class EmbeddingJob:
    """
    One scheduled embedding (re)computation.

    The text is deliberately not captured here: the worker reads it when the
    job runs so edits made while the job waited are embedded too.
    """
    key: EntityKey
    enqueued_at: datetime = field(default_factory=utcnow)
    attempts: int = 0

    @property
    def kind(self) -> str:
        return self.key.kind

    @property
    def entity_id(self) -> str:
        return self.key.entity_id


@dataclass(frozen=True)
class CorpusEntry:
    """
    A candidate for similarity search, as stored by the vector store adapter.

    ``vector`` is None until the entity has been embedded for the first time.
    """
    kind: str
    entity_id: str
    title: str
    vector: Optional[Tuple[float, ...]]
    vector_updated_at: Optional[datetime] = None
    department_id: Optional[str] = None
    assigned_to: Optional[str] = None

    @property
    def is_embedded(self) -> bool:
        return self.vector is not None


@dataclass(frozen=True)
class SimilarityResult:
    """One hit of a similarity search. Ephemeral, never persisted."""
    kind: str
    entity_id: str
    title: str
    similarity: float
    department_id: Optional[str] = None
    assigned_to: Optional[str] = None

    def __post_init__(self):
        if not 0.0 <= self.similarity <= 1.0:
            raise ValueError("Similarity must be between 0 and 1")


@dataclass
class DepartmentEvidence:
    """Similar tickets of one department, aggregated for scoring."""
    department_id: str
    count: int = 0
    total_similarity: float = 0.0
    assignees: Dict[str, float] = field(default_factory=dict)

    def add(self, similarity: float, assignee_id: Optional[str]) -> None:
        self.count += 1
        self.total_similarity += similarity
        if assignee_id:
            self.assignees[assignee_id] = self.assignees.get(assignee_id, 0.0) + similarity

    @property
    def mean_similarity(self) -> float:
        return self.total_similarity / self.count if self.count else 0.0


@dataclass(frozen=True)
class RoutingSuggestion:
    """
    Routing recommendation for a new ticket.

    Advisory only: confidence is a bounded heuristic, not a probability.
    """
    department_id: Optional[str]
    sub_department_id: Optional[str]
    assignee_id: Optional[str]
    confidence: float
    reason: str
    related_tickets: Tuple[SimilarityResult, ...] = ()
    related_docs: Tuple[SimilarityResult, ...] = ()

    def __post_init__(self):
        if not 0.0 <= self.confidence <= 1.0:
            raise ValueError("Confidence must be between 0 and 1")

    @classmethod
    def neutral(
        cls,
        reason: str,
        related_docs: Tuple[SimilarityResult, ...] = ()
    ) -> "RoutingSuggestion":
        """Suggestion carrying no routing decision."""
        return cls(
            department_id=None,
            sub_department_id=None,
            assignee_id=None,
            confidence=0.0,
            reason=reason,
            related_tickets=(),
            related_docs=tuple(related_docs),
        )


@dataclass(frozen=True)
class RelatedEntities:
    """Documents and tickets similar to a given ticket."""
    ticket_id: str
    documents: List[SimilarityResult]
    tickets: List[SimilarityResult]


@dataclass(frozen=True)
class IndexStats:
    """Embedding coverage of one entity kind."""
    kind: str
    total: int
    indexed: int

    @property
    def pending(self) -> int:
        return self.total - self.indexed


__all__ = [
    "EntityKind",
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
]
