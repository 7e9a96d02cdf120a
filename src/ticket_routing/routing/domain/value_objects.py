"""
Routing Value Objects
=====================

Tunable weights for the routing scorer, loaded from YAML.

These constants are product decisions rather than derived invariants, so
they live in configuration and can be changed without a deploy.
"""

from pydantic import BaseModel, ConfigDict, Field, model_validator


class RoutingWeights(BaseModel):
    """
    Routing scorer configuration.

    Confidence with similar tickets:
        min(confidence_cap,
            top_similarity * top_similarity_weight
            + min(ticket_count / corroboration_divisor, corroboration_cap))

    Confidence with documents only: ``document_only_confidence``.
    """

    model_config = ConfigDict(frozen=True)

    confidence_cap: float = Field(
        default=0.95, gt=0.0, le=1.0,
        description="Upper bound of any confidence score"
    )
    top_similarity_weight: float = Field(
        default=0.6, ge=0.0, le=1.0,
        description="Weight of the closest ticket's similarity"
    )
    corroboration_divisor: float = Field(
        default=10.0, gt=0.0,
        description="Ticket count that maps to a full corroboration bonus of 1.0"
    )
    corroboration_cap: float = Field(
        default=0.4, ge=0.0, le=1.0,
        description="Maximum bonus from the number of similar tickets"
    )
    document_only_confidence: float = Field(
        default=0.1, ge=0.0, le=1.0,
        description="Confidence when only documents matched"
    )
    max_related_tickets: int = Field(
        default=5, ge=0, le=50,
        description="Similar tickets echoed in a suggestion"
    )
    max_related_docs: int = Field(
        default=3, ge=0, le=50,
        description="Related documents echoed in a suggestion"
    )

    @model_validator(mode="after")
    def validate_floor_below_cap(self) -> "RoutingWeights":
        if self.document_only_confidence > self.confidence_cap:
            raise ValueError("document_only_confidence must not exceed confidence_cap")
        return self
