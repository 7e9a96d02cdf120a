"""
Routing Controllers (API Routes)
================================

FastAPI routes for related-entity search, routing suggestions and the
embedding queue admin endpoints.

Controllers delegate to application services built in the application
lifespan and stored on ``app.state``.
"""

import time

from fastapi import APIRouter, Depends, HTTPException, Request

from ticket_routing.core import EmbeddingNotConfiguredException
from ticket_routing.routing.application import (
    EmbeddingQueue,
    RoutingService,
    SuggestRoutingRequest,
    RoutingSuggestionResponse,
    RelatedEntitiesResponse,
    QueueStatusResponse,
    QueueClearResponse,
    IndexingStatsResponse,
)
from ticket_routing.routing.domain import RoutingSuggestion
from ticket_routing.shared.infrastructure.logging import get_logger

logger = get_logger(__name__)
router = APIRouter(prefix="/routing", tags=["Ticket Routing"])

NOT_CONFIGURED_REASON = "Embedding provider not configured; routing suggestions are unavailable."


# ========== Example payloads for Swagger ==========

SUGGEST_REQUEST_EXAMPLE = {
    "title": "VPN drops every few minutes",
    "description": "Since this morning my VPN connection keeps dropping when I work from home."
}

SUGGEST_RESPONSE_EXAMPLE = {
    "configured": True,
    "department_id": "it",
    "sub_department_id": "it-network",
    "assignee_id": "u-17",
    "confidence": 0.84,
    "reason": "Suggested based on 3 similar tickets and 1 related document",
    "related_tickets": [
        {
            "kind": "ticket",
            "id": "t-101",
            "title": "VPN disconnects",
            "similarity": 0.9,
            "department_id": "it",
            "assigned_to": "u-17"
        }
    ],
    "related_docs": [
        {
            "kind": "document",
            "id": "d-7",
            "title": "Remote access guide",
            "similarity": 0.42,
            "department_id": None,
            "assigned_to": None
        }
    ],
    "processing_time_ms": 120
}


# ========== Dependencies ==========

def get_routing_service(request: Request) -> RoutingService:
    """Get routing service from app state."""
    service = getattr(request.app.state, "routing_service", None)
    if service is None:
        raise HTTPException(
            status_code=503,
            detail="Routing service not initialized"
        )
    return service


def get_embedding_queue(request: Request) -> EmbeddingQueue:
    """Get embedding queue from app state."""
    queue = getattr(request.app.state, "embedding_queue", None)
    if queue is None:
        raise HTTPException(
            status_code=503,
            detail="Embedding queue not initialized"
        )
    return queue


# ========== Route Handlers ==========

@router.get(
    "/tickets/{ticket_id}/related",
    response_model=RelatedEntitiesResponse,
    summary="Find documents and tickets similar to a ticket",
    description="""
    Search stored vectors for documents and tickets similar to an existing
    ticket. The ticket itself is never returned.

    When no embedding provider is configured and the ticket has not been
    embedded yet, returns empty lists with `configured: false`.
    """,
    responses={
        404: {"description": "Ticket not found"}
    }
)
async def get_related(
    request: Request,
    ticket_id: str,
    service: RoutingService = Depends(get_routing_service)
):
    correlation_id = getattr(request.state, "correlation_id", "unknown")

    try:
        related = await service.find_related(ticket_id)
    except EmbeddingNotConfiguredException:
        logger.warning(
            "Related search skipped, embedding provider not configured",
            extra={"correlation_id": correlation_id, "ticket_id": ticket_id}
        )
        return RelatedEntitiesResponse(ticket_id=ticket_id, configured=False)

    return RelatedEntitiesResponse.from_domain(related)


@router.post(
    "/suggest",
    response_model=RoutingSuggestionResponse,
    summary="Suggest department and assignee for a new ticket",
    description="""
    Suggest department, sub-department and assignee for a ticket that is
    being created, from the routing of similar past tickets.

    Confidence is 0 and no department is suggested when nothing similar was
    found. When no embedding provider is configured the same neutral
    suggestion is returned with `configured: false`.
    """,
    responses={
        200: {
            "description": "Suggestion computed",
            "content": {
                "application/json": {
                    "example": SUGGEST_RESPONSE_EXAMPLE
                }
            }
        }
    }
)
async def suggest_routing(
    request: Request,
    payload: SuggestRoutingRequest,
    service: RoutingService = Depends(get_routing_service)
):
    start_time = time.perf_counter()
    correlation_id = getattr(request.state, "correlation_id", "unknown")

    try:
        suggestion = await service.suggest_routing(payload.description, payload.title)
    except EmbeddingNotConfiguredException:
        logger.warning(
            "Routing suggestion skipped, embedding provider not configured",
            extra={"correlation_id": correlation_id}
        )
        response = RoutingSuggestionResponse.from_domain(RoutingSuggestion.neutral(NOT_CONFIGURED_REASON))
        response.configured = False
        return response

    total_time = int((time.perf_counter() - start_time) * 1000)

    logger.info(
        "Routing suggested",
        extra={
            "correlation_id": correlation_id,
            "department_id": suggestion.department_id,
            "confidence": suggestion.confidence,
            "latency_ms": total_time
        }
    )

    return RoutingSuggestionResponse.from_domain(suggestion, processing_time_ms=total_time)


@router.get(
    "/embeddings/queue-status",
    response_model=QueueStatusResponse,
    summary="Embedding queue status"
)
async def get_queue_status(queue: EmbeddingQueue = Depends(get_embedding_queue)):
    status = queue.get_status()
    return QueueStatusResponse(
        queue_length=status.queue_length,
        in_flight=status.in_flight,
        running=status.running,
        retrying=status.retrying,
        workers=status.workers,
        processing=status.processing,
        succeeded=status.succeeded,
        failed=status.failed,
        coalesced=status.coalesced,
    )


@router.post(
    "/embeddings/queue-clear",
    response_model=QueueClearResponse,
    summary="Drop pending embedding jobs",
    description="Drops every pending job. Jobs already running finish normally."
)
async def clear_queue(
    request: Request,
    queue: EmbeddingQueue = Depends(get_embedding_queue)
):
    dropped = queue.clear()
    logger.info(
        "Embedding queue cleared via API",
        extra={
            "correlation_id": getattr(request.state, "correlation_id", "unknown"),
            "dropped": dropped
        }
    )
    return QueueClearResponse(
        success=True,
        dropped=dropped,
        message=f"Dropped {dropped} pending embedding job{'s' if dropped != 1 else ''}"
    )


@router.get(
    "/indexing-stats",
    response_model=IndexingStatsResponse,
    summary="Embedding coverage per entity kind"
)
async def get_indexing_stats(service: RoutingService = Depends(get_routing_service)):
    stats = await service.indexing_stats()
    return IndexingStatsResponse.from_domain(stats)


# Export router
routing_router = router
