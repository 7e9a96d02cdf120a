"""
Ticket Routing - Main Application
=================================

Similarity-driven ticket routing service for the intranet helpdesk.

Modules:
- Routing: embedding queue, related-entity search and routing suggestions

Clean Architecture Layers:
- Interfaces: FastAPI controllers
- Application: Services, queue and DTOs
- Domain: Entities, value objects, similarity and scoring
- Infrastructure: Database, embedding providers, config watcher
"""

from contextlib import asynccontextmanager
from typing import AsyncGenerator

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware

# Configuration and Core
from ticket_routing.config import settings
from ticket_routing.core import ApplicationException

# Infrastructure
from ticket_routing.infrastructure.database import (
    init_database, close_database, create_tables, get_session_maker
)
from ticket_routing.infrastructure.embeddings import create_embedding_provider

# Routing Module
from ticket_routing.routing.application import (
    EmbeddingQueue, EmbeddingTrigger, RoutingScorer, RoutingService
)
from ticket_routing.routing.infrastructure import (
    RoutingConfigManager,
    SQLAlchemyDepartmentHierarchy,
    SQLAlchemyVectorStoreAdapter,
)
from ticket_routing.routing.interfaces import routing_router

# Logging and metrics
from ticket_routing.shared.infrastructure.logging import setup_logging, get_logger
from ticket_routing.shared.infrastructure.grafana import init_grafana_exporter
from ticket_routing.shared.api.middleware import (
    CorrelationIDMiddleware,
    LoggingMiddleware,
    application_exception_handler,
    global_exception_handler
)

logger = get_logger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator:
    """
    Application lifespan manager.

    STARTUP:
    1. Setup structured logging
    2. Initialize database and create tables
    3. Initialize embedding provider
    4. Load routing weights and watch the file
    5. Initialize Grafana exporter
    6. Start embedding queue workers

    SHUTDOWN:
    1. Stop embedding queue (running jobs finish)
    2. Stop config watcher
    3. Close provider and database connections
    """
    # === STARTUP ===
    setup_logging(settings.log_level, settings.environment)
    logger.info("Starting Ticket Routing Service", extra={
        "version": settings.app_version,
        "environment": settings.environment
    })

    logger.info("Initializing database")
    init_database()

    # Production schema is owned by the platform; this only helps local runs
    logger.info("Creating database tables")
    try:
        await create_tables()
    except Exception as e:
        logger.warning(f"Database not available - running in degraded mode: {e}")

    logger.info("Initializing embedding provider", extra={"provider": settings.embedding_provider})
    provider = create_embedding_provider()
    if not provider.is_configured():
        logger.warning(
            "Embedding provider not configured - routing suggestions will be neutral",
            extra={"provider": provider.name}
        )

    logger.info("Loading routing configuration")
    config_manager = RoutingConfigManager()
    config_manager.load(settings.routing_config_path)
    config_manager.start_watching()

    grafana_exporter = None
    if settings.grafana_host and settings.grafana_api_key and settings.grafana_instance_id:
        grafana_exporter = init_grafana_exporter(
            host=settings.grafana_host,
            api_key=settings.grafana_api_key,
            instance_id=settings.grafana_instance_id
        )
        logger.info("Grafana OTLP exporter initialized successfully")
    else:
        logger.info("Grafana OTLP exporter not configured - metrics will not be exported")

    session_maker = get_session_maker()
    store = SQLAlchemyVectorStoreAdapter(session_maker)
    hierarchy = SQLAlchemyDepartmentHierarchy(session_maker)

    queue = EmbeddingQueue(
        store,
        provider,
        workers=settings.embedding_workers,
        max_retries=settings.embedding_max_retries,
        retry_backoff_seconds=settings.embedding_retry_backoff_seconds,
        metrics_exporter=grafana_exporter
    )
    await queue.start()

    scorer = RoutingScorer(hierarchy, config_manager.get_weights)
    routing_service = RoutingService(
        store,
        provider,
        scorer,
        queue,
        related_limit=settings.related_limit,
        related_min_similarity=settings.related_min_similarity,
        routing_ticket_limit=settings.routing_ticket_limit,
        routing_min_similarity=settings.routing_min_similarity
    )

    # Store services in app state for dependency injection
    app.state.settings = settings
    app.state.embedding_provider = provider
    app.state.routing_config = config_manager
    app.state.embedding_queue = queue
    app.state.routing_service = routing_service
    app.state.embedding_trigger = EmbeddingTrigger(queue)

    logger.info("Ticket Routing Service started successfully")

    yield  # Application runs here

    # === SHUTDOWN ===
    logger.info("Shutting down Ticket Routing Service")

    await queue.stop()
    config_manager.stop_watching()
    await provider.close()
    await close_database()

    logger.info("Ticket Routing Service shutdown complete")


app = FastAPI(
    title="Ticket Routing API",
    description="""
    ## Similarity-driven ticket routing

    Keeps document and ticket embeddings up to date and uses them to find
    related content and to suggest who should handle a new ticket.

    **Endpoints:**
    - `GET /routing/tickets/{id}/related` - Similar documents and tickets
    - `POST /routing/suggest` - Department, sub-department and assignee suggestion
    - `GET /routing/embeddings/queue-status` - Embedding queue status
    - `POST /routing/embeddings/queue-clear` - Drop pending embedding jobs
    - `GET /routing/indexing-stats` - Embedding coverage per entity kind
    """,
    version=settings.app_version,
    docs_url="/docs",
    redoc_url="/redoc",
    lifespan=lifespan
)

# === CORS Middleware ===
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.add_middleware(LoggingMiddleware)
app.add_middleware(CorrelationIDMiddleware)
app.add_exception_handler(ApplicationException, application_exception_handler)
app.add_exception_handler(Exception, global_exception_handler)

# === Include Module Routers ===
app.include_router(routing_router)


# === Health Check Endpoint ===

@app.get("/health", tags=["Health"])
async def health_check(request: Request):
    """
    Health check endpoint for load balancers and orchestrators.

    Reports embedding provider, queue and routing config state.
    """
    state = request.app.state
    provider = getattr(state, "embedding_provider", None)
    queue = getattr(state, "embedding_queue", None)
    config_manager = getattr(state, "routing_config", None)

    checks = {
        "embedding_provider": "configured" if provider and provider.is_configured() else "not_configured",
        "embedding_queue": "running" if queue and queue.is_running else "stopped",
        "routing_config": "loaded" if config_manager is not None else "not_loaded",
    }

    return {
        "status": "healthy",
        "version": settings.app_version,
        "environment": settings.environment,
        "checks": checks
    }


@app.get("/", tags=["Root"])
async def root():
    """Root endpoint with API information."""
    return {
        "service": "Ticket Routing Service",
        "version": settings.app_version,
        "architecture": "Clean Architecture / Modular Monolith",
        "docs": "/docs",
        "health": "/health",
        "modules": {
            "routing": {
                "prefix": "/routing",
                "endpoints": [
                    "GET /routing/tickets/{id}/related - Related documents and tickets",
                    "POST /routing/suggest - Suggest routing for a new ticket",
                    "GET /routing/embeddings/queue-status - Queue status",
                    "POST /routing/embeddings/queue-clear - Clear pending jobs",
                    "GET /routing/indexing-stats - Indexing statistics"
                ]
            }
        }
    }


# === Development Entry Point ===

if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "ticket_routing.main:app",
        host=settings.host,
        port=settings.port,
        reload=settings.environment == "development",
        log_level="info"
    )
