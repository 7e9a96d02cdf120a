"""
Shared API Middleware
======================

Common middleware for the FastAPI application.
"""

import time
import uuid
from typing import Callable
from datetime import datetime, timezone

from fastapi import Request, Response
from starlette.middleware.base import BaseHTTPMiddleware
from fastapi.responses import JSONResponse

from ticket_routing.core import (
    ApplicationException,
    ConfigurationException,
    ExternalServiceException,
    ResourceNotFoundException,
    ValidationException,
)
from ticket_routing.shared.infrastructure.logging import get_logger

logger = get_logger(__name__)


class CorrelationIDMiddleware(BaseHTTPMiddleware):
    """
    Adds correlation ID to requests for tracing.

    The ID is taken from the ``X-Correlation-ID`` header when the caller
    provides one, so logs from the intranet platform and this service line up.
    """

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        correlation_id = request.headers.get("X-Correlation-ID", str(uuid.uuid4()))
        request.state.correlation_id = correlation_id

        response = await call_next(request)
        response.headers["X-Correlation-ID"] = correlation_id
        return response


class LoggingMiddleware(BaseHTTPMiddleware):
    """Logs all requests and responses."""

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        correlation_id = getattr(request.state, "correlation_id", "unknown")
        start_time = time.perf_counter()

        try:
            response = await call_next(request)
        except Exception as e:
            logger.error(
                "Request failed",
                extra={
                    "correlation_id": correlation_id,
                    "method": request.method,
                    "path": request.url.path,
                    "error": str(e),
                    "response_time_ms": int((time.perf_counter() - start_time) * 1000)
                }
            )
            raise

        logger.info(
            "Request completed",
            extra={
                "correlation_id": correlation_id,
                "method": request.method,
                "path": request.url.path,
                "status_code": response.status_code,
                "response_time_ms": int((time.perf_counter() - start_time) * 1000)
            }
        )
        return response


def _status_for(exc: ApplicationException) -> int:
    if isinstance(exc, ResourceNotFoundException):
        return 404
    if isinstance(exc, ValidationException):
        return 422
    if isinstance(exc, ConfigurationException):
        return 503
    if isinstance(exc, ExternalServiceException):
        return 502
    return 500


def _error_body(request: Request, detail: str, debug_info: str | None = None) -> dict:
    return {
        "detail": detail,
        "correlation_id": getattr(request.state, "correlation_id", "unknown"),
        "timestamp": datetime.now(timezone.utc).isoformat(),
        "debug_info": debug_info
    }


async def application_exception_handler(request: Request, exc: ApplicationException) -> JSONResponse:
    """
    Handler for known application errors that escaped a controller.

    These carry a safe message, so it is returned to the caller as-is.
    """
    logger.warning(
        "Application exception",
        extra={
            "correlation_id": getattr(request.state, "correlation_id", "unknown"),
            "path": request.url.path,
            "error_type": type(exc).__name__,
            "error_message": exc.message
        }
    )
    return JSONResponse(
        status_code=_status_for(exc),
        content=_error_body(request, exc.message)
    )


async def global_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """
    Global exception handler for unhandled exceptions.

    Returns consistent error responses for all exceptions.
    """
    logger.error(
        "Unhandled exception",
        extra={
            "correlation_id": getattr(request.state, "correlation_id", "unknown"),
            "path": request.url.path,
            "method": request.method,
            "error_type": type(exc).__name__,
            "error_message": str(exc)
        }
    )

    # Don't expose internal details in production
    settings = getattr(request.app.state, "settings", None)
    is_dev = getattr(settings, "environment", None) == "development"

    return JSONResponse(
        status_code=500,
        content=_error_body(request, "Internal server error", str(exc) if is_dev else None)
    )
