"""
Core Exceptions
================

Custom exceptions for the routing core.

These exceptions define domain-specific errors that can be caught and handled
appropriately at the application boundaries (the embedding queue workers and
the HTTP controllers).
"""

from typing import Optional


class ApplicationException(Exception):
    """Base exception for all application errors."""

    def __init__(self, message: str, details: Optional[dict] = None):
        self.message = message
        self.details = details or {}
        super().__init__(message)


class RepositoryException(ApplicationException):
    """Base exception for repository/data access errors."""


class ValidationException(ApplicationException):
    """Exception for validation errors."""


class ResourceNotFoundException(ApplicationException):
    """Exception when a requested resource is not found."""

    def __init__(
        self,
        resource_type: str,
        resource_id: Optional[str] = None,
        details: Optional[dict] = None
    ):
        self.resource_type = resource_type
        self.resource_id = resource_id
        message = f"{resource_type}"
        if resource_id:
            message += f" with id '{resource_id}'"
        message += " not found"
        super().__init__(message, details)


class ConfigurationException(ApplicationException):
    """Exception for configuration errors."""


class EmbeddingNotConfiguredException(ConfigurationException):
    """Raised when no embedding provider credentials are available."""

    def __init__(self, provider: str, details: Optional[dict] = None):
        self.provider = provider
        super().__init__(f"Embedding provider '{provider}' is not configured", details)


class ExternalServiceException(ApplicationException):
    """Base exception for external service failures."""

    def __init__(
        self,
        service_name: str,
        message: str,
        details: Optional[dict] = None
    ):
        self.service_name = service_name
        super().__init__(f"{service_name}: {message}", details)


class EmbeddingException(ExternalServiceException):
    """
    Exception for embedding provider failures.

    ``retryable`` separates transient failures (timeouts, rate limits,
    connection errors) from terminal ones (bad input, rejected credentials).
    """

    def __init__(
        self,
        message: str,
        retryable: bool = True,
        details: Optional[dict] = None
    ):
        self.retryable = retryable
        super().__init__("Embedding Service", message, details)
