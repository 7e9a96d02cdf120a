"""
Core Module
============

Shared core utilities and abstractions used across the application.

This module contains framework-agnostic code that defines the fundamental
building blocks of the system.
"""

from ticket_routing.core.exceptions import (
    ApplicationException,
    RepositoryException,
    ValidationException,
    ResourceNotFoundException,
    ConfigurationException,
    EmbeddingNotConfiguredException,
    ExternalServiceException,
    EmbeddingException,
)

__all__ = [
    "ApplicationException",
    "RepositoryException",
    "ValidationException",
    "ResourceNotFoundException",
    "ConfigurationException",
    "EmbeddingNotConfiguredException",
    "ExternalServiceException",
    "EmbeddingException",
]
