"""
Configuration Module
====================

Application settings and configuration management using Pydantic.
"""

from pydantic_settings import BaseSettings, SettingsConfigDict
from pydantic import Field, field_validator
from functools import lru_cache
from pathlib import Path
from typing import List, Optional


class Settings(BaseSettings):
    """
    Application settings loaded from environment variables.

    Uses Pydantic for validation and type safety.
    """

    # ========== Application ==========
    app_name: str = Field(default="ticket-routing", description="Application name")
    app_version: str = Field(default="1.0.0", description="Application version")
    environment: str = Field(default="development", description="Environment name")
    debug: bool = Field(default=False, description="Enable debug mode")
    log_level: str = Field(default="INFO", description="Root log level")

    # ========== Server ==========
    host: str = Field(default="0.0.0.0", description="Server host")
    port: int = Field(default=8000, description="Server port", ge=1, le=65535)

    # ========== Database ==========
    database_url: str = Field(
        default="postgresql+asyncpg://localhost:5432/intranet",
        description="PostgreSQL connection URL (async)"
    )
    db_pool_size: int = Field(default=5, description="Database connection pool size", ge=1)
    db_max_overflow: int = Field(default=10, description="Max overflow connections", ge=0)

    # ========== Embedding Provider ==========
    embedding_provider: str = Field(
        default="openai",
        description="Embedding provider backend (openai or zai)"
    )
    openai_api_key: Optional[str] = Field(
        default=None,
        description="OpenAI API key"
    )
    zai_api_key: Optional[str] = Field(
        default=None,
        description="Z.AI API key"
    )
    embedding_model: str = Field(
        default="text-embedding-3-small",
        description="Embedding model name"
    )
    embedding_dimension: int = Field(
        default=1536,
        description="Embedding vector dimension",
        ge=1
    )
    embedding_max_input_chars: int = Field(
        default=8000,
        description="Text is truncated to this many characters before embedding",
        ge=100
    )

    # ========== Embedding Queue ==========
    embedding_workers: int = Field(
        default=3,
        description="Number of concurrent embedding workers",
        ge=1,
        le=16
    )
    embedding_max_retries: int = Field(
        default=3,
        description="Retries for a transiently failing embedding job",
        ge=0,
        le=10
    )
    embedding_retry_backoff_seconds: float = Field(
        default=1.0,
        description="Base backoff between retries (doubles per attempt)",
        ge=0.0,
        le=60
    )

    # ========== Similarity Search ==========
    related_limit: int = Field(
        default=5,
        description="Number of related documents/tickets returned for a ticket",
        ge=1,
        le=50
    )
    related_min_similarity: float = Field(
        default=0.25,
        description="Relevance floor for related documents/tickets",
        ge=0.0,
        le=1.0
    )
    routing_ticket_limit: int = Field(
        default=10,
        description="Number of similar tickets fed to the routing scorer",
        ge=1,
        le=100
    )
    routing_min_similarity: float = Field(
        default=0.3,
        description="Relevance floor for routing evidence",
        ge=0.0,
        le=1.0
    )

    # ========== Routing Weights ==========
    routing_config_path: Path = Field(
        default=Path("routing_config.yaml"),
        description="Path to routing weights YAML file"
    )

    # ========== CORS ==========
    cors_origins: List[str] = Field(
        default=["http://localhost:3000", "http://localhost:5000"],
        description="Allowed CORS origins"
    )

    # ========== Grafana OTLP Metrics ==========
    grafana_host: Optional[str] = Field(
        default=None,
        description="Grafana OTLP gateway URL (e.g., https://otlp-gateway-prod-eu-west-0.grafana.net)"
    )
    grafana_api_key: Optional[str] = Field(
        default=None,
        description="Grafana API key for OTLP authentication"
    )
    grafana_instance_id: Optional[str] = Field(
        default=None,
        description="Grafana instance ID for OTLP authentication"
    )

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore"
    )

    @field_validator("environment")
    @classmethod
    def validate_environment(cls, v: str) -> str:
        """Ensure environment is one of allowed values."""
        allowed = {"development", "staging", "production"}
        if v not in allowed:
            raise ValueError(f"environment must be one of {allowed}")
        return v

    @field_validator("embedding_provider")
    @classmethod
    def validate_embedding_provider(cls, v: str) -> str:
        """Ensure the provider backend is supported."""
        v = v.lower()
        if v not in EMBEDDING_PROVIDERS:
            raise ValueError(f"embedding_provider must be one of {EMBEDDING_PROVIDERS}")
        return v


@lru_cache()
def get_settings() -> Settings:
    """Returns cached Settings instance."""
    return Settings()


# ========== Constants ==========

class EntityKind(str):
    """Kinds of entity that carry an embedding."""
    DOCUMENT = "document"
    TICKET = "ticket"


class EmbeddingProviderName(str):
    """Supported embedding provider backends."""
    OPENAI = "openai"
    ZAI = "zai"


class JobState(str):
    """Embedding job lifecycle states."""
    PENDING = "pending"
    RUNNING = "running"
    DONE = "done"
    FAILED = "failed"


# ========== Lists for validation ==========

ENTITY_KINDS = [EntityKind.DOCUMENT, EntityKind.TICKET]
EMBEDDING_PROVIDERS = [EmbeddingProviderName.OPENAI, EmbeddingProviderName.ZAI]


# Global settings instance
settings = get_settings()
