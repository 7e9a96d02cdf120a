"""Tests for settings, routing config loading and text preparation."""
import json
import logging
from types import SimpleNamespace

import pytest
from pydantic import ValidationError

from ticket_routing.config import Settings
from ticket_routing.core import ConfigurationException, EmbeddingException, EmbeddingNotConfiguredException
from ticket_routing.infrastructure import embeddings
from ticket_routing.infrastructure.embeddings import (
    OpenAIEmbeddingProvider,
    ZAIEmbeddingProvider,
    check_dimension,
    create_embedding_provider,
    prepare_text,
)
from ticket_routing.routing.infrastructure import RoutingConfigManager
from ticket_routing.shared.infrastructure.logging import CustomJsonFormatter


class _StubOpenAIClient:
    """Stands in for ``AsyncOpenAI`` and returns one fixed embedding."""

    def __init__(self, vector):
        self.embeddings = SimpleNamespace(create=self._create)
        self._vector = vector

    async def _create(self, **kwargs):
        return SimpleNamespace(data=[SimpleNamespace(embedding=self._vector)])


class TestSettings:
    def test_search_defaults(self):
        settings = Settings()

        assert settings.related_limit == 5
        assert settings.related_min_similarity == 0.25
        assert settings.routing_min_similarity == 0.3
        assert settings.embedding_max_input_chars == 8000

    def test_invalid_environment(self):
        with pytest.raises(ValidationError):
            Settings(environment="qa")

    def test_invalid_provider(self):
        with pytest.raises(ValidationError):
            Settings(embedding_provider="cohere")

    def test_provider_name_is_case_insensitive(self):
        assert Settings(embedding_provider="ZAI").embedding_provider == "zai"


class TestRoutingConfigManager:
    def test_missing_file_uses_defaults(self, tmp_path):
        manager = RoutingConfigManager()

        weights = manager.load(tmp_path / "absent.yaml")

        assert weights.confidence_cap == 0.95
        assert manager.get_weights() is weights

    def test_loads_yaml(self, tmp_path):
        path = tmp_path / "routing_config.yaml"
        path.write_text("confidence_cap: 0.9\nmax_related_docs: 2\n")
        manager = RoutingConfigManager()

        weights = manager.load(path)

        assert weights.confidence_cap == 0.9
        assert weights.max_related_docs == 2
        assert weights.top_similarity_weight == 0.6

    def test_invalid_file_rejected_at_load(self, tmp_path):
        path = tmp_path / "routing_config.yaml"
        path.write_text("confidence_cap: 7\n")

        with pytest.raises(ConfigurationException):
            RoutingConfigManager().load(path)

    def test_failed_reload_keeps_previous_weights(self, tmp_path):
        path = tmp_path / "routing_config.yaml"
        path.write_text("confidence_cap: 0.9\n")
        manager = RoutingConfigManager()
        manager.load(path)

        path.write_text("confidence_cap: [not, a, number\n")

        assert manager.reload() is False
        assert manager.weights.confidence_cap == 0.9

    def test_reload_applies_new_weights(self, tmp_path):
        path = tmp_path / "routing_config.yaml"
        path.write_text("document_only_confidence: 0.1\n")
        manager = RoutingConfigManager()
        manager.load(path)

        path.write_text("document_only_confidence: 0.2\n")

        assert manager.reload() is True
        assert manager.weights.document_only_confidence == 0.2

    def test_weights_before_load(self):
        with pytest.raises(RuntimeError):
            RoutingConfigManager().weights

    def test_watching_missing_file_is_skipped(self, tmp_path):
        manager = RoutingConfigManager()
        manager.load(tmp_path / "absent.yaml")

        manager.start_watching()
        manager.stop_watching()


class TestPrepareText:
    def test_strips_html_and_whitespace(self):
        assert prepare_text("<p>VPN   <b>down</b></p>\n\n again") == "VPN down again"

    def test_truncates(self):
        assert prepare_text("a" * 50, max_chars=10) == "a" * 10


class TestProviders:
    def test_factory_selects_backend(self):
        assert isinstance(create_embedding_provider("zai"), ZAIEmbeddingProvider)
        assert isinstance(create_embedding_provider("openai"), OpenAIEmbeddingProvider)

    async def test_missing_key_is_not_configured(self, monkeypatch):
        monkeypatch.setattr(embeddings.settings, "openai_api_key", None)
        provider = OpenAIEmbeddingProvider()

        assert provider.is_configured() is False
        with pytest.raises(EmbeddingNotConfiguredException):
            await provider.embed("VPN down")

    async def test_empty_text_is_terminal(self):
        provider = OpenAIEmbeddingProvider(api_key="sk-test")

        with pytest.raises(EmbeddingException) as exc_info:
            await provider.embed("<p>  </p>")

        assert exc_info.value.retryable is False

    async def test_vector_of_configured_dimension_is_returned(self):
        provider = OpenAIEmbeddingProvider(api_key="sk-test", dimension=3)
        provider._client = _StubOpenAIClient([0.1, 0.2, 0.3])

        assert await provider.embed("VPN down") == [0.1, 0.2, 0.3]

    async def test_wrong_dimension_is_terminal(self):
        provider = OpenAIEmbeddingProvider(api_key="sk-test", dimension=1536)
        provider._client = _StubOpenAIClient([0.1, 0.2, 0.3])

        with pytest.raises(EmbeddingException) as exc_info:
            await provider.embed("VPN down")

        assert exc_info.value.retryable is False
        assert exc_info.value.details == {"expected": 1536, "actual": 3}

    async def test_dimension_defaults_to_settings(self, monkeypatch):
        monkeypatch.setattr(embeddings.settings, "embedding_dimension", 4)
        provider = OpenAIEmbeddingProvider(api_key="sk-test")
        provider._client = _StubOpenAIClient([0.5, 0.5, 0.5, 0.5])

        assert await provider.embed("VPN down") == [0.5, 0.5, 0.5, 0.5]
        with pytest.raises(EmbeddingException):
            check_dimension([0.5, 0.5], embeddings.settings.embedding_dimension)


class TestLogging:
    def test_sensitive_fields_are_redacted(self):
        formatter = CustomJsonFormatter("%(message)s", environment="test")
        record = logging.LogRecord("test", logging.INFO, __file__, 1, "hello", None, None)
        record.api_key = "sk-secret"
        record.entity_id = "t1"

        data = json.loads(formatter.format(record))

        assert data["api_key"] == "***REDACTED***"
        assert data["entity_id"] == "t1"
        assert data["environment"] == "test"
