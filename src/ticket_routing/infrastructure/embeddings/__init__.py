"""
Embedding Provider Infrastructure
==================================

Wrappers for embedding providers (OpenAI, Z.AI) behind a single interface.

The routing core treats the provider as an opaque ``embed(text) -> vector``
function. Provider errors are translated into ``EmbeddingException`` with a
``retryable`` flag so the embedding queue can decide whether to retry.
"""

import asyncio
import re
from typing import List, Optional
from abc import ABC, abstractmethod

import openai
from openai import AsyncOpenAI
from zai import ZaiClient

from ticket_routing.config import settings, EmbeddingProviderName
from ticket_routing.core import EmbeddingException, EmbeddingNotConfiguredException


_TAG_RE = re.compile(r"<[^>]*>")
_WHITESPACE_RE = re.compile(r"\s+")


def prepare_text(text: str, max_chars: Optional[int] = None) -> str:
    """
    Normalise entity text before it is sent to a provider.

    Strips HTML tags left over from the rich-text editor, collapses
    whitespace and truncates to the provider's input budget.
    """
    max_chars = max_chars or settings.embedding_max_input_chars
    clean = _TAG_RE.sub(" ", text or "")
    clean = _WHITESPACE_RE.sub(" ", clean).strip()
    return clean[:max_chars]


def check_dimension(vector: List[float], dimension: int) -> List[float]:
    """Reject vectors that cannot be compared with the stored corpus."""
    if len(vector) != dimension:
        raise EmbeddingException(
            "Embedding has unexpected dimension",
            retryable=False,
            details={"expected": dimension, "actual": len(vector)}
        )
    return vector


class IEmbeddingProvider(ABC):
    """
    Interface for embedding providers.

    Following Interface Segregation Principle - the routing core only needs
    to know whether a provider is usable and how to embed one text.
    """

    name: str = "unknown"

    @abstractmethod
    def is_configured(self) -> bool:
        """Whether credentials for the provider are available."""

    @abstractmethod
    async def embed(self, text: str) -> List[float]:
        """Generate an embedding vector for text."""

    async def close(self) -> None:
        """Release client resources."""


class OpenAIEmbeddingProvider(IEmbeddingProvider):
    """
    OpenAI embeddings (``text-embedding-3-small`` by default).

    The client is created lazily so a process without credentials can still
    start and report itself as not configured.
    """

    name = EmbeddingProviderName.OPENAI

    def __init__(
        self,
        api_key: Optional[str] = None,
        model: Optional[str] = None,
        dimension: Optional[int] = None
    ):
        self._api_key = api_key or settings.openai_api_key
        self._model = model or settings.embedding_model
        self._dimension = dimension or settings.embedding_dimension
        self._client: Optional[AsyncOpenAI] = None

    def is_configured(self) -> bool:
        return bool(self._api_key)

    def _get_client(self) -> AsyncOpenAI:
        if self._client is None:
            self._client = AsyncOpenAI(api_key=self._api_key)
        return self._client

    async def embed(self, text: str) -> List[float]:
        """
        Generate embedding for text using the OpenAI embedding model.

        Raises:
            EmbeddingNotConfiguredException: If no API key is available
            EmbeddingException: If the provider call fails or returns a vector
                of the wrong dimension
        """
        if not self.is_configured():
            raise EmbeddingNotConfiguredException(self.name)

        clean_text = prepare_text(text)
        if not clean_text:
            raise EmbeddingException("No text content to embed", retryable=False)

        try:
            response = await self._get_client().embeddings.create(
                model=self._model,
                input=clean_text,
            )
        except (openai.APIConnectionError, openai.RateLimitError, openai.InternalServerError) as e:
            raise EmbeddingException(f"Embedding request failed: {e}", retryable=True)
        except openai.APIStatusError as e:
            raise EmbeddingException(
                f"Embedding request rejected: {e}",
                retryable=False,
                details={"status_code": e.status_code}
            )

        return check_dimension(list(response.data[0].embedding), self._dimension)

    async def close(self) -> None:
        if self._client is not None:
            await self._client.close()
            self._client = None


class ZAIEmbeddingProvider(IEmbeddingProvider):
    """
    Z.AI SDK embeddings.

    The SDK client is synchronous, so calls run in a worker thread to keep
    the event loop (and the other embedding workers) responsive.
    """

    name = EmbeddingProviderName.ZAI

    def __init__(
        self,
        api_key: Optional[str] = None,
        model: Optional[str] = None,
        dimension: Optional[int] = None
    ):
        self._api_key = api_key or settings.zai_api_key
        self._model = model or settings.embedding_model
        self._dimension = dimension or settings.embedding_dimension
        self._client: Optional[ZaiClient] = None

    def is_configured(self) -> bool:
        return bool(self._api_key)

    async def embed(self, text: str) -> List[float]:
        if not self.is_configured():
            raise EmbeddingNotConfiguredException(self.name)

        clean_text = prepare_text(text)
        if not clean_text:
            raise EmbeddingException("No text content to embed", retryable=False)

        if self._client is None:
            self._client = ZaiClient(api_key=self._api_key)

        try:
            response = await asyncio.to_thread(
                self._client.embeddings.create,
                model=self._model,
                input=clean_text,
            )
        except Exception as e:
            # The SDK does not expose a stable error hierarchy; treat as transient
            raise EmbeddingException(f"Embedding generation failed: {e}", retryable=True)

        return check_dimension(list(response.data[0].embedding), self._dimension)

    async def close(self) -> None:
        self._client = None


def create_embedding_provider(name: Optional[str] = None) -> IEmbeddingProvider:
    """Build the provider selected by ``settings.embedding_provider``."""
    name = (name or settings.embedding_provider).lower()
    if name == EmbeddingProviderName.ZAI:
        return ZAIEmbeddingProvider()
    return OpenAIEmbeddingProvider()
