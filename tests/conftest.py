"""Shared test fixtures: fake embedding provider and in-memory stores."""
import asyncio
from typing import Dict, List, Optional, Sequence

import pytest

from ticket_routing.core import EmbeddingNotConfiguredException
from ticket_routing.infrastructure.embeddings import IEmbeddingProvider
from ticket_routing.routing.application import EmbeddingQueue
from ticket_routing.routing.infrastructure import (
    InMemoryDepartmentHierarchy,
    InMemoryVectorStoreAdapter,
)


class FakeEmbeddingProvider(IEmbeddingProvider):
    """
    Deterministic provider: the vector of the first keyword found in the lowercased text.

    ``failures`` are raised in order by the first calls, ``fail_for`` raises
    for every text containing the keyword, and ``gate`` holds every call
    until it is set.
    """

    name = "fake"

    def __init__(
        self,
        vectors: Optional[Dict[str, Sequence[float]]] = None,
        default: Sequence[float] = (0.0, 0.0, 1.0),
        configured: bool = True
    ):
        self.vectors = dict(vectors or {})
        self.default = list(default)
        self.configured = configured
        self.calls: List[str] = []
        self.failures: List[Exception] = []
        self.fail_for: Dict[str, Exception] = {}
        self.gate: Optional[asyncio.Event] = None

    def is_configured(self) -> bool:
        return self.configured

    async def embed(self, text: str) -> List[float]:
        self.calls.append(text)
        if not self.configured:
            raise EmbeddingNotConfiguredException(self.name)
        if self.gate is not None:
            await self.gate.wait()
        if self.failures:
            raise self.failures.pop(0)
        lowered = text.lower()
        for keyword, error in self.fail_for.items():
            if keyword in lowered:
                raise error
        for keyword, vector in self.vectors.items():
            if keyword in lowered:
                return list(vector)
        return list(self.default)


KEYWORD_VECTORS = {
    "vpn": [1.0, 0.0, 0.0],
    "printer": [0.0, 1.0, 0.0],
    "payroll": [0.0, 0.0, 1.0],
}


@pytest.fixture
def provider():
    return FakeEmbeddingProvider(KEYWORD_VECTORS)


@pytest.fixture
def store():
    return InMemoryVectorStoreAdapter()


@pytest.fixture
def hierarchy():
    return InMemoryDepartmentHierarchy([("it", "it-network"), ("hr", "hr-payroll")])


@pytest.fixture
async def queue(store, provider):
    """Queue that is not started; tests start it when they need workers."""
    embedding_queue = EmbeddingQueue(store, provider, workers=2, max_retries=3, retry_backoff_seconds=0)
    yield embedding_queue
    await embedding_queue.stop()
