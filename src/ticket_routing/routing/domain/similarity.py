"""
Similarity Search
=================

Cosine-similarity nearest-neighbour search over an in-memory corpus.

The corpus is whatever the vector store adapter listed for one entity kind.
Entities that have not been embedded yet are not candidates at all, rather
than zero-similarity matches.
"""

from datetime import datetime
from typing import Iterable, List, Optional, Sequence

import numpy as np

from ticket_routing.core import ValidationException
from ticket_routing.routing.domain.entities import CorpusEntry, SimilarityResult
from ticket_routing.shared.infrastructure.logging import get_logger

logger = get_logger(__name__)


def cosine_similarity(a: Sequence[float], b: Sequence[float]) -> float:
    """
    Cosine similarity of two vectors, clamped to [0, 1].

    Negative similarity carries no relevance for routing, and a zero vector
    is similar to nothing.
    """
    va = np.asarray(a, dtype=np.float64)
    vb = np.asarray(b, dtype=np.float64)
    if va.shape != vb.shape:
        raise ValidationException(
            "Vectors must have the same dimension",
            details={"left": va.shape[0] if va.ndim else 0, "right": vb.shape[0] if vb.ndim else 0}
        )

    norm = float(np.linalg.norm(va) * np.linalg.norm(vb))
    if norm == 0.0:
        return 0.0
    if np.array_equal(va, vb):
        return 1.0
    return float(np.clip(np.dot(va, vb) / norm, 0.0, 1.0))


def _recency(updated_at: Optional[datetime]) -> float:
    # Entries without a timestamp lose every tie
    return updated_at.timestamp() if updated_at is not None else float("-inf")


def search(
    query_vector: Sequence[float],
    corpus: Iterable[CorpusEntry],
    k: int,
    min_similarity: float = 0.0
) -> List[SimilarityResult]:
    """
    Return the ``k`` corpus entries closest to ``query_vector``.

    Results are sorted by descending similarity, ties going to the entry
    whose vector was updated most recently. Entries below ``min_similarity``
    are dropped even when fewer than ``k`` results remain.

    Args:
        query_vector: Embedding of the query text
        corpus: Candidate entries; unembedded entries are skipped
        k: Maximum number of results
        min_similarity: Relevance floor in [0, 1]

    Returns:
        List of SimilarityResult, possibly empty

    Raises:
        ValidationException: If the query vector is empty
    """
    query = np.asarray(query_vector, dtype=np.float64)
    if query.ndim != 1 or query.size == 0:
        raise ValidationException("Query vector must be a non-empty list of numbers")

    if k <= 0:
        return []

    candidates: List[CorpusEntry] = []
    skipped = 0
    for entry in corpus:
        if not entry.is_embedded:
            continue
        if len(entry.vector) != query.size:
            skipped += 1
            continue
        candidates.append(entry)

    if skipped:
        logger.warning(
            "Skipped corpus entries with mismatched vector dimension",
            extra={"skipped": skipped, "dimension": int(query.size)}
        )

    if not candidates:
        return []

    matrix = np.asarray([entry.vector for entry in candidates], dtype=np.float64)
    norms = np.linalg.norm(matrix, axis=1) * np.linalg.norm(query)
    dots = matrix @ query
    safe_norms = np.where(norms > 0, norms, 1.0)
    scores = np.clip(np.where(norms > 0, dots / safe_norms, 0.0), 0.0, 1.0)
    # Exact duplicates score 1.0 regardless of rounding
    identical = np.all(matrix == query, axis=1) & (norms > 0)
    scores = np.where(identical, 1.0, scores)

    ranked = sorted(
        zip(candidates, scores.tolist()),
        key=lambda pair: (-pair[1], -_recency(pair[0].vector_updated_at))
    )

    results: List[SimilarityResult] = []
    for entry, similarity in ranked:
        if similarity < min_similarity:
            # Sorted descending: nothing after this clears the floor either
            break
        results.append(SimilarityResult(
            kind=entry.kind,
            entity_id=entry.entity_id,
            title=entry.title,
            similarity=similarity,
            department_id=entry.department_id,
            assigned_to=entry.assigned_to,
        ))
        if len(results) == k:
            break

    return results
