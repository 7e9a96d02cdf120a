"""Tests for cosine similarity and top-K search."""
from datetime import datetime, timedelta, timezone

import numpy as np
import pytest

from ticket_routing.config import EntityKind
from ticket_routing.core import ValidationException
from ticket_routing.routing.domain import CorpusEntry, cosine_similarity, search

NOW = datetime(2026, 1, 1, tzinfo=timezone.utc)


def _doc(entity_id, vector, updated_at=NOW, title=None):
    return CorpusEntry(
        kind=EntityKind.DOCUMENT,
        entity_id=entity_id,
        title=title or entity_id,
        vector=tuple(vector) if vector is not None else None,
        vector_updated_at=updated_at if vector is not None else None,
    )


class TestCosineSimilarity:
    def test_identical_vectors(self):
        assert cosine_similarity([0.3, 0.4, 0.5], [0.3, 0.4, 0.5]) == 1.0

    def test_identical_random_vectors_are_exactly_one(self):
        rng = np.random.default_rng(7)
        for index in range(200):
            vector = rng.normal(size=64).tolist()

            assert cosine_similarity(vector, vector) == 1.0
            assert search(vector, [_doc(f"d{index}", vector)], k=1)[0].similarity == 1.0

    def test_orthogonal_vectors(self):
        assert cosine_similarity([1.0, 0.0], [0.0, 1.0]) == pytest.approx(0.0)

    def test_opposite_vectors_clamp_to_zero(self):
        assert cosine_similarity([1.0, 2.0], [-1.0, -2.0]) == 0.0

    def test_zero_vector(self):
        assert cosine_similarity([0.0, 0.0], [1.0, 1.0]) == 0.0

    def test_dimension_mismatch(self):
        with pytest.raises(ValidationException):
            cosine_similarity([1.0, 0.0], [1.0, 0.0, 0.0])

    @pytest.mark.parametrize("a,b", [
        ([1.0, 2.0, 3.0], [3.0, 2.0, 1.0]),
        ([-1.0, 0.5, 2.0], [4.0, -3.0, 0.1]),
        ([1e-9, 1e-9], [1e9, 1e9]),
    ])
    def test_always_within_bounds(self, a, b):
        assert 0.0 <= cosine_similarity(a, b) <= 1.0


class TestSearch:
    def test_returns_top_k_sorted(self):
        corpus = [
            _doc("far", [0.0, 1.0]),
            _doc("close", [1.0, 0.1]),
            _doc("mid", [1.0, 1.0]),
        ]

        results = search([1.0, 0.0], corpus, k=2)

        assert [r.entity_id for r in results] == ["close", "mid"]
        assert results[0].similarity >= results[1].similarity

    def test_results_are_subset_of_corpus(self):
        corpus = [_doc(f"d{i}", [1.0, float(i)]) for i in range(10)]

        results = search([1.0, 0.0], corpus, k=4)

        assert len(results) == 4
        assert {r.entity_id for r in results} <= {c.entity_id for c in corpus}

    def test_unembedded_entries_are_not_candidates(self):
        corpus = [_doc("pending", None), _doc("ready", [1.0, 0.0])]

        results = search([1.0, 0.0], corpus, k=5)

        assert [r.entity_id for r in results] == ["ready"]

    def test_floor_drops_results_within_k(self):
        corpus = [_doc("close", [1.0, 0.0]), _doc("unrelated", [0.0, 1.0])]

        results = search([1.0, 0.0], corpus, k=5, min_similarity=0.3)

        assert [r.entity_id for r in results] == ["close"]

    def test_tie_goes_to_freshest_vector(self):
        corpus = [
            _doc("old", [1.0, 0.0], updated_at=NOW - timedelta(days=3)),
            _doc("new", [2.0, 0.0], updated_at=NOW),
        ]

        results = search([1.0, 0.0], corpus, k=2)

        assert [r.entity_id for r in results] == ["new", "old"]

    def test_empty_corpus(self):
        assert search([1.0, 0.0], [], k=5) == []

    def test_non_positive_k(self):
        assert search([1.0, 0.0], [_doc("a", [1.0, 0.0])], k=0) == []

    def test_empty_query_rejected(self):
        with pytest.raises(ValidationException):
            search([], [_doc("a", [1.0, 0.0])], k=5)

    def test_mismatched_dimension_skipped(self):
        corpus = [_doc("legacy", [1.0, 0.0, 0.0]), _doc("current", [1.0, 0.0])]

        results = search([1.0, 0.0], corpus, k=5)

        assert [r.entity_id for r in results] == ["current"]

    def test_result_carries_routing_metadata(self):
        entry = CorpusEntry(
            kind=EntityKind.TICKET,
            entity_id="t1",
            title="VPN down",
            vector=(1.0, 0.0),
            vector_updated_at=NOW,
            department_id="it",
            assigned_to="u1",
        )

        result = search([1.0, 0.0], [entry], k=1)[0]

        assert result.kind == EntityKind.TICKET
        assert result.title == "VPN down"
        assert result.department_id == "it"
        assert result.assigned_to == "u1"
        assert result.similarity == 1.0
