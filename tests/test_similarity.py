"""Tests for cosine-similarity ranking."""
import math

import numpy as np
import pytest

from bedrock_notes.exceptions import ValidationError
from bedrock_notes.services.similarity import cosine_similarity, search


def test_cosine_basics():
    assert cosine_similarity([1, 0], [1, 0]) == pytest.approx(1.0)
    assert cosine_similarity([1, 0], [0, 1]) == pytest.approx(0.0)
    assert cosine_similarity([1, 0], [-1, 0]) == pytest.approx(-1.0)
    assert cosine_similarity([1, 1], [1, 0]) == pytest.approx(1 / math.sqrt(2))


def test_cosine_is_scale_invariant():
    assert cosine_similarity([3, 4], [6, 8]) == pytest.approx(1.0)


def test_zero_vectors_score_zero():
    assert cosine_similarity([0, 0], [1, 0]) == 0.0
    assert cosine_similarity([1, 0], [0, 0]) == 0.0
    assert cosine_similarity([0, 0], [0, 0]) == 0.0


def test_non_finite_scores_zero():
    assert cosine_similarity([1, 0], [np.nan, 1]) == 0.0


def test_ranking_descending():
    candidates = [("low", [0, 1]), ("high", [1, 0]), ("mid", [1, 1])]
    results = search([1, 0], candidates, limit=3)
    assert [r.path for r in results] == ["high", "mid", "low"]
    assert results[0].similarity == pytest.approx(1.0)
    assert results[1].similarity == pytest.approx(0.7071, abs=1e-4)
    assert results[2].similarity == pytest.approx(0.0)


def test_results_compare_as_tuples():
    results = search([1, 0], [("alpha", [1, 0]), ("beta", [0, 1])], limit=1)
    assert results == [("alpha", 1.0)]


def test_ties_keep_candidate_order():
    candidates = [("b", [1, 0]), ("a", [1, 0]), ("c", [2, 0])]
    results = search([1, 0], candidates, limit=3)
    assert [r.path for r in results] == ["b", "a", "c"]


def test_ranking_is_deterministic():
    candidates = [(f"n{i}", [i % 3, 1]) for i in range(20)]
    first = search([1, 1], candidates, limit=10)
    second = search([1, 1], candidates, limit=10)
    assert first == second


def test_limit_truncates():
    candidates = [(f"n{i}", [1, i]) for i in range(10)]
    assert len(search([1, 0], candidates, limit=3)) == 3
    assert len(search([1, 0], candidates, limit=50)) == 10


@pytest.mark.parametrize("limit", [0, -1])
def test_limit_must_be_positive(limit):
    with pytest.raises(ValidationError):
        search([1, 0], [("a", [1, 0])], limit=limit)


def test_empty_candidates():
    assert search([1, 0], [], limit=5) == []


def test_zero_candidate_ranks_with_zero():
    results = search([1, 0], [("zero", [0, 0]), ("neg", [-1, 0])], limit=2)
    assert results == [("zero", 0.0), ("neg", -1.0)]


def test_dimension_mismatch_skipped():
    results = search([1, 0], [("stale", [1, 0, 0]), ("ok", [1, 0])], limit=5)
    assert [r.path for r in results] == ["ok"]


def test_min_similarity_filters_before_truncation():
    candidates = [("a", [1, 0]), ("b", [1, 1]), ("c", [0, 1])]
    results = search([1, 0], candidates, limit=5, min_similarity=0.5)
    assert [r.path for r in results] == ["a", "b"]
