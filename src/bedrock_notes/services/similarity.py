"""Exact cosine-similarity ranking.

A brute-force scan: every candidate is scored independently against the
query, O(D) per candidate and O(N*D) overall. At personal-note scale this is
fast enough that no index is kept; an approximate nearest-neighbour index
can replace ``search`` without changing its callers.
"""
import logging
from typing import List, Optional, Sequence, Tuple

import numpy as np

from bedrock_notes.exceptions import ErrorCode, ValidationError
from bedrock_notes.models.schema import SimilarityResult

logger = logging.getLogger(__name__)

Vector = Sequence[float]


def cosine_similarity(query: Vector, candidate: Vector) -> float:
    """``dot(q, c) / (|q| * |c|)``; 0.0 when either vector has zero magnitude."""
    q = np.asarray(query, dtype=np.float64)
    c = np.asarray(candidate, dtype=np.float64)
    q_norm = np.linalg.norm(q)
    c_norm = np.linalg.norm(c)
    if q_norm == 0.0 or c_norm == 0.0:
        return 0.0
    score = float(np.dot(q, c) / (q_norm * c_norm))
    # non-finite components (inf/nan in a stored blob) score as unrelated
    return score if np.isfinite(score) else 0.0


def search(
    query_vector: Vector,
    candidates: Sequence[Tuple[str, Vector]],
    limit: int,
    min_similarity: Optional[float] = None,
) -> List[SimilarityResult]:
    """Rank candidates by cosine similarity to the query.

    Args:
        query_vector: The query embedding.
        candidates: ``(path, vector)`` pairs in a deterministic order; ties
            keep this order.
        limit: Maximum number of results.
        min_similarity: Optional floor applied before truncation.

    Returns:
        Results sorted by non-increasing similarity.

    Raises:
        ValidationError: If ``limit`` is less than 1.
    """
    if limit < 1:
        raise ValidationError(
            "limit must be at least 1",
            field="limit",
            value=limit,
            code=ErrorCode.SEARCH_INVALID_QUERY,
        )
    if not candidates:
        return []

    query = np.asarray(query_vector, dtype=np.float64).ravel()
    scored: List[SimilarityResult] = []
    for path, vector in candidates:
        candidate = np.asarray(vector, dtype=np.float64).ravel()
        if candidate.shape != query.shape:
            logger.warning(
                f"Skipping {path}: vector has {candidate.shape[0]} components, "
                f"query has {query.shape[0]}"
            )
            continue
        scored.append(SimilarityResult(path, cosine_similarity(query, candidate)))

    # sorted() is stable, so equal scores keep candidate order
    ranked = sorted(scored, key=lambda result: -result.similarity)
    if min_similarity is not None:
        ranked = [r for r in ranked if r.similarity >= min_similarity]
    return ranked[:limit]
