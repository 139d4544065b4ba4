"""Tests for search-by-text and find-similar."""
import datetime
from datetime import timezone

import pytest

from bedrock_notes.exceptions import (
    ConfigError,
    EmbeddingNotFoundError,
    NoteNotFoundError,
    ProviderError,
    ValidationError,
)
from bedrock_notes.models.schema import SimilarityResult
from bedrock_notes.observability import metrics
from bedrock_notes.services.embedding_service import EmbeddingService
from bedrock_notes.services.search_service import SearchService, format_result
from tests.fakes import FailingEmbeddingProvider, FakeEmbeddingProvider

T0 = datetime.datetime(2024, 1, 1, tzinfo=timezone.utc)


@pytest.fixture
def two_dim_service(store, note_files, test_config):
    embedder = FakeEmbeddingProvider(dim=2, vectors={"diagonal": [1.0, 1.0], "east": [1.0, 0.0]})
    store.upsert("alpha", "alpha text", T0, [1.0, 0.0])
    store.upsert("beta", "beta text", T0, [0.0, 1.0])
    return SearchService(
        store,
        embedding_service=EmbeddingService(embedder=embedder),
        note_files=note_files,
        settings=test_config,
    )


def test_search_vector_alpha_beta(two_dim_service):
    assert two_dim_service.search_vector([1.0, 0.0], 1) == [("alpha", 1.0)]


def test_search_by_text_tie_keeps_insertion_order(two_dim_service):
    results = two_dim_service.search_by_text("diagonal", 2)
    assert [r.path for r in results] == ["alpha", "beta"]
    assert results[0].similarity == pytest.approx(0.7071, abs=1e-4)
    assert results[1].similarity == pytest.approx(0.7071, abs=1e-4)


def test_search_by_text_uses_default_limit(store, note_files, test_config):
    embedder = FakeEmbeddingProvider(dim=2)
    for i in range(8):
        store.upsert(f"n{i}", "x", T0, [1.0, float(i)])
    service = SearchService(
        store,
        embedding_service=EmbeddingService(embedder=embedder),
        note_files=note_files,
        settings=test_config,
    )
    assert len(service.search_by_text("anything")) == test_config.search_max_results


@pytest.mark.parametrize("limit", [0, -1])
def test_limit_below_one_rejected(two_dim_service, limit):
    with pytest.raises(ValidationError):
        two_dim_service.search_vector([1.0, 0.0], limit)
    with pytest.raises(ValidationError):
        two_dim_service.search_by_text("east", limit)
    with pytest.raises(ValidationError):
        two_dim_service.find_similar("alpha", limit)


def test_search_by_text_does_not_exclude_anything(two_dim_service):
    results = two_dim_service.search_by_text("east", 5)
    assert results[0] == ("alpha", 1.0)
    assert len(results) == 2


def test_find_similar_excludes_self(two_dim_service, store):
    store.upsert("gamma", "gamma text", T0, [1.0, 0.1])
    results = two_dim_service.find_similar("alpha", 5)
    paths = [r.path for r in results]
    assert "alpha" not in paths
    assert paths == ["gamma", "beta"]


def test_find_similar_normalizes_path(two_dim_service):
    results = two_dim_service.find_similar("[[alpha.md]]", 5)
    assert [r.path for r in results] == ["beta"]


def test_find_similar_missing_note(two_dim_service):
    with pytest.raises(NoteNotFoundError):
        two_dim_service.find_similar("missing")


def test_find_similar_without_embedding(two_dim_service, store):
    store.upsert("plain", "no vector yet", T0)
    with pytest.raises(EmbeddingNotFoundError):
        two_dim_service.find_similar("plain")


def test_notes_without_embeddings_are_not_candidates(two_dim_service, store):
    store.upsert("plain", "no vector yet", T0)
    paths = [r.path for r in two_dim_service.search_by_text("east", 10)]
    assert "plain" not in paths


def test_blank_query_rejected(two_dim_service):
    with pytest.raises(ValidationError):
        two_dim_service.search_by_text("   ")


def test_no_embedding_service(store, test_config):
    service = SearchService(store, settings=test_config)
    with pytest.raises(ConfigError):
        service.search_by_text("hello")


def test_provider_errors_propagate(store, test_config):
    store.upsert("alpha", "x", T0, [1.0] * 8)
    service = SearchService(
        store,
        embedding_service=EmbeddingService(embedder=FailingEmbeddingProvider()),
        settings=test_config,
    )
    with pytest.raises(ProviderError):
        service.search_by_text("hello")
    assert metrics.get_metrics()["search_by_text"]["error_count"] == 1


def test_min_similarity_threshold(store, note_files, test_config):
    store.upsert("alpha", "a", T0, [1.0, 0.0])
    store.upsert("beta", "b", T0, [0.0, 1.0])
    service = SearchService(store, note_files=note_files, min_similarity=0.5, settings=test_config)
    assert service.search_vector([1.0, 0.0], 5) == [("alpha", 1.0)]


def test_search_dispatch(two_dim_service):
    assert two_dim_service.search(query_text="east", limit=1) == [("alpha", 1.0)]
    assert two_dim_service.search(reference_path="alpha", limit=1)[0].path == "beta"
    with pytest.raises(ValidationError):
        two_dim_service.search()
    with pytest.raises(ValidationError):
        two_dim_service.search(query_text="east", reference_path="alpha")


def test_search_records_metrics(two_dim_service):
    two_dim_service.search_by_text("east", 1)
    recorded = metrics.get_metrics()["search_by_text"]
    assert recorded["count"] == 1
    assert recorded["success_count"] == 1


def test_format_result():
    assert format_result(SimilarityResult("alpha", 0.875)) == "87.50% - alpha"
    assert format_result(SimilarityResult("projects/beta", 1.0)) == "100.00% - projects/beta"
