"""Service for semantic search over stored note embeddings."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, List, Optional, Sequence

from bedrock_notes.config import BedrockConfig, config as default_config
from bedrock_notes.exceptions import ConfigError, ErrorCode, ValidationError
from bedrock_notes.models.schema import SimilarityResult
from bedrock_notes.observability import timed_operation
from bedrock_notes.services import similarity

if TYPE_CHECKING:
    from bedrock_notes.services.embedding_service import EmbeddingService
    from bedrock_notes.storage.note_files import NoteFiles
    from bedrock_notes.storage.vector_store import VectorStore

logger = logging.getLogger(__name__)


def format_result(result: SimilarityResult) -> str:
    """Render a hit for a picker list, e.g. ``"87.50% - projects/alpha"``."""
    return f"{result.similarity * 100:.2f}% - {result.path}"


class SearchService:
    """Ranks notes by embedding similarity.

    Two entry modes share one ranking algorithm: search-by-text embeds a
    free-text query, find-similar reuses a note's stored vector and leaves
    that note out of the candidates. Provider and storage errors propagate;
    there is no degraded result.
    """

    def __init__(
        self,
        store: VectorStore,
        embedding_service: Optional[EmbeddingService] = None,
        note_files: Optional[NoteFiles] = None,
        default_limit: Optional[int] = None,
        min_similarity: Optional[float] = None,
        settings: Optional[BedrockConfig] = None,
    ):
        """Initialize the search service.

        Args:
            store: Vector store holding the candidate embeddings.
            embedding_service: Embeds text queries. Without it search-by-text
                raises ConfigError; find-similar still works.
            note_files: Used to normalize reference paths when given.
            default_limit: Result count when a call passes no limit.
            min_similarity: Optional similarity floor.
            settings: Configuration for anything not passed explicitly.
        """
        settings = settings or default_config
        self.store = store
        self._embedding_service = embedding_service
        self._note_files = note_files
        self.default_limit = default_limit or settings.search_max_results
        self.min_similarity = (
            min_similarity if min_similarity is not None else settings.min_similarity
        )

    def _normalize(self, path: str) -> str:
        if self._note_files is not None:
            return self._note_files.normalize(path)
        return path

    def search_vector(
        self,
        query_vector: Sequence[float],
        limit: Optional[int] = None,
        exclude_path: Optional[str] = None,
    ) -> List[SimilarityResult]:
        """Rank all stored notes (minus ``exclude_path``) against a vector."""
        candidates = self.store.all_embeddings(exclude_path=exclude_path)
        return similarity.search(
            query_vector,
            candidates,
            limit if limit is not None else self.default_limit,
            min_similarity=self.min_similarity,
        )

    def search_by_text(self, query_text: str, limit: Optional[int] = None) -> List[SimilarityResult]:
        """Embed ``query_text`` and rank every stored note against it.

        Raises:
            ValidationError: If the query is blank.
            ConfigError: If no embedding service/credential is configured.
            ProviderError: If the embedding call fails.
            StorageError: If candidates cannot be loaded.
        """
        if not query_text or not query_text.strip():
            raise ValidationError(
                "Search query cannot be empty",
                field="query",
                code=ErrorCode.SEARCH_INVALID_QUERY,
            )
        if self._embedding_service is None:
            raise ConfigError("No embedding service configured", config_key="embedding")

        with timed_operation("search_by_text", query=query_text[:30]) as op:
            query_vector = self._embedding_service.embed(query_text)
            results = self.search_vector(query_vector, limit)
            op["result_count"] = len(results)
        return results

    def find_similar(self, path: str, limit: Optional[int] = None) -> List[SimilarityResult]:
        """Notes closest to ``path``'s stored embedding, never ``path`` itself.

        Raises:
            NoteNotFoundError: If the note is not in the store.
            EmbeddingNotFoundError: If the note has no embedding yet.
        """
        path = self._normalize(path)
        with timed_operation("find_similar", path=path) as op:
            query_vector = self.store.get_embedding(path)
            results = self.search_vector(query_vector, limit, exclude_path=path)
            op["result_count"] = len(results)
        return results

    def search(
        self,
        query_text: Optional[str] = None,
        reference_path: Optional[str] = None,
        limit: Optional[int] = None,
    ) -> List[SimilarityResult]:
        """Search by free text or by an existing note; exactly one is required."""
        if (query_text is None) == (reference_path is None):
            raise ValidationError(
                "Pass either query_text or reference_path",
                field="query",
                code=ErrorCode.SEARCH_INVALID_QUERY,
            )
        if reference_path is not None:
            return self.find_similar(reference_path, limit)
        return self.search_by_text(query_text, limit)
