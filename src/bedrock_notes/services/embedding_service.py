"""Embedding service: the single point where vectors are produced.

Wraps an ``EmbeddingProvider`` so the rest of the engine only ever sees
``ConfigError`` or ``ProviderError`` when embedding fails, whatever the
provider raised.

Usage:
    service = EmbeddingService(embedder=OpenAIEmbeddingProvider())
    vector = service.embed("some text")
    service.shutdown()  # Clean up on server exit
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from bedrock_notes.exceptions import ConfigError, ErrorCode, ProviderError

if TYPE_CHECKING:
    import numpy as np

    from bedrock_notes.services.embedding_types import EmbeddingProvider

logger = logging.getLogger(__name__)


class EmbeddingService:
    """Delegates to a provider, normalizing its failures.

    Args:
        embedder: An EmbeddingProvider implementation.
    """

    def __init__(self, embedder: EmbeddingProvider) -> None:
        self._embedder = embedder
        self._shutdown = False

    @property
    def dimension(self) -> int:
        """Embedding dimensionality (delegates to provider)."""
        return self._embedder.dimension

    def embed(self, text: str) -> "np.ndarray":
        """Embed a single text into a dense vector.

        Args:
            text: Input text to embed.

        Returns:
            1-D numpy array of shape (dimension,).

        Raises:
            ConfigError: If the provider has no credential.
            ProviderError: If the provider call fails for any other reason.
        """
        if self._shutdown:
            raise ProviderError(
                "Embedding service has been shut down",
                code=ErrorCode.PROVIDER_REQUEST_FAILED,
            )
        try:
            return self._embedder.embed(text)
        except (ConfigError, ProviderError):
            raise
        except Exception as e:
            raise ProviderError(
                f"Embedding inference failed: {e}",
                code=ErrorCode.PROVIDER_REQUEST_FAILED,
                original_error=e,
            )

    def shutdown(self) -> None:
        """Release provider resources. Call on server exit."""
        if self._shutdown:
            return
        self._shutdown = True
        close = getattr(self._embedder, "close", None)
        if callable(close):
            close()
        logger.info("EmbeddingService shut down")
