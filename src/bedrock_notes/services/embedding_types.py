"""Type protocol for embedding providers.

Defines the structural contract that both the production HTTP provider and
test fakes satisfy. Uses Protocol (PEP 544) for structural subtyping, so
implementations don't need to inherit from it.
"""
from __future__ import annotations

from typing import TYPE_CHECKING, Protocol, runtime_checkable

if TYPE_CHECKING:
    import numpy as np


@runtime_checkable
class EmbeddingProvider(Protocol):
    """Contract for embedding text into dense vectors."""

    @property
    def dimension(self) -> int:
        """Dimensionality of produced vectors."""
        ...

    def embed(self, text: str) -> np.ndarray:
        """Embed a single text into a dense vector.

        Args:
            text: Input text to embed.

        Returns:
            1-D numpy array of shape (dimension,).

        Raises:
            ConfigError: If the provider is not configured (no credential).
            ProviderError: If the request fails or the response is unusable.
        """
        ...

    def close(self) -> None:
        """Release network resources. May be called multiple times."""
        ...
