"""OpenAI-compatible embedding provider.

Posts ``{"model": ..., "input": ...}`` to ``<api_base>/embeddings`` with a
bearer token and returns ``data[0].embedding`` as a float32 vector. Every
call goes to the network; nothing is cached.
"""

from __future__ import annotations

import logging
from typing import Any, List, Optional

import httpx
import numpy as np

from bedrock_notes.config import BedrockConfig, config as default_config
from bedrock_notes.exceptions import ConfigError, ErrorCode, ProviderError

logger = logging.getLogger(__name__)


class OpenAIEmbeddingProvider:
    """Compute embeddings through the OpenAI embeddings endpoint.

    Attributes:
        model: Embedding model identifier sent with every request.
        api_base: Base URL of the API (no trailing slash).
        timeout: HTTP timeout in seconds.
    """

    def __init__(
        self,
        api_key: Optional[str] = None,
        model: Optional[str] = None,
        dimension: Optional[int] = None,
        api_base: Optional[str] = None,
        timeout: Optional[float] = None,
        client: Optional[httpx.Client] = None,
        settings: Optional[BedrockConfig] = None,
    ):
        settings = settings or default_config
        self._api_key = api_key if api_key is not None else settings.openai_api_key
        self.model = model or settings.embedding_model
        self._dimension = dimension or settings.embedding_dim
        self.api_base = (api_base or settings.embedding_api_base).rstrip("/")
        self.timeout = timeout if timeout is not None else settings.embedding_timeout
        self._client = client
        self._owns_client = client is None

    @property
    def dimension(self) -> int:
        return self._dimension

    @property
    def has_credentials(self) -> bool:
        return bool(self._api_key)

    def _get_client(self) -> httpx.Client:
        if self._client is None:
            self._client = httpx.Client(timeout=httpx.Timeout(self.timeout, connect=10.0))
        return self._client

    @staticmethod
    def _extract_embedding(data: Any) -> Optional[List[float]]:
        """Pull ``data[0].embedding`` out of a response body."""
        if not isinstance(data, dict):
            return None
        items = data.get("data")
        if not isinstance(items, list) or not items or not isinstance(items[0], dict):
            return None
        embedding = items[0].get("embedding")
        if isinstance(embedding, list) and embedding:
            return embedding
        return None

    def embed(self, text: str) -> np.ndarray:
        """Embed one text.

        Raises:
            ConfigError: If no API key is configured.
            ProviderError: On transport failure, non-2xx status, or a
                malformed/wrong-sized vector.
        """
        if not self._api_key:
            raise ConfigError(
                "No embedding API key configured (set OPENAI_API_KEY)",
                config_key="openai_api_key",
            )

        payload = {"model": self.model, "input": text}
        headers = {
            "Authorization": f"Bearer {self._api_key}",
            "Content-Type": "application/json",
        }
        try:
            response = self._get_client().post(
                f"{self.api_base}/embeddings", json=payload, headers=headers
            )
        except httpx.HTTPError as e:
            raise ProviderError(
                f"Embedding request failed: {e}",
                code=ErrorCode.PROVIDER_REQUEST_FAILED,
                original_error=e,
            )

        if not 200 <= response.status_code < 300:
            raise ProviderError(
                f"Failed to get embedding (status={response.status_code}): "
                f"{response.text[:300]}",
                status_code=response.status_code,
                code=ErrorCode.PROVIDER_BAD_STATUS,
            )

        try:
            data = response.json()
        except ValueError as e:
            raise ProviderError(
                "Embedding response is not JSON",
                status_code=response.status_code,
                code=ErrorCode.PROVIDER_BAD_RESPONSE,
                original_error=e,
            )

        embedding = self._extract_embedding(data)
        if embedding is None:
            raise ProviderError(
                "Embedding response has no vector",
                status_code=response.status_code,
                code=ErrorCode.PROVIDER_BAD_RESPONSE,
            )
        if len(embedding) != self._dimension:
            raise ProviderError(
                f"Embedding has {len(embedding)} components, expected {self._dimension}",
                status_code=response.status_code,
                code=ErrorCode.PROVIDER_BAD_RESPONSE,
            )
        return np.asarray(embedding, dtype=np.float32)

    def close(self) -> None:
        if self._client is not None and self._owns_client:
            self._client.close()
            self._client = None
