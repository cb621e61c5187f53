"""
Embedding Service for generating vector representations.

Uses OpenAI's embedding models when an API key is configured, and a
deterministic local embedding otherwise. The local embedding is a crude
character/position projection: it keeps the system working without
network access, but its similarities are not semantic.
"""

import logging
import math
from abc import ABC, abstractmethod
from typing import Literal, Optional

from openai import AsyncOpenAI

from .base import EMBEDDING_DIMENSION

logger = logging.getLogger("rag_memory.memory.embeddings")

DEFAULT_MODEL = "text-embedding-3-small"
MAX_INPUT_CHARS = 8000


def fallback_embedding(text: str, dimension: int = EMBEDDING_DIMENSION) -> list[float]:
    """
    Deterministic, non-semantic embedding derived from character codes.

    Each character bumps one slot chosen by its code point and position.
    The result is L2-normalized unless it is all zeros (e.g. empty text).
    """
    vector = [0.0] * dimension

    for i, char in enumerate(text):
        code = ord(char)
        idx = (code * (i + 1)) % dimension
        vector[idx] = (vector[idx] + code / 255) % 1

    magnitude = math.sqrt(sum(value * value for value in vector))
    if magnitude > 0:
        vector = [value / magnitude for value in vector]

    return vector


class EmbeddingService(ABC):
    """Abstract interface for embedding generation."""

    @property
    @abstractmethod
    def dimension(self) -> int:
        """Return the dimension of embeddings produced."""
        pass

    @abstractmethod
    async def embed(self, text: str) -> list[float]:
        """Generate embedding for a single text. Never raises."""
        pass

    async def close(self) -> None:
        """Release any client resources."""
        pass


class FallbackEmbeddingService(EmbeddingService):
    """Local-only embedding service. No network, no model download."""

    def __init__(self, dimension: int = EMBEDDING_DIMENSION):
        self._dimension = dimension
        logger.info(f"FallbackEmbeddingService initialized: dimensions={dimension}")

    @property
    def dimension(self) -> int:
        return self._dimension

    async def embed(self, text: str) -> list[float]:
        return fallback_embedding(text, self._dimension)


class OpenAIEmbeddingService(EmbeddingService):
    """
    OpenAI embedding service with a local fallback.

    The default model (text-embedding-3-small) produces 1536 dimensions,
    which matches the memory table's vector index. Any provider failure
    degrades to `fallback_embedding` instead of propagating.
    """

    def __init__(
        self,
        api_key: str = "",
        model: str = DEFAULT_MODEL,
        timeout: float = 10.0,
        max_input_chars: int = MAX_INPUT_CHARS,
        base_url: Optional[str] = None,
        max_retries: int = 0,
    ):
        """
        Initialize OpenAI embedding service.

        Args:
            api_key: OpenAI API key. Empty means fallback mode.
            model: Embedding model name
            timeout: Seconds before a request is abandoned
            max_input_chars: Input is truncated to this many characters
            base_url: Optional OpenAI-compatible endpoint
            max_retries: Retries the SDK makes before giving up
        """
        self._api_key = api_key
        self.model = model
        self.timeout = timeout
        self.max_input_chars = max_input_chars
        self.base_url = base_url
        self.max_retries = max_retries
        self._client: AsyncOpenAI | None = None

        if api_key:
            logger.info(f"OpenAIEmbeddingService initialized: model={model}")
        else:
            logger.warning("No OPENAI_API_KEY configured - embeddings will use the local fallback")

    @property
    def dimension(self) -> int:
        return EMBEDDING_DIMENSION

    def is_configured(self) -> bool:
        return bool(self._api_key)

    def _get_client(self) -> AsyncOpenAI:
        """Get or create the async OpenAI client."""
        if self._client is None:
            self._client = AsyncOpenAI(
                api_key=self._api_key,
                base_url=self.base_url,
                timeout=self.timeout,
                max_retries=self.max_retries,
            )
        return self._client

    async def embed(self, text: str) -> list[float]:
        """Generate embedding for a single text, falling back locally on any failure."""
        if not self._api_key:
            logger.warning("No OPENAI_API_KEY - using fallback embedding")
            return fallback_embedding(text)

        try:
            client = self._get_client()
            response = await client.embeddings.create(
                model=self.model,
                input=text[: self.max_input_chars],
            )
            embedding = response.data[0].embedding
            if not isinstance(embedding, list) or len(embedding) != EMBEDDING_DIMENSION:
                size = len(embedding) if isinstance(embedding, list) else type(embedding).__name__
                raise ValueError(f"Unexpected embedding payload from {self.model}: {size}")
            return embedding
        except Exception as e:
            logger.error(f"Embedding error, using fallback embedding: {e}")
            return fallback_embedding(text)

    async def close(self) -> None:
        if self._client is not None:
            await self._client.close()
            self._client = None


def create_embedding_service(
    provider: Literal["openai", "local"] = "openai",
    api_key: str = "",
    model: str = "",
    timeout: float = 10.0,
    max_input_chars: int = MAX_INPUT_CHARS,
    base_url: Optional[str] = None,
) -> EmbeddingService:
    """
    Factory function to create the appropriate embedding service.

    Args:
        provider: "openai" or "local"
        api_key: OpenAI API key. Empty selects the fallback path at call time.
        model: Model name (optional, uses default)
        timeout: Request timeout in seconds
        max_input_chars: Input is truncated to this many characters
        base_url: Optional OpenAI-compatible endpoint

    Returns:
        Configured EmbeddingService instance
    """
    if provider == "openai":
        return OpenAIEmbeddingService(
            api_key=api_key,
            model=model or DEFAULT_MODEL,
            timeout=timeout,
            max_input_chars=max_input_chars,
            base_url=base_url,
        )
    elif provider == "local":
        return FallbackEmbeddingService()
    else:
        raise ValueError(f"Unknown embedding provider: {provider}")
