"""
Discovery Embedding Service
Generates vector embeddings for semantic matching using OpenAI or a local
deterministic hashing model
"""

import re
import hashlib
import logging
from abc import ABC, abstractmethod
from typing import List, Optional
from dataclasses import dataclass

import numpy as np

from core.config import EmbeddingConfig, EmbeddingProviderName

logger = logging.getLogger(__name__)


@dataclass
class EmbeddingResult:
    """Result of an embedding operation."""
    text: str
    embedding: List[float]
    model: str
    dimensions: int


class BaseEmbeddingProvider(ABC):
    """Abstract base class for embedding providers."""

    @abstractmethod
    async def embed_text(self, text: str) -> List[float]:
        """Generate embedding for a single text."""
        pass

    @property
    @abstractmethod
    def dimensions(self) -> int:
        """Return the dimension of embeddings."""
        pass

    @property
    @abstractmethod
    def model_name(self) -> str:
        """Return the model name."""
        pass


class OpenAIEmbeddingProvider(BaseEmbeddingProvider):
    """OpenAI embedding provider using text-embedding-3-small."""

    def __init__(
        self,
        api_key: Optional[str] = None,
        model: str = "text-embedding-3-small",
        dimensions: int = 1536,
    ):
        self.api_key = api_key
        self.model = model
        self._dimensions = dimensions
        self._client = None

    def _get_client(self):
        if self._client is None:
            from openai import AsyncOpenAI
            self._client = AsyncOpenAI(api_key=self.api_key)
        return self._client

    async def embed_text(self, text: str) -> List[float]:
        """Generate embedding for a single text."""
        client = self._get_client()
        response = await client.embeddings.create(
            model=self.model,
            input=text,
        )
        return response.data[0].embedding

    @property
    def dimensions(self) -> int:
        return self._dimensions

    @property
    def model_name(self) -> str:
        return self.model


class LocalEmbeddingProvider(BaseEmbeddingProvider):
    """
    Local feature-hashing embedding provider.

    Each lowercased word token is hashed into one of ``dimensions`` buckets
    with a signed weight, and the result is L2-normalized. Texts sharing
    vocabulary land close together under cosine similarity. Useful for
    development, tests or air-gapped environments.
    """

    TOKEN_PATTERN = re.compile(r"[a-z0-9]+")

    def __init__(self, dimensions: int = 1536):
        self._dimensions = dimensions

    def _vectorize(self, text: str) -> np.ndarray:
        vector = np.zeros(self._dimensions, dtype=np.float32)
        for token in self.TOKEN_PATTERN.findall((text or "").lower()):
            digest = hashlib.sha256(token.encode()).digest()
            bucket = int.from_bytes(digest[:4], "big") % self._dimensions
            sign = 1.0 if digest[4] % 2 == 0 else -1.0
            vector[bucket] += sign

        norm = np.linalg.norm(vector)
        if norm > 0:
            vector /= norm
        return vector

    async def embed_text(self, text: str) -> List[float]:
        """Generate embedding locally."""
        return self._vectorize(text).tolist()

    @property
    def dimensions(self) -> int:
        return self._dimensions

    @property
    def model_name(self) -> str:
        return f"local-hash-{self._dimensions}"


def cosine_similarity(a: List[float], b: List[float]) -> float:
    """Cosine similarity of two vectors; 0.0 when either is all zeros."""
    va = np.asarray(a, dtype=np.float32)
    vb = np.asarray(b, dtype=np.float32)
    denom = float(np.linalg.norm(va) * np.linalg.norm(vb))
    if denom == 0.0:
        return 0.0
    return float(np.dot(va, vb) / denom)


class EmbeddingService:
    """
    Unified embedding service with per-instance caching.
    """

    def __init__(
        self,
        config: Optional[EmbeddingConfig] = None,
        provider: Optional[BaseEmbeddingProvider] = None,
        cache_enabled: bool = True,
    ):
        self.config = config or EmbeddingConfig()
        self.cache_enabled = cache_enabled
        self._cache: dict = {}
        self._provider = provider or self._init_provider()

    def _init_provider(self) -> BaseEmbeddingProvider:
        """Initialize the embedding provider named in configuration."""
        if self.config.provider == EmbeddingProviderName.OPENAI:
            if not self.config.openai_api_key:
                logger.warning("OPENAI_API_KEY not set; embedding calls will fail")
            return OpenAIEmbeddingProvider(
                api_key=self.config.openai_api_key,
                model=self.config.model,
                dimensions=self.config.dimensions,
            )
        return LocalEmbeddingProvider(dimensions=self.config.dimensions)

    @property
    def dimensions(self) -> int:
        """Get embedding dimensions."""
        return self._provider.dimensions

    @property
    def model_name(self) -> str:
        """Get model name."""
        return self._provider.model_name

    def _cache_key(self, text: str) -> str:
        return hashlib.md5(f"{self.model_name}:{text}".encode()).hexdigest()

    async def embed(self, text: str) -> EmbeddingResult:
        """
        Generate embedding for a single text with caching.

        Args:
            text: Text to embed

        Returns:
            EmbeddingResult with embedding vector
        """
        cache_key = self._cache_key(text)
        if self.cache_enabled and cache_key in self._cache:
            return self._cache[cache_key]

        embedding = await self._provider.embed_text(text)

        result = EmbeddingResult(
            text=text,
            embedding=embedding,
            model=self.model_name,
            dimensions=len(embedding),
        )

        if self.cache_enabled:
            self._cache[cache_key] = result

        return result

    def clear_cache(self):
        """Clear the embedding cache."""
        self._cache.clear()


def get_embedding_service(config: Optional[EmbeddingConfig] = None) -> EmbeddingService:
    """Create an embedding service from configuration (environment by default)."""
    if config is None:
        from core.config import get_config
        config = get_config().embeddings
    return EmbeddingService(config=config)
