# Discovery Embedding Layer
# Vector embeddings behind semantic document matching

from rag.embeddings import (
    EmbeddingService,
    EmbeddingResult,
    BaseEmbeddingProvider,
    OpenAIEmbeddingProvider,
    LocalEmbeddingProvider,
    cosine_similarity,
    get_embedding_service,
)

__all__ = [
    "EmbeddingService",
    "EmbeddingResult",
    "BaseEmbeddingProvider",
    "OpenAIEmbeddingProvider",
    "LocalEmbeddingProvider",
    "cosine_similarity",
    "get_embedding_service",
]
