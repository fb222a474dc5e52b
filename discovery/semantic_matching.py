"""
Discovery Semantic Matching
Embedding similarity between request text and embedded document chunks
"""

import logging
from typing import Dict, List, Optional

from sqlalchemy.ext.asyncio import AsyncSession

from core.config import ScoringConfig, get_config
from database.repositories import DocumentChunkRepository
from rag.embeddings import EmbeddingService, get_embedding_service

from .errors import DiscoveryValidationError
from .models import ChunkMatch, SemanticMatchResult

logger = logging.getLogger(__name__)

# Chunks fetched per requested document, so grouping still fills the limit
CHUNK_FETCH_FACTOR = 3


class SemanticMatcher:
    """
    Finds a case's documents whose chunks are close to a query text.

    Every failure past input validation (embedding provider, database) is
    logged and degrades to an empty or zero result, so scoring carries on
    with the non-semantic signals.
    """

    def __init__(
        self,
        session: AsyncSession,
        embedding_service: Optional[EmbeddingService] = None,
        config: Optional[ScoringConfig] = None,
    ):
        self.session = session
        self.embedding_service = embedding_service or get_embedding_service()
        self.config = config or get_config().scoring
        self.chunks = DocumentChunkRepository(session)

    async def _embed(self, text: str) -> List[float]:
        result = await self.embedding_service.embed(text)
        return result.embedding

    async def semantic_match_documents(
        self,
        query_text: str,
        case_id: str,
        user_id: str,
        min_similarity: Optional[float] = None,
        limit: int = 20,
    ) -> List[SemanticMatchResult]:
        """
        Documents ranked by their best chunk similarity to ``query_text``.

        Raises:
            DiscoveryValidationError: empty query text
        """
        if not query_text or not query_text.strip():
            raise DiscoveryValidationError("Query text is required for semantic matching")
        if min_similarity is None:
            min_similarity = self.config.semantic_min_similarity

        try:
            embedding = await self._embed(query_text)
            async with self.session.begin_nested():
                rows = await self.chunks.search_similar(
                    embedding,
                    case_id=case_id,
                    user_id=user_id,
                    min_similarity=min_similarity,
                    limit=limit * CHUNK_FETCH_FACTOR,
                )
        except Exception:
            logger.warning("Semantic match failed", exc_info=True, extra={"case_id": case_id})
            return []

        documents: Dict[str, SemanticMatchResult] = {}
        for row in rows:
            similarity = float(row.similarity)
            match = documents.get(row.document_id)
            if match is None:
                match = SemanticMatchResult(
                    document_id=row.document_id,
                    file_name=row.file_name,
                    category=row.category,
                    subtype=row.subtype,
                )
                documents[row.document_id] = match
            match.matching_chunks.append(
                ChunkMatch(chunk_id=row.chunk_id, content=row.content, similarity=similarity)
            )
            match.similarity = max(match.similarity, similarity)

        ranked = sorted(documents.values(), key=lambda m: m.similarity, reverse=True)
        logger.debug("Semantic match: %d chunks over %d documents", len(rows), len(ranked))
        return ranked[:limit]

    async def get_document_match_score(self, document_id: str, query_text: str) -> float:
        """Best chunk similarity of one document; 0.0 without embeddings or on failure."""
        scores = await self.batch_document_match_scores([document_id], query_text)
        return scores.get(document_id, 0.0)

    async def batch_document_match_scores(
        self,
        document_ids: List[str],
        query_text: str,
    ) -> Dict[str, float]:
        """Best chunk similarity per document, zero-filled."""
        if not document_ids:
            return {}
        scores = {document_id: 0.0 for document_id in document_ids}
        if not query_text or not query_text.strip():
            return scores

        try:
            embedding = await self._embed(query_text)
            async with self.session.begin_nested():
                found = await self.chunks.best_similarity(embedding, list(document_ids))
        except Exception:
            logger.warning("Semantic scoring failed", exc_info=True)
            return scores

        scores.update(found)
        return scores
