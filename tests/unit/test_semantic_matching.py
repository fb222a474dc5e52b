"""
Discovery Unit Tests: Semantic Matching
=======================================

Tests:
- Chunk grouping into document-level similarity
- Limit, ordering and fetch size
- Degradation to empty/zero results on failure
"""

from contextlib import asynccontextmanager
from types import SimpleNamespace
from unittest.mock import AsyncMock, MagicMock

import pytest

from core.config import ScoringConfig
from discovery.errors import DiscoveryValidationError
from discovery.semantic_matching import CHUNK_FETCH_FACTOR, SemanticMatcher
from rag.embeddings import EmbeddingService, LocalEmbeddingProvider


def chunk_row(chunk_id, document_id, similarity, file_name=None):
    return SimpleNamespace(
        chunk_id=chunk_id,
        document_id=document_id,
        content=f"content of {chunk_id}",
        file_name=file_name or f"{document_id}.pdf",
        category="Financial",
        subtype=None,
        similarity=similarity,
    )


@pytest.fixture
def mock_session():
    session = MagicMock()

    @asynccontextmanager
    async def begin_nested():
        yield

    session.begin_nested = begin_nested
    return session


@pytest.fixture
def matcher(mock_session):
    service = EmbeddingService(provider=LocalEmbeddingProvider(dimensions=16))
    matcher = SemanticMatcher(mock_session, embedding_service=service, config=ScoringConfig())
    matcher.chunks = MagicMock()
    matcher.chunks.search_similar = AsyncMock(return_value=[])
    matcher.chunks.best_similarity = AsyncMock(return_value={})
    return matcher


@pytest.mark.unit
class TestSemanticMatchDocuments:
    """Tests for SemanticMatcher.semantic_match_documents"""

    @pytest.mark.asyncio
    async def test_groups_chunks_by_document_with_max_similarity(self, matcher):
        matcher.chunks.search_similar.return_value = [
            chunk_row("c1", "doc-a", 0.91),
            chunk_row("c2", "doc-b", 0.85),
            chunk_row("c3", "doc-a", 0.62),
            chunk_row("c4", "doc-c", 0.40),
        ]
        results = await matcher.semantic_match_documents("bank statements", "case-1", "user-1")

        assert [r.document_id for r in results] == ["doc-a", "doc-b", "doc-c"]
        assert results[0].similarity == pytest.approx(0.91)
        assert [c.chunk_id for c in results[0].matching_chunks] == ["c1", "c3"]
        assert results[0].file_name == "doc-a.pdf"

    @pytest.mark.asyncio
    async def test_truncates_to_limit_and_overfetches_chunks(self, matcher):
        matcher.chunks.search_similar.return_value = [
            chunk_row("c1", "doc-a", 0.9),
            chunk_row("c2", "doc-b", 0.8),
            chunk_row("c3", "doc-c", 0.7),
        ]
        results = await matcher.semantic_match_documents("bank statements", "case-1", "user-1", limit=2)

        assert [r.document_id for r in results] == ["doc-a", "doc-b"]
        kwargs = matcher.chunks.search_similar.await_args.kwargs
        assert kwargs["limit"] == 2 * CHUNK_FETCH_FACTOR
        assert kwargs["min_similarity"] == 0.3
        assert kwargs["case_id"] == "case-1"
        assert kwargs["user_id"] == "user-1"

    @pytest.mark.asyncio
    async def test_explicit_min_similarity(self, matcher):
        await matcher.semantic_match_documents("bank", "case-1", "user-1", min_similarity=0.6)
        assert matcher.chunks.search_similar.await_args.kwargs["min_similarity"] == 0.6

    @pytest.mark.asyncio
    @pytest.mark.parametrize("query", ["", "   "])
    async def test_empty_query_is_rejected(self, matcher, query):
        with pytest.raises(DiscoveryValidationError):
            await matcher.semantic_match_documents(query, "case-1", "user-1")
        matcher.chunks.search_similar.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_database_failure_returns_empty(self, matcher):
        matcher.chunks.search_similar.side_effect = RuntimeError("relation document_chunks does not exist")
        assert await matcher.semantic_match_documents("bank", "case-1", "user-1") == []

    @pytest.mark.asyncio
    async def test_embedding_failure_returns_empty(self, matcher):
        matcher.embedding_service.embed = AsyncMock(side_effect=ConnectionError("provider down"))
        assert await matcher.semantic_match_documents("bank", "case-1", "user-1") == []
        matcher.chunks.search_similar.assert_not_awaited()


@pytest.mark.unit
class TestDocumentMatchScores:
    """Tests for get_document_match_score and batch_document_match_scores"""

    @pytest.mark.asyncio
    async def test_batch_is_zero_filled(self, matcher):
        matcher.chunks.best_similarity.return_value = {"doc-a": 0.75}
        scores = await matcher.batch_document_match_scores(["doc-a", "doc-b"], "bank statements")
        assert scores == {"doc-a": 0.75, "doc-b": 0.0}

    @pytest.mark.asyncio
    async def test_batch_failure_returns_zeros(self, matcher):
        matcher.chunks.best_similarity.side_effect = RuntimeError("boom")
        scores = await matcher.batch_document_match_scores(["doc-a"], "bank statements")
        assert scores == {"doc-a": 0.0}

    @pytest.mark.asyncio
    async def test_batch_empty_inputs(self, matcher):
        assert await matcher.batch_document_match_scores([], "bank") == {}
        assert await matcher.batch_document_match_scores(["doc-a"], "") == {"doc-a": 0.0}
        matcher.chunks.best_similarity.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_single_document_score(self, matcher):
        matcher.chunks.best_similarity.return_value = {"doc-a": 0.42}
        assert await matcher.get_document_match_score("doc-a", "bank") == pytest.approx(0.42)
        assert await matcher.get_document_match_score("doc-z", "bank") == 0.0
