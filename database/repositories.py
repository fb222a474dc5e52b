"""
Discovery Database Repositories
Data access layer for discovery requests, mappings and case documents
"""

from datetime import datetime
from typing import Optional, List, Dict, Any, Iterable

from sqlalchemy import select, update, delete, func, and_
from sqlalchemy.ext.asyncio import AsyncSession

from database.models import (
    Document,
    DocumentChunk,
    DiscoveryRequest,
    DocumentRequestMapping,
)


# ============================================
# Discovery Request Repository
# ============================================

class DiscoveryRequestRepository:
    """Repository for discovery request operations. Scoped to one owner."""

    def __init__(self, session: AsyncSession, user_id: str):
        self.session = session
        self.user_id = user_id

    async def create(
        self,
        case_id: str,
        type: str,
        number: int,
        text: str,
        category_hint: Optional[str] = None,
        notes: Optional[str] = None,
    ) -> DiscoveryRequest:
        """Create a new discovery request."""
        request = DiscoveryRequest(
            case_id=case_id,
            user_id=self.user_id,
            type=type,
            number=number,
            text=text,
            category_hint=category_hint,
            notes=notes,
            status="incomplete",
            completion_percentage=0,
        )
        self.session.add(request)
        await self.session.flush()
        return request

    async def get_by_id(self, request_id: str) -> Optional[DiscoveryRequest]:
        """Get request by ID, only if owned by this user."""
        result = await self.session.execute(
            select(DiscoveryRequest).where(and_(
                DiscoveryRequest.id == request_id,
                DiscoveryRequest.user_id == self.user_id
            ))
        )
        return result.scalar_one_or_none()

    async def list_by_case(self, case_id: str) -> List[DiscoveryRequest]:
        """List a case's requests ordered by type then number."""
        result = await self.session.execute(
            select(DiscoveryRequest)
            .where(and_(
                DiscoveryRequest.case_id == case_id,
                DiscoveryRequest.user_id == self.user_id
            ))
            .order_by(DiscoveryRequest.type, DiscoveryRequest.number)
        )
        return list(result.scalars().all())

    async def exists(self, case_id: str, type: str, number: int) -> bool:
        """Check whether (case, type, number) is already taken."""
        result = await self.session.execute(
            select(func.count(DiscoveryRequest.id)).where(and_(
                DiscoveryRequest.case_id == case_id,
                DiscoveryRequest.user_id == self.user_id,
                DiscoveryRequest.type == type,
                DiscoveryRequest.number == number
            ))
        )
        return (result.scalar() or 0) > 0

    async def max_number(self, case_id: str, type: str) -> Optional[int]:
        """Highest number used for a request type in a case."""
        result = await self.session.execute(
            select(func.max(DiscoveryRequest.number)).where(and_(
                DiscoveryRequest.case_id == case_id,
                DiscoveryRequest.user_id == self.user_id,
                DiscoveryRequest.type == type
            ))
        )
        return result.scalar()

    async def update(self, request_id: str, **kwargs) -> Optional[DiscoveryRequest]:
        """Update request fields. Returns None when missing or not owned."""
        kwargs["updated_at"] = datetime.utcnow()
        result = await self.session.execute(
            update(DiscoveryRequest)
            .where(and_(
                DiscoveryRequest.id == request_id,
                DiscoveryRequest.user_id == self.user_id
            ))
            .values(**kwargs)
            .execution_options(synchronize_session="fetch")
        )
        if result.rowcount == 0:
            return None
        return await self.get_by_id(request_id)

    async def set_coverage(self, request_id: str, status: str, completion_percentage: int) -> None:
        """Write recomputed coverage. Not owner-scoped: callers have already authorized."""
        await self.session.execute(
            update(DiscoveryRequest)
            .where(DiscoveryRequest.id == request_id)
            .values(
                status=status,
                completion_percentage=completion_percentage,
                updated_at=datetime.utcnow(),
            )
            .execution_options(synchronize_session="fetch")
        )

    async def delete(self, request_id: str) -> bool:
        """Delete a request. Mappings go with it via ON DELETE CASCADE."""
        result = await self.session.execute(
            delete(DiscoveryRequest).where(and_(
                DiscoveryRequest.id == request_id,
                DiscoveryRequest.user_id == self.user_id
            ))
        )
        return result.rowcount > 0

    async def delete_by_case(self, case_id: str) -> int:
        """Delete every request of a case owned by this user."""
        result = await self.session.execute(
            delete(DiscoveryRequest).where(and_(
                DiscoveryRequest.case_id == case_id,
                DiscoveryRequest.user_id == self.user_id
            ))
        )
        return result.rowcount or 0

    async def get_stats(self, case_id: str) -> Dict[str, Any]:
        """Per-type and per-status counts plus the average completion."""
        scope = and_(
            DiscoveryRequest.case_id == case_id,
            DiscoveryRequest.user_id == self.user_id
        )

        type_counts = await self.session.execute(
            select(DiscoveryRequest.type, func.count(DiscoveryRequest.id))
            .where(scope)
            .group_by(DiscoveryRequest.type)
        )
        status_counts = await self.session.execute(
            select(DiscoveryRequest.status, func.count(DiscoveryRequest.id))
            .where(scope)
            .group_by(DiscoveryRequest.status)
        )
        average = await self.session.execute(
            select(func.avg(DiscoveryRequest.completion_percentage)).where(scope)
        )

        return {
            "by_type": {row[0]: row[1] for row in type_counts.all()},
            "by_status": {row[0]: row[1] for row in status_counts.all()},
            "average_completion": average.scalar(),
        }


# ============================================
# Document Request Mapping Repository
# ============================================

class DocumentRequestMappingRepository:
    """Repository for document-to-request mapping operations."""

    def __init__(self, session: AsyncSession, user_id: str):
        self.session = session
        self.user_id = user_id

    async def create(
        self,
        document_id: str,
        request_id: str,
        case_id: str,
        source: str,
        status: str,
        confidence: Optional[int] = None,
        reasoning: Optional[str] = None,
        reviewed_at: Optional[datetime] = None,
        reviewed_by: Optional[str] = None,
    ) -> DocumentRequestMapping:
        """Create a mapping."""
        mapping = DocumentRequestMapping(
            document_id=document_id,
            request_id=request_id,
            case_id=case_id,
            user_id=self.user_id,
            source=source,
            status=status,
            confidence=confidence,
            reasoning=reasoning,
            reviewed_at=reviewed_at,
            reviewed_by=reviewed_by,
        )
        self.session.add(mapping)
        await self.session.flush()
        return mapping

    async def get_by_id(self, mapping_id: str) -> Optional[DocumentRequestMapping]:
        """Get mapping by ID, only if owned by this user."""
        result = await self.session.execute(
            select(DocumentRequestMapping).where(and_(
                DocumentRequestMapping.id == mapping_id,
                DocumentRequestMapping.user_id == self.user_id
            ))
        )
        return result.scalar_one_or_none()

    async def get_by_pair(self, document_id: str, request_id: str) -> Optional[DocumentRequestMapping]:
        """Find the mapping for a (document, request) pair, whoever owns it."""
        result = await self.session.execute(
            select(DocumentRequestMapping).where(and_(
                DocumentRequestMapping.document_id == document_id,
                DocumentRequestMapping.request_id == request_id
            ))
        )
        return result.scalar_one_or_none()

    async def list_by_request(self, request_id: str) -> List[DocumentRequestMapping]:
        """List a request's mappings, newest first."""
        result = await self.session.execute(
            select(DocumentRequestMapping)
            .where(and_(
                DocumentRequestMapping.request_id == request_id,
                DocumentRequestMapping.user_id == self.user_id
            ))
            .order_by(DocumentRequestMapping.created_at.desc())
        )
        return list(result.scalars().all())

    async def list_by_document(self, document_id: str) -> List[DocumentRequestMapping]:
        """List a document's mappings, newest first."""
        result = await self.session.execute(
            select(DocumentRequestMapping)
            .where(and_(
                DocumentRequestMapping.document_id == document_id,
                DocumentRequestMapping.user_id == self.user_id
            ))
            .order_by(DocumentRequestMapping.created_at.desc())
        )
        return list(result.scalars().all())

    async def list_with_documents(self, request_id: str) -> List[tuple]:
        """Mappings of a request joined to their documents, newest first."""
        result = await self.session.execute(
            select(DocumentRequestMapping, Document)
            .join(Document, Document.id == DocumentRequestMapping.document_id)
            .where(and_(
                DocumentRequestMapping.request_id == request_id,
                DocumentRequestMapping.user_id == self.user_id
            ))
            .order_by(DocumentRequestMapping.created_at.desc())
        )
        return list(result.all())

    async def list_by_case(self, case_id: str) -> List[DocumentRequestMapping]:
        """All mappings in a case owned by this user."""
        result = await self.session.execute(
            select(DocumentRequestMapping)
            .where(and_(
                DocumentRequestMapping.case_id == case_id,
                DocumentRequestMapping.user_id == self.user_id
            ))
            .order_by(DocumentRequestMapping.created_at.desc())
        )
        return list(result.scalars().all())

    async def mapped_document_ids(self, request_id: str) -> List[str]:
        """IDs of documents already mapped to a request, in any status."""
        result = await self.session.execute(
            select(DocumentRequestMapping.document_id)
            .where(DocumentRequestMapping.request_id == request_id)
        )
        return list(result.scalars().all())

    async def count_accepted(self, request_id: str) -> int:
        """Number of accepted mappings this user holds for a request."""
        result = await self.session.execute(
            select(func.count(DocumentRequestMapping.id)).where(and_(
                DocumentRequestMapping.request_id == request_id,
                DocumentRequestMapping.user_id == self.user_id,
                DocumentRequestMapping.status == "accepted"
            ))
        )
        return result.scalar() or 0

    async def update_status(
        self,
        mapping_id: str,
        status: str,
        reviewed_by: str,
    ) -> Optional[DocumentRequestMapping]:
        """Record a review decision."""
        now = datetime.utcnow()
        result = await self.session.execute(
            update(DocumentRequestMapping)
            .where(and_(
                DocumentRequestMapping.id == mapping_id,
                DocumentRequestMapping.user_id == self.user_id
            ))
            .values(status=status, reviewed_at=now, reviewed_by=reviewed_by, updated_at=now)
            .execution_options(synchronize_session="fetch")
        )
        if result.rowcount == 0:
            return None
        return await self.get_by_id(mapping_id)

    async def delete(self, mapping_id: str) -> bool:
        """Delete a mapping owned by this user."""
        result = await self.session.execute(
            delete(DocumentRequestMapping).where(and_(
                DocumentRequestMapping.id == mapping_id,
                DocumentRequestMapping.user_id == self.user_id
            ))
        )
        return result.rowcount > 0


# ============================================
# Case Document Repository (read-only)
# ============================================

class CaseDocumentRepository:
    """Read access to classified case documents."""

    def __init__(self, session: AsyncSession, user_id: str):
        self.session = session
        self.user_id = user_id

    async def get_by_id(self, document_id: str) -> Optional[Document]:
        """Get document by ID, only if owned by this user."""
        result = await self.session.execute(
            select(Document).where(and_(
                Document.id == document_id,
                Document.user_id == self.user_id
            ))
        )
        return result.scalar_one_or_none()

    async def list_by_case(
        self,
        case_id: str,
        exclude_ids: Optional[Iterable[str]] = None,
    ) -> List[Document]:
        """List a case's documents, optionally leaving some out."""
        query = select(Document).where(and_(
            Document.case_id == case_id,
            Document.user_id == self.user_id
        ))
        excluded = list(exclude_ids or [])
        if excluded:
            query = query.where(Document.id.not_in(excluded))
        result = await self.session.execute(query.order_by(Document.created_at))
        return list(result.scalars().all())

    async def list_by_ids(self, document_ids: Iterable[str]) -> List[Document]:
        """Fetch several documents at once."""
        ids = list(document_ids)
        if not ids:
            return []
        result = await self.session.execute(
            select(Document).where(and_(
                Document.id.in_(ids),
                Document.user_id == self.user_id
            ))
        )
        return list(result.scalars().all())


# ============================================
# Document Chunk Repository (vector search)
# ============================================

class DocumentChunkRepository:
    """Vector similarity queries over embedded document chunks."""

    def __init__(self, session: AsyncSession):
        self.session = session

    async def search_similar(
        self,
        query_embedding: List[float],
        case_id: str,
        user_id: str,
        min_similarity: float,
        limit: int,
    ) -> List[Any]:
        """
        Nearest chunks in a case by cosine similarity.
        Rows carry chunk_id, document_id, content, file_name, category,
        subtype and similarity.
        """
        distance = DocumentChunk.embedding.cosine_distance(query_embedding)
        similarity = (1 - distance).label("similarity")

        result = await self.session.execute(
            select(
                DocumentChunk.id.label("chunk_id"),
                DocumentChunk.document_id,
                DocumentChunk.content,
                Document.file_name,
                Document.category,
                Document.subtype,
                similarity,
            )
            .join(Document, Document.id == DocumentChunk.document_id)
            .where(and_(
                Document.case_id == case_id,
                Document.user_id == user_id,
                DocumentChunk.embedding.is_not(None),
                (1 - distance) >= min_similarity
            ))
            .order_by(distance)
            .limit(limit)
        )
        return list(result.all())

    async def best_similarity(
        self,
        query_embedding: List[float],
        document_ids: List[str],
    ) -> Dict[str, float]:
        """Highest chunk similarity per document, for documents with embeddings."""
        if not document_ids:
            return {}
        distance = DocumentChunk.embedding.cosine_distance(query_embedding)

        result = await self.session.execute(
            select(
                DocumentChunk.document_id,
                func.max(1 - distance).label("similarity"),
            )
            .where(and_(
                DocumentChunk.document_id.in_(document_ids),
                DocumentChunk.embedding.is_not(None)
            ))
            .group_by(DocumentChunk.document_id)
        )
        return {row.document_id: float(row.similarity or 0.0) for row in result.all()}
