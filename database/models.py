"""
Discovery Database Models
SQLAlchemy async models for discovery requests, case documents and mappings
"""

import uuid
from datetime import datetime
from typing import Optional, List

from sqlalchemy import (
    String,
    Text,
    Integer,
    DateTime,
    ForeignKey,
    JSON,
    Index,
    UniqueConstraint,
    CheckConstraint,
)
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.orm import DeclarativeBase, relationship, Mapped, mapped_column
from pgvector.sqlalchemy import Vector

# JSONB on PostgreSQL, plain JSON elsewhere
JSONType = JSON().with_variant(JSONB(), "postgresql")

EMBEDDING_DIMENSIONS = 1536  # OpenAI text-embedding-3-small


def _new_id() -> str:
    return str(uuid.uuid4())


class Base(DeclarativeBase):
    """Base class for all models."""
    pass


# ============================================
# Case Documents (owned by the ingestion pipeline)
# ============================================

class Document(Base):
    """Classified case document. Read-only to the discovery engine."""
    __tablename__ = "documents"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_new_id)
    case_id: Mapped[str] = mapped_column(String(64), nullable=False)
    user_id: Mapped[str] = mapped_column(String(64), nullable=False)
    file_name: Mapped[str] = mapped_column(String(500), nullable=False)
    category: Mapped[Optional[str]] = mapped_column(String(50))  # Financial, Medical, ...
    subtype: Mapped[Optional[str]] = mapped_column(String(100))  # Bank Statement, Tax Return, ...
    # startDate, endDate, parties, amounts, summary
    metadata_: Mapped[Optional[dict]] = mapped_column("metadata", JSONType)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow)

    # Relationships
    chunks: Mapped[List["DocumentChunk"]] = relationship(
        "DocumentChunk", back_populates="document", cascade="all, delete-orphan", passive_deletes=True
    )

    __table_args__ = (
        Index("idx_documents_case_user", "case_id", "user_id"),
    )


class DocumentChunk(Base):
    """Embedded text chunk of a case document."""
    __tablename__ = "document_chunks"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_new_id)
    document_id: Mapped[str] = mapped_column(
        String(36),
        ForeignKey("documents.id", ondelete="CASCADE"),
        nullable=False
    )
    chunk_index: Mapped[int] = mapped_column(Integer, default=0)
    content: Mapped[str] = mapped_column(Text, nullable=False)
    embedding = mapped_column(Vector(EMBEDDING_DIMENSIONS), nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow)

    # Relationships
    document: Mapped["Document"] = relationship("Document", back_populates="chunks")

    __table_args__ = (
        Index("idx_document_chunks_document", "document_id"),
        Index(
            "idx_document_chunks_vector",
            "embedding",
            postgresql_using="hnsw",
            postgresql_with={"m": 16, "ef_construction": 64},
            postgresql_ops={"embedding": "vector_cosine_ops"},
        ),
    )


# ============================================
# Discovery Tables
# ============================================

class DiscoveryRequest(Base):
    """One RFP or Interrogatory served in a case."""
    __tablename__ = "discovery_requests"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_new_id)
    case_id: Mapped[str] = mapped_column(String(64), nullable=False)
    user_id: Mapped[str] = mapped_column(String(64), nullable=False)  # Denormalized owner
    type: Mapped[str] = mapped_column(String(20), nullable=False)  # RFP, Interrogatory
    number: Mapped[int] = mapped_column(Integer, nullable=False)
    text: Mapped[str] = mapped_column(Text, nullable=False)
    category_hint: Mapped[Optional[str]] = mapped_column(String(50))
    status: Mapped[str] = mapped_column(String(20), nullable=False, default="incomplete")
    completion_percentage: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    notes: Mapped[Optional[str]] = mapped_column(Text)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime,
        default=datetime.utcnow,
        onupdate=datetime.utcnow
    )

    # Relationships
    mappings: Mapped[List["DocumentRequestMapping"]] = relationship(
        "DocumentRequestMapping",
        back_populates="request",
        cascade="all, delete-orphan",
        passive_deletes=True,
    )

    __table_args__ = (
        UniqueConstraint("case_id", "type", "number", name="uq_discovery_requests_case_type_number"),
        CheckConstraint("number > 0", name="ck_discovery_requests_number_positive"),
        CheckConstraint(
            "completion_percentage >= 0 AND completion_percentage <= 100",
            name="ck_discovery_requests_completion_range",
        ),
        Index("idx_discovery_requests_case", "case_id"),
        Index("idx_discovery_requests_user", "user_id"),
        Index("idx_discovery_requests_status", "status"),
    )

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "caseId": self.case_id,
            "type": self.type,
            "number": self.number,
            "text": self.text,
            "categoryHint": self.category_hint,
            "status": self.status,
            "completionPercentage": self.completion_percentage or 0,
            "notes": self.notes,
        }


class DocumentRequestMapping(Base):
    """Links one case document to one discovery request."""
    __tablename__ = "document_request_mappings"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_new_id)
    document_id: Mapped[str] = mapped_column(
        String(36),
        ForeignKey("documents.id", ondelete="CASCADE"),
        nullable=False
    )
    request_id: Mapped[str] = mapped_column(
        String(36),
        ForeignKey("discovery_requests.id", ondelete="CASCADE"),
        nullable=False
    )
    case_id: Mapped[str] = mapped_column(String(64), nullable=False)  # Denormalized
    user_id: Mapped[str] = mapped_column(String(64), nullable=False)  # Denormalized
    source: Mapped[str] = mapped_column(String(20), nullable=False)  # ai_suggestion, manual_addition
    confidence: Mapped[Optional[int]] = mapped_column(Integer)  # 0-100, AI suggestions only
    reasoning: Mapped[Optional[str]] = mapped_column(Text)
    status: Mapped[str] = mapped_column(String(20), nullable=False, default="suggested")
    reviewed_at: Mapped[Optional[datetime]] = mapped_column(DateTime)
    reviewed_by: Mapped[Optional[str]] = mapped_column(String(64))
    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime,
        default=datetime.utcnow,
        onupdate=datetime.utcnow
    )

    # Relationships
    request: Mapped["DiscoveryRequest"] = relationship("DiscoveryRequest", back_populates="mappings")

    __table_args__ = (
        UniqueConstraint("document_id", "request_id", name="uq_document_request_mappings_document_request"),
        Index("idx_document_mappings_document", "document_id"),
        Index("idx_document_mappings_request", "request_id"),
        Index("idx_document_mappings_case", "case_id"),
        Index("idx_document_mappings_status", "status"),
    )

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "documentId": self.document_id,
            "requestId": self.request_id,
            "caseId": self.case_id,
            "source": self.source,
            "confidence": self.confidence,
            "reasoning": self.reasoning,
            "status": self.status,
            "reviewedAt": self.reviewed_at.isoformat() if self.reviewed_at else None,
            "reviewedBy": self.reviewed_by,
        }
