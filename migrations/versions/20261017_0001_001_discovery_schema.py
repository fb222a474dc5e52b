"""Discovery schema

Revision ID: 001
Revises: None
Create Date: 2026-10-17

Creates case documents and their embedded chunks, discovery requests, and
document-to-request mappings with their uniqueness constraints.
"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql

# revision identifiers, used by Alembic.
revision: str = "001"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    """Create discovery schema."""

    # Enable pgvector extension
    op.execute("CREATE EXTENSION IF NOT EXISTS vector")

    # =========================================================================
    # Case documents (written by the ingestion pipeline)
    # =========================================================================
    op.create_table(
        "documents",
        sa.Column("id", sa.String(36), primary_key=True),
        sa.Column("case_id", sa.String(64), nullable=False),
        sa.Column("user_id", sa.String(64), nullable=False),
        sa.Column("file_name", sa.String(500), nullable=False),
        sa.Column("category", sa.String(50), nullable=True),
        sa.Column("subtype", sa.String(100), nullable=True),
        sa.Column("metadata", postgresql.JSONB(), nullable=True),
        sa.Column("created_at", sa.DateTime(), server_default=sa.func.now()),
    )
    op.create_index("idx_documents_case_user", "documents", ["case_id", "user_id"])

    # Chunks (with vector embeddings)
    op.execute("""
        CREATE TABLE document_chunks (
            id VARCHAR(36) PRIMARY KEY,
            document_id VARCHAR(36) NOT NULL REFERENCES documents(id) ON DELETE CASCADE,
            chunk_index INTEGER DEFAULT 0,
            content TEXT NOT NULL,
            embedding vector(1536),
            created_at TIMESTAMP DEFAULT NOW()
        )
    """)
    op.create_index("idx_document_chunks_document", "document_chunks", ["document_id"])
    op.execute(
        "CREATE INDEX idx_document_chunks_vector ON document_chunks "
        "USING hnsw (embedding vector_cosine_ops) WITH (m = 16, ef_construction = 64)"
    )

    # =========================================================================
    # Discovery requests
    # =========================================================================
    op.create_table(
        "discovery_requests",
        sa.Column("id", sa.String(36), primary_key=True),
        sa.Column("case_id", sa.String(64), nullable=False),
        sa.Column("user_id", sa.String(64), nullable=False),
        sa.Column("type", sa.String(20), nullable=False),
        sa.Column("number", sa.Integer(), nullable=False),
        sa.Column("text", sa.Text(), nullable=False),
        sa.Column("category_hint", sa.String(50), nullable=True),
        sa.Column("status", sa.String(20), nullable=False, server_default="incomplete"),
        sa.Column("completion_percentage", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("notes", sa.Text(), nullable=True),
        sa.Column("created_at", sa.DateTime(), server_default=sa.func.now()),
        sa.Column("updated_at", sa.DateTime(), server_default=sa.func.now(), onupdate=sa.func.now()),
        sa.UniqueConstraint("case_id", "type", "number", name="uq_discovery_requests_case_type_number"),
        sa.CheckConstraint("number > 0", name="ck_discovery_requests_number_positive"),
        sa.CheckConstraint(
            "completion_percentage >= 0 AND completion_percentage <= 100",
            name="ck_discovery_requests_completion_range",
        ),
    )
    op.create_index("idx_discovery_requests_case", "discovery_requests", ["case_id"])
    op.create_index("idx_discovery_requests_user", "discovery_requests", ["user_id"])
    op.create_index("idx_discovery_requests_status", "discovery_requests", ["status"])

    # =========================================================================
    # Document to request mappings
    # =========================================================================
    op.create_table(
        "document_request_mappings",
        sa.Column("id", sa.String(36), primary_key=True),
        sa.Column("document_id", sa.String(36), sa.ForeignKey("documents.id", ondelete="CASCADE"), nullable=False),
        sa.Column("request_id", sa.String(36), sa.ForeignKey("discovery_requests.id", ondelete="CASCADE"), nullable=False),
        sa.Column("case_id", sa.String(64), nullable=False),
        sa.Column("user_id", sa.String(64), nullable=False),
        sa.Column("source", sa.String(20), nullable=False),
        sa.Column("confidence", sa.Integer(), nullable=True),
        sa.Column("reasoning", sa.Text(), nullable=True),
        sa.Column("status", sa.String(20), nullable=False, server_default="suggested"),
        sa.Column("reviewed_at", sa.DateTime(), nullable=True),
        sa.Column("reviewed_by", sa.String(64), nullable=True),
        sa.Column("created_at", sa.DateTime(), server_default=sa.func.now()),
        sa.Column("updated_at", sa.DateTime(), server_default=sa.func.now(), onupdate=sa.func.now()),
        sa.UniqueConstraint("document_id", "request_id", name="uq_document_request_mappings_document_request"),
    )
    op.create_index("idx_document_mappings_document", "document_request_mappings", ["document_id"])
    op.create_index("idx_document_mappings_request", "document_request_mappings", ["request_id"])
    op.create_index("idx_document_mappings_case", "document_request_mappings", ["case_id"])
    op.create_index("idx_document_mappings_status", "document_request_mappings", ["status"])

    # =========================================================================
    # Automatic updated_at trigger
    # =========================================================================
    op.execute("""
        CREATE OR REPLACE FUNCTION update_updated_at_column()
        RETURNS TRIGGER AS $$
        BEGIN
            NEW.updated_at = NOW();
            RETURN NEW;
        END;
        $$ language 'plpgsql';
    """)

    for table in ["discovery_requests", "document_request_mappings"]:
        op.execute(f"""
            CREATE TRIGGER update_{table}_updated_at
            BEFORE UPDATE ON {table}
            FOR EACH ROW
            EXECUTE FUNCTION update_updated_at_column();
        """)


def downgrade() -> None:
    """Drop discovery schema."""
    for table in ["discovery_requests", "document_request_mappings"]:
        op.execute(f"DROP TRIGGER IF EXISTS update_{table}_updated_at ON {table}")

    op.execute("DROP FUNCTION IF EXISTS update_updated_at_column()")

    # Drop tables in reverse dependency order
    op.drop_table("document_request_mappings")
    op.drop_table("discovery_requests")
    op.drop_table("document_chunks")
    op.drop_table("documents")

    op.execute("DROP EXTENSION IF EXISTS vector")
