# Discovery Database Layer
# PostgreSQL + pgvector storage for discovery requests and mappings

from database.connection import get_db, get_db_context, init_db, health_check, AsyncSessionLocal
from database.models import (
    Base,
    Document,
    DocumentChunk,
    DiscoveryRequest,
    DocumentRequestMapping,
)
from database.repositories import (
    DiscoveryRequestRepository,
    DocumentRequestMappingRepository,
    CaseDocumentRepository,
    DocumentChunkRepository,
)

__all__ = [
    "get_db",
    "get_db_context",
    "init_db",
    "health_check",
    "AsyncSessionLocal",
    "Base",
    "Document",
    "DocumentChunk",
    "DiscoveryRequest",
    "DocumentRequestMapping",
    "DiscoveryRequestRepository",
    "DocumentRequestMappingRepository",
    "CaseDocumentRepository",
    "DocumentChunkRepository",
]
