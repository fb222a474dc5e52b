"""
Discovery Engine Test Configuration
===================================

Fixtures:
- Async SQLite engine/session (aiosqlite, foreign keys and SAVEPOINTs enabled)
- Case documents covering each scoring signal
- Mock semantic matcher with fixed similarities
"""

import os
import sys
from datetime import date
from typing import Dict, List, Optional
from unittest.mock import AsyncMock

import pytest
import pytest_asyncio
from sqlalchemy import event
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

# Add parent directory to path
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from core.config import ScoringConfig
from database.models import Base, Document, DiscoveryRequest, DocumentRequestMapping
from discovery.models import SemanticMatchResult


CASE_ID = "case-1"
USER_ID = "user-1"
OTHER_USER_ID = "user-2"

# Fixed "today" so relative and open-ended ranges stay reproducible
TODAY = date(2024, 6, 1)


# =============================================================================
# Pytest Configuration
# =============================================================================

def pytest_configure(config):
    """Configure pytest markers"""
    config.addinivalue_line("markers", "unit: Unit tests (fast, isolated)")
    config.addinivalue_line("markers", "integration: Integration tests (real SQL engine)")


# =============================================================================
# Database
# =============================================================================

# Tables the engine touches; document_chunks needs pgvector so it is skipped
SQLITE_TABLES = [Document.__table__, DiscoveryRequest.__table__, DocumentRequestMapping.__table__]


@pytest_asyncio.fixture
async def engine(tmp_path):
    """Temporary SQLite database with the discovery tables"""
    engine = create_async_engine(f"sqlite+aiosqlite:///{tmp_path / 'discovery.db'}")

    @event.listens_for(engine.sync_engine, "connect")
    def _on_connect(dbapi_connection, connection_record):
        # Let SQLAlchemy emit BEGIN itself so SAVEPOINT works
        dbapi_connection.isolation_level = None
        cursor = dbapi_connection.cursor()
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.close()

    @event.listens_for(engine.sync_engine, "begin")
    def _on_begin(conn):
        conn.exec_driver_sql("BEGIN")

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all, tables=SQLITE_TABLES)

    yield engine
    await engine.dispose()


@pytest_asyncio.fixture
async def session(engine):
    """One transaction per test, rolled back at the end"""
    factory = async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False, autoflush=False)
    async with factory() as session:
        yield session
        await session.rollback()


# =============================================================================
# Case Documents
# =============================================================================

def make_document(
    file_name: str,
    category: Optional[str] = None,
    subtype: Optional[str] = None,
    metadata: Optional[dict] = None,
    case_id: str = CASE_ID,
    user_id: str = USER_ID,
) -> Document:
    return Document(
        case_id=case_id,
        user_id=user_id,
        file_name=file_name,
        category=category,
        subtype=subtype,
        metadata_=metadata,
    )


@pytest_asyncio.fixture
async def case_documents(session) -> Dict[str, Document]:
    """
    Four documents scored against "All bank statements from January 2020
    to December 2021":

    - bank: category + keyword + date fully inside
    - savings: category + keyword + date partially inside (42%)
    - tax: category only, dates outside the range
    - medical: nothing in common
    """
    documents = {
        "bank": make_document(
            "chase_bank_statement_2020.pdf",
            category="Financial",
            subtype="Bank Statement",
            metadata={"startDate": "2020-03-01", "endDate": "2020-03-31", "parties": ["Chase"]},
        ),
        "savings": make_document(
            "savings_account_2021_2022.pdf",
            category="Financial",
            subtype="Bank Statement",
            metadata={"startDate": "2021-07-01", "endDate": "2022-06-30"},
        ),
        "tax": make_document(
            "2019_tax_return.pdf",
            category="Financial",
            subtype="Tax Return",
            metadata={"startDate": "2019-01-01", "endDate": "2019-12-31"},
        ),
        "medical": make_document(
            "er_visit.pdf",
            category="Medical",
            subtype="Hospital Bill",
        ),
    }
    session.add_all(documents.values())
    await session.flush()
    return documents


BANK_REQUEST_TEXT = "All bank statements from January 2020 to December 2021"


# =============================================================================
# Semantic Matcher
# =============================================================================

def semantic_result(document: Document, similarity: float) -> SemanticMatchResult:
    return SemanticMatchResult(
        document_id=document.id,
        file_name=document.file_name,
        category=document.category,
        subtype=document.subtype,
        similarity=similarity,
    )


@pytest.fixture
def mock_semantic_matcher():
    """Semantic matcher returning nothing unless a test sets results"""
    matcher = AsyncMock()
    matcher.semantic_match_documents.return_value = []
    return matcher


@pytest.fixture
def scoring_config() -> ScoringConfig:
    return ScoringConfig()


def confidences(suggestions) -> List[int]:
    return [s.confidence for s in suggestions]
