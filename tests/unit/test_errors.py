"""
Discovery Unit Tests: Errors
============================

Tests:
- Unique-constraint detection on driver errors
- Error messages
"""

import pytest
from sqlalchemy.exc import IntegrityError

from discovery.errors import (
    DuplicateMappingError,
    DuplicateRequestError,
    InvalidTransitionError,
    is_unique_violation,
)


class DriverError(Exception):
    def __init__(self, message, sqlstate=None):
        super().__init__(message)
        self.sqlstate = sqlstate


def integrity_error(orig):
    return IntegrityError("INSERT INTO document_request_mappings ...", {}, orig)


@pytest.mark.unit
class TestIsUniqueViolation:
    """Tests for is_unique_violation"""

    def test_postgres_unique_sqlstate(self):
        orig = DriverError('duplicate key value violates unique constraint "uq_x"', sqlstate="23505")
        assert is_unique_violation(integrity_error(orig)) is True

    def test_postgres_foreign_key_sqlstate(self):
        orig = DriverError('insert violates foreign key constraint "fk_document"', sqlstate="23503")
        assert is_unique_violation(integrity_error(orig)) is False

    def test_sqlite_messages(self):
        assert is_unique_violation(integrity_error(DriverError(
            "UNIQUE constraint failed: document_request_mappings.document_id"
        ))) is True
        assert is_unique_violation(integrity_error(DriverError("FOREIGN KEY constraint failed"))) is False
        assert is_unique_violation(integrity_error(DriverError(
            "NOT NULL constraint failed: discovery_requests.text"
        ))) is False


@pytest.mark.unit
class TestErrorMessages:
    """Tests for error messages"""

    def test_duplicate_request(self):
        assert str(DuplicateRequestError("RFP", 3)) == "RFP 3 already exists"

    def test_duplicate_mapping(self):
        error = DuplicateMappingError("doc-1", "req-1")
        assert str(error) == "Document is already mapped to this request"
        assert (error.document_id, error.request_id) == ("doc-1", "req-1")

    def test_invalid_transition_is_validation_error(self):
        error = InvalidTransitionError("accepted", "suggested")
        assert isinstance(error, ValueError)
        assert str(error) == "Cannot change mapping status from accepted to suggested"
