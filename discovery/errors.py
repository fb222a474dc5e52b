"""
Discovery Engine Errors

Validation errors fail fast. Conflict errors fail a single operation but are
recorded per item inside batches. Not-found and not-authorized share one
error so another owner's resources are never revealed.
"""

from typing import Optional

from sqlalchemy.exc import IntegrityError

UNIQUE_VIOLATION_SQLSTATE = "23505"


class DiscoveryError(Exception):
    """Base class for all discovery engine errors."""


class DiscoveryValidationError(DiscoveryError, ValueError):
    """Invalid input: status, completion percentage, empty text, bad confidence."""


class InvalidTransitionError(DiscoveryValidationError):
    """A reviewed mapping was asked to go back to suggested."""

    def __init__(self, current: str, requested: str):
        self.current = current
        self.requested = requested
        super().__init__(f"Cannot change mapping status from {current} to {requested}")


class ConflictError(DiscoveryError):
    """A uniqueness constraint would be violated."""


class DuplicateRequestError(ConflictError):
    """(case, type, number) already taken."""

    def __init__(self, request_type: str, number: int):
        self.request_type = request_type
        self.number = number
        super().__init__(f"{request_type} {number} already exists")


class DuplicateMappingError(ConflictError):
    """(document, request) pair already mapped."""

    def __init__(self, document_id: Optional[str] = None, request_id: Optional[str] = None):
        self.document_id = document_id
        self.request_id = request_id
        super().__init__("Document is already mapped to this request")


class NotFoundError(DiscoveryError):
    """Resource missing or owned by someone else."""


def is_unique_violation(error: IntegrityError) -> bool:
    """
    True when ``error`` was raised by a unique constraint.

    Foreign key and NOT NULL failures are IntegrityErrors too and must not be
    reported as duplicates. PostgreSQL drivers expose the SQLSTATE; SQLite
    only names the constraint kind in its message.
    """
    orig = error.orig
    sqlstate = getattr(orig, "sqlstate", None) or getattr(orig, "pgcode", None)
    if sqlstate:
        return sqlstate == UNIQUE_VIOLATION_SQLSTATE
    return "unique" in str(orig).lower()
