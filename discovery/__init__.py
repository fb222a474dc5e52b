"""
Discovery Request Compliance Engine

Parses discovery requests, scores case documents against them and tracks
per-request coverage as mappings are reviewed.
"""

from .models import (
    RequestType,
    RequestStatus,
    MappingSource,
    MappingStatus,
    DocumentCategory,
    ParsedRequest,
    ParsedDateRange,
    DateMatchResult,
    CategoryMatch,
    DocumentMetadata,
    DocumentSnapshot,
    MatchCriteria,
    MatchFactors,
    SuggestedMapping,
    MappingSuggestionResult,
    ChunkMatch,
    SemanticMatchResult,
    ImportLineError,
    BulkImportResult,
    ImportValidation,
    DiscoveryStats,
)
from .errors import (
    DiscoveryError,
    DiscoveryValidationError,
    InvalidTransitionError,
    ConflictError,
    DuplicateRequestError,
    DuplicateMappingError,
    NotFoundError,
)
from .category_detection import (
    CATEGORY_KEYWORDS,
    detect_category_from_text,
    detect_all_categories,
    extract_keywords,
    normalize_category,
)
from .date_parser import (
    parse_date,
    parse_date_range_from_text,
    resolve_relative_date,
    match_document_to_date_range,
)
from .schemas import DiscoveryRequestCreate, DiscoveryRequestUpdate
from .requests import DiscoveryRequestService
from .bulk_import import (
    parse_discovery_text,
    parse_csv,
    validate_import_text,
    DiscoveryImporter,
    bulk_import_discovery_requests,
)
from .semantic_matching import SemanticMatcher
from .document_mapping import (
    build_match_criteria,
    score_document,
    coverage_status,
    DocumentMappingService,
)
from .compliance_report import (
    ComplianceReportExporter,
    build_report_rows,
    export_case_compliance_report,
)

__all__ = [
    # Models
    "RequestType",
    "RequestStatus",
    "MappingSource",
    "MappingStatus",
    "DocumentCategory",
    "ParsedRequest",
    "ParsedDateRange",
    "DateMatchResult",
    "CategoryMatch",
    "DocumentMetadata",
    "DocumentSnapshot",
    "MatchCriteria",
    "MatchFactors",
    "SuggestedMapping",
    "MappingSuggestionResult",
    "ChunkMatch",
    "SemanticMatchResult",
    "ImportLineError",
    "BulkImportResult",
    "ImportValidation",
    "DiscoveryStats",
    # Errors
    "DiscoveryError",
    "DiscoveryValidationError",
    "InvalidTransitionError",
    "ConflictError",
    "DuplicateRequestError",
    "DuplicateMappingError",
    "NotFoundError",
    # Detection & parsing
    "CATEGORY_KEYWORDS",
    "detect_category_from_text",
    "detect_all_categories",
    "extract_keywords",
    "normalize_category",
    "parse_date",
    "parse_date_range_from_text",
    "resolve_relative_date",
    "match_document_to_date_range",
    "parse_discovery_text",
    "parse_csv",
    "validate_import_text",
    # Services
    "DiscoveryRequestCreate",
    "DiscoveryRequestUpdate",
    "DiscoveryRequestService",
    "DiscoveryImporter",
    "bulk_import_discovery_requests",
    "SemanticMatcher",
    "build_match_criteria",
    "score_document",
    "coverage_status",
    "DocumentMappingService",
    # Reporting
    "ComplianceReportExporter",
    "build_report_rows",
    "export_case_compliance_report",
]
