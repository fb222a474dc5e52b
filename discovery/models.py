"""
Discovery Engine Data Models

Enumerations and transient records shared by the parser, the date and
category detectors, the scoring engine and the mapping lifecycle.
"""

from dataclasses import dataclass, field, asdict
from enum import Enum
from typing import Any, Dict, List, Optional


class RequestType(str, Enum):
    """Kind of discovery request"""
    RFP = "RFP"                         # Request for Production
    INTERROGATORY = "Interrogatory"


class RequestStatus(str, Enum):
    """Coverage state of a discovery request"""
    INCOMPLETE = "incomplete"
    PARTIAL = "partial"                 # Not produced by the binary coverage policy
    COMPLETE = "complete"


class MappingSource(str, Enum):
    """Who proposed a document-to-request mapping"""
    AI_SUGGESTION = "ai_suggestion"
    MANUAL_ADDITION = "manual_addition"


class MappingStatus(str, Enum):
    """Review state of a document-to-request mapping"""
    SUGGESTED = "suggested"
    ACCEPTED = "accepted"
    REJECTED = "rejected"


class DocumentCategory(str, Enum):
    """Fixed document taxonomy. Declaration order is the detection tie-break."""
    FINANCIAL = "Financial"
    MEDICAL = "Medical"
    EMPLOYMENT = "Employment"
    PROPERTY = "Property"
    LEGAL = "Legal"
    PERSONAL = "Personal"


# ============================================
# Parsing
# ============================================

@dataclass
class ParsedRequest:
    """A request split out of pasted text or CSV, before persistence."""
    type: RequestType
    number: int
    text: str

    def to_dict(self) -> Dict[str, Any]:
        return {"type": self.type.value, "number": self.number, "text": self.text}


@dataclass
class ParsedDateRange:
    """Date range found in request text. Dates are ISO strings or relative markers."""
    start_date: Optional[str] = None
    end_date: Optional[str] = None
    is_relative: bool = False
    is_open_ended: bool = False
    original_text: str = ""

    @property
    def is_empty(self) -> bool:
        return self.start_date is None and self.end_date is None

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


@dataclass
class DateMatchResult:
    """Overlap between a document's date span and a requested range."""
    matches: bool
    overlap_percentage: int
    overlap_days: int
    total_days: int


@dataclass
class CategoryMatch:
    """One category hit from detect_all_categories."""
    category: DocumentCategory
    score: int
    keywords: List[str] = field(default_factory=list)


# ============================================
# Documents (read-only snapshots)
# ============================================

@dataclass(frozen=True)
class DocumentMetadata:
    """
    The subset of a document's metadata bag the engine reads.

    Unknown keys are preserved in ``extra`` so nothing is lost on the way
    through, but only the named fields take part in matching.
    """
    start_date: Optional[str] = None
    end_date: Optional[str] = None
    parties: List[str] = field(default_factory=list)
    amounts: List[float] = field(default_factory=list)
    summary: Optional[str] = None
    extra: Dict[str, Any] = field(default_factory=dict)

    KNOWN_KEYS = ("startDate", "endDate", "parties", "amounts", "summary")

    @classmethod
    def from_dict(cls, data: Optional[Dict[str, Any]]) -> Optional["DocumentMetadata"]:
        """Build from a stored bag; accepts camelCase or snake_case date keys."""
        if not data:
            return None

        def _text(*keys: str) -> Optional[str]:
            for key in keys:
                value = data.get(key)
                if value:
                    return str(value)
            return None

        parties = data.get("parties") or []
        amounts = data.get("amounts") or []
        known = set(cls.KNOWN_KEYS) | {"start_date", "end_date"}
        return cls(
            start_date=_text("startDate", "start_date"),
            end_date=_text("endDate", "end_date"),
            parties=[str(p) for p in parties] if isinstance(parties, list) else [],
            amounts=[a for a in amounts if isinstance(a, (int, float))]
            if isinstance(amounts, list) else [],
            summary=_text("summary"),
            extra={k: v for k, v in data.items() if k not in known},
        )

    @property
    def has_dates(self) -> bool:
        return bool(self.start_date or self.end_date)

    def to_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = dict(self.extra)
        if self.start_date:
            data["startDate"] = self.start_date
        if self.end_date:
            data["endDate"] = self.end_date
        if self.parties:
            data["parties"] = list(self.parties)
        if self.amounts:
            data["amounts"] = list(self.amounts)
        if self.summary:
            data["summary"] = self.summary
        return data


@dataclass(frozen=True)
class DocumentSnapshot:
    """Immutable view of a case document taken for one matching run."""
    id: str
    case_id: str
    file_name: str
    category: Optional[str] = None
    subtype: Optional[str] = None
    metadata: Optional[DocumentMetadata] = None

    @classmethod
    def from_model(cls, document: Any) -> "DocumentSnapshot":
        return cls(
            id=document.id,
            case_id=document.case_id,
            file_name=document.file_name,
            category=document.category,
            subtype=document.subtype,
            metadata=DocumentMetadata.from_dict(document.metadata_),
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "fileName": self.file_name,
            "category": self.category,
            "subtype": self.subtype,
            "metadata": self.metadata.to_dict() if self.metadata else None,
        }


# ============================================
# Matching
# ============================================

@dataclass
class MatchCriteria:
    """What a request asks for, derived once per suggestion run."""
    category_hint: Optional[str]
    keywords: List[str]
    date_range: ParsedDateRange


@dataclass
class MatchFactors:
    """Which signals fired for a document."""
    category_match: bool
    keyword_match: bool
    date_match: bool
    semantic_score: float

    def to_dict(self) -> Dict[str, Any]:
        return {
            "categoryMatch": self.category_match,
            "keywordMatch": self.keyword_match,
            "dateMatch": self.date_match,
            "semanticScore": round(self.semantic_score, 4),
        }


@dataclass
class SuggestedMapping:
    """A scored candidate document for a request."""
    document: DocumentSnapshot
    confidence: int
    reasoning: str
    match_factors: MatchFactors

    def to_dict(self) -> Dict[str, Any]:
        return {
            "document": self.document.to_dict(),
            "confidence": self.confidence,
            "reasoning": self.reasoning,
            "matchFactors": self.match_factors.to_dict(),
        }


@dataclass
class MappingSuggestionResult:
    """Ranked suggestions for one request."""
    request_id: str
    suggestions: List[SuggestedMapping] = field(default_factory=list)
    total_documents_searched: int = 0

    def to_dict(self) -> Dict[str, Any]:
        return {
            "requestId": self.request_id,
            "suggestions": [s.to_dict() for s in self.suggestions],
            "totalDocumentsSearched": self.total_documents_searched,
        }


@dataclass
class ChunkMatch:
    """A document chunk that cleared the similarity floor."""
    chunk_id: str
    content: str
    similarity: float


@dataclass
class SemanticMatchResult:
    """Document-level semantic similarity (max over its chunks)."""
    document_id: str
    file_name: str
    category: Optional[str]
    subtype: Optional[str]
    similarity: float = 0.0
    matching_chunks: List[ChunkMatch] = field(default_factory=list)


# ============================================
# Import & statistics
# ============================================

@dataclass
class ImportLineError:
    """Failure of one parsed item during bulk import (1-based position)."""
    line: int
    error: str


@dataclass
class BulkImportResult:
    """Outcome of an at-least-effort bulk import."""
    imported: int = 0
    failed: int = 0
    requests: List[Dict[str, Any]] = field(default_factory=list)
    errors: List[ImportLineError] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "imported": self.imported,
            "failed": self.failed,
            "requests": self.requests,
            "errors": [asdict(e) for e in self.errors],
        }


@dataclass
class ImportValidation:
    """Dry-run result of validate_import_text."""
    valid: bool
    count: int
    errors: List[str] = field(default_factory=list)


@dataclass
class DiscoveryStats:
    """Counts and average completion across a case's requests."""
    total: int = 0
    rfp_count: int = 0
    interrogatory_count: int = 0
    complete: int = 0
    partial: int = 0
    incomplete: int = 0
    average_completion: int = 0

    def to_dict(self) -> Dict[str, Any]:
        return {
            "total": self.total,
            "rfpCount": self.rfp_count,
            "interrogatoryCount": self.interrogatory_count,
            "complete": self.complete,
            "partial": self.partial,
            "incomplete": self.incomplete,
            "averageCompletion": self.average_completion,
        }
