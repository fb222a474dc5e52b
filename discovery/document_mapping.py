"""
Discovery Document Mapping

Scores a case's documents against a discovery request and manages the
lifecycle of document-to-request mappings.

Scoring signals (defaults from ScoringConfig):

* category match               +30
* keyword in file name/subtype +20
* date-range overlap           up to +20, scaled by overlap
* semantic similarity          up to +40, scaled by similarity

The total is capped at 100.

Mapping states::

    (manual) --> accepted
    suggested --> accepted | rejected
    accepted <--> rejected   (re-review)

Nothing returns to ``suggested``. Every change to an accepted mapping
recomputes the parent request's coverage.
"""

import logging
from datetime import date, datetime
from typing import Any, Dict, List, Optional, Union

from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from core.config import ScoringConfig, get_config
from database.models import DocumentRequestMapping
from database.repositories import (
    CaseDocumentRepository,
    DiscoveryRequestRepository,
    DocumentRequestMappingRepository,
)

from .category_detection import detect_category_from_text, extract_keywords
from .date_parser import match_document_to_date_range, parse_date_range_from_text
from .errors import (
    DiscoveryError,
    DiscoveryValidationError,
    DuplicateMappingError,
    InvalidTransitionError,
    NotFoundError,
    is_unique_violation,
)
from .models import (
    DocumentSnapshot,
    MappingSource,
    MappingStatus,
    MappingSuggestionResult,
    MatchCriteria,
    MatchFactors,
    RequestStatus,
    SuggestedMapping,
)
from .utils import round_half_up

logger = logging.getLogger(__name__)

REQUEST_NOT_FOUND = "Discovery request not found"
MAPPING_NOT_FOUND = "Mapping not found or not authorized"
DOCUMENT_NOT_FOUND = "Document not found or not authorized"
GENERAL_RELEVANCE = "General relevance"


# ============================================
# Scoring (pure)
# ============================================

def build_match_criteria(text: str, category_hint: Optional[str] = None) -> MatchCriteria:
    """Derive category, keywords and date range from request text."""
    if not category_hint:
        detected = detect_category_from_text(text)
        category_hint = detected.value if detected else None
    return MatchCriteria(
        category_hint=category_hint,
        keywords=extract_keywords(text),
        date_range=parse_date_range_from_text(text),
    )


def _keyword_match(document: DocumentSnapshot, keywords: List[str]) -> bool:
    file_name = (document.file_name or "").lower()
    subtype = (document.subtype or "").lower()
    return any(kw.lower() in file_name or (subtype and kw.lower() in subtype) for kw in keywords)


def score_document(
    document: DocumentSnapshot,
    criteria: MatchCriteria,
    semantic_score: float = 0.0,
    weights: Optional[ScoringConfig] = None,
    today: Optional[date] = None,
) -> SuggestedMapping:
    """Score one document against one request's criteria."""
    weights = weights or ScoringConfig()
    confidence = 0
    reasons: List[str] = []

    category_match = bool(
        criteria.category_hint
        and document.category
        and document.category.lower() == criteria.category_hint.lower()
    )
    if category_match:
        confidence += weights.category_weight
        reasons.append(f"Category matches: {document.category}")

    keyword_match = _keyword_match(document, criteria.keywords)
    if keyword_match:
        confidence += weights.keyword_weight
        reasons.append("Document name/type matches request keywords")

    date_result = match_document_to_date_range(document.metadata, criteria.date_range, today=today)
    if date_result.matches:
        confidence += round_half_up(weights.date_weight * date_result.overlap_percentage / 100)
        if date_result.overlap_percentage == 100:
            reasons.append("Date range fully matches request")
        else:
            reasons.append(f"Date range partially matches ({date_result.overlap_percentage}%)")

    if semantic_score > 0:
        confidence += round_half_up(weights.semantic_weight * semantic_score)
        if semantic_score > weights.high_similarity:
            reasons.append("High semantic similarity to request")
        elif semantic_score > weights.moderate_similarity:
            reasons.append("Moderate semantic similarity to request")

    confidence = max(0, min(confidence, weights.max_confidence))

    return SuggestedMapping(
        document=document,
        confidence=confidence,
        reasoning=". ".join(reasons) if reasons else GENERAL_RELEVANCE,
        match_factors=MatchFactors(
            category_match=category_match,
            keyword_match=keyword_match,
            date_match=date_result.matches,
            semantic_score=semantic_score,
        ),
    )


def coverage_status(coverage: int) -> RequestStatus:
    """0 is incomplete, 100 is complete, anything between is partial."""
    if coverage == 0:
        return RequestStatus.INCOMPLETE
    if coverage == 100:
        return RequestStatus.COMPLETE
    return RequestStatus.PARTIAL


# ============================================
# Service
# ============================================

class DocumentMappingService:
    """
    Suggestion and mapping lifecycle for one unit of work.

    The semantic matcher is injected; when omitted a SemanticMatcher on the
    same session is built from configuration.
    """

    def __init__(
        self,
        session: AsyncSession,
        semantic_matcher: Optional[Any] = None,
        config: Optional[ScoringConfig] = None,
    ):
        self.session = session
        self.config = config or get_config().scoring
        if semantic_matcher is None:
            from .semantic_matching import SemanticMatcher
            semantic_matcher = SemanticMatcher(session, config=self.config)
        self.semantic_matcher = semantic_matcher

    def _requests(self, user_id: str) -> DiscoveryRequestRepository:
        return DiscoveryRequestRepository(self.session, user_id)

    def _mappings(self, user_id: str) -> DocumentRequestMappingRepository:
        return DocumentRequestMappingRepository(self.session, user_id)

    def _documents(self, user_id: str) -> CaseDocumentRepository:
        return CaseDocumentRepository(self.session, user_id)

    async def _semantic_scores(self, text: str, case_id: str, user_id: str, limit: int) -> Dict[str, float]:
        try:
            results = await self.semantic_matcher.semantic_match_documents(
                text, case_id, user_id, limit=limit
            )
        except Exception:
            logger.warning("Semantic matcher unavailable, scoring without it", exc_info=True,
                           extra={"case_id": case_id})
            return {}
        return {result.document_id: result.similarity for result in results}

    # ------------------------------------------
    # Suggestions
    # ------------------------------------------

    async def suggest_documents_for_request(
        self,
        request_id: str,
        case_id: str,
        user_id: str,
        limit: Optional[int] = None,
        min_confidence: Optional[int] = None,
        today: Optional[date] = None,
    ) -> MappingSuggestionResult:
        """
        Rank the case's unmapped documents for a request.

        Raises:
            NotFoundError: request missing or not owned by user_id
        """
        limit = self.config.default_limit if limit is None else limit
        min_confidence = self.config.default_min_confidence if min_confidence is None else min_confidence

        request = await self._requests(user_id).get_by_id(request_id)
        if request is None:
            raise NotFoundError(REQUEST_NOT_FOUND)

        mapped_ids = await self._mappings(user_id).mapped_document_ids(request_id)
        documents = await self._documents(user_id).list_by_case(case_id, exclude_ids=mapped_ids)

        criteria = build_match_criteria(request.text, request.category_hint)
        semantic_scores = await self._semantic_scores(
            request.text, case_id, user_id, limit * self.config.semantic_limit_multiplier
        )

        suggestions: List[SuggestedMapping] = []
        for document in documents:
            snapshot = DocumentSnapshot.from_model(document)
            scored = score_document(
                snapshot,
                criteria,
                semantic_score=semantic_scores.get(document.id, 0.0),
                weights=self.config,
                today=today,
            )
            logger.debug("Scored %s: %d (%s)", snapshot.file_name, scored.confidence, scored.reasoning)
            if scored.confidence >= min_confidence:
                suggestions.append(scored)

        # Stable: equal confidence keeps document order
        suggestions.sort(key=lambda s: s.confidence, reverse=True)

        return MappingSuggestionResult(
            request_id=request_id,
            suggestions=suggestions[:limit],
            total_documents_searched=len(documents),
        )

    async def create_ai_suggestions(
        self,
        request_id: str,
        case_id: str,
        user_id: str,
        limit: Optional[int] = None,
    ) -> int:
        """Persist high-confidence suggestions as mappings awaiting review."""
        result = await self.suggest_documents_for_request(
            request_id,
            case_id,
            user_id,
            limit=limit,
            min_confidence=self.config.ai_suggestion_min_confidence,
        )

        created = 0
        for suggestion in result.suggestions:
            try:
                async with self.session.begin_nested():
                    await self.create_document_mapping(
                        suggestion.document.id,
                        request_id,
                        user_id,
                        MappingSource.AI_SUGGESTION,
                        confidence=suggestion.confidence,
                        reasoning=suggestion.reasoning,
                    )
            except DiscoveryError as e:
                logger.info("Skipped suggestion for document %s: %s", suggestion.document.id, e,
                            extra={"request_id": request_id})
                continue
            created += 1

        logger.info("Created %d AI suggestions", created, extra={"request_id": request_id, "user_id": user_id})
        return created

    # ------------------------------------------
    # Mapping lifecycle
    # ------------------------------------------

    async def create_document_mapping(
        self,
        document_id: str,
        request_id: str,
        user_id: str,
        source: Union[MappingSource, str],
        confidence: Optional[int] = None,
        reasoning: Optional[str] = None,
    ) -> DocumentRequestMapping:
        """
        Map a document to a request. Manual additions are accepted at once,
        AI suggestions wait for review.

        Raises:
            DiscoveryValidationError: unknown source or confidence outside 0-100
            NotFoundError: request or document missing or not owned
            DuplicateMappingError: the pair is already mapped
        """
        try:
            source = MappingSource(source)
        except ValueError:
            raise DiscoveryValidationError(f"Invalid mapping source: {source}")
        if confidence is not None and not 0 <= confidence <= 100:
            raise DiscoveryValidationError("Confidence must be between 0 and 100")

        request = await self._requests(user_id).get_by_id(request_id)
        if request is None:
            raise NotFoundError(REQUEST_NOT_FOUND)
        if await self._documents(user_id).get_by_id(document_id) is None:
            raise NotFoundError(DOCUMENT_NOT_FOUND)

        mappings = self._mappings(user_id)
        if await mappings.get_by_pair(document_id, request_id) is not None:
            raise DuplicateMappingError(document_id, request_id)

        manual = source == MappingSource.MANUAL_ADDITION
        status = MappingStatus.ACCEPTED if manual else MappingStatus.SUGGESTED

        try:
            async with self.session.begin_nested():
                mapping = await mappings.create(
                    document_id=document_id,
                    request_id=request_id,
                    case_id=request.case_id,
                    source=source.value,
                    status=status.value,
                    confidence=confidence,
                    reasoning=reasoning,
                    reviewed_at=datetime.utcnow() if manual else None,
                    reviewed_by=user_id if manual else None,
                )
        except IntegrityError as e:
            if not is_unique_violation(e):
                raise
            # Concurrent insert of the same pair
            raise DuplicateMappingError(document_id, request_id) from e

        logger.info(
            "Created %s mapping (%s)",
            source.value,
            status.value,
            extra={"mapping_id": mapping.id, "request_id": request_id,
                   "document_id": document_id, "user_id": user_id},
        )

        if status == MappingStatus.ACCEPTED:
            await self._update_coverage(request_id, user_id)
        return mapping

    async def get_mappings_for_request(self, request_id: str, user_id: str) -> List[DocumentRequestMapping]:
        return await self._mappings(user_id).list_by_request(request_id)

    async def get_mappings_for_document(self, document_id: str, user_id: str) -> List[DocumentRequestMapping]:
        return await self._mappings(user_id).list_by_document(document_id)

    async def get_mappings_with_documents(self, request_id: str, user_id: str) -> List[Dict[str, Any]]:
        """Mappings for a request, each with a summary of its document."""
        rows = await self._mappings(user_id).list_with_documents(request_id)
        results = []
        for mapping, document in rows:
            data = mapping.to_dict()
            data["document"] = {
                "id": document.id,
                "fileName": document.file_name,
                "category": document.category,
                "subtype": document.subtype,
            }
            results.append(data)
        return results

    async def update_mapping_status(
        self,
        mapping_id: str,
        status: Union[MappingStatus, str],
        user_id: str,
    ) -> DocumentRequestMapping:
        """
        Accept or reject a mapping and recompute coverage.

        Raises:
            InvalidTransitionError: moving a mapping back to suggested
            DiscoveryValidationError: unknown status
            NotFoundError: mapping missing or not owned
        """
        try:
            status = MappingStatus(status)
        except ValueError:
            raise DiscoveryValidationError(f"Invalid status: {status}")

        mappings = self._mappings(user_id)
        mapping = await mappings.get_by_id(mapping_id)
        if mapping is None:
            raise NotFoundError(MAPPING_NOT_FOUND)
        if status == MappingStatus.SUGGESTED:
            raise InvalidTransitionError(mapping.status, status.value)

        previous = mapping.status
        updated = await mappings.update_status(mapping_id, status.value, reviewed_by=user_id)
        if updated is None:
            raise NotFoundError(MAPPING_NOT_FOUND)

        logger.info(
            "Mapping %s -> %s",
            previous,
            status.value,
            extra={"mapping_id": mapping_id, "request_id": updated.request_id, "user_id": user_id},
        )
        await self._update_coverage(updated.request_id, user_id)
        return updated

    async def delete_mapping(self, mapping_id: str, user_id: str) -> bool:
        """Remove a mapping. False when missing or not owned."""
        mappings = self._mappings(user_id)
        mapping = await mappings.get_by_id(mapping_id)
        if mapping is None:
            return False

        request_id = mapping.request_id
        deleted = await mappings.delete(mapping_id)
        if deleted:
            logger.info("Deleted mapping", extra={"mapping_id": mapping_id, "request_id": request_id})
            await self._update_coverage(request_id, user_id)
        return deleted

    # ------------------------------------------
    # Coverage
    # ------------------------------------------

    async def calculate_coverage_percentage(self, request_id: str, user_id: str) -> int:
        """Binary policy: any accepted mapping covers the request fully."""
        accepted = await self._mappings(user_id).count_accepted(request_id)
        return 100 if accepted > 0 else 0

    async def _update_coverage(self, request_id: str, user_id: str) -> None:
        coverage = await self.calculate_coverage_percentage(request_id, user_id)
        status = coverage_status(coverage)
        await self._requests(user_id).set_coverage(request_id, status.value, coverage)
        logger.info(
            "Coverage recomputed: %d%% (%s)",
            coverage,
            status.value,
            extra={"request_id": request_id, "user_id": user_id},
        )
