"""
Discovery Request Service
CRUD, numbering and statistics for a case's discovery requests
"""

import logging
from typing import Any, Dict, List, Optional, Union

from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from database.models import DiscoveryRequest
from database.repositories import DiscoveryRequestRepository

from .category_detection import detect_category_from_text
from .errors import DuplicateRequestError, NotFoundError, is_unique_violation
from .models import DiscoveryStats, RequestStatus, RequestType
from .schemas import (
    DiscoveryRequestCreate,
    DiscoveryRequestUpdate,
    parse_payload,
    parse_request_type,
)
from .utils import round_half_up

logger = logging.getLogger(__name__)

REQUEST_NOT_FOUND = "Request not found or not authorized"


class DiscoveryRequestService:
    """
    Owner-scoped operations on discovery requests.

    The service only flushes; the caller owns the transaction.
    """

    def __init__(self, session: AsyncSession):
        self.session = session

    def _repo(self, user_id: str) -> DiscoveryRequestRepository:
        return DiscoveryRequestRepository(self.session, user_id)

    async def create_request(
        self,
        data: Union[DiscoveryRequestCreate, Dict[str, Any]],
        user_id: str,
    ) -> DiscoveryRequest:
        """
        Create a request. The category hint is auto-detected from the text
        when the caller does not supply one.

        Raises:
            DiscoveryValidationError: invalid payload
            DuplicateRequestError: (case, type, number) already taken
        """
        payload = parse_payload(DiscoveryRequestCreate, data)
        repo = self._repo(user_id)
        request_type = payload.type.value

        if await repo.exists(payload.case_id, request_type, payload.number):
            raise DuplicateRequestError(request_type, payload.number)

        category_hint = payload.category_hint
        if category_hint is None:
            detected = detect_category_from_text(payload.text)
            category_hint = detected.value if detected else None

        try:
            async with self.session.begin_nested():
                request = await repo.create(
                    case_id=payload.case_id,
                    type=request_type,
                    number=payload.number,
                    text=payload.text,
                    category_hint=category_hint,
                    notes=payload.notes,
                )
        except IntegrityError as e:
            if not is_unique_violation(e):
                raise
            # Lost a race with a concurrent insert of the same number
            raise DuplicateRequestError(request_type, payload.number) from e

        logger.info(
            "Created discovery request %s %d",
            request_type,
            payload.number,
            extra={"case_id": payload.case_id, "request_id": request.id, "user_id": user_id},
        )
        return request

    async def get_requests(self, case_id: str, user_id: str) -> List[DiscoveryRequest]:
        """All requests for a case, RFPs and Interrogatories each by number."""
        return await self._repo(user_id).list_by_case(case_id)

    async def get_request(self, request_id: str, user_id: str) -> Optional[DiscoveryRequest]:
        """One request, or None when missing or owned by someone else."""
        return await self._repo(user_id).get_by_id(request_id)

    async def update_request(
        self,
        request_id: str,
        data: Union[DiscoveryRequestUpdate, Dict[str, Any]],
        user_id: str,
    ) -> DiscoveryRequest:
        """
        Apply a partial update.

        Raises:
            DiscoveryValidationError: invalid status, completion or text
            NotFoundError: missing or not owned
        """
        payload = parse_payload(DiscoveryRequestUpdate, data)
        values = payload.to_values()
        repo = self._repo(user_id)

        if not values:
            request = await repo.get_by_id(request_id)
        else:
            request = await repo.update(request_id, **values)
        if request is None:
            raise NotFoundError(REQUEST_NOT_FOUND)

        logger.info(
            "Updated discovery request fields: %s",
            ", ".join(sorted(values)) or "none",
            extra={"request_id": request_id, "user_id": user_id},
        )
        return request

    async def delete_request(self, request_id: str, user_id: str) -> bool:
        """Delete a request and, through the foreign key, its mappings."""
        deleted = await self._repo(user_id).delete(request_id)
        if deleted:
            logger.info("Deleted discovery request", extra={"request_id": request_id, "user_id": user_id})
        return deleted

    async def delete_all_for_case(self, case_id: str, user_id: str) -> int:
        """Delete every request in a case. Returns how many were removed."""
        count = await self._repo(user_id).delete_by_case(case_id)
        logger.info("Deleted %d discovery requests", count, extra={"case_id": case_id, "user_id": user_id})
        return count

    async def get_next_request_number(
        self,
        case_id: str,
        request_type: Union[RequestType, str],
        user_id: str,
    ) -> int:
        """Highest existing number plus one. Gaps are never reused."""
        request_type = parse_request_type(request_type)
        highest = await self._repo(user_id).max_number(case_id, request_type.value)
        return (highest or 0) + 1

    async def request_number_exists(
        self,
        case_id: str,
        request_type: Union[RequestType, str],
        number: int,
        user_id: str,
    ) -> bool:
        request_type = parse_request_type(request_type)
        return await self._repo(user_id).exists(case_id, request_type.value, number)

    async def get_discovery_stats(self, case_id: str, user_id: str) -> DiscoveryStats:
        """Counts by type and status plus the rounded average completion."""
        raw = await self._repo(user_id).get_stats(case_id)
        by_type = raw["by_type"]
        by_status = raw["by_status"]
        total = sum(by_type.values())
        average = raw["average_completion"]

        return DiscoveryStats(
            total=total,
            rfp_count=by_type.get(RequestType.RFP.value, 0),
            interrogatory_count=by_type.get(RequestType.INTERROGATORY.value, 0),
            complete=by_status.get(RequestStatus.COMPLETE.value, 0),
            partial=by_status.get(RequestStatus.PARTIAL.value, 0),
            incomplete=by_status.get(RequestStatus.INCOMPLETE.value, 0),
            average_completion=round_half_up(float(average)) if total and average is not None else 0,
        )
