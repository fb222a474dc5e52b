"""
Discovery Bulk Import

Splits pasted discovery text (or a CSV export) into individual requests and
imports them one by one. Import is at-least-effort: a failing item is
recorded against its 1-based position and the rest still go in.

Line format::

    RFP 1: All bank statements from January 2020 to present.
    REQUEST FOR PRODUCTION NO. 2 - Tax returns for the years 2019-2021.
    Interrogatory #3. Identify every employer since 2018
        continuation lines are appended to the open request

CSV format (first line is the header)::

    type,number,text
    RFP,1,"Bank statements, all accounts"
"""

import re
import logging
from typing import Iterable, List, Optional

from sqlalchemy.ext.asyncio import AsyncSession

from .category_detection import detect_category_from_text
from .errors import DiscoveryError
from .models import (
    BulkImportResult,
    ImportLineError,
    ImportValidation,
    ParsedRequest,
    RequestType,
)
from .requests import DiscoveryRequestService

logger = logging.getLogger(__name__)


RFP_HEADER = re.compile(
    r"^(?:RFP|REQUEST\s+FOR\s+PRODUCTION)(?:\s+(?:NO\.?|#))?\s*(\d+)\s*[:\-\.]\s*(.+)",
    re.IGNORECASE,
)
INTERROGATORY_HEADER = re.compile(
    r"^(?:INTERROGATORY|INTERROG)(?:\s+(?:NO\.?|#))?\s*(\d+)\s*[:\-\.]\s*(.+)",
    re.IGNORECASE,
)
CSV_HEADER = re.compile(r"^type\s*,\s*number\s*,\s*text", re.IGNORECASE)
LEADING_DIGITS = re.compile(r"^(\d+)")

HEADER_PATTERNS = (
    (RFP_HEADER, RequestType.RFP),
    (INTERROGATORY_HEADER, RequestType.INTERROGATORY),
)


# ============================================
# Parsing
# ============================================

def _match_header(line: str) -> Optional[ParsedRequest]:
    for pattern, request_type in HEADER_PATTERNS:
        match = pattern.match(line)
        if match:
            return ParsedRequest(
                type=request_type,
                number=int(match.group(1)),
                text=match.group(2).strip(),
            )
    return None


def parse_discovery_text(text: str) -> List[ParsedRequest]:
    """
    Split free-form discovery text into requests.

    A header line opens a request, plain lines extend the open one, and a
    blank line closes it. Lines before the first header are ignored.
    """
    lines = (text or "").split("\n")

    if lines and CSV_HEADER.match(lines[0].strip()):
        return parse_csv(lines[1:])

    requests: List[ParsedRequest] = []
    current: Optional[ParsedRequest] = None

    for raw_line in lines:
        line = raw_line.strip()

        if not line:
            if current:
                requests.append(current)
                current = None
            continue

        header = _match_header(line)
        if header:
            if current:
                requests.append(current)
            current = header
            continue

        if current:
            current.text += "\n" + line

    if current:
        requests.append(current)

    return requests


def parse_csv(lines: Iterable[str]) -> List[ParsedRequest]:
    """
    Parse ``type,number,text`` rows (header already removed).

    Text keeps any further commas, and one pair of surrounding double quotes
    is removed. Rows with an unknown type, a non-numeric number or empty
    text are skipped.
    """
    requests: List[ParsedRequest] = []

    for line in lines:
        trimmed = line.strip()
        if not trimmed:
            continue

        parts = [part.strip() for part in trimmed.split(",", 2)]
        if len(parts) < 3:
            continue

        raw_type = parts[0].upper()
        number_match = LEADING_DIGITS.match(parts[1])
        text = parts[2]
        if len(text) >= 2 and text[0] == text[-1] == '"':
            text = text[1:-1].replace('""', '"').strip()

        if raw_type == "RFP":
            request_type = RequestType.RFP
        elif raw_type == "INTERROGATORY":
            request_type = RequestType.INTERROGATORY
        else:
            continue
        if not number_match or not text:
            continue

        requests.append(ParsedRequest(type=request_type, number=int(number_match.group(1)), text=text))

    return requests


def validate_import_text(text: str) -> ImportValidation:
    """Dry run: count parseable requests and flag in-batch duplicates."""
    parsed = parse_discovery_text(text)
    errors: List[str] = []

    if not parsed:
        errors.append("No valid discovery requests found in the text")

    seen = set()
    for request in parsed:
        key = (request.type, request.number)
        if key in seen:
            errors.append(f"Duplicate {request.type.value} {request.number} in import")
        seen.add(key)

    return ImportValidation(valid=not errors, count=len(parsed), errors=errors)


# ============================================
# Import
# ============================================

class DiscoveryImporter:
    """
    Imports parsed requests for one case.

    Each item runs in its own SAVEPOINT so a failed insert never poisons
    the caller's transaction.
    """

    def __init__(self, session: AsyncSession, request_service: Optional[DiscoveryRequestService] = None):
        self.session = session
        self.request_service = request_service or DiscoveryRequestService(session)

    async def bulk_import(self, case_id: str, text: str, user_id: str) -> BulkImportResult:
        parsed = parse_discovery_text(text)
        result = BulkImportResult()

        for index, item in enumerate(parsed):
            position = index + 1

            if await self.request_service.request_number_exists(case_id, item.type, item.number, user_id):
                result.failed += 1
                result.errors.append(
                    ImportLineError(line=position, error=f"{item.type.value} {item.number} already exists")
                )
                continue

            detected = detect_category_from_text(item.text)
            try:
                async with self.session.begin_nested():
                    created = await self.request_service.create_request(
                        {
                            "case_id": case_id,
                            "type": item.type,
                            "number": item.number,
                            "text": item.text,
                            "category_hint": detected.value if detected else None,
                        },
                        user_id,
                    )
            except DiscoveryError as e:
                logger.warning("Import item %d failed: %s", position, e, extra={"case_id": case_id})
                result.failed += 1
                result.errors.append(ImportLineError(line=position, error=str(e) or "Unknown error"))
                continue

            result.imported += 1
            result.requests.append(created.to_dict())

        logger.info(
            "Bulk import finished: %d imported, %d failed",
            result.imported,
            result.failed,
            extra={"case_id": case_id, "user_id": user_id},
        )
        return result


async def bulk_import_discovery_requests(
    session: AsyncSession,
    case_id: str,
    text: str,
    user_id: str,
) -> BulkImportResult:
    """Parse ``text`` and import every request it contains into the case."""
    return await DiscoveryImporter(session).bulk_import(case_id, text, user_id)
