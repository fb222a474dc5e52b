"""
Discovery Date-Range Parser

Pattern-based extraction of date ranges from discovery request text, and
overlap matching of document date spans against those ranges.

Patterns are tried in a fixed priority order and the first match wins:

1. "from X to/through/until Y"      (Y may be present/current/now/today)
2. "[for the] years YYYY-YYYY"
3. "[for the] past/last N months/years"   -> relative marker
4. "[during] [calendar] year YYYY"
5. "Month DD, YYYY through Month DD, YYYY"

Relative ranges are stored as markers ("relative:-6months") and resolved
against today's date only when they are matched, never at parse time.
"""

import re
import calendar
import logging
from datetime import MINYEAR, date, datetime
from typing import Any, Dict, Optional, Union

from .models import DateMatchResult, DocumentMetadata, ParsedDateRange
from .utils import round_half_up

logger = logging.getLogger(__name__)


MONTHS: Dict[str, int] = {
    "january": 1, "jan": 1,
    "february": 2, "feb": 2,
    "march": 3, "mar": 3,
    "april": 4, "apr": 4,
    "may": 5,
    "june": 6, "jun": 6,
    "july": 7, "jul": 7,
    "august": 8, "aug": 8,
    "september": 9, "sep": 9, "sept": 9,
    "october": 10, "oct": 10,
    "november": 11, "nov": 11,
    "december": 12, "dec": 12,
}

RELATIVE_PREFIX = "relative:"
EPOCH = date(1970, 1, 1)

FROM_TO_PATTERN = re.compile(
    r"from\s+(.+?)\s+(?:to|through|until)\s+(.+?)(?:\.|$)", re.IGNORECASE
)
YEAR_RANGE_PATTERN = re.compile(
    r"(?:for\s+)?(?:the\s+)?years?\s+(\d{4})\s*[-–—]\s*(\d{4})", re.IGNORECASE
)
PAST_PERIOD_PATTERN = re.compile(
    r"(?:for\s+)?(?:the\s+)?(?:past|last)\s+(\d+)\s+(months?|years?)", re.IGNORECASE
)
CALENDAR_YEAR_PATTERN = re.compile(
    r"(?:during\s+)?(?:calendar\s+)?year\s+(\d{4})", re.IGNORECASE
)
FULL_DATE_RANGE_PATTERN = re.compile(
    r"(\w+)\s+(\d{1,2})(?:st|nd|rd|th)?,?\s+(\d{4})\s+(?:through|to|until)\s+"
    r"(\w+)\s+(\d{1,2})(?:st|nd|rd|th)?,?\s+(\d{4})",
    re.IGNORECASE,
)
PRESENT_PATTERN = re.compile(r"present|current|now|today", re.IGNORECASE)
RELATIVE_MARKER_PATTERN = re.compile(r"^relative:-(\d+)(months?|years?)$")

YEAR_ONLY = re.compile(r"^(\d{4})$")
MONTH_YEAR = re.compile(r"^(\w+)\s+(\d{4})$")
MONTH_DAY_YEAR = re.compile(r"^(\w+)\s+(\d{1,2})(?:st|nd|rd|th)?,?\s+(\d{4})$")
ISO_DATE_PREFIX = re.compile(r"^(\d{4})-(\d{2})-(\d{2})")


def _format_date(year: int, month: int, day: int) -> Optional[str]:
    """ISO string for a calendar date, None when the date does not exist."""
    try:
        return date(year, month, day).isoformat()
    except ValueError:
        return None


def parse_date(text: str) -> Optional[str]:
    """
    Parse a single date phrase into an ISO date string.

    Supports "2023" (Jan 1), "March 2023" (1st of month) and
    "March 15, 2023" / "mar 15th 2023".
    """
    if not text:
        return None
    trimmed = text.strip().lower()

    match = YEAR_ONLY.match(trimmed)
    if match:
        return f"{match.group(1)}-01-01"

    match = MONTH_YEAR.match(trimmed)
    if match:
        month = MONTHS.get(match.group(1))
        if month is not None:
            return _format_date(int(match.group(2)), month, 1)

    match = MONTH_DAY_YEAR.match(trimmed)
    if match:
        month = MONTHS.get(match.group(1))
        if month is not None:
            return _format_date(int(match.group(3)), month, int(match.group(2)))

    return None


def parse_date_range_from_text(text: str) -> ParsedDateRange:
    """Extract the first date range found in request text."""
    normalized = (text or "").lower()

    match = FROM_TO_PATTERN.search(normalized)
    if match:
        end_text = match.group(2).strip()
        is_present = bool(PRESENT_PATTERN.search(end_text))
        return ParsedDateRange(
            start_date=parse_date(match.group(1)),
            end_date=None if is_present else parse_date(end_text),
            is_relative=False,
            is_open_ended=is_present,
            original_text=match.group(0),
        )

    match = YEAR_RANGE_PATTERN.search(normalized)
    if match:
        return ParsedDateRange(
            start_date=f"{match.group(1)}-01-01",
            end_date=f"{match.group(2)}-12-31",
            original_text=match.group(0),
        )

    match = PAST_PERIOD_PATTERN.search(normalized)
    if match:
        amount = int(match.group(1))
        unit = "months" if match.group(2).startswith("month") else "years"
        return ParsedDateRange(
            start_date=f"{RELATIVE_PREFIX}-{amount}{unit}",
            end_date=None,
            is_relative=True,
            is_open_ended=True,
            original_text=match.group(0),
        )

    match = CALENDAR_YEAR_PATTERN.search(normalized)
    if match:
        year = match.group(1)
        return ParsedDateRange(
            start_date=f"{year}-01-01",
            end_date=f"{year}-12-31",
            original_text=match.group(0),
        )

    match = FULL_DATE_RANGE_PATTERN.search(normalized)
    if match:
        start_month = MONTHS.get(match.group(1))
        end_month = MONTHS.get(match.group(4))
        if start_month is not None and end_month is not None:
            return ParsedDateRange(
                start_date=_format_date(int(match.group(3)), start_month, int(match.group(2))),
                end_date=_format_date(int(match.group(6)), end_month, int(match.group(5))),
                original_text=match.group(0),
            )

    return ParsedDateRange()


def _subtract_months(day: date, months: int) -> date:
    total = day.year * 12 + (day.month - 1) - months
    year, month = divmod(total, 12)
    if year < MINYEAR:
        return date.min
    month += 1
    last_day = calendar.monthrange(year, month)[1]
    return date(year, month, min(day.day, last_day))


def resolve_relative_date(marker: str, today: Optional[date] = None) -> str:
    """
    Convert "relative:-Nmonths" / "relative:-Nyears" to an ISO date counted
    back from today. Anything else is returned unchanged.
    """
    match = RELATIVE_MARKER_PATTERN.match(marker or "")
    if not match:
        return marker

    amount = int(match.group(1))
    today = today or date.today()
    if match.group(2).startswith("month"):
        resolved = _subtract_months(today, amount)
    else:
        resolved = _subtract_months(today, amount * 12)
    return resolved.isoformat()


def to_date(value: Any) -> Optional[date]:
    """Best-effort conversion of a stored date value into a date."""
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value

    text = str(value).strip()
    match = ISO_DATE_PREFIX.match(text)
    if match:
        try:
            return date(int(match.group(1)), int(match.group(2)), int(match.group(3)))
        except ValueError:
            return None

    parsed = parse_date(text)
    return date.fromisoformat(parsed) if parsed else None


def _range_bound(value: Optional[str], today: date) -> Optional[date]:
    if not value:
        return None
    if value.startswith(RELATIVE_PREFIX):
        value = resolve_relative_date(value, today)
    return to_date(value)


def _no_match(total_days: int = 0) -> DateMatchResult:
    return DateMatchResult(matches=False, overlap_percentage=0, overlap_days=0, total_days=total_days)


def match_document_to_date_range(
    metadata: Union[DocumentMetadata, Dict[str, Any], None],
    date_range: ParsedDateRange,
    today: Optional[date] = None,
) -> DateMatchResult:
    """
    Compare a document's date span against a requested range.

    The document span is [start, end or start]; the requested range is
    [start or epoch, end or today]. overlap_percentage is the overlapping
    share of the document's own span (minimum span of one day).
    """
    if date_range.start_date is None and date_range.end_date is None:
        return DateMatchResult(matches=True, overlap_percentage=100, overlap_days=0, total_days=0)

    if isinstance(metadata, dict):
        metadata = DocumentMetadata.from_dict(metadata)
    if metadata is None or not metadata.has_dates:
        return _no_match()

    doc_start = to_date(metadata.start_date)
    if doc_start is None:
        return _no_match()
    doc_end = to_date(metadata.end_date) or doc_start
    if doc_end < doc_start:
        doc_start, doc_end = doc_end, doc_start

    today = today or date.today()
    range_start = _range_bound(date_range.start_date, today) or EPOCH
    range_end = _range_bound(date_range.end_date, today) or today

    span_days = (doc_end - doc_start).days
    overlap_start = max(doc_start, range_start)
    overlap_end = min(doc_end, range_end)

    if overlap_start > overlap_end:
        return _no_match(total_days=span_days)

    overlap_days = (overlap_end - overlap_start).days
    if span_days == 0:
        # A single-day document inside the range overlaps by that one day
        overlap_days = 1
    total_days = span_days or 1
    overlap_percentage = min(round_half_up(overlap_days / total_days * 100), 100)

    return DateMatchResult(
        matches=True,
        overlap_percentage=overlap_percentage,
        overlap_days=overlap_days,
        total_days=total_days,
    )
