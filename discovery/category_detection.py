"""
Discovery Category Detection

Keyword-frequency classifier that maps request text onto the fixed document
taxonomy. Each category scores one point per keyword found as a substring of
the lowercased text; the highest score wins and ties go to the category
declared first in CATEGORY_KEYWORDS.
"""

import logging
from typing import Dict, List, Optional, Tuple

from .models import CategoryMatch, DocumentCategory

logger = logging.getLogger(__name__)


# Declaration order doubles as the tie-break order
CATEGORY_KEYWORDS: Dict[DocumentCategory, Tuple[str, ...]] = {
    DocumentCategory.FINANCIAL: (
        "bank", "statement", "account", "tax", "return",
        "w-2", "w2", "1099", "pay stub", "paystub", "paycheck",
        "income", "wage", "salary", "credit card", "loan", "debt",
        "mortgage", "investment", "401k", "ira", "retirement",
        "brokerage", "stock", "bond", "mutual fund", "financial",
        "checking", "savings",
    ),
    DocumentCategory.MEDICAL: (
        "medical", "health", "hospital", "doctor", "physician",
        "prescription", "pharmacy", "insurance", "bill", "treatment",
        "diagnosis", "surgery", "therapy", "mental health", "dental",
        "vision",
    ),
    DocumentCategory.EMPLOYMENT: (
        "employment", "employer", "employee", "job", "work",
        "contract", "agreement", "offer letter", "termination",
        "severance", "benefits", "bonus", "commission",
        "performance review",
    ),
    DocumentCategory.PROPERTY: (
        "property", "deed", "title", "real estate", "house", "home",
        "land", "vehicle", "car", "auto", "boat", "appraisal",
        "assessment", "valuation",
    ),
    DocumentCategory.LEGAL: (
        "marriage", "certificate", "prenup", "prenuptial",
        "postnuptial", "custody", "divorce", "court order",
        "judgment", "decree", "restraining order", "protective order",
    ),
    DocumentCategory.PERSONAL: (
        "birth certificate", "passport", "id", "identification",
        "driver", "license", "social security", "ssn", "immigration",
        "visa", "citizenship",
    ),
}


def _matched_keywords(normalized_text: str, keywords: Tuple[str, ...]) -> List[str]:
    return [kw for kw in keywords if kw in normalized_text]


def detect_category_from_text(text: str) -> Optional[DocumentCategory]:
    """
    Detect the most likely document category for request text.

    Returns None when no keyword from any category occurs.
    """
    if not text:
        return None

    normalized = text.lower()
    best_category: Optional[DocumentCategory] = None
    best_score = 0

    for category, keywords in CATEGORY_KEYWORDS.items():
        score = len(_matched_keywords(normalized, keywords))
        # Strictly greater: an equal later score never displaces an earlier one
        if score > best_score:
            best_score = score
            best_category = category

    logger.debug("Category detection: %s (score=%d)", best_category, best_score)
    return best_category


def detect_all_categories(text: str) -> List[CategoryMatch]:
    """Every category with at least one keyword hit, highest score first."""
    if not text:
        return []

    normalized = text.lower()
    results = []
    for category, keywords in CATEGORY_KEYWORDS.items():
        matched = _matched_keywords(normalized, keywords)
        if matched:
            results.append(CategoryMatch(category=category, score=len(matched), keywords=matched))

    # sorted() is stable, so equal scores keep declaration order
    return sorted(results, key=lambda m: m.score, reverse=True)


def extract_keywords(text: str) -> List[str]:
    """Deduplicated taxonomy keywords present in the text, in table order."""
    if not text:
        return []

    normalized = text.lower()
    seen: Dict[str, None] = {}
    for keywords in CATEGORY_KEYWORDS.values():
        for keyword in _matched_keywords(normalized, keywords):
            seen.setdefault(keyword, None)
    return list(seen)


def normalize_category(value: Optional[str]) -> Optional[DocumentCategory]:
    """Case-insensitive lookup of a taxonomy name; None for unknown or empty."""
    if not value:
        return None
    if isinstance(value, DocumentCategory):
        return value
    wanted = value.strip().lower()
    for category in DocumentCategory:
        if category.value.lower() == wanted:
            return category
    return None
