"""
Discovery Unit Tests: Category Detection
========================================

Tests:
- Keyword-frequency winner selection
- Declaration-order tie-break
- Ranked category listing
- Keyword extraction and taxonomy normalization
"""

import pytest

from discovery.category_detection import (
    CATEGORY_KEYWORDS,
    detect_all_categories,
    detect_category_from_text,
    extract_keywords,
    normalize_category,
)
from discovery.models import DocumentCategory


@pytest.mark.unit
class TestDetectCategory:
    """Tests for detect_category_from_text"""

    def test_bank_statements_and_tax_returns_are_financial(self):
        assert detect_category_from_text("All bank statements and tax returns") == DocumentCategory.FINANCIAL

    def test_case_insensitive(self):
        assert detect_category_from_text("ALL HOSPITAL RECORDS AND PRESCRIPTION HISTORY") == DocumentCategory.MEDICAL

    def test_highest_count_wins(self):
        # Property: deed, title, appraisal (3) vs Financial: loan (1)
        text = "The deed, title and appraisal for the marital residence and the loan"
        assert detect_category_from_text(text) == DocumentCategory.PROPERTY

    def test_tie_goes_to_first_declared_category(self):
        # "salary" (Financial) vs "severance" (Employment): one hit each
        assert detect_category_from_text("salary severance") == DocumentCategory.FINANCIAL

    def test_no_keywords_returns_none(self):
        assert detect_category_from_text("Everything else you have") is None

    def test_empty_text_returns_none(self):
        assert detect_category_from_text("") is None

    def test_keywords_match_as_substrings(self):
        # "id" matches inside "identify"
        assert detect_category_from_text("identify yourself") == DocumentCategory.PERSONAL


@pytest.mark.unit
class TestDetectAllCategories:
    """Tests for detect_all_categories"""

    def test_sorted_by_score_descending(self):
        matches = detect_all_categories("bank statement, tax return and one hospital visit")
        assert [m.category for m in matches][:2] == [DocumentCategory.FINANCIAL, DocumentCategory.MEDICAL]
        assert matches[0].score >= matches[1].score

    def test_matched_keywords_are_reported(self):
        matches = detect_all_categories("custody decree")
        assert len(matches) == 1
        assert matches[0].category == DocumentCategory.LEGAL
        assert set(matches[0].keywords) == {"custody", "decree"}
        assert matches[0].score == 2

    def test_ties_keep_declaration_order(self):
        matches = detect_all_categories("severance salary")
        assert [m.category for m in matches] == [DocumentCategory.FINANCIAL, DocumentCategory.EMPLOYMENT]

    def test_no_hits(self):
        assert detect_all_categories("nothing relevant") == []


@pytest.mark.unit
class TestKeywordsAndTaxonomy:
    """Tests for extract_keywords and normalize_category"""

    def test_extract_keywords_deduplicates(self):
        keywords = extract_keywords("bank statement and another bank statement")
        assert keywords == ["bank", "statement"]

    def test_extract_keywords_across_categories(self):
        keywords = extract_keywords("pay stub and a hospital bill")
        assert "pay stub" in keywords
        assert "hospital" in keywords
        assert "bill" in keywords

    def test_taxonomy_declaration_order(self):
        assert list(CATEGORY_KEYWORDS) == list(DocumentCategory)

    @pytest.mark.parametrize("value,expected", [
        ("financial", DocumentCategory.FINANCIAL),
        ("MEDICAL", DocumentCategory.MEDICAL),
        (" Legal ", DocumentCategory.LEGAL),
        ("Unknown", None),
        ("", None),
        (None, None),
    ])
    def test_normalize_category(self, value, expected):
        assert normalize_category(value) == expected
