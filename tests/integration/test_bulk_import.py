"""
Discovery Integration Tests: Bulk Import
========================================

Tests against a real SQL engine:
- Per-item failures never block later items
- Category auto-detection on import
- CSV input
"""

import pytest

from conftest import CASE_ID, USER_ID
from discovery.bulk_import import DiscoveryImporter, bulk_import_discovery_requests
from discovery.models import ImportLineError
from discovery.requests import DiscoveryRequestService


@pytest.mark.integration
class TestBulkImport:
    """Tests for bulk_import_discovery_requests"""

    @pytest.mark.asyncio
    async def test_imports_all_requests(self, session):
        text = (
            "RFP 1: All bank statements from January 2020 to present.\n"
            "RFP 2: All hospital records\n"
            "  including prescriptions.\n"
            "\n"
            "Interrogatory 1: Identify every employer since 2018.\n"
        )
        result = await bulk_import_discovery_requests(session, CASE_ID, text, USER_ID)

        assert result.imported == 3
        assert result.failed == 0
        assert result.errors == []
        assert [(r["type"], r["number"], r["categoryHint"]) for r in result.requests] == [
            ("RFP", 1, "Financial"),
            ("RFP", 2, "Medical"),
            ("Interrogatory", 1, "Employment"),
        ]
        assert result.requests[1]["text"] == "All hospital records\nincluding prescriptions."
        assert all(r["status"] == "incomplete" for r in result.requests)

    @pytest.mark.asyncio
    async def test_duplicate_within_batch_fails_only_that_item(self, session):
        text = "RFP 1: All bank statements.\nRFP 1: All tax returns.\n"
        result = await bulk_import_discovery_requests(session, CASE_ID, text, USER_ID)

        assert result.imported == 1
        assert result.failed == 1
        assert result.errors == [ImportLineError(line=2, error="RFP 1 already exists")]
        assert result.requests[0]["text"] == "All bank statements."

    @pytest.mark.asyncio
    async def test_existing_requests_are_reported_and_rest_imported(self, session):
        service = DiscoveryRequestService(session)
        await service.create_request(
            {"case_id": CASE_ID, "type": "RFP", "number": 2, "text": "Pay stubs"}, USER_ID
        )

        text = "RFP 1: Bank statements\nRFP 2: Tax returns\nRFP 3: Vehicle titles"
        result = await DiscoveryImporter(session, service).bulk_import(CASE_ID, text, USER_ID)

        assert result.imported == 2
        assert result.failed == 1
        assert result.errors[0].line == 2
        assert "RFP 2 already exists" in result.errors[0].error
        numbers = [r.number for r in await service.get_requests(CASE_ID, USER_ID)]
        assert numbers == [1, 2, 3]

    @pytest.mark.asyncio
    async def test_csv_import(self, session):
        text = "type,number,text\nRFP,1,Statements, receipts and invoices\nINTERROGATORY,1,Identify employers"
        result = await bulk_import_discovery_requests(session, CASE_ID, text, USER_ID)

        assert result.imported == 2
        assert [r["type"] for r in result.requests] == ["RFP", "Interrogatory"]
        assert result.requests[0]["text"] == "Statements, receipts and invoices"

    @pytest.mark.asyncio
    async def test_nothing_to_import(self, session):
        result = await bulk_import_discovery_requests(session, CASE_ID, "No headers here", USER_ID)
        assert result.to_dict() == {"imported": 0, "failed": 0, "requests": [], "errors": []}

    @pytest.mark.asyncio
    async def test_result_to_dict(self, session):
        result = await bulk_import_discovery_requests(
            session, CASE_ID, "RFP 1: Bank statements\nRFP 1: Tax returns", USER_ID
        )
        data = result.to_dict()
        assert data["imported"] == 1
        assert data["errors"] == [{"line": 2, "error": "RFP 1 already exists"}]
