"""
Discovery Integration Tests: Request Service
===========================================

Tests against a real SQL engine:
- Creation, category auto-detection and uniqueness
- Owner scoping and ordering
- Partial updates and deletion (with mapping cascade)
- Numbering and statistics
"""

import pytest
from sqlalchemy import func, select

from conftest import CASE_ID, OTHER_USER_ID, USER_ID, make_document
from database.models import DocumentRequestMapping
from discovery.document_mapping import DocumentMappingService
from discovery.errors import DiscoveryValidationError, DuplicateRequestError, NotFoundError
from discovery.models import MappingSource, RequestType
from discovery.requests import DiscoveryRequestService


def rfp(number, text="All bank statements", case_id=CASE_ID, **extra):
    data = {"case_id": case_id, "type": "RFP", "number": number, "text": text}
    data.update(extra)
    return data


@pytest.fixture
def service(session):
    return DiscoveryRequestService(session)


@pytest.mark.integration
class TestCreateRequest:
    """Tests for create_request"""

    @pytest.mark.asyncio
    async def test_defaults_and_detected_category(self, service):
        request = await service.create_request(rfp(1, "All bank statements and tax returns"), USER_ID)
        assert request.id
        assert request.type == "RFP"
        assert request.status == "incomplete"
        assert request.completion_percentage == 0
        assert request.category_hint == "Financial"
        assert request.user_id == USER_ID

    @pytest.mark.asyncio
    async def test_explicit_category_is_kept(self, service):
        request = await service.create_request(rfp(1, "All bank statements", category_hint="legal"), USER_ID)
        assert request.category_hint == "Legal"

    @pytest.mark.asyncio
    async def test_no_category_detected(self, service):
        request = await service.create_request(rfp(1, "Everything else you have"), USER_ID)
        assert request.category_hint is None

    @pytest.mark.asyncio
    async def test_duplicate_number(self, service):
        await service.create_request(rfp(1), USER_ID)
        with pytest.raises(DuplicateRequestError, match="RFP 1 already exists"):
            await service.create_request(rfp(1, "Something else"), USER_ID)

    @pytest.mark.asyncio
    async def test_duplicate_number_from_another_owner_hits_constraint(self, service):
        await service.create_request(rfp(1), USER_ID)
        with pytest.raises(DuplicateRequestError):
            await service.create_request(rfp(1), OTHER_USER_ID)
        # The outer transaction survives the failed insert
        assert len(await service.get_requests(CASE_ID, USER_ID)) == 1

    @pytest.mark.asyncio
    async def test_same_number_allowed_across_types_and_cases(self, service):
        await service.create_request(rfp(1), USER_ID)
        await service.create_request(
            {"case_id": CASE_ID, "type": "interrogatory", "number": 1, "text": "Identify employers"}, USER_ID
        )
        await service.create_request(rfp(1, case_id="case-2"), USER_ID)
        assert len(await service.get_requests(CASE_ID, USER_ID)) == 2

    @pytest.mark.asyncio
    async def test_invalid_payload(self, service):
        with pytest.raises(DiscoveryValidationError, match="Request number must be a positive integer"):
            await service.create_request(rfp(0), USER_ID)


@pytest.mark.integration
class TestReadRequests:
    """Tests for get_requests and get_request"""

    @pytest.mark.asyncio
    async def test_ordered_by_type_then_number(self, service):
        await service.create_request(rfp(2), USER_ID)
        await service.create_request(rfp(1), USER_ID)
        await service.create_request(
            {"case_id": CASE_ID, "type": "Interrogatory", "number": 1, "text": "Identify employers"}, USER_ID
        )
        requests = await service.get_requests(CASE_ID, USER_ID)
        assert [(r.type, r.number) for r in requests] == [("Interrogatory", 1), ("RFP", 1), ("RFP", 2)]

    @pytest.mark.asyncio
    async def test_other_owner_sees_nothing(self, service):
        request = await service.create_request(rfp(1), USER_ID)
        assert await service.get_request(request.id, OTHER_USER_ID) is None
        assert await service.get_requests(CASE_ID, OTHER_USER_ID) == []
        assert (await service.get_request(request.id, USER_ID)).id == request.id


@pytest.mark.integration
class TestUpdateRequest:
    """Tests for update_request"""

    @pytest.mark.asyncio
    async def test_partial_update(self, service):
        request = await service.create_request(rfp(1, notes="Initial"), USER_ID)
        updated = await service.update_request(
            request.id, {"status": "partial", "completion_percentage": 50}, USER_ID
        )
        assert updated.status == "partial"
        assert updated.completion_percentage == 50
        assert updated.notes == "Initial"
        assert updated.text == "All bank statements"

    @pytest.mark.asyncio
    async def test_empty_update_returns_request(self, service):
        request = await service.create_request(rfp(1), USER_ID)
        assert (await service.update_request(request.id, {}, USER_ID)).id == request.id

    @pytest.mark.asyncio
    @pytest.mark.parametrize("data,message", [
        ({"status": "finished"}, "Invalid status: finished"),
        ({"completion_percentage": 120}, "Completion percentage must be between 0 and 100"),
    ])
    async def test_invalid_values(self, service, data, message):
        request = await service.create_request(rfp(1), USER_ID)
        with pytest.raises(DiscoveryValidationError) as exc_info:
            await service.update_request(request.id, data, USER_ID)
        assert str(exc_info.value) == message

    @pytest.mark.asyncio
    async def test_other_owner_cannot_update(self, service):
        request = await service.create_request(rfp(1), USER_ID)
        with pytest.raises(NotFoundError, match="Request not found or not authorized"):
            await service.update_request(request.id, {"notes": "mine now"}, OTHER_USER_ID)

    @pytest.mark.asyncio
    async def test_missing_request(self, service):
        with pytest.raises(NotFoundError):
            await service.update_request("no-such-id", {}, USER_ID)


@pytest.mark.integration
class TestDeleteRequests:
    """Tests for delete_request and delete_all_for_case"""

    @pytest.mark.asyncio
    async def test_delete_cascades_to_mappings(self, session, service, mock_semantic_matcher):
        request = await service.create_request(rfp(1), USER_ID)
        document = make_document("statement.pdf", "Financial")
        session.add(document)
        await session.flush()
        mapping_service = DocumentMappingService(session, semantic_matcher=mock_semantic_matcher)
        await mapping_service.create_document_mapping(
            document.id, request.id, USER_ID, MappingSource.MANUAL_ADDITION
        )

        assert await service.delete_request(request.id, USER_ID) is True

        remaining = await session.execute(select(func.count(DocumentRequestMapping.id)))
        assert remaining.scalar() == 0
        assert await service.get_request(request.id, USER_ID) is None

    @pytest.mark.asyncio
    async def test_delete_by_other_owner_is_refused(self, service):
        request = await service.create_request(rfp(1), USER_ID)
        assert await service.delete_request(request.id, OTHER_USER_ID) is False
        assert await service.get_request(request.id, USER_ID) is not None

    @pytest.mark.asyncio
    async def test_delete_all_for_case(self, service):
        await service.create_request(rfp(1), USER_ID)
        await service.create_request(rfp(2), USER_ID)
        await service.create_request(rfp(1, case_id="case-2"), USER_ID)

        assert await service.delete_all_for_case(CASE_ID, USER_ID) == 2
        assert await service.get_requests(CASE_ID, USER_ID) == []
        assert len(await service.get_requests("case-2", USER_ID)) == 1


@pytest.mark.integration
class TestNumberingAndStats:
    """Tests for numbering helpers and get_discovery_stats"""

    @pytest.mark.asyncio
    async def test_next_number(self, service):
        assert await service.get_next_request_number(CASE_ID, RequestType.RFP, USER_ID) == 1
        await service.create_request(rfp(1), USER_ID)
        await service.create_request(rfp(5), USER_ID)
        assert await service.get_next_request_number(CASE_ID, "rfp", USER_ID) == 6
        assert await service.get_next_request_number(CASE_ID, "Interrogatory", USER_ID) == 1

    @pytest.mark.asyncio
    async def test_request_number_exists(self, service):
        await service.create_request(rfp(3), USER_ID)
        assert await service.request_number_exists(CASE_ID, "RFP", 3, USER_ID) is True
        assert await service.request_number_exists(CASE_ID, "RFP", 4, USER_ID) is False

    @pytest.mark.asyncio
    async def test_stats(self, service):
        first = await service.create_request(rfp(1), USER_ID)
        await service.create_request(rfp(2), USER_ID)
        await service.create_request(
            {"case_id": CASE_ID, "type": "Interrogatory", "number": 1, "text": "Identify employers"}, USER_ID
        )
        await service.update_request(first.id, {"status": "complete", "completion_percentage": 100}, USER_ID)

        stats = await service.get_discovery_stats(CASE_ID, USER_ID)
        assert stats.total == 3
        assert stats.rfp_count == 2
        assert stats.interrogatory_count == 1
        assert stats.complete == 1
        assert stats.partial == 0
        assert stats.incomplete == 2
        assert stats.average_completion == 33

    @pytest.mark.asyncio
    async def test_stats_empty_case(self, service):
        stats = await service.get_discovery_stats(CASE_ID, USER_ID)
        assert stats.total == 0
        assert stats.average_completion == 0
