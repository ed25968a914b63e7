"""Unit tests for approval invariants."""

from datetime import datetime, timezone
from unittest.mock import AsyncMock, Mock
from uuid import uuid4

import httpx
import pytest

from medidoc.core.exceptions import InvariantError
from medidoc.database.models import GeneratedDocument, MedicalRequest
from medidoc.repositories.document_repository import DocumentRepository
from medidoc.repositories.request_repository import RequestRepository
from medidoc.schemas.approval import UrlClassification, ViolationKind
from medidoc.services.approval_service import TEMPORARY_URL_MESSAGE, ApprovalInvariantChecker
from medidoc.services.storage_service import StorageService

APITEMPLATE_URL = "https://pdf-temp.apitemplate.io/render/abc123.pdf"
S3_URL = "https://pdf-temp-files.s3.ap-southeast-2.amazonaws.com/abc.pdf?X-Amz-Expires=3600"


def make_request(status: str = "pending", payment_status: str = "paid") -> MedicalRequest:
    return MedicalRequest(id=uuid4(), status=status, payment_status=payment_status)


def make_document(request_id, pdf_url: str) -> GeneratedDocument:
    return GeneratedDocument(
        id=uuid4(),
        request_id=request_id,
        type="med_cert",
        subtype="work",
        pdf_url=pdf_url,
        created_at=datetime.now(timezone.utc),
    )


@pytest.fixture
def request_repo() -> Mock:
    repo = Mock(spec=RequestRepository)
    repo.get_request = AsyncMock(return_value=None)
    return repo


@pytest.fixture
def document_repo() -> Mock:
    repo = Mock(spec=DocumentRepository)
    repo.get_latest_for_request = AsyncMock(return_value=None)
    repo.exists_for_request = AsyncMock(return_value=False)
    return repo


@pytest.fixture
def checker(request_repo, document_repo, supabase_settings) -> ApprovalInvariantChecker:
    storage = StorageService(Mock(spec=httpx.AsyncClient), supabase_settings)
    return ApprovalInvariantChecker(request_repo, document_repo, storage)


@pytest.fixture
def permanent_url(public_prefix) -> str:
    return f"{public_prefix}/{uuid4()}/med_cert_work_1700000000000.pdf"


class TestCheckInvariants:

    @pytest.mark.asyncio
    async def test_paid_pending_request_with_permanent_url_passes(self, checker, request_repo, permanent_url):
        request_repo.get_request.return_value = make_request()

        result = await checker.check_invariants(str(uuid4()), permanent_url)

        assert result.valid is True
        assert result.errors == []
        assert result.warnings == []

    @pytest.mark.asyncio
    async def test_needs_follow_up_is_approvable(self, checker, request_repo):
        request_repo.get_request.return_value = make_request(status="needs_follow_up")

        result = await checker.check_invariants(str(uuid4()))

        assert result.valid is True

    @pytest.mark.asyncio
    async def test_unpaid_request_fails(self, checker, request_repo, permanent_url):
        request_repo.get_request.return_value = make_request(payment_status="pending")

        result = await checker.check_invariants(str(uuid4()), permanent_url)

        assert result.valid is False
        assert result.errors == ["Payment required: payment status is 'pending'"]
        assert result.violations[0].kind == ViolationKind.PAYMENT_REQUIRED

    @pytest.mark.asyncio
    async def test_already_approved_request_fails(self, checker, request_repo, permanent_url):
        request_repo.get_request.return_value = make_request(status="approved")

        result = await checker.check_invariants(str(uuid4()), permanent_url)

        assert result.errors == [
            "Invalid status for approval: 'approved'. Must be one of: pending, needs_follow_up"
        ]

    @pytest.mark.asyncio
    @pytest.mark.parametrize("url", [APITEMPLATE_URL, S3_URL])
    async def test_temporary_url_fails(self, checker, request_repo, url):
        request_repo.get_request.return_value = make_request()

        result = await checker.check_invariants(str(uuid4()), url)

        assert result.valid is False
        assert result.errors == [TEMPORARY_URL_MESSAGE]
        assert result.violations[0].kind == ViolationKind.TEMPORARY_URL

    @pytest.mark.asyncio
    async def test_every_failure_is_reported_in_order(self, checker, request_repo):
        request_repo.get_request.return_value = make_request(status="declined", payment_status="failed")

        result = await checker.check_invariants(str(uuid4()), APITEMPLATE_URL)

        assert [violation.kind for violation in result.violations] == [
            ViolationKind.PAYMENT_REQUIRED,
            ViolationKind.INVALID_STATUS,
            ViolationKind.TEMPORARY_URL,
        ]
        assert len(result.errors) == 3

    @pytest.mark.asyncio
    async def test_unknown_host_passes_with_warning(self, checker, request_repo):
        request_repo.get_request.return_value = make_request()
        url = "https://cdn.example.com/certificates/doc.pdf"

        result = await checker.check_invariants(str(uuid4()), url)

        assert result.valid is True
        assert result.warnings == [f"Document URL might not be permanent: {url}"]

    @pytest.mark.asyncio
    async def test_lookalike_vendor_host_is_not_temporary(self, checker, request_repo):
        request_repo.get_request.return_value = make_request()

        result = await checker.check_invariants(str(uuid4()), "https://apitemplate.io.example.com/doc.pdf")

        assert result.valid is True
        assert len(result.warnings) == 1

    @pytest.mark.asyncio
    @pytest.mark.parametrize("url", ["not a url", "", "ftp://files.example.com/doc.pdf"])
    async def test_malformed_url_fails(self, checker, request_repo, url):
        request_repo.get_request.return_value = make_request()

        result = await checker.check_invariants(str(uuid4()), url)

        assert result.valid is False
        assert result.errors == ["Invalid document URL format"]

    @pytest.mark.asyncio
    async def test_missing_request_fails(self, checker, request_repo):
        result = await checker.check_invariants(str(uuid4()))

        assert result.valid is False
        assert result.errors == ["Request not found"]

    @pytest.mark.asyncio
    async def test_checks_are_repeatable(self, checker, request_repo):
        request_repo.get_request.return_value = make_request(payment_status="pending")
        request_id = str(uuid4())

        first = await checker.check_invariants(request_id, APITEMPLATE_URL)
        second = await checker.check_invariants(request_id, APITEMPLATE_URL)

        assert first == second


class TestRequireDocument:

    @pytest.mark.asyncio
    async def test_missing_document_fails(self, checker, request_repo, document_repo):
        request_repo.get_request.return_value = make_request()

        result = await checker.check_invariants(str(uuid4()), require_document=True)

        assert result.errors == ["Document missing: no document found for request"]
        document_repo.get_latest_for_request.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_latest_document_url_is_checked(self, checker, request_repo, document_repo):
        request = make_request()
        request_repo.get_request.return_value = request
        document_repo.get_latest_for_request.return_value = make_document(request.id, APITEMPLATE_URL)

        result = await checker.check_invariants(str(request.id), require_document=True)

        assert result.violations[0].kind == ViolationKind.TEMPORARY_URL

    @pytest.mark.asyncio
    async def test_candidate_url_takes_precedence(self, checker, request_repo, document_repo, permanent_url):
        request_repo.get_request.return_value = make_request()

        result = await checker.check_invariants(str(uuid4()), permanent_url, require_document=True)

        assert result.valid is True
        document_repo.get_latest_for_request.assert_not_awaited()


class TestAssertInvariants:

    @pytest.mark.asyncio
    async def test_passing_request_returns_result(self, checker, request_repo, permanent_url):
        request_repo.get_request.return_value = make_request()

        result = await checker.assert_invariants(str(uuid4()), permanent_url)

        assert result.valid is True

    @pytest.mark.asyncio
    async def test_warnings_do_not_block(self, checker, request_repo):
        request_repo.get_request.return_value = make_request()

        result = await checker.assert_invariants(str(uuid4()), "https://cdn.example.com/doc.pdf")

        assert result.valid is True
        assert len(result.warnings) == 1

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        "status, payment_status, url, code",
        [
            ("pending", "pending", None, "PAYMENT_REQUIRED"),
            ("approved", "paid", None, "INVALID_STATUS"),
            ("pending", "paid", APITEMPLATE_URL, "TEMPORARY_URL"),
            ("pending", "paid", "not a url", "DOCUMENT_MISSING"),
        ],
    )
    async def test_error_code_follows_first_violation(
        self, checker, request_repo, status, payment_status, url, code
    ):
        request_repo.get_request.return_value = make_request(status=status, payment_status=payment_status)

        with pytest.raises(InvariantError) as exc_info:
            await checker.assert_invariants(str(uuid4()), url)

        assert exc_info.value.code == code
        assert exc_info.value.message.startswith("Cannot approve request: ")

    @pytest.mark.asyncio
    async def test_error_carries_every_message(self, checker, request_repo):
        request_repo.get_request.return_value = make_request(status="cancelled", payment_status="refunded")

        with pytest.raises(InvariantError) as exc_info:
            await checker.assert_invariants(str(uuid4()), APITEMPLATE_URL)

        error = exc_info.value
        assert error.code == "PAYMENT_REQUIRED"
        assert len(error.details) == 3
        assert error.to_dict()["details"][-1] == TEMPORARY_URL_MESSAGE


class TestDocumentChecks:

    @pytest.mark.asyncio
    async def test_document_exists_for_request(self, checker, document_repo):
        document_repo.exists_for_request.return_value = True

        assert await checker.document_exists_for_request(uuid4()) is True

    @pytest.mark.asyncio
    async def test_latest_permanent_document(self, checker, document_repo, permanent_url):
        request_id = uuid4()
        document_repo.get_latest_for_request.return_value = make_document(request_id, permanent_url)

        result = await checker.most_recent_document_url_is_permanent(request_id)

        assert result.valid is True
        assert result.url == permanent_url

    @pytest.mark.asyncio
    async def test_latest_temporary_document(self, checker, document_repo):
        request_id = uuid4()
        document_repo.get_latest_for_request.return_value = make_document(request_id, APITEMPLATE_URL)

        result = await checker.most_recent_document_url_is_permanent(request_id)

        assert result.valid is False
        assert result.url == APITEMPLATE_URL
        assert result.error == "Document URL is not a permanent storage URL"

    @pytest.mark.asyncio
    async def test_no_document(self, checker):
        result = await checker.most_recent_document_url_is_permanent(uuid4())

        assert result.valid is False
        assert result.error == "No document found for request"


class TestClassifyUrl:

    def test_classifications(self, checker, permanent_url):
        assert checker.classify_url(permanent_url) == UrlClassification.PERMANENT
        assert checker.classify_url(APITEMPLATE_URL) == UrlClassification.TEMPORARY
        assert checker.classify_url(S3_URL) == UrlClassification.TEMPORARY
        assert checker.classify_url("https://cdn.example.com/a.pdf") == UrlClassification.UNKNOWN
        assert checker.classify_url("https://[broken") == UrlClassification.INVALID
