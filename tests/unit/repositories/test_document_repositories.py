"""Unit tests for the request and document repositories."""

import pytest
from uuid import uuid4
from unittest.mock import Mock

from sqlalchemy.exc import IntegrityError, OperationalError

from medidoc.core.exceptions import DatabaseError
from medidoc.database.models import GeneratedDocument, MedicalRequest
from medidoc.repositories.base_repository import coerce_uuid
from medidoc.repositories.document_repository import DocumentRepository
from medidoc.repositories.request_repository import RequestRepository


def scalar_result(value) -> Mock:
    result = Mock()
    result.scalar_one_or_none.return_value = value
    result.scalar_one.return_value = value
    return result


def test_coerce_uuid():
    value = uuid4()

    assert coerce_uuid(value) is value
    assert coerce_uuid(str(value)) == value
    assert coerce_uuid(f" {value} ") == value
    assert coerce_uuid("not-a-uuid") is None
    assert coerce_uuid("") is None
    assert coerce_uuid(None) is None


@pytest.mark.asyncio
async def test_get_request(mock_session):
    request = MedicalRequest(id=uuid4(), status="pending", payment_status="paid")
    mock_session.execute.return_value = scalar_result(request)

    found = await RequestRepository(mock_session).get_request(str(request.id))

    assert found is request
    mock_session.execute.assert_awaited_once()


@pytest.mark.asyncio
async def test_get_request_with_malformed_id_skips_query(mock_session):
    found = await RequestRepository(mock_session).get_request("definitely-not-a-uuid")

    assert found is None
    mock_session.execute.assert_not_awaited()


@pytest.mark.asyncio
async def test_get_latest_for_request_orders_by_creation_time(mock_session):
    request_id = uuid4()
    document = GeneratedDocument(id=uuid4(), request_id=request_id, type="med_cert", subtype="work", pdf_url="u")
    mock_session.execute.return_value = scalar_result(document)

    latest = await DocumentRepository(mock_session).get_latest_for_request(request_id)

    assert latest is document
    statement = str(mock_session.execute.call_args[0][0])
    assert "ORDER BY documents.created_at DESC" in statement
    assert "LIMIT" in statement


@pytest.mark.asyncio
async def test_get_latest_for_request_with_malformed_id(mock_session):
    assert await DocumentRepository(mock_session).get_latest_for_request("nope") is None
    mock_session.execute.assert_not_awaited()


@pytest.mark.asyncio
async def test_exists_for_request(mock_session):
    mock_session.execute.return_value = scalar_result(2)
    repo = DocumentRepository(mock_session)

    assert await repo.count_for_request(uuid4()) == 2
    assert await repo.exists_for_request(uuid4()) is True


@pytest.mark.asyncio
async def test_exists_for_request_without_documents(mock_session):
    mock_session.execute.return_value = scalar_result(0)

    assert await DocumentRepository(mock_session).exists_for_request(uuid4()) is False


@pytest.mark.asyncio
async def test_create_document(mock_session):
    request_id = uuid4()
    repo = DocumentRepository(mock_session)

    document = await repo.create_document(
        request_id=str(request_id),
        document_type="referral",
        subtype="pathology_imaging",
        pdf_url="https://test.supabase.co/storage/v1/object/public/documents/x.pdf",
    )

    assert isinstance(document, GeneratedDocument)
    assert document.request_id == request_id
    assert document.type == "referral"
    assert document.subtype == "pathology_imaging"
    assert document.verification_code is None
    mock_session.add.assert_called_once_with(document)
    mock_session.commit.assert_awaited_once()
    mock_session.refresh.assert_awaited_once_with(document)


@pytest.mark.asyncio
async def test_query_failure_raises_database_error(mock_session):
    mock_session.execute.side_effect = OperationalError("SELECT", {}, Exception("connection reset"))

    with pytest.raises(DatabaseError, match="loading latest document"):
        await DocumentRepository(mock_session).get_latest_for_request(uuid4())


@pytest.mark.asyncio
async def test_failed_insert_is_rolled_back(mock_session):
    mock_session.commit.side_effect = IntegrityError("INSERT", {}, Exception("fk violation"))

    with pytest.raises(DatabaseError, match="Failed to insert GeneratedDocument"):
        await DocumentRepository(mock_session).create_document(uuid4(), "med_cert", "work", "u")

    mock_session.rollback.assert_awaited_once()
