"""Document issuance: generate, persist and record generated PDFs."""

from typing import Any, Mapping, Union
from uuid import UUID

from medidoc.core.exceptions import DocumentNotFoundError, ValidationError
from medidoc.repositories.base_repository import coerce_uuid
from medidoc.repositories.document_repository import DocumentRepository
from medidoc.schemas.documents import (
    DocumentRecord,
    DocumentSubtype,
    DraftData,
    IssuedDocument,
    RepersistResult,
)
from medidoc.services.pdf_service import DocumentGenerationService
from medidoc.services.storage_service import StorageService
from medidoc.utils.logging import get_logger

LOGGER = get_logger(__name__)


class DocumentService:
    """Issues documents for requests and backfills degraded ones.

    Document rows are insert-only. A backfill inserts a fresh row with
    the permanent URL, which then wins as the most recent document.
    """

    def __init__(
        self,
        document_repo: DocumentRepository,
        generation_service: DocumentGenerationService,
        storage_service: StorageService,
    ):
        self.document_repo = document_repo
        self.generation_service = generation_service
        self.storage_service = storage_service

    @staticmethod
    def _require_request_id(request_id: Union[str, UUID]) -> UUID:
        parsed = coerce_uuid(request_id)
        if parsed is None:
            raise ValidationError(f"Invalid request ID: {request_id!r}")
        return parsed

    async def issue_document(
        self,
        request_id: Union[str, UUID],
        subtype: Union[str, DocumentSubtype],
        draft_data: Union[DraftData, Mapping[str, Any]],
    ) -> IssuedDocument:
        """Generate a PDF for a request and record it.

        The row is recorded even on the degraded path so the request shows
        a working link; approval stays blocked until it is re-persisted.
        """
        parsed_id = self._require_request_id(request_id)

        pdf = await self.generation_service.generate_document(draft_data, subtype, parsed_id)
        document = await self.document_repo.create_document(
            request_id=parsed_id,
            document_type=pdf.document_type.value,
            subtype=pdf.subtype.value,
            pdf_url=pdf.url,
        )

        if not pdf.permanent:
            LOGGER.warning(
                "Issued document with a temporary URL; re-persist before approval",
                extra={"request_id": str(parsed_id), "document_id": str(document.id)},
            )

        return IssuedDocument(document=DocumentRecord.model_validate(document), pdf=pdf)

    async def repersist_latest_document(self, request_id: Union[str, UUID]) -> RepersistResult:
        """Copy the latest document into permanent storage if it is not there yet.

        Only works while the vendor link is still live.

        Raises:
            DocumentNotFoundError: If the request has no document
        """
        parsed_id = self._require_request_id(request_id)

        latest = await self.document_repo.get_latest_for_request(parsed_id)
        if latest is None:
            raise DocumentNotFoundError(f"No document found for request {parsed_id}")

        if self.storage_service.is_permanent_url(latest.pdf_url):
            return RepersistResult(
                repersisted=False,
                already_permanent=True,
                document=DocumentRecord.model_validate(latest),
            )

        upload = await self.storage_service.upload_from_temporary_url(
            latest.pdf_url, str(parsed_id), latest.type, latest.subtype
        )
        if not upload.success:
            LOGGER.error(
                "Backfill of temporary document failed",
                extra={
                    "request_id": str(parsed_id),
                    "storage_error": upload.error.code.value if upload.error else None,
                },
            )
            return RepersistResult(repersisted=False, storage_error=upload.error)

        document = await self.document_repo.create_document(
            request_id=parsed_id,
            document_type=latest.type,
            subtype=latest.subtype,
            pdf_url=upload.permanent_url,
        )
        LOGGER.info(
            "Temporary document re-persisted",
            extra={"request_id": str(parsed_id), "storage_path": upload.storage_path},
        )
        return RepersistResult(repersisted=True, document=DocumentRecord.model_validate(document))
