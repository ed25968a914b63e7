from typing import Optional, Union
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from medidoc.database.models import GeneratedDocument
from medidoc.repositories.base_repository import BaseRepository, coerce_uuid
from medidoc.utils.logging import get_logger

LOGGER = get_logger(__name__)


class DocumentRepository(BaseRepository[GeneratedDocument]):
    """Repository for generated document records.

    Several documents may exist per request; the most recently created
    one is authoritative.
    """

    def __init__(self, session: AsyncSession):
        """Initialize document repository.

        Args:
            session: SQLAlchemy async session
        """
        super().__init__(session, GeneratedDocument)

    async def get_latest_for_request(
        self,
        request_id: Union[str, UUID]
    ) -> Optional[GeneratedDocument]:
        """Fetch the most recently created document for a request.

        Args:
            request_id: Request ID

        Returns:
            Latest GeneratedDocument, or None if the request has none
        """
        parsed_id = coerce_uuid(request_id)
        if parsed_id is None:
            return None

        result = await self._execute(
            select(GeneratedDocument)
            .where(GeneratedDocument.request_id == parsed_id)
            .order_by(GeneratedDocument.created_at.desc())
            .limit(1),
            f"loading latest document for request {parsed_id}",
        )
        return result.scalar_one_or_none()

    async def count_for_request(self, request_id: Union[str, UUID]) -> int:
        """Count documents referencing a request."""
        parsed_id = coerce_uuid(request_id)
        if parsed_id is None:
            return 0
        return await self.count(request_id=parsed_id)

    async def exists_for_request(self, request_id: Union[str, UUID]) -> bool:
        """Check whether at least one document references a request."""
        return await self.count_for_request(request_id) > 0

    async def create_document(
        self,
        request_id: Union[str, UUID],
        document_type: str,
        subtype: str,
        pdf_url: str,
        verification_code: Optional[str] = None,
    ) -> GeneratedDocument:
        """Insert a new document record.

        Args:
            request_id: Owning request ID
            document_type: Document family (med_cert, referral)
            subtype: Document subtype
            pdf_url: Permanent or degraded temporary URL of the PDF
            verification_code: Optional public verification code

        Returns:
            Created GeneratedDocument record
        """
        document = await self.create(
            request_id=coerce_uuid(request_id),
            type=document_type,
            subtype=subtype,
            pdf_url=pdf_url,
            verification_code=verification_code,
        )
        LOGGER.info(
            "Document record created",
            extra={"request_id": str(request_id), "document_type": document_type, "subtype": subtype},
        )
        return document
