from typing import Optional, Union
from uuid import UUID

from sqlalchemy.ext.asyncio import AsyncSession

from medidoc.database.models import MedicalRequest
from medidoc.repositories.base_repository import BaseRepository
from medidoc.utils.logging import get_logger

LOGGER = get_logger(__name__)


class RequestRepository(BaseRepository[MedicalRequest]):
    """Read access to medical requests.

    Requests are created by intake and mutated by doctor review; this
    repository never writes them.
    """

    def __init__(self, session: AsyncSession):
        super().__init__(session, MedicalRequest)

    async def get_request(self, request_id: Union[str, UUID]) -> Optional[MedicalRequest]:
        """Load a request with its status and payment status.

        Args:
            request_id: Request ID

        Returns:
            The request, or None when it does not exist or the ID is malformed
        """
        request = await self.get_by_id(request_id)
        if request is None:
            LOGGER.info("Request not found", extra={"request_id": str(request_id)})
        return request
