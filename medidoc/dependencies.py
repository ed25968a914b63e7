"""Application-scoped clients and FastAPI dependency providers.

One ``ServiceContainer`` is built at startup and closed at shutdown. It
owns the shared HTTP client and the database client; request-scoped
services are assembled from it per request.
"""

from collections.abc import AsyncGenerator
from dataclasses import dataclass
from typing import Annotated, Optional

import httpx
from fastapi import Depends, Request
from sqlalchemy.ext.asyncio import AsyncSession

from medidoc.core.config import Settings
from medidoc.core.database import DatabaseClient
from medidoc.repositories.document_repository import DocumentRepository
from medidoc.repositories.request_repository import RequestRepository
from medidoc.services.approval_service import ApprovalInvariantChecker
from medidoc.services.document_service import DocumentService
from medidoc.services.pdf_service import DocumentGenerationService
from medidoc.services.storage_service import StorageService
from medidoc.utils.logging import get_logger

LOGGER = get_logger(__name__)


@dataclass
class ServiceContainer:
    """Long-lived clients shared by every request."""

    settings: Settings
    http_client: httpx.AsyncClient
    database: Optional[DatabaseClient]
    storage_service: StorageService
    generation_service: DocumentGenerationService

    @classmethod
    def build(
        cls,
        settings: Settings,
        http_client: Optional[httpx.AsyncClient] = None,
        database: Optional[DatabaseClient] = None,
    ) -> "ServiceContainer":
        http_client = http_client or httpx.AsyncClient(timeout=settings.http_timeout)
        if database is None:
            database = DatabaseClient.from_settings(settings.db)
        storage_service = StorageService(http_client, settings.supabase)
        generation_service = DocumentGenerationService(
            http_client, settings.apitemplate, settings.clinic, storage_service
        )
        return cls(
            settings=settings,
            http_client=http_client,
            database=database,
            storage_service=storage_service,
            generation_service=generation_service,
        )

    async def aclose(self) -> None:
        await self.http_client.aclose()
        if self.database is not None:
            await self.database.disconnect()
        LOGGER.info("Service container closed")


def get_container(request: Request) -> ServiceContainer:
    return request.app.state.container


async def get_session(
    container: Annotated[ServiceContainer, Depends(get_container)]
) -> AsyncGenerator[AsyncSession, None]:
    """FastAPI dependency for getting an async database session."""
    async with container.database.session() as session:
        yield session


def get_storage_service(
    container: Annotated[ServiceContainer, Depends(get_container)]
) -> StorageService:
    return container.storage_service


def get_generation_service(
    container: Annotated[ServiceContainer, Depends(get_container)]
) -> DocumentGenerationService:
    return container.generation_service


def get_approval_checker(
    session: Annotated[AsyncSession, Depends(get_session)],
    storage_service: Annotated[StorageService, Depends(get_storage_service)],
) -> ApprovalInvariantChecker:
    return ApprovalInvariantChecker(
        RequestRepository(session), DocumentRepository(session), storage_service
    )


def get_document_service(
    session: Annotated[AsyncSession, Depends(get_session)],
    generation_service: Annotated[DocumentGenerationService, Depends(get_generation_service)],
    storage_service: Annotated[StorageService, Depends(get_storage_service)],
) -> DocumentService:
    return DocumentService(DocumentRepository(session), generation_service, storage_service)
