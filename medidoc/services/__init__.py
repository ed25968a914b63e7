"""Service layer modules."""

from medidoc.services.approval_service import ApprovalInvariantChecker
from medidoc.services.document_service import DocumentService
from medidoc.services.pdf_service import DocumentGenerationService
from medidoc.services.storage_service import StorageService

__all__ = [
    "ApprovalInvariantChecker",
    "DocumentGenerationService",
    "DocumentService",
    "StorageService",
]
