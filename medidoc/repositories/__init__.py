"""Repository layer modules."""

from medidoc.repositories.document_repository import DocumentRepository
from medidoc.repositories.request_repository import RequestRepository

__all__ = [
    "DocumentRepository",
    "RequestRepository",
]
