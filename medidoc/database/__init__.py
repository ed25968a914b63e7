"""Database module for SQLAlchemy models."""

from medidoc.database.models import GeneratedDocument, MedicalRequest

__all__ = [
    "GeneratedDocument",
    "MedicalRequest",
]
