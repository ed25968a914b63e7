"""Result types returned by the storage service.

Storage operations never raise; every failure is reported as a
``StorageError`` tagged with one of the ``StorageErrorCode`` values.
"""

from enum import Enum
from typing import Optional

from pydantic import BaseModel, Field


class StorageErrorCode(str, Enum):
    MISSING_INPUT = "MISSING_INPUT"
    INVALID_FORMAT = "INVALID_FORMAT"
    DOWNLOAD_FAILED = "DOWNLOAD_FAILED"
    UPLOAD_FAILED = "UPLOAD_FAILED"
    SIZE_EXCEEDED = "SIZE_EXCEEDED"


class StorageError(BaseModel):
    """Tagged storage failure."""

    code: StorageErrorCode = Field(..., description="Failure category")
    message: str = Field(..., description="Human readable failure reason")
    status_code: Optional[int] = Field(
        default=None, description="Upstream HTTP status for download failures"
    )


class StorageUploadResult(BaseModel):
    """Outcome of persisting a PDF to permanent storage."""

    success: bool
    permanent_url: Optional[str] = Field(
        default=None, description="Public URL of the stored object"
    )
    storage_path: Optional[str] = Field(
        default=None, description="Object path inside the bucket"
    )
    error: Optional[StorageError] = None

    @classmethod
    def ok(cls, permanent_url: str, storage_path: str) -> "StorageUploadResult":
        return cls(success=True, permanent_url=permanent_url, storage_path=storage_path)

    @classmethod
    def fail(
        cls,
        code: StorageErrorCode,
        message: str,
        status_code: Optional[int] = None,
    ) -> "StorageUploadResult":
        return cls(
            success=False,
            error=StorageError(code=code, message=message, status_code=status_code),
        )
