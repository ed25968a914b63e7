"""Common API envelope schemas."""

from datetime import datetime
from typing import Any, Dict, Optional

from pydantic import BaseModel, Field


class ResponseMeta(BaseModel):
    timestamp: datetime
    request_id: str
    api_version: str = "v1"


class ApiResponse(BaseModel):
    """Standard success envelope."""

    status: bool = True
    message: str
    data: Dict[str, Any] = Field(default_factory=dict)
    meta: ResponseMeta


class ErrorDetail(BaseModel):
    """RFC 7807 style problem detail."""

    title: str
    status: int
    detail: str
    code: Optional[str] = None
    errors: Optional[list[str]] = None
    instance: Optional[str] = None
    request_id: str
    timestamp: datetime
