"""Approval invariant check results."""

from enum import Enum
from typing import List, Optional

from pydantic import BaseModel, Field


class RequestStatus(str, Enum):
    PENDING = "pending"
    NEEDS_FOLLOW_UP = "needs_follow_up"
    APPROVED = "approved"
    DECLINED = "declined"
    CANCELLED = "cancelled"


class PaymentStatus(str, Enum):
    PENDING = "pending"
    PAID = "paid"
    FAILED = "failed"
    REFUNDED = "refunded"


# Statuses from which a request may move to approved
APPROVABLE_STATUSES = (RequestStatus.PENDING.value, RequestStatus.NEEDS_FOLLOW_UP.value)


class UrlClassification(str, Enum):
    PERMANENT = "permanent"
    TEMPORARY = "temporary"
    INVALID = "invalid"
    UNKNOWN = "unknown"


class ViolationKind(str, Enum):
    REQUEST_NOT_FOUND = "request_not_found"
    PAYMENT_REQUIRED = "payment_required"
    INVALID_STATUS = "invalid_status"
    TEMPORARY_URL = "temporary_url"
    INVALID_URL = "invalid_url"
    DOCUMENT_MISSING = "document_missing"

    @property
    def error_code(self) -> str:
        """Coarse code carried by InvariantError."""
        return VIOLATION_ERROR_CODES[self]


VIOLATION_ERROR_CODES = {
    ViolationKind.PAYMENT_REQUIRED: "PAYMENT_REQUIRED",
    ViolationKind.INVALID_STATUS: "INVALID_STATUS",
    ViolationKind.TEMPORARY_URL: "TEMPORARY_URL",
    ViolationKind.INVALID_URL: "DOCUMENT_MISSING",
    ViolationKind.DOCUMENT_MISSING: "DOCUMENT_MISSING",
    ViolationKind.REQUEST_NOT_FOUND: "DOCUMENT_MISSING",
}


class InvariantViolation(BaseModel):
    """One failed invariant, tagged by kind."""

    kind: ViolationKind
    message: str
    actual: Optional[str] = Field(
        default=None, description="Offending value (status, payment status or URL)"
    )


class InvariantCheckResult(BaseModel):
    valid: bool
    errors: List[str] = Field(default_factory=list)
    warnings: List[str] = Field(default_factory=list)
    violations: List[InvariantViolation] = Field(default_factory=list)

    @classmethod
    def from_violations(
        cls,
        violations: List[InvariantViolation],
        warnings: Optional[List[str]] = None,
    ) -> "InvariantCheckResult":
        return cls(
            valid=not violations,
            errors=[violation.message for violation in violations],
            warnings=list(warnings or []),
            violations=violations,
        )


class PermanenceCheckResult(BaseModel):
    valid: bool
    url: Optional[str] = None
    error: Optional[str] = None
