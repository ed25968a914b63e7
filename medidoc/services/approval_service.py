"""Approval invariants for medical requests.

A request may only move to ``approved`` when it is paid, still awaiting
review, and (when a document URL is supplied) its document lives in
permanent storage rather than behind an expiring vendor link.

``check_invariants`` never raises for a business violation; it returns
tagged violations plus the human-readable error and warning lists.
``assert_invariants`` turns a failed check into an ``InvariantError``.
"""

import re
from typing import List, Optional, Tuple, Union
from urllib.parse import urlparse
from uuid import UUID

from medidoc.core.exceptions import InvariantError
from medidoc.repositories.document_repository import DocumentRepository
from medidoc.repositories.request_repository import RequestRepository
from medidoc.schemas.approval import (
    APPROVABLE_STATUSES,
    InvariantCheckResult,
    InvariantViolation,
    PaymentStatus,
    PermanenceCheckResult,
    UrlClassification,
    ViolationKind,
)
from medidoc.services.storage_service import StorageService
from medidoc.utils.logging import get_logger

LOGGER = get_logger(__name__)

# Hosts that only ever serve expiring links: the PDF rendering vendor and
# presigned object-storage URLs.
TEMPORARY_HOST_PATTERNS = (
    re.compile(r"(^|\.)apitemplate\.io$"),
    re.compile(r"(^|\.)amazonaws\.com$"),
)

TEMPORARY_URL_MESSAGE = (
    "Document URL is temporary and will expire. "
    "The PDF must be uploaded to permanent storage before approval."
)


class ApprovalInvariantChecker:
    """Gatekeeper for the ``approved`` transition of a medical request."""

    def __init__(
        self,
        request_repo: RequestRepository,
        document_repo: DocumentRepository,
        storage_service: StorageService,
    ):
        """Initialize the checker.

        Args:
            request_repo: Read access to requests
            document_repo: Read access to generated documents
            storage_service: Used to recognise permanent document URLs
        """
        self.request_repo = request_repo
        self.document_repo = document_repo
        self.storage_service = storage_service

    def classify_url(self, url: str) -> UrlClassification:
        """Classify a document URL by how long it will keep working."""
        if self.storage_service.is_permanent_url(url):
            return UrlClassification.PERMANENT

        try:
            parsed = urlparse((url or "").strip())
            host = (parsed.hostname or "").lower()
        except ValueError:
            return UrlClassification.INVALID
        if host and any(pattern.search(host) for pattern in TEMPORARY_HOST_PATTERNS):
            return UrlClassification.TEMPORARY

        if parsed.scheme not in ("http", "https") or not parsed.netloc:
            return UrlClassification.INVALID

        return UrlClassification.UNKNOWN

    def _check_document_url(
        self, url: str
    ) -> Tuple[Optional[InvariantViolation], Optional[str]]:
        classification = self.classify_url(url)

        if classification == UrlClassification.TEMPORARY:
            return InvariantViolation(
                kind=ViolationKind.TEMPORARY_URL, message=TEMPORARY_URL_MESSAGE, actual=url
            ), None
        if classification == UrlClassification.INVALID:
            return InvariantViolation(
                kind=ViolationKind.INVALID_URL, message="Invalid document URL format", actual=url
            ), None
        if classification == UrlClassification.UNKNOWN:
            return None, f"Document URL might not be permanent: {url}"
        return None, None

    async def check_invariants(
        self,
        request_id: Union[str, UUID],
        candidate_pdf_url: Optional[str] = None,
        require_document: bool = False,
    ) -> InvariantCheckResult:
        """Evaluate every approval invariant for a request.

        Args:
            request_id: Request ID
            candidate_pdf_url: Document URL about to be attached to the approval
            require_document: When no candidate URL is given, check the most
                recent document instead and fail if there is none

        Returns:
            InvariantCheckResult; valid iff there are no errors
        """
        request = await self.request_repo.get_request(request_id)
        if request is None:
            return InvariantCheckResult.from_violations(
                [InvariantViolation(kind=ViolationKind.REQUEST_NOT_FOUND, message="Request not found")]
            )

        violations: List[InvariantViolation] = []
        warnings: List[str] = []

        if request.payment_status != PaymentStatus.PAID.value:
            violations.append(InvariantViolation(
                kind=ViolationKind.PAYMENT_REQUIRED,
                message=f"Payment required: payment status is '{request.payment_status}'",
                actual=request.payment_status,
            ))

        if request.status not in APPROVABLE_STATUSES:
            violations.append(InvariantViolation(
                kind=ViolationKind.INVALID_STATUS,
                message=(
                    f"Invalid status for approval: '{request.status}'. "
                    f"Must be one of: {', '.join(APPROVABLE_STATUSES)}"
                ),
                actual=request.status,
            ))

        document_url = candidate_pdf_url
        if document_url is None and require_document:
            latest = await self.document_repo.get_latest_for_request(request_id)
            if latest is None:
                violations.append(InvariantViolation(
                    kind=ViolationKind.DOCUMENT_MISSING,
                    message="Document missing: no document found for request",
                ))
            else:
                document_url = latest.pdf_url

        if document_url is not None:
            violation, warning = self._check_document_url(document_url)
            if violation:
                violations.append(violation)
            if warning:
                warnings.append(warning)

        return InvariantCheckResult.from_violations(violations, warnings)

    async def assert_invariants(
        self,
        request_id: Union[str, UUID],
        candidate_pdf_url: Optional[str] = None,
        require_document: bool = False,
    ) -> InvariantCheckResult:
        """Check invariants and raise if any hard error is present.

        Returns:
            The passing result (warnings are logged, never fatal)

        Raises:
            InvariantError: Coded by the first violation, carrying every error
        """
        result = await self.check_invariants(request_id, candidate_pdf_url, require_document)

        if not result.valid:
            first = result.violations[0]
            LOGGER.warning(
                "Approval blocked by invariants",
                extra={"request_id": str(request_id), "errors": result.errors},
            )
            raise InvariantError(
                code=first.kind.error_code,
                message=f"Cannot approve request: {first.message}",
                details=result.errors,
            )

        for warning in result.warnings:
            LOGGER.warning(
                f"Approval invariant warning: {warning}",
                extra={"request_id": str(request_id)},
            )
        return result

    async def document_exists_for_request(self, request_id: Union[str, UUID]) -> bool:
        """Check that at least one document references the request."""
        return await self.document_repo.exists_for_request(request_id)

    async def most_recent_document_url_is_permanent(
        self, request_id: Union[str, UUID]
    ) -> PermanenceCheckResult:
        """Check whether the request's latest document is in permanent storage."""
        document = await self.document_repo.get_latest_for_request(request_id)
        if document is None:
            return PermanenceCheckResult(valid=False, error="No document found for request")

        if self.storage_service.is_permanent_url(document.pdf_url):
            return PermanenceCheckResult(valid=True, url=document.pdf_url)

        return PermanenceCheckResult(
            valid=False,
            url=document.pdf_url,
            error="Document URL is not a permanent storage URL",
        )
