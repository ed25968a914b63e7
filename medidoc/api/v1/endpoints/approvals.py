from typing import Annotated, Optional

from fastapi import APIRouter, Depends, Query, Request

from medidoc.dependencies import get_approval_checker
from medidoc.schemas.common import ApiResponse
from medidoc.services.approval_service import ApprovalInvariantChecker
from medidoc.utils.responses import create_api_response

router = APIRouter()


@router.get(
    "/{request_id}/approval-check",
    response_model=ApiResponse,
    summary="Evaluate approval invariants for a request",
    operation_id="check_approval_invariants",
)
async def check_approval_invariants(
    request: Request,
    request_id: str,
    checker: Annotated[ApprovalInvariantChecker, Depends(get_approval_checker)],
    pdf_url: Optional[str] = Query(None, description="Document URL to be attached on approval"),
    require_document: bool = Query(False),
) -> ApiResponse:
    """Report every failing invariant without blocking anything."""
    result = await checker.check_invariants(request_id, pdf_url, require_document)
    return create_api_response(
        data=result,
        message="Request can be approved" if result.valid else "Request cannot be approved",
        status=result.valid,
        request=request,
    )


@router.post(
    "/{request_id}/approval-check/assert",
    response_model=ApiResponse,
    summary="Assert approval invariants for a request",
    description="Returns 409 with the violation code and every error when the request cannot be approved.",
    operation_id="assert_approval_invariants",
)
async def assert_approval_invariants(
    request: Request,
    request_id: str,
    checker: Annotated[ApprovalInvariantChecker, Depends(get_approval_checker)],
    pdf_url: Optional[str] = Query(None),
    require_document: bool = Query(False),
) -> ApiResponse:
    result = await checker.assert_invariants(request_id, pdf_url, require_document)
    return create_api_response(data=result, message="Request can be approved", request=request)
