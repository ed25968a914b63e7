from typing import Annotated

from fastapi import APIRouter, Depends, Request, status

from medidoc.dependencies import get_approval_checker, get_document_service, get_storage_service
from medidoc.schemas.common import ApiResponse
from medidoc.schemas.documents import IssueDocumentRequest
from medidoc.services.approval_service import ApprovalInvariantChecker
from medidoc.services.document_service import DocumentService
from medidoc.services.storage_service import StorageService
from medidoc.utils.responses import create_api_response


router = APIRouter()


@router.post(
    "/{request_id}/documents",
    response_model=ApiResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Generate and issue a document for a request",
    operation_id="issue_document",
)
async def issue_document(
    request: Request,
    request_id: str,
    body: IssueDocumentRequest,
    document_service: Annotated[DocumentService, Depends(get_document_service)],
) -> ApiResponse:
    """Render the PDF, persist it, and record the document row."""
    issued = await document_service.issue_document(request_id, body.subtype, body.draft)
    message = (
        "Document issued"
        if issued.pdf.permanent
        else "Document issued with a temporary URL; re-persist before approval"
    )
    return create_api_response(data=issued, message=message, request=request)


@router.post(
    "/{request_id}/documents/repersist",
    response_model=ApiResponse,
    summary="Copy the latest document into permanent storage",
    operation_id="repersist_latest_document",
)
async def repersist_latest_document(
    request: Request,
    request_id: str,
    document_service: Annotated[DocumentService, Depends(get_document_service)],
) -> ApiResponse:
    result = await document_service.repersist_latest_document(request_id)
    return create_api_response(
        data=result,
        message="Document re-persisted" if result.repersisted else "Document not re-persisted",
        status=result.repersisted or result.already_permanent,
        request=request,
    )


@router.get(
    "/{request_id}/documents/latest/permanence",
    response_model=ApiResponse,
    summary="Check whether the latest document is permanently stored",
    operation_id="get_latest_document_permanence",
)
async def get_latest_document_permanence(
    request: Request,
    request_id: str,
    checker: Annotated[ApprovalInvariantChecker, Depends(get_approval_checker)],
) -> ApiResponse:
    result = await checker.most_recent_document_url_is_permanent(request_id)
    return create_api_response(
        data=result,
        message="Document permanence checked",
        status=result.valid,
        request=request,
    )


@router.get(
    "/{request_id}/documents/stored",
    response_model=ApiResponse,
    summary="List the PDFs stored for a request",
    operation_id="list_stored_documents",
)
async def list_stored_documents(
    request: Request,
    request_id: str,
    storage_service: Annotated[StorageService, Depends(get_storage_service)],
) -> ApiResponse:
    paths = await storage_service.list_request_documents(request_id)
    return create_api_response(
        data={"paths": paths},
        message=f"{len(paths)} stored document(s)",
        request=request,
    )
