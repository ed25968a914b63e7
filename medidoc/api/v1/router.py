from fastapi import APIRouter

from medidoc.api.v1.endpoints import approvals, documents

# Create API router
api_router = APIRouter()

# Include routers
api_router.include_router(documents.router, prefix="/requests", tags=["Documents"])
api_router.include_router(approvals.router, prefix="/requests", tags=["Approvals"])

__all__ = ["api_router"]
