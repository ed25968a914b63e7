"""FastAPI application entry point."""

from contextlib import asynccontextmanager
from typing import AsyncGenerator
from uuid import uuid4

from fastapi import FastAPI, Request, status
from fastapi.responses import JSONResponse

from medidoc.api.v1.endpoints import health
from medidoc.api.v1.router import api_router
from medidoc.core.config import settings
from medidoc.core.exceptions import (
    AppError,
    ConfigurationError,
    DocumentGenerationError,
    DocumentNotFoundError,
    InvariantError,
    ValidationError,
)
from medidoc.dependencies import ServiceContainer
from medidoc.utils.logging import get_logger
from medidoc.utils.responses import create_error_detail

LOGGER = get_logger(__name__, level=settings.log_level)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Application lifespan manager."""
    LOGGER.info(
        "Starting application",
        extra={
            "app_name": settings.app_name,
            "version": settings.app_version,
            "environment": settings.environment,
        },
    )
    if not settings.apitemplate.api_key:
        LOGGER.error("APITEMPLATE_API_KEY is missing; document generation will fail")
    if not settings.supabase_url:
        LOGGER.error("SUPABASE_URL is missing; no document URL will be recognised as permanent")

    container = ServiceContainer.build(settings)
    app.state.container = container

    yield

    LOGGER.info("Shutting down application")
    await container.aclose()


app = FastAPI(
    title=settings.app_name,
    version=settings.app_version,
    description="Medical document issuance with permanent storage and approval invariants",
    docs_url="/docs",
    redoc_url="/redoc",
    openapi_url="/openapi.json",
    lifespan=lifespan,
)


@app.middleware("http")
async def add_correlation_id(request: Request, call_next):
    correlation_id = request.headers.get("X-Correlation-ID", str(uuid4()))
    request.state.correlation_id = correlation_id
    response = await call_next(request)
    response.headers["X-Correlation-ID"] = correlation_id
    return response


# Most specific first; the handler lookup walks the exception's MRO
ERROR_STATUS = (
    (InvariantError, status.HTTP_409_CONFLICT, "Approval Blocked"),
    (ValidationError, status.HTTP_422_UNPROCESSABLE_ENTITY, "Invalid Input"),
    (DocumentNotFoundError, status.HTTP_404_NOT_FOUND, "Document Not Found"),
    (DocumentGenerationError, status.HTTP_502_BAD_GATEWAY, "Document Generation Failed"),
    (ConfigurationError, status.HTTP_503_SERVICE_UNAVAILABLE, "Service Misconfigured"),
    (AppError, status.HTTP_500_INTERNAL_SERVER_ERROR, "Internal Error"),
)


@app.exception_handler(AppError)
async def app_error_handler(request: Request, exc: AppError) -> JSONResponse:
    for error_type, status_code, title in ERROR_STATUS:
        if isinstance(exc, error_type):
            break

    if status_code >= 500:
        LOGGER.error(
            f"{title}: {exc.message}",
            extra={"path": request.url.path, "code": exc.code},
        )

    detail = create_error_detail(
        title=title,
        status=status_code,
        detail=exc.message,
        request=request,
        code=exc.code,
        errors=getattr(exc, "details", None),
    )
    return JSONResponse(status_code=status_code, content={"detail": detail.model_dump(mode="json")})


app.include_router(api_router, prefix=settings.api_v1_prefix)
app.include_router(health.router, prefix="/health", tags=["Health"])


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "medidoc.main:app",
        host=settings.host,
        port=settings.port,
        reload=settings.debug,
        log_level=settings.log_level.lower(),
    )
