"""Health check API endpoints."""

from typing import Annotated, Dict

from fastapi import APIRouter, Depends
from pydantic import BaseModel, Field

from medidoc.dependencies import ServiceContainer, get_container
from medidoc.schemas.documents import TemplateConnectionStatus

router = APIRouter()


class HealthCheckResponse(BaseModel):
    status: str = Field(..., description="Health check status")
    version: str = Field(..., description="Running application version")
    service: str = Field(..., description="Service name")
    database: str = Field(..., description="Database health status")
    apitemplate: TemplateConnectionStatus = Field(..., description="PDF rendering service reachability")
    templates: Dict[str, bool] = Field(
        default_factory=dict, description="Document subtypes with a template id configured"
    )


@router.get(
    "/",
    response_model=HealthCheckResponse,
    tags=["Health"],
    summary="Health check endpoint",
    description="Check if the service is running and healthy",
    operation_id="get_service_health_status",
)
async def health_check(
    container: Annotated[ServiceContainer, Depends(get_container)],
) -> HealthCheckResponse:
    """Health check endpoint.

    Degraded when the database is down or the rendering service rejects us.
    """
    db_health = await container.database.health_check()
    apitemplate = await container.generation_service.check_connection()
    healthy = db_health["status"] == "healthy" and apitemplate.success

    return HealthCheckResponse(
        status="healthy" if healthy else "degraded",
        version=container.settings.app_version,
        service=container.settings.app_name,
        database=db_health["status"],
        apitemplate=apitemplate,
        templates=container.generation_service.configured_templates(),
    )
