"""
Health Check Routes

GET /health reports whether the process is up and which backends it is
currently using. It is exempt from rate limiting and always returns 200:
losing Redis or a provider degrades the service, it does not take it down.
"""

from datetime import datetime, timezone

from fastapi import APIRouter
from pydantic import BaseModel, Field

from reflectai.application.api.dependencies import ContainerDep

router = APIRouter(prefix="/health", tags=["Health"])


class HealthResponse(BaseModel):
    status: str = Field(..., description="healthy or degraded")
    timestamp: str
    version: str
    shared_store: dict[str, bool] = Field(default_factory=dict)
    open_circuits: list[str] = Field(default_factory=list)
    available_providers: list[str] = Field(default_factory=list)


@router.get("", response_model=HealthResponse)
async def health_check(container: ContainerDep) -> HealthResponse:
    """
    Report status as ``degraded`` when Redis is unreachable, any circuit is
    open, or no provider is available.
    """
    shared_store = {
        "cache": await container.cache.is_shared_available(),
        "rate_limiter": await container.rate_limiter.is_shared_available(),
    }
    open_circuits = [name for name in container.breakers.names() if container.breakers.is_open(name)]
    available = [p.name for p in container.provider_service.available_providers()]

    redis_expected = container.redis_client is not None
    degraded = (redis_expected and not all(shared_store.values())) or bool(open_circuits) or not available

    return HealthResponse(
        status="degraded" if degraded else "healthy",
        timestamp=datetime.now(timezone.utc).isoformat(),
        version=container.settings.app.APP_VERSION,
        shared_store=shared_store,
        open_circuits=open_circuits,
        available_providers=available,
    )
