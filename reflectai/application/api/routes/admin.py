"""
Admin Routes

Operational endpoints for the resilience layer:

- GET  /admin/status                        breakers, providers, cache, rate limiter
- POST /admin/breakers/reset                reset every circuit breaker
- POST /admin/breakers/{name}/reset         reset one circuit breaker
- POST /admin/breakers/{name}/trip          force one circuit breaker OPEN
- POST /admin/cache/clear                   drop every cached response
- POST /admin/rate-limits/clear             drop every counter, violation and block
- POST /admin/rate-limits/{identity}/reset  unblock and reset one identity

Endpoints are counted under the strict route class, except the rate limit
routes themselves so a blocked operator can still unblock.
"""

from fastapi import APIRouter, Depends, HTTPException, status

from reflectai.application.api.dependencies import ContainerDep, rate_limit
from reflectai.application.api.models.admin import (
    BreakerResetResponse,
    BreakerTripResponse,
    ClearResponse,
    StatusResponse,
)
from reflectai.core.config.constants import RouteClass, Stage
from reflectai.core.logging.logger import get_logger, log_stage

logger = get_logger(__name__)

router = APIRouter(prefix="/admin", tags=["Admin"])


# ============================================================================
# AUTHENTICATION PLACEHOLDER
# ============================================================================


async def verify_admin_access() -> None:
    """
    Placeholder for admin authentication.

    Replace with real token verification (HTTPBearer + role check) before
    exposing these endpoints outside a private network.
    """
    pass


ADMIN_DEPENDENCIES = [Depends(verify_admin_access), Depends(rate_limit(RouteClass.STRICT))]


# ============================================================================
# STATUS
# ============================================================================


@router.get("/status", response_model=StatusResponse, dependencies=ADMIN_DEPENDENCIES)
async def get_status(container: ContainerDep) -> StatusResponse:
    return StatusResponse(**await container.status())


# ============================================================================
# CIRCUIT BREAKERS
# ============================================================================


@router.post("/breakers/reset", response_model=BreakerResetResponse, dependencies=ADMIN_DEPENDENCIES)
async def reset_all_breakers(container: ContainerDep) -> BreakerResetResponse:
    names = container.breakers.names()
    count = container.breakers.reset_all_breakers()
    return BreakerResetResponse(reset=names, count=count)


@router.post("/breakers/{name}/reset", response_model=BreakerResetResponse, dependencies=ADMIN_DEPENDENCIES)
async def reset_breaker(name: str, container: ContainerDep) -> BreakerResetResponse:
    if not container.breakers.reset_breaker(name):
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=f"Unknown circuit breaker: {name}")
    return BreakerResetResponse(reset=[name], count=1)


@router.post("/breakers/{name}/trip", response_model=BreakerTripResponse, dependencies=ADMIN_DEPENDENCIES)
async def trip_breaker(name: str, container: ContainerDep) -> BreakerTripResponse:
    breaker = container.breakers.get(name)
    if breaker is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=f"Unknown circuit breaker: {name}")
    breaker.trip()
    log_stage(logger, Stage.ADMIN, "Circuit breaker tripped manually", level="warning", breaker=name)
    return BreakerTripResponse(name=name, state=breaker.get_state().value)


# ============================================================================
# CACHE AND RATE LIMITS
# ============================================================================


@router.post("/cache/clear", response_model=ClearResponse, dependencies=ADMIN_DEPENDENCIES)
async def clear_cache(container: ContainerDep) -> ClearResponse:
    success = await container.cache.clear()
    return ClearResponse(cleared="cache", success=success)


@router.post("/rate-limits/clear", response_model=ClearResponse, dependencies=[Depends(verify_admin_access)])
async def clear_rate_limits(container: ContainerDep) -> ClearResponse:
    await container.rate_limiter.clear()
    return ClearResponse(cleared="rate_limits")


@router.post(
    "/rate-limits/{identity}/reset",
    response_model=ClearResponse,
    dependencies=[Depends(verify_admin_access)],
)
async def reset_rate_limit(identity: str, container: ContainerDep) -> ClearResponse:
    await container.rate_limiter.reset(identity)
    return ClearResponse(cleared=identity)
