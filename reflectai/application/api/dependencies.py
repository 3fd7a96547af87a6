"""
FastAPI Dependencies

Route handlers never build components themselves. The container is created
once in the application lifespan and stored on ``app.state``; the functions
below hand its parts to the routes through FastAPI's ``Depends``.

Example:
    @router.post("/ai/respond")
    async def respond(body: AIRequest, ai_service: AIServiceDep):
        ...
"""

from collections.abc import Awaitable, Callable
from typing import Annotated

from fastapi import Depends, Request, Response

from reflectai.application.container import Container
from reflectai.application.services.ai_service import AIService
from reflectai.core.config.constants import RouteClass
from reflectai.core.config.settings import Settings
from reflectai.infrastructure.cache.cache_manager import ResponseCache
from reflectai.rate_limiting.rate_limiter import (
    RateLimiter,
    RateLimitResult,
    get_request_identity,
)

# ============================================================================
# DEPENDENCY FUNCTIONS
# ============================================================================


def get_container(request: Request) -> Container:
    """Retrieve the container built during startup from application state."""
    return request.app.state.container


ContainerDep = Annotated[Container, Depends(get_container)]


def get_settings_dep(container: ContainerDep) -> Settings:
    return container.settings


def get_ai_service(container: ContainerDep) -> AIService:
    return container.ai_service


def get_response_cache(container: ContainerDep) -> ResponseCache:
    return container.cache


def get_rate_limiter(container: ContainerDep) -> RateLimiter:
    return container.rate_limiter


SettingsDep = Annotated[Settings, Depends(get_settings_dep)]
AIServiceDep = Annotated[AIService, Depends(get_ai_service)]
ResponseCacheDep = Annotated[ResponseCache, Depends(get_response_cache)]
RateLimiterDep = Annotated[RateLimiter, Depends(get_rate_limiter)]


# ============================================================================
# RATE LIMITING
# ============================================================================


def rate_limit(route_class: RouteClass) -> Callable[..., Awaitable[RateLimitResult | None]]:
    """
    Build a dependency that counts the request against ``route_class``.

    Rejections raise RateLimitExceededError/IdentityBlockedError, which the
    application's exception handlers turn into 429/403 responses. Allowed
    requests get the X-RateLimit-* headers.

    Example:
        @router.get("/admin/status", dependencies=[Depends(rate_limit(RouteClass.STRICT))])
    """

    async def _dependency(
        request: Request, response: Response, limiter: RateLimiterDep
    ) -> RateLimitResult | None:
        if limiter.is_exempt(request.url.path):
            return None
        identity = get_request_identity(request, route_class)
        result = await limiter.check(route_class, identity)
        response.headers.update(result.headers())
        return result

    return _dependency
