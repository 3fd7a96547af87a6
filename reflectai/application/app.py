#!/usr/bin/env python3
"""
FastAPI Application Entry Point

Configures the resilience layer's HTTP surface: lifespan (container build
and teardown), request-id correlation, CORS, exception-to-status mapping and
the AI, health and admin routers.

Each error class declares its status (``http_status``):
    IdentityBlockedError                 403
    RateLimitExceededError               429
    TokenLimitError / NoSuitableModel    413
    AllProvidersExhausted / CircuitOpen  503
    ProviderError (auth and the rest)    502
    anything else                        500
"""

import uuid
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from reflectai.application.api.routes.admin import router as admin_router
from reflectai.application.api.routes.ai import router as ai_router
from reflectai.application.api.routes.health import router as health_router
from reflectai.application.container import build_container
from reflectai.core.config.constants import HEADER_REQUEST_ID
from reflectai.core.config.settings import Settings, get_settings
from reflectai.core.exceptions import ReflectAIError
from reflectai.core.logging.logger import (
    clear_request_id,
    get_logger,
    get_request_id,
    set_request_id,
    setup_logging,
)

logger = get_logger(__name__)


# ============================================================================
# Application Lifespan
# ============================================================================


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Build the container on startup and close it on shutdown.

    A container already placed on ``app.state`` (tests) is used as is and
    left for its owner to close.
    """
    settings: Settings = app.state.settings

    setup_logging(log_level=settings.logging.LOG_LEVEL, log_format=settings.logging.LOG_FORMAT)

    logger.info(
        "Starting ReflectAI resilience layer",
        environment=settings.app.ENVIRONMENT,
        version=settings.app.APP_VERSION,
    )

    owns_container = getattr(app.state, "container", None) is None
    if owns_container:
        app.state.container = await build_container(settings)

    logger.info("Application startup complete")

    try:
        yield
    finally:
        logger.info("Shutting down application")
        if owns_container:
            await app.state.container.close()
            app.state.container = None
        logger.info("Application shutdown complete")


# ============================================================================
# Exception Handling
# ============================================================================


def status_code_for(exc: ReflectAIError) -> int:
    return exc.http_status


async def reflectai_exception_handler(request: Request, exc: ReflectAIError) -> JSONResponse:
    status_code = status_code_for(exc)
    body = exc.to_response(get_request_id())

    log = logger.warning if status_code < 500 else logger.error
    log(
        "Request failed",
        error_type=type(exc).__name__,
        error=exc.message,
        status_code=status_code,
        path=request.url.path,
    )

    headers = {HEADER_REQUEST_ID: body["request_id"] or ""}
    if exc.retry_after is not None:
        headers["Retry-After"] = str(exc.retry_after)

    return JSONResponse(status_code=status_code, content=body, headers=headers)


# ============================================================================
# Application Factory
# ============================================================================


def create_app(settings: Settings | None = None) -> FastAPI:
    """
    Create and configure the FastAPI application.

    Returns:
        FastAPI: Configured application instance
    """
    settings = settings or get_settings()

    app = FastAPI(
        title=settings.app.APP_NAME,
        version=settings.app.APP_VERSION,
        description="Resilience layer for AI providers: breakers, failover, caching and rate limiting",
        lifespan=lifespan,
        docs_url="/docs",
        redoc_url="/redoc",
    )
    app.state.settings = settings
    app.state.container = None

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.app.CORS_ORIGINS,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
        expose_headers=[HEADER_REQUEST_ID],
    )

    @app.middleware("http")
    async def request_id_middleware(request: Request, call_next):
        """Inject a request ID into every request for log correlation."""
        request_id = request.headers.get(HEADER_REQUEST_ID) or str(uuid.uuid4())
        set_request_id(request_id)
        try:
            response = await call_next(request)
            response.headers[HEADER_REQUEST_ID] = request_id
            return response
        finally:
            clear_request_id()

    app.add_exception_handler(ReflectAIError, reflectai_exception_handler)

    app.include_router(health_router)
    app.include_router(ai_router)
    app.include_router(admin_router)

    @app.get("/", tags=["Root"])
    async def root():
        return {
            "name": settings.app.APP_NAME,
            "version": settings.app.APP_VERSION,
            "environment": settings.app.ENVIRONMENT,
            "docs": "/docs",
            "health": "/health",
        }

    return app


# ============================================================================
# Main Entry Point
# ============================================================================

def main() -> None:
    import uvicorn

    settings = get_settings()

    uvicorn.run(
        create_app(settings),
        host=settings.app.API_HOST,
        port=settings.app.API_PORT,
        log_level=settings.logging.LOG_LEVEL.lower(),
    )


if __name__ == "__main__":
    main()
