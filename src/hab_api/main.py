"""FastAPI application entry point."""

import logging
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from hab_api import __version__
from hab_api.config import StorageBackend, get_settings
from hab_api.errors.handlers import register_exception_handlers
from hab_api.middleware.request_id import RequestIDMiddleware
from hab_api.routes import (
    account_router,
    admin_router,
    auth_router,
    health_router,
    predict_router,
    tiers_router,
    upgrade_requests_router,
)
from hab_api.storage.manager import StorageManager
from hab_api.storage.redis_client import close_redis, init_redis

# Configure logging
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    """
    Application lifespan handler.

    Handles startup and shutdown events:
    - Startup: Connect Redis if configured, build the storage manager
    - Shutdown: Close the Redis connection
    """
    settings = get_settings()
    logger.info("Starting HAB API v%s in %s mode", __version__, settings.api_env.value)

    # An installed manager (tests, embedding) wins over settings
    if not StorageManager.is_installed():
        redis = None
        if settings.storage_backend == StorageBackend.REDIS:
            redis = await init_redis()
        StorageManager.set_instance(StorageManager.from_settings(settings, redis))
        logger.info("Using %s storage backend", settings.storage_backend.value)

    yield

    logger.info("Shutting down HAB API")
    await close_redis()


def create_app() -> FastAPI:
    """Create and configure the FastAPI application."""
    settings = get_settings()

    app = FastAPI(
        title="HAB Detection Service API",
        description=(
            "Tiered-subscription API for harmful algal bloom detection.\n\n"
            "## Features\n"
            "- Tiers: Free, Tier 1, Tier 2 (and Admin)\n"
            "- Monthly API call quotas per tier\n"
            "- Map predictions and image analysis via external ML services\n"
            "- Financial-aid upgrade requests with admin approval\n\n"
            "## Authentication\n"
            "Log in at `/api/auth/login` and send the token as "
            "`Authorization: Bearer <token>`.\n\n"
            "**Seed accounts:** `abc`/`abc` (free), `test`/`test` (tier1), "
            "`admin` (admin, password from `ADMIN_PASSWORD`)"
        ),
        version=__version__,
        lifespan=lifespan,
        docs_url="/docs",
        redoc_url="/redoc",
    )

    # Add CORS middleware
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
        expose_headers=["X-Request-ID"],
    )

    app.add_middleware(RequestIDMiddleware)  # type: ignore[arg-type]

    # Register exception handlers
    register_exception_handlers(app)

    # Include routers
    app.include_router(health_router)
    app.include_router(auth_router, prefix=settings.api_prefix)
    app.include_router(account_router, prefix=settings.api_prefix)
    app.include_router(tiers_router, prefix=settings.api_prefix)
    app.include_router(upgrade_requests_router, prefix=settings.api_prefix)
    app.include_router(admin_router, prefix=settings.api_prefix)
    app.include_router(predict_router, prefix=settings.api_prefix)

    return app


# Create application instance
app = create_app()


if __name__ == "__main__":
    import uvicorn

    settings = get_settings()
    uvicorn.run(
        "hab_api.main:app",
        host=settings.api_host,
        port=settings.api_port,
        reload=settings.api_env.value == "development",
    )
