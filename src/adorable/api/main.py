"""FastAPI application entry point.

Main application configuration, middleware, and startup lifecycle.
"""

import logging
from contextlib import asynccontextmanager
from typing import AsyncGenerator

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from fastapi.middleware.gzip import GZipMiddleware

from adorable.core.config import get_settings
from adorable.models.database import close_db, create_all, init_db, session_scope
from adorable.services.kit_service import KitService

logger = logging.getLogger(__name__)


def configure_logging(level: str) -> None:
    logging.basicConfig(
        level=level.upper(),
        format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
    )


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Application lifespan handler.

    Startup:
    - Initialize database connection pool
    - Create tables when auto-create is enabled (development)
    - Move legacy kits out of user settings

    Shutdown:
    - Close database connections
    """
    settings = get_settings()
    configure_logging(settings.log_level)

    logger.info("Initializing database connection...")
    engine_kwargs = {}
    if not settings.uses_sqlite:
        engine_kwargs = {
            "pool_size": settings.database_pool_size,
            "max_overflow": settings.database_max_overflow,
        }
    init_db(settings.async_database_url, **engine_kwargs)
    if settings.database_auto_create:
        await create_all()
    logger.info("Database initialized")

    async with session_scope() as session:
        await KitService(session).migrate_from_settings()

    yield

    logger.info("Shutting down...")
    await close_db()
    logger.info("Database connections closed")


def create_app() -> FastAPI:
    """Create and configure the FastAPI application.

    Returns:
        Configured FastAPI application
    """
    settings = get_settings()
    is_production = settings.environment == "production"

    app = FastAPI(
        title="Adorable API",
        description="Teams, invites, kits, project versioning and GitHub sync for Adorable",
        version=settings.app_version,
        docs_url="/api/docs" if not is_production else None,
        redoc_url="/api/redoc" if not is_production else None,
        openapi_url="/api/openapi.json" if not is_production else None,
        lifespan=lifespan,
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # Add compression for responses > 1KB
    app.add_middleware(GZipMiddleware, minimum_size=1000)

    from adorable.api.routers import auth, health, kits, projects, teams, webhooks

    app.include_router(health.router, prefix="/api", tags=["health"])
    app.include_router(auth.router, prefix="/api/auth", tags=["auth"])
    app.include_router(teams.router, prefix="/api/teams", tags=["teams"])
    app.include_router(kits.router, prefix="/api/kits", tags=["kits"])
    app.include_router(projects.router, prefix="/api/projects", tags=["projects"])
    app.include_router(webhooks.router, prefix="/webhooks", tags=["webhooks"])
    app.include_router(webhooks.router, prefix="/api/webhooks", include_in_schema=False)

    from adorable.api.exceptions import register_exception_handlers
    register_exception_handlers(app)

    return app


# Application instance for uvicorn
app = create_app()


if __name__ == "__main__":
    import uvicorn

    settings = get_settings()
    uvicorn.run(
        "adorable.api.main:app",
        host=settings.host,
        port=settings.port,
        reload=settings.environment == "development",
        workers=settings.workers if settings.environment == "production" else 1,
    )
