"""
Video Showcase API.

create_app builds an app around one Settings object. The video store is
opened in the app's lifespan and closed with it, so every app (and every
TestClient) owns its own store.

For local development:
    uvicorn showcase.main:app --reload
"""

import logging
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from fastapi.staticfiles import StaticFiles

from .api.dependencies import open_video_store
from .api.routes import health, upload, videos
from .config.settings import Settings, get_settings

logging.basicConfig(
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    level=logging.INFO,
)

logger = logging.getLogger(__name__)


def create_app(settings: Optional[Settings] = None) -> FastAPI:
    """
    Passing settings explicitly is how tests run the app against a
    temporary directory or a different backend; otherwise settings come
    from the environment.
    """
    if settings is None:
        settings = get_settings()

    logging.getLogger().setLevel(settings.log_level.upper())

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        """
        Open the video store on startup and close it on shutdown.

        A misconfigured backend is logged rather than fatal so the health
        endpoints can still report what's missing.
        """
        logger.info(
            "Video Showcase API starting",
            extra={
                "version": settings.api_version,
                "backend": settings.store_backend,
                "mock_mode": {
                    "snowflake": settings.snowflake_mock_mode,
                    "r2": settings.r2_mock_mode,
                }
            }
        )

        missing_fields = settings.validate_required_fields()
        if missing_fields:
            logger.error(
                "Missing required configuration",
                extra={"missing_fields": missing_fields}
            )

        async with open_video_store(settings) as store:
            app.state.video_store = store
            yield
            app.state.video_store = None

        logger.info("Video Showcase API shutting down")

    app = FastAPI(
        title=settings.api_title,
        version=settings.api_version,
        description="""
        A curated list of videos with swappable persistence.

        ## Backends

        - **local**: videos kept in a local storage file
        - **static**: seeded from `/videos-config.json`, cached locally
        - **remote**: Snowflake document collection with R2 object storage

        ## Authentication

        Mutating endpoints require an API key in the `X-API-Key` header.
        """,
        docs_url="/docs",
        redoc_url="/redoc",
        lifespan=lifespan,
    )

    # Route dependencies read settings through get_settings
    app.dependency_overrides[get_settings] = lambda: settings

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins_list,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # Include routers
    app.include_router(
        health.router,
        prefix="/health",
        tags=["Health"],
    )

    app.include_router(
        upload.router,
        prefix="/api",
        tags=["Upload"],
    )

    app.include_router(
        videos.router,
        prefix="/api/v1/videos",
        tags=["Videos"],
    )

    # Files saved by the upload endpoint
    app.mount(
        settings.upload_public_path,
        StaticFiles(directory=settings.upload_dir, check_dir=False),
        name="uploaded-video",
    )

    @app.get("/", include_in_schema=False)
    async def root():
        return {
            "message": "Video Showcase API",
            "version": settings.api_version,
            "docs": "/docs",
            "health": "/health",
        }

    @app.exception_handler(Exception)
    async def global_exception_handler(request, exc):
        """Log the full error; clients only get a generic 500."""
        logger.error(
            "Unhandled exception",
            extra={
                "path": request.url.path,
                "method": request.method,
                "error": str(exc),
            },
            exc_info=exc,
        )

        return JSONResponse(
            status_code=500,
            content={
                "detail": "Internal server error."
            }
        )

    logger.info(
        "FastAPI application created",
        extra={
            "title": settings.api_title,
            "version": settings.api_version,
        }
    )

    return app


# what uvicorn imports
app = create_app()


if __name__ == "__main__":
    import uvicorn

    settings = get_settings()

    uvicorn.run(
        "showcase.main:app",
        host="0.0.0.0",
        port=8000,
        reload=True,
        log_level=settings.log_level.lower(),
    )
