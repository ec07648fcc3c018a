"""
FanAI API - Celebrity Photo Generation
FastAPI Backend Entry Point
"""

import logging
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from fastapi.staticfiles import StaticFiles
from sqlalchemy import text

from fanai.core.config import settings
from fanai.core.database import init_db
from fanai.core.errors import (
    FanAIError,
    InsufficientCreditsError,
    NotFoundError,
    UpstreamUnavailable,
    ValidationError,
)
from fanai.api import admin, artifacts, generate, reference
from fanai.services.container import Services, build_services

logging.basicConfig(
    level=logging.DEBUG if settings.DEBUG else logging.INFO,
    format="%(asctime)s | %(levelname)-8s | %(name)s | %(message)s",
    datefmt="%Y-%m-%d %H:%M:%S"
)
logger = logging.getLogger(__name__)

# Most specific first
ERROR_STATUS = [
    (InsufficientCreditsError, 403),
    (ValidationError, 400),
    (NotFoundError, 404),
    (UpstreamUnavailable, 503),
]


def status_for(error: FanAIError) -> int:
    for error_type, status_code in ERROR_STATUS:
        if isinstance(error, error_type):
            return status_code
    return 500


async def fanai_error_handler(request: Request, exc: FanAIError):
    status_code = status_for(exc)
    if status_code >= 500:
        logger.error(f"[API] {request.method} {request.url.path} failed: {exc!r}")
    return JSONResponse(status_code=status_code, content={"detail": exc.message})


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Startup and shutdown events."""
    logger.info("Starting FanAI API...")
    if getattr(app.state, "services", None) is None:
        app.state.services = build_services(settings)
    services: Services = app.state.services
    init_db(services.engine)
    logger.info("Database tables created")
    yield
    logger.info("Shutting down FanAI API...")
    await services.close()


def create_app(services: Optional[Services] = None) -> FastAPI:
    app = FastAPI(
        title="FanAI API",
        description="Celebrity photo generation with a version-controlled blob store",
        version="0.1.0",
        docs_url="/docs",
        redoc_url="/redoc",
        lifespan=lifespan,
    )
    app.state.services = services

    # CORS middleware
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.CORS_ORIGINS,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.add_exception_handler(FanAIError, fanai_error_handler)

    # Include routers
    app.include_router(generate.router, prefix="/api", tags=["Generation"])
    app.include_router(reference.router, prefix="/api", tags=["Reference Data"])
    app.include_router(admin.router, prefix="/api/admin", tags=["Admin"])
    app.include_router(artifacts.router, tags=["Artifacts"])

    # Local uploads and the processed-image fallback
    upload_dir = services.settings.LOCAL_STORAGE_PATH if services else settings.LOCAL_STORAGE_PATH
    app.mount("/uploads", StaticFiles(directory=upload_dir, check_dir=False), name="uploads")

    @app.get("/health", tags=["Health"])
    async def health_check(request: Request):
        """
        Health check endpoint for monitoring.
        Returns status of the database and the active storage target.
        """
        services: Services = request.app.state.services
        result = {
            "status": "healthy",
            "version": "0.1.0",
            "environment": {
                "blob_store": services.settings.BLOB_STORE_BACKEND,
                "storage_target": str(services.registry.active),
            },
            "services": {},
        }

        try:
            with services.session_factory() as db:
                db.execute(text("SELECT 1"))
            result["services"]["database"] = "ok"
        except Exception as e:
            result["services"]["database"] = f"error: {str(e)}"
            result["status"] = "degraded"

        result["services"]["gemini"] = "ok" if services.gemini.client else "not configured"
        result["services"]["background_jobs"] = services.runner.pending
        return result

    @app.get("/", tags=["Root"])
    async def root():
        """Root endpoint."""
        return {
            "message": "FanAI API - Celebrity Photo Generation",
            "docs": "/docs",
            "health": "/health",
        }

    return app


app = create_app()
