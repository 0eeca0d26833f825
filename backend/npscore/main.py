import os
import logging
import traceback
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from npscore.api import admin as admin_api
from npscore.api import analytics as analytics_api
from npscore.api import campaigns as campaigns_api
from npscore.api import responses as responses_api
from npscore.core.config import Settings, get_settings
from npscore.core.database import Base
from npscore.core.errors import NpsCoreError
from npscore.services.core import NpsCore, build_core

logger = logging.getLogger(__name__)


def configure_logging(level: str):
    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.INFO),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )


def create_app(settings: Optional[Settings] = None, core: Optional[NpsCore] = None) -> FastAPI:
    settings = settings or get_settings()
    configure_logging(settings.LOG_LEVEL)
    core = core or build_core(settings)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        """Create tables on startup when the core owns an engine."""
        engine = getattr(core, "engine", None)
        if engine is not None:
            import npscore.models  # noqa: F401  register tables
            logger.info("Creating database tables...")
            Base.metadata.create_all(bind=engine)
        yield

    # Disable API docs in production
    docs_url = "/docs" if settings.ENVIRONMENT != "production" else None
    redoc_url = "/redoc" if settings.ENVIRONMENT != "production" else None

    app = FastAPI(
        title=settings.APP_NAME,
        description="NPS response ingestion and aggregation API",
        version="1.0.0",
        lifespan=lifespan,
        docs_url=docs_url,
        redoc_url=redoc_url,
    )
    app.state.core = core
    app.state.settings = settings

    @app.exception_handler(NpsCoreError)
    async def core_error_handler(request, exc: NpsCoreError):
        if exc.status_code >= 500:
            logger.error(f"{exc.code}: {exc.detail}")
        return JSONResponse(status_code=exc.status_code, content=exc.to_dict())

    # Global exception handler - always return JSON (never plain text)
    @app.exception_handler(Exception)
    async def global_exception_handler(request, exc):
        logger.error("Unhandled exception: %s\n%s", exc, traceback.format_exc())
        return JSONResponse(
            status_code=500,
            content={"detail": "Internal error", "code": "internal_error"},
        )

    @app.exception_handler(StarletteHTTPException)
    async def http_exception_handler(request, exc):
        return JSONResponse(
            status_code=exc.status_code,
            content={"detail": exc.detail},
        )

    allowed_origins = ["http://localhost:3000"]
    frontend_url = os.environ.get("FRONTEND_URL", "")
    if frontend_url and frontend_url not in allowed_origins:
        allowed_origins.append(frontend_url)

    app.add_middleware(
        CORSMiddleware,
        allow_origins=allowed_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.get("/health")
    def health_check():
        return {"status": "healthy", "service": "nps-core-api", "version": "1.0.0"}

    app.include_router(responses_api.router)
    app.include_router(analytics_api.router)
    app.include_router(campaigns_api.router)
    app.include_router(admin_api.router)

    return app
