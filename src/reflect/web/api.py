"""FastAPI application factory.

Main entry point for the reflect web API.
"""

from contextlib import asynccontextmanager
from typing import AsyncGenerator

import structlog
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from reflect.config.techniques import list_techniques
from reflect.db.database import init_db
from reflect.web.routes import (
    certifications_router,
    glossary_router,
    health_router,
    insights_router,
    reflections_router,
    resets_router,
    techniques_router,
    validate_router,
)
from reflect.web.sessions import get_session_manager

logger = structlog.get_logger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Lifespan context manager for startup/shutdown events."""
    # Startup
    init_db()
    techniques = list_techniques()
    logger.info(
        "api_startup",
        techniques_found=len(techniques),
        technique_ids=[t.id for t in techniques],
    )
    yield
    # Shutdown: close open reset sessions
    manager = get_session_manager()
    for session in await manager.list_sessions():
        await manager.end_session(session.session_id)
    logger.info("api_shutdown")


def create_app() -> FastAPI:
    """Create and configure the FastAPI application.

    Returns:
        Configured FastAPI app instance
    """
    app = FastAPI(
        title="InterpretReflect API",
        description="Reflection, reset and growth-insight service for interpreters",
        version="0.1.0",
        docs_url="/docs",
        redoc_url="/redoc",
        lifespan=lifespan,
    )

    # CORS middleware for web clients
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],  # Configure appropriately for production
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.include_router(health_router)
    app.include_router(glossary_router)
    app.include_router(certifications_router)
    app.include_router(reflections_router)
    app.include_router(techniques_router)
    app.include_router(resets_router)
    app.include_router(insights_router)
    app.include_router(validate_router)

    return app


# Default app instance for uvicorn
app = create_app()
