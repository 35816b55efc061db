"""FastAPI application factory.

Main entry point for the E-Certify Web API.
"""

from contextlib import asynccontextmanager
from typing import AsyncGenerator

import structlog
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from ecertify import __version__
from ecertify.core.container import get_services
from ecertify.errors import ECertifyError
from ecertify.web.routes import (
    certificates_router,
    events_router,
    health_router,
    institutes_router,
    students_router,
    transfers_router,
)

logger = structlog.get_logger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Lifespan context manager for startup/shutdown events."""
    # Startup
    svc = get_services()
    logger.info(
        "api_startup",
        db_path=str(svc.db.path.absolute()),
        content_store=type(svc.content_store).__name__,
        institutes=len(svc.directory.list_institutes()),
    )
    yield
    logger.info("api_shutdown", subscriptions=svc.feed.subscription_count)


async def handle_ecertify_error(request: Request, exc: ECertifyError) -> JSONResponse:
    """Render domain errors as ``{"detail": {"code", "message"}}``."""
    if exc.status >= 500:
        logger.error("request_failed", path=request.url.path, code=exc.code, error=exc.message)
    else:
        logger.info("request_rejected", path=request.url.path, code=exc.code)
    return JSONResponse(status_code=exc.status, content={"detail": exc.to_dict()})


def create_app() -> FastAPI:
    """Create and configure the FastAPI application.

    Returns:
        Configured FastAPI app instance
    """
    app = FastAPI(
        title="E-Certify API",
        description="Certificate issuance, approval, sharing and institute transfers",
        version=__version__,
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

    app.add_exception_handler(ECertifyError, handle_ecertify_error)

    # Include routers
    app.include_router(health_router)
    app.include_router(institutes_router)
    app.include_router(students_router)
    app.include_router(certificates_router)
    app.include_router(transfers_router)
    app.include_router(events_router)

    return app


# Default app instance for uvicorn
app = create_app()
