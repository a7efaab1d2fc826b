"""
Team Calendar - Main Application Entry Point

FastAPI application for booking lab items in the team calendar.
"""

import logging
import sys
from contextlib import asynccontextmanager
from pathlib import Path
from typing import AsyncGenerator

from fastapi import FastAPI, Request, status
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from . import __version__
from .config import settings
from .core.database import close_db, get_db
from .core.exceptions import (
    BookingConflict,
    Forbidden,
    NotFound,
    SchedulerError,
    StorageFailure,
)
from .api import api_router

# Configure logging
logging.basicConfig(
    level=getattr(logging, settings.log_level.upper()),
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    handlers=[
        logging.StreamHandler(sys.stdout),
    ]
)

# Add file handler if a log file is configured
if settings.log_file:
    try:
        log_path = Path(settings.log_file)
        log_path.parent.mkdir(parents=True, exist_ok=True)
        file_handler = logging.FileHandler(settings.log_file)
        file_handler.setFormatter(
            logging.Formatter("%(asctime)s - %(name)s - %(levelname)s - %(message)s")
        )
        logging.getLogger().addHandler(file_handler)
    except OSError as e:
        logging.warning(f"Could not set up file logging: {e}")

logger = logging.getLogger(__name__)

# HTTP status for each scheduler error kind
ERROR_STATUS = {
    NotFound: status.HTTP_404_NOT_FOUND,
    Forbidden: status.HTTP_403_FORBIDDEN,
    BookingConflict: status.HTTP_409_CONFLICT,
    StorageFailure: status.HTTP_500_INTERNAL_SERVER_ERROR,
}


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Application lifespan handler for startup and shutdown."""
    logger.info("=" * 60)
    logger.info("Team Calendar Starting...")
    logger.info("=" * 60)

    logger.info(f"Initializing database: {settings.database_path}")
    app.state.db = await get_db()

    logger.info(f"API server ready on {settings.api_host}:{settings.api_port}")
    logger.info("=" * 60)

    yield

    logger.info("Shutting down...")
    await close_db()
    logger.info("Database closed")
    logger.info("Goodbye!")


# Create FastAPI application
app = FastAPI(
    title="Team Calendar",
    description="Team scheduler for booking lab items",
    version=__version__,
    lifespan=lifespan,
    docs_url="/api/docs" if settings.docs_enabled else None,
    redoc_url="/api/redoc" if settings.docs_enabled else None,
    openapi_url="/api/openapi.json" if settings.docs_enabled else None,
)

# Add CORS middleware
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


# Include API routes
app.include_router(api_router)


@app.get("/")
async def root():
    """Root endpoint - basic info"""
    return {
        "name": "Team Calendar",
        "version": __version__,
        "status": "running",
        "api_docs": "/api/docs" if settings.docs_enabled else None,
    }


@app.exception_handler(SchedulerError)
async def scheduler_exception_handler(request: Request, exc: SchedulerError):
    """Map booking errors to HTTP responses"""
    status_code = ERROR_STATUS.get(type(exc), status.HTTP_400_BAD_REQUEST)
    if isinstance(exc, StorageFailure):
        logger.error(f"Storage failure on {request.url.path}: {exc.__cause__}")

    content = {"detail": exc.message}
    if isinstance(exc, BookingConflict):
        content["conflicting_ids"] = list(exc.conflicting_ids)
    return JSONResponse(status_code=status_code, content=content)


@app.exception_handler(Exception)
async def global_exception_handler(request: Request, exc: Exception):
    """Global exception handler for unhandled errors"""
    logger.error(f"Unhandled exception: {exc}", exc_info=True)
    return JSONResponse(
        status_code=500,
        content={"detail": "Internal server error", "error": str(exc)}
    )


def run():
    """Run the application with uvicorn"""
    import uvicorn

    logger.info(f"Starting server on {settings.api_host}:{settings.api_port}")

    uvicorn.run(
        "team_calendar.main:app",
        host=settings.api_host,
        port=settings.api_port,
        reload=False,
        log_level=settings.log_level.lower(),
    )


if __name__ == "__main__":
    run()
