# src/classboard/main.py
"""Main entry point for the Classboard application."""

from __future__ import annotations

import logging

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from fastapi.middleware.gzip import GZipMiddleware

from classboard.api.v1 import announcements_router, realtime_router, stats_router
from classboard.api.v1.dependencies import BroadcasterDep
from classboard.core.logging_config import configure_logging
from classboard.core.settings import settings
from classboard.services.identity import get_identity_resolver

logger = logging.getLogger(__name__)

# Initialize FastAPI app
app = FastAPI(
    title="Classboard API",
    description="Class website backend with live announcement reactions and views",
    version=settings.app_version,
)

# Add CORS middleware
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=settings.cors_allow_credentials,
    allow_methods=settings.cors_allow_methods,
    allow_headers=settings.cors_allow_headers,
)

# Add GZip middleware for compression
app.add_middleware(GZipMiddleware)

# Include API routers
app.include_router(realtime_router, prefix="/api/v1")
app.include_router(announcements_router, prefix="/api/v1")
app.include_router(stats_router, prefix="/api/v1")


@app.on_event("startup")
async def on_startup() -> None:
    configure_logging(settings.log_level)
    get_identity_resolver()
    logger.info("%s %s started (%s)", settings.app_name, settings.app_version, settings.environment)


@app.get("/health")
async def health_check(broadcaster: BroadcasterDep) -> dict[str, object]:
    """Health check endpoint to verify the service is running."""
    return {
        "status": "ok",
        "connections": broadcaster.connection_count(),
        "authenticatedConnections": broadcaster.authenticated_count(),
    }


@app.get("/")
async def root() -> dict[str, str]:
    """Root endpoint with basic information about the API."""
    return {
        "name": settings.app_name,
        "version": settings.app_version,
        "docs": "/docs",
        "redoc": "/redoc",
    }


if __name__ == "__main__":
    import uvicorn
    uvicorn.run("classboard.main:app", host="0.0.0.0", port=8000, reload=settings.debug)
