"""
FastAPI application entry point for the SmartForm Insight Engine API.

Configures logging and CORS, initializes the key-value store, registers the
metrics and rebuild routers, and starts the ASGI server when run directly.
"""

import logging
from contextlib import asynccontextmanager
from typing import AsyncGenerator

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from insight_engine import __version__
from insight_engine.api import api_router
from insight_engine.core.config import get_settings
from insight_engine.core.storage import close_store, init_store

settings = get_settings()

# Configure logging
logging.basicConfig(
    level=getattr(logging, settings.log_level.upper(), logging.INFO),
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """
    Lifespan context manager for FastAPI application startup and shutdown events.

    On startup:
        - Initialize the key-value store from settings

    On shutdown:
        - Drop the key-value store
    """
    # Startup
    logger.info("SmartForm Insight Engine API starting")
    try:
        init_store()
    except Exception as e:
        # Storage is optional; every consumer degrades to a miss without it
        logger.error(f"Failed to initialize key-value store: {e}")

    yield

    # Shutdown
    logger.info("SmartForm Insight Engine API shutting down")
    close_store()


# Create FastAPI application
app = FastAPI(
    title="SmartForm Insight Engine API",
    version=__version__,
    description=(
        "Local, deterministic survey insights. "
        "Provides endpoints for metric analysis, smart alerts, insight feedback "
        "and auto-rebuild planning."
    ),
    lifespan=lifespan,
)

# Configure CORS middleware
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Routers carry their own /metrics and /rebuild prefixes
app.include_router(api_router)


@app.get("/health")
async def health_check():
    """
    Health check endpoint for monitoring and load balancer probes.

    Returns:
        Dict with status 'healthy'
    """
    return {"status": "healthy"}


@app.get("/")
async def root():
    """
    Root endpoint providing API information.

    Returns:
        Dict with API name and version
    """
    return {
        "name": "SmartForm Insight Engine API",
        "version": __version__,
        "docs": "/docs",
        "openapi": "/openapi.json",
    }


# Run with uvicorn when executed directly
if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "insight_engine.main:app",
        host="0.0.0.0",
        port=8000,
        reload=True,
    )
