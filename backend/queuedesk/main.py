"""FastAPI application entry point."""

from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

import structlog
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from queuedesk.api.v1 import health, queue
from queuedesk.config import settings
from queuedesk.db import dispose_engine
from queuedesk.logging import setup_logging

# Configure logging before anything else
setup_logging()

logger = structlog.get_logger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    """Application lifespan handler for startup/shutdown events."""
    logger.info(
        "Starting Queuedesk API",
        debug=settings.debug,
        timezone=settings.timezone,
        max_queue_per_day=settings.max_queue_per_day,
    )

    yield

    logger.info("Shutting down Queuedesk API")
    await dispose_engine()
    logger.info("Database connections disposed")


app = FastAPI(
    title="Queuedesk API",
    description="Walk-in queue for multi-branch service counters",
    version="0.1.0",
    lifespan=lifespan,
)

# CORS middleware
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.backend_cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# API routes
app.include_router(health.router, prefix="/api/v1", tags=["health"])
app.include_router(queue.router, prefix="/api/v1")
