"""
Golf League Scoring API Server

FastAPI server that provides REST endpoints for score submission,
handicaps, best-ball match play and leaderboards.
"""

from contextlib import asynccontextmanager
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
import logging
import os
import uvicorn
from slowapi import _rate_limit_exceeded_handler  # type: ignore
from slowapi.errors import RateLimitExceeded  # type: ignore

from backend.api.routes import router, limiter as routes_limiter
from backend.database import db
from backend.database.init_defaults import init_defaults
from backend.services.recalc_queue import get_recalc_queue

# Set up logging
# Allow log level to be configured via environment variable (default: INFO)
log_level = os.getenv("LOG_LEVEL", "INFO").upper()
numeric_level = getattr(logging, log_level, logging.INFO)
logging.basicConfig(
    level=numeric_level, format="%(asctime)s - %(name)s - %(levelname)s - %(message)s"
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Lifespan handler for startup and shutdown events."""
    logger.info("Starting up Golf League Scoring API...")

    # Initialize database (create tables if they don't exist)
    # Fallback for environments that have not run the migrations
    try:
        await db.init_database()
        logger.info("Database initialized")
    except Exception as e:
        logger.error(f"Database initialization failed: {e}", exc_info=True)

    try:
        await init_defaults()
    except Exception as e:
        logger.error(f"Failed to initialize defaults: {e}", exc_info=True)

    # Register recalculation callbacks (must be done before starting worker)
    try:
        from backend.services.data_service import register_recalc_queue_callbacks

        register_recalc_queue_callbacks()
        logger.info("Recalculation callbacks registered")
    except Exception as e:
        logger.error(f"Failed to register recalculation callbacks: {e}", exc_info=True)

    try:
        queue = get_recalc_queue()
        queue.start_background_worker()
        logger.info("Recalculation queue worker started")
    except Exception as e:
        logger.error(f"Failed to start recalculation queue worker: {e}", exc_info=True)

    yield  # App is running

    logger.info("Shutting down Golf League Scoring API...")

    try:
        queue = get_recalc_queue()
        queue.stop_background_worker()
        logger.info("Recalculation queue worker stopped")
    except Exception as e:
        logger.error(f"Error stopping recalculation queue worker: {e}", exc_info=True)


app = FastAPI(
    title="Golf League Scoring API",
    description="API for golf league scores, progressive handicaps and best-ball match play",
    version="1.0.0",
    lifespan=lifespan,
)

# Setup rate limiter
app.state.limiter = routes_limiter
app.add_exception_handler(RateLimitExceeded, _rate_limit_exceeded_handler)

# Add CORS middleware, origins configured via ALLOWED_ORIGINS env var
allowed_origins = os.getenv("ALLOWED_ORIGINS", "http://localhost:3000").split(",")
app.add_middleware(
    CORSMiddleware,
    allow_origins=allowed_origins,
    allow_credentials=True,
    allow_methods=["GET", "POST", "PUT", "PATCH", "DELETE", "OPTIONS"],
    allow_headers=["*"],
)

# Include API routes
app.include_router(router)


if __name__ == "__main__":
    uvicorn.run(app, host="0.0.0.0", port=8000)
