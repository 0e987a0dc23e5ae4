"""
Pickup Basketball Queue API Server

FastAPI server that exposes the rotating player queue: check-ins, checkouts,
games and game sets.
"""

from contextlib import asynccontextmanager
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
import logging
import os
import uvicorn
from slowapi import _rate_limit_exceeded_handler  # type: ignore
from slowapi.errors import RateLimitExceeded  # type: ignore

from hoopqueue.api.routes import router, limiter as routes_limiter
from hoopqueue.database import db
from hoopqueue.database.init_defaults import init_defaults
from hoopqueue.services.cleanup_service import get_queue_cleanup_service
from hoopqueue.services import settings_service
from hoopqueue.utils.constants import LOG_LEVEL_KEY

# Set up logging
# Allow log level to be configured via environment variable (default: INFO)
# Note: Database setting will be checked after database initialization
log_level = os.getenv("LOG_LEVEL", "INFO").upper()
numeric_level = getattr(logging, log_level, logging.INFO)
logging.basicConfig(
    level=numeric_level, format="%(asctime)s - %(name)s - %(levelname)s - %(message)s"
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Lifespan handler for startup and shutdown events."""
    logger.info("Starting up Pickup Basketball Queue API...")

    # Create tables that migrations have not created yet
    try:
        await db.init_database()
        logger.info("Database initialized")
    except Exception as e:
        logger.error(f"Database initialization failed: {e}", exc_info=True)

    try:
        await init_defaults()
        logger.info("✓ Default values initialized")

        try:
            async with db.AsyncSessionLocal() as session:
                log_level_setting = await settings_service.get_setting(session, LOG_LEVEL_KEY)
                if log_level_setting:
                    log_level_name = log_level_setting.upper()
                    root_logger = logging.getLogger()
                    root_logger.setLevel(getattr(logging, log_level_name, logging.INFO))
                    logger.info(f"Log level set from database: {log_level_name}")
                else:
                    logger.info(f"Log level set from environment: {log_level}")
        except Exception as e:
            logger.warning(f"Could not load log level from database, using environment: {e}")
    except Exception as e:
        logger.error(f"Failed to initialize defaults: {e}", exc_info=True)

    # Start queue cleanup worker (duplicate check-ins, stale game sets)
    try:
        cleanup_service = get_queue_cleanup_service()
        cleanup_service.start()
        logger.info("✓ Queue cleanup worker started")
    except Exception as e:
        logger.error(f"Failed to start queue cleanup worker: {e}", exc_info=True)

    yield  # App is running

    logger.info("Shutting down Pickup Basketball Queue API...")

    try:
        cleanup_service = get_queue_cleanup_service()
        cleanup_service.stop()
        logger.info("✓ Queue cleanup worker stopped")
    except Exception as e:
        logger.error(f"Error stopping queue cleanup worker: {e}", exc_info=True)


app = FastAPI(
    title="Pickup Basketball Queue API",
    description="API for running a rotating player queue across pickup basketball courts",
    version="1.0.0",
    lifespan=lifespan,
)

# Setup rate limiter
app.state.limiter = routes_limiter
app.add_exception_handler(RateLimitExceeded, _rate_limit_exceeded_handler)

# Add CORS middleware - origins configured via ALLOWED_ORIGINS env var
allowed_origins = os.getenv("ALLOWED_ORIGINS", "http://localhost:3000").split(",")
app.add_middleware(
    CORSMiddleware,
    allow_origins=allowed_origins,
    allow_credentials=True,
    allow_methods=["GET", "POST", "PUT", "PATCH", "DELETE", "OPTIONS"],
    allow_headers=["*"],
)

app.include_router(router)


@app.get("/api/health")
async def health():
    """Liveness check."""
    return {"status": "ok"}


if __name__ == "__main__":
    uvicorn.run(app, host="0.0.0.0", port=8000)
