"""
Fitness League API Server

FastAPI server for submission validation, leaderboards and the rest-day backfill.
"""

from contextlib import asynccontextmanager
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
import logging
import os
import uvicorn
from dotenv import load_dotenv
from slowapi import _rate_limit_exceeded_handler  # type: ignore
from slowapi.errors import RateLimitExceeded  # type: ignore

from fitleague.api.routes import router, limiter as routes_limiter, status_code_for
from fitleague.database import db
from fitleague.services.errors import LeagueEngineError
from fitleague.services.rest_day_service import get_rest_day_worker

load_dotenv()

# Set up logging
# Allow log level to be configured via environment variable (default: INFO)
log_level = os.getenv("LOG_LEVEL", "INFO").upper()
numeric_level = getattr(logging, log_level, logging.INFO)
logging.basicConfig(
    level=numeric_level, format="%(asctime)s - %(name)s - %(levelname)s - %(message)s"
)
logger = logging.getLogger(__name__)

REST_DAY_BACKFILL_ENABLED = os.getenv("REST_DAY_BACKFILL_ENABLED", "true").lower() == "true"


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Lifespan handler for startup and shutdown events."""
    # Startup
    logger.info("Starting up Fitness League API...")

    try:
        await db.init_database()
        logger.info("Database initialized")
    except Exception as e:
        logger.error(f"Database initialization failed: {e}", exc_info=True)
        # Don't raise - allow app to start even if initialization fails

    if REST_DAY_BACKFILL_ENABLED:
        try:
            get_rest_day_worker().start()
        except Exception as e:
            logger.error(f"Failed to start rest-day backfill worker: {e}", exc_info=True)
    else:
        logger.info("Rest-day backfill worker disabled")

    yield  # App is running

    logger.info("Shutting down Fitness League API...")

    try:
        get_rest_day_worker().stop()
    except Exception as e:
        logger.error(f"Error stopping rest-day backfill worker: {e}", exc_info=True)

    try:
        await db.engine.dispose()
    except Exception as e:
        logger.error(f"Error disposing database engine: {e}", exc_info=True)


app = FastAPI(
    title="Fitness League API",
    description="Submission validation, rest-day backfill and leaderboards for fitness leagues",
    version="1.0.0",
    lifespan=lifespan,
)

# Identity provider hook: callable(token) -> user_id | None, sync or async.
# Set by the deployment (or by tests) before serving requests.
app.state.verify_token = None

# Setup rate limiter
app.state.limiter = routes_limiter
app.add_exception_handler(RateLimitExceeded, _rate_limit_exceeded_handler)


@app.exception_handler(LeagueEngineError)
async def league_engine_error_handler(request: Request, exc: LeagueEngineError):
    """Fallback mapping for domain errors raised outside a route's own handling."""
    return JSONResponse(status_code=status_code_for(exc), content={"detail": str(exc)})


# Add CORS middleware - origins configured via ALLOWED_ORIGINS env var
allowed_origins = os.getenv("ALLOWED_ORIGINS", "http://localhost:3000").split(",")
app.add_middleware(
    CORSMiddleware,
    allow_origins=allowed_origins,
    allow_credentials=True,
    allow_methods=["GET", "POST", "OPTIONS"],
    allow_headers=["*"],
)

# Include API routes
app.include_router(router)


if __name__ == "__main__":
    uvicorn.run(app, host="0.0.0.0", port=8000)
