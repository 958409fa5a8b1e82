"""Main application entry point."""
import logging
from contextlib import asynccontextmanager

import uvicorn
from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
import redis
from opentelemetry.instrumentation.fastapi import FastAPIInstrumentor
from opentelemetry.instrumentation.redis import RedisInstrumentor
from opentelemetry.instrumentation.sqlalchemy import SQLAlchemyInstrumentor

from config import (
    API_VERSION,
    DATABASE_URL,
    RATE_LIMIT_ENABLED,
    RATE_LIMIT_PER_MINUTE_IP,
    RATE_LIMIT_PER_MINUTE_USER,
    REDIS_URL,
    SEED_DEMO_DATA,
    TELEMETRY_ENABLED,
)
from database import Database
from errors import QuickShopError
from logging_config import setup_logging
from monitoring import init_profiling
from redis_rate_limiter import RedisRateLimiter
from routers import health, orders, products, users

# Setup structured logging
setup_logging()
logger = logging.getLogger(__name__)

# Sync client for the rate limiting middleware; connects lazily
redis_client = redis.from_url(REDIS_URL, decode_responses=True) if RATE_LIMIT_ENABLED else None


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Application lifespan manager.

    Opens the database at startup and releases it at shutdown.
    """
    logger.info("Starting application...")

    database = Database(DATABASE_URL)
    engine = database.open()
    database.create_schema()
    if SEED_DEMO_DATA:
        database.seed_demo_data()
    app.state.database = database

    if TELEMETRY_ENABLED:
        SQLAlchemyInstrumentor().instrument(engine=engine)

    if redis_client is not None:
        if TELEMETRY_ENABLED:
            RedisInstrumentor().instrument(redis_client=redis_client)
        app.state.redis_client = redis_client

    init_profiling()

    logger.info("Application startup complete")

    yield

    logger.info("Shutting down application...")
    database.close()
    if redis_client is not None:
        redis_client.close()
    logger.info("Application shutdown complete")


app = FastAPI(
    title="Quick Shop Service",
    version=API_VERSION,
    lifespan=lifespan
)


@app.exception_handler(QuickShopError)
async def quickshop_error_handler(request: Request, exc: QuickShopError):
    """Render service errors with their status code."""
    return JSONResponse(status_code=exc.status_code, content={"detail": exc.message})


@app.exception_handler(RequestValidationError)
async def validation_error_handler(request: Request, exc: RequestValidationError):
    """Malformed request bodies and parameters are client errors (400)."""
    messages = []
    for error in exc.errors():
        location = ".".join(str(part) for part in error.get("loc", ()) if part != "body")
        messages.append(f"{location}: {error.get('msg')}" if location else error.get("msg"))
    return JSONResponse(status_code=400, content={"detail": "; ".join(messages)})


if redis_client is not None:
    app.add_middleware(
        RedisRateLimiter,
        redis_client=redis_client,
        requests_per_minute_ip=RATE_LIMIT_PER_MINUTE_IP,
        requests_per_minute_user=RATE_LIMIT_PER_MINUTE_USER
    )

# CORS middleware
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

if TELEMETRY_ENABLED:
    FastAPIInstrumentor.instrument_app(app)

# Include routers
app.include_router(health.router)
app.include_router(users.router)
app.include_router(products.router)
app.include_router(orders.router)


if __name__ == "__main__":
    uvicorn.run(app, host="0.0.0.0", port=8000)
