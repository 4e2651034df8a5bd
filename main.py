"""
Main application entry point for the Mailtrack API.

This module initializes the FastAPI application, configures logging and
CORS, initializes the rate limiter with a Redis backend, installs the
error handlers and includes the resource routers.

Modules:
- FastAPI: Web framework
- CORSMiddleware: Middleware for handling CORS
- FastAPILimiter: Rate limiting
- redis.asyncio: Async Redis client
- fakeredis: In-process Redis used when no server is reachable
- mailtrack.*: Routers, models and settings
"""

from contextlib import asynccontextmanager

import redis.asyncio as redis
from fakeredis.aioredis import FakeRedis
from fastapi import FastAPI, Request, status
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from fastapi_limiter import FastAPILimiter
from redis.exceptions import RedisError

from mailtrack import categories, contacts, dashboard, drafts, models
from mailtrack.auth import router as auth_router
from mailtrack.core import get_settings
from mailtrack.database import engine
from mailtrack.logger import get_logger, setup_logging
from mailtrack.users import router as users_router

settings = get_settings()
setup_logging(settings.LOG_LEVEL)
logger = get_logger(__name__)

# Create tables (for development only)
models.Base.metadata.create_all(bind=engine)


async def _limiter_backend():
    """
    Connect to Redis, falling back to an in-process fake.

    ``REDIS_URL=memory://`` selects the fake directly.
    """
    if settings.REDIS_URL.startswith("memory://"):
        return FakeRedis(decode_responses=True)
    client = redis.from_url(settings.REDIS_URL, encoding="utf-8", decode_responses=True)
    try:
        await client.ping()
    except (RedisError, OSError):
        logger.warning("redis_unavailable", redis_url=settings.REDIS_URL)
        return FakeRedis(decode_responses=True)
    return client


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Initialize the rate limiter on startup and release it on shutdown.
    """
    await FastAPILimiter.init(await _limiter_backend())
    logger.info("startup_complete")
    yield
    await FastAPILimiter.close()


# Initialize FastAPI application
app = FastAPI(title="Mailtrack API", lifespan=lifespan)

# Configure CORS middleware
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.ALLOWED_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.exception_handler(RequestValidationError)
async def validation_exception_handler(request: Request, exc: RequestValidationError):
    """Report malformed request bodies and parameters as 400."""
    return JSONResponse(
        status_code=status.HTTP_400_BAD_REQUEST,
        content={"detail": jsonable_encoder(exc.errors())},
    )


@app.exception_handler(Exception)
async def unhandled_exception_handler(request: Request, exc: Exception):
    """Log unexpected failures and answer with a generic 500."""
    logger.exception(
        "unhandled_error", method=request.method, path=request.url.path
    )
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content={"detail": "Internal server error"},
    )


# Include routers for application areas
app.include_router(auth_router)
app.include_router(users_router)
app.include_router(categories.router)
app.include_router(contacts.router)
app.include_router(drafts.router)
app.include_router(dashboard.router)


@app.get("/")
def root():
    """
    Root endpoint for the API.

    Returns a simple JSON message directing users to the Swagger UI.

    Returns:
        dict: JSON message with information about the API
    """
    return {"msg": "Mailtrack API. Visit /docs for Swagger UI"}
