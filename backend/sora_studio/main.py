from __future__ import annotations
"""Sora Studio — FastAPI application entry point.

Mounts the API routes, configures CORS, maps database errors to HTTP
responses, and serves stored videos and the browser UI as static files.
"""

import logging
import os
from contextlib import asynccontextmanager
from pathlib import Path

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from fastapi.staticfiles import StaticFiles

from sora_studio import __version__
from sora_studio.api.router import api_router
from sora_studio.config import get_settings
from sora_studio.database import close_db, init_db
from sora_studio.exceptions import DatabaseConnectionError, DatabaseTimeoutError

settings = get_settings()

# Configure logging
logging.basicConfig(
    level=logging.DEBUG if settings.DEBUG else logging.INFO,
    format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
)
logger = logging.getLogger(__name__)

STATIC_DIR = Path(__file__).parent / "static"


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan: prepare media and tables on startup, close DB on shutdown."""
    logger.info("%s starting up...", settings.APP_NAME)
    logger.info(
        "Provider: %s | storage: %s | poll backend: %s",
        settings.AI_PROVIDER, settings.STORAGE_BACKEND, settings.POLL_BACKEND,
    )

    os.makedirs(settings.MEDIA_VOLUME, exist_ok=True)

    if settings.AUTO_CREATE_TABLES:
        await init_db()
    else:
        logger.info("Skipping init_db (tables managed by Alembic)")

    yield

    await close_db()
    logger.info("%s shut down", settings.APP_NAME)


app = FastAPI(
    title=f"{settings.APP_NAME} API",
    description="Text-to-video generation with OpenAI Sora or Azure OpenAI video",
    version=__version__,
    lifespan=lifespan,
    redirect_slashes=False,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.exception_handler(DatabaseTimeoutError)
async def database_timeout_handler(request: Request, exc: DatabaseTimeoutError):
    logger.error("Database timeout on %s %s: %s", request.method, request.url.path, exc)
    return JSONResponse(status_code=504, content={"detail": "Database timeout - please try again"})


@app.exception_handler(DatabaseConnectionError)
async def database_connection_handler(request: Request, exc: DatabaseConnectionError):
    logger.error("Database connection error on %s %s: %s", request.method, request.url.path, exc)
    return JSONResponse(
        status_code=503, content={"detail": "Database connection failed - please try again"}
    )


app.include_router(api_router)

# Stored videos (local storage backend) and the browser client
os.makedirs(settings.MEDIA_VOLUME, exist_ok=True)
app.mount("/media", StaticFiles(directory=settings.MEDIA_VOLUME), name="media")
app.mount("/ui", StaticFiles(directory=STATIC_DIR, html=True), name="ui")


@app.get("/")
async def root():
    """Liveness check; browsers are sent to the UI."""
    return {
        "service": settings.APP_NAME,
        "status": "running",
        "provider": settings.AI_PROVIDER,
        "ui": "/ui/",
    }


@app.get("/health")
async def health():
    """Detailed health check."""
    return {
        "status": "healthy",
        "provider": settings.AI_PROVIDER,
        "storage": settings.STORAGE_BACKEND,
        "poll_backend": settings.POLL_BACKEND,
    }
