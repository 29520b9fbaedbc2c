from __future__ import annotations
"""MediaGen — FastAPI application entry point.

Mounts the API routes, serves owned media, maps pipeline errors to HTTP
responses and owns the in-process asset upload workers.
"""

import logging
import os
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from fastapi.staticfiles import StaticFiles

from mediagen.api.router import api_router
from mediagen.api.ws import router as ws_router
from mediagen.config import get_settings
from mediagen.database import close_db, init_db
from mediagen.dependencies import get_task_store, get_upload_dispatcher
from mediagen.services.asset_uploader import recover_pending_uploads
from mediagen.services.errors import GenerationError

settings = get_settings()

# Configure logging
logging.basicConfig(
    level=logging.DEBUG if settings.DEBUG else logging.INFO,
    format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Start upload workers and recover interrupted migrations; stop them on shutdown."""
    logger.info("MediaGen starting up...")
    logger.info("USE_MOCK_API: %s", settings.USE_MOCK_API)
    logger.info("Asset upload backend: %s", settings.ASSET_UPLOAD_BACKEND)

    if settings.DB_AUTO_CREATE:
        await init_db()
    else:
        logger.info("Skipping init_db (schema managed by Alembic)")

    dispatcher = get_upload_dispatcher()
    await dispatcher.start()

    # In-process migration jobs die with the process; re-schedule what's left
    try:
        await recover_pending_uploads(
            get_task_store(), dispatcher, limit=settings.ASSET_RECOVERY_LIMIT
        )
    except Exception as e:
        logger.warning("Startup recovery failed (non-fatal): %s", e)

    yield

    await dispatcher.stop()
    await close_db()
    logger.info("MediaGen shut down")


app = FastAPI(
    title="MediaGen API",
    description="AI image / video / music generation task coordination",
    version="0.1.0",
    lifespan=lifespan,
    redirect_slashes=False,
)

_cors_origins = os.environ.get(
    "CORS_ORIGINS",
    "http://localhost:3000,http://127.0.0.1:3000",
).split(",")
app.add_middleware(
    CORSMiddleware,
    allow_origins=_cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.exception_handler(GenerationError)
async def generation_error_handler(request: Request, exc: GenerationError):
    return JSONResponse(status_code=exc.status_code, content={"detail": exc.message})


app.include_router(api_router)
app.include_router(ws_router)

# Owned media storage
os.makedirs(settings.MEDIA_VOLUME, exist_ok=True)
app.mount("/media", StaticFiles(directory=settings.MEDIA_VOLUME), name="media")


@app.get("/")
async def root():
    """Health check endpoint."""
    return {
        "service": "MediaGen",
        "status": "running",
        "mock_mode": settings.USE_MOCK_API,
    }


@app.get("/health")
async def health():
    """Detailed health check."""
    from mediagen.dependencies import get_provider_registry, get_query_coordinator

    return {
        "status": "healthy",
        "providers": get_provider_registry().provider_names(),
        "queries_in_flight": get_query_coordinator().pending_count(),
        "upload_backend": settings.ASSET_UPLOAD_BACKEND,
    }
