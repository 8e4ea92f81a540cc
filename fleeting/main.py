"""Fleeting FastAPI application."""

import logging
from contextlib import asynccontextmanager
from datetime import timedelta

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from fastapi.staticfiles import StaticFiles

from fleeting.config import settings
from fleeting.database import connect
from fleeting.errors import ContentError, ContentGone, PasswordIncorrect, PasswordRequired
from fleeting.routers import content
from fleeting.services.blob_store import LocalBlobStore
from fleeting.services.content_service import ContentService
from fleeting.services.lifecycle import LifecycleEngine
from fleeting.services.short_id import generate_short_id
from fleeting.services.store import SqliteContentStore
from fleeting.services.sweeper import Sweeper

# Configure logging so our INFO messages appear in container logs
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
    datefmt="%Y-%m-%d %H:%M:%S",
)

logger = logging.getLogger(__name__)

VERSION = "0.1.0"


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application startup and shutdown lifecycle."""
    # Startup
    settings.data_dir.mkdir(parents=True, exist_ok=True)
    settings.blob_dir.mkdir(parents=True, exist_ok=True)
    db = await connect(settings.db_path)

    # One store handle shared by the request path and the sweeper
    store = SqliteContentStore(db)
    blobs = LocalBlobStore(settings.blob_dir)
    engine = LifecycleEngine(
        store,
        blobs,
        id_generator=lambda: generate_short_id(settings.short_id_length),
        default_expiry=timedelta(minutes=settings.default_expiry_minutes),
    )
    sweeper = Sweeper(engine, interval=settings.sweep_interval_seconds)

    app.state.store = store
    app.state.content_service = ContentService(engine, blobs, sweeper)

    if settings.sweep_enabled:
        sweeper.start()
    else:
        logger.warning("Scheduled sweeps are DISABLED (FLEETING_SWEEP_ENABLED=false)")

    logger.info("Fleeting started (database %s)", settings.db_path)
    yield
    # Shutdown
    await sweeper.stop()
    await db.close()
    logger.info("Fleeting shut down")


app = FastAPI(
    title="Fleeting",
    description="Self-destructing text and file sharing",
    version=VERSION,
    lifespan=lifespan,
)

# CORS — localhost defaults plus any extra origins from FLEETING_CORS_ORIGINS
_cors_origins = ["http://localhost:5173", "http://localhost:8080"]
if settings.cors_origins:
    _cors_origins.extend(o.strip() for o in settings.cors_origins.split(",") if o.strip())
app.add_middleware(
    CORSMiddleware,
    allow_origins=_cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.exception_handler(ContentError)
async def content_error_handler(request: Request, exc: ContentError):
    body = {"detail": exc.message}
    if isinstance(exc, ContentGone):
        body["reason"] = exc.reason.value
    elif isinstance(exc, (PasswordRequired, PasswordIncorrect)):
        body["requires_password"] = True
    return JSONResponse(status_code=exc.status_code, content=body)


app.include_router(content.router)

# Uploaded files (local blob store)
settings.blob_dir.mkdir(parents=True, exist_ok=True)
app.mount("/uploads", StaticFiles(directory=settings.blob_dir), name="uploads")


# Health check
@app.get("/api/health")
async def health(request: Request):
    store = getattr(request.app.state, "store", None)
    database_ok = store is not None and await store.ping()
    return {
        "status": "ok" if database_ok else "degraded",
        "version": VERSION,
        "database": database_ok,
    }
