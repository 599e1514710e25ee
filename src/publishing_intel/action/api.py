"""FastAPI application — dashboard reads, chat assistant, reprocess trigger."""

import asyncio
import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from config.settings import settings
from publishing_intel.db.connection import Database
from publishing_intel.ingestion.folder_watcher import start_watcher
from publishing_intel.ingestion.pipeline import IngestionPipeline
from publishing_intel.logging_setup import configure_logging

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Build the storage client, load the data folder, then serve."""
    configure_logging(settings.log_level)

    database = Database(settings.database_url)
    await database.create_tables()
    pipeline = IngestionPipeline(database, settings)
    app.state.database = database
    app.state.pipeline = pipeline

    if settings.ingest_on_startup:
        try:
            report = await pipeline.run()
            logger.info("Startup ingestion: %s", report.status)
        except Exception:
            logger.exception("Startup ingestion failed")

    observer = None
    if settings.watch_data_directory:
        observer = start_watcher(pipeline, asyncio.get_running_loop())

    try:
        yield
    finally:
        if observer is not None:
            observer.stop()
            observer.join(timeout=5)
        app.state.database = None
        app.state.pipeline = None
        await database.dispose()
        logger.info("Database connections closed")


app = FastAPI(title="Publishing Intel API", version="1.0.0", lifespan=lifespan)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_methods=["*"],
    allow_headers=["*"],
)

# ---------------------------------------------------------------------------
# Include modular routers
# ---------------------------------------------------------------------------
from publishing_intel.action.routers.admin import router as admin_router  # noqa: E402
from publishing_intel.action.routers.chat import router as chat_router  # noqa: E402
from publishing_intel.action.routers.data import router as data_router  # noqa: E402

app.include_router(data_router)
app.include_router(chat_router)
app.include_router(admin_router)


@app.exception_handler(Exception)
async def _global_error_handler(request: Request, exc: Exception):
    """Catch-all: ensure every unhandled error returns JSON, not raw HTML."""
    logger.exception("Unhandled error on %s %s: %s", request.method, request.url.path, exc)
    return JSONResponse(
        status_code=500,
        content={
            "detail": f"Server error: {exc}",
            "error": str(exc),
            "status": "failed",
        },
    )
