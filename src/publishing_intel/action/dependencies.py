"""Shared dependencies for API routers — store handle, sessions, pipeline."""

import logging
from typing import AsyncGenerator

from fastapi import HTTPException, Request
from sqlalchemy.ext.asyncio import AsyncSession

from publishing_intel.db.connection import Database
from publishing_intel.ingestion.pipeline import IngestionPipeline

logger = logging.getLogger(__name__)


def get_database(request: Request) -> Database:
    """Return the application's storage client, or 503 while it is not ready."""
    database = getattr(request.app.state, "database", None)
    if database is None:
        raise HTTPException(status_code=503, detail="Database not ready")
    return database


def get_pipeline(request: Request) -> IngestionPipeline:
    pipeline = getattr(request.app.state, "pipeline", None)
    if pipeline is None:
        raise HTTPException(status_code=503, detail="Ingestion pipeline not ready")
    return pipeline


async def get_session(request: Request) -> AsyncGenerator[AsyncSession, None]:
    database = get_database(request)
    async with database.session() as session:
        yield session
