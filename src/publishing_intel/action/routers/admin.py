"""Reprocess trigger."""

import logging

from fastapi import APIRouter, Depends

from publishing_intel.action.dependencies import get_pipeline
from publishing_intel.ingestion.pipeline import IngestionPipeline

logger = logging.getLogger(__name__)

router = APIRouter(tags=["admin"])


@router.post("/api/reprocess")
async def reprocess(pipeline: IngestionPipeline = Depends(get_pipeline)) -> dict:
    """Empty every collection and re-ingest the data folder."""
    logger.info("Reprocessing data folder")
    report = await pipeline.reset_and_reprocess()
    return {"message": "Data folder reprocessed", **report.to_dict()}
