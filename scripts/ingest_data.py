"""Ingest the export spreadsheets in the data directory once.

Usage:
    python scripts/ingest_data.py            # skip if data is already loaded
    python scripts/ingest_data.py --force    # re-ingest over existing data
    python scripts/ingest_data.py --reset    # empty every table, then ingest
"""

import argparse
import asyncio
import json

from config.settings import settings
from publishing_intel.db.connection import Database
from publishing_intel.ingestion.pipeline import IngestionPipeline
from publishing_intel.logging_setup import configure_logging


async def ingest(force: bool, reset: bool) -> dict:
    database = Database(settings.database_url)
    try:
        await database.create_tables()
        pipeline = IngestionPipeline(database, settings)
        if reset:
            report = await pipeline.reset_and_reprocess()
        else:
            report = await pipeline.run(force=force)
    finally:
        await database.dispose()
    return report.to_dict()


def main() -> None:
    parser = argparse.ArgumentParser(description="Load export spreadsheets into the database.")
    parser.add_argument("--force", action="store_true", help="ingest even if universities already exist")
    parser.add_argument("--reset", action="store_true", help="clear all tables before ingesting")
    args = parser.parse_args()

    configure_logging(settings.log_level)
    result = asyncio.run(ingest(args.force, args.reset))
    print(json.dumps(result, indent=2, default=str))


if __name__ == "__main__":
    main()
