"""Create all tables in the configured database."""

import asyncio

from config.settings import settings
from publishing_intel.db.connection import Database
from publishing_intel.logging_setup import configure_logging


async def init() -> None:
    database = Database(settings.database_url)
    try:
        await database.create_tables()
    finally:
        await database.dispose()
    print(f"[init_db] Tables created successfully ({database.dialect}).")


if __name__ == "__main__":
    configure_logging(settings.log_level)
    asyncio.run(init())
