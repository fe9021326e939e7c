"""Main entry point for the submission API."""
import asyncio
import logging
import sys

from aiohttp import web

from practice_sync.api.app import create_app
from practice_sync.config import settings
from practice_sync.core import database
from practice_sync.core.log import setup_logging

setup_logging(settings.LOG_LEVEL, settings.LOG_FILE)

logger = logging.getLogger(__name__)


async def main():
    """Initialize the database and serve until cancelled."""
    logger.info("Starting submission API...")

    logger.info("Initializing database at %s", settings.DATABASE_PATH)
    db = await database.init_database(settings.DATABASE_PATH)

    app = create_app(db)
    runner = web.AppRunner(app)
    await runner.setup()

    try:
        site = web.TCPSite(runner, settings.HOST, settings.PORT)
        await site.start()
        logger.info("Listening on http://%s:%d", settings.HOST, settings.PORT)
        await asyncio.Event().wait()
    finally:
        # Cleanup (closes the database through app.on_cleanup)
        await runner.cleanup()
        logger.info("Submission API stopped")


if __name__ == "__main__":
    try:
        asyncio.run(main())
    except KeyboardInterrupt:
        logger.info("Submission API stopped by user")
    except Exception as e:
        logger.error("Fatal error: %s", e)
        sys.exit(1)
