"""aiohttp application factory."""
from typing import Optional

from aiohttp import web

from practice_sync.api.middleware import error_middleware, identity_middleware
from practice_sync.api.routes import CACHE_KEY, DB_KEY, routes
from practice_sync.core.database import Database
from practice_sync.services.cache import CacheInvalidator, LoggingCacheInvalidator


def create_app(db: Database, cache: Optional[CacheInvalidator] = None) -> web.Application:
    """Build the submission API around an initialized database."""
    app = web.Application(middlewares=[error_middleware, identity_middleware])
    app[DB_KEY] = db
    app[CACHE_KEY] = cache or LoggingCacheInvalidator()
    app.add_routes(routes)

    async def _close_db(app: web.Application) -> None:
        await app[DB_KEY].close()

    app.on_cleanup.append(_close_db)
    return app
