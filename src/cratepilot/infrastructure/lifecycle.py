"""Startup and shutdown of the track store and logging.

`lifespan()` is what a script or worker wraps its imports in:

    async with lifespan() as database:
        importer = await TrackImporter.create(database, ...)
"""

import logging
from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager

from cratepilot.config import Settings, get_settings
from cratepilot.domain.exceptions import ConfigurationError
from cratepilot.infrastructure.observability import configure_logging
from cratepilot.infrastructure.persistence import Database

logger = logging.getLogger(__name__)


# Hey future me, production refuses to start without Spotify credentials. In development and
# tests an empty client ID is normal (fake APIs, store-only scripts), in production it only
# means every import will die on the token endpoint later.
def _validate_settings(settings: Settings) -> None:
    if settings.app_env != "production":
        return
    if not settings.spotify.client_id or not settings.spotify.client_secret:
        raise ConfigurationError(
            "Spotify client credentials are required in production. "
            "Set SPOTIFY__CLIENT_ID and SPOTIFY__CLIENT_SECRET."
        )


async def startup(settings: Settings | None = None) -> Database:
    """Configure logging, open the track store and make sure its schema exists.

    Args:
        settings: Settings to use (defaults to get_settings())

    Returns:
        Open database handle, owned by the caller

    Raises:
        ConfigurationError: If the settings are invalid or the store is unreachable
    """
    settings = settings or get_settings()

    configure_logging(
        log_level=settings.log_level,
        json_format=settings.log_json,
        app_name=settings.app_name,
    )
    logger.info(f"Starting {settings.app_name} ({settings.app_env})")
    _validate_settings(settings)

    database = Database(settings)
    try:
        await database.ping()
        await database.create_tables()
    except Exception:
        await database.close()
        raise
    logger.info("Track store ready")
    return database


async def shutdown(database: Database) -> None:
    """Close the track store."""
    logger.info("Shutting down")
    await database.close()


@asynccontextmanager
async def lifespan(settings: Settings | None = None) -> AsyncGenerator[Database, None]:
    """Run startup() on enter and shutdown() on exit."""
    database = await startup(settings)
    try:
        yield database
    finally:
        await shutdown(database)


__all__ = ["lifespan", "shutdown", "startup"]
