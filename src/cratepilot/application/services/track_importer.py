"""Track import service - fetch, normalize, dedupe and persist source tracks.

Hey future me - this is THE import pipeline! Five entry points, one shared per-record loop:

    import_by_search(query, limit)          search → enrich → pipeline
    import_by_id(external_id)               fetch  → enrich → pipeline
    import_by_ids(external_ids)             fetch each (failures recorded) → enrich → pipeline
    import_from_collection(id, limit)       page through playlist → enrich → pipeline
    import_from_recommendations(params)     seeds → recommend → enrich → pipeline

Per record: normalize → exists? → insert. Rejections and duplicates are WARNINGS, only
real exceptions are ERRORS. One broken record never stops the batch.

FATALITY (on purpose, don't "fix" without deciding the semantics first):
- search / single-ID / collection / recommendations: a RequestError from the source
  propagates to the caller, nothing gets imported.
- multi-ID: a failed fetch is a per-record failure, the remaining ids still get imported.
  A failed enrich turns every fetched id into a failure. Multi-ID callers want partial
  results; single-ID callers want to know it broke.
"""

import logging
from collections.abc import Callable
from typing import Any

import httpx
from sqlalchemy.ext.asyncio import AsyncSession

from cratepilot.config.settings import SpotifySettings
from cratepilot.domain.entities import (
    MAX_RECOMMENDATION_SEEDS,
    ApiConfig,
    ExternalTrack,
    ImportResult,
    RecommendationParams,
    RequestCounters,
    make_track_id,
)
from cratepilot.domain.exceptions import (
    ConfigurationError,
    DuplicateEntityException,
    RequestError,
)
from cratepilot.domain.ports import IRecommendationSource, ITrackRepository, ITrackSource
from cratepilot.infrastructure.integrations.api_client import SourceApiClient
from cratepilot.infrastructure.integrations.spotify_source import SpotifyTrackSource
from cratepilot.infrastructure.observability.logging import correlation_scope
from cratepilot.infrastructure.persistence.database import Database
from cratepilot.infrastructure.persistence.repositories import TrackRepository
from cratepilot.infrastructure.rate_limiter import RateGovernor

logger = logging.getLogger(__name__)

RepositoryFactory = Callable[[AsyncSession], ITrackRepository]


class TrackImporter:
    """Imports tracks from one source into the track store.

    The database handle is BORROWED - the importer never closes it. The only
    resource the importer owns is its lazily created HTTP client, released by
    close() or `async with`.
    """

    def __init__(
        self,
        database: Database,
        config: ApiConfig,
        source: ITrackSource,
        *,
        governor: RateGovernor | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
        repository_factory: RepositoryFactory = TrackRepository,
    ) -> None:
        """
        Initialize importer.

        Args:
            database: Track store handle (borrowed, not owned)
            config: API configuration for the source
            source: Source implementation (fetching + normalization)
            governor: Rate governor override (tests swap the clock/sleep)
            transport: Custom httpx transport (tests use httpx.MockTransport)
            repository_factory: Builds a track repository for a session

        Raises:
            ConfigurationError: If the database is missing or the base URL is empty
        """
        if database is None:
            raise ConfigurationError("TrackImporter needs a database handle")
        if not config.base_url or not config.base_url.strip():
            raise ConfigurationError("API base URL must not be empty")

        self._database = database
        self._config = config
        self._source = source
        self._repository_factory = repository_factory
        self._counters = RequestCounters()
        self._client = SourceApiClient(
            config,
            self._counters,
            governor=governor,
            auth_headers=source.auth_headers,
            transport=transport,
        )

    @classmethod
    async def create(
        cls,
        database: Database,
        config: ApiConfig,
        source: ITrackSource,
        **kwargs: Any,
    ) -> "TrackImporter":
        """Create an importer after checking the store is reachable.

        Raises:
            ConfigurationError: If the config is invalid or the store is unreachable
        """
        importer = cls(database, config, source, **kwargs)
        await database.ping()
        return importer

    async def close(self) -> None:
        """Release the HTTP client. The database stays open."""
        await self._client.close()

    async def __aenter__(self) -> "TrackImporter":
        return self

    async def __aexit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> None:
        await self.close()

    @property
    def config(self) -> ApiConfig:
        return self._config

    @property
    def source(self) -> ITrackSource:
        return self._source

    @property
    def last_request_time(self) -> float:
        """Monotonic timestamp of the most recent request (0.0 = none yet)."""
        return self._counters.last_request_time

    def track_id_for(self, external_id: str) -> str:
        """Canonical ID an external track would be stored under."""
        return make_track_id(self._source.name, external_id)

    # =========================================================================
    # ENTRY POINTS
    # =========================================================================

    async def import_by_search(self, query: str, limit: int = 20) -> ImportResult:
        """Import tracks found by a search query.

        Args:
            query: Search query (artist, title, genre, ...)
            limit: Maximum number of tracks to import

        Raises:
            RequestError: If a search or enrichment request fails
        """
        with correlation_scope():
            logger.info(f"Search import from {self._source.name}: {query!r} (limit {limit})")

            try:
                raw_tracks = await self._source.search(self._client, query, limit)
                if not raw_tracks:
                    result = ImportResult()
                    result.add_warning(f"No tracks found for query: {query}")
                    logger.info(f"No tracks found for query {query!r}")
                    return result
                raw_tracks = await self._source.enrich(self._client, raw_tracks)
            except RequestError as e:
                logger.error(f"Search import for {query!r} failed: {e.message}")
                raise

            return await self._run_pipeline(raw_tracks)

    async def import_by_id(self, external_id: str) -> ImportResult:
        """Import a single track by its external ID.

        Raises:
            RequestError: If the track can't be fetched - nothing is imported then
        """
        with correlation_scope():
            logger.info(f"Importing {self._source.name} track {external_id}")

            try:
                raw_track = await self._source.fetch_track(self._client, external_id)
                raw_tracks = await self._source.enrich(self._client, [raw_track])
            except RequestError as e:
                logger.error(f"Import of track {external_id} failed: {e.message}")
                raise

            return await self._run_pipeline(raw_tracks)

    # Hey future me - multi-ID NEVER raises a RequestError. A failed fetch is a failure for that
    # one ID. A failed enrich is a failure for every ID that was fetched, because enrichment is
    # one batched call for all of them and nothing can be normalized without its data.
    async def import_by_ids(self, external_ids: list[str]) -> ImportResult:
        """Import several tracks by external ID, one governed fetch per ID.

        A failed fetch counts as a failed track; the remaining IDs are still
        imported. A failed enrichment counts as a failure for every fetched
        track.
        """
        with correlation_scope():
            logger.info(f"Importing {len(external_ids)} {self._source.name} tracks by ID")

            fetch_result = ImportResult()
            raw_tracks: list[ExternalTrack] = []

            for external_id in external_ids:
                try:
                    raw_tracks.append(await self._source.fetch_track(self._client, external_id))
                except RequestError as e:
                    logger.warning(f"Fetching track {external_id} failed: {e.message}")
                    fetch_result.add_failure(f"Failed to fetch track {external_id}: {e.message}")

            if raw_tracks:
                try:
                    raw_tracks = await self._source.enrich(self._client, raw_tracks)
                except RequestError as e:
                    logger.warning(f"Enriching {len(raw_tracks)} tracks failed: {e.message}")
                    for raw_track in raw_tracks:
                        fetch_result.add_failure(
                            f"Failed to fetch track {raw_track.id}: {e.message}"
                        )
                    return fetch_result

            return fetch_result.merge(await self._run_pipeline(raw_tracks))

    async def import_from_collection(
        self, collection_id: str, limit: int | None = None
    ) -> ImportResult:
        """Import the tracks of a playlist-style collection.

        Args:
            collection_id: Collection (playlist) ID in the source
            limit: Maximum number of tracks to import (None = all)

        Raises:
            RequestError: If a page or enrichment request fails
        """
        with correlation_scope():
            logger.info(f"Importing {self._source.name} collection {collection_id}")

            try:
                raw_tracks = await self._source.fetch_collection(
                    self._client, collection_id, limit
                )
                if not raw_tracks:
                    result = ImportResult()
                    result.add_warning(f"No tracks found in collection: {collection_id}")
                    return result
                raw_tracks = await self._source.enrich(self._client, raw_tracks)
            except RequestError as e:
                logger.error(f"Import of collection {collection_id} failed: {e.message}")
                raise

            return await self._run_pipeline(raw_tracks)

    # =========================================================================
    # RECOMMENDATIONS (sources implementing IRecommendationSource only)
    # =========================================================================

    def _recommendation_source(self) -> IRecommendationSource:
        if not isinstance(self._source, IRecommendationSource):
            raise ConfigurationError(
                f"Source {self._source.name!r} does not support recommendations"
            )
        return self._source

    # Listen up, zero seeds is a FAILED result (not an exception, no request sent). Too many seeds
    # is only a warning - Spotify uses the first five and ignores the rest.
    async def import_from_recommendations(self, params: RecommendationParams) -> ImportResult:
        """Import tracks recommended by the source for the given seeds.

        Args:
            params: Seeds (artists, tracks, genres) and tunable constraints

        Raises:
            ConfigurationError: If the source has no recommendation support
            RequestError: If the recommendation or enrichment request fails
        """
        source = self._recommendation_source()
        with correlation_scope():
            seeds = params.seed_count
            if seeds == 0:
                result = ImportResult()
                result.errors.append("At least one seed (artist, track, or genre) is required")
                logger.warning("Recommendations import without seeds, nothing requested")
                return result
            if seeds > MAX_RECOMMENDATION_SEEDS:
                logger.warning(
                    f"Total seeds ({seeds}) exceeds {MAX_RECOMMENDATION_SEEDS}, "
                    f"only the first {MAX_RECOMMENDATION_SEEDS} will be used"
                )
            logger.info(f"Recommendations import from {self._source.name} with {seeds} seeds")

            try:
                raw_tracks = await source.recommend(self._client, params)
                if not raw_tracks:
                    result = ImportResult()
                    result.add_warning("No recommended tracks returned")
                    return result
                raw_tracks = await self._source.enrich(self._client, raw_tracks)
            except RequestError as e:
                logger.error(f"Recommendations import failed: {e.message}")
                raise

            return await self._run_pipeline(raw_tracks)

    async def available_genre_seeds(self) -> list[str]:
        """Genre names the source accepts as recommendation seeds."""
        return await self._recommendation_source().available_genre_seeds(self._client)

    async def find_track_ids(self, name: str, limit: int = 1) -> list[str]:
        """External IDs of tracks matching a name, e.g. to use as seeds."""
        return await self._recommendation_source().search_track_ids(self._client, name, limit)

    async def find_artist_ids(self, name: str, limit: int = 1) -> list[str]:
        """External IDs of artists matching a name, e.g. to use as seeds."""
        return await self._recommendation_source().search_artist_ids(self._client, name, limit)

    # =========================================================================
    # PER-RECORD PIPELINE
    # =========================================================================

    # Hey future me - the shared loop! Every record gets its own session_scope, so a failing
    # insert only rolls back itself. Order of input == order of imported_track_ids.
    # DuplicateEntityException here means we lost an insert race against another importer
    # after exists() said no - same outcome as a duplicate, so same warning.
    async def _run_pipeline(self, raw_tracks: list[ExternalTrack]) -> ImportResult:
        result = ImportResult()

        for raw_track in raw_tracks:
            label = f"{raw_track.artist} - {raw_track.title}"
            try:
                track = self._source.normalize(raw_track)
                if track is None:
                    logger.warning(f"Could not normalize track: {label}")
                    result.add_warning(f"Could not normalize track: {label}")
                    continue

                async with self._database.session_scope() as session:
                    repository = self._repository_factory(session)
                    if await repository.exists(track.id):
                        logger.info(f"Track already exists: {track.id}")
                        result.add_warning(f"Track already exists: {track.id}")
                        continue
                    await repository.add(track)

                result.add_imported(track.id)
            except DuplicateEntityException as e:
                logger.info(f"Track already exists: {e.entity_id}")
                result.add_warning(f"Track already exists: {e.entity_id}")
            except Exception as e:
                logger.warning(f"Failed to import track {label}: {e}", exc_info=True)
                result.add_failure(f"Failed to import track {label}: {e}")

        logger.info(
            f"Import finished: {result.tracks_imported} imported, "
            f"{result.tracks_failed} failed, {len(result.warnings)} warnings"
        )
        return result

    # =========================================================================
    # COUNTERS
    # =========================================================================

    def get_request_count(self) -> int:
        """Requests issued since creation or the last reset."""
        return self._counters.request_count

    def reset_request_count(self) -> None:
        """Zero the request counter. Rate pacing is unaffected."""
        self._counters.reset()


async def import_from_spotify(
    database: Database,
    client_id: str,
    client_secret: str,
    query: str,
    limit: int = 20,
) -> ImportResult:
    """Quick search import from Spotify with default settings.

    Args:
        database: Track store handle
        client_id: Spotify client ID
        client_secret: Spotify client secret
        query: Search query
        limit: Maximum tracks to import
    """
    settings = SpotifySettings(client_id=client_id, client_secret=client_secret)
    importer = await TrackImporter.create(
        database, settings.to_api_config(), SpotifyTrackSource(settings)
    )
    async with importer:
        return await importer.import_by_search(query, limit)
