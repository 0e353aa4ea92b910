"""Domain ports (interfaces) for dependency inversion."""

from abc import ABC, abstractmethod
from typing import Any, Protocol, runtime_checkable

from cratepilot.domain.entities import ExternalTrack, RecommendationParams, Track


# Hey future me, ITrackRepository is a PORT! The importer only ever needs point lookups and
# single inserts - no bulk writes, no updates, no deletes (the pipeline is strictly additive).
# The SQLAlchemy implementation lives in infrastructure/persistence/repositories.py.
class ITrackRepository(ABC):
    """Repository interface for canonical Track records."""

    @abstractmethod
    async def exists(self, track_id: str) -> bool:
        """Check if a track with this canonical ID is stored."""
        pass

    @abstractmethod
    async def get(self, track_id: str) -> Track | None:
        """Get a track by canonical ID, None if missing."""
        pass

    @abstractmethod
    async def add(self, track: Track) -> None:
        """Insert a new track.

        Raises:
            DuplicateEntityException: If a track with the same ID already exists
        """
        pass

    @abstractmethod
    async def count(self) -> int:
        """Count stored tracks."""
        pass


class IApiClient(Protocol):
    """What a track source may use to talk to its API."""

    async def request(
        self,
        endpoint: str,
        method: str = "GET",
        body: Any | None = None,
        params: dict[str, Any] | None = None,
    ) -> Any:
        """Issue one governed, authenticated request and return decoded JSON."""
        ...


# Listen up, this is THE per-source abstraction. One implementation per external API, plugged
# into TrackImporter at construction - the importer itself never knows which API it's talking to.
# The source does the API-specific parts (URLs, pagination, payload shapes, auth scheme,
# normalization); the importer does pacing, counting, dedup, persistence and result bookkeeping.
#
# Every fetch method gets the importer's client passed in, so all requests go through the same
# rate governor and request counter.
@runtime_checkable
class ITrackSource(Protocol):
    """Protocol for track sources (Spotify, ...)."""

    @property
    def name(self) -> str:
        """Source tag used as canonical ID prefix (e.g. 'spotify')."""
        ...

    async def auth_headers(self) -> dict[str, str]:
        """Headers overriding the default API-key Authorization header.

        Return {} to keep the default behavior.
        """
        ...

    async def search(
        self, client: IApiClient, query: str, limit: int
    ) -> list[ExternalTrack]:
        """Collect up to `limit` raw tracks matching a search query."""
        ...

    async def fetch_track(self, client: IApiClient, external_id: str) -> ExternalTrack:
        """Fetch one raw track by its external ID.

        Raises:
            RequestError: If the source rejects the request
        """
        ...

    async def fetch_collection(
        self, client: IApiClient, collection_id: str, limit: int | None
    ) -> list[ExternalTrack]:
        """Collect raw tracks of a playlist-style collection, up to `limit`."""
        ...

    async def enrich(
        self, client: IApiClient, tracks: list[ExternalTrack]
    ) -> list[ExternalTrack]:
        """Attach additional per-track data before normalization.

        Sources without extra data return the list unchanged.
        """
        ...

    def normalize(self, external: ExternalTrack) -> Track | None:
        """Map a raw track to a canonical Track, or None to reject it."""
        ...


# Optional capability on top of ITrackSource. Not every API has a recommendation engine, so
# the importer checks for it with isinstance() and refuses with ConfigurationError otherwise.
@runtime_checkable
class IRecommendationSource(Protocol):
    """Track source that can also suggest tracks from seeds."""

    async def recommend(
        self, client: IApiClient, params: RecommendationParams
    ) -> list[ExternalTrack]:
        """Fetch raw recommended tracks for the given seeds and constraints."""
        ...

    async def available_genre_seeds(self, client: IApiClient) -> list[str]:
        """Genre names accepted as seeds."""
        ...

    async def search_track_ids(self, client: IApiClient, name: str, limit: int) -> list[str]:
        """External IDs of tracks matching a name ([] on failure)."""
        ...

    async def search_artist_ids(self, client: IApiClient, name: str, limit: int) -> list[str]:
        """External IDs of artists matching a name ([] on failure)."""
        ...


__all__ = ["IApiClient", "IRecommendationSource", "ITrackRepository", "ITrackSource"]
