"""Spotify track source: client credentials auth, fetching and normalization."""

import base64
import logging
import math
import time
from collections.abc import Callable
from typing import Any
from urllib.parse import quote

import httpx

from cratepilot.config.settings import SpotifySettings
from cratepilot.domain.entities import (
    ExternalTrack,
    RecommendationParams,
    Track,
    has_required_fields,
    make_track_id,
)
from cratepilot.domain.exceptions import ConfigurationError, RequestError
from cratepilot.domain.ports import IApiClient
from cratepilot.domain.value_objects.camelot import spotify_key_to_camelot
from cratepilot.infrastructure.integrations.spotify_inference import (
    UNKNOWN_GENRE,
    infer_track_properties,
    release_year,
)

logger = logging.getLogger(__name__)


def _is_number(value: Any) -> bool:
    return isinstance(value, int | float) and not isinstance(value, bool)


# Common dance/electronic seeds, used when the genre seeds endpoint is unavailable
FALLBACK_GENRE_SEEDS: tuple[str, ...] = (
    "house",
    "tech-house",
    "deep-house",
    "progressive-house",
    "electro-house",
    "techno",
    "minimal-techno",
    "detroit-techno",
    "trance",
    "progressive-trance",
    "psytrance",
    "drum-and-bass",
    "dubstep",
    "trap",
    "bass",
    "ambient",
    "downtempo",
    "chill",
    "disco",
    "funk",
    "soul",
    "indie",
    "indie-pop",
    "alternative",
    "electronic",
    "edm",
    "dance",
    "hip-hop",
    "rap",
    "r-n-b",
    "pop",
    "rock",
    "indie-rock",
)


class SpotifyTrackSource:
    """Track source for the Spotify Web API.

    Hey future me - this is the ONLY place that knows what Spotify JSON looks like!
    The importer hands us its SourceApiClient for every fetch, so pacing and counting
    stay in one place. We only deal with:
    - the client credentials token (fetched out of band, NOT counted, NOT governed)
    - endpoint paths, pagination and payload shapes
    - audio features enrichment (tempo/key/energy live there, not on the track)
    - mapping a raw track to a canonical Track
    """

    SOURCE_NAME = "spotify"
    SEARCH_PAGE_SIZE = 50  # Spotify max for /search
    PLAYLIST_PAGE_SIZE = 100  # Spotify max for /playlists/{id}/tracks
    AUDIO_FEATURES_BATCH_SIZE = 100  # Spotify max ids per /audio-features call
    TOKEN_REFRESH_MARGIN_SECONDS = 300

    # Hey future me, we refuse to exist without client credentials. Spotify answers every call
    # with 401 otherwise, and "invalid_client" from the token endpoint is a confusing way to
    # learn that SPOTIFY__CLIENT_ID is empty.
    def __init__(
        self,
        settings: SpotifySettings,
        transport: httpx.AsyncBaseTransport | None = None,
        clock: Callable[[], float] = time.time,
    ) -> None:
        """
        Initialize Spotify source.

        Args:
            settings: Spotify configuration settings
            transport: Custom httpx transport for the token endpoint (tests)
            clock: Wall clock in seconds, used for token expiry

        Raises:
            ConfigurationError: If client_id or client_secret is not configured
        """
        if not settings.client_id or not settings.client_secret:
            raise ConfigurationError(
                "Spotify client credentials not configured. "
                "Set SPOTIFY__CLIENT_ID and SPOTIFY__CLIENT_SECRET. "
                "Get credentials at https://developer.spotify.com/dashboard"
            )
        self.settings = settings
        self._transport = transport
        self._clock = clock
        self._access_token: str | None = None
        self._token_expires_at: float = 0.0

    @property
    def name(self) -> str:
        return self.SOURCE_NAME

    @property
    def access_token(self) -> str | None:
        """Current access token (for debugging)."""
        return self._access_token

    # =========================================================================
    # AUTH
    # =========================================================================

    async def auth_headers(self) -> dict[str, str]:
        """Bearer header with a valid client credentials token."""
        await self.ensure_valid_token()
        return {"Authorization": f"Bearer {self._access_token}"}

    def _token_is_fresh(self) -> bool:
        return (
            self._access_token is not None
            and self._token_expires_at > self._clock() + self.TOKEN_REFRESH_MARGIN_SECONDS
        )

    async def ensure_valid_token(self) -> None:
        """Refresh the access token unless it's valid for at least 5 more minutes."""
        if self._token_is_fresh():
            return
        await self.refresh_access_token()

    # Yo, client credentials is the server-to-server flow: no user, no refresh token, just
    # "Basic base64(id:secret)" + grant_type=client_credentials and we get a ~1h token back.
    # It HAS to be form-urlencoded, not JSON.
    async def refresh_access_token(self) -> None:
        """Request a new access token using the client credentials flow.

        Raises:
            RequestError: If Spotify rejects the credentials or is unreachable
        """
        credentials = base64.b64encode(
            f"{self.settings.client_id}:{self.settings.client_secret}".encode()
        ).decode("ascii")

        async with httpx.AsyncClient(timeout=30.0, transport=self._transport) as client:
            try:
                response = await client.post(
                    self.settings.token_url,
                    headers={"Authorization": f"Basic {credentials}"},
                    data={"grant_type": "client_credentials"},
                )
            except httpx.TransportError as e:
                raise RequestError(None, str(e) or e.__class__.__name__, self.settings.token_url) from e

        if not response.is_success:
            logger.error(
                f"Failed to get Spotify access token: "
                f"{response.status_code} {response.reason_phrase}"
            )
            raise RequestError(
                response.status_code, response.reason_phrase, self.settings.token_url
            )

        data = response.json()
        self._access_token = data["access_token"]
        self._token_expires_at = self._clock() + float(data.get("expires_in", 3600))
        logger.debug("Spotify access token refreshed")

    # =========================================================================
    # FETCHING
    # =========================================================================

    def _to_external(
        self, item: dict[str, Any], search_context: str | None = None
    ) -> ExternalTrack:
        artists = item.get("artists") or []
        primary = artists[0].get("name") if artists and isinstance(artists[0], dict) else None
        return ExternalTrack(
            id=str(item.get("id") or ""),
            artist=primary or "Unknown Artist",
            title=str(item.get("name") or ""),
            search_context=search_context,
            extra={"spotify_track": item},
        )

    async def search(self, client: IApiClient, query: str, limit: int) -> list[ExternalTrack]:
        """Search tracks, paging through results until `limit` is reached."""
        collected: list[ExternalTrack] = []
        offset = 0

        while len(collected) < limit:
            page_size = min(self.SEARCH_PAGE_SIZE, limit - len(collected))
            data = await client.request(
                "/search",
                params={"q": query, "type": "track", "limit": page_size, "offset": offset},
            )
            page = (data or {}).get("tracks") or {}
            items = page.get("items") or []

            collected.extend(
                self._to_external(item, search_context=query)
                for item in items
                if item and item.get("id")
            )

            if len(items) < page_size or not page.get("next"):
                break
            offset += len(items)

        return collected[:limit]

    async def fetch_track(self, client: IApiClient, external_id: str) -> ExternalTrack:
        """Fetch one track by Spotify ID."""
        data = await client.request(f"/tracks/{quote(external_id, safe='')}")
        return self._to_external(data or {})

    async def fetch_collection(
        self, client: IApiClient, collection_id: str, limit: int | None
    ) -> list[ExternalTrack]:
        """Fetch playlist tracks, paging until `limit` or the end of the playlist."""
        collected: list[ExternalTrack] = []
        offset = 0
        endpoint = f"/playlists/{quote(collection_id, safe='')}/tracks"

        while True:
            data = await client.request(
                endpoint, params={"offset": offset, "limit": self.PLAYLIST_PAGE_SIZE}
            )
            items = (data or {}).get("items") or []

            # Local files and removed tracks come back as track=null or without an id
            for item in items:
                track = (item or {}).get("track")
                if track and track.get("id"):
                    collected.append(self._to_external(track))

            if not (data or {}).get("next") or not items:
                break
            if limit is not None and len(collected) >= limit:
                break
            offset += self.PLAYLIST_PAGE_SIZE

        return collected[:limit] if limit is not None else collected

    # Hey future me - audio features is where bpm/key/energy come from. The endpoint returns
    # a list aligned with the ids we sent, with null for tracks Spotify never analysed.
    # 403/404 means the endpoint is closed for this app (client credentials apps created after
    # Nov 2024) - that's NOT fatal, the tracks just stay without features and normalize()
    # rejects them (or infers, if enabled). Any other error propagates.
    async def enrich(
        self, client: IApiClient, tracks: list[ExternalTrack]
    ) -> list[ExternalTrack]:
        """Attach audio features to each track (None where unavailable)."""
        pending = [t for t in tracks if "audio_features" not in t.extra and t.id]

        for start in range(0, len(pending), self.AUDIO_FEATURES_BATCH_SIZE):
            batch = pending[start : start + self.AUDIO_FEATURES_BATCH_SIZE]
            try:
                data = await client.request(
                    "/audio-features", params={"ids": ",".join(t.id for t in batch)}
                )
                features = (data or {}).get("audio_features") or []
            except RequestError as e:
                if e.status_code not in (403, 404):
                    raise
                logger.warning(
                    f"Audio features unavailable ({e.status_code}), "
                    f"continuing without them for {len(batch)} tracks"
                )
                features = []

            for index, track in enumerate(batch):
                track.extra["audio_features"] = features[index] if index < len(features) else None

        missing = sum(1 for t in tracks if not t.extra.get("audio_features"))
        if missing:
            logger.info(f"{missing} track(s) missing audio features")
        return tracks

    # =========================================================================
    # RECOMMENDATIONS
    # =========================================================================

    async def recommend(
        self, client: IApiClient, params: RecommendationParams
    ) -> list[ExternalTrack]:
        """Fetch recommended tracks for the given seeds.

        Raises:
            RequestError: If Spotify rejects the request
        """
        data = await client.request("/recommendations", params=params.to_query_params())
        context = params.search_context
        return [
            self._to_external(item, search_context=context)
            for item in (data or {}).get("tracks") or []
            if item and item.get("id")
        ]

    # Hey future me - Spotify closed this endpoint for newer apps, so a failure here is normal
    # and we hand out a static list of common dance/electronic seeds instead.
    async def available_genre_seeds(self, client: IApiClient) -> list[str]:
        """Genre seeds Spotify accepts, or FALLBACK_GENRE_SEEDS if the endpoint fails."""
        try:
            data = await client.request("/recommendations/available-genre-seeds")
        except RequestError as e:
            logger.warning(f"Genre seeds endpoint unavailable ({e.message}), using fallback list")
            return list(FALLBACK_GENRE_SEEDS)
        return list((data or {}).get("genres") or [])

    async def _search_ids(
        self, client: IApiClient, name: str, search_type: str, limit: int
    ) -> list[str]:
        try:
            data = await client.request(
                "/search", params={"q": name, "type": search_type, "limit": limit}
            )
        except RequestError as e:
            logger.warning(f"Failed to search {search_type} {name!r}: {e.message}")
            return []
        items = ((data or {}).get(f"{search_type}s") or {}).get("items") or []
        return [item["id"] for item in items if item and item.get("id")]

    async def search_track_ids(self, client: IApiClient, name: str, limit: int = 1) -> list[str]:
        """Spotify IDs of tracks matching a name, [] if the search fails."""
        return await self._search_ids(client, name, "track", limit)

    async def search_artist_ids(self, client: IApiClient, name: str, limit: int = 1) -> list[str]:
        """Spotify IDs of artists matching a name, [] if the search fails."""
        return await self._search_ids(client, name, "artist", limit)

    # =========================================================================
    # NORMALIZATION
    # =========================================================================

    def normalize(self, external: ExternalTrack) -> Track | None:
        """Map a raw Spotify track to a canonical Track, None if unusable."""
        spotify_track = external.extra.get("spotify_track")
        if not spotify_track:
            return None
        features = external.extra.get("audio_features") or {}

        bpm: int | None = None
        key: str | None = None
        energy: int | None = None
        genre: str | None = None

        tempo = features.get("tempo")
        if _is_number(tempo):
            bpm = round(tempo)
        spotify_key = features.get("key")
        spotify_mode = features.get("mode")
        if _is_number(spotify_key) and _is_number(spotify_mode):
            key = spotify_key_to_camelot(int(spotify_key), int(spotify_mode))
        raw_energy = features.get("energy")
        if _is_number(raw_energy):
            energy = min(5, max(1, math.ceil(raw_energy * 5)))

        if (not bpm or key is None) and self.settings.infer_missing_features:
            guess = infer_track_properties(spotify_track, external.search_context)
            bpm = bpm or guess.bpm
            key = key or guess.key
            energy = energy or guess.energy
            # Spotify tracks carry no genre, so the detected one is the only genre we ever get
            if guess.genre != UNKNOWN_GENRE:
                genre = guess.genre
            logger.debug(f"Inferred features for {external.id}: {guess}")

        duration_ms = spotify_track.get("duration_ms")
        artist = ", ".join(
            a["name"] for a in (spotify_track.get("artists") or []) if a and a.get("name")
        )

        fields = {
            "id": make_track_id(self.SOURCE_NAME, external.id) if external.id else None,
            "artist": artist,
            "title": spotify_track.get("name"),
            "bpm": bpm,
            "key": key,
            "duration_sec": round(duration_ms / 1000) if _is_number(duration_ms) else None,
        }
        if not has_required_fields(fields):
            logger.debug(f"Rejecting Spotify track {external.id}: incomplete {fields}")
            return None

        album = spotify_track.get("album") or {}
        return Track(
            id=fields["id"],
            artist=fields["artist"],
            title=fields["title"],
            duration_sec=fields["duration_sec"],
            bpm=fields["bpm"],
            key=fields["key"],
            source=self.SOURCE_NAME,
            genre=genre,
            energy=energy,
            album=album.get("name"),
            year=release_year(album.get("release_date")),
        )


__all__ = ["FALLBACK_GENRE_SEEDS", "SpotifyTrackSource"]
