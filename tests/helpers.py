"""Test doubles shared across the suite: fake clock, fake sleep and a fake Spotify Web API.

Hey future me - FakeSpotifyApi is ONE httpx.MockTransport handler serving both the token
endpoint (accounts.spotify.com) and the Web API (api.spotify.com/v1). The source's token client
and the importer's request client get the same transport, so a test sees the full conversation.
Token requests are tracked separately - they don't count as importer requests.

Imported as `from helpers import ...` (tests/ is on pytest's pythonpath); conftest.py only
wraps these in fixtures.
"""

from typing import Any

import httpx


class FakeClock:
    """Manually advanced clock."""

    def __init__(self, now: float = 1000.0) -> None:
        self.now = now

    def __call__(self) -> float:
        return self.now


class SleepRecorder:
    """Stand-in for asyncio.sleep that records delays instead of waiting."""

    def __init__(self) -> None:
        self.delays: list[float] = []

    async def __call__(self, delay: float) -> None:
        self.delays.append(delay)


def spotify_track_json(
    track_id: str,
    name: str = "Test Track",
    artists: tuple[str, ...] = ("Test Artist",),
    duration_ms: int | None = 240000,
    release_date: str = "2021-05-01",
    popularity: int = 50,
) -> dict[str, Any]:
    """Raw track object shaped like the Spotify Web API returns it."""
    return {
        "id": track_id,
        "name": name,
        "artists": [{"id": f"artist-{n}", "name": n} for n in artists],
        "duration_ms": duration_ms,
        "popularity": popularity,
        "album": {"name": f"{name} (Album)", "release_date": release_date},
    }


def _error(status: int, message: str = "error") -> httpx.Response:
    return httpx.Response(status, json={"error": {"status": status, "message": message}})


class FakeSpotifyApi:
    """In-memory Spotify Web API for httpx.MockTransport."""

    def __init__(self) -> None:
        self.tracks: dict[str, dict[str, Any]] = {}
        self.features: dict[str, dict[str, Any] | None] = {}
        self.playlists: dict[str, list[dict[str, Any] | None]] = {}
        # track ids /recommendations answers with, in order
        self.recommendations: list[str] = []
        # None = endpoint gone (404), like for apps created after Nov 2024
        self.genre_seeds: list[str] | None = ["house", "techno"]
        self.forced_status: dict[str, int] = {}
        self.audio_features_status = 200
        self.token_status = 200
        self.token_requests: list[httpx.Request] = []
        self.api_requests: list[httpx.Request] = []

    def add_track(
        self,
        track_id: str,
        name: str = "Test Track",
        artists: tuple[str, ...] = ("Test Artist",),
        duration_ms: int | None = 240000,
        tempo: float | None = 124.4,
        key: int = 9,
        mode: int = 0,
        energy: float = 0.8,
        release_date: str = "2021-05-01",
    ) -> dict[str, Any]:
        """Register a track; tempo=None means Spotify has no analysis for it."""
        track = spotify_track_json(track_id, name, artists, duration_ms, release_date)
        self.tracks[track_id] = track
        self.features[track_id] = (
            None
            if tempo is None
            else {"id": track_id, "tempo": tempo, "key": key, "mode": mode, "energy": energy}
        )
        return track

    @property
    def transport(self) -> httpx.MockTransport:
        return httpx.MockTransport(self.handler)

    def paths(self) -> list[str]:
        return [r.url.path for r in self.api_requests]

    def _token(self, request: httpx.Request) -> httpx.Response:
        self.token_requests.append(request)
        if self.token_status != 200:
            return httpx.Response(self.token_status, json={"error": "invalid_client"})
        return httpx.Response(
            200,
            json={
                "access_token": f"token-{len(self.token_requests)}",
                "token_type": "Bearer",
                "expires_in": 3600,
            },
        )

    def _search(self, request: httpx.Request) -> httpx.Response:
        params = request.url.params
        query = params["q"].lower()
        limit = int(params["limit"])
        offset = int(params.get("offset", 0))

        if params["type"] == "artist":
            artists: dict[str, dict[str, Any]] = {}
            for track in self.tracks.values():
                for artist in track["artists"]:
                    if query in artist["name"].lower():
                        artists.setdefault(artist["id"], artist)
            matches = list(artists.values())
            key = "artists"
        else:
            matches = [
                t
                for t in self.tracks.values()
                if query in t["name"].lower()
                or any(query in a["name"].lower() for a in t["artists"])
            ]
            key = "tracks"

        page = matches[offset : offset + limit]
        has_more = offset + limit < len(matches)
        return httpx.Response(
            200,
            json={
                key: {
                    "items": page,
                    "total": len(matches),
                    "next": str(request.url) if has_more else None,
                }
            },
        )

    def handler(self, request: httpx.Request) -> httpx.Response:
        if request.url.host == "accounts.spotify.com":
            return self._token(request)

        self.api_requests.append(request)
        path = request.url.path.removeprefix("/v1")
        params = request.url.params

        if path in self.forced_status:
            return _error(self.forced_status[path], "forced")

        if path == "/search":
            return self._search(request)

        if path == "/audio-features":
            if self.audio_features_status != 200:
                return _error(self.audio_features_status, "forbidden")
            ids = params["ids"].split(",")
            return httpx.Response(
                200, json={"audio_features": [self.features.get(i) for i in ids]}
            )

        if path == "/recommendations/available-genre-seeds":
            if self.genre_seeds is None:
                return _error(404)
            return httpx.Response(200, json={"genres": self.genre_seeds})

        if path == "/recommendations":
            limit = int(params.get("limit", 20))
            tracks = [self.tracks[i] for i in self.recommendations if i in self.tracks]
            return httpx.Response(200, json={"tracks": tracks[:limit], "seeds": []})

        if path.startswith("/tracks/"):
            track = self.tracks.get(path.removeprefix("/tracks/"))
            if track is None:
                return _error(404)
            return httpx.Response(200, json=track)

        if path.startswith("/playlists/") and path.endswith("/tracks"):
            playlist_id = path.removeprefix("/playlists/").removesuffix("/tracks")
            entries = self.playlists.get(playlist_id)
            if entries is None:
                return _error(404)
            limit = int(params["limit"])
            offset = int(params["offset"])
            page = entries[offset : offset + limit]
            has_more = offset + limit < len(entries)
            return httpx.Response(
                200,
                json={
                    "items": [{"track": t} for t in page],
                    "total": len(entries),
                    "next": str(request.url) if has_more else None,
                },
            )

        return _error(404)
