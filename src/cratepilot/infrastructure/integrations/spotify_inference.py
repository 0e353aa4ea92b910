"""Genre-based guesses for tracks without Spotify audio features.

Hey future me - Spotify locked /audio-features for apps created after Nov 2024 (403), and
some tracks simply have no analysis (null entry). Without tempo and key those tracks get
rejected. When SpotifySettings.infer_missing_features is on, we guess instead:

1. Genre from the search query ("house", "techno", ...) or a few well-known artists
2. BPM from the genre's typical range, nudged by release year and title words
3. Energy from the genre, nudged by popularity and title words
4. Key = the most common Camelot key for the genre

Everything here is deterministic: the same Spotify track + query gives the same guess.
These are GUESSES. They're good enough to place a track in a crate, not to beatmatch it.
"""

from dataclasses import dataclass
from typing import Any

UNKNOWN_GENRE = "unknown"

# Checked in order, first hit wins: "tech house" is house, "trap rap" is rap
_SEARCH_GENRES: tuple[tuple[str, tuple[str, ...]], ...] = (
    ("rap", ("rap", "hip-hop", "hip hop")),
    ("house", ("house",)),
    ("techno", ("techno",)),
    ("trance", ("trance",)),
    ("drum and bass", ("drum and bass", "dnb")),
    ("ambient", ("ambient",)),
    ("dubstep", ("dubstep",)),
    ("trap", ("trap",)),
    ("pop", ("pop",)),
    ("rock", ("rock",)),
    ("indie", ("indie",)),
    ("r&b", ("r&b", "rnb")),
)

_ARTIST_GENRES: tuple[tuple[str, tuple[str, ...]], ...] = (
    ("rap", ("drake", "kendrick", "kanye", "jay-z", "eminem", "travis scott", "post malone")),
    ("house", ("deadmau5", "skrillex", "calvin harris", "avicii", "swedish house mafia")),
    ("techno", ("richie hawtin", "jeff mills", "adam beyer", "amelie lens")),
)

GENRE_BPM_RANGES: dict[str, tuple[int, int]] = {
    "rap": (75, 95),
    "hip-hop": (75, 95),
    "trap": (140, 160),
    "house": (120, 130),
    "techno": (125, 135),
    "trance": (130, 140),
    "drum and bass": (160, 180),
    "dubstep": (140, 150),
    "ambient": (60, 90),
    "pop": (100, 130),
    "rock": (110, 140),
    "indie": (90, 120),
    "r&b": (70, 100),
}
DEFAULT_BPM_RANGE = (100, 130)

GENRE_ENERGY: dict[str, int] = {
    "rap": 3,
    "hip-hop": 3,
    "trap": 4,
    "house": 4,
    "techno": 4,
    "trance": 5,
    "drum and bass": 5,
    "dubstep": 5,
    "ambient": 1,
    "pop": 3,
    "rock": 4,
    "indie": 2,
    "r&b": 2,
}

# Most common key first - that's the one we pick
GENRE_KEYS: dict[str, tuple[str, ...]] = {
    "house": ("8A", "8B", "9A", "9B", "10A", "10B"),
    "techno": ("8A", "9A", "10A", "11A", "12A"),
    "trance": ("8A", "8B", "9A", "9B", "10A"),
    "rap": ("8A", "9A", "10A", "11A", "1A", "2A"),
    "hip-hop": ("8A", "9A", "10A", "11A", "1A", "2A"),
    "pop": ("8A", "8B", "9A", "9B", "10A", "10B"),
    "ambient": ("5A", "6A", "7A", "8A", "9A"),
}
DEFAULT_KEYS = ("8A", "9A", "10A")

_MODERN_ELECTRONIC = frozenset({"house", "techno", "trance", "dubstep"})
_POPULARITY_BOOSTED = frozenset({"house", "techno", "trance", "pop"})


@dataclass(frozen=True)
class InferredFeatures:
    genre: str
    bpm: int
    energy: int
    key: str


def _primary_artist(track: dict[str, Any]) -> str:
    artists = track.get("artists") or []
    if artists and isinstance(artists[0], dict):
        return str(artists[0].get("name") or "").lower()
    return ""


def release_year(release_date: str | None) -> int | None:
    """Year from a Spotify release_date ('2024-01-01', '2024-01' or '2024')."""
    if not release_date:
        return None
    try:
        return int(str(release_date).split("-")[0])
    except ValueError:
        return None


def detect_genre(track: dict[str, Any], search_context: str | None = None) -> str:
    """Detect a genre from the search query, falling back to known artists."""
    search_text = (search_context or "").lower()
    for genre, needles in _SEARCH_GENRES:
        if any(needle in search_text for needle in needles):
            return genre

    artist_name = _primary_artist(track)
    if artist_name:
        for genre, artists in _ARTIST_GENRES:
            if any(artist in artist_name for artist in artists):
                return genre

    return UNKNOWN_GENRE


def infer_bpm(track: dict[str, Any], genre: str) -> int:
    low, high = GENRE_BPM_RANGES.get(genre, DEFAULT_BPM_RANGE)

    # Newer electronic releases run a bit faster
    year = release_year((track.get("album") or {}).get("release_date")) or 2020
    if year > 2015 and genre in _MODERN_ELECTRONIC:
        low, high = low + 5, high + 5

    title = str(track.get("name") or "").lower()
    if any(word in title for word in ("fast", "speed", "upbeat")):
        low, high = low + 10, high + 10
    if any(word in title for word in ("slow", "chill", "ambient")):
        low, high = low - 15, high - 15

    return round((low + high) / 2)


def infer_energy(track: dict[str, Any], genre: str) -> int:
    energy = GENRE_ENERGY.get(genre, 3)

    popularity = track.get("popularity")
    if isinstance(popularity, int) and popularity > 70 and genre in _POPULARITY_BOOSTED:
        energy = min(5, energy + 1)

    title = str(track.get("name") or "").lower()
    if any(word in title for word in ("energy", "power", "boost")):
        energy = min(5, energy + 1)
    if any(word in title for word in ("chill", "ambient", "relax")):
        energy = max(1, energy - 1)

    return energy


def infer_key(genre: str) -> str:
    return GENRE_KEYS.get(genre, DEFAULT_KEYS)[0]


def infer_track_properties(
    track: dict[str, Any], search_context: str | None = None
) -> InferredFeatures:
    """Guess genre, bpm, energy and key for a raw Spotify track."""
    genre = detect_genre(track, search_context)
    return InferredFeatures(
        genre=genre,
        bpm=infer_bpm(track, genre),
        energy=infer_energy(track, genre),
        key=infer_key(genre),
    )
