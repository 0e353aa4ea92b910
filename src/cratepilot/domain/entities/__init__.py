"""Domain entities for the track import pipeline."""

from collections.abc import Mapping
from dataclasses import dataclass, field
from datetime import UTC, datetime
from typing import Any

from cratepilot.domain.exceptions import ConfigurationError
from cratepilot.domain.value_objects.camelot import is_camelot_key

# Fields a canonical track cannot exist without. Anything else is optional metadata.
REQUIRED_TRACK_FIELDS: tuple[str, ...] = (
    "id",
    "artist",
    "title",
    "bpm",
    "key",
    "duration_sec",
)


def make_track_id(source: str, external_id: str) -> str:
    """Build the canonical track ID for an external record.

    Same (source, external_id) always gives the same ID, so callers can check
    the store without importing anything.

    Args:
        source: Source tag (e.g. 'spotify')
        external_id: Track ID in the external system

    Returns:
        Canonical ID like 'spotify-4uLU6hMCjMI75M1A2tKUQC'
    """
    return f"{source}-{external_id}"


def _is_positive_number(value: Any) -> bool:
    # bool is an int subclass - True is not a tempo
    return isinstance(value, int | float) and not isinstance(value, bool) and value > 0


def _is_non_empty_string(value: Any) -> bool:
    return isinstance(value, str) and bool(value.strip())


# Hey future me, this is THE gate between "we got something from an API" and "this is a track".
# A record missing any of these is a normalization REJECTION (warning), never an exception.
# Zero bpm / zero duration count as missing - Spotify hands out tempo=0 for spoken word and
# silence, and a 0-second track is garbage data.
def has_required_fields(fields: Mapping[str, Any]) -> bool:
    """Check that all required canonical fields are present and well-formed."""
    return (
        _is_non_empty_string(fields.get("id"))
        and _is_non_empty_string(fields.get("artist"))
        and _is_non_empty_string(fields.get("title"))
        and _is_positive_number(fields.get("bpm"))
        and is_camelot_key(fields.get("key"))
        and _is_positive_number(fields.get("duration_sec"))
    )


@dataclass(frozen=True)
class Track:
    """Canonical track record.

    Inserted once per ID and never mutated by the importer - hence frozen.
    """

    id: str
    artist: str
    title: str
    duration_sec: int
    bpm: float
    key: str
    source: str
    genre: str | None = None
    energy: int | None = None
    album: str | None = None
    year: int | None = None
    label: str | None = None
    registered_at: datetime = field(default_factory=lambda: datetime.now(UTC))

    def __post_init__(self) -> None:
        """Validate track data."""
        if not has_required_fields(
            {
                "id": self.id,
                "artist": self.artist,
                "title": self.title,
                "bpm": self.bpm,
                "key": self.key,
                "duration_sec": self.duration_sec,
            }
        ):
            raise ValueError(f"Track {self.id!r} is missing required fields")
        if self.energy is not None and not 1 <= self.energy <= 5:
            raise ValueError("Energy must be between 1 and 5")


@dataclass
class ExternalTrack:
    """Raw track as fetched from a source API.

    Transient - consumed by normalization, never persisted. `extra` carries
    the source-specific payload (for Spotify: the raw track object and its
    audio features).
    """

    id: str
    artist: str
    title: str
    search_context: str | None = None
    extra: dict[str, Any] = field(default_factory=dict)


@dataclass(frozen=True)
class RateLimitConfig:
    """Request budget for one source API."""

    requests_per_second: float
    requests_per_minute: int
    retry_attempts: int = 3
    retry_delay_ms: int = 1000

    def __post_init__(self) -> None:
        """Validate the budget.

        Raises:
            ConfigurationError: If the rate isn't positive or a retry value is negative
        """
        # bool passes the number check, and a zero rate would mean "never send"
        rps = self.requests_per_second
        if isinstance(rps, bool) or not isinstance(rps, int | float) or not rps > 0:
            raise ConfigurationError(f"requests_per_second must be positive, got {rps!r}")
        if self.requests_per_minute < 0:
            raise ConfigurationError(
                f"requests_per_minute must not be negative, got {self.requests_per_minute}"
            )
        if self.retry_attempts < 0:
            raise ConfigurationError(
                f"retry_attempts must not be negative, got {self.retry_attempts}"
            )
        if self.retry_delay_ms < 0:
            raise ConfigurationError(
                f"retry_delay_ms must not be negative, got {self.retry_delay_ms}"
            )


@dataclass(frozen=True)
class ApiConfig:
    """Connection settings for one source API. Immutable once an importer exists."""

    base_url: str
    api_key: str | None = None
    client_id: str | None = None
    client_secret: str | None = None
    rate_limit: RateLimitConfig | None = None


# Spotify takes at most this many seeds in total and silently drops the rest
MAX_RECOMMENDATION_SEEDS = 5


@dataclass(frozen=True)
class RecommendationParams:
    """Seeds and tunable constraints for a recommendations import.

    Seeds are source IDs (artists, tracks) or genre names. Constraints left
    at None are not sent at all.
    """

    seed_artists: tuple[str, ...] = ()
    seed_tracks: tuple[str, ...] = ()
    seed_genres: tuple[str, ...] = ()
    limit: int | None = 20
    market: str | None = None
    min_tempo: float | None = None
    max_tempo: float | None = None
    target_tempo: float | None = None
    min_energy: float | None = None
    max_energy: float | None = None
    target_energy: float | None = None
    min_popularity: int | None = None
    max_popularity: int | None = None
    target_key: int | None = None  # pitch class 0-11
    target_mode: int | None = None  # 0 minor, 1 major

    @property
    def seed_count(self) -> int:
        return len(self.seed_artists) + len(self.seed_tracks) + len(self.seed_genres)

    @property
    def search_context(self) -> str:
        """Context string handed to inference, e.g. 'recommendations:house,techno'."""
        return f"recommendations:{','.join(self.seed_genres)}"

    def to_query_params(self) -> dict[str, str]:
        """Render as query parameters. Empty seed lists and None constraints are omitted."""
        params: dict[str, str] = {}
        for name in ("seed_artists", "seed_tracks", "seed_genres"):
            seeds = getattr(self, name)
            if seeds:
                params[name] = ",".join(seeds)
        for name in (
            "limit",
            "market",
            "min_tempo",
            "max_tempo",
            "target_tempo",
            "min_energy",
            "max_energy",
            "target_energy",
            "min_popularity",
            "max_popularity",
            "target_key",
            "target_mode",
        ):
            value = getattr(self, name)
            if value is not None:
                params[name] = str(value)
        return params


# Listen up, these two numbers are the ONLY mutable state of an importer. They live here as an
# explicit value owned by the importer (and handed to its request client) instead of loose
# attributes, so tests can build one, pass it in and inspect it afterwards.
@dataclass
class RequestCounters:
    """Request counter and last-request timestamp of one importer."""

    request_count: int = 0
    # time.monotonic() of the most recent outgoing request, 0.0 = never
    last_request_time: float = 0.0

    def record_request(self, timestamp: float) -> None:
        """Count one outgoing request attempt."""
        self.request_count += 1
        self.last_request_time = timestamp

    def reset(self) -> None:
        """Zero the counter. The timestamp stays, the rate governor still needs it."""
        self.request_count = 0


@dataclass
class ImportResult:
    """Aggregated outcome of one import operation.

    Rejections and duplicates are warnings and count toward neither
    tracks_imported nor tracks_failed. Only genuine per-record failures
    end up in errors and flip success to False.
    """

    tracks_imported: int = 0
    tracks_failed: int = 0
    errors: list[str] = field(default_factory=list)
    warnings: list[str] = field(default_factory=list)
    imported_track_ids: list[str] = field(default_factory=list)

    @property
    def success(self) -> bool:
        """True if and only if no errors were recorded."""
        return not self.errors

    def add_imported(self, track_id: str) -> None:
        self.tracks_imported += 1
        self.imported_track_ids.append(track_id)

    def add_failure(self, message: str) -> None:
        self.tracks_failed += 1
        self.errors.append(message)

    def add_warning(self, message: str) -> None:
        self.warnings.append(message)

    def merge(self, other: "ImportResult") -> "ImportResult":
        """Combine two results, keeping the order of both."""
        return ImportResult(
            tracks_imported=self.tracks_imported + other.tracks_imported,
            tracks_failed=self.tracks_failed + other.tracks_failed,
            errors=self.errors + other.errors,
            warnings=self.warnings + other.warnings,
            imported_track_ids=self.imported_track_ids + other.imported_track_ids,
        )

    def to_dict(self) -> dict[str, Any]:
        """Render the result in its external (camelCase) shape."""
        return {
            "success": self.success,
            "tracksImported": self.tracks_imported,
            "tracksFailed": self.tracks_failed,
            "errors": list(self.errors),
            "warnings": list(self.warnings),
            "importedTrackIds": list(self.imported_track_ids),
        }


__all__ = [
    "MAX_RECOMMENDATION_SEEDS",
    "REQUIRED_TRACK_FIELDS",
    "ApiConfig",
    "ExternalTrack",
    "ImportResult",
    "RateLimitConfig",
    "RecommendationParams",
    "RequestCounters",
    "Track",
    "has_required_fields",
    "make_track_id",
]
