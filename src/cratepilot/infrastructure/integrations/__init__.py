"""External integration client implementations."""

from cratepilot.infrastructure.integrations.api_client import SourceApiClient
from cratepilot.infrastructure.integrations.spotify_source import SpotifyTrackSource

__all__ = [
    "SourceApiClient",
    "SpotifyTrackSource",
]
