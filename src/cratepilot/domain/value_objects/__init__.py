"""Domain value objects."""

from cratepilot.domain.value_objects.camelot import (
    CAMELOT_KEYS,
    camelot_to_spotify_key,
    compatible_keys,
    is_camelot_key,
    is_valid_spotify_key,
    spotify_key_to_camelot,
    spotify_key_to_standard,
)

__all__ = [
    "CAMELOT_KEYS",
    "camelot_to_spotify_key",
    "compatible_keys",
    "is_camelot_key",
    "is_valid_spotify_key",
    "spotify_key_to_camelot",
    "spotify_key_to_standard",
]
