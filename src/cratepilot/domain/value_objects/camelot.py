"""Camelot key notation and Spotify key conversion.

Hey future me - DJs mix harmonically on the Camelot wheel, so every canonical track
stores its key as Camelot notation: a number 1..12 plus a letter (A = minor, B = major).

Spotify reports keys as two integers:
- key: pitch class 0..11 (0=C, 1=C#/Db, 2=D, ... 11=B), -1 when no key was detected
- mode: 0 = minor, 1 = major

Usage:
    from cratepilot.domain.value_objects.camelot import spotify_key_to_camelot

    spotify_key_to_camelot(0, 1)   # "8B" (C major)
    spotify_key_to_camelot(9, 0)   # "8A" (A minor)
    spotify_key_to_camelot(-1, 0)  # None (no key detected)
"""

import re

CAMELOT_KEYS: tuple[str, ...] = tuple(
    f"{number}{letter}" for number in range(1, 13) for letter in ("A", "B")
)

PITCH_CLASSES: tuple[str, ...] = (
    "C", "C#", "D", "D#", "E", "F", "F#", "G", "G#", "A", "A#", "B",
)

# (pitch_class, mode) -> Camelot
SPOTIFY_KEY_TO_CAMELOT: dict[tuple[int, int], str] = {
    # Minor keys (mode 0, A side of the wheel)
    (0, 0): "5A",
    (1, 0): "12A",
    (2, 0): "7A",
    (3, 0): "2A",
    (4, 0): "9A",
    (5, 0): "4A",
    (6, 0): "11A",
    (7, 0): "6A",
    (8, 0): "1A",
    (9, 0): "8A",
    (10, 0): "3A",
    (11, 0): "10A",
    # Major keys (mode 1, B side of the wheel)
    (0, 1): "8B",
    (1, 1): "3B",
    (2, 1): "10B",
    (3, 1): "5B",
    (4, 1): "12B",
    (5, 1): "7B",
    (6, 1): "2B",
    (7, 1): "9B",
    (8, 1): "4B",
    (9, 1): "11B",
    (10, 1): "6B",
    (11, 1): "1B",
}

_CAMELOT_PATTERN = re.compile(r"^(1[0-2]|[1-9])([AB])$")


def is_camelot_key(value: object) -> bool:
    """Check whether value is a valid Camelot key like '8A' or '12B'."""
    return isinstance(value, str) and _CAMELOT_PATTERN.match(value) is not None


def is_valid_spotify_key(key: int, mode: int) -> bool:
    """Check Spotify key/mode values are in range."""
    return 0 <= key <= 11 and mode in (0, 1)


def spotify_key_to_camelot(key: int, mode: int) -> str | None:
    """Convert Spotify key and mode to Camelot notation.

    Args:
        key: Spotify pitch class (0-11, or -1 for no key detected)
        mode: Spotify mode (0=minor, 1=major)

    Returns:
        Camelot key or None if the input is out of range
    """
    if not is_valid_spotify_key(key, mode):
        return None
    return SPOTIFY_KEY_TO_CAMELOT.get((key, mode))


def camelot_to_spotify_key(camelot_key: str) -> tuple[int, int] | None:
    """Reverse lookup: Camelot key to (pitch_class, mode), or None if invalid."""
    for spotify_key, camelot in SPOTIFY_KEY_TO_CAMELOT.items():
        if camelot == camelot_key:
            return spotify_key
    return None


def spotify_key_to_standard(key: int, mode: int) -> str | None:
    """Standard notation for a Spotify key, e.g. 'C major' or 'A minor'."""
    if not 0 <= key <= 11:
        return None
    mode_name = "major" if mode == 1 else "minor"
    return f"{PITCH_CLASSES[key]} {mode_name}"


# Yo, compatible keys for harmonic mixing are: the same key, one step either way around the wheel
# (same letter), and the relative major/minor (same number, other letter). 12 wraps to 1 and back.
def compatible_keys(camelot_key: str) -> list[str]:
    """Get keys that mix harmonically with the given Camelot key.

    Returns:
        [same, next, previous, relative] or [] for an invalid key
    """
    match = _CAMELOT_PATTERN.match(camelot_key) if isinstance(camelot_key, str) else None
    if match is None:
        return []

    number = int(match.group(1))
    letter = match.group(2)
    next_number = 1 if number == 12 else number + 1
    prev_number = 12 if number == 1 else number - 1
    other_letter = "B" if letter == "A" else "A"

    return [
        camelot_key,
        f"{next_number}{letter}",
        f"{prev_number}{letter}",
        f"{number}{other_letter}",
    ]
