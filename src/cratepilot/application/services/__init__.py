"""Application services."""

from cratepilot.application.services.track_importer import (
    TrackImporter,
    import_from_spotify,
)

__all__ = ["TrackImporter", "import_from_spotify"]
