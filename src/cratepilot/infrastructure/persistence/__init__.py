"""Infrastructure persistence layer."""

from .database import Database
from .models import Base, TrackModel
from .repositories import TrackRepository

__all__ = [
    "Base",
    "Database",
    "TrackModel",
    "TrackRepository",
]
