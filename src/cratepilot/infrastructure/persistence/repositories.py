"""Repository implementations for domain entities."""

from __future__ import annotations

from sqlalchemy import func, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from cratepilot.domain.entities import Track
from cratepilot.domain.exceptions import DuplicateEntityException, EntityNotFoundException
from cratepilot.domain.ports import ITrackRepository

from .models import TrackModel, ensure_utc_aware


class TrackRepository(ITrackRepository):
    """SQLAlchemy implementation of Track repository."""

    def __init__(self, session: AsyncSession) -> None:
        """Initialize repository with session."""
        self.session = session

    async def exists(self, track_id: str) -> bool:
        """Check if a track with this ID is stored (primary key lookup)."""
        stmt = select(TrackModel.id).where(TrackModel.id == track_id)
        result = await self.session.execute(stmt)
        return result.scalar_one_or_none() is not None

    # Hey - we flush right away so a primary key collision blows up HERE, inside the caller's
    # try block, not later at commit time where nobody knows which track caused it.
    async def add(self, track: Track) -> None:
        """Insert a new track."""
        model = TrackModel(
            id=track.id,
            artist=track.artist,
            title=track.title,
            source=track.source,
            genre=track.genre,
            duration_sec=track.duration_sec,
            bpm=track.bpm,
            key=track.key,
            energy=track.energy,
            album=track.album,
            year=track.year,
            label=track.label,
            registered_at=track.registered_at,
        )
        self.session.add(model)
        try:
            await self.session.flush()
        except IntegrityError as e:
            await self.session.rollback()
            raise DuplicateEntityException("Track", track.id) from e

    async def get(self, track_id: str) -> Track | None:
        """Get a track by ID, None if missing."""
        model = await self.session.get(TrackModel, track_id)
        if model is None:
            return None
        return self._to_entity(model)

    async def get_by_id(self, track_id: str) -> Track:
        """Get a track by ID.

        Raises:
            EntityNotFoundException: If no track has this ID
        """
        track = await self.get(track_id)
        if track is None:
            raise EntityNotFoundException("Track", track_id)
        return track

    async def count(self) -> int:
        """Count all stored tracks."""
        stmt = select(func.count(TrackModel.id))
        result = await self.session.execute(stmt)
        return result.scalar() or 0

    @staticmethod
    def _to_entity(model: TrackModel) -> Track:
        return Track(
            id=model.id,
            artist=model.artist,
            title=model.title,
            duration_sec=model.duration_sec,
            bpm=model.bpm,
            key=model.key,
            source=model.source,
            genre=model.genre,
            energy=model.energy,
            album=model.album,
            year=model.year,
            label=model.label,
            registered_at=ensure_utc_aware(model.registered_at),
        )
