"""SQLAlchemy ORM models for CratePilot."""

from datetime import UTC, datetime

from sqlalchemy import Float, Integer, String
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column


# Hey future me, utc_now() ensures ALL timestamps are UTC! Never use datetime.now() without
# timezone - that's "naive" datetime and causes bugs when servers are in different timezones.
def utc_now() -> datetime:
    """Get current UTC time."""
    return datetime.now(UTC)


# Hey future me - SQLite doesn't preserve timezone info! When we store UTC datetimes, they come
# back as "naive" (no tzinfo). This attaches UTC again so comparisons with aware datetimes work.
def ensure_utc_aware(dt: datetime) -> datetime:
    """Ensure datetime is UTC-aware, assuming naive datetimes are UTC."""
    if dt.tzinfo is None:
        return dt.replace(tzinfo=UTC)
    return dt


class Base(DeclarativeBase):
    """Base class for all ORM models."""

    pass


# Listen up, the primary key IS the canonical track id ("spotify-<id>"), not a UUID. That's what
# makes the store an "insert if absent" store: two importers racing on the same external id can
# both pass exists(), but only one INSERT survives - the other gets an IntegrityError, which the
# repository turns into DuplicateEntityException. Don't switch this to a surrogate key!
class TrackModel(Base):
    """SQLAlchemy model for canonical Track records."""

    __tablename__ = "tracks"

    id: Mapped[str] = mapped_column(String(255), primary_key=True)
    artist: Mapped[str] = mapped_column(String(512), nullable=False, index=True)
    title: Mapped[str] = mapped_column(String(512), nullable=False, index=True)
    # 'spotify', ... - the prefix of id, stored separately for filtering
    source: Mapped[str] = mapped_column(String(20), nullable=False, index=True)
    genre: Mapped[str | None] = mapped_column(String(100), nullable=True, index=True)
    duration_sec: Mapped[int] = mapped_column(Integer, nullable=False)
    bpm: Mapped[float] = mapped_column(Float, nullable=False, index=True)
    # Camelot notation, "1A".."12B"
    key: Mapped[str] = mapped_column(String(3), nullable=False, index=True)
    energy: Mapped[int | None] = mapped_column(Integer, nullable=True)
    album: Mapped[str | None] = mapped_column(String(512), nullable=True)
    year: Mapped[int | None] = mapped_column(Integer, nullable=True)
    label: Mapped[str | None] = mapped_column(String(255), nullable=True)
    registered_at: Mapped[datetime] = mapped_column(default=utc_now, nullable=False)

    def __repr__(self) -> str:
        return f"<TrackModel {self.id} {self.artist!r} - {self.title!r}>"
