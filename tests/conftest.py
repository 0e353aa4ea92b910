"""Shared fixtures: per-test SQLite store and a fake Spotify Web API.

The doubles themselves live in helpers.py so test modules can import them directly.
"""

from collections.abc import AsyncGenerator
from pathlib import Path

import pytest
from helpers import FakeSpotifyApi, SleepRecorder

from cratepilot.config import DatabaseSettings, Settings, SpotifySettings
from cratepilot.infrastructure.persistence.database import Database


@pytest.fixture
def sleep_recorder() -> SleepRecorder:
    return SleepRecorder()


@pytest.fixture
def fake_spotify() -> FakeSpotifyApi:
    return FakeSpotifyApi()


@pytest.fixture
def spotify_settings() -> SpotifySettings:
    """Spotify settings with dummy credentials."""
    return SpotifySettings(client_id="test-client-id", client_secret="test-client-secret")


@pytest.fixture
def settings(tmp_path: Path, spotify_settings: SpotifySettings) -> Settings:
    """Settings pointing at a throwaway SQLite file."""
    return Settings(
        app_env="test",
        database=DatabaseSettings(url=f"sqlite+aiosqlite:///{tmp_path / 'test.db'}"),
        spotify=spotify_settings,
    )


@pytest.fixture
async def database(settings: Settings) -> AsyncGenerator[Database, None]:
    """Database with all tables created, disposed after the test."""
    db = Database(settings)
    await db.create_tables()
    yield db
    await db.close()
