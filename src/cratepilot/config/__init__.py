"""Configuration module for CratePilot."""

from .settings import DatabaseSettings, Settings, SpotifySettings, get_settings

__all__ = ["DatabaseSettings", "Settings", "SpotifySettings", "get_settings"]
