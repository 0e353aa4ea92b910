"""CratePilot - import catalog tracks from music APIs into a DJ track store."""

__version__ = "0.1.0"
