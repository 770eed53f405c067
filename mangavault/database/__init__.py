"""
Database module - SQLite persistence for sources, series and episodes.

Uses repository pattern for better separation of concerns.
"""

from .connection import DatabaseConnection
from .models import THEMES, EpisodeRecord, ProxyEndpoint, SeriesRecord, Source
from .source_repository import SourceRepository
from .series_repository import SeriesRepository
from .episode_repository import EpisodeRepository
from .database import Database

__all__ = [
    "Database",
    "DatabaseConnection",
    "THEMES",
    "EpisodeRecord",
    "ProxyEndpoint",
    "SeriesRecord",
    "Source",
    "SourceRepository",
    "SeriesRepository",
    "EpisodeRepository",
]
