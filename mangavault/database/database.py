"""
Database facade - the persistence gateway used by the scraping core.

Delegates to specialized repositories internally.
"""

from pathlib import Path

from .connection import DatabaseConnection
from .episode_repository import EpisodeRepository
from .models import EpisodeRecord, SeriesRecord, Source
from .series_repository import SeriesRepository
from .source_repository import SourceRepository


class Database:
    """Unified database access facade."""

    def __init__(self, db_path: Path):
        self._connection = DatabaseConnection(db_path)

        # Initialize repositories
        self.sources = SourceRepository(self._connection)
        self.series = SeriesRepository(self._connection)
        self.episodes = EpisodeRepository(self._connection)

    # ─────────────────────────────────────────────────────────────
    # Source operations (delegated to SourceRepository)
    # ─────────────────────────────────────────────────────────────

    def add_source(self, source: Source) -> bool:
        return self.sources.add(source)

    def get_source(self, source_id: str) -> Source | None:
        return self.sources.get(source_id)

    def get_sources(self) -> list[Source]:
        return self.sources.get_all()

    def get_active_sources(self) -> list[Source]:
        return self.sources.get_active()

    def set_source_active(self, source_id: str, is_active: bool):
        return self.sources.set_active(source_id, is_active)

    def update_source_interval(self, source_id: str, minutes: int):
        return self.sources.update_interval(source_id, minutes)

    def delete_source(self, source_id: str):
        return self.sources.delete(source_id)

    # ─────────────────────────────────────────────────────────────
    # Series operations (delegated to SeriesRepository)
    # ─────────────────────────────────────────────────────────────

    def upsert_series(self, series: SeriesRecord) -> bool:
        return self.series.upsert(series)

    def get_series(self, series_id: str) -> SeriesRecord | None:
        return self.series.get(series_id)

    def get_series_for_source(self, source_id: str) -> list[SeriesRecord]:
        return self.series.get_for_source(source_id)

    def count_series(self, source_id: str | None = None) -> int:
        return self.series.count(source_id)

    # ─────────────────────────────────────────────────────────────
    # Episode operations (delegated to EpisodeRepository)
    # ─────────────────────────────────────────────────────────────

    def upsert_episode(self, episode: EpisodeRecord) -> bool:
        return self.episodes.upsert(episode)

    def get_episode(self, episode_id: str) -> EpisodeRecord | None:
        return self.episodes.get(episode_id)

    def get_episodes_for_series(self, series_id: str) -> list[EpisodeRecord]:
        return self.episodes.get_for_series(series_id)

    def count_episodes(self, series_id: str | None = None) -> int:
        return self.episodes.count(series_id)
