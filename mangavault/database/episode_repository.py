"""
Episode repository - idempotent upserts keyed by the derived episode id.
"""

import json

from .connection import DatabaseConnection
from .converters import row_to_episode, to_timestamp
from .models import EpisodeRecord


class EpisodeRepository:
    """Repository for episode operations."""

    def __init__(self, db: DatabaseConnection):
        self._db = db

    def upsert(self, episode: EpisodeRecord) -> bool:
        """
        Insert or update an episode. Returns True if the row is new.

        Episodes with a negative ordinal are rejected.
        """
        if episode.number < 0:
            raise ValueError(f"Episode {episode.id} has negative number {episode.number}")

        with self._db.conn() as conn:
            exists = conn.execute(
                "SELECT 1 FROM episodes WHERE id = ?", (episode.id,)
            ).fetchone() is not None

            # Keep previously stored local images if this run stored none
            conn.execute(
                """INSERT INTO episodes
                   (id, series_id, name, number, url, images, local_images_path,
                    images_file_sizes, images_processed_at, published_at)
                   VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
                   ON CONFLICT(id) DO UPDATE SET
                       name = excluded.name,
                       number = excluded.number,
                       url = excluded.url,
                       images = CASE WHEN excluded.images = '[]'
                                     THEN episodes.images ELSE excluded.images END,
                       local_images_path = CASE WHEN excluded.local_images_path = '[]'
                                     THEN episodes.local_images_path
                                     ELSE excluded.local_images_path END,
                       images_file_sizes = CASE WHEN excluded.local_images_path = '[]'
                                     THEN episodes.images_file_sizes
                                     ELSE excluded.images_file_sizes END,
                       images_processed_at = COALESCE(excluded.images_processed_at,
                                                      episodes.images_processed_at)""",
                (
                    episode.id,
                    episode.series_id,
                    episode.name,
                    episode.number,
                    episode.url,
                    json.dumps(episode.images),
                    json.dumps(episode.local_images),
                    json.dumps(episode.image_sizes),
                    to_timestamp(episode.images_processed_at),
                    to_timestamp(episode.published_at),
                )
            )
            return not exists

    def get(self, episode_id: str) -> EpisodeRecord | None:
        with self._db.conn() as conn:
            row = conn.execute("SELECT * FROM episodes WHERE id = ?", (episode_id,)).fetchone()
            return row_to_episode(row) if row else None

    def get_for_series(self, series_id: str) -> list[EpisodeRecord]:
        with self._db.conn() as conn:
            rows = conn.execute(
                "SELECT * FROM episodes WHERE series_id = ? ORDER BY number",
                (series_id,)
            ).fetchall()
            return [row_to_episode(r) for r in rows]

    def count(self, series_id: str | None = None) -> int:
        with self._db.conn() as conn:
            if series_id:
                row = conn.execute(
                    "SELECT COUNT(*) FROM episodes WHERE series_id = ?", (series_id,)
                ).fetchone()
            else:
                row = conn.execute("SELECT COUNT(*) FROM episodes").fetchone()
            return row[0]
