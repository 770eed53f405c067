"""
Series repository - idempotent upserts keyed by the derived series id.
"""

import json
from datetime import datetime

from .connection import DatabaseConnection
from .converters import row_to_series, to_timestamp
from .models import SeriesRecord


class SeriesRepository:
    """Repository for series operations."""

    def __init__(self, db: DatabaseConnection):
        self._db = db

    def upsert(self, series: SeriesRecord) -> bool:
        """
        Insert or update a series. Returns True if the row is new.

        A previously stored local cover is kept when this run produced none.
        """
        with self._db.conn() as conn:
            exists = conn.execute(
                "SELECT 1 FROM series WHERE id = ?", (series.id,)
            ).fetchone() is not None

            conn.execute(
                """INSERT INTO series
                   (id, source_id, name, description, url, cover, local_cover_path,
                    cover_file_size, cover_processed_at, categories, last_updated)
                   VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
                   ON CONFLICT(id) DO UPDATE SET
                       name = excluded.name,
                       description = excluded.description,
                       url = excluded.url,
                       cover = excluded.cover,
                       local_cover_path = COALESCE(excluded.local_cover_path, series.local_cover_path),
                       cover_file_size = COALESCE(excluded.cover_file_size, series.cover_file_size),
                       cover_processed_at = COALESCE(excluded.cover_processed_at, series.cover_processed_at),
                       categories = excluded.categories,
                       last_updated = excluded.last_updated""",
                (
                    series.id,
                    series.source_id,
                    series.name,
                    series.description,
                    series.url,
                    series.cover,
                    series.local_cover_path,
                    series.cover_file_size,
                    to_timestamp(series.cover_processed_at),
                    json.dumps(series.categories),
                    to_timestamp(series.last_updated or datetime.now()),
                )
            )
            return not exists

    def get(self, series_id: str) -> SeriesRecord | None:
        with self._db.conn() as conn:
            row = conn.execute("SELECT * FROM series WHERE id = ?", (series_id,)).fetchone()
            return row_to_series(row) if row else None

    def get_for_source(self, source_id: str) -> list[SeriesRecord]:
        with self._db.conn() as conn:
            rows = conn.execute(
                "SELECT * FROM series WHERE source_id = ? ORDER BY last_updated DESC",
                (source_id,)
            ).fetchall()
            return [row_to_series(r) for r in rows]

    def count(self, source_id: str | None = None) -> int:
        with self._db.conn() as conn:
            if source_id:
                row = conn.execute(
                    "SELECT COUNT(*) FROM series WHERE source_id = ?", (source_id,)
                ).fetchone()
            else:
                row = conn.execute("SELECT COUNT(*) FROM series").fetchone()
            return row[0]
