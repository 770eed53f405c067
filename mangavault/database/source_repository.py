"""
Source repository - CRUD operations for scraping sources.
"""

import json
from datetime import datetime

from .connection import DatabaseConnection
from .converters import proxy_to_json, row_to_source
from .models import THEMES, Source


class SourceRepository:
    """Repository for source operations."""

    def __init__(self, db: DatabaseConnection):
        self._db = db

    def add(self, source: Source) -> bool:
        """
        Insert a source.

        Returns False if a source with the same id already exists; the
        stored row and its series are left untouched.
        """
        if source.theme not in THEMES:
            raise ValueError(f"Unknown theme: {source.theme}")

        filters = json.dumps({"blacklist": source.blacklist, "ignore": source.ignore})
        with self._db.conn() as conn:
            cursor = conn.execute(
                """INSERT OR IGNORE INTO sources
                    (id, name, domain, theme, is_active, scan_interval,
                     proxy_config, category_filters, updated_at)
                    VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?)""",
                (
                    source.id,
                    source.name,
                    source.domain.rstrip("/"),
                    source.theme,
                    source.is_active,
                    source.scan_interval,
                    proxy_to_json(source.proxy),
                    filters,
                    datetime.now().isoformat(),
                )
            )
            return cursor.rowcount > 0

    def get(self, source_id: str) -> Source | None:
        with self._db.conn() as conn:
            row = conn.execute("SELECT * FROM sources WHERE id = ?", (source_id,)).fetchone()
            return row_to_source(row) if row else None

    def get_all(self) -> list[Source]:
        with self._db.conn() as conn:
            rows = conn.execute("SELECT * FROM sources ORDER BY name").fetchall()
            return [row_to_source(r) for r in rows]

    def get_active(self) -> list[Source]:
        with self._db.conn() as conn:
            rows = conn.execute(
                "SELECT * FROM sources WHERE is_active = TRUE ORDER BY name"
            ).fetchall()
            return [row_to_source(r) for r in rows]

    def set_active(self, source_id: str, is_active: bool):
        with self._db.conn() as conn:
            conn.execute(
                "UPDATE sources SET is_active = ?, updated_at = ? WHERE id = ?",
                (is_active, datetime.now().isoformat(), source_id)
            )

    def update_interval(self, source_id: str, minutes: int):
        with self._db.conn() as conn:
            conn.execute(
                "UPDATE sources SET scan_interval = ?, updated_at = ? WHERE id = ?",
                (minutes, datetime.now().isoformat(), source_id)
            )

    def delete(self, source_id: str):
        with self._db.conn() as conn:
            conn.execute("DELETE FROM sources WHERE id = ?", (source_id,))
