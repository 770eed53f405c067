"""
Database connection management and schema initialization.
"""

import sqlite3
from contextlib import contextmanager
from pathlib import Path
from typing import Iterator


class DatabaseConnection:
    """Manages database connection and schema."""

    def __init__(self, db_path: Path):
        self.db_path = db_path
        self.db_path.parent.mkdir(parents=True, exist_ok=True)
        self._init_schema()

    @contextmanager
    def conn(self) -> Iterator[sqlite3.Connection]:
        """Get database connection with row factory."""
        connection = sqlite3.connect(self.db_path)
        connection.row_factory = sqlite3.Row
        connection.execute("PRAGMA foreign_keys = ON")
        try:
            yield connection
            connection.commit()
        finally:
            connection.close()

    def _init_schema(self):
        """Initialize database schema."""
        with self.conn() as connection:
            connection.executescript("""
                CREATE TABLE IF NOT EXISTS sources (
                    id TEXT PRIMARY KEY,
                    name TEXT NOT NULL,
                    domain TEXT NOT NULL,
                    theme TEXT NOT NULL,
                    is_active BOOLEAN DEFAULT TRUE,
                    scan_interval INTEGER DEFAULT 60,
                    proxy_config TEXT,
                    category_filters TEXT DEFAULT '{}',
                    created_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP,
                    updated_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP
                );

                CREATE TABLE IF NOT EXISTS series (
                    id TEXT PRIMARY KEY,
                    source_id TEXT REFERENCES sources(id) ON DELETE CASCADE,
                    name TEXT NOT NULL,
                    description TEXT,
                    url TEXT NOT NULL,
                    cover TEXT,
                    local_cover_path TEXT,
                    cover_file_size INTEGER,
                    cover_processed_at TIMESTAMP,
                    categories TEXT DEFAULT '[]',
                    last_updated TIMESTAMP,
                    created_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP
                );

                CREATE TABLE IF NOT EXISTS episodes (
                    id TEXT PRIMARY KEY,
                    series_id TEXT NOT NULL REFERENCES series(id) ON DELETE CASCADE,
                    name TEXT NOT NULL,
                    number REAL NOT NULL CHECK (number >= 0),
                    url TEXT NOT NULL,
                    images TEXT DEFAULT '[]',
                    local_images_path TEXT DEFAULT '[]',
                    images_file_sizes TEXT DEFAULT '{}',
                    images_processed_at TIMESTAMP,
                    published_at TIMESTAMP,
                    created_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP
                );

                CREATE INDEX IF NOT EXISTS idx_sources_active ON sources(is_active);
                CREATE INDEX IF NOT EXISTS idx_series_source ON series(source_id);
                CREATE INDEX IF NOT EXISTS idx_episodes_series ON episodes(series_id, number);
            """)
