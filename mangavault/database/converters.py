"""
Database row converters - convert SQLite rows to dataclasses.
"""

import json
import sqlite3
from datetime import datetime
from typing import Any

from .models import EpisodeRecord, ProxyEndpoint, SeriesRecord, Source


def _parse_datetime(value: str | None) -> datetime | None:
    if not value:
        return None
    try:
        return datetime.fromisoformat(value)
    except ValueError:
        return None


def _load_json(value: str | None, default: Any) -> Any:
    if not value:
        return default
    try:
        return json.loads(value)
    except json.JSONDecodeError:
        return default


def to_timestamp(value: datetime | None) -> str | None:
    return value.isoformat() if value else None


def proxy_to_json(proxy: ProxyEndpoint | None) -> str | None:
    if proxy is None:
        return None
    return json.dumps({
        "host": proxy.host,
        "port": proxy.port,
        "username": proxy.username,
        "password": proxy.password,
        "label": proxy.label,
    })


def row_to_source(row: sqlite3.Row) -> Source:
    """Convert a database row to a Source."""
    proxy = None
    proxy_config = _load_json(row["proxy_config"], None)
    if isinstance(proxy_config, dict) and proxy_config.get("host"):
        proxy = ProxyEndpoint(
            host=proxy_config["host"],
            port=int(proxy_config.get("port") or 0),
            username=proxy_config.get("username"),
            password=proxy_config.get("password"),
            label=proxy_config.get("label") or f"{row['name']} proxy",
        )

    filters = _load_json(row["category_filters"], {})
    if not isinstance(filters, dict):
        filters = {}

    return Source(
        id=row["id"],
        name=row["name"],
        domain=row["domain"],
        theme=row["theme"],
        is_active=bool(row["is_active"]),
        scan_interval=row["scan_interval"] or 60,
        proxy=proxy,
        blacklist=list(filters.get("blacklist") or []),
        ignore=list(filters.get("ignore") or []),
        created_at=_parse_datetime(row["created_at"]),
        updated_at=_parse_datetime(row["updated_at"]),
    )


def row_to_series(row: sqlite3.Row) -> SeriesRecord:
    """Convert a database row to a SeriesRecord (episodes not loaded)."""
    return SeriesRecord(
        id=row["id"],
        source_id=row["source_id"],
        name=row["name"],
        url=row["url"],
        description=row["description"] or "",
        cover=row["cover"] or "",
        local_cover_path=row["local_cover_path"],
        cover_file_size=row["cover_file_size"],
        cover_processed_at=_parse_datetime(row["cover_processed_at"]),
        categories=_load_json(row["categories"], []),
        last_updated=_parse_datetime(row["last_updated"]) or datetime.now(),
    )


def row_to_episode(row: sqlite3.Row) -> EpisodeRecord:
    """Convert a database row to an EpisodeRecord."""
    return EpisodeRecord(
        id=row["id"],
        series_id=row["series_id"],
        name=row["name"],
        number=float(row["number"]),
        url=row["url"],
        images=_load_json(row["images"], []),
        local_images=_load_json(row["local_images_path"], []),
        image_sizes=_load_json(row["images_file_sizes"], {}),
        images_processed_at=_parse_datetime(row["images_processed_at"]),
        published_at=_parse_datetime(row["published_at"]) or datetime.now(),
    )
