"""
Built-in source catalogue.
"""

import logging
import re

from .config import config
from .database import Database
from .database.models import Source

logger = logging.getLogger(__name__)

THEMESIA_SOURCES = [
    ("Gölge Bahçesi", "https://golgebahcesi.com"),
    ("Adu Manga", "https://adumanga.com"),
    ("Manga Koleji", "https://mangakoleji.com"),
    ("Zenith Scans", "https://zenithscans.com"),
    ("Alucard Scans", "https://alucardscans.com"),
    ("Arcura Fansub", "https://arcurafansub.com"),
    ("Nirvana Manga", "https://nirvanamanga.com"),
    ("Ayatoon", "https://ayatoon.com"),
]

MADARA_SOURCES = [
    ("Hayalistic", "https://hayalistic.com.tr"),
    ("Sunset Manga", "https://www.sunsetmanga.com.tr"),
    ("Garcia Manga", "https://garciamanga.com"),
    ("Koreli Scans", "https://koreliscans.com"),
    ("Webtoon Hatti", "https://webtoonhatti.me"),
    ("Webtoon TR", "https://webtoontr.net"),
    ("Manga WT", "https://mangawt.com"),
    ("TR Manga Oku", "https://trmangaoku.com"),
    ("Ragnar Scans", "https://ragnarscans.com"),
]

UZAY_SOURCES = [
    ("Uzay Manga", "https://uzaymanga.com"),
    ("Elder Manga", "https://eldermanga.com"),
    ("Tenshi Manga", "https://tenshimanga.com"),
]

SEED_SOURCES: dict[str, list[tuple[str, str]]] = {
    "themesia": THEMESIA_SOURCES,
    "madara": MADARA_SOURCES,
    "uzay": UZAY_SOURCES,
}


def source_id_from_domain(domain: str) -> str:
    """'https://www.sunsetmanga.com.tr' -> 'www-sunsetmanga-com-tr'"""
    return re.sub(r"[^a-zA-Z0-9]", "-", re.sub(r"^https?://", "", domain))


def seed_sources(db: Database) -> int:
    """
    Insert the catalogue. Sources start inactive; existing ids are left untouched.

    Returns:
        Number of sources added
    """
    added = 0
    for theme, entries in SEED_SOURCES.items():
        for name, domain in entries:
            source = Source(
                id=source_id_from_domain(domain),
                name=name,
                domain=domain,
                theme=theme,
                is_active=False,
                scan_interval=config.DEFAULT_SCAN_INTERVAL,
            )
            if db.add_source(source):
                logger.info(f"Added {theme} source: {name}")
                added += 1
            else:
                logger.info(f"Source already exists: {name}")

    logger.info(f"Seeding completed: {added} sources added")
    return added
