"""
Manga Vault

Scrapes series and episode data from theme-based manga sites, caches
cover and page images locally, and keeps everything in a SQLite store.
"""

__version__ = "1.0.0"
