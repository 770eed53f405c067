"""
Themesia (MangaReader WordPress theme) extractor.
"""

import base64
import binascii
import logging

from bs4 import BeautifulSoup

from ..database.models import EpisodeRecord, SeriesRecord
from .base import SeriesReference, ThemeExtractor, extract_json_array, parse_ordinal, script_text

logger = logging.getLogger(__name__)

READER_MARKER = "ts_reader.run"


class ThemesiaExtractor(ThemeExtractor):
    """Extractor for Themesia sites. Reader pages embed their image list in a ts_reader.run() call."""

    THEME = "themesia"
    CATEGORY_SELECTORS = (".mgen a", ".seriestugenre a", ".genxed a")

    # Sites that renamed the series index
    LIST_PATHS = {"mangakazani": "/seriler"}

    def _list_path(self) -> str:
        for marker, path in self.LIST_PATHS.items():
            if marker in self.domain:
                return path
        return "/manga"

    async def list_full(self, page: int, order_hint: str = "") -> list[SeriesReference]:
        url = f"{self.domain}{self._list_path()}/?page={page}&order={order_hint}"
        soup = await self._fetch_soup(url)

        references = self._collect_references(soup.select(".bsx a"))
        logger.info(f"Found {len(references)} series on page {page} of {self.source.name}")
        return references

    async def fetch_series_detail(self, url: str) -> SeriesRecord:
        soup = await self._fetch_soup(url)
        series_id = self.series_id_from_url(url)

        episodes: list[EpisodeRecord] = []
        for item in soup.select("#chapterlist [data-num]"):
            link = item.select_one("a[href]")
            episode_url = self._absolute(link.get("href")) if link else ""
            name = self._text(item, ".chapternum") or (link.get_text(" ", strip=True) if link else "")
            episode = self._build_episode(series_id, name, episode_url, parse_ordinal(item.get("data-num", "")))
            if episode:
                episodes.append(episode)

        # Chapter lists are newest first
        episodes.reverse()

        return SeriesRecord(
            id=series_id,
            source_id=self.source.id,
            name=self._text(soup, "h1.entry-title", "h1"),
            url=url,
            description=self._text(soup, '[itemprop="description"] p', '[itemprop="description"]'),
            cover=self._absolute(self._attr(soup, ".thumb img", "data-src", "src")),
            categories=self._categories(soup),
            episodes=episodes,
        )

    async def fetch_episode_images(self, episode_url: str) -> list[str]:
        soup = await self._fetch_soup(episode_url)

        script = self._find_reader_script(soup)
        if not script:
            logger.warning(f"No images found for episode: {episode_url}")
            return []

        payload = script[script.index(READER_MARKER):]
        images = [img for img in extract_json_array(payload, "images") if isinstance(img, str) and img]
        logger.info(f"Found {len(images)} images for episode {episode_url}")
        return images

    @staticmethod
    def _find_reader_script(soup: BeautifulSoup) -> str | None:
        """Inline reader script, or one hidden in a base64 data: URI."""
        for script in soup.select("script:not([src])"):
            text = script_text(script)
            if text and READER_MARKER in text:
                return text

        for script in soup.select("script[src]"):
            src = script.get("src", "")
            if "base64," not in src:
                continue
            try:
                decoded = base64.b64decode(src.split("base64,", 1)[1]).decode("utf-8", "replace")
            except (binascii.Error, ValueError):
                continue
            if READER_MARKER in decoded:
                return decoded
        return None
