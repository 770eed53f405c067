"""
Uzay theme extractor (Next.js based readers).
"""

import logging

from ..config import config
from ..database.models import EpisodeRecord, SeriesRecord
from .base import SeriesReference, ThemeExtractor, extract_json_array, parse_ordinal, path_segments, script_text

logger = logging.getLogger(__name__)

ITEMS_MARKER = "series_items"


class UzayExtractor(ThemeExtractor):
    """
    Extractor for Uzay sites.

    Reader pages are rendered client side; the page list lives in a
    series_items array inside the hydration script, with quotes escaped
    and paths relative to the CDN.
    """

    THEME = "uzay"
    CATEGORY_SELECTORS = (".content-info a[href*='genre']", "a[href*='/genre']")

    def __init__(self, *args, cdn_base: str | None = None, **kwargs):
        super().__init__(*args, **kwargs)
        self.cdn_base = cdn_base or config.UZAY_CDN_BASE

    async def list_recent(self, page: int) -> list[SeriesReference]:
        # The home page is already sorted by latest update
        return await self.list_full(page)

    async def list_full(self, page: int, order_hint: str = "") -> list[SeriesReference]:
        url = f"{self.domain}/?page={page}"
        soup = await self._fetch_soup(url)

        references = self._collect_references(
            soup.select(".grid.overflow-hidden:not(.justify-center) > div > a")
        )
        logger.info(f"Found {len(references)} series on page {page} of {self.source.name}")
        return references

    def series_id_from_url(self, url: str) -> str:
        """Series URLs look like /manga/<id>/<slug>; the id follows /manga/."""
        segments = path_segments(url)
        if "manga" in segments:
            position = segments.index("manga")
            if position + 1 < len(segments):
                return segments[position + 1]
        return super().series_id_from_url(url)

    async def fetch_series_detail(self, url: str) -> SeriesRecord:
        soup = await self._fetch_soup(url)
        series_id = self.series_id_from_url(url)

        episodes: list[EpisodeRecord] = []
        for link in soup.select(".list-episode a"):
            name = self._text(link, ".chapternum b") or link.get_text(" ", strip=True)
            episode = self._build_episode(series_id, name, self._absolute(link.get("href")), parse_ordinal(name))
            if episode:
                episodes.append(episode)
        episodes.reverse()

        return SeriesRecord(
            id=series_id,
            source_id=self.source.id,
            name=self._text(soup, "h1"),
            url=url,
            description=self._text(soup, ".summary p", ".summary"),
            cover=self._absolute(self._attr(soup, ".content-info img", "src", "data-src")),
            categories=self._categories(soup),
            episodes=episodes,
        )

    async def fetch_episode_images(self, episode_url: str) -> list[str]:
        soup = await self._fetch_soup(episode_url)

        script = next(
            (text for text in map(script_text, soup.find_all("script")) if ITEMS_MARKER in text),
            None,
        )
        if not script:
            logger.warning(f"No {ITEMS_MARKER} script found for: {episode_url}")
            return []

        items = extract_json_array(script.replace('\\"', '"'), ITEMS_MARKER)
        if len(items) < 2:
            logger.warning(f"Insufficient images found for: {episode_url}")
            return []

        images = [url for url in (self._image_url(item) for item in items) if url]
        logger.info(f"Found {len(images)} images for episode {episode_url}")
        return images

    def _image_url(self, item) -> str:
        if isinstance(item, str):
            return item
        if isinstance(item, dict):
            path = item.get("path") or ""
            if path.startswith(("http://", "https://")):
                return path
            if path:
                return self.cdn_base.rstrip("/") + "/" + path.lstrip("/")
        return ""
