"""
Madara WordPress theme extractor.
"""

import logging

from ..database.models import EpisodeRecord, SeriesRecord
from .base import SeriesReference, ThemeExtractor, parse_ordinal

logger = logging.getLogger(__name__)

# Lazy-load plugins keep the real URL in one of these
IMAGE_ATTRS = ("data-wpfc-original-src", "data-lazy-src", "data-src", "src")


class MadaraExtractor(ThemeExtractor):
    """Extractor for Madara sites. Reader pages render plain <img> tags."""

    THEME = "madara"
    CATEGORY_SELECTORS = (".genres-content a", ".mgen a")

    async def list_full(self, page: int, order_hint: str = "") -> list[SeriesReference]:
        url = f"{self.domain}/manga?page={page}&order={order_hint}"
        soup = await self._fetch_soup(url)

        links = soup.select(".listupd a")
        if not links:
            links = soup.select(".manga .item-thumb a")

        references = self._collect_references(links)
        logger.info(f"Found {len(references)} series on page {page} of {self.source.name}")
        return references

    async def fetch_series_detail(self, url: str) -> SeriesRecord:
        soup = await self._fetch_soup(url)
        series_id = self.series_id_from_url(url)

        episodes: list[EpisodeRecord] = []
        for link in soup.select(".wp-manga-chapter a"):
            name = link.get_text(" ", strip=True)
            episode = self._build_episode(series_id, name, self._absolute(link.get("href")), parse_ordinal(name))
            if episode:
                episodes.append(episode)
        episodes.reverse()

        cover = (
            self._attr(soup, ".summary_image img", "data-src", "src")
            or self._attr(soup, ".thumb img", "data-src", "src")
        )

        return SeriesRecord(
            id=series_id,
            source_id=self.source.id,
            name=self._text(soup, ".post-title h1", "h1.entry-title"),
            url=url,
            description=self._text(soup, ".description-summary p", ".summary__content", ".entry-content"),
            cover=self._absolute(cover),
            categories=self._categories(soup),
            episodes=episodes,
        )

    async def fetch_episode_images(self, episode_url: str) -> list[str]:
        soup = await self._fetch_soup(episode_url)

        images: list[str] = []
        for img in soup.select(".reading-content img"):
            for attr in IMAGE_ATTRS:
                value = (img.get(attr) or "").strip()
                if value:
                    images.append(self._absolute(value))
                    break

        if not images:
            logger.warning(f"No images found for episode: {episode_url}")
        return images
