"""
Scraping Service - runs one job against a source's theme extractor.

Steps per series:
1. Fetch the detail page (metadata and episode index)
2. Apply the source's category filters
3. Store the cover and the images of every new episode
4. Upsert the series and its episodes

A series or episode that fails is logged and skipped; only a failure to
load the index page fails the job.
"""

import logging
from dataclasses import dataclass, field
from datetime import datetime

from ..browser import BrowserManager
from ..database import Database
from ..database.models import EpisodeRecord, SeriesRecord, Source
from ..exceptions import ConfigurationError, FetchError, ScraperError
from ..themes import SeriesReference, ThemeExtractor, get_extractor
from .image_storage import ImageStorage
from .job_queue import JobKind, ScrapingJob
from .proxy_service import ProxyService

logger = logging.getLogger(__name__)


@dataclass
class ScrapeResult:
    """Counters for one processed job."""
    series_found: int = 0
    series_saved: int = 0
    series_new: int = 0
    series_skipped: int = 0
    episodes_saved: int = 0
    episodes_new: int = 0
    images_stored: int = 0
    images_failed: int = 0
    errors: list[str] = field(default_factory=list)


def apply_category_filters(series: SeriesRecord, source: Source) -> bool:
    """
    Apply a source's blacklist and ignore list to a series.

    Ignored categories are removed from the series. Returns False when
    a category is blacklisted and the series should be skipped.
    """
    blacklist = {name.casefold() for name in source.blacklist}
    if blacklist and any(name.casefold() in blacklist for name in series.categories):
        return False

    ignore = {name.casefold() for name in source.ignore}
    if ignore:
        series.categories = [name for name in series.categories if name.casefold() not in ignore]
    return True


class ScrapingService:
    """
    Job handler wiring extractors, image storage and the database.

    Each job gets its own browser context, configured with the source's
    proxy or else the rotation's current endpoint.
    """

    def __init__(
        self,
        db: Database,
        browser: BrowserManager,
        images: ImageStorage,
        proxies: ProxyService,
        strict_ids: bool | None = None,
    ):
        self.db = db
        self.browser = browser
        self.images = images
        self.proxies = proxies
        self.strict_ids = strict_ids

    async def process_job(self, job: ScrapingJob) -> ScrapeResult:
        """
        Run a job to completion.

        Raises:
            ConfigurationError: unknown, inactive or misconfigured source
            FetchError: the index or target page could not be loaded
        """
        source = self.db.get_source(job.source_id)
        if source is None or not source.is_active:
            raise ConfigurationError(f"Source {job.source_id} not found or inactive")

        proxy = source.proxy or self.proxies.get_current()
        result = ScrapeResult()

        try:
            async with self.browser.session(proxy) as session:
                extractor = get_extractor(source, session, strict_ids=self.strict_ids)

                if job.kind == JobKind.RECENT:
                    logger.info(f"Scraping recent series from {source.name}, page {job.page}")
                    references = await extractor.list_recent(job.page)
                    await self._scrape_references(extractor, source, references, result)

                elif job.kind == JobKind.FULL_PAGE_RANGE:
                    logger.info(f"Scraping full series list from {source.name}, page {job.page}")
                    references = await extractor.list_full(job.page)
                    await self._scrape_references(extractor, source, references, result)

                elif job.kind == JobKind.SINGLE_SERIES:
                    logger.info(f"Scraping single series: {job.url}")
                    series = await extractor.fetch_series_detail(job.url)
                    result.series_found = 1
                    await self._save_series(extractor, source, series, result)

                elif job.kind == JobKind.SINGLE_EPISODE:
                    logger.info(f"Scraping episode images: {job.url}")
                    await self._scrape_episode(extractor, job.url, result)

        except FetchError as e:
            # Source-bound proxies are not part of the rotation
            if source.proxy is None:
                self.proxies.mark_failed(proxy, e)
            raise

        logger.info(
            f"Job {job.id} done: {result.series_saved}/{result.series_found} series saved "
            f"({result.series_new} new, {result.series_skipped} filtered), "
            f"{result.episodes_saved} episodes ({result.episodes_new} new), "
            f"{result.images_stored} images stored, {result.images_failed} failed"
        )
        return result

    # ─────────────────────────────────────────────────────────────
    # Series batches
    # ─────────────────────────────────────────────────────────────

    async def _scrape_references(
        self,
        extractor: ThemeExtractor,
        source: Source,
        references: list[SeriesReference],
        result: ScrapeResult,
    ) -> None:
        result.series_found += len(references)
        for reference in references:
            try:
                series = await extractor.fetch_series_detail(reference.url)
                await self._save_series(extractor, source, series, result)
            except ScraperError as e:
                logger.warning(f"Skipping series {reference.url}: {e}")
                result.errors.append(f"{reference.url}: {e}")
            except Exception as e:
                logger.exception(f"Error scraping series {reference.url}: {e}")
                result.errors.append(f"{reference.url}: {e}")

    async def _save_series(
        self,
        extractor: ThemeExtractor,
        source: Source,
        series: SeriesRecord,
        result: ScrapeResult,
    ) -> None:
        if not apply_category_filters(series, source):
            logger.info(f"Skipping blacklisted series: {series.name} ({series.categories})")
            result.series_skipped += 1
            return

        if series.cover:
            cover = await self.images.acquire_series_cover(series.cover, series.id)
            if cover.processed:
                series.local_cover_path = cover.local_path
                series.cover_file_size = cover.size
                series.cover_processed_at = datetime.now()
                result.images_stored += 1
            else:
                result.images_failed += 1

        if self.db.upsert_series(series):
            result.series_new += 1
            logger.info(f"New series saved: {series.name} ({len(series.episodes)} episodes)")
        else:
            logger.debug(f"Series updated: {series.name}")
        result.series_saved += 1

        for episode in series.episodes:
            existing = self.db.get_episode(episode.id)
            if existing and existing.local_images and len(existing.local_images) == len(existing.images):
                continue
            try:
                episode.images = await extractor.fetch_episode_images(episode.url)
            except ScraperError as e:
                logger.warning(f"Could not load images for episode {episode.url}: {e}")
                result.errors.append(f"{episode.url}: {e}")
            await self._store_episode_images(episode, result)
            if self.db.upsert_episode(episode):
                result.episodes_new += 1
            result.episodes_saved += 1

    # ─────────────────────────────────────────────────────────────
    # Episodes
    # ─────────────────────────────────────────────────────────────

    async def _scrape_episode(self, extractor: ThemeExtractor, url: str, result: ScrapeResult) -> None:
        episode_id = extractor.episode_id_from_url(url)
        episode = self.db.get_episode(episode_id)
        if episode is None:
            raise ConfigurationError(f"Episode {episode_id} is unknown; scrape its series first")

        episode.images = await extractor.fetch_episode_images(url)
        await self._store_episode_images(episode, result)
        self.db.upsert_episode(episode)
        result.episodes_saved += 1

    async def _store_episode_images(self, episode: EpisodeRecord, result: ScrapeResult) -> None:
        if not episode.images:
            return

        assets = await self.images.acquire_episode_images(episode.images, episode.series_id, episode.id)
        stored = [asset for asset in assets if asset.processed and asset.local_path]
        episode.local_images = [asset.local_path for asset in stored]
        episode.image_sizes = {asset.local_path: asset.size for asset in stored}
        if stored:
            episode.images_processed_at = datetime.now()

        result.images_stored += len(stored)
        result.images_failed += len(assets) - len(stored)
        logger.info(f"Episode {episode.id}: {len(stored)}/{len(assets)} images stored")
