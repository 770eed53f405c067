"""
Service layer for the scraper.

Services:
- ImageStorage: image download, normalization and local caching
- JobQueue: prioritized jobs with retries and a worker pool
- ProxyService: proxy rotation and statistics
- ScrapingService: runs jobs against theme extractors
- SourceScheduler: periodic scans of active sources
"""

from .image_storage import ImageAsset, ImageStorage, cover_path, episode_image_path
from .job_queue import (
    PRIORITY_DEFAULT,
    PRIORITY_INTERACTIVE,
    PRIORITY_PAGE_RANGE,
    PRIORITY_RECENT,
    JobKind,
    JobQueue,
    JobState,
    ScrapingJob,
)
from .proxy_service import ProxyService
from .scheduler import ScheduleState, SourceScheduler, SourceTimer
from .scraping_service import ScrapeResult, ScrapingService, apply_category_filters

__all__ = [
    "ImageAsset",
    "ImageStorage",
    "cover_path",
    "episode_image_path",
    "PRIORITY_DEFAULT",
    "PRIORITY_INTERACTIVE",
    "PRIORITY_PAGE_RANGE",
    "PRIORITY_RECENT",
    "JobKind",
    "JobQueue",
    "JobState",
    "ScrapingJob",
    "ProxyService",
    "ScheduleState",
    "SourceScheduler",
    "SourceTimer",
    "ScrapeResult",
    "ScrapingService",
    "apply_category_filters",
]
