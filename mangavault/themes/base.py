"""
Base classes for theme extractors.
"""

import json
import logging
import re
import uuid
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any, Protocol
from urllib.parse import urljoin, urlparse

from bs4 import BeautifulSoup, Tag

from ..config import config
from ..database.models import EpisodeRecord, SeriesRecord, Source
from ..exceptions import UnstableIdentityError

logger = logging.getLogger(__name__)

ORDINAL_NOISE = re.compile(r"[^0-9.,]")
LEADING_NUMBER = re.compile(r"\d+(?:\.\d+)?")


class PageSource(Protocol):
    """Anything that can return rendered HTML for a URL."""

    async def fetch_html(self, url: str) -> str: ...


@dataclass
class SeriesReference:
    """A series link found on an index page."""
    url: str
    title: str = ""


def parse_ordinal(text: str) -> float:
    """
    Parse an episode number out of a display label.

    Everything but digits and separators is dropped, then the leading
    decimal number is read. Returns -1.0 when there is no number.

        "Chapter 12.5" -> 12.5
        "Special"      -> -1.0
    """
    if not text:
        return -1.0
    cleaned = ORDINAL_NOISE.sub(" ", text).strip().lstrip(".,").strip()
    match = LEADING_NUMBER.match(cleaned)
    if not match:
        return -1.0
    try:
        return float(match.group(0))
    except ValueError:
        return -1.0


def path_segments(url: str) -> list[str]:
    """Non-empty path segments of a URL."""
    return [segment for segment in urlparse(url).path.split("/") if segment]


def extract_json_array(text: str, key: str) -> list[Any]:
    """
    Decode the JSON array that follows "key": in a script body.

    Returns [] when the key is absent or the array is malformed.
    """
    match = re.search(rf'"?{re.escape(key)}"?\s*:\s*\[', text)
    if not match:
        return []
    start = match.end() - 1
    try:
        value, _ = json.JSONDecoder().raw_decode(text, start)
    except json.JSONDecodeError as e:
        logger.warning(f"Malformed {key} payload: {e}")
        return []
    return value if isinstance(value, list) else []


class ThemeExtractor(ABC):
    """
    Extraction logic for one site template family.

    An extractor is bound to a source and to the browser session of the
    job that created it.
    """

    # Theme tag stored on sources
    THEME: str = ""
    # Selectors tried in order for category links on a detail page
    CATEGORY_SELECTORS: tuple[str, ...] = ()

    def __init__(self, source: Source, session: PageSource, strict_ids: bool | None = None):
        self.source = source
        self.session = session
        self.domain = source.domain.rstrip("/")
        self.strict_ids = config.STRICT_IDS if strict_ids is None else strict_ids

    @property
    def name(self) -> str:
        return self.THEME.capitalize()

    # ─────────────────────────────────────────────────────────────
    # Contract
    # ─────────────────────────────────────────────────────────────

    async def list_recent(self, page: int) -> list[SeriesReference]:
        """Series on the page-th index page ordered by latest update."""
        return await self.list_full(page, "update")

    @abstractmethod
    async def list_full(self, page: int, order_hint: str = "") -> list[SeriesReference]:
        """Series on the page-th index page. Returns [] if the layout does not match."""

    @abstractmethod
    async def fetch_series_detail(self, url: str) -> SeriesRecord:
        """Series metadata and episode index (episodes carry no images yet)."""

    @abstractmethod
    async def fetch_episode_images(self, episode_url: str) -> list[str]:
        """Remote image URLs of an episode, in reading order."""

    # ─────────────────────────────────────────────────────────────
    # Shared helpers
    # ─────────────────────────────────────────────────────────────

    async def _fetch_soup(self, url: str) -> BeautifulSoup:
        html = await self.session.fetch_html(url)
        return BeautifulSoup(html, "html.parser")

    def _absolute(self, href: str | None) -> str:
        """Resolve relative links against the source domain."""
        if not href:
            return ""
        href = href.strip()
        if href.startswith("/") and not href.startswith("//"):
            return self.domain + href
        return urljoin(self.domain + "/", href)

    def _collect_references(self, links: list[Tag]) -> list[SeriesReference]:
        """Unique series links in page order."""
        seen: set[str] = set()
        references: list[SeriesReference] = []
        for link in links:
            url = self._absolute(link.get("href"))
            if not url or url in seen:
                continue
            seen.add(url)
            title = link.get("title") or link.get_text(" ", strip=True)
            references.append(SeriesReference(url=url, title=title))
        return references

    @staticmethod
    def _text(soup: BeautifulSoup | Tag, *selectors: str) -> str:
        """Stripped text of the first selector that matches."""
        for selector in selectors:
            if elem := soup.select_one(selector):
                text = elem.get_text(" ", strip=True)
                if text:
                    return text
        return ""

    @staticmethod
    def _attr(soup: BeautifulSoup | Tag, selector: str, *attrs: str) -> str:
        """First non-empty attribute among attrs on the element matching selector."""
        elem = soup.select_one(selector)
        if not elem:
            return ""
        for attr in attrs:
            value = elem.get(attr)
            if value and value.strip():
                return value.strip()
        return ""

    def _categories(self, soup: BeautifulSoup) -> list[str]:
        for selector in self.CATEGORY_SELECTORS:
            names = [a.get_text(strip=True) for a in soup.select(selector)]
            names = [n for n in names if n]
            if names:
                return list(dict.fromkeys(names))
        return []

    def series_id_from_url(self, url: str) -> str:
        """Stable series id: the last path segment of the series URL."""
        segments = path_segments(url)
        if segments:
            return segments[-1]
        return self._fallback_id(url, "series")

    def episode_id_from_url(self, url: str) -> str:
        """Stable episode id: the last two path segments joined with '-'."""
        segments = path_segments(url)
        if segments:
            return "-".join(segments[-2:])
        return self._fallback_id(url, "episode")

    def _fallback_id(self, url: str, kind: str) -> str:
        """
        Handle a URL that yields no id.

        Strict mode raises UnstableIdentityError; otherwise a random id is
        generated and reported as a data-quality event.
        """
        if self.strict_ids:
            logger.warning(f"Data quality: no stable {kind} id for {url!r} ({self.source.id}), skipping")
            raise UnstableIdentityError(url)
        generated = uuid.uuid4().hex[:9]
        logger.warning(
            f"Data quality: no stable {kind} id for {url!r} ({self.source.id}), "
            f"generated {generated}; re-scrapes will not match this record"
        )
        return generated

    def _build_episode(self, series_id: str, name: str, url: str, number: float) -> EpisodeRecord | None:
        """EpisodeRecord for a parsed chapter link, or None if it must be dropped."""
        if number < 0:
            logger.debug(f"Dropping episode without a number: {name!r} ({url})")
            return None
        if not url:
            return None
        try:
            episode_id = self.episode_id_from_url(url)
        except UnstableIdentityError:
            return None
        return EpisodeRecord(
            id=episode_id,
            series_id=series_id,
            name=name,
            number=number,
            url=url,
        )


def script_text(tag: Tag) -> str:
    """Body of a <script> element."""
    return str(tag.string) if tag.string is not None else tag.get_text()
