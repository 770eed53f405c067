"""
Image Storage - download, normalize and cache remote images on disk.

Handles:
- Deterministic local paths (series/<id>/cover.webp, series/<id>/episodes/<id>/001.webp)
- Idempotent re-runs: an existing file short-circuits without a network fetch
- Size limit enforced before any decoding
- Upscaling small pages with Lanczos resampling and re-encoding to WebP

Every failure is converted into a failed ImageAsset carrying the remote
URL, so one bad image never fails its batch.
"""

import asyncio
import io
import logging
import os
import tempfile
from dataclasses import dataclass
from pathlib import Path

import aiohttp
from PIL import Image

from ..config import config
from ..exceptions import FetchError, ImageTooLargeError

logger = logging.getLogger(__name__)

IMAGE_FORMAT = "webp"
CHUNK_SIZE = 64 * 1024


@dataclass
class ImageAsset:
    """Outcome of acquiring one remote image."""
    remote_url: str
    local_path: str | None  # relative to the storage root
    size: int = 0
    processed: bool = False
    error: str | None = None


def format_file_size(size: int) -> str:
    """Human readable byte size."""
    if size < 1024:
        return f"{size} B"
    value = float(size)
    for unit in ("KB", "MB", "GB"):
        value /= 1024
        if value < 1024 or unit == "GB":
            break
    return f"{value:.2f} {unit}"


def _check_segment(value: str) -> str:
    """Reject ids that would escape their directory."""
    if not value or value in (".", "..") or "/" in value or "\\" in value:
        raise ValueError(f"Unsafe path segment: {value!r}")
    return value


def cover_path(series_id: str) -> str:
    return f"series/{_check_segment(series_id)}/cover.{IMAGE_FORMAT}"


def episode_image_path(series_id: str, episode_id: str, index: int) -> str:
    """Path of the index-th (1-based) page of an episode."""
    return (
        f"series/{_check_segment(series_id)}/episodes/"
        f"{_check_segment(episode_id)}/{index:03d}.{IMAGE_FORMAT}"
    )


def transform_image(
    data: bytes,
    upscale: bool,
    quality: int,
    min_width: int = 800,
    min_height: int = 600,
) -> bytes:
    """
    Decode, optionally upscale, and re-encode an image as WebP.

    Images narrower than min_width or shorter than min_height are scaled up
    by the factor needed to meet both minimums.
    """
    with Image.open(io.BytesIO(data)) as img:
        img.load()
        width, height = img.size
        logger.debug(f"Original image: {width}x{height}")

        if img.mode not in ("RGB", "RGBA"):
            img = img.convert("RGBA" if "A" in img.getbands() or "transparency" in img.info else "RGB")

        if upscale and width > 0 and height > 0 and (width < min_width or height < min_height):
            scale = max(min_width / width, min_height / height)
            new_size = (round(width * scale), round(height * scale))
            img = img.resize(new_size, Image.Resampling.LANCZOS)
            logger.debug(f"Upscaled to: {new_size[0]}x{new_size[1]}")

        out = io.BytesIO()
        img.save(out, format="WEBP", quality=quality, method=4)
        return out.getvalue()


def _write_atomic(path: Path, data: bytes) -> None:
    """Write to a temp file in the target directory, then rename into place."""
    path.parent.mkdir(parents=True, exist_ok=True)
    fd, tmp_name = tempfile.mkstemp(dir=path.parent, suffix=".part")
    try:
        with os.fdopen(fd, "wb") as f:
            f.write(data)
        os.replace(tmp_name, path)
    except BaseException:
        if os.path.exists(tmp_name):
            os.unlink(tmp_name)
        raise


class ImageStorage:
    """Local image cache backed by a directory tree."""

    def __init__(
        self,
        root: Path | None = None,
        max_bytes: int | None = None,
        cover_quality: int | None = None,
        episode_quality: int | None = None,
        min_width: int | None = None,
        min_height: int | None = None,
        timeout: int = 30,
        user_agent: str | None = None,
    ):
        self.root = root or config.image_root()
        self.max_bytes = max_bytes or config.max_image_bytes()
        self.cover_quality = cover_quality or config.COVER_QUALITY
        self.episode_quality = episode_quality or config.EPISODE_QUALITY
        self.min_width = min_width or config.MIN_IMAGE_WIDTH
        self.min_height = min_height or config.MIN_IMAGE_HEIGHT
        self.timeout = timeout
        self.headers = {
            "User-Agent": user_agent or config.USER_AGENT,
            "Accept": "image/avif,image/webp,image/apng,image/*,*/*;q=0.8",
        }
        self._session: aiohttp.ClientSession | None = None

        self.root.mkdir(parents=True, exist_ok=True)
        logger.info(f"Storage directory ensured: {self.root}")

    async def close(self) -> None:
        if self._session and not self._session.closed:
            await self._session.close()
        self._session = None

    # ─────────────────────────────────────────────────────────────
    # Local file helpers
    # ─────────────────────────────────────────────────────────────

    def absolute_path(self, relative_path: str) -> Path:
        return self.root / relative_path

    def image_exists(self, relative_path: str) -> bool:
        return self.absolute_path(relative_path).is_file()

    def image_size(self, relative_path: str) -> int:
        try:
            return self.absolute_path(relative_path).stat().st_size
        except FileNotFoundError:
            return 0

    def delete_image(self, relative_path: str) -> bool:
        try:
            self.absolute_path(relative_path).unlink()
        except FileNotFoundError:
            return False
        logger.info(f"Deleted image: {relative_path}")
        return True

    # ─────────────────────────────────────────────────────────────
    # Acquisition
    # ─────────────────────────────────────────────────────────────

    async def acquire_series_cover(
        self,
        url: str,
        series_id: str,
        upscale: bool = False,
    ) -> ImageAsset:
        """Store a series cover. Covers are not upscaled by default."""
        if not url:
            return ImageAsset(remote_url="", local_path=None, error="No cover URL")
        try:
            relative_path = cover_path(series_id)
        except ValueError as e:
            return ImageAsset(remote_url=url, local_path=None, error=str(e))
        return await self.acquire(url, relative_path, upscale=upscale, quality=self.cover_quality)

    async def acquire_episode_images(
        self,
        urls: list[str],
        series_id: str,
        episode_id: str,
        upscale: bool = True,
    ) -> list[ImageAsset]:
        """Store an episode's pages in order, named 001.webp, 002.webp, ..."""
        results: list[ImageAsset] = []
        for index, url in enumerate(urls, start=1):
            try:
                relative_path = episode_image_path(series_id, episode_id, index)
            except ValueError as e:
                results.append(ImageAsset(remote_url=url, local_path=None, error=str(e)))
                continue
            result = await self.acquire(url, relative_path, upscale=upscale, quality=self.episode_quality)
            if not result.processed:
                logger.error(
                    f"Failed to process image {index}/{len(urls)} for episode {episode_id}: {result.error}"
                )
            results.append(result)
        return results

    async def acquire(
        self,
        url: str,
        relative_path: str,
        upscale: bool = False,
        quality: int = 80,
    ) -> ImageAsset:
        """
        Ensure a normalized local copy of url exists at relative_path.

        Args:
            url: Remote image URL
            relative_path: Deterministic path under the storage root
            upscale: Scale small images up to the minimum dimensions
            quality: WebP quality

        Returns:
            ImageAsset; on failure processed is False and error is set
        """
        full_path = self.absolute_path(relative_path)
        try:
            if full_path.is_file():
                size = full_path.stat().st_size
                logger.debug(f"Image already exists: {relative_path} ({format_file_size(size)})")
                return ImageAsset(remote_url=url, local_path=relative_path, size=size, processed=True)

            logger.debug(f"Downloading image: {url}")
            data = await self._download(url)

            processed = await asyncio.to_thread(
                transform_image, data, upscale, quality, self.min_width, self.min_height
            )
            await asyncio.to_thread(_write_atomic, full_path, processed)

            logger.info(f"Image stored: {relative_path} ({format_file_size(len(processed))})")
            return ImageAsset(
                remote_url=url,
                local_path=relative_path,
                size=len(processed),
                processed=True,
            )
        except Exception as e:
            logger.error(f"Error processing image {url}: {e}")
            return ImageAsset(remote_url=url, local_path=None, error=str(e))

    async def _get_session(self) -> aiohttp.ClientSession:
        if self._session is None or self._session.closed:
            self._session = aiohttp.ClientSession(
                headers=self.headers,
                timeout=aiohttp.ClientTimeout(total=self.timeout),
            )
        return self._session

    async def _download(self, url: str) -> bytes:
        """Fetch image bytes, aborting as soon as the size limit is exceeded."""
        session = await self._get_session()
        try:
            async with session.get(url, allow_redirects=True) as resp:
                if resp.status >= 400:
                    raise FetchError(url, f"HTTP {resp.status}: {resp.reason}")

                if resp.content_length and resp.content_length > self.max_bytes:
                    raise ImageTooLargeError(url, resp.content_length, self.max_bytes)

                buffer = bytearray()
                async for chunk in resp.content.iter_chunked(CHUNK_SIZE):
                    buffer.extend(chunk)
                    if len(buffer) > self.max_bytes:
                        raise ImageTooLargeError(url, len(buffer), self.max_bytes)
                return bytes(buffer)
        except aiohttp.ClientError as e:
            raise FetchError(url, str(e)) from e
