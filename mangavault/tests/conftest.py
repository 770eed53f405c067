"""
Pytest fixtures for scraper tests.
"""

import io
import os
import tempfile
from contextlib import asynccontextmanager
from pathlib import Path

import pytest
from PIL import Image

from mangavault.database import Database
from mangavault.database.models import Source
from mangavault.exceptions import FetchError
from mangavault.services.image_storage import ImageStorage


class FakeSession:
    """Serves canned HTML by URL instead of driving a browser."""

    def __init__(self, pages: dict[str, str] | None = None):
        self.pages = dict(pages or {})
        self.requested: list[str] = []

    async def fetch_html(self, url: str) -> str:
        self.requested.append(url)
        if url not in self.pages:
            raise FetchError(url, "HTTP 404: Not Found")
        return self.pages[url]


class FakeBrowser:
    """Stands in for BrowserManager; every session shares one FakeSession."""

    def __init__(self, pages: dict[str, str] | None = None):
        self.page_source = FakeSession(pages)
        self.proxies_used = []

    @asynccontextmanager
    async def session(self, proxy=None):
        self.proxies_used.append(proxy)
        yield self.page_source

    async def stop(self):
        pass


def make_image_bytes(width: int = 100, height: int = 150, fmt: str = "PNG") -> bytes:
    """Encode a solid-color test image."""
    out = io.BytesIO()
    Image.new("RGB", (width, height), (200, 40, 40)).save(out, format=fmt)
    return out.getvalue()


def make_source(theme: str = "themesia", domain: str = "https://site.test", **kwargs) -> Source:
    defaults = {
        "id": f"{theme}-test",
        "name": f"{theme.capitalize()} Test",
        "domain": domain,
        "theme": theme,
    }
    defaults.update(kwargs)
    return Source(**defaults)


@pytest.fixture
def temp_db_path():
    """Create a temporary database file path."""
    with tempfile.NamedTemporaryFile(suffix=".db", delete=False) as f:
        yield Path(f.name)
    # Cleanup
    if os.path.exists(f.name):
        os.unlink(f.name)


@pytest.fixture
def temp_storage_dir():
    """Create a temporary image storage directory."""
    with tempfile.TemporaryDirectory() as d:
        yield Path(d)


@pytest.fixture
def test_db(temp_db_path):
    """Create a test database instance."""
    db = Database(temp_db_path)
    yield db


@pytest.fixture
def storage(temp_storage_dir):
    """Image storage rooted in a temporary directory."""
    return ImageStorage(root=temp_storage_dir, max_bytes=10 * 1024 * 1024)


@pytest.fixture
def image_bytes():
    return make_image_bytes()
