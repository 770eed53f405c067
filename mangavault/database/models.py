"""
Database models - dataclasses for stored entities.
"""

from dataclasses import dataclass, field
from datetime import datetime

THEMES = ("themesia", "madara", "uzay")


@dataclass(frozen=True)
class ProxyEndpoint:
    host: str
    port: int = 0
    username: str | None = None
    password: str | None = None
    label: str = ""

    @property
    def key(self) -> str:
        return f"{self.host}:{self.port}"

    @property
    def is_direct(self) -> bool:
        """An endpoint without a host means no proxy."""
        return not self.host

    def to_playwright(self) -> dict | None:
        """Proxy settings in the shape Playwright's new_context() expects."""
        if self.is_direct:
            return None
        settings = {"server": f"http://{self.host}:{self.port}"}
        if self.username:
            settings["username"] = self.username
            settings["password"] = self.password or ""
        return settings

    @classmethod
    def parse(cls, line: str, label: str = "") -> "ProxyEndpoint":
        """Parse "host:port[:user:pass]"."""
        parts = line.strip().split(":")
        if len(parts) < 2 or not parts[0]:
            raise ValueError(f"Invalid proxy definition: {line!r}")
        return cls(
            host=parts[0],
            port=int(parts[1]),
            username=parts[2] if len(parts) > 2 and parts[2] else None,
            password=parts[3] if len(parts) > 3 else None,
            label=label or f"{parts[0]}:{parts[1]}",
        )


@dataclass
class Source:
    id: str
    name: str
    domain: str
    theme: str
    is_active: bool = True
    scan_interval: int = 60  # minutes
    proxy: ProxyEndpoint | None = None
    blacklist: list[str] = field(default_factory=list)
    ignore: list[str] = field(default_factory=list)
    created_at: datetime | None = None
    updated_at: datetime | None = None


@dataclass
class EpisodeRecord:
    id: str
    series_id: str
    name: str
    number: float
    url: str
    images: list[str] = field(default_factory=list)  # remote CDN URLs
    local_images: list[str] = field(default_factory=list)  # relative storage paths
    image_sizes: dict[str, int] = field(default_factory=dict)  # path -> bytes
    images_processed_at: datetime | None = None
    published_at: datetime = field(default_factory=datetime.now)


@dataclass
class SeriesRecord:
    id: str
    source_id: str
    name: str
    url: str
    description: str = ""
    cover: str = ""  # remote CDN URL
    local_cover_path: str | None = None
    cover_file_size: int | None = None
    cover_processed_at: datetime | None = None
    categories: list[str] = field(default_factory=list)
    episodes: list[EpisodeRecord] = field(default_factory=list)
    last_updated: datetime = field(default_factory=datetime.now)
