"""
Configuration and logging setup.
"""

import logging
import os
import sys
from datetime import date
from pathlib import Path

from dotenv import load_dotenv

# Load environment variables
load_dotenv()


def _parse_bool(value: str | None, default: bool = False) -> bool:
    """Parse boolean from environment variable."""
    if value is None:
        return default
    return value.lower() in ("true", "1", "yes", "on")


class Config:
    """Application configuration from environment."""
    DB_PATH: Path = Path(os.getenv("DB_PATH", "./data/mangavault.db"))
    # Images are stored under STORAGE_PATH/images
    STORAGE_PATH: Path = Path(os.getenv("STORAGE_PATH", "./storage"))
    LOG_LEVEL: str = os.getenv("LOG_LEVEL", "INFO")
    LOG_DIR: Path = Path(os.getenv("LOG_DIR", "./logs"))

    # Job queue
    WORKER_CONCURRENCY: int = int(os.getenv("WORKER_CONCURRENCY", "3"))
    JOB_MAX_ATTEMPTS: int = int(os.getenv("JOB_MAX_ATTEMPTS", "3"))
    JOB_BACKOFF_SECONDS: float = float(os.getenv("JOB_BACKOFF_SECONDS", "2.0"))

    # Scheduler
    AUTO_START_SCHEDULER: bool = _parse_bool(os.getenv("AUTO_START_SCHEDULER"), default=True)
    DEFAULT_SCAN_INTERVAL: int = int(os.getenv("DEFAULT_SCAN_INTERVAL", "60"))  # minutes

    # Image processing
    MAX_IMAGE_SIZE_MB: int = int(os.getenv("MAX_IMAGE_SIZE_MB", "10"))
    COVER_QUALITY: int = int(os.getenv("COVER_QUALITY", "75"))
    EPISODE_QUALITY: int = int(os.getenv("EPISODE_QUALITY", "85"))
    MIN_IMAGE_WIDTH: int = int(os.getenv("MIN_IMAGE_WIDTH", "800"))
    MIN_IMAGE_HEIGHT: int = int(os.getenv("MIN_IMAGE_HEIGHT", "600"))

    # Browser
    BROWSER_TIMEOUT: int = int(os.getenv("BROWSER_TIMEOUT", "45000"))  # ms
    BROWSER_HEADLESS: bool = _parse_bool(os.getenv("BROWSER_HEADLESS"), default=True)
    USER_AGENT: str = os.getenv(
        "USER_AGENT",
        "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 "
        "(KHTML, like Gecko) Chrome/122.0.0.0 Safari/537.36",
    )

    # Proxies: "host:port[:user:pass]", PROXY_LIST is newline or comma separated
    PROXY_DEFAULT: str = os.getenv("PROXY_DEFAULT", "")
    PROXY_LIST: str = os.getenv("PROXY_LIST", "")

    # Refuse to invent ids for URLs without a usable path segment
    STRICT_IDS: bool = _parse_bool(os.getenv("STRICT_IDS"), default=True)

    UZAY_CDN_BASE: str = os.getenv("UZAY_CDN_BASE", "https://cdn1.uzaymanga.com/upload/series/")

    @classmethod
    def image_root(cls) -> Path:
        return cls.STORAGE_PATH / "images"

    @classmethod
    def max_image_bytes(cls) -> int:
        return cls.MAX_IMAGE_SIZE_MB * 1024 * 1024


config = Config()


def configure_logging(level: str | None = None, log_dir: Path | None = None) -> None:
    """
    Configure root logging with a console handler and a daily log file.

    Log files are named scraper-YYYY-MM-DD.log inside log_dir.
    """
    level_name = (level or config.LOG_LEVEL).upper()
    log_dir = log_dir or config.LOG_DIR

    handlers: list[logging.Handler] = [logging.StreamHandler(sys.stdout)]
    try:
        log_dir.mkdir(parents=True, exist_ok=True)
        handlers.append(
            logging.FileHandler(log_dir / f"scraper-{date.today().isoformat()}.log", encoding="utf-8")
        )
    except OSError as e:
        print(f"Failed to open log directory {log_dir}: {e}", file=sys.stderr)

    logging.basicConfig(
        level=getattr(logging, level_name, logging.INFO),
        format="[%(asctime)s] [%(levelname)s] [%(name)s] %(message)s",
        handlers=handlers,
        force=True,
    )
