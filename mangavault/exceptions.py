"""
Scraper error taxonomy.

- FetchError: transient network failures, retried at the job level
- ParseError / UnstableIdentityError: structural problems, skipped per item
- ImageTooLargeError: resource limits, recorded as a failed image
- ConfigurationError / InvalidJobError: fail the job without retrying
"""


class ScraperError(Exception):
    """Base class for all scraper errors."""


class FetchError(ScraperError):
    """A page or image could not be fetched."""

    def __init__(self, url: str, message: str):
        super().__init__(f"Failed to fetch {url}: {message}")
        self.url = url


class ParseError(ScraperError):
    """Page structure did not match what the theme expects."""


class UnstableIdentityError(ParseError):
    """No stable id could be derived from a URL."""

    def __init__(self, url: str):
        super().__init__(f"Cannot derive a stable id from {url!r}")
        self.url = url


class ImageTooLargeError(ScraperError):
    """Remote image exceeds the configured size limit."""

    def __init__(self, url: str, size: int, limit: int):
        super().__init__(
            f"Image too large: {size / (1024 * 1024):.2f}MB > {limit / (1024 * 1024):.0f}MB"
        )
        self.url = url
        self.size = size
        self.limit = limit


class ConfigurationError(ScraperError):
    """Job refers to an unknown theme or a missing/inactive source."""


class InvalidJobError(ScraperError, ValueError):
    """Job description is missing the fields its kind requires."""


# Errors that retrying cannot fix
NON_RETRYABLE_ERRORS: tuple[type[Exception], ...] = (ConfigurationError, InvalidJobError)
