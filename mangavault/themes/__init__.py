"""
Theme Extractors - extraction logic per site template family.

Every supported site is built on one of a few templates:
- Themesia: MangaReader WordPress theme, images in a ts_reader.run() script
- Madara: Madara WordPress theme, images as lazy-loaded <img> tags
- Uzay: Next.js reader, images in a series_items hydration payload

A source's theme tag selects its extractor.
"""

from ..database.models import Source
from ..exceptions import ConfigurationError
from .base import PageSource, SeriesReference, ThemeExtractor, parse_ordinal
from .madara import MadaraExtractor
from .themesia import ThemesiaExtractor
from .uzay import UzayExtractor

# Registry of all extractors, keyed by theme tag
THEME_EXTRACTORS: dict[str, type[ThemeExtractor]] = {
    ThemesiaExtractor.THEME: ThemesiaExtractor,
    MadaraExtractor.THEME: MadaraExtractor,
    UzayExtractor.THEME: UzayExtractor,
}


def get_extractor(source: Source, session: PageSource, strict_ids: bool | None = None) -> ThemeExtractor:
    """
    Create the extractor for a source's theme.

    Raises:
        ConfigurationError: the theme is not supported
    """
    extractor_class = THEME_EXTRACTORS.get(source.theme)
    if extractor_class is None:
        raise ConfigurationError(f"Unknown theme {source.theme!r} for source {source.id}")
    return extractor_class(source, session, strict_ids=strict_ids)


__all__ = [
    "PageSource",
    "SeriesReference",
    "ThemeExtractor",
    "THEME_EXTRACTORS",
    "get_extractor",
    "parse_ordinal",
    "MadaraExtractor",
    "ThemesiaExtractor",
    "UzayExtractor",
]
