"""Scraper providers.

LinovelibScraper fetches pages through an IPageFetcher and parses them
into page models; the module-level ``parse_*`` functions are usable on
their own against saved HTML.
"""

from novelfeed.providers.scraper.linovelib import (
    LinovelibScraper,
    assemble_chapter,
    parse_chapter_page,
    parse_novel_page,
    parse_top_page,
    parse_volume_page,
    parse_wenku_page,
)

__all__ = [
    "LinovelibScraper",
    "assemble_chapter",
    "parse_chapter_page",
    "parse_novel_page",
    "parse_top_page",
    "parse_volume_page",
    "parse_wenku_page",
]
