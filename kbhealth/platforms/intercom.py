"""
Intercom help centre adapter.

Layout: index -> /collections/<id>-<slug> -> /articles/<id>-<slug>
"""

import re

from bs4 import BeautifulSoup

from ..models import Platform
from .base import HtmlPlatformAdapter


class IntercomAdapter(HtmlPlatformAdapter):
    """Adapter for Intercom-hosted help centres."""

    PLATFORM = Platform.INTERCOM

    CATEGORY_SELECTORS = ['a[href*="/collections/"]']
    ARTICLE_LINK_SELECTORS = ['a[href*="/articles/"]']
    TITLE_SELECTORS = ["h1", ".article__title", "[data-testid=article-title]"]
    CONTENT_SELECTORS = [
        ".article__body",
        "article .intercom-interblocks",
        "[class*=article-body]",
        "article",
        "main",
    ]

    def _extract_helpful_votes(self, soup: BeautifulSoup) -> int | None:
        reactions = soup.select_one("[class*=reaction-count], .article__reactions")
        if reactions:
            match = re.search(r"\d+", reactions.get_text())
            if match:
                return int(match.group())
        return None
