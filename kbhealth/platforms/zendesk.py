"""
Zendesk Guide adapter.

Layout: /hc/<locale> -> /categories/ or /sections/ -> /articles/<id>-<slug>
Vote labels read like "12 out of 15 found this helpful".
"""

import re

from bs4 import BeautifulSoup

from ..models import Platform
from .base import HtmlPlatformAdapter

VOTE_LABEL = re.compile(r"(\d+)\s+out of\s+(\d+)")


class ZendeskAdapter(HtmlPlatformAdapter):
    """Adapter for Zendesk Guide help centres."""

    PLATFORM = Platform.ZENDESK

    CATEGORY_SELECTORS = [
        'a[href*="/sections/"]',
        'a[href*="/categories/"]',
    ]
    ARTICLE_LINK_SELECTORS = ['a[href*="/articles/"]']
    TITLE_SELECTORS = [".article-title", "h1"]
    CONTENT_SELECTORS = [
        ".article-body",
        "[itemprop=articleBody]",
        ".article-content",
        "article",
        "main",
    ]

    def _extract_helpful_votes(self, soup: BeautifulSoup) -> int | None:
        label = soup.select_one(".article-vote-label, .article-votes")
        if label:
            match = VOTE_LABEL.search(label.get_text(" ", strip=True))
            if match:
                return int(match.group(1))
        return None
