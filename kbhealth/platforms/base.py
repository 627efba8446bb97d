"""
Base classes for knowledge-base platform adapters.

An adapter knows three page shapes of one platform:
- the index (base URL): category links, plus any article links found directly
- a category listing: article links
- an article page: title, body and metadata
"""

import re
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from datetime import datetime
from typing import Mapping
from urllib.parse import urlsplit

from bs4 import BeautifulSoup

from ..content import extract_with_trafilatura, html_to_markdown, parse_datetime
from ..exceptions import PermanentFetchError
from ..models import Platform
from ..urls import canonical_url


@dataclass
class ListingEntry:
    url: str  # canonical
    title: str | None = None
    last_modified_at: datetime | None = None  # known before fetching the page (feeds)


@dataclass
class CategoryLink:
    name: str
    url: str
    # Pre-parsed entries; when None the listing page at url is fetched
    entries: list[ListingEntry] | None = None


@dataclass
class IndexPage:
    categories: list[CategoryLink] = field(default_factory=list)
    entries: list[ListingEntry] = field(default_factory=list)  # article links on the index itself


@dataclass
class ArticlePage:
    title: str
    content: str  # markdown
    summary: str | None = None
    author: str | None = None
    last_modified_at: datetime | None = None
    tags: list[str] = field(default_factory=list)
    publication_status: str = "published"
    view_count: int | None = None
    helpful_votes: int | None = None
    last_reviewed_at: datetime | None = None


class PlatformAdapter(ABC):
    """Base class for platform adapters."""

    PLATFORM: Platform = Platform.GENERIC

    @abstractmethod
    def parse_index(self, url: str, text: str) -> IndexPage:
        """Parse the source index page."""
        pass

    @abstractmethod
    def parse_listing(self, url: str, text: str) -> list[ListingEntry]:
        """Parse a category listing page into article links."""
        pass

    @abstractmethod
    def parse_article(self, url: str, text: str, headers: Mapping[str, str] | None = None) -> ArticlePage:
        """Parse an article page. Raises PermanentFetchError when nothing usable is found."""
        pass

    def _get_meta(self, soup: BeautifulSoup, name: str) -> str | None:
        """Get meta tag content by name or property."""
        meta = soup.find("meta", attrs={"name": name}) or soup.find("meta", attrs={"property": name})
        if meta and meta.get("content"):
            return meta["content"].strip()
        return None


class HtmlPlatformAdapter(PlatformAdapter):
    """Selector-driven adapter for server-rendered help centres."""

    CATEGORY_SELECTORS: list[str] = []
    ARTICLE_LINK_SELECTORS: list[str] = []
    TITLE_SELECTORS: list[str] = ["h1", ".article-title"]
    CONTENT_SELECTORS: list[str] = [
        ".article-content",
        ".article-body",
        "[class*=article-body]",
        ".content",
        "article",
        "main",
    ]
    # Below this many words the selected body is treated as a miss
    MIN_CONTENT_WORDS = 20

    def parse_index(self, url: str, text: str) -> IndexPage:
        soup = BeautifulSoup(text, "html.parser")
        categories: list[CategoryLink] = []
        seen: set[str] = {canonical_url(url)}
        for link in self._select_links(soup, self.CATEGORY_SELECTORS):
            href = canonical_url(link["href"], base=url)
            if href in seen or not self._same_site(url, href):
                continue
            seen.add(href)
            categories.append(CategoryLink(name=self._category_name(link, href), url=href))
        return IndexPage(categories=categories, entries=self.parse_listing(url, text))

    def parse_listing(self, url: str, text: str) -> list[ListingEntry]:
        soup = BeautifulSoup(text, "html.parser") if isinstance(text, str) else text
        entries: list[ListingEntry] = []
        seen: set[str] = set()
        for link in self._select_links(soup, self.ARTICLE_LINK_SELECTORS):
            href = canonical_url(link["href"], base=url)
            if href in seen or not self._same_site(url, href):
                continue
            seen.add(href)
            title = link.get_text(" ", strip=True) or None
            entries.append(ListingEntry(url=href, title=title))
        return entries

    def parse_article(self, url: str, text: str, headers: Mapping[str, str] | None = None) -> ArticlePage:
        soup = BeautifulSoup(text, "html.parser")
        title = self._extract_title(soup)
        summary = self._get_meta(soup, "description") or self._get_meta(soup, "og:description")
        last_modified = self._extract_last_modified(soup, headers or {})
        author = self._get_meta(soup, "author") or self._get_meta(soup, "article:author")
        tags = self._extract_tags(soup)
        last_reviewed = parse_datetime(self._get_meta(soup, "last-reviewed"))
        status = self._get_meta(soup, "article:status") or "published"

        content = self._extract_content(soup)
        if len(content.split()) < self.MIN_CONTENT_WORDS:
            fallback = extract_with_trafilatura(url, text)
            if fallback and len(fallback.split()) > len(content.split()):
                content = fallback

        if not title and not content:
            raise PermanentFetchError("No article title or content found", url=url)

        return ArticlePage(
            title=title or "Untitled",
            content=content,
            summary=summary,
            author=author,
            last_modified_at=last_modified,
            tags=tags,
            publication_status=status.lower(),
            view_count=self._extract_view_count(soup),
            helpful_votes=self._extract_helpful_votes(soup),
            last_reviewed_at=last_reviewed,
        )

    def _select_links(self, soup: BeautifulSoup, selectors: list[str]):
        for selector in selectors:
            for link in soup.select(selector):
                if link.get("href") and not link["href"].startswith(("#", "mailto:", "javascript:")):
                    yield link

    def _same_site(self, base: str, url: str) -> bool:
        return urlsplit(base).hostname == urlsplit(url).hostname

    def _category_name(self, link, href: str) -> str:
        text = link.get_text(" ", strip=True)
        if text:
            return text
        slug = urlsplit(href).path.rstrip("/").rsplit("/", 1)[-1]
        slug = re.sub(r"^\d+-", "", slug)
        return slug.replace("-", " ").title() or "General"

    def _extract_title(self, soup: BeautifulSoup) -> str | None:
        for selector in self.TITLE_SELECTORS:
            element = soup.select_one(selector)
            if element and element.get_text(strip=True):
                return element.get_text(" ", strip=True)
        og_title = self._get_meta(soup, "og:title")
        if og_title:
            return og_title
        if soup.title and soup.title.string:
            return soup.title.string.strip()
        return None

    def _extract_content(self, soup: BeautifulSoup) -> str:
        for selector in self.CONTENT_SELECTORS:
            element = soup.select_one(selector)
            if element is None:
                continue
            # Title is stored separately
            for heading in element.find_all("h1"):
                heading.decompose()
            content = html_to_markdown(element)
            if content:
                return content
        return ""

    def _extract_last_modified(self, soup: BeautifulSoup, headers: Mapping[str, str]) -> datetime | None:
        for name in ("article:modified_time", "og:updated_time", "last-modified"):
            value = parse_datetime(self._get_meta(soup, name))
            if value:
                return value
        time_tag = soup.find("time", attrs={"itemprop": "dateModified"}) or soup.find("time", datetime=True)
        if time_tag and time_tag.get("datetime"):
            value = parse_datetime(time_tag["datetime"])
            if value:
                return value
        header = next((v for k, v in headers.items() if k.lower() == "last-modified"), None)
        return parse_datetime(header)

    def _extract_tags(self, soup: BeautifulSoup) -> list[str]:
        tags = []
        for meta in soup.find_all("meta", attrs={"property": "article:tag"}):
            if meta.get("content"):
                tags.append(meta["content"].strip().lower())
        keywords = self._get_meta(soup, "keywords")
        if keywords:
            tags.extend(k.strip().lower() for k in keywords.split(",") if k.strip())
        return list(dict.fromkeys(tags))

    def _extract_view_count(self, soup: BeautifulSoup) -> int | None:
        return None

    def _extract_helpful_votes(self, soup: BeautifulSoup) -> int | None:
        return None
