"""
Feed adapter - knowledge bases that publish an RSS/Atom feed.

The base URL is the feed. Entries are grouped into categories by their first
tag, and each entry's updated timestamp is known before its page is fetched,
so unchanged articles are skipped without a request.
"""

from datetime import datetime, timezone

import feedparser

from ..exceptions import PermanentFetchError
from ..models import Platform
from ..urls import canonical_url
from .base import CategoryLink, IndexPage, ListingEntry
from .generic import GenericAdapter

DEFAULT_CATEGORY = "General"


class FeedAdapter(GenericAdapter):
    """Adapter for RSS 2.0 and Atom 1.0 feeds; article pages parse as generic HTML."""

    PLATFORM = Platform.FEED

    def parse_index(self, url: str, text: str) -> IndexPage:
        parsed = feedparser.parse(text)

        if parsed.bozo and not parsed.entries:
            raise PermanentFetchError(f"Failed to parse feed: {parsed.bozo_exception}", url=url)

        groups: dict[str, list[ListingEntry]] = {}
        for entry in parsed.entries:
            link = entry.get("link", "")
            if not link and hasattr(entry, "links"):
                for candidate in entry.links:
                    if candidate.get("rel") == "alternate" or candidate.get("type") == "text/html":
                        link = candidate.get("href", "")
                        break
            if not link:
                continue

            tags = entry.get("tags") or []
            category = (tags[0].get("term") if tags else None) or DEFAULT_CATEGORY
            groups.setdefault(category, []).append(ListingEntry(
                url=canonical_url(link, base=url),
                title=entry.get("title"),
                last_modified_at=self._entry_updated(entry),
            ))

        categories = [
            CategoryLink(name=name, url=f"{canonical_url(url)}#{name}", entries=entries)
            for name, entries in groups.items()
        ]
        return IndexPage(categories=categories)

    def parse_listing(self, url: str, text: str) -> list[ListingEntry]:
        index = self.parse_index(url, text)
        return [entry for category in index.categories for entry in category.entries or []]

    def _entry_updated(self, entry) -> datetime | None:
        for key in ("updated_parsed", "published_parsed"):
            value = entry.get(key)
            if value:
                try:
                    return datetime(*value[:6], tzinfo=timezone.utc)
                except (TypeError, ValueError):
                    continue
        return None
