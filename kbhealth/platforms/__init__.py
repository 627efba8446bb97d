"""
Platform adapters - how to walk and parse each kind of knowledge base.

- Generic: common help-centre URL conventions
- Intercom: collections and articles
- Zendesk: categories/sections and articles, vote counts
- Feed: RSS/Atom feeds, with entry timestamps for conditional re-fetch
"""

from ..models import Platform
from .base import ArticlePage, CategoryLink, HtmlPlatformAdapter, IndexPage, ListingEntry, PlatformAdapter
from .feed import FeedAdapter
from .generic import GenericAdapter
from .intercom import IntercomAdapter
from .zendesk import ZendeskAdapter

# Registry of all adapters
PLATFORM_ADAPTERS: dict[Platform, type[PlatformAdapter]] = {
    Platform.GENERIC: GenericAdapter,
    Platform.INTERCOM: IntercomAdapter,
    Platform.ZENDESK: ZendeskAdapter,
    Platform.FEED: FeedAdapter,
}


def get_adapter(platform: Platform | str) -> PlatformAdapter:
    """Get the adapter for a platform, falling back to the generic adapter."""
    try:
        adapter_class = PLATFORM_ADAPTERS[Platform(platform)]
    except (KeyError, ValueError):
        adapter_class = GenericAdapter
    return adapter_class()


__all__ = [
    "ArticlePage",
    "CategoryLink",
    "FeedAdapter",
    "GenericAdapter",
    "HtmlPlatformAdapter",
    "IndexPage",
    "IntercomAdapter",
    "ListingEntry",
    "PLATFORM_ADAPTERS",
    "PlatformAdapter",
    "ZendeskAdapter",
    "get_adapter",
]
