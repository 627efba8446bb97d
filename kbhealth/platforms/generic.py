"""
Generic help-centre adapter.

Matches the common URL conventions of self-hosted documentation sites.
"""

from ..models import Platform
from .base import HtmlPlatformAdapter


class GenericAdapter(HtmlPlatformAdapter):
    """Adapter for sites without a dedicated platform adapter."""

    PLATFORM = Platform.GENERIC

    CATEGORY_SELECTORS = [
        'a[href*="/collections/"]',
        'a[href*="/categories/"]',
        'a[href*="/category/"]',
        'a[href*="/sections/"]',
        'a[href*="/topics/"]',
    ]
    ARTICLE_LINK_SELECTORS = [
        'a[href*="/articles/"]',
        'a[href*="/article/"]',
        'a[href*="/docs/"]',
        'a[href*="/kb/"]',
    ]
