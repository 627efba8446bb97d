"""
Error taxonomy for sync and audit operations.

Only identity errors (NotFound) and the concurrency guard (AlreadySyncing)
propagate to callers of sync/audit. Item-level failures are turned into data
(error outcomes, synthetic issues) by the components that catch them.
"""

from typing import TypeVar

T = TypeVar("T")


class KBHealthError(Exception):
    """Base class for all knowledge-base health errors."""


class NotFound(KBHealthError):
    """Unknown source, article or rule id."""


class AlreadySyncing(KBHealthError):
    """A sync run already owns this source."""

    def __init__(self, source_id: str):
        super().__init__(f"Source '{source_id}' is already syncing")
        self.source_id = source_id


class InvalidTicket(KBHealthError):
    """A sync ticket was completed twice or does not own the source."""


class FetchError(KBHealthError):
    """Failure fetching a single URL."""

    transient: bool = False

    def __init__(self, message: str, url: str | None = None, status: int | None = None):
        super().__init__(message)
        self.url = url
        self.status = status


class TransientFetchError(FetchError):
    """Timeout, connection failure, 5xx or rate-limit response. Retried."""

    transient = True


class PermanentFetchError(FetchError):
    """404, other 4xx, or unparseable content. Never retried."""


class SSRFError(PermanentFetchError):
    """Raised when a URL fails SSRF validation."""


class FatalSourceError(KBHealthError):
    """The source index could not be reached or parsed; the sync run fails."""


class RuleTimeout(KBHealthError):
    """A rule evaluation exceeded its time budget."""


class NoEnabledRules(KBHealthError):
    """The rule catalog has no enabled rules."""


def require_resource(resource: T | None, detail: str = "Resource not found") -> T:
    """
    Raise NotFound if resource is None, otherwise return the resource.

    Usage:
        article = require_resource(store.get(article_id), "Article not found")
    """
    if resource is None:
        raise NotFound(detail)
    return resource


def require_source(source: T | None, source_id: str) -> T:
    """Raise NotFound if source is None."""
    return require_resource(source, f"Source not found: {source_id}")


def require_article(article: T | None, article_id: str) -> T:
    """Raise NotFound if article is None."""
    return require_resource(article, f"Article not found: {article_id}")


def require_rule(rule: T | None, rule_id: str) -> T:
    """Raise NotFound if rule is None."""
    return require_resource(rule, f"Rule not found: {rule_id}")
