"""
Pytest fixtures for kbhealth tests.
"""

import asyncio
import os
import tempfile
from datetime import datetime, timezone
from pathlib import Path

import pytest

from kbhealth.database import Database
from kbhealth.exceptions import PermanentFetchError
from kbhealth.fetch_pipeline import FetchPipeline
from kbhealth.http_client import HostRateLimiter, classify_status
from kbhealth.interfaces import HttpResponse
from kbhealth.models import Article, DataSource, Platform
from kbhealth.source_registry import SourceRegistry
from kbhealth.sync_orchestrator import SyncOrchestrator
from kbhealth.urls import article_id, canonical_url

BASE_URL = "https://help.example.com"
MODIFIED = "2024-01-15T10:00:00+00:00"
AS_OF = datetime(2024, 6, 1, tzinfo=timezone.utc)

FILLER = (
    "This guide walks you through the settings page step by step. "
    "Open the dashboard and choose the workspace you want to change. "
    "Each option is described below so you can decide what fits your team."
)


class FakeHttpClient:
    """In-memory HttpClient serving canned responses keyed by canonical URL."""

    def __init__(self, delay: float = 0.0):
        self.pages: dict[str, list] = {}
        self.calls: list[tuple[str, dict]] = []
        self.delay = delay
        self.in_flight = 0
        self.max_in_flight = 0

    def add(self, url: str, body: str = "", status: int = 200, headers: dict | None = None):
        self.pages[canonical_url(url)] = [HttpResponse(status=status, url=url, text=body, headers=headers or {})]

    def add_sequence(self, url: str, items: list):
        """Serve items in order; the last item repeats. Items are HttpResponse or exceptions."""
        self.pages[canonical_url(url)] = list(items)

    def count(self, url: str) -> int:
        key = canonical_url(url)
        return sum(1 for called, _ in self.calls if canonical_url(called) == key)

    async def get(self, url, headers=None):
        self.calls.append((url, dict(headers or {})))
        self.in_flight += 1
        self.max_in_flight = max(self.max_in_flight, self.in_flight)
        try:
            if self.delay:
                await asyncio.sleep(self.delay)
            items = self.pages.get(canonical_url(url))
            if items is None:
                raise PermanentFetchError("HTTP 404", url=url, status=404)
            item = items.pop(0) if len(items) > 1 else items[0]
            if isinstance(item, Exception):
                raise item
            classify_status(url, item.status)
            return item
        finally:
            self.in_flight -= 1


def article_html(title: str, body: str = FILLER, modified: str | None = MODIFIED, extra_head: str = "") -> str:
    modified_meta = f'<meta property="article:modified_time" content="{modified}">' if modified else ""
    return f"""<html><head><title>{title}</title>
<meta name="description" content="Summary of {title}">
{modified_meta}{extra_head}</head>
<body><main><h1>{title}</h1>
<div class="article-content"><p>{body}</p></div>
</main></body></html>"""


def build_site(
    http: FakeHttpClient,
    base: str = BASE_URL,
    categories: int = 2,
    per_category: int = 5,
    modified: str | None = MODIFIED,
) -> list[str]:
    """Register a generic help centre with categories of articles. Returns article URLs."""
    index_links = "".join(
        f'<a href="/collections/c{c}">Category {c}</a>' for c in range(1, categories + 1)
    )
    http.add(f"{base}/", f"<html><body><nav>{index_links}</nav></body></html>")
    urls = []
    for c in range(1, categories + 1):
        links = "".join(
            f'<li><a href="/articles/c{c}-a{a}">Article {c}.{a}</a></li>' for a in range(1, per_category + 1)
        )
        http.add(f"{base}/collections/c{c}", f"<html><body><ul>{links}</ul></body></html>")
        for a in range(1, per_category + 1):
            url = f"{base}/articles/c{c}-a{a}"
            http.add(url, article_html(f"Article {c}.{a}", modified=modified))
            urls.append(url)
    return urls


def make_source(source_id: str = "s1", base_url: str = f"{BASE_URL}/", **kwargs) -> DataSource:
    return DataSource(
        id=source_id,
        name=kwargs.pop("name", source_id.upper()),
        platform=kwargs.pop("platform", Platform.GENERIC),
        base_url=base_url,
        **kwargs,
    )


def make_article(source_id: str = "s1", path: str = "/articles/1", **kwargs) -> Article:
    url = canonical_url(f"{BASE_URL}{path}")
    return Article(
        id=article_id(source_id, url),
        source_id=source_id,
        url=url,
        title=kwargs.pop("title", "How to configure workspace settings"),
        **kwargs,
    )


@pytest.fixture
def temp_db_path():
    """Create a temporary database file path."""
    with tempfile.NamedTemporaryFile(suffix=".db", delete=False) as f:
        yield Path(f.name)
    # Cleanup
    if os.path.exists(f.name):
        os.unlink(f.name)


@pytest.fixture
def test_db(temp_db_path):
    """Create a test database instance."""
    db = Database(temp_db_path)
    yield db


@pytest.fixture
def registry(test_db):
    """Registry with one generic source 's1'."""
    registry = SourceRegistry(test_db.sources)
    registry.register(make_source("s1"))
    return registry


@pytest.fixture
def http():
    return FakeHttpClient()


@pytest.fixture
def pipeline(http):
    """Pipeline with no backoff delay and no per-host spacing."""
    return FetchPipeline(
        http,
        concurrency=4,
        limiter=HostRateLimiter(max_per_host=4, min_interval=0),
        retry_base_delay=0,
        resolve_dns=False,
    )


@pytest.fixture
def orchestrator(registry, test_db, pipeline):
    return SyncOrchestrator(registry, test_db.articles, pipeline, sync_concurrency=2, sync_timeout=30)
