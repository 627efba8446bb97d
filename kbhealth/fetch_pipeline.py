"""
Fetch Pipeline - walk a knowledge base and fetch its articles.

Handles:
- Index -> category listings -> article pages, via the source's platform adapter
- Per-category cap on new article URLs
- Dedup by canonical URL across all listings of a run
- Bounded worker pool plus per-host request limits
- Retry with exponential backoff and full jitter for transient failures
- Conditional re-fetch (If-Modified-Since, stored last_modified_at comparison)
- Cooperative cancellation: stop admitting work, let in-flight items finish
"""

import asyncio
import logging
from datetime import datetime
from typing import AsyncIterator, Mapping

from tenacity import (
    AsyncRetrying,
    before_sleep_log,
    retry_if_exception_type,
    stop_after_attempt,
    wait_random_exponential,
)

from .config import config
from .content import format_http_date
from .exceptions import FatalSourceError, FetchError, PermanentFetchError, TransientFetchError
from .http_client import HostRateLimiter
from .interfaces import HttpClient, HttpResponse
from .models import Article, DataSource, FetchOptions, FetchOutcome
from .platforms import ArticlePage, CategoryLink, ListingEntry, PlatformAdapter, get_adapter
from .urls import article_id, validate_url

logger = logging.getLogger(__name__)


class FetchPipeline:
    """Fetches articles from one source with bounded concurrency and retries."""

    def __init__(
        self,
        http: HttpClient,
        concurrency: int | None = None,
        limiter: HostRateLimiter | None = None,
        retry_attempts: int | None = None,
        retry_base_delay: float | None = None,
        retry_max_delay: float | None = None,
        check_urls: bool | None = None,
        resolve_dns: bool = True,
    ):
        self.http = http
        self.concurrency = concurrency or config.FETCH_CONCURRENCY
        self.limiter = limiter or HostRateLimiter()
        self.retry_attempts = config.RETRY_ATTEMPTS if retry_attempts is None else retry_attempts
        self.retry_base_delay = config.RETRY_BASE_DELAY_SECONDS if retry_base_delay is None else retry_base_delay
        self.retry_max_delay = config.RETRY_MAX_DELAY_SECONDS if retry_max_delay is None else retry_max_delay
        self.check_urls = (not config.ALLOW_PRIVATE_URLS) if check_urls is None else check_urls
        self.resolve_dns = resolve_dns

    async def fetch(
        self,
        source: DataSource,
        options: FetchOptions | None = None,
        known: Mapping[str, datetime | None] | None = None,
        cancel: asyncio.Event | None = None,
    ) -> AsyncIterator[FetchOutcome]:
        """
        Yield one FetchOutcome per discovered article URL, in completion order.

        Args:
            source: The source to walk
            options: Per-run cap and force_refresh flag
            known: Stored articles of this source, canonical URL -> last_modified_at
            cancel: When set, no further work is admitted

        Raises:
            FatalSourceError: If the index cannot be fetched or yields nothing
        """
        options = options or FetchOptions()
        known = known or {}
        cancel = cancel or asyncio.Event()
        adapter = get_adapter(source.platform)
        cap = (
            options.max_articles_per_category
            or source.max_articles_per_category
            or config.MAX_ARTICLES_PER_CATEGORY
        )

        try:
            response = await self._get(source.base_url)
            index = adapter.parse_index(response.url or source.base_url, response.text)
        except FetchError as e:
            raise FatalSourceError(f"Source index unavailable: {e}") from e
        except Exception as e:
            raise FatalSourceError(f"Source index could not be parsed: {e}") from e

        if not index.categories and not index.entries:
            raise FatalSourceError("No categories or article links found on source index")

        logger.info(
            f"Source {source.id}: {len(index.categories)} categories, "
            f"{len(index.entries)} index articles, cap {cap} per category"
        )

        queue: asyncio.Queue[FetchOutcome | None] = asyncio.Queue()
        producer = asyncio.create_task(
            self._produce(source, adapter, index.categories, index.entries, cap, options, known, cancel, queue)
        )
        try:
            while True:
                outcome = await queue.get()
                if outcome is None:
                    break
                yield outcome
            await producer
        finally:
            if not producer.done():
                producer.cancel()
                try:
                    await producer
                except asyncio.CancelledError:
                    pass

    async def _produce(
        self,
        source: DataSource,
        adapter: PlatformAdapter,
        categories: list[CategoryLink],
        index_entries: list[ListingEntry],
        cap: int,
        options: FetchOptions,
        known: Mapping[str, datetime | None],
        cancel: asyncio.Event,
        queue: "asyncio.Queue[FetchOutcome | None]",
    ) -> None:
        """Walk listings and admit article fetches into the worker pool."""
        slots = asyncio.Semaphore(self.concurrency)
        workers: set[asyncio.Task] = set()
        seen: set[str] = set()

        async def worker(entry: ListingEntry, category: str | None):
            try:
                outcome = await self._fetch_article(source, adapter, entry, category, options, known)
            except Exception as e:
                logger.exception(f"Unexpected failure fetching {entry.url}")
                outcome = FetchOutcome.failed(entry.url, f"Unexpected error: {e}")
            finally:
                slots.release()
            await queue.put(outcome)

        groups: list[tuple[str | None, CategoryLink | None, list[ListingEntry] | None]] = [
            (category.name, category, category.entries) for category in categories
        ]
        if index_entries:
            groups.append((None, None, index_entries))

        try:
            for name, category, entries in groups:
                if cancel.is_set():
                    break
                if entries is None:
                    entries = await self._load_listing(adapter, category, queue)
                    if entries is None:
                        continue

                taken = 0
                for entry in entries:
                    if taken >= cap:
                        break
                    if entry.url in seen:
                        continue
                    # Admission point: wait for a free worker slot
                    await slots.acquire()
                    if cancel.is_set():
                        slots.release()
                        break
                    seen.add(entry.url)
                    taken += 1
                    task = asyncio.create_task(worker(entry, name))
                    workers.add(task)
                    task.add_done_callback(workers.discard)

            if workers:
                await asyncio.gather(*list(workers))
        finally:
            for task in list(workers):
                task.cancel()
            await queue.put(None)

        if cancel.is_set():
            logger.info(f"Source {source.id}: fetch cancelled after {len(seen)} articles admitted")

    async def _load_listing(
        self,
        adapter: PlatformAdapter,
        category: CategoryLink,
        queue: "asyncio.Queue[FetchOutcome | None]",
    ) -> list[ListingEntry] | None:
        """Fetch and parse one category listing; failures become an error outcome."""
        try:
            response = await self._get(category.url)
            return adapter.parse_listing(response.url or category.url, response.text)
        except FetchError as e:
            logger.warning(f"Category listing failed {category.url}: {e}")
            await queue.put(FetchOutcome.failed(category.url, str(e), transient=e.transient))
        except Exception as e:
            logger.warning(f"Category listing unparseable {category.url}: {e}")
            await queue.put(FetchOutcome.failed(category.url, f"Parse failure: {e}"))
        return None

    async def _fetch_article(
        self,
        source: DataSource,
        adapter: PlatformAdapter,
        entry: ListingEntry,
        category: str | None,
        options: FetchOptions,
        known: Mapping[str, datetime | None],
    ) -> FetchOutcome:
        url = entry.url
        stored_modified = known.get(url)
        conditional = not options.force_refresh and url in known and stored_modified is not None

        # Listing already told us the article is unchanged
        if conditional and entry.last_modified_at == stored_modified:
            return FetchOutcome.unchanged(url)

        headers = {}
        if conditional:
            headers["If-Modified-Since"] = format_http_date(stored_modified)

        try:
            response = await self._get(url, headers)
        except FetchError as e:
            logger.warning(f"Article fetch failed {url}: {e}")
            return FetchOutcome.failed(url, str(e), transient=e.transient)

        if response.status == 304:
            return FetchOutcome.unchanged(url)

        try:
            page = adapter.parse_article(response.url or url, response.text, response.headers)
        except PermanentFetchError as e:
            return FetchOutcome.failed(url, str(e))
        except Exception as e:
            logger.warning(f"Article parse failed {url}: {e}")
            return FetchOutcome.failed(url, f"Parse failure: {e}")

        last_modified = page.last_modified_at or entry.last_modified_at
        if conditional and last_modified == stored_modified:
            return FetchOutcome.unchanged(url)

        return FetchOutcome.fetched(self._build_article(source, url, category, page, last_modified))

    def _build_article(
        self,
        source: DataSource,
        url: str,
        category: str | None,
        page: ArticlePage,
        last_modified: datetime | None,
    ) -> Article:
        tags = set(page.tags)
        if category:
            tags.add(category.strip().lower().replace(" ", "-"))
        return Article(
            id=article_id(source.id, url),
            source_id=source.id,
            url=url,
            title=page.title,
            content=page.content,
            summary=page.summary,
            category=category,
            tags=frozenset(tags),
            last_modified_at=last_modified,
            author=page.author,
            publication_status=page.publication_status,
            view_count=page.view_count,
            helpful_votes=page.helpful_votes,
            last_reviewed_at=page.last_reviewed_at,
        )

    async def _get(self, url: str, headers: Mapping[str, str] | None = None) -> HttpResponse:
        """GET with SSRF check, per-host limit and retry of transient failures."""
        if self.check_urls:
            if self.resolve_dns:
                await asyncio.to_thread(validate_url, url, True)
            else:
                validate_url(url, resolve_dns=False)

        response = None
        async for attempt in AsyncRetrying(
            stop=stop_after_attempt(self.retry_attempts + 1),
            wait=wait_random_exponential(multiplier=self.retry_base_delay, max=self.retry_max_delay),
            retry=retry_if_exception_type(TransientFetchError),
            before_sleep=before_sleep_log(logger, logging.DEBUG),
            reraise=True,
        ):
            with attempt:
                async with self.limiter.slot(url):
                    response = await self.http.get(url, headers)
        return response
