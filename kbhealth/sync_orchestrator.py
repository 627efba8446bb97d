"""
Sync Orchestrator - coordinates fetch runs and registry transitions.

Handles:
- Claiming a source through the registry (no waiting when already syncing)
- Driving the fetch pipeline and upserting articles as they arrive
- Classifying the run as success, error or cancelled
- Wall-clock budget per run, routed through the cancellation path
- Sweeping all enabled sources under an overall concurrency cap
"""

import asyncio
import logging
import time

from .config import config
from .exceptions import AlreadySyncing, FatalSourceError, NotFound
from .fetch_pipeline import FetchPipeline
from .interfaces import ArticleStore
from .models import FetchOptions, FetchOutcomeKind, SyncOutcome, SyncResult, SyncTicket
from .source_registry import SourceRegistry

logger = logging.getLogger(__name__)

# error_details is truncated to keep results readable for large runs
MAX_ERROR_DETAILS = 50


class SyncOrchestrator:
    """Runs fetch pipelines for one or all sources."""

    def __init__(
        self,
        registry: SourceRegistry,
        store: ArticleStore,
        pipeline: FetchPipeline,
        sync_concurrency: int | None = None,
        sync_timeout: float | None = None,
    ):
        self.registry = registry
        self.store = store
        self.pipeline = pipeline
        self.sync_concurrency = sync_concurrency or config.SYNC_CONCURRENCY
        self.sync_timeout = sync_timeout or config.SYNC_TIMEOUT_SECONDS

    async def sync_one(
        self,
        source_id: str,
        options: FetchOptions | None = None,
        cancel: asyncio.Event | None = None,
    ) -> SyncResult:
        """
        Sync one source by id, regardless of its enabled flag.

        Raises:
            NotFound: Unknown source id
            AlreadySyncing: Another run owns the source
        """
        ticket = self.registry.begin_sync(source_id)
        options = options or FetchOptions()
        result = SyncResult(source_id=source_id, status=SyncOutcome.SUCCESS.value)
        started = time.monotonic()

        run_cancel = asyncio.Event()
        timed_out = False

        def on_timeout():
            nonlocal timed_out
            timed_out = True
            run_cancel.set()

        # Whatever happens after begin_sync, the ticket is completed exactly once
        outcome = SyncOutcome.ERROR
        error = "Unexpected error"
        budget = self.sync_timeout
        timer = None
        relay = None
        try:
            source = self.registry.get(source_id)
            budget = source.sync_timeout_seconds or self.sync_timeout
            timer = asyncio.get_running_loop().call_later(budget, on_timeout)
            relay = asyncio.create_task(self._relay_cancel(cancel, run_cancel)) if cancel else None
            logger.info(f"Sync started for {source_id} ({source.platform.value}) {source.base_url}")

            known = {article.url: article.last_modified_at for article in self.store.list_by_source(source_id)}
            async for item in self.pipeline.fetch(source, options, known, run_cancel):
                self._record(result, item)

            if run_cancel.is_set():
                outcome = SyncOutcome.CANCELLED
                error = f"Timed out after {budget:g}s" if timed_out else "Cancelled"
            else:
                outcome = SyncOutcome.SUCCESS
                error = None
        except FatalSourceError as e:
            logger.warning(f"Sync failed for {source_id}: {e}")
            outcome = SyncOutcome.ERROR
            error = str(e)
        except asyncio.CancelledError:
            outcome = SyncOutcome.CANCELLED
            error = "Cancelled"
            raise
        except Exception as e:
            logger.exception(f"Unexpected sync failure for {source_id}")
            outcome = SyncOutcome.ERROR
            error = f"Unexpected error: {e}"
        finally:
            if timer is not None:
                timer.cancel()
            if relay is not None:
                relay.cancel()
            self._finish(ticket, result, outcome, error, started)
        return result

    async def sync_all(
        self,
        options: FetchOptions | None = None,
        cancel: asyncio.Event | None = None,
    ) -> dict[str, SyncResult]:
        """Sync every enabled source concurrently; one failure never aborts the others."""
        semaphore = asyncio.Semaphore(self.sync_concurrency)
        sources = [source for source in self.registry.list() if source.enabled]

        async def run(source_id: str) -> SyncResult:
            async with semaphore:
                if cancel is not None and cancel.is_set():
                    return SyncResult(source_id=source_id, status="skipped", message="Cancelled before start")
                try:
                    return await self.sync_one(source_id, options, cancel)
                except AlreadySyncing:
                    return SyncResult(source_id=source_id, status="skipped", message="Already syncing")
                except NotFound:
                    return SyncResult(source_id=source_id, status="skipped", message="Source removed")

        results = await asyncio.gather(*(run(source.id) for source in sources))
        return {result.source_id: result for result in results}

    def _record(self, result: SyncResult, item) -> None:
        if item.kind == FetchOutcomeKind.ARTICLE:
            try:
                self.store.upsert(item.article)
            except Exception as e:
                logger.exception(f"Failed to store article {item.url}")
                self._add_error(result, item.url, f"Store failure: {e}")
                return
            result.articles_found += 1
            result.articles_upserted += 1
        elif item.kind == FetchOutcomeKind.UNCHANGED:
            result.articles_found += 1
            result.articles_unchanged += 1
        else:
            self._add_error(result, item.url, item.error or "unknown error")

    def _add_error(self, result: SyncResult, url: str, message: str) -> None:
        result.errors += 1
        if len(result.error_details) < MAX_ERROR_DETAILS:
            result.error_details.append(f"{url}: {message}")

    def _finish(
        self,
        ticket: SyncTicket,
        result: SyncResult,
        outcome: SyncOutcome,
        error: str | None,
        started: float,
    ) -> SyncResult:
        articles_count = None
        try:
            if outcome != SyncOutcome.ERROR:
                articles_count = self.store.count_by_source(ticket.source_id)
        except Exception:
            logger.exception(f"Could not count articles for {ticket.source_id}; keeping previous count")
        finally:
            self.registry.complete_sync(ticket, outcome, articles_count, error)

        result.status = outcome.value
        result.duration_ms = round((time.monotonic() - started) * 1000, 1)
        if outcome == SyncOutcome.SUCCESS:
            result.message = (
                f"Synced {result.articles_found} articles "
                f"({result.articles_upserted} updated, {result.articles_unchanged} unchanged, "
                f"{result.errors} errors)"
            )
        else:
            result.message = error
        logger.info(f"Sync {result.status} for {ticket.source_id} in {result.duration_ms}ms: {result.message}")
        return result

    async def _relay_cancel(self, external: asyncio.Event, run_cancel: asyncio.Event) -> None:
        await external.wait()
        run_cancel.set()
