"""
Knowledge base service - the operations exposed to front ends.

Wires the SQLite stores, source registry, fetch pipeline, sync orchestrator,
rule catalog and audit engine together, and converts domain results into
pydantic response models.
"""

import asyncio
import logging
from typing import Any

from .audit_engine import AuditEngine, filter_by_severity
from .config import config
from .database import Database
from .exceptions import require_article
from .fetch_pipeline import FetchPipeline
from .http_client import AiohttpClient
from .interfaces import HttpClient
from .models import DataSource, FetchOptions, Severity
from .rules import RuleCatalog, RuleEvaluator, create_default_catalog
from .schemas import (
    AddSourceRequest,
    AuditResultResponse,
    AuditRunResponse,
    BatchAuditResponse,
    CategoryCount,
    RuleCatalogResponse,
    RuleResponse,
    SourceResponse,
    SourceStatusResponse,
    SyncResultResponse,
)
from .source_registry import SourceRegistry
from .sync_orchestrator import SyncOrchestrator
from .urls import validate_url

logger = logging.getLogger(__name__)


class KnowledgeBaseService:
    """Facade over sync and audit for one database."""

    def __init__(
        self,
        db: Database,
        http: HttpClient | None = None,
        pipeline: FetchPipeline | None = None,
        catalog: RuleCatalog | None = None,
        evaluator: RuleEvaluator | None = None,
    ):
        self.db = db
        self.http = http or AiohttpClient()
        self.registry = SourceRegistry(db.sources)
        self.pipeline = pipeline or FetchPipeline(self.http)
        self.orchestrator = SyncOrchestrator(self.registry, db.articles, self.pipeline)
        self.catalog = catalog or create_default_catalog()
        self.evaluator = evaluator or RuleEvaluator()
        self.audit_engine = AuditEngine(db.articles, self.catalog, self.evaluator, history=db.audits)

    @classmethod
    def from_config(cls) -> "KnowledgeBaseService":
        return cls(Database(config.DB_PATH))

    async def close(self) -> None:
        close = getattr(self.http, "close", None)
        if close is not None:
            await close()
        self.evaluator.shutdown()

    # ─────────────────────────────────────────────────────────────
    # Sources
    # ─────────────────────────────────────────────────────────────

    def add_source(self, request: AddSourceRequest) -> SourceResponse:
        """Register a source. Raises SSRFError for internal URLs, ValueError for duplicate ids."""
        if not config.ALLOW_PRIVATE_URLS:
            validate_url(request.base_url, resolve_dns=False)
        source = self.registry.register(DataSource(
            id=request.id,
            name=request.name,
            platform=request.platform,
            base_url=request.base_url,
            enabled=request.enabled,
            max_articles_per_category=request.max_articles_per_category,
            sync_timeout_seconds=request.sync_timeout_seconds,
        ))
        return SourceResponse.from_domain(source)

    def remove_source(self, source_id: str) -> None:
        self.registry.remove(source_id)

    def source_status(self) -> SourceStatusResponse:
        sources = self.registry.list()
        return SourceStatusResponse(
            sources=[SourceResponse.from_domain(s) for s in sources],
            total_sources=len(sources),
            enabled_sources=sum(1 for s in sources if s.enabled),
        )

    def enable_source(self, source_id: str) -> SourceResponse:
        return SourceResponse.from_domain(self.registry.set_enabled(source_id, True))

    def disable_source(self, source_id: str) -> SourceResponse:
        return SourceResponse.from_domain(self.registry.set_enabled(source_id, False))

    # ─────────────────────────────────────────────────────────────
    # Sync
    # ─────────────────────────────────────────────────────────────

    async def sync(
        self,
        source_id: str | None = None,
        force_refresh: bool = False,
        max_articles_per_category: int | None = None,
        cancel: asyncio.Event | None = None,
    ) -> list[SyncResultResponse]:
        """
        Sync one source by id, or every enabled source when source_id is None.

        Raises:
            NotFound: Unknown source id
            AlreadySyncing: The requested source is already syncing
        """
        options = FetchOptions(
            max_articles_per_category=max_articles_per_category,
            force_refresh=force_refresh,
        )
        if source_id is not None:
            result = await self.orchestrator.sync_one(source_id, options, cancel)
            return [SyncResultResponse.from_domain(result)]
        results = await self.orchestrator.sync_all(options, cancel)
        return [SyncResultResponse.from_domain(r) for r in results.values()]

    # ─────────────────────────────────────────────────────────────
    # Audit
    # ─────────────────────────────────────────────────────────────

    def audit_article(self, article_id: str, min_severity: Severity | str | None = None) -> AuditResultResponse:
        """Audit one article; min_severity hides lower issues without changing the score."""
        result = self.audit_engine.audit(article_id)
        if min_severity is not None:
            result = filter_by_severity(result, min_severity)
        return AuditResultResponse.from_domain(result)

    def audit_articles(self, article_ids: list[str], min_severity: Severity | str | None = None) -> BatchAuditResponse:
        batch = self.audit_engine.audit_many(article_ids)
        if min_severity is not None:
            batch.results = [filter_by_severity(result, min_severity) for result in batch.results]
        return BatchAuditResponse.from_domain(batch)

    def audit_source(self, source_id: str) -> BatchAuditResponse:
        self.registry.get(source_id)
        return BatchAuditResponse.from_domain(self.audit_engine.audit_source(source_id))

    def audit_history(self, article_id: str, limit: int = 10) -> list[AuditRunResponse]:
        require_article(self.db.articles.get(article_id), article_id)
        return [AuditRunResponse.from_db(run) for run in self.db.audits.recent(article_id, limit)]

    # ─────────────────────────────────────────────────────────────
    # Rule catalog
    # ─────────────────────────────────────────────────────────────

    def rule_catalog(self) -> RuleCatalogResponse:
        return RuleCatalogResponse(
            rules=[RuleResponse.from_domain(rule) for rule in self.catalog.list_rules()],
            categories={
                category: CategoryCount(**counts)
                for category, counts in self.catalog.category_counts().items()
            },
        )

    def set_rule_enabled(self, rule_id: str, enabled: bool) -> RuleResponse:
        return RuleResponse.from_domain(self.catalog.set_enabled(rule_id, enabled))

    def update_rule_config(self, rule_id: str, settings: dict[str, Any]) -> RuleResponse:
        """Merge settings into a rule. Raises NotFound or ValueError for unknown keys."""
        return RuleResponse.from_domain(self.catalog.update_config(rule_id, **settings))
