"""
Pydantic models for the core-exposed operations.
"""

from typing import Any

from pydantic import BaseModel, Field

from .database.models import DBAuditRun
from .models import (
    AuditResult,
    BatchAuditResult,
    DataSource,
    Issue,
    Platform,
    RuleDefinition,
    SyncResult,
)


# ─────────────────────────────────────────────────────────────
# Source Schemas
# ─────────────────────────────────────────────────────────────

class AddSourceRequest(BaseModel):
    """Request to register a knowledge-base source."""
    id: str = Field(min_length=1, max_length=64, pattern=r"^[A-Za-z0-9_.-]+$")
    name: str = Field(min_length=1)
    base_url: str
    platform: Platform = Platform.GENERIC
    enabled: bool = True
    max_articles_per_category: int | None = Field(default=None, ge=1)
    sync_timeout_seconds: float | None = Field(default=None, gt=0)


class SourceResponse(BaseModel):
    """Source configuration and sync status."""
    id: str
    name: str
    platform: str
    base_url: str
    enabled: bool
    status: str
    last_sync_at: str | None
    sync_count: int
    error_count: int
    articles_count: int
    last_error: str | None = None

    @classmethod
    def from_domain(cls, source: DataSource) -> "SourceResponse":
        return cls(
            id=source.id,
            name=source.name,
            platform=source.platform.value,
            base_url=source.base_url,
            enabled=source.enabled,
            status=source.status.value,
            last_sync_at=source.last_sync_at.isoformat() if source.last_sync_at else None,
            sync_count=source.sync_count,
            error_count=source.error_count,
            articles_count=source.articles_count,
            last_error=source.last_error,
        )


class SourceStatusResponse(BaseModel):
    """All sources with totals."""
    sources: list[SourceResponse]
    total_sources: int
    enabled_sources: int


# ─────────────────────────────────────────────────────────────
# Sync Schemas
# ─────────────────────────────────────────────────────────────

class SyncResultResponse(BaseModel):
    """Outcome of one source's sync run."""
    source_id: str
    status: str
    articles_found: int
    articles_upserted: int
    articles_unchanged: int
    errors: int
    error_details: list[str] = []
    duration_ms: float
    message: str | None = None

    @classmethod
    def from_domain(cls, result: SyncResult) -> "SyncResultResponse":
        return cls(
            source_id=result.source_id,
            status=result.status,
            articles_found=result.articles_found,
            articles_upserted=result.articles_upserted,
            articles_unchanged=result.articles_unchanged,
            errors=result.errors,
            error_details=list(result.error_details),
            duration_ms=result.duration_ms,
            message=result.message,
        )


# ─────────────────────────────────────────────────────────────
# Audit Schemas
# ─────────────────────────────────────────────────────────────

class IssueResponse(BaseModel):
    """One audit finding."""
    rule_id: str
    category: str
    severity: str
    description: str
    suggestion: str
    line: int | None = None
    column: int | None = None

    @classmethod
    def from_domain(cls, issue: Issue) -> "IssueResponse":
        return cls(
            rule_id=issue.rule_id,
            category=issue.category,
            severity=issue.severity.value,
            description=issue.description,
            suggestion=issue.suggestion,
            line=issue.location.line if issue.location else None,
            column=issue.location.column if issue.location else None,
        )


class RuleOutcomeResponse(BaseModel):
    rule_id: str
    passed: bool
    issue_count: int
    duration_ms: float
    timed_out: bool = False


class AuditResultResponse(BaseModel):
    """Result of auditing one article."""
    article_id: str
    rules_executed: int
    issues: list[IssueResponse]
    rule_results: list[RuleOutcomeResponse]
    execution_duration_ms: float
    health_score: int
    audited_at: str

    @classmethod
    def from_domain(cls, result: AuditResult) -> "AuditResultResponse":
        return cls(
            article_id=result.article_id,
            rules_executed=result.rules_executed,
            issues=[IssueResponse.from_domain(issue) for issue in result.issues],
            rule_results=[
                RuleOutcomeResponse(
                    rule_id=rule_id,
                    passed=outcome.passed,
                    issue_count=outcome.issue_count,
                    duration_ms=outcome.duration_ms,
                    timed_out=outcome.timed_out,
                )
                for rule_id, outcome in result.per_rule_outcome.items()
            ],
            execution_duration_ms=result.execution_duration_ms,
            health_score=result.computed_health_score,
            audited_at=result.audited_at.isoformat(),
        )


class BatchAuditResponse(BaseModel):
    """Results of auditing several articles."""
    results: list[AuditResultResponse]
    missing: list[str] = []
    total_articles: int
    total_issues: int
    average_health_score: float | None

    @classmethod
    def from_domain(cls, batch: BatchAuditResult) -> "BatchAuditResponse":
        return cls(
            results=[AuditResultResponse.from_domain(r) for r in batch.results],
            missing=list(batch.missing),
            total_articles=batch.total_articles,
            total_issues=batch.total_issues,
            average_health_score=batch.average_health_score,
        )


class AuditRunResponse(BaseModel):
    """One stored audit run."""
    id: int
    article_id: str
    status: str
    rules_executed: int
    issues_found: int
    health_score: int | None
    duration_ms: float | None
    created_at: str

    @classmethod
    def from_db(cls, run: DBAuditRun) -> "AuditRunResponse":
        return cls(
            id=run.id,
            article_id=run.article_id,
            status=run.status,
            rules_executed=run.rules_executed,
            issues_found=run.issues_found,
            health_score=run.health_score,
            duration_ms=run.duration_ms,
            created_at=run.created_at.isoformat(),
        )


# ─────────────────────────────────────────────────────────────
# Rule Catalog Schemas
# ─────────────────────────────────────────────────────────────

class RuleResponse(BaseModel):
    id: str
    name: str
    description: str
    category: str
    severity: str
    enabled: bool
    config: dict[str, Any] = Field(default_factory=dict)

    @classmethod
    def from_domain(cls, rule: RuleDefinition) -> "RuleResponse":
        return cls(
            id=rule.id,
            name=rule.name,
            description=rule.description,
            category=rule.category,
            severity=rule.severity.value,
            enabled=rule.enabled,
            config=dict(rule.config),
        )


class CategoryCount(BaseModel):
    total: int
    enabled: int


class RuleCatalogResponse(BaseModel):
    """Rule catalog with per-category counts."""
    rules: list[RuleResponse]
    categories: dict[str, CategoryCount]
