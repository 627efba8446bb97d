"""
Domain models - dataclasses for sources, articles, rules and audit results.
"""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class Platform(str, Enum):
    GENERIC = "generic"
    INTERCOM = "intercom"
    ZENDESK = "zendesk"
    FEED = "feed"


class SourceStatus(str, Enum):
    """Sync state machine. Initial state is IDLE; every state except SYNCING can begin a run."""
    IDLE = "idle"
    SYNCING = "syncing"
    SUCCESS = "success"
    ERROR = "error"
    CANCELLED = "cancelled"


class SyncOutcome(str, Enum):
    SUCCESS = "success"
    ERROR = "error"
    CANCELLED = "cancelled"


class Severity(str, Enum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    CRITICAL = "critical"

    @property
    def weight(self) -> int:
        return SEVERITY_WEIGHTS[self]

    @property
    def rank(self) -> int:
        """Position from least (0) to most severe."""
        return list(Severity).index(self)


SEVERITY_WEIGHTS = {
    Severity.LOW: 5,
    Severity.MEDIUM: 15,
    Severity.HIGH: 30,
    Severity.CRITICAL: 50,
}


@dataclass
class DataSource:
    id: str
    name: str
    platform: Platform
    base_url: str
    enabled: bool = True
    status: SourceStatus = SourceStatus.IDLE
    last_sync_at: datetime | None = None
    sync_count: int = 0
    error_count: int = 0
    articles_count: int = 0
    last_error: str | None = None

    # Per-source overrides of the global fetch settings
    max_articles_per_category: int | None = None
    sync_timeout_seconds: float | None = None

    created_at: datetime = field(default_factory=utcnow)


@dataclass
class Article:
    id: str
    source_id: str
    url: str  # canonical
    title: str
    content: str = ""  # lightweight markdown
    summary: str | None = None
    category: str | None = None
    tags: frozenset[str] = frozenset()
    last_modified_at: datetime | None = None
    author: str | None = None
    publication_status: str = "published"
    view_count: int | None = None
    helpful_votes: int | None = None
    last_reviewed_at: datetime | None = None

    # Written only by the audit engine
    content_health_score: int | None = None


@dataclass(frozen=True)
class RuleDefinition:
    """Catalog view of one audit rule."""
    id: str
    name: str
    description: str
    category: str
    severity: Severity
    enabled: bool
    config: dict[str, Any] = field(default_factory=dict)


@dataclass(frozen=True)
class Location:
    line: int
    column: int = 1


@dataclass(frozen=True)
class Issue:
    rule_id: str
    category: str
    severity: Severity
    description: str
    suggestion: str
    location: Location | None = None


@dataclass(frozen=True)
class RuleOutcome:
    passed: bool
    issue_count: int
    duration_ms: float
    timed_out: bool = False


@dataclass(frozen=True)
class AuditResult:
    article_id: str
    rules_executed: int
    issues: tuple[Issue, ...]
    per_rule_outcome: dict[str, RuleOutcome]
    execution_duration_ms: float
    computed_health_score: int
    audited_at: datetime = field(default_factory=utcnow)


@dataclass
class BatchAuditResult:
    results: list[AuditResult] = field(default_factory=list)
    missing: list[str] = field(default_factory=list)

    @property
    def total_articles(self) -> int:
        return len(self.results)

    @property
    def total_issues(self) -> int:
        return sum(len(r.issues) for r in self.results)

    @property
    def average_health_score(self) -> float | None:
        if not self.results:
            return None
        return round(sum(r.computed_health_score for r in self.results) / len(self.results), 1)


@dataclass(frozen=True)
class FetchOptions:
    max_articles_per_category: int | None = None  # None means use the configured default
    force_refresh: bool = False


class FetchOutcomeKind(str, Enum):
    ARTICLE = "article"
    ERROR = "error"
    UNCHANGED = "unchanged"


@dataclass(frozen=True)
class FetchOutcome:
    """One item emitted by a fetch run: an article, an unchanged marker, or an error."""
    kind: FetchOutcomeKind
    url: str
    article: Article | None = None
    error: str | None = None
    transient: bool = False

    @classmethod
    def fetched(cls, article: Article) -> "FetchOutcome":
        return cls(kind=FetchOutcomeKind.ARTICLE, url=article.url, article=article)

    @classmethod
    def unchanged(cls, url: str) -> "FetchOutcome":
        return cls(kind=FetchOutcomeKind.UNCHANGED, url=url)

    @classmethod
    def failed(cls, url: str, error: str, transient: bool = False) -> "FetchOutcome":
        return cls(kind=FetchOutcomeKind.ERROR, url=url, error=error, transient=transient)


@dataclass(frozen=True)
class SyncTicket:
    source_id: str
    token: str
    started_at: datetime


@dataclass
class SyncResult:
    source_id: str
    status: str  # success | error | cancelled | skipped
    articles_found: int = 0
    articles_upserted: int = 0
    articles_unchanged: int = 0
    errors: int = 0
    error_details: list[str] = field(default_factory=list)
    duration_ms: float = 0.0
    message: str | None = None
