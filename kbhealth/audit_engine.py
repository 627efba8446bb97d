"""
Audit Engine - run the enabled rules against an article and score it.

Handles:
- Loading the article once and snapshotting the enabled rules
- Per-rule outcomes in catalog order
- Severity-weighted health score, written back to the article store
- Optional audit history
- Batch audits by id list or by source
"""

import logging
import time
from dataclasses import replace
from datetime import datetime
from typing import Callable, Iterable

from .database.audit_repository import AuditRepository
from .exceptions import NoEnabledRules, NotFound, require_article
from .interfaces import ArticleStore
from .models import Article, AuditResult, BatchAuditResult, Issue, RuleOutcome, Severity, utcnow
from .rules import ArticleSnapshot, RuleCatalog, RuleEvaluator

logger = logging.getLogger(__name__)


def compute_health_score(issues: Iterable[Issue]) -> int:
    """100 minus the summed severity weights, clamped to [0, 100]."""
    deduction = sum(issue.severity.weight for issue in issues)
    return max(0, min(100, 100 - deduction))


def filter_by_severity(result: AuditResult, min_severity: Severity | str) -> AuditResult:
    """
    View of a result keeping only issues at or above min_severity.

    The health score and per-rule outcomes still reflect every issue found.
    """
    threshold = Severity(min_severity).rank
    return replace(result, issues=tuple(i for i in result.issues if i.severity.rank >= threshold))


class AuditEngine:
    """Audits articles against the rule catalog."""

    def __init__(
        self,
        store: ArticleStore,
        catalog: RuleCatalog,
        evaluator: RuleEvaluator | None = None,
        history: AuditRepository | None = None,
        clock: Callable[[], datetime] = utcnow,
    ):
        self.store = store
        self.catalog = catalog
        self.evaluator = evaluator or RuleEvaluator()
        self.history = history
        self.clock = clock

    def audit(self, article_id: str) -> AuditResult:
        """
        Audit one article.

        With no enabled rules the result has zero issues and a score of 100.

        Raises:
            NotFound: If the article id is unknown to the store
        """
        article = require_article(self.store.get(article_id), article_id)
        return self._audit_article(article)

    def audit_many(self, article_ids: Iterable[str]) -> BatchAuditResult:
        """Audit several articles; unknown ids are reported in `missing`."""
        batch = BatchAuditResult()
        for article_id in article_ids:
            try:
                batch.results.append(self.audit(article_id))
            except NotFound:
                batch.missing.append(article_id)
        return batch

    def audit_source(self, source_id: str) -> BatchAuditResult:
        """Audit every stored article of a source."""
        batch = BatchAuditResult()
        for article in self.store.list_by_source(source_id):
            batch.results.append(self._audit_article(article))
        logger.info(
            f"Audited {batch.total_articles} articles of {source_id}: "
            f"{batch.total_issues} issues, average score {batch.average_health_score}"
        )
        return batch

    def _audit_article(self, article: Article) -> AuditResult:
        started = time.perf_counter()
        snapshot = ArticleSnapshot.capture(article, as_of=self.clock())

        try:
            rules = self.catalog.enabled_rules()
        except NoEnabledRules as e:
            logger.info(f"{e}; article {article.id} scores 100")
            rules = ()

        issues: list[Issue] = []
        per_rule: dict[str, RuleOutcome] = {}
        for rule in rules:
            evaluation = self.evaluator.evaluate(rule, snapshot)
            issues.extend(evaluation.issues)
            per_rule[rule.ID] = RuleOutcome(
                passed=not evaluation.issues,
                issue_count=len(evaluation.issues),
                duration_ms=evaluation.duration_ms,
                timed_out=evaluation.timed_out,
            )

        score = compute_health_score(issues)
        result = AuditResult(
            article_id=article.id,
            rules_executed=len(rules),
            issues=tuple(issues),
            per_rule_outcome=per_rule,
            execution_duration_ms=round((time.perf_counter() - started) * 1000, 3),
            computed_health_score=score,
            audited_at=snapshot.as_of,
        )

        self.store.update_health_score(article.id, score)
        if self.history is not None:
            self.history.record(result)
        logger.debug(f"Audited {article.id}: {len(issues)} issues, score {score}")
        return result
