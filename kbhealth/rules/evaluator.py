"""
Rule Evaluator - run one rule against one article within a time budget.

A rule that exceeds its budget or raises is contained: the audit gets one
synthetic low-severity issue in the "engine" category instead of an exception.
"""

import logging
import time
from concurrent.futures import ThreadPoolExecutor
from concurrent.futures import TimeoutError as FuturesTimeout
from dataclasses import dataclass

from ..config import config
from ..exceptions import RuleTimeout
from ..models import Issue, Severity
from .base import ArticleSnapshot, AuditRule

logger = logging.getLogger(__name__)

ENGINE_CATEGORY = "engine"


@dataclass(frozen=True)
class RuleEvaluation:
    issues: tuple[Issue, ...]
    duration_ms: float
    timed_out: bool = False
    failed: bool = False


def _run_rule(rule: AuditRule, snapshot: ArticleSnapshot) -> tuple[Issue, ...]:
    issues = tuple(rule.evaluate(snapshot))
    for issue in issues:
        if not isinstance(issue, Issue):
            raise TypeError(f"Rule {rule.ID} returned {type(issue).__name__}, expected Issue")
    return issues


class RuleEvaluator:
    """Executes rules on a shared worker pool with a per-evaluation timeout."""

    def __init__(self, timeout: float | None = None, max_workers: int = 8):
        self.timeout = config.RULE_TIMEOUT_SECONDS if timeout is None else timeout
        self._executor = ThreadPoolExecutor(max_workers=max_workers, thread_name_prefix="rule-eval")

    def evaluate(self, rule: AuditRule, snapshot: ArticleSnapshot) -> RuleEvaluation:
        started = time.perf_counter()
        future = self._executor.submit(_run_rule, rule, snapshot)
        try:
            try:
                issues = future.result(timeout=self.timeout)
            except FuturesTimeout:
                future.cancel()
                raise RuleTimeout(f"Rule timed out after {self.timeout:g}s")
        except RuleTimeout as e:
            logger.warning(f"Rule {rule.ID} on {snapshot.article.id}: {e}")
            return RuleEvaluation(
                issues=(self._engine_issue(rule, str(e)),),
                duration_ms=self._elapsed(started),
                timed_out=True,
            )
        except Exception as e:
            logger.exception(f"Rule {rule.ID} failed on {snapshot.article.id}")
            return RuleEvaluation(
                issues=(self._engine_issue(rule, f"Rule execution failed: {e}"),),
                duration_ms=self._elapsed(started),
                failed=True,
            )
        return RuleEvaluation(issues=issues, duration_ms=self._elapsed(started))

    def shutdown(self) -> None:
        # Timed-out rules may still occupy a worker; do not wait for them
        self._executor.shutdown(wait=False, cancel_futures=True)

    def _engine_issue(self, rule: AuditRule, message: str) -> Issue:
        return Issue(
            rule_id=rule.ID,
            category=ENGINE_CATEGORY,
            severity=Severity.LOW,
            description=f"{rule.NAME}: {message}",
            suggestion="Re-run the audit; if it persists, check the rule configuration.",
        )

    def _elapsed(self, started: float) -> float:
        return round((time.perf_counter() - started) * 1000, 3)
