"""
Tests for the audit engine, rule evaluator and health score.
"""

import time

import pytest

from kbhealth.audit_engine import AuditEngine, compute_health_score, filter_by_severity
from kbhealth.exceptions import NotFound
from kbhealth.models import Issue, Severity
from kbhealth.rules import ENGINE_CATEGORY, AuditRule, RuleCatalog, RuleEvaluator, create_default_catalog

from conftest import AS_OF, make_article


def stub_rule(rule_id: str, severity: str, issue_count: int = 1, sleep: float = 0.0, error: Exception | None = None):
    """Rule that emits issue_count fixed issues, optionally after sleeping or by raising."""

    class StubRule(AuditRule):
        ID = rule_id
        NAME = rule_id.replace("-", " ").title()
        DESCRIPTION = "Stub rule for tests"
        CATEGORY = rule_id
        SEVERITY = Severity(severity)

        def evaluate(self, snapshot):
            if sleep:
                time.sleep(sleep)
            if error is not None:
                raise error
            return [self.issue(f"finding {n}", "Fix it.") for n in range(issue_count)]

    return StubRule()


def issue(severity: Severity) -> Issue:
    return Issue(rule_id="r", category="c", severity=severity, description="d", suggestion="s")


@pytest.fixture
def evaluator():
    evaluator = RuleEvaluator(timeout=0.2)
    yield evaluator
    evaluator.shutdown()


@pytest.fixture
def article(registry, test_db):
    article = make_article(content="Short text.")
    test_db.articles.upsert(article)
    return article


def make_engine(test_db, evaluator, rules, disabled=()):
    catalog = RuleCatalog(rules, disabled=disabled)
    return AuditEngine(test_db.articles, catalog, evaluator, history=test_db.audits, clock=lambda: AS_OF)


class TestHealthScore:
    """Tests for the severity-weighted score."""

    def test_weights(self):
        """Should subtract 5/15/30/50 per low/medium/high/critical issue."""
        assert compute_health_score([]) == 100
        assert compute_health_score([issue(Severity.LOW)]) == 95
        assert compute_health_score([issue(Severity.MEDIUM)]) == 85
        assert compute_health_score([issue(Severity.HIGH)]) == 70
        assert compute_health_score([issue(Severity.CRITICAL)]) == 50

    def test_clamped_at_zero(self):
        """Should never go below zero."""
        assert compute_health_score([issue(Severity.CRITICAL)] * 3) == 0

    def test_monotonic(self):
        """Should not increase as issues of equal or higher severity are added."""
        issues = []
        previous = compute_health_score(issues)
        for severity in [Severity.LOW, Severity.LOW, Severity.MEDIUM, Severity.HIGH, Severity.CRITICAL]:
            issues.append(issue(severity))
            score = compute_health_score(issues)
            assert 0 <= score <= previous
            previous = score

    def test_order_independent(self):
        """Should give the same score for any issue order."""
        issues = [issue(Severity.HIGH), issue(Severity.LOW), issue(Severity.MEDIUM)]
        assert compute_health_score(issues) == compute_health_score(list(reversed(issues)))


class TestAuditEngine:
    """Tests for auditing stored articles."""

    def test_weighted_scenario(self, test_db, evaluator, article):
        """Should score 80 when medium and low rules fire and another low rule passes."""
        engine = make_engine(test_db, evaluator, [
            stub_rule("content-quality", "medium"),
            stub_rule("freshness", "low"),
            stub_rule("seo", "low", issue_count=0),
        ])

        result = engine.audit(article.id)

        assert result.computed_health_score == 80
        assert result.rules_executed == 3
        assert [i.rule_id for i in result.issues] == ["content-quality", "freshness"]
        assert list(result.per_rule_outcome) == ["content-quality", "freshness", "seo"]
        assert result.per_rule_outcome["seo"].passed is True
        assert result.per_rule_outcome["content-quality"].issue_count == 1
        assert result.audited_at == AS_OF

    def test_issues_keep_rule_then_emission_order(self, test_db, evaluator, article):
        """Should order issues by rule order, then by emission order."""
        engine = make_engine(test_db, evaluator, [
            stub_rule("b-rule", "low", issue_count=2),
            stub_rule("a-rule", "low", issue_count=1),
        ])

        result = engine.audit(article.id)

        assert [(i.rule_id, i.description) for i in result.issues] == [
            ("b-rule", "finding 0"),
            ("b-rule", "finding 1"),
            ("a-rule", "finding 0"),
        ]

    def test_score_written_back(self, test_db, evaluator, article):
        """Should store the health score on the article and record history."""
        engine = make_engine(test_db, evaluator, [stub_rule("freshness", "high")])

        engine.audit(article.id)

        assert test_db.articles.get(article.id).content_health_score == 70
        runs = test_db.audits.recent(article.id)
        assert len(runs) == 1
        assert runs[0].health_score == 70
        assert runs[0].issues_found == 1
        assert runs[0].issues[0]["severity"] == "high"

    def test_unknown_article(self, test_db, evaluator):
        """Should raise NotFound for unknown ids."""
        engine = make_engine(test_db, evaluator, [stub_rule("seo", "low")])
        with pytest.raises(NotFound):
            engine.audit("s1:missing")

    def test_no_enabled_rules_scores_100(self, test_db, evaluator, article):
        """Should return an empty result with a perfect score when every rule is disabled."""
        engine = make_engine(test_db, evaluator, [stub_rule("seo", "low")], disabled=["seo"])

        result = engine.audit(article.id)

        assert result.rules_executed == 0
        assert result.issues == ()
        assert result.computed_health_score == 100

    def test_timed_out_rule_becomes_engine_issue(self, test_db, evaluator, article):
        """Should contain a slow rule as one low engine issue and keep auditing."""
        engine = make_engine(test_db, evaluator, [
            stub_rule("slow", "critical", sleep=1.0),
            stub_rule("seo", "low"),
        ])

        result = engine.audit(article.id)

        assert result.rules_executed == 2
        slow_issue = result.issues[0]
        assert slow_issue.category == ENGINE_CATEGORY
        assert slow_issue.severity == Severity.LOW
        assert "timed out" in slow_issue.description
        assert result.per_rule_outcome["slow"].timed_out is True
        assert result.computed_health_score == 90

    def test_failing_rule_becomes_engine_issue(self, test_db, evaluator, article):
        """Should turn a rule exception into a low engine issue."""
        engine = make_engine(test_db, evaluator, [stub_rule("broken", "high", error=ValueError("bad config"))])

        result = engine.audit(article.id)

        assert len(result.issues) == 1
        assert result.issues[0].category == ENGINE_CATEGORY
        assert "Rule execution failed: bad config" in result.issues[0].description
        assert result.computed_health_score == 95

    def test_idempotent_with_default_rules(self, test_db, evaluator, registry):
        """Should produce identical issues and score when auditing unchanged content twice."""
        article = make_article(
            path="/articles/idempotent",
            content="# Setup\n\nSee [click here](http://example.com) for the latest version.\n\n![](a.png)",
        )
        test_db.articles.upsert(article)
        engine = AuditEngine(
            test_db.articles, create_default_catalog(disabled=[]), evaluator, clock=lambda: AS_OF
        )

        first = engine.audit(article.id)
        second = engine.audit(article.id)

        assert first.issues == second.issues
        assert first.computed_health_score == second.computed_health_score
        assert first.rules_executed == 7
        assert 0 <= first.computed_health_score < 100

    def test_audit_many_reports_missing(self, test_db, evaluator, article):
        """Should audit known ids and list unknown ones."""
        engine = make_engine(test_db, evaluator, [stub_rule("seo", "low")])

        batch = engine.audit_many([article.id, "s1:missing"])

        assert batch.total_articles == 1
        assert batch.missing == ["s1:missing"]
        assert batch.average_health_score == 95.0

    def test_audit_source(self, test_db, evaluator, article):
        """Should audit every stored article of the source."""
        test_db.articles.upsert(make_article(path="/articles/2", content="More text."))
        engine = make_engine(test_db, evaluator, [stub_rule("seo", "medium")])

        batch = engine.audit_source("s1")

        assert batch.total_articles == 2
        assert batch.total_issues == 2
        assert batch.average_health_score == 85.0


class TestRuleCatalog:
    """Tests for the rule catalog."""

    def test_default_order(self):
        """Should list the built-in rules in evaluation order."""
        catalog = create_default_catalog(disabled=[])
        assert [r.id for r in catalog.list_rules()] == [
            "content-quality",
            "freshness",
            "seo",
            "accessibility",
            "structure",
            "broken-links",
            "duplicate-content",
        ]

    def test_category_counts(self):
        """Should count total and enabled rules per category."""
        catalog = create_default_catalog(disabled=["duplicate-content"])
        counts = catalog.category_counts()
        assert counts["content-quality"] == {"total": 2, "enabled": 1}
        assert counts["technical"] == {"total": 1, "enabled": 1}
        assert sum(c["total"] for c in counts.values()) == 7

    def test_set_enabled(self):
        """Should toggle rules and reject unknown ids."""
        catalog = create_default_catalog(disabled=[])
        assert catalog.set_enabled("seo", False).enabled is False
        assert "seo" not in [r.ID for r in catalog.enabled_rules()]
        with pytest.raises(NotFound):
            catalog.set_enabled("spelling", True)

    def test_snapshot_is_immutable(self):
        """Should not change a rule snapshot taken before a toggle."""
        catalog = create_default_catalog(disabled=[])
        snapshot = catalog.enabled_rules()
        catalog.set_enabled("freshness", False)
        assert "freshness" in [r.ID for r in snapshot]

    def test_duplicate_registration(self):
        """Should refuse to register a rule id twice."""
        catalog = RuleCatalog([stub_rule("seo", "low")])
        with pytest.raises(ValueError):
            catalog.register(stub_rule("seo", "low"))

    def test_update_config_replaces_rule(self):
        """Should apply new settings to later snapshots and keep earlier ones unchanged."""
        catalog = create_default_catalog(disabled=[])
        before = catalog.enabled_rules()

        definition = catalog.update_config("seo", min_word_count=50)

        after = catalog.enabled_rules()
        assert definition.config["min_word_count"] == 50
        assert definition.config["max_keyword_density"] == before[2].config["max_keyword_density"]
        assert before[2].config["min_word_count"] == 300
        assert after[2].config["min_word_count"] == 50
        assert [r.ID for r in after] == [r.ID for r in before]
        assert catalog.get("seo").config["min_word_count"] == 50

    def test_update_config_keeps_severity_and_enabled(self):
        """Should keep the rule's severity and enabled flag."""
        catalog = RuleCatalog([stub_rule("seo", "high")], disabled=["seo"])
        catalog.update_config("seo")
        definition = catalog.get("seo")
        assert definition.severity == Severity.HIGH
        assert definition.enabled is False

    def test_update_config_rejects_unknown(self):
        """Should reject unknown rules and unknown settings."""
        catalog = create_default_catalog(disabled=[])
        with pytest.raises(NotFound):
            catalog.update_config("spelling", min_word_count=10)
        with pytest.raises(ValueError, match="max_words"):
            catalog.update_config("seo", max_words=10)
        assert catalog.get("seo").config["min_word_count"] == 300


class TestSeverityFilter:
    """Tests for hiding low-severity issues from a result."""

    def test_filter_keeps_score_and_outcomes(self, test_db, evaluator, article):
        """Should drop issues below the threshold without changing the score."""
        engine = make_engine(test_db, evaluator, [
            stub_rule("content-quality", "medium"),
            stub_rule("freshness", "low", issue_count=2),
            stub_rule("seo", "critical"),
        ])
        result = engine.audit(article.id)

        filtered = filter_by_severity(result, "medium")

        assert [i.rule_id for i in filtered.issues] == ["content-quality", "seo"]
        assert filtered.computed_health_score == result.computed_health_score == 25
        assert filtered.per_rule_outcome == result.per_rule_outcome
        assert len(result.issues) == 4

    def test_filter_thresholds(self, test_db, evaluator, article):
        """Should keep everything at low and only critical issues at critical."""
        engine = make_engine(test_db, evaluator, [
            stub_rule("freshness", "low"),
            stub_rule("seo", "critical"),
        ])
        result = engine.audit(article.id)

        assert filter_by_severity(result, Severity.LOW).issues == result.issues
        assert [i.severity for i in filter_by_severity(result, "critical").issues] == [Severity.CRITICAL]
        with pytest.raises(ValueError):
            filter_by_severity(result, "urgent")
