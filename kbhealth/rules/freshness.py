"""
Freshness rule - age, review cadence and time-sensitive wording.

Ages are measured against the audit's as_of timestamp, so results are
reproducible for a fixed snapshot. A month is 30 days.
"""

import re

from ..models import Issue, Severity
from .base import ArticleSnapshot, AuditRule

TEMPORAL_KEYWORDS = [
    "last year",
    "this year",
    "currently",
    "at the moment",
    "recently",
    "soon",
    "upcoming",
    "latest version",
    "new feature",
    "beta",
    "coming soon",
]

OUTDATED_TECHNOLOGY = [
    "internet explorer",
    "ie6",
    "ie7",
    "ie8",
    "flash player",
    "adobe flash",
    "silverlight",
    "windows xp",
    "windows vista",
    "windows 7",
    "jquery 1.",
    "angularjs",
    "angular 1.",
    "php 5.",
    "python 2.",
    "node 0.",
    "node 6.",
]

VERSION_REFERENCE = re.compile(r"\b(?:version|v)\s?\d+(?:\.\d+)+\b", re.IGNORECASE)


def _find_terms(text: str, terms: list[str]) -> list[str]:
    lowered = text.lower()
    found = []
    for term in terms:
        # Terms ending in "." are prefixes of a version number
        pattern = rf"\b{re.escape(term)}" + ("" if term.endswith(".") else r"\b")
        if re.search(pattern, lowered):
            found.append(term)
    return found


class FreshnessRule(AuditRule):
    """Flags stale articles and wording that goes out of date."""

    ID = "freshness"
    NAME = "Content Freshness"
    DESCRIPTION = "Checks article age, review dates, time-relative language and outdated technology."
    CATEGORY = "freshness"
    SEVERITY = Severity.MEDIUM
    DEFAULT_CONFIG = {
        "max_age_months": 12,
        "critical_age_months": 18,
        "review_interval_days": 180,
    }

    def evaluate(self, snapshot: ArticleSnapshot) -> list[Issue]:
        cfg = self.config
        article = snapshot.article
        findings: list[tuple[str, str]] = []
        stale = False

        age_days = snapshot.days_since(article.last_modified_at)
        if age_days is not None:
            months = int(age_days // 30)
            if months > cfg["critical_age_months"]:
                stale = True
                findings.append((
                    f"last updated {months} months ago, critically outdated",
                    "Review the article against the current product and update or retire it.",
                ))
            elif months > cfg["max_age_months"]:
                stale = True
                findings.append((
                    f"last updated {months} months ago",
                    "Review the article and confirm it is still accurate.",
                ))

        review_days = snapshot.days_since(article.last_reviewed_at)
        if review_days is not None and review_days > cfg["review_interval_days"]:
            findings.append((
                f"last reviewed {int(review_days)} days ago",
                "Schedule a content review.",
            ))

        temporal = _find_terms(snapshot.plain_text, TEMPORAL_KEYWORDS)
        if temporal:
            findings.append((
                f"time-relative language ({', '.join(repr(t) for t in temporal)})",
                "Replace relative time references with specific dates or versions.",
            ))

        outdated = _find_terms(snapshot.plain_text, OUTDATED_TECHNOLOGY)
        if outdated:
            findings.append((
                f"references outdated technology ({', '.join(outdated)})",
                "Update instructions for currently supported platforms.",
            ))

        if stale:
            versions = sorted(set(m.group(0) for m in VERSION_REFERENCE.finditer(snapshot.plain_text)))
            if versions:
                findings.append((
                    f"mentions specific versions ({', '.join(versions[:5])})",
                    "Confirm the referenced versions are still current.",
                ))

        return self.consolidate(findings, "Content may be outdated")
