"""
Audit rules - a closed set of rule variants behind one evaluate() capability.

Default registration order (also evaluation order):
- content-quality: length, readability, sentence length, spacing
- freshness: age, review cadence, time-relative wording, outdated technology
- seo: title, description, length, keywords, internal links
- accessibility: alt text, link text
- structure: headings, hierarchy, paragraphing, bare URLs, unformatted code
- broken-links: empty, malformed, internal, placeholder, insecure, duplicate links
- duplicate-content: repeated headings, paragraphs and sentences
"""

from ..config import config
from .accessibility import AccessibilityRule
from .base import ArticleSnapshot, AuditRule
from .broken_links import BrokenLinksRule
from .catalog import RuleCatalog
from .content_quality import ContentQualityRule
from .duplicate_content import DuplicateContentRule
from .evaluator import ENGINE_CATEGORY, RuleEvaluation, RuleEvaluator
from .freshness import FreshnessRule
from .seo import SeoRule
from .structure import StructureRule

# Registry of all rules, in evaluation order
DEFAULT_RULES: list[type[AuditRule]] = [
    ContentQualityRule,
    FreshnessRule,
    SeoRule,
    AccessibilityRule,
    StructureRule,
    BrokenLinksRule,
    DuplicateContentRule,
]


def create_default_catalog(disabled: list[str] | None = None) -> RuleCatalog:
    """Catalog with every built-in rule; ids in DISABLED_RULES start disabled."""
    return RuleCatalog(
        [rule_class() for rule_class in DEFAULT_RULES],
        disabled=config.DISABLED_RULES if disabled is None else disabled,
    )


__all__ = [
    "AccessibilityRule",
    "ArticleSnapshot",
    "AuditRule",
    "BrokenLinksRule",
    "ContentQualityRule",
    "DEFAULT_RULES",
    "DuplicateContentRule",
    "ENGINE_CATEGORY",
    "FreshnessRule",
    "RuleCatalog",
    "RuleEvaluation",
    "RuleEvaluator",
    "SeoRule",
    "StructureRule",
    "create_default_catalog",
]
