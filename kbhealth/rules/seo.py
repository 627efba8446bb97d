"""
SEO rule - title, description, length, keywords and internal links.
"""

import re
from urllib.parse import urlsplit

from ..models import Issue, Severity
from .base import ArticleSnapshot, AuditRule

STOPWORDS = {
    "a", "an", "and", "are", "as", "at", "be", "by", "can", "do", "does", "for",
    "from", "how", "i", "in", "is", "it", "my", "of", "on", "or", "that", "the",
    "this", "to", "what", "when", "where", "which", "why", "with", "you", "your",
}


def title_keywords(title: str) -> list[str]:
    words = re.findall(r"[a-z0-9]+", title.lower())
    return list(dict.fromkeys(w for w in words if w not in STOPWORDS and len(w) > 3))


class SeoRule(AuditRule):
    """Flags articles that search engines and site search will rank poorly."""

    ID = "seo"
    NAME = "SEO Optimization"
    DESCRIPTION = "Checks title length, meta description, content length, keyword use and internal links."
    CATEGORY = "seo"
    SEVERITY = Severity.LOW
    DEFAULT_CONFIG = {
        "min_title_length": 30,
        "max_title_length": 60,
        "min_word_count": 300,
        "max_word_count": 2500,
        "max_keyword_density": 3.0,  # percent
    }

    def evaluate(self, snapshot: ArticleSnapshot) -> list[Issue]:
        cfg = self.config
        article = snapshot.article
        findings: list[tuple[str, str]] = []

        title_length = len(article.title.strip())
        if title_length < cfg["min_title_length"]:
            findings.append((
                f"title is short ({title_length} characters)",
                f"Use a descriptive title of {cfg['min_title_length']}-{cfg['max_title_length']} characters.",
            ))
        elif title_length > cfg["max_title_length"]:
            findings.append((
                f"title is long ({title_length} characters)",
                f"Keep titles under {cfg['max_title_length']} characters so they are not truncated.",
            ))

        if not (article.summary or "").strip():
            findings.append((
                "missing meta description",
                "Add a one or two sentence summary.",
            ))

        word_count = snapshot.word_count
        if word_count < cfg["min_word_count"]:
            findings.append((
                f"content is thin for search ({word_count} words)",
                f"Aim for at least {cfg['min_word_count']} words.",
            ))
        elif word_count > cfg["max_word_count"]:
            findings.append((
                f"content is long for a single page ({word_count} words)",
                "Split the topic across several linked articles.",
            ))

        keywords = title_keywords(article.title)
        if keywords and word_count:
            body_words = [w.lower() for w in snapshot.words]
            counts = {kw: body_words.count(kw) for kw in keywords}
            if not any(counts.values()):
                findings.append((
                    "title keywords do not appear in the body",
                    "Use the title's key terms in the opening paragraph.",
                ))
            else:
                keyword, count = max(counts.items(), key=lambda item: (item[1], item[0]))
                density = count / word_count * 100
                if density > cfg["max_keyword_density"] and word_count >= cfg["min_word_count"]:
                    findings.append((
                        f"keyword '{keyword}' is overused ({density:.1f}% of words)",
                        "Vary the wording instead of repeating the same keyword.",
                    ))

        if word_count >= cfg["min_word_count"] and not self._has_internal_link(snapshot):
            findings.append((
                "no links to related articles",
                "Link to related help articles on the same site.",
            ))

        return self.consolidate(findings, "SEO improvements needed")

    def _has_internal_link(self, snapshot: ArticleSnapshot) -> bool:
        host = urlsplit(snapshot.article.url).hostname
        for link in snapshot.links:
            try:
                target = urlsplit(link.target)
            except ValueError:
                continue
            if not target.scheme and (target.path or target.query):
                return True
            if target.hostname and target.hostname == host:
                return True
        return False
