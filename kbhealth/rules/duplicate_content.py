"""
Duplicate content rule - repetition within one article.
"""

import re
from difflib import SequenceMatcher

from ..models import Issue, Severity
from .base import ArticleSnapshot, AuditRule, strip_markdown

COMMON_PHRASES = [
    "for more information",
    "contact support",
    "contact our support team",
    "let us know",
    "was this article helpful",
    "please note",
    "click save",
]

MAX_COMPARED_PARAGRAPHS = 200


def _normalize(text: str) -> str:
    return re.sub(r"[^a-z0-9 ]+", "", re.sub(r"\s+", " ", text.lower())).strip()


class DuplicateContentRule(AuditRule):
    """Flags repeated headings, paragraphs and sentences."""

    ID = "duplicate-content"
    NAME = "Duplicate Content"
    DESCRIPTION = "Checks for headings, paragraphs and sentences repeated within the article."
    CATEGORY = "content-quality"
    SEVERITY = Severity.MEDIUM
    DEFAULT_CONFIG = {
        "similarity_threshold": 0.8,
        "min_text_length": 50,
        "min_content_length": 100,
    }

    def evaluate(self, snapshot: ArticleSnapshot) -> list[Issue]:
        cfg = self.config
        if len(snapshot.plain_text) < cfg["min_content_length"]:
            return []

        findings: list[tuple[str, str]] = []

        heading_counts: dict[str, int] = {}
        for heading in snapshot.headings:
            key = _normalize(heading.text)
            heading_counts[key] = heading_counts.get(key, 0) + 1
        repeated_headings = [text for text, count in heading_counts.items() if text and count > 1]
        if repeated_headings:
            findings.append((
                f"repeated headings ({', '.join(repeated_headings)})",
                "Give every section a distinct heading.",
            ))

        paragraphs = [
            _normalize(strip_markdown(block.text))
            for block in snapshot.prose_blocks
        ]
        paragraphs = [p for p in paragraphs if len(p) >= cfg["min_text_length"]][:MAX_COMPARED_PARAGRAPHS]
        similar_pairs = 0
        for i, first in enumerate(paragraphs):
            for second in paragraphs[i + 1:]:
                if SequenceMatcher(None, first, second).ratio() >= cfg["similarity_threshold"]:
                    similar_pairs += 1
        if similar_pairs:
            findings.append((
                f"{similar_pairs} pair(s) of near-identical paragraphs",
                "Merge or remove repeated paragraphs.",
            ))

        sentence_counts: dict[str, int] = {}
        for sentence in snapshot.sentences:
            key = _normalize(sentence)
            if len(key) < cfg["min_text_length"] or any(phrase in key for phrase in COMMON_PHRASES):
                continue
            sentence_counts[key] = sentence_counts.get(key, 0) + 1
        repeated_sentences = sum(1 for count in sentence_counts.values() if count > 1)
        if repeated_sentences and not similar_pairs:
            findings.append((
                f"{repeated_sentences} sentence(s) repeated",
                "Say each thing once.",
            ))

        return self.consolidate(findings, "Duplicate content")
