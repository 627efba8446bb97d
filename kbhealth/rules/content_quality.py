"""
Content quality rule - length, readability and writing hygiene.
"""

import re

from ..models import Issue, Severity
from .base import ArticleSnapshot, AuditRule, strip_markdown

VOWEL_GROUPS = re.compile(r"[aeiouy]+")
TERMINAL_PUNCTUATION = re.compile(r"[.!?:][\"'”’)\]]*$")


def count_syllables(word: str) -> int:
    """Approximate syllable count from vowel groups."""
    word = word.lower().strip("'’-")
    if not word:
        return 0
    groups = len(VOWEL_GROUPS.findall(word))
    if word.endswith("e") and not word.endswith(("le", "ee")) and groups > 1:
        groups -= 1
    return max(groups, 1)


def flesch_reading_ease(words: list[str] | tuple[str, ...], sentence_count: int) -> float | None:
    """Flesch reading ease; higher is easier. None without words or sentences."""
    if not words or not sentence_count:
        return None
    syllables = sum(count_syllables(word) for word in words)
    return 206.835 - 1.015 * (len(words) / sentence_count) - 84.6 * (syllables / len(words))


class ContentQualityRule(AuditRule):
    """Flags articles that are too short, too long, hard to read or sloppily formatted."""

    ID = "content-quality"
    NAME = "Content Quality"
    DESCRIPTION = "Checks content length, readability, sentence length, spacing, end punctuation and heading case."
    CATEGORY = "content-quality"
    SEVERITY = Severity.MEDIUM
    DEFAULT_CONFIG = {
        "min_word_count": 50,
        "max_word_count": 5000,
        "min_readability": 30,
        "max_readability": 90,
        "max_sentence_words": 25,
    }

    def evaluate(self, snapshot: ArticleSnapshot) -> list[Issue]:
        cfg = self.config
        findings: list[tuple[str, str]] = []
        word_count = snapshot.word_count

        if word_count < cfg["min_word_count"]:
            findings.append((
                f"content is too short ({word_count} words, minimum {cfg['min_word_count']})",
                "Expand the article with steps, examples or context.",
            ))
        elif word_count > cfg["max_word_count"]:
            findings.append((
                f"content is very long ({word_count} words, maximum {cfg['max_word_count']})",
                "Split the article into focused sub-articles.",
            ))

        if word_count >= cfg["min_word_count"]:
            prose_words = [w for s in snapshot.sentences for w in s.split()]
            score = flesch_reading_ease(prose_words, len(snapshot.sentences))
            if score is not None and score < cfg["min_readability"]:
                findings.append((
                    f"text is hard to read (Flesch score {score:.0f})",
                    "Use shorter sentences and simpler words.",
                ))
            elif score is not None and score > cfg["max_readability"]:
                findings.append((
                    f"text is overly simplistic (Flesch score {score:.0f})",
                    "Add the detail readers need to complete the task.",
                ))

        long_sentences = [s for s in snapshot.sentences if len(s.split()) > cfg["max_sentence_words"]]
        if long_sentences:
            findings.append((
                f"{len(long_sentences)} sentence(s) longer than {cfg['max_sentence_words']} words",
                "Break long sentences into two or more shorter ones.",
            ))

        prose_lines = [
            line for block in snapshot.prose_blocks for line in block.text.splitlines()
        ]
        if any("  " in line.strip() for line in prose_lines):
            findings.append((
                "contains double spaces",
                "Replace double spaces with single spaces.",
            ))

        last = snapshot.blocks[-1] if snapshot.blocks else None
        if last is not None and last.kind == "prose" and len(snapshot.sentences) > 1:
            ending = strip_markdown(last.text)
            if ending and not TERMINAL_PUNCTUATION.search(ending):
                findings.append((
                    "content may be missing punctuation at the end",
                    "End the final sentence with a period.",
                ))

        lowercase_headings = [
            heading.text for heading in snapshot.headings
            if len(heading.text) > 3 and heading.text == heading.text.lower() and re.search(r"[a-z]", heading.text)
        ]
        if lowercase_headings:
            findings.append((
                f"{len(lowercase_headings)} heading(s) without capitals, e.g. '{lowercase_headings[0]}'",
                "Capitalize headings consistently.",
            ))

        return self.consolidate(findings, "Content quality problems")
