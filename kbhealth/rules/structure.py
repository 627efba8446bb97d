"""
Structure rule - headings, paragraphing, links and code formatting.
"""

import re

from ..models import Issue, Location, Severity
from .base import ArticleSnapshot, AuditRule

# Prose lines that look like commands or source code
CODE_LIKE = re.compile(
    r"^\s*(\$ |sudo |npm |pip |yarn |git |curl |import |from \S+ import |def |function |const |let |var |<\w+[^>]*>)"
    r"|[;{}]\s*$"
    r"|\w+\([^)]*\);"
)


class StructureRule(AuditRule):
    """Flags articles that are hard to scan."""

    ID = "structure"
    NAME = "Content Structure"
    DESCRIPTION = "Checks headings, heading hierarchy, paragraphing, bare URLs and unformatted code."
    CATEGORY = "structure"
    SEVERITY = Severity.LOW
    DEFAULT_CONFIG = {
        "headings_required_words": 150,
        "single_block_words": 100,
    }

    def evaluate(self, snapshot: ArticleSnapshot) -> list[Issue]:
        cfg = self.config
        findings: list[tuple[str, str]] = []

        if not snapshot.headings and snapshot.word_count >= cfg["headings_required_words"]:
            findings.append((
                "no section headings",
                "Break the article into sections with descriptive headings.",
            ))

        text_blocks = [b for b in snapshot.blocks if b.kind in ("prose", "list", "table", "quote")]
        if len(text_blocks) == 1 and snapshot.word_count >= cfg["single_block_words"]:
            findings.append((
                "content is a single block of text",
                "Split the text into short paragraphs or steps.",
            ))

        raw_urls = [link for link in snapshot.links if link.kind == "raw"]
        if raw_urls:
            findings.append((
                f"{len(raw_urls)} bare URL(s)",
                "Turn bare URLs into links with descriptive text.",
            ))

        code_lines = [
            line
            for block in snapshot.blocks if block.kind == "prose"
            for line in block.text.splitlines()
            if CODE_LIKE.search(line)
        ]
        if code_lines:
            findings.append((
                f"{len(code_lines)} line(s) of code outside code blocks",
                "Wrap commands and code in fenced code blocks.",
            ))

        issues = self.consolidate(findings, "Structure problems")

        previous_level = None
        skipped = []
        for heading in snapshot.headings:
            if previous_level is not None and heading.level > previous_level + 1:
                skipped.append(self.issue(
                    f"Heading '{heading.text}' skips from level {previous_level} to {heading.level}",
                    f"Use a level {previous_level + 1} heading here.",
                    Location(line=heading.line, column=1),
                ))
            previous_level = heading.level
        issues.extend(self.cap_positional(skipped, "heading hierarchy findings"))
        return issues
