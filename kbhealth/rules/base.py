"""
Base classes for audit rules.

A rule is a pure function of an ArticleSnapshot: the article as loaded once
per audit, the audit's as_of timestamp, and text metrics derived from the
markdown content. Rules never read the clock and never touch storage.
"""

import re
from abc import ABC, abstractmethod
from dataclasses import dataclass
from datetime import datetime
from typing import Any

from ..models import Article, Issue, Location, RuleDefinition, Severity, utcnow

HEADING = re.compile(r"^(#{1,6})\s+(.*?)\s*#*\s*$")
IMAGE = re.compile(r"!\[([^\]]*)\]\(\s*([^)\s]*)(?:\s+\"[^\"]*\")?\s*\)")
MARKDOWN_LINK = re.compile(r"(?<!!)\[([^\]]*)\]\(\s*([^)\s]*)(?:\s+\"[^\"]*\")?\s*\)")
HTML_LINK = re.compile(r"<a\s[^>]*href=[\"']([^\"']*)[\"'][^>]*>(.*?)</a>", re.IGNORECASE)
RAW_URL = re.compile(r"https?://[^\s<>\])\"']+")
INLINE_CODE = re.compile(r"`[^`]*`")
WORD = re.compile(r"[A-Za-z0-9][A-Za-z0-9'’-]*")
SENTENCE_END = re.compile(r"(?<=[.!?])\s+")
ORDERED_ITEM = re.compile(r"^\d+[.)]\s")


@dataclass(frozen=True)
class Heading:
    level: int
    text: str
    line: int


@dataclass(frozen=True)
class Link:
    text: str
    target: str
    line: int
    column: int
    kind: str  # markdown | html | raw


@dataclass(frozen=True)
class Image:
    alt: str
    src: str
    line: int
    column: int


@dataclass(frozen=True)
class Block:
    text: str
    line: int
    kind: str  # prose | heading | list | quote | table | code | rule


def strip_markdown(text: str) -> str:
    """Plain text of a markdown fragment."""
    text = IMAGE.sub(" ", text)
    text = MARKDOWN_LINK.sub(lambda m: m.group(1), text)
    text = HTML_LINK.sub(lambda m: m.group(2), text)
    text = re.sub(r"<[^>]+>", " ", text)
    text = re.sub(r"`([^`]*)`", r"\1", text)
    text = re.sub(r"(?<!\w)([*_]{1,3})([^*_\n]+?)\1(?!\w)", r"\2", text)
    text = re.sub(r"^\s*(#{1,6}|[-*+]|\d+[.)]|>)\s+", "", text, flags=re.MULTILINE)
    return re.sub(r"\s+", " ", text).strip()


def _blank_out(line: str, pattern: re.Pattern) -> str:
    """Replace matches with spaces, keeping column positions."""
    return pattern.sub(lambda m: " " * len(m.group(0)), line)


@dataclass(frozen=True)
class ArticleSnapshot:
    """Immutable view of one article for the duration of one audit."""
    article: Article
    as_of: datetime
    lines: tuple[str, ...]
    blocks: tuple[Block, ...]
    headings: tuple[Heading, ...]
    links: tuple[Link, ...]
    images: tuple[Image, ...]
    plain_text: str
    words: tuple[str, ...]
    sentences: tuple[str, ...]

    @classmethod
    def capture(cls, article: Article, as_of: datetime | None = None) -> "ArticleSnapshot":
        lines = tuple((article.content or "").splitlines())
        headings: list[Heading] = []
        links: list[Link] = []
        images: list[Image] = []
        blocks: list[Block] = []

        in_code = False
        current: list[str] = []
        current_start = 0
        current_code = False

        def close_block():
            nonlocal current
            if current:
                text = "\n".join(current)
                blocks.append(Block(text=text, line=current_start, kind=_block_kind(text, current_code)))
            current = []

        for number, line in enumerate(lines, start=1):
            stripped = line.strip()
            if stripped.startswith("```"):
                if not in_code:
                    close_block()
                    current_start = number
                    current_code = True
                    current.append(line)
                    in_code = True
                else:
                    current.append(line)
                    close_block()
                    current_code = False
                    in_code = False
                continue
            if in_code:
                current.append(line)
                continue

            if not stripped:
                close_block()
                continue

            heading = HEADING.match(stripped)
            if heading:
                close_block()
                headings.append(Heading(level=len(heading.group(1)), text=heading.group(2), line=number))
                blocks.append(Block(text=stripped, line=number, kind="heading"))
                continue

            if not current:
                current_start = number
                current_code = False
            current.append(line)

            for match in IMAGE.finditer(line):
                images.append(Image(alt=match.group(1).strip(), src=match.group(2), line=number, column=match.start() + 1))
            for match in MARKDOWN_LINK.finditer(line):
                links.append(Link(
                    text=match.group(1).strip(), target=match.group(2),
                    line=number, column=match.start() + 1, kind="markdown",
                ))
            for match in HTML_LINK.finditer(line):
                links.append(Link(
                    text=strip_markdown(match.group(2)), target=match.group(1),
                    line=number, column=match.start() + 1, kind="html",
                ))
            remainder = _blank_out(_blank_out(_blank_out(line, IMAGE), MARKDOWN_LINK), HTML_LINK)
            remainder = _blank_out(remainder, INLINE_CODE)
            for match in RAW_URL.finditer(remainder):
                links.append(Link(
                    text=match.group(0), target=match.group(0).rstrip(".,;:"),
                    line=number, column=match.start() + 1, kind="raw",
                ))
        close_block()

        text_blocks = [b.text for b in blocks if b.kind in ("prose", "list", "quote", "heading", "table")]
        plain_text = strip_markdown("\n".join(text_blocks))
        sentences: list[str] = []
        for block in blocks:
            if block.kind == "prose":
                sentences.extend(s for s in SENTENCE_END.split(strip_markdown(block.text)) if s)

        links.sort(key=lambda link: (link.line, link.column))
        return cls(
            article=article,
            as_of=as_of or utcnow(),
            lines=lines,
            blocks=tuple(blocks),
            headings=tuple(headings),
            links=tuple(links),
            images=tuple(images),
            plain_text=plain_text,
            words=tuple(WORD.findall(plain_text)),
            sentences=tuple(sentences),
        )

    @property
    def word_count(self) -> int:
        return len(self.words)

    @property
    def prose_blocks(self) -> list[Block]:
        return [block for block in self.blocks if block.kind == "prose"]

    def days_since(self, when: datetime | None) -> float | None:
        if when is None:
            return None
        return (self.as_of - when).total_seconds() / 86400


def _block_kind(text: str, is_code: bool) -> str:
    if is_code:
        return "code"
    first = text.lstrip()
    if first.startswith("---") and set(first.strip()) == {"-"}:
        return "rule"
    if first.startswith(("- ", "* ", "+ ")) or ORDERED_ITEM.match(first):
        return "list"
    if first.startswith(">"):
        return "quote"
    if first.startswith("|"):
        return "table"
    return "prose"


class AuditRule(ABC):
    """
    Base class for audit rules.

    Subclasses declare their catalog identity as class attributes and
    implement evaluate(). Severity may be overridden per catalog entry;
    every issue a rule emits carries the rule's configured severity.
    """

    ID: str = ""
    NAME: str = ""
    DESCRIPTION: str = ""
    CATEGORY: str = ""
    SEVERITY: Severity = Severity.MEDIUM
    DEFAULT_CONFIG: dict[str, Any] = {}

    # Positional findings beyond this are summarized in one trailing issue
    MAX_POSITIONAL_ISSUES = 10

    def __init__(self, severity: Severity | str | None = None, **config: Any):
        self.severity = Severity(severity) if severity else self.SEVERITY
        self.config = {**self.DEFAULT_CONFIG, **config}

    @property
    def id(self) -> str:
        return self.ID

    @abstractmethod
    def evaluate(self, snapshot: ArticleSnapshot) -> list[Issue]:
        """Evaluate one article. Must be deterministic for a fixed snapshot."""
        pass

    def definition(self, enabled: bool) -> RuleDefinition:
        return RuleDefinition(
            id=self.ID,
            name=self.NAME,
            description=self.DESCRIPTION,
            category=self.CATEGORY,
            severity=self.severity,
            enabled=enabled,
            config=dict(self.config),
        )

    def issue(self, description: str, suggestion: str, location: Location | None = None) -> Issue:
        return Issue(
            rule_id=self.ID,
            category=self.CATEGORY,
            severity=self.severity,
            description=description,
            suggestion=suggestion,
            location=location,
        )

    def consolidate(self, findings: list[tuple[str, str]], summary: str) -> list[Issue]:
        """Fold (problem, suggestion) pairs into a single issue."""
        if not findings:
            return []
        problems = "; ".join(problem for problem, _ in findings)
        suggestions = " ".join(dict.fromkeys(suggestion for _, suggestion in findings))
        return [self.issue(f"{summary}: {problems}", suggestions)]

    def cap_positional(self, issues: list[Issue], noun: str) -> list[Issue]:
        """Keep the first MAX_POSITIONAL_ISSUES positional issues and summarize the rest."""
        if len(issues) <= self.MAX_POSITIONAL_ISSUES:
            return issues
        extra = len(issues) - self.MAX_POSITIONAL_ISSUES
        kept = issues[:self.MAX_POSITIONAL_ISSUES]
        kept.append(self.issue(
            f"{extra} more {noun} not listed individually",
            "Fix the listed occurrences, then re-run the audit to see the rest.",
        ))
        return kept
