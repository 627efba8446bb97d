"""
Content conversion - HTML article bodies to lightweight markdown.

Handles:
- Headings, paragraphs, lists, code blocks, quotes and tables
- Inline links and images as markdown so audit rules can inspect them
- Reader-mode fallback via trafilatura when selectors find too little
- Date parsing for HTTP headers, meta tags and feed entries
"""

import logging
import re
from datetime import datetime, timezone
from email.utils import format_datetime, parsedate_to_datetime

import trafilatura
from bs4 import BeautifulSoup, Comment, NavigableString, Tag
from trafilatura.settings import use_config

logger = logging.getLogger(__name__)

INLINE_TAGS = {
    "a", "abbr", "b", "strong", "i", "em", "code", "span", "img", "small",
    "sub", "sup", "u", "mark", "br", "time", "kbd", "label", "s", "del", "ins",
}
DROP_TAGS = ["script", "style", "noscript", "nav", "footer", "form", "button", "svg", "iframe"]
HEADINGS = {"h1": 1, "h2": 2, "h3": 3, "h4": 4, "h5": 5, "h6": 6}

_WHITESPACE = re.compile(r"\s+")


def html_to_markdown(html: "str | Tag") -> str:
    """Convert an HTML fragment (or parsed element) to markdown text."""
    node = BeautifulSoup(html, "html.parser") if isinstance(html, str) else html
    for tag in node.find_all(DROP_TAGS):
        tag.decompose()
    for comment in node.find_all(string=lambda s: isinstance(s, Comment)):
        comment.extract()

    blocks: list[str] = []
    _render_blocks(node, blocks)
    return "\n\n".join(block for block in blocks if block.strip()).strip()


def _render_blocks(node: Tag, blocks: list[str]) -> None:
    pending: list[str] = []

    def flush():
        text = "".join(pending).strip()
        if text:
            blocks.append(text)
        pending.clear()

    for child in node.children:
        if isinstance(child, NavigableString):
            pending.append(_WHITESPACE.sub(" ", str(child)))
            continue
        if not isinstance(child, Tag):
            continue

        name = child.name
        if name in INLINE_TAGS:
            pending.append(_render_inline(child))
        elif name in HEADINGS:
            flush()
            blocks.append(f"{'#' * HEADINGS[name]} {_render_inline(child).strip()}")
        elif name == "p":
            flush()
            blocks.append(_render_inline(child).strip())
        elif name in ("ul", "ol"):
            flush()
            blocks.append(_render_list(child, ordered=name == "ol"))
        elif name == "pre":
            flush()
            blocks.append(_render_code(child))
        elif name == "blockquote":
            flush()
            quoted = html_to_markdown(child).splitlines()
            blocks.append("\n".join(f"> {line}".rstrip() for line in quoted))
        elif name == "table":
            flush()
            blocks.append(_render_table(child))
        elif name == "hr":
            flush()
            blocks.append("---")
        else:
            flush()
            _render_blocks(child, blocks)
    flush()


def _render_inline(node: Tag) -> str:
    parts: list[str] = []
    for child in node.children:
        if isinstance(child, NavigableString):
            parts.append(_WHITESPACE.sub(" ", str(child)))
            continue
        if not isinstance(child, Tag):
            continue
        name = child.name
        if name == "a":
            text = _render_inline(child).strip()
            href = child.get("href", "")
            parts.append(f"[{text}]({href})" if href else text)
        elif name == "img":
            parts.append(f"![{child.get('alt', '')}]({child.get('src', '')})")
        elif name in ("strong", "b"):
            text = _render_inline(child).strip()
            parts.append(f"**{text}**" if text else "")
        elif name in ("em", "i"):
            text = _render_inline(child).strip()
            parts.append(f"*{text}*" if text else "")
        elif name == "code":
            parts.append(f"`{child.get_text()}`")
        elif name == "br":
            parts.append("\n")
        else:
            parts.append(_render_inline(child))
    return "".join(parts)


def _render_list(node: Tag, ordered: bool) -> str:
    lines = []
    for index, item in enumerate(node.find_all("li", recursive=False), start=1):
        marker = f"{index}." if ordered else "-"
        nested = [sub for sub in item.find_all(["ul", "ol"], recursive=False)]
        for sub in nested:
            sub.extract()
        lines.append(f"{marker} {_render_inline(item).strip()}")
        for sub in nested:
            rendered = _render_list(sub, ordered=sub.name == "ol")
            lines.extend(f"  {line}" for line in rendered.splitlines())
    return "\n".join(lines)


def _render_code(node: Tag) -> str:
    code = node.find("code")
    language = ""
    if code is not None:
        for cls in code.get("class", []):
            if cls.startswith("language-"):
                language = cls[len("language-"):]
                break
    text = (code or node).get_text()
    return f"```{language}\n{text.strip(chr(10))}\n```"


def _render_table(node: Tag) -> str:
    rows = []
    for row in node.find_all("tr"):
        cells = [_render_inline(cell).strip() for cell in row.find_all(["th", "td"])]
        if cells:
            rows.append(f"| {' | '.join(cells)} |")
    if len(rows) > 1:
        column_count = rows[0].count("|") - 1
        rows.insert(1, "|" + "---|" * column_count)
    return "\n".join(rows)


def extract_with_trafilatura(url: str, html: str) -> str | None:
    """Reader-mode extraction of the main content, returned as markdown."""
    traf_config = use_config()
    # Signal-based timeouts only work on the main thread
    traf_config.set("DEFAULT", "EXTRACTION_TIMEOUT", "0")
    extracted = trafilatura.extract(
        html,
        url=url,
        output_format="html",
        include_links=True,
        include_images=True,
        include_tables=True,
        favor_recall=True,
        config=traf_config,
    )
    if not extracted:
        return None
    return html_to_markdown(extracted)


def parse_datetime(value: str | None) -> datetime | None:
    """
    Parse an ISO-8601 or RFC 2822 timestamp into an aware UTC datetime.

    Naive values are assumed to be UTC. Returns None when unparseable.
    """
    if not value:
        return None
    value = value.strip()
    parsed = None
    try:
        parsed = datetime.fromisoformat(value.replace("Z", "+00:00"))
    except ValueError:
        try:
            parsed = parsedate_to_datetime(value)
        except (TypeError, ValueError, IndexError):
            logger.debug(f"Unparseable timestamp: {value!r}")
            return None
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed.astimezone(timezone.utc)


def format_http_date(value: datetime) -> str:
    """Format a datetime for If-Modified-Since headers."""
    value = value.astimezone(timezone.utc)
    return format_datetime(value, usegmt=True)
