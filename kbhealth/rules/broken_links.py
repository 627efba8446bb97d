"""
Broken links rule - static checks on link targets.

No requests are made: links are judged on their shape, so audits stay
deterministic and offline.
"""

from urllib.parse import urlsplit

from ..models import Issue, Location, Severity
from .base import ArticleSnapshot, AuditRule, Link

SUSPICIOUS_HOST_PREFIXES = ("localhost", "127.0.0.1", "192.168.", "10.0.0.", "staging.", "test.", "dev.", "demo.")
PLACEHOLDER_DOMAINS = {"example.com", "example.org", "example.net", "test.com", "localhost.com"}
IGNORED_SCHEMES = {"mailto", "tel"}


class BrokenLinksRule(AuditRule):
    """Flags links that cannot work for readers."""

    ID = "broken-links"
    NAME = "Broken Links"
    DESCRIPTION = "Checks for empty, malformed, internal, placeholder, insecure and duplicate links."
    CATEGORY = "technical"
    SEVERITY = Severity.HIGH

    def evaluate(self, snapshot: ArticleSnapshot) -> list[Issue]:
        issues: list[Issue] = []
        seen: set[str] = set()

        for link in snapshot.links:
            problem = self._check(link)
            location = Location(line=link.line, column=link.column)
            if problem:
                issues.append(self.issue(problem[0], problem[1], location))
                continue
            target = link.target.rstrip("/")
            if target in seen:
                issues.append(self.issue(
                    f"Duplicate link to '{link.target}'",
                    "Link to each destination once, at its most relevant mention.",
                    location,
                ))
            seen.add(target)

        return self.cap_positional(issues, "link findings")

    def _check(self, link: Link) -> tuple[str, str] | None:
        target = link.target.strip()
        if not target or target == "#":
            return (
                f"Link '{link.text}' has an empty target",
                "Point the link at its destination or remove it.",
            )
        if target.startswith("#"):
            return None

        try:
            parts = urlsplit(target)
            host = (parts.hostname or "").lower()
        except ValueError:
            return (f"Malformed link '{target}'", "Correct the URL.")

        scheme = parts.scheme.lower()
        if scheme in IGNORED_SCHEMES:
            return None
        if scheme == "javascript":
            return (f"Link '{link.text}' runs script instead of opening a page", "Link to a real page.")
        if scheme in ("http", "https") and not host:
            return (f"Malformed link '{target}'", "Correct the URL.")
        if not scheme:
            return None

        if host.startswith(SUSPICIOUS_HOST_PREFIXES):
            return (
                f"Link points to an internal or pre-production host '{host}'",
                "Replace it with the public URL.",
            )
        if host in PLACEHOLDER_DOMAINS or any(host.endswith(f".{d}") for d in PLACEHOLDER_DOMAINS):
            return (
                f"Link uses placeholder domain '{host}'",
                "Replace the placeholder with the real destination.",
            )
        if scheme == "http":
            return (
                f"Insecure link '{target}'",
                "Use the https:// version of the link.",
            )
        return None
