"""
Accessibility rule - image alt text and descriptive link text.

Findings are positional: one issue per image or link, with its location.
"""

from ..models import Issue, Location, Severity
from .base import ArticleSnapshot, AuditRule

NON_DESCRIPTIVE_LINK_TEXT = {
    "click here",
    "here",
    "link",
    "this link",
    "more",
    "read more",
    "learn more",
    "this",
    "go",
}

# Alt text that is really a file name or placeholder
PLACEHOLDER_ALT = {"image", "img", "picture", "photo", "screenshot", "untitled"}


class AccessibilityRule(AuditRule):
    """Flags images without alt text and links whose text does not say where they go."""

    ID = "accessibility"
    NAME = "Accessibility"
    DESCRIPTION = "Checks image alt text and link text for screen-reader users."
    CATEGORY = "accessibility"
    SEVERITY = Severity.HIGH

    def evaluate(self, snapshot: ArticleSnapshot) -> list[Issue]:
        issues: list[Issue] = []

        for image in snapshot.images:
            alt = image.alt.strip().lower()
            location = Location(line=image.line, column=image.column)
            if not alt:
                issues.append(self.issue(
                    f"Image '{image.src}' is missing alt text",
                    "Describe what the image shows in its alt text.",
                    location,
                ))
            elif alt in PLACEHOLDER_ALT or alt.rsplit(".", 1)[-1] in ("png", "jpg", "jpeg", "gif", "svg", "webp"):
                issues.append(self.issue(
                    f"Image '{image.src}' has placeholder alt text '{image.alt}'",
                    "Replace the placeholder with a description of the image.",
                    location,
                ))

        for link in snapshot.links:
            if link.kind == "raw":
                continue
            text = link.text.strip().lower().rstrip(".")
            if not text:
                issues.append(self.issue(
                    f"Link to '{link.target}' has no text",
                    "Give the link text that describes its destination.",
                    Location(line=link.line, column=link.column),
                ))
            elif text in NON_DESCRIPTIVE_LINK_TEXT:
                issues.append(self.issue(
                    f"Link text '{link.text}' does not describe its destination",
                    "Use link text that names the page it opens.",
                    Location(line=link.line, column=link.column),
                ))

        issues.sort(key=lambda issue: (issue.location.line, issue.location.column))
        return self.cap_positional(issues, "accessibility findings")
