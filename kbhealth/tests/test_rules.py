"""
Tests for the built-in audit rules and the article snapshot they read.
"""

from datetime import datetime, timezone

from kbhealth.models import Location, Severity
from kbhealth.rules import (
    AccessibilityRule,
    ArticleSnapshot,
    BrokenLinksRule,
    ContentQualityRule,
    DuplicateContentRule,
    FreshnessRule,
    SeoRule,
    StructureRule,
)
from kbhealth.rules.content_quality import count_syllables

from conftest import AS_OF, make_article

READABLE = (
    "Open the billing page from the main dashboard to review your current plan. "
    "Choose a different plan and confirm the change before the next invoice. "
    "Your team members keep their access while the new plan takes effect. "
    "Invoices list every charge along with the payment method used for it. "
    "Download a copy of any invoice as a document for your records."
)

STEPS = " ".join(
    f"Step {i} explains one more option for teams that manage many accounts." for i in range(30)
)


def snapshot(content: str, **kwargs) -> ArticleSnapshot:
    return ArticleSnapshot.capture(make_article(content=content, **kwargs), as_of=AS_OF)


def words(count: int) -> str:
    return " ".join(f"word{i}" for i in range(count))


class TestArticleSnapshot:
    """Tests for the parsed view of article markdown."""

    def test_headings_links_and_images(self):
        """Should locate headings, links and images by line and column."""
        snap = snapshot(
            "# Title\n\n"
            "See [the guide](/guide) and ![Chart](c.png).\n"
            'Or <a href="/x">this page</a> or https://acme.io/raw.'
        )

        assert [(h.level, h.text, h.line) for h in snap.headings] == [(1, "Title", 1)]
        assert [(link.kind, link.target, link.line, link.column) for link in snap.links] == [
            ("markdown", "/guide", 3, 5),
            ("html", "/x", 4, 4),
            ("raw", "https://acme.io/raw", 4, 34),
        ]
        assert [(i.alt, i.src, i.line) for i in snap.images] == [("Chart", "c.png", 3)]

    def test_code_blocks_excluded_from_text(self):
        """Should keep fenced code out of words and sentences."""
        snap = snapshot("Run the installer.\n\n```bash\nnpm install agent\n```\n\nThen sign in.")

        assert [b.kind for b in snap.blocks] == ["prose", "code", "prose"]
        assert "npm" not in snap.words
        assert snap.sentences == ("Run the installer.", "Then sign in.")

    def test_days_since_uses_as_of(self):
        """Should measure ages against the audit timestamp."""
        snap = snapshot("Text.")
        assert snap.days_since(datetime(2024, 5, 31, tzinfo=timezone.utc)) == 1
        assert snap.days_since(None) is None

    def test_syllables(self):
        """Should approximate syllables from vowel groups."""
        assert count_syllables("plan") == 1
        assert count_syllables("invoice") == 2
        assert count_syllables("table") == 2


class TestContentQualityRule:
    """Tests for length, readability and spacing checks."""

    def test_readable_article_passes(self):
        """Should find nothing in a readable article of reasonable length."""
        assert ContentQualityRule().evaluate(snapshot(READABLE)) == []

    def test_short_content(self):
        """Should flag content under the minimum length with one consolidated issue."""
        issues = ContentQualityRule().evaluate(snapshot("Too short."))

        assert len(issues) == 1
        assert issues[0].rule_id == "content-quality"
        assert issues[0].severity == Severity.MEDIUM
        assert "content is too short (2 words, minimum 50)" in issues[0].description

    def test_long_sentence_and_double_spaces(self):
        """Should fold several findings into one issue."""
        long_sentence = " ".join(["item"] * 30) + "."
        issues = ContentQualityRule().evaluate(snapshot(f"{READABLE}\n\n{long_sentence}  Done."))

        assert len(issues) == 1
        assert "1 sentence(s) longer than 25 words" in issues[0].description
        assert "contains double spaces" in issues[0].description

    def test_missing_final_punctuation(self):
        """Should flag content whose last sentence has no closing punctuation."""
        issues = ContentQualityRule().evaluate(snapshot(f"{READABLE} Then click save and you are done"))

        assert len(issues) == 1
        assert "content may be missing punctuation at the end" in issues[0].description

    def test_content_ending_in_list_passes(self):
        """Should not expect punctuation after a closing list."""
        content = f"{READABLE}\n\n- Open the settings page\n- Save your changes"
        assert ContentQualityRule().evaluate(snapshot(content)) == []

    def test_lowercase_headings(self):
        """Should flag headings written entirely in lowercase."""
        content = f"# billing overview\n\n{READABLE}\n\n## Plan changes\n\n## faq"
        issues = ContentQualityRule().evaluate(snapshot(content))

        assert len(issues) == 1
        assert "1 heading(s) without capitals, e.g. 'billing overview'" in issues[0].description

    def test_severity_override(self):
        """Should stamp issues with the configured severity."""
        issues = ContentQualityRule(severity="high").evaluate(snapshot("Too short."))
        assert issues[0].severity == Severity.HIGH


class TestFreshnessRule:
    """Tests for age, review cadence and time-sensitive wording."""

    def test_recent_article_passes(self):
        """Should find nothing for a recent article without dated wording."""
        snap = snapshot(READABLE, last_modified_at=datetime(2024, 5, 1, tzinfo=timezone.utc))
        assert FreshnessRule().evaluate(snap) == []

    def test_stale_article(self):
        """Should report months since the last update."""
        snap = snapshot(READABLE, last_modified_at=datetime(2023, 3, 1, tzinfo=timezone.utc))
        issues = FreshnessRule().evaluate(snap)

        assert len(issues) == 1
        assert "last updated 15 months ago" in issues[0].description
        assert "critically" not in issues[0].description

    def test_critically_outdated(self):
        """Should use stronger wording past the critical age."""
        snap = snapshot(READABLE, last_modified_at=datetime(2022, 6, 1, tzinfo=timezone.utc))
        assert "critically outdated" in FreshnessRule().evaluate(snap)[0].description

    def test_version_references_only_when_stale(self):
        """Should mention version numbers only for stale articles."""
        content = "Install version 2.4.1 of the agent."
        fresh = snapshot(content, last_modified_at=datetime(2024, 5, 1, tzinfo=timezone.utc))
        stale = snapshot(content, last_modified_at=datetime(2023, 1, 1, tzinfo=timezone.utc))

        assert FreshnessRule().evaluate(fresh) == []
        assert "version 2.4.1" in FreshnessRule().evaluate(stale)[0].description

    def test_wording_and_review_date(self):
        """Should flag relative time words, outdated technology and overdue reviews."""
        snap = snapshot(
            "This feature is currently in beta. It works in Internet Explorer and Windows XP.",
            last_reviewed_at=datetime(2023, 6, 1, tzinfo=timezone.utc),
        )
        issues = FreshnessRule().evaluate(snap)

        assert len(issues) == 1
        description = issues[0].description
        assert "'currently'" in description and "'beta'" in description
        assert "internet explorer" in description and "windows xp" in description
        assert "last reviewed 366 days ago" in description

    def test_deterministic_for_fixed_snapshot(self):
        """Should return identical issues for the same snapshot."""
        snap = snapshot("Coming soon: the latest version.", last_modified_at=datetime(2020, 1, 1, tzinfo=timezone.utc))
        assert FreshnessRule().evaluate(snap) == FreshnessRule().evaluate(snap)


class TestSeoRule:
    """Tests for title, description, length, keywords and internal links."""

    def test_well_optimized_article_passes(self):
        """Should find nothing for a complete, linked article."""
        content = f"Update your [billing details](/articles/billing) from the workspace page.\n\n{STEPS}"
        snap = snapshot(
            content,
            title="How to update the billing details for your workspace",
            summary="Change the card or invoice address used for your workspace.",
        )
        assert SeoRule().evaluate(snap) == []

    def test_thin_article(self):
        """Should flag short titles, missing descriptions, thin content and missing keywords."""
        issues = SeoRule().evaluate(snapshot("Open the page.", title="Billing"))

        assert len(issues) == 1
        assert issues[0].severity == Severity.LOW
        description = issues[0].description
        assert "title is short (7 characters)" in description
        assert "missing meta description" in description
        assert "content is thin for search (3 words)" in description
        assert "title keywords do not appear in the body" in description

    def test_keyword_overuse_and_no_links(self):
        """Should flag keyword stuffing and articles without internal links."""
        content = " ".join(["billing"] * 20) + "\n\n" + STEPS
        issues = SeoRule().evaluate(snapshot(
            content,
            title="Billing questions answered for workspace admins",
            summary="Answers to billing questions.",
        ))

        description = issues[0].description
        assert "keyword 'billing' is overused" in description
        assert "no links to related articles" in description

    def test_malformed_link_target_is_skipped(self):
        """Should ignore unparseable link targets when looking for internal links."""
        title = "How to update the billing details for your workspace"
        summary = "Change the card or invoice address used for your workspace."
        malformed = "See the [details](http://[oops) for more."

        linked = snapshot(
            f"Update your [billing details](/articles/billing) from the workspace page. {malformed}\n\n{STEPS}",
            title=title,
            summary=summary,
        )
        unlinked = snapshot(
            f"Update your billing details from the workspace page. {malformed}\n\n{STEPS}",
            title=title,
            summary=summary,
        )

        assert SeoRule().evaluate(linked) == []
        issues = SeoRule().evaluate(unlinked)
        assert len(issues) == 1
        assert "no links to related articles" in issues[0].description


class TestAccessibilityRule:
    """Tests for alt text and link text."""

    def test_positional_findings(self):
        """Should report each problem with its location, in document order."""
        content = (
            "Intro line with ![](shot.png) and ![screenshot](a.png) and ![Plan selector](b.png).\n"
            "See [click here](/x) or [the billing guide](/billing) or [](/empty)."
        )
        issues = AccessibilityRule().evaluate(snapshot(content))

        assert [i.location for i in issues] == [
            Location(1, 17),
            Location(1, 35),
            Location(2, 5),
            Location(2, 58),
        ]
        assert "missing alt text" in issues[0].description
        assert "placeholder alt text" in issues[1].description
        assert "does not describe its destination" in issues[2].description
        assert "has no text" in issues[3].description
        assert all(i.severity == Severity.HIGH and i.category == "accessibility" for i in issues)

    def test_raw_urls_are_ignored(self):
        """Should not judge bare URLs by their link text."""
        assert AccessibilityRule().evaluate(snapshot("Visit https://acme.io/help today.")) == []

    def test_findings_are_capped(self):
        """Should summarize findings beyond the positional cap."""
        content = "\n".join(f"![](img{i}.png)" for i in range(12))
        issues = AccessibilityRule().evaluate(snapshot(content))

        assert len(issues) == 11
        assert issues[-1].location is None
        assert "2 more accessibility findings" in issues[-1].description


class TestStructureRule:
    """Tests for headings, paragraphing, bare URLs and code formatting."""

    def test_missing_headings(self):
        """Should require headings for long articles."""
        issues = StructureRule().evaluate(snapshot(f"{words(80)}\n\n{words(80)}"))
        assert "no section headings" in issues[0].description
        assert "single block" not in issues[0].description

    def test_single_block(self):
        """Should flag a long article written as one block."""
        issues = StructureRule().evaluate(snapshot(words(120)))
        assert "content is a single block of text" in issues[0].description
        assert "no section headings" not in issues[0].description

    def test_bare_urls_and_unformatted_code(self):
        """Should flag bare URLs and commands outside code blocks."""
        issues = StructureRule().evaluate(snapshot(
            "Visit https://acme.io/download for the installer.\n\nnpm install acme-agent\n\n"
            "```bash\nnpm install fenced\n```"
        ))

        assert len(issues) == 1
        assert "1 bare URL(s)" in issues[0].description
        assert "1 line(s) of code outside code blocks" in issues[0].description

    def test_skipped_heading_level(self):
        """Should report each skipped heading level at its line."""
        issues = StructureRule().evaluate(snapshot("# Title\n\n### Details\n\nText.\n\n#### Deeper"))

        assert len(issues) == 1
        assert issues[0].location == Location(3, 1)
        assert "skips from level 1 to 3" in issues[0].description

    def test_well_structured_article_passes(self):
        """Should find nothing in a short, structured article."""
        assert StructureRule().evaluate(snapshot(f"# Billing\n\n{READABLE}\n\n## Invoices\n\n- One\n- Two")) == []


class TestBrokenLinksRule:
    """Tests for static link checks."""

    def test_link_problems(self):
        """Should flag duplicate, insecure, internal, placeholder, empty and script links."""
        content = "\n".join([
            "[Guide](https://docs.acme.io/guide) and [Guide again](https://docs.acme.io/guide/)",
            "[Old](http://docs.acme.io/old)",
            "[Staging](https://staging.acme.io/x)",
            "[Sample](https://www.example.com/x)",
            "[Nothing]()",
            "[Run](javascript:void(0))",
            "[Mail](mailto:help@acme.io) and [Section](#setup) and [Relative](/articles/2)",
        ])
        issues = BrokenLinksRule().evaluate(snapshot(content))

        descriptions = [i.description for i in issues]
        assert len(issues) == 6
        assert descriptions[0] == "Duplicate link to 'https://docs.acme.io/guide/'"
        assert descriptions[1].startswith("Insecure link")
        assert "pre-production host 'staging.acme.io'" in descriptions[2]
        assert "placeholder domain 'www.example.com'" in descriptions[3]
        assert "empty target" in descriptions[4]
        assert "runs script" in descriptions[5]
        assert [i.location.line for i in issues] == [1, 2, 3, 4, 5, 6]
        assert all(i.category == "technical" and i.severity == Severity.HIGH for i in issues)

    def test_clean_links_pass(self):
        """Should accept https, relative, anchor and mail links."""
        content = "[Docs](https://docs.acme.io/) [Next](/articles/2) [Top](#top) [Mail](mailto:a@acme.io)"
        assert BrokenLinksRule().evaluate(snapshot(content)) == []


class TestDuplicateContentRule:
    """Tests for repetition within one article."""

    def test_short_content_skipped(self):
        """Should not judge very short articles."""
        assert DuplicateContentRule().evaluate(snapshot("## A\n\n## A\n\nShort.")) == []

    def test_near_identical_paragraphs(self):
        """Should flag paragraphs that repeat each other."""
        paragraph = "Open the billing page from the main dashboard to review your current plan."
        content = f"{paragraph}\n\n{paragraph.replace('current', 'active')}\n\n{READABLE}"
        issues = DuplicateContentRule().evaluate(snapshot(content))

        assert len(issues) == 1
        assert "1 pair(s) of near-identical paragraphs" in issues[0].description
        assert "sentence(s) repeated" not in issues[0].description

    def test_repeated_headings_and_sentences(self):
        """Should flag repeated headings and sentences in otherwise different paragraphs."""
        sentence = "Changes to the plan take effect at the start of the next billing cycle."
        content = (
            f"## Setup\n\n{sentence} Invite teammates from the members page once the workspace exists.\n\n"
            f"## Setup\n\nExport reports as spreadsheets whenever finance asks for them. {sentence}"
        )
        issues = DuplicateContentRule().evaluate(snapshot(content))

        description = issues[0].description
        assert "repeated headings (setup)" in description
        assert "1 sentence(s) repeated" in description
        assert "near-identical" not in description
