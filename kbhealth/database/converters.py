"""
Database row converters - convert SQLite rows to dataclasses and back.
"""

import json
import sqlite3
from datetime import datetime, timezone

from ..models import Article, DataSource, Platform, SourceStatus, utcnow
from .models import DBAuditRun


def to_db_timestamp(value: datetime | None) -> str | None:
    """Serialize a datetime as ISO-8601 in UTC."""
    if value is None:
        return None
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc).isoformat()


def from_db_timestamp(value: str | None) -> datetime | None:
    """Parse a stored timestamp; values written by SQLite defaults are naive UTC."""
    if not value:
        return None
    try:
        parsed = datetime.fromisoformat(value)
    except ValueError:
        return None
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


def row_to_source(row: sqlite3.Row) -> DataSource:
    """Convert a database row to a DataSource."""
    try:
        platform = Platform(row["platform"])
    except ValueError:
        platform = Platform.GENERIC

    return DataSource(
        id=row["id"],
        name=row["name"],
        platform=platform,
        base_url=row["base_url"],
        enabled=bool(row["enabled"]),
        status=SourceStatus(row["status"] or "idle"),
        last_sync_at=from_db_timestamp(row["last_sync_at"]),
        sync_count=row["sync_count"] or 0,
        error_count=row["error_count"] or 0,
        articles_count=row["articles_count"] or 0,
        last_error=row["last_error"],
        max_articles_per_category=row["max_articles_per_category"],
        sync_timeout_seconds=row["sync_timeout_seconds"],
        created_at=from_db_timestamp(row["created_at"]) or utcnow(),
    )


def row_to_article(row: sqlite3.Row) -> Article:
    """Convert a database row to an Article."""
    tags: frozenset[str] = frozenset()
    if row["tags"]:
        try:
            tags = frozenset(json.loads(row["tags"]))
        except json.JSONDecodeError:
            pass

    return Article(
        id=row["id"],
        source_id=row["source_id"],
        url=row["url"],
        title=row["title"],
        content=row["content"] or "",
        summary=row["summary"],
        category=row["category"],
        tags=tags,
        last_modified_at=from_db_timestamp(row["last_modified_at"]),
        author=row["author"],
        publication_status=row["publication_status"] or "published",
        view_count=row["view_count"],
        helpful_votes=row["helpful_votes"],
        last_reviewed_at=from_db_timestamp(row["last_reviewed_at"]),
        content_health_score=row["content_health_score"],
    )


def row_to_audit_run(row: sqlite3.Row) -> DBAuditRun:
    """Convert a database row to a DBAuditRun."""
    issues = []
    if row["issues"]:
        try:
            issues = json.loads(row["issues"])
        except json.JSONDecodeError:
            pass

    return DBAuditRun(
        id=row["id"],
        article_id=row["article_id"],
        status=row["status"],
        rules_executed=row["rules_executed"] or 0,
        issues_found=row["issues_found"] or 0,
        health_score=row["health_score"],
        duration_ms=row["duration_ms"],
        created_at=from_db_timestamp(row["created_at"]) or utcnow(),
        issues=issues,
    )
