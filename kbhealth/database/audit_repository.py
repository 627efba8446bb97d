"""
Audit repository - history of audit runs per article.
"""

import json
from dataclasses import asdict

from ..models import AuditResult
from .connection import DatabaseConnection
from .converters import row_to_audit_run, to_db_timestamp
from .models import DBAuditRun


class AuditRepository:
    """Repository for audit run history."""

    def __init__(self, db: DatabaseConnection):
        self._db = db

    def record(self, result: AuditResult, status: str = "completed") -> int:
        """Store one audit result. Returns the run ID."""
        issues = []
        for issue in result.issues:
            data = asdict(issue)
            data["severity"] = issue.severity.value
            issues.append(data)

        with self._db.conn() as conn:
            cursor = conn.execute(
                """INSERT INTO audit_runs
                   (article_id, status, rules_executed, issues_found, health_score,
                    duration_ms, issues, created_at)
                   VALUES (?, ?, ?, ?, ?, ?, ?, ?)""",
                (
                    result.article_id,
                    status,
                    result.rules_executed,
                    len(result.issues),
                    result.computed_health_score,
                    result.execution_duration_ms,
                    json.dumps(issues),
                    to_db_timestamp(result.audited_at),
                )
            )
            return cursor.lastrowid

    def recent(self, article_id: str, limit: int = 10) -> list[DBAuditRun]:
        """Most recent audit runs for an article, newest first."""
        with self._db.conn() as conn:
            rows = conn.execute(
                """SELECT * FROM audit_runs WHERE article_id = ?
                   ORDER BY created_at DESC, id DESC LIMIT ?""",
                (article_id, limit)
            ).fetchall()
            return [row_to_audit_run(row) for row in rows]
