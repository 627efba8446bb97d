"""
Database models - dataclasses for rows without a domain counterpart.
"""

from dataclasses import dataclass, field
from datetime import datetime


@dataclass
class DBAuditRun:
    id: int
    article_id: str
    status: str
    rules_executed: int
    issues_found: int
    health_score: int | None
    duration_ms: float | None
    created_at: datetime
    issues: list[dict] = field(default_factory=list)
