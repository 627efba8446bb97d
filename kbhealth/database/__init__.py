"""
Database module - SQLite persistence for sources, articles and audit history.

Uses repository pattern for better separation of concerns.
"""

from .article_repository import ArticleRepository
from .audit_repository import AuditRepository
from .connection import DatabaseConnection
from .database import Database
from .models import DBAuditRun
from .source_repository import SourceRepository

__all__ = [
    "ArticleRepository",
    "AuditRepository",
    "DBAuditRun",
    "Database",
    "DatabaseConnection",
    "SourceRepository",
]
