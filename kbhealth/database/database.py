"""
Database facade - provides unified access to all repositories.
"""

from pathlib import Path

from .article_repository import ArticleRepository
from .audit_repository import AuditRepository
from .connection import DatabaseConnection
from .source_repository import SourceRepository


class Database:
    """
    Unified database access facade.

    The repositories double as the injected stores: `sources` is the
    SourceStore behind the registry, `articles` the ArticleStore used by
    sync and audit.
    """

    def __init__(self, db_path: Path):
        self._connection = DatabaseConnection(db_path)

        # Initialize repositories
        self.sources = SourceRepository(self._connection)
        self.articles = ArticleRepository(self._connection)
        self.audits = AuditRepository(self._connection)
