"""
Database connection management and schema initialization.
"""

import sqlite3
from contextlib import contextmanager
from pathlib import Path
from typing import Iterator


class DatabaseConnection:
    """Manages database connection and schema."""

    def __init__(self, db_path: Path):
        self.db_path = Path(db_path)
        self.db_path.parent.mkdir(parents=True, exist_ok=True)
        self._init_schema()

    @contextmanager
    def conn(self) -> Iterator[sqlite3.Connection]:
        """Get database connection with row factory."""
        connection = sqlite3.connect(self.db_path, timeout=30)
        connection.row_factory = sqlite3.Row
        connection.execute("PRAGMA foreign_keys = ON")
        try:
            yield connection
            connection.commit()
        finally:
            connection.close()

    def _init_schema(self):
        """Initialize database schema."""
        with self.conn() as connection:
            connection.executescript("""
                CREATE TABLE IF NOT EXISTS sources (
                    id TEXT PRIMARY KEY,
                    name TEXT NOT NULL,
                    platform TEXT NOT NULL DEFAULT 'generic',
                    base_url TEXT NOT NULL,
                    enabled INTEGER DEFAULT 1,
                    status TEXT CHECK(status IN ('idle', 'syncing', 'success', 'error', 'cancelled'))
                        DEFAULT 'idle',
                    last_sync_at TIMESTAMP,
                    sync_count INTEGER DEFAULT 0,
                    error_count INTEGER DEFAULT 0,
                    articles_count INTEGER DEFAULT 0,
                    last_error TEXT,
                    max_articles_per_category INTEGER,
                    sync_timeout_seconds REAL,
                    created_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP
                );

                CREATE TABLE IF NOT EXISTS articles (
                    id TEXT PRIMARY KEY,
                    source_id TEXT NOT NULL REFERENCES sources(id) ON DELETE CASCADE,
                    url TEXT NOT NULL,
                    title TEXT NOT NULL,
                    content TEXT,
                    summary TEXT,
                    category TEXT,
                    tags TEXT,
                    last_modified_at TIMESTAMP,
                    author TEXT,
                    publication_status TEXT DEFAULT 'published',
                    view_count INTEGER,
                    helpful_votes INTEGER,
                    last_reviewed_at TIMESTAMP,
                    content_health_score INTEGER,
                    created_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP,
                    updated_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP
                );

                CREATE TABLE IF NOT EXISTS audit_runs (
                    id INTEGER PRIMARY KEY AUTOINCREMENT,
                    article_id TEXT NOT NULL REFERENCES articles(id) ON DELETE CASCADE,
                    status TEXT CHECK(status IN ('pending', 'running', 'completed', 'failed', 'cancelled'))
                        DEFAULT 'completed',
                    rules_executed INTEGER DEFAULT 0,
                    issues_found INTEGER DEFAULT 0,
                    health_score INTEGER,
                    duration_ms REAL,
                    issues TEXT,
                    created_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP
                );

                CREATE INDEX IF NOT EXISTS idx_articles_source ON articles(source_id);
                CREATE UNIQUE INDEX IF NOT EXISTS idx_articles_source_url ON articles(source_id, url);
                CREATE INDEX IF NOT EXISTS idx_audit_runs_article ON audit_runs(article_id, created_at DESC);
            """)
