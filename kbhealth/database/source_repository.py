"""
Source repository - durable configuration and status of data sources.
"""

from ..models import DataSource
from .connection import DatabaseConnection
from .converters import row_to_source, to_db_timestamp


class SourceRepository:
    """Repository for source operations. Implements the SourceStore capability."""

    def __init__(self, db: DatabaseConnection):
        self._db = db

    def load_all(self) -> list[DataSource]:
        """Get all sources in creation order."""
        with self._db.conn() as conn:
            rows = conn.execute("SELECT * FROM sources ORDER BY created_at, rowid").fetchall()
            return [row_to_source(row) for row in rows]

    def get(self, source_id: str) -> DataSource | None:
        with self._db.conn() as conn:
            row = conn.execute("SELECT * FROM sources WHERE id = ?", (source_id,)).fetchone()
            return row_to_source(row) if row else None

    def save(self, source: DataSource) -> None:
        """Insert or replace all fields of a source."""
        with self._db.conn() as conn:
            conn.execute(
                """INSERT INTO sources (
                       id, name, platform, base_url, enabled, status, last_sync_at,
                       sync_count, error_count, articles_count, last_error,
                       max_articles_per_category, sync_timeout_seconds, created_at
                   ) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
                   ON CONFLICT(id) DO UPDATE SET
                       name = excluded.name,
                       platform = excluded.platform,
                       base_url = excluded.base_url,
                       enabled = excluded.enabled,
                       status = excluded.status,
                       last_sync_at = excluded.last_sync_at,
                       sync_count = excluded.sync_count,
                       error_count = excluded.error_count,
                       articles_count = excluded.articles_count,
                       last_error = excluded.last_error,
                       max_articles_per_category = excluded.max_articles_per_category,
                       sync_timeout_seconds = excluded.sync_timeout_seconds""",
                (
                    source.id,
                    source.name,
                    source.platform.value,
                    source.base_url,
                    int(source.enabled),
                    source.status.value,
                    to_db_timestamp(source.last_sync_at),
                    source.sync_count,
                    source.error_count,
                    source.articles_count,
                    source.last_error,
                    source.max_articles_per_category,
                    source.sync_timeout_seconds,
                    to_db_timestamp(source.created_at),
                )
            )

    def delete(self, source_id: str) -> None:
        """Delete a source and, by cascade, its articles."""
        with self._db.conn() as conn:
            conn.execute("DELETE FROM sources WHERE id = ?", (source_id,))
