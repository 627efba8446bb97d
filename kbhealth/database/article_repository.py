"""
Article repository - upserts from sync runs, health scores from audits.
"""

import json

from ..models import Article, utcnow
from .connection import DatabaseConnection
from .converters import row_to_article, to_db_timestamp


class ArticleRepository:
    """Repository for article operations. Implements the ArticleStore capability."""

    def __init__(self, db: DatabaseConnection):
        self._db = db

    def get(self, article_id: str) -> Article | None:
        with self._db.conn() as conn:
            row = conn.execute("SELECT * FROM articles WHERE id = ?", (article_id,)).fetchone()
            return row_to_article(row) if row else None

    def upsert(self, article: Article) -> None:
        """Insert or update by id. content_health_score is left untouched."""
        now = to_db_timestamp(utcnow())
        with self._db.conn() as conn:
            conn.execute(
                """INSERT INTO articles (
                       id, source_id, url, title, content, summary, category, tags,
                       last_modified_at, author, publication_status, view_count,
                       helpful_votes, last_reviewed_at, created_at, updated_at
                   ) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
                   ON CONFLICT(id) DO UPDATE SET
                       url = excluded.url,
                       title = excluded.title,
                       content = excluded.content,
                       summary = excluded.summary,
                       category = excluded.category,
                       tags = excluded.tags,
                       last_modified_at = excluded.last_modified_at,
                       author = excluded.author,
                       publication_status = excluded.publication_status,
                       view_count = excluded.view_count,
                       helpful_votes = excluded.helpful_votes,
                       last_reviewed_at = excluded.last_reviewed_at,
                       updated_at = excluded.updated_at""",
                (
                    article.id,
                    article.source_id,
                    article.url,
                    article.title,
                    article.content,
                    article.summary,
                    article.category,
                    json.dumps(sorted(article.tags)),
                    to_db_timestamp(article.last_modified_at),
                    article.author,
                    article.publication_status,
                    article.view_count,
                    article.helpful_votes,
                    to_db_timestamp(article.last_reviewed_at),
                    now,
                    now,
                )
            )

    def list_by_source(self, source_id: str) -> list[Article]:
        with self._db.conn() as conn:
            rows = conn.execute(
                "SELECT * FROM articles WHERE source_id = ? ORDER BY url",
                (source_id,)
            ).fetchall()
            return [row_to_article(row) for row in rows]

    def count_by_source(self, source_id: str) -> int:
        with self._db.conn() as conn:
            row = conn.execute(
                "SELECT COUNT(*) as count FROM articles WHERE source_id = ?",
                (source_id,)
            ).fetchone()
            return row["count"]

    def update_health_score(self, article_id: str, score: int) -> None:
        with self._db.conn() as conn:
            conn.execute(
                "UPDATE articles SET content_health_score = ? WHERE id = ?",
                (score, article_id)
            )
