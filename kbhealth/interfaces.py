"""
Capabilities injected into the core.

The SQLite repositories in kbhealth.database and AiohttpClient in
kbhealth.http_client are the default implementations.
"""

from dataclasses import dataclass, field
from typing import Mapping, Protocol

from .models import Article, DataSource


@dataclass
class HttpResponse:
    status: int
    url: str
    text: str = ""
    headers: Mapping[str, str] = field(default_factory=dict)


class HttpClient(Protocol):
    async def get(self, url: str, headers: Mapping[str, str] | None = None) -> HttpResponse:
        """
        Fetch a URL.

        Returns the response for 2xx and 304. Raises TransientFetchError for
        timeouts, connection failures, 5xx and 429, PermanentFetchError for
        other statuses.
        """
        ...


class ArticleStore(Protocol):
    def get(self, article_id: str) -> Article | None: ...

    def upsert(self, article: Article) -> None:
        """Insert or update by id. Never modifies content_health_score."""
        ...

    def list_by_source(self, source_id: str) -> list[Article]: ...

    def count_by_source(self, source_id: str) -> int: ...

    def update_health_score(self, article_id: str, score: int) -> None: ...


class SourceStore(Protocol):
    def load_all(self) -> list[DataSource]: ...

    def save(self, source: DataSource) -> None: ...

    def delete(self, source_id: str) -> None: ...
