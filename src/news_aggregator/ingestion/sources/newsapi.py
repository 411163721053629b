"""NewsAPI top-headlines adapter."""

from __future__ import annotations

from typing import Any

from news_aggregator.ingestion.cleaning import parse_published_at, url_hash
from news_aggregator.ingestion.models import CanonicalRecord
from news_aggregator.ingestion.sources.base import HttpJsonSource, SourcePayloadError

DEFAULT_PROVIDER_SOURCES = "techcrunch,the-verge,the-wall-street-journal"


class NewsApiSource(HttpJsonSource):
    """NewsAPI articles carry no stable id, so the URL hash stands in for one."""

    name = "newsapi"

    def __init__(self, *, provider_sources: str = DEFAULT_PROVIDER_SOURCES, **kwargs: Any) -> None:
        super().__init__(**kwargs)
        self.provider_sources = provider_sources

    def request_params(self) -> dict[str, Any]:
        return {"apiKey": self.api_key, "sources": self.provider_sources}

    def extract_items(self, payload: Any) -> list[Any]:
        if not isinstance(payload, dict):
            raise SourcePayloadError(message="newsapi: unexpected payload")
        if payload.get("status") == "error":
            raise SourcePayloadError(
                message=f"newsapi: {payload.get('message') or payload.get('code') or 'error'}",
            )
        articles = payload.get("articles") or []
        if not isinstance(articles, list):
            raise SourcePayloadError(message="newsapi: articles is not a list")
        return articles

    def to_record(self, item: dict[str, Any]) -> CanonicalRecord | None:
        url = item.get("url")
        return self._record(
            merchant_id=url_hash(str(url)) if url else None,
            title=item.get("title"),
            url=url,
            description=item.get("description"),
            content=item.get("content"),
            author=item.get("author"),
            thumbnail=item.get("urlToImage"),
            published_at=parse_published_at(item.get("publishedAt")),
        )
