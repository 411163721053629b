"""The Guardian content API adapter."""

from __future__ import annotations

from typing import Any

from news_aggregator.ingestion.cleaning import parse_published_at
from news_aggregator.ingestion.models import CanonicalRecord
from news_aggregator.ingestion.sources.base import HttpJsonSource, SourcePayloadError

SHOW_FIELDS = "trailText,headline,thumbnail,byline,body"
UNCATEGORIZED = "Uncategorized"


class GuardianSource(HttpJsonSource):
    name = "guardian"

    def __init__(self, *, page_size: int = 10, **kwargs: Any) -> None:
        super().__init__(**kwargs)
        self.page_size = page_size

    def request_params(self) -> dict[str, Any]:
        return {
            "api-key": self.api_key,
            "show-fields": SHOW_FIELDS,
            "page-size": self.page_size,
        }

    def extract_items(self, payload: Any) -> list[Any]:
        response = payload.get("response") if isinstance(payload, dict) else None
        if not isinstance(response, dict):
            raise SourcePayloadError(message="guardian: response object missing")
        results = response.get("results") or []
        if not isinstance(results, list):
            raise SourcePayloadError(message="guardian: results is not a list")
        return results

    def to_record(self, item: dict[str, Any]) -> CanonicalRecord | None:
        fields = item.get("fields") or {}
        return self._record(
            merchant_id=item.get("id"),
            title=item.get("webTitle"),
            url=item.get("webUrl"),
            description=fields.get("headline") or fields.get("trailText"),
            content=fields.get("body") or fields.get("trailText"),
            author=fields.get("byline"),
            category_label=item.get("sectionName") or UNCATEGORIZED,
            thumbnail=fields.get("thumbnail"),
            published_at=parse_published_at(item.get("webPublicationDate")),
        )
