"""New York Times top stories adapter."""

from __future__ import annotations

from typing import Any

from news_aggregator.ingestion.cleaning import parse_published_at, url_hash
from news_aggregator.ingestion.models import CanonicalRecord
from news_aggregator.ingestion.sources.base import HttpJsonSource, SourcePayloadError
from news_aggregator.storage.common import utc_now


class NytSource(HttpJsonSource):
    name = "nyt"

    def request_params(self) -> dict[str, Any]:
        return {"api-key": self.api_key}

    def extract_items(self, payload: Any) -> list[Any]:
        if not isinstance(payload, dict):
            raise SourcePayloadError(message="nyt: unexpected payload")
        results = payload.get("results") or []
        if not isinstance(results, list):
            raise SourcePayloadError(message="nyt: results is not a list")
        return results

    def to_record(self, item: dict[str, Any]) -> CanonicalRecord | None:
        url = item.get("url")
        merchant_id = item.get("uri") or (url_hash(str(url)) if url else None)
        # Top stories occasionally omit the date; fall back to fetch time.
        published_at = parse_published_at(item.get("published_date")) or utc_now()
        return self._record(
            merchant_id=merchant_id,
            title=item.get("title"),
            url=url,
            description=item.get("abstract"),
            content=item.get("abstract"),
            author=item.get("byline"),
            category_label=item.get("section"),
            thumbnail=_first_multimedia_url(item.get("multimedia")),
            published_at=published_at,
        )


def _first_multimedia_url(multimedia: Any) -> str | None:
    if not isinstance(multimedia, list) or not multimedia:
        return None
    first = multimedia[0]
    if isinstance(first, dict):
        return first.get("url")
    return None
