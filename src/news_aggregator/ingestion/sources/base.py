"""Common source adapter contracts."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Protocol

from news_aggregator.http.fetcher import HttpFetcher
from news_aggregator.ingestion.cleaning import slugify
from news_aggregator.ingestion.models import CanonicalRecord

logger = logging.getLogger(__name__)


@dataclass(slots=True)
class SourceError(Exception):
    """Base source fetch error."""

    message: str
    code: str = "source_error"

    def __str__(self) -> str:
        return self.message


@dataclass(slots=True)
class SourceFetchError(SourceError):
    """Provider request failed: transport error, timeout or non-2xx status."""

    status_code: int = 0
    code: str = "fetch_failed"


@dataclass(slots=True)
class SourcePayloadError(SourceError):
    """Provider answered with a document of unexpected shape."""

    code: str = "bad_payload"


class SourceAdapter(Protocol):
    """Interface for news providers.

    ``fetch`` returns every record of one provider request, or raises.
    """

    name: str

    def fetch(self) -> list[CanonicalRecord]:
        raise NotImplementedError


class HttpJsonSource:
    """Shared request and record-building logic for JSON news APIs."""

    name = "http"

    def __init__(
        self,
        *,
        fetcher: HttpFetcher,
        base_url: str,
        endpoint: str,
        api_key: str,
        source_id: int | None,
    ) -> None:
        self.fetcher = fetcher
        self.base_url = base_url.rstrip("/")
        self.endpoint = endpoint
        self.api_key = api_key
        self.source_id = source_id

    def fetch(self) -> list[CanonicalRecord]:
        payload = self._request(self.request_params())
        items = self.extract_items(payload)
        records: list[CanonicalRecord] = []
        dropped = 0
        for item in items:
            if not isinstance(item, dict):
                dropped += 1
                continue
            record = self.to_record(item)
            if record is None:
                dropped += 1
                continue
            records.append(record)
        if dropped:
            logger.info("%s: dropped %s entries without title or url", self.name, dropped)
        logger.info("%s: fetched %s records", self.name, len(records))
        return records

    def request_params(self) -> dict[str, Any]:
        raise NotImplementedError

    def extract_items(self, payload: Any) -> list[Any]:
        raise NotImplementedError

    def to_record(self, item: dict[str, Any]) -> CanonicalRecord | None:
        raise NotImplementedError

    def _request(self, params: dict[str, Any]) -> Any:
        url = f"{self.base_url}{self.endpoint}"
        result = self.fetcher.get_json(url, params=params)
        if not result.is_success:
            raise SourceFetchError(
                message=f"{self.name}: request failed ({result.error})",
                status_code=result.status_code,
            )
        return result.payload

    def _record(  # noqa: PLR0913
        self,
        *,
        merchant_id: str | None,
        title: Any,
        url: Any,
        description: Any = None,
        content: Any = None,
        author: Any = None,
        category_label: Any = None,
        thumbnail: Any = None,
        published_at: datetime | None = None,
    ) -> CanonicalRecord | None:
        title_text = _text(title)
        url_text = _text(url)
        if not title_text or not url_text:
            return None
        return CanonicalRecord(
            merchant_id=merchant_id,
            title=title_text,
            slug=slugify(title_text),
            url=url_text,
            source_id=self.source_id,
            description=_text(description),
            content=_text(content),
            author=_text(author),
            category_label=_text(category_label),
            thumbnail=_text(thumbnail),
            published_at=published_at,
        )


def _text(value: Any) -> str | None:
    if value is None:
        return None
    text = str(value).strip()
    return text or None
