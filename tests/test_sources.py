from __future__ import annotations

from datetime import UTC, datetime

import allure
import httpx
import pytest

from news_aggregator.config import Settings
from news_aggregator.http.fetcher import HttpFetcher
from news_aggregator.ingestion.cleaning import url_hash
from news_aggregator.ingestion.sources.base import SourceFetchError, SourcePayloadError
from news_aggregator.ingestion.sources.guardian import GuardianSource
from news_aggregator.ingestion.sources.newsapi import NewsApiSource
from news_aggregator.ingestion.sources.nyt import NytSource
from news_aggregator.ingestion.sources.registry import build_sources
from news_aggregator.storage.repository import NewsRepository

pytestmark = [
    allure.epic("News Ingestion"),
    allure.feature("Provider Adapters"),
]


def _fetcher(payload: object, status: int = 200, seen: list[httpx.Request] | None = None) -> HttpFetcher:
    def handler(request: httpx.Request) -> httpx.Response:
        if seen is not None:
            seen.append(request)
        return httpx.Response(status, json=payload)

    return HttpFetcher(transport=httpx.MockTransport(handler))


def _common(fetcher: HttpFetcher, endpoint: str, base_url: str = "https://api.test") -> dict:
    return {
        "fetcher": fetcher,
        "base_url": base_url,
        "endpoint": endpoint,
        "api_key": "secret",
        "source_id": 7,
    }


def test_guardian_maps_fields_and_defaults_category() -> None:
    seen: list[httpx.Request] = []
    payload = {
        "response": {
            "results": [
                {
                    "id": "politics/2026/oct/19/vote",
                    "webTitle": "Vote tonight",
                    "webUrl": "https://www.theguardian.com/politics/vote",
                    "sectionName": "Politics",
                    "webPublicationDate": "2026-10-19T06:00:00Z",
                    "fields": {
                        "trailText": "Trail",
                        "body": "<p>Body</p>",
                        "byline": "Jane Doe",
                        "thumbnail": "https://img.test/1.jpg",
                    },
                },
                {
                    "id": "world/no-section",
                    "webTitle": "No section",
                    "webUrl": "https://www.theguardian.com/world/x",
                    "fields": {"headline": "Headline"},
                },
                {"id": "broken", "webTitle": "", "webUrl": "https://www.theguardian.com/b"},
            ],
        },
    }
    source = GuardianSource(page_size=5, **_common(_fetcher(payload, seen=seen), "/search"))

    records = source.fetch()

    assert [record.merchant_id for record in records] == [
        "politics/2026/oct/19/vote",
        "world/no-section",
    ]
    first, second = records
    assert first.slug == "vote-tonight"
    assert first.description == "Trail"
    assert first.content == "<p>Body</p>"
    assert first.author == "Jane Doe"
    assert first.category_label == "Politics"
    assert first.thumbnail == "https://img.test/1.jpg"
    assert first.published_at == datetime(2026, 10, 19, 6, 0, tzinfo=UTC)
    assert first.source_id == 7
    assert second.description == "Headline"
    assert second.category_label == "Uncategorized"
    assert seen[0].url.path == "/search"
    assert seen[0].url.params["api-key"] == "secret"
    assert seen[0].url.params["page-size"] == "5"


def test_newsapi_uses_url_hash_as_identity() -> None:
    payload = {
        "status": "ok",
        "articles": [
            {
                "title": "Gadget launch",
                "url": "https://techcrunch.test/gadget",
                "author": "Ann",
                "urlToImage": "https://img.test/g.png",
                "publishedAt": "2026-10-18T12:00:00Z",
                "description": "Desc",
                "content": "Content",
            },
            {"title": "No url"},
        ],
    }
    source = NewsApiSource(provider_sources="techcrunch", **_common(_fetcher(payload), "/top-headlines"))

    records = source.fetch()

    assert len(records) == 1
    assert records[0].merchant_id == url_hash("https://techcrunch.test/gadget")
    assert records[0].category_label is None
    assert records[0].thumbnail == "https://img.test/g.png"


def test_newsapi_error_status_raises() -> None:
    source = NewsApiSource(
        **_common(_fetcher({"status": "error", "message": "apiKey invalid"}), "/top-headlines"),
    )

    with pytest.raises(SourcePayloadError, match="apiKey invalid"):
        source.fetch()


def test_nyt_prefers_uri_and_falls_back_to_fetch_time() -> None:
    payload = {
        "results": [
            {
                "uri": "nyt://article/1",
                "title": "Gallery opens",
                "url": "https://nytimes.test/gallery",
                "abstract": "Abstract",
                "byline": "By Someone",
                "section": "arts",
                "published_date": "2026-10-17T10:00:00-04:00",
                "multimedia": [{"url": "https://img.test/n.jpg"}],
            },
            {"title": "Undated", "url": "https://nytimes.test/undated"},
        ],
    }
    source = NytSource(**_common(_fetcher(payload), "/topstories/v2/arts.json"))
    before = datetime.now(tz=UTC)

    records = source.fetch()

    first, second = records
    assert first.merchant_id == "nyt://article/1"
    assert first.description == first.content == "Abstract"
    assert first.category_label == "arts"
    assert first.thumbnail == "https://img.test/n.jpg"
    assert first.published_at == datetime(2026, 10, 17, 14, 0, tzinfo=UTC)
    assert second.merchant_id == url_hash("https://nytimes.test/undated")
    assert second.published_at is not None and second.published_at >= before


def test_http_failure_raises_source_fetch_error() -> None:
    source = NytSource(**_common(_fetcher({"fault": "x"}, status=429), "/topstories/v2/arts.json"))

    with pytest.raises(SourceFetchError) as excinfo:
        source.fetch()

    assert excinfo.value.status_code == 429
    assert str(excinfo.value) == "nyt: request failed (HTTP 429)"


def test_unexpected_payload_shape_raises() -> None:
    source = GuardianSource(**_common(_fetcher({"message": "nope"}), "/search"))

    with pytest.raises(SourcePayloadError):
        source.fetch()


def test_build_sources_wires_seeded_source_ids(repository: NewsRepository) -> None:
    settings = Settings(db_path=repository.db_path)
    fetcher = _fetcher({})
    guardian = repository.get_source_by_slug("guardian")
    assert guardian is not None

    sources = build_sources(settings, repository, fetcher=fetcher, names=("nyt", "guardian"))

    assert list(sources) == ["nyt", "guardian"]
    assert isinstance(sources["guardian"], GuardianSource)
    assert sources["guardian"].source_id == guardian.id  # type: ignore[attr-defined]
    fetcher.close()
