"""Tests for the shared HTTP fetcher."""

from __future__ import annotations

import httpx

from news_aggregator.http.fetcher import HttpFetcher


def _fetcher(handler) -> HttpFetcher:
    return HttpFetcher(transport=httpx.MockTransport(handler), user_agent="test-agent")


class TestHttpFetcher:
    def test_get_json_success_passes_params_and_headers(self):
        seen: list[httpx.Request] = []

        def handler(request: httpx.Request) -> httpx.Response:
            seen.append(request)
            return httpx.Response(200, json={"ok": True})

        with _fetcher(handler) as fetcher:
            result = fetcher.get_json("https://api.test/items", params={"page": 2})

        assert result.is_success
        assert result.payload == {"ok": True}
        assert seen[0].url.params["page"] == "2"
        assert seen[0].headers["User-Agent"] == "test-agent"

    def test_get_json_reports_http_status(self):
        with _fetcher(lambda request: httpx.Response(503)) as fetcher:
            result = fetcher.get_json("https://api.test/items")

        assert not result.is_success
        assert result.status_code == 503
        assert result.error == "HTTP 503"

    def test_get_json_reports_timeout(self):
        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.ReadTimeout("slow", request=request)

        with _fetcher(handler) as fetcher:
            result = fetcher.get_json("https://api.test/items")

        assert not result.is_success
        assert result.error == "timeout"

    def test_get_json_reports_transport_error(self):
        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.ConnectError("refused", request=request)

        with _fetcher(handler) as fetcher:
            result = fetcher.get_json("https://api.test/items")

        assert not result.is_success
        assert result.status_code == 0
        assert "refused" in (result.error or "")

    def test_get_json_rejects_invalid_json(self):
        with _fetcher(lambda request: httpx.Response(200, text="<html>")) as fetcher:
            result = fetcher.get_json("https://api.test/items")

        assert not result.is_success
        assert result.error == "invalid JSON response"
