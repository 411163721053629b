from __future__ import annotations

from pathlib import Path

import allure
import httpx
import pytest
from click.testing import CliRunner

from news_aggregator import __version__
from news_aggregator.http import fetcher as fetcher_module
from news_aggregator.main import news_aggregator

pytestmark = [
    allure.epic("Command Line"),
    allure.feature("news-aggregator CLI"),
]

_GUARDIAN_PAYLOAD = {
    "response": {
        "results": [
            {
                "id": "world/2026/oct/19/a",
                "webTitle": "Ceasefire talks resume",
                "webUrl": "https://www.theguardian.com/world/a",
                "sectionName": "World news",
                "webPublicationDate": "2026-10-19T07:00:00Z",
                "fields": {"trailText": "Talks", "byline": "Jane Doe"},
            },
            {
                "id": "world/2026/oct/19/b",
                "webTitle": "Markets rally",
                "webUrl": "https://www.theguardian.com/business/b",
                "sectionName": "Business",
                "webPublicationDate": "2026-10-18T07:00:00Z",
                "fields": {},
            },
        ],
    },
}


@pytest.fixture()
def offline_http(monkeypatch: pytest.MonkeyPatch) -> None:
    """Route every HttpFetcher through a mock transport."""

    def handler(request: httpx.Request) -> httpx.Response:
        if request.url.host == "content.guardianapis.com":
            return httpx.Response(200, json=_GUARDIAN_PAYLOAD)
        return httpx.Response(500, json={"fault": "down"})

    original_init = fetcher_module.HttpFetcher.__init__

    def _patched_init(self, **kwargs) -> None:
        kwargs["transport"] = httpx.MockTransport(handler)
        original_init(self, **kwargs)

    monkeypatch.setattr(fetcher_module.HttpFetcher, "__init__", _patched_init)


def test_version_option() -> None:
    result = CliRunner().invoke(news_aggregator, ["--version"])

    assert result.exit_code == 0
    assert __version__ in result.output


def test_db_init_seeds_sources(tmp_path: Path) -> None:
    result = CliRunner().invoke(news_aggregator, ["db", "init", "--db-path", str(tmp_path / "n.db")])

    assert result.exit_code == 0
    assert "Sources seeded: 3" in result.output


def test_fetch_then_search_and_show(tmp_path: Path, offline_http: None) -> None:
    db_path = str(tmp_path / "n.db")
    runner = CliRunner()

    fetched = runner.invoke(
        news_aggregator,
        ["fetch", "--db-path", db_path, "--source", "guardian"],
    )
    assert fetched.exit_code == 0, fetched.output
    assert "guardian: status=ok fetched=2 inserted=2" in fetched.output
    assert "Totals: fetched=2 inserted=2 updated=0 failed=0 skipped=0" in fetched.output

    again = runner.invoke(news_aggregator, ["fetch", "--db-path", db_path, "--source", "guardian"])
    assert "inserted=0 updated=2" in again.output

    search = runner.invoke(
        news_aggregator,
        ["articles", "search", "--db-path", db_path, "--q", "ceasefire"],
    )
    assert search.exit_code == 0
    assert "Articles: total=1 page=1/1" in search.output
    assert "guardian/world-news Ceasefire talks resume" in search.output

    article_id = search.output.split("[", 1)[1].split("]", 1)[0]
    show = runner.invoke(news_aggregator, ["articles", "show", "--db-path", db_path, article_id])
    assert show.exit_code == 0
    assert "author=Jane Doe" in show.output


def test_fetch_exits_non_zero_when_a_source_fails(tmp_path: Path, offline_http: None) -> None:
    result = CliRunner().invoke(
        news_aggregator,
        ["fetch", "--db-path", str(tmp_path / "n.db"), "--source", "guardian", "--source", "nyt"],
    )

    assert result.exit_code == 1
    assert "guardian: status=ok" in result.output
    assert "nyt: status=FAILED" in result.output
    assert "HTTP 500" in result.output


def test_fetch_rejects_bad_configuration(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("NEWS_AGGREGATOR_BATCH_SIZE", "0")

    result = CliRunner().invoke(news_aggregator, ["fetch", "--db-path", str(tmp_path / "n.db")])

    assert result.exit_code == 1
    assert "BATCH_SIZE" in result.output


def test_articles_show_missing_id(tmp_path: Path) -> None:
    result = CliRunner().invoke(
        news_aggregator,
        ["articles", "show", "--db-path", str(tmp_path / "n.db"), "12345"],
    )

    assert result.exit_code == 1
    assert "Article not found: 12345" in result.output


def test_prefs_and_feed(tmp_path: Path, offline_http: None) -> None:
    db_path = str(tmp_path / "n.db")
    runner = CliRunner()
    runner.invoke(news_aggregator, ["fetch", "--db-path", db_path, "--source", "guardian"])

    updated = runner.invoke(
        news_aggregator,
        [
            "prefs",
            "set",
            "--db-path",
            db_path,
            "--user",
            "alice",
            "--category",
            "business",
            "--sort",
            "title",
        ],
    )
    assert updated.exit_code == 0, updated.output
    assert "categories=business" in updated.output

    feed = runner.invoke(news_aggregator, ["feed", "--db-path", db_path, "--user", "alice"])
    assert feed.exit_code == 0, feed.output
    assert "categories=business" in feed.output
    assert "Articles: total=1" in feed.output
    assert "Markets rally" in feed.output

    shown = runner.invoke(news_aggregator, ["prefs", "show", "--db-path", db_path, "--user", "alice"])
    assert "sort=title order=desc per_page=20" in shown.output


def test_prefs_set_rejects_unknown_source(tmp_path: Path) -> None:
    result = CliRunner().invoke(
        news_aggregator,
        ["prefs", "set", "--db-path", str(tmp_path / "n.db"), "--user", "u", "--source", "bbc"],
    )

    assert result.exit_code == 1
    assert "Unknown source slug(s): bbc" in result.output


def test_cache_clear_and_stats() -> None:
    runner = CliRunner()

    cleared = runner.invoke(news_aggregator, ["cache", "clear", "articles"])
    assert cleared.exit_code == 0
    assert "Cache scope cleared: articles (driver=memory)" in cleared.output

    stats = runner.invoke(news_aggregator, ["cache", "stats"])
    assert stats.exit_code == 0
    assert "supports_tags=yes" in stats.output
    assert "ttl_query=1800s" in stats.output

    invalid = runner.invoke(news_aggregator, ["cache", "clear", "everything"])
    assert invalid.exit_code == 2


@pytest.mark.parametrize(
    "args",
    [
        ["articles", "search"],
        ["feed", "--user", "alice"],
        ["prefs", "show", "--user", "alice"],
        ["prefs", "set", "--user", "alice", "--sort", "title"],
    ],
)
def test_query_commands_reject_bad_preference_defaults(
    tmp_path: Path,
    monkeypatch: pytest.MonkeyPatch,
    args: list[str],
) -> None:
    monkeypatch.setenv("NEWS_AGGREGATOR_DEFAULT_PER_PAGE", "0")

    result = CliRunner().invoke(news_aggregator, [*args, "--db-path", str(tmp_path / "n.db")])

    assert result.exit_code == 1
    assert "NEWS_AGGREGATOR_DEFAULT_PER_PAGE" in result.output
