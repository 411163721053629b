"""Shared test fixtures."""

from __future__ import annotations

import os
from collections.abc import Iterator
from datetime import UTC, datetime
from pathlib import Path

import pytest

from news_aggregator.config import Settings
from news_aggregator.ingestion.models import CanonicalRecord
from news_aggregator.storage.repository import NewsRepository

_ENV_PREFIXES = ("NEWS_AGGREGATOR_", "GUARDIAN_", "NEWSAPI_", "NYTIMES_")


@pytest.fixture(autouse=True)
def _isolated_env(monkeypatch: pytest.MonkeyPatch) -> None:
    """Keep developer environment variables out of settings under test."""
    for name in list(os.environ):
        if name.startswith(_ENV_PREFIXES):
            monkeypatch.delenv(name, raising=False)


@pytest.fixture()
def repository(tmp_path: Path) -> Iterator[NewsRepository]:
    repo = NewsRepository(tmp_path / "news.db")
    repo.init_schema()
    repo.seed_sources()
    yield repo
    repo.close()


@pytest.fixture()
def settings(tmp_path: Path) -> Settings:
    return Settings(db_path=tmp_path / "news.db")


@pytest.fixture()
def guardian_id(repository: NewsRepository) -> int:
    source = repository.get_source_by_slug("guardian")
    assert source is not None
    return source.id


def make_record(
    merchant_id: str | None,
    *,
    source_id: int | None,
    title: str | None = "Title",
    url: str | None = None,
    category_label: str | None = None,
    author: str | None = None,
    description: str | None = None,
    published_at: datetime | None = None,
) -> CanonicalRecord:
    """Valid record unless a field is overridden with a bad value."""

    return CanonicalRecord(
        merchant_id=merchant_id,
        title=title,
        slug="title" if title else None,
        url=url if url is not None else f"https://example.com/{merchant_id}",
        source_id=source_id,
        description=description,
        author=author,
        category_label=category_label,
        published_at=published_at or datetime(2026, 10, 1, 12, 0, tzinfo=UTC),
    )
