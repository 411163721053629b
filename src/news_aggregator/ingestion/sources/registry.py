"""Builds configured source adapters keyed by provider slug."""

from __future__ import annotations

import logging

from news_aggregator.config import Settings
from news_aggregator.http.fetcher import HttpFetcher
from news_aggregator.ingestion.sources.base import HttpJsonSource, SourceAdapter
from news_aggregator.ingestion.sources.guardian import GuardianSource
from news_aggregator.ingestion.sources.newsapi import DEFAULT_PROVIDER_SOURCES, NewsApiSource
from news_aggregator.ingestion.sources.nyt import NytSource
from news_aggregator.storage.repository import NewsRepository

logger = logging.getLogger(__name__)


def build_sources(
    settings: Settings,
    repository: NewsRepository,
    *,
    fetcher: HttpFetcher,
    names: tuple[str, ...] = (),
) -> dict[str, SourceAdapter]:
    """Adapters for ``names`` (or all enabled sources), in configuration order."""

    selected = names or settings.ingestion.enabled_sources
    adapters: dict[str, SourceAdapter] = {}
    for name in selected:
        provider = settings.providers[name]
        source_row = repository.get_source_by_slug(name)
        if source_row is None:
            logger.warning("Source %s is not seeded; its records will be skipped", name)
        common = {
            "fetcher": fetcher,
            "base_url": provider.base_url,
            "endpoint": provider.endpoint,
            "api_key": provider.api_key,
            "source_id": source_row.id if source_row is not None else None,
        }
        adapter: HttpJsonSource
        if name == "guardian":
            adapter = GuardianSource(page_size=provider.page_size, **common)
        elif name == "newsapi":
            adapter = NewsApiSource(
                provider_sources=provider.extra.get("sources", DEFAULT_PROVIDER_SOURCES),
                **common,
            )
        elif name == "nyt":
            adapter = NytSource(**common)
        else:
            raise ValueError(f"Unknown source {name!r}")
        adapters[name] = adapter
    return adapters
