"""Concurrent fetch of every configured source with isolated outcomes."""

from __future__ import annotations

import logging
from collections.abc import Mapping
from concurrent.futures import Future, ThreadPoolExecutor

from news_aggregator.config import Settings
from news_aggregator.http.fetcher import HttpFetcher
from news_aggregator.ingestion.categories import CategoryResolver
from news_aggregator.ingestion.models import SourceOutcome
from news_aggregator.ingestion.pipeline import IngestionPipeline
from news_aggregator.ingestion.services.store_service import BatchUpsertStore
from news_aggregator.ingestion.sources.base import SourceAdapter
from news_aggregator.ingestion.sources.registry import build_sources
from news_aggregator.query.cache import CacheScope, TaggedCache
from news_aggregator.storage.repository import NewsRepository

logger = logging.getLogger(__name__)

NO_ARTICLES_MESSAGE = "No articles available"


class FetchOrchestrator:
    """Runs each source through the pipeline; failures become outcomes, not exceptions."""

    def __init__(
        self,
        *,
        pipeline: IngestionPipeline,
        cache: TaggedCache | None = None,
        max_workers: int = 4,
    ) -> None:
        self.pipeline = pipeline
        self.cache = cache
        self.max_workers = max(1, max_workers)

    def fetch_all(self, sources: Mapping[str, SourceAdapter]) -> dict[str, SourceOutcome]:
        if not sources:
            return {}
        created_before = self.pipeline.categories.created_count
        if self.max_workers == 1:
            outcomes = {name: self._run_source(name, adapter) for name, adapter in sources.items()}
        else:
            with ThreadPoolExecutor(
                max_workers=min(self.max_workers, len(sources)),
                thread_name_prefix="fetch",
            ) as executor:
                futures: dict[str, Future[SourceOutcome]] = {
                    name: executor.submit(self._run_source, name, adapter)
                    for name, adapter in sources.items()
                }
                outcomes = {name: future.result() for name, future in futures.items()}

        categories_created = self.pipeline.categories.created_count - created_before
        self._invalidate(outcomes, categories_created=categories_created)
        return outcomes

    def _run_source(self, name: str, adapter: SourceAdapter) -> SourceOutcome:
        try:
            records = adapter.fetch()
            if not records:
                logger.info("%s: %s", name, NO_ARTICLES_MESSAGE)
                return SourceOutcome(success=True, message=NO_ARTICLES_MESSAGE)
            result = self.pipeline.process(records)
        except Exception as error:  # noqa: BLE001
            logger.error("%s: fetch failed: %s", name, error)
            return SourceOutcome(success=False, message=str(error))

        message = (
            f"Inserted: {result.inserted}, Updated: {result.updated}, "
            f"Failed: {result.failed}, Skipped: {result.skipped}"
        )
        logger.info("%s: %s", name, message)
        return SourceOutcome(
            success=True,
            fetched=len(records),
            inserted=result.inserted,
            updated=result.updated,
            failed=result.failed,
            skipped=result.skipped,
            message=message,
            errors=result.errors,
        )

    def _invalidate(self, outcomes: Mapping[str, SourceOutcome], *, categories_created: int) -> None:
        if self.cache is None:
            return
        if any(outcome.changed > 0 for outcome in outcomes.values()):
            self.cache.invalidate(CacheScope.ARTICLES)
        if categories_created > 0:
            self.cache.invalidate(CacheScope.CATEGORIES)


def has_failures(outcomes: Mapping[str, SourceOutcome]) -> bool:
    return any(not outcome.success for outcome in outcomes.values())


class NewsAggregator:
    """Zero-argument ingestion entry point wired from settings."""

    def __init__(
        self,
        *,
        settings: Settings,
        repository: NewsRepository,
        cache: TaggedCache | None = None,
        fetcher: HttpFetcher | None = None,
        resolver: CategoryResolver | None = None,
    ) -> None:
        self.settings = settings
        self.repository = repository
        self.cache = cache
        self.fetcher = fetcher
        self.resolver = resolver or CategoryResolver(repository)

    def fetch_and_store_all(self, names: tuple[str, ...] = ()) -> dict[str, SourceOutcome]:
        pipeline = IngestionPipeline(
            store=BatchUpsertStore(
                repository=self.repository,
                batch_size=self.settings.ingestion.batch_size,
            ),
            categories=self.resolver,
        )
        orchestrator = FetchOrchestrator(
            pipeline=pipeline,
            cache=self.cache,
            max_workers=self.settings.ingestion.max_workers,
        )
        if self.fetcher is not None:
            return orchestrator.fetch_all(self._sources(self.fetcher, names))
        with HttpFetcher(timeout_seconds=self.settings.ingestion.request_timeout_seconds) as fetcher:
            return orchestrator.fetch_all(self._sources(fetcher, names))

    def _sources(self, fetcher: HttpFetcher, names: tuple[str, ...]) -> dict[str, SourceAdapter]:
        return build_sources(self.settings, self.repository, fetcher=fetcher, names=names)
