"""Controllers for ingestion, schema and cache CLI commands."""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path

from news_aggregator.config import Settings
from news_aggregator.ingestion.orchestrator import NewsAggregator, has_failures
from news_aggregator.query.cache import CacheScope, TaggedCache
from news_aggregator.storage.repository import open_repository


@dataclass(slots=True)
class DbInitCommand:
    """CLI inputs for schema initialization command."""

    db_path: Path | None


@dataclass(slots=True)
class FetchCommand:
    """CLI inputs for fetch command."""

    db_path: Path | None
    sources: tuple[str, ...]


@dataclass(slots=True)
class FetchCommandResult:
    lines: list[str]
    success: bool


@dataclass(slots=True)
class CacheClearCommand:
    scope: str


class IngestionCliController:
    """Coordinates ingestion command execution."""

    def __init__(self, *, cache: TaggedCache | None = None) -> None:
        self._cache = cache

    def init_db(self, command: DbInitCommand) -> list[str]:
        settings = Settings.from_env(db_path=command.db_path)
        with open_repository(settings.db_path) as repository:
            seeded = repository.seed_sources()
            sources = repository.list_sources()
        return [
            f"Database ready: {settings.db_path}",
            f"Sources seeded: {seeded} ({', '.join(source.slug for source in sources)})",
        ]

    def fetch(self, command: FetchCommand) -> FetchCommandResult:
        settings = Settings.from_env(db_path=command.db_path)
        settings.validate_for_fetch(override_sources=command.sources)
        with open_repository(settings.db_path) as repository:
            repository.seed_sources()
            outcomes = NewsAggregator(
                settings=settings,
                repository=repository,
                cache=self._cache_for(settings),
            ).fetch_and_store_all(command.sources)

        lines = ["Fetch completed:"]
        totals = {"fetched": 0, "inserted": 0, "updated": 0, "failed": 0, "skipped": 0}
        for name, outcome in outcomes.items():
            status = "ok" if outcome.success else "FAILED"
            lines.append(
                f"  {name}: status={status} fetched={outcome.fetched} "
                f"inserted={outcome.inserted} updated={outcome.updated} "
                f"failed={outcome.failed} skipped={outcome.skipped} message={outcome.message}",
            )
            for error in outcome.errors:
                lines.append(f"    batch {error.batch_index}: {error.message}")
            for key in totals:
                totals[key] += getattr(outcome, key)
        lines.append(
            "Totals: " + " ".join(f"{key}={value}" for key, value in totals.items()),
        )
        return FetchCommandResult(lines=lines, success=not has_failures(outcomes))

    def clear_cache(self, command: CacheClearCommand) -> list[str]:
        settings = Settings.from_env()
        settings.validate_for_cache()
        scope = CacheScope(command.scope.lower())
        cache = self._cache_for(settings)
        cache.invalidate(scope)
        line = f"Cache scope cleared: {scope.value} (driver={cache.backend.driver})"
        if scope is CacheScope.ARTICLES and not cache.supports_tags:
            line += " [no tag support: article queries expire by TTL]"
        return [line]

    def cache_stats(self) -> list[str]:
        settings = Settings.from_env()
        settings.validate_for_cache()
        stats = self._cache_for(settings).stats()
        ttl = stats["ttl"]
        return [
            f"driver={stats['driver']}",
            f"enabled={'yes' if stats['enabled'] else 'no'}",
            f"supports_tags={'yes' if stats['supports_tags'] else 'no'}",
            f"ttl_query={ttl['query']}s ttl_metadata={ttl['metadata']}s ttl_article={ttl['article']}s",
        ]

    def _cache_for(self, settings: Settings) -> TaggedCache:
        if self._cache is not None:
            return self._cache
        return TaggedCache.from_settings(settings.cache)
