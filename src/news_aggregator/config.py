"""Runtime configuration for ingestion, cache and query layers."""

from __future__ import annotations

import os
from dataclasses import dataclass, field
from pathlib import Path
from urllib.parse import urlparse

KNOWN_SOURCES = ("guardian", "newsapi", "nyt")
CACHE_BACKENDS = frozenset({"memory", "redis"})
SORT_FIELDS = ("published_at", "created_at", "title")
SORT_ORDERS = ("asc", "desc")


@dataclass(slots=True)
class IngestionSettings:
    """Fetch and storage settings for ingestion runs."""

    batch_size: int = 100
    max_workers: int = 4
    request_timeout_seconds: float = 30.0
    enabled_sources: tuple[str, ...] = KNOWN_SOURCES


@dataclass(slots=True)
class ProviderSettings:
    """Credentials and endpoints for one news provider."""

    api_key: str = ""
    base_url: str = ""
    endpoint: str = ""
    page_size: int = 10
    extra: dict[str, str] = field(default_factory=dict)


@dataclass(slots=True)
class CacheSettings:
    """Query cache settings."""

    enabled: bool = True
    backend: str = "memory"
    redis_url: str = "redis://localhost:6379/0"
    key_prefix: str = "news_aggregator:"
    query_ttl_seconds: int = 1_800
    metadata_ttl_seconds: int = 3_600
    article_ttl_seconds: int = 7_200


@dataclass(slots=True)
class PreferenceDefaults:
    """Defaults for newly created user preferences and anonymous queries."""

    sort: str = "published_at"
    order: str = "desc"
    per_page: int = 20


def _default_providers() -> dict[str, ProviderSettings]:
    return {
        "guardian": ProviderSettings(
            base_url="https://content.guardianapis.com",
            endpoint="/search",
        ),
        "newsapi": ProviderSettings(
            base_url="https://newsapi.org/v2",
            endpoint="/top-headlines",
            extra={"sources": "techcrunch,the-verge,the-wall-street-journal"},
        ),
        "nyt": ProviderSettings(
            base_url="https://api.nytimes.com/svc",
            endpoint="/topstories/v2/arts.json",
        ),
    }


@dataclass(slots=True)
class Settings:
    """Application settings grouped by domain concerns."""

    db_path: Path = Path(".news_aggregator.db")
    ingestion: IngestionSettings = field(default_factory=IngestionSettings)
    providers: dict[str, ProviderSettings] = field(default_factory=_default_providers)
    cache: CacheSettings = field(default_factory=CacheSettings)
    preferences: PreferenceDefaults = field(default_factory=PreferenceDefaults)

    @classmethod
    def from_env(cls, db_path: Path | None = None) -> Settings:
        """Load settings from environment with sane defaults for local development."""

        return cls(
            db_path=db_path or Path(os.getenv("NEWS_AGGREGATOR_DB_PATH", ".news_aggregator.db")),
            ingestion=IngestionSettings(
                batch_size=int(os.getenv("NEWS_AGGREGATOR_BATCH_SIZE", "100")),
                max_workers=int(os.getenv("NEWS_AGGREGATOR_MAX_WORKERS", "4")),
                request_timeout_seconds=float(
                    os.getenv("NEWS_AGGREGATOR_REQUEST_TIMEOUT_SECONDS", "30.0"),
                ),
                enabled_sources=_env_csv("NEWS_AGGREGATOR_SOURCES", default=KNOWN_SOURCES),
            ),
            providers={
                "guardian": ProviderSettings(
                    api_key=os.getenv("GUARDIAN_API_KEY", ""),
                    base_url=os.getenv("GUARDIAN_BASE_URL", "https://content.guardianapis.com"),
                    endpoint="/search",
                    page_size=int(os.getenv("GUARDIAN_PAGE_SIZE", "10")),
                ),
                "newsapi": ProviderSettings(
                    api_key=os.getenv("NEWSAPI_KEY", ""),
                    base_url=os.getenv("NEWSAPI_BASE_URL", "https://newsapi.org/v2"),
                    endpoint="/top-headlines",
                    extra={
                        "sources": os.getenv(
                            "NEWSAPI_SOURCES",
                            "techcrunch,the-verge,the-wall-street-journal",
                        ),
                    },
                ),
                "nyt": ProviderSettings(
                    api_key=os.getenv("NYTIMES_API_KEY", ""),
                    base_url=os.getenv("NYTIMES_BASE_URL", "https://api.nytimes.com/svc"),
                    endpoint=f"/topstories/v2/{os.getenv('NYTIMES_SECTION', 'arts')}.json",
                ),
            },
            cache=CacheSettings(
                enabled=_env_bool("NEWS_AGGREGATOR_CACHE_ENABLED", default=True),
                backend=os.getenv("NEWS_AGGREGATOR_CACHE_BACKEND", "memory").strip().lower(),
                redis_url=os.getenv("NEWS_AGGREGATOR_REDIS_URL", "redis://localhost:6379/0"),
                key_prefix=os.getenv("NEWS_AGGREGATOR_CACHE_PREFIX", "news_aggregator:"),
                query_ttl_seconds=int(os.getenv("NEWS_AGGREGATOR_QUERY_TTL_SECONDS", "1800")),
                metadata_ttl_seconds=int(
                    os.getenv("NEWS_AGGREGATOR_METADATA_TTL_SECONDS", "3600"),
                ),
                article_ttl_seconds=int(os.getenv("NEWS_AGGREGATOR_ARTICLE_TTL_SECONDS", "7200")),
            ),
            preferences=PreferenceDefaults(
                sort=os.getenv("NEWS_AGGREGATOR_DEFAULT_SORT", "published_at"),
                order=os.getenv("NEWS_AGGREGATOR_DEFAULT_ORDER", "desc"),
                per_page=int(os.getenv("NEWS_AGGREGATOR_DEFAULT_PER_PAGE", "20")),
            ),
        )

    def validate_for_fetch(self, override_sources: tuple[str, ...] = ()) -> None:
        """Raise configuration error if ingestion settings are unusable."""

        if self.ingestion.batch_size <= 0:
            raise ValueError("NEWS_AGGREGATOR_BATCH_SIZE must be a positive integer.")
        if self.ingestion.max_workers <= 0:
            raise ValueError("NEWS_AGGREGATOR_MAX_WORKERS must be a positive integer.")
        if self.ingestion.request_timeout_seconds <= 0:
            raise ValueError("NEWS_AGGREGATOR_REQUEST_TIMEOUT_SECONDS must be > 0.")

        effective = override_sources or self.ingestion.enabled_sources
        if not effective:
            raise ValueError(
                "At least one source is required. "
                "Set NEWS_AGGREGATOR_SOURCES or pass --source.",
            )
        for name in effective:
            if name not in self.providers:
                raise ValueError(
                    f"Unknown source {name!r}. Expected one of: {', '.join(sorted(self.providers))}.",
                )
            _validate_base_url(name, self.providers[name].base_url)

    def validate_for_cache(self) -> None:
        """Raise configuration error if cache settings are unusable."""

        if self.cache.backend not in CACHE_BACKENDS:
            raise ValueError(
                f"Invalid NEWS_AGGREGATOR_CACHE_BACKEND: {self.cache.backend!r}. "
                f"Expected one of: {', '.join(sorted(CACHE_BACKENDS))}.",
            )
        for name, ttl in (
            ("NEWS_AGGREGATOR_QUERY_TTL_SECONDS", self.cache.query_ttl_seconds),
            ("NEWS_AGGREGATOR_METADATA_TTL_SECONDS", self.cache.metadata_ttl_seconds),
            ("NEWS_AGGREGATOR_ARTICLE_TTL_SECONDS", self.cache.article_ttl_seconds),
        ):
            if ttl <= 0:
                raise ValueError(f"{name} must be > 0.")

    def validate_preferences(self) -> None:
        """Raise configuration error if preference defaults are outside allowed values."""

        if self.preferences.sort not in SORT_FIELDS:
            raise ValueError(
                f"NEWS_AGGREGATOR_DEFAULT_SORT must be one of: {', '.join(SORT_FIELDS)}.",
            )
        if self.preferences.order not in SORT_ORDERS:
            raise ValueError("NEWS_AGGREGATOR_DEFAULT_ORDER must be 'asc' or 'desc'.")
        if not 1 <= self.preferences.per_page <= 100:  # noqa: PLR2004
            raise ValueError("NEWS_AGGREGATOR_DEFAULT_PER_PAGE must be between 1 and 100.")


def _validate_base_url(name: str, value: str) -> None:
    parsed = urlparse(value)
    if parsed.scheme not in {"http", "https"} or not parsed.netloc:
        raise ValueError(
            f"Invalid base URL for source {name!r}: "
            f"{value!r}. Expected an absolute URL with http:// or https:// scheme.",
        )


def _env_csv(name: str, default: tuple[str, ...]) -> tuple[str, ...]:
    raw = os.getenv(name)
    if raw is None:
        return default
    values: list[str] = []
    for part in raw.split(","):
        token = part.strip().lower()
        if token and token not in values:
            values.append(token)
    return tuple(values)


def _env_bool(name: str, default: bool) -> bool:
    value = os.getenv(name)
    if value is None:
        return default
    normalized = value.strip().lower()
    if normalized in {"1", "true", "yes", "on"}:
        return True
    if normalized in {"0", "false", "no", "off"}:
        return False
    raise ValueError(f"Invalid boolean value for {name}: {value!r}")
