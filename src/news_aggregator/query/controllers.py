"""Controllers for article, feed and preference CLI commands."""

from __future__ import annotations

from collections.abc import Iterator
from contextlib import contextmanager
from dataclasses import dataclass
from datetime import date
from pathlib import Path
from typing import Any

from news_aggregator.config import Settings
from news_aggregator.query.cache import TaggedCache
from news_aggregator.query.filters import FilterBuilder
from news_aggregator.query.models import ArticlePage, ArticleView, UserPreferenceView
from news_aggregator.query.service import ArticleQueryService, PersonalizedFeedService
from news_aggregator.storage.repository import NewsRepository, open_repository


@dataclass(slots=True)
class ArticleSearchCommand:
    """CLI inputs for public article search."""

    db_path: Path | None
    search_term: str | None = None
    sources: tuple[str, ...] = ()
    categories: tuple[str, ...] = ()
    author: str | None = None
    from_date: date | None = None
    to_date: date | None = None
    sort: str | None = None
    order: str | None = None
    per_page: int | None = None
    page: int = 1


@dataclass(slots=True)
class ArticleShowCommand:
    db_path: Path | None
    article_id: int


@dataclass(slots=True)
class FeedCommand:
    """CLI inputs for personalized feed; overrides use search semantics."""

    db_path: Path | None
    user_id: str
    search_term: str | None = None
    sources: tuple[str, ...] = ()
    categories: tuple[str, ...] = ()
    from_date: date | None = None
    to_date: date | None = None
    sort: str | None = None
    order: str | None = None
    per_page: int | None = None
    page: int = 1


@dataclass(slots=True)
class PrefsShowCommand:
    db_path: Path | None
    user_id: str


@dataclass(slots=True)
class PrefsSetCommand:
    """CLI inputs for preference update; given lists replace stored ones."""

    db_path: Path | None
    user_id: str
    sort: str | None = None
    order: str | None = None
    per_page: int | None = None
    sources: tuple[str, ...] | None = None
    categories: tuple[str, ...] | None = None
    authors: tuple[str, ...] | None = None


class QueryCliController:
    """Coordinates read-side command execution."""

    def __init__(self, *, cache: TaggedCache | None = None) -> None:
        self._cache = cache

    def search(self, command: ArticleSearchCommand) -> list[str]:
        params = _overrides(
            search_term=command.search_term,
            sources=command.sources,
            categories=command.categories,
            from_date=command.from_date,
            to_date=command.to_date,
            sort=command.sort,
            order=command.order,
            per_page=command.per_page,
            page=command.page,
        )
        if command.author:
            params["author"] = command.author
        with self._services(command.db_path) as (settings, service, _feed):
            page = service.search(FilterBuilder(settings.preferences).from_request(params))
        return _page_lines(page)

    def show(self, command: ArticleShowCommand) -> list[str]:
        with self._services(command.db_path) as (_settings, service, _feed):
            article = service.get_article(command.article_id)
        if article is None:
            raise ValueError(f"Article not found: {command.article_id}")
        return _article_detail_lines(article)

    def feed(self, command: FeedCommand) -> list[str]:
        overrides = _overrides(
            search_term=command.search_term,
            sources=command.sources,
            categories=command.categories,
            from_date=command.from_date,
            to_date=command.to_date,
            sort=command.sort,
            order=command.order,
            per_page=command.per_page,
            page=command.page,
        )
        with self._services(command.db_path) as (_settings, _service, feed):
            result = feed.get_feed(command.user_id, overrides)
        meta = result.meta
        lines = [
            f"Feed for {command.user_id}: "
            f"sources={','.join(meta['applied_sources']) or '*'} "
            f"categories={','.join(meta['applied_categories']) or '*'} "
            f"author_filter={'yes' if meta['has_author_filter'] else 'no'}",
        ]
        lines.extend(_page_lines(result.page))
        return lines

    def show_preferences(self, command: PrefsShowCommand) -> list[str]:
        settings = Settings.from_env(db_path=command.db_path)
        settings.validate_preferences()
        with open_repository(settings.db_path) as repository:
            preferences = repository.get_or_create_preferences(
                command.user_id,
                settings.preferences,
            )
        return _preference_lines(preferences)

    def set_preferences(self, command: PrefsSetCommand) -> list[str]:
        settings = Settings.from_env(db_path=command.db_path)
        settings.validate_preferences()
        with open_repository(settings.db_path) as repository:
            repository.seed_sources()
            preferences = repository.update_preferences(
                command.user_id,
                sort=command.sort,
                order=command.order,
                per_page=command.per_page,
                source_slugs=command.sources,
                category_slugs=command.categories,
                authors=command.authors,
                defaults=settings.preferences,
            )
        return ["Preferences updated.", *_preference_lines(preferences)]

    @contextmanager
    def _services(
        self,
        db_path: Path | None,
    ) -> Iterator[tuple[Settings, ArticleQueryService, PersonalizedFeedService]]:
        settings = Settings.from_env(db_path=db_path)
        settings.validate_for_cache()
        settings.validate_preferences()
        cache = self._cache or TaggedCache.from_settings(settings.cache)
        with open_repository(settings.db_path) as repository:
            yield settings, *_build_services(repository, cache, settings)


def _build_services(
    repository: NewsRepository,
    cache: TaggedCache,
    settings: Settings,
) -> tuple[ArticleQueryService, PersonalizedFeedService]:
    service = ArticleQueryService(repository=repository, cache=cache)
    feed = PersonalizedFeedService(
        repository=repository,
        query_service=service,
        filter_builder=FilterBuilder(settings.preferences),
    )
    return service, feed


def _overrides(  # noqa: PLR0913
    *,
    search_term: str | None,
    sources: tuple[str, ...],
    categories: tuple[str, ...],
    from_date: date | None,
    to_date: date | None,
    sort: str | None,
    order: str | None,
    per_page: int | None,
    page: int,
) -> dict[str, Any]:
    params: dict[str, Any] = {
        "searchTerm": search_term,
        "source": list(sources) or None,
        "category": list(categories) or None,
        "from_date": from_date,
        "to_date": to_date,
        "sort": sort,
        "order": order,
        "per_page": per_page,
        "page": page,
    }
    return {key: value for key, value in params.items() if value is not None}


def _page_lines(page: ArticlePage) -> list[str]:
    lines = [f"Articles: total={page.total} page={page.page}/{page.last_page} per_page={page.per_page}"]
    for article in page.items:
        published = article.published_at.isoformat() if article.published_at else "-"
        source = article.source.slug if article.source else "-"
        category = article.category.slug if article.category else "-"
        lines.append(f"  [{article.id}] {published} {source}/{category} {article.title}")
    return lines


def _article_detail_lines(article: ArticleView) -> list[str]:
    return [
        f"id={article.id} merchant_id={article.merchant_id}",
        f"title={article.title}",
        f"url={article.url}",
        f"source={article.source.name if article.source else '-'}",
        f"category={article.category.name if article.category else '-'}",
        f"author={article.author or '-'}",
        f"published_at={article.published_at.isoformat() if article.published_at else '-'}",
        f"description={article.description or '-'}",
    ]


def _preference_lines(preferences: UserPreferenceView) -> list[str]:
    return [
        f"user={preferences.user_id}",
        f"sort={preferences.default_sort} order={preferences.default_order} "
        f"per_page={preferences.articles_per_page}",
        f"sources={','.join(preferences.source_slugs) or '-'}",
        f"categories={','.join(preferences.category_slugs) or '-'}",
        f"authors={','.join(preferences.authors) or '-'}",
    ]
