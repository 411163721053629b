"""Cached read services: article search, metadata and personalized feed."""

from __future__ import annotations

import logging
from collections.abc import Mapping
from dataclasses import asdict, dataclass, field
from typing import Any

from news_aggregator.query.cache import TAG_CATEGORIES, TAG_SOURCES, CacheKeyStrategy, TaggedCache
from news_aggregator.query.filters import FilterBuilder, FilterSpecification
from news_aggregator.query.models import ArticlePage, ArticleView, CategoryView, SourceView
from news_aggregator.storage.repository import NewsRepository

logger = logging.getLogger(__name__)


class ArticleQueryService:
    def __init__(
        self,
        *,
        repository: NewsRepository,
        cache: TaggedCache,
        keys: CacheKeyStrategy | None = None,
    ) -> None:
        self.repository = repository
        self.cache = cache
        self.keys = keys or CacheKeyStrategy()

    def search(self, spec: FilterSpecification) -> ArticlePage:
        """One page of matching articles, served from cache when possible."""

        def produce() -> dict[str, Any]:
            items, total = self.repository.search_articles(spec)
            return ArticlePage(
                items=items,
                total=total,
                page=spec.page,
                per_page=spec.per_page,
            ).to_dict()

        return ArticlePage.from_dict(self.cache.remember_query(self.keys.slot(spec), produce))

    def get_article(self, article_id: int) -> ArticleView | None:
        def produce() -> dict[str, Any] | None:
            article = self.repository.get_article(article_id)
            return article.to_dict() if article is not None else None

        data = self.cache.remember_article(self.keys.article_key(article_id), produce)
        return ArticleView.from_dict(data) if data is not None else None

    def list_sources(self) -> list[SourceView]:
        data = self.cache.remember_metadata(
            self.keys.SOURCES_KEY,
            lambda: [_as_dict(source) for source in self.repository.list_sources()],
            TAG_SOURCES,
        )
        return [SourceView(**item) for item in data]

    def list_categories(self) -> list[CategoryView]:
        data = self.cache.remember_metadata(
            self.keys.CATEGORIES_KEY,
            lambda: [_as_dict(category) for category in self.repository.list_categories()],
            TAG_CATEGORIES,
        )
        return [CategoryView(**item) for item in data]


@dataclass(slots=True)
class FeedResult:
    """Feed page plus a description of how it was personalized."""

    page: ArticlePage
    meta: dict[str, Any] = field(default_factory=dict)


class PersonalizedFeedService:
    """Builds a user's feed from stored preferences and request overrides."""

    def __init__(
        self,
        *,
        repository: NewsRepository,
        query_service: ArticleQueryService,
        filter_builder: FilterBuilder,
    ) -> None:
        self.repository = repository
        self.query_service = query_service
        self.filter_builder = filter_builder

    def get_feed(self, user_id: str, overrides: Mapping[str, Any] | None = None) -> FeedResult:
        preferences = self.repository.get_or_create_preferences(
            user_id,
            self.filter_builder.defaults,
        )
        spec = self.filter_builder.build(preferences, overrides)
        page = self.query_service.search(spec)
        logger.debug("Feed for %s: %s of %s articles", user_id, len(page.items), page.total)
        return FeedResult(
            page=page,
            meta={
                "personalized": True,
                "applied_sources": list(spec.source or ()),
                "applied_categories": list(spec.category or ()),
                "has_author_filter": bool(spec.preferred_authors),
                "user_defaults": {
                    "sort": preferences.default_sort,
                    "order": preferences.default_order,
                    "per_page": preferences.articles_per_page,
                },
            },
        )


def _as_dict(view: SourceView | CategoryView) -> dict[str, Any]:
    return asdict(view)
