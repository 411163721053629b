from __future__ import annotations

from datetime import UTC, date, datetime

import allure
import pytest

from conftest import make_record
from news_aggregator.ingestion.services.store_service import BatchUpsertStore
from news_aggregator.query.filters import FilterSpecification
from news_aggregator.storage.repository import NewsRepository

pytestmark = [
    allure.epic("Article Queries"),
    allure.feature("Storage & Search"),
]


@pytest.fixture()
def seeded(repository: NewsRepository) -> NewsRepository:
    guardian = repository.get_source_by_slug("guardian")
    nyt = repository.get_source_by_slug("nyt")
    assert guardian is not None and nyt is not None
    politics = repository.create_category(name="Politics", slug="politics")
    records = [
        make_record(
            "g1",
            source_id=guardian.id,
            title="Climate summit opens",
            author="Jane Doe",
            published_at=datetime(2026, 10, 1, 9, 0, tzinfo=UTC),
        ),
        make_record(
            "g2",
            source_id=guardian.id,
            title="Budget vote",
            description="A CLIMATE angle on spending",
            author="John Roe",
            published_at=datetime(2026, 10, 2, 23, 59, tzinfo=UTC),
        ),
        make_record(
            "n1",
            source_id=nyt.id,
            title="Art fair",
            author="Ann Lee",
            published_at=datetime(2026, 10, 3, 0, 0, tzinfo=UTC),
        ),
    ]
    records[1].category_id = politics
    BatchUpsertStore(repository=repository).store_many(records)
    return repository


def _ids(repository: NewsRepository, spec: FilterSpecification) -> list[str]:
    items, _ = repository.search_articles(spec)
    return [item.merchant_id for item in items]


def test_seed_sources_is_idempotent(repository: NewsRepository) -> None:
    assert repository.seed_sources() == 3
    assert [source.slug for source in repository.list_sources()] == ["nyt", "newsapi", "guardian"]


def test_search_term_is_case_insensitive_over_text_fields(seeded: NewsRepository) -> None:
    assert _ids(seeded, FilterSpecification(search_term="climate")) == ["g2", "g1"]


def test_source_filter_accepts_slug_or_id(seeded: NewsRepository) -> None:
    nyt = seeded.get_source_by_slug("nyt")
    assert nyt is not None

    assert _ids(seeded, FilterSpecification(source=("nyt",))) == ["n1"]
    assert _ids(seeded, FilterSpecification(source=(str(nyt.id), "guardian"))) == ["n1", "g2", "g1"]


def test_category_filter_excludes_uncategorized(seeded: NewsRepository) -> None:
    assert _ids(seeded, FilterSpecification(category=("politics",))) == ["g2"]


def test_author_filters(seeded: NewsRepository) -> None:
    assert _ids(seeded, FilterSpecification(author="doe")) == ["g1"]
    assert _ids(seeded, FilterSpecification(preferred_authors=("Roe", "Lee"))) == ["n1", "g2"]


def test_date_range_is_inclusive_of_whole_days(seeded: NewsRepository) -> None:
    spec = FilterSpecification(from_date=date(2026, 10, 2), to_date=date(2026, 10, 2))
    assert _ids(seeded, spec) == ["g2"]

    spec = FilterSpecification(from_date=date(2026, 10, 2))
    assert _ids(seeded, spec) == ["n1", "g2"]


def test_sort_allow_list_and_fallback(seeded: NewsRepository) -> None:
    assert _ids(seeded, FilterSpecification(sort="title", order="asc")) == ["n1", "g2", "g1"]
    assert _ids(seeded, FilterSpecification(sort="published_at", order="asc")) == ["g1", "g2", "n1"]
    assert _ids(seeded, FilterSpecification(sort="popularity", order="asc")) == ["n1", "g2", "g1"]


def test_pagination_reports_total(seeded: NewsRepository) -> None:
    items, total = seeded.search_articles(FilterSpecification(per_page=2, page=2))

    assert total == 3
    assert [item.merchant_id for item in items] == ["g1"]


def test_get_article_joins_source_and_category(seeded: NewsRepository) -> None:
    items, _ = seeded.search_articles(FilterSpecification(category=("politics",)))
    article = seeded.get_article(items[0].id)

    assert article is not None
    assert article.source is not None and article.source.slug == "guardian"
    assert article.category is not None and article.category.slug == "politics"
    assert article.published_at == datetime(2026, 10, 2, 23, 59, tzinfo=UTC)
    assert seeded.get_article(999_999) is None


def test_preferences_are_created_with_defaults(repository: NewsRepository) -> None:
    preferences = repository.get_or_create_preferences("alice")

    assert preferences.default_sort == "published_at"
    assert preferences.articles_per_page == 20
    assert preferences.source_slugs == []
    assert repository.get_or_create_preferences("alice") == preferences


def test_update_preferences_replaces_lists(repository: NewsRepository) -> None:
    repository.create_category(name="Tech", slug="tech")
    repository.update_preferences(
        "alice",
        sort="title",
        source_slugs=["guardian", "nyt"],
        category_slugs=["tech"],
        authors=["Jane Doe", "Jane Doe", " "],
    )

    updated = repository.update_preferences("alice", source_slugs=["newsapi"], per_page=50)

    assert updated.default_sort == "title"
    assert updated.articles_per_page == 50
    assert updated.source_slugs == ["newsapi"]
    assert updated.category_slugs == ["tech"]
    assert updated.authors == ["Jane Doe"]


def test_update_preferences_rejects_unknown_slug(repository: NewsRepository) -> None:
    with pytest.raises(ValueError, match="Unknown source slug"):
        repository.update_preferences("alice", source_slugs=["bbc"])


def test_digit_only_category_slug_matches_by_slug(seeded: NewsRepository) -> None:
    politics = seeded.find_category_by_slug("politics")
    assert politics is not None
    year = seeded.create_category(name="2024", slug="2024")
    nyt = seeded.get_source_by_slug("nyt")
    assert nyt is not None
    record = make_record("n2", source_id=nyt.id, title="Year in review")
    record.category_id = year
    BatchUpsertStore(repository=seeded).store_many([record])

    assert _ids(seeded, FilterSpecification(category=("2024",))) == ["n2"]
    assert _ids(seeded, FilterSpecification(category=(str(politics),))) == ["g2"]


def test_like_wildcards_in_search_values_are_literal(seeded: NewsRepository) -> None:
    guardian = seeded.get_source_by_slug("guardian")
    assert guardian is not None
    BatchUpsertStore(repository=seeded).store_many(
        [
            make_record("w1", source_id=guardian.id, title="Turnout hits 100% in village", author="J_n"),
            make_record("w2", source_id=guardian.id, title="Turnout of 1000 voters", author="Jan"),
        ],
    )

    assert _ids(seeded, FilterSpecification(search_term="100%")) == ["w1"]
    assert _ids(seeded, FilterSpecification(author="j_n")) == ["w1"]
    assert _ids(seeded, FilterSpecification(preferred_authors=("J_n",))) == ["w1"]
