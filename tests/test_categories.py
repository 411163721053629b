from __future__ import annotations

import threading
from concurrent.futures import ThreadPoolExecutor

import allure
from sqlalchemy import func
from sqlalchemy.exc import OperationalError
from sqlmodel import Session, select

from news_aggregator.ingestion.categories import CategoryMemo, CategoryResolver
from news_aggregator.storage.repository import NewsRepository, StorageError
from news_aggregator.storage.sqlmodel_models import Category

pytestmark = [
    allure.epic("News Ingestion"),
    allure.feature("Category Resolution"),
]


def _category_rows(repository: NewsRepository) -> int:
    with Session(repository.engine) as session:
        return int(session.exec(select(func.count()).select_from(Category)).one())


class _RacingRepository:
    """First lookup misses even though a concurrent writer already created the row."""

    def __init__(self, inner: NewsRepository) -> None:
        self.inner = inner
        self.lookups = 0
        self.creates = 0

    def find_category_by_slug(self, slug: str) -> int | None:
        self.lookups += 1
        if self.lookups == 1:
            return None
        return self.inner.find_category_by_slug(slug)

    def create_category(self, *, name: str, slug: str) -> int:
        self.creates += 1
        return self.inner.create_category(name=name, slug=slug)


def test_blank_labels_resolve_to_none(repository: NewsRepository) -> None:
    resolver = CategoryResolver(repository)

    assert resolver.resolve(None) is None
    assert resolver.resolve("   ") is None
    assert resolver.resolve("???") is None
    assert _category_rows(repository) == 0


def test_resolve_creates_once_and_memoizes(repository: NewsRepository) -> None:
    resolver = CategoryResolver(repository)

    first = resolver.resolve("World News")
    second = resolver.resolve("world  news")

    assert first is not None
    assert first == second
    assert resolver.created_count == 1
    assert len(resolver.memo) == 1


def test_resolve_reuses_existing_row(repository: NewsRepository) -> None:
    existing = repository.create_category(name="Sport", slug="sport")
    resolver = CategoryResolver(repository)

    assert resolver.resolve("Sport") == existing
    assert resolver.created_count == 0


def test_concurrent_resolution_creates_single_row(repository: NewsRepository) -> None:
    resolver = CategoryResolver(repository)
    barrier = threading.Barrier(2)

    def resolve() -> int | None:
        barrier.wait()
        return resolver.resolve("World News")

    with ThreadPoolExecutor(max_workers=2) as executor:
        ids = list(executor.map(lambda _: resolve(), range(2)))

    assert ids[0] is not None
    assert ids[0] == ids[1]
    assert _category_rows(repository) == 1


def test_integrity_conflict_converges_on_winner(repository: NewsRepository) -> None:
    winner = repository.create_category(name="World News", slug="world-news")
    racing = _RacingRepository(repository)
    resolver = CategoryResolver(racing)  # type: ignore[arg-type]

    assert resolver.resolve("World News") == winner
    assert racing.creates == 1
    assert resolver.created_count == 0
    assert _category_rows(repository) == 1


def test_storage_failure_degrades_to_none(repository: NewsRepository) -> None:
    class _BrokenRepository:
        def find_category_by_slug(self, slug: str) -> int | None:
            raise OperationalError("SELECT", {}, Exception("database is locked"))

    resolver = CategoryResolver(_BrokenRepository())  # type: ignore[arg-type]

    assert resolver.resolve("Tech") is None


def test_memo_first_id_wins() -> None:
    memo = CategoryMemo()

    assert memo.remember("tech", 1) == 1
    assert memo.remember("tech", 2) == 1
    assert memo.get("tech") == 1


def test_failed_category_insert_degrades_to_none() -> None:
    class _UnpersistedRepository:
        def find_category_by_slug(self, slug: str) -> int | None:
            return None

        def create_category(self, *, name: str, slug: str) -> int:
            raise StorageError(f"Failed to persist category {slug!r}")

    resolver = CategoryResolver(_UnpersistedRepository())  # type: ignore[arg-type]

    assert resolver.resolve("Tech") is None
    assert resolver.created_count == 0
