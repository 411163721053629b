"""Category label resolution shared by concurrent ingestion workers."""

from __future__ import annotations

import logging
import threading

from sqlalchemy.exc import IntegrityError, SQLAlchemyError

from news_aggregator.ingestion.cleaning import slugify
from news_aggregator.storage.repository import NewsRepository, StorageError

logger = logging.getLogger(__name__)


class CategoryMemo:
    """Slug to id map; the first id stored for a slug wins."""

    def __init__(self) -> None:
        self._ids: dict[str, int] = {}
        self._lock = threading.Lock()

    def get(self, slug: str) -> int | None:
        with self._lock:
            return self._ids.get(slug)

    def remember(self, slug: str, category_id: int) -> int:
        with self._lock:
            return self._ids.setdefault(slug, category_id)

    def __len__(self) -> int:
        with self._lock:
            return len(self._ids)


class CategoryResolver:
    """Get-or-create categories by slug.

    Concurrent creators of the same slug converge: the loser of the unique
    constraint race re-reads the winner's row. Any other failure degrades to
    ``None`` so the article is stored uncategorized.
    """

    def __init__(self, repository: NewsRepository, memo: CategoryMemo | None = None) -> None:
        self.repository = repository
        self.memo = memo or CategoryMemo()
        self._created = 0
        self._created_lock = threading.Lock()

    @property
    def created_count(self) -> int:
        with self._created_lock:
            return self._created

    def resolve(self, label: str | None) -> int | None:
        if label is None or not label.strip():
            return None
        name = label.strip()
        slug = slugify(name)
        if not slug:
            return None

        cached = self.memo.get(slug)
        if cached is not None:
            return cached

        try:
            existing = self.repository.find_category_by_slug(slug)
            if existing is not None:
                return self.memo.remember(slug, existing)
            try:
                created = self.repository.create_category(name=name, slug=slug)
            except IntegrityError:
                logger.debug("Category %s created concurrently, re-reading", slug)
                winner = self.repository.find_category_by_slug(slug)
                if winner is None:
                    logger.warning("Category %s vanished after a conflicting insert", slug)
                    return None
                return self.memo.remember(slug, winner)
        except (SQLAlchemyError, StorageError) as exc:
            logger.warning("Category %s could not be resolved: %s", slug, exc)
            return None

        with self._created_lock:
            self._created += 1
        logger.info("Created category %s (%s)", name, slug)
        return self.memo.remember(slug, created)
