"""SQLModel-backed storage facade for ingestion and queries."""

from __future__ import annotations

import logging
from collections.abc import Iterable, Iterator, Sequence
from contextlib import contextmanager
from datetime import datetime, time, timedelta
from pathlib import Path
from typing import Any

from sqlalchemy import delete, func, or_
from sqlalchemy.dialects.sqlite import insert as sqlite_insert
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlmodel import Session, col, select

from news_aggregator.config import PreferenceDefaults
from news_aggregator.ingestion.models import DEFAULT_SOURCES, SourceDefinition
from news_aggregator.query.filters import FilterSpecification
from news_aggregator.query.models import ArticleView, CategoryView, SourceView, UserPreferenceView
from news_aggregator.storage.alembic_runner import upgrade_head
from news_aggregator.storage.common import (
    build_sqlite_engine,
    to_db_datetime,
    to_utc_aware_datetime,
    utc_now,
)
from news_aggregator.storage.sqlmodel_models import (
    Article,
    Category,
    Source,
    UserPreference,
    UserPreferredAuthor,
    UserPreferredCategory,
    UserPreferredSource,
)

logger = logging.getLogger(__name__)

# Every article column except the merchant_id identity key and created_at.
UPDATABLE_FIELDS = (
    "title",
    "slug",
    "description",
    "content",
    "source_id",
    "author",
    "category_id",
    "url",
    "thumbnail",
    "published_at",
    "fetched_at",
    "updated_at",
)
SORTABLE_FIELDS = {
    "published_at": Article.published_at,
    "created_at": Article.created_at,
    "title": Article.title,
}


class StorageError(Exception):
    """Transactional failure while writing to the news store."""


class NewsRepository:
    """Facade that persists news entities using SQLModel and Alembic."""

    def __init__(self, db_path: Path, *, busy_timeout_ms: int = 5_000) -> None:
        self.db_path = db_path
        self.engine = build_sqlite_engine(db_path=db_path, busy_timeout_ms=busy_timeout_ms)

    def close(self) -> None:
        self.engine.dispose()

    def init_schema(self) -> None:
        upgrade_head(self.db_path)

    # Sources and categories

    def seed_sources(self, definitions: Iterable[SourceDefinition] = DEFAULT_SOURCES) -> int:
        """Create or refresh source rows by slug, returning how many were touched."""

        touched = 0
        with Session(self.engine) as session:
            for definition in definitions:
                row = session.exec(select(Source).where(Source.slug == definition.slug)).one_or_none()
                if row is None:
                    row = Source(
                        name=definition.name,
                        slug=definition.slug,
                        api_identifier=definition.api_identifier,
                        base_url=definition.base_url,
                        created_at=utc_now(),
                    )
                else:
                    row.name = definition.name
                    row.api_identifier = definition.api_identifier
                    row.base_url = definition.base_url
                session.add(row)
                touched += 1
            session.commit()
        return touched

    def get_source_by_slug(self, slug: str) -> SourceView | None:
        with Session(self.engine) as session:
            row = session.exec(select(Source).where(Source.slug == slug)).one_or_none()
            return _source_view(row) if row is not None else None

    def list_sources(self) -> list[SourceView]:
        with Session(self.engine) as session:
            rows = session.exec(select(Source).order_by(col(Source.name))).all()
            return [_source_view(row) for row in rows]

    def list_categories(self) -> list[CategoryView]:
        with Session(self.engine) as session:
            rows = session.exec(select(Category).order_by(col(Category.name))).all()
            return [_category_view(row) for row in rows]

    def find_category_by_slug(self, slug: str) -> int | None:
        with Session(self.engine) as session:
            return session.exec(select(Category.id).where(Category.slug == slug)).one_or_none()

    def create_category(self, *, name: str, slug: str) -> int:
        """Insert a category; raises IntegrityError when the slug already exists."""

        with Session(self.engine) as session:
            row = Category(name=name, slug=slug, created_at=utc_now())
            session.add(row)
            try:
                session.commit()
            except IntegrityError:
                session.rollback()
                raise
            session.refresh(row)
            if row.id is None:
                raise StorageError(f"Failed to persist category {slug!r}")
            return int(row.id)

    # Articles

    def existing_merchant_ids(self, merchant_ids: Iterable[str]) -> set[str]:
        ids = list(merchant_ids)
        if not ids:
            return set()
        with Session(self.engine) as session:
            return self._existing_merchant_ids(session, ids)

    def upsert_article_batch(self, rows: Sequence[dict[str, Any]]) -> set[str]:
        """Upsert one batch atomically, returning merchant_ids that existed before.

        The existence check and the upsert share a transaction; any failure
        rolls the whole batch back and surfaces as StorageError.
        """

        if not rows:
            return set()
        now = to_db_datetime(utc_now())
        values = [
            {
                **row,
                "published_at": to_db_datetime(row.get("published_at")),
                "fetched_at": to_db_datetime(row.get("fetched_at")) or now,
                "created_at": now,
                "updated_at": now,
            }
            for row in rows
        ]
        with Session(self.engine) as session:
            try:
                existing = self._existing_merchant_ids(
                    session,
                    [str(value["merchant_id"]) for value in values],
                )
                session.execute(self._upsert_statement(values))
                session.commit()
            except SQLAlchemyError as error:
                session.rollback()
                raise StorageError(str(error)) from error
        return existing

    def get_article(self, article_id: int) -> ArticleView | None:
        with Session(self.engine) as session:
            row = session.exec(
                _joined_article_select().where(Article.id == article_id),
            ).one_or_none()
            if row is None:
                return None
            article, source, category = row
            return _article_view(article, source, category)

    def count_articles(self) -> int:
        with Session(self.engine) as session:
            return int(session.exec(select(func.count()).select_from(Article)).one())

    def search_articles(self, spec: FilterSpecification) -> tuple[list[ArticleView], int]:
        """Filtered, sorted page of articles plus the total number of matches."""

        per_page = max(1, spec.per_page)
        page = max(1, spec.page)
        with Session(self.engine) as session:
            count_statement = _apply_filters(
                select(func.count(col(Article.id)))
                .select_from(Article)
                .join(Source, col(Article.source_id) == col(Source.id))
                .outerjoin(Category, col(Article.category_id) == col(Category.id)),
                spec,
            )
            total = int(session.exec(count_statement).one())

            statement = _apply_sorting(_apply_filters(_joined_article_select(), spec), spec)
            rows = session.exec(statement.offset((page - 1) * per_page).limit(per_page)).all()

        return [_article_view(article, source, category) for article, source, category in rows], total

    # User preferences

    def get_or_create_preferences(
        self,
        user_id: str,
        defaults: PreferenceDefaults | None = None,
    ) -> UserPreferenceView:
        defaults = defaults or PreferenceDefaults()
        with Session(self.engine) as session:
            row = self._find_preference(session, user_id)
            if row is None:
                now = utc_now()
                session.add(
                    UserPreference(
                        user_id=user_id,
                        default_sort=defaults.sort,
                        default_order=defaults.order,
                        articles_per_page=defaults.per_page,
                        created_at=now,
                        updated_at=now,
                    ),
                )
                try:
                    session.commit()
                except IntegrityError:
                    session.rollback()
                    logger.debug("Preference row for %s created concurrently", user_id)
                row = self._find_preference(session, user_id)
                if row is None:
                    raise RuntimeError(f"Failed to create preferences for user {user_id!r}")
            return self._preference_view(session, row)

    def update_preferences(  # noqa: PLR0913
        self,
        user_id: str,
        *,
        sort: str | None = None,
        order: str | None = None,
        per_page: int | None = None,
        source_slugs: Sequence[str] | None = None,
        category_slugs: Sequence[str] | None = None,
        authors: Sequence[str] | None = None,
        defaults: PreferenceDefaults | None = None,
    ) -> UserPreferenceView:
        """Update scalar defaults and fully replace any list that is given."""

        self.get_or_create_preferences(user_id, defaults)
        with Session(self.engine) as session:
            row = self._find_preference(session, user_id)
            if row is None:
                raise RuntimeError(f"Preferences not found: {user_id}")
            if sort is not None:
                row.default_sort = sort
            if order is not None:
                row.default_order = order
            if per_page is not None:
                row.articles_per_page = per_page
            row.updated_at = utc_now()
            session.add(row)

            if source_slugs is not None:
                source_ids = _resolve_ids(session, Source, source_slugs, kind="source")
                session.execute(
                    delete(UserPreferredSource).where(col(UserPreferredSource.user_id) == user_id),
                )
                for source_id in source_ids:
                    session.add(UserPreferredSource(user_id=user_id, source_id=source_id))
            if category_slugs is not None:
                category_ids = _resolve_ids(session, Category, category_slugs, kind="category")
                session.execute(
                    delete(UserPreferredCategory).where(
                        col(UserPreferredCategory.user_id) == user_id,
                    ),
                )
                for category_id in category_ids:
                    session.add(UserPreferredCategory(user_id=user_id, category_id=category_id))
            if authors is not None:
                session.execute(
                    delete(UserPreferredAuthor).where(col(UserPreferredAuthor.user_id) == user_id),
                )
                seen: set[str] = set()
                for author in authors:
                    name = author.strip()
                    if name and name not in seen:
                        seen.add(name)
                        session.add(UserPreferredAuthor(user_id=user_id, author_name=name))
            session.commit()
            session.refresh(row)
            return self._preference_view(session, row)

    def _find_preference(self, session: Session, user_id: str) -> UserPreference | None:
        return session.exec(
            select(UserPreference).where(UserPreference.user_id == user_id),
        ).one_or_none()

    def _preference_view(self, session: Session, row: UserPreference) -> UserPreferenceView:
        source_slugs = session.exec(
            select(Source.slug)
            .join(UserPreferredSource, col(UserPreferredSource.source_id) == col(Source.id))
            .where(UserPreferredSource.user_id == row.user_id)
            .order_by(col(UserPreferredSource.id)),
        ).all()
        category_slugs = session.exec(
            select(Category.slug)
            .join(UserPreferredCategory, col(UserPreferredCategory.category_id) == col(Category.id))
            .where(UserPreferredCategory.user_id == row.user_id)
            .order_by(col(UserPreferredCategory.id)),
        ).all()
        authors = session.exec(
            select(UserPreferredAuthor.author_name)
            .where(UserPreferredAuthor.user_id == row.user_id)
            .order_by(col(UserPreferredAuthor.id)),
        ).all()
        return UserPreferenceView(
            user_id=row.user_id,
            default_sort=row.default_sort,
            default_order=row.default_order,
            articles_per_page=row.articles_per_page,
            source_slugs=list(source_slugs),
            category_slugs=list(category_slugs),
            authors=list(authors),
        )

    def _existing_merchant_ids(self, session: Session, merchant_ids: list[str]) -> set[str]:
        return set(
            session.exec(
                select(Article.merchant_id).where(col(Article.merchant_id).in_(merchant_ids)),
            ).all(),
        )

    def _upsert_statement(self, values: list[dict[str, Any]]) -> Any:
        statement = sqlite_insert(Article.__table__).values(values)  # type: ignore[attr-defined]
        return statement.on_conflict_do_update(
            index_elements=["merchant_id"],
            set_={field: statement.excluded[field] for field in UPDATABLE_FIELDS},
        )


def _joined_article_select() -> Any:
    return (
        select(Article, Source, Category)
        .join(Source, col(Article.source_id) == col(Source.id))
        .outerjoin(Category, col(Article.category_id) == col(Category.id))
    )


def _apply_filters(statement: Any, spec: FilterSpecification) -> Any:
    if spec.search_term:
        term = spec.search_term
        statement = statement.where(
            or_(
                _icontains(Article.title, term),
                _icontains(Article.description, term),
                _icontains(Article.content, term),
            ),
        )
    if spec.source:
        statement = statement.where(_slug_or_id_clause(Source, spec.source))
    if spec.category:
        statement = statement.where(_slug_or_id_clause(Category, spec.category))
    if spec.author:
        statement = statement.where(_icontains(Article.author, spec.author))
    if spec.preferred_authors:
        statement = statement.where(
            or_(*(_icontains(Article.author, author) for author in spec.preferred_authors)),
        )
    if spec.from_date is not None:
        statement = statement.where(
            col(Article.published_at) >= datetime.combine(spec.from_date, time.min),
        )
    if spec.to_date is not None:
        statement = statement.where(
            col(Article.published_at)
            < datetime.combine(spec.to_date + timedelta(days=1), time.min),
        )
    return statement


def _apply_sorting(statement: Any, spec: FilterSpecification) -> Any:
    column = SORTABLE_FIELDS.get(spec.sort)
    if column is None:
        return statement.order_by(col(Article.published_at).desc(), col(Article.id).desc())
    ordered = col(column).asc() if spec.order == "asc" else col(column).desc()
    return statement.order_by(ordered, col(Article.id).desc())


def _icontains(column: Any, value: str) -> Any:
    """Case-insensitive substring match; `%` and `_` in value are literal."""

    return col(column).icontains(value, autoescape=True)


def _slug_or_id_clause(model: type[Source] | type[Category], values: Iterable[str]) -> Any:
    """Every value matches by slug; digit-only values also match by id."""

    wanted = list(values)
    clause = col(model.slug).in_(wanted)
    ids = [int(value) for value in wanted if value.isdigit()]
    if ids:
        clause = or_(clause, col(model.id).in_(ids))
    return clause


def _resolve_ids(
    session: Session,
    model: type[Source] | type[Category],
    slugs: Sequence[str],
    *,
    kind: str,
) -> list[int]:
    wanted = list(dict.fromkeys(slug for slug in slugs if slug))
    if not wanted:
        return []
    rows = session.exec(select(model).where(col(model.slug).in_(wanted))).all()
    by_slug = {row.slug: row.id for row in rows}
    missing = [slug for slug in wanted if slug not in by_slug]
    if missing:
        raise ValueError(f"Unknown {kind} slug(s): {', '.join(missing)}")
    return [int(by_slug[slug]) for slug in wanted if by_slug[slug] is not None]


def _source_view(row: Source) -> SourceView:
    return SourceView(
        id=int(row.id or 0),
        name=row.name,
        slug=row.slug,
        api_identifier=row.api_identifier,
        base_url=row.base_url,
    )


def _category_view(row: Category) -> CategoryView:
    return CategoryView(id=int(row.id or 0), name=row.name, slug=row.slug)


def _article_view(article: Article, source: Source | None, category: Category | None) -> ArticleView:
    return ArticleView(
        id=int(article.id or 0),
        merchant_id=article.merchant_id,
        title=article.title,
        slug=article.slug,
        description=article.description,
        content=article.content,
        author=article.author,
        url=article.url,
        thumbnail=article.thumbnail,
        published_at=to_utc_aware_datetime(article.published_at),
        fetched_at=to_utc_aware_datetime(article.fetched_at),
        created_at=to_utc_aware_datetime(article.created_at),
        source=_source_view(source) if source is not None else None,
        category=_category_view(category) if category is not None else None,
    )


@contextmanager
def open_repository(db_path: Path) -> Iterator[NewsRepository]:
    """Repository with an up-to-date schema, disposed on exit."""

    repository = NewsRepository(db_path)
    try:
        repository.init_schema()
        yield repository
    finally:
        repository.close()
