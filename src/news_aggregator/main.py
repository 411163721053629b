"""CLI entrypoint for news-aggregator."""

import logging
from collections.abc import Callable
from datetime import datetime
from pathlib import Path
from typing import TypeVar

import rich_click as click

from news_aggregator import __version__
from news_aggregator.config import KNOWN_SOURCES, SORT_FIELDS, SORT_ORDERS
from news_aggregator.ingestion.controllers import (
    CacheClearCommand,
    DbInitCommand,
    FetchCommand,
    IngestionCliController,
)
from news_aggregator.query.cache import CacheScope
from news_aggregator.query.controllers import (
    ArticleSearchCommand,
    ArticleShowCommand,
    FeedCommand,
    PrefsSetCommand,
    PrefsShowCommand,
    QueryCliController,
)

click.rich_click.USE_MARKDOWN = True
INGESTION_CONTROLLER = IngestionCliController()
QUERY_CONTROLLER = QueryCliController()
LOG_LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR")
T = TypeVar("T")

DB_PATH_OPTION = click.option(
    "--db-path",
    type=click.Path(path_type=Path),
    default=None,
    help="SQLite DB path.",
)


@click.group()
@click.version_option(version=__version__, prog_name="news-aggregator")
@click.option(
    "--log-level",
    type=click.Choice(LOG_LEVELS, case_sensitive=False),
    default="WARNING",
    show_default=True,
    help="Logging verbosity.",
)
def news_aggregator(log_level: str) -> None:
    """News aggregator CLI."""

    logging.basicConfig(
        level=log_level.upper(),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )


@news_aggregator.group()
def db() -> None:
    """Database commands."""


@db.command("init")
@DB_PATH_OPTION
def db_init(db_path: Path | None) -> None:
    """Apply migrations and seed the configured news providers."""

    _emit_lines(INGESTION_CONTROLLER.init_db(DbInitCommand(db_path=db_path)))


@news_aggregator.command("fetch")
@DB_PATH_OPTION
@click.option(
    "--source",
    "sources",
    type=click.Choice(KNOWN_SOURCES),
    multiple=True,
    help="Provider to fetch. Can be repeated; defaults to NEWS_AGGREGATOR_SOURCES.",
)
def fetch(db_path: Path | None, sources: tuple[str, ...]) -> None:
    """Fetch every configured provider and upsert the articles.

    Exits with status 1 when any provider failed.
    """

    result = _call(
        INGESTION_CONTROLLER.fetch,
        FetchCommand(db_path=db_path, sources=tuple(dict.fromkeys(sources))),
    )
    _emit_lines(result.lines)
    if not result.success:
        raise click.ClickException("One or more sources failed.")


@news_aggregator.group()
def cache() -> None:
    """Query cache commands."""


@cache.command("clear")
@click.argument(
    "scope",
    type=click.Choice([scope.value for scope in CacheScope], case_sensitive=False),
    default=CacheScope.ALL.value,
)
def cache_clear(scope: str) -> None:
    """Invalidate one cache scope, or everything."""

    _emit_lines(_call(INGESTION_CONTROLLER.clear_cache, CacheClearCommand(scope=scope)))


@cache.command("stats")
def cache_stats() -> None:
    """Show cache driver, tag support and TTLs."""

    _emit_lines(_call(INGESTION_CONTROLLER.cache_stats))


@news_aggregator.group()
def articles() -> None:
    """Article query commands."""


@articles.command("search")
@DB_PATH_OPTION
@click.option("--q", "search_term", default=None, help="Substring of title, description or content.")
@click.option("--source", "sources", multiple=True, help="Source slug or id. Can be repeated.")
@click.option("--category", "categories", multiple=True, help="Category slug or id. Can be repeated.")
@click.option("--author", default=None, help="Author substring.")
@click.option("--from-date", type=click.DateTime(formats=["%Y-%m-%d"]), default=None)
@click.option("--to-date", type=click.DateTime(formats=["%Y-%m-%d"]), default=None)
@click.option("--sort", type=click.Choice(SORT_FIELDS), default=None)
@click.option("--order", type=click.Choice(SORT_ORDERS), default=None)
@click.option("--per-page", type=click.IntRange(min=1, max=100), default=None)
@click.option("--page", type=click.IntRange(min=1), default=1, show_default=True)
def articles_search(  # noqa: PLR0913
    db_path: Path | None,
    search_term: str | None,
    sources: tuple[str, ...],
    categories: tuple[str, ...],
    author: str | None,
    from_date: datetime | None,
    to_date: datetime | None,
    sort: str | None,
    order: str | None,
    per_page: int | None,
    page: int,
) -> None:
    """Search stored articles."""

    _emit_lines(
        _call(
            QUERY_CONTROLLER.search,
            ArticleSearchCommand(
                db_path=db_path,
                search_term=search_term,
                sources=sources,
                categories=categories,
                author=author,
                from_date=from_date.date() if from_date else None,
                to_date=to_date.date() if to_date else None,
                sort=sort,
                order=order,
                per_page=per_page,
                page=page,
            ),
        ),
    )


@articles.command("show")
@DB_PATH_OPTION
@click.argument("article_id", type=int)
def articles_show(db_path: Path | None, article_id: int) -> None:
    """Show one article."""

    _emit_lines(
        _call(QUERY_CONTROLLER.show, ArticleShowCommand(db_path=db_path, article_id=article_id)),
    )


@news_aggregator.command("feed")
@DB_PATH_OPTION
@click.option("--user", "user_id", required=True, help="User identifier.")
@click.option("--q", "search_term", default=None, help="Substring of title, description or content.")
@click.option("--source", "sources", multiple=True, help="Extra source slug. Can be repeated.")
@click.option("--category", "categories", multiple=True, help="Extra category slug. Can be repeated.")
@click.option("--from-date", type=click.DateTime(formats=["%Y-%m-%d"]), default=None)
@click.option("--to-date", type=click.DateTime(formats=["%Y-%m-%d"]), default=None)
@click.option("--sort", type=click.Choice(SORT_FIELDS), default=None)
@click.option("--order", type=click.Choice(SORT_ORDERS), default=None)
@click.option("--per-page", type=click.IntRange(min=1, max=100), default=None)
@click.option("--page", type=click.IntRange(min=1), default=1, show_default=True)
def feed(  # noqa: PLR0913
    db_path: Path | None,
    user_id: str,
    search_term: str | None,
    sources: tuple[str, ...],
    categories: tuple[str, ...],
    from_date: datetime | None,
    to_date: datetime | None,
    sort: str | None,
    order: str | None,
    per_page: int | None,
    page: int,
) -> None:
    """Personalized feed built from the user's stored preferences."""

    _emit_lines(
        _call(
            QUERY_CONTROLLER.feed,
            FeedCommand(
                db_path=db_path,
                user_id=user_id,
                search_term=search_term,
                sources=sources,
                categories=categories,
                from_date=from_date.date() if from_date else None,
                to_date=to_date.date() if to_date else None,
                sort=sort,
                order=order,
                per_page=per_page,
                page=page,
            ),
        ),
    )


@news_aggregator.group()
def prefs() -> None:
    """User preference commands."""


@prefs.command("show")
@DB_PATH_OPTION
@click.option("--user", "user_id", required=True, help="User identifier.")
def prefs_show(db_path: Path | None, user_id: str) -> None:
    """Show stored preferences, creating defaults on first use."""

    _emit_lines(
        _call(QUERY_CONTROLLER.show_preferences, PrefsShowCommand(db_path=db_path, user_id=user_id)),
    )


@prefs.command("set")
@DB_PATH_OPTION
@click.option("--user", "user_id", required=True, help="User identifier.")
@click.option("--sort", type=click.Choice(SORT_FIELDS), default=None)
@click.option("--order", type=click.Choice(SORT_ORDERS), default=None)
@click.option("--per-page", type=click.IntRange(min=1, max=100), default=None)
@click.option("--source", "sources", multiple=True, help="Preferred source slug. Replaces the list.")
@click.option("--category", "categories", multiple=True, help="Preferred category slug. Replaces the list.")
@click.option("--author", "authors", multiple=True, help="Preferred author. Replaces the list.")
@click.option("--clear-sources", is_flag=True, help="Remove all preferred sources.")
@click.option("--clear-categories", is_flag=True, help="Remove all preferred categories.")
@click.option("--clear-authors", is_flag=True, help="Remove all preferred authors.")
def prefs_set(  # noqa: PLR0913
    db_path: Path | None,
    user_id: str,
    sort: str | None,
    order: str | None,
    per_page: int | None,
    sources: tuple[str, ...],
    categories: tuple[str, ...],
    authors: tuple[str, ...],
    clear_sources: bool,
    clear_categories: bool,
    clear_authors: bool,
) -> None:
    """Update preferences; list options replace the stored list."""

    _emit_lines(
        _call(
            QUERY_CONTROLLER.set_preferences,
            PrefsSetCommand(
                db_path=db_path,
                user_id=user_id,
                sort=sort,
                order=order,
                per_page=per_page,
                sources=_list_update(sources, clear=clear_sources),
                categories=_list_update(categories, clear=clear_categories),
                authors=_list_update(authors, clear=clear_authors),
            ),
        ),
    )


def _list_update(values: tuple[str, ...], *, clear: bool) -> tuple[str, ...] | None:
    if clear:
        return ()
    return values or None


def _call(handler: Callable[..., T], *args: object) -> T:
    try:
        return handler(*args)
    except ValueError as error:
        raise click.ClickException(str(error)) from error


def _emit_lines(lines: list[str]) -> None:
    for line in lines:
        click.echo(line)


if __name__ == "__main__":  # pragma: no cover
    news_aggregator()
