"""Filter specification and preference-aware filter builder."""

from __future__ import annotations

from collections.abc import Iterable, Mapping
from dataclasses import dataclass, replace
from datetime import date, datetime
from typing import Any

from news_aggregator.config import PreferenceDefaults
from news_aggregator.query.models import UserPreferenceView

SCALAR_OVERRIDES = ("sort", "order", "per_page", "page", "searchTerm", "from_date", "to_date")
SET_OVERRIDES = ("source", "category")


@dataclass(frozen=True, slots=True)
class FilterSpecification:
    """Normalized, cacheable description of an article query.

    ``None`` on any optional field means the query is unrestricted on that
    dimension. Empty sets are normalized to ``None`` so that "no preferred
    sources" never turns into "match no source".
    """

    search_term: str | None = None
    source: tuple[str, ...] | None = None
    category: tuple[str, ...] | None = None
    author: str | None = None
    preferred_authors: tuple[str, ...] | None = None
    from_date: date | None = None
    to_date: date | None = None
    sort: str = "published_at"
    order: str = "desc"
    per_page: int = 20
    page: int = 1

    def as_filters(self) -> dict[str, Any]:
        """Flat mapping in request-parameter naming, unrestricted fields omitted."""

        values: dict[str, Any] = {
            "searchTerm": self.search_term,
            "source": list(self.source) if self.source else None,
            "category": list(self.category) if self.category else None,
            "author": self.author,
            "preferred_authors": list(self.preferred_authors) if self.preferred_authors else None,
            "from_date": self.from_date.isoformat() if self.from_date else None,
            "to_date": self.to_date.isoformat() if self.to_date else None,
            "sort": self.sort,
            "order": self.order,
            "per_page": self.per_page,
            "page": self.page,
        }
        return {key: value for key, value in values.items() if value is not None}


class FilterBuilder:
    """Merges stored user preferences with per-request overrides.

    Scalar parameters (sort, order, paging, search term, date range) replace
    the preference value. Source and category parameters are merged into the
    preferred sets, so a request can widen the scope but never narrow it.
    """

    def __init__(self, defaults: PreferenceDefaults | None = None) -> None:
        self.defaults = defaults or PreferenceDefaults()

    def build(
        self,
        preferences: UserPreferenceView,
        overrides: Mapping[str, Any] | None = None,
    ) -> FilterSpecification:
        spec = self._from_preferences(preferences)
        if overrides is not None:
            spec = self._apply_scalar_overrides(spec, overrides)
            spec = self._expand_set_filters(spec, overrides)
        return spec

    def from_request(self, params: Mapping[str, Any]) -> FilterSpecification:
        """Specification for the public, non-personalized article search."""

        anonymous = UserPreferenceView(
            user_id="",
            default_sort=self.defaults.sort,
            default_order=self.defaults.order,
            articles_per_page=self.defaults.per_page,
        )
        spec = self.build(anonymous, params)
        author = params.get("author")
        if author is not None and str(author).strip():
            spec = replace(spec, author=str(author).strip())
        return spec

    def _from_preferences(self, preferences: UserPreferenceView) -> FilterSpecification:
        return FilterSpecification(
            source=_none_if_empty(preferences.source_slugs),
            category=_none_if_empty(preferences.category_slugs),
            preferred_authors=_none_if_empty(preferences.authors),
            sort=preferences.default_sort,
            order=preferences.default_order,
            per_page=int(preferences.articles_per_page),
            page=1,
        )

    def _apply_scalar_overrides(
        self,
        spec: FilterSpecification,
        overrides: Mapping[str, Any],
    ) -> FilterSpecification:
        changes: dict[str, Any] = {}
        for param in SCALAR_OVERRIDES:
            if param not in overrides or overrides[param] is None:
                continue
            value = overrides[param]
            if param == "sort":
                changes["sort"] = str(value)
            elif param == "order":
                changes["order"] = str(value).lower()
            elif param == "per_page":
                changes["per_page"] = int(value)
            elif param == "page":
                changes["page"] = int(value)
            elif param == "searchTerm":
                changes["search_term"] = str(value)
            elif param == "from_date":
                changes["from_date"] = _to_date(value)
            else:
                changes["to_date"] = _to_date(value)
        return replace(spec, **changes) if changes else spec

    def _expand_set_filters(
        self,
        spec: FilterSpecification,
        overrides: Mapping[str, Any],
    ) -> FilterSpecification:
        changes: dict[str, Any] = {}
        for param in SET_OVERRIDES:
            if param not in overrides or overrides[param] is None:
                continue
            current = getattr(spec, param) or ()
            changes[param] = _none_if_empty(
                _merge_unique(current, _normalize_set_input(overrides[param])),
            )
        return replace(spec, **changes) if changes else spec


def _normalize_set_input(value: Any) -> list[str]:
    if isinstance(value, str | int):
        return [str(value)] if str(value) else []
    if isinstance(value, Iterable):
        return [str(item) for item in value if item is not None and str(item) != ""]
    return [str(value)]


def _merge_unique(base: Iterable[str], extra: Iterable[str]) -> list[str]:
    merged: list[str] = []
    for item in [*base, *extra]:
        if item not in merged:
            merged.append(item)
    return merged


def _none_if_empty(values: Iterable[str]) -> tuple[str, ...] | None:
    unique = tuple(_merge_unique((), values))
    return unique or None


def _to_date(value: Any) -> date:
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    return date.fromisoformat(str(value))
