"""Read-side views returned by the query layer."""

from __future__ import annotations

from dataclasses import asdict, dataclass, field
from datetime import datetime
from typing import Any

from news_aggregator.ingestion.cleaning import parse_published_at


@dataclass(slots=True)
class SourceView:
    id: int
    name: str
    slug: str
    api_identifier: str
    base_url: str


@dataclass(slots=True)
class CategoryView:
    id: int
    name: str
    slug: str


@dataclass(slots=True)
class ArticleView:
    """Stored article joined with its source and category."""

    id: int
    merchant_id: str
    title: str
    slug: str
    description: str | None
    content: str | None
    author: str | None
    url: str
    thumbnail: str | None
    published_at: datetime | None
    fetched_at: datetime | None
    created_at: datetime | None
    source: SourceView | None = None
    category: CategoryView | None = None

    def to_dict(self) -> dict[str, Any]:
        data = asdict(self)
        for key in ("published_at", "fetched_at", "created_at"):
            value = data[key]
            data[key] = value.isoformat() if value is not None else None
        return data

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> ArticleView:
        source = data.get("source")
        category = data.get("category")
        return cls(
            id=int(data["id"]),
            merchant_id=data["merchant_id"],
            title=data["title"],
            slug=data["slug"],
            description=data.get("description"),
            content=data.get("content"),
            author=data.get("author"),
            url=data["url"],
            thumbnail=data.get("thumbnail"),
            published_at=parse_published_at(data.get("published_at")),
            fetched_at=parse_published_at(data.get("fetched_at")),
            created_at=parse_published_at(data.get("created_at")),
            source=SourceView(**source) if source else None,
            category=CategoryView(**category) if category else None,
        )


@dataclass(slots=True)
class ArticlePage:
    """One page of search results with pagination counters."""

    items: list[ArticleView]
    total: int
    page: int
    per_page: int

    @property
    def last_page(self) -> int:
        if self.total <= 0 or self.per_page <= 0:
            return 1
        return (self.total + self.per_page - 1) // self.per_page

    def to_dict(self) -> dict[str, Any]:
        return {
            "items": [item.to_dict() for item in self.items],
            "total": self.total,
            "page": self.page,
            "per_page": self.per_page,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> ArticlePage:
        return cls(
            items=[ArticleView.from_dict(item) for item in data["items"]],
            total=int(data["total"]),
            page=int(data["page"]),
            per_page=int(data["per_page"]),
        )


@dataclass(slots=True)
class UserPreferenceView:
    """User preference with its owned source, category and author lists."""

    user_id: str
    default_sort: str = "published_at"
    default_order: str = "desc"
    articles_per_page: int = 20
    source_slugs: list[str] = field(default_factory=list)
    category_slugs: list[str] = field(default_factory=list)
    authors: list[str] = field(default_factory=list)
