"""Domain models for fetch, validation and storage stages."""

from __future__ import annotations

from dataclasses import asdict, dataclass, field
from datetime import datetime


@dataclass(slots=True)
class CanonicalRecord:
    """Provider-agnostic article produced by a source adapter."""

    merchant_id: str | None
    title: str | None
    slug: str | None
    url: str | None
    source_id: int | None
    description: str | None = None
    content: str | None = None
    author: str | None = None
    category_label: str | None = None
    thumbnail: str | None = None
    published_at: datetime | None = None
    category_id: int | None = None

    def to_row(self, *, fetched_at: datetime) -> dict[str, object]:
        """Column values for the article upsert, keyed by column name."""

        return {
            "merchant_id": self.merchant_id,
            "title": self.title,
            "slug": self.slug,
            "description": self.description,
            "content": self.content,
            "source_id": self.source_id,
            "author": self.author,
            "category_id": self.category_id,
            "url": self.url,
            "thumbnail": self.thumbnail,
            "published_at": self.published_at,
            "fetched_at": fetched_at,
        }


@dataclass(slots=True)
class SourceDefinition:
    """Static provider row seeded into the sources table."""

    name: str
    slug: str
    api_identifier: str
    base_url: str


DEFAULT_SOURCES: tuple[SourceDefinition, ...] = (
    SourceDefinition(
        name="The Guardian",
        slug="guardian",
        api_identifier="the-guardian",
        base_url="https://content.guardianapis.com",
    ),
    SourceDefinition(
        name="NewsAPI",
        slug="newsapi",
        api_identifier="newsapi",
        base_url="https://newsapi.org/v2",
    ),
    SourceDefinition(
        name="New York Times",
        slug="nyt",
        api_identifier="nyt",
        base_url="https://api.nytimes.com/svc",
    ),
)


@dataclass(slots=True)
class BatchError:
    """Failure of one upsert batch."""

    batch_index: int
    message: str


@dataclass(slots=True)
class StoreResult:
    """Counters produced by batched upsert."""

    inserted: int = 0
    updated: int = 0
    failed: int = 0
    errors: list[BatchError] = field(default_factory=list)


@dataclass(slots=True)
class PipelineResult:
    """Counters produced by one pipeline pass over a record list."""

    inserted: int = 0
    updated: int = 0
    failed: int = 0
    skipped: int = 0
    errors: list[BatchError] = field(default_factory=list)
    categories_created: int = 0


@dataclass(slots=True)
class SourceOutcome:
    """Per-source report returned by the fetch orchestrator."""

    success: bool
    fetched: int = 0
    inserted: int = 0
    updated: int = 0
    failed: int = 0
    skipped: int = 0
    message: str = ""
    errors: list[BatchError] = field(default_factory=list)

    @property
    def changed(self) -> int:
        return self.inserted + self.updated

    def as_dict(self) -> dict[str, object]:
        return asdict(self)
