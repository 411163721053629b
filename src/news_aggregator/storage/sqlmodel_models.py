"""SQLModel ORM tables for the news store."""

from __future__ import annotations

from datetime import datetime

from sqlalchemy import Column, DateTime, ForeignKey, Index, Integer, Text, UniqueConstraint
from sqlmodel import Field, SQLModel


class Source(SQLModel, table=True):
    __tablename__ = "sources"  # type: ignore[bad-override]

    id: int | None = Field(default=None, primary_key=True)
    name: str
    slug: str = Field(unique=True, index=True)
    api_identifier: str
    base_url: str
    created_at: datetime = Field(sa_column=Column(DateTime(timezone=True), nullable=False))


class Category(SQLModel, table=True):
    __tablename__ = "categories"  # type: ignore[bad-override]

    id: int | None = Field(default=None, primary_key=True)
    name: str
    slug: str = Field(unique=True, index=True)
    created_at: datetime = Field(sa_column=Column(DateTime(timezone=True), nullable=False))


class Article(SQLModel, table=True):
    __tablename__ = "articles"  # type: ignore[bad-override]
    __table_args__ = (
        Index("idx_articles_source_published", "source_id", "published_at"),
        Index("idx_articles_category_published", "category_id", "published_at"),
    )

    id: int | None = Field(default=None, primary_key=True)
    merchant_id: str = Field(unique=True, index=True)
    title: str
    slug: str = Field(index=True)
    description: str | None = Field(default=None, sa_column=Column(Text))
    content: str | None = Field(default=None, sa_column=Column(Text))
    author: str | None = Field(default=None, index=True)
    url: str
    thumbnail: str | None = None
    published_at: datetime | None = Field(
        default=None,
        sa_column=Column(DateTime(timezone=True), index=True, nullable=True),
    )
    fetched_at: datetime = Field(sa_column=Column(DateTime(timezone=True), nullable=False))
    source_id: int = Field(
        sa_column=Column(Integer, ForeignKey("sources.id", ondelete="CASCADE"), nullable=False),
    )
    category_id: int | None = Field(
        default=None,
        sa_column=Column(
            Integer,
            ForeignKey("categories.id", ondelete="SET NULL"),
            nullable=True,
        ),
    )
    created_at: datetime = Field(sa_column=Column(DateTime(timezone=True), nullable=False))
    updated_at: datetime = Field(sa_column=Column(DateTime(timezone=True), nullable=False))


class UserPreference(SQLModel, table=True):
    __tablename__ = "user_preferences"  # type: ignore[bad-override]

    id: int | None = Field(default=None, primary_key=True)
    user_id: str = Field(unique=True, index=True)
    default_sort: str = "published_at"
    default_order: str = "desc"
    articles_per_page: int = 20
    created_at: datetime = Field(sa_column=Column(DateTime(timezone=True), nullable=False))
    updated_at: datetime = Field(sa_column=Column(DateTime(timezone=True), nullable=False))


class UserPreferredSource(SQLModel, table=True):
    __tablename__ = "user_preferred_sources"  # type: ignore[bad-override]
    __table_args__ = (
        UniqueConstraint("user_id", "source_id", name="uq_user_preferred_sources"),
    )

    id: int | None = Field(default=None, primary_key=True)
    user_id: str = Field(index=True)
    source_id: int = Field(
        sa_column=Column(Integer, ForeignKey("sources.id", ondelete="CASCADE"), nullable=False),
    )


class UserPreferredCategory(SQLModel, table=True):
    __tablename__ = "user_preferred_categories"  # type: ignore[bad-override]
    __table_args__ = (
        UniqueConstraint("user_id", "category_id", name="uq_user_preferred_categories"),
    )

    id: int | None = Field(default=None, primary_key=True)
    user_id: str = Field(index=True)
    category_id: int = Field(
        sa_column=Column(
            Integer,
            ForeignKey("categories.id", ondelete="CASCADE"),
            nullable=False,
        ),
    )


class UserPreferredAuthor(SQLModel, table=True):
    __tablename__ = "user_preferred_authors"  # type: ignore[bad-override]
    __table_args__ = (
        UniqueConstraint("user_id", "author_name", name="uq_user_preferred_authors"),
    )

    id: int | None = Field(default=None, primary_key=True)
    user_id: str = Field(index=True)
    author_name: str
