"""SQLAlchemy ORM models for the URL shortener application.

This module defines the database schema using SQLAlchemy declarative models
with proper indexing and timestamp management for URL mappings, click
analytics and scraped product metadata.

Data Model Layout
=================
::
    urls table
    ├─ id (SERIAL PRIMARY KEY)
    ├─ short_code (VARCHAR(16) UNIQUE, INDEXED)
    ├─ original_url (TEXT NOT NULL)
    ├─ is_product (BOOLEAN DEFAULT FALSE)
    ├─ expires_at (TIMESTAMPTZ NULL)
    ├─ is_active (BOOLEAN DEFAULT TRUE)
    ├─ click_count (INTEGER DEFAULT 0)
    └─ created_at (TIMESTAMPTZ)

    analytics table
    ├─ id (SERIAL PRIMARY KEY)
    ├─ url_id (FK urls.id, UNIQUE)
    ├─ first_click_at (TIMESTAMPTZ)
    ├─ last_click_at (TIMESTAMPTZ)
    ├─ total_clicks (INTEGER DEFAULT 0)
    └─ created_at (TIMESTAMPTZ)

    product_metadata table
    ├─ id (SERIAL PRIMARY KEY)
    ├─ url_id (FK urls.id, UNIQUE)
    ├─ product_name (TEXT NULL)
    ├─ price (TEXT NULL)
    ├─ brand_name (TEXT NULL)
    ├─ featured_image_url (TEXT NULL)
    ├─ scraped_at (TIMESTAMPTZ)
    └─ created_at (TIMESTAMPTZ)

Class Relationship Diagram
=========================
::
    URL 1 ──── 0..1 Analytics
     │
     └──── 0..1 ProductMetadata

How to Use
===========
**Step 1: Import**::
    from app.models import URL, Analytics, ProductMetadata

**Step 2: Query URLs**::
    result = await db.execute(select(URL).where(URL.short_code == "abc123"))
    url = result.scalar_one_or_none()

**Step 3: Update clicks (relative, evaluated by the database)**::
    await db.execute(update(URL).where(URL.id == url.id).values(click_count=URL.click_count + 1))
    await db.commit()

Key Behaviours
===============
- short_code is indexed for fast lookups during redirects.
- url_id is unique on analytics and product_metadata, which is what makes
  their get-or-create upserts idempotent.
- Timestamps are always timezone-aware UTC, including on SQLite.
- Rows are never deleted by normal flow; URLs are deactivated instead.

Classes:
    URL:  Shortened URL mapping with lifecycle flags and click counter.
    Analytics:  Per-URL first/last click timestamps and total clicks.
    ProductMetadata:  Scraped product fields for a product URL.
"""

import datetime

from sqlalchemy import Boolean, DateTime, ForeignKey, Integer, String, Text, TypeDecorator
from sqlalchemy.orm import Mapped, mapped_column

from app.database import Base

__all__ = ["URL", "Analytics", "ProductMetadata", "UTCDateTime", "utc_now"]


def utc_now() -> datetime.datetime:
    return datetime.datetime.now(datetime.timezone.utc)


class UTCDateTime(TypeDecorator):
    """DateTime that always binds and loads timezone-aware UTC values."""

    impl = DateTime(timezone=True)
    cache_ok = True

    def process_bind_param(self, value, dialect):
        if value is None:
            return None
        if value.tzinfo is None:
            value = value.replace(tzinfo=datetime.timezone.utc)
        return value.astimezone(datetime.timezone.utc)

    def process_result_value(self, value, dialect):
        if value is None:
            return None
        if value.tzinfo is None:
            return value.replace(tzinfo=datetime.timezone.utc)
        return value.astimezone(datetime.timezone.utc)


class URL(Base):
    __tablename__ = "urls"

    id: Mapped[int] = mapped_column(primary_key=True, autoincrement=True)
    short_code: Mapped[str] = mapped_column(String(16), unique=True, index=True, nullable=False)
    original_url: Mapped[str] = mapped_column(Text, nullable=False)
    is_product: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    expires_at: Mapped[datetime.datetime | None] = mapped_column(UTCDateTime, nullable=True)
    is_active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)
    click_count: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    created_at: Mapped[datetime.datetime] = mapped_column(UTCDateTime, default=utc_now, index=True, nullable=False)

    def __repr__(self) -> str:
        return f"<URL(id={self.id}, short_code='{self.short_code}', click_count={self.click_count})>"


class Analytics(Base):
    __tablename__ = "analytics"

    id: Mapped[int] = mapped_column(primary_key=True, autoincrement=True)
    url_id: Mapped[int] = mapped_column(
        ForeignKey("urls.id", ondelete="CASCADE"), unique=True, index=True, nullable=False
    )
    first_click_at: Mapped[datetime.datetime | None] = mapped_column(UTCDateTime, nullable=True)
    last_click_at: Mapped[datetime.datetime | None] = mapped_column(UTCDateTime, nullable=True)
    total_clicks: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    created_at: Mapped[datetime.datetime] = mapped_column(UTCDateTime, default=utc_now, nullable=False)

    def __repr__(self) -> str:
        return f"<Analytics(url_id={self.url_id}, total_clicks={self.total_clicks})>"


class ProductMetadata(Base):
    __tablename__ = "product_metadata"

    id: Mapped[int] = mapped_column(primary_key=True, autoincrement=True)
    url_id: Mapped[int] = mapped_column(
        ForeignKey("urls.id", ondelete="CASCADE"), unique=True, index=True, nullable=False
    )
    product_name: Mapped[str | None] = mapped_column(Text, nullable=True)
    price: Mapped[str | None] = mapped_column(Text, nullable=True)
    brand_name: Mapped[str | None] = mapped_column(Text, nullable=True)
    featured_image_url: Mapped[str | None] = mapped_column(Text, nullable=True)
    scraped_at: Mapped[datetime.datetime] = mapped_column(UTCDateTime, default=utc_now, nullable=False)
    created_at: Mapped[datetime.datetime] = mapped_column(UTCDateTime, default=utc_now, nullable=False)

    def __repr__(self) -> str:
        return f"<ProductMetadata(url_id={self.url_id}, scraped_at={self.scraped_at})>"
