"""Product Metadata Cache/Store - scraped product data with a freshness window.

Every product URL is in one of two states:

- **Fresh**: a product_metadata row exists and was scraped less than
  ``FRESHNESS_WINDOW`` (24h) ago.
- **Stale-or-Absent**: no row, or the row is older than the window.

Flow Diagram: get_or_scrape()
==============================
::
    ┌─────────────┐
    │ resolve code │──► NotFound
    └──────┬──────┘
           ▼
    ┌─────────────┐
    │ is_product?  │──NO──► NotAProduct
    └──────┬──────┘
           ▼
    ┌─────────────┐
    │ Fresh?       │──YES──► return stored row (no fetch)
    └──────┬──────┘
           │ NO (stale or absent)
           ▼
    ┌─────────────┐   FetchFailed / extraction error
    │ fetch page   ├──────────────────────────────────► ExternalServiceUnavailable
    │ extract      │                                   (nothing written)
    └──────┬──────┘
           ▼
    ┌──────────────────────────────────────────────┐
    │ INSERT ... ON CONFLICT (url_id) DO UPDATE     │
    │   field = COALESCE(new, stored)  (x4)         │
    │   scraped_at = now                            │
    └──────┬───────────────────────────────────────┘
           ▼
    ┌─────────────┐
    │ return row   │
    └─────────────┘

``force_refresh`` always takes the stale path. ``get`` is a pure read.

Key Behaviours
===============
- A failed fetch never touches the stored row; scraped_at only moves forward
  on a successful extraction.
- Fields that were not found in the new markup keep their stored values.
- Partial extraction (some fields None) is a success.
"""

import datetime
import logging
from collections.abc import Callable
from typing import Optional

from prometheus_client import Counter
from sqlalchemy import func, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from app.config import Settings
from app.database import dialect_insert
from app.enums import CacheStatus, ScrapeStatus
from app.exceptions import (
    ExternalServiceUnavailable,
    FetchFailed,
    InvalidInput,
    NotAProduct,
    NotFound,
    StorageError,
)
from app.extractor import ProductFields, extract
from app.fetcher import MetadataFetcher
from app.models import URL, ProductMetadata, utc_now
from app.url_service import MAX_PAGE_LIMIT, URLShorteningService

__all__ = ["ProductMetadataService", "FRESHNESS_WINDOW", "is_fresh"]

FRESHNESS_WINDOW = datetime.timedelta(hours=24)

METADATA_LOOKUPS_TOTAL = Counter(
    "url_shortener_product_metadata_lookups_total",
    "Product metadata lookups by freshness outcome",
    ["cache_status"],
)
METADATA_SCRAPES_TOTAL = Counter(
    "url_shortener_product_metadata_scrapes_total",
    "Product metadata scrape attempts",
    ["status"],
)


def is_fresh(record: Optional[ProductMetadata], now: datetime.datetime) -> bool:
    return record is not None and now - record.scraped_at < FRESHNESS_WINDOW


class ProductMetadataService:
    def __init__(
        self,
        db: AsyncSession,
        url_service: URLShorteningService,
        fetcher: MetadataFetcher,
        settings: Settings,
        logger: logging.Logger | logging.LoggerAdapter,
        clock: Callable[[], datetime.datetime] = utc_now,
    ):
        self._db = db
        self._urls = url_service
        self._fetcher = fetcher
        self._settings = settings
        self._logger = logger
        self._clock = clock

    async def get_or_scrape(self, short_code: str) -> ProductMetadata:
        url = await self._product_url(short_code)
        record = await self._load(url.id)
        if is_fresh(record, self._clock()):
            METADATA_LOOKUPS_TOTAL.labels(cache_status=CacheStatus.HIT).inc()
            self._logger.debug(f"Serving fresh product metadata for {short_code}")
            return record
        METADATA_LOOKUPS_TOTAL.labels(cache_status=CacheStatus.MISS).inc()
        self._logger.info(f"Product metadata for {short_code} is stale or absent, scraping")
        return await self._scrape_and_store(url)

    async def force_refresh(self, short_code: str) -> ProductMetadata:
        url = await self._product_url(short_code)
        METADATA_LOOKUPS_TOTAL.labels(cache_status=CacheStatus.BYPASS).inc()
        self._logger.info(f"Forced product metadata refresh for {short_code}")
        return await self._scrape_and_store(url)

    async def get(self, short_code: str) -> ProductMetadata:
        result = await self._db.execute(
            select(ProductMetadata)
            .join(URL, ProductMetadata.url_id == URL.id)
            .where(URL.short_code == short_code)
            .execution_options(populate_existing=True)
        )
        record = result.scalar_one_or_none()
        if record is None:
            raise NotFound("Product data not found")
        return record

    async def delete(self, short_code: str) -> None:
        record = await self.get(short_code)
        try:
            await self._db.delete(record)
            await self._db.commit()
        except SQLAlchemyError as exc:
            await self._db.rollback()
            self._logger.error(f"Failed to delete product metadata for {short_code}: {exc}")
            raise StorageError("Failed to delete product data") from exc
        self._logger.info(f"Product metadata deleted for {short_code}")

    async def list_metadata(self, limit: int, offset: int = 0) -> list[tuple[ProductMetadata, URL]]:
        if not 1 <= limit <= MAX_PAGE_LIMIT:
            raise InvalidInput(f"limit must be between 1 and {MAX_PAGE_LIMIT}")
        if offset < 0:
            raise InvalidInput("offset must be non-negative")
        result = await self._db.execute(
            select(ProductMetadata, URL)
            .join(URL, ProductMetadata.url_id == URL.id)
            .where(URL.is_product.is_(True))
            .order_by(ProductMetadata.scraped_at.desc(), ProductMetadata.id.desc())
            .limit(limit)
            .offset(offset)
        )
        return [(row[0], row[1]) for row in result.all()]

    async def count_metadata(self) -> int:
        return int(await self._db.scalar(select(func.count()).select_from(ProductMetadata)) or 0)

    # ========================================================================
    # PRIVATE HELPER METHODS
    # ========================================================================

    async def _product_url(self, short_code: str) -> URL:
        url = await self._urls.resolve(short_code)
        if not url.is_product:
            raise NotAProduct("URL is not a HYPD product")
        return url

    async def _load(self, url_id: int) -> Optional[ProductMetadata]:
        result = await self._db.execute(
            select(ProductMetadata)
            .where(ProductMetadata.url_id == url_id)
            .execution_options(populate_existing=True)
        )
        return result.scalar_one_or_none()

    async def _scrape(self, url: URL) -> ProductFields:
        try:
            markup = await self._fetcher.fetch(url.original_url)
        except FetchFailed as exc:
            METADATA_SCRAPES_TOTAL.labels(status=ScrapeStatus.FETCH_FAILED).inc()
            raise ExternalServiceUnavailable(f"Failed to fetch product page: {exc.reason}") from exc
        try:
            return extract(markup, self._settings.PRODUCT_BASE_URL)
        except Exception as exc:
            METADATA_SCRAPES_TOTAL.labels(status=ScrapeStatus.EXTRACT_FAILED).inc()
            self._logger.error(f"Failed to extract product data from {url.original_url}: {exc}")
            raise ExternalServiceUnavailable("Failed to extract product data") from exc

    async def _scrape_and_store(self, url: URL) -> ProductMetadata:
        fields = await self._scrape(url)
        now = self._clock()
        stmt = dialect_insert(self._db, ProductMetadata).values(
            url_id=url.id,
            scraped_at=now,
            created_at=now,
            **fields.as_dict(),
        )
        excluded = stmt.excluded
        stmt = stmt.on_conflict_do_update(
            index_elements=[ProductMetadata.url_id],
            set_={
                "product_name": func.coalesce(excluded.product_name, ProductMetadata.product_name),
                "price": func.coalesce(excluded.price, ProductMetadata.price),
                "brand_name": func.coalesce(excluded.brand_name, ProductMetadata.brand_name),
                "featured_image_url": func.coalesce(excluded.featured_image_url, ProductMetadata.featured_image_url),
                "scraped_at": excluded.scraped_at,
            },
        )
        try:
            await self._db.execute(stmt)
            await self._db.commit()
            record = await self._load(url.id)
        except SQLAlchemyError as exc:
            await self._db.rollback()
            self._logger.error(f"Failed to store product metadata for url {url.id}: {exc}")
            raise StorageError("Failed to store product data") from exc

        METADATA_SCRAPES_TOTAL.labels(status=ScrapeStatus.SUCCESS).inc()
        missing = [name for name, value in fields.as_dict().items() if value is None]
        if missing:
            self._logger.info(f"Partial product metadata for {url.short_code}; not found: {', '.join(missing)}")
        else:
            self._logger.info(f"Product metadata stored for {url.short_code}")
        return record
