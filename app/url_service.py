"""URL Registry - short code lifecycle management.

This module owns the ``urls`` table: it creates short URLs with collision-free
codes, resolves them for redirects, counts clicks and deactivates links.

Architecture Overview
==================
::
    ┌─────────────────────────────────────────────────────────────┐
    │                    URLShorteningService                     │
    │  ┌─────────────────┐  ┌─────────────────┐  ┌──────────────┐ │
    │  │   Create        │  │   Resolve       │  │  Lifecycle   │ │
    │  │                 │  │                 │  │              │ │
    │  │ • Validate URL  │  │ • Active check  │  │ • Clicks +1  │ │
    │  │ • Generate code │  │ • Expiry check  │  │ • Deactivate │ │
    │  │ • Retry on dup  │  │ • NotFound      │  │ • List       │ │
    │  └─────────────────┘  └─────────────────┘  └──────────────┘ │
    └─────────────────────────────────────────────────────────────┘
                                   │
                                   ▼
                        ┌─────────────────┐
                        │   PostgreSQL    │
                        │   urls table    │
                        └─────────────────┘

URL Creation Flow
-----------------
::
    ┌─────────────┐
    │ Validate URL │
    │ http / https │
    └──────┬──────┘
           ▼
    ┌─────────────┐
    │ Generate     │◄──────────────┐
    │ short code   │               │
    └──────┬──────┘               │
           ▼                       │
    ┌─────────────┐   duplicate   │
    │ INSERT       ├──────────────►│ rollback, attempt += 1
    │ (optimistic) │               │ (max SHORT_CODE_MAX_ATTEMPTS)
    └──────┬──────┘               │
           ▼                       ▼
    ┌─────────────┐        ┌──────────────┐
    │ Return URL   │        │ CodeSpace    │
    │ record       │        │ Exhausted    │
    └─────────────┘        └──────────────┘

Key Behaviours
===============
- Uniqueness is enforced by the database constraint, not by a pre-check, so
  two concurrent creations can never end up with the same code.
- An inactive or expired URL is indistinguishable from an unknown one.
- Click increments are evaluated by the database (``click_count + 1``).
- URLs are never deleted, only deactivated.

Usage Examples
=============
```python
service = URLShorteningService(db=db, settings=settings, logger=logger)
url = await service.create_short_url("https://example.com/page")
live = await service.resolve(url.short_code)
await service.record_click(live.id)
```
"""

import datetime
import logging
import time
import urllib.parse
from collections.abc import Callable
from typing import TYPE_CHECKING, Optional

from prometheus_client import Counter, Histogram
from sqlalchemy import func, or_, select, update
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from app.config import Settings
from app.enums import RequestStatus
from app.exceptions import CodeSpaceExhausted, InvalidInput, NotFound, StorageError
from app.models import URL, utc_now
from app.shortcode import generate_short_code

if TYPE_CHECKING:
    from app.dependencies import RequestContext

__all__ = ["URLShorteningService", "validate_target_url", "is_live", "MAX_PAGE_LIMIT"]

MAX_PAGE_LIMIT = 100
ALLOWED_SCHEMES = ("http", "https")


# ============================================================================
# PROMETHEUS METRICS
# ============================================================================

URL_CREATION_REQUESTS_TOTAL = Counter(
    "url_shortener_creation_requests_total",
    "Total URL creation requests",
    ["status"],
)
URL_CREATION_DURATION = Histogram(
    "url_shortener_creation_duration_seconds",
    "Time taken to create short URLs",
    buckets=[0.01, 0.025, 0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0],
)
SHORT_CODE_COLLISIONS_TOTAL = Counter(
    "url_shortener_short_code_collisions_total",
    "Generated short codes rejected by the uniqueness constraint",
)
URL_RESOLVE_REQUESTS_TOTAL = Counter(
    "url_shortener_resolve_requests_total",
    "Total short code resolutions",
    ["status"],
)


def validate_target_url(original_url: str) -> str:
    """Return the URL unchanged if it is an absolute http(s) URL, else raise InvalidInput."""
    try:
        parsed = urllib.parse.urlsplit(original_url)
    except (TypeError, ValueError) as exc:
        raise InvalidInput("Invalid URL format") from exc
    if parsed.scheme.lower() not in ALLOWED_SCHEMES or not parsed.hostname:
        raise InvalidInput("Invalid URL format: an absolute http or https URL is required")
    return original_url


def is_live(url: URL, now: datetime.datetime) -> bool:
    return url.is_active and (url.expires_at is None or url.expires_at > now)


def _validate_page(limit: int, offset: int) -> None:
    if not 1 <= limit <= MAX_PAGE_LIMIT:
        raise InvalidInput(f"limit must be between 1 and {MAX_PAGE_LIMIT}")
    if offset < 0:
        raise InvalidInput("offset must be non-negative")


class URLShorteningService:
    """Owns creation, resolution and lifecycle of short URL records.

    The service holds only its collaborators. ``code_generator`` and ``clock``
    are injectable so collision handling and expiry can be exercised
    deterministically.
    """

    def __init__(
        self,
        db: AsyncSession,
        settings: Settings,
        logger: logging.Logger | logging.LoggerAdapter,
        code_generator: Callable[[int], str] = generate_short_code,
        clock: Callable[[], datetime.datetime] = utc_now,
    ):
        self._db = db
        self._settings = settings
        self._logger = logger
        self._generate_code = code_generator
        self._clock = clock

    @classmethod
    def from_context(cls, ctx: "RequestContext") -> "URLShorteningService":
        return cls(db=ctx.database, settings=ctx.settings, logger=ctx.logger)

    # ========================================================================
    # PUBLIC API METHODS
    # ========================================================================

    async def create_short_url(
        self,
        original_url: str,
        expires_at: Optional[datetime.datetime] = None,
        is_product: bool = False,
    ) -> URL:
        """Persist a new short URL under a freshly generated unique code.

        Args:
            original_url: Absolute http(s) target URL
            expires_at: Optional expiry; naive values are taken as UTC
            is_product: Product flag decided by the product detector

        Returns:
            URL: The persisted record

        Raises:
            InvalidInput: If the URL is not an absolute http(s) URL
            CodeSpaceExhausted: If every attempt collided with an existing code
            StorageError: On any other database failure
        """
        start_time = time.perf_counter()
        try:
            validate_target_url(original_url)
        except InvalidInput:
            URL_CREATION_REQUESTS_TOTAL.labels(status=RequestStatus.VALIDATION_ERROR).inc()
            self._logger.warning(f"Rejected URL for shortening: {original_url!r}")
            raise

        if expires_at is not None and expires_at.tzinfo is None:
            expires_at = expires_at.replace(tzinfo=datetime.timezone.utc)

        max_attempts = self._settings.SHORT_CODE_MAX_ATTEMPTS
        for attempt in range(1, max_attempts + 1):
            short_code = self._generate_code(self._settings.SHORT_CODE_LENGTH)
            url = await self._insert_url(short_code, original_url, expires_at, is_product)
            if url is not None:
                duration = time.perf_counter() - start_time
                URL_CREATION_DURATION.observe(duration)
                URL_CREATION_REQUESTS_TOTAL.labels(status=RequestStatus.SUCCESS).inc()
                self._logger.info(
                    f"URL created: {short_code} (product={is_product}, attempt={attempt}) in {duration:.3f}s"
                )
                return url
            SHORT_CODE_COLLISIONS_TOTAL.inc()
            self._logger.debug(f"Short code collision on attempt {attempt}: {short_code}")

        URL_CREATION_REQUESTS_TOTAL.labels(status=RequestStatus.ERROR).inc()
        self._logger.critical(
            f"Short code space exhausted after {max_attempts} attempts "
            f"(length={self._settings.SHORT_CODE_LENGTH}); code length must be revisited"
        )
        raise CodeSpaceExhausted(f"Failed to generate a unique short code after {max_attempts} attempts")

    async def resolve(self, short_code: str) -> URL:
        """Return the live record for ``short_code`` or raise NotFound."""
        now = self._clock()
        result = await self._db.execute(
            select(URL).where(
                URL.short_code == short_code,
                URL.is_active.is_(True),
                or_(URL.expires_at.is_(None), URL.expires_at > now),
            ).execution_options(populate_existing=True)
        )
        url = result.scalar_one_or_none()
        if url is None:
            URL_RESOLVE_REQUESTS_TOTAL.labels(status=RequestStatus.NOT_FOUND).inc()
            self._logger.debug(f"Short code not resolvable: {short_code}")
            raise NotFound("Short URL not found")
        URL_RESOLVE_REQUESTS_TOTAL.labels(status=RequestStatus.SUCCESS).inc()
        return url

    async def get_url_details(self, short_code: str) -> URL:
        return await self.resolve(short_code)

    async def record_click(self, url_id: int) -> None:
        """Count one click. Every call is one click; there is no deduplication."""
        await self._execute_write(
            update(URL).where(URL.id == url_id).values(click_count=URL.click_count + 1),
            f"increment clicks for url {url_id}",
        )

    async def deactivate(self, url_id: int) -> None:
        await self._execute_write(
            update(URL).where(URL.id == url_id).values(is_active=False),
            f"deactivate url {url_id}",
        )
        self._logger.info(f"URL {url_id} deactivated")

    async def list_urls(self, limit: int, offset: int = 0) -> tuple[list[URL], int]:
        """Page through all URLs, newest first. Returns (page, total_count)."""
        _validate_page(limit, offset)
        result = await self._db.execute(
            select(URL).order_by(URL.created_at.desc(), URL.id.desc()).limit(limit).offset(offset)
            .execution_options(populate_existing=True)
        )
        total = await self._db.scalar(select(func.count()).select_from(URL))
        return list(result.scalars().all()), int(total or 0)

    # ========================================================================
    # PRIVATE HELPER METHODS
    # ========================================================================

    async def _insert_url(
        self,
        short_code: str,
        original_url: str,
        expires_at: Optional[datetime.datetime],
        is_product: bool,
    ) -> Optional[URL]:
        """Insert one record; return None when the short code is already taken."""
        url = URL(
            short_code=short_code,
            original_url=original_url,
            is_product=is_product,
            expires_at=expires_at,
            is_active=True,
            click_count=0,
            created_at=self._clock(),
        )
        try:
            self._db.add(url)
            await self._db.commit()
        except IntegrityError:
            # short_code is the only unique column on urls
            await self._db.rollback()
            return None
        except SQLAlchemyError as exc:
            await self._db.rollback()
            self._logger.error(f"Database error while creating URL: {exc}")
            raise StorageError("Failed to create short URL") from exc
        await self._db.refresh(url)
        return url

    async def _execute_write(self, statement, description: str) -> None:
        try:
            await self._db.execute(statement)
            await self._db.commit()
        except SQLAlchemyError as exc:
            await self._db.rollback()
            self._logger.error(f"Database error while trying to {description}: {exc}")
            raise StorageError(f"Failed to {description}") from exc
