"""Analytics Accumulator - per-URL click statistics.

Flow Diagram: record_click()
=============================
::
    ┌─────────────┐
    │ Redirect     │
    │ resolved     │
    └──────┬──────┘
           ▼
    ┌──────────────────────────────────────────────┐
    │ INSERT INTO analytics (url_id, first, last,  │
    │                        total = 1)            │
    │ ON CONFLICT (url_id) DO UPDATE               │
    │   total = total + 1                          │
    │   last  = max(last, now)                     │
    │   first = min(first, now)                    │
    └──────┬───────────────────────────────────────┘
           ▼
    ┌─────────────┐
    │ COMMIT       │
    └─────────────┘

Key Behaviours
===============
- Get-or-create is one statement. Two concurrent "first clicks" collide on the
  unique url_id; the loser takes the DO UPDATE branch, so no click is lost.
- first_click_at never moves forward and last_click_at never moves backward,
  even if concurrent requests commit out of order.
- Ranking uses urls.click_count, the authoritative running counter.
"""

import datetime
import logging
from collections.abc import Callable
from dataclasses import dataclass
from typing import Optional

from prometheus_client import Counter
from sqlalchemy import and_, case, func, or_, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from app.database import dialect_insert
from app.exceptions import InvalidInput, NotFound, StorageError
from app.models import URL, Analytics, utc_now
from app.url_service import MAX_PAGE_LIMIT, URLShorteningService, is_live

__all__ = ["AnalyticsService", "AnalyticsSummary", "GlobalSummary"]

CLICKS_RECORDED_TOTAL = Counter(
    "url_shortener_analytics_clicks_recorded_total",
    "Clicks recorded in the analytics table",
)


@dataclass
class AnalyticsSummary:
    short_code: str
    total_clicks: int
    first_click_at: Optional[datetime.datetime]
    last_click_at: Optional[datetime.datetime]
    created_at: datetime.datetime


@dataclass
class GlobalSummary:
    total_urls: int
    total_clicks: int
    active_urls: int
    expired_urls: int


class AnalyticsService:
    def __init__(
        self,
        db: AsyncSession,
        url_service: URLShorteningService,
        logger: logging.Logger | logging.LoggerAdapter,
        clock: Callable[[], datetime.datetime] = utc_now,
    ):
        self._db = db
        self._urls = url_service
        self._logger = logger
        self._clock = clock

    async def record_click(self, url_id: int) -> None:
        now = self._clock()
        stmt = dialect_insert(self._db, Analytics).values(
            url_id=url_id,
            first_click_at=now,
            last_click_at=now,
            total_clicks=1,
            created_at=now,
        )
        excluded = stmt.excluded
        stmt = stmt.on_conflict_do_update(
            index_elements=[Analytics.url_id],
            set_={
                "total_clicks": Analytics.total_clicks + 1,
                "last_click_at": case(
                    (
                        or_(Analytics.last_click_at.is_(None), excluded.last_click_at > Analytics.last_click_at),
                        excluded.last_click_at,
                    ),
                    else_=Analytics.last_click_at,
                ),
                "first_click_at": case(
                    (
                        or_(Analytics.first_click_at.is_(None), excluded.first_click_at < Analytics.first_click_at),
                        excluded.first_click_at,
                    ),
                    else_=Analytics.first_click_at,
                ),
            },
        )
        try:
            await self._db.execute(stmt)
            await self._db.commit()
        except SQLAlchemyError as exc:
            await self._db.rollback()
            self._logger.error(f"Failed to record click for url {url_id}: {exc}")
            raise StorageError("Failed to record click") from exc
        CLICKS_RECORDED_TOTAL.inc()
        self._logger.debug(f"Click recorded for url {url_id}")

    async def get_by_code(self, short_code: str) -> AnalyticsSummary:
        url = await self._urls.resolve(short_code)
        return await self._summarise(url)

    async def get_by_url_id(self, url_id: int) -> AnalyticsSummary:
        url = await self._db.get(URL, url_id, populate_existing=True)
        if url is None or not is_live(url, self._clock()):
            raise NotFound("Short URL not found")
        return await self._summarise(url)

    async def summary(self) -> GlobalSummary:
        now = self._clock()
        live = and_(URL.is_active.is_(True), or_(URL.expires_at.is_(None), URL.expires_at > now))
        expired = and_(URL.expires_at.is_not(None), URL.expires_at <= now)
        row = (
            await self._db.execute(
                select(
                    func.count(URL.id),
                    func.coalesce(func.sum(URL.click_count), 0),
                    func.coalesce(func.sum(case((live, 1), else_=0)), 0),
                    func.coalesce(func.sum(case((expired, 1), else_=0)), 0),
                )
            )
        ).one()
        return GlobalSummary(
            total_urls=int(row[0]),
            total_clicks=int(row[1]),
            active_urls=int(row[2]),
            expired_urls=int(row[3]),
        )

    async def top_by_clicks(self, limit: int) -> list[URL]:
        if not 1 <= limit <= MAX_PAGE_LIMIT:
            raise InvalidInput(f"limit must be between 1 and {MAX_PAGE_LIMIT}")
        result = await self._db.execute(
            select(URL)
            .where(URL.is_active.is_(True))
            .order_by(URL.click_count.desc(), URL.id.asc())
            .limit(limit)
            .execution_options(populate_existing=True)
        )
        return list(result.scalars().all())

    async def _summarise(self, url: URL) -> AnalyticsSummary:
        result = await self._db.execute(
            select(Analytics).where(Analytics.url_id == url.id).execution_options(populate_existing=True)
        )
        analytics = result.scalar_one_or_none()
        if analytics is None:
            return AnalyticsSummary(
                short_code=url.short_code,
                total_clicks=url.click_count,
                first_click_at=None,
                last_click_at=None,
                created_at=url.created_at,
            )
        return AnalyticsSummary(
            short_code=url.short_code,
            total_clicks=analytics.total_clicks,
            first_click_at=analytics.first_click_at,
            last_click_at=analytics.last_click_at,
            created_at=analytics.created_at,
        )
