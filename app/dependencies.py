"""Dependency wiring for the API layer.

Process-wide resources (settings, the ``urlshortener`` logger and the outbound
``httpx.AsyncClient``) live on a singleton ``ServiceManager``. Everything else
is built per request from a ``RequestContext``: the database session is the
only per-request resource, and the services are thin objects over it.

Dependency Graph
================
::
    get_db ─────────────┐
    get_service_manager ┴─► get_request_context
                                   │
            ┌──────────────────────┼─────────────────────────┐
            ▼                      ▼                         ▼
     get_url_service       get_metadata_fetcher       (ctx.settings, ctx.logger)
            │                      │
            ├─► get_analytics_service
            └──────────┬───────────┘
                       ▼
              get_product_service

FastAPI caches each dependency within a request, so the URL service handed to
the analytics and product services is the same instance the route receives.
"""

import logging
import time
import uuid
from dataclasses import dataclass, field
from typing import Optional

import httpx
from fastapi import Depends, Request
from sqlalchemy.ext.asyncio import AsyncSession

from app.analytics_service import AnalyticsService
from app.config import Settings, get_settings
from app.database import get_db
from app.fetcher import MetadataFetcher, build_http_client
from app.product_service import ProductMetadataService
from app.url_service import URLShorteningService

LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"


class RequestLoggerAdapter(logging.LoggerAdapter):
    """Adds request identifiers to every record while keeping per-call ``extra`` fields."""

    def process(self, msg, kwargs):
        kwargs["extra"] = {**self.extra, **kwargs.get("extra", {})}
        return msg, kwargs


class ServiceManager:
    """Singleton owner of resources shared by every request."""

    _instance: Optional["ServiceManager"] = None
    _initialized: bool = False

    def __new__(cls) -> "ServiceManager":
        if cls._instance is None:
            cls._instance = super().__new__(cls)
        return cls._instance

    async def initialize(self) -> None:
        if self._initialized:
            return
        self.settings = get_settings()
        self.logger = self._configure_logger(self.settings.LOG_LEVEL)
        self.http_client = build_http_client(self.settings)
        self._initialized = True
        self.logger.info(f"{self.settings.APP_NAME} started in {self.settings.APP_ENV} mode")

    @staticmethod
    def _configure_logger(level: str) -> logging.Logger:
        logger = logging.getLogger("urlshortener")
        if not logger.handlers:
            handler = logging.StreamHandler()
            handler.setFormatter(logging.Formatter(LOG_FORMAT))
            logger.addHandler(handler)
        logger.setLevel(level)
        return logger

    async def cleanup(self) -> None:
        http_client = getattr(self, "http_client", None)
        if http_client is not None:
            await http_client.aclose()
            self.http_client = None
        self._initialized = False


# Global singleton instance
_service_manager = ServiceManager()


@dataclass
class RequestContext:
    """Per-request view over the shared resources plus request identifiers."""

    database: AsyncSession
    service_manager: ServiceManager
    request_id: str = field(default_factory=lambda: str(uuid.uuid4()))
    trace_id: Optional[str] = None
    user_agent: Optional[str] = None
    client_ip: Optional[str] = None
    start_time: float = field(default_factory=time.time)
    tags: list[str] = field(default_factory=list)

    @classmethod
    def from_request(cls, request: Request, db: AsyncSession, manager: ServiceManager) -> "RequestContext":
        return cls(
            database=db,
            service_manager=manager,
            trace_id=request.headers.get("x-trace-id"),
            user_agent=request.headers.get("user-agent"),
            client_ip=request.client.host if request.client else None,
        )

    @property
    def settings(self) -> Settings:
        return self.service_manager.settings

    @property
    def http_client(self) -> httpx.AsyncClient:
        return self.service_manager.http_client

    @property
    def logger(self) -> RequestLoggerAdapter:
        # request identifiers travel as record attributes for structured handlers
        return RequestLoggerAdapter(
            self.service_manager.logger,
            {
                "request_id": self.request_id,
                "trace_id": self.trace_id or self.request_id,
                "client_ip": self.client_ip,
                "user_agent": self.user_agent,
                "tags": ",".join(self.tags),
            },
        )

    def add_tag(self, tag: str) -> None:
        if tag not in self.tags:
            self.tags.append(tag)

    def get_duration(self) -> float:
        """Milliseconds since the context was created."""
        return (time.time() - self.start_time) * 1000


async def get_service_manager() -> ServiceManager:
    if not _service_manager._initialized:
        await _service_manager.initialize()
    return _service_manager


async def get_request_context(
    request: Request,
    db: AsyncSession = Depends(get_db),
    manager: ServiceManager = Depends(get_service_manager),
) -> RequestContext:
    return RequestContext.from_request(request, db, manager)


def get_url_service(ctx: RequestContext = Depends(get_request_context)) -> URLShorteningService:
    return URLShorteningService.from_context(ctx)


def get_analytics_service(
    ctx: RequestContext = Depends(get_request_context),
    url_service: URLShorteningService = Depends(get_url_service),
) -> AnalyticsService:
    return AnalyticsService(db=ctx.database, url_service=url_service, logger=ctx.logger)


def get_metadata_fetcher(ctx: RequestContext = Depends(get_request_context)) -> MetadataFetcher:
    return MetadataFetcher(
        client=ctx.http_client,
        logger=ctx.logger,
        timeout=ctx.settings.SCRAPE_TIMEOUT_SECONDS,
    )


def get_product_service(
    ctx: RequestContext = Depends(get_request_context),
    url_service: URLShorteningService = Depends(get_url_service),
    fetcher: MetadataFetcher = Depends(get_metadata_fetcher),
) -> ProductMetadataService:
    return ProductMetadataService(
        db=ctx.database,
        url_service=url_service,
        fetcher=fetcher,
        settings=ctx.settings,
        logger=ctx.logger,
    )
