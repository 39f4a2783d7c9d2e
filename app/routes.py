"""FastAPI route definitions for the URL shortener REST API.

This module provides all HTTP endpoints with dependency injection and response
serialization. Domain failures are raised as ``ServiceError`` subclasses by the
services and rendered by the exception handler registered in ``app.main``.

API Endpoint Overview
=====================
::
    GET    /health                                  HealthResponse
    GET    /api/v1                                  API index

    POST   /api/v1/urls                             URLResponse (201)
    GET    /api/v1/urls?limit&offset                URLListResponse
    GET    /api/v1/urls/{code}                      URLDetails
    DELETE /api/v1/urls/{code}                      204 (deactivate)
    GET    /api/v1/urls/{code}/analytics            AnalyticsResponse

    GET    /api/v1/urls/{code}/product              stored metadata (no fetch)
    POST   /api/v1/urls/{code}/product              get-or-scrape
    POST   /api/v1/urls/{code}/product/refresh      forced scrape
    DELETE /api/v1/urls/{code}/product              204
    GET    /api/v1/products?limit&offset            ProductListResponse

    GET    /api/v1/analytics/summary                AnalyticsSummaryResponse
    GET    /api/v1/analytics/top?limit              list[TopURLResponse]

    GET    /{code}                                  307 redirect or 404

Request Flow Diagram: create and redirect
==========================================
::
    POST /api/v1/urls                     GET /{code}
           │                                   │
           ▼                                   ▼
    ┌─────────────┐                     ┌─────────────┐
    │ classify()  │                     │ resolve()   │──► 404
    └──────┬──────┘                     └──────┬──────┘
           ▼                                   ▼
    ┌─────────────┐                     ┌──────────────────┐
    │ create URL  │                     │ run_best_effort: │
    └──────┬──────┘                     │  click_count +1  │
           ▼ product?                   │  analytics upsert│
    ┌──────────────────┐                └──────┬───────────┘
    │ run_best_effort: │                       ▼
    │  get_or_scrape   │                  307 Location
    └──────┬───────────┘
           ▼
    201 URLResponse (+ product when scraped)

Key Behaviours
===============
- Short codes in paths must match ``SHORT_CODE_PATTERN`` (422 otherwise).
- A failed auto-scrape or click-tracking write never fails the request.
- Expired and deactivated codes answer 404 everywhere.
- 307 redirects preserve the HTTP method.
"""

from typing import Annotated, Optional

from fastapi import APIRouter, Depends, Path, Query, Response
from fastapi.responses import RedirectResponse
from sqlalchemy import text

from app.analytics_service import AnalyticsService
from app.config import SHORT_CODE_PATTERN
from app.dependencies import (
    RequestContext,
    get_analytics_service,
    get_product_service,
    get_request_context,
    get_url_service,
)
from app.enums import HealthStatus
from app.product_detector import classify
from app.product_service import ProductMetadataService
from app.schemas import (
    AnalyticsResponse,
    AnalyticsSummaryResponse,
    HealthResponse,
    ProductListItem,
    ProductListResponse,
    ProductMetadataResponse,
    TopURLResponse,
    URLCreate,
    URLDetails,
    URLListResponse,
    URLResponse,
)
from app.tasks import run_best_effort
from app.url_service import MAX_PAGE_LIMIT, URLShorteningService

__all__ = ["router"]

router = APIRouter()

ShortCode = Annotated[str, Path(pattern=SHORT_CODE_PATTERN)]
PageLimit = Annotated[Optional[int], Query(ge=1, le=MAX_PAGE_LIMIT)]
PageOffset = Annotated[int, Query(ge=0)]


@router.get("/health", response_model=HealthResponse, tags=["health"])
async def health_check(ctx: RequestContext = Depends(get_request_context)) -> HealthResponse:
    db_status = HealthStatus.HEALTHY
    try:
        await ctx.database.execute(text("SELECT 1"))
    except Exception as e:
        ctx.logger.error(f"Database health check failed: {e}")
        db_status = HealthStatus.UNHEALTHY

    ctx.logger.debug(f"Health check completed: {db_status.value}")
    return HealthResponse(status=db_status, database=db_status)


@router.get("/api/v1", tags=["meta"])
async def api_index(ctx: RequestContext = Depends(get_request_context)) -> dict:
    prefix = ctx.settings.API_PREFIX
    return {
        "name": ctx.settings.APP_NAME,
        "version": "1.0.0",
        "endpoints": {
            "urls": f"{prefix}/urls",
            "products": f"{prefix}/products",
            "analytics_summary": f"{prefix}/analytics/summary",
            "analytics_top": f"{prefix}/analytics/top",
            "health": "/health",
            "metrics": "/metrics",
        },
    }


# ============================================================================
# URLS
# ============================================================================


@router.post("/api/v1/urls", response_model=URLResponse, status_code=201, tags=["urls"])
async def create_url(
    payload: URLCreate,
    ctx: RequestContext = Depends(get_request_context),
    service: URLShorteningService = Depends(get_url_service),
    products: ProductMetadataService = Depends(get_product_service),
) -> URLResponse:
    ctx.add_tag("url_creation")
    info = classify(payload.original_url)
    ctx.logger.info(
        f"URL shortening requested: {payload.original_url}",
        extra={"operation": "create_short_url", "target_url": payload.original_url, "is_product": info.is_product},
    )

    url = await service.create_short_url(payload.original_url, payload.expires_at, is_product=info.is_product)
    response = URLResponse.from_model(url, ctx.settings.BASE_URL)

    if response.is_product:
        product = await run_best_effort(
            lambda: products.get_or_scrape(response.short_code),
            name="auto-scrape",
            logger=ctx.logger,
        )
        if product is not None:
            response.product = ProductMetadataResponse.model_validate(product)

    ctx.logger.info(
        f"URL shortened successfully: {response.short_code}",
        extra={
            "operation": "create_short_url",
            "short_code": response.short_code,
            "url_id": response.id,
            "scraped": response.product is not None,
            "duration_ms": ctx.get_duration(),
        },
    )
    return response


@router.get("/api/v1/urls", response_model=URLListResponse, tags=["urls"])
async def list_urls(
    limit: PageLimit = None,
    offset: PageOffset = 0,
    ctx: RequestContext = Depends(get_request_context),
    service: URLShorteningService = Depends(get_url_service),
) -> URLListResponse:
    limit = limit or ctx.settings.DEFAULT_PAGE_LIMIT
    urls, total = await service.list_urls(limit, offset)
    return URLListResponse(
        items=[URLDetails.from_model(url, ctx.settings.BASE_URL) for url in urls],
        total=total,
        limit=limit,
        offset=offset,
    )


@router.get("/api/v1/urls/{short_code}", response_model=URLDetails, tags=["urls"])
async def get_url(
    short_code: ShortCode,
    ctx: RequestContext = Depends(get_request_context),
    service: URLShorteningService = Depends(get_url_service),
) -> URLDetails:
    url = await service.get_url_details(short_code)
    return URLDetails.from_model(url, ctx.settings.BASE_URL)


@router.delete("/api/v1/urls/{short_code}", status_code=204, tags=["urls"])
async def deactivate_url(
    short_code: ShortCode,
    ctx: RequestContext = Depends(get_request_context),
    service: URLShorteningService = Depends(get_url_service),
) -> Response:
    url = await service.resolve(short_code)
    await service.deactivate(url.id)
    ctx.logger.info(f"URL deactivated: {short_code}", extra={"operation": "deactivate", "url_id": url.id})
    return Response(status_code=204)


@router.get("/api/v1/urls/{short_code}/analytics", response_model=AnalyticsResponse, tags=["analytics"])
async def get_url_analytics(
    short_code: ShortCode,
    analytics: AnalyticsService = Depends(get_analytics_service),
) -> AnalyticsResponse:
    return AnalyticsResponse.model_validate(await analytics.get_by_code(short_code))


# ============================================================================
# PRODUCT METADATA
# ============================================================================


@router.get("/api/v1/urls/{short_code}/product", response_model=ProductMetadataResponse, tags=["products"])
async def get_product(
    short_code: ShortCode,
    url_service: URLShorteningService = Depends(get_url_service),
    products: ProductMetadataService = Depends(get_product_service),
) -> ProductMetadataResponse:
    await url_service.resolve(short_code)
    return ProductMetadataResponse.model_validate(await products.get(short_code))


@router.post("/api/v1/urls/{short_code}/product", response_model=ProductMetadataResponse, tags=["products"])
async def scrape_product(
    short_code: ShortCode,
    products: ProductMetadataService = Depends(get_product_service),
) -> ProductMetadataResponse:
    return ProductMetadataResponse.model_validate(await products.get_or_scrape(short_code))


@router.post(
    "/api/v1/urls/{short_code}/product/refresh", response_model=ProductMetadataResponse, tags=["products"]
)
async def refresh_product(
    short_code: ShortCode,
    products: ProductMetadataService = Depends(get_product_service),
) -> ProductMetadataResponse:
    return ProductMetadataResponse.model_validate(await products.force_refresh(short_code))


@router.delete("/api/v1/urls/{short_code}/product", status_code=204, tags=["products"])
async def delete_product(
    short_code: ShortCode,
    url_service: URLShorteningService = Depends(get_url_service),
    products: ProductMetadataService = Depends(get_product_service),
) -> Response:
    await url_service.resolve(short_code)
    await products.delete(short_code)
    return Response(status_code=204)


@router.get("/api/v1/products", response_model=ProductListResponse, tags=["products"])
async def list_products(
    limit: PageLimit = None,
    offset: PageOffset = 0,
    ctx: RequestContext = Depends(get_request_context),
    products: ProductMetadataService = Depends(get_product_service),
) -> ProductListResponse:
    limit = limit or ctx.settings.DEFAULT_PAGE_LIMIT
    rows = await products.list_metadata(limit, offset)
    items = [
        ProductListItem(
            short_code=url.short_code,
            original_url=url.original_url,
            product_name=metadata.product_name,
            price=metadata.price,
            brand_name=metadata.brand_name,
            featured_image_url=metadata.featured_image_url,
            scraped_at=metadata.scraped_at,
        )
        for metadata, url in rows
    ]
    return ProductListResponse(items=items, total=await products.count_metadata(), limit=limit, offset=offset)


# ============================================================================
# ANALYTICS
# ============================================================================


@router.get("/api/v1/analytics/summary", response_model=AnalyticsSummaryResponse, tags=["analytics"])
async def analytics_summary(
    analytics: AnalyticsService = Depends(get_analytics_service),
) -> AnalyticsSummaryResponse:
    return AnalyticsSummaryResponse.model_validate(await analytics.summary())


@router.get("/api/v1/analytics/top", response_model=list[TopURLResponse], tags=["analytics"])
async def analytics_top(
    limit: PageLimit = None,
    ctx: RequestContext = Depends(get_request_context),
    analytics: AnalyticsService = Depends(get_analytics_service),
) -> list[TopURLResponse]:
    urls = await analytics.top_by_clicks(limit or ctx.settings.TOP_URLS_DEFAULT_LIMIT)
    return [TopURLResponse.model_validate(url) for url in urls]


# ============================================================================
# REDIRECT
# ============================================================================


@router.get("/{short_code}", tags=["redirect"])
async def redirect_to_url(
    short_code: ShortCode,
    ctx: RequestContext = Depends(get_request_context),
    service: URLShorteningService = Depends(get_url_service),
    analytics: AnalyticsService = Depends(get_analytics_service),
) -> RedirectResponse:
    ctx.add_tag("redirect")
    url = await service.resolve(short_code)
    url_id, target_url = url.id, url.original_url

    async def track_click() -> None:
        await service.record_click(url_id)
        await analytics.record_click(url_id)

    await run_best_effort(track_click, name="click-tracking", logger=ctx.logger)

    ctx.logger.info(
        f"Redirect successful: {short_code} -> {target_url}",
        extra={
            "operation": "redirect",
            "short_code": short_code,
            "url_id": url_id,
            "duration_ms": ctx.get_duration(),
        },
    )
    return RedirectResponse(url=target_url, status_code=307)
