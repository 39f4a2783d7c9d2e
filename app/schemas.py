"""Pydantic schemas for request/response validation in the URL shortener.

This module defines Pydantic models for API input validation and output serialization,
ensuring type safety and automatic OpenAPI documentation generation.

Schema Hierarchy
=================
::
    URLCreate (Input)
    ├─ original_url: str (validated URL)
    └─ expires_at: datetime | None (ISO-8601)

    URLResponse (Output)
    ├─ id, short_code, short_url, original_url
    ├─ is_product, expires_at, created_at
    └─ product: ProductMetadataResponse | None (auto-scraped data)

    URLDetails (Output)            URLListResponse (Output)
    └─ URLResponse + click_count,  ├─ items: list[URLDetails]
       is_active                   └─ total, limit, offset

    AnalyticsResponse              AnalyticsSummaryResponse
    TopURLResponse                 ProductMetadataResponse
    HealthResponse                 ProductListItem

How to Use
===========
**Step 1: Input validation**::
    @router.post("/api/v1/urls")
    async def create(payload: URLCreate):
        # payload is already validated
        ...

**Step 2: Response serialization**::
    return URLDetails.from_model(url, settings.BASE_URL)

Key Behaviours
===============
- URL validation uses the validators library with single-label hosts allowed
  (``http://localhost:8080/page``); the registry
  additionally restricts schemes to http/https.
- All datetime fields are timezone-aware.
- Models are configured for ORM attribute mapping.
"""

import datetime
from typing import Optional

import validators
from pydantic import BaseModel, field_validator

from app.enums import HealthStatus

__all__ = [
    "URLCreate",
    "URLResponse",
    "URLDetails",
    "URLListResponse",
    "AnalyticsResponse",
    "AnalyticsSummaryResponse",
    "TopURLResponse",
    "ProductMetadataResponse",
    "ProductListItem",
    "ProductListResponse",
    "HealthResponse",
]


class URLCreate(BaseModel):
    original_url: str
    expires_at: Optional[datetime.datetime] = None

    @field_validator("original_url")
    @classmethod
    def validate_url(cls, v: str) -> str:
        v = v.strip()
        if not validators.url(v, simple_host=True):
            raise ValueError("Please provide a valid URL")
        return v


class ProductMetadataResponse(BaseModel):
    product_name: Optional[str] = None
    price: Optional[str] = None
    brand_name: Optional[str] = None
    featured_image_url: Optional[str] = None
    scraped_at: datetime.datetime

    model_config = {"from_attributes": True}


class URLResponse(BaseModel):
    id: int
    short_code: str
    short_url: str
    original_url: str
    is_product: bool
    expires_at: Optional[datetime.datetime] = None
    created_at: datetime.datetime
    product: Optional[ProductMetadataResponse] = None

    @classmethod
    def from_model(cls, url, base_url: str) -> "URLResponse":
        return cls(
            id=url.id,
            short_code=url.short_code,
            short_url=f"{base_url}/{url.short_code}",
            original_url=url.original_url,
            is_product=url.is_product,
            expires_at=url.expires_at,
            created_at=url.created_at,
        )


class URLDetails(BaseModel):
    id: int
    short_code: str
    short_url: str
    original_url: str
    is_product: bool
    is_active: bool
    click_count: int
    expires_at: Optional[datetime.datetime] = None
    created_at: datetime.datetime

    @classmethod
    def from_model(cls, url, base_url: str) -> "URLDetails":
        return cls(
            id=url.id,
            short_code=url.short_code,
            short_url=f"{base_url}/{url.short_code}",
            original_url=url.original_url,
            is_product=url.is_product,
            is_active=url.is_active,
            click_count=url.click_count,
            expires_at=url.expires_at,
            created_at=url.created_at,
        )


class URLListResponse(BaseModel):
    items: list[URLDetails]
    total: int
    limit: int
    offset: int


class AnalyticsResponse(BaseModel):
    short_code: str
    total_clicks: int
    first_click_at: Optional[datetime.datetime] = None
    last_click_at: Optional[datetime.datetime] = None
    created_at: datetime.datetime

    model_config = {"from_attributes": True}


class AnalyticsSummaryResponse(BaseModel):
    total_urls: int
    total_clicks: int
    active_urls: int
    expired_urls: int

    model_config = {"from_attributes": True}


class TopURLResponse(BaseModel):
    short_code: str
    original_url: str
    click_count: int
    created_at: datetime.datetime

    model_config = {"from_attributes": True}


class ProductListItem(ProductMetadataResponse):
    short_code: str
    original_url: str


class ProductListResponse(BaseModel):
    items: list[ProductListItem]
    total: int
    limit: int
    offset: int


class HealthResponse(BaseModel):
    status: HealthStatus
    database: HealthStatus
