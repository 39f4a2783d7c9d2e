"""HYPD product URL detection.

A URL is a trackable product when its host is ``hypd.store`` (or a subdomain)
and its path contains ``/hypd_store/product/<provider id>``. Detection is pure
and never raises: anything unparseable is simply "not a product".

Examples::

    >>> classify("https://www.hypd.store/hypd_store/product/abc123?title=Shoe")
    ProductInfo(is_product=True, provider_id='abc123', title='Shoe')
    >>> classify("https://example.com/x")
    ProductInfo(is_product=False, provider_id=None, title=None)
"""

import urllib.parse
from dataclasses import dataclass
from typing import Optional

__all__ = ["ProductInfo", "classify", "PRODUCT_DOMAIN", "PRODUCT_PATH_MARKER"]

PRODUCT_DOMAIN = "hypd.store"
PRODUCT_PATH_MARKER = "/hypd_store/product/"
PRODUCT_SEGMENT = "product"


@dataclass(frozen=True)
class ProductInfo:
    is_product: bool
    provider_id: Optional[str] = None
    title: Optional[str] = None


NOT_A_PRODUCT = ProductInfo(is_product=False)


def _is_provider_host(hostname: Optional[str]) -> bool:
    if not hostname:
        return False
    hostname = hostname.lower().rstrip(".")
    return hostname == PRODUCT_DOMAIN or hostname.endswith("." + PRODUCT_DOMAIN)


def classify(url: str) -> ProductInfo:
    try:
        parsed = urllib.parse.urlsplit(url)
        hostname = parsed.hostname
    except (TypeError, ValueError, AttributeError):
        return NOT_A_PRODUCT

    if not _is_provider_host(hostname) or PRODUCT_PATH_MARKER not in parsed.path:
        return NOT_A_PRODUCT

    segments = parsed.path.split("/")
    try:
        provider_id = segments[segments.index(PRODUCT_SEGMENT) + 1]
    except (ValueError, IndexError):
        return NOT_A_PRODUCT
    if not provider_id:
        return NOT_A_PRODUCT

    titles = urllib.parse.parse_qs(parsed.query).get("title")
    title = titles[0] if titles else None
    return ProductInfo(is_product=True, provider_id=provider_id, title=title)
