"""Markup Extractor - best-effort product fields from static HTML.

Each field (name, price, brand, image) has an ordered tuple of strategies. A
strategy is a callable ``(soup) -> str | None``; ``first_match`` returns the
value of the first strategy that yields something non-empty. Later strategies
are fallbacks only, their values are never merged with earlier ones.

Extraction Cascade
==================
::
    markup ──► BeautifulSoup ──┬─► NAME_STRATEGIES  ──► first_match ──► product_name
                               ├─► PRICE_STRATEGIES ──► first_match ──► price
                               ├─► BRAND_STRATEGIES ──► first_match ──┐
                               │        (none matched)                 ▼
                               │   product_name split on " - " ─────► brand_name
                               └─► IMAGE_STRATEGIES ──► first_match ──► featured_image_url

    selector strategy = CSS query ──► first element text/attribute ──► normaliser
                                                                        │
                                                          empty? ───────┴──► None (next strategy)

Field Normalisation
===================
- price: a currency-prefixed amount (``₹1,299.00``, ``$ 25``) found anywhere in
  the matched text is returned verbatim; otherwise every character other than
  digits, ``₹``, ``$``, ``.`` and ``,`` is dropped.
- brand: seller and fulfilment boilerplate, "visit store" phrasing and
  pack/size suffixes are stripped.
- image: ``//host/x`` and ``/x`` are made absolute; only http(s) URLs whose
  path ends in a known image extension are accepted.

A field with no match is left as None. Partial results are normal output.
"""

import re
import urllib.parse
from collections.abc import Callable, Iterable
from dataclasses import asdict, dataclass
from functools import partial
from typing import Optional

from bs4 import BeautifulSoup

__all__ = [
    "ProductFields",
    "Strategy",
    "extract",
    "first_match",
    "normalise_price",
    "clean_brand",
    "resolve_image_url",
]

Strategy = Callable[[BeautifulSoup], Optional[str]]

IMAGE_EXTENSIONS = (".jpg", ".jpeg", ".png", ".gif", ".webp", ".avif")
IMAGE_SOURCE_ATTRIBUTES = ("src", "data-src", "data-lazy")

CURRENCY_AMOUNT_RE = re.compile(r"[₹$]\s?\d[\d,]*(?:\.\d+)?")
PRICE_NOISE_RE = re.compile(r"[^\d.,₹$]")
WHITESPACE_RE = re.compile(r"\s+")
VISIT_STORE_RE = re.compile(r"^visit\s+(?:the\s+)?(?P<brand>.+?)\s+store$", re.IGNORECASE)
BRAND_NOISE_PATTERNS = tuple(
    re.compile(pattern, re.IGNORECASE)
    for pattern in (
        r"\b(?:fulfilled|shipped|sold|marketed)\s+by\b.*$",
        r"\bvisit\s+(?:the\s+)?store\b",
        r"^\s*brand\s*:\s*",
        r"\(?\s*pack\s+of\s+\d+\s*\)?",
        r"\(?\s*set\s+of\s+\d+\s*\)?",
        r"\b\d+(?:\.\d+)?\s?(?:ml|l|g|gm|kg|oz|pcs)\b",
    )
)
NAME_BRAND_DELIMITER = " - "


@dataclass
class ProductFields:
    product_name: Optional[str] = None
    price: Optional[str] = None
    brand_name: Optional[str] = None
    featured_image_url: Optional[str] = None

    def as_dict(self) -> dict[str, Optional[str]]:
        return asdict(self)

    def is_empty(self) -> bool:
        return not any(self.as_dict().values())


# ============================================================================
# GENERIC COMBINATOR AND STRATEGY BUILDERS
# ============================================================================


def first_match(strategies: Iterable[Strategy], soup: BeautifulSoup) -> Optional[str]:
    for strategy in strategies:
        value = strategy(soup)
        if value:
            return value
    return None


def _collapse(text: Optional[str]) -> Optional[str]:
    if text is None:
        return None
    text = WHITESPACE_RE.sub(" ", text).strip()
    return text or None


def _select_text(selector: str, soup: BeautifulSoup) -> Optional[str]:
    element = soup.select_one(selector)
    if element is None:
        return None
    return _collapse(element.get_text(" "))


def _select_meta(prop: str, soup: BeautifulSoup) -> Optional[str]:
    element = soup.select_one(f'meta[property="{prop}"]') or soup.select_one(f'meta[name="{prop}"]')
    if element is None:
        return None
    return _collapse(element.get("content"))


def text_of(selector: str, normaliser: Callable[[str], Optional[str]] = _collapse) -> Strategy:
    def strategy(soup: BeautifulSoup) -> Optional[str]:
        text = _select_text(selector, soup)
        return normaliser(text) if text else None

    return strategy


def meta_content(prop: str, normaliser: Callable[[str], Optional[str]] = _collapse) -> Strategy:
    def strategy(soup: BeautifulSoup) -> Optional[str]:
        content = _select_meta(prop, soup)
        return normaliser(content) if content else None

    return strategy


# ============================================================================
# FIELD NORMALISERS
# ============================================================================


def normalise_price(text: str) -> Optional[str]:
    match = CURRENCY_AMOUNT_RE.search(text)
    if match:
        return match.group(0)
    cleaned = PRICE_NOISE_RE.sub("", text).strip(".,")
    return cleaned if any(ch.isdigit() for ch in cleaned) else None


def clean_brand(text: str) -> Optional[str]:
    text = _collapse(text) or ""
    visit = VISIT_STORE_RE.match(text)
    if visit:
        text = visit.group("brand")
    for pattern in BRAND_NOISE_PATTERNS:
        text = pattern.sub(" ", text)
    return _collapse(text.strip(" -|,:")) or None


def resolve_image_url(src: Optional[str], base_url: str) -> Optional[str]:
    if not src:
        return None
    src = src.strip()
    if src.startswith("//"):
        src = "https:" + src
    elif src.startswith("/"):
        src = base_url.rstrip("/") + src
    parsed = urllib.parse.urlsplit(src)
    if parsed.scheme not in ("http", "https") or not parsed.netloc:
        return None
    if not parsed.path.lower().endswith(IMAGE_EXTENSIONS):
        return None
    return src


def image_of(selector: str, base_url: str) -> Strategy:
    def strategy(soup: BeautifulSoup) -> Optional[str]:
        element = soup.select_one(selector)
        if element is None:
            return None
        for attribute in IMAGE_SOURCE_ATTRIBUTES:
            resolved = resolve_image_url(element.get(attribute), base_url)
            if resolved:
                return resolved
        return None

    return strategy


# ============================================================================
# STRATEGY TABLES
# ============================================================================

NAME_STRATEGIES: tuple[Strategy, ...] = (
    text_of("h1.product-title"),
    text_of('h1[data-testid="product-title"]'),
    text_of(".product-details h1"),
    text_of(".product-info h1"),
    meta_content("og:title"),
    text_of("h1"),
    text_of(".title"),
    text_of('[class*="product"][class*="title"]'),
    text_of('[class*="title"]'),
)

PRICE_STRATEGIES: tuple[Strategy, ...] = (
    text_of(".price", normalise_price),
    text_of(".product-price", normalise_price),
    text_of('[data-testid="price"]', normalise_price),
    text_of(".current-price", normalise_price),
    text_of(".selling-price", normalise_price),
    text_of(".price-current", normalise_price),
    meta_content("product:price:amount", normalise_price),
    text_of('span[class*="price"]', normalise_price),
    text_of('div[class*="price"]', normalise_price),
    text_of('[class*="price"]', normalise_price),
)

BRAND_STRATEGIES: tuple[Strategy, ...] = (
    text_of(".brand", clean_brand),
    text_of(".product-brand", clean_brand),
    text_of('[data-testid="brand"]', clean_brand),
    text_of(".brand-name", clean_brand),
    meta_content("product:brand", clean_brand),
    text_of('span[class*="brand"]', clean_brand),
    text_of('div[class*="brand"]', clean_brand),
    text_of('[class*="brand"]', clean_brand),
)

IMAGE_SELECTORS: tuple[str, ...] = (
    ".product-image img",
    ".featured-image img",
    '[data-testid="product-image"] img',
    ".main-image img",
    ".product-gallery img",
    '[class*="product"][class*="image"] img',
    '[class*="featured"][class*="image"] img',
)


def image_strategies(base_url: str) -> tuple[Strategy, ...]:
    og_image = meta_content("og:image", partial(resolve_image_url, base_url=base_url))
    return tuple(image_of(selector, base_url) for selector in IMAGE_SELECTORS) + (og_image,)


def brand_from_name(product_name: Optional[str]) -> Optional[str]:
    if not product_name or NAME_BRAND_DELIMITER not in product_name:
        return None
    return clean_brand(product_name.split(NAME_BRAND_DELIMITER, 1)[0])


def extract(markup: str, base_url: str) -> ProductFields:
    """Run every field cascade over ``markup``; missing fields stay None."""
    soup = BeautifulSoup(markup, "html.parser")
    product_name = first_match(NAME_STRATEGIES, soup)
    brand_name = first_match(BRAND_STRATEGIES, soup) or brand_from_name(product_name)
    return ProductFields(
        product_name=product_name,
        price=first_match(PRICE_STRATEGIES, soup),
        brand_name=brand_name,
        featured_image_url=first_match(image_strategies(base_url), soup),
    )
