"""Markup extraction and field normalisation tests."""

import pytest

from app.extractor import clean_brand, extract, first_match, normalise_price, resolve_image_url

BASE_URL = "https://www.hypd.store"


def test_extract_full_product_page() -> None:
    html = """
    <h1 class="product-title">  Linen   Shirt </h1>
    <div class="brand">Visit the Fabindia Store</div>
    <span class="price">MRP ₹1,299.00 incl. of all taxes</span>
    <div class="product-image"><img src="placeholder" data-src="//cdn.hypd.store/images/shirt.webp"></div>
    """
    fields = extract(html, BASE_URL)
    assert fields.product_name == "Linen Shirt"
    assert fields.brand_name == "Fabindia"
    assert fields.price == "₹1,299.00"
    assert fields.featured_image_url == "https://cdn.hypd.store/images/shirt.webp"


def test_first_matching_strategy_wins_over_later_ones() -> None:
    html = """
    <meta property="og:title" content="From Open Graph">
    <h1 class="product-title">From Product Title</h1>
    """
    assert extract(html, BASE_URL).product_name == "From Product Title"


def test_meta_tags_used_when_structured_selectors_miss() -> None:
    html = """
    <meta property="og:title" content="Running Shoe">
    <meta property="product:price:amount" content="1999">
    <meta property="og:image" content="/media/shoe.png">
    <h1>Generic heading</h1>
    """
    fields = extract(html, BASE_URL)
    assert fields.product_name == "Running Shoe"
    assert fields.price == "1999"
    assert fields.featured_image_url == "https://www.hypd.store/media/shoe.png"


def test_brand_falls_back_to_name_prefix() -> None:
    fields = extract("<h1>Nike - Air Zoom Pegasus</h1>", BASE_URL)
    assert fields.product_name == "Nike - Air Zoom Pegasus"
    assert fields.brand_name == "Nike"


def test_partial_page_leaves_missing_fields_empty() -> None:
    fields = extract('<h1 class="product-title">Only A Name</h1>', BASE_URL)
    assert fields.product_name == "Only A Name"
    assert fields.price is None
    assert fields.brand_name is None
    assert fields.featured_image_url is None
    assert not fields.is_empty()


def test_empty_page_extracts_nothing() -> None:
    fields = extract("<html><body></body></html>", BASE_URL)
    assert fields.is_empty()


def test_first_match_skips_empty_results() -> None:
    strategies = [lambda soup: None, lambda soup: "", lambda soup: "third", lambda soup: "fourth"]
    assert first_match(strategies, None) == "third"


@pytest.mark.parametrize(
    "text, expected",
    [
        ("₹1,299.00", "₹1,299.00"),
        ("Price: ₹ 2,499 only", "₹ 2,499"),
        ("$25.50 USD", "$25.50"),
        ("Rs. 1,499.00", "1,499.00"),
        ("Out of stock", None),
    ],
)
def test_normalise_price(text: str, expected) -> None:
    assert normalise_price(text) == expected


@pytest.mark.parametrize(
    "text, expected",
    [
        ("Visit the Nike Store", "Nike"),
        ("Brand: Puma", "Puma"),
        ("Sold by RetailNet Pvt Ltd", None),
        ("Mamaearth Onion Oil 250ml", "Mamaearth Onion Oil"),
        ("boAt (Pack of 2)", "boAt"),
        ("  Levi's  ", "Levi's"),
    ],
)
def test_clean_brand(text: str, expected) -> None:
    assert clean_brand(text) == expected


@pytest.mark.parametrize(
    "src, expected",
    [
        ("//cdn.example.com/a.jpg", "https://cdn.example.com/a.jpg"),
        ("/img/a.png", "https://www.hypd.store/img/a.png"),
        ("https://cdn.example.com/a.JPG?w=200", "https://cdn.example.com/a.JPG?w=200"),
        ("https://cdn.example.com/a.svg", None),
        ("data:image/png;base64,AAAA", None),
        ("placeholder", None),
        ("", None),
        (None, None),
    ],
)
def test_resolve_image_url(src, expected) -> None:
    assert resolve_image_url(src, BASE_URL) == expected
