"""Product metadata cache/store tests: freshness, merging and failure handling."""

import pytest
import pytest_asyncio

from app.exceptions import ExternalServiceUnavailable, InvalidInput, NotAProduct, NotFound
from app.product_service import FRESHNESS_WINDOW, ProductMetadataService

NAME_ONLY_PAGE = '<h1 class="product-title">Linen Shirt (Relaxed Fit)</h1>'


@pytest.fixture
def products(db_session, url_service, fake_fetcher, settings, logger, clock) -> ProductMetadataService:
    return ProductMetadataService(
        db=db_session,
        url_service=url_service,
        fetcher=fake_fetcher,
        settings=settings,
        logger=logger,
        clock=clock,
    )


@pytest_asyncio.fixture
async def product_code(url_service, product_url) -> str:
    url = await url_service.create_short_url(product_url, is_product=True)
    return url.short_code


@pytest.mark.asyncio
async def test_get_or_scrape_stores_extracted_fields(products, product_code, product_url, fake_fetcher, clock) -> None:
    record = await products.get_or_scrape(product_code)
    assert fake_fetcher.calls == [product_url]
    assert record.product_name == "Linen Shirt"
    assert record.brand_name == "Fabindia"
    assert record.price == "₹1,299.00"
    assert record.featured_image_url == "https://cdn.hypd.store/images/shirt.webp"
    assert record.scraped_at == clock.now


@pytest.mark.asyncio
async def test_fresh_record_is_served_without_fetching(products, product_code, fake_fetcher, clock) -> None:
    first = await products.get_or_scrape(product_code)
    scraped_at = first.scraped_at
    clock.advance(seconds=FRESHNESS_WINDOW.total_seconds() - 1)

    second = await products.get_or_scrape(product_code)
    assert len(fake_fetcher.calls) == 1
    assert second.scraped_at == scraped_at


@pytest.mark.asyncio
async def test_stale_record_is_fetched_again(products, product_code, fake_fetcher, clock) -> None:
    first = await products.get_or_scrape(product_code)
    first_scraped_at = first.scraped_at
    clock.advance(hours=25)
    fake_fetcher.markup = fake_fetcher.markup.replace("Linen Shirt</h1>", "Linen Shirt v2</h1>")

    second = await products.get_or_scrape(product_code)
    assert len(fake_fetcher.calls) == 2
    assert second.scraped_at > first_scraped_at
    assert second.product_name == "Linen Shirt v2"


@pytest.mark.asyncio
async def test_force_refresh_always_fetches(products, product_code, fake_fetcher, clock) -> None:
    await products.get_or_scrape(product_code)
    clock.advance(minutes=1)
    record = await products.force_refresh(product_code)
    assert len(fake_fetcher.calls) == 2
    assert record.scraped_at == clock.now


@pytest.mark.asyncio
async def test_failed_refresh_leaves_stored_record_untouched(products, product_code, fake_fetcher, clock) -> None:
    original = await products.get_or_scrape(product_code)
    scraped_at, name = original.scraped_at, original.product_name
    clock.advance(hours=1)
    fake_fetcher.error = "timeout fetching page"

    with pytest.raises(ExternalServiceUnavailable):
        await products.force_refresh(product_code)

    stored = await products.get(product_code)
    assert stored.scraped_at == scraped_at
    assert stored.product_name == name


@pytest.mark.asyncio
async def test_failed_first_scrape_writes_nothing(products, product_code, fake_fetcher) -> None:
    fake_fetcher.error = "HTTP 503"
    with pytest.raises(ExternalServiceUnavailable):
        await products.get_or_scrape(product_code)
    with pytest.raises(NotFound):
        await products.get(product_code)


@pytest.mark.asyncio
async def test_refresh_keeps_fields_missing_from_new_markup(products, product_code, fake_fetcher, clock) -> None:
    await products.get_or_scrape(product_code)
    clock.advance(hours=25)
    fake_fetcher.markup = NAME_ONLY_PAGE

    record = await products.force_refresh(product_code)
    assert record.product_name == "Linen Shirt (Relaxed Fit)"
    assert record.brand_name == "Fabindia"
    assert record.price == "₹1,299.00"
    assert record.featured_image_url == "https://cdn.hypd.store/images/shirt.webp"
    assert record.scraped_at == clock.now


@pytest.mark.asyncio
async def test_partial_extraction_is_stored(products, product_code, fake_fetcher) -> None:
    fake_fetcher.markup = NAME_ONLY_PAGE
    record = await products.get_or_scrape(product_code)
    assert record.product_name == "Linen Shirt (Relaxed Fit)"
    assert record.price is None
    assert record.brand_name is None
    assert record.featured_image_url is None


@pytest.mark.asyncio
async def test_non_product_url_is_rejected(products, url_service, fake_fetcher) -> None:
    url = await url_service.create_short_url("https://example.com/blog")
    with pytest.raises(NotAProduct):
        await products.get_or_scrape(url.short_code)
    with pytest.raises(NotAProduct):
        await products.force_refresh(url.short_code)
    assert fake_fetcher.calls == []


@pytest.mark.asyncio
async def test_unknown_or_expired_code_is_not_found(products, url_service, product_url, clock) -> None:
    with pytest.raises(NotFound):
        await products.get_or_scrape("nope00")

    url = await url_service.create_short_url(product_url, expires_at=clock.now, is_product=True)
    with pytest.raises(NotFound):
        await products.get_or_scrape(url.short_code)


@pytest.mark.asyncio
async def test_get_is_a_pure_read(products, product_code, fake_fetcher) -> None:
    with pytest.raises(NotFound):
        await products.get(product_code)
    assert fake_fetcher.calls == []


@pytest.mark.asyncio
async def test_delete(products, product_code) -> None:
    await products.get_or_scrape(product_code)
    await products.delete(product_code)
    with pytest.raises(NotFound):
        await products.get(product_code)
    with pytest.raises(NotFound):
        await products.delete(product_code)


@pytest.mark.asyncio
async def test_list_metadata(products, url_service, product_url, clock) -> None:
    codes = []
    for suffix in ("a1", "b2"):
        url = await url_service.create_short_url(product_url.replace("64f1c2e9a7", suffix), is_product=True)
        codes.append(url.short_code)
    for code in codes:
        await products.get_or_scrape(code)
        clock.advance(minutes=1)

    rows = await products.list_metadata(limit=10)
    assert [url.short_code for _, url in rows] == list(reversed(codes))
    assert await products.count_metadata() == 2

    with pytest.raises(InvalidInput):
        await products.list_metadata(limit=0)
