"""URL creation and listing endpoint tests."""

import pytest
from httpx import AsyncClient

from app.config import get_settings

settings = get_settings()


@pytest.mark.asyncio
async def test_shorten_valid_url(client: AsyncClient) -> None:
    response = await client.post("/api/v1/urls", json={"original_url": "https://www.python.org"})
    assert response.status_code == 201
    data = response.json()
    assert data["original_url"] == "https://www.python.org"
    assert len(data["short_code"]) == settings.SHORT_CODE_LENGTH
    assert data["short_url"] == f"{settings.BASE_URL}/{data['short_code']}"
    assert data["is_product"] is False
    assert data["product"] is None
    assert data["expires_at"] is None


@pytest.mark.asyncio
@pytest.mark.parametrize("original_url", ["http://localhost:8080/page", "http://intranet/wiki"])
async def test_shorten_single_label_host(client: AsyncClient, original_url: str) -> None:
    response = await client.post("/api/v1/urls", json={"original_url": original_url})
    assert response.status_code == 201
    assert response.json()["original_url"] == original_url


@pytest.mark.asyncio
async def test_shorten_invalid_url(client: AsyncClient) -> None:
    response = await client.post("/api/v1/urls", json={"original_url": "not-a-url"})
    assert response.status_code == 422


@pytest.mark.asyncio
async def test_shorten_missing_url(client: AsyncClient) -> None:
    response = await client.post("/api/v1/urls", json={})
    assert response.status_code == 422


@pytest.mark.asyncio
async def test_shorten_with_expiry(client: AsyncClient) -> None:
    response = await client.post(
        "/api/v1/urls",
        json={"original_url": "https://www.python.org", "expires_at": "2099-01-01T00:00:00Z"},
    )
    assert response.status_code == 201
    assert response.json()["expires_at"].startswith("2099-01-01T00:00:00")


@pytest.mark.asyncio
async def test_shorten_same_url_twice_gives_distinct_codes(client: AsyncClient) -> None:
    first = await client.post("/api/v1/urls", json={"original_url": "https://www.python.org"})
    second = await client.post("/api/v1/urls", json={"original_url": "https://www.python.org"})
    assert first.json()["short_code"] != second.json()["short_code"]


@pytest.mark.asyncio
async def test_shorten_product_url_scrapes_metadata(client: AsyncClient, product_url: str, fake_fetcher) -> None:
    response = await client.post("/api/v1/urls", json={"original_url": product_url})
    assert response.status_code == 201
    data = response.json()
    assert data["is_product"] is True
    assert data["product"]["product_name"] == "Linen Shirt"
    assert data["product"]["brand_name"] == "Fabindia"
    assert fake_fetcher.calls == [product_url]


@pytest.mark.asyncio
async def test_shorten_product_url_survives_scrape_failure(client: AsyncClient, product_url: str, fake_fetcher) -> None:
    fake_fetcher.error = "HTTP 503 fetching page"
    response = await client.post("/api/v1/urls", json={"original_url": product_url})
    assert response.status_code == 201
    data = response.json()
    assert data["is_product"] is True
    assert data["product"] is None

    # the link itself works
    redirect = await client.get(f"/{data['short_code']}", follow_redirects=False)
    assert redirect.status_code == 307


@pytest.mark.asyncio
async def test_get_url_details(client: AsyncClient) -> None:
    created = (await client.post("/api/v1/urls", json={"original_url": "https://www.github.com"})).json()
    response = await client.get(f"/api/v1/urls/{created['short_code']}")
    assert response.status_code == 200
    data = response.json()
    assert data["short_code"] == created["short_code"]
    assert data["click_count"] == 0
    assert data["is_active"] is True


@pytest.mark.asyncio
async def test_get_url_details_unknown_code(client: AsyncClient) -> None:
    response = await client.get("/api/v1/urls/nope00")
    assert response.status_code == 404
    assert response.json() == {"detail": "Short URL not found"}


@pytest.mark.asyncio
@pytest.mark.parametrize("code", ["abc", "abcdefghijk", "bad!code"])
async def test_get_url_details_rejects_malformed_code(client: AsyncClient, code: str) -> None:
    response = await client.get(f"/api/v1/urls/{code}")
    assert response.status_code == 422


@pytest.mark.asyncio
async def test_deactivate_url(client: AsyncClient) -> None:
    created = (await client.post("/api/v1/urls", json={"original_url": "https://www.github.com"})).json()
    code = created["short_code"]

    response = await client.delete(f"/api/v1/urls/{code}")
    assert response.status_code == 204

    assert (await client.get(f"/api/v1/urls/{code}")).status_code == 404
    assert (await client.delete(f"/api/v1/urls/{code}")).status_code == 404


@pytest.mark.asyncio
async def test_list_urls(client: AsyncClient) -> None:
    for i in range(3):
        await client.post("/api/v1/urls", json={"original_url": f"https://example.com/{i}"})

    response = await client.get("/api/v1/urls", params={"limit": 2})
    assert response.status_code == 200
    data = response.json()
    assert data["total"] == 3
    assert data["limit"] == 2
    assert data["offset"] == 0
    assert len(data["items"]) == 2

    data = (await client.get("/api/v1/urls", params={"limit": 2, "offset": 2})).json()
    assert len(data["items"]) == 1


@pytest.mark.asyncio
@pytest.mark.parametrize("params", [{"limit": 0}, {"limit": 101}, {"offset": -1}])
async def test_list_urls_rejects_bad_pagination(client: AsyncClient, params: dict) -> None:
    response = await client.get("/api/v1/urls", params=params)
    assert response.status_code == 422
