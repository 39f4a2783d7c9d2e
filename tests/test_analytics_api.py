"""Analytics endpoint tests."""

import pytest
from httpx import AsyncClient


async def create(client: AsyncClient, target: str, **extra) -> str:
    response = await client.post("/api/v1/urls", json={"original_url": target, **extra})
    return response.json()["short_code"]


@pytest.mark.asyncio
async def test_url_analytics_without_clicks(client: AsyncClient) -> None:
    code = await create(client, "https://example.com")
    response = await client.get(f"/api/v1/urls/{code}/analytics")
    assert response.status_code == 200
    data = response.json()
    assert data["short_code"] == code
    assert data["total_clicks"] == 0
    assert data["first_click_at"] is None
    assert data["last_click_at"] is None


@pytest.mark.asyncio
async def test_url_analytics_unknown_code(client: AsyncClient) -> None:
    response = await client.get("/api/v1/urls/nope00/analytics")
    assert response.status_code == 404


@pytest.mark.asyncio
async def test_analytics_summary(client: AsyncClient) -> None:
    live = await create(client, "https://example.com/live")
    await create(client, "https://example.com/old", expires_at="2000-01-01T00:00:00Z")
    for _ in range(2):
        await client.get(f"/{live}", follow_redirects=False)

    response = await client.get("/api/v1/analytics/summary")
    assert response.status_code == 200
    assert response.json() == {"total_urls": 2, "total_clicks": 2, "active_urls": 1, "expired_urls": 1}


@pytest.mark.asyncio
async def test_analytics_top(client: AsyncClient) -> None:
    popular = await create(client, "https://example.com/popular")
    quiet = await create(client, "https://example.com/quiet")
    for _ in range(3):
        await client.get(f"/{popular}", follow_redirects=False)
    await client.get(f"/{quiet}", follow_redirects=False)

    response = await client.get("/api/v1/analytics/top", params={"limit": 2})
    assert response.status_code == 200
    data = response.json()
    assert [item["short_code"] for item in data] == [popular, quiet]
    assert [item["click_count"] for item in data] == [3, 1]


@pytest.mark.asyncio
async def test_analytics_top_rejects_bad_limit(client: AsyncClient) -> None:
    response = await client.get("/api/v1/analytics/top", params={"limit": 0})
    assert response.status_code == 422
