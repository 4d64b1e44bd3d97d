"""
HTTP tests against the FastAPI app.

The dashboard identifies callers by the X-Account-Email header set by the
upstream identity proxy.
"""

import re

import pytest
from httpx import AsyncClient

from shortlink.core.clock import now_ms

OWNER = {"X-Account-Email": "owner@example.com"}
AUTO_SLUG_RE = re.compile(r"^[a-z2-9]{3,8}$")


async def issue_key(client: AsyncClient, headers=OWNER) -> str:
    response = await client.post("/api/keys", json={"name": "CI"}, headers=headers)
    assert response.status_code == 201
    return response.json()["key"]


@pytest.mark.asyncio
async def test_health(client: AsyncClient):
    response = await client.get("/health")
    assert response.status_code == 200
    assert response.json() == {"status": "healthy"}


@pytest.mark.asyncio
async def test_promo_link_end_to_end(client: AsyncClient):
    api_key = await issue_key(client)

    response = await client.post("/api/create", json={
        "apiKey": api_key,
        "url": "https://example.com/landing",
        "slug": "promo",
    })
    assert response.status_code == 200
    created = response.json()
    assert created["slug"] == "promo"
    assert created["url"] == "https://example.com/landing"
    assert created["shortUrl"].endswith("/promo")
    assert created["rateLimitRemaining"] == 9

    response = await client.get("/promo", headers={"Referer": "https://www.news.example.com/story"})
    assert response.status_code == 302
    assert response.headers["location"] == "https://example.com/landing"

    links = (await client.get("/api/links", headers=OWNER)).json()
    assert [(link["slug"], link["clickCount"]) for link in links] == [("promo", 1)]
    assert links[0]["lastClickedAt"] is not None

    clicks = (await client.get(f"/api/links/{created['id']}/clicks", headers=OWNER)).json()
    assert [click["referrer"] for click in clicks] == ["news.example.com"]

    referrers = (await client.get(f"/api/links/{created['id']}/referrers", headers=OWNER)).json()
    assert referrers == [{"domain": "news.example.com", "count": 1}]


@pytest.mark.asyncio
async def test_api_auto_slugs_and_burst_limit(client: AsyncClient):
    api_key = await issue_key(client)

    remaining = []
    for _ in range(10):
        response = await client.post("/api/create", json={"apiKey": api_key, "url": "https://example.com/"})
        assert response.status_code == 200
        body = response.json()
        assert AUTO_SLUG_RE.match(body["slug"])
        remaining.append(body["rateLimitRemaining"])
    assert remaining == list(range(9, -1, -1))

    response = await client.post("/api/create", json={"apiKey": api_key, "url": "https://example.com/"})
    assert response.status_code == 429
    body = response.json()
    assert body["kind"] == "rate_limit"
    assert body["limit"] == 10
    assert body["windowMs"] == 5000
    assert response.headers["retry-after"] == "5"


@pytest.mark.asyncio
@pytest.mark.parametrize("payload, status_code", [
    ({"url": "https://example.com/"}, 401),
    ({"apiKey": "slk_doesnotexist", "url": "https://example.com/"}, 401),
    ({"apiKey": 42, "url": "https://example.com/"}, 401),
    ({"apiKey": "slk_doesnotexist", "url": 123}, 401),
    ({"apiKey": "slk_doesnotexist", "url": "https://example.com/", "maxClicks": "lots"}, 401),
    ({"apiKey": "slk_doesnotexist", "url": "https://example.com/", "expiresAt": "soon"}, 401),
    (["not", "an", "object"], 400),
])
async def test_api_create_rejects_bad_keys(client: AsyncClient, payload, status_code):
    response = await client.post("/api/create", json=payload)
    assert response.status_code == status_code
    if status_code == 401:
        assert response.json() == {"error": "Invalid API key"}


@pytest.mark.asyncio
async def test_api_create_validation_and_conflicts(client: AsyncClient):
    api_key = await issue_key(client)

    response = await client.post("/api/create", json={"apiKey": api_key, "url": "javascript:alert(1)"})
    assert response.status_code == 400

    response = await client.post("/api/create", json={
        "apiKey": api_key, "url": "https://example.com/", "expiresAt": 1000,
    })
    assert response.status_code == 400

    response = await client.post("/api/create", json={
        "apiKey": api_key, "url": "https://example.com/", "maxClicks": 0,
    })
    assert response.status_code == 400

    response = await client.post("/api/create", json={"apiKey": api_key, "url": 123})
    assert response.status_code == 400
    assert response.json()["error"].startswith("Invalid URL")

    response = await client.post("/api/create", json={
        "apiKey": api_key, "url": "https://example.com/", "maxClicks": "lots",
    })
    assert response.status_code == 400

    response = await client.post("/api/create", content=b"not json", headers={"Content-Type": "application/json"})
    assert response.status_code == 400

    await client.post("/api/create", json={"apiKey": api_key, "url": "https://example.com/", "slug": "dup"})
    response = await client.post("/api/create", json={"apiKey": api_key, "url": "https://example.com/", "slug": "dup"})
    assert response.status_code == 409
    assert response.json() == {"error": "Slug already exists"}


@pytest.mark.asyncio
async def test_unknown_and_malformed_slugs(client: AsyncClient):
    assert (await client.get("/nothing-here")).status_code == 404
    assert (await client.get("/bad.slug")).status_code == 404


@pytest.mark.asyncio
async def test_max_clicks_then_unavailable(client: AsyncClient):
    response = await client.post(
        "/api/links",
        json={"url": "https://example.com/once", "slug": "once", "maxClicks": 1},
        headers=OWNER,
    )
    assert response.status_code == 201

    first = await client.get("/once")
    assert first.status_code == 302
    assert first.headers["location"] == "https://example.com/once"

    second = await client.get("/once")
    assert second.status_code == 302
    assert second.headers["location"] == "/unavailable?reason=max-clicks"

    page = await client.get("/unavailable", params={"reason": "max-clicks"})
    assert page.status_code == 200
    assert "maximum number of clicks" in page.text


@pytest.mark.asyncio
async def test_expiry_accepted_from_dashboard(client: AsyncClient):
    expires_at = now_ms() + 10 * 60 * 1000
    response = await client.post(
        "/api/links",
        json={"url": "https://example.com/", "slug": "later", "expiresAt": expires_at},
        headers=OWNER,
    )
    assert response.status_code == 201
    assert response.json()["expiresAt"] == expires_at
    assert (await client.get("/later")).status_code == 302


@pytest.mark.asyncio
async def test_crawler_gets_preview_document(client: AsyncClient):
    await client.post("/api/links", json={"url": "https://example.com/sale", "slug": "sale"}, headers=OWNER)

    response = await client.get("/sale", headers={"User-Agent": "Twitterbot/1.0"})

    assert response.status_code == 200
    assert response.headers["content-type"].startswith("text/html")
    assert '<meta property="og:image" content="https://cdn.example.com/promo.png">' in response.text
    assert 'content="0;url=https://example.com/sale"' in response.text

    links = (await client.get("/api/links", headers=OWNER)).json()
    assert links[0]["clickCount"] == 1


@pytest.mark.asyncio
async def test_ban_suspends_links_and_api(client: AsyncClient, make_account):
    admin = {"X-Account-Email": "admin@example.com"}
    await make_account("admin@example.com", role="admin")
    api_key = await issue_key(client)
    await client.post("/api/links", json={"url": "https://example.com/", "slug": "mine"}, headers=OWNER)
    me = (await client.get("/api/me", headers=OWNER)).json()

    response = await client.post(f"/api/admin/users/{me['id']}/ban", headers=admin)
    assert response.status_code == 200
    assert response.json()["banned"] is True

    response = await client.get("/mine")
    assert response.status_code == 302
    assert response.headers["location"] == "/unavailable?reason=suspended"

    response = await client.post("/api/create", json={"apiKey": api_key, "url": "https://example.com/"})
    assert response.status_code == 401
    assert response.json() == {"error": "Account suspended"}

    # Suspension is reported before the body's values are looked at
    response = await client.post("/api/create", json={"apiKey": api_key, "url": 123, "maxClicks": "lots"})
    assert response.status_code == 401
    assert response.json() == {"error": "Account suspended"}

    assert (await client.get("/api/links", headers=OWNER)).status_code == 403

    await client.post(f"/api/admin/users/{me['id']}/unban", headers=admin)
    assert (await client.get("/mine")).status_code == 302
    assert (await client.get("/mine")).headers["location"] == "https://example.com/"


@pytest.mark.asyncio
async def test_dashboard_requires_identity(client: AsyncClient):
    assert (await client.get("/api/links")).status_code == 401
    assert (await client.get("/api/admin/users", headers=OWNER)).status_code == 403


@pytest.mark.asyncio
async def test_dashboard_quota_and_keys(client: AsyncClient):
    quota = (await client.get("/api/quota", headers=OWNER)).json()
    assert quota["used"] == 0
    assert quota["limit"] == 25
    assert quota["remaining"] == 25

    await client.post("/api/links", json={"url": "https://example.com/"}, headers=OWNER)
    quota = (await client.get("/api/quota", headers=OWNER)).json()
    assert quota["used"] == 1
    assert quota["resetsAt"] is not None

    api_key = await issue_key(client)
    keys = (await client.get("/api/keys", headers=OWNER)).json()
    assert len(keys) == 1
    assert keys[0]["identifier"].endswith("...")
    assert api_key not in str(keys)

    response = await client.patch(f"/api/keys/{keys[0]['id']}", json={"isActive": False}, headers=OWNER)
    assert response.json()["isActive"] is False
    validation = (await client.post("/api/validate-key", json={"apiKey": api_key})).json()
    assert validation == {"valid": False, "name": None}

    response = await client.delete(f"/api/keys/{keys[0]['id']}", headers=OWNER)
    assert response.status_code == 204
    assert (await client.get("/api/keys", headers=OWNER)).json() == []


@pytest.mark.asyncio
async def test_links_are_private_to_their_owner(client: AsyncClient):
    created = (await client.post(
        "/api/links", json={"url": "https://example.com/", "slug": "private"}, headers=OWNER
    )).json()
    stranger = {"X-Account-Email": "stranger@example.com"}

    assert (await client.get(f"/api/links/{created['id']}/clicks", headers=stranger)).status_code == 404
    assert (await client.delete(f"/api/links/{created['id']}", headers=stranger)).status_code == 404
    assert (await client.delete(f"/api/links/{created['id']}", headers=OWNER)).status_code == 204
    assert (await client.get("/private")).status_code == 404
