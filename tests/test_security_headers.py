"""Tests for security headers middleware."""


async def test_security_headers_present(client):
    resp = await client.get("/health")
    assert resp.headers["x-content-type-options"] == "nosniff"
    assert resp.headers["x-frame-options"] == "DENY"
    assert "strict-origin" in resp.headers["referrer-policy"]
    assert "camera=()" in resp.headers["permissions-policy"]
    assert "max-age=31536000" in resp.headers["strict-transport-security"]


async def test_auth_endpoints_no_cache(client):
    resp = await client.post("/api/v1/auth/login", json={"email": "x@x.com", "password": "wrong"})
    assert "no-store" in resp.headers.get("cache-control", "")


async def test_moderator_endpoints_no_cache(client, moderator):
    resp = await client.get("/api/v1/admin/queue", headers=moderator["headers"])
    assert "no-store" in resp.headers.get("cache-control", "")


async def test_own_content_no_cache(client, author):
    resp = await client.get("/api/v1/content/mine", headers=author["headers"])
    assert "no-store" in resp.headers.get("cache-control", "")


async def test_public_listing_no_strict_cache(client):
    resp = await client.get("/api/v1/content?limit=1")
    assert "no-store" not in resp.headers.get("cache-control", "")
