import pytest
import httpx
from marketplace.main import app

@pytest.mark.asyncio
async def test_health():
    transport = httpx.ASGITransport(app=app)
    async with httpx.AsyncClient(transport=transport, base_url="http://test") as ac:
        r = await ac.get("/v1/health")
        assert r.status_code == 200
        body = r.json()
        assert body["status"] == "ok"
        assert set(body["integrations"]) == {"stripe", "s3", "email"}


@pytest.mark.asyncio
async def test_me_requires_api_key(client):
    r = await client.get("/v1/me")
    assert r.status_code == 401


@pytest.mark.asyncio
async def test_me_resolves_actor(client, seed_agent):
    r = await client.get("/v1/me", headers=seed_agent["headers"])
    assert r.status_code == 200, r.text
    body = r.json()
    assert body["user_id"] == seed_agent["user_id"]
    assert body["role"] == "agent"
