import pytest

from marketplace.main import app
from marketplace.services.storage import get_presigner


@pytest.mark.asyncio
async def test_presign_guesses_content_type(client, presigner, seed_agent):
    r = await client.post(
        "/v1/uploads/presign",
        headers=seed_agent["headers"],
        json={"file_name": "brochure.pdf", "folder": "documents"},
    )
    assert r.status_code == 200, r.text
    body = r.json()
    assert body["content_type"] == "application/pdf"
    assert body["key"].startswith(f"documents/{seed_agent['user_id']}/")
    assert body["expires_in"] == 900
    assert r.headers["X-RateLimit-Limit"] == "30"
    assert r.headers["X-RateLimit-Remaining"] == "29"


@pytest.mark.asyncio
async def test_presign_is_rate_limited(client, rate_limiter, seed_agent):
    rate_limiter.limit = 1

    body = {"file_name": "a.png"}
    r = await client.post("/v1/uploads/presign", headers=seed_agent["headers"], json=body)
    assert r.status_code == 200, r.text
    r = await client.post("/v1/uploads/presign", headers=seed_agent["headers"], json=body)
    assert r.status_code == 429
    assert r.headers["Retry-After"] == "42"


@pytest.mark.asyncio
async def test_presign_unavailable_without_s3(client, seed_agent, monkeypatch):
    from marketplace.core.config import settings

    app.dependency_overrides.pop(get_presigner)
    monkeypatch.setattr(settings, "s3_bucket", None)
    r = await client.post("/v1/uploads/presign", headers=seed_agent["headers"], json={"file_name": "a.png"})
    assert r.status_code == 503
    assert r.json()["detail"] == "File uploads are not configured"


@pytest.mark.asyncio
async def test_presign_rejects_unknown_folder(client, seed_agent):
    r = await client.post(
        "/v1/uploads/presign",
        headers=seed_agent["headers"],
        json={"file_name": "a.png", "folder": "secrets"},
    )
    assert r.status_code == 422
