import os

import pytest

INTERNAL = {"X-Internal-Admin-Key": os.getenv("INTERNAL_ADMIN_KEY", "test-internal-key")}


@pytest.mark.asyncio
async def test_bootstrap_requires_internal_key(client):
    r = await client.post("/v1/users/bootstrap", json={"email": "a@example.com", "name": "A"})
    assert r.status_code == 403

    r = await client.post(
        "/v1/users/bootstrap",
        headers={"X-Internal-Admin-Key": "wrong"},
        json={"email": "a@example.com", "name": "A"},
    )
    assert r.status_code == 403


@pytest.mark.asyncio
async def test_bootstrap_agency_admin_then_rotate_key(client):
    r = await client.post(
        "/v1/users/bootstrap",
        headers=INTERNAL,
        json={"email": "Owner@CapeRealty.test", "name": "Owner", "role": "agency_admin", "agency_name": "Cape Realty"},
    )
    assert r.status_code == 200, r.text
    boot = r.json()
    assert boot["role"] == "agency_admin"
    assert boot["agency_id"]
    old_key = boot["api_key"]

    r = await client.get("/v1/me", headers={"X-API-Key": old_key})
    assert r.status_code == 200
    assert r.json()["email"] == "owner@caperealty.test"
    assert r.json()["agency_id"] == boot["agency_id"]

    r = await client.post(f"/v1/users/{boot['user_id']}/rotate-key", headers=INTERNAL)
    assert r.status_code == 200, r.text
    new_key = r.json()["api_key"]
    assert new_key != old_key

    assert (await client.get("/v1/me", headers={"X-API-Key": old_key})).status_code == 401
    assert (await client.get("/v1/me", headers={"X-API-Key": new_key})).status_code == 200


@pytest.mark.asyncio
async def test_bootstrap_unknown_agency_and_user(client):
    r = await client.post(
        "/v1/users/bootstrap",
        headers=INTERNAL,
        json={"email": "agent@example.com", "name": "Agent", "role": "agent", "agency_id": "agc_missing"},
    )
    assert r.status_code == 404

    r = await client.post("/v1/users/usr_missing/rotate-key", headers=INTERNAL)
    assert r.status_code == 404
