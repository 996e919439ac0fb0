from datetime import timedelta

import pytest
from sqlalchemy import select

from marketplace.core.timeutil import utcnow
from marketplace.models.developer import DeveloperSubscription
from marketplace.services.kpis import trend

DEVELOPMENT = {
    "name": "Harbour View Residences",
    "development_type": "residential",
    "city": "Cape Town",
    "province": "Western Cape",
    "status": "selling",
    "price_from": 1_800_000,
    "price_to": 4_200_000,
    "amenities": ["pool", "gym"],
}


async def _published_development(client, headers) -> dict:
    r = await client.post("/v1/developer/developments", headers=headers, json=DEVELOPMENT)
    assert r.status_code == 201, r.text
    dev_id = r.json()["id"]
    r = await client.post(f"/v1/developer/developments/{dev_id}/publish", headers=headers)
    assert r.status_code == 200, r.text
    return r.json()


@pytest.mark.asyncio
async def test_register_profile_starts_trial(client, db_session):
    from tests.fixtures_seed import create_user

    user = await create_user(db_session, role="property_developer")
    await db_session.commit()

    r = await client.post(
        "/v1/developer/profile", headers=user["headers"], json={"company_name": "Karoo Estates", "phone": "021 555 0100"}
    )
    assert r.status_code == 201, r.text
    body = r.json()
    assert body["status"] == "pending"
    assert body["email"] == user["email"]

    r = await client.post("/v1/developer/profile", headers=user["headers"], json={"company_name": "Karoo Estates"})
    assert r.status_code == 409

    r = await client.get("/v1/developer/subscription", headers=user["headers"])
    assert r.status_code == 200, r.text
    sub = r.json()
    assert sub["tier"] == "free_trial"
    assert sub["trial_days_remaining"] == 14
    assert sub["limits"]["max_developments"] == 1
    assert sub["usage"] == {"developments": 0, "leads": 0}


@pytest.mark.asyncio
async def test_developer_routes_need_developer_role(client, seed_agent):
    r = await client.get("/v1/developer/developments", headers=seed_agent["headers"])
    assert r.status_code == 403


@pytest.mark.asyncio
async def test_unapproved_developer_cannot_publish(client, db_session):
    from tests.fixtures_seed import create_user

    user = await create_user(db_session, role="property_developer")
    await db_session.commit()
    await client.post("/v1/developer/profile", headers=user["headers"], json={"company_name": "Pending Builders"})

    r = await client.post("/v1/developer/developments", headers=user["headers"], json=DEVELOPMENT)
    assert r.status_code == 201, r.text
    r = await client.post(f"/v1/developer/developments/{r.json()['id']}/publish", headers=user["headers"])
    assert r.status_code == 409


@pytest.mark.asyncio
async def test_admin_approves_developer(client, db_session, seed_super_admin):
    from tests.fixtures_seed import create_user

    user = await create_user(db_session, role="property_developer")
    await db_session.commit()
    r = await client.post("/v1/developer/profile", headers=user["headers"], json={"company_name": "Pending Builders"})
    developer_id = r.json()["id"]

    r = await client.post(
        f"/v1/admin/developers/{developer_id}/status",
        headers=seed_super_admin["headers"],
        json={"status": "approved"},
    )
    assert r.status_code == 200, r.text
    assert r.json()["status"] == "approved"


@pytest.mark.asyncio
async def test_trial_development_limit(client, seed_developer):
    headers = seed_developer["headers"]
    r = await client.post("/v1/developer/developments", headers=headers, json=DEVELOPMENT)
    assert r.status_code == 201, r.text
    assert r.json()["slug"] == "harbour-view-residences"

    r = await client.post("/v1/developer/developments", headers=headers, json={**DEVELOPMENT, "name": "Second Phase"})
    assert r.status_code == 403
    assert "free_trial" in r.json()["detail"]


@pytest.mark.asyncio
async def test_expired_trial_blocks_new_developments(client, db_session, seed_developer):
    headers = seed_developer["headers"]
    r = await client.get("/v1/developer/subscription", headers=headers)
    assert r.status_code == 200, r.text

    sub = (
        await db_session.execute(
            select(DeveloperSubscription).where(DeveloperSubscription.developer_id == seed_developer["developer_id"])
        )
    ).scalar_one()
    sub.trial_ends_at = utcnow() - timedelta(days=1)
    await db_session.commit()

    r = await client.post("/v1/developer/developments", headers=headers, json=DEVELOPMENT)
    assert r.status_code == 402


@pytest.mark.asyncio
async def test_price_range_must_be_ordered(client, seed_developer):
    r = await client.post(
        "/v1/developer/developments",
        headers=seed_developer["headers"],
        json={**DEVELOPMENT, "price_from": 5_000_000, "price_to": 1_000_000},
    )
    assert r.status_code == 422


@pytest.mark.asyncio
async def test_unit_lifecycle_logs_activity(client, seed_developer):
    headers = seed_developer["headers"]
    development = await _published_development(client, headers)
    base = f"/v1/developer/developments/{development['id']}/units"

    r = await client.post(base, headers=headers, json={"unit_number": "A101", "bedrooms": 2, "price": 2_000_000})
    assert r.status_code == 201, r.text
    unit_id = r.json()["id"]
    r = await client.post(base, headers=headers, json={"unit_number": "A101", "price": 2_000_000})
    assert r.status_code == 409

    r = await client.patch(f"{base}/{unit_id}", headers=headers, json={"price": 2_200_000})
    assert r.status_code == 200, r.text
    r = await client.patch(f"{base}/{unit_id}", headers=headers, json={"status": "reserved"})
    assert r.json()["reserved_at"] is not None
    r = await client.patch(f"{base}/{unit_id}", headers=headers, json={"status": "sold"})
    assert r.json()["status"] == "sold"
    assert r.json()["sold_at"] is not None
    r = await client.patch(f"{base}/{unit_id}", headers=headers, json={"status": "available"})
    assert r.status_code == 409

    r = await client.get("/v1/developer/activity", headers=headers)
    assert r.status_code == 200, r.text
    by_type = {a["activity_type"]: a for a in r.json()}
    assert {"development_created", "development_updated", "price_updated", "unit_reserved", "unit_sold"} <= set(by_type)
    assert by_type["price_updated"]["title"] == "Unit A101 price increased by 10.0%"
    assert by_type["unit_sold"]["title"] == "Unit A101 sold for R2,200,000"
    assert by_type["unit_sold"]["metadata"]["unit_number"] == "A101"

    r = await client.get(f"/v1/public/developments/{development['slug']}/units")
    assert [u["status"] for u in r.json()] == ["sold"]


@pytest.mark.asyncio
async def test_public_lead_capture_and_qualification(client, seed_developer):
    headers = seed_developer["headers"]
    development = await _published_development(client, headers)

    r = await client.post(
        f"/v1/public/developments/{development['slug']}/leads",
        json={"name": "Thandi M", "email": "thandi@example.com", "affordability_match": 85},
    )
    assert r.status_code == 201, r.text
    lead_id = r.json()["id"]

    r = await client.get("/v1/developer/leads", headers=headers)
    leads = r.json()
    assert [lead["id"] for lead in leads] == [lead_id]
    assert leads[0]["status"] == "new"
    assert leads[0]["development_id"] == development["id"]

    r = await client.patch(f"/v1/developer/leads/{lead_id}", headers=headers, json={"status": "qualified"})
    assert r.status_code == 200, r.text
    assert r.json()["qualified_at"] is not None

    r = await client.get("/v1/developer/activity", headers=headers)
    types = [a["activity_type"] for a in r.json()]
    assert "lead_new" in types
    assert "lead_qualified" in types

    r = await client.get("/v1/developer/kpis", headers=headers, params={"range": "7d"})
    assert r.status_code == 200, r.text
    kpis = r.json()
    assert kpis["time_range"] == "7d"
    assert kpis["total_leads"] == 1
    assert kpis["qualified_leads"] == 1
    assert kpis["conversion_rate"] == 0.0
    assert kpis["affordability_match_percent"] == 100.0
    assert kpis["marketing_performance_score"] == 50.0
    assert kpis["trends"]["total_leads"] == 100.0
    assert kpis["cached"] is False

    r = await client.get("/v1/developer/kpis", headers=headers, params={"range": "7d"})
    assert r.json()["cached"] is True
    r = await client.get("/v1/developer/kpis", headers=headers, params={"range": "7d", "force_refresh": True})
    assert r.json()["cached"] is False


@pytest.mark.asyncio
async def test_leads_on_unpublished_development_are_refused(client, seed_developer):
    r = await client.post("/v1/developer/developments", headers=seed_developer["headers"], json=DEVELOPMENT)
    slug = r.json()["slug"]
    r = await client.post(f"/v1/public/developments/{slug}/leads", json={"name": "X", "email": "x@example.com"})
    assert r.status_code == 404


@pytest.mark.asyncio
async def test_delete_development_keeps_leads(client, seed_developer):
    headers = seed_developer["headers"]
    development = await _published_development(client, headers)
    await client.post(
        f"/v1/public/developments/{development['slug']}/leads",
        json={"name": "Sipho", "email": "sipho@example.com"},
    )

    r = await client.delete(f"/v1/developer/developments/{development['id']}", headers=headers)
    assert r.status_code == 200, r.text

    r = await client.get("/v1/developer/leads", headers=headers)
    assert len(r.json()) == 1
    assert r.json()[0]["development_id"] is None
    r = await client.get("/v1/developer/developments", headers=headers)
    assert r.json() == []


def test_trend_against_empty_previous_period():
    assert trend(5, 0) == 100.0
    assert trend(0, 0) == 0.0
    assert trend(15, 10) == 50.0
    assert trend(5, 10) == -50.0
