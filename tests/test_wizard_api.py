import pytest
from sqlalchemy import func, select

from marketplace.models.approval_queue import ApprovalQueueEntry
from marketplace.models.listing import Listing
from marketplace.models.listing_media import ListingMedia
from tests.listing_flow import PHOTO, RENT_APARTMENT, complete_draft


@pytest.mark.asyncio
async def test_rent_apartment_draft_walks_to_preview_and_submits(client, db_session, seed_agent):
    headers = seed_agent["headers"]
    draft = await complete_draft(client, headers)
    assert draft["current_step"] == 9
    assert draft["max_reachable_step"] == 9

    r = await client.post(f"/v1/wizard/drafts/{draft['id']}/submit", headers=headers, json={})
    assert r.status_code == 200, r.text
    listing_id = r.json()["listing_id"]

    listing = (await db_session.execute(select(Listing).where(Listing.id == listing_id))).scalar_one()
    assert listing.status == "pending_review"
    assert listing.approval_status == "pending"
    assert listing.price == 12000
    assert listing.pricing["deposit"] == 12000
    assert listing.readiness_score == 100

    entries = (
        await db_session.execute(select(ApprovalQueueEntry).where(ApprovalQueueEntry.listing_id == listing_id))
    ).scalars().all()
    assert len(entries) == 1
    assert entries[0].status == "pending"
    assert entries[0].compliance_checks["passed"] is True

    media_count = (
        await db_session.execute(select(func.count()).select_from(ListingMedia).where(ListingMedia.listing_id == listing_id))
    ).scalar_one()
    assert media_count == 1

    r = await client.get(f"/v1/wizard/drafts/{draft['id']}", headers=headers)
    assert r.json()["is_frozen"] is True
    assert r.json()["status"] == "submitted"


@pytest.mark.asyncio
async def test_short_description_blocks_basic_info_step(client, seed_agent):
    headers = seed_agent["headers"]
    body = {**RENT_APARTMENT, "description": "Too short."}
    r = await client.post("/v1/wizard/drafts", headers=headers, json=body)
    draft_id = r.json()["id"]

    for _ in range(4):
        r = await client.post(f"/v1/wizard/drafts/{draft_id}/next", headers=headers)
        assert r.json()["moved"] is True

    r = await client.post(f"/v1/wizard/drafts/{draft_id}/next", headers=headers)
    assert r.status_code == 200, r.text
    body = r.json()
    assert body["moved"] is False
    assert body["current_step"] == 5
    assert body["draft"]["errors"] == {"description": "Description must be at least 50 characters"}


@pytest.mark.asyncio
async def test_location_needs_coordinates(client, seed_agent):
    headers = seed_agent["headers"]
    location = {k: v for k, v in RENT_APARTMENT["location"].items() if k not in ("latitude", "longitude")}
    r = await client.post("/v1/wizard/drafts", headers=headers, json={**RENT_APARTMENT, "location": location})
    draft_id = r.json()["id"]

    r = await client.post(f"/v1/wizard/drafts/{draft_id}/submit", headers=headers, json={})
    assert r.status_code == 422, r.text
    detail = r.json()["detail"]
    assert detail["message"] == "Step 7 is incomplete"
    assert set(detail["errors"]) >= {"location.latitude", "location.longitude", "media"}


@pytest.mark.asyncio
async def test_apartment_details_required_fields(client, seed_agent):
    headers = seed_agent["headers"]
    r = await client.post(
        "/v1/wizard/drafts",
        headers=headers,
        json={**RENT_APARTMENT, "property_details": {"property_type": "apartment", "bedrooms": 2}},
    )
    draft_id = r.json()["id"]
    r = await client.post(f"/v1/wizard/drafts/{draft_id}/goto", headers=headers, json={"step": 4})
    assert r.json()["moved"] is False

    for _ in range(3):
        await client.post(f"/v1/wizard/drafts/{draft_id}/next", headers=headers)
    r = await client.post(f"/v1/wizard/drafts/{draft_id}/next", headers=headers)
    errors = r.json()["draft"]["errors"]
    assert set(errors) == {
        "property_details.bathrooms",
        "property_details.unit_size_m2",
        "property_details.property_settings",
    }


@pytest.mark.asyncio
async def test_changing_action_clears_pricing_over_api(client, seed_agent):
    headers = seed_agent["headers"]
    r = await client.post("/v1/wizard/drafts", headers=headers, json=RENT_APARTMENT)
    draft_id = r.json()["id"]

    r = await client.patch(f"/v1/wizard/drafts/{draft_id}", headers=headers, json={"action": "sell"})
    assert r.status_code == 200, r.text
    assert r.json()["draft"]["pricing"] is None

    r = await client.patch(
        f"/v1/wizard/drafts/{draft_id}",
        headers=headers,
        json={"pricing": {"action": "sell", "asking_price": 2450000}},
    )
    assert r.json()["draft"]["pricing"]["asking_price"] == 2450000


@pytest.mark.asyncio
async def test_pricing_variant_fields_are_checked(client, seed_agent):
    r = await client.post(
        "/v1/wizard/drafts",
        headers=seed_agent["headers"],
        json={"action": "rent", "pricing": {"action": "rent", "asking_price": 100}},
    )
    assert r.status_code == 422


@pytest.mark.asyncio
async def test_oversized_photo_rejected(client, seed_agent):
    headers = seed_agent["headers"]
    r = await client.post("/v1/wizard/drafts", headers=headers, json={})
    draft_id = r.json()["id"]
    r = await client.post(
        f"/v1/wizard/drafts/{draft_id}/media",
        headers=headers,
        json={**PHOTO, "file_size": 6 * 1024 * 1024},
    )
    assert r.status_code == 422
    assert r.json()["detail"] == "Images must be 5MB or smaller"


@pytest.mark.asyncio
async def test_draft_media_primary_and_order(client, seed_agent):
    headers = seed_agent["headers"]
    r = await client.post("/v1/wizard/drafts", headers=headers, json={})
    draft_id = r.json()["id"]
    first = (await client.post(f"/v1/wizard/drafts/{draft_id}/media", headers=headers, json=PHOTO)).json()
    second = (
        await client.post(
            f"/v1/wizard/drafts/{draft_id}/media",
            headers=headers,
            json={**PHOTO, "url": "https://cdn.test/listings/kitchen.jpg"},
        )
    ).json()
    a = first["draft"]["media"][0]["id"]
    b = second["draft"]["media"][1]["id"]
    assert second["draft"]["main_media_id"] == a

    r = await client.post(f"/v1/wizard/drafts/{draft_id}/media/{b}/primary", headers=headers)
    assert r.json()["draft"]["main_media_id"] == b

    r = await client.put(f"/v1/wizard/drafts/{draft_id}/media/order", headers=headers, json={"media_ids": [a]})
    assert r.status_code == 422

    r = await client.put(f"/v1/wizard/drafts/{draft_id}/media/order", headers=headers, json={"media_ids": [b, a]})
    assert [m["id"] for m in r.json()["draft"]["media"]] == [b, a]

    r = await client.delete(f"/v1/wizard/drafts/{draft_id}/media/{b}", headers=headers)
    assert r.json()["draft"]["main_media_id"] == a

    r = await client.delete(f"/v1/wizard/drafts/{draft_id}/media/med_missing", headers=headers)
    assert r.status_code == 404


@pytest.mark.asyncio
async def test_save_draft_creates_listing_row(client, db_session, seed_agent):
    headers = seed_agent["headers"]
    r = await client.post("/v1/wizard/drafts", headers=headers, json={"action": "rent", "title": "Garden cottage"})
    draft_id = r.json()["id"]

    r = await client.post(f"/v1/wizard/drafts/{draft_id}/save", headers=headers)
    assert r.status_code == 200, r.text
    listing_id = r.json()["listing_id"]

    listing = (await db_session.execute(select(Listing).where(Listing.id == listing_id))).scalar_one()
    assert listing.status == "draft"
    assert listing.slug == "garden-cottage"

    # saving again updates the same row
    r = await client.post(f"/v1/wizard/drafts/{draft_id}/save", headers=headers)
    assert r.json()["listing_id"] == listing_id


@pytest.mark.asyncio
async def test_submitted_draft_is_frozen(client, seed_agent):
    headers = seed_agent["headers"]
    draft = await complete_draft(client, headers)
    r = await client.post(f"/v1/wizard/drafts/{draft['id']}/submit", headers=headers, json={})
    assert r.status_code == 200, r.text

    r = await client.patch(f"/v1/wizard/drafts/{draft['id']}", headers=headers, json={"title": "Another title here"})
    assert r.status_code == 409
    r = await client.post(f"/v1/wizard/drafts/{draft['id']}/submit", headers=headers, json={})
    assert r.status_code == 409


@pytest.mark.asyncio
async def test_drafts_are_private_to_their_owner(client, db_session, seed_agent):
    from tests.fixtures_seed import create_user

    other = await create_user(db_session, role="agent")
    await db_session.commit()

    r = await client.post("/v1/wizard/drafts", headers=seed_agent["headers"], json={})
    draft_id = r.json()["id"]
    r = await client.get(f"/v1/wizard/drafts/{draft_id}", headers=other["headers"])
    assert r.status_code == 403
