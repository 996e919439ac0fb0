"""Request bodies and helpers shared by the listing/approval tests."""

RENT_APARTMENT = {
    "action": "rent",
    "property_type": "apartment",
    "badges": ["ready_to_move"],
    "title": "Modern 2 bed apartment in Sea Point",
    "description": "Sunny two bedroom apartment with a balcony, secure parking and fibre, close to the station.",
    "property_details": {
        "property_type": "apartment",
        "bedrooms": 2,
        "bathrooms": 1,
        "unit_size_m2": 78,
        "property_settings": "sectional_title",
    },
    "pricing": {"action": "rent", "monthly_rent": 12000, "deposit": 12000},
    "location": {
        "address": "12 Beach Road",
        "suburb": "Sea Point",
        "city": "Cape Town",
        "province": "Western Cape",
        "latitude": -33.9158,
        "longitude": 18.3890,
    },
}

PHOTO = {
    "media_type": "image",
    "url": "https://cdn.test/listings/front.jpg",
    "file_name": "front.jpg",
    "file_size": 200_000,
    "mime_type": "image/jpeg",
}


async def complete_draft(client, headers, body=None) -> dict:
    """Create a draft, add one photo and walk it to the preview step."""
    r = await client.post("/v1/wizard/drafts", headers=headers, json=body or RENT_APARTMENT)
    assert r.status_code == 201, r.text
    draft_id = r.json()["id"]

    r = await client.post(f"/v1/wizard/drafts/{draft_id}/media", headers=headers, json=PHOTO)
    assert r.status_code == 201, r.text

    for _ in range(8):
        r = await client.post(f"/v1/wizard/drafts/{draft_id}/next", headers=headers)
        assert r.status_code == 200, r.text
        assert r.json()["moved"] is True, r.json()["draft"]["errors"]
    return r.json()


async def submitted_listing(client, headers, *, publish_on_approval=False) -> str:
    draft = await complete_draft(client, headers)
    r = await client.post(
        f"/v1/wizard/drafts/{draft['id']}/submit",
        headers=headers,
        json={"publish_on_approval": publish_on_approval},
    )
    assert r.status_code == 200, r.text
    return r.json()["listing_id"]


async def pending_queue_id(client, admin_headers, listing_id) -> str:
    r = await client.get("/v1/admin/approvals", headers=admin_headers)
    assert r.status_code == 200, r.text
    ids = [item["entry"]["id"] for item in r.json() if item["entry"]["listing_id"] == listing_id]
    assert len(ids) == 1
    return ids[0]
