import pytest
from sqlalchemy import select

from marketplace.models.listing_media import ListingMedia


async def _draft_listing(client, headers) -> str:
    r = await client.post("/v1/listings", headers=headers, json={"action": "sell", "title": "Family home in Durbanville"})
    assert r.status_code == 201, r.text
    return r.json()["id"]


async def _upload(client, headers, listing_id, name="front.jpg", **extra) -> dict:
    body = {"file_name": name, "content_type": "image/jpeg", "file_size": 150_000, **extra}
    r = await client.post(f"/v1/listings/{listing_id}/media/upload-url", headers=headers, json=body)
    assert r.status_code == 201, r.text
    return r.json()


@pytest.mark.asyncio
async def test_upload_url_registers_pending_media(client, presigner, seed_agent):
    headers = seed_agent["headers"]
    listing_id = await _draft_listing(client, headers)

    body = await _upload(client, headers, listing_id)
    media, upload = body["media"], body["upload"]
    assert media["processing_status"] == "pending"
    assert media["is_primary"] is True
    assert media["display_order"] == 0
    assert upload["key"].startswith(f"listings/{listing_id}/")
    assert upload["key"].endswith(".jpg")
    assert upload["headers"] == {"Content-Type": "image/jpeg"}
    assert media["url"] == upload["public_url"]
    assert presigner.calls == [(upload["key"], "image/jpeg")]

    r = await client.post(f"/v1/listings/{listing_id}/media/{media['id']}/complete", headers=headers)
    assert r.status_code == 200, r.text
    assert r.json()["processing_status"] == "completed"


@pytest.mark.asyncio
@pytest.mark.parametrize(
    "extra, message",
    [
        ({"file_size": 6 * 1024 * 1024}, "Images must be 5MB or smaller"),
        ({"content_type": "image/gif"}, "Images must be JPG, PNG or WebP"),
        (
            {"media_type": "video", "content_type": "video/mp4", "duration_seconds": 200},
            "Videos must be 3 minutes or shorter",
        ),
    ],
)
async def test_upload_limits(client, seed_agent, extra, message):
    headers = seed_agent["headers"]
    listing_id = await _draft_listing(client, headers)
    body = {"file_name": "clip", "content_type": "image/jpeg", "file_size": 1000, **extra}
    r = await client.post(f"/v1/listings/{listing_id}/media/upload-url", headers=headers, json=body)
    assert r.status_code == 422
    assert r.json()["detail"] == message


@pytest.mark.asyncio
async def test_reorder_primary_and_delete(client, db_session, seed_agent):
    headers = seed_agent["headers"]
    listing_id = await _draft_listing(client, headers)
    a = (await _upload(client, headers, listing_id, "a.jpg"))["media"]["id"]
    b = (await _upload(client, headers, listing_id, "b.jpg"))["media"]["id"]
    c = (await _upload(client, headers, listing_id, "c.jpg"))["media"]["id"]

    r = await client.put(f"/v1/listings/{listing_id}/media/order", headers=headers, json={"media_ids": [c, a]})
    assert r.status_code == 422

    r = await client.put(f"/v1/listings/{listing_id}/media/order", headers=headers, json={"media_ids": [c, a, b]})
    assert r.status_code == 200, r.text
    assert [(m["id"], m["display_order"]) for m in r.json()] == [(c, 0), (a, 1), (b, 2)]

    r = await client.post(f"/v1/listings/{listing_id}/media/{b}/primary", headers=headers)
    assert r.status_code == 200, r.text
    rows = (await db_session.execute(select(ListingMedia).where(ListingMedia.listing_id == listing_id))).scalars().all()
    assert {m.id for m in rows if m.is_primary} == {b}

    r = await client.delete(f"/v1/listings/{listing_id}/media/{b}", headers=headers)
    assert r.status_code == 200, r.text

    r = await client.get(f"/v1/listings/{listing_id}/media", headers=headers)
    remaining = r.json()
    assert [m["id"] for m in remaining] == [c, a]
    assert [m["display_order"] for m in remaining] == [0, 1]
    assert remaining[0]["is_primary"] is True


@pytest.mark.asyncio
async def test_media_of_someone_elses_listing_is_forbidden(client, db_session, seed_agent):
    from tests.fixtures_seed import create_user

    listing_id = await _draft_listing(client, seed_agent["headers"])
    other = await create_user(db_session, role="agent")
    await db_session.commit()

    r = await client.post(
        f"/v1/listings/{listing_id}/media/upload-url",
        headers=other["headers"],
        json={"file_name": "x.jpg", "content_type": "image/jpeg", "file_size": 10},
    )
    assert r.status_code == 403
