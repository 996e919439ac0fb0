import pytest
from sqlalchemy import select

from marketplace.core.config import settings
from marketplace.models.approval_queue import ApprovalQueueEntry
from marketplace.models.audit_log import AuditLog
from marketplace.models.listing import Listing
from marketplace.models.outbox import OutboxEvent
from marketplace.services.approval import publish_approved_listings
from tests.listing_flow import pending_queue_id, submitted_listing


async def _queue_rows(db_session, listing_id):
    stmt = select(ApprovalQueueEntry).where(ApprovalQueueEntry.listing_id == listing_id)
    return (await db_session.execute(stmt)).scalars().all()


@pytest.mark.asyncio
async def test_queue_lists_submission_for_admins_only(client, seed_agent, seed_super_admin):
    listing_id = await submitted_listing(client, seed_agent["headers"])

    r = await client.get("/v1/admin/approvals", headers=seed_agent["headers"])
    assert r.status_code == 403

    r = await client.get("/v1/admin/approvals", headers=seed_super_admin["headers"])
    assert r.status_code == 200, r.text
    items = r.json()
    assert len(items) == 1
    assert items[0]["entry"]["listing_id"] == listing_id
    assert items[0]["listing_status"] == "pending_review"
    assert items[0]["readiness_score"] == 100


@pytest.mark.asyncio
async def test_approve_then_publish(client, db_session, seed_agent, seed_super_admin):
    admin = seed_super_admin["headers"]
    listing_id = await submitted_listing(client, seed_agent["headers"])
    queue_id = await pending_queue_id(client, admin, listing_id)

    r = await client.post(f"/v1/admin/approvals/{queue_id}/claim", headers=admin)
    assert r.status_code == 200, r.text
    assert r.json()["status"] == "reviewing"
    r = await client.post(f"/v1/admin/approvals/{queue_id}/claim", headers=admin)
    assert r.status_code == 409

    r = await client.post(f"/v1/admin/approvals/{queue_id}/review", headers=admin, json={"decision": "approved"})
    assert r.status_code == 200, r.text
    body = r.json()
    assert body["listing_status"] == "approved"
    assert body["approval_status"] == "approved"
    assert body["is_published"] is False

    emails = (await db_session.execute(select(OutboxEvent).where(OutboxEvent.aggregate_id == listing_id))).scalars().all()
    assert [e.payload["template"] for e in emails] == ["listing_approved"]
    assert emails[0].payload["to"] == seed_agent["email"]

    r = await client.post(f"/v1/listings/{listing_id}/publish", headers=seed_agent["headers"])
    assert r.status_code == 200, r.text
    assert r.json()["status"] == "published"
    assert r.json()["published_at"] is not None

    slug = r.json()["slug"]
    r = await client.get(f"/v1/public/listings/{slug}")
    assert r.status_code == 200, r.text
    assert r.json()["primary_image_url"] == "https://cdn.test/listings/front.jpg"

    r = await client.post(f"/v1/listings/{listing_id}/archive", headers=seed_agent["headers"])
    assert r.status_code == 200, r.text
    archived = r.json()
    assert archived["status"] == "archived"
    assert archived["is_published"] is False
    assert archived["published_at"] is None
    assert (await client.get(f"/v1/public/listings/{slug}")).status_code == 404


@pytest.mark.asyncio
async def test_publish_requires_approval(client, seed_agent):
    listing_id = await submitted_listing(client, seed_agent["headers"])
    r = await client.post(f"/v1/listings/{listing_id}/publish", headers=seed_agent["headers"])
    assert r.status_code == 409


@pytest.mark.asyncio
async def test_rejection_requires_notes(client, seed_agent, seed_super_admin):
    admin = seed_super_admin["headers"]
    listing_id = await submitted_listing(client, seed_agent["headers"])
    queue_id = await pending_queue_id(client, admin, listing_id)

    r = await client.post(f"/v1/admin/approvals/{queue_id}/review", headers=admin, json={"decision": "rejected"})
    assert r.status_code == 422
    r = await client.post(
        f"/v1/admin/approvals/{queue_id}/review", headers=admin, json={"decision": "rejected", "notes": "   "}
    )
    assert r.status_code == 422


@pytest.mark.asyncio
async def test_rejected_listing_resubmits_into_same_queue_entry(client, db_session, seed_agent, seed_super_admin):
    admin = seed_super_admin["headers"]
    owner = seed_agent["headers"]
    listing_id = await submitted_listing(client, owner)
    queue_id = await pending_queue_id(client, admin, listing_id)

    r = await client.post(
        f"/v1/admin/approvals/{queue_id}/review",
        headers=admin,
        json={"decision": "rejected", "notes": "incomplete address"},
    )
    assert r.status_code == 200, r.text
    assert r.json()["listing_status"] == "rejected"

    r = await client.get(f"/v1/listings/{listing_id}", headers=owner)
    assert r.json()["rejection_reason"] == "incomplete address"

    # rejected listings are editable again
    r = await client.patch(
        f"/v1/listings/{listing_id}",
        headers=owner,
        json={"location": {
            "address": "12 Beach Road, Unit 4",
            "city": "Cape Town",
            "province": "Western Cape",
            "latitude": -33.9158,
            "longitude": 18.3890,
        }},
    )
    assert r.status_code == 200, r.text

    r = await client.post(f"/v1/listings/{listing_id}/submit", headers=owner, json={"priority": "high"})
    assert r.status_code == 200, r.text
    entry = r.json()
    assert entry["id"] == queue_id
    assert entry["status"] == "pending"
    assert entry["submission_count"] == 2
    assert entry["rejection_reason"] is None
    assert entry["priority"] == "high"

    rows = await _queue_rows(db_session, listing_id)
    assert len(rows) == 1

    actions = (
        await db_session.execute(select(AuditLog.action).where(AuditLog.target_id == listing_id))
    ).scalars().all()
    assert "listing.resubmitted" in actions
    templates = (
        await db_session.execute(select(OutboxEvent.payload).where(OutboxEvent.aggregate_id == listing_id))
    ).scalars().all()
    assert [p["template"] for p in templates] == ["listing_rejected"]


@pytest.mark.asyncio
async def test_double_submit_keeps_one_open_entry(client, db_session, seed_agent):
    owner = seed_agent["headers"]
    listing_id = await submitted_listing(client, owner)

    r = await client.post(f"/v1/listings/{listing_id}/submit", headers=owner, json={})
    assert r.status_code == 200, r.text
    assert r.json()["submission_count"] == 1
    assert len(await _queue_rows(db_session, listing_id)) == 1


@pytest.mark.asyncio
async def test_pending_listing_is_not_editable(client, seed_agent):
    owner = seed_agent["headers"]
    listing_id = await submitted_listing(client, owner)
    r = await client.patch(f"/v1/listings/{listing_id}", headers=owner, json={"title": "Edited while pending"})
    assert r.status_code == 409


@pytest.mark.asyncio
async def test_archive_withdraws_open_entry(client, db_session, seed_agent):
    owner = seed_agent["headers"]
    listing_id = await submitted_listing(client, owner)

    r = await client.post(f"/v1/listings/{listing_id}/archive", headers=owner)
    assert r.status_code == 200, r.text
    assert r.json()["status"] == "archived"
    assert r.json()["archived_at"] is not None

    rows = await _queue_rows(db_session, listing_id)
    assert [e.status for e in rows] == ["withdrawn"]

    r = await client.post(f"/v1/listings/{listing_id}/submit", headers=owner, json={})
    assert r.status_code == 409


@pytest.mark.asyncio
async def test_publish_job_publishes_auto_publish_listings(client, db_session, seed_agent, seed_super_admin):
    admin = seed_super_admin["headers"]
    auto_id = await submitted_listing(client, seed_agent["headers"], publish_on_approval=True)
    manual_id = await submitted_listing(client, seed_agent["headers"])
    for listing_id in (auto_id, manual_id):
        queue_id = await pending_queue_id(client, admin, listing_id)
        r = await client.post(f"/v1/admin/approvals/{queue_id}/review", headers=admin, json={"decision": "approved"})
        assert r.status_code == 200, r.text

    published = await publish_approved_listings(db_session)
    await db_session.commit()
    assert published == 1

    statuses = dict((await db_session.execute(select(Listing.id, Listing.status))).all())
    assert statuses[auto_id] == "published"
    assert statuses[manual_id] == "approved"


@pytest.mark.asyncio
async def test_auto_publish_on_approve_setting(client, seed_agent, seed_super_admin, monkeypatch):
    monkeypatch.setattr(settings, "auto_publish_on_approve", True)
    admin = seed_super_admin["headers"]
    listing_id = await submitted_listing(client, seed_agent["headers"])
    queue_id = await pending_queue_id(client, admin, listing_id)

    r = await client.post(f"/v1/admin/approvals/{queue_id}/review", headers=admin, json={"decision": "approved"})
    assert r.status_code == 200, r.text
    assert r.json()["listing_status"] == "published"
    assert r.json()["is_published"] is True
